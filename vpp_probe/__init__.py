"""Discovery and remote control of VPP instances across Docker, Kubernetes and the local host."""

__version__ = "0.1.0"
