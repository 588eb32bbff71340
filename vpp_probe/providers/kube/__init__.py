"""Kubernetes provider: VPP instances running in pods."""

from .handler import PodHandler
from .provider import KubeProvider

__all__ = ["KubeProvider", "PodHandler"]
