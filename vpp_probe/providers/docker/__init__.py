"""Docker provider: VPP instances running in containers."""

from .handler import ContainerHandler
from .provider import DockerProvider

__all__ = ["ContainerHandler", "DockerProvider"]
