"""Local provider: a VPP instance running directly on this host."""

from .provider import LocalHandler, LocalProvider

__all__ = ["LocalHandler", "LocalProvider"]
