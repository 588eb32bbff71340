"""Handler for a VPP instance running in a Docker container."""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any

import docker

from ...config import ProbeConfig
from .. import DOCKER, UNIX_DATE, Handler, format_id
from .exec import ContainerCmd

logger = logging.getLogger(__name__)

_FRACTION = re.compile(r"\.(\d+)")


class ContainerHandler(Handler):
    """Manages one VPP instance running in a container.

    The Docker client is borrowed from the provider and shared by every
    handler it returned.
    """

    env = DOCKER

    def __init__(self, client: docker.DockerClient, container: dict[str, Any], probe_config: ProbeConfig | None = None):
        super().__init__(probe_config)
        self.client = client
        self.container = container
        self._metadata = {
            "env": DOCKER,
            "name": self.name,
            "container": self.name,
            "id": self.container_id[:12],
            "image": (container.get("Config") or {}).get("Image", ""),
            "created": format_created(container.get("Created", "")),
        }

    @property
    def name(self) -> str:
        return container_name(self.container)

    @property
    def container_id(self) -> str:
        return self.container.get("Id", "")

    @property
    def id(self) -> str:
        return format_id(self.name, self.container_id)

    @property
    def metadata(self) -> dict[str, str]:
        return dict(self._metadata)

    def command(self, cmd: str, *args: str) -> ContainerCmd:
        return ContainerCmd(self, cmd, args)

    def _control_host(self) -> str:
        settings = self.container.get("NetworkSettings") or {}
        logger.debug("network settings of %s: %s", self.id, settings)
        for network in (settings.get("Networks") or {}).values():
            ip = (network or {}).get("IPAddress")
            if ip:
                return ip
        # Containers on the default bridge may only report the legacy field
        return settings.get("IPAddress", "")


def container_name(container: dict[str, Any]) -> str:
    """Container name without the leading slash Docker puts in front of it."""
    return container.get("Name", "").removeprefix("/")


def format_created(raw: str) -> str:
    """Render Docker's RFC 3339 creation time (nanosecond precision) as a Unix date."""
    if not raw:
        return ""
    value = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), raw.replace("Z", "+00:00"), count=1)
    try:
        return datetime.fromisoformat(value).strftime(UNIX_DATE)
    except ValueError:
        return raw
