"""Docker provider: enumerates running containers through the Docker Engine API."""

from __future__ import annotations

import logging

import docker

from ...config import DockerConfig, ProbeConfig
from ...exceptions import QueryError
from .. import DOCKER, Provider, match_glob, skip_unknown
from .handler import ContainerHandler, container_name

logger = logging.getLogger(__name__)

QUERY_KEYS = ("name", "label", "image")


class DockerProvider(Provider):
    """Finds VPP candidates among running containers.

    Query keys:
        - ``name``   glob on the container name
        - ``label``  label filter, ``key`` or ``key=value``
        - ``image``  glob on the image reference

    The Docker client is created on first query unless one is supplied.
    """

    env = DOCKER

    def __init__(
        self,
        client: docker.DockerClient | None = None,
        config: DockerConfig | None = None,
        probe_config: ProbeConfig | None = None,
    ):
        self._config = config or DockerConfig()
        self._client = client
        self._probe_config = probe_config or ProbeConfig()

    @property
    def name(self) -> str:
        return f"{DOCKER}::{self._config.host or 'env'}"

    def _get_client(self) -> docker.DockerClient:
        if self._client is None:
            if self._config.host:
                self._client = docker.DockerClient(base_url=self._config.host)
            else:
                self._client = docker.from_env()
        return self._client

    def _query_one(self, params: dict[str, str]) -> list[ContainerHandler]:
        if skip_unknown(self, params, QUERY_KEYS):
            return []

        filters: dict[str, str] = {"status": "running"}
        if params.get("label"):
            filters["label"] = params["label"]

        try:
            client = self._get_client()
            containers = client.containers.list(filters=filters)
        except docker.errors.DockerException as exc:
            raise QueryError(f"listing docker containers failed: {exc}", provider=self.name) from exc

        handlers: list[ContainerHandler] = []
        for container in containers:
            attrs = container.attrs
            if not match_glob(container_name(attrs), params.get("name")):
                continue
            image = (attrs.get("Config") or {}).get("Image", "")
            if not match_glob(image, params.get("image")):
                continue
            handlers.append(ContainerHandler(client, attrs, self._probe_config))

        logger.debug("docker query %s matched %d of %d containers", params, len(handlers), len(containers))
        return handlers
