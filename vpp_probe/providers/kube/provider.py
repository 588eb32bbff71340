"""Kubernetes provider: enumerates running pods through the Kubernetes API."""

from __future__ import annotations

import logging

from kubernetes import client as k8s_client
from kubernetes import config as k8s_config
from kubernetes.client.rest import ApiException
from kubernetes.config import ConfigException, new_client_from_config

from ...config import KubeConfig, ProbeConfig
from ...exceptions import QueryError
from .. import KUBE, Provider, match_glob, skip_unknown
from .handler import PodHandler

logger = logging.getLogger(__name__)

QUERY_KEYS = ("namespace", "label", "name", "container")


class KubeProvider(Provider):
    """Finds VPP candidates among running pods of one cluster context.

    Query keys:
        - ``namespace``  namespace to list (default: configured one, else all)
        - ``label``      label selector, e.g. ``app=vpp``
        - ``name``       glob on the pod name
        - ``container``  container to exec into (default: the first one)

    The API client is built on first query from the kubeconfig, falling back to
    the in-cluster service account.
    """

    env = KUBE

    def __init__(
        self,
        core: k8s_client.CoreV1Api | None = None,
        config: KubeConfig | None = None,
        probe_config: ProbeConfig | None = None,
    ):
        self._config = config or KubeConfig()
        self._core = core
        self._probe_config = probe_config or ProbeConfig()

    @property
    def name(self) -> str:
        return f"{KUBE}::{self._config.context or 'default'}"

    def _get_core(self) -> k8s_client.CoreV1Api:
        if self._core is None:
            self._core = k8s_client.CoreV1Api(self._load_api_client())
        return self._core

    def _load_api_client(self) -> k8s_client.ApiClient:
        try:
            return new_client_from_config(
                config_file=self._config.kubeconfig or None,
                context=self._config.context or None,
            )
        except ConfigException:
            if self._config.kubeconfig:
                raise
            logger.debug("no usable kubeconfig, trying in-cluster config")
        configuration = k8s_client.Configuration()
        k8s_config.load_incluster_config(client_configuration=configuration)
        return k8s_client.ApiClient(configuration)

    def _query_one(self, params: dict[str, str]) -> list[PodHandler]:
        if skip_unknown(self, params, QUERY_KEYS):
            return []

        namespace = params.get("namespace") or self._config.namespace
        kwargs = {"field_selector": "status.phase=Running"}
        if params.get("label"):
            kwargs["label_selector"] = params["label"]

        try:
            core = self._get_core()
            if namespace:
                pods = core.list_namespaced_pod(namespace, **kwargs)
            else:
                pods = core.list_pod_for_all_namespaces(**kwargs)
        except (ApiException, ConfigException, OSError) as exc:
            raise QueryError(f"listing pods failed: {exc}", provider=self.name) from exc

        handlers: list[PodHandler] = []
        for pod in pods.items:
            if not match_glob(pod.metadata.name, params.get("name")):
                continue
            handlers.append(PodHandler(core, pod, params.get("container", ""), self._probe_config))

        logger.debug("kube query %s matched %d of %d pods", params, len(handlers), len(pods.items))
        return handlers
