"""Handler for a VPP instance running in a Kubernetes pod."""

from __future__ import annotations

from kubernetes import client as k8s_client

from ...config import ProbeConfig
from .. import KUBE, UNIX_DATE, Handler, format_id
from .exec import PodCmd


class PodHandler(Handler):
    """Manages one VPP instance running in a pod container."""

    env = KUBE

    def __init__(
        self,
        core: k8s_client.CoreV1Api,
        pod: k8s_client.V1Pod,
        container: str = "",
        probe_config: ProbeConfig | None = None,
    ):
        super().__init__(probe_config)
        self.core = core
        self.pod = pod
        spec_container = _find_container(pod, container)
        self.container = spec_container.name if spec_container is not None else container

        created = pod.metadata.creation_timestamp
        self._metadata = {
            "env": KUBE,
            "name": self.pod_name,
            "pod": self.pod_name,
            "namespace": self.namespace,
            "node": pod.spec.node_name or "",
            "container": self.container,
            "uid": self.uid[:12],
            "image": spec_container.image if spec_container is not None else "",
            "created": created.strftime(UNIX_DATE) if created else "",
            "ip": pod.status.pod_ip or "",
        }

    @property
    def pod_name(self) -> str:
        return self.pod.metadata.name

    @property
    def namespace(self) -> str:
        return self.pod.metadata.namespace

    @property
    def uid(self) -> str:
        return self.pod.metadata.uid or ""

    @property
    def id(self) -> str:
        return format_id(self.pod_name, self.uid)

    @property
    def metadata(self) -> dict[str, str]:
        return dict(self._metadata)

    def command(self, cmd: str, *args: str) -> PodCmd:
        return PodCmd(self, cmd, args)

    def _control_host(self) -> str:
        return self.pod.status.pod_ip or ""


def _find_container(pod: k8s_client.V1Pod, name: str) -> k8s_client.V1Container | None:
    containers = pod.spec.containers or []
    if not name:
        return containers[0] if containers else None
    for container in containers:
        if container.name == name:
            return container
    return None
