"""Tests for the Kubernetes provider, pod handler and pod exec."""

from __future__ import annotations

import io
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from kubernetes import client as k8s_client
from kubernetes.client.rest import ApiException
from kubernetes.stream.ws_client import STDIN_CHANNEL, V4_CHANNEL_PROTOCOL, V5_CHANNEL_PROTOCOL
from websocket import WebSocketConnectionClosedException

from vpp_probe.config import KubeConfig
from vpp_probe.exceptions import ExecError, QueryError
from vpp_probe.providers.kube import KubeProvider, PodHandler

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _pod(
    name="vpp-0",
    namespace="default",
    uid="7c9e6679-7425-40de-944b-e07fc1f90ae7",
    containers=(("vpp", "ligato/vpp-base:23.10"),),
    pod_ip="10.244.0.12",
    node="worker-1",
) -> k8s_client.V1Pod:
    return k8s_client.V1Pod(
        metadata=k8s_client.V1ObjectMeta(
            name=name,
            namespace=namespace,
            uid=uid,
            creation_timestamp=datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc),
        ),
        spec=k8s_client.V1PodSpec(
            containers=[k8s_client.V1Container(name=n, image=img) for n, img in containers],
            node_name=node,
        ),
        status=k8s_client.V1PodStatus(pod_ip=pod_ip, phase="Running"),
    )


def _core_with(*pods) -> MagicMock:
    core = MagicMock()
    core.list_pod_for_all_namespaces.return_value = MagicMock(items=list(pods))
    core.list_namespaced_pod.return_value = MagicMock(items=list(pods))
    return core


class FakeWSClient:
    """Minimal stand-in for the websocket client returned by kubernetes.stream.

    With ``reads_stdin`` the remote command keeps the session open until the
    stdin channel is closed, like ``cat`` does.
    """

    def __init__(self, stdout="", stderr="", returncode=0, reads_stdin=False, subprotocol=V5_CHANNEL_PROTOCOL):
        self._stdout = stdout
        self._stderr = stderr
        self._open = True
        self._reads_stdin = reads_stdin
        self._updates = 0
        self.returncode = returncode
        self.subprotocol = subprotocol
        self.stdin = []
        self.closed_channels = []
        self.closed = False

    def is_open(self):
        return self._open

    def update(self, timeout=0):
        self._updates += 1
        if self._reads_stdin and STDIN_CHANNEL not in self.closed_channels:
            assert self._updates < 5, "remote command still waiting for end of input"
            return
        self._open = False

    def peek_stdout(self):
        return bool(self._stdout)

    def read_stdout(self):
        out, self._stdout = self._stdout, ""
        return out

    def peek_stderr(self):
        return bool(self._stderr)

    def read_stderr(self):
        err, self._stderr = self._stderr, ""
        return err

    def write_stdin(self, data):
        self.stdin.append(data)

    def close(self):
        self.closed = True

    def close_channel(self, channel):
        self.closed_channels.append(channel)


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestKubeProviderQuery:
    def test_lists_running_pods_in_all_namespaces(self):
        core = _core_with(_pod(), _pod(name="vpp-1", uid="1d2c3b4a-0000"))
        handlers = KubeProvider(core=core).query()

        core.list_pod_for_all_namespaces.assert_called_once_with(field_selector="status.phase=Running")
        assert [h.id for h in handlers] == ["vpp-0-7c9e667", "vpp-1-1d2c3b4"]

    def test_namespace_and_label(self):
        core = _core_with(_pod())
        KubeProvider(core=core).query({"namespace": "vpp", "label": "app=vpp"})
        core.list_namespaced_pod.assert_called_once_with(
            "vpp", field_selector="status.phase=Running", label_selector="app=vpp",
        )

    def test_configured_namespace_is_default(self):
        core = _core_with(_pod())
        KubeProvider(core=core, config=KubeConfig(enabled=True, namespace="dataplane")).query()
        assert core.list_namespaced_pod.call_args.args == ("dataplane",)

    def test_name_glob(self):
        core = _core_with(_pod(name="vpp-0"), _pod(name="etcd-0", uid="e0"))
        handlers = KubeProvider(core=core).query({"name": "vpp-*"})
        assert [h.pod_name for h in handlers] == ["vpp-0"]

    def test_container_selection(self):
        pod = _pod(containers=(("agent", "ligato/vpp-agent"), ("vpp", "ligato/vpp-base")))
        handlers = KubeProvider(core=_core_with(pod)).query({"container": "vpp"})
        assert handlers[0].container == "vpp"
        assert handlers[0].metadata["image"] == "ligato/vpp-base"

    def test_filter_for_other_environment_matches_nothing(self):
        core = _core_with(_pod())
        assert KubeProvider(core=core).query({"image": "vpp*"}) == []

    def test_api_error_raises_query_error(self):
        core = MagicMock()
        core.list_pod_for_all_namespaces.side_effect = ApiException(status=403, reason="Forbidden")
        with pytest.raises(QueryError, match="Forbidden"):
            KubeProvider(core=core).query()

    def test_name(self):
        assert KubeProvider().name == "kube::default"
        assert KubeProvider(config=KubeConfig(context="kind-vpp")).name == "kube::kind-vpp"

    @patch("vpp_probe.providers.kube.provider.k8s_config.load_incluster_config")
    @patch("vpp_probe.providers.kube.provider.new_client_from_config")
    def test_falls_back_to_incluster_config(self, mock_new_client, mock_incluster):
        from kubernetes.config import ConfigException

        mock_new_client.side_effect = ConfigException("Invalid kube-config file. No configuration found.")
        provider = KubeProvider()
        with patch("vpp_probe.providers.kube.provider.k8s_client.CoreV1Api") as MockCore:
            MockCore.return_value = _core_with()
            assert provider.query() == []
        mock_incluster.assert_called_once()


class TestPodHandler:
    def test_id(self):
        assert PodHandler(MagicMock(), _pod()).id == "vpp-0-7c9e667"

    def test_metadata(self):
        meta = PodHandler(MagicMock(), _pod()).metadata
        assert meta == {
            "env": "kube",
            "name": "vpp-0",
            "pod": "vpp-0",
            "namespace": "default",
            "node": "worker-1",
            "container": "vpp",
            "uid": "7c9e6679-742",
            "image": "ligato/vpp-base:23.10",
            "created": "Mon Jan 01 12:00:00 UTC 2024",
            "ip": "10.244.0.12",
        }

    def test_control_host_is_pod_ip(self):
        assert PodHandler(MagicMock(), _pod(pod_ip="10.1.1.5"))._control_host() == "10.1.1.5"


class TestPodExec:
    @patch("vpp_probe.providers.kube.exec.stream")
    def test_runs_command_with_sh(self, mock_stream):
        core = MagicMock()
        ws = FakeWSClient(stdout="vpp v23.10\n")
        mock_stream.return_value = ws
        handler = PodHandler(core, _pod())

        assert handler.exec_cmd("vppctl", "show version") == "vpp v23.10\n"

        mock_stream.assert_called_once_with(
            core.connect_get_namespaced_pod_exec,
            "vpp-0",
            "default",
            container="vpp",
            command=["sh", "-c", "vppctl show version"],
            stdin=False,
            stdout=True,
            stderr=True,
            tty=False,
            _preload_content=False,
        )
        assert ws.closed

    @patch("vpp_probe.providers.kube.exec.stream")
    def test_nonzero_exit(self, mock_stream):
        mock_stream.return_value = FakeWSClient(stderr="vppctl: not found", returncode=127)
        with pytest.raises(ExecError) as excinfo:
            PodHandler(MagicMock(), _pod()).exec_cmd("vppctl")
        assert excinfo.value.exit_code == 127
        assert "vppctl: not found" in str(excinfo.value)

    @patch("vpp_probe.providers.kube.exec.stream")
    def test_stream_open_failure(self, mock_stream):
        mock_stream.side_effect = ApiException(status=404, reason="Not Found")
        with pytest.raises(ExecError, match="Not Found"):
            PodHandler(MagicMock(), _pod()).command("ls").run()

    @patch("vpp_probe.providers.kube.exec.stream")
    def test_stdin_is_written(self, mock_stream):
        ws = FakeWSClient()
        mock_stream.return_value = ws
        PodHandler(MagicMock(), _pod()).command("cat").set_stdin(io.BytesIO(b"data")).run()
        assert mock_stream.call_args.kwargs["stdin"] is True
        assert ws.stdin == [b"data"]
        assert ws.closed_channels == [STDIN_CHANNEL]

    @patch("vpp_probe.providers.kube.exec.stream")
    def test_reading_command_finishes_after_end_of_input(self, mock_stream):
        ws = FakeWSClient(stdout="data", reads_stdin=True)
        mock_stream.return_value = ws
        stdout = io.BytesIO()

        PodHandler(MagicMock(), _pod()).command("cat").set_stdin(io.BytesIO(b"data")).set_stdout(stdout).run()

        assert stdout.getvalue() == b"data"
        assert ws.closed

    @patch("vpp_probe.providers.kube.exec.stream")
    def test_empty_stdin_still_closes_input(self, mock_stream):
        ws = FakeWSClient(reads_stdin=True)
        mock_stream.return_value = ws

        PodHandler(MagicMock(), _pod()).command("cat").set_stdin(io.BytesIO(b"")).run()

        assert mock_stream.call_args.kwargs["stdin"] is True
        assert ws.stdin == []
        assert ws.closed_channels == [STDIN_CHANNEL]

    @patch("vpp_probe.providers.kube.exec.stream")
    def test_stdin_refused_without_v5_protocol(self, mock_stream):
        ws = FakeWSClient(reads_stdin=True, subprotocol=V4_CHANNEL_PROTOCOL)
        mock_stream.return_value = ws

        with pytest.raises(ExecError, match="v5.channel.k8s.io"):
            PodHandler(MagicMock(), _pod()).command("cat").set_stdin(io.BytesIO(b"data")).run()

        assert ws.stdin == []
        assert ws.closed

    @patch("vpp_probe.providers.kube.exec.stream")
    def test_websocket_error_becomes_exec_error(self, mock_stream):
        ws = FakeWSClient()
        ws.update = MagicMock(side_effect=WebSocketConnectionClosedException("socket is already closed."))
        mock_stream.return_value = ws

        with pytest.raises(ExecError, match="already closed"):
            PodHandler(MagicMock(), _pod()).command("ls").run()
        assert ws.closed
