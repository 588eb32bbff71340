"""Command execution inside a pod container through the Kubernetes exec API."""

from __future__ import annotations

import logging
from typing import IO, TYPE_CHECKING

from kubernetes import client as k8s_client
from kubernetes.client.rest import ApiException
from kubernetes.stream import stream
from kubernetes.stream.ws_client import STDIN_CHANNEL, V5_CHANNEL_PROTOCOL
from websocket import WebSocketException

from ...exceptions import ExecError
from ...exec import Cmd, copy_stream, read_stdin

if TYPE_CHECKING:
    from .handler import PodHandler

logger = logging.getLogger(__name__)


class PodCmd(Cmd):
    """A command run with ``sh -c`` in the handler's pod container."""

    def __init__(self, handler: PodHandler, cmd: str, args: tuple[str, ...] = ()):
        super().__init__(cmd, args)
        self.handler = handler

    def _execute(self, command: str) -> None:
        pod_exec(
            self.handler.core,
            self.handler.namespace,
            self.handler.pod_name,
            self.handler.container,
            command,
            stdin=self.stdin,
            stdout=self.stdout,
            stderr=self.stderr,
        )


def pod_exec(
    core: k8s_client.CoreV1Api,
    namespace: str,
    pod: str,
    container: str,
    command: str,
    stdin: IO[bytes] | None = None,
    stdout: IO[bytes] | None = None,
    stderr: IO[bytes] | None = None,
) -> None:
    """Open an exec websocket, pump the streams until it closes and check the exit code."""
    data = read_stdin(stdin)
    try:
        resp = stream(
            core.connect_get_namespaced_pod_exec,
            pod,
            namespace,
            container=container,
            command=["sh", "-c", command],
            stdin=data is not None,
            stdout=True,
            stderr=True,
            tty=False,
            _preload_content=False,
        )
    except ApiException as exc:
        raise ExecError(f"pod exec in {namespace}/{pod} failed: {exc.reason}") from exc
    except (WebSocketException, OSError) as exc:
        raise ExecError(f"pod exec in {namespace}/{pod} failed: {exc}") from exc

    try:
        if data is not None:
            _send_stdin(resp, data, f"{namespace}/{pod}")
        while resp.is_open():
            resp.update(timeout=1)
            _drain(resp, stdout, stderr)
        _drain(resp, stdout, stderr)
        exit_code = resp.returncode
    except (ApiException, WebSocketException, OSError) as exc:
        raise ExecError(f"pod exec in {namespace}/{pod} failed: {exc}") from exc
    finally:
        resp.close()

    if exit_code:
        raise ExecError(f"pod exec command failed (exit code {exit_code})", exit_code=exit_code)


def _send_stdin(resp, data: bytes, target: str) -> None:
    """Write all input and signal end of input.

    Only the v5 exec protocol can close stdin on its own; under v4 a command
    reading stdin would never see EOF, so input is refused there.
    """
    if resp.subprotocol != V5_CHANNEL_PROTOCOL:
        raise ExecError(
            f"pod exec in {target}: stdin needs the {V5_CHANNEL_PROTOCOL} protocol, "
            f"server negotiated {resp.subprotocol or 'none'}"
        )
    if data:
        resp.write_stdin(data)
    resp.close_channel(STDIN_CHANNEL)


def _drain(resp, stdout: IO[bytes] | None, stderr: IO[bytes] | None) -> None:
    if resp.peek_stdout():
        copy_stream(resp.read_stdout().encode(), stdout)
    if resp.peek_stderr():
        copy_stream(resp.read_stderr().encode(), stderr)
