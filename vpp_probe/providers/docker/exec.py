"""Command execution inside a container through the Docker exec API."""

from __future__ import annotations

import logging
import socket
import time
from typing import IO, TYPE_CHECKING

import docker
import requests
from docker.utils.socket import consume_socket_output, frames_iter

from ...exceptions import ExecError
from ...exec import Cmd, copy_stream, read_stdin

if TYPE_CHECKING:
    from .handler import ContainerHandler

logger = logging.getLogger(__name__)

INSPECT_ATTEMPTS = 10
INSPECT_INTERVAL = 0.1


class ContainerCmd(Cmd):
    """A command run with ``sh -c`` in the handler's container."""

    def __init__(self, handler: ContainerHandler, cmd: str, args: tuple[str, ...] = ()):
        super().__init__(cmd, args)
        self.handler = handler

    def _execute(self, command: str) -> None:
        container_exec(
            self.handler.client,
            self.handler.container_id,
            command,
            stdin=self.stdin,
            stdout=self.stdout,
            stderr=self.stderr,
        )


def container_exec(
    client: docker.DockerClient,
    container_id: str,
    command: str,
    stdin: IO[bytes] | None = None,
    stdout: IO[bytes] | None = None,
    stderr: IO[bytes] | None = None,
) -> None:
    """Create an exec session, attach streams, start it and check the exit code."""
    api = client.api
    try:
        exec_id = api.exec_create(
            container_id,
            ["sh", "-c", command],
            stdin=stdin is not None,
            stdout=stdout is not None,
            stderr=stderr is not None,
            tty=False,
        )["Id"]

        data = read_stdin(stdin)
        if data is None:
            out, err = api.exec_start(exec_id, tty=False, demux=True)
        else:
            out, err = _exec_with_input(api, exec_id, data)

        copy_stream(out, stdout)
        copy_stream(err, stderr)

        exit_code = _wait_exit_code(api, exec_id)
    except (docker.errors.DockerException, requests.RequestException, OSError) as exc:
        raise ExecError(f"docker exec in {container_id[:12]} failed: {exc}") from exc

    if exit_code is None:
        raise ExecError(f"docker exec in {container_id[:12]} did not finish")
    if exit_code:
        raise ExecError(f"docker exec command failed (exit code {exit_code})", exit_code=exit_code)


def _wait_exit_code(api, exec_id: str) -> int | None:
    # The exec can still report Running with no exit code right after its output closed
    for attempt in range(INSPECT_ATTEMPTS):
        info = api.exec_inspect(exec_id)
        if not info.get("Running") and info.get("ExitCode") is not None:
            return info["ExitCode"]
        logger.debug("exec %s still running, inspect attempt %d", exec_id[:12], attempt + 1)
        time.sleep(INSPECT_INTERVAL)
    return None


def _exec_with_input(api, exec_id: str, data: bytes) -> tuple[bytes | None, bytes | None]:
    sock = api.exec_start(exec_id, tty=False, socket=True)
    raw = getattr(sock, "_sock", sock)
    try:
        raw.sendall(data)
        raw.shutdown(socket.SHUT_WR)
        return consume_socket_output(frames_iter(sock, tty=False), demux=True)
    finally:
        sock.close()
