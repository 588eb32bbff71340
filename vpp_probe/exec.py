"""One-shot remote command builder shared by every handler kind."""

from __future__ import annotations

import io
import logging
from abc import ABC, abstractmethod
from typing import IO, TYPE_CHECKING

from .exceptions import CommandReusedError, ExecError, StreamAlreadyBoundError

if TYPE_CHECKING:
    from .providers import Handler

logger = logging.getLogger(__name__)


class Cmd(ABC):
    """A single command bound to one handler.

    Streams are attached with the ``set_*`` methods before running. A command
    runs at most once; ``run()`` or ``output()`` on an already executed command
    raises CommandReusedError.

    Usage:
        out = handler.command("vppctl", "show", "version").output()
    """

    def __init__(self, cmd: str, args: tuple[str, ...] | list[str] = ()):
        self.cmd = cmd
        self.args = list(args)
        self.stdin: IO[bytes] | None = None
        self.stdout: IO[bytes] | None = None
        self.stderr: IO[bytes] | None = None
        self._executed = False

    def set_stdin(self, stream: IO[bytes]) -> Cmd:
        self.stdin = stream
        return self

    def set_stdout(self, stream: IO[bytes]) -> Cmd:
        self.stdout = stream
        return self

    def set_stderr(self, stream: IO[bytes]) -> Cmd:
        self.stderr = stream
        return self

    @property
    def command_line(self) -> str:
        """Command and arguments joined into one shell-invocable string."""
        return " ".join([self.cmd, *self.args])

    def output(self) -> bytes:
        """Run the command and return its captured standard output.

        If stderr was not bound by the caller it is captured as well and
        appended to the error message when the command fails.
        """
        if self.stdout is not None:
            raise StreamAlreadyBoundError()

        stdout = io.BytesIO()
        self.stdout = stdout

        stderr = None
        if self.stderr is None:
            stderr = io.BytesIO()
            self.stderr = stderr

        try:
            self.run()
        except ExecError as exc:
            if stderr is None:
                raise
            captured = stderr.getvalue()
            raise ExecError(
                f"{exc}: {captured.decode(errors='replace').strip()}",
                exit_code=exc.exit_code,
                stderr=captured,
            ) from exc
        return stdout.getvalue()

    def run(self) -> None:
        """Run the command, blocking until it completes.

        Raises ExecError on a non-zero exit status or a transport failure.
        """
        if self._executed:
            raise CommandReusedError()
        self._executed = True

        command = self.command_line
        logger.debug("exec: %s", command)
        self._execute(command)

    @abstractmethod
    def _execute(self, command: str) -> None:
        """Dispatch ``command`` through the environment's remote-execution mechanism."""


class Wrapper:
    """Prefixes every command created through it with a fixed command and arguments.

    The console uses this to turn ``wrapper.command("show version")`` into
    ``vppctl [-s addr] show version`` on the wrapped handler.
    """

    def __init__(self, handler: Handler, cmd: str, *args: str):
        self.handler = handler
        self.cmd = cmd
        self.args = list(args)

    def command(self, *args: str) -> Cmd:
        return self.handler.command(self.cmd, *self.args, *args)


def copy_stream(data: bytes | None, stream: IO[bytes] | None) -> None:
    """Write ``data`` into ``stream`` when both are present."""
    if data and stream is not None:
        stream.write(data)


def read_stdin(stream: IO[bytes] | None) -> bytes | None:
    """Read all input from a bound stdin stream, accepting text streams too."""
    if stream is None:
        return None
    data = stream.read()
    if isinstance(data, str):
        data = data.encode()
    return data
