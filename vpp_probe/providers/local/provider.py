"""Local provider and handler: commands run as subprocesses on this host."""

from __future__ import annotations

import logging
import socket
import subprocess

from ...config import LocalConfig, ProbeConfig
from ...exceptions import ExecError
from ...exec import Cmd, copy_stream, read_stdin
from .. import LOCAL, Handler, Provider, skip_unknown

logger = logging.getLogger(__name__)


class LocalCmd(Cmd):
    """A command run with ``sh -c`` on the local host."""

    def _execute(self, command: str) -> None:
        data = read_stdin(self.stdin)
        try:
            proc = subprocess.run(
                ["sh", "-c", command],
                input=data,
                stdin=subprocess.DEVNULL if data is None else None,
                capture_output=True,
                check=False,
            )
        except OSError as exc:
            raise ExecError(f"local exec failed: {exc}") from exc

        copy_stream(proc.stdout, self.stdout)
        copy_stream(proc.stderr, self.stderr)

        if proc.returncode:
            raise ExecError(f"local command failed (exit code {proc.returncode})", exit_code=proc.returncode)


class LocalHandler(Handler):
    env = LOCAL

    def __init__(self, hostname: str, probe_config: ProbeConfig | None = None):
        super().__init__(probe_config)
        self.hostname = hostname
        self._metadata = {"env": LOCAL, "name": hostname, "host": hostname}

    @property
    def id(self) -> str:
        return f"{LOCAL}-{self.hostname}"

    @property
    def metadata(self) -> dict[str, str]:
        return dict(self._metadata)

    def command(self, cmd: str, *args: str) -> LocalCmd:
        return LocalCmd(cmd, args)

    def _control_host(self) -> str:
        return "127.0.0.1"


class LocalProvider(Provider):
    """Returns a single handler for this host; the liveness probe decides whether VPP runs here.

    Accepts no query keys, so any non-empty filter matches nothing.
    """

    env = LOCAL

    def __init__(self, config: LocalConfig | None = None, probe_config: ProbeConfig | None = None):
        self._config = config or LocalConfig(enabled=True)
        self._probe_config = probe_config or ProbeConfig()
        self._hostname = socket.gethostname()

    @property
    def name(self) -> str:
        return f"{LOCAL}::{self._hostname}"

    def _query_one(self, params: dict[str, str]) -> list[LocalHandler]:
        if skip_unknown(self, params, ()):
            return []
        return [LocalHandler(self._hostname, self._probe_config)]
