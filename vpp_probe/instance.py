"""VPP instance: a handler that passed the liveness probe."""

from __future__ import annotations

import logging

from .exceptions import InstanceInitError
from .providers import CliExecutor, Handler

logger = logging.getLogger(__name__)

PROBE_COMMAND = "show version"


class Instance:
    """A reachable VPP instance.

    Construction runs ``show version`` through the handler's console and fails
    with InstanceInitError when that does not work, so an Instance only exists
    for handlers that answer.
    """

    def __init__(self, handler: Handler):
        self._handler = handler
        self._cli: CliExecutor | None = None
        self.version = ""
        self._init()

    def __repr__(self) -> str:
        return f"<Instance {self.id}>"

    def _init(self) -> None:
        try:
            self._cli = self._handler.get_cli()
            out = self._cli(PROBE_COMMAND)
        except Exception as exc:
            raise InstanceInitError(f"instance {self._handler.id} init failed: {exc}") from exc

        lines = out.strip().splitlines()
        if not lines:
            raise InstanceInitError(f"instance {self._handler.id} returned no version info")
        self.version = lines[0].strip()
        logger.debug("instance %s: %s", self._handler.id, self.version, extra={"instance": self._handler.id})

    @property
    def handler(self) -> Handler:
        return self._handler

    @property
    def id(self) -> str:
        return self._handler.id

    @property
    def metadata(self) -> dict[str, str]:
        return self._handler.metadata

    def run_cli(self, cmd: str) -> str:
        """Run a vppctl command and return its output."""
        return self._cli(cmd)

    def refresh_cli(self) -> None:
        """Re-check how the console is reached, e.g. after VPP was restarted."""
        self._cli = self._handler.get_cli()
