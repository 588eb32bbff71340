"""Provider and handler contracts shared by every environment kind.

A ``Provider`` enumerates VPP instances in one environment (Docker, Kubernetes,
the local host) and returns one ``Handler`` per candidate. A ``Handler`` is the
uniform remote-control surface for a single instance: command execution, the
vppctl console, the binary API and the stats feed.

Environment-specific subclasses implement:
    - ``Provider._query_one()``    one query with a single filter mapping
    - ``Handler.id`` / ``Handler.metadata``
    - ``Handler.command()``        builds a ``Cmd`` for the environment
    - ``Handler._control_host()``  host part of the control endpoint address
"""

from __future__ import annotations

import fnmatch
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable

from ..config import ProbeConfig
from ..exceptions import ControlConnectionError, ExecError, HandlerClosedError
from ..exec import Cmd, Wrapper
from ..proxy import BinapiChannel, ProxyClient, StatsClient

logger = logging.getLogger(__name__)

DOCKER = "docker"
KUBE = "kube"
LOCAL = "local"

ENVS = (DOCKER, KUBE, LOCAL)

UNIX_DATE = "%a %b %d %H:%M:%S %Z %Y"

CliExecutor = Callable[[str], str]


class ConnectionCache:
    """Lazily opens and memoizes one control connection.

    The first successful connect is kept and reused; a failed attempt is not
    remembered, so the next call tries again. Establishment is serialized by a
    lock, so concurrent callers never open duplicate connections.
    """

    def __init__(self, connect: Callable[[], ProxyClient]):
        self._connect = connect
        self._lock = threading.Lock()
        self._client: ProxyClient | None = None

    @property
    def connected(self) -> bool:
        return self._client is not None

    def ensure_connected(self) -> ProxyClient:
        with self._lock:
            if self._client is None:
                self._client = self._connect()
            return self._client

    def reset(self) -> None:
        """Drop the cached connection, if any."""
        with self._lock:
            client, self._client = self._client, None
        if client is None:
            return
        try:
            client.close()
        except Exception as exc:
            logger.debug("closing proxy connection %s failed: %s", client.address, exc)


class Handler(ABC):
    """Remote-control capabilities of one discovered instance."""

    env: str = ""

    def __init__(self, probe_config: ProbeConfig | None = None):
        self.probe_config = probe_config or ProbeConfig()
        self._conn = ConnectionCache(self._connect_proxy)
        self._closed = False

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.id}>"

    @property
    @abstractmethod
    def id(self) -> str:
        """Stable short identifier of the instance."""

    @property
    @abstractmethod
    def metadata(self) -> dict[str, str]:
        """Descriptive facts about the instance, computed once at construction."""

    @abstractmethod
    def command(self, cmd: str, *args: str) -> Cmd:
        """Build a command bound to this instance without running it."""

    @abstractmethod
    def _control_host(self) -> str:
        """Network address of the instance for its control endpoint."""

    @property
    def closed(self) -> bool:
        return self._closed

    def exec_cmd(self, cmd: str, *args: str) -> str:
        """Run a command and return its standard output as text."""
        out = self.command(cmd, *args).output()
        return out.decode(errors="replace")

    def get_cli(self) -> CliExecutor:
        """Return a function that runs one vppctl command and returns its output.

        The CLI socket is checked on every call; when it is missing the console
        is reached over the CLI TCP address instead.
        """
        cfg = self.probe_config
        args: list[str] = []
        try:
            self.command("ls", cfg.cli_socket).run()
        except ExecError as exc:
            args = ["-s", cfg.cli_address]
            logger.debug("checking cli socket error: %s, using flags %s for vppctl", exc, args)

        wrapper = Wrapper(self, cfg.vppctl, *args)

        def cli(cmd: str) -> str:
            return wrapper.command(cmd).output().decode(errors="replace")

        return cli

    def get_api(self) -> BinapiChannel:
        """Return a binary API channel over the shared control connection."""
        client = self._ensure_connected()
        try:
            return client.new_binapi_client()
        except ControlConnectionError as exc:
            logger.error("creating new proxy binapi client for %s failed: %s", self.id, exc)
            raise

    def get_stats(self) -> StatsClient:
        """Return a stats feed client over the shared control connection."""
        return self._ensure_connected().new_stats_client()

    def close(self) -> None:
        """Drop the control connection and mark the handler closed."""
        logger.debug("closing handler %s", self.id)
        self._conn.reset()
        self._closed = True

    def _ensure_connected(self) -> ProxyClient:
        if self._closed:
            raise HandlerClosedError(f"handler {self.id} is closed")
        return self._conn.ensure_connected()

    def _connect_proxy(self) -> ProxyClient:
        addr = f"{self._control_host()}:{self.probe_config.control_port}"
        logger.debug("connecting to proxy %s", addr, extra={"instance": self.id})
        return ProxyClient.connect(addr, timeout=self.probe_config.timeout)


class Provider(ABC):
    """Enumerates instances in one environment.

    ``query()`` accepts zero or more filter mappings; an instance is returned
    when it matches any of them, and no mapping means every instance. The keys
    understood by each environment are documented on its provider class; a
    mapping with keys a provider does not understand matches nothing there.
    """

    env: str = ""

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique provider name within a client."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"

    def query(self, *query_params: dict[str, str]) -> list[Handler]:
        """Return one handler per running candidate instance.

        Raises QueryError when the environment backend cannot be queried. No
        match is an empty result, not an error.
        """
        params_list = [p for p in query_params if p] or [{}]

        handlers: list[Handler] = []
        seen: set[str] = set()
        for params in params_list:
            for handler in self._query_one(params):
                if handler.id in seen:
                    continue
                seen.add(handler.id)
                handlers.append(handler)

        logger.debug("provider %s query returned %d handlers", self.name, len(handlers), extra={"provider": self.name})
        return handlers

    @abstractmethod
    def _query_one(self, params: dict[str, str]) -> list[Handler]:
        """Run one query with a single filter mapping."""


def match_glob(value: str, pattern: str | None) -> bool:
    """Shell-style match; an empty pattern matches everything."""
    if not pattern:
        return True
    return fnmatch.fnmatchcase(value, pattern)


def short_id(runtime_id: str, length: int = 7) -> str:
    return runtime_id[:length]


def format_id(name: str, runtime_id: str) -> str:
    """Human-readable identifier: name plus a short runtime id prefix."""
    return f"{name}-{short_id(runtime_id)}"


def skip_unknown(provider: Provider, params: dict[str, Any], known: tuple[str, ...]) -> bool:
    """True when a filter uses keys the provider does not understand.

    Such a filter targets another environment and matches nothing here.
    """
    unknown = sorted(k for k in params if k not in known)
    if unknown:
        logger.debug("provider %s skips filter with keys %s", provider.name, unknown)
    return bool(unknown)
