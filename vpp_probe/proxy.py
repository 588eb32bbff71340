"""Client for the VPP control proxy serving the binary API and stats feed."""

from __future__ import annotations

import logging
from typing import Any

import requests

from .exceptions import ControlConnectionError

logger = logging.getLogger(__name__)


class ProxyClient:
    """One connection to the control proxy of a single VPP instance.

    The proxy is addressed as ``http://<host>:<port>``. Binary API and stats
    sub-clients share this client's session.
    """

    def __init__(self, address: str, timeout: int = 10):
        self.address = address
        self._base = f"http://{address}"
        self._session = requests.Session()
        self._session.headers["Content-Type"] = "application/json"
        self._timeout = timeout

    @classmethod
    def connect(cls, address: str, timeout: int = 10) -> ProxyClient:
        """Open a client and check that the proxy answers."""
        client = cls(address, timeout=timeout)
        try:
            client._request("GET", "/")
        except ControlConnectionError:
            client.close()
            raise
        return client

    def new_binapi_client(self) -> BinapiChannel:
        """Return a binary API channel, failing if the proxy does not serve one."""
        self._request("GET", "/binapi")
        return BinapiChannel(self)

    def new_stats_client(self) -> StatsClient:
        """Return a stats feed client, failing if the proxy does not serve one."""
        self._request("GET", "/stats")
        return StatsClient(self)

    def close(self) -> None:
        self._session.close()

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self._base}{path}"
        kwargs.setdefault("timeout", self._timeout)
        logger.debug("%s %s params=%s", method, url, kwargs.get("params"))

        try:
            resp = self._session.request(method, url, **kwargs)
        except requests.RequestException as exc:
            raise ControlConnectionError(f"Request to proxy {self.address} failed: {exc}", address=self.address) from exc

        if resp.status_code >= 400:
            raise ControlConnectionError(
                f"HTTP {resp.status_code} on {method} {path}: {resp.text}",
                address=self.address,
                status_code=resp.status_code,
            )

        return resp


class BinapiChannel:
    """Request/reply channel to the VPP binary API."""

    def __init__(self, client: ProxyClient):
        self._client = client

    def invoke(self, msg_name: str, payload: dict[str, Any] | None = None) -> dict[str, Any]:
        """Send one binary API request and return its decoded reply."""
        resp = self._client._request("POST", f"/binapi/{msg_name}", json=payload or {})
        return resp.json()

    def invoke_multi(self, msg_name: str, payload: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        """Send a dump request and return all replies."""
        resp = self._client._request("POST", f"/binapi/{msg_name}", json=payload or {}, params={"multi": "true"})
        data = resp.json()
        return data if isinstance(data, list) else [data]


class StatsClient:
    """Read access to the VPP stats segment."""

    def __init__(self, client: ProxyClient):
        self._client = client

    def list(self, *patterns: str) -> list[str]:
        """Return names of stats entries matching the patterns (all when empty)."""
        resp = self._client._request("GET", "/stats/names", params={"pattern": list(patterns)})
        return resp.json()

    def dump(self, *patterns: str) -> list[dict[str, Any]]:
        """Return stats entries matching the patterns (all when empty)."""
        resp = self._client._request("GET", "/stats", params={"pattern": list(patterns)})
        return resp.json()
