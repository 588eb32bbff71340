"""Discovery client: fans queries out to every provider and keeps the live instances."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from .config import AppConfig
from .exceptions import InstanceInitError, NoInstancesError, NoProvidersError, ProviderExistsError
from .instance import Instance
from .providers import DOCKER, KUBE, LOCAL, Handler, Provider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiscoveryFailure:
    """A provider query or a handler probe that failed during the last discovery."""

    provider: str
    error: Exception
    instance: str | None = None  # handler ID for probe failures

    def __str__(self) -> str:
        if self.instance:
            return f"{self.provider}/{self.instance}: {self.error}"
        return f"{self.provider}: {self.error}"


class Client:
    """Manages providers and the instances discovered through them.

    Usage:
        with Client(DockerProvider()) as client:
            client.discover_instances({"name": "vpp*"})
            for inst in client.instances:
                print(inst.run_cli("show interface"))
    """

    def __init__(self, *providers: Provider):
        self._providers: list[Provider] = []
        self._instances: tuple[Instance, ...] = ()
        self._failures: tuple[DiscoveryFailure, ...] = ()
        for provider in providers:
            self.add_provider(provider)

    @classmethod
    def from_config(cls, config: AppConfig, envs: list[str] | None = None) -> Client:
        """Build a client with one provider per enabled (and selected) environment."""
        client = cls()
        for env in config.enabled_envs():
            if envs and env not in envs:
                continue
            client.add_provider(_build_provider(env, config))
        return client

    def __enter__(self) -> Client:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False

    @property
    def providers(self) -> list[Provider]:
        return list(self._providers)

    @property
    def instances(self) -> tuple[Instance, ...]:
        """Instances from the last discovery run."""
        return self._instances

    @property
    def failures(self) -> tuple[DiscoveryFailure, ...]:
        """Provider and probe failures from the last discovery run."""
        return self._failures

    def add_provider(self, provider: Provider) -> None:
        """Register a provider. Raises ProviderExistsError on a duplicate name."""
        if provider is None:
            raise ValueError("provider is None")

        for p in self._providers:
            if p.name == provider.name:
                raise ProviderExistsError(f"provider '{p.name}' already added")

        self._providers.append(provider)

    def discover_instances(self, *query_params: dict[str, str]) -> tuple[Instance, ...]:
        """Query all providers concurrently and replace the instance list with the live ones.

        A failing provider or handler is logged and skipped. Raises
        NoProvidersError without providers and NoInstancesError when nothing
        live was found.
        """
        if not self._providers:
            raise NoProvidersError()

        start = time.monotonic()
        providers = list(self._providers)

        with ThreadPoolExecutor(max_workers=len(providers), thread_name_prefix="discover") as pool:
            futures = [pool.submit(self._discover_provider, p, query_params) for p in providers]
            results = [f.result() for f in futures]

        instances: list[Instance] = []
        failures: list[DiscoveryFailure] = []
        for provider_instances, provider_failures in results:
            instances.extend(provider_instances)
            failures.extend(provider_failures)

        self._instances = tuple(instances)
        self._failures = tuple(failures)

        logger.info(
            "Discovery complete",
            extra={
                "total_instances": len(instances),
                "elapsed_seconds": round(time.monotonic() - start, 2),
            },
        )

        if not self._instances:
            raise NoInstancesError()
        return self._instances

    @staticmethod
    def _discover_provider(
        provider: Provider,
        query_params: tuple[dict[str, str], ...],
    ) -> tuple[list[Instance], list[DiscoveryFailure]]:
        failures: list[DiscoveryFailure] = []
        try:
            instances = discover_instances(provider, *query_params, failures=failures)
        except Exception as exc:
            logger.warning("provider %r discover error: %s", provider.name, exc, extra={"provider": provider.name})
            failures.append(DiscoveryFailure(provider=provider.name, error=exc))
            return [], failures
        return instances, failures

    def close(self) -> None:
        """Close every instance handler; failures are logged and do not stop the others."""
        for instance in self._instances:
            _close_quietly(instance.handler)


def discover_instances(
    provider: Provider,
    *query_params: dict[str, str],
    failures: list[DiscoveryFailure] | None = None,
) -> list[Instance]:
    """Query one provider and return the instances whose handlers pass the probe.

    Raises whatever the provider query raises. Handlers failing the probe are
    logged, closed and, when ``failures`` is given, recorded there.
    """
    handlers = provider.query(*query_params)

    instances: list[Instance] = []
    for handler in handlers:
        try:
            instances.append(Instance(handler))
        except InstanceInitError as exc:
            logger.debug("vpp instance init failed: %s", exc, extra={"instance": handler.id, "provider": provider.name})
            if failures is not None:
                failures.append(DiscoveryFailure(provider=provider.name, error=exc, instance=handler.id))
            _close_quietly(handler)

    return instances


def _close_quietly(handler: Handler) -> None:
    try:
        handler.close()
    except Exception as exc:
        logger.debug("closing handler %s failed: %s", handler.id, exc)


def _build_provider(env: str, config: AppConfig) -> Provider:
    # Imported lazily so an environment's SDK is only needed when it is enabled
    if env == DOCKER:
        from .providers.docker import DockerProvider

        return DockerProvider(config=config.docker, probe_config=config.probe)
    if env == KUBE:
        from .providers.kube import KubeProvider

        return KubeProvider(config=config.kube, probe_config=config.probe)
    if env == LOCAL:
        from .providers.local import LocalProvider

        return LocalProvider(config=config.local, probe_config=config.probe)
    raise ValueError(f"unknown environment: {env}")
