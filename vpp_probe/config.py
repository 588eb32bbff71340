"""Frozen dataclasses for configuration and YAML loader with env-var interpolation."""

from __future__ import annotations

import os
import re
import types
import typing
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigError

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")


def _interpolate_env(value: str) -> str:
    """Replace ${ENV_VAR} placeholders with environment variable values."""

    def _replace(match: re.Match) -> str:
        env_key = match.group(1)
        env_val = os.environ.get(env_key)
        if env_val is None:
            raise ConfigError(f"Environment variable '{env_key}' is not set")
        return env_val

    return _ENV_PATTERN.sub(_replace, value)


def _walk_and_interpolate(obj: Any) -> Any:
    """Recursively interpolate env vars in strings throughout a nested structure."""
    if isinstance(obj, str):
        return _interpolate_env(obj)
    if isinstance(obj, dict):
        return {k: _walk_and_interpolate(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_walk_and_interpolate(v) for v in obj]
    return obj


@dataclass(frozen=True)
class DockerConfig:
    enabled: bool = True
    host: str = ""  # empty = DOCKER_HOST / local socket


@dataclass(frozen=True)
class KubeConfig:
    enabled: bool = False
    kubeconfig: str = ""  # empty = default kubeconfig or in-cluster
    context: str = ""
    namespace: str = ""  # empty = all namespaces


@dataclass(frozen=True)
class LocalConfig:
    enabled: bool = False


@dataclass(frozen=True)
class ProbeConfig:
    control_port: int = 9191
    cli_socket: str = "/run/vpp/cli.sock"
    cli_address: str = "localhost:5002"
    vppctl: str = "/usr/bin/vppctl"
    timeout: int = 10


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    format: str = "text"  # "json" or "text"


@dataclass(frozen=True)
class AppConfig:
    docker: DockerConfig | None = field(default_factory=DockerConfig)
    kube: KubeConfig | None = None
    local: LocalConfig | None = None
    probe: ProbeConfig = field(default_factory=ProbeConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def enabled_envs(self) -> list[str]:
        """Environment kinds with an enabled provider section, in a fixed order."""
        envs = []
        if self.docker is not None and self.docker.enabled:
            envs.append("docker")
        if self.kube is not None and self.kube.enabled:
            envs.append("kube")
        if self.local is not None and self.local.enabled:
            envs.append("local")
        return envs


def _get_dataclass_type(ft: Any) -> type | None:
    """Return the underlying dataclass type from a type annotation (handles Optional/X|None)."""
    if isinstance(ft, type) and hasattr(ft, "__dataclass_fields__"):
        return ft
    if isinstance(ft, types.UnionType):
        args = [a for a in ft.__args__ if a is not type(None)]
        if len(args) == 1 and isinstance(args[0], type) and hasattr(args[0], "__dataclass_fields__"):
            return args[0]
    origin = getattr(ft, "__origin__", None)
    if origin is typing.Union:
        args = [a for a in ft.__args__ if a is not type(None)]
        if len(args) == 1 and isinstance(args[0], type) and hasattr(args[0], "__dataclass_fields__"):
            return args[0]
    return None


def _build_nested(cls: type, data: dict[str, Any]) -> Any:
    """Construct a frozen dataclass, recursively building nested dataclass fields."""
    if not isinstance(data, dict):
        return data
    field_types = {f.name: f.type for f in cls.__dataclass_fields__.values()}
    kwargs: dict[str, Any] = {}
    for key, value in data.items():
        if key not in field_types:
            continue
        ft = field_types[key]
        # Resolve string annotations to actual types in the module scope
        if isinstance(ft, str):
            ft = eval(ft, globals(), {cls.__name__: cls})  # noqa: S307
        dc_type = _get_dataclass_type(ft)
        if dc_type is not None and isinstance(value, dict):
            kwargs[key] = _build_nested(dc_type, value)
        elif dc_type is not None and value is None:
            # An empty YAML section ("kube:") enables the provider with defaults
            kwargs[key] = dc_type(enabled=True) if "enabled" in dc_type.__dataclass_fields__ else dc_type()
        else:
            kwargs[key] = value
    return cls(**kwargs)


def default_config() -> AppConfig:
    """Configuration used when no file is given: Docker only, text logs."""
    return AppConfig()


def load_config(path: str | Path) -> AppConfig:
    """Load and validate configuration from a YAML file."""
    path = Path(path)
    if not path.is_file():
        raise ConfigError(f"Configuration file not found: {path}")

    with open(path) as f:
        raw = yaml.safe_load(f)

    if not isinstance(raw, dict):
        raise ConfigError("Configuration file must be a YAML mapping")

    raw = _walk_and_interpolate(raw)
    config = _build_nested(AppConfig, raw)
    validate(config)
    return config


def validate(config: AppConfig) -> None:
    """Validate configuration values."""
    if not config.enabled_envs():
        raise ConfigError(
            "No provider enabled. Enable at least one of the 'docker', 'kube' or 'local' sections."
        )

    if not isinstance(config.probe.control_port, int) or not 0 < config.probe.control_port < 65536:
        raise ConfigError("probe.control_port must be an integer between 1 and 65535")

    if config.probe.timeout <= 0:
        raise ConfigError("probe.timeout must be > 0")

    if config.logging.format not in ("json", "text"):
        raise ConfigError("logging.format must be 'json' or 'text'")
