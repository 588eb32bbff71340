"""Custom exception hierarchy for the VPP probe."""

from __future__ import annotations


class ProbeError(Exception):
    """Base exception for all probe errors."""


class ConfigError(ProbeError):
    """Invalid or missing configuration."""


class ProviderExistsError(ConfigError):
    """A provider with the same name is already registered."""


class NoProvidersError(ConfigError):
    """Discovery was requested without any registered provider."""

    def __init__(self, message: str = "no providers available"):
        super().__init__(message)


class NoInstancesError(ProbeError):
    """Discovery finished without a single live instance."""

    def __init__(self, message: str = "no instances discovered"):
        super().__init__(message)


class QueryError(ProbeError):
    """A provider could not query its environment backend."""

    def __init__(self, message: str, provider: str | None = None):
        super().__init__(message)
        self.provider = provider


class InstanceInitError(ProbeError):
    """A handler failed the liveness probe and cannot become an instance."""


class ExecError(ProbeError):
    """A remote command failed to run or exited with a non-zero status."""

    def __init__(self, message: str, exit_code: int | None = None, stderr: bytes | None = None):
        super().__init__(message)
        self.exit_code = exit_code
        self.stderr = stderr


class StreamAlreadyBoundError(ProbeError):
    """Output capture was requested for a command whose stdout is already bound."""

    def __init__(self, message: str = "stdout already set"):
        super().__init__(message)


class CommandReusedError(ProbeError):
    """A one-shot command was run a second time."""

    def __init__(self, message: str = "command already executed"):
        super().__init__(message)


class ControlConnectionError(ProbeError):
    """The control endpoint of an instance could not be reached."""

    def __init__(self, message: str, address: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.address = address
        self.status_code = status_code


class HandlerClosedError(ProbeError):
    """The handler was closed and can no longer open control connections."""
