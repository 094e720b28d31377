"""Error types raised across the arbitrator package."""


class ArbitratorError(Exception):
    """Base class for all arbitrator errors."""


class ConfigError(ArbitratorError):
    """Configuration file or environment value could not be used."""


class BackendError(ArbitratorError):
    """A model backend failed to answer a request."""

    def __init__(self, backend: str, message: str):
        self.backend = backend
        super().__init__(f"{backend}: {message}")


class NoCapableBackendError(ArbitratorError):
    """No reachable backend declares a capability for the requested task."""

    def __init__(self, domain: str, task_type: str, language: str | None = None):
        self.domain = domain
        self.task_type = task_type
        self.language = language
        detail = f"domain={domain!r}, task={task_type!r}"
        if language:
            detail += f", language={language!r}"
        super().__init__(f"No capable backend for {detail}")


class InvalidArgumentsError(ArbitratorError):
    """Tool arguments failed validation."""


class UnknownToolError(ArbitratorError):
    """The requested tool name is not handled."""
