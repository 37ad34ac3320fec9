"""Exception hierarchy shared by the loader, registry and coordinator."""

from __future__ import annotations


class ConfigError(ValueError):
    """Raised when configuration is invalid or missing."""


class ReloadError(RuntimeError):
    """Base class for errors that abort a reload cycle."""

    stage = "reload"

    def __init__(
        self,
        message: str,
        *,
        package: str | None = None,
        stage: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.package = package
        if stage is not None:
            self.stage = stage
        self.cause = cause


class LoadError(ReloadError):
    """Code could not be loaded into a new execution context."""

    stage = "load"


class EntryPointNotFound(LoadError):
    """The expected top-level package or Application class is absent."""


class LoadFailure(LoadError):
    """Importing application code failed."""


class DiscoveryError(ReloadError):
    """Handler discovery or registration failed."""

    stage = "discover"


class MissingControllersDirectory(DiscoveryError):
    """The application has no controllers directory."""


class HandlerResolutionError(DiscoveryError):
    """A handler artifact does not resolve to a handler class."""


class ApplicationInitError(ReloadError):
    """Constructing or initialising the Application failed."""

    stage = "init"


class ListenerError(RuntimeError):
    """A load listener raised while being notified."""

    def __init__(self, listener: object, cause: BaseException) -> None:
        super().__init__(f"Load listener {listener!r} failed: {cause}")
        self.listener = listener
        self.cause = cause


__all__ = [
    "ApplicationInitError",
    "ConfigError",
    "DiscoveryError",
    "EntryPointNotFound",
    "HandlerResolutionError",
    "ListenerError",
    "LoadError",
    "LoadFailure",
    "MissingControllersDirectory",
    "ReloadError",
]
