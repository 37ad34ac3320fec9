"""Reload coordination: load, register, publish, notify."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from .application import Application, DispatchTable
from .errors import ApplicationInitError, ListenerError, ReloadError
from .loader import CodeLoader
from .registry import HandlerRegistry

if TYPE_CHECKING:
    from hotseat.config import Config
    from hotseat.loader import ExecutionContext

LOGGER = logging.getLogger(__name__)

LoadListener = Callable[[Application], None]


class ReloadState(str, Enum):
    """Phases of a reload cycle."""

    IDLE = "idle"
    LOADING = "loading"
    PUBLISHING = "publishing"
    FAILED = "failed"


@dataclass
class ReloadStats:
    """Counters describing reload history."""

    attempts: int = 0
    successes: int = 0
    failures: int = 0
    last_error: str | None = None
    last_success_at: datetime | None = None


class ReloadCoordinator:
    """Own the current :class:`Application` and replace it on demand.

    A single reentrant guard is held for the whole load/construct/publish
    sequence and for reads of :attr:`current`. Reloads are therefore
    serialized, and readers see either the previous or the next version.
    Listeners run after the guard is released.

    A superseded version's execution context stays open until the next
    publish (or :meth:`close`), so handlers taken from it before the swap can
    still finish, including imports they perform lazily.
    """

    def __init__(
        self,
        config: Config,
        *,
        loader: CodeLoader | None = None,
        registry: HandlerRegistry | None = None,
    ) -> None:
        self._config = config
        self._loader = loader or CodeLoader()
        self._registry = registry or HandlerRegistry(config.app_package)
        self._lock = threading.RLock()
        self._listeners: list[LoadListener] = []
        self._listeners_lock = threading.Lock()
        self._current: Application | None = None
        self._retired: ExecutionContext | None = None
        self._state = ReloadState.IDLE
        self.stats = ReloadStats()

    @property
    def config(self) -> Config:
        return self._config

    @property
    def package(self) -> str:
        return self._config.app_package

    @property
    def current(self) -> Application | None:
        """Return the published application, or None before the first load."""

        with self._lock:
            return self._current

    @property
    def state(self) -> ReloadState:
        return self._state

    def add_listener(self, listener: LoadListener) -> None:
        """Register ``listener`` to be called with each newly published application."""

        with self._listeners_lock:
            self._listeners.append(listener)

    def on_signal(self, directory: str, marker_name: str) -> None:
        """Signal-source callback: run a reload, never raise."""

        LOGGER.info("Reload requested via %s in %s", marker_name, directory)
        try:
            self.reload()
        except ReloadError:
            # logged by reload(); nothing is published yet
            return

    def reload(self) -> Application | None:
        """Run one reload cycle.

        Returns the newly published application, or None when the cycle failed
        and a previous version keeps serving. Raises :class:`ReloadError` when
        the cycle failed and nothing has been published yet.
        """

        with self._lock:
            previous = self._current
            version = previous.version + 1 if previous is not None else 1
            self.stats.attempts += 1
            self._state = ReloadState.LOADING
            try:
                try:
                    application = self._build(version)
                except ReloadError as exc:
                    self._state = ReloadState.FAILED
                    self._record_failure(exc, previous)
                    if previous is None:
                        raise
                    return None

                self._state = ReloadState.PUBLISHING
                self._current = application
                self.stats.successes += 1
                self.stats.last_success_at = application.loaded_at
                if self._retired is not None:
                    self._release(self._retired)
                self._retired = previous.context if previous is not None else None
            finally:
                self._state = ReloadState.IDLE

        LOGGER.info(
            "Published '%s' version %s with %s handler(s): %s",
            self.package,
            application.version,
            len(application.dispatch_table),
            ", ".join(application.dispatch_table.keys()) or "none",
        )
        self._notify_listeners(application)
        return application

    def close(self) -> None:
        """Release the current and the retired execution contexts."""

        with self._lock:
            if self._retired is not None:
                self._release(self._retired)
                self._retired = None
            current = self._current
            if current is not None:
                self._release(current.context)

    def snapshot(self) -> dict[str, Any]:
        """Return a serialisable summary of coordinator state."""

        with self._lock:
            application = self._current
            state = self._state
            stats = replace(self.stats)
        return {
            "package": self.package,
            "state": state.value,
            "version": application.version if application else None,
            "handlers": application.dispatch_table.keys() if application else [],
            "loaded_at": application.loaded_at.isoformat() if application else None,
            "attempts": stats.attempts,
            "successes": stats.successes,
            "failures": stats.failures,
            "last_error": stats.last_error,
        }

    def _build(self, version: int) -> Application:
        stage = "load"
        context: ExecutionContext | None = None
        try:
            context = self._loader.load(self._config.bin_dir, self.package)
            stage = "init"
            instance = self._construct(context)
            table = _dispatch_table_of(instance)
            stage = "discover"
            descriptors = self._registry.discover(context, self._config.controllers_dir)
            self._registry.register_all(descriptors, table)
            table.freeze()
        except BaseException as exc:
            if context is not None:
                self._release(context)
            if not isinstance(exc, Exception):
                raise
            if isinstance(exc, ReloadError):
                if exc.package is None:
                    exc.package = self.package
                raise
            raise ReloadError(
                f"Unexpected error during {stage}: {exc}",
                package=self.package,
                stage=stage,
                cause=exc,
            ) from exc

        return Application(
            version=version,
            instance=instance,
            context=context,
            dispatch_table=table,
            root=self._config.app_root,
        )

    def _construct(self, context: ExecutionContext) -> Any:
        qualified_name = f"{self.package}.Application"
        app_class = context.load_class(qualified_name)
        try:
            instance = app_class()
        except Exception as exc:
            raise ApplicationInitError(
                f"Cannot construct {qualified_name}: {exc}", cause=exc
            ) from exc
        init = getattr(instance, "init", None)
        if not callable(init):
            raise ApplicationInitError(f"{qualified_name} does not implement init(config)")
        try:
            init(self._config)
        except Exception as exc:
            raise ApplicationInitError(
                f"{qualified_name}.init() failed: {exc}", cause=exc
            ) from exc
        LOGGER.debug("Application class: %s", app_class)
        return instance

    def _record_failure(self, exc: ReloadError, previous: Application | None) -> None:
        self.stats.failures += 1
        self.stats.last_error = f"{exc.stage}: {exc}"
        if previous is None:
            LOGGER.error(
                "Initial load of '%s' failed during %s: %s",
                exc.package,
                exc.stage,
                exc,
                exc_info=exc,
            )
            return
        LOGGER.error(
            "Reload of '%s' failed during %s; keeping version %s: %s",
            exc.package,
            exc.stage,
            previous.version,
            exc,
            exc_info=exc,
        )

    def _release(self, context: ExecutionContext) -> None:
        try:
            context.close()
        except Exception:  # pragma: no cover
            LOGGER.warning("Failed to release execution context %r", context, exc_info=True)

    def _notify_listeners(self, application: Application) -> None:
        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(application)
            except Exception as exc:
                LOGGER.error("%s", ListenerError(listener, exc), exc_info=exc)


def _dispatch_table_of(instance: Any) -> DispatchTable:
    table = getattr(instance, "dispatch_table", None)
    if table is None:
        table = DispatchTable()
        try:
            instance.dispatch_table = table
        except AttributeError as exc:
            raise ApplicationInitError(
                f"Cannot attach a dispatch table to {type(instance).__name__}", cause=exc
            ) from exc
        return table
    if not isinstance(table, DispatchTable):
        raise ApplicationInitError(
            f"{type(instance).__name__}.dispatch_table must be a DispatchTable, "
            f"got {type(table).__name__}"
        )
    return table


__all__ = ["LoadListener", "ReloadCoordinator", "ReloadState", "ReloadStats"]
