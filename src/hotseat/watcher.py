"""Filesystem watcher for the restart marker file."""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Callable
from pathlib import Path

from watchdog.events import (
    FileSystemEvent,
    FileSystemEventHandler,
    FileSystemMovedEvent,
)
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver

LOGGER = logging.getLogger(__name__)

SignalCallback = Callable[[str, str], None]


class RestartWatcher:
    """Emit ``(directory, marker_name)`` whenever the marker file changes."""

    def __init__(
        self,
        directory: Path,
        marker_name: str,
        *,
        debounce_seconds: float = 0.5,
        observer_factory: Callable[[], BaseObserver] | None = None,
    ) -> None:
        self._directory = Path(directory).expanduser()
        self._marker_name = marker_name
        self._observer_factory = observer_factory or Observer
        self._observer: BaseObserver | None = None
        self._handler: _MarkerEventHandler | None = None
        self._callbacks: list[SignalCallback] = []
        self._debounce = max(0.0, debounce_seconds)
        self._lock = threading.Lock()

    @property
    def directory(self) -> Path:
        return self._directory

    @property
    def marker_name(self) -> str:
        return self._marker_name

    def add_listener(self, callback: SignalCallback) -> None:
        """Register callback invoked with ``(directory, marker_name)``."""

        self._callbacks.append(callback)

    def start(self) -> None:
        """Start watching the marker directory."""

        with self._lock:
            if self._observer is not None:
                return
            self._directory.mkdir(parents=True, exist_ok=True)
            observer = self._observer_factory()
            handler = _MarkerEventHandler(
                marker=self._directory / self._marker_name,
                callback=self._emit,
                debounce_seconds=self._debounce,
            )
            observer.schedule(handler, str(self._directory), recursive=False)
            observer.start()
            self._observer = observer
            self._handler = handler
            LOGGER.info("Watching %s for restarts", self._directory / self._marker_name)

    def stop(self) -> None:
        """Stop watching and wait for the observer thread to finish."""

        with self._lock:
            observer = self._observer
            if observer is None:
                return
            observer.stop()
            try:
                observer.join(timeout=5)
            except RuntimeError:  # pragma: no cover - watchdog internals
                LOGGER.warning("Failed to join restart observer thread")
            self._observer = None
            if self._handler is not None:
                self._handler.cancel()
                self._handler = None

    @property
    def is_running(self) -> bool:
        return self._observer is not None

    def _emit(self) -> None:
        directory = str(self._directory)
        for callback in list(self._callbacks):
            try:
                callback(directory, self._marker_name)
            except Exception:
                LOGGER.exception("Restart callback failed for %s", self._marker_name)


class _MarkerEventHandler(FileSystemEventHandler):
    """Forward events that touch the marker file.

    With a positive debounce the callback fires once the marker has been
    quiet for ``debounce_seconds``, so a burst of touches always ends in a
    single callback issued after the last one.
    """

    def __init__(
        self,
        *,
        marker: Path,
        callback: Callable[[], None],
        debounce_seconds: float,
    ) -> None:
        super().__init__()
        self._marker = marker.resolve()
        self._callback = callback
        self._debounce_seconds = debounce_seconds
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._handle_path(_event_path(event.src_path))

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._handle_path(_event_path(event.src_path))

    def on_moved(self, event: FileSystemMovedEvent) -> None:
        if not event.is_directory:
            self._handle_path(_event_path(event.dest_path))

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def cancel(self) -> None:
        """Drop a pending callback, if any."""

        with self._lock:
            timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()

    def _handle_path(self, path: Path) -> None:
        if path.resolve() != self._marker:
            return
        if self._debounce_seconds <= 0:
            self._callback()
            return
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                LOGGER.debug("%s changed again; postponing restart", self._marker)
            timer = threading.Timer(self._debounce_seconds, self._fire)
            timer.daemon = True
            self._timer = timer
            timer.start()

    def _fire(self) -> None:
        with self._lock:
            # a newer event re-armed the timer after this one expired
            if self._timer is not threading.current_thread():
                return
            self._timer = None
        self._callback()


def _event_path(value: str | bytes) -> Path:
    if isinstance(value, bytes):
        return Path(os.fsdecode(value))
    return Path(value)


__all__ = ["RestartWatcher"]
