"""Process loop hosting a reload coordinator and its restart watcher."""

from __future__ import annotations

import logging
import signal
import threading
from collections.abc import Callable
from types import FrameType
from typing import Any

from .coordinator import ReloadCoordinator
from .watcher import RestartWatcher

SignalHandler = Callable[[int, FrameType | None], Any] | int | signal.Handlers | None

LOGGER = logging.getLogger(__name__)
SIG_HUP = getattr(signal, "SIGHUP", None)
SIG_USR1 = getattr(signal, "SIGUSR1", None)


class HostRuntime:
    """Run the first load, then serve reload and status requests until stopped."""

    def __init__(
        self,
        coordinator: ReloadCoordinator,
        *,
        watcher: RestartWatcher | None = None,
        status_callback: Callable[[dict[str, Any]], str | None] | None = None,
        poll_interval: float = 0.5,
    ) -> None:
        self._coordinator = coordinator
        self._watcher = watcher
        self._status_callback = status_callback
        self._poll_interval = poll_interval
        self._stop_event = threading.Event()
        self._reload_event = threading.Event()
        self._status_event = threading.Event()
        self._installed_signals: dict[int, SignalHandler] = {}

    @property
    def coordinator(self) -> ReloadCoordinator:
        return self._coordinator

    def run(self) -> None:
        """Load the application and block until :meth:`stop` or a stop signal.

        A failed first load propagates as :class:`~hotseat.errors.ReloadError`.
        """

        self._install_signal_handlers()
        try:
            self._coordinator.reload()
            if self._watcher is not None:
                self._watcher.add_listener(self._coordinator.on_signal)
                self._watcher.start()
            self._wait_for_stop()
        finally:
            if self._watcher is not None:
                self._watcher.stop()
            self._coordinator.close()
            self._restore_signal_handlers()

    def stop(self) -> None:
        self._stop_event.set()

    def request_reload(self) -> None:
        """Schedule a reload on the runtime loop."""

        self._reload_event.set()

    def reload_now(self) -> None:
        """Reload immediately on the calling thread (tests/administration)."""

        self._coordinator.on_signal("<runtime>", "reload_now")

    def status_snapshot(self) -> dict[str, Any]:
        snapshot = self._coordinator.snapshot()
        snapshot["watcher_running"] = bool(self._watcher and self._watcher.is_running)
        return snapshot

    def _wait_for_stop(self) -> None:
        while not self._stop_event.is_set():
            try:
                if self._reload_event.is_set():
                    self._reload_event.clear()
                    self._coordinator.on_signal("<signal>", "SIGHUP")
                if self._status_event.is_set():
                    self._status_event.clear()
                    self._dump_status()
                self._stop_event.wait(self._poll_interval)
            except KeyboardInterrupt:
                LOGGER.info("Interrupt received; shutting down hotseat.")
                self._stop_event.set()

    def _install_signal_handlers(self) -> None:
        if threading.current_thread() is not threading.main_thread():
            LOGGER.debug("Not on the main thread; skipping signal handler installation.")
            return
        interested = tuple(
            sig for sig in (signal.SIGTERM, signal.SIGINT, SIG_HUP, SIG_USR1) if sig is not None
        )
        for sig in interested:
            try:
                previous = signal.getsignal(sig)
            except Exception:  # pragma: no cover - Windows/unsupported signals
                continue
            try:
                signal.signal(sig, self._handle_signal)
            except ValueError:
                continue
            self._installed_signals[sig] = previous

    def _restore_signal_handlers(self) -> None:
        for sig, handler in self._installed_signals.items():
            try:
                signal.signal(sig, handler)
            except Exception:  # pragma: no cover - Windows/unsupported
                continue
        self._installed_signals.clear()

    def _handle_signal(self, signum: int, _frame: FrameType | None) -> None:
        if signum in (signal.SIGTERM, signal.SIGINT):
            LOGGER.info("Signal %s received; initiating shutdown.", signum)
            self._stop_event.set()
        elif SIG_HUP is not None and signum == SIG_HUP:
            LOGGER.info("SIGHUP received; scheduling application reload.")
            self._reload_event.set()
        elif SIG_USR1 is not None and signum == SIG_USR1:
            LOGGER.info("SIGUSR1 received; emitting host status.")
            self._status_event.set()

    def _dump_status(self) -> None:
        snapshot = self.status_snapshot()
        if self._status_callback:
            try:
                message = self._status_callback(snapshot)
            except Exception:
                LOGGER.exception("Host status callback failed")
                message = None
            if message:
                LOGGER.info(message)
                return
        LOGGER.info(format_status(snapshot))


def format_status(snapshot: dict[str, Any]) -> str:
    """Render a coordinator snapshot as a multi-line log message."""

    version = snapshot.get("version")
    handlers = ", ".join(snapshot.get("handlers") or []) or "none"
    watcher = "running" if snapshot.get("watcher_running") else "stopped"
    lines = [
        f"hotseat status for '{snapshot.get('package')}':",
        f"  version={version if version is not None else 'unloaded'} state={snapshot.get('state')}"
        f" watcher={watcher}",
        f"  handlers: {handlers}",
        f"  reloads: attempts={snapshot.get('attempts')} successes={snapshot.get('successes')}"
        f" failures={snapshot.get('failures')}",
    ]
    if snapshot.get("last_error"):
        lines.append(f"  last error: {snapshot['last_error']}")
    return "\n".join(lines)


__all__ = ["HostRuntime", "SIG_HUP", "SIG_USR1", "format_status"]
