"""hotseat command-line interface."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Annotated, NoReturn

import typer
from watchdog.observers.polling import PollingObserver

from . import __version__
from .config import Config, load_config, resolve_config_path
from .coordinator import ReloadCoordinator
from .errors import ConfigError, MissingControllersDirectory, ReloadError
from .logging import configure_logging
from .registry import list_handler_artifacts
from .runtime import HostRuntime
from .watcher import RestartWatcher

app = typer.Typer(help="Live-reloading application host.")
LOGGER = logging.getLogger(__name__)


@dataclass
class CLIState:
    """Stores shared CLI options."""

    config_path: Path | None


@app.callback()
def _hotseat(
    ctx: typer.Context,
    config: Annotated[
        Path | None,
        typer.Option(
            "-c",
            "--config",
            help="Path to hotseat config (env HOTSEAT_CONFIG or ~/.config/hotseat/config.yaml).",
        ),
    ] = None,
) -> None:
    """Capture global CLI options."""

    resolved = config.expanduser() if config else None
    ctx.obj = CLIState(config_path=resolved)


@app.command()
def serve(
    ctx: typer.Context,
    no_watch: Annotated[
        bool,
        typer.Option(
            "--no-watch",
            help="Do not watch tmp/<marker>; reload only on SIGHUP.",
        ),
    ] = False,
    polling: Annotated[
        bool,
        typer.Option(
            "--polling",
            help="Use a polling observer (for network or container filesystems).",
        ),
    ] = False,
) -> None:
    """Load the application and keep it live until stopped."""

    config = _load_config(_state(ctx).config_path)
    configure_logging(config.logging, config.root_dir)
    coordinator = ReloadCoordinator(config)
    watcher = None
    if not no_watch:
        watcher = RestartWatcher(
            config.watch_dir,
            config.marker,
            debounce_seconds=config.debounce_seconds,
            observer_factory=PollingObserver if polling else None,
        )
    runtime = HostRuntime(coordinator, watcher=watcher)
    LOGGER.info("hotseat %s hosting '%s' from %s", __version__, config.app_package, config.app_root)
    try:
        runtime.run()
    except ReloadError as exc:
        typer.secho(
            f"Initial load failed during {exc.stage}; see the log for details.",
            fg=typer.colors.RED,
            err=True,
        )
        raise typer.Exit(1) from exc


@app.command()
def check(ctx: typer.Context) -> None:
    """Load the application once and report the handlers it registers."""

    config = _load_config(_state(ctx).config_path)
    coordinator = ReloadCoordinator(config)
    try:
        application = coordinator.reload()
    except ReloadError as exc:
        typer.secho(f"Load failed during {exc.stage}.", fg=typer.colors.RED, err=True)
        raise typer.Exit(1) from exc
    try:
        typer.echo(f"Package: {config.app_package}")
        typer.echo(f"Application: {type(application.instance).__name__}")
        typer.echo(f"Handlers ({len(application.dispatch_table)}):")
        for key, handler in application.dispatch_table.items():
            typer.echo(f"  - {key}: {handler.__name__}")
    finally:
        coordinator.close()


@app.command()
def status(ctx: typer.Context) -> None:
    """Display configuration, restart marker and discoverable controllers."""

    state = _state(ctx)
    config = _load_config(state.config_path)

    typer.echo("→ hotseat Status")
    typer.echo(f"Version: {__version__}")
    typer.echo(f"Config path: {resolve_config_path(state.config_path)}")
    typer.echo(f"App root: {config.app_root}")
    typer.echo(f"Package: {config.app_package}")
    typer.echo(f"Restart marker: {config.marker_path} ({_marker_state(config)})")
    typer.echo("")
    try:
        artifacts = list_handler_artifacts(config.controllers_dir)
    except MissingControllersDirectory:
        typer.echo(f"Controllers: missing ({config.controllers_dir})")
        return
    typer.echo(f"Controllers ({len(artifacts)}):")
    for artifact in artifacts:
        typer.echo(f"  - {artifact.stem}")


@app.command()
def restart(ctx: typer.Context) -> None:
    """Touch the restart marker so a running host reloads."""

    config = _load_config(_state(ctx).config_path)
    config.watch_dir.mkdir(parents=True, exist_ok=True)
    config.marker_path.touch()
    typer.echo(f"Touched {config.marker_path}")


def _state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise RuntimeError("CLI state missing from context.")
    return state


def _load_config(path: Path | None) -> Config:
    try:
        return load_config(path)
    except ConfigError as exc:
        _config_failure(exc)


def _config_failure(exc: ConfigError) -> NoReturn:
    typer.secho(f"Configuration error: {exc}", fg=typer.colors.RED, err=True)
    raise typer.Exit(2) from exc


def _marker_state(config: Config) -> str:
    try:
        mtime = config.marker_path.stat().st_mtime
    except FileNotFoundError:
        return "absent"
    touched = datetime.fromtimestamp(mtime, tz=timezone.utc)
    return f"touched {touched.isoformat(timespec='seconds')}"


def main() -> None:  # pragma: no cover - delegated to Typer
    app()


__all__ = ["app", "main"]
