from __future__ import annotations

import logging
import sys
import threading
import time
from collections.abc import Callable, Iterable
from pathlib import Path
from textwrap import dedent
from typing import Any

import pytest

from hotseat.config import Config, parse_config

APP_TEMPLATE = """
from hotseat import BaseApplication

VERSION = {version!r}


class Application(BaseApplication):
    def init(self, config):
        super().init(config)
        self.version = VERSION
"""

CONTROLLER_TEMPLATE = """
class {name}:
    source_version = {version!r}
"""


def write_app(
    app_root: Path,
    package: str = "blog",
    *,
    version: str = "v1",
    controllers: Iterable[str] = ("Home", "Users"),
    app_body: str | None = None,
) -> Path:
    """Lay out ``<app_root>/bin/<package>`` with an Application and controllers."""

    bin_dir = app_root / "bin"
    parts = package.split(".")
    for depth in range(1, len(parts)):
        parent = bin_dir.joinpath(*parts[:depth])
        parent.mkdir(parents=True, exist_ok=True)
        (parent / "__init__.py").touch()

    package_dir = bin_dir.joinpath(*parts)
    package_dir.mkdir(parents=True, exist_ok=True)
    body = app_body if app_body is not None else APP_TEMPLATE.format(version=version)
    (package_dir / "__init__.py").write_text(dedent(body), encoding="utf-8")

    controllers_dir = package_dir / "controllers"
    controllers_dir.mkdir(exist_ok=True)
    (controllers_dir / "__init__.py").touch()
    for name in controllers:
        write_controller(controllers_dir, name, version=version)
    return package_dir


def write_controller(
    controllers_dir: Path,
    name: str,
    *,
    version: str = "v1",
    body: str | None = None,
) -> Path:
    path = controllers_dir / f"{name}.py"
    text = body if body is not None else CONTROLLER_TEMPLATE.format(name=name, version=version)
    path.write_text(dedent(text), encoding="utf-8")
    return path


def make_config(app_root: Path, package: str = "blog", **overrides: Any) -> Config:
    raw: dict[str, Any] = {
        "app_root": str(app_root),
        "app_package": package,
        "root_dir": str(app_root.parent / "state"),
        "debounce_seconds": 0,
    }
    raw.update(overrides)
    return parse_config(raw)


def wait_for(predicate: Callable[[], bool], *, timeout: float) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.05)
    return predicate()


class EventCollector:
    """Thread-safe helper for waiting on asynchronous events."""

    def __init__(self) -> None:
        self.events: list[Any] = []
        self._condition = threading.Condition()

    def add(self, event: Any) -> None:
        with self._condition:
            self.events.append(event)
            self._condition.notify_all()

    def wait_for(self, count: int, timeout: float = 10.0) -> bool:
        deadline = time.monotonic() + timeout
        with self._condition:
            while len(self.events) < count:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._condition.wait(timeout=remaining)
            return True


@pytest.fixture()
def app_root(tmp_path: Path) -> Path:
    root = tmp_path / "app"
    root.mkdir()
    return root


@pytest.fixture(autouse=True)
def _drop_leftover_contexts():
    """Remove import hooks and modules of contexts a test forgot to close."""

    finders_before = list(sys.meta_path)
    yield
    for finder in list(sys.meta_path):
        if finder not in finders_before and type(finder).__name__ == "_ContextFinder":
            sys.meta_path.remove(finder)
    for name in list(sys.modules):
        if name.startswith("hotseat.contexts."):
            sys.modules.pop(name, None)


@pytest.fixture()
def restore_root_logger():
    """Undo handlers installed by ``configure_logging``."""

    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
