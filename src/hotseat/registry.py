"""Controller discovery and registration."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from .errors import (
    HandlerResolutionError,
    LoadError,
    MissingControllersDirectory,
)

if TYPE_CHECKING:
    from hotseat.application import DispatchTable
    from hotseat.loader import ExecutionContext

LOGGER = logging.getLogger(__name__)
HANDLER_SUFFIX = ".py"
SYNTHETIC_MARKER = "$"


@dataclass(frozen=True)
class HandlerDescriptor:
    """A controller artifact resolved through an execution context."""

    name: str
    qualified_name: str
    source: Path
    handler: type


def is_handler_artifact(path: Path) -> bool:
    """Return True if ``path`` looks like a controller source file."""

    if not path.is_file() or path.suffix != HANDLER_SUFFIX:
        return False
    stem = path.stem
    if stem.startswith("__") and stem.endswith("__"):
        return False
    # generated helpers sit next to real controllers
    return SYNTHETIC_MARKER not in stem


def list_handler_artifacts(controllers_dir: Path) -> list[Path]:
    """Return controller files in ``controllers_dir`` sorted by file name."""

    if not controllers_dir.is_dir():
        raise MissingControllersDirectory(
            f"Application does not have a controllers directory (should be {controllers_dir})"
        )
    entries = (entry for entry in controllers_dir.iterdir() if is_handler_artifact(entry))
    return sorted(entries, key=lambda item: item.name)


class HandlerRegistry:
    """Discover controllers of one application package and fill dispatch tables."""

    def __init__(self, package: str) -> None:
        self._package = package

    @property
    def package(self) -> str:
        return self._package

    def discover(
        self,
        context: ExecutionContext,
        controllers_dir: Path,
    ) -> list[HandlerDescriptor]:
        try:
            artifacts = list_handler_artifacts(Path(controllers_dir))
        except MissingControllersDirectory as exc:
            exc.package = self._package
            raise
        return [self._resolve(context, artifact) for artifact in artifacts]

    def register(self, descriptor: HandlerDescriptor, dispatch_table: DispatchTable) -> None:
        LOGGER.debug("Registering controller %s", descriptor.qualified_name)
        dispatch_table.register(descriptor.name, descriptor.handler)

    def register_all(
        self,
        descriptors: Iterable[HandlerDescriptor],
        dispatch_table: DispatchTable,
    ) -> list[str]:
        keys: list[str] = []
        for descriptor in descriptors:
            self.register(descriptor, dispatch_table)
            keys.append(descriptor.name)
        return keys

    def _resolve(self, context: ExecutionContext, artifact: Path) -> HandlerDescriptor:
        name = artifact.stem
        qualified_name = f"{self._package}.controllers.{name}"
        LOGGER.debug("Loading controller %s", name)
        try:
            module = context.import_module(qualified_name)
        except LoadError as exc:
            raise HandlerResolutionError(
                f"Cannot load controller '{qualified_name}' from {artifact}: {exc}",
                package=self._package,
                cause=exc,
            ) from exc
        handler = getattr(module, name, None)
        if not isinstance(handler, type):
            raise HandlerResolutionError(
                f"Expecting {artifact} to declare class {name}",
                package=self._package,
            )
        return HandlerDescriptor(
            name=name,
            qualified_name=qualified_name,
            source=artifact,
            handler=handler,
        )


__all__ = [
    "HandlerDescriptor",
    "HandlerRegistry",
    "is_handler_artifact",
    "list_handler_artifacts",
]
