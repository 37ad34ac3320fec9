"""Published application versions and their dispatch tables."""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from hotseat.loader import ExecutionContext


class DispatchTable:
    """Mapping from handler key to handler class, frozen once published."""

    def __init__(self) -> None:
        self._entries: OrderedDict[str, type] = OrderedDict()
        self._frozen = False

    def register(self, key: str, handler: type) -> None:
        if self._frozen:
            raise RuntimeError(f"Cannot register '{key}': dispatch table is frozen.")
        if key in self._entries:
            raise ValueError(f"Handler '{key}' is already registered.")
        self._entries[key] = handler

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, key: str) -> type:
        try:
            return self._entries[key]
        except KeyError as exc:
            raise KeyError(f"Handler '{key}' not found. Available: {sorted(self._entries)}") from exc

    def keys(self) -> list[str]:
        return list(self._entries)

    def items(self) -> list[tuple[str, type]]:
        return list(self._entries.items())

    def as_mapping(self) -> Mapping[str, type]:
        """Return a read-only view for the request-handling layer."""

        return MappingProxyType(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        state = "frozen" if self._frozen else "open"
        return f"<DispatchTable {self.keys()} ({state})>"


class BaseApplication:
    """Optional base class for the ``<package>.Application`` of loaded code.

    Subclasses override :meth:`init`; the host fills :attr:`dispatch_table`
    with the discovered controllers after ``init`` returns.
    """

    def __init__(self) -> None:
        self.dispatch_table = DispatchTable()
        self.config: Any = None

    def init(self, config: Any) -> None:
        self.config = config


@dataclass(frozen=True)
class Application:
    """One fully initialised, published version of the hosted code."""

    version: int
    instance: Any
    context: ExecutionContext
    dispatch_table: DispatchTable
    root: Path
    loaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def package(self) -> str:
        module = type(self.instance).__module__
        prefix = f"{self.context.prefix}."
        return module[len(prefix) :] if module.startswith(prefix) else module

    def resolve(self, key: str) -> type:
        """Return the handler registered under ``key``."""

        return self.dispatch_table.get(key)


__all__ = ["Application", "BaseApplication", "DispatchTable"]
