"""Isolated loading of application code from a bin directory."""

from __future__ import annotations

import importlib
import importlib.abc
import importlib.machinery
import importlib.util
import itertools
import logging
import sys
import threading
from collections.abc import Sequence
from importlib.machinery import ModuleSpec
from pathlib import Path
from types import ModuleType

from .errors import EntryPointNotFound, LoadFailure

LOGGER = logging.getLogger(__name__)
CONTEXT_PREFIX = "hotseat.contexts"
_GENERATIONS = itertools.count(1)


class _SourceOnlyLoader(importlib.machinery.SourceFileLoader):
    """Source loader that never reads or writes the bytecode cache."""

    def path_stats(self, path: str) -> dict[str, float]:
        raise OSError("bytecode cache disabled for hot-loaded code")


class _ContextFinder(importlib.abc.MetaPathFinder):
    """Resolve imports below one context prefix, always from source."""

    def __init__(self, prefix: str, bin_dir: Path) -> None:
        self._prefix = prefix
        self._bin_dir = bin_dir

    def find_spec(
        self,
        fullname: str,
        path: Sequence[str] | None,
        target: ModuleType | None = None,
    ) -> ModuleSpec | None:
        if not fullname.startswith(f"{self._prefix}."):
            return None
        search = list(path) if path is not None else [str(self._bin_dir)]
        spec = importlib.machinery.PathFinder.find_spec(fullname, search)
        if spec is None:
            return None
        if isinstance(spec.loader, importlib.machinery.SourceFileLoader) and spec.origin:
            spec.loader = _SourceOnlyLoader(fullname, spec.origin)
        return spec


class ExecutionContext:
    """Disposable module namespace for one snapshot of a bin directory.

    Modules are registered in ``sys.modules`` under a per-generation prefix so
    that two contexts never share module objects. Code inside the application
    package refers to its siblings with relative imports.
    """

    def __init__(self, bin_dir: Path, generation: int) -> None:
        self.bin_dir = Path(bin_dir)
        self.generation = generation
        self.prefix = f"{CONTEXT_PREFIX}.g{generation}"
        self._finder = _ContextFinder(self.prefix, self.bin_dir)
        self._lock = threading.RLock()
        self._closed = False
        sys.meta_path.insert(0, self._finder)

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"<ExecutionContext g{self.generation} {self.bin_dir} ({state})>"

    def __enter__(self) -> ExecutionContext:
        return self

    def __exit__(self, _exc_type, _exc, _tb) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def module_names(self) -> list[str]:
        """Return unprefixed names of modules imported through this context."""

        marker = f"{self.prefix}."
        return sorted(name[len(marker) :] for name in list(sys.modules) if name.startswith(marker))

    def import_module(self, name: str) -> ModuleType:
        """Import ``name`` (e.g. ``blog.controllers.Home``) inside this context."""

        full_name = f"{self.prefix}.{name}"
        with self._lock:
            self._ensure_open(name)
            cached = sys.modules.get(full_name)
            if cached is not None:
                return cached

            parent_name, _, leaf = name.rpartition(".")
            parent: ModuleType | None = None
            if parent_name:
                parent = self.import_module(parent_name)
                search = getattr(parent, "__path__", None)
                if search is None:
                    raise LoadFailure(f"'{parent_name}' is not a package; cannot import '{name}'")
            else:
                search = None

            spec = self._finder.find_spec(full_name, search)
            if spec is None:
                raise EntryPointNotFound(f"No module named '{name}' under {self.bin_dir}")
            # a directory without __init__.py comes back as a namespace spec
            namespace = spec.loader is None
            if namespace and spec.submodule_search_locations is None:
                raise EntryPointNotFound(f"No module named '{name}' under {self.bin_dir}")

            module = importlib.util.module_from_spec(spec)
            sys.modules[full_name] = module
            if not namespace:
                try:
                    spec.loader.exec_module(module)
                except (Exception, SystemExit) as exc:
                    sys.modules.pop(full_name, None)
                    raise LoadFailure(
                        f"Failed to import '{name}' from {spec.origin}: {exc!r}", cause=exc
                    ) from exc
                except BaseException:
                    sys.modules.pop(full_name, None)
                    raise
            if parent is not None:
                setattr(parent, leaf, module)
            LOGGER.debug("Imported '%s' into context g%s", name, self.generation)
            return module

    def load_class(self, qualified_name: str) -> type:
        """Return the class ``qualified_name`` (``<module>.<Class>``)."""

        module_name, _, attr = qualified_name.rpartition(".")
        if not module_name:
            raise EntryPointNotFound(f"'{qualified_name}' is not a qualified class name")
        module = self.import_module(module_name)
        try:
            value = getattr(module, attr)
        except AttributeError as exc:
            raise EntryPointNotFound(f"Module '{module_name}' does not define '{attr}'") from exc
        if not isinstance(value, type):
            raise LoadFailure(f"'{qualified_name}' is not a class (got {type(value).__name__})")
        return value

    def close(self) -> None:
        """Drop this context's modules and import hook. Safe to call twice."""

        with self._lock:
            if self._closed:
                return
            self._closed = True
            try:
                sys.meta_path.remove(self._finder)
            except ValueError:  # pragma: no cover - removed externally
                pass
            marker = f"{self.prefix}."
            for name in list(sys.modules):
                if name.startswith(marker):
                    sys.modules.pop(name, None)
        LOGGER.debug("Released execution context g%s", self.generation)

    def _ensure_open(self, name: str) -> None:
        if self._closed:
            raise LoadFailure(f"Cannot import '{name}': execution context g{self.generation} is closed")


class CodeLoader:
    """Create a fresh :class:`ExecutionContext` for every load."""

    def load(self, bin_dir: Path, package: str) -> ExecutionContext:
        """Import ``package`` from ``bin_dir`` into a brand-new context."""

        bin_dir = Path(bin_dir).expanduser()
        self._check_entry_point(bin_dir, package)
        importlib.invalidate_caches()

        context = ExecutionContext(bin_dir, next(_GENERATIONS))
        try:
            context.import_module(package)
        except BaseException:
            context.close()
            raise
        LOGGER.debug("Loaded package '%s' from %s as g%s", package, bin_dir, context.generation)
        return context

    def _check_entry_point(self, bin_dir: Path, package: str) -> None:
        if not bin_dir.is_dir():
            raise EntryPointNotFound(f"Bin directory not found: {bin_dir}")
        top = package.split(".", 1)[0]
        if (bin_dir / top / "__init__.py").is_file() or (bin_dir / f"{top}.py").is_file():
            return
        raise EntryPointNotFound(f"Entry package '{top}' not found in {bin_dir}")


__all__ = ["CONTEXT_PREFIX", "CodeLoader", "ExecutionContext"]
