"""hotseat package initialisation."""

from importlib import metadata

from .application import Application, BaseApplication, DispatchTable


def _discover_version() -> str:
    """Return the installed package version, falling back to dev marker."""
    try:
        return metadata.version("hotseat")
    except metadata.PackageNotFoundError:  # pragma: no cover - occurs in source checkouts
        return "0.0.0"


__all__ = ["Application", "BaseApplication", "DispatchTable", "__version__"]
__version__ = _discover_version()
