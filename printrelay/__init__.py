"""Relay print-ready documents from a storage bucket to raw-port network printers."""

from importlib import import_module
from typing import Any

__version__ = "1.0.0"

__all__ = [
    "blob_store",
    "cli",
    "config_manager",
    "errors",
    "events",
    "logbus",
    "printers",
    "printflow",
    "staging",
    "transport",
]


def __getattr__(name: str) -> Any:
    """Lazily expose submodules to avoid import-time side effects."""
    if name in __all__:
        lazyModule = import_module(f".{name}", __name__)
        globals()[name] = lazyModule
        return lazyModule
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__() -> list[str]:
    return sorted(set(globals()) | set(__all__))
