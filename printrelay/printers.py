"""Registry of network printers reachable over their raw port."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Mapping

from .errors import ConfigurationError, UnknownPrinterError

log = logging.getLogger(__name__)

DEFAULT_RAW_PORT = 9100


@dataclass(frozen=True)
class PrinterDescriptor:
    name: str
    host: str
    port: int = DEFAULT_RAW_PORT

    def describe(self) -> str:
        return f"{self.name} ({self.host}:{self.port})"


def _parsePort(value: Any, printerName: str) -> int:
    if value is None or value == "":
        return DEFAULT_RAW_PORT
    try:
        port = int(value)
    except (TypeError, ValueError) as error:
        raise ConfigurationError(f"printer {printerName!r} has invalid port {value!r}") from error
    if not 0 < port < 65536:
        raise ConfigurationError(f"printer {printerName!r} has out-of-range port {port}")
    return port


def parsePrinterEntry(entry: Mapping[str, Any]) -> PrinterDescriptor:
    """Build a descriptor from a config entry; ``ip`` is accepted for ``host``."""

    if not isinstance(entry, Mapping):
        raise ConfigurationError(f"printer entry must be an object, got {type(entry).__name__}")
    name = str(entry.get("name") or "").strip()
    if not name:
        raise ConfigurationError("printer entry is missing a name")
    host = str(entry.get("host") or entry.get("ip") or "").strip()
    if not host:
        raise ConfigurationError(f"printer {name!r} is missing a host")
    return PrinterDescriptor(name=name, host=host, port=_parsePort(entry.get("port"), name))


class PrinterRegistry:
    """Ordered, name-unique set of configured printers."""

    def __init__(self, descriptors: Iterable[PrinterDescriptor] = ()) -> None:
        self._printers: Dict[str, PrinterDescriptor] = {}
        for descriptor in descriptors:
            if descriptor.name in self._printers:
                raise ConfigurationError(f"duplicate printer name {descriptor.name!r}")
            self._printers[descriptor.name] = descriptor

    @classmethod
    def from_entries(cls, entries: Iterable[Mapping[str, Any]]) -> "PrinterRegistry":
        return cls(parsePrinterEntry(entry) for entry in entries)

    def resolve(self, name: str) -> PrinterDescriptor:
        """
        Look up a printer by its configured name.

        Raises:
            UnknownPrinterError: If no printer carries that name.
        """
        descriptor = self._printers.get(name)
        if descriptor is None:
            log.debug("Printer lookup failed for %r (known: %s)", name, ", ".join(self._printers))
            raise UnknownPrinterError(name)
        return descriptor

    def names(self) -> List[str]:
        return list(self._printers)

    def __contains__(self, name: object) -> bool:
        return name in self._printers

    def __iter__(self) -> Iterator[PrinterDescriptor]:
        return iter(self._printers.values())

    def __len__(self) -> int:
        return len(self._printers)


__all__ = ["DEFAULT_RAW_PORT", "PrinterDescriptor", "PrinterRegistry", "parsePrinterEntry"]
