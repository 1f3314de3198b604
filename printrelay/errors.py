"""Error taxonomy for the print relay."""

from __future__ import annotations

from typing import Optional


class PrintRelayError(RuntimeError):
    """Base class for every error raised by the relay."""


class ConfigurationError(PrintRelayError):
    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Invalid configuration: {detail}")


class FetchError(PrintRelayError):
    """Store unreachable, listing failed, or the object vanished."""

    def __init__(self, key: Optional[str], detail: str):
        self.key = key
        self.detail = detail
        target = key if key else "bucket listing"
        super().__init__(f"Failed to fetch {target}: {detail}")


class StageError(PrintRelayError):
    def __init__(self, key: str, path: str, detail: str):
        self.key = key
        self.path = path
        self.detail = detail
        super().__init__(f"Failed to stage {key} at {path}: {detail}")


class UnknownPrinterError(PrintRelayError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f'Printer "{name}" not found.')


class RemoteCleanupError(PrintRelayError):
    def __init__(self, key: str, detail: str):
        self.key = key
        self.detail = detail
        super().__init__(f"Failed to delete remote object {key}: {detail}")


class TransportError(PrintRelayError):
    """Network or printer-side failure while sending a document."""

    def __init__(self, host: str, port: int, detail: str):
        self.host = host
        self.port = port
        self.detail = detail
        super().__init__(f"Printer connection error ({host}:{port}): {detail}")


class PrinterConnectError(TransportError):
    """The printer refused or could not be reached."""


class PrinterTimeoutError(TransportError):
    """The printer did not close the connection within the timeout."""


class PrinterIOError(TransportError):
    """Reading the document or writing the stream failed."""


__all__ = [
    "ConfigurationError",
    "FetchError",
    "PrintRelayError",
    "PrinterConnectError",
    "PrinterIOError",
    "PrinterTimeoutError",
    "RemoteCleanupError",
    "StageError",
    "TransportError",
    "UnknownPrinterError",
]
