"""Raw byte-stream transport to network printers (port 9100 style).

The printer speaks a page-description language directly: there is no framing
and no acknowledgement beyond the stream itself. A job is accepted once the
printer closes its side of the connection after we finished writing.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, Union

from .errors import PrinterConnectError, PrinterIOError, PrinterTimeoutError

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
_READ_CHUNK = 4096


@dataclass(frozen=True)
class TransportReceipt:
    host: str
    port: int
    bytes_sent: int
    elapsed: float


class PrinterTransport(Protocol):
    async def send(self, file_path: Union[str, Path], host: str, port: int) -> TransportReceipt: ...


class RawSocketTransport:
    """Send a staged document to ``host:port`` as one sequential stream."""

    def __init__(self, timeoutSeconds: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        if timeoutSeconds <= 0:
            raise ValueError("timeoutSeconds must be positive")
        self.timeoutSeconds = float(timeoutSeconds)

    async def send(self, file_path: Union[str, Path], host: str, port: int) -> TransportReceipt:
        """
        Transmit *file_path* and wait for the printer to close the connection.

        The file is read completely before any connection is attempted, so an
        unreadable document never produces a partial transmission.

        Raises:
            PrinterIOError: The file could not be read, or the stream broke.
            PrinterConnectError: The printer could not be reached.
            PrinterTimeoutError: Connect-to-close took longer than the timeout.
        """
        try:
            payload = await asyncio.to_thread(Path(file_path).read_bytes)
        except OSError as error:
            raise PrinterIOError(host, port, f"Failed to read PS file: {error}") from error

        startedAt = time.monotonic()
        try:
            await asyncio.wait_for(self._deliver(payload, host, port), timeout=self.timeoutSeconds)
        except asyncio.TimeoutError as error:
            log.warning("Printer %s:%s did not finish within %.1fs", host, port, self.timeoutSeconds)
            raise PrinterTimeoutError(host, port, "Printer connection timeout.") from error

        elapsed = time.monotonic() - startedAt
        log.info("Printer connection closed (%s:%s, %d bytes, %.2fs).", host, port, len(payload), elapsed)
        return TransportReceipt(host=host, port=port, bytes_sent=len(payload), elapsed=elapsed)

    async def _deliver(self, payload: bytes, host: str, port: int) -> None:
        try:
            reader, writer = await asyncio.open_connection(host, port)
        except OSError as error:
            raise PrinterConnectError(host, port, str(error) or type(error).__name__) from error

        log.info("Connected to printer at %s:%s", host, port)
        finished = False
        try:
            writer.write(payload)
            await writer.drain()
            if writer.can_write_eof():
                writer.write_eof()
            log.debug("Data sent to printer (%d bytes).", len(payload))

            # Anything the printer sends back (status bytes) is discarded.
            while await reader.read(_READ_CHUNK):
                pass
            finished = True
        except OSError as error:
            raise PrinterIOError(host, port, str(error) or type(error).__name__) from error
        finally:
            if finished:
                writer.close()
            else:
                writer.transport.abort()


__all__ = [
    "DEFAULT_TIMEOUT_SECONDS",
    "PrinterTransport",
    "RawSocketTransport",
    "TransportReceipt",
]
