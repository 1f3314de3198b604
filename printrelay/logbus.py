"""Structured log bus: bounded in-memory history plus daily JSONL files."""

from __future__ import annotations

import json
import logging
import os
import threading
import time
from collections import deque
from dataclasses import asdict, dataclass
from typing import Any, Deque, Dict, List, Optional

_LOG = logging.getLogger(__name__)

DEFAULT_LOG_FOLDER = os.path.expanduser('~/.printrelay/logs')


@dataclass
class LogEvent:
    ts: float
    level: str
    category: str
    event: str
    message: str
    ctx: Dict[str, Any]


class LogBus:
    """
    Keeps the most recent events in memory and appends every event to
    ``<folder>/<YYYY-MM-DD>.jsonl``. The folder is created on first write.
    """

    def __init__(self, maxMemory: int = 5000, folder: Optional[str] = None, echo: bool = True) -> None:
        self._history: Deque[LogEvent] = deque(maxlen=max(1, int(maxMemory)))
        self._lock = threading.Lock()
        self._folder = folder or DEFAULT_LOG_FOLDER
        self._echo = echo

    @property
    def folder(self) -> str:
        return self._folder

    def pathFor(self, timestamp: float) -> str:
        return os.path.join(self._folder, time.strftime('%Y-%m-%d', time.localtime(timestamp)) + '.jsonl')

    def emit(self, level: str, category: str, event: str, message: str = '', **context: Any) -> None:
        record = LogEvent(time.time(), level.upper(), category, event, message, dict(context))
        if self._echo:
            levelNo = logging.getLevelName(record.level)
            _LOG.log(levelNo if isinstance(levelNo, int) else logging.INFO, '[%s] %s: %s', category, event, message)

        with self._lock:
            self._history.append(record)
            self._append(record)

    def _append(self, record: LogEvent) -> None:
        logPath = self.pathFor(record.ts)
        try:
            os.makedirs(self._folder, exist_ok=True)
            with open(logPath, 'a', encoding='utf-8') as handle:
                handle.write(json.dumps(asdict(record), ensure_ascii=False, default=str) + '\n')
        except OSError:
            _LOG.debug('Failed to write structured log to %s', logPath, exc_info=True)

    def snapshot(self, category: Optional[str] = None) -> List[LogEvent]:
        with self._lock:
            return [record for record in self._history if category is None or record.category == category]


BUS = LogBus()


class LogBusHandler(logging.Handler):
    """Bridge standard logging records into the structured log bus."""

    def __init__(self, bus: Optional[LogBus] = None) -> None:
        super().__init__()
        self.setLevel(logging.NOTSET)
        self._bus = bus or BUS

    def emit(self, record: logging.LogRecord) -> None:
        # Records produced by the bus itself would loop back.
        if record.name.startswith(__name__):
            return

        try:
            context: Dict[str, Any] = {
                'logger': record.name,
                'line': record.lineno,
            }
            if record.exc_info:
                context['exception'] = logging.Formatter().formatException(record.exc_info)
            self._bus.emit(
                record.levelname,
                self._resolveCategory(record),
                record.funcName or record.name.split('.')[-1],
                record.getMessage(),
                **context,
            )
        except Exception:  # noqa: BLE001 - logging handlers must not raise
            self.handleError(record)

    def _resolveCategory(self, record: logging.LogRecord) -> str:
        parts = [part for part in record.name.split('.') if part]
        for part in reversed(parts):
            lowered = part.lower()
            if lowered in {'transport', 'printers'}:
                return 'printer'
            if lowered == 'blob_store':
                return 'store'
            if lowered in {'pipeline', 'controller', 'job_tracker'}:
                return 'dispatch'
        return 'relay'


def installLogBusHandler(bus: Optional[LogBus] = None) -> None:
    rootLogger = logging.getLogger()
    for handler in rootLogger.handlers:
        if isinstance(handler, LogBusHandler):
            return
    rootLogger.addHandler(LogBusHandler(bus))


__all__ = ['BUS', 'DEFAULT_LOG_FOLDER', 'LogBus', 'LogEvent', 'LogBusHandler', 'installLogBusHandler']
