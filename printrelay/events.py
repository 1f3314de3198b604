"""Notification values and sinks the dispatch pipeline reports through."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Protocol, Type, TypeVar, Union, runtime_checkable

from .logbus import BUS, LogBus

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatusMessage:
    text: str
    level: str = "info"


@dataclass(frozen=True)
class NewJobDiscovered:
    key: str


@dataclass(frozen=True)
class JobReadyToPrint:
    key: str
    local_path: Path


@dataclass(frozen=True)
class JobCompleted:
    key: Optional[str]
    local_path: Path
    printer_name: str
    succeeded: bool
    detail: str = ""


@dataclass(frozen=True)
class RefreshDisplay:
    pass


RelayEvent = Union[StatusMessage, NewJobDiscovered, JobReadyToPrint, JobCompleted, RefreshDisplay]

EventT = TypeVar("EventT")


@runtime_checkable
class EventSink(Protocol):
    """Delivery surface for pipeline notifications. Nothing is acknowledged."""

    def status(self, text: str, level: str = "info") -> None: ...

    def new_job(self, key: str) -> None: ...

    def job_ready(self, key: str, local_path: Path) -> None: ...

    def job_completed(self, event: JobCompleted) -> None: ...

    def refresh(self) -> None: ...


class RecordingEventSink:
    """Keeps every delivered event in order."""

    def __init__(self) -> None:
        self.events: List[RelayEvent] = []

    def status(self, text: str, level: str = "info") -> None:
        self.events.append(StatusMessage(text, level))

    def new_job(self, key: str) -> None:
        self.events.append(NewJobDiscovered(key))

    def job_ready(self, key: str, local_path: Path) -> None:
        self.events.append(JobReadyToPrint(key, Path(local_path)))

    def job_completed(self, event: JobCompleted) -> None:
        self.events.append(event)

    def refresh(self) -> None:
        self.events.append(RefreshDisplay())

    def of_type(self, eventType: Type[EventT]) -> List[EventT]:
        return [event for event in self.events if isinstance(event, eventType)]

    def status_texts(self) -> List[str]:
        return [event.text for event in self.of_type(StatusMessage)]

    def clear(self) -> None:
        self.events.clear()


class LogBusEventSink:
    """Writes timestamped status lines to the structured log bus."""

    def __init__(self, bus: Optional[LogBus] = None) -> None:
        self._bus = bus or BUS

    def status(self, text: str, level: str = "info") -> None:
        self._bus.emit(level, "status", "status-update", f"[{time.strftime('%H:%M:%S')}] {text}")

    def new_job(self, key: str) -> None:
        self._bus.emit("info", "jobs", "new-print-job", key, key=key)

    def job_ready(self, key: str, local_path: Path) -> None:
        self._bus.emit("info", "jobs", "print-ready", key, key=key, path=str(local_path))

    def job_completed(self, event: JobCompleted) -> None:
        self._bus.emit(
            "info" if event.succeeded else "error",
            "jobs",
            "job-completed",
            event.detail,
            key=event.key,
            path=str(event.local_path),
            printer=event.printer_name,
            succeeded=event.succeeded,
        )

    def refresh(self) -> None:
        self._bus.emit("debug", "ui", "refresh-ui")


class FanOutEventSink:
    """Delivers each notification to several sinks.

    A sink that raises is logged and skipped; delivery to the rest continues.
    """

    def __init__(self, *sinks: EventSink) -> None:
        self._sinks = list(sinks)

    def _deliver(self, methodName: str, *args) -> None:
        for sink in self._sinks:
            try:
                getattr(sink, methodName)(*args)
            except Exception:  # noqa: BLE001 - a display failure must not stop the pipeline
                log.warning("Event sink %r failed on %s", sink, methodName, exc_info=True)

    def status(self, text: str, level: str = "info") -> None:
        self._deliver("status", text, level)

    def new_job(self, key: str) -> None:
        self._deliver("new_job", key)

    def job_ready(self, key: str, local_path: Path) -> None:
        self._deliver("job_ready", key, local_path)

    def job_completed(self, event: JobCompleted) -> None:
        self._deliver("job_completed", event)

    def refresh(self) -> None:
        self._deliver("refresh")


__all__ = [
    "EventSink",
    "FanOutEventSink",
    "JobCompleted",
    "JobReadyToPrint",
    "LogBusEventSink",
    "NewJobDiscovered",
    "RecordingEventSink",
    "RefreshDisplay",
    "RelayEvent",
    "StatusMessage",
]
