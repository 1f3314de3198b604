"""Print job tracking and lifecycle records."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Set


log = logging.getLogger(__name__)


class JobState(str, Enum):
    """Print job lifecycle states."""
    DISCOVERED = "discovered"
    STAGED = "staged"
    PRINTING = "printing"
    COMPLETED = "completed"
    FAILED = "failed"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class JobRecord:
    """In-memory view of a single remote document moving through the relay."""
    key: str
    state: JobState = JobState.DISCOVERED
    generation: Optional[int] = None
    local_path: Optional[Path] = None
    printer_name: Optional[str] = None
    last_error: Optional[str] = None
    discovered_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def transition(self, state: JobState, *, error: Optional[str] = None) -> None:
        log.debug("[tracker] %s: %s -> %s", self.key, self.state.value, state.value)
        self.state = state
        self.last_error = error
        self.updated_at = _utcnow()

    def to_display_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for status display."""
        return {
            "key": self.key,
            "state": self.state.value,
            "local_path": str(self.local_path) if self.local_path else "",
            "printer": self.printer_name or "",
            "error": self.last_error or "",
            "updated_at": self.updated_at.strftime("%H:%M:%S"),
        }


class JobTracker:
    """
    Set of object keys that have already been turned into jobs.

    A key enters the set once it has been staged locally and leaves it once
    the printed document has been cleaned up. While a key is tracked the
    polling loop must not download or announce it again.

    Example usage:
        tracker = JobTracker()
        if not tracker.contains("orders/invoice.ps"):
            ...  # download and stage
            tracker.mark_staged("orders/invoice.ps")

        # after a successful print
        tracker.release("orders/invoice.ps")
    """

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._log = logger or log
        self._keys: Set[str] = set()

    def contains(self, key: str) -> bool:
        return key in self._keys

    def mark_staged(self, key: str) -> None:
        """Start tracking *key*. Marking a tracked key again is a no-op."""
        if key in self._keys:
            self._log.debug("[tracker] Key already tracked: %s", key)
            return
        self._keys.add(key)
        self._log.info("[tracker] TRACKED: %s", key)

    def release(self, key: str) -> None:
        """Stop tracking *key*. Releasing an untracked key is a no-op."""
        if key not in self._keys:
            self._log.debug("[tracker] Release of untracked key ignored: %s", key)
            return
        self._keys.discard(key)
        self._log.info("[tracker] RELEASED: %s", key)

    def __len__(self) -> int:
        return len(self._keys)


__all__ = ["JobRecord", "JobState", "JobTracker"]
