"""Print dispatch workflow: job tracking, polling and printing."""

from __future__ import annotations

from .job_tracker import JobRecord, JobState, JobTracker
from .pipeline import DispatchPipeline, PipelineState, PollSummary, PrintOutcome
from .controller import PrintRequest, RelayController


__all__ = [
    "DispatchPipeline",
    "JobRecord",
    "JobState",
    "JobTracker",
    "PipelineState",
    "PollSummary",
    "PrintOutcome",
    "PrintRequest",
    "RelayController",
]
