"""Dispatch pipeline: turn new bucket objects into staged jobs and print them."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Union

from ..blob_store import BlobObject, BlobStoreGateway
from ..errors import FetchError, RemoteCleanupError, StageError, TransportError, UnknownPrinterError
from ..events import EventSink, JobCompleted
from ..printers import PrinterRegistry
from ..staging import StagingArea
from ..transport import PrinterTransport
from .job_tracker import JobRecord, JobState, JobTracker


log = logging.getLogger(__name__)

DEFAULT_JOB_SUFFIX = ".ps"


@dataclass
class PipelineState:
    """Mutable state shared by the polling and printing triggers.

    ``pending_cleanup`` maps keys that were printed but whose remote object
    could not be deleted to the generation that was printed. They are no
    longer tracked as jobs, yet polling must not announce them as new while
    the delete is being retried.
    """
    tracker: JobTracker = field(default_factory=JobTracker)
    jobs: Dict[str, JobRecord] = field(default_factory=dict)
    pending_cleanup: Dict[str, Optional[int]] = field(default_factory=dict)
    poll_lock: asyncio.Lock = field(default_factory=asyncio.Lock)


@dataclass
class PollSummary:
    listed: int = 0
    candidates: List[str] = field(default_factory=list)
    staged: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    cleaned_up: List[str] = field(default_factory=list)
    skipped: bool = False
    error: Optional[str] = None


@dataclass
class PrintOutcome:
    succeeded: bool
    printer_name: str
    local_path: Path
    job_key: Optional[str] = None
    error: Optional[str] = None
    local_deleted: bool = False
    remote_deleted: bool = False


class DispatchPipeline:
    """
    Polling and printing control flow.

    ``poll_cycle`` lists the store, stages every object that is new and
    announces it; ``print_job`` sends a staged document to a printer and
    cleans up after it. Neither raises for store, disk or printer failures:
    every outcome is reported through the event sink.
    """

    def __init__(
        self,
        store: BlobStoreGateway,
        staging: StagingArea,
        transport: PrinterTransport,
        registry: PrinterRegistry,
        sink: EventSink,
        state: Optional[PipelineState] = None,
        suffix: str = DEFAULT_JOB_SUFFIX,
    ) -> None:
        self.store = store
        self.staging = staging
        self.transport = transport
        self.registry = registry
        self.sink = sink
        self.state = state or PipelineState()
        self.suffix = suffix

    @property
    def tracker(self) -> JobTracker:
        return self.state.tracker

    def _is_candidate(self, key: str) -> bool:
        if not key.endswith(self.suffix):
            return False
        if key in self.state.pending_cleanup:
            return False
        return not self.tracker.contains(key)

    async def poll_cycle(self) -> PollSummary:
        """
        Run one polling cycle.

        A cycle that starts while another is still in flight is skipped
        rather than queued.
        """
        if self.state.poll_lock.locked():
            log.debug("Poll cycle still running, skipping tick")
            return PollSummary(skipped=True)

        async with self.state.poll_lock:
            return await self._poll()

    async def _poll(self) -> PollSummary:
        summary = PollSummary()
        self.sink.status("Polling bucket for print jobs...")

        await self._retry_pending_cleanup(summary)

        try:
            objects = await asyncio.to_thread(self.store.list_objects)
        except FetchError as error:
            summary.error = str(error)
            self.sink.status(f"Bucket polling error: {error.detail}", "error")
            return summary

        summary.listed = len(objects)
        if not objects:
            self.sink.status("No files found in bucket.")
            return summary

        candidates = [blob for blob in objects if self._is_candidate(blob.key)]
        summary.candidates = [blob.key for blob in candidates]
        for blob in candidates:
            await self._discover(blob, summary)

        if not summary.candidates:
            self.sink.status(f"No new {self.suffix} files found in bucket.")
        return summary

    async def _discover(self, blob: BlobObject, summary: PollSummary) -> None:
        key = blob.key
        record = JobRecord(key=key, generation=blob.generation)
        self.state.jobs[key] = record
        self.sink.status(f"New job found: {key}")
        self.sink.new_job(key)

        try:
            self.sink.status(f"Downloading {key} from bucket...")
            content = await asyncio.to_thread(self.store.get, key, blob.generation)
            localPath = await asyncio.to_thread(self.staging.stage, key, content)
        except (FetchError, StageError) as error:
            # Not tracked yet, so the next cycle picks the key up again.
            self.state.jobs.pop(key, None)
            summary.failed[key] = str(error)
            log.warning("[pipeline] Staging of %s failed: %s", key, error)
            self.sink.status(f"Failed to stage {key}: {error.detail}", "error")
            return

        record.local_path = localPath
        record.transition(JobState.STAGED)
        self.tracker.mark_staged(key)
        summary.staged.append(key)

        self.sink.status(f"Saved {localPath.name} locally.")
        self.sink.job_ready(key, localPath)

    async def _retry_pending_cleanup(self, summary: PollSummary) -> None:
        for key, generation in sorted(self.state.pending_cleanup.items()):
            try:
                removed = await asyncio.to_thread(self.store.delete, key, generation)
            except RemoteCleanupError as error:
                log.info("[pipeline] Remote cleanup of %s still failing: %s", key, error.detail)
                continue
            del self.state.pending_cleanup[key]
            summary.cleaned_up.append(key)
            self._reportRemoteCleanup(key, removed)

    def _reportRemoteCleanup(self, key: str, removed: bool) -> None:
        if removed:
            self.sink.status(f"Deleted bucket object: {key}")
        else:
            self.sink.status(f"Bucket object {key} was already removed or replaced.")

    async def print_job(
        self,
        local_path: Union[str, Path],
        printer_name: str,
        job_key: Optional[str] = None,
    ) -> PrintOutcome:
        """
        Print a staged document and clean up after it.

        Unknown printers and transport failures leave the staged file, the
        remote object and the tracker untouched so the job can be retried.
        A refresh notification is always emitted.
        """
        localPath = Path(local_path)
        outcome = PrintOutcome(succeeded=False, printer_name=printer_name, local_path=localPath, job_key=job_key)
        log.info("[pipeline] Print request: %s -> %s", localPath, printer_name)
        try:
            await self._print(localPath, printer_name, job_key, outcome)
        finally:
            self.sink.refresh()
        return outcome

    async def _print(
        self,
        localPath: Path,
        printerName: str,
        jobKey: Optional[str],
        outcome: PrintOutcome,
    ) -> None:
        try:
            printer = self.registry.resolve(printerName)
        except UnknownPrinterError as error:
            outcome.error = str(error)
            self.sink.status(str(error), "error")
            return

        record = self.state.jobs.get(jobKey) if jobKey else None
        if record is not None:
            record.printer_name = printer.name
            record.transition(JobState.PRINTING)

        try:
            self.sink.status(f"Sending file to {printer.describe()}...")
            await self.transport.send(localPath, printer.host, printer.port)
        except TransportError as error:
            outcome.error = str(error)
            if record is not None:
                record.transition(JobState.FAILED, error=str(error))
            log.warning("[pipeline] Printing %s on %s failed: %s", localPath, printer.name, error)
            self.sink.status(f"Printing failed: {error}", "error")
            self.sink.job_completed(
                JobCompleted(jobKey, localPath, printer.name, succeeded=False, detail=str(error))
            )
            return

        outcome.succeeded = True
        self.sink.status("File sent to printer successfully.")

        try:
            await asyncio.to_thread(self.staging.remove, localPath)
            outcome.local_deleted = True
            self.sink.status(f"Deleted local file: {localPath}")
        except OSError as error:
            self.sink.status(f"Failed to delete local file: {error}", "warning")

        if jobKey:
            await self._cleanup_remote(jobKey, record.generation if record is not None else None, outcome)
            self.tracker.release(jobKey)

        if record is not None:
            record.transition(JobState.COMPLETED)
            self.state.jobs.pop(jobKey, None)

        self.sink.status("Print successful and cleaned up.")
        self.sink.job_completed(JobCompleted(jobKey, localPath, printer.name, succeeded=True))

    async def _cleanup_remote(self, jobKey: str, generation: Optional[int], outcome: PrintOutcome) -> None:
        try:
            removed = await asyncio.to_thread(self.store.delete, jobKey, generation)
        except RemoteCleanupError as error:
            self.state.pending_cleanup[jobKey] = generation
            log.warning("[pipeline] %s; will retry on next poll", error)
            self.sink.status(f"Failed to delete bucket object: {error.detail}", "error")
            return
        outcome.remote_deleted = removed
        self.state.pending_cleanup.pop(jobKey, None)
        self._reportRemoteCleanup(jobKey, removed)


__all__ = ["DEFAULT_JOB_SUFFIX", "DispatchPipeline", "PipelineState", "PollSummary", "PrintOutcome"]
