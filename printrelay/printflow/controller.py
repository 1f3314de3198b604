"""Long-lived controller driving the poll timer and print requests."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from ..events import FanOutEventSink, JobCompleted
from .pipeline import DispatchPipeline, PipelineState


log = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 5.0


@dataclass(frozen=True)
class PrintRequest:
    local_path: Path
    printer_name: str
    job_key: Optional[str] = None


class _AutoPrintTrigger:
    """Sink that turns every ready job into a print request."""

    def __init__(self, controller: "RelayController", printer_name: str) -> None:
        self._controller = controller
        self._printer_name = printer_name

    def status(self, text: str, level: str = "info") -> None:
        pass

    def new_job(self, key: str) -> None:
        pass

    def job_ready(self, key: str, local_path: Path) -> None:
        self._controller.request_print(local_path, self._printer_name, key)

    def job_completed(self, event: JobCompleted) -> None:
        pass

    def refresh(self) -> None:
        pass


class RelayController:
    """
    Owns the pipeline state and multiplexes both triggers on one event loop.

    Poll cycles run on a fixed-interval schedule; a tick that falls while a
    cycle is still running is dropped. Print requests are queued and handled
    one at a time, interleaving with polling only at I/O suspension points.
    """

    def __init__(
        self,
        pipeline: DispatchPipeline,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        auto_print_printer: Optional[str] = None,
    ) -> None:
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        self.pipeline = pipeline
        self.poll_interval = float(poll_interval)
        self.auto_print_printer = auto_print_printer
        self.cycles_run = 0
        self._requests: "asyncio.Queue[PrintRequest]" = asyncio.Queue()
        self._stop_event = asyncio.Event()

        if auto_print_printer:
            pipeline.sink = FanOutEventSink(pipeline.sink, _AutoPrintTrigger(self, auto_print_printer))

    @property
    def state(self) -> PipelineState:
        return self.pipeline.state

    def request_print(
        self,
        local_path: Union[str, Path],
        printer_name: str,
        job_key: Optional[str] = None,
    ) -> None:
        """Queue a print request. The outcome is only reported through events."""
        request = PrintRequest(Path(local_path), printer_name, job_key)
        self._requests.put_nowait(request)
        log.debug("[controller] Queued print request %s", request)

    def stop(self) -> None:
        self._stop_event.set()

    async def run(self, max_cycles: int = 0) -> None:
        """
        Run until :meth:`stop` is called, or after *max_cycles* poll cycles
        (0 for indefinite). Queued print requests are finished before a
        bounded run returns.
        """
        loop = asyncio.get_running_loop()
        self._stop_event.clear()
        self.pipeline.sink.status(f"Relay started, polling every {self.poll_interval:g}s.")
        worker = asyncio.create_task(self._serve_print_requests(), name="printrelay-print-requests")

        try:
            nextTick = loop.time()
            while not self._stop_event.is_set():
                summary = await self.pipeline.poll_cycle()
                if not summary.skipped:
                    self.cycles_run += 1
                if max_cycles and self.cycles_run >= max_cycles:
                    await self._requests.join()
                    break

                nextTick += self.poll_interval
                now = loop.time()
                if nextTick < now:
                    missed = int((now - nextTick) // self.poll_interval) + 1
                    log.debug("[controller] Poll cycle overran, dropping %d tick(s)", missed)
                    nextTick += missed * self.poll_interval

                with contextlib.suppress(asyncio.TimeoutError):
                    await asyncio.wait_for(self._stop_event.wait(), timeout=nextTick - now)
        finally:
            worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await worker
            log.info("[controller] Relay stopped after %d poll cycle(s)", self.cycles_run)

    async def _serve_print_requests(self) -> None:
        while True:
            request = await self._requests.get()
            try:
                await self.pipeline.print_job(request.local_path, request.printer_name, request.job_key)
            except Exception:  # noqa: BLE001 - one bad request must not stop the worker
                log.exception("[controller] Print request %s failed unexpectedly", request)
            finally:
                self._requests.task_done()


__all__ = ["DEFAULT_POLL_INTERVAL", "PrintRequest", "RelayController"]
