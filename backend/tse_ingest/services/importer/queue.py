from __future__ import annotations
import asyncio
from collections import deque
from typing import Awaitable, Callable, Optional
from tse_ingest.logging_config import backend_logger
from .cancellation import CancellationContext

Runner = Callable[[int, CancellationContext], Awaitable[None]]


class ImportQueue:
    """
    Global FIFO of import jobs with a single worker.

    Owns the per-job cancellation contexts. The database stays the source of
    truth for job status; this object is rebuilt from it on startup.
    """

    def __init__(self, runner: Optional[Runner] = None):
        if runner is None:
            from .pipeline import run_import_job
            runner = run_import_job
        self._runner = runner
        self._pending: deque[int] = deque()
        self._contexts: dict[int, CancellationContext] = {}
        self._processing = False
        self._current_job_id: Optional[int] = None
        self._worker: Optional[asyncio.Task] = None
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def is_processing(self) -> bool:
        return self._processing

    @property
    def current_job_id(self) -> Optional[int]:
        return self._current_job_id

    def __contains__(self, job_id: int) -> bool:
        return job_id == self._current_job_id or job_id in self._pending

    def context_for(self, job_id: int) -> Optional[CancellationContext]:
        return self._contexts.get(job_id)

    def enqueue(self, job_id: int) -> bool:
        """Append to the tail. Returns False when the job is already queued or running."""
        if job_id in self:
            backend_logger.debug(f"Queue: job {job_id} already queued or running")
            return False
        self._pending.append(job_id)
        self._contexts[job_id] = CancellationContext(job_id)
        backend_logger.info(f"Queue: job {job_id} enqueued at position {len(self._pending)}")
        self._start_worker()
        return True

    def remove(self, job_id: int) -> bool:
        """Drop a job that has not started yet."""
        try:
            self._pending.remove(job_id)
        except ValueError:
            return False
        self._contexts.pop(job_id, None)
        backend_logger.info(f"Queue: job {job_id} removed")
        return True

    def cancel(self, job_id: int) -> bool:
        """Remove a waiting job or signal the running one. True if the queue knew the job."""
        ctx = self._contexts.get(job_id)
        if ctx is not None:
            ctx.cancel()
        removed = self.remove(job_id)
        return removed or ctx is not None

    def status(self) -> dict:
        return {
            "isProcessing": self._processing,
            "currentJobId": self._current_job_id,
            "queueLength": len(self._pending),
            "orderedQueue": list(self._pending),
        }

    async def join(self) -> None:
        """Wait until the queue is drained and the worker is idle."""
        await self._idle.wait()

    def _start_worker(self) -> None:
        if self._processing:
            return
        self._processing = True
        self._idle.clear()
        self._worker = asyncio.create_task(self._drain())

    async def _drain(self) -> None:
        try:
            while self._pending:
                job_id = self._pending.popleft()
                ctx = self._contexts.get(job_id) or CancellationContext(job_id)
                self._current_job_id = job_id
                try:
                    if ctx.cancelled:
                        backend_logger.info(f"Queue: job {job_id} cancelled before start")
                        continue
                    await self._runner(job_id, ctx)
                except Exception as e:
                    # Runner already persisted the failure; keep draining
                    backend_logger.error(f"Queue: job {job_id} ended with error: {e}")
                finally:
                    self._contexts.pop(job_id, None)
                    self._current_job_id = None
        finally:
            self._processing = False
            self._worker = None
            self._idle.set()
