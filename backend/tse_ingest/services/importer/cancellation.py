from __future__ import annotations
import asyncio
import threading
from .errors import JobCancelled


class CancellationContext:
    """
    Cooperative cancellation handle for one job.

    The flag is a threading.Event so executor threads (zip extraction) can
    poll it; abort_event lets the fetcher race an in-flight read against it.
    """

    def __init__(self, job_id: int):
        self.job_id = job_id
        self._flag = threading.Event()
        self.abort_event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._flag.is_set()

    def cancel(self) -> None:
        self._flag.set()
        self.abort_event.set()

    def raise_if_cancelled(self) -> None:
        if self._flag.is_set():
            raise JobCancelled(self.job_id)
