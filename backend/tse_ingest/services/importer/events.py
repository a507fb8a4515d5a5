from __future__ import annotations
import asyncio
from typing import Any, Optional
from tse_ingest.logging_config import backend_logger
from tse_ingest.utils.time import utcnow

JOB_STATUS = "import.job.status"
JOB_PROGRESS = "import.job.progress"
BATCH_STATUS = "import.batch.status"
BATCH_ERROR = "import.batch.error"
JOB_COMPLETED = "import.job.completed"
JOB_FAILED = "import.job.failed"

SUBSCRIBER_QUEUE_SIZE = 1000


def progress_percent(processed: int, total: int) -> int:
    if not total:
        return 0
    return min(100, round(processed / total * 100))


class EventBroadcaster:
    """
    In-process fan-out of import events.
    Publishing never blocks: a subscriber whose queue is full misses the event.
    """

    def __init__(self, queue_size: int = SUBSCRIBER_QUEUE_SIZE):
        self._queue_size = queue_size
        self._subscribers: set[asyncio.Queue] = set()

    def subscribe(self) -> asyncio.Queue:
        q: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers.add(q)
        return q

    def unsubscribe(self, q: asyncio.Queue) -> None:
        self._subscribers.discard(q)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event_type: str, job_id: int, **payload: Any) -> dict:
        event = {
            "type": event_type,
            "jobId": job_id,
            "timestamp": utcnow().isoformat(),
            **payload,
        }
        for q in list(self._subscribers):
            try:
                q.put_nowait(event)
            except asyncio.QueueFull:
                backend_logger.debug(f"Dropping {event_type} for slow subscriber")
        return event

    def job_status(self, job_id: int, status: str, stage: Optional[str] = None, message: Optional[str] = None):
        return self.publish(JOB_STATUS, job_id, status=status, stage=stage, message=message)

    def job_progress(self, job_id: int, processed: int, total: int, **extra: Any):
        return self.publish(
            JOB_PROGRESS, job_id,
            processedRows=processed, totalRows=total,
            percent=progress_percent(processed, total), **extra,
        )

    def batch_status(self, job_id: int, batch_id: int, batch_index: int, status: str, **counters: Any):
        return self.publish(
            BATCH_STATUS, job_id,
            batchId=batch_id, batchIndex=batch_index, status=status, **counters,
        )

    def batch_error(self, job_id: int, batch_id: int, batch_index: int, message: str):
        return self.publish(BATCH_ERROR, job_id, batchId=batch_id, batchIndex=batch_index, message=message)

    def job_completed(self, job_id: int, **summary: Any):
        return self.publish(JOB_COMPLETED, job_id, **summary)

    def job_failed(self, job_id: int, message: str):
        return self.publish(JOB_FAILED, job_id, message=message)


broadcaster = EventBroadcaster()
