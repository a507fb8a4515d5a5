from enum import Enum


class JobStatus(str, Enum):
    pending = "pending"
    queued = "queued"
    downloading = "downloading"
    extracting = "extracting"
    processing = "processing"
    completed = "completed"
    failed = "failed"
    cancelled = "cancelled"


# Statuses a job may not be deleted from
IN_PROGRESS_STATUSES = (
    JobStatus.pending,
    JobStatus.queued,
    JobStatus.downloading,
    JobStatus.extracting,
    JobStatus.processing,
)

TERMINAL_STATUSES = (JobStatus.completed, JobStatus.failed, JobStatus.cancelled)

# Statuses that only a live worker can be in
ACTIVE_STATUSES = (JobStatus.downloading, JobStatus.extracting, JobStatus.processing)
