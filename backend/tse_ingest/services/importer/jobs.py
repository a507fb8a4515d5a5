from __future__ import annotations
import os
from typing import Optional
from sqlalchemy import select, update
from tse_ingest.logging_config import backend_logger
from tse_ingest.models.base import SessionLocal
from tse_ingest.models.import_job import ImportJob
from tse_ingest.models.import_batch import ImportBatch, ImportBatchRow
from tse_ingest.models.import_error import ImportErrorRecord
from tse_ingest.models.job_status_enum import (
    JobStatus, IN_PROGRESS_STATUSES, ACTIVE_STATUSES,
)
from tse_ingest.models.status_enum import ValidationStatus, BatchStatus, BatchRowStatus
from tse_ingest.utils.time import utcnow
from .errors import DuplicateImportError, InvalidSourceError, JobNotFoundError, JobStateError
from .events import EventBroadcaster, broadcaster
from .fetcher import filename_from_url, validate_source_url
from .file_storage import remove_file, remove_job_tmp_dir
from .job_store import (
    get_job, purge_job_data, serialize_batch, serialize_batch_row, serialize_error, serialize_job,
)
from .maintenance import schedule_post_import_maintenance
from .pipeline import CANCELLED_MESSAGE
from .queue import ImportQueue
from .schemas import get_family

ORPHANED_MESSAGE = "Job interrompido por reinicialização do servidor"

# A finished import of the same source blocks resubmission too
BLOCKING_STATUSES = IN_PROGRESS_STATUSES + (JobStatus.completed,)
RESTARTABLE_STATUSES = (JobStatus.failed, JobStatus.cancelled)


def _eq_or_null(column, value):
    return column.is_(None) if value is None else column == value


async def find_duplicate(
    *,
    filename: Optional[str],
    source_url: Optional[str],
    election_year: Optional[int],
    uf: Optional[str],
    election_type: Optional[str],
) -> Optional[ImportJob]:
    """Earlier job for the same source and filters that is running or already imported."""
    source_cond = (ImportJob.source_url == source_url) if source_url else (ImportJob.filename == filename)
    async with SessionLocal() as session:
        res = await session.execute(
            select(ImportJob)
            .where(
                source_cond
                & _eq_or_null(ImportJob.election_year, election_year)
                & _eq_or_null(ImportJob.uf, uf)
                & _eq_or_null(ImportJob.election_type, election_type)
                & ImportJob.status.in_(BLOCKING_STATUSES)
            )
            .order_by(ImportJob.id.asc())
            .limit(1)
        )
        return res.scalar_one_or_none()


async def enqueue_job(queue: ImportQueue, job_id: int) -> None:
    if job_id in queue:
        raise JobStateError(f"Job {job_id} is still queued or running")
    await update_job_status(job_id, JobStatus.queued, "queued")
    if not queue.enqueue(job_id):
        raise JobStateError(f"Job {job_id} is still queued or running")


async def update_job_status(job_id: int, status: JobStatus, stage: str, **values) -> None:
    async with SessionLocal() as session:
        await session.execute(
            update(ImportJob).where(ImportJob.id == job_id).values(status=status, stage=stage, **values)
        )
        await session.commit()


async def submit(
    queue: ImportQueue,
    *,
    record_type: str = "candidate",
    source_url: Optional[str] = None,
    file_path: Optional[str] = None,
    filename: Optional[str] = None,
    election_year: Optional[int] = None,
    uf: Optional[str] = None,
    election_type: Optional[str] = None,
    cargo_filter: Optional[int] = None,
    selected_entry: Optional[str] = None,
    events: EventBroadcaster = broadcaster,
) -> int:
    """Create a pending job for an uploaded file or an allow-listed URL and queue it."""
    family = get_family(record_type)
    if source_url:
        source_url = validate_source_url(source_url)
        filename = filename or filename_from_url(source_url)
        source_kind = "url"
        file_size = 0
    elif file_path:
        if not os.path.isfile(file_path):
            raise InvalidSourceError(f"Uploaded file not found: {file_path}")
        filename = filename or os.path.basename(file_path)
        source_kind = "upload"
        file_size = os.path.getsize(file_path)
    else:
        raise InvalidSourceError("Either an uploaded file or a source URL is required")
    uf = uf.upper() if uf else None

    existing = await find_duplicate(
        filename=filename, source_url=source_url,
        election_year=election_year, uf=uf, election_type=election_type,
    )
    if existing is not None:
        raise DuplicateImportError(existing.id, getattr(existing.status, "value", existing.status))

    async with SessionLocal() as session:
        job = ImportJob(
            record_type=family.key,
            source_kind=source_kind,
            filename=filename,
            source_url=source_url,
            file_path=file_path,
            selected_entry=selected_entry,
            file_size=file_size,
            status=JobStatus.pending,
            stage="pending",
            election_year=election_year,
            election_type=election_type,
            uf=uf,
            cargo_filter=cargo_filter,
        )
        session.add(job)
        await session.commit()
        await session.refresh(job)
        job_id = job.id

    backend_logger.info(f"[{family.label}] Job {job_id} created for {filename} ({source_kind})")
    await enqueue_job(queue, job_id)
    events.job_status(job_id, JobStatus.queued.value, "queued")
    return job_id


async def cancel(queue: ImportQueue, job_id: int, events: EventBroadcaster = broadcaster) -> bool:
    job = await get_job(job_id)
    if job.status not in IN_PROGRESS_STATUSES:
        return False
    running = queue.current_job_id == job_id
    queue.cancel(job_id)
    async with SessionLocal() as session:
        res = await session.execute(
            update(ImportJob)
            .where((ImportJob.id == job_id) & ImportJob.status.in_(IN_PROGRESS_STATUSES))
            .values(
                status=JobStatus.cancelled,
                stage="cancelled",
                error_message=CANCELLED_MESSAGE,
                completed_at=utcnow(),
            )
        )
        await session.commit()
    if not res.rowcount:
        return False
    remove_job_tmp_dir(job_id)
    if not running and job.source_kind == "upload":
        # a waiting job never reaches the runner that cleans up its upload
        remove_file(job.file_path)
    backend_logger.info(f"Job {job_id} cancelled")
    events.job_status(job_id, JobStatus.cancelled.value, "cancelled", CANCELLED_MESSAGE)
    return True


async def restart(queue: ImportQueue, job_id: int, events: EventBroadcaster = broadcaster) -> int:
    job = await get_job(job_id)
    if job.status not in RESTARTABLE_STATUSES:
        raise JobStateError(f"Job {job_id} is {job.status.value}; only failed or cancelled jobs can be restarted")
    if not job.source_url:
        raise JobStateError(f"Job {job_id} was uploaded; only URL imports can be restarted")
    if job_id in queue:
        # the cancelled worker has not reached a checkpoint yet
        raise JobStateError(f"Job {job_id} is still stopping; retry the restart once it has exited")

    await purge_job_data(job_id, job.record_type)
    remove_job_tmp_dir(job_id)
    await update_job_status(
        job_id, JobStatus.pending, "pending",
        downloaded_bytes=0,
        file_size=0,
        total_rows=0,
        total_file_rows=None,
        processed_rows=0,
        skipped_rows=0,
        error_count=0,
        error_message=None,
        validation_status=ValidationStatus.pending,
        validation_message=None,
        validated_at=None,
        started_at=None,
        completed_at=None,
    )
    backend_logger.info(f"Job {job_id} restarted")
    await enqueue_job(queue, job_id)
    events.job_status(job_id, JobStatus.queued.value, "queued")
    return job_id


async def delete_job(queue: ImportQueue, job_id: int) -> None:
    job = await get_job(job_id)
    if job.status in IN_PROGRESS_STATUSES or job_id in queue:
        raise JobStateError(f"Job {job_id} is {job.status.value}; cancel it before deleting")
    await purge_job_data(job_id, job.record_type, delete_job_row=True)
    remove_job_tmp_dir(job_id)
    if job.source_kind == "upload":
        remove_file(job.file_path)
    backend_logger.info(f"Job {job_id} deleted")
    schedule_post_import_maintenance(job.record_type, job_id, analyze=False, delay=0)


async def fail_orphaned_jobs() -> int:
    """Jobs left mid-flight by a previous process cannot be resumed."""
    async with SessionLocal() as session:
        res = await session.execute(
            update(ImportJob)
            .where(ImportJob.status.in_(ACTIVE_STATUSES))
            .values(
                status=JobStatus.failed,
                stage="failed",
                error_message=ORPHANED_MESSAGE,
                completed_at=utcnow(),
            )
        )
        await session.commit()
    count = int(res.rowcount or 0)
    if count:
        backend_logger.warning(f"Startup sweep: {count} orphaned job(s) marked failed")
    return count


async def resume_pending_jobs(queue: ImportQueue) -> list[int]:
    async with SessionLocal() as session:
        res = await session.execute(
            select(ImportJob.id)
            .where(ImportJob.status.in_((JobStatus.pending, JobStatus.queued)))
            .order_by(ImportJob.created_at.asc(), ImportJob.id.asc())
        )
        job_ids = [r[0] for r in res.all()]
    for job_id in job_ids:
        await enqueue_job(queue, job_id)
    if job_ids:
        backend_logger.info(f"Auto-resume: re-queued {len(job_ids)} job(s): {job_ids}")
    return job_ids


async def list_jobs(limit: int = 50) -> list[dict]:
    async with SessionLocal() as session:
        res = await session.execute(select(ImportJob).order_by(ImportJob.id.desc()).limit(limit))
        return [serialize_job(r) for r in res.scalars().all()]


async def job_detail(job_id: int) -> dict:
    return serialize_job(await get_job(job_id))


async def list_errors(job_id: int, limit: int = 100) -> list[dict]:
    await get_job(job_id)
    async with SessionLocal() as session:
        res = await session.execute(
            select(ImportErrorRecord)
            .where(ImportErrorRecord.import_job_id == job_id)
            .order_by(ImportErrorRecord.row_number, ImportErrorRecord.id)
            .limit(limit)
        )
        return [serialize_error(r) for r in res.scalars().all()]


async def list_batches(job_id: int, status: Optional[str] = None) -> list[dict]:
    await get_job(job_id)
    async with SessionLocal() as session:
        q = select(ImportBatch).where(ImportBatch.import_job_id == job_id)
        if status:
            q = q.where(ImportBatch.status == BatchStatus(status))
        res = await session.execute(q.order_by(ImportBatch.batch_index))
        return [serialize_batch(r) for r in res.scalars().all()]


async def batch_detail(job_id: int, batch_id: int, row_status: Optional[str] = None) -> dict:
    async with SessionLocal() as session:
        batch = await session.get(ImportBatch, batch_id)
        if batch is None or batch.import_job_id != job_id:
            raise JobNotFoundError(batch_id, "Batch")
        q = select(ImportBatchRow).where(ImportBatchRow.batch_id == batch_id)
        if row_status:
            q = q.where(ImportBatchRow.status == BatchRowStatus(row_status))
        rows = (await session.execute(q.order_by(ImportBatchRow.row_number))).scalars().all()
    data = serialize_batch(batch)
    data["rows"] = [serialize_batch_row(r) for r in rows]
    return data
