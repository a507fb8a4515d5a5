from __future__ import annotations
import os
import shutil
import tempfile
from typing import Optional
import httpx
from tse_ingest.logging_config import backend_logger
from tse_ingest.models.job_status_enum import JobStatus
from tse_ingest.utils.time import utcnow
from .batch_engine import process_file
from .cancellation import CancellationContext
from .errors import JobCancelled, JobStateError
from .events import EventBroadcaster, JOB_PROGRESS, broadcaster
from .fetcher import download_archive, validate_source_url
from .file_storage import IMPORT_TMP_DIR, job_tmp_dir, remove_file, remove_job_tmp_dir
from .job_store import advance_job, get_job, log_import_error, set_job_status, update_job
from .maintenance import schedule_post_import_maintenance
from .schemas import get_family
from .validator import validate_integrity
from .zip_utils import DATA_EXTENSIONS, extract_data_file, list_data_entries, recommended_entry

CANCELLED_MESSAGE = "Importação cancelada"


async def run_import_job(
    job_id: int,
    ctx: CancellationContext,
    events: EventBroadcaster = broadcaster,
    http_client: Optional[httpx.AsyncClient] = None,
) -> None:
    """
    download -> extract -> process -> validate, for one job.
    Whatever happens the job ends completed, failed or cancelled.
    """
    job = await get_job(job_id)
    family = get_family(job.record_type)
    tag = f"[{family.label}] Job {job_id}"
    work_dir = job_tmp_dir(job_id)
    os.makedirs(work_dir, exist_ok=True)
    upload_path = job.file_path if job.source_kind == "upload" else None

    try:
        ctx.raise_if_cancelled()
        await update_job(job_id, started_at=utcnow(), error_message=None)
        source_path = job.file_path

        if job.source_kind == "url":
            await advance_job(job_id, JobStatus.downloading)
            events.job_status(job_id, JobStatus.downloading.value, "downloading")
            source_path = os.path.join(work_dir, "source.zip")

            async def _download_progress(downloaded: int, total: int):
                values = {"downloaded_bytes": downloaded}
                if total:
                    values["file_size"] = total
                await update_job(job_id, **values)
                events.publish(JOB_PROGRESS, job_id, stage="downloading",
                               downloadedBytes=downloaded, fileSize=total)

            size = await download_archive(job.source_url, source_path, ctx, _download_progress, http_client)
            await update_job(job_id, file_size=size, downloaded_bytes=size)

        if not source_path or not os.path.isfile(source_path):
            raise JobStateError(f"Source file for job {job_id} is missing")

        data_path = source_path
        if not source_path.lower().endswith(DATA_EXTENSIONS):
            ctx.raise_if_cancelled()
            await advance_job(job_id, JobStatus.extracting)
            events.job_status(job_id, JobStatus.extracting.value, "extracting")
            data_path, entry = await extract_data_file(source_path, work_dir, job.selected_entry, ctx)
            backend_logger.info(f"{tag}: extracted {entry}")
            await update_job(job_id, selected_entry=entry)

        ctx.raise_if_cancelled()
        await advance_job(job_id, JobStatus.processing)
        events.job_status(job_id, JobStatus.processing.value, "processing")
        result = await process_file(job_id, data_path, family, ctx, job.cargo_filter, events=events)

        ctx.raise_if_cancelled()
        await advance_job(job_id, JobStatus.completed, completed_at=utcnow())
        validation = await validate_integrity(job_id)
        events.job_status(job_id, JobStatus.completed.value, "completed")
        events.job_completed(
            job_id,
            processedRows=result.inserted,
            skippedRows=result.skipped,
            errorCount=result.errors,
            totalFileRows=result.total_file_rows,
            validation=validation,
        )
        schedule_post_import_maintenance(family.key, job_id)
    except JobCancelled:
        backend_logger.info(f"{tag}: cancelled")
        if await set_job_status(
            job_id, JobStatus.cancelled, error_message=CANCELLED_MESSAGE, completed_at=utcnow()
        ):
            events.job_status(job_id, JobStatus.cancelled.value, "cancelled", CANCELLED_MESSAGE)
    except Exception as e:
        message = str(e) or e.__class__.__name__
        backend_logger.error(f"{tag}: import failed: {message}")
        await log_import_error(job_id, 0, "fatal_error", message)
        if await set_job_status(job_id, JobStatus.failed, error_message=message, completed_at=utcnow()):
            events.job_status(job_id, JobStatus.failed.value, "failed", message)
            events.job_failed(job_id, message)
        raise
    finally:
        remove_job_tmp_dir(job_id)
        remove_file(upload_path)


async def preview_archive(url: str, http_client: Optional[httpx.AsyncClient] = None) -> dict:
    """Download an archive to a scratch dir and list the data files it holds."""
    url = validate_source_url(url)
    os.makedirs(IMPORT_TMP_DIR, exist_ok=True)
    scratch = tempfile.mkdtemp(prefix="tse-preview-", dir=IMPORT_TMP_DIR)
    try:
        path = os.path.join(scratch, "data.zip")
        await download_archive(url, path, CancellationContext(0), client=http_client)
        entries = list_data_entries(path)
    finally:
        shutil.rmtree(scratch, ignore_errors=True)
    return {"files": entries, "recommended": recommended_entry(entries)}
