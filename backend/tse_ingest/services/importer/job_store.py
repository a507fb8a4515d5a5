from __future__ import annotations
from typing import Any, Optional
from sqlalchemy import delete, select, update
from tse_ingest.logging_config import backend_logger
from tse_ingest.models.base import SessionLocal
from tse_ingest.models.import_job import ImportJob
from tse_ingest.models.import_batch import ImportBatch, ImportBatchRow
from tse_ingest.models.import_error import ImportErrorRecord, RAW_SNIPPET_LIMIT
from tse_ingest.models.validation import ValidationRun, ValidationIssue
from tse_ingest.models.job_status_enum import JobStatus, TERMINAL_STATUSES
from tse_ingest.utils.time import isoformat_or_none
from .errors import JobCancelled, JobNotFoundError
from .schemas import FAMILIES


async def get_job(job_id: int) -> ImportJob:
    async with SessionLocal() as session:
        job = await session.get(ImportJob, job_id)
    if job is None:
        raise JobNotFoundError(job_id)
    return job


async def update_job(job_id: int, **values: Any) -> None:
    async with SessionLocal() as session:
        await session.execute(update(ImportJob).where(ImportJob.id == job_id).values(**values))
        await session.commit()


async def set_job_status(job_id: int, status: JobStatus, stage: Optional[str] = None, **values: Any) -> bool:
    """
    Move a running job to `status` unless it already reached a terminal one.
    Returns False when the guard blocked the write.
    """
    values["status"] = status
    values["stage"] = stage or status.value
    async with SessionLocal() as session:
        res = await session.execute(
            update(ImportJob)
            .where((ImportJob.id == job_id) & (ImportJob.status.notin_(TERMINAL_STATUSES)))
            .values(**values)
        )
        await session.commit()
    return bool(res.rowcount)


async def advance_job(job_id: int, status: JobStatus, stage: Optional[str] = None, **values: Any) -> None:
    """Pipeline transition: a blocked write means the job was cancelled under us."""
    if not await set_job_status(job_id, status, stage, **values):
        current = await get_job(job_id)
        if current.status == JobStatus.cancelled:
            raise JobCancelled(job_id)
        backend_logger.warning(
            f"Job {job_id}: transition to {status.value} ignored, job already {current.status.value}"
        )


async def log_import_error(
    job_id: int,
    row_number: Optional[int],
    error_type: str,
    message: str,
    raw_data: Optional[str] = None,
) -> None:
    async with SessionLocal() as session:
        session.add(
            ImportErrorRecord(
                import_job_id=job_id,
                row_number=row_number,
                error_type=error_type,
                error_message=message,
                raw_data=raw_data[:RAW_SNIPPET_LIMIT] if raw_data else None,
            )
        )
        await session.commit()


async def delete_batches_by_job(job_id: int) -> None:
    async with SessionLocal() as session:
        batch_ids = select(ImportBatch.id).where(ImportBatch.import_job_id == job_id)
        await session.execute(delete(ImportBatchRow).where(ImportBatchRow.batch_id.in_(batch_ids)))
        await session.execute(delete(ImportBatch).where(ImportBatch.import_job_id == job_id))
        await session.commit()


async def purge_job_data(job_id: int, record_type: str, delete_job_row: bool = False) -> None:
    """Remove every row derived from a job (and optionally the job itself) in one transaction."""
    family = FAMILIES.get(record_type)
    async with SessionLocal() as session:
        async with session.begin():
            # Every vote table is cleared: record_type of old rows is not trusted
            for fam in FAMILIES.values():
                await session.execute(delete(fam.model).where(fam.model.import_job_id == job_id))
            batch_ids = select(ImportBatch.id).where(ImportBatch.import_job_id == job_id)
            await session.execute(delete(ImportBatchRow).where(ImportBatchRow.batch_id.in_(batch_ids)))
            await session.execute(delete(ImportBatch).where(ImportBatch.import_job_id == job_id))
            await session.execute(delete(ImportErrorRecord).where(ImportErrorRecord.import_job_id == job_id))
            run_ids = select(ValidationRun.id).where(ValidationRun.import_job_id == job_id)
            await session.execute(delete(ValidationIssue).where(ValidationIssue.run_id.in_(run_ids)))
            await session.execute(delete(ValidationRun).where(ValidationRun.import_job_id == job_id))
            if delete_job_row:
                await session.execute(delete(ImportJob).where(ImportJob.id == job_id))
    backend_logger.debug(f"Job {job_id}: purged derived rows ({family.label if family else record_type})")


def serialize_job(row: ImportJob) -> dict:
    return {
        "id": row.id,
        "recordType": row.record_type,
        "sourceKind": row.source_kind,
        "filename": row.filename,
        "sourceUrl": row.source_url,
        "selectedEntry": row.selected_entry,
        "fileSize": row.file_size,
        "status": getattr(row.status, "value", row.status),
        "stage": row.stage,
        "downloadedBytes": row.downloaded_bytes,
        "totalRows": row.total_rows,
        "totalFileRows": row.total_file_rows,
        "processedRows": row.processed_rows,
        "skippedRows": row.skipped_rows,
        "errorCount": row.error_count,
        "errorMessage": row.error_message,
        "electionYear": row.election_year,
        "electionType": row.election_type,
        "uf": row.uf,
        "cargoFilter": row.cargo_filter,
        "validationStatus": getattr(row.validation_status, "value", row.validation_status),
        "validationMessage": row.validation_message,
        "validatedAt": isoformat_or_none(row.validated_at),
        "startedAt": isoformat_or_none(row.started_at),
        "completedAt": isoformat_or_none(row.completed_at),
        "createdAt": isoformat_or_none(row.created_at),
        "updatedAt": isoformat_or_none(row.updated_at),
    }


def serialize_batch(row: ImportBatch) -> dict:
    return {
        "id": row.id,
        "jobId": row.import_job_id,
        "batchIndex": row.batch_index,
        "status": getattr(row.status, "value", row.status),
        "rowStart": row.row_start,
        "rowEnd": row.row_end,
        "totalRows": row.total_rows,
        "processedRows": row.processed_rows,
        "insertedRows": row.inserted_rows,
        "skippedRows": row.skipped_rows,
        "errorCount": row.error_count,
        "errorSummary": row.error_summary,
        "startedAt": isoformat_or_none(row.started_at),
        "completedAt": isoformat_or_none(row.completed_at),
    }


def serialize_batch_row(row: ImportBatchRow) -> dict:
    return {
        "id": row.id,
        "batchId": row.batch_id,
        "rowNumber": row.row_number,
        "status": getattr(row.status, "value", row.status),
        "rawData": row.raw_data,
        "parsedData": row.parsed_data,
        "errorType": row.error_type,
        "errorMessage": row.error_message,
        "processedAt": isoformat_or_none(row.processed_at),
    }


def serialize_error(row: ImportErrorRecord) -> dict:
    return {
        "id": row.id,
        "jobId": row.import_job_id,
        "rowNumber": row.row_number,
        "errorType": row.error_type,
        "errorMessage": row.error_message,
        "rawData": row.raw_data,
        "createdAt": isoformat_or_none(row.created_at),
    }
