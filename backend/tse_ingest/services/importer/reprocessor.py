from __future__ import annotations
from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from tse_ingest.logging_config import backend_logger
from tse_ingest.models.base import SessionLocal
from tse_ingest.models.import_batch import ImportBatch, ImportBatchRow
from tse_ingest.models.import_job import ImportJob
from tse_ingest.models.job_status_enum import TERMINAL_STATUSES
from tse_ingest.models.status_enum import BatchStatus, BatchRowStatus
from tse_ingest.utils.time import utcnow
from .batch_engine import bulk_insert
from .errors import JobNotFoundError, JobStateError
from .events import EventBroadcaster, broadcaster
from .job_store import get_job
from .schemas import get_family

# How many row errors are kept in a batch's error_summary
ERROR_SAMPLE_SIZE = 5
# Emit a batch-status event every N replayed rows
STATUS_EVERY = 100


async def _get_batch(batch_id: int) -> ImportBatch:
    async with SessionLocal() as session:
        batch = await session.get(ImportBatch, batch_id)
    if batch is None:
        raise JobNotFoundError(batch_id, "Batch")
    return batch


async def _finished_job(job_id: int) -> ImportJob:
    # A running process_file rewrites the job counters when it finishes
    job = await get_job(job_id)
    if job.status not in TERMINAL_STATUSES:
        raise JobStateError(
            f"Job {job_id} is {job.status.value}; batches can be reprocessed once the job has finished"
        )
    return job


async def _row_status_counts(batch_id: int) -> dict:
    async with SessionLocal() as session:
        res = await session.execute(
            select(ImportBatchRow.status, func.count())
            .where(ImportBatchRow.batch_id == batch_id)
            .group_by(ImportBatchRow.status)
        )
        return {getattr(s, "value", s): int(n) for s, n in res.all()}


async def reprocess_batch(batch_id: int, events: EventBroadcaster = broadcaster) -> dict:
    """
    Replay the failed rows of a failed batch one by one.
    Rows that already succeeded are left alone; the batch and its job
    counters are recomputed from the row outcomes.
    """
    batch = await _get_batch(batch_id)
    if batch.status != BatchStatus.failed:
        raise JobStateError(
            f"Batch {batch_id} is {getattr(batch.status, 'value', batch.status)}; only failed batches can be reprocessed"
        )
    job = await _finished_job(batch.import_job_id)
    family = get_family(job.record_type)
    job_id = job.id
    previous_errors = int(batch.error_count or 0)

    async with SessionLocal() as session:
        await session.execute(
            update(ImportBatchRow)
            .where((ImportBatchRow.batch_id == batch_id) & (ImportBatchRow.status == BatchRowStatus.failed))
            .values(status=BatchRowStatus.pending, error_type=None, error_message=None, processed_at=None)
        )
        await session.execute(
            update(ImportBatch)
            .where(ImportBatch.id == batch_id)
            .values(
                status=BatchStatus.pending,
                processed_rows=0,
                inserted_rows=0,
                skipped_rows=0,
                error_count=0,
                error_summary=None,
                completed_at=None,
            )
        )
        await session.commit()
        rows = (await session.execute(
            select(ImportBatchRow)
            .where((ImportBatchRow.batch_id == batch_id) & (ImportBatchRow.status == BatchRowStatus.pending))
            .order_by(ImportBatchRow.row_number)
        )).scalars().all()

    await _set_batch(batch_id, status=BatchStatus.processing, started_at=utcnow())
    events.batch_status(job_id, batch_id, batch.batch_index, BatchStatus.processing.value)
    backend_logger.info(f"[{family.label}] Job {job_id}: reprocessing {len(rows)} rows of batch {batch.batch_index}")

    newly_inserted = newly_skipped = still_failed = 0
    error_sample: list[str] = []
    for i, row in enumerate(rows, start=1):
        values = dict(row.parsed_data or {}, import_job_id=job_id)
        try:
            written = await bulk_insert(family.model, [values])
            status = BatchRowStatus.success if written else BatchRowStatus.skipped
            error_type = error_message = None
            if written:
                newly_inserted += 1
            else:
                newly_skipped += 1
        except SQLAlchemyError as e:
            status = BatchRowStatus.failed
            error_type = "insert_error"
            error_message = str(getattr(e, "orig", None) or e)[:500]
            still_failed += 1
            if len(error_sample) < ERROR_SAMPLE_SIZE:
                error_sample.append(f"Row {row.row_number}: {error_message}")
        async with SessionLocal() as session:
            await session.execute(
                update(ImportBatchRow)
                .where(ImportBatchRow.id == row.id)
                .values(status=status, error_type=error_type, error_message=error_message, processed_at=utcnow())
            )
            await session.commit()
        if i % STATUS_EVERY == 0:
            events.batch_status(
                job_id, batch_id, batch.batch_index, BatchStatus.processing.value,
                processedRows=i, totalRows=len(rows),
            )

    counts = await _row_status_counts(batch_id)
    inserted = counts.get(BatchRowStatus.success.value, 0)
    skipped = counts.get(BatchRowStatus.skipped.value, 0)
    errors = counts.get(BatchRowStatus.failed.value, 0)
    processed = inserted + skipped + errors
    final_status = BatchStatus.completed if errors == 0 or inserted > 0 else BatchStatus.failed
    await _set_batch(
        batch_id,
        status=final_status,
        processed_rows=processed,
        inserted_rows=inserted,
        skipped_rows=skipped,
        error_count=errors,
        error_summary="; ".join(error_sample) if error_sample else None,
        completed_at=utcnow(),
    )

    recovered = previous_errors - errors
    async with SessionLocal() as session:
        await session.execute(
            update(ImportJob)
            .where(ImportJob.id == job_id)
            .values(
                processed_rows=func.coalesce(ImportJob.processed_rows, 0) + newly_inserted,
                skipped_rows=ImportJob.skipped_rows + newly_skipped,
                error_count=ImportJob.error_count - recovered,
            )
        )
        await session.commit()

    events.batch_status(
        job_id, batch_id, batch.batch_index, final_status.value,
        insertedRows=inserted, skippedRows=skipped, errorCount=errors,
    )
    backend_logger.info(
        f"[{family.label}] Job {job_id}: batch {batch.batch_index} reprocessed -> {final_status.value} "
        f"(+{newly_inserted} inserted, {newly_skipped} skipped, {still_failed} still failing)"
    )
    return {
        "batchId": batch_id,
        "status": final_status.value,
        "processedRows": processed,
        "insertedRows": inserted,
        "skippedRows": skipped,
        "errorCount": errors,
        "newlyInserted": newly_inserted,
        "errors": error_sample,
    }


async def reprocess_all_failed(job_id: int, events: EventBroadcaster = broadcaster) -> dict:
    await _finished_job(job_id)
    async with SessionLocal() as session:
        res = await session.execute(
            select(ImportBatch.id)
            .where((ImportBatch.import_job_id == job_id) & (ImportBatch.status == BatchStatus.failed))
            .order_by(ImportBatch.batch_index)
        )
        batch_ids = [r[0] for r in res.all()]
    results = []
    for batch_id in batch_ids:
        results.append(await reprocess_batch(batch_id, events))
    return {
        "jobId": job_id,
        "batchesReprocessed": len(results),
        "totalInserted": sum(r["newlyInserted"] for r in results),
        "remainingErrors": sum(r["errorCount"] for r in results),
        "results": results,
    }


async def _set_batch(batch_id: int, **values) -> None:
    async with SessionLocal() as session:
        await session.execute(update(ImportBatch).where(ImportBatch.id == batch_id).values(**values))
        await session.commit()
