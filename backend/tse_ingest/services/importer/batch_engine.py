from __future__ import annotations
import asyncio
import os
from dataclasses import dataclass, field
from typing import Optional
from sqlalchemy import update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from tse_ingest.logging_config import backend_logger
from tse_ingest.models.base import SessionLocal, engine
from tse_ingest.models.import_batch import ImportBatch, ImportBatchRow
from tse_ingest.models.import_error import RAW_SNIPPET_LIMIT
from tse_ingest.models.status_enum import BatchStatus, BatchRowStatus
from tse_ingest.utils.time import utcnow
from .cancellation import CancellationContext
from .decoder import iter_rows, read_first_row, decode_row, raw_line, cell_as_int
from .errors import ArchiveFormatError, RowParseError
from .events import EventBroadcaster, broadcaster
from .job_store import delete_batches_by_job, log_import_error, update_job
from .schemas import RecordFamily, resolve_variant

BATCH_SIZE = int(os.getenv("IMPORT_BATCH_SIZE", "2000"))
# Job counters are written every N batches
COUNTER_FLUSH_EVERY = 5
# total_file_rows is written every N source rows
FILE_ROWS_FLUSH_EVERY = 50000
# Postgres caps bind params at 32767 per statement; SQLite >= 3.32 at 32766
MAX_BIND_PARAMS = int(os.getenv("IMPORT_MAX_BIND_PARAMS", "30000"))
ERROR_SUMMARY_LIMIT = 500


@dataclass
class BatchOutcome:
    inserted: int = 0
    skipped: int = 0
    errors: int = 0
    failed: bool = False


@dataclass
class ProcessResult:
    variant: str = ""
    column_count: int = 0
    total_file_rows: int = 0
    total_rows: int = 0
    inserted: int = 0
    db_duplicates: int = 0
    file_duplicates: int = 0
    filtered: int = 0
    parse_errors: int = 0
    batch_errors: int = 0
    batches: int = 0
    failed_batches: int = 0
    batch_ids: list = field(default_factory=list)

    @property
    def skipped(self) -> int:
        return self.filtered + self.db_duplicates + self.file_duplicates

    @property
    def errors(self) -> int:
        return self.parse_errors + self.batch_errors

    def job_counters(self) -> dict:
        return {
            "total_rows": self.total_rows,
            "processed_rows": self.inserted,
            "skipped_rows": self.skipped,
            "error_count": self.errors,
        }


def _insert_for(table):
    dialect = engine.dialect.name
    if dialect == "postgresql":
        return postgresql.insert(table)
    if dialect == "sqlite":
        return sqlite.insert(table)
    raise RuntimeError(f"Unsupported database dialect for conflict-ignoring inserts: {dialect}")


async def bulk_insert(model, records: list[dict]) -> int:
    """
    INSERT ... ON CONFLICT DO NOTHING in one transaction.
    Returns the number of rows the database actually wrote.
    """
    if not records:
        return 0
    table = model.__table__
    chunk_size = max(1, MAX_BIND_PARAMS // max(1, len(records[0])))
    inserted = 0
    async with SessionLocal() as session:
        async with session.begin():
            for start in range(0, len(records), chunk_size):
                chunk = records[start:start + chunk_size]
                res = await session.execute(_insert_for(table).values(chunk).on_conflict_do_nothing())
                inserted += max(res.rowcount or 0, 0)
    return inserted


async def create_batch(job_id: int, batch_index: int, row_start: int, batch_size: int) -> ImportBatch:
    # row_end/total_rows are provisional until the batch is flushed
    async with SessionLocal() as session:
        batch = ImportBatch(
            import_job_id=job_id,
            batch_index=batch_index,
            status=BatchStatus.pending,
            row_start=row_start,
            row_end=row_start + batch_size - 1,
            total_rows=batch_size,
        )
        session.add(batch)
        await session.commit()
        await session.refresh(batch)
        return batch


async def _update_batch(batch_id: int, **values) -> None:
    async with SessionLocal() as session:
        await session.execute(update(ImportBatch).where(ImportBatch.id == batch_id).values(**values))
        await session.commit()


async def _save_failed_rows(batch_id: int, pending: list, error: str) -> None:
    async with SessionLocal() as session:
        session.add_all([
            ImportBatchRow(
                batch_id=batch_id,
                row_number=line_no,
                raw_data=raw[:RAW_SNIPPET_LIMIT],
                parsed_data=record,
                status=BatchRowStatus.failed,
                error_type="batch_insert_error",
                error_message=error,
            )
            for line_no, record, raw in pending
        ])
        await session.commit()


async def insert_batch(
    job_id: int,
    batch: ImportBatch,
    pending: list,
    family: RecordFamily,
    events: EventBroadcaster = broadcaster,
) -> BatchOutcome:
    """Bulk-insert one batch and record its outcome. `pending` holds (line_no, record, raw) tuples."""
    row_end = pending[-1][0]
    size = len(pending)
    await _update_batch(
        batch.id, status=BatchStatus.processing, started_at=utcnow(), row_end=row_end, total_rows=size
    )
    records = [dict(record, import_job_id=job_id) for _, record, _ in pending]
    try:
        inserted = await bulk_insert(family.model, records)
    except SQLAlchemyError as e:
        message = str(getattr(e, "orig", None) or e)
        backend_logger.error(
            f"[{family.label}] Job {job_id}: batch {batch.batch_index} (rows {batch.row_start}-{row_end}) failed: {message}"
        )
        summary = f"Batch insert errors: {message}"[:ERROR_SUMMARY_LIMIT]
        await _save_failed_rows(batch.id, pending, message[:ERROR_SUMMARY_LIMIT])
        await _update_batch(
            batch.id,
            status=BatchStatus.failed,
            processed_rows=size,
            inserted_rows=0,
            skipped_rows=0,
            error_count=size,
            error_summary=summary,
            completed_at=utcnow(),
        )
        await log_import_error(
            job_id, batch.row_start, "batch_insert_error",
            f"Batch {batch.batch_index} (rows {batch.row_start}-{row_end}): {message}"[:ERROR_SUMMARY_LIMIT],
        )
        events.batch_error(job_id, batch.id, batch.batch_index, summary)
        events.batch_status(job_id, batch.id, batch.batch_index, BatchStatus.failed.value, errorCount=size)
        return BatchOutcome(errors=size, failed=True)

    skipped = size - inserted
    await _update_batch(
        batch.id,
        status=BatchStatus.completed,
        processed_rows=size,
        inserted_rows=inserted,
        skipped_rows=skipped,
        error_count=0,
        completed_at=utcnow(),
    )
    events.batch_status(
        job_id, batch.id, batch.batch_index, BatchStatus.completed.value,
        insertedRows=inserted, skippedRows=skipped,
    )
    return BatchOutcome(inserted=inserted, skipped=skipped)


async def process_file(
    job_id: int,
    path: str,
    family: RecordFamily,
    ctx: CancellationContext,
    cargo_filter: Optional[int] = None,
    batch_size: int = BATCH_SIZE,
    events: EventBroadcaster = broadcaster,
) -> ProcessResult:
    """
    Decode `path` and load it into the family's table in fixed-size batches.
    Rows failing to decode go to the error log and never reach a batch.
    """
    first = read_first_row(path)
    if first is None:
        raise ArchiveFormatError("Data file has no rows")
    variant = resolve_variant(family, len(first))
    expected_columns = len(first)
    cargo_index = variant.index_of("cd_cargo")
    tag = f"[{family.label}] Job {job_id}"
    backend_logger.info(f"{tag}: layout {variant.name} ({expected_columns} columns), batch size {batch_size}")

    await delete_batches_by_job(job_id)

    result = ProcessResult(variant=variant.name, column_count=expected_columns)
    seen_keys: set = set()
    pending: list = []
    batch: Optional[ImportBatch] = None

    async def _flush_counters():
        await update_job(job_id, **result.job_counters())
        events.job_progress(
            job_id, result.inserted, result.total_rows,
            totalFileRows=result.total_file_rows, errorCount=result.errors,
        )

    async def _flush_batch():
        nonlocal batch, pending
        outcome = await insert_batch(job_id, batch, pending, family, events)
        result.inserted += outcome.inserted
        result.db_duplicates += outcome.skipped
        result.batch_errors += outcome.errors
        result.batches += 1
        result.batch_ids.append(batch.id)
        if outcome.failed:
            result.failed_batches += 1
        batch, pending = None, []
        if result.batches % COUNTER_FLUSH_EVERY == 0:
            await _flush_counters()
            backend_logger.info(
                f"{tag}: {result.batches} batches, {result.inserted} inserted, "
                f"{result.db_duplicates + result.file_duplicates} duplicates, "
                f"{result.filtered} filtered, {result.errors} errors"
            )
        await asyncio.sleep(0)

    for line_no, cells in iter_rows(path):
        result.total_file_rows += 1
        if result.total_file_rows % FILE_ROWS_FLUSH_EVERY == 0:
            await update_job(job_id, total_file_rows=result.total_file_rows)
            ctx.raise_if_cancelled()

        if cargo_filter is not None and cell_as_int(cells, cargo_index) != cargo_filter:
            result.filtered += 1
            continue

        try:
            record = decode_row(family, variant, cells, expected_columns, line_no)
        except RowParseError as e:
            result.parse_errors += 1
            await log_import_error(job_id, line_no, "parse_error", str(e), raw_line(cells))
            continue

        key = family.row_key(record)
        if key is not None:
            if key in seen_keys:
                result.file_duplicates += 1
                continue
            seen_keys.add(key)

        if batch is None:
            ctx.raise_if_cancelled()
            batch = await create_batch(job_id, result.batches, line_no, batch_size)
        pending.append((line_no, record, raw_line(cells)))
        result.total_rows += 1
        if len(pending) >= batch_size:
            await _flush_batch()

    if pending:
        await _flush_batch()
    await update_job(job_id, total_file_rows=result.total_file_rows, **result.job_counters())
    events.job_progress(
        job_id, result.inserted, result.total_rows,
        totalFileRows=result.total_file_rows, errorCount=result.errors,
    )
    backend_logger.info(
        f"{tag}: done. {result.total_file_rows} rows read, {result.inserted} inserted, "
        f"{result.skipped} skipped, {result.errors} errors in {result.batches} batches"
    )
    return result
