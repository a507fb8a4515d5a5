import pytest
from sqlalchemy import select
from conftest import create_job, write_csv
from tse_ingest.models.base import SessionLocal
from tse_ingest.models.import_batch import ImportBatchRow
from tse_ingest.models.import_job import ImportJob
from tse_ingest.models.job_status_enum import JobStatus
from tse_ingest.models.status_enum import BatchStatus, BatchRowStatus
from tse_ingest.services.importer.batch_engine import process_file
from tse_ingest.services.importer.cancellation import CancellationContext
from tse_ingest.services.importer.errors import JobNotFoundError, JobStateError
from tse_ingest.services.importer.job_store import update_job
from tse_ingest.services.importer.reprocessor import reprocess_batch, reprocess_all_failed
from tse_ingest.services.importer.schemas import PARTY, PARTY_MODERN

BROKEN = (5, 20, 41)


async def _failed_party_job(tmp_path, party_rows, events, batch_size=50):
    rows = party_rows(50)
    for i in BROKEN:
        rows[i][PARTY_MODERN.index_of("sg_partido")] = "#NULO"
    path = write_csv(tmp_path / "p.csv", rows)
    job_id = await create_job(record_type="party")
    result = await process_file(job_id, path, PARTY, CancellationContext(job_id), batch_size=batch_size, events=events)
    await update_job(job_id, status=JobStatus.completed)
    return job_id, result


@pytest.mark.asyncio
async def test_reprocess_recovers_good_rows(db, tmp_path, party_rows, events):
    job_id, result = await _failed_party_job(tmp_path, party_rows, events)
    (batch_id,) = result.batch_ids

    outcome = await reprocess_batch(batch_id, events)

    assert outcome["status"] == BatchStatus.completed.value
    assert outcome["insertedRows"] == 47
    assert outcome["newlyInserted"] == 47
    assert outcome["errorCount"] == 3
    # rows sit on lines 2..51
    assert [e.split(":")[0] for e in outcome["errors"]] == [f"Row {i + 2}" for i in BROKEN]

    async with SessionLocal() as session:
        job = await session.get(ImportJob, job_id)
        failed = (await session.execute(
            select(ImportBatchRow.row_number)
            .where((ImportBatchRow.batch_id == batch_id) & (ImportBatchRow.status == BatchRowStatus.failed))
            .order_by(ImportBatchRow.row_number)
        )).scalars().all()
    assert job.processed_rows == 47
    assert job.error_count == 3
    assert failed == [i + 2 for i in BROKEN]


@pytest.mark.asyncio
async def test_only_failed_batches_can_be_reprocessed(db, tmp_path, party_rows, events):
    job_id, result = await _failed_party_job(tmp_path, party_rows, events)
    (batch_id,) = result.batch_ids
    await reprocess_batch(batch_id, events)
    with pytest.raises(JobStateError):
        await reprocess_batch(batch_id, events)
    with pytest.raises(JobNotFoundError):
        await reprocess_batch(999999, events)


@pytest.mark.asyncio
async def test_reprocess_all_failed_walks_every_failed_batch(db, tmp_path, party_rows, events):
    job_id, result = await _failed_party_job(tmp_path, party_rows, events, batch_size=10)
    # broken rows land in batches 0, 2 and 4
    assert result.failed_batches == 3
    assert result.inserted == 20

    summary = await reprocess_all_failed(job_id, events)

    assert summary["batchesReprocessed"] == 3
    assert summary["totalInserted"] == 27
    assert summary["remainingErrors"] == 3
    async with SessionLocal() as session:
        job = await session.get(ImportJob, job_id)
    assert job.processed_rows == 47
    assert job.error_count == 3


@pytest.mark.asyncio
async def test_batches_of_running_job_are_not_reprocessed(db, tmp_path, party_rows, events):
    job_id, result = await _failed_party_job(tmp_path, party_rows, events)
    await update_job(job_id, status=JobStatus.processing)
    (batch_id,) = result.batch_ids

    # the running import still owns the job counters
    with pytest.raises(JobStateError):
        await reprocess_batch(batch_id, events)
    with pytest.raises(JobStateError):
        await reprocess_all_failed(job_id, events)

    async with SessionLocal() as session:
        job = await session.get(ImportJob, job_id)
    assert job.error_count == 50
