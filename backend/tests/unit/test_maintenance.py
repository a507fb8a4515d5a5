import pytest
from unittest.mock import patch, AsyncMock
from tse_ingest.services.importer import maintenance


@pytest.fixture(autouse=True)
def no_refreshers():
    maintenance.clear_summary_refreshers()
    yield
    maintenance.clear_summary_refreshers()


@pytest.mark.asyncio
async def test_refreshers_run_after_analyze(db):
    refresher = AsyncMock()
    maintenance.register_summary_refresher(refresher)
    with patch("tse_ingest.services.importer.maintenance.analyze_table", new=AsyncMock(return_value=True)) as analyze:
        maintenance.schedule_post_import_maintenance("party", 3, delay=0)
        await maintenance.wait_for_maintenance()
        analyze.assert_awaited_once_with("party")
    refresher.assert_awaited_once_with("party", 3)


@pytest.mark.asyncio
async def test_delete_path_skips_analyze(db):
    with patch("tse_ingest.services.importer.maintenance.analyze_table", new=AsyncMock()) as analyze:
        await maintenance.run_post_import_maintenance("candidate", 1, analyze=False, delay=0)
        analyze.assert_not_awaited()


@pytest.mark.asyncio
async def test_failing_refresher_does_not_stop_others(db):
    seen = []

    async def broken(record_type, job_id):
        raise RuntimeError("view missing")

    async def fine(record_type, job_id):
        seen.append(job_id)

    maintenance.register_summary_refresher(broken)
    maintenance.register_summary_refresher(fine)
    maintenance.register_summary_refresher(fine)

    await maintenance.run_post_import_maintenance("candidate", 9, analyze=False, delay=0)

    assert seen == [9]


@pytest.mark.asyncio
async def test_analyze_runs_on_sqlite(db):
    assert await maintenance.analyze_table("statistics") is True
