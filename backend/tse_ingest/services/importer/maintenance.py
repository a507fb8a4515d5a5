from __future__ import annotations
import asyncio
import os
from typing import Awaitable, Callable, Optional
from sqlalchemy import text
from tse_ingest.logging_config import backend_logger
from tse_ingest.models.base import engine
from .schemas import FAMILIES

MAINTENANCE_DELAY = float(os.getenv("IMPORT_MAINTENANCE_DELAY", "2.0"))

SummaryRefresher = Callable[[str, Optional[int]], Awaitable[None]]

_refreshers: list[SummaryRefresher] = []
_tasks: set[asyncio.Task] = set()


def register_summary_refresher(fn: SummaryRefresher) -> SummaryRefresher:
    """Hook for recomputing downstream summaries after a table changes."""
    if fn not in _refreshers:
        _refreshers.append(fn)
    return fn


def clear_summary_refreshers() -> None:
    _refreshers.clear()


async def analyze_table(record_type: str) -> bool:
    family = FAMILIES[record_type]
    try:
        async with engine.begin() as conn:
            await conn.execute(text(f"ANALYZE {family.table_name}"))
        backend_logger.info(f"ANALYZE {family.table_name} done")
        return True
    except Exception as e:
        backend_logger.warning(f"ANALYZE {family.table_name} failed (ignored): {e}")
        return False


async def refresh_summaries(record_type: str, job_id: Optional[int] = None) -> None:
    for fn in list(_refreshers):
        try:
            await fn(record_type, job_id)
        except Exception as e:
            backend_logger.error(f"Summary refresh {getattr(fn, '__name__', fn)} failed: {e}")


async def run_post_import_maintenance(
    record_type: str,
    job_id: Optional[int] = None,
    analyze: bool = True,
    delay: Optional[float] = None,
) -> None:
    await asyncio.sleep(MAINTENANCE_DELAY if delay is None else delay)
    if analyze:
        await analyze_table(record_type)
    await refresh_summaries(record_type, job_id)


def schedule_post_import_maintenance(
    record_type: str,
    job_id: Optional[int] = None,
    analyze: bool = True,
    delay: Optional[float] = None,
) -> asyncio.Task:
    task = asyncio.create_task(run_post_import_maintenance(record_type, job_id, analyze, delay))
    _tasks.add(task)
    task.add_done_callback(_tasks.discard)
    return task


async def wait_for_maintenance() -> None:
    if _tasks:
        await asyncio.gather(*list(_tasks), return_exceptions=True)
