from typing import Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from tse_ingest.logging_config import backend_logger
from tse_ingest.services.importer import jobs as job_service
from tse_ingest.services.importer.pipeline import preview_archive
from tse_ingest.services.importer.queue import ImportQueue
from tse_ingest.services.importer.reprocessor import reprocess_all_failed, reprocess_batch
from tse_ingest.services.importer.validator import (
    validate_integrity, run_quality_checks, list_validation_runs,
)
from .deps import get_queue

router = APIRouter(prefix="/imports")


class UrlImportRequest(BaseModel):
    url: str
    record_type: str = "candidate"
    election_year: Optional[int] = None
    election_type: Optional[str] = None
    uf: Optional[str] = None
    cargo_filter: Optional[int] = None
    selected_file: Optional[str] = None


class PreviewRequest(BaseModel):
    url: str


@router.post("/url", status_code=201)
async def import_from_url(body: UrlImportRequest, queue: ImportQueue = Depends(get_queue)):
    backend_logger.info(f"IMPORT URL: {body.url} ({body.record_type})")
    job_id = await job_service.submit(
        queue,
        record_type=body.record_type,
        source_url=body.url,
        election_year=body.election_year,
        election_type=body.election_type,
        uf=body.uf,
        cargo_filter=body.cargo_filter,
        selected_entry=body.selected_file,
    )
    return await job_service.job_detail(job_id)


@router.post("/preview-files")
async def preview_files(body: PreviewRequest):
    return await preview_archive(body.url)


@router.get("")
async def list_imports(limit: int = 50):
    return {"jobs": await job_service.list_jobs(limit)}


@router.get("/queue/status")
async def queue_status(queue: ImportQueue = Depends(get_queue)):
    return queue.status()


@router.get("/{job_id}")
async def get_import(job_id: int):
    return await job_service.job_detail(job_id)


@router.get("/{job_id}/errors")
async def get_import_errors(job_id: int, limit: int = 100):
    return {"errors": await job_service.list_errors(job_id, limit)}


@router.get("/{job_id}/batches")
async def get_import_batches(job_id: int, status: Optional[str] = None):
    batches = await job_service.list_batches(job_id, status)
    return {
        "batches": batches,
        "failed": sum(1 for b in batches if b["status"] == "failed"),
    }


@router.get("/{job_id}/batches/{batch_id}")
async def get_import_batch(job_id: int, batch_id: int, row_status: Optional[str] = None):
    return await job_service.batch_detail(job_id, batch_id, row_status)


@router.post("/{job_id}/batches/reprocess-all-failed")
async def reprocess_failed_batches(job_id: int):
    return await reprocess_all_failed(job_id)


@router.post("/{job_id}/batches/{batch_id}/reprocess")
async def reprocess_import_batch(job_id: int, batch_id: int):
    await job_service.batch_detail(job_id, batch_id)
    return await reprocess_batch(batch_id)


@router.post("/{job_id}/cancel")
async def cancel_import(job_id: int, queue: ImportQueue = Depends(get_queue)):
    cancelled = await job_service.cancel(queue, job_id)
    return {"cancelled": cancelled, "job": await job_service.job_detail(job_id)}


@router.post("/{job_id}/restart")
async def restart_import(job_id: int, queue: ImportQueue = Depends(get_queue)):
    await job_service.restart(queue, job_id)
    return await job_service.job_detail(job_id)


@router.delete("/{job_id}")
async def delete_import(job_id: int, queue: ImportQueue = Depends(get_queue)):
    await job_service.delete_job(queue, job_id)
    return {"deleted": job_id}


@router.post("/{job_id}/validate-integrity")
async def validate_import(job_id: int):
    return await validate_integrity(job_id)


@router.get("/{job_id}/validation")
async def get_validation_runs(job_id: int):
    await job_service.job_detail(job_id)
    return {"runs": await list_validation_runs(job_id)}


@router.post("/{job_id}/validation/run")
async def run_validation(job_id: int):
    return await run_quality_checks(job_id)
