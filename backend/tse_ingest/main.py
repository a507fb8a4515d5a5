import subprocess
import os
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from tse_ingest.logging_config import backend_logger
from tse_ingest.api.imports import router as imports_router
from tse_ingest.api.upload import router as upload_router
from tse_ingest.api.progress import router as progress_router
from tse_ingest.api.validation import router as validation_router
from tse_ingest.services.importer import jobs as job_service
from tse_ingest.services.importer.errors import (
    ImportPipelineError,
    InvalidSourceError,
    DuplicateImportError,
    JobNotFoundError,
    JobStateError,
)
from tse_ingest.services.importer.queue import ImportQueue

BACKEND_HOST = os.getenv("BACKEND_HOST", "localhost")
BACKEND_PORT = int(os.getenv("BACKEND_PORT", "8000"))
ALEMBIC_INI = os.getenv("ALEMBIC_INI", "/alembic.ini")


def _is_test_run() -> bool:
    return os.getenv("PYTEST_RUN", "0") in ("1", "true", "TRUE")


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.import_queue = ImportQueue()
    # In tests we want a fast startup without migrations or queue recovery
    if not _is_test_run():
        if os.getenv("DATABASE_URL"):
            subprocess.run(["alembic", "-c", ALEMBIC_INI, "upgrade", "head"], check=True)
        try:
            await job_service.fail_orphaned_jobs()
            await job_service.resume_pending_jobs(app.state.import_queue)
        except Exception as e:
            backend_logger.error(f"Import queue recovery failed: {e}")
    backend_logger.info(f"Backend available at: http://{BACKEND_HOST}:{BACKEND_PORT}")
    yield


app = FastAPI(title="TSE Import Backend", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(imports_router)
app.include_router(upload_router)
app.include_router(progress_router)
app.include_router(validation_router)


@app.exception_handler(ImportPipelineError)
async def import_error_handler(request: Request, exc: ImportPipelineError):
    if isinstance(exc, JobNotFoundError):
        status = 404
    elif isinstance(exc, (DuplicateImportError, JobStateError)):
        status = 409
    elif isinstance(exc, InvalidSourceError):
        status = 400
    else:
        status = 500
    content = {"error": str(exc)}
    if isinstance(exc, DuplicateImportError):
        content["existingJobId"] = exc.existing_job_id
        content["existingStatus"] = exc.existing_status
    backend_logger.info(f"HTTP {request.method} {request.url.path} -> {status}: {exc}")
    return JSONResponse(status_code=status, content=content)


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(status_code=400, content={"error": str(exc)})


@app.get("/healthcheck")
async def healthcheck():
    backend_logger.info("HEALTHCHECK")
    return JSONResponse(content={"status": "ok"})
