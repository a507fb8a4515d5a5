import os
from typing import Optional
from fastapi import APIRouter, Depends, File, Form, UploadFile
from tse_ingest.logging_config import backend_logger
from tse_ingest.services.importer import jobs as job_service
from tse_ingest.services.importer.errors import ImportPipelineError, InvalidSourceError
from tse_ingest.services.importer.file_storage import remove_file, save_upload
from tse_ingest.services.importer.queue import ImportQueue
from tse_ingest.services.importer.zip_utils import DATA_EXTENSIONS
from .deps import get_queue

router = APIRouter()

UPLOAD_EXTENSIONS = (".zip",) + DATA_EXTENSIONS


@router.post("/imports/upload", status_code=201)
async def upload_import(
    file: UploadFile = File(...),
    record_type: str = Form("candidate"),
    election_year: Optional[int] = Form(None),
    election_type: Optional[str] = Form(None),
    uf: Optional[str] = Form(None),
    cargo_filter: Optional[int] = Form(None),
    selected_file: Optional[str] = Form(None),
    queue: ImportQueue = Depends(get_queue),
):
    backend_logger.info(f"UPLOAD: {file.filename}, content_type={file.content_type}")
    filename = file.filename or "upload"
    if not filename.lower().endswith(UPLOAD_EXTENSIONS):
        raise InvalidSourceError("Only .zip, .csv or .txt files can be imported")
    tmp_path = await save_upload(file)
    try:
        job_id = await job_service.submit(
            queue,
            record_type=record_type,
            file_path=tmp_path,
            filename=os.path.basename(filename),
            election_year=election_year,
            election_type=election_type,
            uf=uf,
            cargo_filter=cargo_filter,
            selected_entry=selected_file,
        )
    except ImportPipelineError:
        remove_file(tmp_path)
        raise
    return await job_service.job_detail(job_id)
