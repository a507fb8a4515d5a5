# file_storage.py
# Per-job temp directories and saved uploads

import os
import shutil
import tempfile
import aiofiles
from fastapi import UploadFile
from tse_ingest.logging_config import backend_logger

IMPORT_TMP_DIR = os.getenv("IMPORT_TMP_DIR") or tempfile.gettempdir()


def job_tmp_dir(job_id: int) -> str:
    return os.path.join(IMPORT_TMP_DIR, f"tse-import-{job_id}")


def remove_job_tmp_dir(job_id: int) -> None:
    path = job_tmp_dir(job_id)
    if os.path.isdir(path):
        shutil.rmtree(path, ignore_errors=True)
        backend_logger.debug(f"Removed temp dir {path}")


def remove_file(path) -> None:
    if path and os.path.isfile(path):
        try:
            os.remove(path)
        except OSError as e:
            backend_logger.warning(f"Could not remove {path}: {e}")


async def save_upload(upload_file: UploadFile) -> str:
    filename = upload_file.filename or "upload.tmp"
    suffix = os.path.splitext(str(filename))[-1] or ".tmp"
    os.makedirs(IMPORT_TMP_DIR, exist_ok=True)
    try:
        async with aiofiles.tempfile.NamedTemporaryFile(
            delete=False, suffix=suffix, prefix="tse-upload-", dir=IMPORT_TMP_DIR
        ) as tmp:
            while True:
                chunk = await upload_file.read(1024 * 1024)
                if not chunk:
                    break
                await tmp.write(chunk)
            tmp_path = str(tmp.name)
        backend_logger.debug(f"UPLOAD: saved {filename} -> {tmp_path}")
        return tmp_path
    except Exception as e:
        backend_logger.error(f"Failed to save upload {filename}: {e}")
        raise
