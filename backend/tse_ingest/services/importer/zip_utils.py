# zip_utils.py
# Locating and extracting the data file inside a TSE archive

import asyncio
import os
import zipfile
from typing import Optional
from tse_ingest.logging_config import backend_logger
from .cancellation import CancellationContext
from .errors import ArchiveFormatError

DATA_EXTENSIONS = (".csv", ".txt")
NATIONWIDE_MARKERS = ("_BRASIL.CSV", "_BRASIL.TXT")
COPY_CHUNK = 1024 * 1024


def is_data_entry(name: str) -> bool:
    if name.endswith("/"):
        return False
    if name.startswith("__MACOSX") or "/__MACOSX/" in name:
        return False
    base = os.path.basename(name)
    if base.startswith("._"):
        return False
    return base.lower().endswith(DATA_EXTENSIONS)


def is_nationwide(name: str) -> bool:
    upper = name.upper()
    return any(marker in upper for marker in NATIONWIDE_MARKERS)


def select_data_entry(names: list[str], selected: Optional[str] = None) -> str:
    """
    Pick the entry to import:
      1. `selected`, matched against full path or basename (error when absent)
      2. the nationwide consolidated file (*_BRASIL.csv)
      3. the first data file in name order
    """
    candidates = sorted(n for n in names if is_data_entry(n))
    if not candidates:
        raise ArchiveFormatError("No CSV/TXT data file found in archive")
    if selected:
        for name in candidates:
            if name == selected or os.path.basename(name) == selected:
                return name
        raise ArchiveFormatError(f"Selected file not found in archive: {selected}")
    for name in candidates:
        if is_nationwide(name):
            return name
    return candidates[0]


def _open_archive(path_to_zip: str) -> zipfile.ZipFile:
    try:
        return zipfile.ZipFile(path_to_zip, "r")
    except (zipfile.BadZipFile, OSError) as e:
        raise ArchiveFormatError(f"Cannot open archive {os.path.basename(path_to_zip)}: {e}") from e


def list_data_entries(path_to_zip: str) -> list[dict]:
    with _open_archive(path_to_zip) as zf:
        return [
            {
                "name": info.filename,
                "size": info.file_size,
                "nationwide": is_nationwide(info.filename),
            }
            for info in sorted(zf.infolist(), key=lambda i: i.filename)
            if is_data_entry(info.filename)
        ]


def recommended_entry(entries: list[dict]) -> Optional[str]:
    if not entries:
        return None
    for entry in entries:
        if entry["nationwide"]:
            return entry["name"]
    return entries[0]["name"]


async def extract_data_file(
    path_to_zip: str,
    extract_to: str,
    selected: Optional[str] = None,
    ctx: Optional[CancellationContext] = None,
) -> tuple[str, str]:
    """
    Extract the chosen data entry into `extract_to`; returns (local_path, entry_name).
    With `ctx`, cancellation is checked between copied chunks.
    """
    loop = asyncio.get_running_loop()

    def _extract():
        with _open_archive(path_to_zip) as zf:
            entry = select_data_entry(zf.namelist(), selected)
            os.makedirs(extract_to, exist_ok=True)
            target = os.path.join(extract_to, os.path.basename(entry))
            backend_logger.debug(f"Extracting {entry} from {path_to_zip} -> {target}")
            try:
                with zf.open(entry) as src, open(target, "wb") as dst:
                    while True:
                        if ctx is not None:
                            ctx.raise_if_cancelled()
                        chunk = src.read(COPY_CHUNK)
                        if not chunk:
                            break
                        dst.write(chunk)
            except (zipfile.BadZipFile, zipfile.LargeZipFile, EOFError) as e:
                raise ArchiveFormatError(f"Corrupt archive entry {entry}: {e}") from e
            return target, entry

    return await loop.run_in_executor(None, _extract)
