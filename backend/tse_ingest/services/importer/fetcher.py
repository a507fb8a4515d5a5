from __future__ import annotations
import asyncio
import os
import time
from typing import Awaitable, Callable, Optional
from urllib.parse import urlsplit
import aiofiles
import httpx
from tse_ingest.logging_config import backend_logger
from .cancellation import CancellationContext
from .errors import ArchiveDownloadError, InvalidSourceError, JobCancelled

ALLOWED_HOSTS = tuple(
    h.strip().lower()
    for h in os.getenv("IMPORT_ALLOWED_HOSTS", "cdn.tse.jus.br,dadosabertos.tse.jus.br").split(",")
    if h.strip()
)
ARCHIVE_EXTENSIONS = (".zip",)

# Seconds between persisted download-progress updates
PROGRESS_INTERVAL = float(os.getenv("IMPORT_PROGRESS_INTERVAL", "2.0"))
DOWNLOAD_CHUNK = int(os.getenv("IMPORT_DOWNLOAD_CHUNK", str(1024 * 1024)))
DOWNLOAD_TIMEOUT = float(os.getenv("IMPORT_DOWNLOAD_TIMEOUT", "60"))

ProgressCallback = Callable[[int, int], Awaitable[None]]


def validate_source_url(url: str) -> str:
    if not url or not isinstance(url, str):
        raise InvalidSourceError("URL is required")
    parts = urlsplit(url.strip())
    if parts.scheme != "https" or (parts.hostname or "").lower() not in ALLOWED_HOSTS:
        raise InvalidSourceError(
            f"URL must be https and hosted on one of: {', '.join(ALLOWED_HOSTS)}"
        )
    if not parts.path.lower().endswith(ARCHIVE_EXTENSIONS):
        raise InvalidSourceError("URL must point to a .zip archive")
    return url.strip()


def filename_from_url(url: str) -> str:
    return os.path.basename(urlsplit(url).path) or "download.zip"


async def _next_chunk(chunks) -> Optional[bytes]:
    try:
        return await chunks.__anext__()
    except StopAsyncIteration:
        return None


async def _read_or_abort(chunks, ctx: CancellationContext) -> Optional[bytes]:
    read = asyncio.ensure_future(_next_chunk(chunks))
    abort = asyncio.ensure_future(ctx.abort_event.wait())
    try:
        done, _ = await asyncio.wait({read, abort}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        abort.cancel()
    if read in done:
        return read.result()
    read.cancel()
    try:
        await read
    except asyncio.CancelledError:
        pass
    raise JobCancelled(ctx.job_id)


async def download_archive(
    url: str,
    dest_path: str,
    ctx: CancellationContext,
    progress: Optional[ProgressCallback] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> int:
    """
    Stream `url` into `dest_path`. Returns the number of bytes written.

    progress(downloaded, total) fires at most once per PROGRESS_INTERVAL
    and once more at the end; total is 0 when the server sends no length.
    """
    own_client = client is None
    if client is None:
        client = httpx.AsyncClient(timeout=DOWNLOAD_TIMEOUT, follow_redirects=True)
    downloaded = 0
    try:
        async with client.stream("GET", url, follow_redirects=True) as resp:
            resp.raise_for_status()
            total = int(resp.headers.get("content-length") or 0)
            backend_logger.info(f"Downloading {url} ({total or '?'} bytes) -> {dest_path}")
            chunks = resp.aiter_bytes(DOWNLOAD_CHUNK)
            last_report = time.monotonic()
            async with aiofiles.open(dest_path, "wb") as fh:
                while True:
                    ctx.raise_if_cancelled()
                    chunk = await _read_or_abort(chunks, ctx)
                    if chunk is None:
                        break
                    await fh.write(chunk)
                    downloaded += len(chunk)
                    now = time.monotonic()
                    if progress is not None and now - last_report >= PROGRESS_INTERVAL:
                        last_report = now
                        await progress(downloaded, total)
            if progress is not None:
                await progress(downloaded, total)
    except httpx.HTTPStatusError as e:
        raise ArchiveDownloadError(
            f"Failed to download: HTTP {e.response.status_code} for {url}"
        ) from e
    except httpx.HTTPError as e:
        raise ArchiveDownloadError(f"Failed to download {url}: {e}") from e
    finally:
        if own_client:
            await client.aclose()
    backend_logger.info(f"Download finished: {downloaded} bytes from {url}")
    return downloaded
