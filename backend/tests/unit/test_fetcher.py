import asyncio
import httpx
import pytest
from tse_ingest.services.importer import fetcher
from tse_ingest.services.importer.cancellation import CancellationContext
from tse_ingest.services.importer.errors import ArchiveDownloadError, InvalidSourceError, JobCancelled

URL = "https://cdn.tse.jus.br/estatistica/sead/odsele/votacao_candidato_munzona/votacao_candidato_munzona_2022.zip"


@pytest.mark.parametrize(
    "url",
    [
        "http://cdn.tse.jus.br/x.zip",
        "https://evil.example.com/x.zip",
        "https://cdn.tse.jus.br.evil.com/x.zip",
        "https://cdn.tse.jus.br/x.csv",
        "",
    ],
)
def test_validate_source_url_rejects(url):
    with pytest.raises(InvalidSourceError):
        fetcher.validate_source_url(url)


def test_validate_source_url_accepts_allowed_hosts():
    assert fetcher.validate_source_url(URL) == URL
    assert fetcher.validate_source_url("https://dadosabertos.tse.jus.br/dataset/x/file.ZIP")
    assert fetcher.filename_from_url(URL) == "votacao_candidato_munzona_2022.zip"


@pytest.mark.asyncio
async def test_download_writes_file_and_reports_progress(tmp_path):
    body = b"x" * 5000

    def handler(request):
        return httpx.Response(200, content=body, headers={"content-length": str(len(body))})

    reports = []

    async def progress(downloaded, total):
        reports.append((downloaded, total))

    dest = tmp_path / "a.zip"
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        size = await fetcher.download_archive(URL, str(dest), CancellationContext(1), progress, client)
    assert size == 5000
    assert dest.read_bytes() == body
    assert reports[-1] == (5000, 5000)


@pytest.mark.asyncio
async def test_download_http_error(tmp_path):
    transport = httpx.MockTransport(lambda request: httpx.Response(404))
    async with httpx.AsyncClient(transport=transport) as client:
        with pytest.raises(ArchiveDownloadError, match="404"):
            await fetcher.download_archive(URL, str(tmp_path / "a.zip"), CancellationContext(1), client=client)


@pytest.mark.asyncio
async def test_download_connection_error(tmp_path):
    def handler(request):
        raise httpx.ConnectError("boom", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(ArchiveDownloadError):
            await fetcher.download_archive(URL, str(tmp_path / "a.zip"), CancellationContext(1), client=client)


class SlowStream(httpx.AsyncByteStream):
    def __init__(self, started: asyncio.Event):
        self.started = started

    async def __aiter__(self):
        yield b"first-chunk"
        self.started.set()
        # Stalls until the read is aborted
        await asyncio.sleep(30)
        yield b"never"


@pytest.mark.asyncio
async def test_cancel_aborts_stalled_read(tmp_path, monkeypatch):
    monkeypatch.setattr(fetcher, "PROGRESS_INTERVAL", 0.0)
    monkeypatch.setattr(fetcher, "DOWNLOAD_CHUNK", len(b"first-chunk"))
    started = asyncio.Event()
    ctx = CancellationContext(7)
    reports = []

    async def progress(downloaded, total):
        reports.append(downloaded)

    transport = httpx.MockTransport(lambda request: httpx.Response(200, stream=SlowStream(started)))
    async with httpx.AsyncClient(transport=transport) as client:
        task = asyncio.create_task(
            fetcher.download_archive(URL, str(tmp_path / "a.zip"), ctx, progress, client)
        )
        await asyncio.wait_for(started.wait(), timeout=5)
        ctx.cancel()
        with pytest.raises(JobCancelled) as exc:
            await asyncio.wait_for(task, timeout=5)
    assert exc.value.job_id == 7
    assert reports == [len(b"first-chunk")]


@pytest.mark.asyncio
async def test_cancel_before_first_read(tmp_path):
    ctx = CancellationContext(3)
    ctx.cancel()
    transport = httpx.MockTransport(lambda request: httpx.Response(200, content=b"abc"))
    async with httpx.AsyncClient(transport=transport) as client:
        with pytest.raises(JobCancelled):
            await fetcher.download_archive(URL, str(tmp_path / "a.zip"), ctx, client=client)
