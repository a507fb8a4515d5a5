import pytest
from conftest import write_zip
from tse_ingest.services.importer.cancellation import CancellationContext
from tse_ingest.services.importer.errors import ArchiveFormatError, JobCancelled
from tse_ingest.services.importer.zip_utils import (
    extract_data_file, is_data_entry, list_data_entries, recommended_entry, select_data_entry,
)

NAMES = [
    "leiame.pdf",
    "__MACOSX/._votacao_candidato_munzona_2022_BRASIL.csv",
    "votacao_candidato_munzona_2022_SP.csv",
    "votacao_candidato_munzona_2022_AC.csv",
    "votacao_candidato_munzona_2022_BRASIL.csv",
]


def test_is_data_entry_filters_metadata():
    assert is_data_entry("a/b/file.TXT")
    assert not is_data_entry("__MACOSX/file.csv")
    assert not is_data_entry("dir/._file.csv")
    assert not is_data_entry("dir/")
    assert not is_data_entry("leiame.pdf")


def test_nationwide_entry_preferred():
    assert select_data_entry(NAMES) == "votacao_candidato_munzona_2022_BRASIL.csv"


def test_first_entry_in_name_order_without_nationwide():
    names = [n for n in NAMES if "BRASIL" not in n]
    assert select_data_entry(names) == "votacao_candidato_munzona_2022_AC.csv"


def test_selected_entry_matches_basename():
    names = ["2022/votacao_candidato_munzona_2022_SP.csv"] + NAMES
    assert select_data_entry(names, "votacao_candidato_munzona_2022_SP.csv") == "votacao_candidato_munzona_2022_SP.csv"
    assert select_data_entry(names, "2022/votacao_candidato_munzona_2022_SP.csv") == "2022/votacao_candidato_munzona_2022_SP.csv"


def test_selected_entry_missing_is_an_error():
    with pytest.raises(ArchiveFormatError, match="Selected file not found"):
        select_data_entry(NAMES, "votacao_candidato_munzona_2022_RJ.csv")


def test_no_data_entries():
    with pytest.raises(ArchiveFormatError):
        select_data_entry(["leiame.pdf", "__MACOSX/x.csv"])


def test_list_data_entries(tmp_path):
    path = write_zip(tmp_path / "a.zip", {
        "leiame.pdf": b"x",
        "votacao_partido_munzona_2022_SP.csv": b"a;b\r\n",
        "votacao_partido_munzona_2022_BRASIL.csv": b"a;b\r\n1;2\r\n",
    })
    entries = list_data_entries(path)
    assert [e["name"] for e in entries] == [
        "votacao_partido_munzona_2022_BRASIL.csv",
        "votacao_partido_munzona_2022_SP.csv",
    ]
    assert entries[0]["nationwide"] is True
    assert recommended_entry(entries) == "votacao_partido_munzona_2022_BRASIL.csv"
    assert recommended_entry([]) is None


def test_list_data_entries_bad_archive(tmp_path):
    bad = tmp_path / "bad.zip"
    bad.write_bytes(b"not a zip")
    with pytest.raises(ArchiveFormatError):
        list_data_entries(str(bad))


@pytest.mark.asyncio
async def test_extract_data_file(tmp_path):
    path = write_zip(tmp_path / "a.zip", {
        "sub/votacao_2022_SP.csv": b"h\r\nrow-sp\r\n",
        "sub/votacao_2022_BRASIL.csv": b"h\r\nrow-br\r\n",
    })
    out_dir = tmp_path / "out"
    local, entry = await extract_data_file(path, str(out_dir))
    assert entry == "sub/votacao_2022_BRASIL.csv"
    assert local == str(out_dir / "votacao_2022_BRASIL.csv")
    assert (out_dir / "votacao_2022_BRASIL.csv").read_bytes() == b"h\r\nrow-br\r\n"

    local, entry = await extract_data_file(path, str(out_dir), selected="votacao_2022_SP.csv")
    assert entry == "sub/votacao_2022_SP.csv"


@pytest.mark.asyncio
async def test_extract_stops_when_cancelled(tmp_path):
    path = write_zip(tmp_path / "a.zip", {"votacao_2022_SP.csv": b"h\r\nrow\r\n"})
    ctx = CancellationContext(5)
    ctx.cancel()
    with pytest.raises(JobCancelled):
        await extract_data_file(path, str(tmp_path / "out"), ctx=ctx)
