import os
import sys
import zipfile
from pathlib import Path
import pytest
import pytest_asyncio

# Ensure backend root is on sys.path and test-mode flag is set BEFORE importing the app
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
os.environ.setdefault("PYTEST_RUN", "1")
os.environ.setdefault("IMPORT_MAINTENANCE_DELAY", "0")

from fastapi.testclient import TestClient
from tse_ingest.main import app
from tse_ingest.models.base import Base, engine
from tse_ingest.services.importer.events import EventBroadcaster
from tse_ingest.services.importer.schemas import (
    CANDIDATE_MODERN, PARTY_MODERN, STATISTICS_DETAIL,
)

HEADER_PREFIX = "DT_GERACAO;HH_GERACAO;ANO_ELEICAO"


async def _create_schema():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@pytest_asyncio.fixture
async def db():
    await _create_schema()
    yield engine
    await engine.dispose()


@pytest.fixture
def events():
    return EventBroadcaster()


@pytest.fixture
def client():
    with TestClient(app) as c:
        c.portal.call(_create_schema)
        yield c
        c.portal.call(engine.dispose)


@pytest.fixture
def import_tmp(tmp_path, monkeypatch):
    from tse_ingest.services.importer import file_storage, pipeline
    monkeypatch.setattr(file_storage, "IMPORT_TMP_DIR", str(tmp_path))
    monkeypatch.setattr(pipeline, "IMPORT_TMP_DIR", str(tmp_path))
    return tmp_path


def zone_values(**overrides) -> dict:
    values = {
        "dt_geracao": "01/11/2022",
        "hh_geracao": "10:00:00",
        "ano_eleicao": "2022",
        "cd_tipo_eleicao": "2",
        "nm_tipo_eleicao": "Eleição Ordinária",
        "nr_turno": "1",
        "cd_eleicao": "546",
        "ds_eleicao": "Eleições Gerais Estaduais 2022",
        "dt_eleicao": "02/10/2022",
        "tp_abrangencia": "E",
        "sg_uf": "SP",
        "sg_ue": "SP",
        "nm_ue": "SÃO PAULO",
        "cd_municipio": "71072",
        "nm_municipio": "SÃO PAULO",
        "nr_zona": "1",
        "cd_cargo": "6",
        "ds_cargo": "Deputado Federal",
        "st_voto_em_transito": "N",
    }
    values.update({k: str(v) for k, v in overrides.items()})
    return values


def make_row(variant, **overrides) -> list[str]:
    """One source row for `variant`; unspecified cells get a plausible filler."""
    values = zone_values(**overrides)
    cells = []
    for column in variant.columns:
        if column in values:
            cells.append(values[column])
        elif column in variant.numeric:
            cells.append("10")
        else:
            cells.append(f"{column.upper()}")
    return cells


def write_csv(path, rows: list[list[str]], header: list[str] | None = None) -> str:
    header = header or [c.upper() for c in CANDIDATE_MODERN.columns]
    lines = [";".join(f'"{h}"' for h in header)]
    lines += [";".join(f'"{c}"' for c in row) for row in rows]
    Path(path).write_bytes(("\r\n".join(lines) + "\r\n").encode("latin-1"))
    return str(path)


def write_zip(path, entries: dict[str, bytes]) -> str:
    with zipfile.ZipFile(path, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, data in entries.items():
            zf.writestr(name, data)
    return str(path)


@pytest.fixture
def candidate_rows():
    return lambda n, **kw: [make_row(CANDIDATE_MODERN, nr_candidato=1000 + i, **kw) for i in range(n)]


@pytest.fixture
def party_rows():
    return lambda n, **kw: [make_row(PARTY_MODERN, nr_zona=i + 1, **kw) for i in range(n)]


@pytest.fixture
def statistics_rows():
    return lambda n, **kw: [make_row(STATISTICS_DETAIL, nr_zona=i + 1, **kw) for i in range(n)]


async def create_job(**values) -> int:
    from tse_ingest.models.base import SessionLocal
    from tse_ingest.models.import_job import ImportJob
    from tse_ingest.models.job_status_enum import JobStatus

    values.setdefault("record_type", "candidate")
    values.setdefault("source_kind", "upload")
    values.setdefault("filename", "votacao.csv")
    values.setdefault("status", JobStatus.processing)
    async with SessionLocal() as session:
        job = ImportJob(**values)
        session.add(job)
        await session.commit()
        await session.refresh(job)
        return job.id
