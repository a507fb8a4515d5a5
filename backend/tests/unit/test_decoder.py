from pathlib import Path
import pytest
from conftest import make_row, write_csv
from tse_ingest.services.importer.decoder import (
    coerce_int, decode_row, iter_rows, normalize_cell, read_first_row,
)
from tse_ingest.services.importer.errors import RowParseError
from tse_ingest.services.importer.schemas import (
    CANDIDATE, CANDIDATE_LEGACY, CANDIDATE_MODERN, PARTY, PARTY_LEGACY, PARTY_MODERN, STATISTICS, STATISTICS_DETAIL,
)


@pytest.mark.parametrize("token", ["#NULO", "#NE", "", "   ", None])
def test_placeholders_normalize_to_none(token):
    assert normalize_cell(token) is None


def test_coerce_int_sentinels_depend_on_family():
    assert coerce_int("-1", None) is None
    assert coerce_int("-3", None) is None
    assert coerce_int("-1", 0) == 0
    assert coerce_int(None, 0) == 0
    assert coerce_int("42", None) == 42
    assert coerce_int("-2", None) == -2
    assert coerce_int("abc", None) is None


def test_coerce_int_non_finite_numbers_are_absent():
    for value in ("inf", "-Infinity", "1e400", "nan"):
        assert coerce_int(value, None) is None
        assert coerce_int(value, 0) == 0


def test_non_finite_vote_count_decodes_as_absent():
    cells = make_row(PARTY_MODERN, qt_votos_legenda_validos="inf")
    record = decode_row(PARTY, PARTY_MODERN, cells, len(cells))
    assert record["qt_votos_legenda_validos"] == 0


def test_iter_rows_skips_header_and_blank_lines(tmp_path):
    path = tmp_path / "data.csv"
    Path(path).write_bytes(
        'H1;H2\r\n"a";"b"\r\n\r\n"c";"d"\r\n'.encode("latin-1")
    )
    rows = list(iter_rows(str(path)))
    assert rows == [(2, ["a", "b"]), (4, ["c", "d"])]
    assert read_first_row(str(path)) == ["a", "b"]


def test_iter_rows_reads_latin1(tmp_path):
    path = write_csv(tmp_path / "d.csv", [make_row(CANDIDATE_MODERN, nm_municipio="SÃO JOÃO DEL-REI")])
    (_, cells), = list(iter_rows(path))
    assert cells[CANDIDATE_MODERN.index_of("nm_municipio")] == "SÃO JOÃO DEL-REI"


def test_read_first_row_empty_file(tmp_path):
    path = tmp_path / "empty.csv"
    path.write_bytes(b"H1;H2\r\n")
    assert read_first_row(str(path)) is None


def test_decode_candidate_modern_row():
    cells = make_row(CANDIDATE_MODERN, nr_candidato=1301, qt_votos_nominais=555, cd_municipio="-1", sq_candidato="250001234567")
    record = decode_row(CANDIDATE, CANDIDATE_MODERN, cells, len(cells))
    assert record["nr_candidato"] == 1301
    assert record["qt_votos_nominais"] == 555
    assert record["cd_municipio"] is None
    assert record["sq_candidato"] == "250001234567"
    assert record["ano_eleicao"] == 2022
    assert record["sg_uf"] == "SP"


def test_decode_candidate_legacy_fills_missing_modern_fields():
    cells = make_row(CANDIDATE_LEGACY, nr_candidato=45)
    record = decode_row(CANDIDATE, CANDIDATE_LEGACY, cells, len(cells))
    assert record["nr_candidato"] == 45
    assert record["nr_federacao"] is None
    assert record["qt_votos_nominais_validos"] is None
    assert set(record) == set(CANDIDATE.columns)


def test_decode_party_absent_numbers_become_zero():
    cells = make_row(PARTY_LEGACY, nr_partido=13, qt_votos_legenda_validos="#NULO", qt_votos_nominais_validos="-3")
    record = decode_row(PARTY, PARTY_LEGACY, cells, len(cells))
    assert record["qt_votos_legenda_validos"] == 0
    assert record["qt_votos_nominais_validos"] == 0
    assert record["qt_votos_nominais_anulados"] == 0


def test_decode_statistics_row():
    cells = make_row(STATISTICS_DETAIL, qt_aptos=1000, qt_abstencoes="#NE")
    record = decode_row(STATISTICS, STATISTICS_DETAIL, cells, len(cells))
    assert record["qt_aptos"] == 1000
    assert record["qt_abstencoes"] == 0


def test_decode_rejects_column_count_mismatch():
    cells = make_row(CANDIDATE_MODERN)
    with pytest.raises(RowParseError) as exc:
        decode_row(CANDIDATE, CANDIDATE_MODERN, cells[:-2], len(cells), row_number=7)
    assert "Expected 50 columns, found 48" in str(exc.value)
    assert exc.value.row_number == 7


def test_decode_rejects_missing_required_field():
    cells = make_row(CANDIDATE_MODERN, sg_uf="#NULO")
    with pytest.raises(RowParseError) as exc:
        decode_row(CANDIDATE, CANDIDATE_MODERN, cells, len(cells))
    assert "sg_uf" in str(exc.value)


def test_decode_party_zero_required_number_is_missing():
    cells = make_row(PARTY_LEGACY, nr_partido="-1")
    with pytest.raises(RowParseError) as exc:
        decode_row(PARTY, PARTY_LEGACY, cells, len(cells))
    assert "nr_partido" in str(exc.value)
