import pytest
from tse_ingest.services.importer.errors import UnknownLayoutError, InvalidSourceError
from tse_ingest.services.importer.schemas import (
    CANDIDATE, PARTY, STATISTICS, FAMILIES, SchemaVariant,
    get_family, resolve_variant,
)


@pytest.mark.parametrize(
    "family,column_count,expected",
    [
        (CANDIDATE, 38, "legacy"),
        (CANDIDATE, 30, "legacy"),
        (CANDIDATE, 50, "modern"),
        (CANDIDATE, 39, "modern"),
        (PARTY, 23, "legacy"),
        (PARTY, 20, "legacy"),
        (PARTY, 28, "intermediate"),
        (PARTY, 30, "intermediate"),
        (PARTY, 38, "modern"),
        (PARTY, 31, "modern"),
        (STATISTICS, 45, "detalhe"),
        (STATISTICS, 47, "detalhe"),
    ],
)
def test_known_column_counts_resolve_to_one_layout(family, column_count, expected):
    variant = resolve_variant(family, column_count)
    assert variant.name == expected
    assert sum(1 for v in family.variants if v.matches(column_count)) == 1


@pytest.mark.parametrize(
    "family,column_count",
    [(CANDIDATE, 29), (CANDIDATE, 51), (PARTY, 19), (PARTY, 39), (STATISTICS, 39), (STATISTICS, 48), (PARTY, 0)],
)
def test_unknown_column_count_raises(family, column_count):
    with pytest.raises(UnknownLayoutError) as exc:
        resolve_variant(family, column_count)
    assert exc.value.column_count == column_count
    assert exc.value.family == family.key


def test_mapping_widths_match_published_layouts():
    widths = {(v.family, v.name): len(v.columns) for f in FAMILIES.values() for v in f.variants}
    assert widths == {
        ("candidate", "legacy"): 38,
        ("candidate", "modern"): 50,
        ("party", "legacy"): 23,
        ("party", "intermediate"): 28,
        ("party", "modern"): 38,
        ("statistics", "detalhe"): 45,
    }


def test_positions_of_key_fields():
    modern = resolve_variant(CANDIDATE, 50)
    assert modern.index_of("cd_cargo") == 16
    assert modern.index_of("nr_partido") == 34
    assert modern.index_of("qt_votos_nominais") == 45
    legacy = resolve_variant(CANDIDATE, 38)
    assert legacy.index_of("qt_votos_nominais") == 37
    assert resolve_variant(PARTY, 23).index_of("nr_partido") == 18
    assert resolve_variant(PARTY, 28).index_of("nr_partido") == 19
    assert resolve_variant(STATISTICS, 45).index_of("qt_aptos") == 18


def test_sequence_ids_are_not_numeric():
    modern = resolve_variant(CANDIDATE, 50)
    assert "sq_candidato" not in modern.numeric
    assert "sq_coligacao" not in modern.numeric
    assert {"ano_eleicao", "nr_turno", "cd_municipio", "qt_votos_nominais"} <= modern.numeric


def test_variant_rejects_unmapped_numeric_field():
    with pytest.raises(ValueError):
        SchemaVariant(
            family="x", name="bad", min_columns=2, max_columns=2,
            columns=("a", "b"), numeric=frozenset({"c"}),
        )


def test_variant_rejects_mapping_wider_than_range():
    with pytest.raises(ValueError):
        SchemaVariant(family="x", name="bad", min_columns=1, max_columns=1, columns=("a", "b"))


def test_party_row_key_defaults_transit_flag():
    record = PARTY.blank_record()
    record.update(ano_eleicao=2022, sg_uf="SP", cd_cargo=6, nr_partido=13, st_voto_em_transito=None)
    other = dict(record, st_voto_em_transito="N")
    assert PARTY.row_key(record) == PARTY.row_key(other)
    assert CANDIDATE.row_key(CANDIDATE.blank_record()) is None


def test_get_family_unknown_type():
    assert get_family("party") is PARTY
    with pytest.raises(InvalidSourceError):
        get_family("mayor")
