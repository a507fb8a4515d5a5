from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Optional
from tse_ingest.models.votes import CandidateVote, PartyVote, ElectoralStatistic
from .errors import UnknownLayoutError, InvalidSourceError

# Columns shared by every TSE "munzona" layout, positions 0..17
ZONE_COLUMNS = (
    "dt_geracao", "hh_geracao", "ano_eleicao", "cd_tipo_eleicao", "nm_tipo_eleicao",
    "nr_turno", "cd_eleicao", "ds_eleicao", "dt_eleicao", "tp_abrangencia",
    "sg_uf", "sg_ue", "nm_ue", "cd_municipio", "nm_municipio",
    "nr_zona", "cd_cargo", "ds_cargo",
)

CANDIDATE_COLUMNS = ZONE_COLUMNS + (
    "sq_candidato", "nr_candidato", "nm_candidato", "nm_urna_candidato",
    "nm_social_candidato", "cd_situacao_candidatura", "ds_situacao_candidatura",
    "cd_detalhe_situacao_cand", "ds_detalhe_situacao_cand",
)

FEDERATION_COLUMNS = ("nr_federacao", "nm_federacao", "sg_federacao", "ds_composicao_federacao")
COALITION_COLUMNS = ("sq_coligacao", "nm_coligacao", "ds_composicao_coligacao")

NUMERIC_PREFIXES = ("qt_", "nr_", "cd_")

# Sentinels TSE uses for "not applicable" / "not informed"
NUMERIC_SENTINELS = (-1, -3)


def _numeric_fields(columns) -> frozenset:
    # sq_* identifiers stay text even though they look numeric
    return frozenset(
        c for c in columns if c.startswith(NUMERIC_PREFIXES) or c == "ano_eleicao"
    )


@dataclass(frozen=True)
class SchemaVariant:
    """
    One historical column layout of a record family.
    A row with min_columns..max_columns cells (inclusive) is read with this
    mapping; `columns[i]` names the field at position i.
    """

    family: str
    name: str
    min_columns: int
    max_columns: int
    columns: tuple
    numeric: frozenset = field(default=frozenset())

    def __post_init__(self):
        if self.min_columns > self.max_columns:
            raise ValueError(f"{self.family}/{self.name}: empty column range")
        if len(self.columns) > self.max_columns:
            raise ValueError(f"{self.family}/{self.name}: mapping wider than max_columns")
        if len(set(self.columns)) != len(self.columns):
            raise ValueError(f"{self.family}/{self.name}: duplicated column names")
        if not self.numeric:
            object.__setattr__(self, "numeric", _numeric_fields(self.columns))
        unknown = set(self.numeric) - set(self.columns)
        if unknown:
            raise ValueError(f"{self.family}/{self.name}: numeric fields not mapped: {sorted(unknown)}")

    def matches(self, column_count: int) -> bool:
        return self.min_columns <= column_count <= self.max_columns

    def index_of(self, column: str) -> Optional[int]:
        try:
            return self.columns.index(column)
        except ValueError:
            return None


@dataclass(frozen=True)
class RecordFamily:
    key: str
    label: str
    model: Any
    variants: tuple
    required: tuple
    # Value stored for absent numeric cells and for NUMERIC_SENTINELS
    absent_numeric: Optional[int]
    # Natural key checked in-process before rows reach a batch
    dedup_key: Optional[tuple] = None

    def __post_init__(self):
        ordered = sorted(self.variants, key=lambda v: v.min_columns)
        for prev, nxt in zip(ordered, ordered[1:]):
            if nxt.min_columns <= prev.max_columns:
                raise ValueError(f"{self.key}: overlapping layouts {prev.name}/{nxt.name}")
        table_cols = {c.name for c in self.model.__table__.columns}
        for v in self.variants:
            missing = set(v.columns) - table_cols
            if missing:
                raise ValueError(f"{self.key}/{v.name}: columns without table field: {sorted(missing)}")

    @property
    def table_name(self) -> str:
        return self.model.__tablename__

    @property
    def columns(self) -> tuple:
        """Every mapped field across all layouts, in first-seen order."""
        seen: dict = {}
        for v in self.variants:
            for c in v.columns:
                seen.setdefault(c, None)
        return tuple(seen)

    @property
    def numeric(self) -> frozenset:
        out: set = set()
        for v in self.variants:
            out |= v.numeric
        return frozenset(out)

    def blank_record(self) -> dict:
        numeric = self.numeric
        return {c: (self.absent_numeric if c in numeric else None) for c in self.columns}

    def row_key(self, record: dict) -> Optional[tuple]:
        if not self.dedup_key:
            return None
        return tuple(
            (record.get(f) or "N") if f == "st_voto_em_transito" else record.get(f)
            for f in self.dedup_key
        )


CANDIDATE_LEGACY = SchemaVariant(
    family="candidate",
    name="legacy",
    min_columns=30,
    max_columns=38,
    columns=CANDIDATE_COLUMNS + (
        "tp_agremiacao", "nr_partido", "sg_partido", "nm_partido",
    ) + COALITION_COLUMNS + (
        "cd_sit_tot_turno", "ds_sit_tot_turno", "st_voto_em_transito", "qt_votos_nominais",
    ),
)

CANDIDATE_MODERN = SchemaVariant(
    family="candidate",
    name="modern",
    min_columns=39,
    max_columns=50,
    columns=CANDIDATE_COLUMNS + (
        "cd_situacao_julgamento", "ds_situacao_julgamento",
        "cd_situacao_cassacao", "ds_situacao_cassacao",
        "cd_situacao_dconst_diploma", "ds_situacao_dconst_diploma",
        "tp_agremiacao", "nr_partido", "sg_partido", "nm_partido",
    ) + FEDERATION_COLUMNS + COALITION_COLUMNS + (
        "st_voto_em_transito", "qt_votos_nominais", "nm_tipo_destinacao_votos",
        "qt_votos_nominais_validos", "cd_sit_tot_turno", "ds_sit_tot_turno",
    ),
)

PARTY_LEGACY = SchemaVariant(
    family="party",
    name="legacy",
    min_columns=20,
    max_columns=23,
    columns=ZONE_COLUMNS + (
        "nr_partido", "sg_partido", "nm_partido",
        "qt_votos_nominais_validos", "qt_votos_legenda_validos",
    ),
)

PARTY_INTERMEDIATE = SchemaVariant(
    family="party",
    name="intermediate",
    min_columns=24,
    max_columns=30,
    columns=ZONE_COLUMNS + (
        "tp_agremiacao", "nr_partido", "sg_partido", "nm_partido",
    ) + COALITION_COLUMNS + (
        "st_voto_em_transito", "qt_votos_nominais_validos", "qt_votos_legenda_validos",
    ),
)

PARTY_MODERN = SchemaVariant(
    family="party",
    name="modern",
    min_columns=31,
    max_columns=38,
    columns=ZONE_COLUMNS + (
        "tp_agremiacao", "nr_partido", "sg_partido", "nm_partido",
    ) + FEDERATION_COLUMNS + COALITION_COLUMNS + (
        "st_voto_em_transito",
        "qt_votos_legenda_validos", "qt_votos_nom_convr_leg_validos",
        "qt_total_votos_leg_validos", "qt_votos_nominais_validos",
        "qt_votos_legenda_anul_subjud", "qt_votos_nominais_anul_subjud",
        "qt_votos_legenda_anulados", "qt_votos_nominais_anulados",
    ),
)

STATISTICS_DETAIL = SchemaVariant(
    family="statistics",
    name="detalhe",
    min_columns=40,
    max_columns=47,
    columns=ZONE_COLUMNS + (
        "qt_aptos", "qt_secoes_principais", "qt_secoes_agregadas",
        "qt_secoes_nao_instaladas", "qt_total_secoes", "qt_comparecimento",
        "qt_eleitores_secoes_nao_instaladas", "qt_abstencoes",
        "st_voto_em_transito",
        "qt_votos", "qt_votos_concorrentes", "qt_total_votos_validos",
        "qt_votos_nominais_validos", "qt_total_votos_leg_validos",
        "qt_votos_leg_validos", "qt_votos_nom_convr_leg_validos",
        "qt_total_votos_anulados", "qt_votos_nominais_anulados",
        "qt_votos_legenda_anulados", "qt_total_votos_anul_subjud",
        "qt_votos_nominais_anul_subjud", "qt_votos_legenda_anul_subjud",
        "qt_votos_brancos", "qt_total_votos_nulos", "qt_votos_nulos",
        "qt_votos_nulos_tecnicos", "qt_votos_anulados_apu_sep",
    ),
)

CANDIDATE = RecordFamily(
    key="candidate",
    label="CANDIDATO",
    model=CandidateVote,
    variants=(CANDIDATE_LEGACY, CANDIDATE_MODERN),
    required=("ano_eleicao", "sg_uf", "cd_cargo", "nr_candidato"),
    absent_numeric=None,
)

PARTY = RecordFamily(
    key="party",
    label="PARTIDO",
    model=PartyVote,
    variants=(PARTY_LEGACY, PARTY_INTERMEDIATE, PARTY_MODERN),
    required=("ano_eleicao", "sg_uf", "cd_cargo", "nr_partido"),
    absent_numeric=0,
    dedup_key=(
        "ano_eleicao", "cd_eleicao", "nr_turno", "sg_uf", "cd_municipio",
        "nr_zona", "cd_cargo", "nr_partido", "st_voto_em_transito",
    ),
)

STATISTICS = RecordFamily(
    key="statistics",
    label="DETALHE",
    model=ElectoralStatistic,
    variants=(STATISTICS_DETAIL,),
    required=("ano_eleicao", "sg_uf", "cd_cargo"),
    absent_numeric=0,
)

FAMILIES = {f.key: f for f in (CANDIDATE, PARTY, STATISTICS)}


def get_family(record_type: str) -> RecordFamily:
    try:
        return FAMILIES[record_type]
    except KeyError:
        raise InvalidSourceError(
            f"Unknown record type '{record_type}', expected one of {sorted(FAMILIES)}"
        ) from None


def resolve_variant(family: RecordFamily, column_count: int) -> SchemaVariant:
    for variant in family.variants:
        if variant.matches(column_count):
            return variant
    raise UnknownLayoutError(family.key, column_count)
