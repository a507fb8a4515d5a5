from sqlalchemy import Column, BigInteger, Integer, Text, DateTime, ForeignKey, Index
from sqlalchemy.sql import func
from .base import Base, BigIntPK


class CandidateVote(Base):
    """Nominal votes per candidate and zone (votacao_candidato_munzona)."""

    __tablename__ = "tse_candidate_votes"
    __table_args__ = (
        Index(
            "tse_candidate_votes_unique_idx",
            "ano_eleicao", "cd_eleicao", "nr_turno", "sg_uf", "cd_municipio",
            "nr_zona", "cd_cargo", "nr_candidato", "st_voto_em_transito",
            unique=True,
        ),
        Index("ix_tse_cv_job", "import_job_id"),
        Index("ix_tse_cv_ano_uf_cargo", "ano_eleicao", "sg_uf", "cd_cargo"),
        Index("ix_tse_cv_sq_candidato", "sq_candidato"),
    )

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    import_job_id = Column(BigInteger, ForeignKey("tse_import_jobs.id", ondelete="CASCADE"))
    dt_geracao = Column(Text)
    hh_geracao = Column(Text)
    ano_eleicao = Column(Integer)
    cd_tipo_eleicao = Column(Integer)
    nm_tipo_eleicao = Column(Text)
    nr_turno = Column(Integer)
    cd_eleicao = Column(Integer)
    ds_eleicao = Column(Text)
    dt_eleicao = Column(Text)
    tp_abrangencia = Column(Text)
    sg_uf = Column(Text)
    sg_ue = Column(Text)
    nm_ue = Column(Text)
    cd_municipio = Column(Integer)
    nm_municipio = Column(Text)
    nr_zona = Column(Integer)
    cd_cargo = Column(Integer)
    ds_cargo = Column(Text)
    sq_candidato = Column(Text)
    nr_candidato = Column(Integer)
    nm_candidato = Column(Text)
    nm_urna_candidato = Column(Text)
    nm_social_candidato = Column(Text)
    cd_situacao_candidatura = Column(Integer)
    ds_situacao_candidatura = Column(Text)
    cd_detalhe_situacao_cand = Column(Integer)
    ds_detalhe_situacao_cand = Column(Text)
    cd_situacao_julgamento = Column(Integer)
    ds_situacao_julgamento = Column(Text)
    cd_situacao_cassacao = Column(Integer)
    ds_situacao_cassacao = Column(Text)
    cd_situacao_dconst_diploma = Column(Integer)
    ds_situacao_dconst_diploma = Column(Text)
    tp_agremiacao = Column(Text)
    nr_partido = Column(Integer)
    sg_partido = Column(Text)
    nm_partido = Column(Text)
    nr_federacao = Column(Integer)
    nm_federacao = Column(Text)
    sg_federacao = Column(Text)
    ds_composicao_federacao = Column(Text)
    sq_coligacao = Column(Text)
    nm_coligacao = Column(Text)
    ds_composicao_coligacao = Column(Text)
    st_voto_em_transito = Column(Text)
    qt_votos_nominais = Column(Integer)
    nm_tipo_destinacao_votos = Column(Text)
    qt_votos_nominais_validos = Column(Integer)
    cd_sit_tot_turno = Column(Integer)
    ds_sit_tot_turno = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class PartyVote(Base):
    """Party-level (legenda) votes per zone (votacao_partido_munzona)."""

    __tablename__ = "tse_party_votes"
    __table_args__ = (
        Index(
            "tse_party_votes_unique_idx",
            "ano_eleicao", "cd_eleicao", "nr_turno", "sg_uf", "cd_municipio",
            "nr_zona", "cd_cargo", "nr_partido", "st_voto_em_transito",
            unique=True,
        ),
        Index("ix_tse_pv_job", "import_job_id"),
        Index("ix_tse_pv_ano_uf_cargo", "ano_eleicao", "sg_uf", "cd_cargo"),
    )

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    import_job_id = Column(BigInteger, ForeignKey("tse_import_jobs.id", ondelete="CASCADE"))
    dt_geracao = Column(Text)
    hh_geracao = Column(Text)
    ano_eleicao = Column(Integer, nullable=False)
    cd_tipo_eleicao = Column(Integer)
    nm_tipo_eleicao = Column(Text)
    nr_turno = Column(Integer, nullable=False, default=1)
    cd_eleicao = Column(Integer)
    ds_eleicao = Column(Text)
    dt_eleicao = Column(Text)
    tp_abrangencia = Column(Text)
    sg_uf = Column(Text, nullable=False)
    sg_ue = Column(Text)
    nm_ue = Column(Text)
    cd_municipio = Column(Integer)
    nm_municipio = Column(Text)
    nr_zona = Column(Integer)
    cd_cargo = Column(Integer, nullable=False)
    ds_cargo = Column(Text)
    tp_agremiacao = Column(Text)
    nr_partido = Column(Integer, nullable=False)
    sg_partido = Column(Text, nullable=False)
    nm_partido = Column(Text)
    nr_federacao = Column(Integer)
    nm_federacao = Column(Text)
    sg_federacao = Column(Text)
    ds_composicao_federacao = Column(Text)
    sq_coligacao = Column(Text)
    nm_coligacao = Column(Text)
    ds_composicao_coligacao = Column(Text)
    st_voto_em_transito = Column(Text)
    qt_votos_legenda_validos = Column(Integer, default=0)
    qt_votos_nom_convr_leg_validos = Column(Integer, default=0)
    qt_total_votos_leg_validos = Column(Integer, default=0)
    qt_votos_nominais_validos = Column(Integer, default=0)
    qt_votos_legenda_anul_subjud = Column(Integer, default=0)
    qt_votos_nominais_anul_subjud = Column(Integer, default=0)
    qt_votos_legenda_anulados = Column(Integer, default=0)
    qt_votos_nominais_anulados = Column(Integer, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class ElectoralStatistic(Base):
    """Turnout and vote totals per zone (detalhe_votacao_munzona)."""

    __tablename__ = "tse_electoral_statistics"
    __table_args__ = (
        Index(
            "tse_electoral_stats_unique_idx",
            "ano_eleicao", "cd_eleicao", "nr_turno", "sg_uf", "cd_municipio",
            "nr_zona", "cd_cargo", "st_voto_em_transito",
            unique=True,
        ),
        Index("ix_tse_es_job", "import_job_id"),
        Index("ix_tse_es_ano_uf_cargo", "ano_eleicao", "sg_uf", "cd_cargo"),
    )

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    import_job_id = Column(BigInteger, ForeignKey("tse_import_jobs.id", ondelete="CASCADE"))
    dt_geracao = Column(Text)
    hh_geracao = Column(Text)
    ano_eleicao = Column(Integer, nullable=False)
    cd_tipo_eleicao = Column(Integer)
    nm_tipo_eleicao = Column(Text)
    nr_turno = Column(Integer, nullable=False, default=1)
    cd_eleicao = Column(Integer)
    ds_eleicao = Column(Text)
    dt_eleicao = Column(Text)
    tp_abrangencia = Column(Text)
    sg_uf = Column(Text, nullable=False)
    sg_ue = Column(Text)
    nm_ue = Column(Text)
    cd_municipio = Column(Integer)
    nm_municipio = Column(Text)
    nr_zona = Column(Integer)
    cd_cargo = Column(Integer, nullable=False)
    ds_cargo = Column(Text)
    qt_aptos = Column(Integer, default=0)
    qt_secoes_principais = Column(Integer, default=0)
    qt_secoes_agregadas = Column(Integer, default=0)
    qt_secoes_nao_instaladas = Column(Integer, default=0)
    qt_total_secoes = Column(Integer, default=0)
    qt_comparecimento = Column(Integer, default=0)
    qt_eleitores_secoes_nao_instaladas = Column(Integer, default=0)
    qt_abstencoes = Column(Integer, default=0)
    st_voto_em_transito = Column(Text)
    qt_votos = Column(Integer, default=0)
    qt_votos_concorrentes = Column(Integer, default=0)
    qt_total_votos_validos = Column(Integer, default=0)
    qt_votos_nominais_validos = Column(Integer, default=0)
    qt_total_votos_leg_validos = Column(Integer, default=0)
    qt_votos_leg_validos = Column(Integer, default=0)
    qt_votos_nom_convr_leg_validos = Column(Integer, default=0)
    qt_total_votos_anulados = Column(Integer, default=0)
    qt_votos_nominais_anulados = Column(Integer, default=0)
    qt_votos_legenda_anulados = Column(Integer, default=0)
    qt_total_votos_anul_subjud = Column(Integer, default=0)
    qt_votos_nominais_anul_subjud = Column(Integer, default=0)
    qt_votos_legenda_anul_subjud = Column(Integer, default=0)
    qt_votos_brancos = Column(Integer, default=0)
    qt_total_votos_nulos = Column(Integer, default=0)
    qt_votos_nulos = Column(Integer, default=0)
    qt_votos_nulos_tecnicos = Column(Integer, default=0)
    qt_votos_anulados_apu_sep = Column(Integer, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
