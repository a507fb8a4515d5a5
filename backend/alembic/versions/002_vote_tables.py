"""vote tables for candidate, party and turnout records

Revision ID: 002_vote_tables
Revises: 001_import_pipeline_tables
"""

from alembic import op


revision = "002_vote_tables"
down_revision = "001_import_pipeline_tables"
branch_labels = None
depends_on = None


ZONE_COLUMNS = """
            dt_geracao TEXT,
            hh_geracao TEXT,
            ano_eleicao INTEGER{not_null},
            cd_tipo_eleicao INTEGER,
            nm_tipo_eleicao TEXT,
            nr_turno INTEGER{not_null_turno},
            cd_eleicao INTEGER,
            ds_eleicao TEXT,
            dt_eleicao TEXT,
            tp_abrangencia TEXT,
            sg_uf TEXT{not_null},
            sg_ue TEXT,
            nm_ue TEXT,
            cd_municipio INTEGER,
            nm_municipio TEXT,
            nr_zona INTEGER,
            cd_cargo INTEGER{not_null},
            ds_cargo TEXT,"""


def _zone(required: bool) -> str:
    return ZONE_COLUMNS.format(
        not_null=" NOT NULL" if required else "",
        not_null_turno=" NOT NULL DEFAULT 1" if required else "",
    )


def upgrade() -> None:
    op.execute(
        f"""
        CREATE TABLE IF NOT EXISTS tse_candidate_votes (
            id BIGSERIAL PRIMARY KEY,
            import_job_id BIGINT REFERENCES tse_import_jobs(id) ON DELETE CASCADE,{_zone(False)}
            sq_candidato TEXT,
            nr_candidato INTEGER,
            nm_candidato TEXT,
            nm_urna_candidato TEXT,
            nm_social_candidato TEXT,
            cd_situacao_candidatura INTEGER,
            ds_situacao_candidatura TEXT,
            cd_detalhe_situacao_cand INTEGER,
            ds_detalhe_situacao_cand TEXT,
            cd_situacao_julgamento INTEGER,
            ds_situacao_julgamento TEXT,
            cd_situacao_cassacao INTEGER,
            ds_situacao_cassacao TEXT,
            cd_situacao_dconst_diploma INTEGER,
            ds_situacao_dconst_diploma TEXT,
            tp_agremiacao TEXT,
            nr_partido INTEGER,
            sg_partido TEXT,
            nm_partido TEXT,
            nr_federacao INTEGER,
            nm_federacao TEXT,
            sg_federacao TEXT,
            ds_composicao_federacao TEXT,
            sq_coligacao TEXT,
            nm_coligacao TEXT,
            ds_composicao_coligacao TEXT,
            st_voto_em_transito TEXT,
            qt_votos_nominais INTEGER,
            nm_tipo_destinacao_votos TEXT,
            qt_votos_nominais_validos INTEGER,
            cd_sit_tot_turno INTEGER,
            ds_sit_tot_turno TEXT,
            created_at TIMESTAMPTZ DEFAULT now()
        );
        CREATE UNIQUE INDEX IF NOT EXISTS tse_candidate_votes_unique_idx ON tse_candidate_votes (
            ano_eleicao, cd_eleicao, nr_turno, sg_uf, cd_municipio, nr_zona, cd_cargo,
            nr_candidato, st_voto_em_transito
        );
        CREATE INDEX IF NOT EXISTS ix_tse_cv_job ON tse_candidate_votes (import_job_id);
        CREATE INDEX IF NOT EXISTS ix_tse_cv_ano_uf_cargo ON tse_candidate_votes (ano_eleicao, sg_uf, cd_cargo);
        CREATE INDEX IF NOT EXISTS ix_tse_cv_sq_candidato ON tse_candidate_votes (sq_candidato);

        CREATE TABLE IF NOT EXISTS tse_party_votes (
            id BIGSERIAL PRIMARY KEY,
            import_job_id BIGINT REFERENCES tse_import_jobs(id) ON DELETE CASCADE,{_zone(True)}
            tp_agremiacao TEXT,
            nr_partido INTEGER NOT NULL,
            sg_partido TEXT NOT NULL,
            nm_partido TEXT,
            nr_federacao INTEGER,
            nm_federacao TEXT,
            sg_federacao TEXT,
            ds_composicao_federacao TEXT,
            sq_coligacao TEXT,
            nm_coligacao TEXT,
            ds_composicao_coligacao TEXT,
            st_voto_em_transito TEXT,
            qt_votos_legenda_validos INTEGER DEFAULT 0,
            qt_votos_nom_convr_leg_validos INTEGER DEFAULT 0,
            qt_total_votos_leg_validos INTEGER DEFAULT 0,
            qt_votos_nominais_validos INTEGER DEFAULT 0,
            qt_votos_legenda_anul_subjud INTEGER DEFAULT 0,
            qt_votos_nominais_anul_subjud INTEGER DEFAULT 0,
            qt_votos_legenda_anulados INTEGER DEFAULT 0,
            qt_votos_nominais_anulados INTEGER DEFAULT 0,
            created_at TIMESTAMPTZ DEFAULT now()
        );
        CREATE UNIQUE INDEX IF NOT EXISTS tse_party_votes_unique_idx ON tse_party_votes (
            ano_eleicao, cd_eleicao, nr_turno, sg_uf, cd_municipio, nr_zona, cd_cargo,
            nr_partido, st_voto_em_transito
        );
        CREATE INDEX IF NOT EXISTS ix_tse_pv_job ON tse_party_votes (import_job_id);
        CREATE INDEX IF NOT EXISTS ix_tse_pv_ano_uf_cargo ON tse_party_votes (ano_eleicao, sg_uf, cd_cargo);

        CREATE TABLE IF NOT EXISTS tse_electoral_statistics (
            id BIGSERIAL PRIMARY KEY,
            import_job_id BIGINT REFERENCES tse_import_jobs(id) ON DELETE CASCADE,{_zone(True)}
            qt_aptos INTEGER DEFAULT 0,
            qt_secoes_principais INTEGER DEFAULT 0,
            qt_secoes_agregadas INTEGER DEFAULT 0,
            qt_secoes_nao_instaladas INTEGER DEFAULT 0,
            qt_total_secoes INTEGER DEFAULT 0,
            qt_comparecimento INTEGER DEFAULT 0,
            qt_eleitores_secoes_nao_instaladas INTEGER DEFAULT 0,
            qt_abstencoes INTEGER DEFAULT 0,
            st_voto_em_transito TEXT,
            qt_votos INTEGER DEFAULT 0,
            qt_votos_concorrentes INTEGER DEFAULT 0,
            qt_total_votos_validos INTEGER DEFAULT 0,
            qt_votos_nominais_validos INTEGER DEFAULT 0,
            qt_total_votos_leg_validos INTEGER DEFAULT 0,
            qt_votos_leg_validos INTEGER DEFAULT 0,
            qt_votos_nom_convr_leg_validos INTEGER DEFAULT 0,
            qt_total_votos_anulados INTEGER DEFAULT 0,
            qt_votos_nominais_anulados INTEGER DEFAULT 0,
            qt_votos_legenda_anulados INTEGER DEFAULT 0,
            qt_total_votos_anul_subjud INTEGER DEFAULT 0,
            qt_votos_nominais_anul_subjud INTEGER DEFAULT 0,
            qt_votos_legenda_anul_subjud INTEGER DEFAULT 0,
            qt_votos_brancos INTEGER DEFAULT 0,
            qt_total_votos_nulos INTEGER DEFAULT 0,
            qt_votos_nulos INTEGER DEFAULT 0,
            qt_votos_nulos_tecnicos INTEGER DEFAULT 0,
            qt_votos_anulados_apu_sep INTEGER DEFAULT 0,
            created_at TIMESTAMPTZ DEFAULT now()
        );
        CREATE UNIQUE INDEX IF NOT EXISTS tse_electoral_stats_unique_idx ON tse_electoral_statistics (
            ano_eleicao, cd_eleicao, nr_turno, sg_uf, cd_municipio, nr_zona, cd_cargo,
            st_voto_em_transito
        );
        CREATE INDEX IF NOT EXISTS ix_tse_es_job ON tse_electoral_statistics (import_job_id);
        CREATE INDEX IF NOT EXISTS ix_tse_es_ano_uf_cargo ON tse_electoral_statistics (ano_eleicao, sg_uf, cd_cargo);
        """
    )


def downgrade() -> None:
    op.execute(
        """
        DROP TABLE IF EXISTS tse_electoral_statistics;
        DROP TABLE IF EXISTS tse_party_votes;
        DROP TABLE IF EXISTS tse_candidate_votes;
        """
    )
