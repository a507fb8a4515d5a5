"""
003_validation_runs

Validation runs and the issues they flag.
"""

from alembic import op

revision = "003_validation_runs"
down_revision = "002_vote_tables"
branch_labels = None
depends_on = None


def upgrade():
    op.execute(
        """
        DO $$
        BEGIN
            IF NOT EXISTS (SELECT 1 FROM pg_type WHERE typname = 'tse_issue_status') THEN
                CREATE TYPE tse_issue_status AS ENUM ('open', 'resolved', 'ignored');
            END IF;
        END$$;

        CREATE TABLE IF NOT EXISTS tse_validation_runs (
            id BIGSERIAL PRIMARY KEY,
            import_job_id BIGINT NOT NULL REFERENCES tse_import_jobs(id) ON DELETE CASCADE,
            kind TEXT NOT NULL DEFAULT 'integrity',
            status TEXT NOT NULL DEFAULT 'running',
            total_records_checked INTEGER NOT NULL DEFAULT 0,
            issues_found INTEGER NOT NULL DEFAULT 0,
            summary JSONB,
            started_at TIMESTAMPTZ DEFAULT now(),
            completed_at TIMESTAMPTZ
        );
        CREATE INDEX IF NOT EXISTS ix_tse_validation_runs_job ON tse_validation_runs (import_job_id);

        CREATE TABLE IF NOT EXISTS tse_validation_issues (
            id BIGSERIAL PRIMARY KEY,
            run_id BIGINT NOT NULL REFERENCES tse_validation_runs(id) ON DELETE CASCADE,
            type TEXT NOT NULL,
            severity TEXT NOT NULL DEFAULT 'warning',
            category TEXT NOT NULL,
            row_reference TEXT,
            field TEXT,
            current_value TEXT,
            message TEXT NOT NULL,
            status tse_issue_status NOT NULL DEFAULT 'open',
            resolved_by TEXT,
            resolved_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ DEFAULT now()
        );
        CREATE INDEX IF NOT EXISTS ix_tse_validation_issues_run ON tse_validation_issues (run_id, status);
        """
    )


def downgrade():
    op.execute(
        """
        DROP TABLE IF EXISTS tse_validation_issues;
        DROP TABLE IF EXISTS tse_validation_runs;
        """
    )
