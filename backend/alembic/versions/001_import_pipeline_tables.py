"""
001_import_pipeline_tables

Import jobs, batches, batch row snapshots and the diagnostic error log.
"""

from alembic import op

revision = "001_import_pipeline_tables"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.execute(
        """
        DO $$
        BEGIN
            IF NOT EXISTS (SELECT 1 FROM pg_type WHERE typname = 'tse_job_status') THEN
                CREATE TYPE tse_job_status AS ENUM (
                    'pending', 'queued', 'downloading', 'extracting', 'processing',
                    'completed', 'failed', 'cancelled'
                );
            END IF;
            IF NOT EXISTS (SELECT 1 FROM pg_type WHERE typname = 'tse_validation_status') THEN
                CREATE TYPE tse_validation_status AS ENUM ('pending', 'passed', 'failed');
            END IF;
            IF NOT EXISTS (SELECT 1 FROM pg_type WHERE typname = 'tse_batch_status') THEN
                CREATE TYPE tse_batch_status AS ENUM ('pending', 'processing', 'completed', 'failed');
            END IF;
            IF NOT EXISTS (SELECT 1 FROM pg_type WHERE typname = 'tse_batch_row_status') THEN
                CREATE TYPE tse_batch_row_status AS ENUM ('pending', 'success', 'failed', 'skipped');
            END IF;
        END$$;

        CREATE TABLE IF NOT EXISTS tse_import_jobs (
            id BIGSERIAL PRIMARY KEY,
            record_type TEXT NOT NULL DEFAULT 'candidate',
            source_kind TEXT NOT NULL DEFAULT 'upload',
            filename TEXT NOT NULL,
            source_url TEXT,
            file_path TEXT,
            selected_entry TEXT,
            file_size BIGINT NOT NULL DEFAULT 0,
            status tse_job_status NOT NULL DEFAULT 'pending',
            stage TEXT DEFAULT 'pending',
            downloaded_bytes BIGINT NOT NULL DEFAULT 0,
            total_rows INTEGER NOT NULL DEFAULT 0,
            total_file_rows INTEGER,
            processed_rows INTEGER DEFAULT 0,
            skipped_rows INTEGER NOT NULL DEFAULT 0,
            error_count INTEGER NOT NULL DEFAULT 0,
            error_message TEXT,
            election_year INTEGER,
            election_type TEXT,
            uf TEXT,
            cargo_filter INTEGER,
            validation_status tse_validation_status NOT NULL DEFAULT 'pending',
            validation_message TEXT,
            validated_at TIMESTAMPTZ,
            started_at TIMESTAMPTZ,
            completed_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ DEFAULT now(),
            updated_at TIMESTAMPTZ DEFAULT now()
        );
        CREATE INDEX IF NOT EXISTS ix_tse_import_jobs_status_created
            ON tse_import_jobs (status, created_at);

        CREATE TABLE IF NOT EXISTS tse_import_batches (
            id BIGSERIAL PRIMARY KEY,
            import_job_id BIGINT NOT NULL REFERENCES tse_import_jobs(id) ON DELETE CASCADE,
            batch_index INTEGER NOT NULL,
            status tse_batch_status NOT NULL DEFAULT 'pending',
            row_start INTEGER NOT NULL,
            row_end INTEGER NOT NULL,
            total_rows INTEGER NOT NULL,
            processed_rows INTEGER NOT NULL DEFAULT 0,
            inserted_rows INTEGER NOT NULL DEFAULT 0,
            skipped_rows INTEGER NOT NULL DEFAULT 0,
            error_count INTEGER NOT NULL DEFAULT 0,
            error_summary TEXT,
            started_at TIMESTAMPTZ,
            completed_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ DEFAULT now()
        );
        CREATE INDEX IF NOT EXISTS ix_tse_import_batches_job ON tse_import_batches (import_job_id, batch_index);
        CREATE INDEX IF NOT EXISTS ix_tse_import_batches_status ON tse_import_batches (status);

        CREATE TABLE IF NOT EXISTS tse_import_batch_rows (
            id BIGSERIAL PRIMARY KEY,
            batch_id BIGINT NOT NULL REFERENCES tse_import_batches(id) ON DELETE CASCADE,
            row_number INTEGER NOT NULL,
            raw_data TEXT NOT NULL,
            parsed_data JSONB,
            status tse_batch_row_status NOT NULL DEFAULT 'pending',
            error_type TEXT,
            error_message TEXT,
            processed_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ DEFAULT now()
        );
        CREATE INDEX IF NOT EXISTS ix_tse_import_batch_rows_batch_status
            ON tse_import_batch_rows (batch_id, status);

        CREATE TABLE IF NOT EXISTS tse_import_errors (
            id BIGSERIAL PRIMARY KEY,
            import_job_id BIGINT NOT NULL REFERENCES tse_import_jobs(id) ON DELETE CASCADE,
            row_number INTEGER,
            error_type TEXT NOT NULL,
            error_message TEXT NOT NULL,
            raw_data TEXT,
            created_at TIMESTAMPTZ DEFAULT now()
        );
        CREATE INDEX IF NOT EXISTS ix_tse_import_errors_job ON tse_import_errors (import_job_id, row_number);
        """
    )


def downgrade():
    op.execute(
        """
        DROP TABLE IF EXISTS tse_import_errors;
        DROP TABLE IF EXISTS tse_import_batch_rows;
        DROP TABLE IF EXISTS tse_import_batches;
        DROP TABLE IF EXISTS tse_import_jobs;
        """
    )
    # keep enums around to avoid breaking if other objects reference them
