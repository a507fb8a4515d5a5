from __future__ import annotations


class ImportPipelineError(Exception):
    """Base class for every error raised by the import pipeline."""


class InvalidSourceError(ImportPipelineError):
    pass


class DuplicateImportError(ImportPipelineError):
    def __init__(self, existing_job_id: int, existing_status: str | None = None):
        self.existing_job_id = existing_job_id
        self.existing_status = existing_status
        super().__init__(
            f"Arquivo já importado ou em processamento (job {existing_job_id}, status {existing_status})"
        )


class JobNotFoundError(ImportPipelineError):
    def __init__(self, job_id: int, what: str = "Job"):
        self.job_id = job_id
        super().__init__(f"{what} {job_id} not found")


class JobStateError(ImportPipelineError):
    """Operation not allowed in the job's (or batch's) current status."""


class JobCancelled(ImportPipelineError):
    def __init__(self, job_id: int | None = None):
        self.job_id = job_id
        super().__init__("Importação cancelada")


class ArchiveDownloadError(ImportPipelineError):
    pass


class ArchiveFormatError(ImportPipelineError):
    pass


class UnknownLayoutError(ArchiveFormatError):
    def __init__(self, family: str, column_count: int):
        self.family = family
        self.column_count = column_count
        super().__init__(
            f"Unrecognized {family} file layout: {column_count} columns"
        )


class RowParseError(ImportPipelineError):
    def __init__(self, message: str, row_number: int | None = None):
        self.row_number = row_number
        super().__init__(message)
