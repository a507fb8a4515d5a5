from sqlalchemy import Column, BigInteger, Integer, Text, DateTime, Index
from sqlalchemy import Enum as SAEnum
from sqlalchemy.sql import func
from .base import Base, BigIntPK
from .job_status_enum import JobStatus
from .status_enum import ValidationStatus


class ImportJob(Base):
    """
    One import of one TSE vote-count file.

    source_kind: "upload" (file_path points at the saved upload) or "url"
    (source_url is streamed into the job's temp dir).
    record_type: candidate | party | statistics, picks the destination table.
    """

    __tablename__ = "tse_import_jobs"
    __table_args__ = (
        Index("ix_tse_import_jobs_status_created", "status", "created_at"),
    )

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    record_type = Column(Text, nullable=False, default="candidate")
    source_kind = Column(Text, nullable=False, default="upload")
    filename = Column(Text, nullable=False)
    source_url = Column(Text, nullable=True)
    file_path = Column(Text, nullable=True)
    selected_entry = Column(Text, nullable=True)
    file_size = Column(BigInteger, nullable=False, default=0)

    status = Column(
        SAEnum(JobStatus, name="tse_job_status"),
        nullable=False,
        default=JobStatus.pending,
    )
    stage = Column(Text, nullable=True, default="pending")

    downloaded_bytes = Column(BigInteger, nullable=False, default=0)
    total_rows = Column(Integer, nullable=False, default=0)
    total_file_rows = Column(Integer, nullable=True)
    processed_rows = Column(Integer, nullable=True, default=0)
    skipped_rows = Column(Integer, nullable=False, default=0)
    error_count = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)

    election_year = Column(Integer, nullable=True)
    election_type = Column(Text, nullable=True)
    uf = Column(Text, nullable=True)
    cargo_filter = Column(Integer, nullable=True)

    validation_status = Column(
        SAEnum(ValidationStatus, name="tse_validation_status"),
        nullable=False,
        default=ValidationStatus.pending,
    )
    validation_message = Column(Text, nullable=True)
    validated_at = Column(DateTime(timezone=True), nullable=True)

    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
