from sqlalchemy import Column, BigInteger, Integer, Text, DateTime, ForeignKey, Index
from sqlalchemy import Enum as SAEnum
from sqlalchemy.sql import func
from .base import Base, BigIntPK, JSONType
from .status_enum import BatchStatus, BatchRowStatus


class ImportBatch(Base):
    """Fixed-size slice of a job's source rows, inserted in one transaction."""

    __tablename__ = "tse_import_batches"
    __table_args__ = (
        Index("ix_tse_import_batches_job", "import_job_id", "batch_index"),
        Index("ix_tse_import_batches_status", "status"),
    )

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    import_job_id = Column(
        BigInteger, ForeignKey("tse_import_jobs.id", ondelete="CASCADE"), nullable=False
    )
    batch_index = Column(Integer, nullable=False)
    status = Column(
        SAEnum(BatchStatus, name="tse_batch_status"),
        nullable=False,
        default=BatchStatus.pending,
    )
    row_start = Column(Integer, nullable=False)
    row_end = Column(Integer, nullable=False)
    total_rows = Column(Integer, nullable=False)
    processed_rows = Column(Integer, nullable=False, default=0)
    inserted_rows = Column(Integer, nullable=False, default=0)
    skipped_rows = Column(Integer, nullable=False, default=0)
    error_count = Column(Integer, nullable=False, default=0)
    error_summary = Column(Text, nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class ImportBatchRow(Base):
    # Snapshot of a row from a failed batch, replayed by the reprocessor
    __tablename__ = "tse_import_batch_rows"
    __table_args__ = (
        Index("ix_tse_import_batch_rows_batch_status", "batch_id", "status"),
    )

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    batch_id = Column(
        BigInteger, ForeignKey("tse_import_batches.id", ondelete="CASCADE"), nullable=False
    )
    row_number = Column(Integer, nullable=False)
    raw_data = Column(Text, nullable=False)
    parsed_data = Column(JSONType, nullable=True)
    status = Column(
        SAEnum(BatchRowStatus, name="tse_batch_row_status"),
        nullable=False,
        default=BatchRowStatus.pending,
    )
    error_type = Column(Text, nullable=True)
    error_message = Column(Text, nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
