from sqlalchemy import Column, BigInteger, Integer, Text, DateTime, ForeignKey, Index
from sqlalchemy.sql import func
from .base import Base, BigIntPK

# Upper bound for the raw row snippet kept with each error
RAW_SNIPPET_LIMIT = 1000


class ImportErrorRecord(Base):
    """
    Append-only diagnostic log of a job.
    error_type:
      - parse_error: row skipped while decoding
      - batch_insert_error: bulk insert of a whole batch failed
      - fatal_error: job aborted (row_number 0)
    """

    __tablename__ = "tse_import_errors"
    __table_args__ = (Index("ix_tse_import_errors_job", "import_job_id", "row_number"),)

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    import_job_id = Column(
        BigInteger, ForeignKey("tse_import_jobs.id", ondelete="CASCADE"), nullable=False
    )
    row_number = Column(Integer, nullable=True)
    error_type = Column(Text, nullable=False)
    error_message = Column(Text, nullable=False)
    raw_data = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
