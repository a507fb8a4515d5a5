from sqlalchemy import Column, BigInteger, Integer, Text, DateTime, ForeignKey, Index
from sqlalchemy import Enum as SAEnum
from sqlalchemy.sql import func
from .base import Base, BigIntPK, JSONType
from .status_enum import IssueStatus


class ValidationRun(Base):
    """
    One validation pass over a job's imported rows.
    kind: integrity (row count check) | quality (per-row data checks)
    status: running | completed | failed
    """

    __tablename__ = "tse_validation_runs"
    __table_args__ = (Index("ix_tse_validation_runs_job", "import_job_id"),)

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    import_job_id = Column(
        BigInteger, ForeignKey("tse_import_jobs.id", ondelete="CASCADE"), nullable=False
    )
    kind = Column(Text, nullable=False, default="integrity")
    status = Column(Text, nullable=False, default="running")
    total_records_checked = Column(Integer, nullable=False, default=0)
    issues_found = Column(Integer, nullable=False, default=0)
    summary = Column(JSONType, nullable=True)
    started_at = Column(DateTime(timezone=True), server_default=func.now())
    completed_at = Column(DateTime(timezone=True), nullable=True)


class ValidationIssue(Base):
    __tablename__ = "tse_validation_issues"
    __table_args__ = (Index("ix_tse_validation_issues_run", "run_id", "status"),)

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    run_id = Column(
        BigInteger, ForeignKey("tse_validation_runs.id", ondelete="CASCADE"), nullable=False
    )
    type = Column(Text, nullable=False)
    severity = Column(Text, nullable=False, default="warning")  # error | warning | info
    category = Column(Text, nullable=False)
    row_reference = Column(Text, nullable=True)
    field = Column(Text, nullable=True)
    current_value = Column(Text, nullable=True)
    message = Column(Text, nullable=False)
    status = Column(
        SAEnum(IssueStatus, name="tse_issue_status"),
        nullable=False,
        default=IssueStatus.open,
    )
    resolved_by = Column(Text, nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
