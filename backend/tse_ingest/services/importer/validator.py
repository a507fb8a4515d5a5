from __future__ import annotations
from collections import Counter
from typing import Optional
from sqlalchemy import func, select, update
from tse_ingest.logging_config import backend_logger
from tse_ingest.models.base import SessionLocal
from tse_ingest.models.import_job import ImportJob
from tse_ingest.models.job_status_enum import JobStatus
from tse_ingest.models.status_enum import ValidationStatus, IssueStatus
from tse_ingest.models.validation import ValidationRun, ValidationIssue
from tse_ingest.utils.time import utcnow, isoformat_or_none
from .errors import JobNotFoundError, JobStateError
from .job_store import get_job
from .schemas import get_family

# Cap on issues recorded per check so one bad file cannot flood the table
MAX_ISSUES_PER_CHECK = 500


def expected_row_count(job: ImportJob) -> int:
    if job.processed_rows is not None:
        return int(job.processed_rows)
    return int(job.total_file_rows or 0) - int(job.skipped_rows or 0) - int(job.error_count or 0)


def discrepancy_message(expected: int, found: int) -> str:
    if expected == found:
        return "OK"
    return f"Discrepância: esperado {expected}, encontrado {found}"


async def count_job_rows(job_id: int, record_type: str) -> int:
    model = get_family(record_type).model
    async with SessionLocal() as session:
        res = await session.execute(
            select(func.count()).select_from(model).where(model.import_job_id == job_id)
        )
        return int(res.scalar_one())


async def validate_integrity(job_id: int) -> dict:
    """Compare the rows the job claims to have inserted with what the table holds."""
    job = await get_job(job_id)
    if job.status != JobStatus.completed:
        raise JobStateError(f"Job {job_id} is {job.status.value}; only completed jobs can be validated")

    found = await count_job_rows(job_id, job.record_type)
    expected = expected_row_count(job)
    is_valid = found == expected
    message = discrepancy_message(expected, found)
    now = utcnow()

    async with SessionLocal() as session:
        await session.execute(
            update(ImportJob)
            .where(ImportJob.id == job_id)
            .values(
                validation_status=ValidationStatus.passed if is_valid else ValidationStatus.failed,
                validation_message=message,
                validated_at=now,
            )
        )
        run = ValidationRun(
            import_job_id=job_id,
            kind="integrity",
            status="completed",
            total_records_checked=found,
            issues_found=0 if is_valid else 1,
            summary={"expectedCount": expected, "dbRowCount": found, "isValid": is_valid},
            completed_at=now,
        )
        session.add(run)
        await session.flush()
        if not is_valid:
            session.add(
                ValidationIssue(
                    run_id=run.id,
                    type="row_count_mismatch",
                    severity="error",
                    category="data_integrity",
                    field="processed_rows",
                    current_value=str(found),
                    message=message,
                )
            )
        await session.commit()

    log = backend_logger.info if is_valid else backend_logger.warning
    log(f"Job {job_id}: integrity {message} (expected={expected}, db={found})")
    return {"isValid": is_valid, "dbRowCount": found, "expectedCount": expected, "message": message}


def _issue(run_id: int, type_: str, severity: str, category: str, message: str,
           row_reference=None, field=None, current_value=None) -> ValidationIssue:
    return ValidationIssue(
        run_id=run_id,
        type=type_,
        severity=severity,
        category=category,
        message=message,
        row_reference=str(row_reference) if row_reference is not None else None,
        field=field,
        current_value=str(current_value) if current_value is not None else None,
    )


async def run_quality_checks(job_id: int) -> dict:
    """
    Row-level data checks on an imported job:
      - negative vote counts (error)
      - missing required fields (warning)
      - repeated natural keys inside the job (warning)
    """
    job = await get_job(job_id)
    if job.status != JobStatus.completed:
        raise JobStateError(f"Job {job_id} is {job.status.value}; only completed jobs can be validated")
    family = get_family(job.record_type)
    model = family.model
    vote_columns = [c for c in family.numeric if c.startswith("qt_")]

    async with SessionLocal() as session:
        run = ValidationRun(import_job_id=job_id, kind="quality", status="running")
        session.add(run)
        await session.flush()
        issues: list[ValidationIssue] = []

        total = (await session.execute(
            select(func.count()).select_from(model).where(model.import_job_id == job_id)
        )).scalar_one()

        for column in sorted(vote_columns):
            col = getattr(model, column)
            rows = await session.execute(
                select(model.id, col)
                .where((model.import_job_id == job_id) & (col < 0))
                .limit(MAX_ISSUES_PER_CHECK)
            )
            for row_id, value in rows.all():
                issues.append(_issue(
                    run.id, "negative_votes", "error", "data_integrity",
                    f"{column} is negative", row_id, column, value,
                ))

        for column in family.required:
            col = getattr(model, column)
            rows = await session.execute(
                select(model.id)
                .where((model.import_job_id == job_id) & col.is_(None))
                .limit(MAX_ISSUES_PER_CHECK)
            )
            for (row_id,) in rows.all():
                issues.append(_issue(
                    run.id, "missing_field", "warning", "completeness",
                    f"Required field {column} is empty", row_id, column,
                ))

        key_columns = [getattr(model, c) for c in (family.dedup_key or _natural_key(model))]
        dupes = await session.execute(
            select(*key_columns, func.count().label("n"))
            .where(model.import_job_id == job_id)
            .group_by(*key_columns)
            .having(func.count() > 1)
            .limit(MAX_ISSUES_PER_CHECK)
        )
        for row in dupes.all():
            key = tuple(row[:-1])
            issues.append(_issue(
                run.id, "duplicate_record", "warning", "consistency",
                f"{row[-1]} rows share the same key", "|".join("" if v is None else str(v) for v in key),
            ))

        session.add_all(issues)
        by_type = Counter(i.type for i in issues)
        by_severity = Counter(i.severity for i in issues)
        run.status = "completed"
        run.total_records_checked = int(total)
        run.issues_found = len(issues)
        run.summary = {"byType": dict(by_type), "bySeverity": dict(by_severity)}
        run.completed_at = utcnow()
        await session.commit()
        run_id = run.id

    backend_logger.info(f"Job {job_id}: quality run {run_id} found {len(issues)} issues in {total} rows")
    return {
        "runId": run_id,
        "totalRecordsChecked": int(total),
        "issuesFound": len(issues),
        "byType": dict(by_type),
        "bySeverity": dict(by_severity),
    }


def _natural_key(model) -> tuple:
    for index in model.__table__.indexes:
        if index.unique:
            return tuple(c.name for c in index.columns)
    return ("id",)


async def update_issue_status(issue_id: int, status: str, resolved_by: Optional[str] = None) -> dict:
    try:
        new_status = IssueStatus(status)
    except ValueError:
        raise JobStateError(
            f"Invalid issue status '{status}', expected one of {[s.value for s in IssueStatus]}"
        ) from None
    async with SessionLocal() as session:
        issue = await session.get(ValidationIssue, issue_id)
        if issue is None:
            raise JobNotFoundError(issue_id, "Validation issue")
        issue.status = new_status
        if new_status == IssueStatus.open:
            issue.resolved_by = None
            issue.resolved_at = None
        else:
            issue.resolved_by = resolved_by
            issue.resolved_at = utcnow()
        await session.commit()
        return serialize_issue(issue)


async def list_validation_runs(job_id: int) -> list[dict]:
    async with SessionLocal() as session:
        res = await session.execute(
            select(ValidationRun)
            .where(ValidationRun.import_job_id == job_id)
            .order_by(ValidationRun.id.desc())
        )
        return [serialize_run(r) for r in res.scalars().all()]


async def list_issues(run_id: int, status: Optional[str] = None) -> list[dict]:
    async with SessionLocal() as session:
        q = select(ValidationIssue).where(ValidationIssue.run_id == run_id)
        if status:
            q = q.where(ValidationIssue.status == IssueStatus(status))
        res = await session.execute(q.order_by(ValidationIssue.id))
        return [serialize_issue(i) for i in res.scalars().all()]


def serialize_run(row: ValidationRun) -> dict:
    return {
        "id": row.id,
        "jobId": row.import_job_id,
        "kind": row.kind,
        "status": row.status,
        "totalRecordsChecked": row.total_records_checked,
        "issuesFound": row.issues_found,
        "summary": row.summary or {},
        "startedAt": isoformat_or_none(row.started_at),
        "completedAt": isoformat_or_none(row.completed_at),
    }


def serialize_issue(row: ValidationIssue) -> dict:
    return {
        "id": row.id,
        "runId": row.run_id,
        "type": row.type,
        "severity": row.severity,
        "category": row.category,
        "rowReference": row.row_reference,
        "field": row.field,
        "currentValue": row.current_value,
        "message": row.message,
        "status": getattr(row.status, "value", row.status),
        "resolvedBy": row.resolved_by,
        "resolvedAt": isoformat_or_none(row.resolved_at),
    }
