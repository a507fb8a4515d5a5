from typing import Optional
from fastapi import APIRouter
from pydantic import BaseModel
from tse_ingest.services.importer.validator import list_issues, update_issue_status

router = APIRouter()


class IssueStatusUpdate(BaseModel):
    status: str
    resolved_by: Optional[str] = None


@router.get("/validation-runs/{run_id}/issues")
async def get_run_issues(run_id: int, status: Optional[str] = None):
    return {"issues": await list_issues(run_id, status)}


@router.patch("/validation-issues/{issue_id}")
async def patch_issue(issue_id: int, body: IssueStatusUpdate):
    return await update_issue_status(issue_id, body.status, body.resolved_by)
