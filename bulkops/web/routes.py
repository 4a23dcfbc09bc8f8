"""
Web routes for the issues API used by bulk operations.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from config import settings
from ..models.operation import BulkOperation
from .store import IssueStore, get_issue_store

logger = logging.getLogger(__name__)

router = APIRouter()


class BulkUpdateRequest(BaseModel):
    """Body of a batch mutation request."""

    model_config = ConfigDict(populate_by_name=True)

    issue_ids: List[int] = Field(alias="issueIds")
    operation: BulkOperation


# ============================================================================
# API Endpoints
# ============================================================================

@router.get("/api/issues")
async def list_issues(store: IssueStore = Depends(get_issue_store)):
    """List issues for the board, as fed to the bulk operations controller."""
    return [issue.model_dump(by_alias=True) for issue in store.list()]


@router.post("/api/issues/bulk-update")
async def bulk_update(
    data: BulkUpdateRequest,
    store: IssueStore = Depends(get_issue_store),
):
    """
    Apply one operation to a batch of issues.

    Unknown issues are reported per item and do not fail the batch.
    """
    if not data.issue_ids:
        raise HTTPException(status_code=400, detail="issueIds must not be empty")

    if len(data.issue_ids) > settings.bulk_max_selection:
        raise HTTPException(
            status_code=400,
            detail=f"Cannot update more than {settings.bulk_max_selection} issues at once",
        )

    logger.info(f"Bulk update of {len(data.issue_ids)} issue(s): {data.operation.describe()}")
    success_count, errors = store.bulk_update(data.issue_ids, data.operation)

    return {
        "successCount": success_count,
        "failureCount": len(errors),
        "errors": [e.model_dump(by_alias=True) for e in errors],
    }
