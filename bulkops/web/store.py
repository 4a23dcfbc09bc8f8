"""
In-memory issue store behind the reference bulk-update endpoint.

Holds issue projections keyed by id. Nothing is persisted.
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from pydantic import ValidationError

from ..models.issue import IssueSelection
from ..models.operation import BatchItemError, BulkOperation
from ..operations.optimistic import apply_operation

logger = logging.getLogger(__name__)


class IssueStore:
    """Issues the reference endpoint serves and mutates."""

    def __init__(self, issues: Optional[Iterable[IssueSelection]] = None):
        self._issues: Dict[int, IssueSelection] = {}
        if issues:
            self.seed(issues)

    def seed(self, issues: Iterable[IssueSelection]):
        for issue in issues:
            self._issues[issue.id] = issue

    def list(self) -> List[IssueSelection]:
        return sorted(self._issues.values(), key=lambda issue: issue.id)

    def get(self, issue_id: int) -> Optional[IssueSelection]:
        return self._issues.get(issue_id)

    def bulk_update(
        self,
        issue_ids: Iterable[int],
        operation: BulkOperation,
    ) -> Tuple[int, List[BatchItemError]]:
        """
        Apply an operation to each issue independently.

        Returns:
            (success_count, per-issue errors)
        """
        success_count = 0
        errors: List[BatchItemError] = []

        for issue_id in issue_ids:
            issue = self._issues.get(issue_id)
            if issue is None:
                errors.append(BatchItemError(issue_id=issue_id, error="Issue not found"))
                continue
            try:
                self._issues[issue_id] = apply_operation(issue, operation)
            except ValidationError:
                errors.append(BatchItemError(
                    issue_id=issue_id,
                    error=f"Invalid {operation.kind.value} value: {operation.value!r}",
                ))
                continue
            success_count += 1

        logger.info(
            f"Bulk {operation.describe()}: {success_count} updated, {len(errors)} failed"
        )
        return success_count, errors


_issue_store: Optional[IssueStore] = None


def get_issue_store() -> IssueStore:
    """Get the global issue store instance."""
    global _issue_store
    if _issue_store is None:
        _issue_store = IssueStore()
    return _issue_store
