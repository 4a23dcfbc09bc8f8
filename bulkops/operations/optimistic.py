"""
Field-level application of bulk operations to issue projections.

Used for optimistic updates on the board, for redo, and by the reference
endpoint. Also builds the inverse operations used to undo a recorded
operation from its stored pre-image.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..exceptions import UndoNotSupportedError
from ..models.issue import IssueSelection
from ..models.operation import BulkOperation, LabelMode, OperationKind

logger = logging.getLogger(__name__)

# Issue attribute touched by each kind; component/version are not projected
FIELD_FOR_KIND = {
    OperationKind.ASSIGN: "assignee_id",
    OperationKind.STATUS: "status",
    OperationKind.PRIORITY: "priority",
    OperationKind.LABELS: "labels",
    OperationKind.ESTIMATE: "estimate",
    OperationKind.SPRINT: "sprint_id",
}


def _label_list(value) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return [str(value)]


def apply_operation(issue: IssueSelection, operation: BulkOperation) -> IssueSelection:
    """Return a copy of `issue` with the operation's field change applied."""
    field = FIELD_FOR_KIND.get(operation.kind)
    if field is None:
        return issue

    if operation.kind != OperationKind.LABELS:
        # Validated so a value of the wrong type fails here, not on serialization
        return issue.model_validate({**issue.model_dump(), field: operation.value})

    mode = operation.label_mode
    if mode == LabelMode.ADD:
        labels = list(issue.labels)
        if operation.value not in labels:
            labels.append(operation.value)
    elif mode == LabelMode.REMOVE:
        labels = [label for label in issue.labels if label != operation.value]
    else:
        labels = _label_list(operation.value)
    return issue.model_copy(update={"labels": labels})


def capture_previous(issue: IssueSelection, operation: BulkOperation) -> Any:
    """Pre-image of the field the operation touches (None if not projected)."""
    field = FIELD_FOR_KIND.get(operation.kind)
    if field is None:
        return None
    value = getattr(issue, field)
    if isinstance(value, list):
        return list(value)
    return value


def restore_previous(issue: IssueSelection, operation: BulkOperation, previous: Any) -> IssueSelection:
    """Put a captured pre-image back onto an issue."""
    field = FIELD_FOR_KIND.get(operation.kind)
    if field is None:
        return issue
    if isinstance(previous, list):
        previous = list(previous)
    return issue.model_copy(update={field: previous})


class OptimisticSnapshot:
    """Pre-images of the issues touched by one optimistic update."""

    def __init__(self, operation: BulkOperation):
        self.operation = operation
        self.previous: Dict[int, Any] = {}

    def apply(self, issues: Iterable[IssueSelection], issue_ids: Iterable[int]) -> List[IssueSelection]:
        """Apply the operation to the chosen issues, remembering their pre-image."""
        targets = set(issue_ids)
        updated = []
        for issue in issues:
            if issue.id in targets:
                self.previous[issue.id] = capture_previous(issue, self.operation)
                issue = apply_operation(issue, self.operation)
            updated.append(issue)
        return updated

    def rollback(self, issues: Iterable[IssueSelection], issue_ids: Optional[Iterable[int]] = None) -> List[IssueSelection]:
        """Restore the pre-image for `issue_ids` (all captured ids when None)."""
        ids = set(self.previous) if issue_ids is None else set(issue_ids) & set(self.previous)
        restored = []
        for issue in issues:
            if issue.id in ids:
                issue = restore_previous(issue, self.operation, self.previous[issue.id])
            restored.append(issue)
        if ids:
            logger.info(f"Rolled back optimistic {self.operation.kind.value} update on {len(ids)} issue(s)")
        return restored

    def previous_for(self, issue_ids: Iterable[int]) -> Dict[int, Any]:
        return {i: self.previous[i] for i in issue_ids if i in self.previous}


def _group_key(value: Any):
    if isinstance(value, list):
        return ("list", tuple(value))
    return ("scalar", value)


def build_inverse_operations(
    operation: BulkOperation,
    affected_ids: Iterable[int],
) -> List[Tuple[BulkOperation, List[int]]]:
    """
    Build the operations that undo `operation` on `affected_ids`.

    Issues are grouped by their stored previous value so each group can be
    restored with a single batch call.

    Raises:
        UndoNotSupportedError: If the operation kind has no projected field
            or no previous values were recorded
    """
    if operation.kind not in FIELD_FOR_KIND:
        raise UndoNotSupportedError(f"Cannot undo {operation.kind.value} operations")
    if operation.previous_values is None:
        raise UndoNotSupportedError(f"No previous values recorded for {operation.describe()}")

    previous = operation.previous_values
    ids = [i for i in affected_ids if i in previous]
    inverse: List[Tuple[BulkOperation, List[int]]] = []

    if operation.kind == OperationKind.LABELS and operation.label_mode != LabelMode.REPLACE:
        label = operation.value
        if operation.label_mode == LabelMode.ADD:
            # Only issues that did not already carry the label
            targets = [i for i in ids if label not in (previous[i] or [])]
            field = LabelMode.REMOVE.value
        else:
            targets = [i for i in ids if label in (previous[i] or [])]
            field = LabelMode.ADD.value
        if targets:
            inverse.append((BulkOperation(kind=OperationKind.LABELS, field=field, value=label), targets))
        return inverse

    groups: Dict[Any, List[int]] = {}
    values: Dict[Any, Any] = {}
    for issue_id in ids:
        key = _group_key(previous[issue_id])
        groups.setdefault(key, []).append(issue_id)
        values[key] = previous[issue_id]

    field = LabelMode.REPLACE.value if operation.kind == OperationKind.LABELS else operation.field
    for key, group_ids in groups.items():
        inverse.append((
            BulkOperation(kind=operation.kind, field=field, value=values[key]),
            group_ids,
        ))
    return inverse
