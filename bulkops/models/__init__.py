from .issue import IssueSelection, IssueFilter, matches_query
from .operation import (
    BulkOperation,
    OperationKind,
    LabelMode,
    ValidationError,
    ValidationErrorKind,
    BatchItemError,
    BatchResponse,
    BulkOperationResult,
    HistoryEntry,
)

__all__ = [
    "IssueSelection",
    "IssueFilter",
    "matches_query",
    "BulkOperation",
    "OperationKind",
    "LabelMode",
    "ValidationError",
    "ValidationErrorKind",
    "BatchItemError",
    "BatchResponse",
    "BulkOperationResult",
    "HistoryEntry",
]
