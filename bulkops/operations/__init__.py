"""
Operations module for bulk issue operations.

Selection, validation, batched execution, undo/redo history and the
workflow controller that ties them together.
"""

from .batch import (
    BatchExecutor,
    BatchResultBuilder,
    BatchSubmitter,
    CancellationToken,
    adaptive_batch_size,
    merge_results,
    plan_batches,
)
from .controller import BulkOperationsController, BulkOperationsContext
from .events import (
    BulkState,
    EventType,
    LoadIssues,
    ToggleSelection,
    SelectAll,
    SelectNone,
    SelectFiltered,
    SetOperation,
    ConfirmOperation,
    CancelOperation,
    UndoLastOperation,
    RedoOperation,
    ClearHistory,
    ResetSelection,
    Retry,
    ErrorOccurred,
)
from .history import OperationHistory
from .optimistic import OptimisticSnapshot, apply_operation, build_inverse_operations
from .selection import IssueSelectionSet, SelectionMode
from .validator import OperationValidator

__all__ = [
    "BatchExecutor",
    "BatchResultBuilder",
    "BatchSubmitter",
    "CancellationToken",
    "adaptive_batch_size",
    "merge_results",
    "plan_batches",
    "BulkOperationsController",
    "BulkOperationsContext",
    "BulkState",
    "EventType",
    "LoadIssues",
    "ToggleSelection",
    "SelectAll",
    "SelectNone",
    "SelectFiltered",
    "SetOperation",
    "ConfirmOperation",
    "CancelOperation",
    "UndoLastOperation",
    "RedoOperation",
    "ClearHistory",
    "ResetSelection",
    "Retry",
    "ErrorOccurred",
    "OperationHistory",
    "OptimisticSnapshot",
    "apply_operation",
    "build_inverse_operations",
    "IssueSelectionSet",
    "SelectionMode",
    "OperationValidator",
]
