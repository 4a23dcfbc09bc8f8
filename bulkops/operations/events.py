"""Events accepted by the bulk operations controller."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Tuple, Union

from ..models.issue import IssueFilter, IssueSelection
from ..models.operation import BulkOperation, BulkOperationResult, ValidationError


class BulkState(str, Enum):
    """States of the bulk operations workflow."""
    IDLE = "idle"
    VALIDATING = "validating"
    VALIDATION_FAILED = "validation_failed"
    CONFIRMED = "confirmed"
    EXECUTING = "executing"
    EXECUTING_BATCHED = "executing_batched"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    UNDOING = "undoing"
    REDOING = "redoing"
    ERROR = "error"


class EventType(str, Enum):
    """Event tags, including the internal completion events."""
    LOAD_ISSUES = "load_issues"
    TOGGLE_SELECTION = "toggle_selection"
    SELECT_ALL = "select_all"
    SELECT_NONE = "select_none"
    SELECT_FILTERED = "select_filtered"
    SET_OPERATION = "set_operation"
    CONFIRM = "confirm"
    CANCEL = "cancel"
    UNDO_LAST_OPERATION = "undo_last_operation"
    REDO_OPERATION = "redo_operation"
    CLEAR_HISTORY = "clear_history"
    RESET_SELECTION = "reset_selection"
    RETRY = "retry"
    ERROR = "error"
    # Internal
    VALIDATION_DONE = "validation_done"
    EXECUTION_DONE = "execution_done"
    EXECUTION_CANCELLED = "execution_cancelled"
    HISTORY_MOVE_DONE = "history_move_done"
    ACTOR_FAILED = "actor_failed"
    RESET_TIMEOUT = "reset_timeout"


@dataclass(frozen=True)
class LoadIssues:
    issues: List[IssueSelection]
    type: EventType = field(default=EventType.LOAD_ISSUES, init=False)


@dataclass(frozen=True)
class ToggleSelection:
    issue_id: int
    type: EventType = field(default=EventType.TOGGLE_SELECTION, init=False)


@dataclass(frozen=True)
class SelectAll:
    type: EventType = field(default=EventType.SELECT_ALL, init=False)


@dataclass(frozen=True)
class SelectNone:
    type: EventType = field(default=EventType.SELECT_NONE, init=False)


@dataclass(frozen=True)
class SelectFiltered:
    """Select by predicate, attribute filter, or free-text query."""
    filter: Union[Callable[[IssueSelection], bool], IssueFilter, str]
    type: EventType = field(default=EventType.SELECT_FILTERED, init=False)


@dataclass(frozen=True)
class SetOperation:
    operation: BulkOperation
    type: EventType = field(default=EventType.SET_OPERATION, init=False)


@dataclass(frozen=True)
class ConfirmOperation:
    type: EventType = field(default=EventType.CONFIRM, init=False)


@dataclass(frozen=True)
class CancelOperation:
    type: EventType = field(default=EventType.CANCEL, init=False)


@dataclass(frozen=True)
class UndoLastOperation:
    type: EventType = field(default=EventType.UNDO_LAST_OPERATION, init=False)


@dataclass(frozen=True)
class RedoOperation:
    type: EventType = field(default=EventType.REDO_OPERATION, init=False)


@dataclass(frozen=True)
class ClearHistory:
    type: EventType = field(default=EventType.CLEAR_HISTORY, init=False)


@dataclass(frozen=True)
class ResetSelection:
    type: EventType = field(default=EventType.RESET_SELECTION, init=False)


@dataclass(frozen=True)
class Retry:
    type: EventType = field(default=EventType.RETRY, init=False)


@dataclass(frozen=True)
class ErrorOccurred:
    error: str
    type: EventType = field(default=EventType.ERROR, init=False)


# Internal completion events, tagged with the invocation that produced them

@dataclass(frozen=True)
class ValidationDone:
    invocation: int
    errors: List[ValidationError]
    type: EventType = field(default=EventType.VALIDATION_DONE, init=False)


@dataclass(frozen=True)
class ExecutionDone:
    invocation: int
    result: BulkOperationResult
    type: EventType = field(default=EventType.EXECUTION_DONE, init=False)


@dataclass(frozen=True)
class ExecutionCancelled:
    invocation: int
    result: BulkOperationResult
    type: EventType = field(default=EventType.EXECUTION_CANCELLED, init=False)


@dataclass(frozen=True)
class HistoryMoveDone:
    """Undo or redo finished; `updates` are the (operation, issue ids) pairs applied."""
    invocation: int
    result: BulkOperationResult
    updates: List[Tuple[BulkOperation, List[int]]]
    type: EventType = field(default=EventType.HISTORY_MOVE_DONE, init=False)


@dataclass(frozen=True)
class ActorFailed:
    invocation: int
    error: str
    type: EventType = field(default=EventType.ACTOR_FAILED, init=False)


@dataclass(frozen=True)
class ResetTimeout:
    invocation: int
    type: EventType = field(default=EventType.RESET_TIMEOUT, init=False)


BulkEvent = Union[
    LoadIssues, ToggleSelection, SelectAll, SelectNone, SelectFiltered,
    SetOperation, ConfirmOperation, CancelOperation, UndoLastOperation,
    RedoOperation, ClearHistory, ResetSelection, Retry, ErrorOccurred,
    ValidationDone, ExecutionDone, ExecutionCancelled, HistoryMoveDone,
    ActorFailed, ResetTimeout,
]

INTERNAL_EVENTS = frozenset({
    EventType.VALIDATION_DONE,
    EventType.EXECUTION_DONE,
    EventType.EXECUTION_CANCELLED,
    EventType.HISTORY_MOVE_DONE,
    EventType.ACTOR_FAILED,
    EventType.RESET_TIMEOUT,
})
