"""
Workflow controller for bulk issue operations.

State machine tying together selection, validation, batch execution and
undo/redo history. Events are processed one at a time by `send`; work the
machine invokes (validation, execution, undo, redo) runs as an asyncio task
whose outcome comes back as an internal event. Completions from a state
the machine has already left are discarded, except for an execution cut
short by a global error: its outcome is reconciled against the board and
history once its last batch returns.

The controller exclusively owns the available issues. Every transition
publishes a new immutable BulkOperationsContext snapshot.
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Tuple

from config import get_settings
from ..exceptions import OperationCancelled
from ..models.issue import IssueFilter, IssueSelection, matches_query
from ..models.operation import BulkOperation, BulkOperationResult, ValidationError
from .batch import (
    BatchExecutor,
    BatchSubmitter,
    CancellationToken,
    adaptive_batch_size,
    merge_results,
)
from .events import (
    INTERNAL_EVENTS,
    ActorFailed,
    BulkEvent,
    BulkState,
    EventType,
    ExecutionCancelled,
    ExecutionDone,
    HistoryMoveDone,
    ResetTimeout,
    ValidationDone,
)
from .history import OperationHistory
from .optimistic import OptimisticSnapshot, apply_operation, build_inverse_operations
from .selection import IssueSelectionSet, SelectionMode
from .validator import OperationValidator

logger = logging.getLogger(__name__)

Listener = Callable[[BulkState, "BulkOperationsContext"], None]

_UNSET: Any = object()

EXECUTING_STATES = (BulkState.EXECUTING, BulkState.EXECUTING_BATCHED)


@dataclass(frozen=True)
class _InterruptedRun:
    """Execution left behind by a global error, reconciled when it finishes."""

    invocation: int
    snapshot: OptimisticSnapshot
    task: asyncio.Task


@dataclass(frozen=True)
class BulkOperationsContext:
    """Snapshot of everything the UI renders for bulk operations."""

    # Selection
    available_issues: Tuple[IssueSelection, ...] = ()
    selected_ids: FrozenSet[int] = frozenset()
    all_selected: bool = False
    selection_mode: SelectionMode = SelectionMode.MANUAL

    # Operation
    current_operation: Optional[BulkOperation] = None
    operation_progress: int = 0
    operation_results: Optional[BulkOperationResult] = None
    validation_errors: Tuple[ValidationError, ...] = ()

    # History
    history_length: int = 0
    history_index: int = 0

    # UI flags
    show_confirm_dialog: bool = False
    show_progress: bool = False
    is_loading: bool = False
    error: Optional[str] = None

    # Batching
    batch_size: int = 25
    current_batch: int = 0
    total_batches: int = 0


class BulkOperationsController:
    """State machine for multi-select, validate, execute, undo/redo."""

    def __init__(
        self,
        submitter: Optional[BatchSubmitter] = None,
        executor: Optional[BatchExecutor] = None,
        validator: Optional[OperationValidator] = None,
        history: Optional[OperationHistory] = None,
        batch_size: Optional[int] = None,
        large_operation_threshold: Optional[int] = None,
        completed_reset_seconds: Optional[float] = _UNSET,
        adaptive_batching: Optional[bool] = None,
    ):
        settings = get_settings()

        if executor is None:
            if submitter is None:
                raise ValueError("Either a submitter or an executor is required")
            executor = BatchExecutor(submitter, batch_size=batch_size)

        self.executor = executor
        self.validator = validator or OperationValidator()
        self.history = history or OperationHistory(max_entries=settings.bulk_history_max_entries)
        self.batch_size = batch_size or executor.batch_size
        self.adaptive_batching = (
            adaptive_batching if adaptive_batching is not None
            else settings.bulk_adaptive_batch_size
        )
        self.large_operation_threshold = (
            large_operation_threshold if large_operation_threshold is not None
            else settings.bulk_large_operation_threshold
        )
        self.completed_reset_seconds = (
            settings.bulk_completed_reset_seconds if completed_reset_seconds is _UNSET
            else completed_reset_seconds
        )

        self._selection = IssueSelectionSet()
        self._state = BulkState.IDLE
        self._context = BulkOperationsContext(batch_size=self.batch_size)
        self._invocation = 0
        self._task: Optional[asyncio.Task] = None
        self._timer: Optional[asyncio.Task] = None
        self._cancel_token: Optional[CancellationToken] = None
        self._snapshot: Optional[OptimisticSnapshot] = None
        self._listeners: List[Listener] = []
        self._interrupted: Dict[int, _InterruptedRun] = {}

        self._handlers: Dict[BulkState, Dict[EventType, Callable[[Any], None]]] = {
            BulkState.IDLE: {
                EventType.LOAD_ISSUES: self._on_load_issues,
                EventType.TOGGLE_SELECTION: self._on_toggle,
                EventType.SELECT_ALL: self._on_select_all,
                EventType.SELECT_NONE: self._on_select_none,
                EventType.SELECT_FILTERED: self._on_select_filtered,
                EventType.SET_OPERATION: self._on_set_operation,
                EventType.UNDO_LAST_OPERATION: self._on_undo,
                EventType.REDO_OPERATION: self._on_redo,
                EventType.CLEAR_HISTORY: self._on_clear_history,
            },
            BulkState.VALIDATING: {
                EventType.VALIDATION_DONE: self._on_validation_done,
                EventType.ACTOR_FAILED: self._on_actor_failed,
            },
            BulkState.VALIDATION_FAILED: {
                EventType.SET_OPERATION: self._on_set_operation,
                EventType.CANCEL: self._on_cancel,
            },
            BulkState.CONFIRMED: {
                EventType.CONFIRM: self._on_confirm,
                EventType.CANCEL: self._on_cancel,
            },
            BulkState.EXECUTING: {
                EventType.EXECUTION_DONE: self._on_execution_done,
                EventType.EXECUTION_CANCELLED: self._on_execution_cancelled,
                EventType.ACTOR_FAILED: self._on_execution_failed,
                EventType.CANCEL: self._on_cancel_execution,
            },
            BulkState.COMPLETED: {
                EventType.RESET_TIMEOUT: self._on_reset_timeout,
                EventType.RESET_SELECTION: self._on_reset_selection,
            },
            BulkState.UNDOING: {
                EventType.HISTORY_MOVE_DONE: self._on_history_move_done,
                EventType.ACTOR_FAILED: self._on_actor_failed,
            },
            BulkState.ERROR: {
                EventType.RETRY: self._on_retry,
                EventType.RESET_SELECTION: self._on_reset_selection,
            },
        }
        # Same handling, different UI treatment
        self._handlers[BulkState.EXECUTING_BATCHED] = self._handlers[BulkState.EXECUTING]
        self._handlers[BulkState.CANCELLED] = self._handlers[BulkState.COMPLETED]
        self._handlers[BulkState.REDOING] = self._handlers[BulkState.UNDOING]

        self._entry_actions: Dict[BulkState, Callable[[], Dict[str, Any]]] = {
            BulkState.VALIDATING: self._enter_validating,
            BulkState.CONFIRMED: self._enter_confirmed,
            BulkState.EXECUTING: self._enter_executing,
            BulkState.EXECUTING_BATCHED: self._enter_executing,
            BulkState.COMPLETED: self._enter_finished,
            BulkState.CANCELLED: self._enter_finished,
            BulkState.UNDOING: self._enter_undoing,
            BulkState.REDOING: self._enter_redoing,
        }

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    @property
    def state(self) -> BulkState:
        return self._state

    @property
    def context(self) -> BulkOperationsContext:
        return self._context

    def can_undo(self) -> bool:
        # History is not final while an interrupted run is still settling
        return not self._interrupted and self.history.undoable()

    def can_redo(self) -> bool:
        return not self._interrupted and self.history.redoable()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a callback run after every change; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def send(self, event: BulkEvent) -> BulkState:
        """
        Process one event and return the resulting state.

        Events that start work (validation, execution, undo, redo) must be
        sent from inside a running event loop.
        """
        if event.type in INTERNAL_EVENTS and event.invocation in self._interrupted:
            self._reconcile_interrupted(event)
            return self._state

        if event.type in INTERNAL_EVENTS and event.invocation != self._invocation:
            logger.debug(f"Discarding stale {event.type.value} from invocation {event.invocation}")
            return self._state

        handler = self._handlers.get(self._state, {}).get(event.type)
        if handler is None and event.type == EventType.ERROR and self._state != BulkState.ERROR:
            handler = self._on_global_error

        if handler is None:
            logger.debug(f"Ignoring {event.type.value} in state {self._state.value}")
            return self._state

        handler(event)
        return self._state

    async def settle(self) -> BulkState:
        """Wait until all invoked work, interrupted runs included, has been delivered."""
        while True:
            pending = {task for task in self._work_tasks() if not task.done()}
            if not pending:
                return self._state
            await asyncio.wait(pending)

    async def dispatch(self, event: BulkEvent) -> BulkState:
        """Send an event and wait for any work it started."""
        self.send(event)
        return await self.settle()

    async def close(self):
        """Cancel in-flight work and timers."""
        self._invocation += 1
        if self._cancel_token is not None:
            self._cancel_token.cancel()
        tasks = self._work_tasks()
        if self._timer is not None:
            tasks.append(self._timer)
        self._interrupted = {}
        for task in tasks:
            if not task.done():
                task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Transition plumbing
    # ------------------------------------------------------------------

    def _publish(self, **changes):
        self._context = replace(
            self._context,
            available_issues=self._selection.issues,
            selected_ids=self._selection.selected,
            all_selected=self._selection.all_selected,
            selection_mode=self._selection.mode,
            history_length=len(self.history),
            history_index=self.history.index,
            **changes,
        )
        for listener in list(self._listeners):
            try:
                listener(self._state, self._context)
            except Exception as e:
                logger.error(f"Bulk operations listener failed: {e}", exc_info=True)

    def _transition(self, target: BulkState, **changes):
        previous = self._state
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

        self._invocation += 1
        self._state = target
        logger.info(f"Bulk operations: {previous.value} -> {target.value}")

        # Entry actions see the context of the state being entered
        self._context = replace(self._context, **changes)
        entry = self._entry_actions.get(target)
        self._publish(**(entry() if entry is not None else {}))

    def _work_tasks(self) -> List[asyncio.Task]:
        tasks = [run.task for run in self._interrupted.values()]
        if self._task is not None:
            tasks.append(self._task)
        return tasks

    def _start(self, work):
        self._task = asyncio.get_running_loop().create_task(self._run(self._invocation, work))

    async def _run(self, invocation: int, work):
        try:
            event = await work
        except asyncio.CancelledError:
            logger.debug(f"Invocation {invocation} cancelled")
            raise
        except Exception as e:
            logger.error(f"Bulk operations work failed: {e}", exc_info=True)
            event = ActorFailed(invocation=invocation, error=str(e) or type(e).__name__)
        self.send(event)

    # ------------------------------------------------------------------
    # Entry actions
    # ------------------------------------------------------------------

    def _enter_validating(self) -> Dict[str, Any]:
        self._start(self._validate(
            self._invocation,
            self._context.current_operation,
            self._selection.ordered_selection(),
        ))
        return {"is_loading": True}

    def _enter_confirmed(self) -> Dict[str, Any]:
        return {"show_confirm_dialog": True}

    def _enter_executing(self) -> Dict[str, Any]:
        operation = self._context.current_operation
        ids = self._selection.ordered_selection()

        self._snapshot = OptimisticSnapshot(operation)
        self._selection.replace_issues(self._snapshot.apply(self._selection.issues, ids))
        self._cancel_token = CancellationToken()
        batch_size = self._batch_size_for(operation, len(ids))

        self._start(self._execute(self._invocation, operation, ids, batch_size, self._cancel_token))
        return {
            "show_confirm_dialog": False,
            "show_progress": True,
            "operation_progress": 0,
            "batch_size": batch_size,
            "current_batch": 0,
            "total_batches": self.executor.total_batches(len(ids), batch_size),
        }

    def _enter_finished(self) -> Dict[str, Any]:
        if self.completed_reset_seconds is not None:
            self._timer = asyncio.get_running_loop().create_task(
                self._reset_after(self._invocation, self.completed_reset_seconds)
            )
        return {}

    def _enter_undoing(self) -> Dict[str, Any]:
        self._start(self._undo(self._invocation))
        return {"is_loading": True}

    def _enter_redoing(self) -> Dict[str, Any]:
        self._start(self._redo(self._invocation))
        return {"is_loading": True}

    # ------------------------------------------------------------------
    # Invoked work
    # ------------------------------------------------------------------

    async def _validate(self, invocation: int, operation: BulkOperation, ids: List[int]):
        errors = await self.validator.validate(operation, ids)
        return ValidationDone(invocation=invocation, errors=list(errors))

    async def _execute(
        self,
        invocation: int,
        operation: BulkOperation,
        ids: List[int],
        batch_size: int,
        token: CancellationToken,
    ):
        # Chunks of an interrupted run must not interleave with ours
        earlier = [run.task for run in self._interrupted.values() if run.invocation < invocation]
        if earlier:
            logger.info(f"Waiting for {len(earlier)} interrupted run(s) to finish their last batch")
            await asyncio.wait(earlier)

        def on_progress(progress: int, batch_number: int):
            if invocation == self._invocation:
                self._publish(operation_progress=progress, current_batch=batch_number)

        try:
            result = await self.executor.execute(
                operation,
                ids,
                batch_size=batch_size,
                on_progress=on_progress,
                cancel_token=token,
            )
        except OperationCancelled as e:
            return ExecutionCancelled(invocation=invocation, result=e.result)
        return ExecutionDone(invocation=invocation, result=result)

    async def _undo(self, invocation: int):
        entry = self.history.peek_undo()
        inverse = build_inverse_operations(entry.operation, entry.result.affected_issues)

        results = []
        updates = []
        for operation, ids in inverse:
            result = await self.executor.execute(operation, ids, batch_size=self.batch_size)
            results.append(result)
            updates.append((operation, list(result.affected_issues)))

        return HistoryMoveDone(invocation=invocation, result=merge_results(results), updates=updates)

    async def _redo(self, invocation: int):
        entry = self.history.peek_redo()
        result = await self.executor.execute(
            entry.operation,
            entry.result.affected_issues,
            batch_size=self.batch_size,
        )
        return HistoryMoveDone(
            invocation=invocation,
            result=result,
            updates=[(entry.operation, list(result.affected_issues))],
        )

    async def _reset_after(self, invocation: int, delay: float):
        await asyncio.sleep(delay)
        # Leaving the state must not cancel the task that is leaving it
        self._timer = None
        self.send(ResetTimeout(invocation=invocation))

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def _on_load_issues(self, event):
        self._selection.load(event.issues)
        self._snapshot = None
        self._publish()

    def _on_toggle(self, event):
        self._selection.toggle(event.issue_id)
        self._publish()

    def _on_select_all(self, event):
        self._selection.select_all()
        self._publish()

    def _on_select_none(self, event):
        self._selection.select_none()
        self._publish()

    def _on_select_filtered(self, event):
        criteria = event.filter
        if isinstance(criteria, IssueFilter):
            predicate = criteria.matches
        elif isinstance(criteria, str):
            def predicate(issue):
                return matches_query(issue, criteria)
        else:
            predicate = criteria
        self._selection.select_where(predicate)
        self._publish()

    def _on_set_operation(self, event):
        if len(self._selection) == 0:
            logger.debug("Ignoring set_operation with no issues selected")
            return
        self._transition(
            BulkState.VALIDATING,
            current_operation=event.operation,
            validation_errors=(),
        )

    def _on_undo(self, event):
        if not self.can_undo():
            logger.debug("Nothing to undo")
            return
        self._transition(BulkState.UNDOING)

    def _on_redo(self, event):
        if not self.can_redo():
            logger.debug("Nothing to redo")
            return
        self._transition(BulkState.REDOING)

    def _on_clear_history(self, event):
        self.history.clear()
        self._publish()

    def _on_validation_done(self, event):
        if not event.errors:
            self._transition(BulkState.CONFIRMED, is_loading=False, validation_errors=())
        else:
            self._transition(
                BulkState.VALIDATION_FAILED,
                is_loading=False,
                validation_errors=tuple(event.errors),
            )

    def _on_confirm(self, event):
        if len(self._selection) > self.large_operation_threshold:
            self._transition(BulkState.EXECUTING_BATCHED)
        else:
            self._transition(BulkState.EXECUTING)

    def _on_cancel(self, event):
        self._transition(BulkState.IDLE, **self._cleared_operation())

    def _on_cancel_execution(self, event):
        if self._cancel_token is not None and not self._cancel_token.cancelled:
            logger.info("Cancellation requested; stopping after the current batch")
            self._cancel_token.cancel()

    def _on_execution_done(self, event):
        self._finish_execution(event.result, record=True)
        self._transition(
            BulkState.COMPLETED,
            show_progress=False,
            operation_results=event.result,
            operation_progress=100,
        )

    def _on_execution_cancelled(self, event):
        self._finish_execution(event.result, record=bool(event.result.affected_issues))
        self._transition(
            BulkState.CANCELLED,
            show_progress=False,
            operation_results=event.result,
        )

    def _on_execution_failed(self, event):
        self._rollback()
        self._transition(
            BulkState.ERROR,
            show_progress=False,
            is_loading=False,
            error=event.error,
        )

    def _on_reset_timeout(self, event):
        self._transition(BulkState.IDLE)

    def _on_reset_selection(self, event):
        self._selection.select_none()
        self._transition(BulkState.IDLE, error=None, **self._cleared_operation())

    def _on_history_move_done(self, event):
        issues = self._selection.issues
        for operation, ids in event.updates:
            targets = set(ids)
            issues = tuple(
                apply_operation(issue, operation) if issue.id in targets else issue
                for issue in issues
            )
        self._selection.replace_issues(issues)

        if self._state == BulkState.UNDOING:
            self.history.commit_undo()
        else:
            self.history.commit_redo()

        self._transition(BulkState.IDLE, is_loading=False, operation_results=event.result)

    def _on_actor_failed(self, event):
        self._transition(
            BulkState.ERROR,
            is_loading=False,
            show_progress=False,
            error=event.error,
        )

    def _on_retry(self, event):
        self._transition(BulkState.IDLE, error=None)

    def _on_global_error(self, event):
        if self._state in EXECUTING_STATES:
            # The batch in flight still lands on the server; its outcome is
            # reconciled by _reconcile_interrupted once the executor stops
            if self._cancel_token is not None:
                self._cancel_token.cancel()
            if self._snapshot is not None and self._task is not None:
                self._interrupted[self._invocation] = _InterruptedRun(
                    invocation=self._invocation,
                    snapshot=self._snapshot,
                    task=self._task,
                )
            self._snapshot = None
            self._cancel_token = None
        elif self._task is not None and not self._task.done():
            self._task.cancel()

        self._transition(
            BulkState.ERROR,
            is_loading=False,
            show_progress=False,
            show_confirm_dialog=False,
            error=event.error,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _cleared_operation(self) -> Dict[str, Any]:
        return {
            "current_operation": None,
            "validation_errors": (),
            "show_confirm_dialog": False,
        }

    def _batch_size_for(self, operation: BulkOperation, count: int) -> int:
        if self.adaptive_batching:
            return adaptive_batch_size(operation.kind, count)
        return self.batch_size

    def _rollback(self, issue_ids=None):
        if self._snapshot is None:
            return
        self._selection.replace_issues(self._snapshot.rollback(self._selection.issues, issue_ids))
        if issue_ids is None:
            self._snapshot = None

    def _finish_execution(self, result: BulkOperationResult, record: bool):
        snapshot = self._snapshot
        # Failed issues never changed on the server
        if result.failed_ids:
            self._rollback(result.failed_ids)

        if record and snapshot is not None:
            self._record(snapshot, result)

        self._snapshot = None
        self._cancel_token = None
        self._selection.select_none()

    def _record(self, snapshot: OptimisticSnapshot, result: BulkOperationResult):
        operation = snapshot.operation.model_copy(
            update={"previous_values": snapshot.previous_for(result.affected_issues)}
        )
        self.history.record(operation, result)

    def _reconcile_interrupted(self, event):
        """
        Settle an execution that a global error interrupted.

        Issues the server updated keep their optimistic values and are
        recorded in history; failed and never-submitted issues are rolled
        back.
        """
        run = self._interrupted.pop(event.invocation)
        snapshot = run.snapshot

        if event.type == EventType.ACTOR_FAILED:
            result = None
            restore = set(snapshot.previous)
        else:
            result = event.result
            restore = set(result.failed_ids)

        # A later optimistic update captured our value as its pre-image;
        # hand it the real pre-image instead of touching the board
        later = [r.snapshot for i, r in sorted(self._interrupted.items()) if i > run.invocation]
        if self._snapshot is not None:
            later.append(self._snapshot)
        on_board = set()
        for issue_id in restore & set(snapshot.previous):
            holder = next((s for s in later if issue_id in s.previous), None)
            if holder is None:
                on_board.add(issue_id)
            else:
                holder.previous[issue_id] = snapshot.previous[issue_id]
        self._selection.replace_issues(snapshot.rollback(self._selection.issues, on_board))

        changes: Dict[str, Any] = {}
        if result is not None:
            logger.info(
                f"Interrupted {snapshot.operation.describe()} settled: "
                f"{len(result.affected_issues)} updated, {len(restore)} rolled back"
            )
            if result.affected_issues:
                self._record(snapshot, result)
            if self._state == BulkState.ERROR:
                changes["operation_results"] = result
        self._publish(**changes)
