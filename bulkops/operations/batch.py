"""
Batch execution of bulk issue operations.

Splits the selected issues into fixed-size chunks and submits them to the
batch-mutation endpoint one chunk at a time:
- Sequential chunks (never concurrent) to bound load on the issues API
- Per-issue success/failure collection
- Progress reporting after every chunk
- Cooperative cancellation between chunks
"""
import asyncio
import logging
import math
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Sequence

from config import get_settings
from ..exceptions import OperationCancelled
from ..models.operation import (
    BatchItemError,
    BatchResponse,
    BulkOperation,
    BulkOperationResult,
    OperationKind,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]

CANCELLED_MESSAGE = "Operation cancelled"


class BatchSubmitter(Protocol):
    """Anything that can apply one operation to one chunk of issues."""

    async def submit_batch(self, issue_ids: List[int], operation: BulkOperation) -> BatchResponse:
        ...


class CancellationToken:
    """Cooperative cancellation flag checked between chunks."""

    def __init__(self):
        self._cancelled = False

    def cancel(self):
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


def plan_batches(issue_ids: Sequence[int], batch_size: int) -> List[List[int]]:
    """Partition ids into consecutive chunks of at most `batch_size`."""
    if batch_size < 1:
        raise ValueError(f"Batch size must be at least 1, got {batch_size}")
    ids = list(issue_ids)
    return [ids[i:i + batch_size] for i in range(0, len(ids), batch_size)]


def adaptive_batch_size(kind: OperationKind, total: int) -> int:
    """Suggested chunk size for an operation kind and selection size."""
    if total <= 10:
        return max(total, 1)

    if kind in (OperationKind.STATUS, OperationKind.PRIORITY, OperationKind.ASSIGN):
        return min(50, max(10, total // 4))
    if kind == OperationKind.LABELS:
        return min(25, max(5, total // 8))
    if kind in (OperationKind.ESTIMATE, OperationKind.SPRINT):
        return min(20, max(5, total // 10))
    return min(25, max(10, total // 6))


class BatchResultBuilder:
    """Accumulates per-chunk outcomes into a BulkOperationResult."""

    def __init__(self):
        self.success_count = 0
        self.failure_count = 0
        self.errors: List[BatchItemError] = []
        self.affected: List[int] = []
        self.start_time = datetime.now()

    def add_success(self, issue_ids: Iterable[int], count: int):
        """Add the ids a chunk updated and the count the endpoint reported."""
        self.affected.extend(issue_ids)
        self.success_count += count

    def add_failure(self, issue_id: int, error: str):
        self.errors.append(BatchItemError(issue_id=issue_id, error=error))
        self.failure_count += 1

    def fail_all(self, issue_ids: Iterable[int], error: str):
        for issue_id in issue_ids:
            self.add_failure(issue_id, error)

    def finalize(self) -> BulkOperationResult:
        """Freeze the accumulated outcome."""
        return BulkOperationResult(
            success_count=self.success_count,
            failure_count=self.failure_count,
            errors=list(self.errors),
            affected_issues=list(self.affected),
            duration_seconds=(datetime.now() - self.start_time).total_seconds(),
        )


def merge_results(results: Iterable[BulkOperationResult]) -> BulkOperationResult:
    """Combine the results of several executions into one."""
    builder = BatchResultBuilder()
    duration = 0.0
    for result in results:
        builder.add_success(result.affected_issues, result.success_count)
        builder.errors.extend(result.errors)
        builder.failure_count += result.failure_count
        duration += result.duration_seconds
    return builder.finalize().model_copy(update={"duration_seconds": duration})


class BatchExecutor:
    """Applies a bulk operation chunk by chunk through a BatchSubmitter."""

    def __init__(
        self,
        submitter: BatchSubmitter,
        batch_size: Optional[int] = None,
        inter_batch_delay: Optional[float] = None,
    ):
        settings = get_settings()
        self.submitter = submitter
        self.batch_size = batch_size if batch_size is not None else settings.bulk_batch_size
        self.inter_batch_delay = (
            inter_batch_delay if inter_batch_delay is not None
            else settings.bulk_inter_batch_delay_seconds
        )

    def total_batches(self, count: int, batch_size: Optional[int] = None) -> int:
        return math.ceil(count / (batch_size or self.batch_size))

    async def execute(
        self,
        operation: BulkOperation,
        selected_ids: Sequence[int],
        batch_size: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> BulkOperationResult:
        """
        Execute an operation over the selected issues in sequential chunks.

        A failed request marks its whole chunk as failed and execution moves
        on to the next chunk. Retrying is left to the caller, who can
        re-invoke with `result.failed_ids`.

        Args:
            operation: Operation to apply
            selected_ids: Issue ids, in submission order
            batch_size: Chunk size (defaults to the executor's)
            on_progress: Called after each chunk with (percent, batch_number)
            cancel_token: Checked before each chunk

        Returns:
            BulkOperationResult covering every selected id

        Raises:
            OperationCancelled: If cancelled before all chunks were submitted
        """
        ids = list(dict.fromkeys(selected_ids))
        batches = plan_batches(ids, batch_size or self.batch_size)
        builder = BatchResultBuilder()

        logger.info(
            f"Executing {operation.describe()} on {len(ids)} issue(s) in {len(batches)} batch(es)"
        )

        for index, batch in enumerate(batches):
            if cancel_token is not None and cancel_token.cancelled:
                remaining = [issue_id for chunk in batches[index:] for issue_id in chunk]
                logger.warning(
                    f"Bulk {operation.kind.value} cancelled before batch {index + 1}/{len(batches)}, "
                    f"{len(remaining)} issue(s) not submitted"
                )
                builder.fail_all(remaining, CANCELLED_MESSAGE)
                raise OperationCancelled(builder.finalize())

            await self._run_batch(operation, batch, index, len(batches), builder)

            if on_progress is not None:
                # Half-up, so 12.5% reports as 13
                progress = (200 * (index + 1) + len(batches)) // (2 * len(batches))
                on_progress(progress, index + 1)

            # Small delay between batches to avoid overwhelming the server
            if index < len(batches) - 1 and self.inter_batch_delay > 0:
                await asyncio.sleep(self.inter_batch_delay)

        result = builder.finalize()
        logger.info(
            f"Bulk {operation.kind.value} finished: {result.success_count} succeeded, "
            f"{result.failure_count} failed in {result.duration_seconds:.2f}s"
        )
        return result

    async def _run_batch(
        self,
        operation: BulkOperation,
        batch: List[int],
        index: int,
        total: int,
        builder: BatchResultBuilder,
    ):
        try:
            response = await self.submitter.submit_batch(batch, operation)
            if isinstance(response, dict):
                response = BatchResponse.model_validate(response)
        except Exception as e:
            logger.error(f"Batch {index + 1}/{total} failed: {e}")
            builder.fail_all(batch, f"Batch {index + 1} failed: {e}")
            return

        in_batch = set(batch)
        item_errors: Dict[int, str] = {}
        for item in response.errors:
            if item.issue_id not in in_batch:
                logger.warning(
                    f"Ignoring error for issue {item.issue_id} outside batch {index + 1}"
                )
                continue
            item_errors.setdefault(item.issue_id, item.error)

        for issue_id, error in item_errors.items():
            builder.add_failure(issue_id, error)

        succeeded = [issue_id for issue_id in batch if issue_id not in item_errors]
        count = response.success_count if response.success_count is not None else len(succeeded)
        builder.add_success(succeeded, count)
