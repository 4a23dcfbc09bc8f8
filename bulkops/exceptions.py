"""Custom exceptions for bulk issue operations."""


class BulkOperationError(Exception):
    """Base exception for bulk operation errors."""
    pass


class TransportError(BulkOperationError):
    """Batch-mutation request failed (network error or non-2xx response)."""

    def __init__(self, message: str, status_code=None):
        super().__init__(message)
        self.status_code = status_code


class HistoryError(BulkOperationError):
    """Nothing to undo or redo at the current history position."""
    pass


class UndoNotSupportedError(BulkOperationError):
    """No inverse operation can be built for a recorded operation."""
    pass


class OperationCancelled(BulkOperationError):
    """Execution stopped between batches after a cancellation request."""

    def __init__(self, result):
        super().__init__(
            f"Operation cancelled after {len(result.affected_issues)} issue(s) were updated"
        )
        self.result = result
