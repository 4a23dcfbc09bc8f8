"""
Linear undo/redo log of executed bulk operations.

Entries before the index are undoable, entries at or after it are
redoable. Recording a new operation discards the redo tail. The history
only does index bookkeeping; undo and redo mutations are executed by the
caller through the batch executor.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from ..exceptions import HistoryError
from ..models.operation import BulkOperation, BulkOperationResult, HistoryEntry

logger = logging.getLogger(__name__)


class OperationHistory:
    """Undo/redo log with a current index."""

    def __init__(self, max_entries: Optional[int] = None):
        self.max_entries = max_entries
        self._entries: List[HistoryEntry] = []
        self._index = 0

    @property
    def index(self) -> int:
        return self._index

    @property
    def entries(self) -> Tuple[HistoryEntry, ...]:
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def record(self, operation: BulkOperation, result: BulkOperationResult) -> HistoryEntry:
        """Append an executed operation, discarding any redo tail first."""
        if self._index < len(self._entries):
            dropped = len(self._entries) - self._index
            logger.debug(f"Discarding {dropped} redoable history entr{'y' if dropped == 1 else 'ies'}")
            del self._entries[self._index:]

        entry = HistoryEntry(operation=operation, result=result)
        self._entries.append(entry)
        self._index += 1

        if self.max_entries is not None and len(self._entries) > self.max_entries:
            overflow = len(self._entries) - self.max_entries
            del self._entries[:overflow]
            self._index -= overflow

        return entry

    def undoable(self) -> bool:
        return self._index > 0

    def redoable(self) -> bool:
        return self._index < len(self._entries)

    def peek_undo(self) -> HistoryEntry:
        """Entry the next undo would reverse."""
        if not self.undoable():
            raise HistoryError("No operation to undo")
        return self._entries[self._index - 1]

    def peek_redo(self) -> HistoryEntry:
        """Entry the next redo would replay."""
        if not self.redoable():
            raise HistoryError("No operation to redo")
        return self._entries[self._index]

    def commit_undo(self):
        self._index = max(0, self._index - 1)

    def commit_redo(self):
        self._index = min(len(self._entries), self._index + 1)

    def clear(self):
        self._entries = []
        self._index = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for display."""
        return {
            "index": self._index,
            "entries": [
                {
                    "operation": entry.operation.describe(),
                    "timestamp": entry.timestamp.isoformat(),
                    "result": entry.result.to_dict(),
                }
                for entry in self._entries
            ],
        }
