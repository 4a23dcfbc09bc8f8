"""
Issue selection set for multi-select on the board.

Tracks which of the currently loaded issues are chosen for a batch action.
The selection is always a subset of the loaded issue ids.
"""

import logging
from enum import Enum
from typing import Callable, FrozenSet, Iterable, List, Tuple

from ..models.issue import IssueSelection

logger = logging.getLogger(__name__)


class SelectionMode(str, Enum):
    """How the current selection was made."""
    MANUAL = "manual"
    FILTER = "filter"
    ALL = "all"


class IssueSelectionSet:
    """Available issues plus the ids currently selected from them."""

    def __init__(self):
        self._issues: List[IssueSelection] = []
        self._ids: set = set()
        self._selected: set = set()
        self.mode = SelectionMode.MANUAL
        self.all_selected = False

    @property
    def issues(self) -> Tuple[IssueSelection, ...]:
        return tuple(self._issues)

    @property
    def selected(self) -> FrozenSet[int]:
        return frozenset(self._selected)

    def __len__(self) -> int:
        return len(self._selected)

    def __contains__(self, issue_id: int) -> bool:
        return issue_id in self._selected

    def ordered_selection(self) -> List[int]:
        """Selected ids in the order the issues were loaded."""
        return [issue.id for issue in self._issues if issue.id in self._selected]

    def load(self, issues: Iterable[IssueSelection]):
        """Replace the available issues and clear the selection."""
        loaded = []
        seen = set()
        for issue in issues:
            if issue.id in seen:
                logger.warning(f"Duplicate issue id {issue.id} ignored on load")
                continue
            seen.add(issue.id)
            loaded.append(issue)

        self._issues = loaded
        self._ids = seen
        self._selected = set()
        self.mode = SelectionMode.MANUAL
        self._refresh()

    def replace_issues(self, issues: Iterable[IssueSelection]):
        """Swap in updated copies of the loaded issues, keeping the selection."""
        updated = {issue.id: issue for issue in issues}
        self._issues = [updated.get(issue.id, issue) for issue in self._issues]

    def toggle(self, issue_id: int):
        """Flip membership of one issue; unknown ids are ignored."""
        if issue_id not in self._ids:
            logger.debug(f"Ignoring toggle for unknown issue {issue_id}")
            return
        if issue_id in self._selected:
            self._selected.discard(issue_id)
        else:
            self._selected.add(issue_id)
        self.mode = SelectionMode.MANUAL
        self._refresh()

    def select_all(self):
        self._selected = set(self._ids)
        self.mode = SelectionMode.ALL
        self._refresh()

    def select_none(self):
        self._selected = set()
        self.mode = SelectionMode.MANUAL
        self._refresh()

    def select_where(self, predicate: Callable[[IssueSelection], bool]):
        """Select exactly the available issues satisfying `predicate`."""
        self._selected = {issue.id for issue in self._issues if predicate(issue)}
        self.mode = SelectionMode.FILTER
        self._refresh()

    def _refresh(self):
        # An empty board never counts as "all selected"
        self.all_selected = bool(self._ids) and len(self._selected) == len(self._ids)
