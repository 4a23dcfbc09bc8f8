"""
Unit tests for the issue selection set.
"""

import pytest

from bulkops.models import IssueFilter, IssueSelection, matches_query
from bulkops.operations.selection import IssueSelectionSet, SelectionMode


@pytest.fixture
def selection(sample_issues):
    selection = IssueSelectionSet()
    selection.load(sample_issues)
    return selection


class TestIssueSelectionSet:
    """Test IssueSelectionSet class."""

    def test_load_clears_selection(self, selection, sample_issues):
        selection.toggle(1)
        selection.load(sample_issues[:2])

        assert len(selection) == 0
        assert [i.id for i in selection.issues] == [1, 2]
        assert selection.all_selected is False

    def test_load_drops_duplicate_ids(self):
        selection = IssueSelectionSet()
        selection.load([
            IssueSelection(id=1, title="first"),
            IssueSelection(id=1, title="second"),
        ])

        assert len(selection.issues) == 1
        assert selection.issues[0].title == "first"

    def test_toggle_adds_and_removes(self, selection):
        selection.toggle(2)
        assert 2 in selection

        selection.toggle(2)
        assert 2 not in selection

    def test_toggle_unknown_id_is_noop(self, selection):
        selection.toggle(1)
        selection.toggle(999)

        assert selection.selected == frozenset({1})

    def test_selection_always_subset_of_available(self, selection):
        available = {issue.id for issue in selection.issues}
        for issue_id in [1, 42, 3, -1, 3, 5, 1000]:
            selection.toggle(issue_id)
            assert selection.selected <= available

    def test_all_selected_tracks_toggles(self, selection):
        for issue_id in [1, 2, 3, 4]:
            selection.toggle(issue_id)
        assert selection.all_selected is False

        selection.toggle(5)
        assert selection.all_selected is True

    def test_select_all_then_none(self, selection):
        selection.select_all()
        assert len(selection) == 5
        assert selection.all_selected is True
        assert selection.mode == SelectionMode.ALL

        selection.select_none()
        assert len(selection) == 0
        assert selection.all_selected is False
        assert selection.mode == SelectionMode.MANUAL

    def test_select_where(self, selection):
        selection.select_where(lambda issue: "bug" in issue.labels)

        assert selection.selected == frozenset({1, 4})
        assert selection.mode == SelectionMode.FILTER

    def test_ordered_selection_follows_load_order(self, selection):
        selection.toggle(4)
        selection.toggle(1)
        selection.toggle(3)

        assert selection.ordered_selection() == [1, 3, 4]

    def test_empty_board_is_never_all_selected(self):
        selection = IssueSelectionSet()
        selection.load([])
        selection.select_all()

        assert selection.all_selected is False


class TestIssueFilter:
    """Test attribute filters and free-text queries."""

    def test_filter_by_status_and_priority(self, sample_issues):
        issue_filter = IssueFilter(status=["todo"], priority=["high", "low"])

        assert [i.id for i in sample_issues if issue_filter.matches(i)] == [1, 3]

    def test_filter_by_assignee(self, sample_issues):
        issue_filter = IssueFilter(assignee_id=[10])

        assert [i.id for i in sample_issues if issue_filter.matches(i)] == [1, 4]

    def test_labels_match_any(self, sample_issues):
        issue_filter = IssueFilter(labels=["docs", "feature"])

        assert [i.id for i in sample_issues if issue_filter.matches(i)] == [2, 5]

    def test_empty_filter_matches_everything(self, sample_issues):
        assert all(IssueFilter().matches(i) for i in sample_issues)

    def test_query_requires_every_term(self, sample_issues):
        assert [i.id for i in sample_issues if matches_query(i, "bug chart")] == [4]
        assert [i.id for i in sample_issues if matches_query(i, "AUTH")] == [3]
