"""
Pytest configuration and shared fixtures.
"""

import pytest
from unittest.mock import AsyncMock

from bulkops.models import BatchResponse, IssueSelection

# Configure pytest-asyncio
pytest_plugins = ('pytest_asyncio',)


@pytest.fixture
def sample_issues():
    """Five issues covering the projected fields."""
    return [
        IssueSelection(id=1, title="Login page crash", status="todo", priority="high",
                       assignee_id=10, labels=["bug", "frontend"], estimate=3, sprint_id=1),
        IssueSelection(id=2, title="Add sprint report", status="in_progress", priority="medium",
                       assignee_id=11, labels=["feature"], estimate=5, sprint_id=1),
        IssueSelection(id=3, title="Refactor auth module", status="todo", priority="low",
                       assignee_id=None, labels=[], estimate=None, sprint_id=None),
        IssueSelection(id=4, title="Fix burndown chart", status="code_review", priority="urgent",
                       assignee_id=10, labels=["bug"], estimate=2, sprint_id=2),
        IssueSelection(id=5, title="Document API tokens", status="done", priority="medium",
                       assignee_id=12, labels=["docs"], estimate=1, sprint_id=2),
    ]


@pytest.fixture
def ok_submitter():
    """Submitter whose every batch succeeds."""
    submitter = AsyncMock()

    async def submit_batch(issue_ids, operation):
        return BatchResponse(success_count=len(issue_ids), errors=[])

    submitter.submit_batch = AsyncMock(side_effect=submit_batch)
    return submitter
