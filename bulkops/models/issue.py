"""Issue projection used for multi-select on the board."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class IssueSelection(BaseModel):
    """
    Lightweight projection of an issue for selection purposes.

    Status and priority are kept as plain strings so issues from custom
    board columns still load; the validator enforces allowed values on
    operations instead.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int
    title: str = ""
    status: str = "todo"
    priority: str = "medium"
    assignee_id: Optional[int] = Field(default=None, alias="assigneeId")
    labels: List[str] = Field(default_factory=list)
    estimate: Optional[float] = None
    sprint_id: Optional[int] = Field(default=None, alias="sprintId")


class IssueFilter(BaseModel):
    """Attribute filter for selecting issues; unset lists match everything."""

    status: Optional[List[str]] = None
    priority: Optional[List[str]] = None
    assignee_id: Optional[List[int]] = None
    labels: Optional[List[str]] = None

    def matches(self, issue: IssueSelection) -> bool:
        if self.status is not None and issue.status not in self.status:
            return False
        if self.priority is not None and issue.priority not in self.priority:
            return False
        if self.assignee_id is not None and issue.assignee_id not in self.assignee_id:
            return False
        # Any shared label is enough
        if self.labels is not None and not set(self.labels) & set(issue.labels):
            return False
        return True


def matches_query(issue: IssueSelection, query: str) -> bool:
    """True when every whitespace-separated term occurs in the title or labels."""
    search_text = f"{issue.title} {' '.join(issue.labels)}".lower()
    return all(term in search_text for term in query.lower().split())
