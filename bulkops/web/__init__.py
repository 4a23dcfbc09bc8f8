from .routes import router
from .store import IssueStore, get_issue_store

__all__ = ["router", "IssueStore", "get_issue_store"]
