from .issues_api import IssuesApiClient

__all__ = ["IssuesApiClient"]
