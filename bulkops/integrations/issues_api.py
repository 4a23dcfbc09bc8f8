"""
Issues API client.

Talks to the board backend's batch-mutation endpoint and loads the issue
list fed to the bulk operations controller.
"""

import logging
from typing import List, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from config import get_settings
from ..exceptions import TransportError
from ..models.issue import IssueSelection
from ..models.operation import BatchResponse, BulkOperation

logger = logging.getLogger(__name__)

BULK_UPDATE_PATH = "/api/issues/bulk-update"
ISSUES_PATH = "/api/issues"


class IssuesApiClient:
    """Async client for the issues REST API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.issues_api_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.issues_api_timeout_seconds
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "IssuesApiClient":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def close(self):
        if self._owns_client:
            await self._client.aclose()

    async def submit_batch(self, issue_ids: List[int], operation: BulkOperation) -> BatchResponse:
        """
        Apply one operation to one chunk of issues.

        Args:
            issue_ids: Issue ids in the chunk
            operation: Operation to apply

        Returns:
            BatchResponse with the success count and per-issue errors

        Raises:
            TransportError: On network failure, non-2xx status or malformed body
        """
        payload = {"issueIds": list(issue_ids), "operation": operation.to_payload()}
        response = await self._request("POST", BULK_UPDATE_PATH, json=payload)

        try:
            return BatchResponse.model_validate(response.json())
        except (ValueError, PydanticValidationError) as e:
            raise TransportError(f"Malformed bulk-update response: {e}") from e

    async def fetch_issues(self, project_id: Optional[int] = None) -> List[IssueSelection]:
        """Load the issue list for the board (optionally for one project)."""
        params = {"projectId": project_id} if project_id is not None else None
        response = await self._request("GET", ISSUES_PATH, params=params)

        try:
            return [IssueSelection.model_validate(item) for item in response.json()]
        except (ValueError, TypeError, PydanticValidationError) as e:
            raise TransportError(f"Malformed issues response: {e}") from e

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"Issues API {method} {path} failed: {e}")
            raise TransportError(f"{type(e).__name__}: {e}") from e

        if not response.is_success:
            logger.error(f"Issues API {method} {path} returned {response.status_code}")
            raise TransportError(
                f"HTTP {response.status_code}: {response.reason_phrase}",
                status_code=response.status_code,
            )
        return response
