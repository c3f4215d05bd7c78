"""
Notion content store client with rate limiting.

The pipeline only needs one capability from the store: query a named
collection with an optional filter and sort order and get back rows whose
properties are addressed by name. ContentStore states that contract;
NotionClient implements it against the Notion REST API.

Rate Limits:
- Notion allows an average of 3 requests per second per integration
- Default: 3 concurrent requests, paced at max_requests_per_second
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional

import httpx

from estate_sync.core.api_errors import APIError, FatalError, RemoteQueryError, classify_http_error
from estate_sync.core.config import Settings
from estate_sync.core.http_client import BaseAPIClient
from estate_sync.sources.notion.extractors import RemoteRow

logger = logging.getLogger(__name__)

COLLECTIONS = ("properties", "amenities", "nearby_locations", "virtual_tour_scenes")


class ContentStore(ABC):
    """Read-only view of the remote content store."""

    @abstractmethod
    async def query_collection(
        self,
        collection: str,
        filter: Optional[Dict[str, Any]] = None,
        sorts: Optional[List[Dict[str, Any]]] = None,
    ) -> List[RemoteRow]:
        """
        Return every row of collection matching filter, in sort order.

        Raises:
            RemoteQueryError: On any failure
        """

    async def close(self) -> None:
        """Release resources held by the store."""


class NotionClient(BaseAPIClient, ContentStore):
    """
    HTTP client for the Notion database query API.

    API Documentation:
    https://developers.notion.com/reference/post-database-query
    """

    SOURCE_NAME = "notion"
    BASE_URL = "https://api.notion.com/v1"
    PAGE_SIZE = 100

    def __init__(
        self,
        api_key: str,
        database_ids: Mapping[str, str],
        api_version: str = "2022-06-28",
        max_concurrency: int = 3,
        max_requests_per_second: Optional[float] = 3.0,
        timeout: float = BaseAPIClient.DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize Notion client.

        Args:
            api_key: Integration token
            database_ids: Collection name -> database id
            api_version: Notion-Version header value
            max_concurrency: Maximum concurrent requests
            max_requests_per_second: Request pacing (None = unpaced)
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests)
        """
        interval = 1.0 / max_requests_per_second if max_requests_per_second else None
        super().__init__(
            api_key=api_key,
            max_concurrency=max_concurrency,
            timeout=timeout,
            rate_limit_interval=interval,
            transport=transport,
        )
        self.database_ids = dict(database_ids)
        self.api_version = api_version

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> "NotionClient":
        return cls(
            api_key=settings.require_notion_token(),
            database_ids=settings.database_ids,
            api_version=settings.notion_api_version,
            max_concurrency=settings.max_concurrency,
            max_requests_per_second=settings.max_requests_per_second,
            timeout=settings.request_timeout,
            transport=transport,
        )

    def _build_headers(self) -> Dict[str, str]:
        headers = super()._build_headers()
        headers["Authorization"] = f"Bearer {self.api_key}"
        headers["Notion-Version"] = self.api_version
        return headers

    def _check_api_error(
        self,
        data: Dict[str, Any],
        resource_id: str
    ) -> Optional[APIError]:
        """Notion reports errors as {"object": "error", "status", "code", "message"}."""
        if data.get("object") != "error":
            return None
        status = data.get("status")
        message = f"{data.get('code', 'error')}: {data.get('message', 'unknown error')}"
        if isinstance(status, int):
            return classify_http_error(status, message, self.SOURCE_NAME)
        return FatalError(message=message, source=self.SOURCE_NAME, response_data=data)

    async def query_collection(
        self,
        collection: str,
        filter: Optional[Dict[str, Any]] = None,
        sorts: Optional[List[Dict[str, Any]]] = None,
    ) -> List[RemoteRow]:
        """
        Query a database, following pagination until has_more is false.

        Args:
            collection: One of COLLECTIONS
            filter: Notion filter object
            sorts: Notion sort objects

        Returns:
            All matching rows in query order
        """
        database_id = self.database_ids.get(collection)
        if not database_id:
            raise RemoteQueryError(
                f"No database id configured for collection '{collection}'",
                collection=collection,
                source=self.SOURCE_NAME,
            )

        body: Dict[str, Any] = {"page_size": self.PAGE_SIZE}
        if filter:
            body["filter"] = filter
        if sorts:
            body["sorts"] = sorts

        rows: List[RemoteRow] = []
        cursor: Optional[str] = None
        while True:
            if cursor:
                body["start_cursor"] = cursor
            try:
                data = await self.post(
                    f"databases/{database_id}/query",
                    json_body=body,
                    resource_id=f"{collection} page {len(rows) // self.PAGE_SIZE + 1}",
                )
            except APIError as e:
                raise RemoteQueryError(
                    f"Query on '{collection}' failed: {e}",
                    collection=collection,
                    source=self.SOURCE_NAME,
                    cause=e,
                ) from e

            results = data.get("results")
            if not isinstance(results, list):
                raise RemoteQueryError(
                    f"Query on '{collection}' returned no results list",
                    collection=collection,
                    source=self.SOURCE_NAME,
                )
            rows.extend(
                RemoteRow.from_page(page) for page in results if isinstance(page, Mapping)
            )

            cursor = data.get("next_cursor")
            if not data.get("has_more") or not cursor:
                break

        logger.debug(f"[notion] {collection}: {len(rows)} rows")
        return rows
