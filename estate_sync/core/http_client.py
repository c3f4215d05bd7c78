"""
Base HTTP client with rate limiting and error handling.

Provides a reusable foundation for remote content store clients.
Implements bounded concurrency, request pacing, and standardized error
classification. Requests are attempted once: a failed query surfaces as an
APIError and the caller decides how to degrade.
"""
import asyncio
import logging
from abc import ABC
from typing import Dict, Optional, Any
import httpx

from estate_sync.core.api_errors import (
    APIError,
    FatalError,
    RetryableError,
    classify_http_error
)

logger = logging.getLogger(__name__)


class BaseAPIClient(ABC):
    """
    Base class for remote API clients.

    Provides unified:
    - HTTP request handling
    - Rate limiting via semaphore and minimum request interval
    - Standardized error classification
    - Connection pooling

    Subclasses should:
    - Set SOURCE_NAME and BASE_URL class attributes
    - Implement API-specific methods that call _request()
    - Override _check_api_error() for API-specific error detection
    """

    # Override in subclass
    SOURCE_NAME: str = "unknown"
    BASE_URL: str = ""

    # Default settings
    DEFAULT_MAX_CONCURRENCY: int = 2
    DEFAULT_TIMEOUT: float = 30.0
    DEFAULT_CONNECT_TIMEOUT: float = 10.0

    def __init__(
        self,
        api_key: Optional[str] = None,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        timeout: float = DEFAULT_TIMEOUT,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        rate_limit_interval: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize the API client.

        Args:
            api_key: Optional API key for authentication
            max_concurrency: Maximum concurrent requests (semaphore size)
            timeout: Request timeout in seconds
            connect_timeout: Connection timeout in seconds
            rate_limit_interval: Minimum seconds between requests (None = no limit)
            transport: Optional httpx transport (tests inject a MockTransport)
        """
        self.api_key = api_key
        self.max_concurrency = max_concurrency
        self.timeout = timeout
        self.connect_timeout = connect_timeout
        self.rate_limit_interval = rate_limit_interval
        self._transport = transport

        # Semaphore for bounded concurrency
        self.semaphore = asyncio.Semaphore(max_concurrency)

        # Rate limiting state
        self._last_request_time: float = 0
        self._rate_limit_lock = asyncio.Lock()

        # HTTP client (lazy initialization)
        self._client: Optional[httpx.AsyncClient] = None

        logger.info(
            f"Initialized {self.SOURCE_NAME} client: "
            f"api_key_present={api_key is not None}, "
            f"max_concurrency={max_concurrency}"
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client with connection pooling."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout, connect=self.connect_timeout),
                follow_redirects=True,
                limits=httpx.Limits(
                    max_connections=self.max_concurrency * 2,
                    max_keepalive_connections=self.max_concurrency
                ),
                transport=self._transport
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.debug(f"{self.SOURCE_NAME} client closed")

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit - ensures cleanup."""
        await self.close()

    async def _enforce_rate_limit(self) -> None:
        """Enforce minimum interval between requests."""
        if self.rate_limit_interval is None:
            return

        async with self._rate_limit_lock:
            now = asyncio.get_running_loop().time()
            elapsed = now - self._last_request_time
            if elapsed < self.rate_limit_interval:
                wait_time = self.rate_limit_interval - elapsed
                logger.debug(f"Rate limiting: waiting {wait_time:.2f}s")
                await asyncio.sleep(wait_time)
            self._last_request_time = asyncio.get_running_loop().time()

    def _check_api_error(
        self,
        data: Dict[str, Any],
        resource_id: str
    ) -> Optional[APIError]:
        """
        Check API response for source-specific errors.

        Override in subclass to handle API-specific error formats.

        Args:
            data: Parsed JSON response
            resource_id: Resource being requested (for logging)

        Returns:
            APIError if error detected, None otherwise
        """
        if "error" in data:
            error_msg = data.get("error")
            if isinstance(error_msg, dict):
                error_msg = error_msg.get("message", str(error_msg))
            return FatalError(
                message=str(error_msg),
                source=self.SOURCE_NAME,
                response_data=data
            )
        return None

    def _build_headers(self) -> Dict[str, str]:
        """
        Build request headers.

        Override to add API-specific headers (e.g., Authorization).
        """
        return {
            "Accept": "application/json",
            "User-Agent": f"EstateSync/{self.SOURCE_NAME}-client"
        }

    async def _request(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
        resource_id: str = "unknown",
        extra_headers: Optional[Dict[str, str]] = None
    ) -> Dict[str, Any]:
        """
        Make a single HTTP request.

        Args:
            method: HTTP method (GET, POST, etc.)
            url: Full URL or path (if path, BASE_URL is prepended)
            params: Query parameters
            json_body: JSON body for POST/PUT requests
            resource_id: Identifier for logging
            extra_headers: Additional headers to include

        Returns:
            Parsed JSON response

        Raises:
            APIError: On any failure
        """
        if not url.startswith("http"):
            url = f"{self.BASE_URL.rstrip('/')}/{url.lstrip('/')}"

        headers = self._build_headers()
        if extra_headers:
            headers.update(extra_headers)

        async with self.semaphore:
            await self._enforce_rate_limit()
            client = await self._get_client()

            logger.debug(f"[{self.SOURCE_NAME}] {method} {resource_id}")

            try:
                response = await client.request(
                    method,
                    url,
                    params=params,
                    json=json_body,
                    headers=headers
                )
                response.raise_for_status()
                data = response.json()

            except httpx.HTTPStatusError as e:
                raise classify_http_error(
                    e.response.status_code,
                    e.response.text[:500],
                    self.SOURCE_NAME
                ) from e

            except httpx.RequestError as e:
                raise RetryableError(
                    message=f"Request failed: {str(e)}",
                    source=self.SOURCE_NAME
                ) from e

            except ValueError as e:
                raise APIError(
                    message=f"Invalid JSON in response for {resource_id}: {e}",
                    source=self.SOURCE_NAME
                ) from e

        if not isinstance(data, dict):
            raise APIError(
                message=f"Unexpected response shape for {resource_id}",
                source=self.SOURCE_NAME
            )

        api_error = self._check_api_error(data, resource_id)
        if api_error:
            raise api_error

        logger.debug(f"[{self.SOURCE_NAME}] Successfully fetched {resource_id}")
        return data

    async def get(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        resource_id: str = "unknown"
    ) -> Dict[str, Any]:
        """Make GET request."""
        return await self._request("GET", url, params=params, resource_id=resource_id)

    async def post(
        self,
        url: str,
        json_body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        resource_id: str = "unknown"
    ) -> Dict[str, Any]:
        """Make POST request."""
        return await self._request(
            "POST",
            url,
            params=params,
            json_body=json_body,
            resource_id=resource_id
        )
