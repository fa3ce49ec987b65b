"""HTTP client for the remote repository server."""

from __future__ import annotations

import logging
import random
import time
from typing import Any

import httpx

from .config import config
from .exceptions import (
    BackendAuthenticationError,
    BackendError,
    BackendInvalidResponseError,
    BackendNetworkError,
    BackendPermissionError,
    BackendRateLimitError,
    ConfigError,
    NotFoundError,
)
from .utils import DEFAULT_MAX_RETRIES, DEFAULT_RETRY_DELAY

logger = logging.getLogger(__name__)


class RepoFSClient:
    """Client for the server API backing a remote repository tree."""

    def __init__(
        self,
        server_url: str | None = None,
        api_key: str | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize API client.

        Args:
            server_url: Base URL of the server API (uses config if not provided)
            api_key: Optional static token sent as bearer header
            max_retries: Maximum number of retry attempts (default: 3)
            retry_delay: Initial delay between retries in seconds (default: 1.0)
            timeout: Request timeout in seconds (uses config if not provided)
            transport: Optional httpx transport (used to plug in test servers)
        """
        server_url = server_url or config.server_url
        if not server_url:
            raise ConfigError(
                "Server URL not configured. "
                "Please set REPOFS_SERVER_URL or pass --server."
            )
        self.server_url = server_url.rstrip("/")
        self.api_key = api_key if api_key is not None else config.api_key
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout if timeout is not None else config.timeout
        self._transport = transport
        self._client: httpx.Client | None = None

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            headers = {"Accept": "application/json"}
            if self.api_key:
                headers["Authorization"] = f"Bearer {self.api_key}"
            self._client = httpx.Client(
                headers=headers,
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        """Close the client and release connections."""
        if self._client is not None and not self._client.is_closed:
            self._client.close()
            self._client = None

    def __enter__(self) -> RepoFSClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _should_retry(self, exception: Exception, attempt: int) -> bool:
        """Whether a failed attempt is transient and retries remain."""
        if attempt >= self.max_retries:
            return False

        return isinstance(exception, (BackendNetworkError, BackendRateLimitError))

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Seconds to wait before the next attempt.

        Doubles ``retry_delay`` per attempt (0-based) with +/- 25% jitter.
        """
        base_delay = self.retry_delay * (2**attempt)
        jitter = base_delay * 0.25 * (2 * random.random() - 1)
        return base_delay + jitter

    def _handle_http_error(
        self, e: httpx.HTTPStatusError, endpoint: str, attempt: int
    ) -> tuple[BackendError, bool]:
        """Map an HTTP error to the exception family.

        Args:
            e: Status error raised by httpx
            endpoint: Resource path, attached to the error as ``path``
            attempt: Attempt that failed (0-based)

        Returns:
            The mapped error and whether another attempt is allowed
        """
        status_code = e.response.status_code

        if status_code == 401:
            raise BackendAuthenticationError(
                "Invalid API key or unauthorized access", path=endpoint
            ) from e
        elif status_code == 403:
            raise BackendPermissionError(
                f"Access forbidden: {endpoint}", path=endpoint
            ) from e
        elif status_code == 404:
            raise NotFoundError(f"Resource not found: {endpoint}", path=endpoint) from e
        elif status_code == 429:
            error: BackendError = BackendRateLimitError(
                "Rate limit exceeded - please try again later", path=endpoint
            )
            return (error, attempt < self.max_retries)

        error_msg = f"API request to {endpoint} failed with status {status_code}"
        try:
            if e.response.content:
                error_data = e.response.json()
                if isinstance(error_data, dict):
                    msg = (
                        error_data.get("message")
                        or error_data.get("error")
                        or error_data.get("detail")
                    )
                    if msg:
                        error_msg = f"{error_msg}: {msg}"
        except ValueError:
            # Body is not JSON, keep the status-based message
            pass

        error = BackendError(error_msg, path=endpoint)
        should_retry = 500 <= status_code < 600 and attempt < self.max_retries
        return (error, should_retry)

    def _send(self, method: str, endpoint: str, **kwargs: Any) -> httpx.Response:
        """Send a request with retry logic and return the raw response.

        Raises:
            NotFoundError: On HTTP 404
            BackendError: If the request fails after all retries
        """
        url = f"{self.server_url}/{endpoint.lstrip('/')}"
        last_exception: BackendError | None = None
        client = self._get_client()

        for attempt in range(self.max_retries + 1):
            try:
                logger.debug("%s %s (attempt %d)", method, url, attempt + 1)
                response = client.request(method, url, **kwargs)
                response.raise_for_status()
                return response

            except httpx.HTTPStatusError as e:
                error, should_retry = self._handle_http_error(e, endpoint, attempt)
                last_exception = error

                if should_retry:
                    retry_after = e.response.headers.get("Retry-After")
                    if (
                        isinstance(error, BackendRateLimitError)
                        and retry_after
                        and retry_after.isdigit()
                    ):
                        delay = float(retry_after)
                    else:
                        delay = self._calculate_retry_delay(attempt)
                    logger.debug("Retrying %s in %.2fs: %s", endpoint, delay, error)
                    time.sleep(delay)
                    continue
                raise error from e
            except httpx.RequestError as e:
                network_error = BackendNetworkError(
                    f"Network error: {e}", path=endpoint
                )
                last_exception = network_error
                if self._should_retry(network_error, attempt):
                    delay = self._calculate_retry_delay(attempt)
                    logger.debug("Retrying %s in %.2fs: %s", endpoint, delay, e)
                    time.sleep(delay)
                    continue
                raise network_error from e

        if last_exception:
            raise last_exception
        raise BackendError("Request failed after all retry attempts", path=endpoint)

    def _request(self, method: str, endpoint: str, **kwargs: Any) -> Any:
        """Make an API request and decode the JSON response body."""
        response = self._send(method, endpoint, **kwargs)

        if not response.content:
            return {}

        content_type = response.headers.get("Content-Type", "")
        if "application/json" not in content_type:
            if "text/html" in content_type:
                raise BackendAuthenticationError(
                    "Server returned HTML instead of JSON - check the server URL "
                    "and API key",
                    path=endpoint,
                )
            raise BackendInvalidResponseError(
                f"Unexpected response type: {content_type}", path=endpoint
            )

        try:
            return response.json()
        except ValueError as e:
            raise BackendInvalidResponseError(
                "Invalid JSON response from server", path=endpoint
            ) from e

    # =========================
    # Resource Operations
    # =========================

    def get_json(self, endpoint: str) -> Any:
        """Fetch and decode a JSON resource.

        Args:
            endpoint: Resource path relative to the server URL

        Returns:
            Decoded JSON document
        """
        return self._request("GET", endpoint)

    def get_content(self, endpoint: str) -> bytes:
        """Fetch the raw body of a resource.

        Args:
            endpoint: Resource path relative to the server URL

        Returns:
            Response body as bytes
        """
        return self._send("GET", endpoint).content

    def put_content(
        self,
        endpoint: str,
        data: bytes,
        content_type: str = "application/octet-stream",
    ) -> None:
        """Create or replace a resource with the given body.

        Args:
            endpoint: Resource path relative to the server URL
            data: Request body
            content_type: Content-Type header for the body
        """
        self._send(
            "PUT", endpoint, content=data, headers={"Content-Type": content_type}
        )

    def delete(self, endpoint: str) -> None:
        """Delete a resource.

        Args:
            endpoint: Resource path relative to the server URL
        """
        self._send("DELETE", endpoint)
