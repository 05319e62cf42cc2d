"""API client for Cloudflare Workers KV."""

from __future__ import annotations

import logging
import random
import threading
import time
from typing import Any

import httpx

from .config import config
from .exceptions import (
    KVAPIError,
    KVAuthenticationError,
    KVInvalidResponseError,
    KVNetworkError,
    KVNotFoundError,
    KVPermissionError,
    KVRateLimitError,
)
from .utils import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_DELAY,
    LIST_KEYS_PAGE_SIZE,
    MIN_EXPIRATION_TTL,
    quote_key,
)

logger = logging.getLogger(__name__)


class KVClient:
    """Client for a single Workers KV namespace.

    Implements the RemoteStore protocol: ``list_keys``, ``get``, ``put``
    and ``delete``. Transient failures (network errors, rate limits and
    5xx responses) are retried with exponential backoff before an error
    is raised.
    """

    def __init__(
        self,
        account_id: str | None = None,
        namespace_id: str | None = None,
        api_token: str | None = None,
        api_url: str | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        timeout: float = 30.0,
    ):
        """Initialize Workers KV client.

        Args:
            account_id: Cloudflare account id (uses config if not provided)
            namespace_id: KV namespace id (uses config if not provided)
            api_token: API token (uses config if not provided)
            api_url: Optional API URL (uses config if not provided)
            max_retries: Maximum number of retry attempts (default: 3)
            retry_delay: Initial delay between retries in seconds (default: 1.0)
            timeout: Request timeout in seconds (default: 30.0)
        """
        self.api_token, self.account_id, self.namespace_id = config.require(
            api_token=api_token,
            account_id=account_id,
            namespace_id=namespace_id,
        )
        self.api_url = (api_url or config.api_url).rstrip("/")
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout

        self._client: httpx.Client | None = None
        self._client_lock = threading.Lock()

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client (shared by worker threads)."""
        with self._client_lock:
            if self._client is None or self._client.is_closed:
                self._client = httpx.Client(
                    headers={"Authorization": f"Bearer {self.api_token}"},
                    timeout=httpx.Timeout(self.timeout),
                    follow_redirects=True,
                )
            return self._client

    def close(self) -> None:
        """Close the client and release connections."""
        with self._client_lock:
            if self._client is not None and not self._client.is_closed:
                self._client.close()
            self._client = None

    def __enter__(self) -> KVClient:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @property
    def namespace_url(self) -> str:
        """Base URL of the namespace endpoints."""
        return (
            f"{self.api_url}/accounts/{self.account_id}"
            f"/storage/kv/namespaces/{self.namespace_id}"
        )

    def _should_retry(self, exception: Exception, attempt: int) -> bool:
        """Determine if a request should be retried.

        Args:
            exception: The exception that occurred
            attempt: Current attempt number (0-based)

        Returns:
            True if the request should be retried, False otherwise
        """
        if attempt >= self.max_retries:
            return False

        if isinstance(exception, (KVNetworkError, KVRateLimitError)):
            return True

        if isinstance(exception, httpx.HTTPStatusError):
            return 500 <= exception.response.status_code < 600

        return False

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Calculate delay before next retry using exponential backoff.

        Args:
            attempt: Current attempt number (0-based)

        Returns:
            Delay in seconds
        """
        base_delay = self.retry_delay * (2**attempt)
        # Add jitter: +/- 25% of base delay
        jitter = base_delay * 0.25 * (2 * random.random() - 1)
        return base_delay + jitter

    @staticmethod
    def _error_detail(response: httpx.Response) -> str | None:
        """Extract an error message from a Cloudflare API error envelope."""
        try:
            if not response.content:
                return None
            data = response.json()
        except ValueError:
            return None
        if not isinstance(data, dict):
            return None
        errors = data.get("errors") or []
        messages = [
            str(err.get("message"))
            for err in errors
            if isinstance(err, dict) and err.get("message")
        ]
        return "; ".join(messages) or None

    def _handle_http_error(
        self, e: httpx.HTTPStatusError, attempt: int
    ) -> tuple[Exception, bool]:
        """Handle HTTP errors and determine if retry should occur.

        Args:
            e: The HTTP error exception
            attempt: Current attempt number

        Returns:
            Tuple of (exception to raise, should_retry)
        """
        status_code = e.response.status_code

        if status_code == 401:
            raise KVAuthenticationError("Invalid API token or unauthorized access") from e
        elif status_code == 403:
            raise KVPermissionError(
                "Access forbidden - check the token's Workers KV permissions"
            ) from e
        elif status_code == 404:
            raise KVNotFoundError("Resource not found") from e
        elif status_code == 429:
            error = KVRateLimitError("Rate limit exceeded - please try again later")
            return (error, attempt < self.max_retries)
        else:
            error_msg = f"API request failed with status {status_code}"
            detail = self._error_detail(e.response)
            if detail:
                error_msg = f"{error_msg}: {detail}"
            error = KVAPIError(error_msg)
            should_retry = 500 <= status_code < 600 and attempt < self.max_retries
            return (error, should_retry)

    def _send(self, method: str, endpoint: str, **kwargs: Any) -> httpx.Response:
        """Send a request with retry logic and return the raw response.

        Args:
            method: HTTP method
            endpoint: Path relative to the namespace URL
            **kwargs: Additional arguments passed to httpx

        Raises:
            KVAPIError: If the request fails after all retries
        """
        url = f"{self.namespace_url}/{endpoint.lstrip('/')}"
        last_exception: Exception | None = None
        client = self._get_client()

        for attempt in range(self.max_retries + 1):
            try:
                response = client.request(method, url, **kwargs)
                response.raise_for_status()
                return response

            except httpx.HTTPStatusError as e:
                error, should_retry = self._handle_http_error(e, attempt)
                last_exception = error

                if should_retry:
                    if isinstance(error, KVRateLimitError):
                        retry_after = e.response.headers.get("Retry-After")
                        if retry_after and retry_after.isdigit():
                            delay = float(retry_after)
                        else:
                            delay = self._calculate_retry_delay(attempt)
                    else:
                        delay = self._calculate_retry_delay(attempt)
                    logger.debug(
                        f"{method} {endpoint} failed (attempt {attempt + 1}/"
                        f"{self.max_retries + 1}), retrying in {delay:.1f}s: {error}"
                    )
                    time.sleep(delay)
                    continue
                raise error from e
            except httpx.RequestError as e:
                error = KVNetworkError(f"Network error: {e}")
                last_exception = error
                if self._should_retry(error, attempt):
                    delay = self._calculate_retry_delay(attempt)
                    logger.debug(
                        f"{method} {endpoint} network error, retrying in {delay:.1f}s"
                    )
                    time.sleep(delay)
                    continue
                raise error from e

        # If we get here, we've exhausted all retries
        if last_exception:
            raise last_exception
        raise KVAPIError("Request failed after all retry attempts")

    def _request(self, method: str, endpoint: str, **kwargs: Any) -> Any:
        """Make an API request that returns a Cloudflare JSON envelope.

        Returns:
            The envelope's decoded JSON data

        Raises:
            KVInvalidResponseError: If the body is not JSON
            KVAPIError: If the envelope reports ``success: false``
        """
        response = self._send(method, endpoint, **kwargs)

        if not response.content:
            return {}

        content_type = response.headers.get("Content-Type", "")
        if "application/json" not in content_type:
            raise KVInvalidResponseError(f"Unexpected response type: {content_type}")

        try:
            data = response.json()
        except ValueError as e:
            raise KVInvalidResponseError("Invalid JSON response from server") from e

        if isinstance(data, dict) and data.get("success") is False:
            detail = self._error_detail(response) or "unknown error"
            raise KVAPIError(f"{method} {endpoint} was rejected: {detail}")
        return data

    # =========================
    # RemoteStore operations
    # =========================

    def list_keys(self, prefix: str | None = None) -> set[str]:
        """List every key in the namespace.

        Follows the listing cursor until the last page.

        Args:
            prefix: Only return keys starting with this prefix

        Returns:
            Set of key names
        """
        keys: set[str] = set()
        cursor: str | None = None
        page = 0

        while True:
            params: dict[str, Any] = {"limit": LIST_KEYS_PAGE_SIZE}
            if cursor:
                params["cursor"] = cursor
            if prefix:
                params["prefix"] = prefix

            data = self._request("GET", "keys", params=params)
            page += 1
            result = data.get("result") if isinstance(data, dict) else None
            if not isinstance(result, list):
                raise KVInvalidResponseError("Key listing has no result list")

            for item in result:
                if isinstance(item, dict) and isinstance(item.get("name"), str):
                    keys.add(item["name"])

            info = data.get("result_info") or {}
            cursor = info.get("cursor") if isinstance(info, dict) else None
            if not cursor:
                break

        logger.debug(f"Listed {len(keys)} key(s) in {page} page(s)")
        return keys

    def get(self, key: str) -> bytes:
        """Fetch the value stored under a key.

        Raises:
            KVNotFoundError: If the key does not exist
        """
        try:
            response = self._send("GET", f"values/{quote_key(key)}")
        except KVNotFoundError as e:
            raise KVNotFoundError(f"Key not found: {key}") from e
        return response.content

    def put(self, key: str, data: bytes, expiration_ttl: int | None = None) -> None:
        """Store a value under a key, overwriting any previous value.

        Args:
            key: Remote key
            data: Value bytes
            expiration_ttl: Optional seconds until the value expires (>= 60)

        Raises:
            ValueError: If expiration_ttl is shorter than 60 seconds
        """
        params: dict[str, Any] = {}
        if expiration_ttl is not None:
            if expiration_ttl < MIN_EXPIRATION_TTL:
                raise ValueError(
                    f"TTL too short. Must be at least {MIN_EXPIRATION_TTL} seconds"
                )
            params["expiration_ttl"] = expiration_ttl

        self._request(
            "PUT",
            f"values/{quote_key(key)}",
            content=data,
            params=params or None,
            headers={"Content-Type": "application/octet-stream"},
        )

    def delete(self, key: str) -> None:
        """Delete a key. Deleting a missing key is not an error."""
        try:
            self._request("DELETE", f"values/{quote_key(key)}")
        except KVNotFoundError:
            logger.debug(f"Key {key} already absent")
