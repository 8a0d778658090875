"""
Resilient HTTP Transport for Carrier APIs

Thin wrapper over httpx.AsyncClient used by every carrier adapter and by the
OAuth token cache:
- One client per base URL with default timeout and headers
- Exponential backoff, delay = base_delay_ms * 2^(attempt - 1), no jitter
- Only transient failures are retried (timeout, network, 429, 5xx)
- Every failure is classified into a TransportError before it leaves here

Bearer tokens are passed per request (bearer_token=...) so one client can be
shared by concurrent calls. set_auth_header() is kept for callers that own
their client outright.
"""
import asyncio
import errno
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from rate_gateway.core.exceptions import (
    CarrierIntegrationError,
    CarrierResponseError,
    ErrorCode,
    TransportError,
    http_status_to_error_code,
    is_retryable_error,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
MAX_ERROR_BODY_CHARS = 500


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_attempts: int = 3
    base_delay_ms: int = 1000


class TransportClient:
    """
    Async HTTP client with retry, backoff and error classification.

    Usage:
        async with TransportClient("https://onlinetools.ups.com") as client:
            body = await client.post("/rating/v2/shop/rates", json=payload, bearer_token=token)
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        headers: Optional[Dict[str, str]] = None,
        retry_config: Optional[RetryConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retry_config = retry_config or RetryConfig()
        self.default_headers: Dict[str, str] = {"Content-Type": "application/json"}
        if headers:
            self.default_headers.update(headers)

        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._auth_token: Optional[str] = None
        self._sleep = asyncio.sleep

    def _calculate_backoff(self, attempt: int) -> float:
        """
        Seconds to wait after a failed attempt (attempt counted from 1).

        Formula: base_delay_ms * 2 ^ (attempt - 1), no jitter.
        """
        return self.retry_config.base_delay_ms * (2 ** (attempt - 1)) / 1000.0

    async def __aenter__(self):
        self._get_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the underlying httpx client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=self.default_headers,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close the client. Use this when not using context manager."""
        if self._client:
            await self._client.aclose()
            self._client = None

    # ==================== Client-scoped auth ====================

    def set_auth_header(self, token: str) -> None:
        """Send `Authorization: Bearer <token>` on every later request of this client."""
        self._auth_token = token

    def clear_auth_header(self) -> None:
        self._auth_token = None

    # ==================== Verbs ====================

    async def get(self, path: str, **kwargs) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs) -> Any:
        return await self.request("POST", path, **kwargs)

    async def put(self, path: str, **kwargs) -> Any:
        return await self.request("PUT", path, **kwargs)

    async def delete(self, path: str, **kwargs) -> Any:
        return await self.request("DELETE", path, **kwargs)

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        bearer_token: Optional[str] = None,
    ) -> Any:
        """
        Make an HTTP request with retry and classification.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE)
            path: Path relative to base_url (or absolute URL)
            json: JSON body
            data: Form-encoded body
            params: Query parameters
            headers: Extra headers for this request only
            bearer_token: Token for this request only; wins over set_auth_header()

        Returns:
            Decoded JSON body ({} for an empty body)

        Raises:
            CarrierIntegrationError: Always a classified error, never an httpx exception
        """
        request_headers = dict(headers or {})
        token = bearer_token or self._auth_token
        if token and "Authorization" not in request_headers:
            request_headers["Authorization"] = f"Bearer {token}"

        cfg = self.retry_config
        attempts = max(1, cfg.max_attempts)
        last_error: Optional[CarrierIntegrationError] = None

        for attempt in range(1, attempts + 1):
            try:
                logger.debug(f"[HTTP] {method} {path} (attempt {attempt}/{attempts})")
                response = await self._get_client().request(
                    method,
                    path,
                    json=json,
                    data=data,
                    params=params,
                    headers=request_headers,
                )
                if response.status_code >= 400:
                    raise self._status_error(response, method, path)
                return self._decode_body(response, method, path)

            except CarrierIntegrationError as e:
                last_error = e
            except Exception as e:
                last_error = self._classify_exception(e, method, path)

            if not is_retryable_error(last_error) or attempt == attempts:
                logger.error(
                    f"[HTTP] {method} {path} failed: {last_error.code.value} - {last_error.message}"
                )
                raise last_error

            delay = self._calculate_backoff(attempt)
            logger.warning(
                f"[HTTP] {method} {path}: {last_error.code.value}, "
                f"retrying in {delay:.2f}s (attempt {attempt}/{attempts})"
            )
            await self._sleep(delay)

        # Unreachable: the loop either returns or raises
        raise last_error or TransportError(
            f"Request to {path} failed after {attempts} attempts",
            code=ErrorCode.UNKNOWN,
        )

    # ==================== Classification ====================

    def _status_error(self, response: httpx.Response, method: str, path: str) -> TransportError:
        """Build the classified error for a 4xx/5xx response."""
        status = response.status_code
        return TransportError(
            f"HTTP {status}: {response.reason_phrase or 'error'}",
            code=http_status_to_error_code(status),
            status_code=status,
            details={
                "status": status,
                "method": method,
                "url": path,
                "body": self._error_body(response),
            },
        )

    def _classify_exception(self, exc: Exception, method: str, path: str) -> CarrierIntegrationError:
        """Map a native exception raised while sending to the taxonomy."""
        details = {"method": method, "url": path}

        if isinstance(exc, httpx.TimeoutException):
            return TransportError(
                f"Request timeout: {exc}", code=ErrorCode.TIMEOUT,
                details=details, original_error=exc,
            )
        if isinstance(exc, httpx.ConnectError) and _is_connection_refused(exc):
            return TransportError(
                "Connection refused", code=ErrorCode.CONNECTION_REFUSED,
                details=details, original_error=exc,
            )
        if isinstance(exc, httpx.TransportError):
            return TransportError(
                f"Network error: {exc}", code=ErrorCode.NETWORK_ERROR,
                details=details, original_error=exc,
            )
        return TransportError(
            f"Unexpected transport failure: {exc}", code=ErrorCode.UNKNOWN,
            details=details, original_error=exc,
        )

    def _decode_body(self, response: httpx.Response, method: str, path: str) -> Any:
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise CarrierResponseError(
                f"Response from {path} is not valid JSON",
                code=ErrorCode.MALFORMED_JSON,
                status_code=response.status_code,
                details={"method": method, "url": path, "body": response.text[:MAX_ERROR_BODY_CHARS]},
                original_error=e,
            ) from e

    @staticmethod
    def _error_body(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return response.text[:MAX_ERROR_BODY_CHARS]


def _is_connection_refused(exc: BaseException) -> bool:
    """Walk the exception chain looking for ECONNREFUSED."""
    seen = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, ConnectionRefusedError):
            return True
        if getattr(current, "errno", None) == errno.ECONNREFUSED:
            return True
        if "connection refused" in str(current).lower():
            return True
        current = current.__cause__ or current.__context__
    return False


def dumps_for_log(payload: Any) -> str:
    """Compact JSON for debug logging of wire payloads."""
    try:
        return json.dumps(payload, separators=(",", ":"), default=str)[:MAX_ERROR_BODY_CHARS]
    except (TypeError, ValueError):
        return repr(payload)[:MAX_ERROR_BODY_CHARS]
