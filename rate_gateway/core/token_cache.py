"""
OAuth2 Client-Credentials Token Cache

One cache per carrier credential set. Holds at most one bearer token and
refreshes it `refresh_buffer_seconds` before the provider's expiry, so a token
is never handed out after its computed expiry. Concurrent callers share a
single refresh.
"""
import asyncio
import base64
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from rate_gateway.core.exceptions import (
    AuthenticationError,
    CarrierIntegrationError,
    ErrorCode,
)
from rate_gateway.core.http_client import TransportClient
from rate_gateway.core.utils import utcnow

logger = logging.getLogger(__name__)

DEFAULT_EXPIRES_IN_SECONDS = 3600
DEFAULT_REFRESH_BUFFER_SECONDS = 30


@dataclass(frozen=True)
class CachedToken:
    """A bearer token and the absolute UTC instant it stops being served."""
    token: str
    expires_at: datetime

    def is_valid(self, now: datetime) -> bool:
        return self.expires_at > now


class TokenCache:
    """
    Caches the client-credentials token for one carrier account.

    Usage:
        cache = TokenCache(client_id, client_secret, transport, "/security/v1/oauth/token")
        token = await cache.get_token()
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        http_client: TransportClient,
        token_path: str,
        refresh_buffer_seconds: int = DEFAULT_REFRESH_BUFFER_SECONDS,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.http_client = http_client
        self.token_path = token_path
        self.refresh_buffer_seconds = refresh_buffer_seconds
        self._clock = clock
        self._token: Optional[CachedToken] = None
        self._lock = asyncio.Lock()

    @property
    def cached_token(self) -> Optional[CachedToken]:
        return self._token

    def clear_cache(self) -> None:
        """Drop the cached token; the next get_token() re-authenticates."""
        if self._token is not None:
            logger.info("[AUTH] Token cache cleared")
        self._token = None

    async def get_token(self) -> str:
        """
        Return a usable bearer token.

        Serves the cached token while it is valid. Otherwise exchanges the
        client credentials for a new one. Only one exchange is in flight at a
        time; callers waiting on it reuse its result.

        Raises:
            AuthenticationError: The exchange failed for any reason
        """
        token = self._token
        if token is not None and token.is_valid(self._clock()):
            return token.token

        async with self._lock:
            # Another caller may have refreshed while we waited
            token = self._token
            if token is not None and token.is_valid(self._clock()):
                return token.token

            self._token = await self._fetch_token()
            return self._token.token

    async def _fetch_token(self) -> CachedToken:
        auth_string = f"{self.client_id}:{self.client_secret}"
        auth_header = base64.b64encode(auth_string.encode()).decode()

        try:
            data = await self.http_client.post(
                self.token_path,
                data={"grant_type": "client_credentials"},
                headers={
                    "Authorization": f"Basic {auth_header}",
                    "Content-Type": "application/x-www-form-urlencoded",
                },
            )
        except CarrierIntegrationError as e:
            logger.error(f"[AUTH] Token request failed: {e.code.value} - {e.message}")
            raise AuthenticationError(
                f"Failed to obtain access token: {e.message}",
                status_code=e.status_code,
                details={"cause_code": e.code.value, "status": e.status_code},
                original_error=e,
            ) from e

        access_token = data.get("access_token") if isinstance(data, dict) else None
        if not access_token:
            logger.error("[AUTH] Token response has no access_token")
            raise AuthenticationError(
                "Token response did not contain an access_token",
                details={"cause_code": ErrorCode.INVALID_RESPONSE.value},
            )

        try:
            expires_in = int(data.get("expires_in", DEFAULT_EXPIRES_IN_SECONDS))
        except (TypeError, ValueError) as e:
            raise AuthenticationError(
                f"Token response has an invalid expires_in: {data.get('expires_in')!r}",
                details={"cause_code": ErrorCode.INVALID_RESPONSE.value},
                original_error=e,
            ) from e

        lifetime = max(expires_in - self.refresh_buffer_seconds, 0)
        expires_at = self._clock() + timedelta(seconds=lifetime)

        logger.info(f"[AUTH] Access token obtained, expires in {expires_in}s")
        return CachedToken(token=access_token, expires_at=expires_at)
