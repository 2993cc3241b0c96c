"""OAuth2 client-credentials tokens for the ledger API.

Purpose
- Request bearer tokens with the client-credentials grant.
- Cache the token until it expires and make concurrent callers share a single
  refresh instead of each sending its own grant request.

Expiry convention: the token endpoint returns ``expires_in`` (seconds to live,
RFC 6749 section 5.1). When it is missing, ``default_ttl_seconds`` applies.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import httpx

from bankfeed.core.exceptions import AuthenticationError
from bankfeed.core.models import OAuthToken

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OAuthClient:
    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        token_url: str,
        client_id: str,
        client_secret: str,
        default_ttl_seconds: int = 300,
        clock: Clock = _utcnow,
    ) -> None:
        self._http = http
        self._token_url = token_url
        self._client_id = client_id
        self._client_secret = client_secret
        self._default_ttl_seconds = default_ttl_seconds
        self._clock = clock

    async def request_token(self) -> OAuthToken:
        """Run one client-credentials grant.

        Raises:
            AuthenticationError: on transport failure, non-2xx status, or a
                response without an access token. Never retried here.
        """
        form = {
            "grant_type": "client_credentials",
            "client_id": self._client_id,
            "client_secret": self._client_secret,
        }
        try:
            resp = await self._http.post(
                self._token_url,
                data=form,
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            raise AuthenticationError(f"Token request to {self._token_url} failed: {e}") from e

        if resp.status_code >= 400:
            raise AuthenticationError(
                f"Token request rejected with HTTP {resp.status_code}",
                status_code=resp.status_code,
                body=resp.text,
            )

        try:
            payload: Any = resp.json()
        except ValueError as e:
            raise AuthenticationError(
                "Token endpoint returned a non-JSON response",
                status_code=resp.status_code,
                body=resp.text,
            ) from e

        access_token = payload.get("access_token") if isinstance(payload, dict) else None
        if not access_token:
            raise AuthenticationError(
                "Token endpoint response has no access_token",
                status_code=resp.status_code,
                body=resp.text,
            )

        ttl = self._default_ttl_seconds
        expires_in = payload.get("expires_in")
        if expires_in is not None:
            try:
                ttl = int(expires_in)
            except (TypeError, ValueError):
                logger.warning("Ignoring non-numeric expires_in %r from token endpoint", expires_in)

        return OAuthToken(value=str(access_token), expires_at=self._clock() + timedelta(seconds=ttl))


class TokenCache:
    """Process-lifetime cache of the ledger bearer token.

    ``get_token`` returns straight from the cache while the token is valid.
    Otherwise one refresh task is started and every caller that arrives while
    it runs awaits that same task, so N concurrent callers cost one grant.
    A failed refresh raises the same AuthenticationError to all of them.
    """

    def __init__(
        self,
        client: OAuthClient,
        *,
        expiry_margin_seconds: float = 30,
        clock: Clock = _utcnow,
    ) -> None:
        self._client = client
        self._expiry_margin_seconds = expiry_margin_seconds
        self._clock = clock
        self._token: OAuthToken | None = None
        self._token_margin_seconds: float = 0
        self._refresh: asyncio.Future[OAuthToken] | None = None
        self.refresh_count = 0

    @property
    def token(self) -> OAuthToken | None:
        return self._token

    def invalidate(self) -> None:
        """Forget the cached token, e.g. after the API answered 401."""
        if self._token is not None:
            logger.info("Invalidating cached ledger token")
        self._token = None

    async def get_token(self) -> OAuthToken:
        token = self._token
        if token is not None and token.is_valid(self._clock(), self._token_margin_seconds):
            return token

        if self._refresh is None:
            self._refresh = asyncio.ensure_future(self._do_refresh())
            self._refresh.add_done_callback(self._refresh_done)

        # Shielded so a cancelled caller does not cancel the refresh the others wait on
        return await asyncio.shield(self._refresh)

    async def _do_refresh(self) -> OAuthToken:
        self.refresh_count += 1
        logger.info("Requesting ledger access token")
        try:
            token = await self._client.request_token()
        except AuthenticationError:
            self._token = None
            raise
        # A short-lived token keeps at least half its lifetime in the cache
        ttl = (token.expires_at - self._clock()).total_seconds()
        self._token_margin_seconds = max(0.0, min(self._expiry_margin_seconds, ttl / 2))
        self._token = token
        return token

    def _refresh_done(self, fut: asyncio.Future) -> None:
        self._refresh = None
        if not fut.cancelled() and fut.exception() is not None:
            logger.error("Ledger token refresh failed: %s", fut.exception())
