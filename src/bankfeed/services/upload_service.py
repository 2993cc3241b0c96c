"""Upload canonical transactions to the ledger, one account batch per request."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Sequence

import httpx

from bankfeed.core.models import CanonicalTransaction
from bankfeed.services.token_service import TokenCache

logger = logging.getLogger(__name__)

# Failures where the request went out (or was being sent) but no response came back
NO_RESPONSE_ERRORS = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
    httpx.ProxyError,
)

# Failures building or sending the request at all
REQUEST_SETUP_ERRORS = (
    httpx.InvalidURL,
    httpx.UnsupportedProtocol,
    httpx.LocalProtocolError,
)


class UploadOutcome(str, Enum):
    UPLOADED = "uploaded"
    SERVER_REJECTED = "server_rejected"
    NO_RESPONSE = "no_response"
    REQUEST_SETUP_FAILURE = "request_setup_failure"


@dataclass
class UploadResult:
    outcome: UploadOutcome
    transaction_count: int = 0
    status_code: int | None = None
    body: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is UploadOutcome.UPLOADED

    def describe(self) -> str:
        if self.outcome is UploadOutcome.UPLOADED:
            return f"uploaded {self.transaction_count} transactions (HTTP {self.status_code})"
        if self.outcome is UploadOutcome.SERVER_REJECTED:
            return f"rejected by server with HTTP {self.status_code}: {self.body}"
        return f"{self.outcome.value}: {self.error}"


class UploadClient:
    def __init__(self, http: httpx.AsyncClient, *, upload_url: str, tokens: TokenCache) -> None:
        self._http = http
        self._upload_url = upload_url
        self._tokens = tokens

    async def _post(self, payload: list[dict[str, Any]]) -> httpx.Response:
        token = await self._tokens.get_token()
        return await self._http.post(
            self._upload_url,
            json=payload,
            headers={
                "Accept": "application/json",
                "Authorization": f"Bearer {token.value}",
            },
        )

    async def upload(
        self,
        transactions: Sequence[CanonicalTransaction],
        *,
        account: str | None = None,
    ) -> UploadResult:
        """POST one account's transactions and classify the outcome.

        Only token acquisition failures escape (as AuthenticationError); every
        HTTP-level failure is returned as an UploadResult.
        """
        label = account or "?"
        count = len(transactions)

        try:
            payload = [t.to_dict() for t in transactions]
        except (TypeError, ValueError) as e:
            logger.error("Could not build upload for account %s: %s", label, e)
            return UploadResult(UploadOutcome.REQUEST_SETUP_FAILURE, count, error=str(e))

        logger.info("Uploading %d transactions for account %s", count, label)
        try:
            resp = await self._post(payload)
            if resp.status_code == 401:
                # Token revoked or expired server-side: refresh once and retry
                logger.warning("Ledger answered 401 for account %s; retrying with a fresh token", label)
                self._tokens.invalidate()
                resp = await self._post(payload)
        except REQUEST_SETUP_ERRORS as e:
            logger.error("Upload request for account %s could not be sent: %s", label, e)
            return UploadResult(UploadOutcome.REQUEST_SETUP_FAILURE, count, error=str(e) or type(e).__name__)
        except NO_RESPONSE_ERRORS as e:
            logger.error("No response to upload for account %s: %s", label, e)
            return UploadResult(UploadOutcome.NO_RESPONSE, count, error=str(e) or type(e).__name__)
        except httpx.RequestError as e:
            logger.error("Upload for account %s failed without a response: %s", label, e)
            return UploadResult(UploadOutcome.NO_RESPONSE, count, error=str(e) or type(e).__name__)

        if not resp.is_success:
            logger.error(
                "Upload for account %s rejected: HTTP %s %s",
                label,
                resp.status_code,
                resp.text[:500],
            )
            return UploadResult(
                UploadOutcome.SERVER_REJECTED,
                count,
                status_code=resp.status_code,
                body=resp.text,
                headers=dict(resp.headers),
            )

        logger.info("Transactions uploaded for account %s", label)
        return UploadResult(
            UploadOutcome.UPLOADED,
            count,
            status_code=resp.status_code,
            body=resp.text,
            headers=dict(resp.headers),
        )
