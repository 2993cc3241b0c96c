"""End-to-end per-account pipeline: fetch export → normalize → upload.

Each account moves ``PENDING → FETCHED → NORMALIZED → UPLOADED`` or ends in
``FAILED`` (with the stage it failed at) or ``SKIPPED``. Failures are recorded
against the account and the run moves on to the next one; only an
authentication failure stops further uploads, since none could succeed.

Exports are fetched one account at a time (a banking session is a single
browser tab), while uploads run as tasks so they overlap with later fetches.
All upload tasks are joined before the export source is closed, including
when the run is cancelled.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

import httpx

from bankfeed.core.config import Settings
from bankfeed.core.exceptions import AuthenticationError, InvalidAccountIdentifierError, OfxParseError
from bankfeed.core.models import BankAccount, CanonicalTransaction
from bankfeed.ingestion.base import ExportSource
from bankfeed.ingestion.ofx import read_statement
from bankfeed.processing.normalizer import SkippedLine, normalize_transactions
from bankfeed.services.token_service import OAuthClient, TokenCache
from bankfeed.services.upload_service import UploadClient, UploadResult

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    FETCH = "fetch"
    NORMALIZE = "normalize"
    UPLOAD = "upload"


class AccountState(str, Enum):
    PENDING = "pending"
    FETCHED = "fetched"
    NORMALIZED = "normalized"
    UPLOADED = "uploaded"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class AccountOutcome:
    account: BankAccount
    state: AccountState = AccountState.PENDING
    failed_stage: Optional[Stage] = None
    error: Optional[str] = None
    transaction_count: int = 0
    skipped_lines: List[SkippedLine] = field(default_factory=list)
    upload: Optional[UploadResult] = None

    def fail(self, stage: Stage, error: str) -> None:
        self.state = AccountState.FAILED
        self.failed_stage = stage
        self.error = error

    def skip(self, reason: str) -> None:
        self.state = AccountState.SKIPPED
        self.error = reason


@dataclass
class PipelineResult:
    outcomes: List[AccountOutcome] = field(default_factory=list)
    auth_error: Optional[AuthenticationError] = None

    @property
    def auth_failed(self) -> bool:
        return self.auth_error is not None

    @property
    def failed(self) -> List[AccountOutcome]:
        return [o for o in self.outcomes if o.state is AccountState.FAILED]

    @property
    def success(self) -> bool:
        return not self.failed and not self.auth_failed


class Pipeline:
    """Run fetch → normalize → upload for every account of an export source."""

    def __init__(self, uploader: UploadClient, *, max_concurrent_uploads: int = 4) -> None:
        if max_concurrent_uploads < 1:
            raise ValueError("max_concurrent_uploads must be at least 1")
        self._uploader = uploader
        self._max_concurrent_uploads = max_concurrent_uploads

    async def run(self, source: ExportSource) -> PipelineResult:
        result = PipelineResult()
        semaphore = asyncio.Semaphore(self._max_concurrent_uploads)
        uploads: list[asyncio.Task] = []

        try:
            accounts = await source.list_accounts()
            logger.info("Processing %d accounts", len(accounts))

            for account in accounts:
                outcome = AccountOutcome(account=account)
                result.outcomes.append(outcome)

                if result.auth_failed:
                    outcome.skip(f"not attempted after authentication failure: {result.auth_error}")
                    continue

                batch = await self._fetch_and_normalize(source, outcome)
                if batch is None:
                    continue

                uploads.append(
                    asyncio.create_task(self._upload(outcome, batch, result, semaphore))
                )
        finally:
            try:
                await self._settle(uploads)
            finally:
                await source.close()

        for outcome in result.outcomes:
            if outcome.state is AccountState.FAILED:
                logger.error(
                    "Account %s failed at %s: %s",
                    outcome.account.display_name,
                    outcome.failed_stage.value if outcome.failed_stage else "?",
                    outcome.error,
                )
        return result

    async def _settle(self, uploads: list[asyncio.Task]) -> None:
        """Wait for every upload task; asyncio.wait never cancels them."""
        pending = [t for t in uploads if not t.done()]
        if not pending:
            return
        try:
            await asyncio.wait(pending)
        except asyncio.CancelledError:
            still_running = [t for t in pending if not t.done()]
            logger.warning("Run cancelled; waiting for %d in-flight uploads to finish", len(still_running))
            if still_running:
                await asyncio.wait(still_running)
            raise

    async def _fetch_and_normalize(
        self,
        source: ExportSource,
        outcome: AccountOutcome,
    ) -> list[CanonicalTransaction] | None:
        label = outcome.account.display_name

        try:
            export = await source.fetch_export(outcome.account)
        except Exception as e:  # noqa: BLE001
            logger.error(
                "Fetching export for account %s failed: %s", label, e,
                exc_info=True, extra={"account": label, "stage": Stage.FETCH.value},
            )
            outcome.fail(Stage.FETCH, str(e) or type(e).__name__)
            return None

        if not export or not export.strip():
            logger.info("No export for account %s", label)
            outcome.skip("no export available")
            return None
        outcome.state = AccountState.FETCHED

        try:
            statement = read_statement(export)
            normalized = normalize_transactions(statement.account_id, statement.lines)
        except (OfxParseError, InvalidAccountIdentifierError) as e:
            logger.error(
                "Could not normalize export for account %s: %s", label, e,
                extra={"account": label, "stage": Stage.NORMALIZE.value},
            )
            outcome.fail(Stage.NORMALIZE, str(e))
            return None
        except Exception as e:  # noqa: BLE001
            logger.exception("Unexpected error normalizing export for account %s", label)
            outcome.fail(Stage.NORMALIZE, str(e) or type(e).__name__)
            return None

        outcome.state = AccountState.NORMALIZED
        outcome.skipped_lines = normalized.skipped
        outcome.transaction_count = len(normalized.transactions)

        if not normalized.transactions:
            logger.info("Nothing to upload for account %s", label)
            outcome.skip("no transactions to upload")
            return None
        return normalized.transactions

    async def _upload(
        self,
        outcome: AccountOutcome,
        batch: list[CanonicalTransaction],
        result: PipelineResult,
        semaphore: asyncio.Semaphore,
    ) -> None:
        label = outcome.account.display_name

        async with semaphore:
            if result.auth_failed:
                outcome.skip(f"not attempted after authentication failure: {result.auth_error}")
                return
            try:
                upload = await self._uploader.upload(batch, account=label)
            except AuthenticationError as e:
                if result.auth_error is None:
                    logger.error("Ledger authentication failed; aborting remaining uploads: %s", e)
                    result.auth_error = e
                outcome.fail(Stage.UPLOAD, f"authentication failed: {e}")
                return
            except Exception as e:  # noqa: BLE001
                logger.exception(
                    "Unexpected error uploading account %s", label,
                    extra={"account": label, "stage": Stage.UPLOAD.value},
                )
                outcome.fail(Stage.UPLOAD, str(e) or type(e).__name__)
                return

        outcome.upload = upload
        if upload.ok:
            outcome.state = AccountState.UPLOADED
        else:
            outcome.fail(Stage.UPLOAD, upload.describe())


async def run_upload(
    settings: Settings,
    source: ExportSource,
    *,
    verify_ssl: bool | None = None,
    max_concurrent_uploads: int | None = None,
) -> PipelineResult:
    """Build the ledger clients from settings and run the pipeline once."""
    settings.require_upload_credentials()
    verify = settings.VERIFY_SSL if verify_ssl is None else verify_ssl
    if not verify:
        logger.warning("TLS certificate verification is disabled")

    async with httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS, verify=verify) as http:
        oauth = OAuthClient(
            http,
            token_url=settings.token_url,
            client_id=settings.LEDGER_CLIENT_ID,
            client_secret=settings.LEDGER_CLIENT_SECRET,
            default_ttl_seconds=settings.TOKEN_DEFAULT_TTL_SECONDS,
        )
        tokens = TokenCache(oauth, expiry_margin_seconds=settings.TOKEN_EXPIRY_MARGIN_SECONDS)
        uploader = UploadClient(http, upload_url=settings.upload_url, tokens=tokens)
        pipeline = Pipeline(
            uploader,
            max_concurrent_uploads=max_concurrent_uploads or settings.MAX_CONCURRENT_UPLOADS,
        )
        return await pipeline.run(source)
