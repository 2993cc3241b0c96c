"""Ledger API services: OAuth tokens and transaction upload."""

from bankfeed.services.token_service import OAuthClient, TokenCache
from bankfeed.services.upload_service import UploadClient, UploadOutcome, UploadResult

__all__ = [
    "OAuthClient",
    "TokenCache",
    "UploadClient",
    "UploadOutcome",
    "UploadResult",
]
