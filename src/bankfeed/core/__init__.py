"""Core module - settings, records and errors."""

from bankfeed.core.config import Settings, get_settings
from bankfeed.core.exceptions import (
    AuthenticationError,
    BankfeedError,
    ConfigurationError,
    InvalidAccountIdentifierError,
    OfxParseError,
)
from bankfeed.core.models import (
    AccountIdentifier,
    BankAccount,
    CanonicalTransaction,
    OAuthToken,
    format_instant,
)

__all__ = [
    "Settings",
    "get_settings",
    "AuthenticationError",
    "BankfeedError",
    "ConfigurationError",
    "InvalidAccountIdentifierError",
    "OfxParseError",
    "AccountIdentifier",
    "BankAccount",
    "CanonicalTransaction",
    "OAuthToken",
    "format_instant",
]
