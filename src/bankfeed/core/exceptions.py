"""Exception hierarchy for bankfeed.

Date parsing and upload failures are reported as values (``DateParseResult``,
``UploadResult``); the exceptions below cover the cases that must stop the
current account or the whole run.
"""


class BankfeedError(Exception):
    """Base class for all bankfeed errors."""


class ConfigurationError(BankfeedError):
    """Raised when required settings are missing or invalid."""


class OfxParseError(BankfeedError):
    """Raised when an OFX export lacks the statement structure we need."""


class InvalidAccountIdentifierError(BankfeedError, ValueError):
    """Raised when an account identifier cannot be split into sort code and number."""

    def __init__(self, account_id: str, reason: str):
        self.account_id = account_id
        self.reason = reason
        super().__init__(f"Invalid account identifier {account_id!r}: {reason}")


class AuthenticationError(BankfeedError):
    """Raised when no usable bearer token can be obtained.

    This is fatal for the current run: no upload can succeed without a token.
    """

    def __init__(self, message: str, status_code: int | None = None, body: str | None = None):
        self.status_code = status_code
        self.body = body
        super().__init__(message)
