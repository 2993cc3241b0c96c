"""Canonical records shared by the normalizer, the upload client and the pipeline."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone

from bankfeed.core.exceptions import InvalidAccountIdentifierError


SORT_CODE_DIGITS = 6

_ACCOUNT_ID_PATTERN = re.compile(r"\d+", re.ASCII)


@dataclass(frozen=True, slots=True)
class AccountIdentifier:
    """A bank account code split into sort code and account number."""

    sort_code: str
    account_number: str

    @classmethod
    def parse(cls, account_id: str) -> "AccountIdentifier":
        """Split e.g. ``"77222413007568"`` into ``77-22-24`` / ``13007568``."""
        value = (account_id or "").strip()
        if not _ACCOUNT_ID_PATTERN.fullmatch(value):
            raise InvalidAccountIdentifierError(account_id, "expected digits only")
        if len(value) <= SORT_CODE_DIGITS:
            raise InvalidAccountIdentifierError(
                account_id, f"expected more than {SORT_CODE_DIGITS} digits"
            )

        sort_code = "-".join(value[i:i + 2] for i in range(0, SORT_CODE_DIGITS, 2))
        return cls(sort_code=sort_code, account_number=value[SORT_CODE_DIGITS:])


def format_instant(value: datetime) -> str:
    """Render an aware datetime as ISO-8601 UTC with milliseconds, e.g. ``2017-07-16T00:00:00.000Z``."""
    if value.tzinfo is None:
        raise ValueError("naive datetime cannot be rendered as a UTC instant")
    utc_value = value.astimezone(timezone.utc)
    return utc_value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True, slots=True)
class CanonicalTransaction:
    """Transaction in the shape the ledger upload endpoint expects."""

    sort_code: str
    account_number: str
    date: datetime
    description: str
    amount_minor_units: int

    def to_dict(self) -> dict:
        """Convert to the upload wire format."""
        return {
            "sortCode": self.sort_code,
            "accountNumber": self.account_number,
            "date": format_instant(self.date),
            "description": self.description,
            "amount": self.amount_minor_units,
        }


@dataclass(frozen=True, slots=True)
class OAuthToken:
    value: str
    expires_at: datetime

    def is_valid(self, now: datetime, margin_seconds: float = 0) -> bool:
        return (self.expires_at - now).total_seconds() > margin_seconds


@dataclass(frozen=True, slots=True)
class BankAccount:
    """Account handle handed out by an export source."""

    number: str
    label: str | None = None

    @property
    def display_name(self) -> str:
        return self.label or self.number
