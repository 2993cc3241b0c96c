"""Map raw OFX statement lines to canonical ledger transactions."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable, List

from bankfeed.core.models import AccountIdentifier, CanonicalTransaction
from bankfeed.ingestion.base import RawTransactionLine
from bankfeed.ingestion.ofx_datetime import parse_ofx_datetime

logger = logging.getLogger(__name__)


# Uncleared transactions are exported with low-range FITIDs that are reused
# between exports, so only ids at or above this value are stable.
STABLE_FITID_THRESHOLD = 200000000000000

FITID_PATTERN = re.compile(r"[+-]?\d+", re.ASCII)

MINOR_UNITS_PER_MAJOR = Decimal(100)


@dataclass(frozen=True)
class SkippedLine:
    line: RawTransactionLine
    reason: str


@dataclass
class NormalizationResult:
    account: AccountIdentifier
    transactions: List[CanonicalTransaction] = field(default_factory=list)
    skipped: List[SkippedLine] = field(default_factory=list)


def has_stable_fitid(fitid: str) -> bool:
    """True when the FITID is an integer at or above the stable threshold."""
    value = (fitid or "").strip()
    if not FITID_PATTERN.fullmatch(value):
        return False
    return int(value) >= STABLE_FITID_THRESHOLD


def to_minor_units(amount: str) -> int:
    """Convert a major-unit decimal string (``"-2389.63"``) to minor units (``-238963``).

    Raises:
        ValueError: if the amount is not a finite decimal.
    """
    try:
        value = Decimal((amount or "").strip())
    except InvalidOperation as exc:
        raise ValueError(f"invalid amount {amount!r}") from exc
    if not value.is_finite():
        raise ValueError(f"invalid amount {amount!r}")
    return int((value * MINOR_UNITS_PER_MAJOR).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def build_description(line: RawTransactionLine) -> str:
    """Payee name plus FITID, so repeated payments to one payee stay distinguishable."""
    # Empty NAME gives the bare FITID, not " <FITID>"
    return f"{line.name} {line.fitid}".strip()


def normalize_transactions(account_id: str, raw_lines: Iterable[RawTransactionLine]) -> NormalizationResult:
    """Filter and map raw statement lines for one account.

    Lines with unstable FITIDs, unparseable dates or unparseable amounts are
    dropped and reported in ``skipped``; the rest keep their input order.

    Raises:
        InvalidAccountIdentifierError: if ``account_id`` cannot be split.
    """
    account = AccountIdentifier.parse(account_id)
    result = NormalizationResult(account=account)
    unstable = 0

    for line in raw_lines:
        if not has_stable_fitid(line.fitid):
            unstable += 1
            result.skipped.append(SkippedLine(line, f"FITID {line.fitid!r} below stable threshold"))
            continue

        parsed = parse_ofx_datetime(line.dtposted)
        if not parsed.ok:
            logger.warning("Dropping transaction %s on account %s: %s", line.fitid, account_id, parsed.error)
            result.skipped.append(SkippedLine(line, parsed.error or "invalid date"))
            continue

        try:
            amount = to_minor_units(line.trnamt)
        except ValueError as exc:
            logger.warning("Dropping transaction %s on account %s: %s", line.fitid, account_id, exc)
            result.skipped.append(SkippedLine(line, str(exc)))
            continue

        result.transactions.append(
            CanonicalTransaction(
                sort_code=account.sort_code,
                account_number=account.account_number,
                date=parsed.value,
                description=build_description(line),
                amount_minor_units=amount,
            )
        )

    if unstable:
        logger.info("Skipped %d uncleared transactions on account %s", unstable, account_id)

    return result
