"""Base classes for statement exports."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from bankfeed.core.models import BankAccount


@dataclass(frozen=True, slots=True)
class RawTransactionLine:
    """One ``<STMTTRN>`` exactly as the bank exported it."""

    fitid: str
    dtposted: str
    trnamt: str
    name: str = ""

    def to_dict(self) -> dict:
        return {
            "FITID": self.fitid,
            "DTPOSTED": self.dtposted,
            "TRNAMT": self.trnamt,
            "NAME": self.name,
        }


@dataclass
class RawStatement:
    """Account identifier and transaction lines pulled out of one OFX export."""

    account_id: str
    lines: list[RawTransactionLine] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def record_count(self) -> int:
        return len(self.lines)


class ExportSource(ABC):
    """Seam to the banking session that produces raw OFX exports.

    Implementations own whatever session resource they need (a browser, an
    API session, a directory handle) and release it in ``close``. The
    pipeline awaits ``close`` only after every upload has settled.
    """

    description: str = "Base export source"

    @abstractmethod
    async def list_accounts(self) -> list[BankAccount]:
        """Return the accounts this session can export."""

    @abstractmethod
    async def fetch_export(self, account: BankAccount) -> str | None:
        """Return the raw OFX text for one account, or None if there is nothing to export.

        May raise; the pipeline records the failure against the account.
        """

    async def close(self) -> None:
        """Release the session resource. Default: nothing to release."""
