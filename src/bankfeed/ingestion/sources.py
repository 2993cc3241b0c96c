"""Export sources that do not need a live banking session."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Callable, Optional

from bankfeed.core.models import BankAccount
from bankfeed.ingestion.base import ExportSource
from bankfeed.ingestion.ofx import decode_export

logger = logging.getLogger(__name__)

OFX_SUFFIXES = (".ofx", ".qfx")


class DirectoryExportSource(ExportSource):
    """Serve previously downloaded OFX files, one account per file.

    The account number is the file stem, so ``exports/20325312345678.ofx``
    is account ``20325312345678``.
    """

    description = "OFX files in a local directory"

    def __init__(self, directory: Path, account_label: Optional[Callable[[str], str | None]] = None):
        self.directory = Path(directory)
        self.account_label = account_label

    def _files(self) -> list[Path]:
        if not self.directory.is_dir():
            raise FileNotFoundError(f"Export directory not found: {self.directory}")
        return sorted(
            p for p in self.directory.iterdir()
            if p.is_file() and p.suffix.lower() in OFX_SUFFIXES
        )

    async def list_accounts(self) -> list[BankAccount]:
        files = await asyncio.to_thread(self._files)
        label = self.account_label or (lambda number: None)
        accounts = [BankAccount(number=path.stem, label=label(path.stem)) for path in files]
        logger.info("Found %d exports in %s", len(accounts), self.directory)
        return accounts

    async def fetch_export(self, account: BankAccount) -> str | None:
        for path in await asyncio.to_thread(self._files):
            if path.stem == account.number:
                data = await asyncio.to_thread(path.read_bytes)
                return decode_export(data)
        raise FileNotFoundError(f"No export file for account {account.number} in {self.directory}")
