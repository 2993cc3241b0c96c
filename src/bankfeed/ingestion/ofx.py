"""Read the bank statement out of an OFX export.

Only the pieces the ledger needs are extracted: the account id from
``BANKACCTFROM`` and the raw ``STMTTRN`` lines from ``BANKTRANLIST``. Values
are kept as the exact strings the bank sent; interpreting them is the
normalizer's job.

Both OFX 1.x SGML (leaf elements without closing tags) and OFX 2.x XML are
handled by parsing with ``html.parser``, which lowercases tag names and nests
unclosed leaf elements inside one another.
"""

from __future__ import annotations

import logging
import warnings

from bs4 import BeautifulSoup, NavigableString, Tag, XMLParsedAsHTMLWarning

from bankfeed.core.exceptions import OfxParseError
from bankfeed.ingestion.base import RawStatement, RawTransactionLine

logger = logging.getLogger(__name__)


def find_child(node: Tag, name: str) -> str | None:
    """Return the text of the first ``name`` element under ``node``.

    With SGML exports the element's following siblings end up nested inside
    it, so only the leading text node is taken.
    """
    child = node.find(name)
    if child is None:
        return None
    if not child.contents:
        return ""
    first = child.contents[0]
    if isinstance(first, NavigableString):
        return str(first).strip()
    return ""


def decode_export(data: bytes) -> str:
    """Decode raw export bytes; UK bank exports are often cp1252 despite the header."""
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return data.decode("cp1252", errors="replace")


def read_statement(ofx_text: str) -> RawStatement:
    """Extract the account id and raw transaction lines from OFX text.

    Raises:
        OfxParseError: if the export has no bank statement or no account id.
    """
    if not ofx_text or not ofx_text.strip():
        raise OfxParseError("OFX export is empty")

    with warnings.catch_warnings():
        # OFX 2.x is XML, but html.parser is what copes with SGML leaf elements
        warnings.simplefilter("ignore", XMLParsedAsHTMLWarning)
        soup = BeautifulSoup(ofx_text, "html.parser")

    stmtrs = soup.find("stmtrs")
    if stmtrs is None:
        raise OfxParseError("OFX export has no bank statement (STMTRS)")

    acctfrom = stmtrs.find("bankacctfrom")
    account_id = find_child(acctfrom, "acctid") if acctfrom is not None else None
    if not account_id:
        raise OfxParseError("OFX statement has no BANKACCTFROM/ACCTID")

    statement = RawStatement(account_id=account_id)

    tranlist = stmtrs.find("banktranlist")
    if tranlist is None:
        statement.warnings.append("OFX statement has no BANKTRANLIST")
        logger.warning("Statement for account %s has no transaction list", account_id)
        return statement

    for stmttrn in tranlist.find_all("stmttrn"):
        statement.lines.append(
            RawTransactionLine(
                fitid=find_child(stmttrn, "fitid") or "",
                dtposted=find_child(stmttrn, "dtposted") or "",
                trnamt=find_child(stmttrn, "trnamt") or "",
                name=find_child(stmttrn, "name") or "",
            )
        )

    logger.debug("Read %d transaction lines for account %s", statement.record_count, account_id)
    return statement
