"""Shared fixtures: sample OFX exports and a controllable clock."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from bankfeed.core.config import get_settings


SGML_EXPORT = """OFXHEADER:100
DATA:OFXSGML
VERSION:102
SECURITY:NONE
ENCODING:USASCII
CHARSET:1252
COMPRESSION:NONE
OLDFILEUID:NONE
NEWFILEUID:NONE

<OFX>
<SIGNONMSGSRSV1>
<SONRS>
<STATUS>
<CODE>0
<SEVERITY>INFO
</STATUS>
<DTSERVER>20170718120000
<LANGUAGE>ENG
</SONRS>
</SIGNONMSGSRSV1>
<BANKMSGSRSV1>
<STMTTRNRS>
<TRNUID>1
<STATUS>
<CODE>0
<SEVERITY>INFO
</STATUS>
<STMTRS>
<CURDEF>GBP
<BANKACCTFROM>
<BANKID>772224
<ACCTID>77222413007568
<ACCTTYPE>CHECKING
</BANKACCTFROM>
<BANKTRANLIST>
<DTSTART>20170701
<DTEND>20170718
<STMTTRN>
<TRNTYPE>CREDIT
<DTPOSTED>20170717
<TRNAMT>5.00
<FITID>200000000000004
<NAME>Edward Murphy HSNTSBBPRK86CWPV
</STMTTRN>
<STMTTRN>
<TRNTYPE>CREDIT
<DTPOSTED>20170716000000
<TRNAMT>7.00
<FITID>200000000000053
<NAME>Gordon Johnson HSNTSB27496WPB2M
</STMTTRN>
<STMTTRN>
<TRNTYPE>DEBIT
<DTPOSTED>20170716120000.000[0:GMT]
<TRNAMT>-2389.63
<FITID>200000000000101
<NAME>BIZSPACE
</STMTTRN>
<STMTTRN>
<TRNTYPE>DEBIT
<DTPOSTED>20170718
<TRNAMT>-12.50
<FITID>4
<NAME>PENDING CARD PAYMENT
</STMTTRN>
</BANKTRANLIST>
<LEDGERBAL>
<BALAMT>1234.56
<DTASOF>20170718
</LEDGERBAL>
</STMTRS>
</STMTTRNRS>
</BANKMSGSRSV1>
</OFX>
"""


XML_EXPORT = """<?xml version="1.0" encoding="UTF-8" standalone="no"?>
<?OFX OFXHEADER="200" VERSION="211" SECURITY="NONE" OLDFILEUID="NONE" NEWFILEUID="NONE"?>
<OFX>
  <BANKMSGSRSV1>
    <STMTTRNRS>
      <TRNUID>1</TRNUID>
      <STMTRS>
        <CURDEF>GBP</CURDEF>
        <BANKACCTFROM>
          <BANKID>772224</BANKID>
          <ACCTID>77222413007568</ACCTID>
          <ACCTTYPE>CHECKING</ACCTTYPE>
        </BANKACCTFROM>
        <BANKTRANLIST>
          <DTSTART>20170701</DTSTART>
          <DTEND>20170718</DTEND>
          <STMTTRN>
            <TRNTYPE>CREDIT</TRNTYPE>
            <DTPOSTED>20170717</DTPOSTED>
            <TRNAMT>5.00</TRNAMT>
            <FITID>200000000000004</FITID>
            <NAME>Edward Murphy HSNTSBBPRK86CWPV</NAME>
          </STMTTRN>
          <STMTTRN>
            <TRNTYPE>CREDIT</TRNTYPE>
            <DTPOSTED>20170716000000</DTPOSTED>
            <TRNAMT>7.00</TRNAMT>
            <FITID>200000000000053</FITID>
            <NAME>Gordon Johnson HSNTSB27496WPB2M</NAME>
          </STMTTRN>
          <STMTTRN>
            <TRNTYPE>DEBIT</TRNTYPE>
            <DTPOSTED>20170716120000.000[0:GMT]</DTPOSTED>
            <TRNAMT>-2389.63</TRNAMT>
            <FITID>200000000000101</FITID>
            <NAME>BIZSPACE</NAME>
          </STMTTRN>
          <STMTTRN>
            <TRNTYPE>DEBIT</TRNTYPE>
            <DTPOSTED>20170718</DTPOSTED>
            <TRNAMT>-12.50</TRNAMT>
            <FITID>4</FITID>
            <NAME>PENDING CARD PAYMENT</NAME>
          </STMTTRN>
        </BANKTRANLIST>
      </STMTRS>
    </STMTTRNRS>
  </BANKMSGSRSV1>
</OFX>
"""


def make_export(account_id: str, transactions: list[tuple[str, str, str, str]]) -> str:
    """Build a minimal SGML export from (fitid, dtposted, trnamt, name) tuples."""
    body = "".join(
        f"<STMTTRN>\n<TRNTYPE>OTHER\n<DTPOSTED>{dt}\n<TRNAMT>{amt}\n<FITID>{fitid}\n<NAME>{name}\n</STMTTRN>\n"
        for fitid, dt, amt, name in transactions
    )
    return (
        "OFXHEADER:100\nDATA:OFXSGML\nVERSION:102\n\n"
        "<OFX><BANKMSGSRSV1><STMTTRNRS><STMTRS>\n<CURDEF>GBP\n"
        f"<BANKACCTFROM>\n<BANKID>{account_id[:6]}\n<ACCTID>{account_id}\n<ACCTTYPE>CHECKING\n</BANKACCTFROM>\n"
        f"<BANKTRANLIST>\n{body}</BANKTRANLIST>\n"
        "</STMTRS></STMTTRNRS></BANKMSGSRSV1></OFX>\n"
    )


class FakeClock:
    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def sgml_export() -> str:
    return SGML_EXPORT


@pytest.fixture
def xml_export() -> str:
    return XML_EXPORT


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def clean_settings(monkeypatch, tmp_path):
    """Settings read from a blank environment in an empty working directory."""
    for name in (
        "LEDGER_BASE_URL",
        "LEDGER_CLIENT_ID",
        "LEDGER_CLIENT_SECRET",
        "ACCOUNT_ALIASES",
        "EXPORT_DIR",
        "VERIFY_SSL",
        "MAX_CONCURRENT_UPLOADS",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
