"""Tests for reading statements out of OFX exports."""

from __future__ import annotations

import pytest

from bankfeed.core.exceptions import OfxParseError
from bankfeed.ingestion.base import RawTransactionLine
from bankfeed.ingestion.ofx import decode_export, read_statement


def test_read_sgml_statement(sgml_export):
    statement = read_statement(sgml_export)

    assert statement.account_id == "77222413007568"
    assert statement.record_count == 4
    assert statement.lines[0] == RawTransactionLine(
        fitid="200000000000004",
        dtposted="20170717",
        trnamt="5.00",
        name="Edward Murphy HSNTSBBPRK86CWPV",
    )
    assert statement.lines[2].dtposted == "20170716120000.000[0:GMT]"
    assert statement.lines[2].trnamt == "-2389.63"
    assert statement.lines[3].fitid == "4"


def test_read_xml_statement_matches_sgml(sgml_export, xml_export):
    sgml = read_statement(sgml_export)
    xml = read_statement(xml_export)

    assert xml.account_id == sgml.account_id
    assert xml.lines == sgml.lines


def test_entities_in_names_are_decoded():
    export = (
        "<OFX><BANKMSGSRSV1><STMTTRNRS><STMTRS>"
        "<BANKACCTFROM><ACCTID>20325312345678</BANKACCTFROM>"
        "<BANKTRANLIST><STMTTRN><DTPOSTED>20240102<TRNAMT>-4.20"
        "<FITID>200000000000001<NAME>M&amp;S SIMPLY FOOD</STMTTRN></BANKTRANLIST>"
        "</STMTRS></STMTTRNRS></BANKMSGSRSV1></OFX>"
    )
    statement = read_statement(export)
    assert statement.lines[0].name == "M&S SIMPLY FOOD"


def test_missing_fields_become_empty_strings():
    export = (
        "<OFX><STMTRS><BANKACCTFROM><ACCTID>20325312345678</BANKACCTFROM>"
        "<BANKTRANLIST><STMTTRN><TRNAMT>1.00<FITID>200000000000001</STMTTRN></BANKTRANLIST>"
        "</STMTRS></OFX>"
    )
    line = read_statement(export).lines[0]
    assert line.dtposted == ""
    assert line.name == ""
    assert line.fitid == "200000000000001"


def test_statement_without_transaction_list_has_warning():
    export = "<OFX><STMTRS><BANKACCTFROM><ACCTID>20325312345678</BANKACCTFROM></STMTRS></OFX>"
    statement = read_statement(export)
    assert statement.lines == []
    assert statement.warnings


@pytest.mark.parametrize(
    "export",
    [
        "",
        "   \n",
        "this is not ofx",
        "<OFX><CREDITCARDMSGSRSV1></CREDITCARDMSGSRSV1></OFX>",
        "<OFX><STMTRS><BANKTRANLIST></BANKTRANLIST></STMTRS></OFX>",
        "<OFX><STMTRS><BANKACCTFROM><BANKID>1</BANKACCTFROM></STMTRS></OFX>",
    ],
)
def test_unusable_exports_raise(export):
    with pytest.raises(OfxParseError):
        read_statement(export)


def test_decode_export_falls_back_to_cp1252():
    assert decode_export("<NAME>café".encode("utf-8")) == "<NAME>café"
    assert decode_export(b"<NAME>\xa35 voucher") == "<NAME>£5 voucher"
