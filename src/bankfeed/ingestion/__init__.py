"""Ingestion module for reading bank statement exports."""

from .base import ExportSource, RawStatement, RawTransactionLine
from .ofx import decode_export, read_statement
from .ofx_datetime import DateParseResult, parse_ofx_datetime
from .sources import DirectoryExportSource

__all__ = [
    "ExportSource",
    "RawStatement",
    "RawTransactionLine",
    "decode_export",
    "read_statement",
    "DateParseResult",
    "parse_ofx_datetime",
    "DirectoryExportSource",
]
