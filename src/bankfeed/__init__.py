"""Normalize OFX bank statement exports and upload them to the ledger API."""

__version__ = "0.1.0"
