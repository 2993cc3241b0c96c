"""Normalization and the per-account upload pipeline."""

from bankfeed.processing.normalizer import NormalizationResult, SkippedLine, normalize_transactions
from bankfeed.processing.pipeline import AccountOutcome, AccountState, Pipeline, PipelineResult, Stage

__all__ = [
    "NormalizationResult",
    "SkippedLine",
    "normalize_transactions",
    "AccountOutcome",
    "AccountState",
    "Pipeline",
    "PipelineResult",
    "Stage",
]
