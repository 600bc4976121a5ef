"""Relationship prediction: rules, aggregation and review."""

from __future__ import annotations

from .aggregate import aggregate, noisy_or
from .engine import (
    PredictionAction,
    PredictionPage,
    ScanSummary,
    accept_high_confidence,
    list_predictions,
    resolve,
    run_rules,
    scan,
)
from .rules import RULES, PredictionCandidate, Rule, age_gap_years

__all__ = [
    "RULES",
    "PredictionAction",
    "PredictionCandidate",
    "PredictionPage",
    "Rule",
    "ScanSummary",
    "accept_high_confidence",
    "age_gap_years",
    "aggregate",
    "list_predictions",
    "noisy_or",
    "resolve",
    "run_rules",
    "scan",
]
