"""Duplicate person detection and review."""

from __future__ import annotations

from .detect import (
    MODE_STRATEGIES,
    DuplicateMode,
    DuplicatePage,
    DuplicateScope,
    MatchSummary,
    detect_duplicates,
    paginate,
    summarize,
)
from .review import DuplicateAction, record_decision, resolved_pairs
from .strategies import DuplicateCandidate, MatchEvidence, NameProfile, build_profiles

__all__ = [
    "MODE_STRATEGIES",
    "DuplicateAction",
    "DuplicateCandidate",
    "DuplicateMode",
    "DuplicatePage",
    "DuplicateScope",
    "MatchEvidence",
    "MatchSummary",
    "NameProfile",
    "build_profiles",
    "detect_duplicates",
    "paginate",
    "record_decision",
    "resolved_pairs",
    "summarize",
]
