"""Kinship resolution over the active graph view."""

from __future__ import annotations

from .labels import KinshipLabel, RelationKind, cousin_label, make_label
from .resolve import KinshipPath, KinshipResult, KinshipStatus, PathStep, classify

__all__ = [
    "KinshipLabel",
    "KinshipPath",
    "KinshipResult",
    "KinshipStatus",
    "PathStep",
    "RelationKind",
    "classify",
    "cousin_label",
    "make_label",
]
