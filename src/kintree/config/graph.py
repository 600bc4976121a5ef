"""Thresholds and limits for the kinship graph analyses.

``GraphConfig`` is passed explicitly into every operation; nothing in the
domain reads settings from the environment.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .env import env_csv, env_float, env_int
from .errors import ConfigurationError
from .retry import RetryPolicy

DEFAULT_MAX_DEPTH = 15
DEFAULT_LOCK_TIMEOUT_SECONDS = 5.0
DEFAULT_LOCK_RETRIES = 3
DEFAULT_DUPLICATE_MIN_CONFIDENCE = 50.0
ALL_PREDICTION_RULES: tuple[str, ...] = (
    "spouse_child_gap",
    "missing_union",
    "sibling_parent_gap",
    "patronymic_name",
    "age_family",
)


@dataclass(frozen=True, slots=True)
class DuplicateConfig:
    exact_confidence: float = 95.0
    similar_cap: float = 90.0
    similarity_threshold: float = 0.3
    mother_surn_base: float = 60.0
    mother_surn_sibling_boost: float = 5.0
    mother_surn_cap: float = 95.0
    shared_parent_confidence: float = 92.0
    given_only_confidence: float = 55.0
    given_only_birth_window: int = 5
    min_confidence: float = DEFAULT_DUPLICATE_MIN_CONFIDENCE
    default_page_size: int = 20
    max_page_size: int = 100


@dataclass(frozen=True, slots=True)
class PredictionConfig:
    rules: tuple[str, ...] = ALL_PREDICTION_RULES
    high_confidence: float = 85.0
    medium_confidence: float = 60.0
    max_confidence: float = 99.0
    rule_result_limit: int = 200
    min_parent_age_gap: int = 15
    max_parent_age_gap: int = 50
    max_plausible_age_gap: int = 60
    default_page_size: int = 20
    max_page_size: int = 100


@dataclass(frozen=True, slots=True)
class GraphConfig:
    max_depth: int = DEFAULT_MAX_DEPTH
    lock_timeout_seconds: float = DEFAULT_LOCK_TIMEOUT_SECONDS
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    duplicates: DuplicateConfig = field(default_factory=DuplicateConfig)
    predictions: PredictionConfig = field(default_factory=PredictionConfig)


def get_graph_config() -> GraphConfig:
    rules = env_csv("KINTREE_PREDICTION_RULES", ALL_PREDICTION_RULES)
    unknown = sorted(set(rules) - set(ALL_PREDICTION_RULES))
    if unknown:
        raise ConfigurationError(f"Unknown prediction rules: {', '.join(unknown)}")
    return GraphConfig(
        max_depth=env_int("KINTREE_MAX_DEPTH", DEFAULT_MAX_DEPTH, minimum=1),
        lock_timeout_seconds=env_float(
            "KINTREE_LOCK_TIMEOUT", DEFAULT_LOCK_TIMEOUT_SECONDS, minimum=0.0
        ),
        retry=RetryPolicy(total=env_int("KINTREE_LOCK_RETRIES", DEFAULT_LOCK_RETRIES, minimum=0)),
        duplicates=DuplicateConfig(
            min_confidence=env_float(
                "KINTREE_DUPLICATE_MIN_CONFIDENCE", DEFAULT_DUPLICATE_MIN_CONFIDENCE, minimum=0.0
            ),
        ),
        predictions=PredictionConfig(rules=rules),
    )
