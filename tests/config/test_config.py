from __future__ import annotations

import logging

import pytest

from kintree.config import (
    ALL_PREDICTION_RULES,
    ConfigurationError,
    MissingConfigurationError,
    RetryPolicy,
    env_csv,
    env_float,
    env_int,
    get_graph_config,
    resolve_log_level,
)


def test_env_int_returns_default_when_blank(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_INT", "   ")

    assert env_int("EXAMPLE_INT", 7) == 7


def test_env_int_parses_and_validates(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_INT", " 12 ")
    assert env_int("EXAMPLE_INT", 7, minimum=1) == 12

    monkeypatch.setenv("EXAMPLE_INT", "twelve")
    with pytest.raises(ConfigurationError, match="EXAMPLE_INT"):
        env_int("EXAMPLE_INT", 7)

    monkeypatch.setenv("EXAMPLE_INT", "0")
    with pytest.raises(ConfigurationError, match=">= 1"):
        env_int("EXAMPLE_INT", 7, minimum=1)


def test_env_float_rejects_garbage(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_FLOAT", "2.5")
    assert env_float("EXAMPLE_FLOAT", 1.0) == 2.5

    monkeypatch.setenv("EXAMPLE_FLOAT", "fast")
    with pytest.raises(ConfigurationError):
        env_float("EXAMPLE_FLOAT", 1.0)


def test_env_csv(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("EXAMPLE_CSV", raising=False)
    assert env_csv("EXAMPLE_CSV", ("a",)) == ("a",)

    monkeypatch.setenv("EXAMPLE_CSV", "b, c,,")
    assert env_csv("EXAMPLE_CSV", ("a",)) == ("b", "c")

    monkeypatch.setenv("EXAMPLE_CSV", " , ")
    with pytest.raises(MissingConfigurationError):
        env_csv("EXAMPLE_CSV", ("a",))


def test_graph_config_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "KINTREE_PREDICTION_RULES",
        "KINTREE_MAX_DEPTH",
        "KINTREE_LOCK_TIMEOUT",
        "KINTREE_LOCK_RETRIES",
        "KINTREE_DUPLICATE_MIN_CONFIDENCE",
    ):
        monkeypatch.delenv(name, raising=False)

    config = get_graph_config()

    assert config.max_depth == 15
    assert config.predictions.rules == ALL_PREDICTION_RULES
    assert config.duplicates.min_confidence == 50.0
    assert config.retry.total == 3


def test_graph_config_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("KINTREE_PREDICTION_RULES", "missing_union,age_family")
    monkeypatch.setenv("KINTREE_MAX_DEPTH", "6")
    monkeypatch.setenv("KINTREE_LOCK_RETRIES", "0")

    config = get_graph_config()

    assert config.predictions.rules == ("missing_union", "age_family")
    assert config.max_depth == 6
    assert config.retry.total == 0


def test_graph_config_rejects_unknown_rules(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("KINTREE_PREDICTION_RULES", "missing_union,horoscope")

    with pytest.raises(ConfigurationError, match="horoscope"):
        get_graph_config()


def test_retry_policy_backoff_is_capped() -> None:
    policy = RetryPolicy(backoff_factor=0.5, max_backoff_wait=1.5)

    assert [policy.backoff(attempt) for attempt in (1, 2, 3, 4)] == [0.5, 1.0, 1.5, 1.5]


def test_retry_policy_jitter_stays_in_range() -> None:
    policy = RetryPolicy(backoff_factor=0.1, backoff_jitter=0.2)

    assert all(0.1 <= policy.backoff(1) <= 0.3 for _ in range(20))


def test_resolve_log_level(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("KINTREE_LOG_LEVEL", raising=False)
    assert resolve_log_level() == logging.INFO
    assert resolve_log_level(verbose=True) == logging.DEBUG

    monkeypatch.setenv("KINTREE_LOG_LEVEL", "warning")
    assert resolve_log_level() == logging.WARNING

    monkeypatch.setenv("KINTREE_LOG_LEVEL", "chatty")
    with pytest.raises(ConfigurationError, match="KINTREE_LOG_LEVEL"):
        resolve_log_level()
