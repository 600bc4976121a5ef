"""Errors raised while reading kintree settings."""

from __future__ import annotations


class ConfigurationError(RuntimeError):
    """A setting is present but unusable, e.g. not a number or an unknown rule id."""


class MissingConfigurationError(ConfigurationError):
    """A setting is set to an empty value."""
