"""Root logger setup for the kintree CLI."""

from __future__ import annotations

import logging
import os

from .errors import ConfigurationError

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Per-statement SQL and migration progress stay quiet even with --verbose.
_NOISY_LOGGERS = ("sqlalchemy.engine", "alembic.runtime.migration")


def resolve_log_level(*, verbose: bool = False) -> int:
    """``DEBUG`` when verbose, else ``KINTREE_LOG_LEVEL`` (a level name), else ``INFO``."""

    if verbose:
        return logging.DEBUG
    name = (os.getenv("KINTREE_LOG_LEVEL") or "").strip().upper()
    if not name:
        return logging.INFO
    level = logging.getLevelNamesMapping().get(name)
    if level is None:
        raise ConfigurationError(f"KINTREE_LOG_LEVEL must be a logging level name, got {name!r}")
    return level


def configure_logging(*, verbose: bool = False, force: bool = False) -> None:
    """Initialise the root logger with a terse CLI format.

    Pass ``force=True`` to reconfigure during tests or specialised entry points.
    """

    level = resolve_log_level(verbose=verbose)
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt="%H:%M:%S", force=force)
    # basicConfig leaves an already configured root untouched.
    logging.getLogger().setLevel(level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
