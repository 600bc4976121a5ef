"""Alembic migration helpers for the kintree schema."""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import TYPE_CHECKING, Final

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory

from kintree.config.storage import get_database_uri

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

PROJECT_ROOT: Final[Path] = Path(__file__).resolve().parents[5]
PYPROJECT_PATH: Final[Path] = PROJECT_ROOT / "pyproject.toml"
MIGRATIONS_PATH: Final[Path] = Path(__file__).resolve().parent

_RESOLVED_KEYS: Final = frozenset({"script_location", "sqlalchemy.url"})


def _alembic_options() -> dict[str, str]:
    """``[tool.alembic]`` from pyproject.toml; empty for an installed package."""

    if not PYPROJECT_PATH.is_file():
        return {}
    with PYPROJECT_PATH.open("rb") as handle:
        section = tomllib.load(handle).get("tool", {}).get("alembic", {})
    return {str(key): str(value) for key, value in section.items()}


def _resolve(path: str) -> Path:
    candidate = Path(path)
    return candidate if candidate.is_absolute() else (PROJECT_ROOT / candidate).resolve()


def build_config(database_uri: str | None = None) -> Config:
    """Alembic config pointing at the bundled migrations."""

    options = _alembic_options()
    config = Config()
    script_location = options.get("script_location")
    location = _resolve(script_location) if script_location else MIGRATIONS_PATH
    if not (location / "env.py").is_file():
        location = MIGRATIONS_PATH
    config.set_main_option("script_location", str(location))
    url = database_uri or options.get("sqlalchemy.url") or get_database_uri()
    # ConfigParser interpolation
    config.set_main_option("sqlalchemy.url", url.replace("%", "%%"))
    for key, value in options.items():
        if key not in _RESOLVED_KEYS:
            config.set_main_option(key, value)
    return config


def head_revision() -> str | None:
    return ScriptDirectory.from_config(build_config()).get_current_head()


def current_revision(engine: Engine) -> str | None:
    with engine.connect() as connection:
        return MigrationContext.configure(connection).get_current_revision()


def upgrade_head(*, engine: Engine | None = None, database_uri: str | None = None) -> None:
    """Upgrade the database schema to the latest revision."""

    if engine is None:
        command.upgrade(build_config(database_uri), "head")
        return
    config = build_config(engine.url.render_as_string(hide_password=False))
    with engine.begin() as connection:
        config.attributes["connection"] = connection
        command.upgrade(config, "head")
