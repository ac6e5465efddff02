"""Checks run once before the API accepts traffic."""
from __future__ import annotations

import logging
from pathlib import Path

from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy.engine import Engine

from restaurant_api.core.config import DATABASE_URL, IS_PROD, IS_TEST

logger = logging.getLogger(__name__)
MIGRATIONS_PREFIX = "[MIGRATIONS]"


def validate_database_environment(database_url: str | None = None) -> None:
    url = database_url or DATABASE_URL
    if not IS_PROD or not url.startswith("sqlite"):
        return
    logger.critical("%s refusing to start on SQLite in production", MIGRATIONS_PREFIX)
    raise RuntimeError("SQLite is forbidden in production environment")


def _script_heads(alembic_config_path: Path) -> set[str]:
    if not alembic_config_path.exists():
        logger.critical("%s alembic config not found path=%s", MIGRATIONS_PREFIX, alembic_config_path)
        raise RuntimeError("alembic config not found")
    scripts = ScriptDirectory.from_config(Config(str(alembic_config_path)))
    return set(scripts.get_heads())


def _database_heads(engine: Engine) -> set[str]:
    with engine.connect() as connection:
        return set(MigrationContext.configure(connection).get_current_heads())


def ensure_migrations_applied(*, engine: Engine, alembic_config_path: Path) -> None:
    """Fail fast when the schema lags behind the migration scripts.

    Migrations are applied out of band with ``alembic upgrade head``.
    """
    if IS_TEST:
        logger.info("%s migration check skipped under ENV=test", MIGRATIONS_PREFIX)
        return

    expected = _script_heads(alembic_config_path)
    applied = _database_heads(engine)
    if not applied:
        logger.critical("%s database has no alembic revision", MIGRATIONS_PREFIX)
        raise RuntimeError("Database has no migration state")
    if applied != expected:
        logger.critical(
            "%s schema out of date applied=%s expected=%s",
            MIGRATIONS_PREFIX,
            sorted(applied),
            sorted(expected),
        )
        raise RuntimeError("Pending migrations detected")

    logger.info("%s schema at head %s", MIGRATIONS_PREFIX, ", ".join(sorted(applied)))
