"""Database migration utilities."""

import logging
from pathlib import Path

from alembic import command
from alembic.config import Config
from alembic.script import ScriptDirectory
from sqlalchemy import text

from apptime_api.database import get_engine

logger = logging.getLogger(__name__)


def get_alembic_config() -> Config:
    """Get Alembic configuration from the project root's alembic.ini."""
    project_root = Path(__file__).parent.parent.parent
    alembic_ini = project_root / "alembic.ini"

    if not alembic_ini.exists():
        raise FileNotFoundError(f"alembic.ini not found at {alembic_ini}")

    config = Config(str(alembic_ini))
    config.set_main_option("script_location", str(project_root / "migrations"))

    return config


def run_migrations() -> None:
    """Apply all pending migrations up to head."""
    logger.info("Running database migrations...")

    try:
        command.upgrade(get_alembic_config(), "head")
        logger.info("Database migrations completed successfully")
    except Exception as e:
        logger.error(f"Database migration failed: {e}")
        raise


def get_head_revision() -> str:
    """Return the newest revision id known to the migration scripts."""
    script = ScriptDirectory.from_config(get_alembic_config())
    return script.get_current_head()


async def check_migrations_current() -> bool:
    """
    Check whether the database is at the latest migration.

    Returns:
        True if the recorded revision matches head, False otherwise
        (including when the version table is missing).
    """
    try:
        async with get_engine().connect() as conn:
            result = await conn.execute(
                text("SELECT version_num FROM alembic_version LIMIT 1")
            )
            row = result.fetchone()
    except Exception:
        return False

    return row is not None and row[0] == get_head_revision()
