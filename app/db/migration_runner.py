"""
Migration Runner - Runs Alembic migrations at application startup.

Opt-in via AUTO_MIGRATE; only applies migrations when some are pending.
"""

from dataclasses import dataclass
from pathlib import Path

import structlog
from sqlalchemy import Engine, create_engine

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from app.config import settings

logger = structlog.get_logger(__name__)

# Path to alembic.ini relative to project root
ALEMBIC_INI_PATH = Path(__file__).parent.parent.parent / "alembic.ini"


@dataclass(frozen=True)
class MigrationStatus:
    """Current vs head revision."""

    current_revision: str | None
    head_revision: str | None
    pending: bool


def get_sync_database_url(url: str | None = None) -> str:
    """Get synchronous database URL for migrations.

    Alembic's command API uses synchronous connections, so async driver
    suffixes are swapped for their sync counterparts.
    """
    url = url or settings.database_url
    return url.replace("+asyncpg", "+psycopg2").replace("+aiosqlite", "")


def _alembic_config(sync_url: str) -> Config:
    alembic_cfg = Config(str(ALEMBIC_INI_PATH))
    alembic_cfg.set_main_option("sqlalchemy.url", sync_url.replace("%", "%%"))
    return alembic_cfg


def _get_current_revision(engine: Engine) -> str | None:
    """Get the current database revision."""
    with engine.connect() as conn:
        context = MigrationContext.configure(conn)
        return context.get_current_revision()


def _get_head_revision(alembic_cfg: Config) -> str | None:
    """Get the head revision from migration scripts."""
    script = ScriptDirectory.from_config(alembic_cfg)
    return script.get_current_head()


def run_migrations() -> None:
    """
    Run pending Alembic migrations.

    Raises:
        RuntimeError: If the upgrade fails
    """
    if not ALEMBIC_INI_PATH.exists():
        logger.warning("alembic_config_missing", path=str(ALEMBIC_INI_PATH))
        return

    sync_url = get_sync_database_url()
    alembic_cfg = _alembic_config(sync_url)
    engine = create_engine(sync_url)

    try:
        current = _get_current_revision(engine)
        head = _get_head_revision(alembic_cfg)

        if current == head:
            logger.info("database_schema_up_to_date", revision=current)
            return

        logger.info("running_migrations", from_revision=current, to_revision=head)
        command.upgrade(alembic_cfg, "head")
        logger.info("migrations_complete", revision=_get_current_revision(engine))

    except Exception as e:
        logger.error("migration_failed", error=str(e))
        raise RuntimeError(f"Database migration failed: {e}") from e

    finally:
        engine.dispose()


def check_migrations_status() -> MigrationStatus:
    """Check migration status without applying them."""
    sync_url = get_sync_database_url()
    alembic_cfg = _alembic_config(sync_url)
    engine = create_engine(sync_url)
    try:
        current = _get_current_revision(engine)
        head = _get_head_revision(alembic_cfg)
        return MigrationStatus(current_revision=current, head_revision=head, pending=current != head)
    finally:
        engine.dispose()
