import logging
import os
import sys

from sqlalchemy import text

logger = logging.getLogger(__name__)

ADVISORY_LOCK_KEY = 7310419

ALEMBIC_INI = os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(__file__))), "alembic.ini")


def _alembic_config(url: str = None):
    from alembic.config import Config

    cfg = Config(ALEMBIC_INI)
    if url:
        cfg.set_main_option("sqlalchemy.url", url.replace("%", "%%"))
    return cfg


def _get_head_revision() -> str:
    from alembic.script import ScriptDirectory

    script = ScriptDirectory.from_config(_alembic_config())
    return script.get_current_head() or "unknown"


def _get_current_revision(engine) -> str:
    try:
        with engine.connect() as conn:
            row = conn.execute(text("SELECT version_num FROM alembic_version LIMIT 1")).fetchone()
            return row[0] if row else "none"
    except Exception as exc:
        logger.debug(f"Could not read alembic_version: {exc}")
        return "unknown"


def get_migration_state(engine) -> dict:
    current = _get_current_revision(engine)
    head = _get_head_revision()
    return {
        "current_revision": current,
        "head_revision": head,
        "migration_pending": current != head,
    }


def _upgrade(engine) -> None:
    from alembic import command

    command.upgrade(_alembic_config(engine.url.render_as_string(hide_password=False)), "head")


def run_migrations_if_enabled(engine) -> None:
    """Run `alembic upgrade head` on startup when RUN_MIGRATIONS_ON_STARTUP=true.

    On PostgreSQL the upgrade runs under a session advisory lock so that only
    one of several starting replicas migrates; the others wait and then find
    the schema at head.
    """
    from ..config import get_settings

    settings = get_settings()
    if settings.run_migrations_on_startup.lower() != "true":
        logger.info("RUN_MIGRATIONS_ON_STARTUP is not enabled; skipping auto-migration")
        return

    if engine.dialect.name != "postgresql":
        logger.info(f"Running migrations without advisory lock (dialect={engine.dialect.name})")
        _upgrade(engine)
        return

    logger.info("Acquiring advisory lock %d for migrations", ADVISORY_LOCK_KEY)
    raw_conn = engine.raw_connection()
    try:
        cursor = raw_conn.cursor()
        cursor.execute("SELECT pg_advisory_lock(%s)", (ADVISORY_LOCK_KEY,))
        logger.info("Advisory lock acquired; running alembic upgrade head")
        try:
            _upgrade(engine)
            logger.info("Migrations complete")
        finally:
            cursor.execute("SELECT pg_advisory_unlock(%s)", (ADVISORY_LOCK_KEY,))
            logger.info("Advisory lock released")
    except Exception as exc:
        logger.error("Migration failed: %s", exc)
        print(f"[startup] MIGRATION FAILED: {exc}")
        sys.exit(1)
    finally:
        raw_conn.close()
