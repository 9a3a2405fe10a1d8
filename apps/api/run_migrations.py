#!/usr/bin/env python3
"""Database bootstrap: run Alembic migrations before the API starts.

- Always run `alembic upgrade head` on startup.
- Only an EMPTY database may fall back to `create_all` + `stamp head`.
- If both fail, exit non-zero (don't start with an unknown schema).
"""

import logging
import os
import sys
import time
from dotenv import load_dotenv

load_dotenv()

from core.logging import setup_logging  # noqa: E402

setup_logging()
logger = logging.getLogger("run_migrations")


def _get_alembic_config():
    """Load Alembic config for programmatic migrations."""
    from alembic.config import Config

    here = os.path.dirname(os.path.abspath(__file__))
    cfg = Config(os.path.join(here, "alembic.ini"))
    cfg.set_main_option("script_location", os.path.join(here, "alembic"))
    return cfg


def alembic_upgrade_head() -> None:
    """Apply all pending migrations."""
    from alembic import command

    command.upgrade(_get_alembic_config(), "head")


def alembic_stamp_head() -> None:
    """Stamp alembic_version as head (no schema changes)."""
    from alembic import command

    command.stamp(_get_alembic_config(), "head")


def create_schema_directly():
    """Fallback: create schema directly from SQLAlchemy models.

    Must be followed by `alembic stamp head` so future upgrades can apply.
    """
    from sqlalchemy import func, inspect, select
    from core.database import Base, engine
    from models import Client

    # Ingested health data is append-only; never bootstrap over it.
    if inspect(engine).has_table("client"):
        with engine.connect() as conn:
            count = conn.execute(select(func.count()).select_from(Client.__table__)).scalar()
        if count:
            raise RuntimeError(
                f"Refusing direct schema creation on non-empty DB (clients={count}). "
                f"Run Alembic migrations instead."
            )

    logger.info("Creating schema directly from models...")
    Base.metadata.create_all(engine, checkfirst=True)

    alembic_stamp_head()
    logger.info("Schema created successfully")


def main():
    from core.database import check_db_connection

    logger.info("Waiting for database to be ready...")
    max_retries = 30

    for attempt in range(1, max_retries + 1):
        if check_db_connection():
            logger.info("Database is ready")
            break
        logger.warning(f"Database is unavailable - sleeping (attempt {attempt}/{max_retries})")
        time.sleep(1)
    else:
        logger.error("Database is not ready after maximum retries")
        sys.exit(1)

    try:
        alembic_upgrade_head()
        logger.info("Migrations completed successfully")
        return
    except Exception as e:
        logger.error(f"Alembic upgrade failed: {e}", exc_info=True)

    try:
        create_schema_directly()
    except Exception as e:
        logger.error(f"Schema bootstrap failed: {e}", exc_info=True)
        sys.exit(1)
    logger.info("Schema bootstrap completed via create_all fallback")


if __name__ == '__main__':
    main()
