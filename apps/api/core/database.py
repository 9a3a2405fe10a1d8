"""
Engine and session management.

One engine per process. A request gets its own session from `get_db`; the
ingest and pairing services commit explicitly, `get_db` commits whatever is
left and rolls back on any exception.
"""
from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import sessionmaker, Session
from core.config import settings
import logging
import time

logger = logging.getLogger(__name__)

DATABASE_URL = settings.database_url
IS_SQLITE = DATABASE_URL.startswith("sqlite")

CONNECT_RETRIES = 3
CONNECT_RETRY_DELAY_S = 0.1


def _engine_kwargs() -> dict:
    if IS_SQLITE:
        # Request handlers run on a threadpool
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_timeout": settings.DB_POOL_TIMEOUT,
        "pool_recycle": settings.DB_POOL_RECYCLE,
        "pool_pre_ping": True,
    }


engine = create_engine(DATABASE_URL, echo=settings.DEBUG, **_engine_kwargs())

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False,
)

Base = declarative_base()


if IS_SQLITE:
    @event.listens_for(engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_conn, connection_record):
        # Every row must belong to an existing client; SQLite only checks FKs when asked.
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def _open_session() -> Session:
    """Open a session and prove the connection works, backing off between attempts."""
    for attempt in range(CONNECT_RETRIES):
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
            return db
        except Exception as e:
            db.close()
            if attempt == CONNECT_RETRIES - 1:
                logger.error(f"Failed to establish database connection after {CONNECT_RETRIES} attempts: {e}")
                raise
            logger.warning(f"Database connection attempt {attempt + 1} failed, retrying...")
            time.sleep(CONNECT_RETRY_DELAY_S * (2 ** attempt))


def get_db():
    """FastAPI dependency: one session (and one outer transaction) per request."""
    db = _open_session()
    try:
        yield db
        db.commit()
    except Exception as e:
        db.rollback()
        from fastapi import HTTPException
        # 4xx/5xx raised on purpose by handlers are not database errors
        if not isinstance(e, HTTPException):
            logger.error(f"Database transaction error: {e}")
        raise
    finally:
        db.close()


def get_db_sync() -> Session:
    """Session for scripts. Caller commits and closes."""
    return SessionLocal()


def check_db_connection() -> bool:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False
