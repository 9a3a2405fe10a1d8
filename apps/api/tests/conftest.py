"""
Pytest configuration and fixtures

Tests run against a throwaway SQLite database (or TEST_DATABASE_URL when set)
migrated to Alembic head once per session. Every table is emptied after each
test, so nothing leaks between tests.
"""
import pytest
import sys
import os
import tempfile
from pathlib import Path

# Point the app at the test database before anything imports core.config.
_TEST_DB_DIR = tempfile.mkdtemp(prefix="gymdash-tests-")
os.environ["DATABASE_URL"] = os.environ.get(
    "TEST_DATABASE_URL", f"sqlite:///{os.path.join(_TEST_DB_DIR, 'test.sqlite')}"
)
os.environ["ENABLE_DEV_ROUTES"] = "true"
os.environ["LOG_FORMAT"] = "text"
os.environ["SENTRY_DSN"] = ""

# Add the parent directory to the path so we can import from services
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


@pytest.fixture(scope="session", autouse=True)
def _ensure_db_schema_is_at_head():
    """Apply the Alembic migrations so tests run against the real schema."""
    try:
        from alembic import command
        from alembic.config import Config

        api_root = Path(__file__).resolve().parents[1]
        cfg = Config(str(api_root / "alembic.ini"))
        # script_location in alembic.ini is relative ("alembic")
        cfg.set_main_option("script_location", str(api_root / "alembic"))
        command.upgrade(cfg, "head")
    except Exception as e:
        # Tests should fail loudly if migrations cannot be applied.
        raise RuntimeError(f"Failed to upgrade DB to Alembic head: {e}") from e


from fastapi.testclient import TestClient
from core.database import SessionLocal, engine
from models import Client, IngestWarning, ProfileMetric, Workout
from services.pairing_codes import create_client


@pytest.fixture(autouse=True)
def _clean_tables():
    yield
    # Children first (FKs to client)
    with engine.begin() as conn:
        for model in (IngestWarning, ProfileMetric, Workout, Client):
            conn.execute(model.__table__.delete())


@pytest.fixture(scope="function")
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def client():
    """HTTP client for the app (dev routes enabled)."""
    from main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def paired_client(db_session):
    """A registered client: returns (client_id, pairing_code)."""
    return create_client(db_session, "Test Client")


@pytest.fixture
def make_workout():
    """Build a valid workout payload; override any field with kwargs."""

    def _make(client_id, **overrides):
        payload = {
            "client_id": str(client_id),
            "workout_type": "run",
            "start_time": "2024-06-01T08:00:00Z",
            "end_time": "2024-06-01T08:30:00Z",
            "duration_seconds": 1800,
            "calories_active": 250,
            "distance_meters": 5000,
            "avg_heart_rate": 150,
            "source_device": "apple_watch",
        }
        payload.update(overrides)
        return payload

    return _make


@pytest.fixture
def make_profile_metric():
    def _make(client_id, **overrides):
        payload = {
            "client_id": str(client_id),
            "metric": "height",
            "value": 175,
            "measured_at": "2024-06-01T08:00:00Z",
        }
        payload.update(overrides)
        return payload

    return _make
