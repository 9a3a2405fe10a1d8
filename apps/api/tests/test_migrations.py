"""
Alembic revision graph and the schema it produces.

A forked head or a second root makes `upgrade head` ambiguous at deploy
time; run_migrations.py would then fall back to create_all.
"""
from pathlib import Path

import pytest
from alembic.config import Config
from alembic.script import ScriptDirectory
from sqlalchemy import inspect

import models  # noqa: F401  registers the tables on Base.metadata
from core.database import Base, engine

EXPECTED_HEAD = "001"


@pytest.fixture(scope="module")
def script():
    api_root = Path(__file__).resolve().parents[1]
    cfg = Config(str(api_root / "alembic.ini"))
    cfg.set_main_option("script_location", str(api_root / "alembic"))
    return ScriptDirectory.from_config(cfg)


def test_single_head(script):
    # Chain new migrations off the current head, then bump EXPECTED_HEAD
    assert script.get_heads() == [EXPECTED_HEAD]


def test_single_root(script):
    roots = [r.revision for r in script.walk_revisions() if r.down_revision is None]
    assert len(roots) == 1


def test_no_merge_revisions(script):
    merges = [r.revision for r in script.walk_revisions() if isinstance(r.down_revision, tuple)]
    assert merges == []


def test_migrated_schema_matches_models():
    inspector = inspect(engine)
    present = set(inspector.get_table_names())

    for name, table in Base.metadata.tables.items():
        assert name in present
        columns = {c["name"] for c in inspector.get_columns(name)}
        assert columns == {c.name for c in table.columns}
        indexes = {i["name"] for i in inspector.get_indexes(name)}
        assert {i.name for i in table.indexes} <= indexes
