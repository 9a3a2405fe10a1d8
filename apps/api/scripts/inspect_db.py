#!/usr/bin/env python3
"""Print table row counts and the most recent rows per table (ops script).

Run from apps/api: python scripts/inspect_db.py --recent 5
"""

from __future__ import annotations

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def main() -> int:
    import argparse

    from sqlalchemy import func, inspect

    from core.database import engine, get_db_sync
    from models import Client, IngestWarning, ProfileMetric, Workout

    parser = argparse.ArgumentParser()
    parser.add_argument("--recent", type=int, default=5, help="rows to show per table (default: 5)")
    args = parser.parse_args()

    print("=== GymDash Sync Database Inspection ===")
    print(f"Database: {engine.url.render_as_string(hide_password=True)}")

    existing = set(inspect(engine).get_table_names())
    newest = {
        Client: Client.created_at,
        Workout: Workout.start_time,
        ProfileMetric: ProfileMetric.measured_at,
        IngestWarning: IngestWarning.created_at,
    }

    db = get_db_sync()
    try:
        for model, order_col in newest.items():
            table = model.__tablename__
            print(f"\nTable: {table}")
            if table not in existing:
                print("  (missing - run run_migrations.py)")
                continue

            count = db.query(func.count(model.id)).scalar()
            print(f"  Rows: {count}")
            for row in db.query(model).order_by(order_col.desc()).limit(args.recent):
                cols = {c.name: getattr(row, c.name) for c in model.__table__.columns}
                print("  - " + ", ".join(f"{k}={v}" for k, v in cols.items() if v is not None))
    finally:
        db.close()

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
