"""
Owner-scoped reads.

Every query that can return records takes the owner as a parameter and
filters in SQL. Nothing here fetches unscoped rows and filters them in
Python afterwards.

The admin-wide helpers (`list_workouts` / `list_profile_metrics` without a
client, `list_client_summaries`) exist for operator views only.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from core.config import settings
from models import Client, IngestWarning, ProfileMetric, Workout


def clamp_limit(limit: Optional[int], default: Optional[int] = None) -> int:
    """Bound a caller-supplied page size to [1, READ_PAGE_SIZE_MAX]."""
    if limit is None or limit < 1:
        limit = default or settings.READ_PAGE_SIZE_DEFAULT
    return min(limit, settings.READ_PAGE_SIZE_MAX)


def workouts_starting_near(
    db: Session,
    client_id: UUID,
    start_time: datetime,
    tolerance_s: Optional[float] = None,
) -> List[Workout]:
    """Dedup candidates: this owner's workouts starting within the tolerance window."""
    if tolerance_s is None:
        tolerance_s = settings.DEDUP_START_TOLERANCE_S
    window = timedelta(seconds=tolerance_s)
    return (
        db.query(Workout)
        .filter(
            Workout.client_id == client_id,
            Workout.start_time >= start_time - window,
            Workout.start_time <= start_time + window,
        )
        .order_by(Workout.start_time)
        .all()
    )


def list_workouts(db: Session, client_id: Optional[UUID] = None, limit: Optional[int] = None) -> List[Workout]:
    query = db.query(Workout)
    if client_id is not None:
        query = query.filter(Workout.client_id == client_id)
    return query.order_by(Workout.start_time.desc()).limit(clamp_limit(limit)).all()


def list_profile_metrics(
    db: Session,
    client_id: Optional[UUID] = None,
    limit: Optional[int] = None,
) -> List[ProfileMetric]:
    query = db.query(ProfileMetric)
    if client_id is not None:
        query = query.filter(ProfileMetric.client_id == client_id)
    return query.order_by(ProfileMetric.measured_at.desc()).limit(clamp_limit(limit)).all()


def list_warnings(db: Session, client_id: UUID, limit: Optional[int] = None) -> List[IngestWarning]:
    return (
        db.query(IngestWarning)
        .filter(IngestWarning.client_id == client_id)
        .order_by(IngestWarning.created_at.desc())
        .limit(clamp_limit(limit, settings.WARNINGS_PAGE_SIZE_DEFAULT))
        .all()
    )


def query_workouts_by_uuids(
    db: Session,
    uuids: Sequence[str],
    client_id: Optional[UUID] = None,
) -> List[Workout]:
    """
    Match workouts on the phone-side correlation key.

    An empty result means "treat these as new", not an error.
    """
    keys = [u for u in uuids if isinstance(u, str) and u]
    if not keys:
        return []
    query = db.query(Workout).filter(Workout.healthkit_uuid.in_(keys))
    if client_id is not None:
        query = query.filter(Workout.client_id == client_id)
    return query.order_by(Workout.start_time.desc()).all()


def query_profile_metrics_by_uuids(
    db: Session,
    uuids: Sequence[str],
    client_id: Optional[UUID] = None,
) -> List[ProfileMetric]:
    keys = [u for u in uuids if isinstance(u, str) and u]
    if not keys:
        return []
    query = db.query(ProfileMetric).filter(ProfileMetric.healthkit_uuid.in_(keys))
    if client_id is not None:
        query = query.filter(ProfileMetric.client_id == client_id)
    return query.order_by(ProfileMetric.measured_at.desc()).all()


def _summary_row(client: Client, workout_count: int, last_start, warning_count: int) -> dict:
    return {
        "client_id": client.id,
        "pairing_code": client.pairing_code,
        "label": client.label,
        "created_at": client.created_at,
        "workout_count": int(workout_count or 0),
        "last_workout_start_time": last_start,
        "warning_count": int(warning_count or 0),
    }


def _summary_query(db: Session):
    # Aggregate in subqueries so the two joins do not multiply each other.
    workout_stats = (
        db.query(
            Workout.client_id.label("client_id"),
            func.count(Workout.id).label("workout_count"),
            func.max(Workout.start_time).label("last_start"),
        )
        .group_by(Workout.client_id)
        .subquery()
    )
    warning_stats = (
        db.query(
            IngestWarning.client_id.label("client_id"),
            func.count(IngestWarning.id).label("warning_count"),
        )
        .group_by(IngestWarning.client_id)
        .subquery()
    )
    return (
        db.query(
            Client,
            workout_stats.c.workout_count,
            workout_stats.c.last_start,
            warning_stats.c.warning_count,
        )
        .outerjoin(workout_stats, workout_stats.c.client_id == Client.id)
        .outerjoin(warning_stats, warning_stats.c.client_id == Client.id)
    )


def list_client_summaries(db: Session) -> List[dict]:
    """Admin listing; each row only aggregates its own client's records."""
    rows = _summary_query(db).order_by(Client.created_at.desc()).all()
    return [_summary_row(*row) for row in rows]


def get_client_summary(db: Session, client_id: UUID) -> Optional[dict]:
    row = _summary_query(db).filter(Client.id == client_id).first()
    if row is None:
        return None
    return _summary_row(*row)
