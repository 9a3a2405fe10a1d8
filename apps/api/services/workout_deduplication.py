"""
Workout Deduplication Service

Phones resend workouts (retries, reinstalls, a second data source for the
same session). Sensor clocks disagree by a little, so matching is done on
tolerances rather than exact equality or a fingerprint.

MATCHING:
- Same owner (callers only pass that owner's history)
- Start time within ±120 seconds of an existing workout
- Duration within ±10% of that existing workout's duration
- The first match wins; we only need to know one exists
"""

from typing import Any, Iterable, Optional
from datetime import datetime, timezone
import logging

from core.config import settings

logger = logging.getLogger(__name__)


def _field(record: Any, name: str) -> Any:
    if isinstance(record, dict):
        return record.get(name)
    return getattr(record, name, None)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything we store is UTC.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def match_workouts(
    candidate: Any,
    existing: Any,
    start_tolerance_s: Optional[float] = None,
    duration_tolerance_pct: Optional[float] = None,
) -> bool:
    """
    Check if two workouts describe the same session.

    Args:
        candidate: Incoming workout (dict or ORM row) with start_time and duration_seconds
        existing: Already-stored workout for the same owner

    Returns:
        True if both start time and duration are within tolerance
    """
    if start_tolerance_s is None:
        start_tolerance_s = settings.DEDUP_START_TOLERANCE_S
    if duration_tolerance_pct is None:
        duration_tolerance_pct = settings.DEDUP_DURATION_TOLERANCE_PCT

    candidate_start = _as_utc(_field(candidate, "start_time"))
    existing_start = _as_utc(_field(existing, "start_time"))
    if candidate_start is None or existing_start is None:
        return False

    if abs((candidate_start - existing_start).total_seconds()) > start_tolerance_s:
        return False

    candidate_duration = _field(candidate, "duration_seconds")
    existing_duration = _field(existing, "duration_seconds")
    if candidate_duration is None or existing_duration is None:
        return False

    return abs(candidate_duration - existing_duration) <= existing_duration * duration_tolerance_pct


def is_duplicate(
    candidate: Any,
    owner_history: Iterable[Any],
    start_tolerance_s: Optional[float] = None,
    duration_tolerance_pct: Optional[float] = None,
) -> bool:
    """
    Return True if any workout in the owner's history matches the candidate.

    owner_history must already be scoped to the candidate's owner.
    """
    for existing in owner_history:
        if match_workouts(candidate, existing, start_tolerance_s, duration_tolerance_pct):
            logger.debug(
                f"Found duplicate: start_time={_field(candidate, 'start_time')} "
                f"matches stored workout {_field(existing, 'id')}"
            )
            return True
    return False
