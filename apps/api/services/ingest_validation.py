"""
Per-record validation for ingested workouts and profile metrics.

Pure functions: no database access, no mutation of the input payload.

Outcome of a check:
- error   -> the record is not persisted (the batch continues)
- warning -> the record is persisted and the finding is recorded

Each validator returns a ValidationResult. When the record is valid the
result also carries a normalized copy (parsed UTC timestamps, coerced
category, defaulted source) that is safe to persist.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from core.config import settings


WORKOUT_TYPES = frozenset({"run", "walk", "cycle", "strength", "hiit", "other"})
FALLBACK_WORKOUT_TYPE = "other"
DEFAULT_SOURCE = "apple_health"

# Plausible heart rate, bpm
HEART_RATE_RANGE = (0, 300)

# duration_seconds is a 32-bit INTEGER column
MAX_DURATION_SECONDS = 2**31 - 1


@dataclass(frozen=True)
class MetricKind:
    name: str
    unit: str
    min_value: float
    max_value: float
    unit_hint: str


METRIC_KINDS: Dict[str, MetricKind] = {
    "height": MetricKind("height", "cm", 50, 300, "expected cm"),
    "weight": MetricKind("weight", "kg", 20, 300, "expected kg"),
    "body_fat": MetricKind("body_fat", "%", 0, 100, "expected percent"),
}


@dataclass(frozen=True)
class ValidationResult:
    errors: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()
    record: Optional[Dict[str, Any]] = None

    @property
    def is_valid(self) -> bool:
        return not self.errors


def _is_number(value: Any) -> bool:
    # bool is an int subclass but never a measurement; NaN and Infinity arrive via JSON
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return False
    return isinstance(value, int) or math.isfinite(value)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp into an aware UTC datetime.

    Naive timestamps are taken to be UTC. Returns None when unparseable.
    """
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _optional_text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _check_owner(record: Dict[str, Any], expected_client_id: Optional[str], errors: list) -> None:
    client_id = record.get("client_id")
    if _is_blank(client_id):
        errors.append("client_id is required")
    elif expected_client_id is not None and client_id != expected_client_id:
        errors.append(f"client_id mismatch: expected {expected_client_id}, got {client_id}")


def validate_workout(
    workout: Any,
    expected_client_id: Optional[str] = None,
    *,
    duration_tolerance_pct: Optional[float] = None,
) -> ValidationResult:
    if not isinstance(workout, dict):
        return ValidationResult(errors=("workout must be an object",))

    tolerance_pct = (
        settings.DURATION_MISMATCH_TOLERANCE_PCT if duration_tolerance_pct is None else duration_tolerance_pct
    )
    errors: list = []
    warnings: list = []

    _check_owner(workout, expected_client_id, errors)

    workout_type = workout.get("workout_type")
    if _is_blank(workout_type):
        errors.append("workout_type is required")
    elif not isinstance(workout_type, str):
        errors.append("workout_type must be a string")
        workout_type = None
    else:
        workout_type = workout_type.strip().lower()
        if workout_type not in WORKOUT_TYPES:
            warnings.append(f"Unknown workout_type: {workout['workout_type']}, mapping to '{FALLBACK_WORKOUT_TYPE}'")
            workout_type = FALLBACK_WORKOUT_TYPE

    start = end = None
    if _is_blank(workout.get("start_time")):
        errors.append("start_time is required")
    else:
        start = parse_timestamp(workout["start_time"])
        if start is None:
            errors.append("start_time must be valid ISO8601")

    if _is_blank(workout.get("end_time")):
        errors.append("end_time is required")
    else:
        end = parse_timestamp(workout["end_time"])
        if end is None:
            errors.append("end_time must be valid ISO8601")

    duration = workout.get("duration_seconds")
    duration_ok = False
    if duration is None:
        errors.append("duration_seconds is required")
    elif not _is_number(duration) or not 0 <= duration <= MAX_DURATION_SECONDS:
        errors.append("duration_seconds must be a non-negative number")
    else:
        duration_ok = True

    if start is not None and end is not None:
        if start >= end:
            errors.append("start_time must be before end_time")
        elif duration_ok:
            actual = (end - start).total_seconds()
            if abs(actual - duration) > actual * tolerance_pct:
                warnings.append(f"Duration mismatch: reported {duration}s, calculated {actual:.1f}s")

    measurements: Dict[str, Optional[float]] = {}
    for field in ("calories_active", "distance_meters"):
        value = workout.get(field)
        if value is None:
            measurements[field] = None
        elif not _is_number(value) or value < 0:
            warnings.append(f"{field} should be non-negative")
            measurements[field] = float(value) if _is_number(value) else None
        else:
            measurements[field] = float(value)

    heart_rate = workout.get("avg_heart_rate")
    if heart_rate is None:
        measurements["avg_heart_rate"] = None
    else:
        lo, hi = HEART_RATE_RANGE
        if not _is_number(heart_rate) or heart_rate < lo or heart_rate > hi:
            warnings.append("avg_heart_rate seems unusual")
        measurements["avg_heart_rate"] = float(heart_rate) if _is_number(heart_rate) else None

    if errors:
        return ValidationResult(errors=tuple(errors), warnings=tuple(warnings))

    record = {
        "client_id": workout["client_id"],
        "source": _optional_text(workout.get("source")) or DEFAULT_SOURCE,
        "workout_type": workout_type,
        "start_time": start,
        "end_time": end,
        "duration_seconds": int(round(duration)),
        "source_device": _optional_text(workout.get("source_device")),
        "healthkit_uuid": _optional_text(workout.get("healthkit_uuid")),
        **measurements,
    }
    return ValidationResult(warnings=tuple(warnings), record=record)


def validate_profile_metric(metric: Any, expected_client_id: Optional[str] = None) -> ValidationResult:
    if not isinstance(metric, dict):
        return ValidationResult(errors=("profile metric must be an object",))

    errors: list = []
    warnings: list = []

    _check_owner(metric, expected_client_id, errors)

    kind: Optional[MetricKind] = None
    name = metric.get("metric")
    if _is_blank(name):
        errors.append("metric is required")
    elif not isinstance(name, str) or name.strip().lower() not in METRIC_KINDS:
        errors.append(f"Unknown metric type: {name}")
    else:
        kind = METRIC_KINDS[name.strip().lower()]

    value = metric.get("value")
    if value is None:
        errors.append("value is required")
    elif not _is_number(value):
        errors.append("value must be a number")
    elif kind is not None and not (kind.min_value <= value <= kind.max_value):
        warnings.append(f"{kind.name} value seems unusual ({kind.unit_hint})")

    unit = metric.get("unit")
    if unit is not None and not isinstance(unit, str):
        errors.append("unit must be a string")

    measured_at = None
    if _is_blank(metric.get("measured_at")):
        errors.append("measured_at is required")
    else:
        measured_at = parse_timestamp(metric["measured_at"])
        if measured_at is None:
            errors.append("measured_at must be valid ISO8601")

    if errors:
        return ValidationResult(errors=tuple(errors), warnings=tuple(warnings))

    record = {
        "client_id": metric["client_id"],
        "metric": kind.name,
        "value": float(value),
        "unit": _optional_text(unit) or kind.unit,
        "measured_at": measured_at,
        "source": _optional_text(metric.get("source")) or DEFAULT_SOURCE,
        "healthkit_uuid": _optional_text(metric.get("healthkit_uuid")),
    }
    return ValidationResult(warnings=tuple(warnings), record=record)
