"""
Batch ingestion of workouts and profile metrics.

One call = one batch = one owner = one transaction.

Order of operations:
1. Batch preconditions (array, owner reference present and identical on
   every record, owner exists). Any failure rejects the whole batch before
   a single row is written.
2. Per record: validate -> (workouts) deduplicate -> insert + warnings.
   A bad record is counted and skipped; its siblings still go in.
3. Commit once. A storage failure anywhere rolls the whole batch back.

The report is folded from immutable per-record outcomes, so nothing is
shared between concurrent batches.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from functools import reduce
from typing import Any, Callable, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.config import settings
from core.logging import log_context
from models import Client, IngestWarning, ProfileMetric, Workout
from services.ingest_validation import validate_profile_metric, validate_workout
from services.owner_reads import workouts_starting_near
from services.pairing_codes import client_exists
from services.workout_deduplication import is_duplicate

logger = logging.getLogger(__name__)

WORKOUT = "workout"
PROFILE_METRIC = "profile_metric"

_KIND_LABELS = {
    WORKOUT: "workouts",
    PROFILE_METRIC: "profile metrics",
}


class BatchRejectedError(ValueError):
    """The batch as a whole is malformed; nothing was written."""


@dataclass(frozen=True)
class IngestReport:
    count_received: int = 0
    count_inserted: int = 0
    duplicates_skipped: int = 0
    warnings_count: int = 0
    errors_count: int = 0
    errors: Tuple[str, ...] = ()

    @property
    def success(self) -> bool:
        # "Nothing processed" (every record errored) is a failure;
        # any insert or duplicate alongside errors is a partial success.
        return self.count_received == 0 or self.errors_count < self.count_received

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "success": self.success,
            "count_received": self.count_received,
            "count_inserted": self.count_inserted,
            "duplicates_skipped": self.duplicates_skipped,
            "warnings_count": self.warnings_count,
            "errors_count": self.errors_count,
        }
        if self.errors:
            out["errors"] = list(self.errors)
        return out

    @classmethod
    def storage_failure(cls, count_received: int, message: str) -> "IngestReport":
        return cls(
            count_received=count_received,
            errors_count=count_received,
            errors=(message,),
        )


class IngestStorageError(RuntimeError):
    """The store failed mid-batch; the transaction was rolled back."""

    def __init__(self, report: IngestReport, message: str):
        super().__init__(message)
        self.report = report


class Outcome(str, Enum):
    INSERTED = "inserted"
    DUPLICATE = "duplicate"
    ERROR = "error"


@dataclass(frozen=True)
class RecordOutcome:
    outcome: Outcome
    warnings: int = 0
    errors: Tuple[str, ...] = field(default_factory=tuple)


def _fold(report: IngestReport, item: RecordOutcome) -> IngestReport:
    if item.outcome is Outcome.ERROR:
        return IngestReport(
            count_received=report.count_received,
            count_inserted=report.count_inserted,
            duplicates_skipped=report.duplicates_skipped,
            warnings_count=report.warnings_count,
            errors_count=report.errors_count + 1,
            errors=report.errors + item.errors,
        )
    if item.outcome is Outcome.DUPLICATE:
        return IngestReport(
            count_received=report.count_received,
            count_inserted=report.count_inserted,
            duplicates_skipped=report.duplicates_skipped + 1,
            warnings_count=report.warnings_count,
            errors_count=report.errors_count,
            errors=report.errors,
        )
    return IngestReport(
        count_received=report.count_received,
        count_inserted=report.count_inserted + 1,
        duplicates_skipped=report.duplicates_skipped,
        warnings_count=report.warnings_count + item.warnings,
        errors_count=report.errors_count,
        errors=report.errors,
    )


def build_report(count_received: int, outcomes: List[RecordOutcome]) -> IngestReport:
    return reduce(_fold, outcomes, IngestReport(count_received=count_received))


def resolve_batch_owner(db: Session, batch: List[Any], kind: str = WORKOUT) -> UUID:
    """
    Check the single-owner precondition and return the owner id.

    Raises:
        BatchRejectedError: owner missing, mixed, malformed or unknown
    """
    label = _KIND_LABELS[kind]
    first = batch[0]
    owner_ref = first.get("client_id") if isinstance(first, dict) else None
    if owner_ref is None or (isinstance(owner_ref, str) and not owner_ref.strip()):
        raise BatchRejectedError(f"client_id is required in {label.rstrip('s')} payload")

    if not all(isinstance(r, dict) and r.get("client_id") == owner_ref for r in batch):
        raise BatchRejectedError(f"All {label} must have the same client_id")

    try:
        client_id = UUID(str(owner_ref))
    except ValueError:
        raise BatchRejectedError(f"client_id does not exist: {owner_ref}")

    if not client_exists(db, client_id):
        raise BatchRejectedError(f"client_id does not exist: {owner_ref}")
    return client_id


def _lock_owner(db: Session, client_id: UUID) -> None:
    # Serialises same-owner batches on backends with row locks; SQLite drops FOR UPDATE.
    db.query(Client.id).filter(Client.id == client_id).with_for_update().first()


def _add_warnings(
    db: Session,
    client_id: UUID,
    record_type: str,
    record_id: Optional[UUID],
    warning_type: str,
    messages: Tuple[str, ...],
) -> None:
    for message in messages:
        db.add(
            IngestWarning(
                client_id=client_id,
                record_type=record_type,
                record_id=record_id,
                warning_type=warning_type,
                message=message,
            )
        )


def _ingest_workout(db: Session, client_id: UUID, raw: Dict[str, Any]) -> RecordOutcome:
    result = validate_workout(raw, expected_client_id=raw.get("client_id"))
    if not result.is_valid:
        return RecordOutcome(Outcome.ERROR, errors=result.errors)

    record = dict(result.record, client_id=client_id)
    history = workouts_starting_near(db, client_id, record["start_time"])
    if is_duplicate(record, history):
        logger.debug(
            f"Skipping duplicate workout: uuid={record['healthkit_uuid'] or 'none'}, "
            f"start_time={record['start_time'].isoformat()}, client_id={client_id}"
        )
        _add_warnings(
            db,
            client_id,
            WORKOUT,
            None,
            "duplicate",
            (
                f"Duplicate workout skipped: start_time={record['start_time'].isoformat()}, "
                f"duration={record['duration_seconds']}s",
            ),
        )
        db.flush()
        return RecordOutcome(Outcome.DUPLICATE)

    workout = Workout(**record)
    db.add(workout)
    # Flush so later records in this batch see this one during dedup.
    db.flush()
    _add_warnings(db, client_id, WORKOUT, workout.id, "validation", result.warnings)
    db.flush()
    return RecordOutcome(Outcome.INSERTED, warnings=len(result.warnings))


def _ingest_profile_metric(db: Session, client_id: UUID, raw: Dict[str, Any]) -> RecordOutcome:
    result = validate_profile_metric(raw, expected_client_id=raw.get("client_id"))
    if not result.is_valid:
        return RecordOutcome(Outcome.ERROR, errors=result.errors)

    metric = ProfileMetric(**dict(result.record, client_id=client_id))
    db.add(metric)
    db.flush()
    _add_warnings(db, client_id, PROFILE_METRIC, metric.id, "validation", result.warnings)
    db.flush()
    return RecordOutcome(Outcome.INSERTED, warnings=len(result.warnings))


_INGESTORS: Dict[str, Callable[[Session, UUID, Dict[str, Any]], RecordOutcome]] = {
    WORKOUT: _ingest_workout,
    PROFILE_METRIC: _ingest_profile_metric,
}


def ingest_batch(db: Session, batch: Any, kind: str) -> IngestReport:
    """
    Ingest one batch of same-kind records for a single owner.

    Returns:
        IngestReport with itemised counts

    Raises:
        BatchRejectedError: preconditions failed; nothing written
        IngestStorageError: the store failed; everything rolled back
    """
    label = _KIND_LABELS[kind]
    if not isinstance(batch, list):
        raise BatchRejectedError(f"Request body must be an array of {label.rstrip('s')} objects")
    if not batch:
        return IngestReport()

    ingest_one = _INGESTORS[kind]
    client_id = None
    try:
        client_id = resolve_batch_owner(db, batch, kind)
        logger.info(f"Received {kind} batch with client_id={client_id}, count={len(batch)}")
        with log_context(client_id=str(client_id), kind=kind):
            if kind == WORKOUT and settings.SERIALIZE_OWNER_BATCHES:
                _lock_owner(db, client_id)
            outcomes = [ingest_one(db, client_id, raw) for raw in batch]
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(
            f"Storage failure ingesting {label} for client_id={client_id}; batch rolled back",
            exc_info=True,
            extra={"extra_fields": {"client_id": str(client_id) if client_id else None, "kind": kind}},
        )
        report = IngestReport.storage_failure(len(batch), f"Storage failure: {e.__class__.__name__}")
        raise IngestStorageError(report, str(e)) from e

    report = build_report(len(batch), outcomes)
    logger.info(
        f"Ingested {label}: client_id={client_id}, received={report.count_received}, "
        f"inserted={report.count_inserted}, duplicates={report.duplicates_skipped}, "
        f"warnings={report.warnings_count}, errors={report.errors_count}",
        extra={"extra_fields": {"client_id": str(client_id), "kind": kind, **report.to_dict()}},
    )
    if report.errors:
        logger.warning(f"Ingest errors for client_id={client_id}: {'; '.join(report.errors)}")
    return report


def ingest_workouts(db: Session, batch: Any) -> IngestReport:
    return ingest_batch(db, batch, WORKOUT)


def ingest_profile_metrics(db: Session, batch: Any) -> IngestReport:
    return ingest_batch(db, batch, PROFILE_METRIC)
