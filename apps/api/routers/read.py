"""
Read API Router

Bounded, most-recent-first listings. Anything that returns records is
filtered by owner in SQL when a client_id is given.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID
import logging

from core.database import get_db
from schemas import IngestWarningResponse, ProfileMetricResponse, UuidQuery, WorkoutResponse
from services import owner_reads

logger = logging.getLogger(__name__)

router = APIRouter(tags=["read"])


def _parse_client_id(client_id: str) -> Optional[UUID]:
    try:
        return UUID(client_id)
    except ValueError:
        return None


@router.get("/workouts", response_model=List[WorkoutResponse])
def list_workouts(
    client_id: Optional[UUID] = Query(default=None),
    limit: Optional[int] = Query(default=None, ge=1),
    db: Session = Depends(get_db),
):
    return owner_reads.list_workouts(db, client_id=client_id, limit=limit)


@router.get("/profile", response_model=List[ProfileMetricResponse])
@router.get("/profile-metrics", response_model=List[ProfileMetricResponse])
def list_profile_metrics(
    client_id: Optional[UUID] = Query(default=None),
    limit: Optional[int] = Query(default=None, ge=1),
    db: Session = Depends(get_db),
):
    return owner_reads.list_profile_metrics(db, client_id=client_id, limit=limit)


@router.post("/workouts/query", response_model=List[WorkoutResponse])
def query_workouts(body: UuidQuery, db: Session = Depends(get_db)):
    """
    Look up workouts by the phone's sample UUIDs.

    No matches returns [] and the phone treats those samples as new.
    """
    workouts = owner_reads.query_workouts_by_uuids(db, body.uuids, client_id=body.client_id)
    logger.info(f"Query workouts: requested {len(body.uuids)} UUID(s), found {len(workouts)} match(es)")
    return workouts


@router.post("/profile-metrics/query", response_model=List[ProfileMetricResponse])
def query_profile_metrics(body: UuidQuery, db: Session = Depends(get_db)):
    return owner_reads.query_profile_metrics_by_uuids(db, body.uuids, client_id=body.client_id)


@router.get("/clients/{client_id}/workouts", response_model=List[WorkoutResponse])
def client_workouts(
    client_id: str,
    limit: Optional[int] = Query(default=None, ge=1),
    db: Session = Depends(get_db),
):
    owner = _parse_client_id(client_id)
    if owner is None:
        return []
    return owner_reads.list_workouts(db, client_id=owner, limit=limit)


@router.get("/clients/{client_id}/profile", response_model=List[ProfileMetricResponse])
def client_profile_metrics(
    client_id: str,
    limit: Optional[int] = Query(default=None, ge=1),
    db: Session = Depends(get_db),
):
    owner = _parse_client_id(client_id)
    if owner is None:
        return []
    return owner_reads.list_profile_metrics(db, client_id=owner, limit=limit)


@router.get("/clients/{client_id}/warnings", response_model=List[IngestWarningResponse])
def client_warnings(
    client_id: str,
    limit: Optional[int] = Query(default=None, ge=1),
    db: Session = Depends(get_db),
):
    owner = _parse_client_id(client_id)
    if owner is None:
        return []
    return owner_reads.list_warnings(db, owner, limit=limit)
