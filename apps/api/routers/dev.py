"""
Dev-only endpoints. Mounted only when ENABLE_DEV_ROUTES is set.

Seeding goes through the real ingestion path so the sample data exercises
validation warnings and duplicate detection exactly like phone traffic.
"""
from datetime import datetime, timedelta, timezone
from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session
import logging

from core.database import get_db
from models import Client, IngestWarning, ProfileMetric, Workout
from schemas import DevStatsResponse
from services.batch_ingest import ingest_profile_metrics, ingest_workouts
from services.pairing_codes import create_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/dev", tags=["dev"])


def _iso(dt: datetime) -> str:
    return dt.isoformat().replace("+00:00", "Z")


def _sample_workouts(client_id: str, base: datetime):
    return [
        {
            "client_id": client_id,
            "workout_type": "run",
            "start_time": _iso(base + timedelta(hours=1)),
            "end_time": _iso(base + timedelta(hours=1, minutes=30)),
            "duration_seconds": 1800,
            "calories_active": 250,
            "distance_meters": 5000,
            "avg_heart_rate": 150,
            "source_device": "apple_watch",
        },
        # Same run reported again 30s later by a second source
        {
            "client_id": client_id,
            "workout_type": "run",
            "start_time": _iso(base + timedelta(hours=1, seconds=30)),
            "end_time": _iso(base + timedelta(hours=1, minutes=30, seconds=30)),
            "duration_seconds": 1805,
            "calories_active": 250,
            "distance_meters": 5000,
            "avg_heart_rate": 150,
            "source_device": "apple_watch",
        },
        {
            "client_id": client_id,
            "workout_type": "cycle",
            "start_time": _iso(base + timedelta(hours=2)),
            "end_time": _iso(base + timedelta(hours=3)),
            "duration_seconds": 500,
            "calories_active": 300,
            "distance_meters": 15000,
            "source_device": "apple_watch",
        },
        {
            "client_id": client_id,
            "workout_type": "unknown_type",
            "start_time": _iso(base + timedelta(hours=4)),
            "end_time": _iso(base + timedelta(hours=4, minutes=30)),
            "duration_seconds": 1800,
            "calories_active": 200,
            "source_device": "iphone",
        },
    ]


@router.post("/seed")
def seed(db: Session = Depends(get_db)):
    """Create two sample clients with workouts and profile metrics."""
    logger.info("[DEV] Seeding database")

    client1_id, code1 = create_client(db, "Test Client 1")
    client2_id, code2 = create_client(db, "Test Client 2")
    base = datetime.now(timezone.utc).replace(microsecond=0) - timedelta(days=7)

    report1 = ingest_workouts(db, _sample_workouts(str(client1_id), base))
    metrics_report = ingest_profile_metrics(
        db,
        [
            {"client_id": str(client1_id), "metric": "weight", "value": 75.5, "unit": "kg", "measured_at": _iso(base)},
            {"client_id": str(client1_id), "metric": "height", "value": 175.0, "unit": "cm", "measured_at": _iso(base)},
        ],
    )
    report2 = ingest_workouts(
        db,
        [
            {
                "client_id": str(client2_id),
                "workout_type": "walk",
                "start_time": _iso(base + timedelta(hours=5)),
                "end_time": _iso(base + timedelta(hours=6)),
                "duration_seconds": 3600,
                "calories_active": 150,
                "distance_meters": 4000,
                "source_device": "iphone",
            }
        ],
    )

    return {
        "success": True,
        "clients": [
            {"client_id": str(client1_id), "pairing_code": code1, "label": "Test Client 1"},
            {"client_id": str(client2_id), "pairing_code": code2, "label": "Test Client 2"},
        ],
        "reports": {
            "client1_workouts": report1.to_dict(),
            "client1_profile_metrics": metrics_report.to_dict(),
            "client2_workouts": report2.to_dict(),
        },
    }


@router.get("/stats", response_model=DevStatsResponse)
def stats(db: Session = Depends(get_db)):
    duplicates = (
        db.query(func.count(IngestWarning.id))
        .filter(IngestWarning.warning_type == "duplicate")
        .scalar()
    )
    return DevStatsResponse(
        total_clients=db.query(func.count(Client.id)).scalar() or 0,
        total_workouts=db.query(func.count(Workout.id)).scalar() or 0,
        total_profile_metrics=db.query(func.count(ProfileMetric.id)).scalar() or 0,
        duplicates_skipped=duplicates or 0,
    )
