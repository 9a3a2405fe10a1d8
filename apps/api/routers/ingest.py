"""
Ingest API Router

Batch endpoints called by the phone. Every call answers with an ingest
report, including partial failures, so the caller can reconcile exactly
which records landed.

Status codes:
- 200: at least one record inserted or skipped as duplicate (or empty batch)
- 400: batch rejected up front, or every record failed validation
- 500: storage failure; the whole batch was rolled back
"""
from fastapi import APIRouter, Depends, Body, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from typing import Any, Callable
import logging

from core.database import get_db
from schemas import IngestReportResponse
from services.batch_ingest import (
    BatchRejectedError,
    IngestReport,
    IngestStorageError,
    ingest_profile_metrics,
    ingest_workouts,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ingest", tags=["ingest"])

# Paths the mobile client uses under /api/v1
api_v1_router = APIRouter(tags=["ingest"])

_RESPONSES = {
    400: {"description": "Batch rejected or every record invalid"},
    500: {"description": "Storage failure, batch rolled back"},
}


def _run(ingest: Callable[[Session, Any], IngestReport], payload: Any, db: Session) -> JSONResponse:
    try:
        report = ingest(db, payload)
    except BatchRejectedError as e:
        logger.warning(f"Batch rejected: {e}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "error": str(e)},
        )
    except IngestStorageError as e:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={**e.report.to_dict(), "error": "Storage failure, batch rolled back"},
        )

    return JSONResponse(
        status_code=status.HTTP_200_OK if report.success else status.HTTP_400_BAD_REQUEST,
        content=report.to_dict(),
    )


@router.post("/workouts", response_model=IngestReportResponse, responses=_RESPONSES)
@api_v1_router.post("/workouts", response_model=IngestReportResponse, responses=_RESPONSES)
def ingest_workouts_endpoint(payload: Any = Body(default=None), db: Session = Depends(get_db)):
    """Ingest an array of workouts that all carry the same client_id."""
    return _run(ingest_workouts, payload, db)


@router.post("/profile", response_model=IngestReportResponse, responses=_RESPONSES)
@router.post("/profile-metrics", response_model=IngestReportResponse, responses=_RESPONSES)
@api_v1_router.post("/profile-metrics", response_model=IngestReportResponse, responses=_RESPONSES)
def ingest_profile_endpoint(payload: Any = Body(default=None), db: Session = Depends(get_db)):
    """Ingest an array of profile metrics (height, weight, body_fat) for one client."""
    return _run(ingest_profile_metrics, payload, db)
