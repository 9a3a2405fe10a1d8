from pydantic import BaseModel, ConfigDict
from datetime import datetime
from uuid import UUID
from typing import Optional, List


class PairRequest(BaseModel):
    pairing_code: Optional[str] = None


class PairResponse(BaseModel):
    client_id: UUID


class ClientCreate(BaseModel):
    label: Optional[str] = None


class ClientCreatedResponse(BaseModel):
    client_id: UUID
    pairing_code: str
    label: Optional[str] = None


class ClientSummaryResponse(BaseModel):
    """Per-client row of the admin listing."""
    client_id: UUID
    pairing_code: str
    label: Optional[str] = None
    created_at: Optional[datetime] = None
    workout_count: int = 0
    last_workout_start_time: Optional[datetime] = None
    warning_count: int = 0


class IngestReportResponse(BaseModel):
    success: bool
    count_received: int
    count_inserted: int
    duplicates_skipped: int
    warnings_count: int
    errors_count: int
    errors: Optional[List[str]] = None


class UuidQuery(BaseModel):
    uuids: List[str]
    client_id: Optional[UUID] = None  # restrict matches to one owner


class WorkoutResponse(BaseModel):
    id: UUID
    client_id: UUID
    source: str
    workout_type: str
    start_time: datetime
    end_time: datetime
    duration_seconds: int
    calories_active: Optional[float] = None
    distance_meters: Optional[float] = None
    avg_heart_rate: Optional[float] = None
    source_device: Optional[str] = None
    healthkit_uuid: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ProfileMetricResponse(BaseModel):
    id: UUID
    client_id: UUID
    metric: str
    value: float
    unit: str
    measured_at: datetime
    source: str
    healthkit_uuid: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class IngestWarningResponse(BaseModel):
    id: UUID
    client_id: UUID
    record_type: str
    record_id: Optional[UUID] = None
    warning_type: str
    message: str
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class DevStatsResponse(BaseModel):
    total_clients: int
    total_workouts: int
    total_profile_metrics: int
    duplicates_skipped: int
