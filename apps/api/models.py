from sqlalchemy import Column, Float, Integer, DateTime, ForeignKey, Text, Index, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from core.database import Base
import uuid


class Client(Base):
    """
    A paired data producer (one phone / one person).

    Created once through pairing; immutable thereafter. Every other row
    belongs to exactly one client.
    """
    __tablename__ = "client"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # Stored upper-case; lookups compare case-insensitively.
    pairing_code = Column(Text, unique=True, nullable=False)
    label = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    workouts = relationship("Workout", back_populates="client", lazy="dynamic")
    profile_metrics = relationship("ProfileMetric", back_populates="client", lazy="dynamic")


class Workout(Base):
    """Append-only workout record. Never updated, never deleted."""
    __tablename__ = "workout"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    client_id = Column(Uuid(as_uuid=True), ForeignKey("client.id"), nullable=False, index=True)
    source = Column(Text, nullable=False, default="apple_health")
    workout_type = Column(Text, nullable=False)  # run, walk, cycle, strength, hiit, other
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)
    duration_seconds = Column(Integer, nullable=False)
    calories_active = Column(Float, nullable=True)
    distance_meters = Column(Float, nullable=True)
    avg_heart_rate = Column(Float, nullable=True)
    source_device = Column(Text, nullable=True)
    # Correlation key supplied by the phone (HealthKit sample UUID)
    healthkit_uuid = Column(Text, nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    client = relationship("Client", back_populates="workouts")

    __table_args__ = (
        Index("ix_workout_client_start", "client_id", "start_time"),
    )


class ProfileMetric(Base):
    """Append-only body metric reading (height, weight, body fat)."""
    __tablename__ = "profile_metric"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    client_id = Column(Uuid(as_uuid=True), ForeignKey("client.id"), nullable=False, index=True)
    metric = Column(Text, nullable=False)
    value = Column(Float, nullable=False)
    unit = Column(Text, nullable=False)
    measured_at = Column(DateTime(timezone=True), nullable=False)
    source = Column(Text, nullable=False, default="apple_health")
    healthkit_uuid = Column(Text, nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    client = relationship("Client", back_populates="profile_metrics")

    __table_args__ = (
        Index("ix_profile_metric_client_measured", "client_id", "measured_at"),
    )


class IngestWarning(Base):
    """
    Non-blocking finding recorded during ingestion.

    warning_type is 'validation' (attached to an inserted record) or
    'duplicate' (record_id is null because nothing was inserted).
    """
    __tablename__ = "ingest_warning"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    client_id = Column(Uuid(as_uuid=True), ForeignKey("client.id"), nullable=False)
    record_type = Column(Text, nullable=False)  # 'workout' | 'profile_metric'
    record_id = Column(Uuid(as_uuid=True), nullable=True)
    warning_type = Column(Text, nullable=False)  # 'validation' | 'duplicate'
    message = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("ix_ingest_warning_client_created", "client_id", "created_at"),
    )
