from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, Float, Index, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from src.api.models.base import Base


class RideStatus(str, enum.Enum):
    """
    Ride status values matching the database enum `ride_status`.

    requested -> accepted -> arrived -> in_progress -> completed,
    with cancelled reachable from anywhere. Only the claim and the PIN check
    are guarded; other transitions are plain overwrites.
    """

    requested = "requested"
    accepted = "accepted"
    arrived = "arrived"
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"


class Ride(Base):
    """
    ORM model for the `rides` table.

    Notes:
    - rider_id / driver_id are principal ids issued by the identity provider;
      there is no users table in this service, so no foreign keys.
    - driver_id is null until the ride is claimed and is set exactly once.
    - pin is minted at creation and never rotated.
    """

    __tablename__ = "rides"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True)

    rider_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False, index=True)
    driver_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True, index=True)

    pickup_lat: Mapped[float] = mapped_column(Float, nullable=False)
    pickup_lng: Mapped[float] = mapped_column(Float, nullable=False)
    drop_lat: Mapped[float] = mapped_column(Float, nullable=False)
    drop_lng: Mapped[float] = mapped_column(Float, nullable=False)

    distance_km: Mapped[float | None] = mapped_column(Float, nullable=True)
    estimated_fare: Mapped[float | None] = mapped_column(Float, nullable=True)

    driver_lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    driver_lng: Mapped[float | None] = mapped_column(Float, nullable=True)

    pin: Mapped[str] = mapped_column(String(4), nullable=False)

    status: Mapped[RideStatus] = mapped_column(
        Enum(RideStatus, name="ride_status"),
        nullable=False,
        server_default=RideStatus.requested.value,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        index=True,
    )
    accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )


# Composite indexes backing rider history and driver discovery listings.
Index("idx_rides_rider_created_at", Ride.rider_id, Ride.created_at.desc())
Index("idx_rides_status_created_at", Ride.status, Ride.created_at.desc())
