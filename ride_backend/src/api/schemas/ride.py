from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from src.api.models.ride import RideStatus


class RideCreateRequest(BaseModel):
    pickup_lat: float = Field(..., ge=-90, le=90, description="Pickup latitude in degrees.")
    pickup_lng: float = Field(..., ge=-180, le=180, description="Pickup longitude in degrees.")
    drop_lat: float = Field(..., ge=-90, le=90, description="Drop-off latitude in degrees.")
    drop_lng: float = Field(..., ge=-180, le=180, description="Drop-off longitude in degrees.")
    distance_km: Optional[float] = Field(default=None, ge=0, description="Trip distance (informational).")
    estimated_fare: Optional[float] = Field(default=None, ge=0, description="Quoted fare (informational).")


class DriverLocationUpdate(BaseModel):
    driver_lat: float = Field(..., ge=-90, le=90, description="Driver latitude in degrees.")
    driver_lng: float = Field(..., ge=-180, le=180, description="Driver longitude in degrees.")


class PinVerifyRequest(BaseModel):
    pin: str = Field(..., pattern="^[0-9]{4}$", description="4-digit PIN read out by the rider at pickup.")


class RideStatusUpdateRequest(BaseModel):
    status: RideStatus = Field(
        ...,
        description="New ride status. Allowed: requested, accepted, arrived, in_progress, completed, cancelled.",
    )


class RidePublic(BaseModel):
    id: UUID = Field(..., description="Ride id.")
    rider_id: UUID = Field(..., description="Rider who booked the ride.")
    driver_id: Optional[UUID] = Field(default=None, description="Assigned driver (null until claimed).")

    pickup_lat: float = Field(..., description="Pickup latitude.")
    pickup_lng: float = Field(..., description="Pickup longitude.")
    drop_lat: float = Field(..., description="Drop-off latitude.")
    drop_lng: float = Field(..., description="Drop-off longitude.")

    distance_km: Optional[float] = Field(default=None, description="Trip distance in km (nullable).")
    estimated_fare: Optional[float] = Field(default=None, description="Quoted fare (nullable).")

    driver_lat: Optional[float] = Field(default=None, description="Latest driver latitude (nullable).")
    driver_lng: Optional[float] = Field(default=None, description="Latest driver longitude (nullable).")

    status: RideStatus = Field(..., description="Current ride status.")

    created_at: datetime = Field(..., description="When the ride was created.")
    accepted_at: Optional[datetime] = Field(default=None, description="When a driver claimed the ride.")
    updated_at: datetime = Field(..., description="When the ride was last updated.")


class RideWithPin(RidePublic):
    """Ride as seen by the rider who booked it."""

    pin: str = Field(..., description="Pickup PIN; share with the driver in person.")

