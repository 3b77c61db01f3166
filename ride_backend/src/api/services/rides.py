"""
Core ride lifecycle operations.

Every mutation here is a single UPDATE/INSERT round trip against the store.
The claim and the PIN check are conditional updates whose affected-row count
decides the outcome; no application-level lock is taken and nothing about a
ride is cached between calls.
"""

from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Tuple, Union

from sqlalchemy import desc, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.api.models.ride import Ride, RideStatus
from src.api.services.exceptions import RideNotFoundError, RideValidationError
from src.api.services.pin import generate_pin

logger = logging.getLogger(__name__)

Point = Tuple[float, float]

NOT_AVAILABLE = "ride_not_available"
INVALID_PIN = "invalid_pin"


@dataclass
class RideResult:
    """Result object for guarded ride operations (claim, PIN check)."""
    success: bool
    ride: Optional[Ride] = None
    message: str = ""
    error_code: Optional[str] = None


def _utcnow() -> datetime:
    """Return an aware UTC timestamp."""
    return datetime.now(timezone.utc)


def _check_coordinate(name: str, value, limit: float) -> float:
    if value is None or isinstance(value, bool):
        raise RideValidationError(f"{name} is required.")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise RideValidationError(f"{name} must be a number.")
    if not math.isfinite(number) or abs(number) > limit:
        raise RideValidationError(f"{name} must be between -{limit:g} and {limit:g}.")
    return number


def _check_point(name: str, point: Optional[Sequence[float]]) -> Point:
    """Validate a (lat, lng) pair."""
    if point is None:
        raise RideValidationError(f"{name} location is required.")
    try:
        lat, lng = point
    except (TypeError, ValueError):
        raise RideValidationError(f"{name} location must be a (lat, lng) pair.")
    return _check_coordinate(f"{name} latitude", lat, 90), _check_coordinate(f"{name} longitude", lng, 180)


def _check_non_negative(name: str, value) -> Optional[float]:
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise RideValidationError(f"{name} must be a number.")
    if not math.isfinite(number) or number < 0:
        raise RideValidationError(f"{name} must be a non-negative number.")
    return number


def _coerce_status(value: Union[RideStatus, str]) -> RideStatus:
    try:
        return RideStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in RideStatus)
        raise RideValidationError(f"Invalid status '{value}'. Allowed: {allowed}.")


def _execute_write(db: Session, stmt) -> int:
    """Run a single UPDATE and commit it, returning the affected-row count."""
    try:
        result = db.execute(stmt.execution_options(synchronize_session=False))
        affected = result.rowcount
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    return affected


def _reload(db: Session, ride_id: uuid.UUID) -> Ride:
    ride = db.get(Ride, ride_id, populate_existing=True)
    if ride is None:
        raise RideNotFoundError(f"Ride {ride_id} not found.")
    return ride


# ===================== Rider Operations =====================

def create_ride(
    db: Session,
    rider_id: uuid.UUID,
    pickup: Optional[Sequence[float]],
    drop: Optional[Sequence[float]],
    distance_km: Optional[float] = None,
    estimated_fare: Optional[float] = None,
) -> Ride:
    """
    Create a ride in `requested` state with a freshly minted PIN.

    All input is validated before the store is touched, so a rejected
    request leaves no partial state behind.
    """
    if rider_id is None:
        raise RideValidationError("rider_id is required.")
    pickup_lat, pickup_lng = _check_point("pickup", pickup)
    drop_lat, drop_lng = _check_point("drop", drop)
    distance = _check_non_negative("distance_km", distance_km)
    fare = _check_non_negative("estimated_fare", estimated_fare)

    now = _utcnow()
    ride = Ride(
        id=uuid.uuid4(),
        rider_id=rider_id,
        driver_id=None,
        pickup_lat=pickup_lat,
        pickup_lng=pickup_lng,
        drop_lat=drop_lat,
        drop_lng=drop_lng,
        distance_km=distance,
        estimated_fare=fare,
        pin=generate_pin(),
        status=RideStatus.requested,
        created_at=now,
        updated_at=now,
    )

    db.add(ride)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(ride)
    logger.info("Ride %s created for rider %s", ride.id, rider_id)
    return ride


def list_rides_for_rider(
    db: Session,
    rider_id: uuid.UUID,
    status: Optional[Union[RideStatus, str]] = None,
    limit: int = 50,
    offset: int = 0,
) -> List[Ride]:
    """Rides booked by a rider, newest first, optionally filtered by status."""
    stmt = select(Ride).where(Ride.rider_id == rider_id)
    if status is not None:
        stmt = stmt.where(Ride.status == _coerce_status(status))
    stmt = stmt.order_by(desc(Ride.created_at)).limit(limit).offset(offset)
    return list(db.scalars(stmt).all())


# ===================== Driver Operations =====================

def list_available_rides(
    db: Session,
    lat: Optional[float] = None,
    lng: Optional[float] = None,
    radius_km: Optional[float] = None,
    limit: int = 50,
    offset: int = 0,
) -> List[Ride]:
    """
    Rides a driver may claim: requested and unassigned, newest first.

    lat/lng/radius_km must come together when given, but they are advisory:
    no distance filtering is applied.
    """
    hints = (lat, lng, radius_km)
    if any(h is not None for h in hints):
        if any(h is None for h in hints):
            raise RideValidationError("lat, lng, and radius_km must be provided together.")
        _check_coordinate("lat", lat, 90)
        _check_coordinate("lng", lng, 180)
        if _check_non_negative("radius_km", radius_km) == 0:
            raise RideValidationError("radius_km must be positive.")
        logger.debug("Discovery radius %.2f km around (%s, %s) ignored", radius_km, lat, lng)

    stmt = (
        select(Ride)
        .where(Ride.status == RideStatus.requested, Ride.driver_id.is_(None))
        .order_by(desc(Ride.created_at))
        .limit(limit)
        .offset(offset)
    )
    return list(db.scalars(stmt).all())


def claim_ride(db: Session, ride_id: uuid.UUID, driver_id: uuid.UUID) -> RideResult:
    """
    Atomically assign a driver to an unclaimed ride.

    The WHERE clause is the whole guard: of any number of concurrent
    claimants exactly one UPDATE matches the row. A missing ride and an
    already-claimed ride produce the same not-available result.
    """
    if driver_id is None:
        raise RideValidationError("driver_id is required.")

    now = _utcnow()
    stmt = (
        update(Ride)
        .where(
            Ride.id == ride_id,
            Ride.driver_id.is_(None),
            Ride.status == RideStatus.requested,
        )
        .values(
            driver_id=driver_id,
            status=RideStatus.accepted,
            accepted_at=now,
            updated_at=now,
        )
    )
    if _execute_write(db, stmt) != 1:
        logger.info("Claim of ride %s by driver %s rejected: not available", ride_id, driver_id)
        return RideResult(
            success=False,
            message="Ride not found or already assigned.",
            error_code=NOT_AVAILABLE,
        )

    logger.info("Ride %s assigned to driver %s", ride_id, driver_id)
    return RideResult(success=True, ride=_reload(db, ride_id), message="Ride assigned.")


def update_driver_location(db: Session, ride_id: uuid.UUID, lat: float, lng: float) -> Ride:
    """Overwrite the ride's driver position. Last write wins; no history."""
    driver_lat = _check_coordinate("lat", lat, 90)
    driver_lng = _check_coordinate("lng", lng, 180)

    stmt = (
        update(Ride)
        .where(Ride.id == ride_id)
        .values(driver_lat=driver_lat, driver_lng=driver_lng, updated_at=_utcnow())
    )
    if _execute_write(db, stmt) == 0:
        raise RideNotFoundError(f"Ride {ride_id} not found.")

    logger.debug("Ride %s driver location -> (%s, %s)", ride_id, driver_lat, driver_lng)
    return _reload(db, ride_id)


def verify_pin(db: Session, ride_id: uuid.UUID, pin: str) -> RideResult:
    """
    Move a ride to `in_progress` if `pin` matches the stored PIN.

    The prior status is not checked. A wrong PIN and a missing ride are
    reported identically so the result cannot be used to probe ride ids.
    """
    if not pin:
        raise RideValidationError("pin is required.")

    stmt = (
        update(Ride)
        .where(Ride.id == ride_id, Ride.pin == pin)
        .values(status=RideStatus.in_progress, updated_at=_utcnow())
    )
    if _execute_write(db, stmt) == 0:
        logger.warning("PIN verification failed for ride %s", ride_id)
        return RideResult(
            success=False,
            message="Invalid PIN or ride not found.",
            error_code=INVALID_PIN,
        )

    logger.info("PIN verified for ride %s; ride in progress", ride_id)
    return RideResult(success=True, ride=_reload(db, ride_id), message="PIN verified.")


# ===================== Shared Operations =====================

def set_ride_status(db: Session, ride_id: uuid.UUID, status: Union[RideStatus, str]) -> Ride:
    """
    Overwrite the ride's status with any allowed value.

    No transition table is enforced here: only membership in RideStatus is
    checked, so e.g. requested -> completed is accepted.
    """
    new_status = _coerce_status(status)

    stmt = (
        update(Ride)
        .where(Ride.id == ride_id)
        .values(status=new_status, updated_at=_utcnow())
    )
    if _execute_write(db, stmt) == 0:
        raise RideNotFoundError(f"Ride {ride_id} not found.")

    logger.info("Ride %s status set to %s", ride_id, new_status.value)
    return _reload(db, ride_id)


def get_ride(db: Session, ride_id: uuid.UUID) -> Ride:
    """Point lookup by id."""
    ride = db.scalar(select(Ride).where(Ride.id == ride_id).execution_options(populate_existing=True))
    if ride is None:
        raise RideNotFoundError(f"Ride {ride_id} not found.")
    return ride
