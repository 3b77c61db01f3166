from __future__ import annotations

from typing import List, Optional, Union
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from src.api.config import DISCOVERY_DEFAULT_RADIUS_KM
from src.api.db import get_db
from src.api.deps import Principal, get_current_principal, require_driver, require_rider
from src.api.models.ride import Ride, RideStatus
from src.api.schemas.ride import (
    DriverLocationUpdate,
    PinVerifyRequest,
    RideCreateRequest,
    RidePublic,
    RideStatusUpdateRequest,
    RideWithPin,
)
from src.api.services import rides as ride_service
from src.api.services.exceptions import RideNotFoundError, RideValidationError

router = APIRouter(prefix="/rides", tags=["rides"])

RideView = Union[RideWithPin, RidePublic]


def _to_public(ride: Ride) -> RidePublic:
    """Convert ORM Ride row to public schema (no PIN)."""
    return RidePublic(
        id=ride.id,
        rider_id=ride.rider_id,
        driver_id=ride.driver_id,
        pickup_lat=float(ride.pickup_lat),
        pickup_lng=float(ride.pickup_lng),
        drop_lat=float(ride.drop_lat),
        drop_lng=float(ride.drop_lng),
        distance_km=ride.distance_km,
        estimated_fare=ride.estimated_fare,
        driver_lat=ride.driver_lat,
        driver_lng=ride.driver_lng,
        status=ride.status,
        created_at=ride.created_at,
        accepted_at=ride.accepted_at,
        updated_at=ride.updated_at,
    )


def _to_view(ride: Ride, principal: Principal) -> RidePublic:
    """Include the PIN only when the caller is the rider who booked the ride."""
    public = _to_public(ride)
    if ride.rider_id == principal.id:
        return RideWithPin(**public.model_dump(), pin=ride.pin)
    return public


def _not_found() -> HTTPException:
    """Standardized not-found exception."""
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Ride not found.")


def _bad_request(exc: RideValidationError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@router.post(
    "",
    response_model=RideWithPin,
    status_code=status.HTTP_201_CREATED,
    summary="Create a ride request",
    description="Rider creates a new ride (status=requested). The response carries the pickup PIN.",
    operation_id="rides_create",
)
def create_ride(
    payload: RideCreateRequest,
    db: Session = Depends(get_db),
    current_rider: Principal = Depends(require_rider),
) -> RideWithPin:
    """
    Create a new ride request.

    Auth:
    - Bearer JWT required
    - role must be 'rider'
    """
    try:
        ride = ride_service.create_ride(
            db,
            rider_id=current_rider.id,
            pickup=(payload.pickup_lat, payload.pickup_lng),
            drop=(payload.drop_lat, payload.drop_lng),
            distance_km=payload.distance_km,
            estimated_fare=payload.estimated_fare,
        )
    except RideValidationError as exc:
        raise _bad_request(exc)
    return RideWithPin(**_to_public(ride).model_dump(), pin=ride.pin)


@router.get(
    "/available",
    response_model=List[RidePublic],
    summary="List unclaimed rides",
    description=(
        "Rides in status=requested with no driver, newest first. lat/lng/radius_km are accepted "
        "for forward compatibility but do not filter results yet."
    ),
    operation_id="rides_list_available",
)
def list_available_rides(
    lat: Optional[float] = Query(default=None, ge=-90, le=90, description="Driver latitude (advisory)."),
    lng: Optional[float] = Query(default=None, ge=-180, le=180, description="Driver longitude (advisory)."),
    radius_km: Optional[float] = Query(
        default=None,
        gt=0,
        le=200,
        description="Search radius in km (advisory; not applied).",
    ),
    limit: int = Query(default=50, ge=1, le=200, description="Max rides to return."),
    offset: int = Query(default=0, ge=0, description="Offset for pagination."),
    db: Session = Depends(get_db),
    current_driver: Principal = Depends(require_driver),
) -> List[RidePublic]:
    """
    Driver discovery.

    Auth:
    - Bearer JWT required
    - role must be 'driver'
    """
    if radius_km is None and lat is not None and lng is not None:
        radius_km = DISCOVERY_DEFAULT_RADIUS_KM
    try:
        rides = ride_service.list_available_rides(
            db, lat=lat, lng=lng, radius_km=radius_km, limit=limit, offset=offset
        )
    except RideValidationError as exc:
        raise _bad_request(exc)
    return [_to_public(r) for r in rides]


@router.post(
    "/{ride_id}/assign",
    response_model=RidePublic,
    summary="Claim a ride",
    description="The calling driver atomically claims an unassigned ride. 409 if it is taken or unknown.",
    operation_id="rides_claim",
)
def claim_ride(
    ride_id: UUID,
    db: Session = Depends(get_db),
    current_driver: Principal = Depends(require_driver),
) -> RidePublic:
    """
    Claim a ride for the current driver.

    Rules:
    - Ride must be requested and unassigned at the moment of the update.
    - Of several drivers racing for the same ride exactly one wins.
    - Missing and already-assigned rides both yield 409.
    """
    result = ride_service.claim_ride(db, ride_id=ride_id, driver_id=current_driver.id)
    if not result.success:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=result.message)
    return _to_public(result.ride)


@router.patch(
    "/{ride_id}/driver-location",
    response_model=RidePublic,
    summary="Push driver location",
    description="Overwrite the latest driver position on the ride.",
    operation_id="rides_update_driver_location",
)
def update_driver_location(
    ride_id: UUID,
    payload: DriverLocationUpdate,
    db: Session = Depends(get_db),
    current_driver: Principal = Depends(require_driver),
) -> RidePublic:
    """
    Update driver's live location for a ride.

    Note:
    - The update is accepted whatever the ride status or assigned driver.
    """
    try:
        ride = ride_service.update_driver_location(db, ride_id, payload.driver_lat, payload.driver_lng)
    except RideNotFoundError:
        raise _not_found()
    except RideValidationError as exc:
        raise _bad_request(exc)
    return _to_public(ride)


@router.post(
    "/{ride_id}/verify-pin",
    response_model=RidePublic,
    summary="Verify pickup PIN",
    description="Driver submits the rider's PIN; on match the ride moves to in_progress.",
    operation_id="rides_verify_pin",
)
def verify_pin(
    ride_id: UUID,
    payload: PinVerifyRequest,
    db: Session = Depends(get_db),
    current_driver: Principal = Depends(require_driver),
) -> RidePublic:
    """
    Verify the pickup PIN.

    Errors:
    - 400 for a wrong PIN or an unknown ride (not distinguished)
    """
    try:
        result = ride_service.verify_pin(db, ride_id=ride_id, pin=payload.pin)
    except RideValidationError as exc:
        raise _bad_request(exc)
    if not result.success:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.message)
    return _to_public(result.ride)


@router.patch(
    "/{ride_id}/status",
    response_model=RideView,
    summary="Update ride status",
    description="Set the ride status to any allowed value. No prior-state check is applied.",
    operation_id="rides_update_status",
)
def update_ride_status(
    ride_id: UUID,
    payload: RideStatusUpdateRequest,
    db: Session = Depends(get_db),
    current_user: Principal = Depends(get_current_principal),
) -> RidePublic:
    """
    Update ride status.

    Auth:
    - Bearer JWT required (rider or driver)
    """
    try:
        ride = ride_service.set_ride_status(db, ride_id, payload.status)
    except RideNotFoundError:
        raise _not_found()
    except RideValidationError as exc:
        raise _bad_request(exc)
    return _to_view(ride, current_user)


@router.get(
    "/{ride_id}",
    response_model=RideView,
    summary="Get ride by id",
    description="Return ride details. The PIN is included only for the rider who booked it.",
    operation_id="rides_get_by_id",
)
def get_ride(
    ride_id: UUID,
    db: Session = Depends(get_db),
    current_user: Principal = Depends(get_current_principal),
) -> RidePublic:
    """Get ride details."""
    try:
        ride = ride_service.get_ride(db, ride_id)
    except RideNotFoundError:
        raise _not_found()
    return _to_view(ride, current_user)


@router.get(
    "",
    response_model=List[RideView],
    summary="List a rider's rides",
    description="List rides booked by a rider, newest first, with optional status filter and pagination.",
    operation_id="rides_list",
)
def list_rides(
    rider_id: Optional[UUID] = Query(default=None, description="Rider id; defaults to the caller."),
    status_filter: Optional[RideStatus] = Query(default=None, alias="status", description="Optional ride status filter."),
    limit: int = Query(default=50, ge=1, le=200, description="Max rides to return."),
    offset: int = Query(default=0, ge=0, description="Offset for pagination."),
    db: Session = Depends(get_db),
    current_user: Principal = Depends(get_current_principal),
) -> List[RidePublic]:
    """
    List rides for a rider.

    Auth:
    - Bearer JWT required
    """
    target = rider_id if rider_id is not None else current_user.id
    rides = ride_service.list_rides_for_rider(
        db, rider_id=target, status=status_filter, limit=limit, offset=offset
    )
    return [_to_view(r, current_user) for r in rides]
