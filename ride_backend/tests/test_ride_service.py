import threading
import uuid

import pytest
from sqlalchemy import func, select

from src.api.db import session_scope
from src.api.models.ride import Ride, RideStatus
from src.api.services import rides as ride_service
from src.api.services.exceptions import RideNotFoundError, RideValidationError
from src.api.services.pin import is_well_formed_pin

PICKUP = (12.9, 77.6)
DROP = (12.95, 77.65)


def _create(db, rider_id, **kwargs):
    return ride_service.create_ride(db, rider_id, PICKUP, DROP, **kwargs)


def _wrong_pin(pin):
    return "%04d" % ((int(pin) + 1) % 10000)


class TestCreateRide:
    def test_new_ride_is_requested_and_unassigned(self, db, rider_id):
        ride = _create(db, rider_id, distance_km=6.2, estimated_fare=140.0)

        assert ride.rider_id == rider_id
        assert ride.status == RideStatus.requested
        assert ride.driver_id is None
        assert ride.accepted_at is None
        assert ride.created_at is not None
        assert is_well_formed_pin(ride.pin)
        assert (ride.pickup_lat, ride.pickup_lng) == PICKUP
        assert (ride.drop_lat, ride.drop_lng) == DROP
        assert ride.distance_km == 6.2
        assert ride.estimated_fare == 140.0

    def test_fare_and_distance_are_optional(self, db, rider_id):
        ride = _create(db, rider_id)
        assert ride.distance_km is None
        assert ride.estimated_fare is None

    @pytest.mark.parametrize(
        "pickup, drop",
        [
            (None, DROP),
            (PICKUP, None),
            ((None, 77.6), DROP),
            ((12.9,), DROP),
            ((91.0, 77.6), DROP),
            (PICKUP, (12.95, -181.0)),
            (("north", 77.6), DROP),
        ],
    )
    def test_bad_coordinates_are_rejected_before_persisting(self, db, rider_id, pickup, drop):
        with pytest.raises(RideValidationError):
            ride_service.create_ride(db, rider_id, pickup, drop)
        assert db.scalar(select(func.count()).select_from(Ride)) == 0

    def test_negative_fare_rejected(self, db, rider_id):
        with pytest.raises(RideValidationError):
            _create(db, rider_id, estimated_fare=-1)


class TestDiscovery:
    def test_lists_requested_rides_newest_first(self, db, rider_id):
        first = _create(db, rider_id)
        second = _create(db, rider_id)
        third = _create(db, rider_id)

        ids = [r.id for r in ride_service.list_available_rides(db)]
        assert ids == [third.id, second.id, first.id]

    def test_claimed_ride_drops_out(self, db, rider_id, driver_id):
        kept = _create(db, rider_id)
        claimed = _create(db, rider_id)

        assert ride_service.claim_ride(db, claimed.id, driver_id).success

        ids = [r.id for r in ride_service.list_available_rides(db)]
        assert ids == [kept.id]

    def test_geo_hints_do_not_filter(self, db, rider_id):
        ride = _create(db, rider_id)
        # Far away from the pickup and a tiny radius: still listed.
        rides = ride_service.list_available_rides(db, lat=-33.9, lng=18.4, radius_km=0.5)
        assert [r.id for r in rides] == [ride.id]

    def test_geo_hints_must_come_together(self, db):
        with pytest.raises(RideValidationError):
            ride_service.list_available_rides(db, lat=12.9)
        with pytest.raises(RideValidationError):
            ride_service.list_available_rides(db, lat=12.9, lng=77.6, radius_km=0)

    def test_pagination(self, db, rider_id):
        rides = [_create(db, rider_id) for _ in range(3)]
        page = ride_service.list_available_rides(db, limit=1, offset=1)
        assert [r.id for r in page] == [rides[1].id]


class TestClaim:
    def test_claim_assigns_driver(self, db, rider_id, driver_id):
        ride = _create(db, rider_id)

        result = ride_service.claim_ride(db, ride.id, driver_id)

        assert result.success
        assert result.ride.driver_id == driver_id
        assert result.ride.status == RideStatus.accepted
        assert result.ride.accepted_at is not None

    def test_second_claim_is_not_available(self, db, rider_id, driver_id):
        ride = _create(db, rider_id)
        assert ride_service.claim_ride(db, ride.id, driver_id).success

        result = ride_service.claim_ride(db, ride.id, uuid.uuid4())

        assert not result.success
        assert result.ride is None
        assert result.error_code == ride_service.NOT_AVAILABLE
        assert ride_service.get_ride(db, ride.id).driver_id == driver_id

    def test_unknown_ride_looks_the_same_as_taken(self, db, driver_id):
        result = ride_service.claim_ride(db, uuid.uuid4(), driver_id)
        assert not result.success
        assert result.error_code == ride_service.NOT_AVAILABLE

    def test_same_driver_cannot_claim_twice(self, db, rider_id, driver_id):
        ride = _create(db, rider_id)
        assert ride_service.claim_ride(db, ride.id, driver_id).success
        assert not ride_service.claim_ride(db, ride.id, driver_id).success

    def test_concurrent_claims_have_exactly_one_winner(self, db, rider_id):
        ride_id = _create(db, rider_id).id
        drivers = [uuid.uuid4() for _ in range(8)]
        barrier = threading.Barrier(len(drivers))
        outcomes = {}
        errors = []

        def attempt(driver):
            try:
                with session_scope() as session:
                    barrier.wait(timeout=10)
                    outcomes[driver] = ride_service.claim_ride(session, ride_id, driver).success
            except Exception as exc:  # surfaced below
                errors.append(exc)

        threads = [threading.Thread(target=attempt, args=(d,)) for d in drivers]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert errors == []
        winners = [d for d, won in outcomes.items() if won]
        assert len(winners) == 1
        assert sum(1 for won in outcomes.values() if not won) == len(drivers) - 1

        db.expire_all()
        stored = ride_service.get_ride(db, ride_id)
        assert stored.driver_id == winners[0]
        assert stored.status == RideStatus.accepted

    def test_claim_after_completion_fails(self, db, rider_id, driver_id):
        ride = _create(db, rider_id)
        ride_service.claim_ride(db, ride.id, driver_id)
        ride_service.set_ride_status(db, ride.id, RideStatus.completed)

        result = ride_service.claim_ride(db, ride.id, uuid.uuid4())
        assert not result.success

    def test_claim_on_unassigned_but_cancelled_ride_fails(self, db, rider_id, driver_id):
        ride = _create(db, rider_id)
        ride_service.set_ride_status(db, ride.id, "cancelled")

        assert not ride_service.claim_ride(db, ride.id, driver_id).success


class TestVerifyPin:
    def test_correct_pin_starts_the_ride(self, db, rider_id, driver_id):
        ride = _create(db, rider_id)
        pin = ride.pin
        ride_service.claim_ride(db, ride.id, driver_id)

        result = ride_service.verify_pin(db, ride.id, pin)

        assert result.success
        assert result.ride.status == RideStatus.in_progress
        assert result.ride.pin == pin

    def test_wrong_pin_leaves_status_unchanged(self, db, rider_id, driver_id):
        ride = _create(db, rider_id)
        ride_service.claim_ride(db, ride.id, driver_id)

        result = ride_service.verify_pin(db, ride.id, _wrong_pin(ride.pin))

        assert not result.success
        assert result.error_code == ride_service.INVALID_PIN
        assert ride_service.get_ride(db, ride.id).status == RideStatus.accepted

    def test_unknown_ride_reports_invalid_pin(self, db):
        result = ride_service.verify_pin(db, uuid.uuid4(), "1234")
        assert not result.success
        assert result.error_code == ride_service.INVALID_PIN

    def test_blank_pin_is_a_validation_error(self, db, rider_id):
        ride = _create(db, rider_id)
        with pytest.raises(RideValidationError):
            ride_service.verify_pin(db, ride.id, "")

    def test_prior_status_is_not_checked(self, db, rider_id):
        ride = _create(db, rider_id)

        result = ride_service.verify_pin(db, ride.id, ride.pin)

        assert result.success
        assert result.ride.status == RideStatus.in_progress
        assert result.ride.driver_id is None


class TestDriverLocation:
    def test_location_replay_is_idempotent(self, db, rider_id, driver_id):
        ride = _create(db, rider_id)
        ride_service.claim_ride(db, ride.id, driver_id)

        first = ride_service.update_driver_location(db, ride.id, 12.91, 77.61)
        second = ride_service.update_driver_location(db, ride.id, 12.91, 77.61)

        assert (first.driver_lat, first.driver_lng) == (12.91, 77.61)
        assert (second.driver_lat, second.driver_lng) == (12.91, 77.61)

    def test_last_write_wins(self, db, rider_id):
        ride = _create(db, rider_id)
        ride_service.update_driver_location(db, ride.id, 12.91, 77.61)
        updated = ride_service.update_driver_location(db, ride.id, 12.92, 77.62)
        assert (updated.driver_lat, updated.driver_lng) == (12.92, 77.62)

    def test_unknown_ride(self, db):
        with pytest.raises(RideNotFoundError):
            ride_service.update_driver_location(db, uuid.uuid4(), 12.91, 77.61)

    def test_out_of_range(self, db, rider_id):
        ride = _create(db, rider_id)
        with pytest.raises(RideValidationError):
            ride_service.update_driver_location(db, ride.id, 100.0, 77.61)


class TestStatus:
    def test_any_allowed_status_overwrites(self, db, rider_id):
        ride = _create(db, rider_id)

        updated = ride_service.set_ride_status(db, ride.id, RideStatus.completed)

        assert updated.status == RideStatus.completed

    def test_string_status_accepted(self, db, rider_id, driver_id):
        ride = _create(db, rider_id)
        ride_service.claim_ride(db, ride.id, driver_id)
        assert ride_service.set_ride_status(db, ride.id, "arrived").status == RideStatus.arrived

    def test_unknown_status_rejected(self, db, rider_id):
        ride = _create(db, rider_id)
        with pytest.raises(RideValidationError):
            ride_service.set_ride_status(db, ride.id, "teleported")

    def test_unknown_ride(self, db):
        with pytest.raises(RideNotFoundError):
            ride_service.set_ride_status(db, uuid.uuid4(), RideStatus.cancelled)


class TestQueries:
    def test_get_unknown_ride(self, db):
        with pytest.raises(RideNotFoundError):
            ride_service.get_ride(db, uuid.uuid4())

    def test_rider_history_newest_first_and_filtered(self, db, rider_id, driver_id):
        older = _create(db, rider_id)
        newer = _create(db, rider_id)
        _create(db, uuid.uuid4())
        ride_service.claim_ride(db, older.id, driver_id)

        history = ride_service.list_rides_for_rider(db, rider_id)
        assert [r.id for r in history] == [newer.id, older.id]

        accepted = ride_service.list_rides_for_rider(db, rider_id, status="accepted")
        assert [r.id for r in accepted] == [older.id]

    def test_rider_history_rejects_unknown_status(self, db, rider_id):
        with pytest.raises(RideValidationError):
            ride_service.list_rides_for_rider(db, rider_id, status="parked")
