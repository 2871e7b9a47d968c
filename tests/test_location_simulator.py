from datetime import datetime, timedelta
import random

import pytest

from telehealth.models.transport import EmergencyTransport, TransportStatus
from telehealth.services.location_simulator import (
    DEFAULT_DESTINATION, DEFAULT_PICKUP, JITTER_DEGREES,
    location_at, parse_coordinates, trip_progress
)

PICKUP = (37.7749, -122.4194)
DESTINATION = (37.7833, -122.4167)
ASSIGNED_AT = datetime(2026, 10, 18, 9, 0)
ETA = datetime(2026, 10, 18, 9, 30)


class FixedJitter:
    """Stands in for random.Random with a constant draw."""

    def __init__(self, value=0.5):
        self.value = value

    def random(self):
        return self.value


def make_transport(status=TransportStatus.ASSIGNED, pickup="37.7749,-122.4194",
                   destination="37.7833,-122.4167", assigned_time=ASSIGNED_AT):
    return EmergencyTransport(
        id=7,
        patient_id=1,
        request_date=ASSIGNED_AT - timedelta(minutes=10),
        pickup_location="123 Rural Road",
        pickup_coordinates=pickup,
        destination="County General Hospital",
        destination_coordinates=destination,
        reason="Chest pain",
        urgency="high",
        vehicle_type="ambulance",
        status=status,
        driver_name="Dan" if assigned_time else None,
        driver_phone="555" if assigned_time else None,
        estimated_arrival=ETA if assigned_time else None,
        assigned_time=assigned_time,
    )


class TestParseCoordinates:

    @pytest.mark.parametrize("value,expected", [
        ("37.7749,-122.4194", (37.7749, -122.4194)),
        (" 37.7749 , -122.4194 ", (37.7749, -122.4194)),
        ("0,0", (0.0, 0.0)),
        ("-90,180", (-90.0, 180.0)),
    ])
    def test_valid(self, value, expected):
        assert parse_coordinates(value) == expected

    @pytest.mark.parametrize("value", [
        None, "", "37.7749", "a,b", "1,2,3", "nan,1",
        "inf,-122.4194", "37.7749,-inf", "1e309,5", "999,999", "90.5,0", "0,-180.5",
    ])
    def test_invalid(self, value):
        assert parse_coordinates(value) is None


class TestTripProgress:

    def test_clamped(self):
        assert trip_progress(ASSIGNED_AT, ASSIGNED_AT - timedelta(minutes=5)) == 0.0
        assert trip_progress(ASSIGNED_AT, ASSIGNED_AT + timedelta(minutes=15)) == pytest.approx(0.5)
        assert trip_progress(ASSIGNED_AT, ASSIGNED_AT + timedelta(hours=2)) == 1.0

    def test_custom_duration(self):
        assert trip_progress(ASSIGNED_AT, ASSIGNED_AT + timedelta(minutes=15), 60) == pytest.approx(0.25)


class TestLocationAt:

    def test_requested_transport_stays_at_pickup(self):
        transport = make_transport(status=TransportStatus.REQUESTED, assigned_time=None)

        result = location_at(transport, ASSIGNED_AT + timedelta(hours=1), FixedJitter(0.9))

        assert result.progress == 0
        assert (result.location.lat, result.location.lng) == PICKUP
        assert result.estimated_arrival is None
        assert result.status == TransportStatus.REQUESTED

    def test_halfway_after_fifteen_minutes(self):
        transport = make_transport()

        result = location_at(transport, ASSIGNED_AT + timedelta(minutes=15), FixedJitter())

        assert result.progress == 50
        assert result.location.lat == pytest.approx((PICKUP[0] + DESTINATION[0]) / 2)
        assert result.location.lng == pytest.approx((PICKUP[1] + DESTINATION[1]) / 2)
        assert result.estimated_arrival == ETA

    def test_arrived_after_trip_duration(self):
        result = location_at(make_transport(status=TransportStatus.IN_PROGRESS),
                             ASSIGNED_AT + timedelta(minutes=45), FixedJitter())
        assert result.progress == 100
        assert result.location.lat == pytest.approx(DESTINATION[0])
        assert result.status == TransportStatus.IN_PROGRESS

    def test_clock_before_assignment_is_zero_progress(self):
        result = location_at(make_transport(), ASSIGNED_AT - timedelta(minutes=3), FixedJitter())
        assert result.progress == 0
        assert result.location.lat == pytest.approx(PICKUP[0])

    def test_falls_back_to_request_date(self):
        transport = make_transport(assigned_time=None)
        # request_date is ten minutes before ASSIGNED_AT
        result = location_at(transport, ASSIGNED_AT + timedelta(minutes=5), FixedJitter())
        assert result.progress == 50

    def test_unparseable_endpoints_use_defaults(self):
        transport = make_transport(pickup="somewhere", destination=None)
        result = location_at(transport, ASSIGNED_AT + timedelta(minutes=30), FixedJitter())
        assert result.location.lat == pytest.approx(DEFAULT_DESTINATION[0])
        assert result.location.lng == pytest.approx(DEFAULT_DESTINATION[1])

        result = location_at(transport, ASSIGNED_AT, FixedJitter())
        assert result.location.lat == pytest.approx(DEFAULT_PICKUP[0])

    def test_waiting_transport_without_coordinates_uses_default(self):
        transport = make_transport(status=TransportStatus.REQUESTED, pickup=None, assigned_time=None)
        result = location_at(transport, ASSIGNED_AT)
        assert (result.location.lat, result.location.lng) == DEFAULT_PICKUP
        assert result.progress == 0

    @pytest.mark.parametrize("status", [TransportStatus.COMPLETED, TransportStatus.CANCELED])
    def test_finished_transports_report_pickup(self, status):
        result = location_at(make_transport(status=status), ASSIGNED_AT + timedelta(minutes=20))
        assert result.progress == 0
        assert result.estimated_arrival is None

    @pytest.mark.parametrize("draw", [0.0, 0.999999])
    def test_jitter_is_bounded(self, draw):
        result = location_at(make_transport(), ASSIGNED_AT, FixedJitter(draw))
        assert abs(result.location.lat - PICKUP[0]) <= JITTER_DEGREES / 2 + 1e-9
        assert abs(result.location.lng - PICKUP[1]) <= JITTER_DEGREES / 2 + 1e-9
        assert abs(result.location.lat - PICKUP[0]) > 0

    def test_progress_and_position_stay_on_segment(self):
        rng = random.Random(1234)
        tolerance = JITTER_DEGREES / 2 + 1e-12
        lat_lo, lat_hi = sorted((PICKUP[0], DESTINATION[0]))
        lng_lo, lng_hi = sorted((PICKUP[1], DESTINATION[1]))

        for minutes in range(0, 61, 3):
            result = location_at(make_transport(), ASSIGNED_AT + timedelta(minutes=minutes), rng)
            assert 0 <= result.progress <= 100

            expected = min(minutes / 30, 1)
            exp_lat = PICKUP[0] + (DESTINATION[0] - PICKUP[0]) * expected
            exp_lng = PICKUP[1] + (DESTINATION[1] - PICKUP[1]) * expected
            assert abs(result.location.lat - exp_lat) <= tolerance
            assert abs(result.location.lng - exp_lng) <= tolerance
            assert lat_lo - tolerance <= result.location.lat <= lat_hi + tolerance
            assert lng_lo - tolerance <= result.location.lng <= lng_hi + tolerance

    def test_repeated_calls_differ_with_real_jitter(self):
        transport = make_transport()
        rng = random.Random(99)
        first = location_at(transport, ASSIGNED_AT, rng)
        second = location_at(transport, ASSIGNED_AT, rng)
        assert first.location != second.location
        assert first.progress == second.progress
