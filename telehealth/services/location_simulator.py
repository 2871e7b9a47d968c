"""Simulated vehicle positions for emergency transports.

There is no live GPS feed. A vehicle is assumed to travel in a straight line
from pickup to destination, starting when the driver is assigned and
arriving ``TRIP_DURATION_MINUTES`` later. A little random jitter keeps the
marker from looking frozen on the map, so two calls for the same instant
can return slightly different points.
"""
from datetime import datetime
from typing import Optional, Protocol, Tuple
import logging
import math
import random

from ..models.transport import EmergencyTransport, TransportStatus
from ..schemas.transport import Coordinates, LocationResponse

logger = logging.getLogger(__name__)

DEFAULT_PICKUP = (37.7749, -122.4194)
DEFAULT_DESTINATION = (37.7833, -122.4167)
TRIP_DURATION_MINUTES = 30.0
JITTER_DEGREES = 0.0005  # full width, so +/- 0.00025 per axis

MOVING_STATUSES = (TransportStatus.ASSIGNED, TransportStatus.IN_PROGRESS)


class JitterSource(Protocol):
    def random(self) -> float: ...


def parse_coordinates(value: Optional[str]) -> Optional[Tuple[float, float]]:
    """Parse ``"lat,lng"``; None when absent, malformed or off the globe."""
    if not value:
        return None
    parts = value.split(",")
    if len(parts) != 2:
        return None
    try:
        lat, lng = (float(part.strip()) for part in parts)
    except ValueError:
        return None
    if not (math.isfinite(lat) and math.isfinite(lng)):
        return None
    if not (-90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0):
        return None
    return lat, lng


def trip_progress(
    start: datetime,
    now: datetime,
    duration_minutes: float = TRIP_DURATION_MINUTES
) -> float:
    """Fraction of the trip covered, clamped to [0, 1]."""
    elapsed_minutes = (now - start).total_seconds() / 60.0
    if duration_minutes <= 0:
        return 1.0
    return max(0.0, min(elapsed_minutes / duration_minutes, 1.0))


def interpolate(
    start: Tuple[float, float],
    end: Tuple[float, float],
    progress: float
) -> Tuple[float, float]:
    return (
        start[0] + (end[0] - start[0]) * progress,
        start[1] + (end[1] - start[1]) * progress,
    )


def location_at(
    transport: EmergencyTransport,
    now: datetime,
    rng: Optional[JitterSource] = None,
    duration_minutes: float = TRIP_DURATION_MINUTES
) -> LocationResponse:
    """Current simulated position of a transport's vehicle at ``now``."""
    status = TransportStatus(transport.status)

    if status in MOVING_STATUSES:
        rng = rng or random.Random()
        pickup = parse_coordinates(transport.pickup_coordinates) or DEFAULT_PICKUP
        destination = parse_coordinates(transport.destination_coordinates) or DEFAULT_DESTINATION

        started = transport.assigned_time or transport.request_date
        progress = trip_progress(started, now, duration_minutes)
        lat, lng = interpolate(pickup, destination, progress)

        return LocationResponse(
            location=Coordinates(
                lat=lat + (rng.random() - 0.5) * JITTER_DEGREES,
                lng=lng + (rng.random() - 0.5) * JITTER_DEGREES,
            ),
            status=status,
            progress=round(progress * 100),
            estimated_arrival=transport.estimated_arrival,
        )

    # Not moving: show where the patient is waiting
    pickup = parse_coordinates(transport.pickup_coordinates)
    if pickup is None:
        logger.debug(f"Transport {transport.id} has no usable pickup coordinates; using default")
        pickup = DEFAULT_PICKUP

    return LocationResponse(
        location=Coordinates(lat=pickup[0], lng=pickup[1]),
        status=status,
        progress=0,
        estimated_arrival=None,
    )
