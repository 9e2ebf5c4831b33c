"""Test data factories for HerdTrack tests."""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any

from custom_components.herdtrack.const import (
    EARTH_RADIUS_M,
    RANCH_DEFAULT_LATITUDE,
    RANCH_DEFAULT_LONGITUDE,
)
from custom_components.herdtrack.types import Coordinate
from homeassistant.util import dt as dt_util

RANCH_CENTER = Coordinate(RANCH_DEFAULT_LATITUDE, RANCH_DEFAULT_LONGITUDE)
RANCH_SCOPE = "ranch-1"
# Monday 2025-03-03 12:00 UTC
BASE_TIME = datetime(2025, 3, 3, 12, 0, tzinfo=dt_util.UTC)


def offset(
    origin: Coordinate, north_m: float = 0.0, east_m: float = 0.0
) -> Coordinate:
    """Return the coordinate ``north_m``/``east_m`` meters away from ``origin``."""
    meters_per_degree = EARTH_RADIUS_M * math.pi / 180
    return Coordinate(
        origin.latitude + north_m / meters_per_degree,
        origin.longitude
        + east_m / (meters_per_degree * math.cos(math.radians(origin.latitude))),
    )


def destination(
    origin: Coordinate, bearing_deg: float, distance_m: float
) -> Coordinate:
    """Return the great-circle destination from ``origin``."""
    lat1 = math.radians(origin.latitude)
    theta = math.radians(bearing_deg)
    delta = distance_m / EARTH_RADIUS_M
    lat2 = math.asin(
        math.sin(lat1) * math.cos(delta)
        + math.cos(lat1) * math.sin(delta) * math.cos(theta)
    )
    lon2 = math.radians(origin.longitude) + math.atan2(
        math.sin(theta) * math.sin(delta) * math.cos(lat1),
        math.cos(delta) - math.sin(lat1) * math.sin(lat2),
    )
    return Coordinate(math.degrees(lat2), math.degrees(lon2))


def point_payload(point: Coordinate) -> dict[str, float]:
    """Point payload as used in zone definitions."""
    return {"latitude": point.latitude, "longitude": point.longitude}


def circle_zone(
    zone_id: str = "pasture", radius_m: float = 500.0, **extra: Any
) -> dict[str, Any]:
    """Circle zone payload centred on the ranch."""
    return {
        "id": zone_id,
        "name": zone_id.replace("-", " ").title(),
        "shape_type": "CIRCLE",
        "shape_params": {
            "center": point_payload(RANCH_CENTER),
            "radius_m": radius_m,
        },
        **extra,
    }


def square_polygon_zone(
    zone_id: str = "paddock", half_side_m: float = 200.0, **extra: Any
) -> dict[str, Any]:
    """Square polygon zone payload centred on the ranch."""
    corners = [
        offset(RANCH_CENTER, -half_side_m, -half_side_m),
        offset(RANCH_CENTER, -half_side_m, half_side_m),
        offset(RANCH_CENTER, half_side_m, half_side_m),
        offset(RANCH_CENTER, half_side_m, -half_side_m),
    ]
    return {
        "id": zone_id,
        "name": zone_id.title(),
        "shape_type": "POLYGON",
        "shape_params": {"vertices": [point_payload(c) for c in corners]},
        **extra,
    }


def report_payload(
    entity_id: str = "cow-1",
    *,
    north_m: float = 0.0,
    east_m: float = 0.0,
    timestamp: datetime = BASE_TIME,
    **extra: Any,
) -> dict[str, Any]:
    """Raw report payload relative to the ranch centre."""
    point = offset(RANCH_CENTER, north_m, east_m)
    return {
        "entity_id": entity_id,
        "latitude": point.latitude,
        "longitude": point.longitude,
        "timestamp": timestamp.isoformat(),
        **extra,
    }
