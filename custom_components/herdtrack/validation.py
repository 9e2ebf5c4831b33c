"""Coordinate and report-time validation for HerdTrack.

Validation runs before any state mutation; a report that fails here is
counted as failed and never partially applied.

Python: 3.13+
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta
from numbers import Real

from .const import MAX_LATITUDE, MAX_LONGITUDE, MIN_LATITUDE, MIN_LONGITUDE
from .exceptions import InvalidCoordinateError, InvalidReportError, StaleReportError


def _is_number(value: object) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def validate_coordinate(
    latitude: object,
    longitude: object,
    accuracy: object = None,
    altitude: object = None,
    *,
    entity_id: str | None = None,
) -> None:
    """Validate raw coordinate components.

    Args:
        latitude: Latitude in decimal degrees
        longitude: Longitude in decimal degrees
        accuracy: Optional horizontal accuracy in meters
        altitude: Optional altitude in meters
        entity_id: Entity the coordinate belongs to, for error context

    Raises:
        InvalidCoordinateError: If any component is malformed or out of range
    """
    if not _is_number(latitude) or not _is_number(longitude):
        raise InvalidCoordinateError(
            reason="latitude and longitude must be numbers",
            entity_id=entity_id,
        )

    lat = float(latitude)  # type: ignore[arg-type]
    lon = float(longitude)  # type: ignore[arg-type]
    if not (math.isfinite(lat) and math.isfinite(lon)):
        raise InvalidCoordinateError(
            lat, lon, reason="coordinates must be finite", entity_id=entity_id
        )
    if not MIN_LATITUDE <= lat <= MAX_LATITUDE:
        raise InvalidCoordinateError(
            lat, lon, reason="latitude must be between -90 and 90", entity_id=entity_id
        )
    if not MIN_LONGITUDE <= lon <= MAX_LONGITUDE:
        raise InvalidCoordinateError(
            lat,
            lon,
            reason="longitude must be between -180 and 180",
            entity_id=entity_id,
        )

    if accuracy is not None:
        if not _is_number(accuracy) or not math.isfinite(float(accuracy)):  # type: ignore[arg-type]
            raise InvalidCoordinateError(
                lat, lon, reason="accuracy must be a number", entity_id=entity_id
            )
        if float(accuracy) < 0:  # type: ignore[arg-type]
            raise InvalidCoordinateError(
                lat, lon, reason="accuracy must not be negative", entity_id=entity_id
            )

    if altitude is not None and (
        not _is_number(altitude) or not math.isfinite(float(altitude))  # type: ignore[arg-type]
    ):
        raise InvalidCoordinateError(
            lat, lon, reason="altitude must be a finite number", entity_id=entity_id
        )


def validate_report_time(
    entity_id: str,
    timestamp: datetime,
    now: datetime,
    tolerance: timedelta,
) -> None:
    """Reject reports stamped in the future beyond the clock-skew tolerance.

    Raises:
        InvalidReportError: If ``timestamp`` is later than ``now + tolerance``
    """
    if timestamp.tzinfo is None:
        raise InvalidReportError("timestamp must be timezone-aware", entity_id)
    if timestamp > now + tolerance:
        raise InvalidReportError(
            f"timestamp {timestamp.isoformat()} is in the future", entity_id
        )


def is_out_of_order(
    entity_id: str,
    timestamp: datetime,
    last_timestamp: datetime | None,
    tolerance: timedelta,
) -> bool:
    """Check a report against the entity's last accepted timestamp.

    Returns:
        True if the report is older than the stored one but within tolerance

    Raises:
        StaleReportError: If the report predates stored state beyond tolerance
    """
    if last_timestamp is None or timestamp >= last_timestamp:
        return False

    if last_timestamp - timestamp > tolerance:
        raise StaleReportError(
            entity_id, timestamp, last_timestamp, tolerance.total_seconds()
        )
    return True
