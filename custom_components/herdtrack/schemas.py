"""Voluptuous schemas for HerdTrack payloads and options.

Reports, geofence definitions and engine options arrive as plain mappings
from whatever transport the host wires in. They are validated eagerly here so
the evaluation path only ever sees well-formed typed values.

Python: 3.13+
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, time
from enum import Enum
from numbers import Real
from typing import Any

import voluptuous as vol
from homeassistant.util import dt as dt_util

from .const import (
    CONF_BATCH_CHUNK_SIZE,
    CONF_BATCH_MAX_CONCURRENCY,
    CONF_BATCH_TIMEOUT_SECONDS,
    CONF_CLOCK_SKEW_SECONDS,
    CONF_DUPLICATE_DISTANCE_M,
    CONF_DUPLICATE_WINDOW_SECONDS,
    CONF_HIGH_SPEED_THRESHOLD_KMH,
    CONF_LOW_BATTERY_THRESHOLD,
    CONF_MOVEMENT_WINDOW_SECONDS,
    CONF_MOVING_SPEED_THRESHOLD_KMH,
    CONF_TIME_ZONE,
    DEFAULT_BATCH_CHUNK_SIZE,
    DEFAULT_BATCH_MAX_CONCURRENCY,
    DEFAULT_BATCH_TIMEOUT_SECONDS,
    DEFAULT_CLOCK_SKEW_SECONDS,
    DEFAULT_DUPLICATE_DISTANCE_M,
    DEFAULT_DUPLICATE_WINDOW_SECONDS,
    DEFAULT_HIGH_SPEED_THRESHOLD_KMH,
    DEFAULT_LOW_BATTERY_THRESHOLD,
    DEFAULT_MOVEMENT_WINDOW_SECONDS,
    DEFAULT_MOVING_SPEED_THRESHOLD_KMH,
    DEFAULT_TIME_ZONE,
    MIN_CORRIDOR_VERTICES,
    MIN_POLYGON_VERTICES,
)
from .exceptions import InvalidCoordinateError, InvalidReportError
from .types import (
    AlertSeverity,
    AlertTrigger,
    Coordinate,
    LocationReport,
    LocationSource,
    ShapeType,
    WindowAction,
    ZoneKind,
)
from .validation import validate_coordinate

ALERT_TRIGGER_BOTH = "BOTH"
COORDINATE_KEYS = frozenset({"latitude", "longitude", "altitude", "accuracy"})
ALL_DAYS = [0, 1, 2, 3, 4, 5, 6]  # 0 = Sunday


def _number(value: Any) -> float:
    """Accept real numbers and numeric strings, never booleans."""
    if isinstance(value, bool):
        raise vol.Invalid("expected a number")
    if isinstance(value, Real):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError as err:
            raise vol.Invalid(f"expected a number, got {value!r}") from err
    raise vol.Invalid("expected a number")


_POSITIVE = vol.All(_number, vol.Range(min=0, min_included=False))
_NON_NEGATIVE = vol.All(_number, vol.Range(min=0))
_PERCENT = vol.All(vol.Coerce(int), vol.Range(min=0, max=100))


def _enum(enum_cls: type[Enum]):
    """Build a case-insensitive validator for ``enum_cls`` members."""

    def validate(value: Any) -> Enum:
        if isinstance(value, enum_cls):
            return value
        if isinstance(value, str):
            try:
                return enum_cls(value.strip().upper())
            except ValueError:
                pass
        valid = ", ".join(member.value for member in enum_cls)
        raise vol.Invalid(f"expected one of {valid}, got {value!r}")

    return validate


def timestamp(value: Any) -> datetime:
    """Coerce a datetime, ISO-8601 string or epoch seconds to aware UTC."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, Real) and not isinstance(value, bool):
        return dt_util.utc_from_timestamp(float(value))
    elif isinstance(value, str):
        parsed = dt_util.parse_datetime(value)
        if parsed is None:
            raise vol.Invalid(f"invalid timestamp {value!r}")
    else:
        raise vol.Invalid("expected a datetime, ISO-8601 string or epoch seconds")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt_util.UTC)
    return dt_util.as_utc(parsed)


def time_of_day(value: Any) -> time:
    """Coerce ``HH:MM`` / ``HH:MM:SS`` strings to :class:`datetime.time`."""
    if isinstance(value, time):
        return value
    if isinstance(value, str):
        parsed = dt_util.parse_time(value.strip())
        if parsed is not None:
            return parsed
    raise vol.Invalid(f"invalid time of day {value!r}")


def alert_triggers(value: Any) -> frozenset[AlertTrigger]:
    """Validate trigger names, expanding ``BOTH`` into entry and exit."""
    if isinstance(value, (str, AlertTrigger)):
        value = [value]
    if not isinstance(value, (list, tuple, set, frozenset)):
        raise vol.Invalid("alert_triggers must be a list")

    validate = _enum(AlertTrigger)
    triggers: set[AlertTrigger] = set()
    for item in value:
        if isinstance(item, str) and item.strip().upper() == ALERT_TRIGGER_BOTH:
            triggers.update((AlertTrigger.ENTRY, AlertTrigger.EXIT))
        else:
            triggers.add(validate(item))
    return frozenset(triggers)


def time_zone(value: Any) -> str:
    """Validate an IANA time zone name."""
    if not isinstance(value, str) or dt_util.get_time_zone(value) is None:
        raise vol.Invalid(f"unknown time zone {value!r}")
    return value


POINT_SCHEMA = vol.Schema(
    {
        vol.Required("latitude"): _number,
        vol.Required("longitude"): _number,
    },
    extra=vol.REMOVE_EXTRA,
)

CIRCLE_PARAMS_SCHEMA = vol.Schema(
    {
        vol.Required("center"): POINT_SCHEMA,
        vol.Required("radius_m"): _POSITIVE,
    },
    extra=vol.REMOVE_EXTRA,
)

RECTANGLE_PARAMS_SCHEMA = vol.Schema(
    {
        vol.Required("north"): _number,
        vol.Required("south"): _number,
        vol.Required("east"): _number,
        vol.Required("west"): _number,
    },
    extra=vol.REMOVE_EXTRA,
)

POLYGON_PARAMS_SCHEMA = vol.Schema(
    {
        vol.Required("vertices"): vol.All(
            [POINT_SCHEMA], vol.Length(min=MIN_POLYGON_VERTICES)
        ),
    },
    extra=vol.REMOVE_EXTRA,
)

CORRIDOR_PARAMS_SCHEMA = vol.Schema(
    {
        vol.Required("centerline"): vol.All(
            [POINT_SCHEMA], vol.Length(min=MIN_CORRIDOR_VERTICES)
        ),
        vol.Required("width_m"): _POSITIVE,
    },
    extra=vol.REMOVE_EXTRA,
)

SHAPE_PARAMS_SCHEMAS: dict[ShapeType, vol.Schema] = {
    ShapeType.CIRCLE: CIRCLE_PARAMS_SCHEMA,
    ShapeType.RECTANGLE: RECTANGLE_PARAMS_SCHEMA,
    ShapeType.POLYGON: POLYGON_PARAMS_SCHEMA,
    ShapeType.CORRIDOR: CORRIDOR_PARAMS_SCHEMA,
}

TIME_WINDOW_SCHEMA = vol.Schema(
    {
        vol.Required("start_time"): time_of_day,
        vol.Required("end_time"): time_of_day,
        vol.Optional("days_of_week", default=ALL_DAYS): vol.All(
            [vol.All(vol.Coerce(int), vol.Range(min=0, max=6))],
            vol.Length(min=1),
        ),
        vol.Optional("action", default=WindowAction.DENY.value): _enum(WindowAction),
    },
    extra=vol.REMOVE_EXTRA,
)

GEOFENCE_SCHEMA = vol.Schema(
    {
        vol.Required("id"): vol.All(vol.Coerce(str), vol.Length(min=1)),
        vol.Required("name"): vol.All(vol.Coerce(str), vol.Length(min=1)),
        vol.Required("shape_type"): _enum(ShapeType),
        vol.Required("shape_params"): dict,
        vol.Optional("is_active", default=True): bool,
        vol.Optional(
            "alert_triggers",
            default=[AlertTrigger.ENTRY.value, AlertTrigger.EXIT.value],
        ): alert_triggers,
        vol.Optional("priority", default=AlertSeverity.MEDIUM.value): _enum(
            AlertSeverity
        ),
        vol.Optional("kind", default=ZoneKind.OTHER.value): _enum(ZoneKind),
        vol.Optional("max_dwell_seconds", default=None): vol.Any(None, _POSITIVE),
        vol.Optional("speed_limit_kmh", default=None): vol.Any(None, _POSITIVE),
        vol.Optional("time_windows", default=list): [TIME_WINDOW_SCHEMA],
        vol.Optional("owner_scope", default=None): vol.Any(None, vol.Coerce(str)),
    },
    extra=vol.REMOVE_EXTRA,
)

LOCATION_REPORT_SCHEMA = vol.Schema(
    {
        vol.Required("entity_id"): vol.All(vol.Coerce(str), vol.Length(min=1)),
        vol.Required("latitude"): _number,
        vol.Required("longitude"): _number,
        vol.Optional("altitude", default=None): vol.Any(None, _number),
        vol.Optional("accuracy", default=None): vol.Any(None, _number),
        vol.Required("timestamp"): timestamp,
        vol.Optional("source", default=LocationSource.GPS.value): _enum(
            LocationSource
        ),
        vol.Optional("speed", default=None): vol.Any(None, _NON_NEGATIVE),
        vol.Optional("heading", default=None): vol.Any(
            None, vol.All(_number, vol.Range(min=0, max=360))
        ),
        vol.Optional("device_battery_level", default=None): vol.Any(None, _PERCENT),
        vol.Optional("device_signal_strength", default=None): vol.Any(None, _PERCENT),
    },
    extra=vol.REMOVE_EXTRA,
)

ENGINE_OPTIONS_SCHEMA = vol.Schema(
    {
        vol.Optional(
            CONF_CLOCK_SKEW_SECONDS, default=DEFAULT_CLOCK_SKEW_SECONDS
        ): _NON_NEGATIVE,
        vol.Optional(
            CONF_DUPLICATE_WINDOW_SECONDS, default=DEFAULT_DUPLICATE_WINDOW_SECONDS
        ): _NON_NEGATIVE,
        vol.Optional(
            CONF_DUPLICATE_DISTANCE_M, default=DEFAULT_DUPLICATE_DISTANCE_M
        ): _NON_NEGATIVE,
        vol.Optional(
            CONF_MOVING_SPEED_THRESHOLD_KMH,
            default=DEFAULT_MOVING_SPEED_THRESHOLD_KMH,
        ): _NON_NEGATIVE,
        vol.Optional(
            CONF_HIGH_SPEED_THRESHOLD_KMH, default=DEFAULT_HIGH_SPEED_THRESHOLD_KMH
        ): _POSITIVE,
        vol.Optional(
            CONF_LOW_BATTERY_THRESHOLD, default=DEFAULT_LOW_BATTERY_THRESHOLD
        ): _PERCENT,
        vol.Optional(
            CONF_MOVEMENT_WINDOW_SECONDS, default=DEFAULT_MOVEMENT_WINDOW_SECONDS
        ): _POSITIVE,
        vol.Optional(
            CONF_BATCH_CHUNK_SIZE, default=DEFAULT_BATCH_CHUNK_SIZE
        ): vol.All(vol.Coerce(int), vol.Range(min=1)),
        vol.Optional(
            CONF_BATCH_MAX_CONCURRENCY, default=DEFAULT_BATCH_MAX_CONCURRENCY
        ): vol.All(vol.Coerce(int), vol.Range(min=1)),
        vol.Optional(
            CONF_BATCH_TIMEOUT_SECONDS, default=DEFAULT_BATCH_TIMEOUT_SECONDS
        ): vol.Any(None, _POSITIVE),
        vol.Optional(CONF_TIME_ZONE, default=DEFAULT_TIME_ZONE): time_zone,
    },
    extra=vol.PREVENT_EXTRA,
)


def coerce_report(raw: LocationReport | Mapping[str, Any]) -> LocationReport:
    """Turn a raw report payload into a validated :class:`LocationReport`.

    Typed reports pass through untouched; their coordinate was validated when
    it was constructed.

    Raises:
        InvalidCoordinateError: If the coordinate fields are malformed
        InvalidReportError: If any other field is malformed
    """
    if isinstance(raw, LocationReport):
        return raw
    if not isinstance(raw, Mapping):
        raise InvalidReportError(f"unsupported report type {type(raw).__name__}")

    entity_id = raw.get("entity_id")
    entity_id = entity_id if isinstance(entity_id, str) else None

    try:
        data = LOCATION_REPORT_SCHEMA(dict(raw))
    except vol.MultipleInvalid as err:
        for error in err.errors:
            if error.path and error.path[0] in COORDINATE_KEYS:
                latitude = raw.get("latitude")
                longitude = raw.get("longitude")
                raise InvalidCoordinateError(
                    latitude if isinstance(latitude, Real) else None,
                    longitude if isinstance(longitude, Real) else None,
                    reason=str(error),
                    entity_id=entity_id,
                ) from err
        raise InvalidReportError(str(err), entity_id) from err

    validate_coordinate(
        data["latitude"],
        data["longitude"],
        data["accuracy"],
        data["altitude"],
        entity_id=data["entity_id"],
    )

    return LocationReport(
        entity_id=data["entity_id"],
        coordinate=Coordinate(
            latitude=data["latitude"],
            longitude=data["longitude"],
            altitude=data["altitude"],
            accuracy=data["accuracy"],
        ),
        timestamp=data["timestamp"],
        source=data["source"],
        speed=data["speed"],
        heading=data["heading"],
        device_battery_level=data["device_battery_level"],
        device_signal_strength=data["device_signal_strength"],
    )
