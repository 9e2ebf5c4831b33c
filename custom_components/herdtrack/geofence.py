"""Geofence definitions and evaluation for HerdTrack.

Geofences are read-only snapshots supplied by the zone registry. The only
mutable zone state the engine owns is the per entity x geofence membership
cache used to turn level readings ("inside") into edge-triggered entry, exit
and dwell alerts.

Python: 3.13+
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta, tzinfo
from typing import Any, ClassVar

import voluptuous as vol
from homeassistant.util import dt as dt_util

from .const import MAX_LATITUDE, MAX_LONGITUDE, MIN_LATITUDE, MIN_LONGITUDE
from .exceptions import GeometryConfigError, InvalidCoordinateError
from .geocode import describe_safely
from .geometry import (
    BoundingBox,
    bounding_box,
    bounding_box_of,
    centroid,
    point_in_circle,
    point_in_corridor,
    point_in_polygon,
    point_in_rectangle,
)
from .schemas import GEOFENCE_SCHEMA, SHAPE_PARAMS_SCHEMAS
from .types import (
    Alert,
    AlertSeverity,
    AlertTrigger,
    AlertType,
    Coordinate,
    LocationReport,
    ReverseGeocoder,
    ShapeType,
    WindowAction,
    ZoneKind,
)

_LOGGER = logging.getLogger(__name__)

# The 111.32 km/degree box approximation is slightly tighter than the
# haversine sphere; pad the pre-filter so it never excludes a true hit.
PREFILTER_PADDING: float = 1.01
PREFILTER_MARGIN_M: float = 1.0


def _points(raw: Iterable[Mapping[str, float]]) -> tuple[Coordinate, ...]:
    return tuple(Coordinate(p["latitude"], p["longitude"]) for p in raw)


def _point_payload(point: Coordinate) -> dict[str, float]:
    return {"latitude": point.latitude, "longitude": point.longitude}


@dataclass(frozen=True, slots=True)
class CircleShape:
    """Circle around a centre point."""

    shape_type: ClassVar[ShapeType] = ShapeType.CIRCLE

    center: Coordinate
    radius_m: float

    def __post_init__(self) -> None:
        """Validate the radius."""
        if not self.radius_m or self.radius_m <= 0:
            raise GeometryConfigError("circle radius must be positive")

    @property
    def reference_point(self) -> Coordinate:
        """Circle centre."""
        return self.center

    def contains(self, point: Coordinate) -> bool:
        """Exact containment test."""
        return point_in_circle(point, self.center, self.radius_m)

    def extent(self) -> BoundingBox:
        """Pre-filter box."""
        return bounding_box(
            self.center, self.radius_m * PREFILTER_PADDING / 1000
        ).expanded(PREFILTER_MARGIN_M)

    def to_params(self) -> dict[str, Any]:
        """Shape parameters payload."""
        return {"center": _point_payload(self.center), "radius_m": self.radius_m}


@dataclass(frozen=True, slots=True)
class RectangleShape:
    """Latitude/longitude aligned rectangle."""

    shape_type: ClassVar[ShapeType] = ShapeType.RECTANGLE

    north: float
    south: float
    east: float
    west: float

    def __post_init__(self) -> None:
        """Validate the bounds."""
        if not (
            MIN_LATITUDE <= self.south <= self.north <= MAX_LATITUDE
            and MIN_LONGITUDE <= self.west <= self.east <= MAX_LONGITUDE
        ):
            raise GeometryConfigError(
                "rectangle needs south <= north and west <= east within range"
            )

    @property
    def box(self) -> BoundingBox:
        """Rectangle as a bounding box."""
        return BoundingBox(self.north, self.south, self.east, self.west)

    @property
    def reference_point(self) -> Coordinate:
        """Rectangle midpoint."""
        return Coordinate((self.north + self.south) / 2, (self.east + self.west) / 2)

    def contains(self, point: Coordinate) -> bool:
        """Exact containment test."""
        return point_in_rectangle(point, self.box)

    def extent(self) -> BoundingBox:
        """Pre-filter box."""
        return self.box

    def to_params(self) -> dict[str, Any]:
        """Shape parameters payload."""
        return {
            "north": self.north,
            "south": self.south,
            "east": self.east,
            "west": self.west,
        }


@dataclass(frozen=True, slots=True)
class PolygonShape:
    """Polygon given as an ordered vertex ring."""

    shape_type: ClassVar[ShapeType] = ShapeType.POLYGON

    vertices: tuple[Coordinate, ...]

    def __post_init__(self) -> None:
        """Validate the ring."""
        if len(self.vertices) < 3:
            raise GeometryConfigError("polygon needs at least 3 vertices")

    @property
    def reference_point(self) -> Coordinate:
        """Vertex centroid."""
        return centroid(self.vertices)

    def contains(self, point: Coordinate) -> bool:
        """Exact containment test."""
        return point_in_polygon(point, self.vertices)

    def extent(self) -> BoundingBox:
        """Pre-filter box."""
        return bounding_box_of(self.vertices)

    def to_params(self) -> dict[str, Any]:
        """Shape parameters payload."""
        return {"vertices": [_point_payload(v) for v in self.vertices]}


@dataclass(frozen=True, slots=True)
class CorridorShape:
    """Band of ``width_m`` centred on a polyline, e.g. a cattle drive route."""

    shape_type: ClassVar[ShapeType] = ShapeType.CORRIDOR

    centerline: tuple[Coordinate, ...]
    width_m: float

    def __post_init__(self) -> None:
        """Validate the centerline and width."""
        if len(self.centerline) < 2:
            raise GeometryConfigError("corridor needs at least 2 centerline vertices")
        if not self.width_m or self.width_m <= 0:
            raise GeometryConfigError("corridor width must be positive")

    @property
    def reference_point(self) -> Coordinate:
        """Centerline centroid."""
        return centroid(self.centerline)

    def contains(self, point: Coordinate) -> bool:
        """Exact containment test."""
        return point_in_corridor(point, self.centerline, self.width_m)

    def extent(self) -> BoundingBox:
        """Pre-filter box."""
        return bounding_box_of(self.centerline).expanded(
            self.width_m / 2 * PREFILTER_PADDING + PREFILTER_MARGIN_M
        )

    def to_params(self) -> dict[str, Any]:
        """Shape parameters payload."""
        return {
            "centerline": [_point_payload(v) for v in self.centerline],
            "width_m": self.width_m,
        }


Shape = CircleShape | RectangleShape | PolygonShape | CorridorShape


def shape_from_params(shape_type: ShapeType, params: Mapping[str, Any]) -> Shape:
    """Build the shape variant for ``shape_type`` from validated parameters."""
    match shape_type:
        case ShapeType.CIRCLE:
            center = params["center"]
            return CircleShape(
                Coordinate(center["latitude"], center["longitude"]),
                params["radius_m"],
            )
        case ShapeType.RECTANGLE:
            return RectangleShape(
                params["north"], params["south"], params["east"], params["west"]
            )
        case ShapeType.POLYGON:
            return PolygonShape(_points(params["vertices"]))
        case ShapeType.CORRIDOR:
            return CorridorShape(_points(params["centerline"]), params["width_m"])
    raise GeometryConfigError(f"unsupported shape type {shape_type}")


@dataclass(frozen=True, slots=True)
class TimeWindow:
    """Recurring time-of-day window on selected days.

    ``days_of_week`` uses 0 for Sunday. A window whose end is before its start
    runs overnight into the following day.
    """

    start_time: time
    end_time: time
    days_of_week: frozenset[int] = frozenset(range(7))
    action: WindowAction = WindowAction.DENY

    def matches(self, local_time: datetime) -> bool:
        """Check whether ``local_time`` falls inside the window."""
        day = (local_time.weekday() + 1) % 7
        current = local_time.time().replace(tzinfo=None)

        if self.start_time <= self.end_time:
            return (
                day in self.days_of_week
                and self.start_time <= current < self.end_time
            )

        previous_day = (day - 1) % 7
        return (day in self.days_of_week and current >= self.start_time) or (
            previous_day in self.days_of_week and current < self.end_time
        )

    def to_payload(self) -> dict[str, Any]:
        """Convert to a JSON-friendly mapping."""
        return {
            "start_time": self.start_time.strftime("%H:%M"),
            "end_time": self.end_time.strftime("%H:%M"),
            "days_of_week": sorted(self.days_of_week),
            "action": self.action.value,
        }


@dataclass(frozen=True, slots=True)
class Geofence:
    """A named geographic region with alert rules.

    Attributes:
        id: Unique identifier
        name: Human-readable name
        shape: Shape variant (circle, rectangle, polygon or corridor)
        is_active: Inactive zones are never evaluated
        alert_triggers: Rules this zone alerts on
        priority: Severity used for exit, dwell and speed-limit alerts
        kind: What the zone represents; restricted kinds raise entry severity
        max_dwell_seconds: Allowed continuous stay for DWELL_TIME
        speed_limit_kmh: Speed limit inside the zone for SPEED_LIMIT
        time_windows: Windows evaluated for TIME_RESTRICTION
        owner_scope: Ranch or group the zone belongs to
    """

    id: str
    name: str
    shape: Shape
    is_active: bool = True
    alert_triggers: frozenset[AlertTrigger] = frozenset(
        {AlertTrigger.ENTRY, AlertTrigger.EXIT}
    )
    priority: AlertSeverity = AlertSeverity.MEDIUM
    kind: ZoneKind = ZoneKind.OTHER
    max_dwell_seconds: float | None = None
    speed_limit_kmh: float | None = None
    time_windows: tuple[TimeWindow, ...] = ()
    owner_scope: str | None = None

    def __post_init__(self) -> None:
        """Validate that every enabled trigger has its parameters."""
        triggers = self.alert_triggers
        if AlertTrigger.DWELL_TIME in triggers and not self.max_dwell_seconds:
            raise GeometryConfigError(
                "DWELL_TIME trigger requires max_dwell_seconds", self.id
            )
        if AlertTrigger.SPEED_LIMIT in triggers and not self.speed_limit_kmh:
            raise GeometryConfigError(
                "SPEED_LIMIT trigger requires speed_limit_kmh", self.id
            )
        if AlertTrigger.TIME_RESTRICTION in triggers and not self.time_windows:
            raise GeometryConfigError(
                "TIME_RESTRICTION trigger requires time_windows", self.id
            )

    @property
    def shape_type(self) -> ShapeType:
        """Discriminant of the shape variant."""
        return self.shape.shape_type

    @property
    def center(self) -> Coordinate:
        """Reference point of the zone."""
        return self.shape.reference_point

    def contains(self, point: Coordinate) -> bool:
        """Pre-filter by extent, then run the exact shape test."""
        if not self.shape.extent().contains(point):
            _LOGGER.debug(
                "%s is outside the extent of geofence %s", point.format(), self.id
            )
            return False
        return self.shape.contains(point)

    def is_denied_at(self, local_time: datetime) -> bool:
        """Return True if a DENY window applies and no ALLOW window does."""
        denied = False
        for window in self.time_windows:
            if not window.matches(local_time):
                continue
            if window.action is WindowAction.ALLOW:
                return False
            denied = True
        return denied

    def to_payload(self) -> dict[str, Any]:
        """Convert to a zone payload accepted by :meth:`from_payload`."""
        return {
            "id": self.id,
            "name": self.name,
            "shape_type": self.shape_type.value,
            "shape_params": self.shape.to_params(),
            "is_active": self.is_active,
            "alert_triggers": sorted(trigger.value for trigger in self.alert_triggers),
            "priority": self.priority.value,
            "kind": self.kind.value,
            "max_dwell_seconds": self.max_dwell_seconds,
            "speed_limit_kmh": self.speed_limit_kmh,
            "time_windows": [window.to_payload() for window in self.time_windows],
            "owner_scope": self.owner_scope,
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> Geofence:
        """Validate a zone payload and build the typed geofence.

        Raises:
            GeometryConfigError: If the payload or its shape is invalid
        """
        zone_id = payload.get("id") if isinstance(payload, Mapping) else None
        zone_id = str(zone_id) if zone_id is not None else None

        try:
            data = GEOFENCE_SCHEMA(dict(payload))
            shape_type: ShapeType = data["shape_type"]
            params = SHAPE_PARAMS_SCHEMAS[shape_type](data["shape_params"])
            shape = shape_from_params(shape_type, params)
        except vol.Invalid as err:
            raise GeometryConfigError(str(err), zone_id) from err
        except InvalidCoordinateError as err:
            raise GeometryConfigError(str(err), zone_id) from err
        except GeometryConfigError as err:
            raise GeometryConfigError(err.reason, zone_id) from err

        return cls(
            id=data["id"],
            name=data["name"],
            shape=shape,
            is_active=data["is_active"],
            alert_triggers=data["alert_triggers"],
            priority=data["priority"],
            kind=data["kind"],
            max_dwell_seconds=data["max_dwell_seconds"],
            speed_limit_kmh=data["speed_limit_kmh"],
            time_windows=tuple(
                TimeWindow(
                    start_time=window["start_time"],
                    end_time=window["end_time"],
                    days_of_week=frozenset(window["days_of_week"]),
                    action=window["action"],
                )
                for window in data["time_windows"]
            ),
            owner_scope=data["owner_scope"],
        )


@dataclass(slots=True)
class MembershipState:
    """Engine-owned membership of one entity in one geofence."""

    is_inside: bool = False
    entered_at: datetime | None = None
    dwell_alerted: bool = False
    restriction_alerted: bool = False

    def to_payload(self) -> dict[str, Any]:
        """Convert to a JSON-friendly mapping."""
        return {
            "is_inside": self.is_inside,
            "entered_at": self.entered_at.isoformat() if self.entered_at else None,
            "dwell_alerted": self.dwell_alerted,
            "restriction_alerted": self.restriction_alerted,
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> MembershipState:
        """Restore from :meth:`to_payload` output."""
        entered_at = payload.get("entered_at")
        return cls(
            is_inside=bool(payload.get("is_inside", False)),
            entered_at=(
                dt_util.parse_datetime(entered_at)
                if isinstance(entered_at, str)
                else None
            ),
            dwell_alerted=bool(payload.get("dwell_alerted", False)),
            restriction_alerted=bool(payload.get("restriction_alerted", False)),
        )


def coerce_geofences(
    zones: Iterable[Geofence | Mapping[str, Any]],
) -> list[Geofence]:
    """Turn registry output into typed geofences, skipping invalid zones."""
    geofences: list[Geofence] = []
    for zone in zones:
        if isinstance(zone, Geofence):
            geofences.append(zone)
            continue
        try:
            geofences.append(Geofence.from_payload(zone))
        except GeometryConfigError as err:
            _LOGGER.warning("Skipping invalid geofence: %s", err)
    return geofences


@dataclass(slots=True)
class _ZoneContext:
    report: LocationReport
    zone: Geofence
    place: str
    alerts: list[Alert] = field(default_factory=list)

    def emit(
        self, alert_type: AlertType, severity: AlertSeverity, message: str
    ) -> None:
        self.alerts.append(
            Alert(
                type=alert_type,
                entity_id=self.report.entity_id,
                geofence_id=self.zone.id,
                location=self.report.coordinate,
                timestamp=self.report.timestamp,
                severity=severity,
                message=message,
            )
        )


class GeofenceEvaluator:
    """Evaluates one report against the active geofences of its entity."""

    def __init__(
        self,
        time_zone: tzinfo = dt_util.UTC,
        describer: ReverseGeocoder | None = None,
    ) -> None:
        """Initialize the evaluator.

        Args:
            time_zone: Zone used for time-window evaluation
            describer: Optional reverse geocoder for alert messages
        """
        self._time_zone = time_zone
        self._describer = describer

    def evaluate(
        self,
        report: LocationReport,
        geofences: Iterable[Geofence],
        memberships: dict[str, MembershipState],
        speed_kmh: float | None = None,
    ) -> list[Alert]:
        """Evaluate ``report`` and update ``memberships`` in place.

        Args:
            report: The just-accepted report
            geofences: Zone snapshot for this evaluation
            memberships: Membership cache of the report's entity
            speed_kmh: Instantaneous speed associated with the report

        Returns:
            Every alert triggered by the report; multiple triggers on the same
            report produce distinct alerts
        """
        place = describe_safely(self._describer, report.coordinate)
        alerts: list[Alert] = []

        for zone in geofences:
            if not zone.is_active:
                continue
            context = _ZoneContext(report, zone, place)
            self._evaluate_zone(context, memberships, speed_kmh)
            alerts.extend(context.alerts)

        return alerts

    def _evaluate_zone(
        self,
        context: _ZoneContext,
        memberships: dict[str, MembershipState],
        speed_kmh: float | None,
    ) -> None:
        zone = context.zone
        report = context.report
        now = report.timestamp
        entity_id = report.entity_id

        inside_now = zone.contains(report.coordinate)

        state = memberships.setdefault(zone.id, MembershipState())
        triggers = zone.alert_triggers

        if inside_now and not state.is_inside:
            state.is_inside = True
            state.entered_at = now
            state.dwell_alerted = False
            state.restriction_alerted = False
            if AlertTrigger.ENTRY in triggers:
                restricted = zone.kind.is_restricted
                label = "restricted zone" if restricted else "zone"
                context.emit(
                    AlertType.GEOFENCE_ENTRY,
                    AlertSeverity.HIGH if restricted else AlertSeverity.MEDIUM,
                    f"{entity_id} entered {label} '{zone.name}' at {context.place}",
                )
        elif not inside_now and state.is_inside:
            stayed = now - state.entered_at if state.entered_at else None
            state.is_inside = False
            state.entered_at = None
            state.dwell_alerted = False
            state.restriction_alerted = False
            if AlertTrigger.EXIT in triggers:
                context.emit(
                    AlertType.GEOFENCE_EXIT,
                    zone.priority,
                    f"{entity_id} left zone '{zone.name}' at {context.place}"
                    + (f" after {_format_duration(stayed)}" if stayed else ""),
                )
        elif inside_now and AlertTrigger.DWELL_TIME in triggers:
            self._check_dwell(context, state)

        if not inside_now:
            return

        if (
            AlertTrigger.SPEED_LIMIT in triggers
            and speed_kmh is not None
            and zone.speed_limit_kmh is not None
            and speed_kmh > zone.speed_limit_kmh
        ):
            context.emit(
                AlertType.SPEED_LIMIT_EXCEEDED,
                zone.priority,
                f"{entity_id} moving at {speed_kmh:.1f} km/h in zone '{zone.name}' "
                f"(limit {zone.speed_limit_kmh:g} km/h)",
            )

        if AlertTrigger.TIME_RESTRICTION in triggers:
            local_time = now.astimezone(self._time_zone)
            if not zone.is_denied_at(local_time):
                state.restriction_alerted = False
            elif not state.restriction_alerted:
                state.restriction_alerted = True
                context.emit(
                    AlertType.TIME_RESTRICTION_VIOLATION,
                    AlertSeverity.HIGH,
                    f"{entity_id} inside zone '{zone.name}' during a restricted "
                    f"period ({local_time.strftime('%a %H:%M')})",
                )

    @staticmethod
    def _check_dwell(context: _ZoneContext, state: MembershipState) -> None:
        zone = context.zone
        if (
            state.dwell_alerted
            or state.entered_at is None
            or zone.max_dwell_seconds is None
        ):
            return

        stayed = context.report.timestamp - state.entered_at
        if stayed.total_seconds() <= zone.max_dwell_seconds:
            return

        state.dwell_alerted = True
        context.emit(
            AlertType.DWELL_TIME_EXCEEDED,
            zone.priority,
            f"{context.report.entity_id} has stayed in zone '{zone.name}' for "
            f"{_format_duration(stayed)} (limit "
            f"{_format_duration(timedelta(seconds=zone.max_dwell_seconds))})",
        )


def _format_duration(duration: timedelta) -> str:
    minutes = duration.total_seconds() / 60
    if minutes < 60:
        return f"{minutes:.0f} min"
    return f"{minutes / 60:.1f} h"
