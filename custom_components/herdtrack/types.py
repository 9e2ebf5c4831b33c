"""Type definitions for the HerdTrack tracking engine.

Value types (coordinates, reports, alerts, analysis results), the enums the
rest of the engine keys on, and the collaborator protocols a host wires in.

Python: 3.13+
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol

from .validation import validate_coordinate

if TYPE_CHECKING:
    from .geofence import Geofence


class LocationSource(Enum):
    """Where a location report came from."""

    GPS = "GPS"
    MANUAL = "MANUAL"
    ESTIMATED = "ESTIMATED"


class AlertType(Enum):
    """Types of alerts produced by the engine."""

    GEOFENCE_ENTRY = "GEOFENCE_ENTRY"
    GEOFENCE_EXIT = "GEOFENCE_EXIT"
    DWELL_TIME_EXCEEDED = "DWELL_TIME_EXCEEDED"
    SPEED_LIMIT_EXCEEDED = "SPEED_LIMIT_EXCEEDED"
    TIME_RESTRICTION_VIOLATION = "TIME_RESTRICTION_VIOLATION"
    HIGH_SPEED = "HIGH_SPEED"
    LOW_BATTERY = "LOW_BATTERY"


class AlertSeverity(Enum):
    """Alert severity levels."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class AlertTrigger(Enum):
    """Rules a geofence can alert on."""

    ENTRY = "ENTRY"
    EXIT = "EXIT"
    DWELL_TIME = "DWELL_TIME"
    SPEED_LIMIT = "SPEED_LIMIT"
    TIME_RESTRICTION = "TIME_RESTRICTION"


class ShapeType(Enum):
    """Supported geofence shapes."""

    CIRCLE = "CIRCLE"
    RECTANGLE = "RECTANGLE"
    POLYGON = "POLYGON"
    CORRIDOR = "CORRIDOR"


class ZoneKind(Enum):
    """What a geofence represents on the ranch."""

    PASTURE = "PASTURE"
    FACILITY = "FACILITY"
    WATER_SOURCE = "WATER_SOURCE"
    SAFE_ZONE = "SAFE_ZONE"
    RESTRICTED_AREA = "RESTRICTED_AREA"
    DANGER_ZONE = "DANGER_ZONE"
    QUARANTINE_AREA = "QUARANTINE_AREA"
    OTHER = "OTHER"

    @property
    def is_restricted(self) -> bool:
        """Entering a restricted zone is a high severity event."""
        return self in (
            ZoneKind.RESTRICTED_AREA,
            ZoneKind.DANGER_ZONE,
            ZoneKind.QUARANTINE_AREA,
        )


class WindowAction(Enum):
    """Action of a geofence time window."""

    ALLOW = "ALLOW"
    DENY = "DENY"


class MovementPattern(Enum):
    """Dominant movement behaviour over an analysis window."""

    GRAZING = "GRAZING"
    RESTING = "RESTING"
    WALKING = "WALKING"
    RUNNING = "RUNNING"
    UNKNOWN = "UNKNOWN"


@dataclass(frozen=True, slots=True)
class Coordinate:
    """Immutable geographic coordinate.

    Attributes:
        latitude: Latitude in decimal degrees, -90..90
        longitude: Longitude in decimal degrees, -180..180
        altitude: Altitude in meters
        accuracy: Horizontal accuracy estimate in meters, never negative

    Raises:
        InvalidCoordinateError: If any component is out of range
    """

    latitude: float
    longitude: float
    altitude: float | None = None
    accuracy: float | None = None

    def __post_init__(self) -> None:
        """Validate the coordinate on construction."""
        validate_coordinate(
            self.latitude, self.longitude, self.accuracy, self.altitude
        )

    def format(self, precision: int = 4) -> str:
        """Return ``"lat, lon"`` rounded to ``precision`` decimals."""
        return f"{self.latitude:.{precision}f}, {self.longitude:.{precision}f}"

    def to_payload(self) -> dict[str, float]:
        """Convert to a JSON-friendly mapping."""
        payload = {"latitude": self.latitude, "longitude": self.longitude}
        if self.altitude is not None:
            payload["altitude"] = self.altitude
        if self.accuracy is not None:
            payload["accuracy"] = self.accuracy
        return payload


@dataclass(frozen=True, slots=True)
class LocationReport:
    """A single positional report for a tracked entity.

    Attributes:
        entity_id: Tracked entity identifier
        coordinate: Reported position
        timestamp: Timezone-aware time the position was recorded
        source: How the position was obtained
        speed: Device-reported speed in km/h
        heading: Device-reported heading in degrees
        device_battery_level: Device battery percentage (0-100)
        device_signal_strength: Device signal strength percentage (0-100)
    """

    entity_id: str
    coordinate: Coordinate
    timestamp: datetime
    source: LocationSource = LocationSource.GPS
    speed: float | None = None
    heading: float | None = None
    device_battery_level: int | None = None
    device_signal_strength: int | None = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> LocationReport:
        """Validate a report payload and build the typed report.

        Raises:
            InvalidCoordinateError: If the coordinate fields are malformed
            InvalidReportError: If any other field is malformed
        """
        from .schemas import coerce_report  # noqa: PLC0415

        return coerce_report(payload)

    def to_payload(self) -> dict[str, Any]:
        """Convert to a JSON-friendly mapping."""
        payload: dict[str, Any] = {
            "entity_id": self.entity_id,
            **self.coordinate.to_payload(),
            "timestamp": self.timestamp.isoformat(),
            "source": self.source.value,
        }
        for key in (
            "speed",
            "heading",
            "device_battery_level",
            "device_signal_strength",
        ):
            value = getattr(self, key)
            if value is not None:
                payload[key] = value
        return payload


@dataclass(frozen=True, slots=True)
class DeviceInfo:
    """Telemetry of the tracking device an entity carries."""

    device_id: str | None = None
    battery_level: int | None = None
    signal_strength: int | None = None
    last_seen: datetime | None = None

    def merged_with(self, report: LocationReport) -> DeviceInfo:
        """Overlay the telemetry carried by ``report``."""
        return replace(
            self,
            battery_level=(
                report.device_battery_level
                if report.device_battery_level is not None
                else self.battery_level
            ),
            signal_strength=(
                report.device_signal_strength
                if report.device_signal_strength is not None
                else self.signal_strength
            ),
            last_seen=report.timestamp,
        )


@dataclass(frozen=True, slots=True)
class EntityRecord:
    """What the entity registry knows about a tracked entity."""

    entity_id: str
    owner_scope: str | None = None
    last_location: Coordinate | None = None
    last_seen: datetime | None = None
    last_source: LocationSource = LocationSource.GPS
    device_info: DeviceInfo = field(default_factory=DeviceInfo)


def _new_alert_id() -> str:
    return f"alert_{uuid.uuid4().hex}"


@dataclass(slots=True)
class Alert:
    """Alert produced by the engine and handed to the dispatcher."""

    type: AlertType
    entity_id: str
    location: Coordinate
    timestamp: datetime
    severity: AlertSeverity
    message: str
    geofence_id: str | None = None
    is_resolved: bool = False
    id: str = field(default_factory=_new_alert_id)

    def to_payload(self) -> dict[str, Any]:
        """Convert to a JSON-friendly mapping."""
        return {
            "id": self.id,
            "type": self.type.value,
            "entity_id": self.entity_id,
            "geofence_id": self.geofence_id,
            "location": self.location.to_payload(),
            "timestamp": self.timestamp.isoformat(),
            "severity": self.severity.value,
            "message": self.message,
            "is_resolved": self.is_resolved,
        }


@dataclass(frozen=True, slots=True)
class MovementAnalysis:
    """Derived movement metrics for one entity over a period."""

    entity_id: str
    period_start: datetime | None
    period_end: datetime | None
    total_distance_m: float
    average_speed_kmh: float
    max_speed_kmh: float
    time_moving_minutes: float
    time_resting_minutes: float
    pattern: MovementPattern
    anomalies: tuple[str, ...] = ()

    def to_payload(self) -> dict[str, Any]:
        """Convert to a JSON-friendly mapping."""
        return {
            "entity_id": self.entity_id,
            "period": {
                "start": self.period_start.isoformat() if self.period_start else None,
                "end": self.period_end.isoformat() if self.period_end else None,
            },
            "total_distance_m": round(self.total_distance_m, 2),
            "average_speed_kmh": round(self.average_speed_kmh, 2),
            "max_speed_kmh": round(self.max_speed_kmh, 2),
            "time_moving_minutes": round(self.time_moving_minutes, 2),
            "time_resting_minutes": round(self.time_resting_minutes, 2),
            "pattern": self.pattern.value,
            "anomalies": list(self.anomalies),
        }


@dataclass(frozen=True, slots=True)
class IngestResult:
    """Outcome of ingesting a single report."""

    report: LocationReport
    accepted: bool
    alerts: tuple[Alert, ...] = ()
    duplicate: bool = False
    out_of_order: bool = False


@dataclass(frozen=True, slots=True)
class RejectedReport:
    """A report the engine refused, with the reason."""

    report: LocationReport | Mapping[str, Any]
    error: Exception


@dataclass(slots=True)
class BatchResult:
    """Partial result of a batch ingestion.

    Every submitted report appears in exactly one of the two lists.
    """

    accepted: list[IngestResult] = field(default_factory=list)
    rejected: list[RejectedReport] = field(default_factory=list)

    @property
    def total(self) -> int:
        """Number of reports accounted for."""
        return len(self.accepted) + len(self.rejected)

    @property
    def alerts(self) -> list[Alert]:
        """All alerts produced by the batch."""
        return [alert for result in self.accepted for alert in result.alerts]


@dataclass(frozen=True, slots=True)
class NearbyEntity:
    """Result row of a proximity search."""

    entity_id: str
    report: LocationReport
    distance_m: float


@dataclass(frozen=True, slots=True)
class GroupAnalysis:
    """Spatial cohesion of a group of entities."""

    entity_ids: tuple[str, ...]
    center: Coordinate | None
    radius_m: float
    cohesion: float


class EntityRegistry(Protocol):
    """Entity registry collaborator."""

    async def async_get_entity(self, entity_id: str) -> EntityRecord | None:
        """Return the entity record, or ``None`` if unknown."""

    async def async_update_entity_location(
        self,
        entity_id: str,
        coordinate: Coordinate,
        device_info: DeviceInfo,
    ) -> None:
        """Persist the entity's latest location and device telemetry."""


class ZoneRegistry(Protocol):
    """Zone registry collaborator."""

    async def async_get_active_geofences(
        self, owner_scope: str | None
    ) -> Sequence[Geofence | Mapping[str, Any]]:
        """Return the active geofences relevant to ``owner_scope``.

        Raw zone payloads are validated on load; invalid ones are skipped.
        """


class NotificationDispatcher(Protocol):
    """Notification collaborator; owns delivery."""

    async def async_dispatch(self, alert: Alert) -> None:
        """Deliver ``alert``."""


class LocationHistoryStore(Protocol):
    """Durable append store for location history and alert records."""

    async def async_append_location(self, report: LocationReport) -> None:
        """Append an accepted report to history."""

    async def async_get_locations(
        self,
        entity_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[LocationReport]:
        """Return history for ``entity_id`` in chronological order."""

    async def async_append_alert(self, alert: Alert) -> None:
        """Append an alert record."""


class ReverseGeocoder(Protocol):
    """Best-effort human readable description of a coordinate."""

    def describe(self, coordinate: Coordinate) -> str:
        """Return a description of ``coordinate``."""
