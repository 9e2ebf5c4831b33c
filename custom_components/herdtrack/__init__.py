"""HerdTrack: geospatial tracking and geofence alerting for livestock.

Python: 3.13+
"""

from __future__ import annotations

from .config import EngineConfig
from .engine import HerdTrackEngine
from .exceptions import (
    BatchDeadlineExceededError,
    ConfigurationError,
    DispatchFailureError,
    EntityNotFoundError,
    GeometryConfigError,
    HerdTrackError,
    InvalidCoordinateError,
    InvalidReportError,
    StaleReportError,
)
from .geocode import RegionDescriber
from .geofence import (
    CircleShape,
    CorridorShape,
    Geofence,
    MembershipState,
    PolygonShape,
    RectangleShape,
    TimeWindow,
)
from .storage import (
    InMemoryEntityRegistry,
    InMemoryLocationHistory,
    InMemoryZoneRegistry,
    RecordingDispatcher,
)
from .types import (
    Alert,
    AlertSeverity,
    AlertTrigger,
    AlertType,
    BatchResult,
    Coordinate,
    DeviceInfo,
    EntityRecord,
    GroupAnalysis,
    IngestResult,
    LocationReport,
    LocationSource,
    MovementAnalysis,
    MovementPattern,
    NearbyEntity,
    RejectedReport,
    ShapeType,
    WindowAction,
    ZoneKind,
)

__all__ = [
    "Alert",
    "AlertSeverity",
    "AlertTrigger",
    "AlertType",
    "BatchDeadlineExceededError",
    "BatchResult",
    "CircleShape",
    "ConfigurationError",
    "Coordinate",
    "CorridorShape",
    "DeviceInfo",
    "DispatchFailureError",
    "EngineConfig",
    "EntityNotFoundError",
    "EntityRecord",
    "Geofence",
    "GeometryConfigError",
    "GroupAnalysis",
    "HerdTrackEngine",
    "HerdTrackError",
    "InMemoryEntityRegistry",
    "InMemoryLocationHistory",
    "InMemoryZoneRegistry",
    "IngestResult",
    "InvalidCoordinateError",
    "InvalidReportError",
    "LocationReport",
    "LocationSource",
    "MembershipState",
    "MovementAnalysis",
    "MovementPattern",
    "NearbyEntity",
    "PolygonShape",
    "RecordingDispatcher",
    "RectangleShape",
    "RegionDescriber",
    "RejectedReport",
    "ShapeType",
    "StaleReportError",
    "TimeWindow",
    "WindowAction",
    "ZoneKind",
]
