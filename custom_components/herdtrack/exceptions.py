"""Custom exceptions for the HerdTrack tracking engine.

Every error raised by the engine carries structured information (error code,
severity, category, context and recovery suggestions) so that hosts can log,
serialise and route failures without parsing messages.

Python: 3.13+
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from homeassistant.exceptions import HomeAssistantError
from homeassistant.util import dt as dt_util


class ErrorSeverity(Enum):
    """Error severity levels."""

    LOW = "low"  # Report-level problem, engine unaffected
    MEDIUM = "medium"  # Report rejected
    HIGH = "high"  # Collaborator or configuration failure
    CRITICAL = "critical"  # Engine cannot operate


class ErrorCategory(Enum):
    """Error categories for organisation and routing."""

    CONFIGURATION = "configuration"
    DATA = "data"
    GPS = "gps"
    GEOMETRY = "geometry"
    NOTIFICATION = "notification"
    STORAGE = "storage"
    VALIDATION = "validation"
    SYSTEM = "system"


class HerdTrackError(HomeAssistantError):
    """Base exception for all HerdTrack errors."""

    def __init__(
        self,
        message: str,
        *,
        error_code: str | None = None,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        category: ErrorCategory = ErrorCategory.SYSTEM,
        context: dict[str, Any] | None = None,
        recovery_suggestions: list[str] | None = None,
        timestamp: datetime | None = None,
    ) -> None:
        """Initialize the HerdTrack exception.

        Args:
            message: Human-readable error message
            error_code: Unique error code for programmatic handling
            severity: Error severity level
            category: Error category
            context: Additional context data for debugging
            recovery_suggestions: Suggested recovery actions
            timestamp: When the error occurred
        """
        super().__init__(message)

        self.error_code = error_code or self.__class__.__name__.lower()
        self.severity = severity
        self.category = category
        self.context = context or {}
        self.recovery_suggestions = recovery_suggestions or []
        self.timestamp = timestamp or dt_util.utcnow()

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for serialization."""
        return {
            "error_code": self.error_code,
            "message": str(self),
            "severity": self.severity.value,
            "category": self.category.value,
            "context": self.context,
            "recovery_suggestions": self.recovery_suggestions,
            "timestamp": self.timestamp.isoformat(),
            "exception_type": self.__class__.__name__,
        }

    def add_context(self, key: str, value: Any) -> HerdTrackError:
        """Add context information to the exception.

        Returns:
            Self for method chaining
        """
        self.context[key] = value
        return self


class ConfigurationError(HerdTrackError):
    """Exception raised for invalid engine options."""

    def __init__(
        self,
        setting: str,
        value: Any = None,
        reason: str | None = None,
    ) -> None:
        """Initialize configuration error.

        Args:
            setting: The option that is invalid
            value: The invalid value
            reason: Why the value was rejected
        """
        if reason:
            message = f"Invalid configuration for '{setting}': {reason}"
        else:
            message = f"Invalid configuration for '{setting}'"

        super().__init__(
            message,
            error_code="configuration_error",
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.CONFIGURATION,
            context={"setting": setting, "value": value},
            recovery_suggestions=[
                "Check the engine options mapping",
                "Verify the value is within the accepted range",
            ],
        )

        self.setting = setting
        self.value = value


class InvalidCoordinateError(HerdTrackError):
    """Exception raised when a coordinate is malformed or out of range."""

    def __init__(
        self,
        latitude: float | None = None,
        longitude: float | None = None,
        *,
        reason: str | None = None,
        entity_id: str | None = None,
    ) -> None:
        """Initialize invalid coordinate error.

        Args:
            latitude: The offending latitude, if known
            longitude: The offending longitude, if known
            reason: Which constraint was violated
            entity_id: Entity the coordinate belongs to
        """
        if latitude is not None and longitude is not None:
            message = f"Invalid coordinate ({latitude}, {longitude})"
        else:
            message = "Invalid coordinate"
        if reason:
            message = f"{message}: {reason}"

        super().__init__(
            message,
            error_code="invalid_coordinate",
            severity=ErrorSeverity.MEDIUM,
            category=ErrorCategory.GPS,
            context={
                "latitude": latitude,
                "longitude": longitude,
                "entity_id": entity_id,
            },
            recovery_suggestions=[
                "Verify coordinates are in decimal degrees",
                "Check that latitude is between -90 and 90",
                "Check that longitude is between -180 and 180",
                "Check that accuracy is not negative",
            ],
        )

        self.latitude = latitude
        self.longitude = longitude
        self.reason = reason


class InvalidReportError(HerdTrackError):
    """Exception raised when a location report payload is malformed."""

    def __init__(self, reason: str, entity_id: str | None = None) -> None:
        """Initialize invalid report error."""
        super().__init__(
            f"Invalid location report: {reason}",
            error_code="invalid_report",
            severity=ErrorSeverity.MEDIUM,
            category=ErrorCategory.VALIDATION,
            context={"entity_id": entity_id, "reason": reason},
            recovery_suggestions=[
                "Check the report payload fields and types",
                "Verify the device clock is synchronised",
            ],
        )

        self.reason = reason
        self.entity_id = entity_id


class EntityNotFoundError(HerdTrackError):
    """Exception raised when the entity registry does not know an entity."""

    def __init__(self, entity_id: str) -> None:
        """Initialize entity not found error."""
        super().__init__(
            f"Entity with ID '{entity_id}' not found",
            error_code="entity_not_found",
            severity=ErrorSeverity.MEDIUM,
            category=ErrorCategory.DATA,
            context={"entity_id": entity_id},
            recovery_suggestions=[
                "Check if the entity ID is spelled correctly",
                "Verify the entity is registered before sending reports",
            ],
        )

        self.entity_id = entity_id


class StaleReportError(HerdTrackError):
    """Exception raised when a report predates stored state beyond the skew."""

    def __init__(
        self,
        entity_id: str,
        report_time: datetime,
        last_time: datetime,
        tolerance_seconds: float,
    ) -> None:
        """Initialize stale report error."""
        super().__init__(
            f"Stale report for '{entity_id}': {report_time.isoformat()} predates "
            f"{last_time.isoformat()} by more than {tolerance_seconds:g}s",
            error_code="stale_report",
            severity=ErrorSeverity.LOW,
            category=ErrorCategory.DATA,
            context={
                "entity_id": entity_id,
                "report_time": report_time.isoformat(),
                "last_time": last_time.isoformat(),
                "tolerance_seconds": tolerance_seconds,
            },
            recovery_suggestions=[
                "Submit backfilled reports in chronological order",
            ],
        )

        self.entity_id = entity_id
        self.report_time = report_time
        self.last_time = last_time


class DispatchFailureError(HerdTrackError):
    """Exception recorded when the notification dispatcher fails."""

    def __init__(self, alert_id: str, reason: str | None = None) -> None:
        """Initialize dispatch failure error."""
        message = f"Failed to dispatch alert {alert_id}"
        if reason:
            message = f"{message}: {reason}"

        super().__init__(
            message,
            error_code="dispatch_failure",
            severity=ErrorSeverity.LOW,
            category=ErrorCategory.NOTIFICATION,
            context={"alert_id": alert_id},
            recovery_suggestions=[
                "Check notification dispatcher connectivity",
            ],
        )

        self.alert_id = alert_id


class GeometryConfigError(HerdTrackError):
    """Exception raised for a geofence whose shape cannot be evaluated."""

    def __init__(self, reason: str, geofence_id: str | None = None) -> None:
        """Initialize geometry configuration error."""
        if geofence_id:
            message = f"Invalid geofence '{geofence_id}': {reason}"
        else:
            message = f"Invalid geofence: {reason}"

        super().__init__(
            message,
            error_code="geometry_config_error",
            severity=ErrorSeverity.MEDIUM,
            category=ErrorCategory.GEOMETRY,
            context={"geofence_id": geofence_id, "reason": reason},
            recovery_suggestions=[
                "Polygons need at least 3 vertices",
                "Circles need a positive radius",
                "Corridors need at least 2 centerline vertices and a positive width",
            ],
        )

        self.geofence_id = geofence_id
        self.reason = reason


class BatchDeadlineExceededError(HerdTrackError):
    """Exception recorded for reports not processed before the batch deadline."""

    def __init__(self, timeout: float) -> None:
        """Initialize batch deadline error."""
        super().__init__(
            f"Batch deadline of {timeout:g}s exceeded before report was processed",
            error_code="batch_deadline_exceeded",
            severity=ErrorSeverity.LOW,
            category=ErrorCategory.SYSTEM,
            context={"timeout": timeout},
            recovery_suggestions=[
                "Retry the report; ingestion of true duplicates is idempotent",
            ],
        )

        self.timeout = timeout


EXCEPTION_MAP: dict[str, type[HerdTrackError]] = {
    "configuration_error": ConfigurationError,
    "invalid_coordinate": InvalidCoordinateError,
    "invalid_report": InvalidReportError,
    "entity_not_found": EntityNotFoundError,
    "stale_report": StaleReportError,
    "dispatch_failure": DispatchFailureError,
    "geometry_config_error": GeometryConfigError,
    "batch_deadline_exceeded": BatchDeadlineExceededError,
}


def get_exception_class(error_code: str) -> type[HerdTrackError]:
    """Get the exception class for a given error code.

    Raises:
        KeyError: If the error code is not found
    """
    if error_code not in EXCEPTION_MAP:
        raise KeyError(f"Unknown error code: {error_code}")

    return EXCEPTION_MAP[error_code]
