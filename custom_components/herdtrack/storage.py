"""In-memory collaborators for HerdTrack.

The engine only depends on the registry, store and dispatcher protocols in
:mod:`.types`. These implementations back tests and single-process hosts.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import replace
from datetime import datetime
from typing import Any

from .const import DEFAULT_ALERT_LOG_LIMIT, DEFAULT_HISTORY_LIMIT
from .exceptions import EntityNotFoundError, GeometryConfigError
from .geofence import Geofence
from .types import Alert, Coordinate, DeviceInfo, EntityRecord, LocationReport

_LOGGER = logging.getLogger(__name__)


class InMemoryEntityRegistry:
    """Entity registry kept in a dictionary."""

    def __init__(self, records: Iterable[EntityRecord] = ()) -> None:
        """Initialize with optional existing records."""
        self._records: dict[str, EntityRecord] = {
            record.entity_id: record for record in records
        }

    def register(
        self,
        entity_id: str,
        owner_scope: str | None = None,
        *,
        device_id: str | None = None,
    ) -> EntityRecord:
        """Add or replace a tracked entity."""
        record = EntityRecord(
            entity_id=entity_id,
            owner_scope=owner_scope,
            device_info=DeviceInfo(device_id=device_id),
        )
        self._records[entity_id] = record
        return record

    def get(self, entity_id: str) -> EntityRecord | None:
        """Return the record without awaiting."""
        return self._records.get(entity_id)

    async def async_get_entity(self, entity_id: str) -> EntityRecord | None:
        """Return the entity record, or ``None`` if unknown."""
        return self._records.get(entity_id)

    async def async_update_entity_location(
        self,
        entity_id: str,
        coordinate: Coordinate,
        device_info: DeviceInfo,
    ) -> None:
        """Persist the entity's latest location and device telemetry."""
        record = self._records.get(entity_id)
        if record is None:
            raise EntityNotFoundError(entity_id)
        self._records[entity_id] = replace(
            record,
            last_location=coordinate,
            last_seen=device_info.last_seen or record.last_seen,
            device_info=device_info,
        )


class InMemoryZoneRegistry:
    """Zone registry holding validated geofences."""

    def __init__(
        self, zones: Iterable[Geofence | Mapping[str, Any]] = ()
    ) -> None:
        """Initialize and load ``zones``."""
        self._zones: dict[str, Geofence] = {}
        self.load(zones)

    def load(self, zones: Iterable[Geofence | Mapping[str, Any]]) -> int:
        """Validate and add zones, skipping invalid definitions.

        Returns:
            Number of zones loaded
        """
        loaded = 0
        for zone in zones:
            try:
                self.add(zone)
            except GeometryConfigError as err:
                _LOGGER.warning("Skipping invalid geofence: %s", err)
                continue
            loaded += 1
        return loaded

    def add(self, zone: Geofence | Mapping[str, Any]) -> Geofence:
        """Add or replace one zone.

        Raises:
            GeometryConfigError: If the zone payload is invalid
        """
        geofence = zone if isinstance(zone, Geofence) else Geofence.from_payload(zone)
        self._zones[geofence.id] = geofence
        return geofence

    def remove(self, zone_id: str) -> bool:
        """Remove a zone; return True if it existed."""
        return self._zones.pop(zone_id, None) is not None

    @property
    def zones(self) -> list[Geofence]:
        """All zones, active or not."""
        return list(self._zones.values())

    async def async_get_active_geofences(
        self, owner_scope: str | None
    ) -> Sequence[Geofence]:
        """Return active zones of ``owner_scope`` plus unscoped zones."""
        return [
            zone
            for zone in self._zones.values()
            if zone.is_active
            and (zone.owner_scope is None or zone.owner_scope == owner_scope)
        ]


class InMemoryLocationHistory:
    """Bounded per-entity report history plus an alert log."""

    def __init__(
        self,
        limit: int = DEFAULT_HISTORY_LIMIT,
        alert_limit: int = DEFAULT_ALERT_LOG_LIMIT,
    ) -> None:
        """Initialize the store.

        Args:
            limit: Reports kept per entity; older reports are evicted
            alert_limit: Alert records kept; older records are evicted
        """
        self._limit = limit
        self._locations: dict[str, deque[LocationReport]] = {}
        self._alerts: deque[Alert] = deque(maxlen=alert_limit)
        self._lock = asyncio.Lock()

    @property
    def alerts(self) -> list[Alert]:
        """Recorded alerts in insertion order."""
        return list(self._alerts)

    async def async_append_location(self, report: LocationReport) -> None:
        """Append an accepted report to history."""
        async with self._lock:
            history = self._locations.get(report.entity_id)
            if history is None:
                history = self._locations[report.entity_id] = deque(
                    maxlen=self._limit
                )
            history.append(report)

    async def async_get_locations(
        self,
        entity_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[LocationReport]:
        """Return history for ``entity_id`` in chronological order."""
        async with self._lock:
            reports = list(self._locations.get(entity_id, ()))
        reports = [
            report
            for report in reports
            if (start is None or report.timestamp >= start)
            and (end is None or report.timestamp <= end)
        ]
        # Out-of-order reports are stored in arrival order
        reports.sort(key=lambda report: report.timestamp)
        return reports

    async def async_append_alert(self, alert: Alert) -> None:
        """Append an alert record."""
        async with self._lock:
            self._alerts.append(alert)


class RecordingDispatcher:
    """Dispatcher that records alerts instead of delivering them."""

    def __init__(self) -> None:
        """Initialize an empty outbox."""
        self.dispatched: list[Alert] = []

    async def async_dispatch(self, alert: Alert) -> None:
        """Record ``alert``."""
        self.dispatched.append(alert)
