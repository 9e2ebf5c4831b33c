"""HerdTrack engine facade.

Wires the ingestion coordinator, batch processor and movement analysis to the
collaborators a host provides and exposes the engine's public operations.

Python: 3.13+
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime
from typing import Any

from .batch_manager import BatchProcessor
from .config import EngineConfig
from .const import DEFAULT_GROUP_MAX_DISTANCE_M
from .exceptions import ConfigurationError
from .geofence import PREFILTER_PADDING
from .geometry import bounding_box, centroid, distance
from .ingestion import IngestionCoordinator
from .movement import MovementAccumulator
from .types import (
    BatchResult,
    Coordinate,
    EntityRegistry,
    GroupAnalysis,
    IngestResult,
    LocationHistoryStore,
    LocationReport,
    MovementAnalysis,
    NearbyEntity,
    NotificationDispatcher,
    ReverseGeocoder,
    ZoneRegistry,
)

_LOGGER = logging.getLogger(__name__)


class HerdTrackEngine:
    """Geospatial tracking and geofence alerting for a herd.

    The engine owns per-entity track state and geofence memberships. Zone
    definitions, entity records, history and delivery are provided by the
    host through the collaborator protocols.
    """

    def __init__(
        self,
        entity_registry: EntityRegistry,
        zone_registry: ZoneRegistry,
        *,
        history: LocationHistoryStore | None = None,
        dispatcher: NotificationDispatcher | None = None,
        describer: ReverseGeocoder | None = None,
        config: EngineConfig | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            entity_registry: Entity registry collaborator
            zone_registry: Zone registry collaborator
            history: Location history store
            dispatcher: Notification collaborator
            describer: Reverse geocoder for alert messages
            config: Engine configuration
            options: Raw options, validated into a configuration when
                ``config`` is not given

        Raises:
            ConfigurationError: If ``options`` are invalid
        """
        self._config = config or EngineConfig.from_options(options)
        self._history = history
        self._ingestion = IngestionCoordinator(
            self._config,
            entity_registry,
            zone_registry,
            history=history,
            dispatcher=dispatcher,
            describer=describer,
        )
        self._batches = BatchProcessor(
            self._ingestion.async_ingest,
            chunk_size=self._config.batch_chunk_size,
            max_concurrency=self._config.batch_max_concurrency,
            timeout=self._config.batch_timeout_seconds,
        )
        _LOGGER.debug("HerdTrack engine initialized: %s", self._config.as_dict())

    @property
    def config(self) -> EngineConfig:
        """Effective configuration."""
        return self._config

    async def async_ingest(
        self, report: LocationReport | Mapping[str, Any]
    ) -> IngestResult:
        """Ingest one location report; errors are raised to the caller."""
        return await self._ingestion.async_ingest(report)

    async def async_ingest_batch(
        self, reports: Sequence[LocationReport | Mapping[str, Any]]
    ) -> BatchResult:
        """Ingest many reports; per-report failures land in ``rejected``."""
        return await self._batches.async_process(reports)

    async def async_analyze_movement(
        self,
        entity_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> MovementAnalysis:
        """Analyze the stored history of ``entity_id`` between start and end.

        Raises:
            ConfigurationError: If the engine has no history store
        """
        if self._history is None:
            raise ConfigurationError(
                "history", None, "movement analysis requires a history store"
            )
        reports = await self._history.async_get_locations(entity_id, start, end)
        return self._ingestion.analyzer.analyze(entity_id, reports, start, end)

    def current_movement(self, entity_id: str) -> MovementAnalysis:
        """Analysis of the rolling movement window of ``entity_id``."""
        track = self._ingestion.tracks.get(entity_id)
        accumulator = track.accumulator if track else MovementAccumulator()
        return self._ingestion.analyzer.summarize(entity_id, accumulator)

    def last_report(self, entity_id: str) -> LocationReport | None:
        """Last accepted report of ``entity_id``."""
        track = self._ingestion.tracks.get(entity_id)
        return track.last_report if track else None

    def find_entities_in_radius(
        self,
        center: Coordinate,
        radius_km: float,
        owner_scope: str | None = None,
    ) -> list[NearbyEntity]:
        """Find tracked entities whose last position is within ``radius_km``.

        Args:
            center: Search centre
            radius_km: Search radius in kilometers
            owner_scope: Only return entities of this ranch or group

        Returns:
            Matches sorted by distance, closest first
        """
        box = bounding_box(center, radius_km * PREFILTER_PADDING)
        radius_m = radius_km * 1000
        matches: list[NearbyEntity] = []

        for track in self._ingestion.tracks:
            report = track.last_report
            if report is None:
                continue
            if owner_scope is not None and track.owner_scope != owner_scope:
                continue
            if not box.contains(report.coordinate):
                continue
            meters = distance(center, report.coordinate)
            if meters <= radius_m:
                matches.append(NearbyEntity(track.entity_id, report, meters))

        matches.sort(key=lambda match: match.distance_m)
        return matches

    def analyze_group(
        self,
        entity_ids: Iterable[str],
        max_distance_m: float = DEFAULT_GROUP_MAX_DISTANCE_M,
    ) -> GroupAnalysis:
        """Measure how tightly a group of entities is clustered.

        Args:
            entity_ids: Group members; members without a position are ignored
            max_distance_m: Mean distance from the centre at which cohesion
                reaches zero

        Returns:
            Centre, radius and cohesion in ``[0, 1]``
        """
        positioned: list[tuple[str, Coordinate]] = []
        for entity_id in dict.fromkeys(entity_ids):
            report = self.last_report(entity_id)
            if report is not None:
                positioned.append((entity_id, report.coordinate))

        ids = tuple(entity_id for entity_id, _ in positioned)
        if not positioned:
            return GroupAnalysis(ids, None, 0.0, 1.0)

        points = [point for _, point in positioned]
        center = centroid(points)
        distances = [distance(center, point) for point in points]
        radius = max(distances)
        if len(points) < 2:
            cohesion = 1.0
        elif max_distance_m <= 0:
            cohesion = 0.0
        else:
            mean = math.fsum(distances) / len(distances)
            cohesion = max(0.0, 1 - mean / max_distance_m)

        return GroupAnalysis(ids, center, radius, cohesion)

    def export_membership(self) -> dict[str, dict[str, dict[str, Any]]]:
        """Snapshot the geofence membership cache."""
        return self._ingestion.tracks.export_memberships()

    def restore_membership(
        self, payload: Mapping[str, Mapping[str, Mapping[str, Any]]]
    ) -> int:
        """Restore a snapshot from :meth:`export_membership`."""
        return self._ingestion.tracks.restore_memberships(payload)

    def get_stats(self) -> dict[str, Any]:
        """Get engine statistics.

        Returns:
            Dictionary with ingestion counters, dispatch counters, batch
            statistics and the effective configuration
        """
        publisher = self._ingestion.publisher
        return {
            **self._ingestion.stats.as_dict(),
            "dispatch_failures": publisher.failures,
            "alerts_dispatched": publisher.published,
            "alert_record_failures": publisher.record_failures,
            "tracked_entities": len(self._ingestion.tracks),
            "batch": self._batches.get_stats(),
            "config": self._config.as_dict(),
        }
