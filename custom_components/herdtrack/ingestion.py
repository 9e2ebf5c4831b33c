"""Ingestion coordinator for HerdTrack.

Turns one location report into state updates and alerts:

    validate -> registry lookup -> duplicate filter -> zone lookup
             -> history and registry writes -> state update
             -> movement step + low battery check + geofence evaluation
             -> alert publication

Validation is pure and runs before the entity's writer lock is taken. Every
read-then-write on an entity's track state happens while holding that lock,
so reports for the same entity are applied one at a time, in the order they
were handed in, while different entities proceed in parallel.

Everything fallible that only reads runs before the first write. Once the
writes start the report is applied to completion, including alert
publication, even if the ingesting task is cancelled meanwhile.

Python: 3.13+
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from dataclasses import asdict, dataclass
from typing import Any

from homeassistant.util import dt as dt_util

from .config import EngineConfig
from .duplicate_filter import DuplicateFilter
from .exceptions import EntityNotFoundError, HerdTrackError
from .geocode import RegionDescriber
from .geofence import Geofence, GeofenceEvaluator, coerce_geofences
from .movement import MovementAnalyzer
from .notifications import AlertPublisher
from .schemas import coerce_report
from .tracking import EntityTrackState, TrackStateStore
from .types import (
    Alert,
    AlertSeverity,
    AlertType,
    EntityRegistry,
    IngestResult,
    LocationHistoryStore,
    LocationReport,
    NotificationDispatcher,
    ReverseGeocoder,
    ZoneRegistry,
)
from .validation import is_out_of_order, validate_report_time

_LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class IngestionStats:
    """Counters of the ingestion path."""

    reports_processed: int = 0
    reports_accepted: int = 0
    duplicates: int = 0
    out_of_order: int = 0
    reports_rejected: int = 0
    alerts_emitted: int = 0

    def as_dict(self) -> dict[str, int]:
        """Return the counters as a dictionary."""
        return asdict(self)


class IngestionCoordinator:
    """Applies location reports to engine state and emits alerts."""

    def __init__(
        self,
        config: EngineConfig,
        entity_registry: EntityRegistry,
        zone_registry: ZoneRegistry,
        history: LocationHistoryStore | None = None,
        dispatcher: NotificationDispatcher | None = None,
        describer: ReverseGeocoder | None = None,
    ) -> None:
        """Initialize the coordinator.

        Args:
            config: Engine configuration
            entity_registry: Entity registry collaborator
            zone_registry: Zone registry collaborator
            history: Location history store, ``None`` to keep no history
            dispatcher: Notification collaborator
            describer: Reverse geocoder for alert messages
        """
        self._config = config
        self._entities = entity_registry
        self._zones = zone_registry
        self._history = history
        self._tracks = TrackStateStore()
        self._duplicates = DuplicateFilter(
            config.duplicate_window, config.duplicate_distance_m
        )
        self._analyzer = MovementAnalyzer(
            config.moving_speed_threshold_kmh, config.high_speed_threshold_kmh
        )
        self._evaluator = GeofenceEvaluator(
            config.tzinfo, describer if describer is not None else RegionDescriber()
        )
        self._publisher = AlertPublisher(dispatcher, history)
        self._stats = IngestionStats()

    @property
    def config(self) -> EngineConfig:
        """Engine configuration."""
        return self._config

    @property
    def tracks(self) -> TrackStateStore:
        """Per-entity track state."""
        return self._tracks

    @property
    def analyzer(self) -> MovementAnalyzer:
        """Movement analyzer used for incremental steps."""
        return self._analyzer

    @property
    def publisher(self) -> AlertPublisher:
        """Alert publisher."""
        return self._publisher

    @property
    def stats(self) -> IngestionStats:
        """Ingestion counters."""
        return self._stats

    async def async_ingest(
        self, raw: LocationReport | Mapping[str, Any]
    ) -> IngestResult:
        """Ingest a single report.

        Args:
            raw: Typed report or report payload

        Returns:
            The ingestion outcome. Duplicates are acknowledged with
            ``accepted=False`` and ``duplicate=True``; reports older than the
            last accepted one but within the skew tolerance are stored in
            history only and flagged ``out_of_order``.

        Raises:
            InvalidCoordinateError: If the coordinate is malformed
            InvalidReportError: If another report field is malformed
            EntityNotFoundError: If the registry does not know the entity
            StaleReportError: If the report predates state beyond tolerance

        Cancellation that arrives after the report started to be applied is
        deferred; the report is then returned as accepted.
        """
        self._stats.reports_processed += 1
        try:
            result = await self._async_ingest(raw)
        except HerdTrackError as err:
            self._stats.reports_rejected += 1
            _LOGGER.warning("Rejected location report: %s", err)
            raise
        except Exception as err:
            self._stats.reports_rejected += 1
            _LOGGER.error("Collaborator failure while ingesting report: %s", err)
            raise

        if result.duplicate:
            self._stats.duplicates += 1
            _LOGGER.debug("Duplicate report for %s skipped", result.report.entity_id)
        elif result.out_of_order:
            self._stats.out_of_order += 1
        else:
            self._stats.reports_accepted += 1
            self._stats.alerts_emitted += len(result.alerts)
            _LOGGER.info(
                "Accepted report for %s at %s with %d alert(s)",
                result.report.entity_id,
                result.report.timestamp.isoformat(),
                len(result.alerts),
            )
            for alert in result.alerts:
                _LOGGER.info(
                    "%s alert (%s) for %s: %s",
                    alert.type.value,
                    alert.severity.value,
                    alert.entity_id,
                    alert.message,
                )
        return result

    async def _async_ingest(
        self, raw: LocationReport | Mapping[str, Any]
    ) -> IngestResult:
        report = coerce_report(raw)
        validate_report_time(
            report.entity_id,
            report.timestamp,
            dt_util.utcnow(),
            self._config.clock_skew,
        )
        entity_id = report.entity_id

        async with self._tracks.lock(entity_id):
            record = await self._entities.async_get_entity(entity_id)
            if record is None:
                raise EntityNotFoundError(entity_id)

            track = self._tracks.ensure(record)
            previous = track.last_report
            out_of_order = is_out_of_order(
                entity_id,
                report.timestamp,
                previous.timestamp if previous else None,
                self._config.clock_skew,
            )

            if self._duplicates.is_duplicate(report, previous):
                return IngestResult(report, accepted=False, duplicate=True)

            if out_of_order:
                _LOGGER.debug(
                    "Storing out-of-order report for %s at %s without state update",
                    entity_id,
                    report.timestamp.isoformat(),
                )
                if self._history is not None:
                    await self._history.async_append_location(report)
                return IngestResult(report, accepted=True, out_of_order=True)

            geofences = coerce_geofences(
                await self._zones.async_get_active_geofences(track.owner_scope)
            )

            apply = asyncio.ensure_future(
                self._async_apply(track, previous, report, geofences)
            )
            try:
                alerts = await asyncio.shield(apply)
            except asyncio.CancelledError:
                _LOGGER.debug(
                    "Cancellation deferred until report for %s is applied",
                    entity_id,
                )
                await asyncio.wait({apply})
                alerts = apply.result()

        return IngestResult(report, accepted=True, alerts=tuple(alerts))

    async def _async_apply(
        self,
        track: EntityTrackState,
        previous: LocationReport | None,
        report: LocationReport,
        geofences: Sequence[Geofence],
    ) -> list[Alert]:
        """Write the report through and commit it to track state.

        Runs to completion once started, even if the caller is cancelled, so
        an applied report always has its alerts evaluated and published.
        """
        device_info = track.device_info.merged_with(report)
        if self._history is not None:
            await self._history.async_append_location(report)
        await self._entities.async_update_entity_location(
            report.entity_id, report.coordinate, device_info
        )

        track.last_report = report
        track.device_info = device_info

        alerts: list[Alert] = []
        speed_kmh = self._advance_movement(track, previous, report, alerts)
        self._check_battery(track, report, alerts)
        alerts.extend(
            self._evaluator.evaluate(report, geofences, track.memberships, speed_kmh)
        )

        if alerts:
            await self._publisher.async_publish(alerts)
        return alerts

    def _advance_movement(
        self,
        track: EntityTrackState,
        previous: LocationReport | None,
        report: LocationReport,
        alerts: list[Alert],
    ) -> float | None:
        """Fold the newest interval into the rolling window.

        Returns:
            Instantaneous speed for the report in km/h
        """
        accumulator = track.accumulator
        window_start = previous.timestamp if previous else report.timestamp
        if (
            accumulator.window_start is None
            or report.timestamp - accumulator.window_start
            > self._config.movement_window
        ):
            accumulator.reset(window_start)

        if previous is None:
            return report.speed

        step = self._analyzer.step(previous, report)
        if step is None:
            return report.speed

        accumulator.add(step, report.timestamp)

        if step.is_high_speed:
            alerts.append(
                Alert(
                    type=AlertType.HIGH_SPEED,
                    entity_id=report.entity_id,
                    location=report.coordinate,
                    timestamp=report.timestamp,
                    severity=AlertSeverity.MEDIUM,
                    message=f"{step.anomaly} for {report.entity_id}",
                )
            )
        return step.speed_kmh

    def _check_battery(
        self,
        track: EntityTrackState,
        report: LocationReport,
        alerts: list[Alert],
    ) -> None:
        level = report.device_battery_level
        if level is None:
            return

        if level >= self._config.low_battery_threshold:
            track.battery_low = False
            return

        if track.battery_low:
            return

        track.battery_low = True
        alerts.append(
            Alert(
                type=AlertType.LOW_BATTERY,
                entity_id=report.entity_id,
                location=report.coordinate,
                timestamp=report.timestamp,
                severity=AlertSeverity.LOW,
                message=f"Device battery of {report.entity_id} is low: {level}%",
            )
        )
