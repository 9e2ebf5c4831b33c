"""Movement analysis for tracked livestock.

Derives instantaneous speed and heading from consecutive reports, accumulates
distance and time moving/resting over a window, classifies the dominant
movement pattern and flags speed anomalies.

Python: 3.13+
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime

from .const import (
    DEFAULT_HIGH_SPEED_THRESHOLD_KMH,
    DEFAULT_MOVING_SPEED_THRESHOLD_KMH,
    GRAZING_MIN_SPEED_KMH,
    GRAZING_MOVEMENT_RATIO,
    INSUFFICIENT_DATA_NOTE,
    RESTING_MOVEMENT_RATIO,
    RUNNING_MIN_SPEED_KMH,
    WALKING_MIN_SPEED_KMH,
    WALKING_MOVEMENT_RATIO,
)
from .geometry import bearing, distance
from .types import LocationReport, MovementAnalysis, MovementPattern

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class MovementStep:
    """Movement between two consecutive reports."""

    distance_m: float
    elapsed_seconds: float
    speed_kmh: float
    heading: float
    is_moving: bool
    is_high_speed: bool

    @property
    def anomaly(self) -> str | None:
        """Human readable anomaly note, if the step is anomalous."""
        if self.is_high_speed:
            return f"High speed detected: {self.speed_kmh:.1f} km/h"
        return None


@dataclass(slots=True)
class MovementAccumulator:
    """Rolling movement totals for one entity."""

    window_start: datetime | None = None
    last_timestamp: datetime | None = None
    total_distance_m: float = 0.0
    max_speed_kmh: float = 0.0
    moving_seconds: float = 0.0
    resting_seconds: float = 0.0
    anomalies: list[str] = field(default_factory=list)

    def reset(self, window_start: datetime) -> None:
        """Start a new window at ``window_start``."""
        self.window_start = window_start
        self.last_timestamp = window_start
        self.total_distance_m = 0.0
        self.max_speed_kmh = 0.0
        self.moving_seconds = 0.0
        self.resting_seconds = 0.0
        self.anomalies.clear()

    def add(self, step: MovementStep, timestamp: datetime) -> None:
        """Fold ``step`` ending at ``timestamp`` into the totals."""
        self.total_distance_m += step.distance_m
        self.max_speed_kmh = max(self.max_speed_kmh, step.speed_kmh)
        if step.is_moving:
            self.moving_seconds += step.elapsed_seconds
        else:
            self.resting_seconds += step.elapsed_seconds
        if step.anomaly:
            self.anomalies.append(step.anomaly)
        self.last_timestamp = timestamp


class MovementAnalyzer:
    """Speed, distance and pattern analysis over report sequences."""

    def __init__(
        self,
        moving_speed_threshold_kmh: float = DEFAULT_MOVING_SPEED_THRESHOLD_KMH,
        high_speed_threshold_kmh: float = DEFAULT_HIGH_SPEED_THRESHOLD_KMH,
    ) -> None:
        """Initialize the analyzer.

        Args:
            moving_speed_threshold_kmh: Faster intervals count as moving
            high_speed_threshold_kmh: Faster intervals are anomalies
        """
        self._moving_threshold = moving_speed_threshold_kmh
        self._high_speed_threshold = high_speed_threshold_kmh

    @property
    def high_speed_threshold_kmh(self) -> float:
        """Speed above which an interval is anomalous."""
        return self._high_speed_threshold

    def step(
        self, previous: LocationReport, current: LocationReport
    ) -> MovementStep | None:
        """Analyze the interval between two reports.

        Returns:
            The movement step, or ``None`` when the reports are not in
            chronological order
        """
        elapsed = (current.timestamp - previous.timestamp).total_seconds()
        if elapsed <= 0:
            return None

        meters = distance(previous.coordinate, current.coordinate)
        speed_kmh = (meters / elapsed) * 3.6

        return MovementStep(
            distance_m=meters,
            elapsed_seconds=elapsed,
            speed_kmh=speed_kmh,
            heading=bearing(previous.coordinate, current.coordinate),
            is_moving=speed_kmh > self._moving_threshold,
            is_high_speed=speed_kmh > self._high_speed_threshold,
        )

    def analyze(
        self,
        entity_id: str,
        reports: Sequence[LocationReport],
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> MovementAnalysis:
        """Analyze an ordered report history.

        Args:
            entity_id: Entity the reports belong to
            reports: Reports in chronological order
            start: Start of the requested period
            end: End of the requested period

        Returns:
            Movement analysis; ``UNKNOWN`` with an explicit note when there
            are fewer than two usable reports
        """
        period_start = start or (reports[0].timestamp if reports else None)
        period_end = end or (reports[-1].timestamp if reports else None)

        accumulator = MovementAccumulator()
        intervals = 0
        for previous, current in zip(reports, reports[1:]):
            step = self.step(previous, current)
            if step is None:
                _LOGGER.debug(
                    "Skipping out-of-order interval for %s at %s",
                    entity_id,
                    current.timestamp.isoformat(),
                )
                continue
            accumulator.add(step, current.timestamp)
            intervals += 1

        if intervals == 0:
            return self._insufficient(entity_id, period_start, period_end)

        period_seconds = (
            (end - start).total_seconds()
            if start is not None and end is not None
            else 0.0
        )
        return self._build(
            entity_id, accumulator, period_start, period_end, period_seconds
        )

    def summarize(
        self, entity_id: str, accumulator: MovementAccumulator
    ) -> MovementAnalysis:
        """Build an analysis from rolling totals."""
        if accumulator.moving_seconds + accumulator.resting_seconds <= 0:
            return self._insufficient(
                entity_id, accumulator.window_start, accumulator.last_timestamp
            )
        return self._build(
            entity_id,
            accumulator,
            accumulator.window_start,
            accumulator.last_timestamp,
            0.0,
        )

    @staticmethod
    def classify(
        moving_minutes: float, resting_minutes: float, average_speed_kmh: float
    ) -> MovementPattern:
        """Classify the dominant movement pattern of a window."""
        total = moving_minutes + resting_minutes
        ratio = moving_minutes / total if total > 0 else 0.0

        if ratio > WALKING_MOVEMENT_RATIO and average_speed_kmh > WALKING_MIN_SPEED_KMH:
            return MovementPattern.WALKING
        if ratio > GRAZING_MOVEMENT_RATIO and average_speed_kmh > GRAZING_MIN_SPEED_KMH:
            return MovementPattern.GRAZING
        if ratio < RESTING_MOVEMENT_RATIO:
            return MovementPattern.RESTING
        if average_speed_kmh > RUNNING_MIN_SPEED_KMH:
            return MovementPattern.RUNNING
        # Grazing dominates a herd's day
        return MovementPattern.GRAZING

    def _build(
        self,
        entity_id: str,
        accumulator: MovementAccumulator,
        period_start: datetime | None,
        period_end: datetime | None,
        period_seconds: float,
    ) -> MovementAnalysis:
        if period_seconds <= 0:
            period_seconds = accumulator.moving_seconds + accumulator.resting_seconds
        average_speed = (
            (accumulator.total_distance_m / 1000) / (period_seconds / 3600)
            if period_seconds > 0
            else 0.0
        )
        moving_minutes = accumulator.moving_seconds / 60
        resting_minutes = accumulator.resting_seconds / 60

        return MovementAnalysis(
            entity_id=entity_id,
            period_start=period_start,
            period_end=period_end,
            total_distance_m=accumulator.total_distance_m,
            average_speed_kmh=average_speed,
            max_speed_kmh=accumulator.max_speed_kmh,
            time_moving_minutes=moving_minutes,
            time_resting_minutes=resting_minutes,
            pattern=self.classify(moving_minutes, resting_minutes, average_speed),
            anomalies=tuple(accumulator.anomalies),
        )

    @staticmethod
    def _insufficient(
        entity_id: str,
        period_start: datetime | None,
        period_end: datetime | None,
    ) -> MovementAnalysis:
        return MovementAnalysis(
            entity_id=entity_id,
            period_start=period_start,
            period_end=period_end,
            total_distance_m=0.0,
            average_speed_kmh=0.0,
            max_speed_kmh=0.0,
            time_moving_minutes=0.0,
            time_resting_minutes=0.0,
            pattern=MovementPattern.UNKNOWN,
            anomalies=(INSUFFICIENT_DATA_NOTE,),
        )
