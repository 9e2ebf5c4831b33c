"""Engine configuration for HerdTrack."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass
from datetime import timedelta, tzinfo
from typing import Any

import voluptuous as vol
from homeassistant.util import dt as dt_util

from .const import (
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
)
from .exceptions import ConfigurationError
from .schemas import ENGINE_OPTIONS_SCHEMA


@dataclass(frozen=True, slots=True)
class EngineConfig:
    """Tunable thresholds and limits of the tracking engine.

    Attributes:
        clock_skew_seconds: Tolerance for future and out-of-order timestamps
        duplicate_window_seconds: Reports closer in time are duplicate candidates
        duplicate_distance_m: Reports closer in space are duplicate candidates
        moving_speed_threshold_kmh: Intervals faster than this count as moving
        high_speed_threshold_kmh: Intervals faster than this raise HIGH_SPEED
        low_battery_threshold: Battery percentage below which LOW_BATTERY fires
        movement_window_seconds: Length of the rolling movement window
        batch_chunk_size: Reports per batch chunk
        batch_max_concurrency: Chunks processed concurrently
        batch_timeout_seconds: Overall batch deadline, ``None`` for no deadline
        time_zone: IANA zone used to evaluate geofence time windows
    """

    clock_skew_seconds: float = DEFAULT_CLOCK_SKEW_SECONDS
    duplicate_window_seconds: float = DEFAULT_DUPLICATE_WINDOW_SECONDS
    duplicate_distance_m: float = DEFAULT_DUPLICATE_DISTANCE_M
    moving_speed_threshold_kmh: float = DEFAULT_MOVING_SPEED_THRESHOLD_KMH
    high_speed_threshold_kmh: float = DEFAULT_HIGH_SPEED_THRESHOLD_KMH
    low_battery_threshold: int = DEFAULT_LOW_BATTERY_THRESHOLD
    movement_window_seconds: float = DEFAULT_MOVEMENT_WINDOW_SECONDS
    batch_chunk_size: int = DEFAULT_BATCH_CHUNK_SIZE
    batch_max_concurrency: int = DEFAULT_BATCH_MAX_CONCURRENCY
    batch_timeout_seconds: float | None = DEFAULT_BATCH_TIMEOUT_SECONDS
    time_zone: str = DEFAULT_TIME_ZONE

    @classmethod
    def from_options(cls, options: Mapping[str, Any] | None = None) -> EngineConfig:
        """Build a config from an options mapping.

        Raises:
            ConfigurationError: If an option is unknown or out of range
        """
        try:
            validated = ENGINE_OPTIONS_SCHEMA(dict(options or {}))
        except vol.MultipleInvalid as err:
            error = err.errors[0]
            setting = str(error.path[0]) if error.path else "options"
            value = (options or {}).get(setting)
            raise ConfigurationError(setting, value, error.msg) from err
        return cls(**validated)

    @property
    def clock_skew(self) -> timedelta:
        """Clock-skew tolerance as a timedelta."""
        return timedelta(seconds=self.clock_skew_seconds)

    @property
    def duplicate_window(self) -> timedelta:
        """Duplicate time window as a timedelta."""
        return timedelta(seconds=self.duplicate_window_seconds)

    @property
    def movement_window(self) -> timedelta:
        """Rolling movement window as a timedelta."""
        return timedelta(seconds=self.movement_window_seconds)

    @property
    def tzinfo(self) -> tzinfo:
        """Time zone used for time-window evaluation."""
        return dt_util.get_time_zone(self.time_zone) or dt_util.UTC

    def as_dict(self) -> dict[str, Any]:
        """Return the effective options."""
        return asdict(self)
