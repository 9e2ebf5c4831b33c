"""Constants for the HerdTrack geospatial tracking engine.

Python: 3.13+
"""

from __future__ import annotations

from typing import Final

# Geometry
EARTH_RADIUS_KM: Final[float] = 6371.0
EARTH_RADIUS_M: Final[float] = EARTH_RADIUS_KM * 1000.0
KM_PER_DEGREE_LATITUDE: Final[float] = 111.32

MIN_LATITUDE: Final[float] = -90.0
MAX_LATITUDE: Final[float] = 90.0
MIN_LONGITUDE: Final[float] = -180.0
MAX_LONGITUDE: Final[float] = 180.0
MIN_POLYGON_VERTICES: Final[int] = 3
MIN_CORRIDOR_VERTICES: Final[int] = 2

# Option keys
CONF_CLOCK_SKEW_SECONDS: Final[str] = "clock_skew_seconds"
CONF_DUPLICATE_WINDOW_SECONDS: Final[str] = "duplicate_window_seconds"
CONF_DUPLICATE_DISTANCE_M: Final[str] = "duplicate_distance_m"
CONF_MOVING_SPEED_THRESHOLD_KMH: Final[str] = "moving_speed_threshold_kmh"
CONF_HIGH_SPEED_THRESHOLD_KMH: Final[str] = "high_speed_threshold_kmh"
CONF_LOW_BATTERY_THRESHOLD: Final[str] = "low_battery_threshold"
CONF_MOVEMENT_WINDOW_SECONDS: Final[str] = "movement_window_seconds"
CONF_BATCH_CHUNK_SIZE: Final[str] = "batch_chunk_size"
CONF_BATCH_MAX_CONCURRENCY: Final[str] = "batch_max_concurrency"
CONF_BATCH_TIMEOUT_SECONDS: Final[str] = "batch_timeout_seconds"
CONF_TIME_ZONE: Final[str] = "time_zone"

# Defaults
DEFAULT_CLOCK_SKEW_SECONDS: Final[int] = 60
DEFAULT_DUPLICATE_WINDOW_SECONDS: Final[int] = 60
DEFAULT_DUPLICATE_DISTANCE_M: Final[float] = 5.0
DEFAULT_MOVING_SPEED_THRESHOLD_KMH: Final[float] = 0.5
DEFAULT_HIGH_SPEED_THRESHOLD_KMH: Final[float] = 15.0  # grazing livestock
DEFAULT_LOW_BATTERY_THRESHOLD: Final[int] = 15  # percent
DEFAULT_MOVEMENT_WINDOW_SECONDS: Final[int] = 3600
DEFAULT_HISTORY_LIMIT: Final[int] = 500
DEFAULT_ALERT_LOG_LIMIT: Final[int] = 1000
DEFAULT_BATCH_CHUNK_SIZE: Final[int] = 10
DEFAULT_BATCH_MAX_CONCURRENCY: Final[int] = 10
DEFAULT_BATCH_TIMEOUT_SECONDS: Final[float] = 120.0
DEFAULT_TIME_ZONE: Final[str] = "UTC"

# Movement pattern thresholds
WALKING_MOVEMENT_RATIO: Final[float] = 0.7
WALKING_MIN_SPEED_KMH: Final[float] = 3.0
GRAZING_MOVEMENT_RATIO: Final[float] = 0.5
GRAZING_MIN_SPEED_KMH: Final[float] = 1.0
RESTING_MOVEMENT_RATIO: Final[float] = 0.2
RUNNING_MIN_SPEED_KMH: Final[float] = 8.0

INSUFFICIENT_DATA_NOTE: Final[str] = "insufficient data"

# Default ranch centre (Villahermosa, Tabasco)
RANCH_DEFAULT_LATITUDE: Final[float] = 17.9869
RANCH_DEFAULT_LONGITUDE: Final[float] = -92.9303


# Group analysis
DEFAULT_GROUP_MAX_DISTANCE_M: Final[float] = 500.0
