"""Global test configuration for HerdTrack tests.

Provides in-memory collaborators, a ready engine and a report factory around
the default ranch centre.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

import pytest
from custom_components.herdtrack.engine import HerdTrackEngine
from custom_components.herdtrack.storage import (
    InMemoryEntityRegistry,
    InMemoryLocationHistory,
    InMemoryZoneRegistry,
    RecordingDispatcher,
)
from custom_components.herdtrack.types import LocationReport

from tests.helpers import BASE_TIME, RANCH_CENTER, RANCH_SCOPE, offset


@pytest.fixture
def base_time() -> datetime:
    """Fixed reference time in the past."""
    return BASE_TIME


@pytest.fixture
def make_report() -> Callable[..., LocationReport]:
    """Factory for location reports relative to the ranch centre."""

    def _make(
        entity_id: str = "cow-1",
        *,
        north_m: float = 0.0,
        east_m: float = 0.0,
        seconds: float = 0.0,
        **kwargs: Any,
    ) -> LocationReport:
        return LocationReport(
            entity_id=entity_id,
            coordinate=offset(RANCH_CENTER, north_m, east_m),
            timestamp=BASE_TIME + timedelta(seconds=seconds),
            **kwargs,
        )

    return _make


@pytest.fixture
def entity_registry() -> InMemoryEntityRegistry:
    """Registry with three cows on the same ranch."""
    registry = InMemoryEntityRegistry()
    for entity_id in ("cow-1", "cow-2", "cow-3"):
        registry.register(entity_id, RANCH_SCOPE, device_id=f"collar-{entity_id}")
    return registry


@pytest.fixture
def zone_registry() -> InMemoryZoneRegistry:
    """Empty zone registry."""
    return InMemoryZoneRegistry()


@pytest.fixture
def history() -> InMemoryLocationHistory:
    """Empty location history."""
    return InMemoryLocationHistory()


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    """Dispatcher recording every alert."""
    return RecordingDispatcher()


@pytest.fixture
def engine(
    entity_registry: InMemoryEntityRegistry,
    zone_registry: InMemoryZoneRegistry,
    history: InMemoryLocationHistory,
    dispatcher: RecordingDispatcher,
) -> HerdTrackEngine:
    """Engine wired to the in-memory collaborators."""
    return HerdTrackEngine(
        entity_registry,
        zone_registry,
        history=history,
        dispatcher=dispatcher,
    )
