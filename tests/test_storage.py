"""Tests for the in-memory HerdTrack collaborators."""

from __future__ import annotations

from datetime import timedelta

import pytest
from custom_components.herdtrack.exceptions import (
    EntityNotFoundError,
    GeometryConfigError,
)
from custom_components.herdtrack.geofence import Geofence
from custom_components.herdtrack.storage import (
    InMemoryEntityRegistry,
    InMemoryLocationHistory,
    InMemoryZoneRegistry,
)
from custom_components.herdtrack.types import (
    Alert,
    AlertSeverity,
    AlertType,
    DeviceInfo,
)

from tests.helpers import BASE_TIME, RANCH_CENTER, circle_zone, square_polygon_zone


class TestEntityRegistry:
    """Test the dictionary-backed entity registry."""

    async def test_register_and_get(self):
        """Test registered entities are returned."""
        registry = InMemoryEntityRegistry()
        registry.register("cow-1", "ranch-1", device_id="collar-1")

        record = await registry.async_get_entity("cow-1")
        assert record.owner_scope == "ranch-1"
        assert record.device_info.device_id == "collar-1"
        assert await registry.async_get_entity("cow-2") is None

    async def test_update_location(self):
        """Test location updates replace the record."""
        registry = InMemoryEntityRegistry()
        registry.register("cow-1")

        await registry.async_update_entity_location(
            "cow-1", RANCH_CENTER, DeviceInfo(battery_level=70, last_seen=BASE_TIME)
        )

        record = registry.get("cow-1")
        assert record.last_location == RANCH_CENTER
        assert record.last_seen == BASE_TIME
        assert record.device_info.battery_level == 70

    async def test_update_unknown(self):
        """Test updating an unknown entity."""
        registry = InMemoryEntityRegistry()
        with pytest.raises(EntityNotFoundError):
            await registry.async_update_entity_location(
                "ghost", RANCH_CENTER, DeviceInfo()
            )


class TestZoneRegistry:
    """Test the zone registry."""

    def test_load_skips_invalid(self):
        """Test invalid payloads are skipped on load."""
        registry = InMemoryZoneRegistry()
        loaded = registry.load(
            [circle_zone(), {**square_polygon_zone(), "shape_params": {}}]
        )

        assert loaded == 1
        assert [zone.id for zone in registry.zones] == ["pasture"]

    def test_add_invalid_raises(self):
        """Test adding a single invalid zone raises."""
        registry = InMemoryZoneRegistry()
        with pytest.raises(GeometryConfigError):
            registry.add({**circle_zone(), "shape_type": "TRIANGLE"})

    def test_add_replaces_and_remove(self):
        """Test zones are keyed by id."""
        registry = InMemoryZoneRegistry([circle_zone(radius_m=100)])
        registry.add(Geofence.from_payload(circle_zone(radius_m=300)))

        assert len(registry.zones) == 1
        assert registry.zones[0].shape.radius_m == 300
        assert registry.remove("pasture")
        assert not registry.remove("pasture")

    async def test_active_geofences_by_scope(self):
        """Test scoping and the active flag."""
        registry = InMemoryZoneRegistry(
            [
                circle_zone("shared"),
                circle_zone("mine", owner_scope="ranch-1"),
                circle_zone("theirs", owner_scope="ranch-2"),
                circle_zone("retired", is_active=False),
            ]
        )

        zones = await registry.async_get_active_geofences("ranch-1")
        assert sorted(zone.id for zone in zones) == ["mine", "shared"]
        unscoped = await registry.async_get_active_geofences(None)
        assert [zone.id for zone in unscoped] == ["shared"]


class TestLocationHistory:
    """Test the bounded history store."""

    async def test_chronological_order(self, make_report):
        """Test history is returned sorted by timestamp."""
        history = InMemoryLocationHistory()
        late = make_report(seconds=600)
        early = make_report(north_m=10)
        await history.async_append_location(late)
        await history.async_append_location(early)

        assert await history.async_get_locations("cow-1") == [early, late]
        assert await history.async_get_locations("cow-2") == []

    async def test_range_filter(self, make_report):
        """Test start and end are inclusive."""
        history = InMemoryLocationHistory()
        for index in range(5):
            await history.async_append_location(make_report(seconds=60 * index))

        reports = await history.async_get_locations(
            "cow-1",
            BASE_TIME + timedelta(seconds=60),
            BASE_TIME + timedelta(seconds=180),
        )
        assert [r.timestamp for r in reports] == [
            BASE_TIME + timedelta(seconds=s) for s in (60, 120, 180)
        ]

    async def test_limit_evicts_oldest(self, make_report):
        """Test the per-entity limit."""
        history = InMemoryLocationHistory(limit=3)
        for index in range(5):
            await history.async_append_location(make_report(seconds=60 * index))

        reports = await history.async_get_locations("cow-1")
        assert len(reports) == 3
        assert reports[0].timestamp == BASE_TIME + timedelta(seconds=120)

    async def test_alert_log_evicts_oldest(self):
        """Test the alert log keeps only the newest records."""
        history = InMemoryLocationHistory(alert_limit=2)
        alerts = [
            Alert(
                type=AlertType.LOW_BATTERY,
                entity_id="cow-1",
                location=RANCH_CENTER,
                timestamp=BASE_TIME + timedelta(minutes=index),
                severity=AlertSeverity.LOW,
                message=f"battery check {index}",
            )
            for index in range(3)
        ]
        for alert in alerts:
            await history.async_append_alert(alert)

        assert history.alerts == alerts[1:]
