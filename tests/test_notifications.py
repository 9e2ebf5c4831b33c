"""Tests for HerdTrack alert publication."""

from __future__ import annotations

from unittest.mock import AsyncMock, Mock

from custom_components.herdtrack.notifications import AlertPublisher
from custom_components.herdtrack.storage import (
    InMemoryLocationHistory,
    RecordingDispatcher,
)
from custom_components.herdtrack.types import Alert, AlertSeverity, AlertType

from tests.helpers import BASE_TIME, RANCH_CENTER


def _alert(alert_type: AlertType = AlertType.GEOFENCE_ENTRY) -> Alert:
    return Alert(
        type=alert_type,
        entity_id="cow-1",
        location=RANCH_CENTER,
        timestamp=BASE_TIME,
        severity=AlertSeverity.MEDIUM,
        message="cow-1 entered zone 'Pasture'",
        geofence_id="pasture",
    )


class TestAlertPublisher:
    """Test recording and dispatching alerts."""

    async def test_publish(self):
        """Test alerts are recorded and dispatched in order."""
        dispatcher = RecordingDispatcher()
        history = InMemoryLocationHistory()
        publisher = AlertPublisher(dispatcher, history)
        alerts = [_alert(), _alert(AlertType.SPEED_LIMIT_EXCEEDED)]

        failed = await publisher.async_publish(alerts)

        assert failed == 0
        assert dispatcher.dispatched == alerts
        assert history.alerts == alerts
        assert publisher.published == 2

    async def test_dispatch_failure_is_swallowed(self):
        """Test one failing dispatch does not stop the others."""
        dispatcher = Mock()
        dispatcher.async_dispatch = AsyncMock(
            side_effect=[ConnectionError("sms gateway"), None]
        )
        publisher = AlertPublisher(dispatcher)
        first, second = _alert(), _alert()

        failed = await publisher.async_publish([first, second])

        assert failed == 1
        assert publisher.failures == 1
        assert publisher.published == 1
        assert publisher.last_failure.alert_id == first.id
        assert "sms gateway" in str(publisher.last_failure)

    async def test_history_failure_is_counted(self):
        """Test an unrecorded alert is still dispatched."""
        dispatcher = RecordingDispatcher()
        history = Mock()
        history.async_append_alert = AsyncMock(side_effect=OSError("read-only"))
        publisher = AlertPublisher(dispatcher, history)
        alert = _alert()

        assert await publisher.async_publish([alert]) == 0

        assert publisher.record_failures == 1
        assert publisher.failures == 0
        assert dispatcher.dispatched == [alert]

    async def test_without_dispatcher(self):
        """Test alerts are only recorded when no dispatcher is wired."""
        history = InMemoryLocationHistory()
        publisher = AlertPublisher(None, history)

        assert await publisher.async_publish([_alert()]) == 0
        assert len(history.alerts) == 1
        assert publisher.published == 0

    def test_alert_payload(self):
        """Test the alert payload."""
        alert = _alert()
        payload = alert.to_payload()

        assert payload["id"].startswith("alert_")
        assert payload["type"] == "GEOFENCE_ENTRY"
        assert payload["severity"] == "MEDIUM"
        assert payload["timestamp"] == BASE_TIME.isoformat()
        assert payload["location"]["latitude"] == RANCH_CENTER.latitude
