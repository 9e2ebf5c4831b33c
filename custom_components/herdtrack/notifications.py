"""Alert hand-off to the host's notification collaborator.

Delivery (push, SMS, webhook) belongs to the dispatcher the host wires in.
An undelivered or unrecorded alert never fails the ingestion of the report
that raised it, so dispatch and alert history errors are logged and counted
here instead of propagated.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from .exceptions import DispatchFailureError
from .types import Alert, LocationHistoryStore, NotificationDispatcher

_LOGGER = logging.getLogger(__name__)


class AlertPublisher:
    """Records alerts in history and hands them to the dispatcher."""

    def __init__(
        self,
        dispatcher: NotificationDispatcher | None,
        history: LocationHistoryStore | None = None,
    ) -> None:
        """Initialize the publisher.

        Args:
            dispatcher: Notification collaborator, ``None`` to only record
            history: Store that receives alert records
        """
        self._dispatcher = dispatcher
        self._history = history
        self._published = 0
        self._failures = 0
        self._record_failures = 0
        self._last_failure: DispatchFailureError | None = None

    @property
    def published(self) -> int:
        """Alerts handed to the dispatcher successfully."""
        return self._published

    @property
    def failures(self) -> int:
        """Alerts the dispatcher failed to accept."""
        return self._failures

    @property
    def record_failures(self) -> int:
        """Alerts the history store failed to record."""
        return self._record_failures

    @property
    def last_failure(self) -> DispatchFailureError | None:
        """Most recent dispatch failure."""
        return self._last_failure

    async def async_publish(self, alerts: Iterable[Alert]) -> int:
        """Record and dispatch ``alerts``.

        A failed history write does not stop the alert from being dispatched.

        Returns:
            Number of alerts that could not be dispatched
        """
        failed = 0
        for alert in alerts:
            if self._history is not None:
                try:
                    await self._history.async_append_alert(alert)
                except Exception as err:  # noqa: BLE001
                    self._record_failures += 1
                    _LOGGER.error(
                        "Failed to record %s alert %s for %s: %s",
                        alert.type.value,
                        alert.id,
                        alert.entity_id,
                        err,
                    )

            if self._dispatcher is None:
                continue

            try:
                await self._dispatcher.async_dispatch(alert)
            except Exception as err:  # noqa: BLE001
                failed += 1
                self._failures += 1
                self._last_failure = DispatchFailureError(alert.id, str(err))
                _LOGGER.warning(
                    "Failed to dispatch %s alert %s for %s: %s",
                    alert.type.value,
                    alert.id,
                    alert.entity_id,
                    err,
                )
            else:
                self._published += 1
                _LOGGER.debug(
                    "Dispatched %s alert %s for %s",
                    alert.type.value,
                    alert.id,
                    alert.entity_id,
                )
        return failed
