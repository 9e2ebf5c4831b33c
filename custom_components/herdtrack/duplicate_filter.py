"""Duplicate and noise suppression for incoming location reports.

Devices on a weak signal retransmit the same fix in bursts. Those bursts would
otherwise pollute movement analysis and trigger spurious geofence
re-evaluation, so a report that is both close in time and close in space to
the entity's last accepted report is acknowledged and dropped.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from .const import DEFAULT_DUPLICATE_DISTANCE_M, DEFAULT_DUPLICATE_WINDOW_SECONDS
from .geometry import distance
from .types import LocationReport

_LOGGER = logging.getLogger(__name__)


class DuplicateFilter:
    """Decides whether a report is a retransmission of the last one."""

    def __init__(
        self,
        window: timedelta = timedelta(seconds=DEFAULT_DUPLICATE_WINDOW_SECONDS),
        distance_m: float = DEFAULT_DUPLICATE_DISTANCE_M,
    ) -> None:
        """Initialize the filter.

        Args:
            window: Reports closer together than this are candidates
            distance_m: Reports closer together than this are candidates
        """
        self._window = window
        self._distance_m = distance_m

    def is_duplicate(
        self, report: LocationReport, last_report: LocationReport | None
    ) -> bool:
        """Return True if ``report`` repeats ``last_report``.

        Both conditions must hold: ``|dt| < window`` and ``distance < distance_m``.
        """
        if last_report is None:
            return False

        elapsed = abs(report.timestamp - last_report.timestamp)
        if elapsed >= self._window:
            return False

        moved = distance(report.coordinate, last_report.coordinate)
        if moved >= self._distance_m:
            return False

        _LOGGER.debug(
            "Duplicate report for %s: %.1fs and %.2fm after last accepted report",
            report.entity_id,
            elapsed.total_seconds(),
            moved,
        )
        return True
