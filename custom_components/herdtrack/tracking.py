"""Engine-owned per-entity tracking state.

Each tracked entity has exactly one :class:`EntityTrackState` and one
:class:`asyncio.Lock`. Everything in the state, including the geofence
membership cache, is only mutated while that lock is held.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from homeassistant.util import dt as dt_util

from .geofence import MembershipState
from .movement import MovementAccumulator
from .types import DeviceInfo, EntityRecord, LocationReport

_LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class EntityTrackState:
    """Current position, movement totals and zone memberships of one entity."""

    entity_id: str
    owner_scope: str | None = None
    last_report: LocationReport | None = None
    device_info: DeviceInfo = field(default_factory=DeviceInfo)
    battery_low: bool = False
    accumulator: MovementAccumulator = field(default_factory=MovementAccumulator)
    memberships: dict[str, MembershipState] = field(default_factory=dict)
    registered: bool = False

    def seed(self, record: EntityRecord) -> None:
        """Adopt what the registry knows about the entity."""
        self.owner_scope = record.owner_scope
        if self.registered:
            return
        self.registered = True
        self.device_info = record.device_info

        if self.last_report is None and record.last_location and record.last_seen:
            last_seen = record.last_seen
            if last_seen.tzinfo is None:
                last_seen = last_seen.replace(tzinfo=dt_util.UTC)
            self.last_report = LocationReport(
                entity_id=self.entity_id,
                coordinate=record.last_location,
                timestamp=last_seen,
                source=record.last_source,
            )
            _LOGGER.debug(
                "Seeded %s from registry position at %s",
                self.entity_id,
                last_seen.isoformat(),
            )


class TrackStateStore:
    """Holds track state and the per-entity writer locks."""

    def __init__(self) -> None:
        """Initialize an empty store."""
        self._states: dict[str, EntityTrackState] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._states)

    def __iter__(self) -> Iterator[EntityTrackState]:
        return iter(list(self._states.values()))

    def lock(self, entity_id: str) -> asyncio.Lock:
        """Return the writer lock of ``entity_id``."""
        lock = self._locks.get(entity_id)
        if lock is None:
            lock = self._locks[entity_id] = asyncio.Lock()
        return lock

    def get(self, entity_id: str) -> EntityTrackState | None:
        """Return the state of ``entity_id`` if it has been tracked."""
        return self._states.get(entity_id)

    def ensure(self, record: EntityRecord) -> EntityTrackState:
        """Return the state for ``record``, creating and seeding it lazily.

        Must be called with the entity's lock held.
        """
        state = self._states.get(record.entity_id)
        if state is None:
            state = self._states[record.entity_id] = EntityTrackState(
                record.entity_id
            )
        state.seed(record)
        return state

    def export_memberships(self) -> dict[str, dict[str, dict[str, Any]]]:
        """Snapshot every membership, keyed by entity and geofence id."""
        return {
            state.entity_id: {
                zone_id: membership.to_payload()
                for zone_id, membership in state.memberships.items()
            }
            for state in self._states.values()
            if state.memberships
        }

    def restore_memberships(
        self, payload: Mapping[str, Mapping[str, Mapping[str, Any]]]
    ) -> int:
        """Restore a snapshot from :meth:`export_memberships`.

        Returns:
            Number of memberships restored
        """
        restored = 0
        for entity_id, zones in payload.items():
            state = self._states.get(entity_id)
            if state is None:
                state = self._states[entity_id] = EntityTrackState(entity_id)
            for zone_id, membership in zones.items():
                state.memberships[zone_id] = MembershipState.from_payload(membership)
                restored += 1
        _LOGGER.debug("Restored %d geofence memberships", restored)
        return restored
