"""Best-effort reverse geocoding for alert messages."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .geometry import BoundingBox
from .types import Coordinate, ReverseGeocoder

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Region:
    """Named region approximated by a bounding box."""

    name: str
    box: BoundingBox


DEFAULT_REGIONS: tuple[Region, ...] = (
    Region(
        "Tabasco, México",
        BoundingBox(north=18.7, south=17.3, east=-91.0, west=-94.1),
    ),
    Region("México", BoundingBox(north=21.0, south=17.0, east=-86.0, west=-99.0)),
)


class RegionDescriber:
    """Describes a coordinate by the first region box containing it.

    Coordinates outside every region are described by their raw
    ``lat, lon`` rounded to four decimals.
    """

    def __init__(self, regions: tuple[Region, ...] = DEFAULT_REGIONS) -> None:
        """Initialize with regions ordered from most to least specific."""
        self._regions = regions

    def describe(self, coordinate: Coordinate) -> str:
        """Return a human readable description of ``coordinate``."""
        raw = coordinate.format()
        for region in self._regions:
            if region.box.contains(coordinate):
                return f"{region.name} ({raw})"
        return raw


def describe_safely(describer: ReverseGeocoder | None, coordinate: Coordinate) -> str:
    """Describe ``coordinate``, degrading to the raw coordinate on failure."""
    if describer is None:
        return coordinate.format()
    try:
        return describer.describe(coordinate)
    except Exception as err:  # noqa: BLE001
        _LOGGER.debug(
            "Reverse geocoding failed for %s: %s", coordinate.format(), err
        )
        return coordinate.format()
