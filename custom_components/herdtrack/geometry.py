"""Geometry kernel for HerdTrack.

Pure functions over latitude/longitude coordinates: great-circle distance,
bearing, bounding boxes, centroids and the point-in-shape tests used by the
geofence evaluator. Nothing here holds state or suspends.

Python: 3.13+
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass

from .const import (
    EARTH_RADIUS_M,
    KM_PER_DEGREE_LATITUDE,
    MIN_CORRIDOR_VERTICES,
    MIN_POLYGON_VERTICES,
)
from .types import Coordinate


@dataclass(frozen=True, slots=True)
class BoundingBox:
    """Latitude/longitude box.

    ``east`` may exceed 180 or ``west`` fall below -180 when the box straddles
    the antimeridian; ``contains`` accounts for the wrap.
    """

    north: float
    south: float
    east: float
    west: float

    def contains(self, point: Coordinate) -> bool:
        """Check whether ``point`` lies inside or on the edge of the box."""
        if not self.south <= point.latitude <= self.north:
            return False
        if self.east - self.west >= 360.0:
            return True
        return any(
            self.west <= point.longitude + shift <= self.east
            for shift in (-360.0, 0.0, 360.0)
        )

    def expanded(self, margin_m: float) -> BoundingBox:
        """Return a box grown by ``margin_m`` meters on every side."""
        lat_delta = margin_m / 1000.0 / KM_PER_DEGREE_LATITUDE
        # Widest longitude span sits at the latitude nearest a pole
        lon_delta = _longitude_delta(
            margin_m / 1000.0, min(90.0, max(abs(self.north), abs(self.south)))
        )
        return BoundingBox(
            north=self.north + lat_delta,
            south=self.south - lat_delta,
            east=self.east + lon_delta,
            west=self.west - lon_delta,
        )


def distance(a: Coordinate, b: Coordinate) -> float:
    """Calculate the Haversine great-circle distance between two points.

    Args:
        a: First coordinate
        b: Second coordinate

    Returns:
        Distance in meters
    """
    lat1_rad = math.radians(a.latitude)
    lat2_rad = math.radians(b.latitude)
    dlat = lat2_rad - lat1_rad
    dlon = math.radians(b.longitude - a.longitude)

    h = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2) ** 2
    )
    # Rounding can push h marginally past 1 for antipodal points
    h = min(1.0, h)

    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def bearing(a: Coordinate, b: Coordinate) -> float:
    """Calculate the initial bearing from ``a`` to ``b``.

    Returns:
        Bearing in degrees (0-360)
    """
    lat1_rad = math.radians(a.latitude)
    lat2_rad = math.radians(b.latitude)
    dlon_rad = math.radians(b.longitude - a.longitude)

    y = math.sin(dlon_rad) * math.cos(lat2_rad)
    x = math.cos(lat1_rad) * math.sin(lat2_rad) - math.sin(lat1_rad) * math.cos(
        lat2_rad
    ) * math.cos(dlon_rad)

    return (math.degrees(math.atan2(y, x)) + 360) % 360


def _longitude_delta(distance_km: float, latitude: float) -> float:
    cos_lat = math.cos(math.radians(latitude))
    if cos_lat <= 1e-12:
        return 360.0
    return min(360.0, distance_km / (KM_PER_DEGREE_LATITUDE * cos_lat))


def bounding_box(center: Coordinate, radius_km: float) -> BoundingBox:
    """Approximate the box enclosing a circle.

    Uses 1 degree of latitude ~ 111.32 km. The longitude span is taken at the
    box edge nearest a pole, which bounds the circle's longitude span at
    every latitude it covers. Only suitable as a pre-filter.
    """
    lat_delta = radius_km / KM_PER_DEGREE_LATITUDE
    lon_delta = _longitude_delta(
        radius_km, min(90.0, abs(center.latitude) + lat_delta)
    )

    return BoundingBox(
        north=center.latitude + lat_delta,
        south=center.latitude - lat_delta,
        east=center.longitude + lon_delta,
        west=center.longitude - lon_delta,
    )


def bounding_box_of(points: Sequence[Coordinate]) -> BoundingBox:
    """Return the tight box around ``points``.

    Raises:
        ValueError: If ``points`` is empty
    """
    if not points:
        raise ValueError("Cannot compute the bounding box of no points")
    return BoundingBox(
        north=max(p.latitude for p in points),
        south=min(p.latitude for p in points),
        east=max(p.longitude for p in points),
        west=min(p.longitude for p in points),
    )


def centroid(points: Sequence[Coordinate]) -> Coordinate:
    """Arithmetic mean of latitudes and longitudes.

    Good enough for pasture-sized areas; not geodesically exact.

    Raises:
        ValueError: If ``points`` is empty
    """
    if not points:
        raise ValueError("Cannot compute the centroid of no points")
    return Coordinate(
        latitude=sum(p.latitude for p in points) / len(points),
        longitude=sum(p.longitude for p in points) / len(points),
    )


def point_in_circle(point: Coordinate, center: Coordinate, radius_m: float) -> bool:
    """Check whether ``point`` is within ``radius_m`` of ``center``."""
    return distance(point, center) <= radius_m


def point_in_rectangle(point: Coordinate, box: BoundingBox) -> bool:
    """Check latitude/longitude interval containment."""
    return (
        box.south <= point.latitude <= box.north
        and box.west <= point.longitude <= box.east
    )


def point_in_polygon(point: Coordinate, vertices: Sequence[Coordinate]) -> bool:
    """Ray-casting containment test over an ordered vertex ring.

    Rings with fewer than 3 vertices never contain anything.
    """
    if len(vertices) < MIN_POLYGON_VERTICES:
        return False

    inside = False
    x, y = point.longitude, point.latitude
    j = len(vertices) - 1
    for i, vertex in enumerate(vertices):
        xi, yi = vertex.longitude, vertex.latitude
        xj, yj = vertices[j].longitude, vertices[j].latitude
        if (yi > y) != (yj > y) and x < (xj - xi) * (y - yi) / (yj - yi) + xi:
            inside = not inside
        j = i

    return inside


def distance_to_segment(
    point: Coordinate, start: Coordinate, end: Coordinate
) -> float:
    """Minimum distance in meters from ``point`` to the segment ``start-end``.

    Projects onto a local equirectangular plane centred on ``point``, which
    is accurate at corridor scales (a few kilometers).
    """
    cos_lat = math.cos(math.radians(point.latitude))
    meters_per_rad = EARTH_RADIUS_M

    def project(c: Coordinate) -> tuple[float, float]:
        dlon = (c.longitude - point.longitude + 540.0) % 360.0 - 180.0
        return (
            math.radians(dlon) * cos_lat * meters_per_rad,
            math.radians(c.latitude - point.latitude) * meters_per_rad,
        )

    ax, ay = project(start)
    bx, by = project(end)
    dx, dy = bx - ax, by - ay
    length_sq = dx * dx + dy * dy
    if length_sq == 0:
        return math.hypot(ax, ay)

    t = max(0.0, min(1.0, -(ax * dx + ay * dy) / length_sq))
    return math.hypot(ax + t * dx, ay + t * dy)


def point_in_corridor(
    point: Coordinate, centerline: Sequence[Coordinate], width_m: float
) -> bool:
    """Check whether ``point`` is within half the width of the centerline.

    Centerlines with fewer than 2 vertices never contain anything.
    """
    if len(centerline) < MIN_CORRIDOR_VERTICES:
        return False

    half_width = width_m / 2.0
    return any(
        distance_to_segment(point, start, end) <= half_width
        for start, end in zip(centerline, centerline[1:])
    )
