"""Geospatial utilities (no external dependencies)."""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Final, Sequence

if TYPE_CHECKING:
    from iof_route.models import Waypoint


EARTH_RADIUS_M: Final[float] = 6_378_200.0


def _to_cartesian(lat: float, lon: float) -> tuple[float, float, float]:
    # Spherical coordinates (rho, phi, theta) with phi = 90 degrees + latitude.
    phi = 0.5 * math.pi + lat / 180.0 * math.pi
    theta = lon / 180.0 * math.pi
    sin_phi = math.sin(phi)
    return (
        EARTH_RADIUS_M * sin_phi * math.cos(theta),
        EARTH_RADIUS_M * sin_phi * math.sin(theta),
        EARTH_RADIUS_M * math.cos(phi),
    )


def chord_distance_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute the straight-line chord distance in meters between two lat/lon points.

    Both points are placed on a sphere of radius EARTH_RADIUS_M and the
    Euclidean distance between them is returned. This is the route length
    measure, not a great-circle arc.

    Args:
        lat1: Latitude 1 in degrees.
        lon1: Longitude 1 in degrees.
        lat2: Latitude 2 in degrees.
        lon2: Longitude 2 in degrees.

    Returns:
        Distance in meters.
    """

    x1, y1, z1 = _to_cartesian(lat1, lon1)
    x2, y2, z2 = _to_cartesian(lat2, lon2)
    return math.sqrt((x2 - x1) ** 2 + (y2 - y1) ** 2 + (z2 - z1) ** 2)


def waypoint_distance_m(w1: Waypoint, w2: Waypoint) -> float:
    """Chord distance between two waypoints (altitude is ignored)."""

    return chord_distance_m(w1.latitude, w1.longitude, w2.latitude, w2.longitude)


def path_length_m(waypoints: Sequence[Waypoint]) -> float:
    """Sum of chord distances between consecutive waypoints."""

    total = 0.0
    for i in range(1, len(waypoints)):
        total += waypoint_distance_m(waypoints[i - 1], waypoints[i])
    return total
