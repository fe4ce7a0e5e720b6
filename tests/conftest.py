"""Shared pytest fixtures for iof_route tests.

Waypoints are built from storage integers wherever exact byte layouts or
mode thresholds are asserted, so float rounding never blurs a boundary.
"""

from __future__ import annotations

import random
from datetime import UTC, datetime

import pytest

from iof_route.models import Waypoint, WaypointType
from iof_route.timeutils import storage_time_from_dt


# 2024-05-18 10:00:00 UTC, a plausible orienteering race start.
RACE_START_MS = storage_time_from_dt(datetime(2024, 5, 18, 10, 0, 0, tzinfo=UTC))


def make_waypoint(
    time_ms: int = RACE_START_MS,
    lat: int = 59_329_300,
    lng: int = 18_068_600,
    alt: int | None = None,
    waypoint_type: WaypointType = WaypointType.NORMAL,
) -> Waypoint:
    """Waypoint from storage values (ms, microdegrees, decimeters)."""

    return Waypoint(
        storage_time=time_ms,
        storage_latitude=lat,
        storage_longitude=lng,
        storage_altitude=alt,
        waypoint_type=waypoint_type,
    )


def generate_waypoints(*, count: int, seed: int) -> list[Waypoint]:
    """Random-walk route with a realistic mix of sampling gaps and jumps.

    Covers every time and position mode: mostly 1-5 s steps with small
    jitter, sometimes odd millisecond steps, long pauses, larger position
    jumps, altitude dropouts and interruptions.
    """

    rng = random.Random(seed)
    time_ms = RACE_START_MS
    lat = 59_329_300
    lng = 18_068_600
    alt: int | None = 250

    out: list[Waypoint] = []
    for _ in range(count):
        roll = rng.random()
        if roll < 0.1:
            time_ms += rng.randint(256_000, 3_600_000)
        elif roll < 0.3:
            time_ms += rng.randint(1, 65_535)
        else:
            time_ms += 1000 * rng.randint(0, 5)

        roll = rng.random()
        if roll < 0.05:
            lat += rng.randint(-2_000_000, 2_000_000)
            lng += rng.randint(-2_000_000, 2_000_000)
        elif roll < 0.2:
            lat += rng.randint(-30_000, 30_000)
            lng += rng.randint(-30_000, 30_000)
        else:
            lat += rng.randint(-100, 100)
            lng += rng.randint(-100, 100)

        roll = rng.random()
        if roll < 0.05:
            alt = None
        elif alt is None or roll < 0.1:
            alt = rng.randint(-500, 20_000)
        else:
            alt += rng.randint(-20, 20)

        waypoint_type = WaypointType.INTERRUPTION if rng.random() < 0.03 else WaypointType.NORMAL
        out.append(make_waypoint(time_ms, lat, lng, alt, waypoint_type))
    return out


@pytest.fixture
def random_waypoints() -> list[Waypoint]:
    return generate_waypoints(count=500, seed=42)
