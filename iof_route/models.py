"""Data models for route waypoints."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Final

from iof_route.timeutils import dt_from_storage_time, storage_time_from_dt


MICRODEGREES_PER_DEGREE: Final[int] = 1_000_000
DECIMETERS_PER_METER: Final[int] = 10


def round_half_away(value: float) -> int:
    """Round to the nearest integer, ties away from zero (2.5 -> 3, -2.5 -> -3)."""

    magnitude = abs(value)
    whole = math.floor(magnitude)
    # magnitude - whole is exact, unlike magnitude + 0.5.
    if magnitude - whole >= 0.5:
        whole += 1
    return -whole if value < 0 else whole


class WaypointType(Enum):
    """Kind of waypoint."""

    NORMAL = 0
    # Last waypoint before an interruption in tracking.
    INTERRUPTION = 1


@dataclass(frozen=True, slots=True)
class Waypoint:
    """A single recorded route sample.

    The storage integers are authoritative; the float/datetime accessors are
    derived from them.

    Attributes:
        storage_time: Milliseconds since 1900-01-01T00:00:00 UTC.
        storage_latitude: Latitude in microdegrees.
        storage_longitude: Longitude in microdegrees.
        storage_altitude: Altitude in decimeters, or None if not recorded.
        waypoint_type: NORMAL or INTERRUPTION.
    """

    storage_time: int
    storage_latitude: int
    storage_longitude: int
    storage_altitude: int | None = None
    waypoint_type: WaypointType = WaypointType.NORMAL

    @classmethod
    def from_values(
        cls,
        time: datetime,
        latitude: float,
        longitude: float,
        altitude: float | None = None,
        waypoint_type: WaypointType = WaypointType.NORMAL,
    ) -> Waypoint:
        """Build a waypoint from degrees, meters and a datetime.

        Args:
            time: Recording time. If naive, treated as UTC.
            latitude: Latitude in decimal degrees.
            longitude: Longitude in decimal degrees.
            altitude: Altitude in meters, or None.
            waypoint_type: Waypoint kind.

        Returns:
            Waypoint with values quantized to 1 ms, 1e-6 degree and 0.1 m.
        """

        return cls(
            storage_time=storage_time_from_dt(time),
            storage_latitude=round_half_away(latitude * MICRODEGREES_PER_DEGREE),
            storage_longitude=round_half_away(longitude * MICRODEGREES_PER_DEGREE),
            storage_altitude=None if altitude is None else round_half_away(altitude * DECIMETERS_PER_METER),
            waypoint_type=waypoint_type,
        )

    @property
    def time(self) -> datetime:
        """Recording time as a UTC datetime."""

        return dt_from_storage_time(self.storage_time)

    @property
    def latitude(self) -> float:
        return self.storage_latitude / MICRODEGREES_PER_DEGREE

    @property
    def longitude(self) -> float:
        return self.storage_longitude / MICRODEGREES_PER_DEGREE

    @property
    def altitude(self) -> float | None:
        """Altitude in meters, or None."""

        if self.storage_altitude is None:
            return None
        return self.storage_altitude / DECIMETERS_PER_METER

    @property
    def is_interruption(self) -> bool:
        return self.waypoint_type is WaypointType.INTERRUPTION
