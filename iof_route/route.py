"""Route encoding/decoding and derived route metrics.

A route is stored as the concatenation of its waypoint records with no
header, separators or trailer; each record is delta-encoded against the
waypoint before it. The byte stream is embedded in IOF XML 3.0 ``<Route>``
elements as base64 text.
"""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from functools import cached_property
from typing import BinaryIO, Iterable, Iterator, overload

from iof_route.geo import path_length_m
from iof_route.models import Waypoint
from iof_route.timeutils import ZERO_TIME, dt_from_storage_time
from iof_route.waypoint_codec import WaypointDecodeError, decode_waypoint, encode_waypoint

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Route:
    """An ordered, immutable sequence of waypoints.

    Note:
        ``length_m`` is computed on first access and cached. The waypoint
        tuple cannot change afterwards, so the cached value never goes stale.
    """

    waypoints: tuple[Waypoint, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.waypoints, tuple):
            object.__setattr__(self, "waypoints", tuple(self.waypoints))

    def __len__(self) -> int:
        return len(self.waypoints)

    def __iter__(self) -> Iterator[Waypoint]:
        return iter(self.waypoints)

    @overload
    def __getitem__(self, index: int) -> Waypoint: ...

    @overload
    def __getitem__(self, index: slice) -> tuple[Waypoint, ...]: ...

    def __getitem__(self, index: int | slice) -> Waypoint | tuple[Waypoint, ...]:
        return self.waypoints[index]

    @cached_property
    def length_m(self) -> float:
        """Route length in meters (sum of chord distances between consecutive waypoints)."""

        return path_length_m(self.waypoints)

    @property
    def start_storage_time(self) -> int:
        """Storage time of the first waypoint, 0 for an empty route."""

        return self.waypoints[0].storage_time if self.waypoints else 0

    @property
    def end_storage_time(self) -> int:
        return self.waypoints[-1].storage_time if self.waypoints else 0

    @property
    def start_time(self) -> datetime:
        """Time of the first waypoint, or ZERO_TIME for an empty route."""

        return dt_from_storage_time(self.start_storage_time) if self.waypoints else ZERO_TIME

    @property
    def end_time(self) -> datetime:
        return dt_from_storage_time(self.end_storage_time) if self.waypoints else ZERO_TIME

    @property
    def duration(self) -> timedelta:
        return timedelta(milliseconds=self.end_storage_time - self.start_storage_time)

    @property
    def interruption_count(self) -> int:
        return sum(1 for w in self.waypoints if w.is_interruption)


def encode_route(waypoints: Iterable[Waypoint]) -> bytes:
    """Encode waypoints in order, each relative to the one before it.

    Args:
        waypoints: Waypoints in route order.

    Returns:
        Concatenated waypoint records. Empty input gives empty bytes.

    Raises:
        WaypointEncodeError: If a waypoint value does not fit the format.
    """

    out = bytearray()
    previous: Waypoint | None = None
    count = 0
    for waypoint in waypoints:
        out += encode_waypoint(waypoint, previous)
        previous = waypoint
        count += 1
    logger.debug("Encoded %s waypoints into %s bytes", count, len(out))
    return bytes(out)


def decode_route(data: bytes) -> list[Waypoint]:
    """Decode waypoint records until the buffer is exhausted.

    Args:
        data: Route bytes.

    Returns:
        Waypoints in route order.

    Raises:
        WaypointDecodeError: If any record is malformed. Nothing is returned
            for a partially valid buffer.
    """

    buf = bytes(data)
    waypoints: list[Waypoint] = []
    previous: Waypoint | None = None
    pos = 0
    while pos < len(buf):
        waypoint, consumed = decode_waypoint(buf, pos, previous)
        waypoints.append(waypoint)
        previous = waypoint
        pos += consumed
    logger.debug("Decoded %s waypoints from %s bytes", len(waypoints), len(buf))
    return waypoints


def encode_to_bytes(route: Route) -> bytes:
    """Convert a route to its binary form."""

    return encode_route(route.waypoints)


def encode_to_base64(route: Route, line_breaks: bool = False) -> str:
    """Convert a route to base64 text.

    Args:
        route: Route to encode.
        line_breaks: Wrap the output in lines of 76 characters.

    Returns:
        Base64 string (standard alphabet, padded).
    """

    data = encode_to_bytes(route)
    if line_breaks:
        return base64.encodebytes(data).decode("ascii").rstrip("\n")
    return base64.b64encode(data).decode("ascii")


def decode_from_bytes(data: bytes) -> Route:
    """Read a route from its binary form."""

    return Route(decode_route(data))


def decode_from_base64(text: str) -> Route:
    """Read a route from base64 text.

    Whitespace (line breaks and indentation from XML text content) is ignored.

    Raises:
        WaypointDecodeError: If the text is not valid base64 or the decoded
            bytes are not a valid route.
    """

    compact = "".join(text.split())
    try:
        data = base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise WaypointDecodeError(f"Invalid base64 route data: {exc}", offset=0, field="base64") from exc
    return decode_from_bytes(data)


def write_to_stream(route: Route, stream: BinaryIO) -> int:
    """Write the binary form of a route to a binary stream.

    Returns:
        Number of bytes written.
    """

    data = encode_to_bytes(route)
    stream.write(data)
    return len(data)


def read_from_stream(stream: BinaryIO) -> Route:
    """Read a route from the current position to the end of a binary stream."""

    return decode_from_bytes(stream.read())
