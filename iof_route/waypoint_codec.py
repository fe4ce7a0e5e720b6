"""Binary encoding of a single waypoint relative to its predecessor.

Record layout (all multi-byte fields big-endian):

    header  1 byte   bit 7 interruption, bit 6 time in milliseconds,
                     bit 5 time in seconds, bit 4 big position delta,
                     bit 3 small position delta, bit 2 altitude present,
                     bits 1-0 reserved (zero)
    time    6 bytes unsigned absolute ms since 1900-01-01 (full)
            2 bytes unsigned ms delta (milliseconds)
            1 byte  unsigned seconds delta (seconds)
    lat/lng 4 + 4 bytes signed microdegrees (full)
            2 + 2 bytes signed microdegree deltas (big delta)
            1 + 1 bytes signed microdegree deltas (small delta)
    alt     3 bytes signed decimeters (full), 1 byte signed delta otherwise;
            only present when bit 2 is set

The narrowest lossless mode is chosen per record; the first record of a
route has no predecessor and is always full/full.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Final

from iof_route.models import Waypoint, WaypointType
from iof_route.timeutils import MAX_STORAGE_TIME

logger = logging.getLogger(__name__)


# Valid absolute storage values, whatever mode a record is written in.
TIME_RANGE: Final[tuple[int, int]] = (0, MAX_STORAGE_TIME)
LAT_LNG_RANGE: Final[tuple[int, int]] = (-(2**31), 2**31 - 1)
ALTITUDE_RANGE: Final[tuple[int, int]] = (-(2**23), 2**23 - 1)

TIME_SECONDS_THRESHOLD: Final[int] = 255
TIME_MILLISECONDS_THRESHOLD: Final[int] = 65535
LAT_LNG_SMALL_DELTA_RANGE: Final[tuple[int, int]] = (-128, 127)
LAT_LNG_BIG_DELTA_RANGE: Final[tuple[int, int]] = (-32768, 32767)
ALTITUDE_DELTA_RANGE: Final[tuple[int, int]] = (-128, 127)

_FLAG_INTERRUPTION: Final[int] = 1 << 7
_FLAG_TIME_MILLISECONDS: Final[int] = 1 << 6
_FLAG_TIME_SECONDS: Final[int] = 1 << 5
_FLAG_POSITION_BIG_DELTA: Final[int] = 1 << 4
_FLAG_POSITION_SMALL_DELTA: Final[int] = 1 << 3
_FLAG_ALTITUDE: Final[int] = 1 << 2
_RESERVED_BITS: Final[int] = 0b11

_TIME_FULL_BYTES: Final[int] = 6
_TIME_MILLISECONDS_BYTES: Final[int] = 2
_TIME_SECONDS_BYTES: Final[int] = 1
_LAT_LNG_FULL_BYTES: Final[int] = 4
_ALTITUDE_FULL_BYTES: Final[int] = 3
_ALTITUDE_DELTA_BYTES: Final[int] = 1


class RouteCodecError(ValueError):
    """Base class for route encoding/decoding failures."""


class WaypointEncodeError(RouteCodecError):
    """A waypoint value does not fit the field it must be written to."""

    def __init__(self, message: str, *, field: str) -> None:
        super().__init__(message)
        self.field = field


class WaypointDecodeError(RouteCodecError):
    """The byte stream is not a valid waypoint record.

    Attributes:
        offset: Absolute byte offset at which the failing read started.
        field: Name of the field being read.
    """

    def __init__(self, message: str, *, offset: int, field: str) -> None:
        super().__init__(message)
        self.offset = offset
        self.field = field


class TimeStorageMode(Enum):
    """How the time of a waypoint is stored."""

    FULL = "full"
    SECONDS = "seconds"
    MILLISECONDS = "milliseconds"


class PositionStorageMode(Enum):
    """How latitude, longitude and altitude of a waypoint are stored."""

    FULL = "full"
    BIG_DELTA = "big_delta"
    SMALL_DELTA = "small_delta"


_DELTA_BYTES: Final[dict[PositionStorageMode, int]] = {
    PositionStorageMode.BIG_DELTA: 2,
    PositionStorageMode.SMALL_DELTA: 1,
}


@dataclass(frozen=True, slots=True)
class WaypointHeader:
    """Decoded header byte."""

    waypoint_type: WaypointType
    time_mode: TimeStorageMode
    position_mode: PositionStorageMode
    has_altitude: bool


def _in_range(value: int, bounds: tuple[int, int]) -> bool:
    lo, hi = bounds
    return lo <= value <= hi


def select_time_mode(waypoint: Waypoint, previous: Waypoint | None) -> TimeStorageMode:
    """Pick the narrowest time representation for a waypoint.

    A waypoint earlier than its predecessor is stored with full time, which
    keeps it lossless.
    """

    if previous is None:
        return TimeStorageMode.FULL
    dt = waypoint.storage_time - previous.storage_time
    if dt < 0:
        logger.warning(
            "Waypoint time %s ms is earlier than its predecessor (%s ms); storing full time",
            waypoint.storage_time,
            previous.storage_time,
        )
        return TimeStorageMode.FULL
    if dt % 1000 == 0 and dt // 1000 <= TIME_SECONDS_THRESHOLD:
        return TimeStorageMode.SECONDS
    if dt <= TIME_MILLISECONDS_THRESHOLD:
        return TimeStorageMode.MILLISECONDS
    return TimeStorageMode.FULL


def select_position_mode(waypoint: Waypoint, previous: Waypoint | None) -> PositionStorageMode:
    """Pick the narrowest position representation for a waypoint.

    Delta modes need the altitude to be either absent on both waypoints or
    present on both with a delta that fits one byte.
    """

    if previous is None:
        return PositionStorageMode.FULL

    altitude = waypoint.storage_altitude
    previous_altitude = previous.storage_altitude
    if (altitude is None) != (previous_altitude is None):
        return PositionStorageMode.FULL
    if altitude is not None and previous_altitude is not None:
        if not _in_range(altitude - previous_altitude, ALTITUDE_DELTA_RANGE):
            return PositionStorageMode.FULL

    d_lat = waypoint.storage_latitude - previous.storage_latitude
    d_lng = waypoint.storage_longitude - previous.storage_longitude
    if _in_range(d_lat, LAT_LNG_SMALL_DELTA_RANGE) and _in_range(d_lng, LAT_LNG_SMALL_DELTA_RANGE):
        return PositionStorageMode.SMALL_DELTA
    if _in_range(d_lat, LAT_LNG_BIG_DELTA_RANGE) and _in_range(d_lng, LAT_LNG_BIG_DELTA_RANGE):
        return PositionStorageMode.BIG_DELTA
    return PositionStorageMode.FULL


def build_header(
    waypoint: Waypoint,
    time_mode: TimeStorageMode,
    position_mode: PositionStorageMode,
) -> int:
    """Compose the header byte of a waypoint record."""

    header = 0
    if waypoint.waypoint_type is WaypointType.INTERRUPTION:
        header |= _FLAG_INTERRUPTION
    if time_mode is TimeStorageMode.MILLISECONDS:
        header |= _FLAG_TIME_MILLISECONDS
    elif time_mode is TimeStorageMode.SECONDS:
        header |= _FLAG_TIME_SECONDS
    if position_mode is PositionStorageMode.BIG_DELTA:
        header |= _FLAG_POSITION_BIG_DELTA
    elif position_mode is PositionStorageMode.SMALL_DELTA:
        header |= _FLAG_POSITION_SMALL_DELTA
    if waypoint.storage_altitude is not None:
        header |= _FLAG_ALTITUDE
    return header


def parse_header(header: int, offset: int = 0) -> WaypointHeader:
    """Split a header byte into its flags.

    Args:
        header: Header byte value (0-255).
        offset: Position of the byte in the stream, used in error reports.

    Raises:
        WaypointDecodeError: If reserved bits are set or two mutually
            exclusive mode bits are both set.
    """

    if header & _RESERVED_BITS:
        raise WaypointDecodeError(
            f"Reserved header bits set at offset {offset}: 0x{header:02x}",
            offset=offset,
            field="header",
        )
    if header & _FLAG_TIME_MILLISECONDS and header & _FLAG_TIME_SECONDS:
        raise WaypointDecodeError(
            f"Conflicting time mode bits at offset {offset}: 0x{header:02x}",
            offset=offset,
            field="header",
        )
    if header & _FLAG_POSITION_BIG_DELTA and header & _FLAG_POSITION_SMALL_DELTA:
        raise WaypointDecodeError(
            f"Conflicting position mode bits at offset {offset}: 0x{header:02x}",
            offset=offset,
            field="header",
        )

    if header & _FLAG_TIME_MILLISECONDS:
        time_mode = TimeStorageMode.MILLISECONDS
    elif header & _FLAG_TIME_SECONDS:
        time_mode = TimeStorageMode.SECONDS
    else:
        time_mode = TimeStorageMode.FULL

    if header & _FLAG_POSITION_BIG_DELTA:
        position_mode = PositionStorageMode.BIG_DELTA
    elif header & _FLAG_POSITION_SMALL_DELTA:
        position_mode = PositionStorageMode.SMALL_DELTA
    else:
        position_mode = PositionStorageMode.FULL

    return WaypointHeader(
        waypoint_type=WaypointType.INTERRUPTION if header & _FLAG_INTERRUPTION else WaypointType.NORMAL,
        time_mode=time_mode,
        position_mode=position_mode,
        has_altitude=bool(header & _FLAG_ALTITUDE),
    )


def out_of_range_field(waypoint: Waypoint) -> str | None:
    """Name of the first storage value outside its valid range, or None.

    Time is limited to [0, MAX_STORAGE_TIME] (the last millisecond of
    9999-12-31) so every storage time maps to a datetime.
    """

    if not _in_range(waypoint.storage_time, TIME_RANGE):
        return "time"
    if not _in_range(waypoint.storage_latitude, LAT_LNG_RANGE):
        return "latitude"
    if not _in_range(waypoint.storage_longitude, LAT_LNG_RANGE):
        return "longitude"
    if waypoint.storage_altitude is not None and not _in_range(waypoint.storage_altitude, ALTITUDE_RANGE):
        return "altitude"
    return None


def _pack(value: int, width: int, *, signed: bool, field: str) -> bytes:
    try:
        return value.to_bytes(width, "big", signed=signed)
    except OverflowError as exc:
        kind = "signed" if signed else "unsigned"
        raise WaypointEncodeError(
            f"{field} value {value} does not fit in {width} {kind} byte(s)",
            field=field,
        ) from exc


def _unpack(data: bytes, offset: int, width: int, *, signed: bool, field: str) -> int:
    end = offset + width
    if end > len(data):
        raise WaypointDecodeError(
            f"Truncated {field} at offset {offset}: need {width} byte(s), {max(0, len(data) - offset)} left",
            offset=offset,
            field=field,
        )
    return int.from_bytes(data[offset:end], "big", signed=signed)


def encode_waypoint(waypoint: Waypoint, previous: Waypoint | None = None) -> bytes:
    """Encode one waypoint record.

    Args:
        waypoint: Waypoint to encode.
        previous: Preceding waypoint of the route, or None for the first one.

    Returns:
        Header byte followed by the time and position payload.

    Raises:
        WaypointEncodeError: If an absolute value is out of range (time
            before 1900 or after 9999-12-31, latitude/longitude beyond 32-bit
            signed, altitude beyond 24-bit signed). Checked in every mode.
    """

    field = out_of_range_field(waypoint)
    if field is not None:
        raise WaypointEncodeError(f"Waypoint {field} out of range: {waypoint!r}", field=field)

    time_mode = select_time_mode(waypoint, previous)
    position_mode = select_position_mode(waypoint, previous)
    out = bytearray((build_header(waypoint, time_mode, position_mode),))

    if previous is None or time_mode is TimeStorageMode.FULL:
        out += _pack(waypoint.storage_time, _TIME_FULL_BYTES, signed=False, field="time")
    elif time_mode is TimeStorageMode.MILLISECONDS:
        dt = waypoint.storage_time - previous.storage_time
        out += _pack(dt, _TIME_MILLISECONDS_BYTES, signed=False, field="time")
    else:
        dt = waypoint.storage_time - previous.storage_time
        out += _pack(dt // 1000, _TIME_SECONDS_BYTES, signed=False, field="time")

    if previous is None or position_mode is PositionStorageMode.FULL:
        out += _pack(waypoint.storage_latitude, _LAT_LNG_FULL_BYTES, signed=True, field="latitude")
        out += _pack(waypoint.storage_longitude, _LAT_LNG_FULL_BYTES, signed=True, field="longitude")
        if waypoint.storage_altitude is not None:
            out += _pack(waypoint.storage_altitude, _ALTITUDE_FULL_BYTES, signed=True, field="altitude")
    else:
        width = _DELTA_BYTES[position_mode]
        out += _pack(
            waypoint.storage_latitude - previous.storage_latitude, width, signed=True, field="latitude"
        )
        out += _pack(
            waypoint.storage_longitude - previous.storage_longitude, width, signed=True, field="longitude"
        )
        if waypoint.storage_altitude is not None and previous.storage_altitude is not None:
            out += _pack(
                waypoint.storage_altitude - previous.storage_altitude,
                _ALTITUDE_DELTA_BYTES,
                signed=True,
                field="altitude",
            )

    return bytes(out)


def decode_waypoint(data: bytes, offset: int = 0, previous: Waypoint | None = None) -> tuple[Waypoint, int]:
    """Decode one waypoint record starting at ``offset``.

    Args:
        data: Buffer holding the record.
        offset: Start of the record in ``data``.
        previous: Previously decoded waypoint, or None for the first record.

    Returns:
        (waypoint, bytes consumed)

    Raises:
        WaypointDecodeError: If the record is truncated, has an invalid
            header, uses a relative mode without a previous waypoint, or
            yields a value outside the valid storage range.
    """

    field_offsets: dict[str, int] = {}
    pos = offset
    header = parse_header(_unpack(data, pos, 1, signed=False, field="header"), offset=pos)
    pos += 1

    relative = header.time_mode is not TimeStorageMode.FULL or header.position_mode is not PositionStorageMode.FULL
    if relative and previous is None:
        raise WaypointDecodeError(
            f"Relative record at offset {offset} has no previous waypoint",
            offset=offset,
            field="header",
        )

    field_offsets["time"] = pos
    if previous is None or header.time_mode is TimeStorageMode.FULL:
        storage_time = _unpack(data, pos, _TIME_FULL_BYTES, signed=False, field="time")
        pos += _TIME_FULL_BYTES
    elif header.time_mode is TimeStorageMode.MILLISECONDS:
        storage_time = previous.storage_time + _unpack(
            data, pos, _TIME_MILLISECONDS_BYTES, signed=False, field="time"
        )
        pos += _TIME_MILLISECONDS_BYTES
    else:
        storage_time = previous.storage_time + 1000 * _unpack(
            data, pos, _TIME_SECONDS_BYTES, signed=False, field="time"
        )
        pos += _TIME_SECONDS_BYTES

    storage_altitude: int | None = None
    if previous is None or header.position_mode is PositionStorageMode.FULL:
        field_offsets["latitude"] = pos
        storage_latitude = _unpack(data, pos, _LAT_LNG_FULL_BYTES, signed=True, field="latitude")
        pos += _LAT_LNG_FULL_BYTES
        field_offsets["longitude"] = pos
        storage_longitude = _unpack(data, pos, _LAT_LNG_FULL_BYTES, signed=True, field="longitude")
        pos += _LAT_LNG_FULL_BYTES
        if header.has_altitude:
            field_offsets["altitude"] = pos
            storage_altitude = _unpack(data, pos, _ALTITUDE_FULL_BYTES, signed=True, field="altitude")
            pos += _ALTITUDE_FULL_BYTES
    else:
        width = _DELTA_BYTES[header.position_mode]
        field_offsets["latitude"] = pos
        storage_latitude = previous.storage_latitude + _unpack(data, pos, width, signed=True, field="latitude")
        pos += width
        field_offsets["longitude"] = pos
        storage_longitude = previous.storage_longitude + _unpack(data, pos, width, signed=True, field="longitude")
        pos += width
        if header.has_altitude:
            if previous.storage_altitude is None:
                raise WaypointDecodeError(
                    f"Altitude delta at offset {pos} but previous waypoint has no altitude",
                    offset=pos,
                    field="altitude",
                )
            field_offsets["altitude"] = pos
            storage_altitude = previous.storage_altitude + _unpack(
                data, pos, _ALTITUDE_DELTA_BYTES, signed=True, field="altitude"
            )
            pos += _ALTITUDE_DELTA_BYTES

    waypoint = Waypoint(
        storage_time=storage_time,
        storage_latitude=storage_latitude,
        storage_longitude=storage_longitude,
        storage_altitude=storage_altitude,
        waypoint_type=header.waypoint_type,
    )
    field = out_of_range_field(waypoint)
    if field is not None:
        raise WaypointDecodeError(
            f"Decoded {field} out of range at offset {field_offsets[field]}",
            offset=field_offsets[field],
            field=field,
        )
    return waypoint, pos - offset
