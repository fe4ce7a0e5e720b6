"""Tests for waypoint storage conversions and time utilities."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from iof_route.models import Waypoint, WaypointType, round_half_away
from iof_route.timeutils import MAX_STORAGE_TIME, ZERO_TIME, dt_from_storage_time, storage_time_from_dt


class TestRounding:
    """Storage conversions round half away from zero."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [(0.5, 1), (1.5, 2), (2.5, 3), (-0.5, -1), (-2.5, -3), (2.4999, 2), (-2.4999, -2), (0.0, 0),
         (0.49999999999999994, 0), (-0.49999999999999994, 0), (4503599627370495.5, 4503599627370496)],
    )
    def test_round_half_away(self, value: float, expected: int) -> None:
        assert round_half_away(value) == expected

    def test_altitude_half_decimeter(self) -> None:
        t = datetime(2024, 1, 1, tzinfo=UTC)
        assert Waypoint.from_values(t, 0.0, 0.0, 0.25).storage_altitude == 3
        assert Waypoint.from_values(t, 0.0, 0.0, -0.25).storage_altitude == -3

    def test_microdegrees(self) -> None:
        wp = Waypoint.from_values(datetime(2024, 1, 1, tzinfo=UTC), 59.329323, -18.068581)
        assert wp.storage_latitude == 59_329_323
        assert wp.storage_longitude == -18_068_581
        assert wp.latitude == pytest.approx(59.329323, abs=1e-9)

    def test_time_half_millisecond(self) -> None:
        base = datetime(2024, 1, 1, tzinfo=UTC)
        ms = storage_time_from_dt(base)
        assert storage_time_from_dt(base + timedelta(microseconds=500)) == ms + 1
        assert storage_time_from_dt(base + timedelta(microseconds=499)) == ms


class TestWaypoint:
    """Waypoint model."""

    def test_altitude_none_is_distinct_from_zero(self) -> None:
        t = datetime(2024, 1, 1, tzinfo=UTC)
        assert Waypoint.from_values(t, 1.0, 2.0).altitude is None
        assert Waypoint.from_values(t, 1.0, 2.0, 0.0).altitude == 0.0

    def test_naive_time_is_utc(self) -> None:
        naive = Waypoint.from_values(datetime(2024, 1, 1, 12, 0), 1.0, 2.0)
        aware = Waypoint.from_values(datetime(2024, 1, 1, 12, 0, tzinfo=UTC), 1.0, 2.0)
        assert naive == aware

    def test_time_property(self) -> None:
        wp = Waypoint(storage_time=1500, storage_latitude=0, storage_longitude=0)
        assert wp.time == datetime(1900, 1, 1, 0, 0, 1, 500_000, tzinfo=UTC)

    def test_defaults(self) -> None:
        wp = Waypoint(storage_time=0, storage_latitude=0, storage_longitude=0)
        assert wp.waypoint_type is WaypointType.NORMAL
        assert wp.storage_altitude is None
        assert not wp.is_interruption

    def test_frozen(self) -> None:
        wp = Waypoint(storage_time=0, storage_latitude=0, storage_longitude=0)
        with pytest.raises(AttributeError):
            wp.storage_time = 5  # type: ignore[misc]


class TestTimeUtils:
    """Storage time conversion."""

    def test_zero_time(self) -> None:
        assert storage_time_from_dt(ZERO_TIME) == 0
        assert dt_from_storage_time(0) == ZERO_TIME

    def test_known_instant(self) -> None:
        # 1970-01-01 is 25567 days after 1900-01-01.
        assert storage_time_from_dt(datetime(1970, 1, 1, tzinfo=UTC)) == 25_567 * 86_400_000

    def test_before_1900_is_negative(self) -> None:
        assert storage_time_from_dt(datetime(1899, 12, 31, 23, 59, 59, tzinfo=UTC)) == -1000

    def test_last_representable_millisecond(self) -> None:
        last = datetime(9999, 12, 31, 23, 59, 59, 999_000, tzinfo=UTC)
        assert dt_from_storage_time(MAX_STORAGE_TIME) == last
        assert storage_time_from_dt(last) == MAX_STORAGE_TIME
        assert MAX_STORAGE_TIME < 2**48
