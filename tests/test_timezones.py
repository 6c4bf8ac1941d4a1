"""
Tests for resolving local wall-clock times across DST transitions.
"""

from datetime import date, datetime, time, timedelta, timezone

import pendulum

from coffeechat.domain.timezones import (
    LocalTimeKind,
    local_date,
    resolve_local_midnight,
    resolve_local_time,
    resolve_local_time_forward,
    to_utc,
)


class TestResolveLocalTime:
    """Tests for the tri-state local time resolution."""

    def test_regular_midnight_is_unique(self):
        """An ordinary midnight maps to exactly one instant."""
        resolution = resolve_local_midnight(date(2024, 11, 25), "Europe/Berlin")

        assert resolution.kind is LocalTimeKind.UNIQUE
        assert resolution.instant == pendulum.parse("2024-11-24T23:00:00Z")

    def test_skipped_time_is_nonexistent(self):
        """Wall times skipped by a spring-forward jump have no instant."""
        resolution = resolve_local_time(date(2024, 3, 31), time(2, 30), "Europe/Berlin")

        assert resolution.kind is LocalTimeKind.NONEXISTENT
        assert resolution.instant is None

    def test_repeated_time_resolves_to_earliest(self):
        """Wall times repeated by a fall-back jump resolve to the first occurrence."""
        resolution = resolve_local_time(date(2024, 10, 27), time(2, 30), "Europe/Berlin")

        assert resolution.kind is LocalTimeKind.AMBIGUOUS
        assert resolution.instant == pendulum.parse("2024-10-27T00:30:00Z")

    def test_nonexistent_midnight(self):
        """Cuba starts daylight saving time at midnight."""
        resolution = resolve_local_midnight(date(2024, 3, 10), "America/Havana")

        assert resolution.kind is LocalTimeKind.NONEXISTENT

    def test_ambiguous_midnight(self):
        """Cuba ends daylight saving time at 01:00, repeating the hour after midnight."""
        resolution = resolve_local_midnight(date(2024, 11, 3), "America/Havana")

        assert resolution.kind is LocalTimeKind.AMBIGUOUS
        assert resolution.instant == pendulum.parse("2024-11-03T04:00:00Z")

    def test_accepts_timezone_objects(self):
        resolution = resolve_local_midnight(date(2024, 11, 25), pendulum.timezone("UTC"))

        assert resolution.instant == pendulum.parse("2024-11-25T00:00:00Z")


def test_local_date_depends_on_timezone():
    """The same instant can fall on different local dates."""
    instant = pendulum.parse("2024-11-25T23:30:00Z")

    assert local_date(instant, "UTC") == date(2024, 11, 25)
    assert local_date(instant, "Europe/Berlin") == date(2024, 11, 26)
    assert local_date(instant, "America/New_York") == date(2024, 11, 25)


class TestResolveLocalTimeForward:
    """Tests for resolving wall times with skipped times moved forward."""

    def test_start_of_gap_maps_to_first_instant_after_jump(self):
        instant = resolve_local_time_forward(date(2024, 3, 31), time(2, 0), "Europe/Berlin")

        assert instant == pendulum.parse("2024-03-31T01:00:00Z")
        assert instant.in_timezone("Europe/Berlin").hour == 3

    def test_inside_gap_moves_forward_by_the_jump(self):
        instant = resolve_local_time_forward(date(2024, 3, 31), time(2, 30), "Europe/Berlin")

        assert instant == pendulum.parse("2024-03-31T01:30:00Z")

    def test_skipped_midnight(self):
        instant = resolve_local_time_forward(date(2024, 3, 10), time(0, 0), "America/Havana")

        assert instant == pendulum.parse("2024-03-10T05:00:00Z")

    def test_existing_times_are_unchanged(self):
        assert resolve_local_time_forward(date(2024, 10, 27), time(2, 30), "Europe/Berlin") == (
            resolve_local_time(date(2024, 10, 27), time(2, 30), "Europe/Berlin").instant
        )
        assert resolve_local_time_forward(date(2024, 11, 25), time(9, 0), "Europe/Berlin") == (
            pendulum.parse("2024-11-25T08:00:00Z")
        )


def test_to_utc_normalises_offsets():
    aware = datetime(2024, 11, 25, 10, 0, tzinfo=timezone(timedelta(hours=1)))

    converted = to_utc(aware)

    assert converted == pendulum.parse("2024-11-25T09:00:00Z")
    assert converted.timezone_name == "UTC"
