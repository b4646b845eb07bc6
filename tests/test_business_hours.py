from datetime import datetime, timezone

import pytest

from app.services.business_hours import (
    BusinessHours,
    BusinessHoursTable,
    format_datetime,
    load_business_hours_table,
)
from app.services.clock import Clock


@pytest.fixture
def ny_clock():
    return Clock("America/New_York")


@pytest.fixture
def hours(ny_clock):
    return BusinessHours(load_business_hours_table(), ny_clock)


def local(ny_clock, *args):
    return datetime(*args, tzinfo=ny_clock.tz)


class TestIsOpen:
    def test_weekday_within_hours(self, hours, ny_clock):
        assert hours.is_open(local(ny_clock, 2025, 1, 6, 10, 0)) is True
        assert hours.is_open(local(ny_clock, 2025, 1, 6, 16, 59)) is True

    def test_weekday_boundaries(self, hours, ny_clock):
        assert hours.is_open(local(ny_clock, 2025, 1, 6, 9, 59)) is False
        assert hours.is_open(local(ny_clock, 2025, 1, 6, 17, 0)) is False

    def test_saturday_short_day(self, hours, ny_clock):
        assert hours.is_open(local(ny_clock, 2025, 1, 11, 11, 30)) is True
        assert hours.is_open(local(ny_clock, 2025, 1, 11, 12, 0)) is False

    def test_sunday_closed(self, hours, ny_clock):
        assert hours.is_open(local(ny_clock, 2025, 1, 12, 12, 0)) is False

    def test_holiday_closed_all_day(self, hours, ny_clock):
        christmas = local(ny_clock, 2025, 12, 25, 12, 0)
        assert hours.is_holiday(christmas) is True
        assert hours.is_open(christmas) is False

    def test_utc_instant_is_read_in_business_timezone(self, hours):
        # 15:00 UTC is 10:00 in New York in January.
        assert hours.is_open(datetime(2025, 1, 6, 15, 0, tzinfo=timezone.utc)) is True
        assert hours.is_open(datetime(2025, 1, 6, 22, 30, tzinfo=timezone.utc)) is False

    def test_defaults_to_clock_now(self, hours, ny_clock):
        ny_clock.set_mock_now(datetime(2025, 1, 6, 12, 0))
        assert hours.is_open() is True
        ny_clock.set_mock_now(datetime(2025, 1, 6, 20, 0))
        assert hours.is_open() is False


class TestNextOpening:
    def test_before_opening_same_day(self, hours, ny_clock):
        assert hours.next_opening(local(ny_clock, 2025, 1, 6, 8, 0)) == local(ny_clock, 2025, 1, 6, 10, 0)

    def test_after_closing_is_next_day(self, hours, ny_clock):
        assert hours.next_opening(local(ny_clock, 2025, 1, 6, 18, 0)) == local(ny_clock, 2025, 1, 7, 10, 0)

    def test_weekend_skips_to_monday(self, hours, ny_clock):
        assert hours.next_opening(local(ny_clock, 2025, 1, 11, 13, 0)) == local(ny_clock, 2025, 1, 13, 10, 0)

    def test_skips_holiday(self, hours, ny_clock):
        assert hours.next_opening(local(ny_clock, 2025, 12, 24, 18, 0)) == local(ny_clock, 2025, 12, 26, 10, 0)

    def test_never_open_returns_none(self, ny_clock):
        table = BusinessHoursTable.from_dict({"schedule": {}})
        assert BusinessHours(table, ny_clock).next_opening(local(ny_clock, 2025, 1, 6, 12, 0)) is None


class TestNextClosing:
    def test_while_open(self, hours, ny_clock):
        assert hours.next_closing(local(ny_clock, 2025, 1, 6, 12, 0)) == local(ny_clock, 2025, 1, 6, 17, 0)

    def test_while_closed_uses_next_open_day(self, hours, ny_clock):
        assert hours.next_closing(local(ny_clock, 2025, 1, 10, 18, 0)) == local(ny_clock, 2025, 1, 11, 12, 0)


class TestTable:
    def test_rejects_inverted_hours(self):
        with pytest.raises(ValueError):
            BusinessHoursTable.from_dict({"schedule": {"monday": {"start": 17, "end": 10}}})

    def test_load_from_custom_file(self, tmp_path, ny_clock):
        path = tmp_path / "hours.yaml"
        path.write_text(
            "schedule:\n  sunday: {start: 9, end: 13}\nholidays: []\n",
            encoding="utf-8",
        )
        hours = BusinessHours(load_business_hours_table(path), ny_clock)
        assert hours.is_open(local(ny_clock, 2025, 1, 12, 9, 0)) is True
        assert hours.is_open(local(ny_clock, 2025, 1, 6, 12, 0)) is False


class TestFormatDatetime:
    def test_spanish_and_english(self, ny_clock):
        instant = local(ny_clock, 2025, 1, 7, 15, 5)
        assert format_datetime(instant, "es") == "07/01/2025 15:05"
        assert format_datetime(instant, "en") == "01/07/2025 03:05 PM"


class TestClock:
    def test_naive_mock_is_business_local(self, ny_clock):
        ny_clock.set_mock_now(datetime(2025, 1, 6, 12, 0))
        assert ny_clock.is_mocked is True
        assert ny_clock.now().utcoffset().total_seconds() == -5 * 3600

    def test_clearing_mock_returns_wall_clock(self, ny_clock):
        ny_clock.set_mock_now(datetime(2000, 1, 1))
        ny_clock.set_mock_now(None)
        assert ny_clock.is_mocked is False
        assert ny_clock.now().year > 2000


class TestNaiveInstants:
    def test_naive_argument_matches_mocked_now(self, hours, ny_clock):
        saturday_11 = datetime(2025, 1, 11, 11, 0)
        ny_clock.set_mock_now(saturday_11)

        assert hours.is_open() is True
        assert hours.is_open(saturday_11) is True

    def test_naive_boundaries_are_business_local(self, hours, ny_clock):
        assert hours.next_opening(datetime(2025, 1, 6, 8, 0)) == local(ny_clock, 2025, 1, 6, 10, 0)
        assert hours.next_closing(datetime(2025, 1, 6, 12, 0)) == local(ny_clock, 2025, 1, 6, 17, 0)

    def test_localize_keeps_wall_time_for_naive(self, ny_clock):
        localized = ny_clock.localize(datetime(2025, 7, 4, 9, 30))
        assert (localized.hour, localized.minute) == (9, 30)
        assert localized.utcoffset().total_seconds() == -4 * 3600
