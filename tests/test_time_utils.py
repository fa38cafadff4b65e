"""
Тесты арифметики сервисного дня
"""
from datetime import date, datetime

import pytest

from services.errors import ValidationError
from tests.conftest import hhmm
from utils.time_utils import (
    get_canonical_slots, is_within_operating_hours, parse_date, parse_time,
    reservation_datetime, service_date, service_minutes, shift_time
)


class TestServiceMinutes:
    """Перевод времени на шкалу сервисного дня"""

    def test_evening_time_unchanged(self):
        assert service_minutes(hhmm("19:00")) == 19 * 60

    def test_early_morning_after_midnight(self):
        assert service_minutes(hhmm("00:15")) > service_minutes(hhmm("23:30"))
        assert service_minutes(hhmm("02:30")) == 26 * 60 + 30

    def test_three_oclock_is_not_early_morning(self):
        assert service_minutes(hhmm("03:00")) == 3 * 60


class TestOperatingHours:

    @pytest.mark.parametrize("value", ["19:00", "23:59", "00:00", "02:30"])
    def test_inside(self, value):
        assert is_within_operating_hours(hhmm(value))

    @pytest.mark.parametrize("value", ["18:59", "02:31", "03:00", "12:00"])
    def test_outside(self, value):
        assert not is_within_operating_hours(hhmm(value))


class TestCanonicalSlots:

    def test_slots_every_45_minutes_through_closing(self):
        slots = [s.strftime("%H:%M") for s in get_canonical_slots()]
        assert slots == [
            "19:00", "19:45", "20:30", "21:15", "22:00", "22:45",
            "23:30", "00:15", "01:00", "01:45", "02:30",
        ]


class TestShiftTime:

    def test_shift_across_midnight(self):
        assert shift_time(hhmm("23:30"), 45) == hhmm("00:15")

    def test_shift_outside_hours_dropped(self):
        assert shift_time(hhmm("19:15"), -45) is None
        assert shift_time(hhmm("02:00"), 45) is None


class TestServiceDate:

    def test_evening_belongs_to_same_date(self):
        assert service_date(datetime(2025, 3, 1, 21, 0)) == date(2025, 3, 1)

    def test_night_belongs_to_previous_date(self):
        assert service_date(datetime(2025, 3, 2, 1, 30)) == date(2025, 3, 1)

    def test_reservation_after_midnight_is_next_calendar_day(self):
        moment = reservation_datetime(date(2025, 3, 1), hhmm("01:00"))
        assert moment == datetime(2025, 3, 2, 1, 0)


class TestParsing:

    def test_parse_valid(self):
        assert parse_date("2025-03-01") == date(2025, 3, 1)
        assert parse_time("9:05") == hhmm("09:05")

    @pytest.mark.parametrize("value", ["01.03.2025", "2025-02-30", "", "2025-3-1"])
    def test_parse_date_invalid(self, value):
        with pytest.raises(ValidationError):
            parse_date(value)

    @pytest.mark.parametrize("value", ["24:00", "7pm", "12:60", ""])
    def test_parse_time_invalid(self, value):
        with pytest.raises(ValidationError):
            parse_time(value)
