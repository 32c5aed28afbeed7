"""Tests for the scheduling policy, working hours and settings."""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from conftest import MONDAY

from meet_scheduler.config import DEFAULT_WORKING_HOURS, Settings
from meet_scheduler.models.policy import (
    DayHours,
    SchedulingPolicy,
    WorkingHours,
    parse_minute_of_day,
)


class TestMinuteOfDay:
    @pytest.mark.parametrize("value,expected", [
        ("00:00", 0), ("09:00", 540), ("17:30", 1050), ("24:00", 1440), (" 9:05 ", 545),
    ])
    def test_valid(self, value, expected):
        assert parse_minute_of_day(value) == expected

    @pytest.mark.parametrize("value", ["9", "25:00", "12:60", "24:30", "ab:cd", ""])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_minute_of_day(value)


class TestDayHours:
    def test_minutes(self):
        hours = DayHours(start="09:00", end="17:00")
        assert (hours.start_minute, hours.end_minute) == (540, 1020)

    def test_end_before_start_rejected(self):
        with pytest.raises(ValidationError):
            DayHours(start="17:00", end="09:00")

    def test_empty_interval_rejected(self):
        with pytest.raises(ValidationError):
            DayHours(start="09:00", end="09:00")

    def test_frozen(self):
        hours = DayHours(start="09:00", end="17:00")
        with pytest.raises(ValidationError):
            hours.start = "10:00"


class TestWorkingHours:
    def test_lookup_by_python_weekday(self, working_hours):
        assert working_hours.for_date(MONDAY).start == "09:00"
        assert working_hours.for_date(MONDAY + timedelta(days=5)) is None
        assert working_hours.is_open(MONDAY + timedelta(days=6))

    def test_bad_weekday_key(self):
        with pytest.raises(ValidationError):
            WorkingHours(days={7: DayHours(start="09:00", end="17:00")})


class TestSchedulingPolicy:
    def test_defaults(self):
        policy = SchedulingPolicy()
        assert policy.meeting_duration_minutes == 45
        assert policy.tz.key == "Asia/Kolkata"

    def test_unknown_timezone(self):
        with pytest.raises(ValidationError):
            SchedulingPolicy(timezone="Mars/Olympus_Mons")

    @pytest.mark.parametrize("field", ["meeting_duration_minutes", "slot_interval_minutes"])
    def test_non_positive_rejected(self, field):
        with pytest.raises(ValidationError):
            SchedulingPolicy(**{field: 0})

    def test_immutable(self):
        policy = SchedulingPolicy()
        with pytest.raises(ValidationError):
            policy.min_hours_notice = 1


class TestSettings:
    def test_policy_from_env(self, monkeypatch):
        monkeypatch.setenv("MIN_HOURS_NOTICE", "2")
        monkeypatch.setenv("TIMEZONE", "Europe/Stockholm")
        policy = Settings(_env_file=None).scheduling_policy()
        assert policy.min_hours_notice == 2
        assert policy.timezone == "Europe/Stockholm"

    def test_working_hours_from_json_env(self, monkeypatch):
        monkeypatch.setenv(
            "WORKING_HOURS",
            '{"0": {"start": "08:00", "end": "12:00"}, "1": null}',
        )
        table = Settings(_env_file=None).working_hours_table()
        assert table.for_weekday(0).end_minute == 720
        assert table.for_weekday(1) is None
        assert table.for_weekday(2) is None

    def test_default_table_closes_saturday(self):
        assert DEFAULT_WORKING_HOURS[5] is None
        assert DEFAULT_WORKING_HOURS[6].start == "14:00"

    def test_startup_warnings(self, monkeypatch):
        for name in ("GOOGLE_CLIENT_ID", "GOOGLE_CLIENT_SECRET", "ADMIN_API_KEY"):
            monkeypatch.delenv(name, raising=False)
        s = Settings(_env_file=None, slot_interval_minutes=30, meeting_duration_minutes=45)
        warnings = s.validate_startup()
        assert any("overlap" in w for w in warnings)
        assert any("GOOGLE_CLIENT_ID" in w for w in warnings)
        assert any("ADMIN_API_KEY" in w for w in warnings)

    def test_startup_rejects_bad_policy(self):
        s = Settings(_env_file=None, timezone="Nowhere/Special")
        with pytest.raises(ValidationError):
            s.validate_startup()
