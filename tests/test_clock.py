"""Tests for elapsed-time and expiry display helpers."""
from datetime import datetime, timedelta

import pytest

from dispatch_quotes.clock import ExpiryInfo, FixedClock, time_since, time_until_expiry

NOW = datetime(2026, 3, 2, 9, 0, 0)


class TestTimeUntilExpiry:
    def test_past_expiry_is_expired(self):
        assert time_until_expiry(NOW - timedelta(seconds=1), NOW) == ExpiryInfo("Expired", True, True)

    def test_expiring_exactly_now_is_expired(self):
        assert time_until_expiry(NOW, NOW) == ExpiryInfo("Expired", True, True)

    def test_thirty_minutes_left(self):
        assert time_until_expiry(NOW + timedelta(minutes=30), NOW) == ExpiryInfo("30m left", True, False)

    def test_minutes_are_floored(self):
        info = time_until_expiry(NOW + timedelta(minutes=59, seconds=59), NOW)
        assert info == ExpiryInfo("59m left", True, False)

    def test_ten_hours_left_is_urgent(self):
        assert time_until_expiry(NOW + timedelta(hours=10), NOW) == ExpiryInfo("10h left", True, False)

    def test_twelve_hours_left_is_not_urgent(self):
        assert time_until_expiry(NOW + timedelta(hours=12), NOW) == ExpiryInfo("12h left", False, False)

    def test_just_under_a_day_stays_in_hours(self):
        info = time_until_expiry(NOW + timedelta(hours=23, minutes=59), NOW)
        assert info == ExpiryInfo("23h left", False, False)

    def test_two_days_left(self):
        assert time_until_expiry(NOW + timedelta(hours=48), NOW) == ExpiryInfo("2d left", False, False)

    def test_days_are_floored(self):
        info = time_until_expiry(NOW + timedelta(hours=71, minutes=59), NOW)
        assert info.text == "2d left"


class TestTimeSince:
    def test_never(self):
        assert time_since(None, NOW) == "Never"

    @pytest.mark.parametrize("elapsed, expected", [
        (timedelta(seconds=30), "Just now"),
        (timedelta(minutes=1), "1m ago"),
        (timedelta(minutes=59, seconds=59), "59m ago"),
        (timedelta(hours=1, minutes=59), "1h ago"),
        (timedelta(hours=23, minutes=59), "23h ago"),
        (timedelta(days=1), "1d ago"),
        (timedelta(days=6, hours=23), "6d ago"),
    ])
    def test_buckets(self, elapsed, expected):
        assert time_since(NOW - elapsed, NOW) == expected

    def test_older_than_a_week_shows_date(self):
        assert time_since(NOW - timedelta(days=8), NOW) == "2/22/2026"


class TestFixedClock:
    def test_advance(self):
        clock = FixedClock(NOW)
        clock.advance(hours=2)
        clock.advance(timedelta(minutes=5))
        assert clock.now() == NOW + timedelta(hours=2, minutes=5)

    def test_set_jumps_to_instant(self):
        clock = FixedClock(NOW)
        later = datetime(2026, 3, 9, 17, 45)
        clock.set(later)
        assert clock.now() == later
        assert clock.advance(minutes=15) == later + timedelta(minutes=15)
