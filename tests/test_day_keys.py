"""Tests for day key encoding, decoding and month bounds."""

from datetime import date, datetime, timedelta, timezone

import pytest

from stayledger.domain.day_keys import (
    InvalidDayKeyError,
    decode_day_key,
    encode_day_key,
    month_bounds,
)


class TestEncode:
    def test_date_is_zero_padded(self):
        assert encode_day_key(date(2025, 3, 7)) == "2025-03-07"

    def test_datetime_uses_its_calendar_day(self):
        assert encode_day_key(datetime(2025, 12, 24, 23, 59)) == "2025-12-24"

    def test_aware_datetime_is_not_normalised_to_utc(self):
        """21:30 at UTC-05:00 is already the next day in UTC; the key keeps the local day."""
        value = datetime(2025, 6, 28, 21, 30, tzinfo=timezone(timedelta(hours=-5)))
        assert encode_day_key(value) == "2025-06-28"

    def test_same_value_same_key(self):
        d = datetime(2025, 1, 1, 8, 0)
        assert encode_day_key(d) == encode_day_key(d)


class TestDecode:
    def test_returns_local_midnight(self):
        assert decode_day_key("2025-07-01") == datetime(2025, 7, 1, 0, 0)

    def test_round_trip_at_day_granularity(self):
        d = datetime(2024, 2, 29, 15, 45)
        assert decode_day_key(encode_day_key(d)).date() == d.date()

    @pytest.mark.parametrize("bad", ["2025-7-01", "2025/07/01", "20250701", "", "2025-07-01T00:00"])
    def test_malformed_rejected(self, bad):
        with pytest.raises(InvalidDayKeyError):
            decode_day_key(bad)

    def test_impossible_date_rejected(self):
        with pytest.raises(InvalidDayKeyError):
            decode_day_key("2025-02-30")

    def test_error_is_value_error(self):
        with pytest.raises(ValueError):
            decode_day_key("nope")


class TestMonthBounds:
    def test_thirty_day_month(self):
        assert month_bounds(2025, 6) == ("2025-06-01", "2025-06-30")

    def test_leap_february(self):
        assert month_bounds(2024, 2) == ("2024-02-01", "2024-02-29")

    def test_december(self):
        assert month_bounds(2025, 12) == ("2025-12-01", "2025-12-31")

    @pytest.mark.parametrize("month", [0, 13])
    def test_month_out_of_range(self, month):
        with pytest.raises(ValueError):
            month_bounds(2025, month)

    def test_lexicographic_order_matches_chronological(self):
        keys = [encode_day_key(date(2025, 9, 30) + timedelta(days=i)) for i in range(40)]
        assert keys == sorted(keys)
