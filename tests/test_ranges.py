"""Tests for half-open range expansion and validation."""

from datetime import date, datetime, timedelta

import pytest

from stayledger.domain.day_keys import decode_day_key, encode_day_key
from stayledger.domain.ranges import (
    InvalidRangeError,
    expand_range,
    nights,
    validate_range,
)


class TestExpandRange:
    def test_month_boundary_excludes_checkout_day(self):
        """[2025-06-28, 2025-07-02) covers four days; 07-02 is the checkout day."""
        keys = expand_range(date(2025, 6, 28), date(2025, 7, 2))

        assert keys == ["2025-06-28", "2025-06-29", "2025-06-30", "2025-07-01"]
        assert "2025-07-02" not in keys

    def test_single_night(self):
        assert expand_range(date(2025, 1, 1), date(2025, 1, 2)) == ["2025-01-01"]

    def test_year_boundary(self):
        assert expand_range(date(2025, 12, 30), date(2026, 1, 2)) == [
            "2025-12-30",
            "2025-12-31",
            "2026-01-01",
        ]

    def test_leap_day_included(self):
        assert "2024-02-29" in expand_range(date(2024, 2, 27), date(2024, 3, 2))

    def test_times_are_truncated_to_days(self):
        """Checkout later in the day than check-in still excludes the checkout day."""
        keys = expand_range(datetime(2025, 6, 28, 14, 0), datetime(2025, 7, 2, 15, 0))
        assert keys == ["2025-06-28", "2025-06-29", "2025-06-30", "2025-07-01"]

    def test_zero_length_is_empty(self):
        assert expand_range(date(2025, 6, 28), date(2025, 6, 28)) == []

    def test_same_day_different_times_is_empty(self):
        assert expand_range(datetime(2025, 6, 28, 9), datetime(2025, 6, 28, 18)) == []

    def test_inverted_is_empty(self):
        assert expand_range(date(2025, 7, 2), date(2025, 6, 28)) == []

    @pytest.mark.parametrize(
        "start,length",
        [(date(2025, 1, 1), 1), (date(2025, 2, 20), 14), (date(2024, 12, 1), 62), (date(2025, 6, 28), 4)],
    )
    def test_length_order_and_round_trip(self, start, length):
        end = start + timedelta(days=length)
        keys = expand_range(start, end)

        assert len(keys) == (end - start).days
        assert all(a < b for a, b in zip(keys, keys[1:]))
        for offset, key in enumerate(keys):
            expected = start + timedelta(days=offset)
            assert decode_day_key(key).date() == expected
            assert encode_day_key(decode_day_key(key)) == key


class TestValidateRange:
    def test_valid_range_passes(self):
        validate_range(date(2025, 6, 28), date(2025, 7, 2))

    def test_zero_length_rejected(self):
        with pytest.raises(InvalidRangeError):
            validate_range(date(2025, 6, 28), date(2025, 6, 28))

    def test_inverted_rejected(self):
        with pytest.raises(InvalidRangeError):
            validate_range(date(2025, 7, 2), date(2025, 6, 28))

    def test_max_days_enforced(self):
        with pytest.raises(InvalidRangeError, match="cannot exceed 7 days"):
            validate_range(date(2025, 6, 1), date(2025, 6, 9), max_days=7)

    def test_max_days_inclusive(self):
        validate_range(date(2025, 6, 1), date(2025, 6, 8), max_days=7)

    def test_nights(self):
        assert nights(datetime(2025, 6, 28, 14), datetime(2025, 7, 2, 11)) == 4


class TestDisjointRanges:
    @pytest.mark.parametrize(
        "a,b",
        [
            ((date(2025, 3, 1), date(2025, 3, 5)), (date(2025, 3, 5), date(2025, 3, 9))),
            ((date(2025, 3, 5), date(2025, 3, 9)), (date(2025, 3, 1), date(2025, 3, 5))),
            ((date(2025, 3, 1), date(2025, 3, 2)), (date(2025, 4, 1), date(2025, 4, 2))),
            ((datetime(2025, 3, 1, 15), datetime(2025, 3, 5, 11)), (datetime(2025, 3, 5, 15), datetime(2025, 3, 7, 11))),
        ],
    )
    def test_touching_or_separate_ranges_share_no_day(self, a, b):
        assert set(expand_range(*a)).isdisjoint(expand_range(*b))

    def test_overlapping_ranges_share_days(self):
        a = expand_range(date(2025, 3, 10), date(2025, 3, 15))
        b = expand_range(date(2025, 3, 12), date(2025, 3, 18))

        assert sorted(set(a) & set(b)) == ["2025-03-12", "2025-03-13", "2025-03-14"]
