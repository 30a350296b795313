"""Unit tests for bookcore.reading."""

from datetime import date

import pytest

from bookcore.reading import calculate_streak, clamp_progress, is_completed

TODAY = date(2025, 3, 10)


class TestClampProgress:
    """Tests for percentage clamping."""

    def test_clamps_range(self):
        assert clamp_progress(-5) == 0.0
        assert clamp_progress(42.5) == 42.5
        assert clamp_progress(150) == 100.0

    def test_nan_rejected(self):
        with pytest.raises(ValueError):
            clamp_progress(float("nan"))

    def test_is_completed(self):
        assert is_completed(100)
        assert is_completed(120)
        assert not is_completed(99.9)


class TestCalculateStreak:
    """Tests for consecutive-day reading streaks."""

    def test_no_activity(self):
        streak = calculate_streak([], TODAY)
        assert streak.current_streak == 0
        assert streak.longest_streak == 0
        assert streak.last_read_date is None

    def test_active_streak_ending_today(self):
        """Several reads on one day count once."""
        stamps = [
            "2025-03-10T08:00:00Z",
            "2025-03-10T21:00:00Z",
            "2025-03-09T12:00:00+00:00",
            "2025-03-08T12:00:00+00:00",
        ]
        streak = calculate_streak(stamps, TODAY)
        assert streak.current_streak == 3
        assert streak.longest_streak == 3
        assert streak.last_read_date == TODAY

    def test_streak_still_alive_from_yesterday(self):
        streak = calculate_streak(["2025-03-09", "2025-03-08"], TODAY)
        assert streak.current_streak == 2

    def test_broken_streak(self):
        """A gap before yesterday resets the current streak."""
        streak = calculate_streak(["2025-03-07", "2025-03-06"], TODAY)
        assert streak.current_streak == 0
        assert streak.longest_streak == 2

    def test_current_counts_only_latest_run(self):
        """Older runs count toward the longest streak only."""
        stamps = ["2025-03-10", "2025-03-09", "2025-03-05", "2025-03-04", "2025-03-03", "2025-03-02"]
        streak = calculate_streak(stamps, TODAY)
        assert streak.current_streak == 2
        assert streak.longest_streak == 4

    def test_fractional_seconds_and_offsets(self):
        """Postgres timestamps vary in fractional digits and may carry an offset."""
        stamps = [
            "2025-03-10T12:30:00.123456+00:00",
            "2025-03-09T08:00:00.5+00:00",
            "2025-03-09T01:00:00+05:00",
        ]
        streak = calculate_streak(stamps, TODAY)
        assert streak.current_streak == 3
        assert streak.last_read_date == TODAY
