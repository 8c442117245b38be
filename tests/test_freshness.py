# tests/test_freshness.py

from datetime import datetime, timedelta, timezone

import pytest

from runehelp.freshness import FRESHNESS_WINDOW, should_refetch

NOW = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)


def test_no_snapshot_always_refetches():
    assert should_refetch(None, NOW) is True


@pytest.mark.parametrize("elapsed", [
    timedelta(0),
    timedelta(seconds=1),
    timedelta(minutes=4, seconds=59),
    timedelta(minutes=4, seconds=59, microseconds=999999),
])
def test_within_window_serves_cache(elapsed):
    assert should_refetch(NOW - elapsed, NOW) is False


@pytest.mark.parametrize("elapsed", [
    timedelta(minutes=5),
    timedelta(minutes=5, microseconds=1),
    timedelta(hours=3),
])
def test_at_or_after_window_refetches(elapsed):
    assert should_refetch(NOW - elapsed, NOW) is True


def test_window_is_five_minutes():
    assert FRESHNESS_WINDOW == timedelta(minutes=5)


def test_naive_timestamps_treated_as_utc():
    naive_latest = datetime(2026, 10, 19, 11, 58, 0)
    assert should_refetch(naive_latest, NOW) is False
    assert should_refetch(naive_latest - timedelta(minutes=3), NOW) is True
