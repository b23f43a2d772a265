"""Tests for docspine.core.timestamps."""

from datetime import UTC, datetime, timedelta, timezone

from docspine.core.timestamps import ensure_utc, from_iso8601, from_unix, to_iso8601, utc_now


class TestUtcNow:
    def test_is_aware_utc(self):
        now = utc_now()
        assert now.tzinfo is not None
        assert now.utcoffset() == timedelta(0)


class TestEnsureUtc:
    def test_naive_treated_as_utc(self):
        naive = datetime(2024, 1, 2, 3, 4, 5)
        assert ensure_utc(naive) == datetime(2024, 1, 2, 3, 4, 5, tzinfo=UTC)

    def test_aware_converted(self):
        eastern = datetime(2024, 1, 2, 3, 0, tzinfo=timezone(timedelta(hours=-5)))
        assert ensure_utc(eastern).hour == 8


class TestIsoRoundTrip:
    def test_none_passthrough(self):
        assert to_iso8601(None) is None
        assert from_iso8601(None) is None

    def test_round_trip(self):
        moment = datetime(2024, 6, 1, 12, 30, tzinfo=UTC)
        assert from_iso8601(to_iso8601(moment)) == moment


class TestFromUnix:
    def test_epoch(self):
        assert from_unix(0) == datetime(1970, 1, 1, tzinfo=UTC)
