"""Tests for chronoledger.core.timestamps (ULIDs, UTC handling, ISO text)."""

from datetime import UTC, datetime, timedelta, timezone

import pytest

from chronoledger.core.errors import InvalidTimestampError
from chronoledger.core.interval import OPEN
from chronoledger.core.timestamps import (
    ensure_utc,
    from_iso8601,
    generate_ulid,
    to_iso8601,
    utc_now,
)


class TestUlid:
    def test_length_and_alphabet(self):
        ulid = generate_ulid()
        assert len(ulid) == 26
        assert set(ulid) <= set("0123456789ABCDEFGHJKMNPQRSTVWXYZ")

    def test_unique(self):
        assert len({generate_ulid() for _ in range(500)}) == 500


class TestUtc:
    def test_utc_now_is_aware(self):
        assert utc_now().tzinfo is not None

    def test_ensure_utc_converts_offset(self):
        dt = datetime(2026, 1, 15, 7, 0, tzinfo=timezone(timedelta(hours=-5)))
        assert ensure_utc(dt) == datetime(2026, 1, 15, 12, 0, tzinfo=UTC)
        assert ensure_utc(dt).utcoffset() == timedelta(0)

    def test_ensure_utc_rejects_naive(self):
        with pytest.raises(InvalidTimestampError):
            ensure_utc(datetime(2026, 1, 15))

    def test_ensure_utc_rejects_non_datetime(self):
        with pytest.raises(InvalidTimestampError):
            ensure_utc("2026-01-15T00:00:00Z")  # type: ignore[arg-type]


class TestIsoText:
    def test_none_passthrough(self):
        assert to_iso8601(None) is None
        assert from_iso8601(None) is None

    def test_fixed_width(self):
        a = to_iso8601(datetime(2026, 1, 15, tzinfo=UTC))
        b = to_iso8601(datetime(2026, 1, 15, 0, 0, 0, 123456, tzinfo=UTC))
        assert len(a) == len(b)
        assert a == "2026-01-15T00:00:00.000000+00:00"

    def test_text_order_matches_time_order(self):
        instants = [
            datetime(2026, 1, 15, 0, 0, 0, 1, tzinfo=UTC),
            datetime(2025, 12, 31, 23, 59, 59, tzinfo=UTC),
            OPEN,
            datetime(2026, 1, 15, tzinfo=UTC),
        ]
        assert sorted(instants) == sorted(instants, key=to_iso8601)

    def test_open_marker_survives(self):
        assert from_iso8601(to_iso8601(OPEN)) == OPEN
