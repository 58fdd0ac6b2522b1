"""Tests for chronoledger.core.models."""

from datetime import UTC, datetime, timedelta

from chronoledger.core.interval import OPEN, Interval
from chronoledger.core.models import PlanAction, Version, VersionChange


def _ts(offset_hours: int = 0) -> datetime:
    base = datetime(2026, 1, 15, 12, 0, 0, tzinfo=UTC)
    return base + timedelta(hours=offset_hours)


def _version(**overrides) -> Version:
    fields = dict(
        id="01J0000000000000000000000A",
        entity_id="product-1",
        value=100,
        valid_from=_ts(0),
        valid_to=OPEN,
        created_at=_ts(0),
    )
    fields.update(overrides)
    return Version(**fields)


class TestVersion:
    def test_open(self):
        v = _version()
        assert v.is_open
        assert v.interval == Interval(_ts(0))
        assert not v.is_superseded

    def test_is_effective(self):
        v = _version(valid_from=_ts(5))
        assert not v.is_effective(_ts(4))
        assert v.is_effective(_ts(5))

    def test_known_at(self):
        v = _version(created_at=_ts(1), superseded_at=_ts(3))
        assert not v.known_at(_ts(0))
        assert v.known_at(_ts(1))
        assert v.known_at(_ts(2))
        assert not v.known_at(_ts(3))

    def test_valid_to_known_at(self):
        v = _version(valid_to=_ts(10), closed_at=_ts(4))
        assert v.valid_to_known_at(_ts(3)) == OPEN
        assert v.valid_to_known_at(_ts(4)) == _ts(10)

    def test_to_dict(self):
        d = _version(valid_to=_ts(2), closed_at=_ts(1)).to_dict()
        assert d["value"] == 100
        assert d["valid_from"] == "2026-01-15T12:00:00.000000+00:00"
        assert d["valid_to"] == "2026-01-15T14:00:00.000000+00:00"
        assert d["superseded_at"] is None

    def test_to_dict_open_end_is_none(self):
        assert _version().to_dict()["valid_to"] is None


class TestMisc:
    def test_version_change_effective_at(self):
        change = VersionChange("product-1", "v1", Interval(_ts(3)), 250, previous_value=100)
        assert change.effective_at == _ts(3)

    def test_plan_action_is_str(self):
        assert PlanAction.CLOSE_AND_APPEND == "close_and_append"
