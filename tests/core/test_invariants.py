"""Tests for chronoledger.core.invariants."""

from datetime import UTC, datetime, timedelta

import pytest

from chronoledger.core.errors import (
    ContinuityViolationError,
    MultipleOpenVersionsError,
    OverlappingVersionError,
)
from chronoledger.core.interval import OPEN
from chronoledger.core.invariants import ViolationKind, assert_valid, check_versions
from chronoledger.core.models import Version


def _ts(offset_hours: int = 0) -> datetime:
    base = datetime(2026, 1, 15, 12, 0, 0, tzinfo=UTC)
    return base + timedelta(hours=offset_hours)


def _v(vid: str, start: int, end: int | None = None, *, superseded: bool = False) -> Version:
    return Version(
        id=vid,
        entity_id="product-1",
        value=vid,
        valid_from=_ts(start),
        valid_to=OPEN if end is None else _ts(end),
        created_at=_ts(0),
        superseded_at=_ts(0) if superseded else None,
    )


class TestCheckVersions:
    def test_empty(self):
        assert check_versions([]) == []

    def test_tiled_history_is_clean(self):
        assert check_versions([_v("a", 0, 1), _v("b", 1, 5), _v("c", 5)]) == []

    def test_overlap(self):
        violations = check_versions([_v("a", 0, 3), _v("b", 2, 5)])
        assert [v.kind for v in violations] == [ViolationKind.OVERLAP]
        assert violations[0].version_ids == ("a", "b")

    def test_multiple_open(self):
        kinds = {v.kind for v in check_versions([_v("a", 0), _v("b", 2)])}
        assert ViolationKind.MULTIPLE_OPEN in kinds

    def test_gap_only_in_strict_mode(self):
        versions = [_v("a", 0, 1), _v("b", 2)]
        assert check_versions(versions) == []
        violations = check_versions(versions, strict_continuity=True)
        assert [v.kind for v in violations] == [ViolationKind.GAP]

    def test_superseded_rows_ignored(self):
        versions = [_v("a", 0, 1), _v("b", 1), _v("b-old", 1, superseded=True)]
        assert check_versions(versions) == []

    def test_input_order_irrelevant(self):
        assert check_versions([_v("c", 5), _v("a", 0, 1), _v("b", 1, 5)]) == []


class TestAssertValid:
    def test_passes_clean(self):
        assert_valid([_v("a", 0, 1), _v("b", 1)])

    @pytest.mark.parametrize(
        ("versions", "strict", "error"),
        [
            ([_v("a", 0, 3), _v("b", 2, 5)], False, OverlappingVersionError),
            ([_v("a", 0), _v("b", 0)], False, MultipleOpenVersionsError),
            ([_v("a", 0, 1), _v("b", 2)], True, ContinuityViolationError),
        ],
    )
    def test_raises_typed_error(self, versions, strict, error):
        with pytest.raises(error) as exc_info:
            assert_valid(versions, strict_continuity=strict)
        assert exc_info.value.context.entity_id == "product-1"
