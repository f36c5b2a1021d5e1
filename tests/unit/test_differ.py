from __future__ import annotations

from prgate.feedback.differ import new_since
from prgate.feedback.types import ReviewComment


def _comment(cid: str, body: str = "") -> ReviewComment:
    return ReviewComment(id=cid, author="claude[bot]", body=body)


class TestNewSince:
    def test_first_iteration_everything_is_new(self) -> None:
        current = [_comment("1"), _comment("2")]
        assert new_since(None, current) == current

    def test_identical_snapshots_yield_nothing(self) -> None:
        snapshot = [_comment("1"), _comment("2")]
        assert new_since(snapshot, list(snapshot)) == []

    def test_only_unseen_ids(self) -> None:
        previous = [_comment("1"), _comment("2")]
        current = [_comment("1"), _comment("2"), _comment("3")]
        assert [c.id for c in new_since(previous, current)] == ["3"]

    def test_compares_ids_not_bodies(self) -> None:
        previous = [_comment("1", "old text")]
        current = [_comment("1", "edited text")]
        assert new_since(previous, current) == []

    def test_duplicates_reported_once(self) -> None:
        current = [_comment("1"), _comment("1")]
        assert len(new_since([], current)) == 1
