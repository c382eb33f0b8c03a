"""Tests for the incremental range ladder: which commits a review event covers."""

import types
from unittest.mock import MagicMock

import pytest

from patchpal_core.incremental import (
    ChangeRange,
    EventKind,
    Found,
    LookupFailed,
    NotFound,
    RangeDecisionKind,
    decide_range,
    resolve_range,
)

BASE = "base000"
HEAD = "def456"


def _commit(sha):
    return types.SimpleNamespace(sha=sha)


def _comparison(files, shas):
    return types.SimpleNamespace(files=files, commits=[_commit(s) for s in shas])


class _Compare:
    """Records every compare() call and answers from a (base, head) -> comparison table."""

    def __init__(self, table, errors=None):
        self.table = table
        self.errors = errors or {}
        self.calls = []

    def __call__(self, base, head):
        self.calls.append((base, head))
        if (base, head) in self.errors:
            raise self.errors[(base, head)]
        return self.table[(base, head)]


# ---------------------------------------------------------------------------
# decide_range: pure ladder
# ---------------------------------------------------------------------------


class TestDecideRange:
    def test_first_open_is_always_full(self):
        decision = decide_range(EventKind.FIRST_OPEN, Found("abc123"), ["c1", "c2"], BASE, HEAD)
        assert decision.kind is RangeDecisionKind.FULL
        assert decision.range == ChangeRange(BASE, HEAD)

    def test_prior_marker_compares_from_reviewed_commit(self):
        decision = decide_range(EventKind.UPDATE, Found("abc123"), ["c1", "c2"], BASE, HEAD)
        assert decision.kind is RangeDecisionKind.PRIOR_MARKER
        assert decision.range == ChangeRange("abc123", HEAD)

    @pytest.mark.parametrize("prior", [NotFound(), LookupFailed(RuntimeError("boom"))])
    def test_last_push_when_no_prior_marker(self, prior):
        decision = decide_range(EventKind.UPDATE, prior, ["c1", "c2", "c3"], BASE, HEAD)
        assert decision.kind is RangeDecisionKind.LAST_PUSH
        assert decision.range == ChangeRange("c2", "c3")

    @pytest.mark.parametrize("shas", [[], ["c1"]])
    def test_fallback_full_with_fewer_than_two_commits(self, shas):
        decision = decide_range(EventKind.UPDATE, NotFound(), shas, BASE, HEAD)
        assert decision.kind is RangeDecisionKind.FALLBACK_FULL
        assert decision.range == ChangeRange(BASE, HEAD)


class TestEventKind:
    def test_from_action(self):
        assert EventKind.from_action("opened") is EventKind.FIRST_OPEN
        assert EventKind.from_action("synchronize") is EventKind.UPDATE

    def test_unknown_action_raises(self):
        with pytest.raises(ValueError, match="Unsupported pull_request action"):
            EventKind.from_action("closed")


# ---------------------------------------------------------------------------
# resolve_range: ladder plus compare calls
# ---------------------------------------------------------------------------


class TestResolveRange:
    def test_first_open_returns_full_comparison(self):
        full = _comparison(["a.py", "b.py"], ["c1", "c2"])
        compare = _Compare({(BASE, HEAD): full})
        lookup = MagicMock()

        resolved = resolve_range(EventKind.FIRST_OPEN, BASE, HEAD, compare, lookup)

        assert compare.calls == [(BASE, HEAD)]
        lookup.assert_not_called()
        assert resolved.decision.kind is RangeDecisionKind.FULL
        assert resolved.files == ["a.py", "b.py"]
        assert [c.sha for c in resolved.commits] == ["c1", "c2"]

    def test_update_with_prior_review_compares_from_its_commit(self):
        compare = _Compare(
            {
                (BASE, HEAD): _comparison(["a.py", "b.py"], ["abc123", HEAD]),
                ("abc123", HEAD): _comparison(["b.py"], [HEAD]),
            }
        )

        resolved = resolve_range(EventKind.UPDATE, BASE, HEAD, compare, lambda: Found("abc123"))

        assert compare.calls[-1] == ("abc123", HEAD)
        assert resolved.decision.kind is RangeDecisionKind.PRIOR_MARKER
        assert resolved.files == ["b.py"]
        assert [c.sha for c in resolved.commits] == [HEAD]

    def test_update_without_prior_review_uses_last_push(self):
        compare = _Compare(
            {
                (BASE, "c3"): _comparison(["a.py", "b.py", "c.py"], ["c1", "c2", "c3"]),
                ("c2", "c3"): _comparison(["c.py"], ["c3"]),
            }
        )

        resolved = resolve_range(EventKind.UPDATE, BASE, "c3", compare, lambda: NotFound())

        assert compare.calls == [(BASE, "c3"), ("c2", "c3")]
        assert resolved.decision.kind is RangeDecisionKind.LAST_PUSH
        assert resolved.files == ["c.py"]
        # The commit list stays that of the whole PR.
        assert [c.sha for c in resolved.commits] == ["c1", "c2", "c3"]

    def test_update_with_single_commit_keeps_full_file_list(self):
        compare = _Compare({(BASE, "c1"): _comparison(["a.py", "b.py"], ["c1"])})

        resolved = resolve_range(EventKind.UPDATE, BASE, "c1", compare, lambda: NotFound())

        assert compare.calls == [(BASE, "c1")]
        assert resolved.decision.kind is RangeDecisionKind.FALLBACK_FULL
        assert resolved.files == ["a.py", "b.py"]

    def test_failed_lookup_is_treated_as_no_marker(self):
        compare = _Compare(
            {
                (BASE, "c2"): _comparison(["a.py", "b.py"], ["c1", "c2"]),
                ("c1", "c2"): _comparison(["b.py"], ["c2"]),
            }
        )

        resolved = resolve_range(
            EventKind.UPDATE, BASE, "c2", compare, lambda: LookupFailed(ConnectionError("timeout"))
        )

        assert resolved.decision.kind is RangeDecisionKind.LAST_PUSH
        assert resolved.files == ["b.py"]

    def test_lookup_that_raises_is_treated_as_no_marker(self):
        compare = _Compare(
            {
                (BASE, "c2"): _comparison(["a.py", "b.py"], ["c1", "c2"]),
                ("c1", "c2"): _comparison(["b.py"], ["c2"]),
            }
        )

        def lookup():
            raise RuntimeError("401 Bad credentials")

        resolved = resolve_range(EventKind.UPDATE, BASE, "c2", compare, lookup)

        assert resolved.decision.kind is RangeDecisionKind.LAST_PUSH

    def test_failed_compare_from_prior_commit_falls_back_to_last_push(self):
        compare = _Compare(
            {
                (BASE, "c2"): _comparison(["a.py", "b.py"], ["c1", "c2"]),
                ("c1", "c2"): _comparison(["b.py"], ["c2"]),
            },
            errors={("gone", "c2"): RuntimeError("404 No common ancestor")},
        )

        resolved = resolve_range(EventKind.UPDATE, BASE, "c2", compare, lambda: Found("gone"))

        assert compare.calls == [(BASE, "c2"), ("gone", "c2"), ("c1", "c2")]
        assert resolved.decision.kind is RangeDecisionKind.LAST_PUSH
        assert resolved.files == ["b.py"]

    def test_failed_compare_from_prior_commit_with_one_commit_keeps_full(self):
        compare = _Compare(
            {(BASE, "c1"): _comparison(["a.py"], ["c1"])},
            errors={("gone", "c1"): RuntimeError("404")},
        )

        resolved = resolve_range(EventKind.UPDATE, BASE, "c1", compare, lambda: Found("gone"))

        assert resolved.decision.kind is RangeDecisionKind.FALLBACK_FULL
        assert resolved.files == ["a.py"]

    def test_initial_compare_failure_propagates(self):
        compare = _Compare({}, errors={(BASE, HEAD): RuntimeError("500")})
        with pytest.raises(RuntimeError, match="500"):
            resolve_range(EventKind.UPDATE, BASE, HEAD, compare, lambda: NotFound())

    def test_last_push_compare_failure_propagates(self):
        compare = _Compare(
            {(BASE, "c2"): _comparison(["a.py"], ["c1", "c2"])},
            errors={("c1", "c2"): RuntimeError("502")},
        )
        with pytest.raises(RuntimeError, match="502"):
            resolve_range(EventKind.UPDATE, BASE, "c2", compare, lambda: NotFound())
