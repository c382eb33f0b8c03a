"""Decide which commit range a review event covers.

A freshly opened PR is reviewed base..head. When new commits are pushed
(a ``synchronize`` event) we only want to look at what changed since our
last review. The ladder, first applicable rung wins:

    PRIOR_MARKER   our last review carries a commit id -> that commit..head
    LAST_PUSH      the PR has >= 2 commits            -> commits[-2]..commits[-1]
    FALLBACK_FULL  anything else                      -> base..head again

``decide_range`` is the pure ladder over a tagged prior-review lookup result.
``resolve_range`` runs the compare calls the decision needs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    FIRST_OPEN = "opened"
    UPDATE = "synchronize"

    @classmethod
    def from_action(cls, action: str) -> EventKind:
        try:
            return cls(action)
        except ValueError:
            raise ValueError(f"Unsupported pull_request action: {action!r}. Expected 'opened' or 'synchronize'.")


# Prior review lookup results.


@dataclass(frozen=True)
class Found:
    commit_id: str


@dataclass(frozen=True)
class NotFound:
    pass


@dataclass(frozen=True)
class LookupFailed:
    error: Exception


PriorReview = Found | NotFound | LookupFailed


class RangeDecisionKind(str, Enum):
    FULL = "full"
    PRIOR_MARKER = "prior-marker"
    LAST_PUSH = "last-push"
    FALLBACK_FULL = "fallback-full"


@dataclass(frozen=True)
class ChangeRange:
    base: str
    head: str


@dataclass(frozen=True)
class RangeDecision:
    kind: RangeDecisionKind
    range: ChangeRange


@dataclass
class ResolvedRange:
    """The files and commits a review event should look at."""

    decision: RangeDecision
    files: list = field(default_factory=list)
    commits: list = field(default_factory=list)


def decide_range(
    event_kind: EventKind,
    prior: PriorReview,
    commit_shas: list[str],
    base_sha: str,
    head_sha: str,
) -> RangeDecision:
    full = ChangeRange(base=base_sha, head=head_sha)
    if event_kind is EventKind.FIRST_OPEN:
        return RangeDecision(RangeDecisionKind.FULL, full)
    if isinstance(prior, Found):
        return RangeDecision(RangeDecisionKind.PRIOR_MARKER, ChangeRange(base=prior.commit_id, head=head_sha))
    if len(commit_shas) >= 2:
        return RangeDecision(RangeDecisionKind.LAST_PUSH, ChangeRange(base=commit_shas[-2], head=commit_shas[-1]))
    return RangeDecision(RangeDecisionKind.FALLBACK_FULL, full)


def resolve_range(
    event_kind: EventKind,
    base_sha: str,
    head_sha: str,
    compare: Callable[[str, str], object],
    lookup_prior_review: Callable[[], PriorReview],
) -> ResolvedRange:
    """Run the range ladder against the GitHub compare API.

    ``compare(base, head)`` must return an object with ``files`` and
    ``commits``. Failures of the base..head compare and of the last-push
    compare propagate. A failed prior-review lookup, or a failed compare from
    the prior review's commit (e.g. it was force-pushed away), is logged and
    handled exactly like "no prior review".
    """
    full = compare(base_sha, head_sha)
    files = list(full.files)
    commits = list(full.commits)
    commit_shas = [c.sha for c in commits]

    if event_kind is EventKind.FIRST_OPEN:
        return ResolvedRange(decide_range(event_kind, NotFound(), commit_shas, base_sha, head_sha), files, commits)

    try:
        prior = lookup_prior_review()
    except Exception as e:
        prior = LookupFailed(e)
    if isinstance(prior, LookupFailed):
        logger.debug("Failed to detect previous review, falling back: %s", prior.error)

    decision = decide_range(event_kind, prior, commit_shas, base_sha, head_sha)

    if decision.kind is RangeDecisionKind.PRIOR_MARKER:
        try:
            comparison = compare(decision.range.base, decision.range.head)
            return ResolvedRange(decision, list(comparison.files), list(comparison.commits))
        except Exception as e:
            logger.debug("Could not compare from last reviewed commit %s, falling back: %s", decision.range.base, e)
            decision = decide_range(event_kind, LookupFailed(e), commit_shas, base_sha, head_sha)

    if decision.kind is RangeDecisionKind.LAST_PUSH:
        comparison = compare(decision.range.base, decision.range.head)
        return ResolvedRange(decision, list(comparison.files), commits)

    return ResolvedRange(decision, files, commits)
