from __future__ import annotations

import logging

from github import Github, GithubException

from patchpal_core.incremental import Found, LookupFailed, NotFound, PriorReview

logger = logging.getLogger(__name__)

# Review bodies we post. Previous reviews are recognised by these prefixes.
REVIEW_MARKER = "Code review by ChatGPT"
LGTM_MARKER = "LGTM"
LGTM_BODY = "LGTM 👍"
_REVIEW_MARKERS = (REVIEW_MARKER, LGTM_MARKER)


def get_repo(repo_name: str, token: str):
    return Github(token).get_repo(repo_name)


def get_pull(repo, pr_number: int):
    return repo.get_pull(pr_number)


def compare(repo, base_sha: str, head_sha: str):
    """Return GitHub's comparison between two commits (``.files`` and ``.commits``)."""
    return repo.compare(base_sha, head_sha)


def find_prior_review(reviews) -> PriorReview:
    """Scan reviews (oldest first) for our most recent one.

    Only the newest marked review counts: if it has no commit id the result is
    NotFound, older marked reviews are not consulted.
    """
    for review in reversed(list(reviews)):
        body = review.body or ""
        if body.startswith(_REVIEW_MARKERS):
            if review.commit_id:
                return Found(commit_id=review.commit_id)
            return NotFound()
    return NotFound()


def lookup_prior_review(pr) -> PriorReview:
    """Recover the head commit of our last review from the PR's review history."""
    try:
        reviews = list(pr.get_reviews())
    except Exception as e:
        return LookupFailed(error=e)
    return find_prior_review(reviews)


def get_actions_variable(repo, name: str) -> str | None:
    """Return the value of a repository Actions variable, or None if it is not set."""
    try:
        variable = repo.get_variable(name)
    except GithubException as e:
        logger.debug("Could not read Actions variable %s: %s", name, e)
        return None
    return variable.value or None


def post_issue_comment(pr, body: str) -> None:
    pr.create_issue_comment(body)


def create_review(repo, pr, head_sha: str, body: str, comments: list[dict]) -> None:
    """Post a single COMMENT review pinned to ``head_sha``.

    Each comment is ``{path, body, line, side}``.
    """
    pr.create_review(
        commit=repo.get_commit(head_sha),
        body=body,
        event="COMMENT",
        comments=comments,
    )
