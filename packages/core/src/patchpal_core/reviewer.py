"""Core PR review orchestration."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

from rich.console import Console

from patchpal_core.config import filter_rules
from patchpal_core.gh.pull_request import (
    LGTM_BODY,
    REVIEW_MARKER,
    compare,
    create_review,
    get_actions_variable,
    get_pull,
    get_repo,
    lookup_prior_review,
    post_issue_comment,
)
from patchpal_core.incremental import EventKind, RangeDecisionKind, resolve_range
from patchpal_core.providers.anthropic import AnthropicReviewer
from patchpal_core.providers.base import HunkReview
from patchpal_core.providers.openai import OpenAIReviewer
from patchpal_core.utils.patch import map_anchor
from patchpal_core.utils.paths import filter_files

console = Console()
logger = logging.getLogger(__name__)

OPENAI_API_KEY = "OPENAI_API_KEY"
_REVIEWABLE_STATUSES = ("added", "modified")
_MISSING_KEY_MESSAGE = (
    "Seems you are using me but didn't get OPENAI_API_KEY set in Variables/Secrets for this repo. "
    "Set it as an Actions variable or secret and push again."
)


@dataclass
class ReviewOutcome:
    """What happened to a review event.

    status is one of "success", "skipped", "no-change", "no-reviewer".
    """

    status: str
    head_sha: str = ""
    decision: RangeDecisionKind | None = None
    reviewed_files: list[str] = field(default_factory=list)
    skipped_files: list[str] = field(default_factory=list)
    comments: list[dict] = field(default_factory=list)


def _get_reviewer(config: dict, repo=None):
    """Build the configured provider, or return None when no API key can be found.

    For OpenAI the key comes from GitHub Models (the GitHub token), then
    OPENAI_API_KEY, then the repository's OPENAI_API_KEY Actions variable.
    """
    model = config["model"]
    common = {
        "model": config.get("model_name"),
        "temperature": config.get("temperature") or 1.0,
        "max_tokens": config.get("max_tokens"),
        "prompt": config.get("prompt"),
        "language": config.get("language"),
    }
    if model == "anthropic":
        api_key = config.get("anthropic_api_key")
        if not api_key:
            return None
        return AnthropicReviewer(api_key=api_key, **common)
    if model == "openai":
        use_github_models = bool(config.get("use_github_models")) and bool(config.get("github_token"))
        if use_github_models:
            api_key = config["github_token"]
        else:
            api_key = config.get("openai_api_key")
            if not api_key and repo is not None:
                api_key = get_actions_variable(repo, OPENAI_API_KEY)
        if not api_key:
            return None
        return OpenAIReviewer(
            api_key=api_key,
            top_p=config.get("top_p") or 1.0,
            base_url=config.get("openai_api_endpoint"),
            use_github_models=use_github_models,
            azure_api_version=config.get("azure_api_version"),
            azure_deployment=config.get("azure_deployment"),
            **common,
        )
    raise ValueError(f"Unknown model provider: {model!r}. Choose 'openai' or 'anthropic'.")


def _skip_reason(pr, target_label: str | None) -> str | None:
    if pr.state == "closed" or pr.locked:
        return "invalid event payload"
    if target_label and all(label.name != target_label for label in pr.labels or []):
        return "no target label attached"
    return None


def format_comment_body(reviews: list[HunkReview]) -> str:
    """Join the hunk-level feedback for one file into a single comment body."""
    parts = []
    for review in reviews:
        if not review.has_feedback:
            continue
        if review.hunk_header:
            parts.append(f"`{review.hunk_header}`\n\n{review.review_comment}")
        else:
            parts.append(review.review_comment)
    return "\n\n---\n\n".join(parts)


def is_reviewable(file, max_patch_length: int | None = None) -> bool:
    if file.status not in _REVIEWABLE_STATUSES:
        return False
    patch = file.patch or ""
    if not patch:
        return False
    if max_patch_length is not None and len(patch) > max_patch_length:
        logger.info("%s skipped caused by its diff is too large", file.filename)
        return False
    return True


def process_file(reviewer, file, max_patch_length: int | None = None) -> dict | None:
    """Review one file and return its anchored comment, or None.

    Files that are not added/modified, have no patch, or whose patch exceeds
    ``max_patch_length`` are not sent to the model.
    """
    if not is_reviewable(file, max_patch_length):
        return None

    patch = file.patch
    body = format_comment_body(reviewer.review(patch))
    if not body:
        return None

    anchor = map_anchor(patch)
    return {
        "path": file.filename,
        "body": body,
        "line": anchor.line,
        "side": anchor.side.value,
    }


def print_shadow_comments(comments: list[dict]) -> None:
    """Print review comments to the terminal without posting to GitHub."""
    if not comments:
        console.print("[yellow]Shadow mode: no comments generated.[/yellow]")
        return
    console.print(f"\n[bold]Shadow review: {len(comments)} comment(s) (not posted)[/bold]\n")
    for c in comments:
        console.print(f"[bold cyan]{c['path']}[/bold cyan]  line [bold]{c['line']}[/bold]  [dim]{c['side']}[/dim]")
        console.print(f"  {c['body']}")
        console.print()


def run_review(
    repo: str,
    pr_number: int,
    config: dict,
    event_kind: EventKind = EventKind.FIRST_OPEN,
    shadow: bool = False,
    repo_obj=None,
) -> ReviewOutcome:
    """Review one pull request event and post the result as a single review.

    Files are reviewed one at a time, in compare order. Errors from the
    compare API, the model and review submission propagate to the caller.
    """
    this_repo = repo_obj if repo_obj is not None else get_repo(repo, token=config["github_token"])
    this_pr = get_pull(this_repo, pr_number)

    reviewer = _get_reviewer(config, this_repo)
    if reviewer is None:
        logger.info("Chat initialized failed")
        if not shadow:
            post_issue_comment(this_pr, _MISSING_KEY_MESSAGE)
        return ReviewOutcome(status="no-reviewer")

    reason = _skip_reason(this_pr, config.get("target_label"))
    if reason:
        logger.info(reason)
        return ReviewOutcome(status="skipped")

    base_sha = this_pr.base.sha
    head_sha = this_pr.head.sha
    resolved = resolve_range(
        event_kind,
        base_sha,
        head_sha,
        compare=lambda base, head: compare(this_repo, base, head),
        lookup_prior_review=lambda: lookup_prior_review(this_pr),
    )
    decision = resolved.decision
    logger.debug("Review range (%s): %s..%s", decision.kind.value, decision.range.base, decision.range.head)
    if decision.kind is not RangeDecisionKind.FULL:
        console.print(
            f"[cyan]Reviewing {decision.range.base[:7]} → {decision.range.head[:7]} "
            f"({decision.kind.value}, {len(resolved.files)} file(s) changed)[/cyan]"
        )

    rules = filter_rules(config)
    logger.debug("ignore: %s", sorted(rules.exact))
    logger.debug("ignore_patterns: %s", rules.exclude)
    logger.debug("include_patterns: %s", rules.include)
    files = filter_files(resolved.files, rules)

    if not files:
        logger.info("no change found")
        return ReviewOutcome(status="no-change", head_sha=head_sha, decision=decision.kind)

    max_patch_length = config.get("max_patch_length")
    comments: list[dict] = []
    reviewed: list[str] = []
    skipped: list[str] = []
    review_start = time.monotonic()

    for i, file in enumerate(files, 1):
        if not is_reviewable(file, max_patch_length):
            console.print(f"  Skipping: {file.filename}")
            skipped.append(file.filename)
            continue

        console.print(f"[[{i}/{len(files)}]] Reviewing: {file.filename}")
        try:
            comment = process_file(reviewer, file, max_patch_length)
        except Exception as e:
            logger.info("review %s failed: %s", file.filename, e)
            raise
        reviewed.append(file.filename)
        if comment is not None:
            comments.append(comment)

    logger.info("Model review took %.1fs", time.monotonic() - review_start)

    if shadow:
        print_shadow_comments(comments)
    else:
        body = REVIEW_MARKER if comments else LGTM_BODY
        try:
            create_review(this_repo, this_pr, head_sha, body, comments)
        except Exception as e:
            logger.info("Failed to create review: %s", e)
            raise
        console.print(f"[green]Review posted: {len(comments)} comment(s) on {this_pr.html_url}[/green]")

    logger.info("successfully reviewed %s", this_pr.html_url)
    return ReviewOutcome(
        status="success",
        head_sha=head_sha,
        decision=decision.kind,
        reviewed_files=reviewed,
        skipped_files=skipped,
        comments=comments,
    )
