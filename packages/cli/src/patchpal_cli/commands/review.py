"""review command: review one pull request event."""

from __future__ import annotations

import json

import click
from rich.console import Console

from patchpal_core.incremental import EventKind
from patchpal_core.reviewer import run_review

console = Console()


def _read_event(event_path: str) -> tuple[str | None, str | None, int | None]:
    """Return (action, repo full name, PR number) from a GitHub webhook payload file."""
    with open(event_path, encoding="utf-8") as f:
        payload = json.load(f)
    pull_request = payload.get("pull_request") or {}
    repository = payload.get("repository") or {}
    return payload.get("action"), repository.get("full_name"), pull_request.get("number")


@click.command("review")
@click.option("--repo", default=None, help="GitHub repository in owner/name format.")
@click.option("--pr", "pr_number", type=int, default=None, help="Pull request number.")
@click.option(
    "--event",
    "action",
    type=click.Choice([kind.value for kind in EventKind]),
    default=None,
    help="Pull request action being handled. 'synchronize' reviews only the new commits.",
)
@click.option(
    "--event-path",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    envvar="GITHUB_EVENT_PATH",
    help="GitHub webhook payload; supplies the action, repository and PR number.",
)
@click.option(
    "--model",
    type=click.Choice(["openai", "anthropic"]),
    default=None,
    help="AI model provider. Overrides config file.",
)
@click.option(
    "--config",
    "config_path",
    default=".patchpal.yml",
    show_default=True,
    envvar="PATCHPAL_CONFIG",
    help="Path to the configuration file.",
)
@click.option(
    "--shadow",
    "-s",
    is_flag=True,
    help="Dry-run mode: print review comments without posting to GitHub.",
)
def review_cmd(
    repo: str | None,
    pr_number: int | None,
    action: str | None,
    event_path: str | None,
    model: str | None,
    config_path: str,
    shadow: bool,
):
    """Review a pull request and post one comment per changed file.

    \b
    Environment variables:
      GITHUB_TOKEN         GitHub token (or use gh CLI)
      OPENAI_API_KEY       Required for --model openai unless GitHub Models is used
      ANTHROPIC_API_KEY    Required for --model anthropic
    """
    from patchpal_cli.auth import resolve_github_token
    from patchpal_core.config import load_config

    if event_path:
        event_action, event_repo, event_pr = _read_event(event_path)
        action = action or event_action
        repo = repo or event_repo
        pr_number = pr_number or event_pr

    if action is None:
        action = EventKind.FIRST_OPEN.value
    if action not in {kind.value for kind in EventKind}:
        console.print(f"[yellow]Ignoring pull_request action {action!r}.[/yellow]")
        return
    if not repo or pr_number is None:
        raise click.UsageError("Both --repo and --pr are required when no event payload is given.")

    config = load_config(config_path, cli_overrides={"model": model})

    token = resolve_github_token(config)
    if not token:
        raise click.UsageError(
            "No GitHub token found. Set GITHUB_TOKEN or run `gh auth login` first.\n"
            "Create a token at https://github.com/settings/tokens"
        )
    config["github_token"] = token

    outcome = run_review(
        repo=repo,
        pr_number=pr_number,
        config=config,
        event_kind=EventKind.from_action(action),
        shadow=shadow,
    )
    console.print(f"[bold]{outcome.status}[/bold]")
