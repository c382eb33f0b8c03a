"""GitHub token resolution.

In Actions the token arrives as GITHUB_TOKEN. Locally we also accept GH_TOKEN
and, failing that, the session stored by `gh auth login`.
"""

from __future__ import annotations

import logging
import os
import subprocess

logger = logging.getLogger(__name__)

_TOKEN_ENV_VARS = ("GITHUB_TOKEN", "GH_TOKEN")


def _gh_cli_token() -> str | None:
    try:
        result = subprocess.run(["gh", "auth", "token"], capture_output=True, text=True, timeout=5)
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return None
    if result.returncode != 0:
        return None
    return result.stdout.strip() or None


def resolve_github_token(config: dict | None = None) -> str | None:
    """Return the first GitHub token found, or None.

    Order: ``config["github_token"]``, GITHUB_TOKEN / GH_TOKEN, `gh auth token`.
    """
    if config and config.get("github_token"):
        return config["github_token"]
    for name in _TOKEN_ENV_VARS:
        if os.environ.get(name):
            return os.environ[name]
    token = _gh_cli_token()
    if token:
        logger.debug("Resolved GitHub token via gh CLI session.")
    return token
