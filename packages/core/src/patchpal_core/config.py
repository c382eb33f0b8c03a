import os
from pathlib import Path
from typing import Optional

import yaml

from patchpal_core.utils.paths import FilterRules

DEFAULT_PROMPT = (
    "Please review the following code patch. Focus on potential bugs, risks, and improvement suggestions."
)

DEFAULT_CONFIG: dict = {
    "model": "openai",  # provider: "openai" or "anthropic"
    "model_name": None,  # None = provider default
    "temperature": 1.0,
    "top_p": 1.0,
    "max_tokens": None,
    "prompt": DEFAULT_PROMPT,
    "language": None,  # e.g. "English", "Chinese"
    "max_patch_length": None,  # None = no limit
    "ignore": [],  # exact file names to skip
    "ignore_patterns": [],  # globs (or regexes) to skip
    "include_patterns": [],  # when set, only matching files are reviewed
    "target_label": None,  # only review PRs carrying this label
    "use_github_models": False,
    "openai_api_endpoint": None,
    "azure_api_version": None,
    "azure_deployment": None,
}

_LIST_KEYS = ("ignore", "ignore_patterns", "include_patterns")


def _split_lines(value: str) -> list[str]:
    return [v for v in value.split("\n") if v != ""]


def _split_commas(value: str) -> list[str]:
    return [v.strip() for v in value.split(",") if v.strip()]


def _parse_bool(value: str) -> bool:
    return value.strip().lower() == "true"


def _parse_number(value: str, cast):
    try:
        return cast(value)
    except ValueError:
        return None


# Environment variable -> config key, as used by the GitHub Action.
_STRING_ENV = {
    "MODEL": "model_name",
    "PROMPT": "prompt",
    "LANGUAGE": "language",
    "TARGET_LABEL": "target_label",
    "OPENAI_API_ENDPOINT": "openai_api_endpoint",
    "AZURE_API_VERSION": "azure_api_version",
    "AZURE_DEPLOYMENT": "azure_deployment",
}


def _env_overrides(environ) -> dict:
    """Read settings from environment variables; unset or empty variables are skipped."""
    overrides: dict = {}

    for name, key in _STRING_ENV.items():
        if environ.get(name):
            overrides[key] = environ[name]

    if environ.get("USE_GITHUB_MODELS"):
        overrides["use_github_models"] = _parse_bool(environ["USE_GITHUB_MODELS"])

    # Zero is treated as unset for sampling parameters.
    for key in ("temperature", "top_p"):
        number = _parse_number(environ.get(key) or "", float)
        if number:
            overrides[key] = number
    if environ.get("max_tokens"):
        overrides["max_tokens"] = _parse_number(environ["max_tokens"], int)
    if environ.get("MAX_PATCH_LENGTH"):
        overrides["max_patch_length"] = _parse_number(environ["MAX_PATCH_LENGTH"], int)

    ignore = environ.get("IGNORE") or environ.get("ignore")
    if ignore:
        overrides["ignore"] = _split_lines(ignore)
    if environ.get("IGNORE_PATTERNS"):
        overrides["ignore_patterns"] = _split_commas(environ["IGNORE_PATTERNS"])
    if environ.get("INCLUDE_PATTERNS"):
        overrides["include_patterns"] = _split_commas(environ["INCLUDE_PATTERNS"])

    return overrides


def load_config(config_path: str = ".patchpal.yml", cli_overrides: Optional[dict] = None, environ=None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .patchpal.yml in the current directory
      3. Environment variables (the names used by the GitHub Action)
      4. CLI argument overrides
    """
    environ = os.environ if environ is None else environ
    config = {**DEFAULT_CONFIG, **{key: list(DEFAULT_CONFIG[key]) for key in _LIST_KEYS}}

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        config.update(file_config)

    config.update(_env_overrides(environ))

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    # Resolve credentials from environment variables
    config["github_token"] = environ.get("GITHUB_TOKEN")
    config["openai_api_key"] = environ.get("OPENAI_API_KEY")
    config["anthropic_api_key"] = environ.get("ANTHROPIC_API_KEY")

    return config


def filter_rules(config: dict) -> FilterRules:
    """Build the path filter rules from the ignore/include settings."""
    return FilterRules(
        exact=set(config.get("ignore") or []),
        include=list(config.get("include_patterns") or []),
        exclude=list(config.get("ignore_patterns") or []),
    )
