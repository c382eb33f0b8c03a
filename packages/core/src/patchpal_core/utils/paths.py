"""Decide which changed files take part in a review.

Three knobs, evaluated in this order:
  - include patterns: when set, only matching paths are reviewed and every
    exclusion rule is bypassed
  - exact names: paths listed verbatim are skipped
  - exclude patterns: matching paths are skipped

Patterns are globs matched against the repository-relative path:
  "/src/*.py"   anchored at the repository root
  "**/gen/*"    used as written
  "*.lock"      matches at any directory depth (treated as "**/*.lock")

A pattern that is not a valid glob is tried as a regular expression
(``re.search`` against the full path). A pattern that is neither matches
nothing. Nothing in this module raises on bad input.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from urllib.parse import unquote, urlparse

logger = logging.getLogger(__name__)

# GitHub (and GHES, which prefixes /api/v3) serve file contents at
# /repos/{owner}/{repo}/contents/{path}.
_CONTENTS_PATH_RE = re.compile(r"/repos/[^/]+/[^/]+/contents/(.*)$")


class InvalidGlobError(ValueError):
    """Raised by glob_to_regex for patterns that are not syntactically valid globs."""


@dataclass
class FilterRules:
    exact: set[str] = field(default_factory=set)
    include: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)


def path_from_contents_url(url: str) -> str:
    """Turn a file's ``contents_url`` into a plain repository-relative path."""
    path = unquote(urlparse(url).path)
    match = _CONTENTS_PATH_RE.search(path)
    if match:
        return match.group(1)
    return path.lstrip("/")


def normalize_path(path: str) -> str:
    if "://" in path:
        return path_from_contents_url(path)
    return path.lstrip("/")


def _find_class_end(pattern: str, start: int) -> int:
    """Index of the ``]`` closing the class opened at ``start``, or -1."""
    i = start + 1
    if i < len(pattern) and pattern[i] in "!^":
        i += 1
    # A leading "]" is a literal member of the class.
    if i < len(pattern) and pattern[i] == "]":
        i += 1
    while i < len(pattern):
        if pattern[i] == "\\":
            i += 2
            continue
        if pattern[i] == "]":
            return i
        i += 1
    return -1


def _find_brace_end(pattern: str, start: int) -> tuple[int, list[str]]:
    """Return the closing index of the brace group at ``start`` and its top-level alternatives."""
    depth = 0
    alternatives: list[str] = []
    current = start + 1
    i = start
    while i < len(pattern):
        char = pattern[i]
        if char == "\\":
            i += 2
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                alternatives.append(pattern[current:i])
                return i, alternatives
        elif char == "," and depth == 1:
            alternatives.append(pattern[current:i])
            current = i + 1
        i += 1
    raise InvalidGlobError(f"unbalanced '{{' in {pattern!r}")


def _translate(pattern: str) -> str:
    out: list[str] = []
    i = 0
    n = len(pattern)
    while i < n:
        char = pattern[i]
        if char == "*":
            at_segment_start = i == 0 or pattern[i - 1] == "/"
            if pattern.startswith("**", i) and at_segment_start and (i + 2 == n or pattern[i + 2] == "/"):
                if i + 2 == n:
                    out.append(".*")
                    i += 2
                else:
                    out.append("(?:[^/]*/)*")
                    i += 3
                continue
            while i < n and pattern[i] == "*":
                i += 1
            out.append("[^/]*")
            continue
        if char == "?":
            out.append("[^/]")
        elif char == "[":
            end = _find_class_end(pattern, i)
            if end == -1:
                raise InvalidGlobError(f"unterminated character class in {pattern!r}")
            body = pattern[i + 1 : end]
            negate = body[:1] in ("!", "^")
            if negate:
                body = body[1:]
            body = body.replace("\\", "\\\\")
            out.append(f"[{'^' if negate else ''}{body}]")
            i = end + 1
            continue
        elif char == "{":
            end, alternatives = _find_brace_end(pattern, i)
            if len(alternatives) > 1:
                out.append("(?:" + "|".join(_translate(alt) for alt in alternatives) + ")")
            else:
                out.append(re.escape(pattern[i : end + 1]))
            i = end + 1
            continue
        elif char == "\\":
            if i + 1 == n:
                raise InvalidGlobError(f"trailing escape in {pattern!r}")
            out.append(re.escape(pattern[i + 1]))
            i += 2
            continue
        else:
            out.append(re.escape(char))
        i += 1
    return "".join(out)


def glob_to_regex(pattern: str) -> re.Pattern:
    """Compile a glob into a regex that must match the whole path.

    ``*`` and ``?`` never cross a ``/``; a ``**`` segment spans zero or more
    directories. Supports ``[...]`` classes (``[!...]`` negates) and ``{a,b}``
    alternation. Raises InvalidGlobError for unterminated classes or braces.
    """
    try:
        return re.compile(_translate(pattern))
    except re.error as e:
        raise InvalidGlobError(str(e)) from e


def _expand_pattern(pattern: str) -> str:
    if pattern.startswith("/"):
        return pattern[1:]
    if pattern.startswith("**"):
        return pattern
    return "**/" + pattern


def match_pattern(pattern: str, path: str) -> bool:
    try:
        compiled = glob_to_regex(_expand_pattern(pattern))
    except InvalidGlobError:
        try:
            matched = re.search(pattern, path) is not None
        except re.error:
            logger.debug("Pattern %r is neither a glob nor a regex; ignoring it", pattern)
            return False
        if matched:
            logger.debug("Pattern %r matched %s as a regular expression", pattern, path)
        return matched

    matched = compiled.fullmatch(path) is not None
    if matched:
        logger.debug("Pattern %r matched %s as a glob", pattern, path)
    return matched


def match_patterns(patterns: list[str], path: str) -> bool:
    return any(match_pattern(pattern, path) for pattern in patterns)


def is_included(path: str, rules: FilterRules, filename: str | None = None) -> bool:
    """Return True if ``path`` should be reviewed under ``rules``.

    ``path`` may be a ``contents_url``; it is decoded before matching.
    ``filename`` (the name as GitHub reports it) is checked against the
    exact-name list alongside the decoded path.
    """
    path = normalize_path(path)

    if rules.include:
        return match_patterns(rules.include, path)

    if path in rules.exact or (filename is not None and filename in rules.exact):
        return False

    if rules.exclude:
        return not match_patterns(rules.exclude, path)

    return True


def filter_files(files, rules: FilterRules) -> list:
    """Keep the compare-API files that pass ``rules``, preserving order."""
    kept = []
    for file in files:
        path = getattr(file, "contents_url", None) or file.filename
        if is_included(path, rules, filename=file.filename):
            kept.append(file)
        else:
            logger.debug("Filtered out %s", file.filename)
    return kept
