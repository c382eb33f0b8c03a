"""Anchor a single review comment onto a unified-diff patch.

GitHub's review API accepts ``line`` + ``side`` for inline comments. ``line``
is the absolute line number in the file on that side: ``RIGHT`` is the new
file, ``LEFT`` the old one. We produce exactly one anchor per patch, no
matter how many hunks it has or how many findings the model reported.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

_HUNK_HEADER_RE = re.compile(r"@@ -(\d+)(,(\d+))? \+(\d+)(,(\d+))? @@")


class Side(str, Enum):
    NEW = "RIGHT"
    OLD = "LEFT"


@dataclass(frozen=True)
class ReviewAnchor:
    line: int
    side: Side


DEFAULT_ANCHOR = ReviewAnchor(line=1, side=Side.NEW)


def parse_hunk_header(line: str) -> tuple[int, int] | None:
    """Return ``(old_start, new_start)`` for a hunk header, or None if it does not parse."""
    match = _HUNK_HEADER_RE.search(line)
    if not match:
        return None
    return int(match.group(1)), int(match.group(4))


def map_anchor(patch: str | None) -> ReviewAnchor:
    """Pick the line and side a file-level review comment should attach to.

    Preference order, first match wins:
      1. first added line          -> new side
      2. first context line        -> new side
      3. first removed line        -> old side
      4. nothing recognisable      -> line 1, new side

    The order is by priority, not by position in the patch: an added line
    further down beats a context line at the top of the hunk.

    Total over all strings. Malformed headers are skipped without moving the
    cursors and unknown line prefixes (e.g. ``\\ No newline at end of file``)
    are ignored.
    """
    if not patch:
        return DEFAULT_ANCHOR

    old_line = 0
    new_line = 0
    first_added: int | None = None
    first_context: int | None = None
    first_deleted: int | None = None

    lines = patch.split("\n")
    if patch.endswith("\n"):
        # Trailing newline terminates the last line; it is not an empty context line.
        lines.pop()

    for line in lines:
        if line.startswith("@@"):
            parsed = parse_hunk_header(line)
            if parsed:
                old_line, new_line = parsed
            continue

        if line.startswith("+"):
            if first_added is None:
                first_added = new_line
            new_line += 1
        elif line.startswith("-"):
            if first_deleted is None:
                first_deleted = old_line
            old_line += 1
        elif line.startswith(" ") or not line:
            if first_context is None:
                first_context = new_line
            old_line += 1
            new_line += 1

    # Content seen before any header sits at cursor 0; GitHub lines are 1-based.
    if first_added is not None:
        return ReviewAnchor(line=max(first_added, 1), side=Side.NEW)
    if first_context is not None:
        return ReviewAnchor(line=max(first_context, 1), side=Side.NEW)
    if first_deleted is not None:
        return ReviewAnchor(line=max(first_deleted, 1), side=Side.OLD)
    return DEFAULT_ANCHOR


def first_hunk_header(patch: str) -> str | None:
    """Return the patch's first line when it is a hunk header."""
    first = patch.split("\n", 1)[0]
    return first if first.startswith("@@") else None
