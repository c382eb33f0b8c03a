"""Base reviewer implementing the Template Method pattern.

All providers share the same review algorithm:
    review() → _build_prompt()
             → _call_with_retry() → _call_api()   ← only this differs per provider
             → _parse()

Subclasses implement two things only:
  - __init__: validate and store the SDK client
  - _call_api: make one raw API call and return the text response
"""

from __future__ import annotations

import json
import logging
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass

from patchpal_core.config import DEFAULT_PROMPT
from patchpal_core.utils.patch import first_hunk_header

logger = logging.getLogger(__name__)

_MAX_RETRIES = 3
_MAX_TOKENS = 4096

_JSON_FORMAT_REQUIREMENT = """
Provide your feedback in a strict JSON format with the following structure:
{
  "reviews": [
    {
      "hunk_header": string, // The @@ hunk header (e.g., "@@ -10,5 +10,7 @@"), optional
      "lgtm": boolean, // true if this hunk looks good, false if there are concerns
      "review_comment": string // Your detailed review comments for this hunk. Can use markdown syntax. Empty string if lgtm is true.
    }
  ]
}
Review each hunk (marked by @@) separately and provide feedback for hunks that need improvement.
Ensure your response is a valid JSON object with a reviews array.
"""  # noqa: E501


class ReviewerError(Exception):
    """The model could not be reached after all retries."""


@dataclass
class HunkReview:
    lgtm: bool
    review_comment: str = ""
    hunk_header: str | None = None

    @property
    def has_feedback(self) -> bool:
        return not self.lgtm and bool(self.review_comment)

    @classmethod
    def from_dict(cls, data: dict) -> HunkReview:
        comment = data.get("review_comment") or ""
        return cls(
            lgtm=bool(data.get("lgtm", not comment)),
            review_comment=str(comment),
            hunk_header=data.get("hunk_header") or None,
        )


class BaseReviewer(ABC):
    MAX_RETRIES: int = _MAX_RETRIES
    MAX_TOKENS: int = _MAX_TOKENS

    def __init__(self, prompt: str | None = None, language: str | None = None):
        self.prompt = prompt or DEFAULT_PROMPT
        self.language = language

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    def review(self, patch: str) -> list[HunkReview]:
        """Review one file's patch and return the model's per-hunk verdicts.

        An empty patch is approved without calling the model.
        """
        if not patch:
            return [HunkReview(lgtm=True)]
        started = time.monotonic()
        raw = self._call_with_retry(self._build_prompt(patch))
        logger.debug("%s review took %.2fs", self.__class__.__name__, time.monotonic() - started)
        return self._parse(raw, patch)

    # ------------------------------------------------------------------ #
    # Abstract: implement in each provider                                #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def _call_api(self, prompt: str) -> str:
        """Make a single API call and return the raw text response.

        It should raise on failure; _call_with_retry handles retries and logging.
        """

    # ------------------------------------------------------------------ #
    # Shared implementations                                               #
    # ------------------------------------------------------------------ #

    def _call_with_retry(self, prompt: str) -> str:
        """Retry _call_api up to MAX_RETRIES times with exponential backoff.

        Raises ReviewerError once every attempt has failed.
        """
        for attempt in range(self.MAX_RETRIES):
            try:
                return self._call_api(prompt)
            except Exception as e:
                if attempt == self.MAX_RETRIES - 1:
                    logger.error(
                        "%s API failed after %d attempts: %s",
                        self.__class__.__name__,
                        self.MAX_RETRIES,
                        e,
                    )
                    raise ReviewerError(f"{self.__class__.__name__} API failed: {e}") from e
                delay = 2**attempt
                logger.warning(
                    "%s API error (attempt %d/%d): %s. Retrying in %ds...",
                    self.__class__.__name__,
                    attempt + 1,
                    self.MAX_RETRIES,
                    e,
                    delay,
                )
                time.sleep(delay)
        raise ReviewerError(f"{self.__class__.__name__} made no attempts")

    def _build_prompt(self, patch: str) -> str:
        answer_language = f"Answer me in {self.language}," if self.language else ""
        return f"""{self.prompt}{_JSON_FORMAT_REQUIREMENT} {answer_language}:
{patch}
"""

    def _parse(self, raw: str | None, patch: str) -> list[HunkReview]:
        """Parse the model's raw text into hunk reviews.

        ``{"reviews": [...]}`` yields one entry per hunk and a bare object
        yields a single review. Text that is not JSON is kept as one
        non-LGTM review so the feedback still reaches the PR.
        """
        if not raw:
            return [HunkReview(lgtm=True)]
        cleaned = re.sub(r"^```(?:json)?\s*", "", raw.strip())
        cleaned = re.sub(r"\s*```$", "", cleaned.strip())
        try:
            data = json.loads(cleaned)
        except json.JSONDecodeError:
            logger.warning(
                "%s: response is not JSON, posting it verbatim: %s",
                self.__class__.__name__,
                raw[:200],
            )
            return [HunkReview(lgtm=False, review_comment=raw, hunk_header=first_hunk_header(patch))]

        if isinstance(data, dict) and isinstance(data.get("reviews"), list):
            return [HunkReview.from_dict(item) for item in data["reviews"] if isinstance(item, dict)]
        if isinstance(data, dict):
            return [HunkReview.from_dict(data)]
        if isinstance(data, list):
            return [HunkReview.from_dict(item) for item in data if isinstance(item, dict)]
        return [HunkReview(lgtm=False, review_comment=raw, hunk_header=first_hunk_header(patch))]
