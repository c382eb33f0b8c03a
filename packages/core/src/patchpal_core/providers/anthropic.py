from __future__ import annotations

from patchpal_core.providers.base import BaseReviewer


class AnthropicReviewer(BaseReviewer):
    MODEL = "claude-sonnet-4-20250514"

    def __init__(
        self,
        api_key: str,
        model: str | None = None,
        temperature: float = 1.0,
        max_tokens: int | None = None,
        prompt: str | None = None,
        language: str | None = None,
    ):
        super().__init__(prompt=prompt, language=language)
        try:
            from anthropic import Anthropic
        except ImportError:
            raise ImportError(
                "The 'anthropic' package is required for this provider. "
                "Install it with: pip install 'patchpal[anthropic]'"
            )
        self.client = Anthropic(api_key=api_key)
        self.model = model or self.MODEL
        # Anthropic accepts temperatures in [0, 1].
        self.temperature = min(temperature, 1.0)
        self.max_tokens = max_tokens or self.MAX_TOKENS

    def _call_api(self, prompt: str) -> str:
        # Imported inside the method because the anthropic package is optional;
        # __init__ already validated it is installed before we reach here.
        from anthropic.types import TextBlock

        response = self.client.messages.create(
            model=self.model,
            system="Respond with a single JSON object and nothing else.",
            messages=[{"role": "user", "content": prompt}],
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        text_blocks = [block.text for block in response.content if isinstance(block, TextBlock)]
        return "".join(text_blocks).strip()
