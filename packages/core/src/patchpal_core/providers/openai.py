from __future__ import annotations

try:
    from openai import AzureOpenAI as _AzureOpenAI
    from openai import OpenAI as _OpenAI
except ImportError:
    _OpenAI = None  # type: ignore[assignment,misc]
    _AzureOpenAI = None  # type: ignore[assignment,misc]

from patchpal_core.providers.base import BaseReviewer

OPENAI_BASE_URL = "https://api.openai.com/v1"
GITHUB_MODELS_BASE_URL = "https://models.github.ai/inference"


class OpenAIReviewer(BaseReviewer):
    MODEL = "gpt-4o-mini"
    GITHUB_MODELS_MODEL = "openai/gpt-4o-mini"

    def __init__(
        self,
        api_key: str,
        model: str | None = None,
        temperature: float = 1.0,
        top_p: float = 1.0,
        max_tokens: int | None = None,
        base_url: str | None = None,
        use_github_models: bool = False,
        azure_api_version: str | None = None,
        azure_deployment: str | None = None,
        prompt: str | None = None,
        language: str | None = None,
    ):
        super().__init__(prompt=prompt, language=language)
        if _OpenAI is None:
            raise ImportError(
                "The 'openai' package is required for this provider. " "Install it with: pip install 'patchpal[openai]'"
            )
        self.is_azure = bool(azure_api_version and azure_deployment)
        self.is_github_models = use_github_models
        if self.is_azure:
            self.client = _AzureOpenAI(
                api_key=api_key,
                azure_endpoint=base_url or "",
                api_version=azure_api_version,
                azure_deployment=azure_deployment,
            )
        else:
            self.client = _OpenAI(
                api_key=api_key,
                base_url=GITHUB_MODELS_BASE_URL if use_github_models else base_url or OPENAI_BASE_URL,
            )
        self.model = model or (self.GITHUB_MODELS_MODEL if use_github_models else self.MODEL)
        self.temperature = temperature
        self.top_p = top_p
        self.max_tokens = max_tokens

    def _call_api(self, prompt: str) -> str:
        kwargs = {}
        if self.max_tokens:
            kwargs["max_tokens"] = self.max_tokens
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            temperature=self.temperature,
            top_p=self.top_p,
            response_format={"type": "json_object"},
            **kwargs,
        )
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""
