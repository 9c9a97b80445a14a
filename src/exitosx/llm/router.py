"""litellm-backed router for the configured LLM provider."""

from __future__ import annotations

import logging
import os
from typing import Any

from exitosx.config import settings
from exitosx.llm.base import BaseLLM, LLMResponse

logger = logging.getLogger(__name__)

# provider -> (litellm model prefix, environment variable, settings field)
PROVIDERS: dict[str, tuple[str, str, str]] = {
    "openai": ("", "OPENAI_API_KEY", "openai_api_key"),
    "anthropic": ("anthropic/", "ANTHROPIC_API_KEY", "anthropic_api_key"),
    "google": ("gemini/", "GEMINI_API_KEY", "google_api_key"),
    "ollama": ("ollama/", "OLLAMA_API_BASE", "ollama_base_url"),
}

_routers: dict[str, LLMRouter] = {}


class LLMRouter(BaseLLM):
    """Sends chat completions through litellm for one provider/model pair."""

    def __init__(self, model: str | None = None, provider: str | None = None):
        super().__init__(model or settings.llm_model)
        self.provider = (provider or settings.llm_provider).lower()
        if self.provider not in PROVIDERS:
            raise ValueError(f"Unsupported LLM provider: {self.provider}")
        _prefix, env_var, field = PROVIDERS[self.provider]
        value = getattr(settings, field)
        if value:
            os.environ.setdefault(env_var, value)

    @property
    def litellm_model(self) -> str:
        prefix = PROVIDERS[self.provider][0]
        if prefix and not self.model.startswith(prefix):
            return f"{prefix}{self.model}"
        return self.model

    async def complete(
        self,
        messages: list[dict[str, str]],
        temperature: float = 0.0,
        max_tokens: int = 4096,
        response_format: dict | None = None,
    ) -> LLMResponse:
        import litellm

        call_kwargs: dict[str, Any] = {
            "model": self.litellm_model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
            # Providers without JSON mode ignore response_format.
            "drop_params": True,
        }
        if response_format:
            call_kwargs["response_format"] = response_format

        try:
            response = await litellm.acompletion(**call_kwargs)
        except Exception:
            logger.exception("LLM call failed: provider=%s model=%s", self.provider, self.litellm_model)
            raise

        choice = response.choices[0]
        usage = response.usage
        return LLMResponse(
            content=choice.message.content or "",
            model=self.litellm_model,
            usage={
                "prompt_tokens": getattr(usage, "prompt_tokens", 0) or 0,
                "completion_tokens": getattr(usage, "completion_tokens", 0) or 0,
            },
            finish_reason=getattr(choice, "finish_reason", None),
        )


def get_llm(model: str | None = None) -> LLMRouter:
    """Shared router per model; the configured model when ``model`` is None."""
    key = model or settings.llm_model
    if key not in _routers:
        _routers[key] = LLMRouter(model=key)
    return _routers[key]
