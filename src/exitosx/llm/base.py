"""Provider-neutral chat completion types used by the AI agents."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, Field

JSON_OBJECT: dict[str, str] = {"type": "json_object"}


class LLMResponse(BaseModel):
    content: str
    model: str
    usage: dict[str, Any] = Field(default_factory=dict)
    finish_reason: str | None = None

    @property
    def prompt_tokens(self) -> int:
        return int(self.usage.get("prompt_tokens") or 0)

    @property
    def completion_tokens(self) -> int:
        return int(self.usage.get("completion_tokens") or 0)

    @property
    def truncated(self) -> bool:
        """The model stopped at ``max_tokens``, so JSON output is likely cut off."""
        return self.finish_reason == "length"


class BaseLLM(ABC):
    """Chat completion backend. Agents only call ``complete``."""

    def __init__(self, model: str):
        self.model = model

    @abstractmethod
    async def complete(
        self,
        messages: list[dict[str, str]],
        temperature: float = 0.0,
        max_tokens: int = 4096,
        response_format: dict | None = None,
    ) -> LLMResponse:
        """Return the assistant reply to ``messages``.

        ``response_format=JSON_OBJECT`` asks providers that support it for a
        bare JSON object.
        """
