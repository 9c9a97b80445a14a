"""LLM access for the classification and comparables agents."""

from exitosx.llm.base import JSON_OBJECT, BaseLLM, LLMResponse
from exitosx.llm.router import LLMRouter, get_llm

__all__ = ["JSON_OBJECT", "BaseLLM", "LLMResponse", "LLMRouter", "get_llm"]
