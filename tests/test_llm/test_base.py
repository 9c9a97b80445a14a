"""Tests for LLM response types and the litellm router."""

from __future__ import annotations

import os
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from exitosx.llm import router as router_module
from exitosx.llm.base import JSON_OBJECT, LLMResponse
from exitosx.llm.router import LLMRouter, get_llm


def _litellm_response(content: str | None, finish_reason: str = "stop"):
    choice = SimpleNamespace(message=SimpleNamespace(content=content), finish_reason=finish_reason)
    usage = SimpleNamespace(prompt_tokens=120, completion_tokens=45)
    return SimpleNamespace(choices=[choice], usage=usage)


class TestLLMResponse:
    def test_token_counts(self):
        resp = LLMResponse(content="{}", model="m", usage={"prompt_tokens": 10, "completion_tokens": 5})
        assert resp.prompt_tokens == 10
        assert resp.completion_tokens == 5

    def test_missing_usage_counts_zero(self):
        resp = LLMResponse(content="{}", model="m")
        assert resp.prompt_tokens == 0
        assert resp.usage == {}

    def test_truncated_only_on_length(self):
        assert LLMResponse(content="{", model="m", finish_reason="length").truncated is True
        assert LLMResponse(content="{}", model="m", finish_reason="stop").truncated is False


class TestLLMRouter:
    @pytest.mark.asyncio
    async def test_complete_maps_litellm_response(self, monkeypatch):
        monkeypatch.setattr(router_module.settings, "llm_provider", "openai")
        fake_litellm = MagicMock()
        fake_litellm.acompletion = AsyncMock(return_value=_litellm_response('{"ok": true}'))

        with patch.dict("sys.modules", {"litellm": fake_litellm}):
            result = await LLMRouter(model="gpt-4o-mini").complete(
                [{"role": "user", "content": "Return JSON"}], response_format=JSON_OBJECT
            )

        assert result.content == '{"ok": true}'
        assert result.model == "gpt-4o-mini"
        assert result.prompt_tokens == 120
        assert result.finish_reason == "stop"
        kwargs = fake_litellm.acompletion.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["drop_params"] is True

    @pytest.mark.asyncio
    async def test_empty_content_becomes_empty_string(self, monkeypatch):
        monkeypatch.setattr(router_module.settings, "llm_provider", "openai")
        fake_litellm = MagicMock()
        fake_litellm.acompletion = AsyncMock(return_value=_litellm_response(None, finish_reason="length"))

        with patch.dict("sys.modules", {"litellm": fake_litellm}):
            result = await LLMRouter(model="gpt-4o-mini").complete([{"role": "user", "content": "hi"}])

        assert result.content == ""
        assert result.truncated is True
        assert "response_format" not in fake_litellm.acompletion.call_args.kwargs

    @pytest.mark.asyncio
    async def test_provider_errors_propagate(self, monkeypatch):
        monkeypatch.setattr(router_module.settings, "llm_provider", "openai")
        fake_litellm = MagicMock()
        fake_litellm.acompletion = AsyncMock(side_effect=RuntimeError("rate limited"))

        with patch.dict("sys.modules", {"litellm": fake_litellm}):
            with pytest.raises(RuntimeError, match="rate limited"):
                await LLMRouter(model="gpt-4o-mini").complete([{"role": "user", "content": "hi"}])

    @pytest.mark.parametrize(
        "provider, model, expected",
        [
            ("openai", "gpt-4o-mini", "gpt-4o-mini"),
            ("anthropic", "claude-sonnet-4-20250514", "anthropic/claude-sonnet-4-20250514"),
            ("google", "gemini/gemini-1.5-pro", "gemini/gemini-1.5-pro"),
            ("ollama", "llama3", "ollama/llama3"),
        ],
    )
    def test_litellm_model_prefix(self, provider, model, expected):
        assert LLMRouter(model=model, provider=provider).litellm_model == expected

    def test_unknown_provider(self):
        with pytest.raises(ValueError, match="Unsupported LLM provider"):
            LLMRouter(model="x", provider="acme")

    def test_api_key_exported_for_litellm(self, monkeypatch):
        monkeypatch.setattr(router_module.settings, "anthropic_api_key", "sk-ant-test")
        monkeypatch.setenv("ANTHROPIC_API_KEY", "")
        monkeypatch.delenv("ANTHROPIC_API_KEY")

        LLMRouter(model="claude-sonnet-4-20250514", provider="anthropic")

        assert os.environ["ANTHROPIC_API_KEY"] == "sk-ant-test"


class TestGetLLM:
    @pytest.fixture(autouse=True)
    def fresh_cache(self, monkeypatch):
        monkeypatch.setattr(router_module, "_routers", {})
        monkeypatch.setattr(router_module.settings, "llm_provider", "openai")

    def test_one_router_per_model(self):
        assert get_llm() is get_llm()
        assert get_llm("gpt-4o") is not get_llm()

    def test_default_model_from_settings(self, monkeypatch):
        monkeypatch.setattr(router_module.settings, "llm_model", "gpt-4o")
        assert get_llm().model == "gpt-4o"
