"""Tests for the BaseAgent class."""

from __future__ import annotations

import pytest

from exitosx.agents.base import BaseAgent


class ConcreteAgent(BaseAgent):
    """Concrete implementation for testing the abstract BaseAgent."""

    agent_name = "test_agent"
    prompt_template = "business_classification.j2"
    system_template = "business_classification_system.j2"


class TestBaseAgent:
    """Tests for BaseAgent shared functionality."""

    def test_parse_json_valid(self):
        result = BaseAgent.parse_json('{"key": "value"}')
        assert result == {"key": "value"}

    def test_parse_json_with_fences(self):
        result = BaseAgent.parse_json('```json\n{"key": "value"}\n```')
        assert result == {"key": "value"}

    def test_parse_json_embedded_in_prose(self):
        result = BaseAgent.parse_json('Here you go: {"a": {"b": 1}} hope it helps')
        assert result == {"a": {"b": 1}}

    def test_parse_json_invalid(self):
        result = BaseAgent.parse_json("not json")
        assert "error" in result
        assert "raw" in result

    @pytest.mark.asyncio
    async def test_call_llm(self, mock_llm):
        """call_llm returns content, model and usage."""
        mock_llm.complete.return_value.content = "test response"

        agent = ConcreteAgent(llm=mock_llm)
        content, model, usage = await agent.call_llm("Hello", system_content="Be brief")

        assert content == "test response"
        assert model == "test-model"
        assert usage["prompt_tokens"] == 10
        messages = mock_llm.complete.call_args.kwargs["messages"]
        assert messages[0] == {"role": "system", "content": "Be brief"}
        assert messages[1]["role"] == "user"

    @pytest.mark.asyncio
    async def test_call_llm_structured(self, mock_llm):
        """call_llm_structured parses JSON."""
        mock_llm.complete.return_value.content = '{"result": "ok"}'

        agent = ConcreteAgent(llm=mock_llm)
        data, _model, _usage = await agent.call_llm_structured("Analyze this")

        assert data == {"result": "ok"}

    def test_render_prompt(self, mock_llm):
        """Jinja2 template rendering."""
        agent = ConcreteAgent(llm=mock_llm)
        prompt = agent.render_prompt(
            description="We run two bakeries",
            industry_reference={"Consumer Discretionary": [{"label": "Restaurants", "code": "RESTAURANTS"}]},
        )
        assert "We run two bakeries" in prompt
        assert "[RESTAURANTS]" in prompt

    def test_render_system_prompt_without_template(self, mock_llm):
        agent = ConcreteAgent(llm=mock_llm)
        agent.system_template = None
        assert agent.render_system_prompt() is None
