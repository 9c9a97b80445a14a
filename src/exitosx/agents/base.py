"""Base agent class providing shared capabilities for Exit OSx agents."""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader

from exitosx.llm import JSON_OBJECT, BaseLLM, get_llm

logger = logging.getLogger(__name__)

PROMPTS_DIR = Path(__file__).parent.parent / "llm" / "prompts"

_jinja_env = Environment(
    loader=FileSystemLoader(str(PROMPTS_DIR)),
    autoescape=False,
    trim_blocks=True,
    lstrip_blocks=True,
)


class BaseAgent:
    """Base class for Exit OSx AI agents.

    Provides:
    - LLM access via the pluggable router
    - Jinja2 prompt template rendering
    - Structured JSON output parsing
    """

    agent_name: str = "base"
    prompt_template: str = ""  # e.g. "comparables.j2"
    system_template: str | None = None

    def __init__(self, llm: BaseLLM | None = None):
        self.llm = llm or get_llm()

    # ── Prompt rendering ──────────────────────────────────────────────────

    def render_prompt(self, **kwargs: Any) -> str:
        """Render the agent's Jinja2 prompt template with the given variables."""
        template = _jinja_env.get_template(self.prompt_template)
        return template.render(**kwargs)

    def render_system_prompt(self, **kwargs: Any) -> str | None:
        if not self.system_template:
            return None
        return _jinja_env.get_template(self.system_template).render(**kwargs)

    # ── LLM calls ─────────────────────────────────────────────────────────

    async def call_llm(
        self,
        user_content: str,
        system_content: str | None = None,
        temperature: float = 0.0,
        max_tokens: int | None = None,
        json_mode: bool = False,
    ) -> tuple[str, str, dict[str, Any]]:
        """Send a message to the LLM.

        Returns ``(content, model, usage)`` so callers can audit the call.
        """
        messages: list[dict[str, str]] = []
        if system_content:
            messages.append({"role": "system", "content": system_content})
        messages.append({"role": "user", "content": user_content})

        response = await self.llm.complete(
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens or 4096,
            response_format=JSON_OBJECT if json_mode else None,
        )

        logger.info(
            "Agent %s LLM call: model=%s, tokens=%d/%d",
            self.agent_name,
            response.model,
            response.prompt_tokens,
            response.completion_tokens,
        )
        if response.truncated:
            logger.warning("Agent %s response hit max_tokens; output may be incomplete", self.agent_name)
        return response.content, response.model, response.usage

    async def call_llm_structured(
        self,
        prompt: str,
        system_content: str | None = None,
        temperature: float = 0.0,
        max_tokens: int | None = None,
    ) -> tuple[dict[str, Any], str, dict[str, Any]]:
        """Call the LLM and parse the response as JSON."""
        raw, model, usage = await self.call_llm(
            prompt, system_content=system_content, temperature=temperature, max_tokens=max_tokens, json_mode=True
        )
        return self.parse_json(raw), model, usage

    # ── JSON parsing ──────────────────────────────────────────────────────

    @staticmethod
    def parse_json(text: str) -> dict[str, Any]:
        """Parse a JSON response, stripping markdown code fences if present.

        Applies multiple extraction strategies:
        1. Strip markdown fences and parse directly
        2. Find the first ``{…}`` block in the text and parse that
        """
        cleaned = re.sub(r"```(?:json)?\s*", "", text)
        cleaned = cleaned.strip().rstrip("`")
        try:
            parsed = json.loads(cleaned)
            if isinstance(parsed, dict):
                return parsed
        except json.JSONDecodeError:
            pass

        start = text.find("{")
        if start != -1:
            depth, end = 0, start
            for i, ch in enumerate(text[start:], start):
                if ch == "{":
                    depth += 1
                elif ch == "}":
                    depth -= 1
                    if depth == 0:
                        end = i + 1
                        break
            try:
                return json.loads(text[start:end])
            except json.JSONDecodeError:
                pass

        logger.warning("Failed to parse JSON from LLM response: %s...", text[:200])
        return {"error": "Failed to parse response", "raw": text[:500]}
