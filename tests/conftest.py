"""Shared test fixtures for the Exit OSx test suite."""

from __future__ import annotations

import uuid
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from exitosx.llm.base import LLMResponse


@pytest.fixture
def mock_llm():
    """Create a mock LLM that returns predictable responses."""
    llm = AsyncMock()
    llm.model = "test-model"

    # Default completion response
    llm.complete.return_value = LLMResponse(
        content='{"result": "mock response"}',
        model="test-model",
        usage={"prompt_tokens": 10, "completion_tokens": 20},
    )

    return llm


@pytest.fixture
def mock_session():
    """An AsyncSession stand-in; ``add`` is synchronous like the real one."""
    session = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def sample_company_id():
    """Return a consistent sample company UUID."""
    return uuid.UUID("12345678-1234-5678-1234-567812345678")


@pytest.fixture
def sample_user():
    return SimpleNamespace(
        id=uuid.UUID("abcdefab-cdef-abcd-efab-cdefabcdefab"),
        email="owner@example.com",
        name="Pat Owner",
        is_super_admin=False,
    )


@pytest.fixture
def app_client():
    """Test client with database and scheduler lifecycle patched out."""
    with (
        patch("exitosx.db.session.init_db", new_callable=AsyncMock),
        patch("exitosx.tasks.workers.start_scheduler"),
        patch("exitosx.db.session.close_db", new_callable=AsyncMock),
        patch("exitosx.tasks.workers.stop_scheduler"),
    ):
        from exitosx.main import app

        with TestClient(app) as c:
            yield c
        app.dependency_overrides.clear()


@pytest.fixture
def sample_comparables_response():
    """Return a sample comparables LLM response."""
    return {
        "comparables": [
            {
                "name": "Texas Roadhouse",
                "ticker": "TXRH",
                "rationale": "Casual dining operator with owned locations",
                "relevanceScore": 0.8,
                "metrics": {"evToEbitda": 14.5, "evToRevenue": 1.6},
            },
            {
                "name": "Darden Restaurants",
                "ticker": "DRI",
                "rationale": "Multi-brand full service restaurants",
                "relevanceScore": 0.6,
                "metrics": {"evToEbitda": 12.0, "evToRevenue": 1.9},
            },
        ],
        "warnings": [],
        "reasoning": "Public operators trade at a premium to small private restaurants.",
    }
