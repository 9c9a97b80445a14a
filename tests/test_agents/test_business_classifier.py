"""Tests for the business classifier agent."""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest

from exitosx.agents.business_classifier import (
    DEFAULT_MULTIPLE_RANGE,
    BusinessClassifier,
    build_industry_reference,
    clamp_confidence,
    classify_by_keywords,
    score_keyword_matches,
)
from exitosx.errors import ValidationError


@pytest.fixture
def classifier_session(mock_session):
    """No industry multiples stored; nested transactions succeed."""
    result = MagicMock()
    result.scalar_one_or_none.return_value = None
    mock_session.execute.return_value = result
    mock_session.begin_nested = MagicMock(return_value=MagicMock())
    return mock_session


class TestKeywordMatching:
    def test_restaurant_description(self):
        primary, secondary = classify_by_keywords("We operate a family restaurant and catering business")
        assert primary.icb_sub_sector == "RESTAURANTS"
        assert secondary is None

    def test_longer_keywords_win(self):
        matches = score_keyword_matches("A SaaS company selling cloud software to dentists")
        assert matches[0][0] == "ENTERPRISE_SOFTWARE"
        assert [m[0] for m in matches].count("ENTERPRISE_SOFTWARE") == 1

    def test_no_match(self):
        assert score_keyword_matches("We do something unusual with zeppelins") == []


class TestHelpers:
    def test_clamp_confidence(self):
        assert clamp_confidence(1.4) == 1.0
        assert clamp_confidence(-0.2) == 0.0
        assert clamp_confidence("high") == 0.5
        assert clamp_confidence(True) == 0.5
        assert clamp_confidence(float("nan")) == 0.5

    def test_industry_reference_groups_by_industry(self):
        reference = build_industry_reference()
        assert "Technology" in reference
        codes = [s["code"] for s in reference["Technology"]]
        assert "ENTERPRISE_SOFTWARE" in codes


class TestBusinessClassifier:
    @pytest.mark.asyncio
    async def test_rejects_short_description(self, mock_llm, classifier_session):
        with pytest.raises(ValidationError):
            await BusinessClassifier(llm=mock_llm).classify(classifier_session, "too short")

    @pytest.mark.asyncio
    async def test_rejects_missing_description(self, mock_llm, classifier_session):
        with pytest.raises(ValidationError):
            await BusinessClassifier(llm=mock_llm).classify(classifier_session, None)

    @pytest.mark.asyncio
    async def test_ai_classification(self, mock_llm, classifier_session):
        mock_llm.complete.return_value.content = json.dumps(
            {
                "primarySubSector": "ENTERPRISE_SOFTWARE",
                "primaryConfidence": 0.9,
                "secondarySubSector": "IT_CONSULTING",
                "secondaryConfidence": 0.3,
                "explanation": "Subscription software for field service teams.",
            }
        )
        result = await BusinessClassifier(llm=mock_llm).classify(
            classifier_session, "We sell scheduling software to HVAC contractors"
        )

        assert result.source == "ai"
        assert result.primary_industry.icb_sub_sector == "ENTERPRISE_SOFTWARE"
        assert result.primary_industry.icb_industry == "TECHNOLOGY"
        assert result.primary_industry.confidence == 0.9
        assert result.secondary_industry.icb_sub_sector == "IT_CONSULTING"
        assert result.suggested_multiple_range == DEFAULT_MULTIPLE_RANGE
        classifier_session.add.assert_called_once()

    @pytest.mark.asyncio
    async def test_unknown_code_falls_back_to_keywords(self, mock_llm, classifier_session):
        mock_llm.complete.return_value.content = json.dumps({"primarySubSector": "NOT_A_CODE"})
        result = await BusinessClassifier(llm=mock_llm).classify(
            classifier_session, "Two busy restaurants in downtown Columbus"
        )

        assert result.source == "keyword"
        assert result.primary_industry.icb_sub_sector == "RESTAURANTS"
        assert result.primary_industry.confidence == 0.6

    @pytest.mark.asyncio
    async def test_llm_failure_defaults_to_professional_services(self, mock_llm, classifier_session):
        mock_llm.complete.side_effect = RuntimeError("provider down")
        result = await BusinessClassifier(llm=mock_llm).classify(
            classifier_session, "We do something unusual with zeppelins"
        )

        assert result.source == "default"
        assert result.primary_industry.icb_sub_sector == "PROFESSIONAL_SERVICES"
        assert result.primary_industry.confidence == 0.2
