"""Tests for the comparables agent and its normalization helpers."""

from __future__ import annotations

import json

import pytest

from exitosx.agents.comparables import (
    NO_COMPARABLES_WARNING,
    NO_MULTIPLES_WARNING,
    ComparableCompany,
    ComparableMetrics,
    ComparablesAgent,
    CompanyProfile,
    calculate_weighted_multiple,
    format_dollar_amount,
    normalize_comparables,
    normalize_decimal_rate,
)
from exitosx.errors import IntegrationError, ValidationError


def _comp(name, relevance, ev_to_ebitda=None):
    return ComparableCompany(
        name=name,
        ticker=None,
        rationale="",
        metrics=ComparableMetrics(ev_to_ebitda=ev_to_ebitda),
        relevance_score=relevance,
    )


class TestNormalization:
    def test_percent_rates_become_decimals(self):
        assert normalize_decimal_rate(22, -1, 1) == 0.22
        assert normalize_decimal_rate(0.22, -1, 1) == 0.22

    def test_rates_are_clamped(self):
        assert normalize_decimal_rate(450, -1, 5) == 5
        assert normalize_decimal_rate(-300, -1, 1) == -1
        assert normalize_decimal_rate(-3, -1, 1) == pytest.approx(-0.03)

    def test_non_numbers_are_dropped(self):
        assert normalize_decimal_rate("fast", -1, 1) is None

    def test_format_dollar_amount(self):
        assert format_dollar_amount(500_000) == "500K"
        assert format_dollar_amount(2_500_000) == "2.5M"
        assert format_dollar_amount(1_200_000_000) == "1.2B"

    def test_normalize_comparables(self):
        raw = [
            {"name": " Alpha ", "ticker": "alp", "relevanceScore": 0.4, "metrics": {"evToEbitda": 250}},
            {"name": "", "relevanceScore": 0.9},
            "garbage",
            {"name": "Beta", "relevanceScore": 3, "metrics": {"evToRevenue": 2.0}},
        ]
        result = normalize_comparables(raw)

        assert [c.name for c in result] == ["Beta", "Alpha"]
        assert result[0].relevance_score == 1.0
        assert result[1].ticker == "ALP"
        assert result[1].metrics.ev_to_ebitda is None
        assert result[1].rationale == "No rationale provided"

    def test_keeps_top_five(self):
        raw = [{"name": f"Co {i}", "relevanceScore": i / 10} for i in range(8)]
        result = normalize_comparables(raw)
        assert len(result) == 5
        assert result[0].name == "Co 7"


class TestWeightedMultiple:
    def test_relevance_weighted(self):
        comps = [_comp("A", 0.75, 10.0), _comp("B", 0.25, 6.0)]
        assert calculate_weighted_multiple(comps, lambda c: c.metrics.ev_to_ebitda) == pytest.approx(9.0)

    def test_single_valid_value(self):
        comps = [_comp("A", 0.0, 8.0), _comp("B", 0.5)]
        assert calculate_weighted_multiple(comps, lambda c: c.metrics.ev_to_ebitda) == 8.0

    def test_zero_weight(self):
        comps = [_comp("A", 0.0, 8.0), _comp("B", 0.0, 4.0)]
        assert calculate_weighted_multiple(comps, lambda c: c.metrics.ev_to_ebitda) is None


class TestComparablesAgent:
    @pytest.mark.asyncio
    async def test_find_comparables(self, mock_llm, sample_comparables_response):
        mock_llm.complete.return_value.content = json.dumps(sample_comparables_response)
        agent = ComparablesAgent(llm=mock_llm)

        result = await agent.find_comparables(
            CompanyProfile(name="Buckeye Grill", industry="Restaurants", revenue=4_000_000)
        )

        assert len(result.comparables) == 2
        assert result.comparables[0].ticker == "TXRH"
        assert result.weighted_ebitda_multiple == pytest.approx((14.5 * 0.8 + 12.0 * 0.6) / 1.4)
        assert result.ai_usage["model"] == "test-model"
        assert result.warnings == []

    @pytest.mark.asyncio
    async def test_empty_response_warns(self, mock_llm):
        mock_llm.complete.return_value.content = '{"comparables": []}'
        result = await ComparablesAgent(llm=mock_llm).find_comparables(
            CompanyProfile(name="Buckeye Grill", industry="Restaurants", revenue=4_000_000)
        )
        assert NO_COMPARABLES_WARNING in result.warnings
        assert NO_MULTIPLES_WARNING in result.warnings

    @pytest.mark.asyncio
    async def test_unreadable_response(self, mock_llm):
        mock_llm.complete.return_value.content = "I cannot help with that"
        with pytest.raises(IntegrationError):
            await ComparablesAgent(llm=mock_llm).find_comparables(
                CompanyProfile(name="Buckeye Grill", industry="Restaurants", revenue=4_000_000)
            )

    @pytest.mark.asyncio
    async def test_validates_profile(self, mock_llm):
        with pytest.raises(ValidationError):
            await ComparablesAgent(llm=mock_llm).find_comparables(
                CompanyProfile(name="Buckeye Grill", industry="", revenue=4_000_000)
            )
        mock_llm.complete.assert_not_called()
