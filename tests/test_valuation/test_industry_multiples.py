"""Tests for industry multiple lookup and revenue-based estimates."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from exitosx.valuation.industry_multiples import (
    MultipleResult,
    calculate_revenue_based_valuation,
    calculate_valuation_from_revenue,
    default_multiples,
    estimate_ebitda_from_revenue,
    get_industry_multiples,
    recommend_valuation_method,
    recommend_valuation_method_with_reason,
)


def _result(row):
    result = MagicMock()
    result.scalar_one_or_none.return_value = row
    return result


class TestLookup:
    @pytest.mark.asyncio
    async def test_falls_back_to_sector(self, mock_session):
        row = SimpleNamespace(
            ebitda_multiple_low=4,
            ebitda_multiple_high=8,
            revenue_multiple_low=0.8,
            revenue_multiple_high=2,
            source="benchmark",
        )
        mock_session.execute.side_effect = [_result(None), _result(row)]

        multiples = await get_industry_multiples(mock_session, "ENTERPRISE_SOFTWARE", "SOFTWARE")

        assert multiples.match_level == "sector"
        assert multiples.ebitda_multiple_high == 8.0
        assert multiples.is_default is False

    @pytest.mark.asyncio
    async def test_defaults_when_nothing_matches(self, mock_session):
        mock_session.execute.return_value = _result(None)
        multiples = await get_industry_multiples(mock_session, "ENTERPRISE_SOFTWARE")
        assert multiples == default_multiples()

    @pytest.mark.asyncio
    async def test_unclassified_company_skips_queries(self, mock_session):
        multiples = await get_industry_multiples(mock_session, None)
        assert multiples.is_default is True
        mock_session.execute.assert_not_called()


class TestRevenueEstimates:
    def test_estimate_ebitda_from_revenue(self):
        assert estimate_ebitda_from_revenue(10_000_000, default_multiples()) == 2_900_000

    def test_estimate_is_capped_at_35_percent_margin(self):
        rich = MultipleResult(1.0, 1.0, 5.0, 5.0, None, False, "subsector")
        assert estimate_ebitda_from_revenue(1_000_000, rich) == 400_000

    def test_revenue_valuation_range(self):
        assert calculate_valuation_from_revenue(2_000_000, default_multiples()) == {
            "low": 1_000_000,
            "mid": 2_000_000,
            "high": 3_000_000,
        }

    def test_revenue_based_valuation(self):
        result = calculate_revenue_based_valuation(2_000_000, default_multiples(), 0.5, 1.0)
        assert result["final_multiple"] == 1.0
        assert result["potential_value"] == 3_000_000
        assert result["value_gap"] == 1_000_000


class TestMethodRecommendation:
    @pytest.mark.parametrize(
        "revenue, ebitda, growth, recurring, expected",
        [
            (1_000_000, -50_000, None, False, "revenue"),
            (1_000_000, 50_000, None, False, "hybrid"),
            (1_000_000, 200_000, 0.4, False, "revenue"),
            (1_000_000, 120_000, None, True, "revenue"),
            (1_000_000, 200_000, 0.1, False, "ebitda"),
        ],
    )
    def test_recommendation(self, revenue, ebitda, growth, recurring, expected):
        assert recommend_valuation_method(revenue, ebitda, growth, recurring) == expected

    def test_reason_is_included(self):
        result = recommend_valuation_method_with_reason(1_000_000, 200_000)
        assert result["method"] == "ebitda"
        assert "EBITDA multiple" in result["reason"]
