"""Tests for statement arithmetic and value-gap attribution."""

from __future__ import annotations

import pytest

from exitosx.valuation.financials import (
    calculate_category_value_gaps,
    calculate_free_cash_flow,
    derive_balance_sheet,
    derive_income_statement,
)


class TestStatements:
    def test_income_statement(self):
        derived = derive_income_statement(
            {"gross_revenue": 1000.0, "cogs": 400.0, "total_operating_expenses": 350.0, "depreciation": 50.0}
        )
        assert derived["gross_profit"] == 600.0
        assert derived["gross_margin_pct"] == 0.6
        assert derived["ebitda"] == 300.0
        assert derived["ebitda_margin_pct"] == 0.3
        assert derived["net_income"] == 250.0

    def test_zero_revenue_margins(self):
        derived = derive_income_statement({"gross_revenue": 0.0})
        assert derived["gross_margin_pct"] == 0.0
        assert derived["ebitda_margin_pct"] == 0.0

    def test_balance_sheet(self):
        derived = derive_balance_sheet(
            {
                "cash": 100.0,
                "accounts_receivable": 200.0,
                "inventory": 50.0,
                "accounts_payable": 80.0,
                "long_term_debt": 300.0,
                "owners_equity": 70.0,
                "prepaid_expenses": None,
            }
        )
        assert derived["total_current_assets"] == 350.0
        assert derived["total_assets"] == 350.0
        assert derived["total_current_liabilities"] == 80.0
        assert derived["total_liabilities"] == 380.0
        assert derived["total_equity"] == 70.0
        assert derived["working_capital"] == 170.0
        assert derived["prepaid_expenses"] == 0.0

    def test_free_cash_flow_adds_signed_capex(self):
        assert calculate_free_cash_flow(500.0, -120.0) == 380.0


class TestValueGapAttribution:
    def test_largest_remainder_sums_exactly(self):
        gaps = calculate_category_value_gaps(
            [
                {"category": "FINANCIAL", "score": 0.5, "weight": 0.5},
                {"category": "MARKET", "score": 0.0, "weight": 0.5},
            ],
            1000,
        )
        assert [(g.category, g.dollar_impact) for g in gaps] == [("MARKET", 667), ("FINANCIAL", 333)]

    def test_three_way_split(self):
        categories = [{"category": c, "score": 0.0, "weight": 1 / 3} for c in ("A", "B", "C")]
        gaps = calculate_category_value_gaps(categories, 100.4)
        assert sum(g.dollar_impact for g in gaps) == 100

    def test_no_gap(self):
        gaps = calculate_category_value_gaps([{"category": "A", "score": 1.0, "weight": 1.0}], 5000)
        assert gaps[0].dollar_impact == 0
        assert gaps[0].raw_gap == 0

    def test_empty(self):
        assert calculate_category_value_gaps([], 1000) == []
