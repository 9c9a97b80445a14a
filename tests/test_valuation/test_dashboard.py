"""Tests for dashboard figures and snapshot EBITDA helpers."""

from __future__ import annotations

from datetime import date, datetime, timezone
from types import SimpleNamespace

import pytest

from exitosx.valuation.bri import DEFAULT_CATEGORY_WEIGHTS
from exitosx.valuation.dashboard import (
    build_risk_tier,
    build_task_stats,
    build_trend_tier,
    build_value_tiers,
    exit_window,
    resolve_adjusted_ebitda,
    select_fiscal_period,
)
from exitosx.valuation.industry_multiples import default_multiples
from exitosx.valuation.snapshot import (
    DEFAULT_MARKET_SALARY,
    calculate_adjusted_ebitda,
    calculate_ebitda_improvement_multiplier,
    get_market_salary,
)

def _period(year, ebitda=500_000.0):
    return SimpleNamespace(fiscal_year=year, income_statement=SimpleNamespace(ebitda=ebitda))


def _adjustment(kind, amount):
    return SimpleNamespace(type=kind, amount=amount)


def _company(revenue=0, ebitda=0):
    return SimpleNamespace(annual_revenue=revenue, annual_ebitda=ebitda)


def _snapshot(**overrides):
    values = dict(
        adjusted_ebitda=400_000,
        industry_multiple_low=3.0,
        industry_multiple_high=6.0,
        bri_score=0.7,
        core_score=0.6,
        final_multiple=4.2,
        bri_financial=0.9,
        bri_transferability=0.3,
        bri_operational=0.5,
        bri_market=0.8,
        bri_legal_tax=0.4,
        bri_personal=0.95,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


class TestFiscalPeriod:
    def test_first_half_uses_last_completed_year(self):
        periods = [_period(2026), _period(2025), _period(2024)]
        assert select_fiscal_period(periods, date(2026, 3, 1)).fiscal_year == 2025

    def test_second_half_prefers_current_year(self):
        periods = [_period(2025), _period(2026)]
        assert select_fiscal_period(periods, date(2026, 8, 1)).fiscal_year == 2026

    def test_falls_back_to_newest(self):
        periods = [_period(2019), _period(2021)]
        assert select_fiscal_period(periods, date(2026, 8, 1)).fiscal_year == 2021

    def test_ignores_periods_without_income_statement(self):
        periods = [SimpleNamespace(fiscal_year=2025, income_statement=None)]
        assert select_fiscal_period(periods, date(2026, 3, 1)) is None


class TestResolveAdjustedEbitda:
    def test_financials_win(self):
        selection = resolve_adjusted_ebitda(
            _company(2_000_000, 100_000),
            [_period(2025)],
            [_adjustment("ADD_BACK", 50_000), _adjustment("DEDUCTION", 20_000)],
            None,
            default_multiples(),
            date(2026, 3, 1),
        )
        assert selection.adjusted_ebitda == 530_000
        assert selection.source == "financials"
        assert selection.fiscal_year == 2025
        assert not selection.is_estimated

    def test_snapshot_next(self):
        selection = resolve_adjusted_ebitda(
            _company(2_000_000), [], [], _snapshot(), default_multiples(), date(2026, 3, 1)
        )
        assert selection.adjusted_ebitda == 400_000
        assert selection.is_estimated

    def test_stated_ebitda_with_default_multiples(self):
        selection = resolve_adjusted_ebitda(
            _company(2_000_000, 300_000), [], [], None, default_multiples(), date(2026, 3, 1)
        )
        assert selection.adjusted_ebitda == 300_000
        assert selection.source == "company_assessment"

    def test_margin_fallback(self):
        selection = resolve_adjusted_ebitda(
            _company(1_260_000), [], [], None, default_multiples(), date(2026, 3, 1)
        )
        assert selection.adjusted_ebitda == 100_000
        assert selection.source == "revenue_conversion"


class TestValueTiers:
    def test_without_snapshot(self):
        tier1, tier2 = build_value_tiers(100_000, None, default_multiples(), 0.5, None, "Restaurants")
        assert tier1["current_value"] == pytest.approx(450_000)
        assert tier1["potential_value"] == pytest.approx(600_000)
        assert tier1["value_gap"] == pytest.approx(150_000)
        assert tier1["is_estimated"] is True
        assert tier1["bri_score"] is None
        assert tier2["current"] == pytest.approx(4.5)

    def test_snapshot_uses_stored_multiples(self):
        tier1, tier2 = build_value_tiers(200_000, _snapshot(), default_multiples(), None, None, "Restaurants")
        assert tier1["bri_score"] == 70
        assert tier1["core_score"] == 60
        assert tier2["current"] == 4.2
        assert tier1["is_estimated"] is False

    def test_dcf_value_and_custom_multiples(self):
        dcf = SimpleNamespace(
            ebitda_multiple_low_override=4,
            ebitda_multiple_high_override=8,
            use_dcf_value=True,
            enterprise_value=1_000_000,
        )
        tier1, tier2 = build_value_tiers(200_000, None, default_multiples(), 0.5, dcf, "Restaurants")
        assert tier1["current_value"] == 1_000_000
        assert tier1["potential_value"] == 1_600_000
        assert tier1["final_multiple"] == pytest.approx(5.0)
        assert tier1["has_custom_multiples"] is True
        assert tier1["use_dcf_value"] is True
        assert tier2 == {"low": 4.0, "high": 8.0, "current": pytest.approx(5.0)}


class TestRiskAndTrend:
    def test_risk_tier_constraints(self):
        tier = build_risk_tier(_snapshot())
        assert len(tier["categories"]) == 6
        assert [c["category"] for c in tier["top_constraints"]] == [
            "Transferability",
            "Legal & Tax",
            "Operations",
        ]

    def test_risk_tier_without_snapshot(self):
        assert build_risk_tier(None) is None

    @pytest.mark.parametrize(
        "score,window",
        [(0.85, "Ready now"), (0.6, "6-12 months"), (0.45, "12-18 months"), (0.1, "18-24 months")],
    )
    def test_exit_window(self, score, window):
        assert exit_window(score) == window

    def test_trend_tier(self):
        created = datetime(2026, 1, 1, tzinfo=timezone.utc)
        snapshots = [
            SimpleNamespace(bri_score=0.62, current_value=900_000, created_at=created),
            SimpleNamespace(bri_score=0.55, current_value=800_000, created_at=created),
        ]
        trend = build_trend_tier(snapshots)
        assert trend["bri_trend"] == {"direction": "up", "change": 7}
        assert [p["value"] for p in trend["value_trend"]] == [800_000, 900_000]
        assert trend["exit_window"] == "6-12 months"

    def test_empty_trend(self):
        trend = build_trend_tier([])
        assert trend["bri_trend"] is None
        assert trend["exit_window"] is None

    def test_task_stats(self):
        now = datetime(2026, 5, 1, tzinfo=timezone.utc)
        tasks = [
            SimpleNamespace(status="COMPLETED", raw_impact=1000, deferred_until=None),
            SimpleNamespace(status="PENDING", raw_impact=500, deferred_until=datetime(2026, 4, 1, tzinfo=timezone.utc)),
            SimpleNamespace(status="IN_PROGRESS", raw_impact=None, deferred_until=None),
        ]
        stats = build_task_stats(tasks, now)
        assert stats["completed"] == 1
        assert stats["pending"] == 1
        assert stats["in_progress"] == 1
        assert stats["recoverable_value"] == 500
        assert stats["at_risk"] == 1


class TestSnapshotHelpers:
    def test_market_salary(self):
        assert get_market_salary("OVER_25M") == 400_000
        assert get_market_salary(None) == DEFAULT_MARKET_SALARY
        assert get_market_salary("UNKNOWN") == DEFAULT_MARKET_SALARY

    def test_improvement_multiplier(self):
        perfect = {c: 1.0 for c in DEFAULT_CATEGORY_WEIGHTS}
        empty = {c: 0.0 for c in DEFAULT_CATEGORY_WEIGHTS}
        assert calculate_ebitda_improvement_multiplier(perfect, DEFAULT_CATEGORY_WEIGHTS) == 1.0
        assert calculate_ebitda_improvement_multiplier(empty, DEFAULT_CATEGORY_WEIGHTS) == pytest.approx(1.17)

    def test_adjusted_ebitda_with_excess_owner_pay(self):
        adjusted = calculate_adjusted_ebitda(
            500_000,
            2_000_000,
            250_000,
            [_adjustment("ADD_BACK", 20_000), _adjustment("DEDUCTION", 5_000)],
            "FROM_1M_TO_3M",
            default_multiples(),
        )
        assert adjusted == 615_000

    def test_adjusted_ebitda_estimated_from_revenue(self):
        assert calculate_adjusted_ebitda(0, 2_000_000, 0, [], None, default_multiples()) == 600_000
