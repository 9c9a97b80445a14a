"""Tests for the core score and BRI-discounted valuation."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from exitosx.valuation.calculate import (
    ALPHA,
    calculate_base_multiple,
    calculate_core_score,
    calculate_valuation,
    calculate_valuation_from_percentages,
)


class TestCoreScore:
    def test_best_case_factors(self):
        factors = {
            "revenue_model": "SUBSCRIPTION_SAAS",
            "gross_margin_proxy": "EXCELLENT",
            "labor_intensity": "LOW",
            "asset_intensity": "ASSET_LIGHT",
            "owner_involvement": "MINIMAL",
        }
        assert calculate_core_score(factors) == 1.0

    def test_missing_factors_default_to_half(self):
        assert calculate_core_score(None) == 0.5

    def test_unknown_values_count_as_half(self):
        assert calculate_core_score({"revenue_model": "SUBSCRIPTION_SAAS"}) == pytest.approx(0.6)

    def test_accepts_row_objects(self):
        row = SimpleNamespace(
            revenue_model="PROJECT_BASED",
            gross_margin_proxy="LOW",
            labor_intensity="VERY_HIGH",
            asset_intensity="ASSET_HEAVY",
            owner_involvement="CRITICAL",
        )
        assert calculate_core_score(row) == pytest.approx((0.25 + 0.25 + 0.25 + 0.33 + 0.0) / 5)


class TestCalculateValuation:
    def test_perfect_bri_has_no_gap(self):
        result = calculate_valuation(1_000_000, 3.0, 6.0, 0.5, 1.0)
        assert result.base_multiple == 4.5
        assert result.final_multiple == 4.5
        assert result.value_gap == 0

    def test_zero_bri_falls_to_low_multiple(self):
        result = calculate_valuation(1_000_000, 3.0, 6.0, 0.5, 0.0)
        assert result.final_multiple == 3.0
        assert result.current_value == 3_000_000
        assert result.potential_value == 4_500_000
        assert result.value_gap == 1_500_000

    def test_discount_is_non_linear(self):
        result = calculate_valuation(1_000_000, 3.0, 6.0, 0.5, 0.5)
        discount = 0.5**ALPHA
        assert result.discount_fraction == pytest.approx(discount)
        assert result.final_multiple == pytest.approx(3.0 + 1.5 * (1 - discount))
        # better than a linear discount would give
        assert result.final_multiple > 3.75

    def test_final_multiple_stays_in_range(self):
        for core in (0.0, 0.3, 1.0):
            for bri in (0.0, 0.42, 1.0):
                result = calculate_valuation(500_000, 2.5, 5.0, core, bri)
                assert 2.5 <= result.final_multiple <= 5.0

    def test_percentages(self):
        a = calculate_valuation_from_percentages(1_000_000, 3.0, 6.0, 50, 70)
        b = calculate_valuation(1_000_000, 3.0, 6.0, 0.5, 0.7)
        assert a.to_dict() == b.to_dict()

    def test_base_multiple_midpoint(self):
        assert calculate_base_multiple(4.0, 8.0) == 6.0
