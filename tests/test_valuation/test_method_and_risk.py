"""Tests for valuation method selection, risk discounts and the analysis view."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from exitosx.valuation.analysis import analyze_valuation, revenue_growth_rate
from exitosx.valuation.industry_multiples import default_multiples
from exitosx.valuation.method_selector import (
    DCF_LABEL,
    FinancialProfile,
    build_financial_profile,
    select_valuation_method,
)
from exitosx.valuation.risk_discounts import (
    CONCENTRATION_SINGLE,
    CONCENTRATION_TOP3,
    DLOM,
    KEY_PERSON,
    RiskDiscountInputs,
    calculate_risk_discounts,
    is_addressable_discount,
)


def _period(revenue, fcf=100_000.0):
    return SimpleNamespace(
        income_statement=SimpleNamespace(gross_revenue=revenue),
        cash_flow_statement=SimpleNamespace(free_cash_flow=fcf),
    )


class TestMethodSelection:
    def test_negative_ebitda(self):
        result = select_valuation_method(FinancialProfile(revenue=1_000_000, ebitda=-10_000))
        assert result.primary_method == "revenue"
        assert result.confidence == "medium"
        # near breakeven suggests an earnings alternative
        assert result.alternative_methods[0]["method"] == "ebitda"

    def test_high_growth(self):
        result = select_valuation_method(
            FinancialProfile(revenue=1_000_000, ebitda=200_000, revenue_growth_rate=0.45)
        )
        assert result.primary_method == "revenue"
        assert "45%" in result.explanation

    def test_recurring_low_margin(self):
        profile = build_financial_profile(1_000_000, 120_000, revenue_model="SUBSCRIPTION_SAAS")
        result = select_valuation_method(profile)
        assert result.primary_method == "revenue"
        assert {a["method"] for a in result.alternative_methods} == {"ebitda", "hybrid"}

    def test_thin_margin_is_hybrid(self):
        result = select_valuation_method(FinancialProfile(revenue=1_000_000, ebitda=60_000))
        assert result.primary_method == "hybrid"
        assert "6.0%" in result.explanation

    def test_dcf_cross_check(self):
        result = select_valuation_method(
            FinancialProfile(
                revenue=1_000_000,
                ebitda=200_000,
                years_of_financial_data=3,
                has_cash_flow_statements=True,
                has_positive_free_cash_flow=True,
                industry_name="Restaurants",
            )
        )
        assert result.primary_method == "ebitda"
        assert any(a["label"] == DCF_LABEL for a in result.alternative_methods)
        assert "Restaurants sector" in result.explanation

    def test_limited_history(self):
        result = select_valuation_method(FinancialProfile(revenue=1_000_000, ebitda=200_000, years_of_financial_data=1))
        assert result.primary_method == "ebitda"
        assert result.confidence == "medium"


class TestRiskDiscounts:
    def test_dlom_only(self):
        result = calculate_risk_discounts(RiskDiscountInputs(revenue_size_category="OVER_25M"))
        assert [d.name for d in result.discounts] == [DLOM]
        assert result.risk_multiplier == pytest.approx(0.90)
        assert result.discounts[0].addressable is False

    def test_default_dlom(self):
        result = calculate_risk_discounts(RiskDiscountInputs())
        assert result.discounts[0].rate == 0.18

    def test_key_person_modified_by_transferability(self):
        result = calculate_risk_discounts(
            RiskDiscountInputs(owner_involvement="HIGH", transferability_score=1.0)
        )
        key_person = next(d for d in result.discounts if d.name == KEY_PERSON)
        assert key_person.rate == pytest.approx(0.11)

    def test_minimal_involvement_has_no_key_person_discount(self):
        result = calculate_risk_discounts(RiskDiscountInputs(owner_involvement="MINIMAL", transferability_score=0.0))
        assert KEY_PERSON not in [d.name for d in result.discounts]

    def test_high_single_concentration_suppresses_top3(self):
        result = calculate_risk_discounts(
            RiskDiscountInputs(top_customer_concentration=0.35, top3_customer_concentration=0.7)
        )
        names = [d.name for d in result.discounts]
        assert CONCENTRATION_SINGLE in names
        assert CONCENTRATION_TOP3 not in names

    def test_moderate_single_keeps_top3(self):
        result = calculate_risk_discounts(
            RiskDiscountInputs(top_customer_concentration=0.22, top3_customer_concentration=0.65)
        )
        rates = {d.name: d.rate for d in result.discounts}
        assert rates[CONCENTRATION_SINGLE] == 0.08
        assert rates[CONCENTRATION_TOP3] == 0.10

    def test_documentation_and_legal(self):
        result = calculate_risk_discounts(
            RiskDiscountInputs(financial_score=0.3, legal_tax_score=0.2, revenue_size_category="OVER_25M")
        )
        assert result.risk_multiplier == pytest.approx(0.90 * 0.95 * 0.92)
        assert result.risk_severity_score == pytest.approx(1 - result.risk_multiplier)

    def test_addressable(self):
        assert is_addressable_discount(KEY_PERSON)
        assert not is_addressable_discount(DLOM)


class TestValuationAnalysis:
    def test_revenue_growth_rate(self):
        assert revenue_growth_rate([_period(1_200_000), _period(1_000_000)]) == pytest.approx(0.2)
        assert revenue_growth_rate([_period(1_200_000)]) is None

    def test_analysis_with_snapshot(self):
        company = SimpleNamespace(annual_revenue=2_000_000, annual_ebitda=300_000)
        factors = SimpleNamespace(
            revenue_model="TRANSACTIONAL",
            owner_involvement="CRITICAL",
            top_customer_concentration=None,
            top3_customer_concentration=None,
            revenue_size_category="FROM_1M_TO_3M",
        )
        snapshot = SimpleNamespace(
            adjusted_ebitda=300_000,
            core_score=0.5,
            bri_score=0.6,
            value_gap=450_000,
            bri_financial=0.4,
            bri_transferability=0.5,
            bri_operational=0.6,
            bri_market=0.7,
            bri_legal_tax=0.8,
            bri_personal=0.9,
        )
        periods = [_period(2_000_000), _period(1_900_000), _period(1_800_000)]

        result = analyze_valuation(company, factors, snapshot, periods, default_multiples())

        assert result["method"]["primary_method"] == "ebitda"
        assert sum(g["dollar_impact"] for g in result["category_value_gaps"]) == 450_000
        assert result["category_value_gaps"][0]["category"] == "FINANCIAL"
        names = [d["name"] for d in result["risk_discounts"]["discounts"]]
        assert KEY_PERSON in names
        assert result["revenue_valuation"]["range"]["high"] == 3_000_000

    def test_analysis_without_snapshot(self):
        company = SimpleNamespace(annual_revenue=0, annual_ebitda=0)
        result = analyze_valuation(company, None, None, [], default_multiples())
        assert result["method"]["primary_method"] == "revenue"
        assert result["category_value_gaps"] == []
        assert result["revenue_valuation"] is None
