"""Valuation analysis: method choice, risk discounts and value-gap attribution."""

from __future__ import annotations

from exitosx.valuation.bri import DEFAULT_CATEGORY_WEIGHTS, category_scores_from_snapshot
from exitosx.valuation.financials import calculate_category_value_gaps
from exitosx.valuation.industry_multiples import (
    MultipleResult,
    calculate_revenue_based_valuation,
    calculate_valuation_from_revenue,
    recommend_valuation_method_with_reason,
)
from exitosx.valuation.method_selector import build_financial_profile, select_valuation_method
from exitosx.valuation.risk_discounts import RiskDiscountInputs, calculate_risk_discounts


def revenue_growth_rate(periods: list) -> float | None:
    """Year-over-year revenue growth between the two newest annual periods."""
    revenues = [
        float(p.income_statement.gross_revenue)
        for p in periods
        if p.income_statement is not None and p.income_statement.gross_revenue
    ]
    if len(revenues) < 2 or revenues[1] <= 0:
        return None
    return (revenues[0] - revenues[1]) / revenues[1]


def analyze_valuation(
    company,
    core_factors,
    snapshot,
    periods: list,
    multiples: MultipleResult,
    weights: dict[str, float] | None = None,
    industry_name: str | None = None,
) -> dict:
    """Everything a valuation review needs beyond the snapshot itself.

    ``periods`` are annual periods, newest first, with statements loaded.
    """
    revenue = float(company.annual_revenue or 0)
    ebitda = float(snapshot.adjusted_ebitda) if snapshot else float(company.annual_ebitda or 0)
    revenue_model = getattr(core_factors, "revenue_model", None)
    growth = revenue_growth_rate(periods)
    cash_flows = [p.cash_flow_statement for p in periods if p.cash_flow_statement is not None]

    profile = build_financial_profile(
        revenue,
        ebitda,
        financial_period_count=len(periods),
        has_cash_flow_statements=bool(cash_flows),
        has_positive_free_cash_flow=bool(cash_flows) and float(cash_flows[0].free_cash_flow or 0) > 0,
        revenue_growth_rate=growth,
        revenue_model=revenue_model,
        industry_name=industry_name,
    )
    method = select_valuation_method(profile)

    category_scores = category_scores_from_snapshot(snapshot)
    discounts = calculate_risk_discounts(
        RiskDiscountInputs(
            owner_involvement=getattr(core_factors, "owner_involvement", None),
            transferability_score=category_scores["TRANSFERABILITY"] if snapshot else None,
            top_customer_concentration=getattr(core_factors, "top_customer_concentration", None),
            top3_customer_concentration=getattr(core_factors, "top3_customer_concentration", None),
            legal_tax_score=category_scores["LEGAL_TAX"] if snapshot else None,
            financial_score=category_scores["FINANCIAL"] if snapshot else None,
            revenue_size_category=getattr(core_factors, "revenue_size_category", None),
        )
    )

    weights = weights or DEFAULT_CATEGORY_WEIGHTS
    value_gaps = []
    if snapshot is not None:
        value_gaps = calculate_category_value_gaps(
            [
                {"category": c, "score": score, "weight": weights.get(c, 0.0)}
                for c, score in category_scores.items()
            ],
            float(snapshot.value_gap),
        )

    revenue_view = None
    if revenue > 0:
        revenue_view = {
            "range": calculate_valuation_from_revenue(revenue, multiples),
            "valuation": calculate_revenue_based_valuation(
                revenue,
                multiples,
                float(snapshot.core_score) if snapshot else 0.5,
                float(snapshot.bri_score) if snapshot else 0.5,
            ),
        }

    return {
        "method": method.to_dict(),
        "recommendation": recommend_valuation_method_with_reason(
            revenue, ebitda, growth, profile.is_recurring_revenue
        ),
        "revenue_growth_rate": growth,
        "risk_discounts": discounts.to_dict(),
        "category_value_gaps": [vars(g) for g in value_gaps],
        "revenue_valuation": revenue_view,
    }
