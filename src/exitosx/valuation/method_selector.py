"""Pick the valuation methodology that best fits a company's financials.

Decision order:

1. EBITDA <= 0                              -> revenue multiple
2. revenue growth above 30 %                -> revenue multiple
3. recurring revenue with margin below 15 % -> revenue multiple
4. margin below 10 %                        -> blended (hybrid)
5. 3+ years of data with positive FCF       -> EBITDA multiple, DCF cross-check
6. otherwise                                -> EBITDA multiple
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field

METHOD_LABELS = {
    "ebitda": "EBITDA Multiple",
    "revenue": "Revenue Multiple",
    "hybrid": "Blended (EBITDA + Revenue)",
}

DCF_LABEL = "DCF (Advanced)"

MIN_YEARS_FOR_DCF = 3
HIGH_GROWTH_THRESHOLD = 0.30
LOW_MARGIN_THRESHOLD = 0.10
RECURRING_LOW_MARGIN_THRESHOLD = 0.15

RECURRING_REVENUE_MODELS = ("SUBSCRIPTION_SAAS", "RECURRING_CONTRACTS")


@dataclass
class FinancialProfile:
    revenue: float
    ebitda: float
    years_of_financial_data: int = 0
    has_cash_flow_statements: bool = False
    has_positive_free_cash_flow: bool = False
    revenue_growth_rate: float | None = None
    is_recurring_revenue: bool = False
    industry_name: str | None = None


@dataclass
class MethodSelection:
    primary_method: str
    method_label: str
    explanation: str
    confidence: str  # high | medium | low
    alternative_methods: list[dict] = field(default_factory=list)
    reasons: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def _alt(method: str, reason: str, label: str | None = None) -> dict:
    return {"method": method, "label": label or METHOD_LABELS[method], "reason": reason}


def build_explanation(base: str, industry_name: str | None = None) -> str:
    if industry_name:
        return f"{base} This approach is well-established for companies in the {industry_name} sector."
    return base


def select_valuation_method(profile: FinancialProfile) -> MethodSelection:
    reasons: list[str] = []
    alternatives: list[dict] = []

    revenue, ebitda = profile.revenue, profile.ebitda
    margin = ebitda / revenue if revenue > 0 else 0
    margin_pct = f"{margin * 100:.1f}%"
    dcf_feasible = (
        profile.years_of_financial_data >= MIN_YEARS_FOR_DCF
        and profile.has_cash_flow_statements
        and profile.has_positive_free_cash_flow
    )

    if ebitda <= 0:
        reasons.append("EBITDA is negative or zero, making earnings-based multiples unreliable")
        if revenue > 0:
            reasons.append("Revenue is positive, supporting a revenue-based approach")
        if revenue > 0 and ebitda > -revenue * 0.05:
            alternatives.append(_alt(
                "ebitda",
                "EBITDA is near breakeven. If owner adjustments bring EBITDA positive, "
                "an earnings multiple may be appropriate.",
            ))
        return MethodSelection(
            primary_method="revenue",
            method_label=METHOD_LABELS["revenue"],
            explanation=build_explanation(
                "Your company currently has negative or zero EBITDA, so we are valuing it based on "
                "revenue multiples. As profitability improves, the valuation can transition to an "
                "earnings-based approach.",
                profile.industry_name,
            ),
            confidence="medium" if revenue > 0 else "low",
            alternative_methods=alternatives,
            reasons=reasons,
        )

    growth = profile.revenue_growth_rate
    if growth is not None and growth > HIGH_GROWTH_THRESHOLD:
        growth_pct = f"{growth * 100:.0f}%"
        reasons.append(
            f"Revenue growth rate is {growth_pct}, above the "
            f"{HIGH_GROWTH_THRESHOLD * 100:.0f}% high-growth threshold"
        )
        alternatives.append(_alt(
            "ebitda", "Your EBITDA is positive, so an earnings-based valuation can serve as a floor valuation."
        ))
        if dcf_feasible:
            alternatives.append(_alt(
                "ebitda",
                "You have enough financial history for a DCF analysis.",
                label=DCF_LABEL,
            ))
        return MethodSelection(
            primary_method="revenue",
            method_label=METHOD_LABELS["revenue"],
            explanation=build_explanation(
                f"Your company is growing at {growth_pct} year-over-year, which is considered "
                "high-growth. Buyers of fast-growing businesses typically value them on revenue "
                "multiples rather than current earnings.",
                profile.industry_name,
            ),
            confidence="high",
            alternative_methods=alternatives,
            reasons=reasons,
        )

    if profile.is_recurring_revenue and margin < RECURRING_LOW_MARGIN_THRESHOLD:
        reasons.append("Company has recurring revenue model (SaaS/subscription)")
        reasons.append(
            f"EBITDA margin is {margin_pct}, below the "
            f"{RECURRING_LOW_MARGIN_THRESHOLD * 100:.0f}% threshold for recurring-revenue businesses"
        )
        alternatives.append(_alt(
            "ebitda",
            "EBITDA is positive. As margins expand, an earnings-based multiple will better reflect "
            "the business value.",
        ))
        alternatives.append(_alt(
            "hybrid",
            "A blended approach can capture both the revenue quality and current profitability.",
        ))
        return MethodSelection(
            primary_method="revenue",
            method_label=METHOD_LABELS["revenue"],
            explanation=build_explanation(
                "Your business has recurring revenue, which buyers value highly. However, your "
                f"current EBITDA margin of {margin_pct} is relatively low. Revenue multiples better "
                "capture the value of your predictable income stream.",
                profile.industry_name,
            ),
            confidence="high",
            alternative_methods=alternatives,
            reasons=reasons,
        )

    if margin < LOW_MARGIN_THRESHOLD:
        reasons.append(
            f"EBITDA margin is {margin_pct}, below the {LOW_MARGIN_THRESHOLD * 100:.0f}% threshold"
        )
        reasons.append("Positive EBITDA supports earnings-based approach, but thin margins add uncertainty")
        alternatives.append(_alt(
            "ebitda",
            "Earnings are positive, so a pure EBITDA multiple is viable if margins remain stable.",
        ))
        alternatives.append(_alt(
            "revenue",
            "Revenue multiples avoid the volatility of thin margins.",
        ))
        return MethodSelection(
            primary_method="hybrid",
            method_label=METHOD_LABELS["hybrid"],
            explanation=build_explanation(
                f"Your company is profitable but has a thin EBITDA margin of {margin_pct}. We use a "
                "blended approach that combines both earnings and revenue multiples to give a more "
                "stable valuation.",
                profile.industry_name,
            ),
            confidence="medium",
            alternative_methods=alternatives,
            reasons=reasons,
        )

    if dcf_feasible:
        reasons.append(f"{profile.years_of_financial_data} years of financial data available")
        reasons.append("Cash flow statements and positive free cash flow present")
        reasons.append("Sufficient data for DCF cross-check")
        alternatives.append(_alt(
            "revenue",
            "Revenue multiples can provide a useful floor or ceiling check against the EBITDA-based valuation.",
        ))
        alternatives.append(_alt(
            "ebitda",
            "Your financial data supports a full DCF analysis.",
            label=DCF_LABEL,
        ))
        return MethodSelection(
            primary_method="ebitda",
            method_label=METHOD_LABELS["ebitda"],
            explanation=build_explanation(
                "We are using EBITDA multiples because your company has strong positive earnings "
                f"and an EBITDA margin of {margin_pct}. You also have enough financial history to "
                "run a DCF analysis as a cross-check.",
                profile.industry_name,
            ),
            confidence="high",
            alternative_methods=alternatives,
            reasons=reasons,
        )

    reasons.append("Positive EBITDA with adequate margin supports earnings-based valuation")
    if profile.years_of_financial_data < MIN_YEARS_FOR_DCF:
        reasons.append(
            f"Only {profile.years_of_financial_data} year(s) of data available "
            f"(need {MIN_YEARS_FOR_DCF}+ for DCF)"
        )
    alternatives.append(_alt(
        "revenue", "Revenue multiples can serve as a sanity check or alternative perspective on value."
    ))
    return MethodSelection(
        primary_method="ebitda",
        method_label=METHOD_LABELS["ebitda"],
        explanation=build_explanation(
            "We are using EBITDA multiples because your company has strong positive earnings. "
            "Industry-standard multiples are applied to your adjusted EBITDA to determine "
            "enterprise value.",
            profile.industry_name,
        ),
        confidence="high" if profile.years_of_financial_data >= 2 else "medium",
        alternative_methods=alternatives,
        reasons=reasons,
    )


def build_financial_profile(
    annual_revenue: float,
    annual_ebitda: float,
    financial_period_count: int = 0,
    has_cash_flow_statements: bool = False,
    has_positive_free_cash_flow: bool = False,
    revenue_growth_rate: float | None = None,
    revenue_model: str | None = None,
    industry_name: str | None = None,
) -> FinancialProfile:
    return FinancialProfile(
        revenue=float(annual_revenue or 0),
        ebitda=float(annual_ebitda or 0),
        years_of_financial_data=financial_period_count,
        has_cash_flow_statements=has_cash_flow_statements,
        has_positive_free_cash_flow=has_positive_free_cash_flow,
        revenue_growth_rate=revenue_growth_rate,
        is_recurring_revenue=revenue_model in RECURRING_REVENUE_MODELS,
        industry_name=industry_name,
    )
