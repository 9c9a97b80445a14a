"""Dashboard valuation figures recomputed from the latest snapshot.

Dollar values are always recomputed from a fresh adjusted EBITDA; the
snapshot supplies the scores and the stored multiple range. Custom
multiple overrides and an enabled DCF enterprise value take precedence.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date
from typing import Any

from exitosx.valuation.calculate import calculate_valuation
from exitosx.valuation.industry_multiples import MultipleResult, estimate_ebitda_from_revenue

FALLBACK_EBITDA_MARGIN = 0.10
CATEGORY_LABELS = {
    "FINANCIAL": "Financial Health",
    "TRANSFERABILITY": "Transferability",
    "OPERATIONAL": "Operations",
    "MARKET": "Market Position",
    "LEGAL_TAX": "Legal & Tax",
    "PERSONAL": "Personal Readiness",
}
_SNAPSHOT_CATEGORY_FIELDS = {
    "FINANCIAL": "bri_financial",
    "TRANSFERABILITY": "bri_transferability",
    "OPERATIONAL": "bri_operational",
    "MARKET": "bri_market",
    "LEGAL_TAX": "bri_legal_tax",
    "PERSONAL": "bri_personal",
}


def _round_to_100k(value: float) -> float:
    return math.floor(value / 100_000 + 0.5) * 100_000


def _pct(score: float) -> int:
    return math.floor(score * 100 + 0.5)


@dataclass
class EbitdaSelection:
    adjusted_ebitda: float
    source: str  # financials | revenue_conversion | company_assessment
    is_estimated: bool
    fiscal_year: int | None = None


def select_fiscal_period(periods: list, today: date) -> Any | None:
    """Pick the annual period whose EBITDA represents the business today.

    Before July the last completed fiscal year is used; from July on the
    current year is preferred. Falls back to the newest period with an
    income statement.
    """
    with_income = [p for p in periods if p.income_statement is not None]
    if today.month < 7:
        preferred = (today.year - 1, today.year - 2)
    else:
        preferred = (today.year, today.year - 1)
    for year in preferred:
        for period in with_income:
            if period.fiscal_year == year:
                return period
    return max(with_income, key=lambda p: p.fiscal_year, default=None)


def net_adjustments(adjustments: list) -> float:
    return sum(float(a.amount) if a.type == "ADD_BACK" else -float(a.amount) for a in adjustments)


def resolve_adjusted_ebitda(
    company,
    periods: list,
    adjustments: list,
    snapshot,
    multiples: MultipleResult,
    today: date,
) -> EbitdaSelection:
    """Adjusted EBITDA by source priority.

    Financial statements, then the latest snapshot, then a revenue-based
    estimate from industry multiples, then the stated annual EBITDA, and
    finally a 10% margin on revenue.
    """
    revenue = float(company.annual_revenue or 0)
    stated_ebitda = float(company.annual_ebitda or 0)

    period = select_fiscal_period(periods, today)
    if period is not None:
        ebitda = float(period.income_statement.ebitda or 0) + net_adjustments(adjustments)
        return EbitdaSelection(ebitda, "financials", False, period.fiscal_year)
    if snapshot is not None and float(snapshot.adjusted_ebitda) > 0:
        return EbitdaSelection(float(snapshot.adjusted_ebitda), "revenue_conversion", True)
    if revenue > 0 and not multiples.is_default:
        return EbitdaSelection(estimate_ebitda_from_revenue(revenue, multiples), "revenue_conversion", True)
    if stated_ebitda > 0:
        return EbitdaSelection(stated_ebitda + net_adjustments(adjustments), "company_assessment", False)
    if revenue > 0:
        return EbitdaSelection(_round_to_100k(revenue * FALLBACK_EBITDA_MARGIN), "revenue_conversion", True)
    return EbitdaSelection(0.0, "company_assessment", False)


def multiple_overrides(dcf) -> tuple[float, float] | None:
    if dcf is None:
        return None
    if dcf.ebitda_multiple_low_override is None or dcf.ebitda_multiple_high_override is None:
        return None
    return float(dcf.ebitda_multiple_low_override), float(dcf.ebitda_multiple_high_override)


def dcf_enterprise_value(dcf) -> float | None:
    if dcf is not None and dcf.use_dcf_value and dcf.enterprise_value:
        return float(dcf.enterprise_value)
    return None


def build_value_tiers(
    adjusted_ebitda: float,
    snapshot,
    multiples: MultipleResult,
    core_score: float | None,
    dcf,
    industry_name: str,
) -> tuple[dict, dict]:
    """Return (tier1, multiple range for tier2)."""
    overrides = multiple_overrides(dcf)
    low, high = overrides or (multiples.ebitda_multiple_low, multiples.ebitda_multiple_high)
    dcf_value = dcf_enterprise_value(dcf)
    dcf_multiple = dcf_value / adjusted_ebitda if dcf_value and adjusted_ebitda > 0 else None

    if snapshot is not None:
        if overrides is None:
            low, high = float(snapshot.industry_multiple_low), float(snapshot.industry_multiple_high)
        bri_score = float(snapshot.bri_score)
        snapshot_core = float(snapshot.core_score)
        final_multiple = calculate_valuation(adjusted_ebitda, low, high, snapshot_core, bri_score).final_multiple
        if overrides is None:
            tier2_multiple = float(snapshot.final_multiple)
        else:
            tier2_multiple = final_multiple
        bri_pct, core_pct = _pct(bri_score), _pct(snapshot_core)
        is_estimated = False
    else:
        if core_score is not None:
            final_multiple = low + core_score * (high - low)
        else:
            final_multiple = (low + high) / 2
        tier2_multiple = final_multiple
        bri_pct = None
        core_pct = _pct(core_score) if core_score is not None else None
        is_estimated = dcf_value is None

    current_value = dcf_value if dcf_value is not None else adjusted_ebitda * final_multiple
    potential_value = adjusted_ebitda * high

    tier1 = {
        "current_value": current_value,
        "potential_value": potential_value,
        "value_gap": max(0.0, potential_value - current_value),
        "market_premium": max(0.0, current_value - potential_value),
        "bri_score": bri_pct,
        "core_score": core_pct,
        "final_multiple": dcf_multiple if dcf_multiple is not None else final_multiple,
        "multiple_range": {"low": low, "high": high},
        "industry_name": industry_name,
        "is_estimated": is_estimated,
        "use_dcf_value": dcf_value is not None,
        "has_custom_multiples": overrides is not None,
    }
    tier2_range = {
        "low": low,
        "high": high,
        "current": dcf_multiple if dcf_multiple is not None else tier2_multiple,
    }
    return tier1, tier2_range


def build_risk_tier(snapshot) -> dict | None:
    """Category scores in percent and the three weakest categories."""
    if snapshot is None:
        return None
    scores = {key: float(getattr(snapshot, field)) for key, field in _SNAPSHOT_CATEGORY_FIELDS.items()}
    categories = [{"key": key, "label": CATEGORY_LABELS[key], "score": _pct(s)} for key, s in scores.items()]
    lowest = sorted(scores.items(), key=lambda item: item[1])[:3]
    return {
        "categories": categories,
        "top_constraints": [{"category": CATEGORY_LABELS[key], "score": _pct(s)} for key, s in lowest],
    }


def build_task_stats(tasks: list, now) -> dict:
    completed = [t for t in tasks if t.status == "COMPLETED"]
    open_tasks = [t for t in tasks if t.status != "COMPLETED"]
    return {
        "total": len(tasks),
        "pending": sum(1 for t in tasks if t.status == "PENDING"),
        "in_progress": sum(1 for t in tasks if t.status == "IN_PROGRESS"),
        "completed": len(completed),
        "total_value": sum(float(t.raw_impact or 0) for t in tasks),
        "completed_value": sum(float(t.raw_impact or 0) for t in completed),
        "recoverable_value": sum(float(t.raw_impact or 0) for t in open_tasks),
        "at_risk": sum(1 for t in tasks if t.deferred_until is not None and t.deferred_until < now),
    }


def exit_window(bri_score: float) -> str:
    if bri_score >= 0.8:
        return "Ready now"
    if bri_score >= 0.6:
        return "6-12 months"
    if bri_score >= 0.4:
        return "12-18 months"
    return "18-24 months"


def build_trend_tier(snapshots: list) -> dict:
    """Trends from snapshots ordered newest first."""
    bri_trend = None
    if len(snapshots) >= 2:
        current, previous = float(snapshots[0].bri_score), float(snapshots[1].bri_score)
        bri_trend = {"direction": "up" if current >= previous else "down", "change": _pct(current - previous)}
    return {
        "value_trend": [
            {"value": float(s.current_value), "date": s.created_at.isoformat() if s.created_at else None}
            for s in reversed(snapshots)
        ],
        "bri_trend": bri_trend,
        "exit_window": exit_window(float(snapshots[0].bri_score)) if snapshots else None,
    }
