"""Core score and BRI-discounted valuation.

The valuation model places a company inside its industry multiple range in
two steps:

1. The **core score** (structural characteristics such as revenue model and
   owner involvement) positions the *base multiple* between low and high.
2. The **BRI score** discounts the base multiple back toward the low end.
   The discount is non-linear: ``(1 - bri) ** ALPHA``, so improvements at the
   bottom of the BRI scale recover value faster than at the top.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

ALPHA = 1.4

REVENUE_MODEL_SCORES = {
    "PROJECT_BASED": 0.25,
    "TRANSACTIONAL": 0.5,
    "RECURRING_CONTRACTS": 0.75,
    "SUBSCRIPTION_SAAS": 1.0,
}

GROSS_MARGIN_SCORES = {
    "LOW": 0.25,
    "MODERATE": 0.5,
    "GOOD": 0.75,
    "EXCELLENT": 1.0,
}

LABOR_INTENSITY_SCORES = {
    "VERY_HIGH": 0.25,
    "HIGH": 0.5,
    "MODERATE": 0.75,
    "LOW": 1.0,
}

ASSET_INTENSITY_SCORES = {
    "ASSET_HEAVY": 0.33,
    "MODERATE": 0.67,
    "ASSET_LIGHT": 1.0,
}

OWNER_INVOLVEMENT_SCORES = {
    "CRITICAL": 0.0,
    "HIGH": 0.25,
    "MODERATE": 0.5,
    "LOW": 0.75,
    "MINIMAL": 1.0,
}

_FACTOR_TABLES = (
    ("revenue_model", REVENUE_MODEL_SCORES),
    ("gross_margin_proxy", GROSS_MARGIN_SCORES),
    ("labor_intensity", LABOR_INTENSITY_SCORES),
    ("asset_intensity", ASSET_INTENSITY_SCORES),
    ("owner_involvement", OWNER_INVOLVEMENT_SCORES),
)

UNKNOWN_FACTOR_SCORE = 0.5


@dataclass
class ValuationResult:
    base_multiple: float
    discount_fraction: float
    final_multiple: float
    current_value: float
    potential_value: float
    value_gap: float

    def to_dict(self) -> dict[str, float]:
        return {
            "base_multiple": self.base_multiple,
            "discount_fraction": self.discount_fraction,
            "final_multiple": self.final_multiple,
            "current_value": self.current_value,
            "potential_value": self.potential_value,
            "value_gap": self.value_gap,
        }


def _factor_value(factors: Any, name: str) -> str | None:
    if isinstance(factors, dict):
        return factors.get(name)
    return getattr(factors, name, None)


def calculate_core_score(factors: Any) -> float:
    """Average the five structural factor scores (0-1).

    Accepts a ``CoreFactors`` row or a plain dict. Returns 0.5 when no
    factors have been captured; unrecognised values also count as 0.5.
    """
    if not factors:
        return UNKNOWN_FACTOR_SCORE

    scores = [
        table.get(_factor_value(factors, name), UNKNOWN_FACTOR_SCORE)
        for name, table in _FACTOR_TABLES
    ]
    return sum(scores) / len(scores)


def calculate_valuation(
    adjusted_ebitda: float,
    industry_multiple_low: float,
    industry_multiple_high: float,
    core_score: float,
    bri_score: float,
) -> ValuationResult:
    """Apply the core score and BRI discount to an EBITDA multiple range."""
    spread = industry_multiple_high - industry_multiple_low
    base_multiple = industry_multiple_low + core_score * spread
    discount_fraction = (1 - bri_score) ** ALPHA
    final_multiple = industry_multiple_low + (base_multiple - industry_multiple_low) * (
        1 - discount_fraction
    )

    current_value = adjusted_ebitda * final_multiple
    potential_value = adjusted_ebitda * base_multiple

    return ValuationResult(
        base_multiple=base_multiple,
        discount_fraction=discount_fraction,
        final_multiple=final_multiple,
        current_value=current_value,
        potential_value=potential_value,
        value_gap=potential_value - current_value,
    )


def calculate_valuation_from_percentages(
    adjusted_ebitda: float,
    industry_multiple_low: float,
    industry_multiple_high: float,
    core_score_pct: float,
    bri_score_pct: float,
) -> ValuationResult:
    """Same as :func:`calculate_valuation` with scores expressed as 0-100."""
    return calculate_valuation(
        adjusted_ebitda,
        industry_multiple_low,
        industry_multiple_high,
        core_score_pct / 100,
        bri_score_pct / 100,
    )


def calculate_base_multiple(industry_multiple_low: float, industry_multiple_high: float) -> float:
    """Midpoint of a multiple range, used when no core score is known."""
    return (industry_multiple_low + industry_multiple_high) / 2
