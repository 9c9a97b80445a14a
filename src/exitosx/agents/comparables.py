"""Comparable public companies via LLM, with relevance-weighted multiples."""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from exitosx.agents.base import BaseAgent
from exitosx.errors import IntegrationError, ValidationError

logger = logging.getLogger(__name__)

MAX_COMPARABLES = 5
MAX_EV_TO_EBITDA = 100
MAX_EV_TO_REVENUE = 50

REVENUE_MODEL_LABELS = {
    "PROJECT_BASED": "Project-based",
    "TRANSACTIONAL": "Transactional",
    "RECURRING_CONTRACTS": "Recurring contracts",
    "SUBSCRIPTION_SAAS": "SaaS / Subscription",
}

NO_COMPARABLES_WARNING = "AI did not return any valid comparables. Multiple ranges may be unreliable."
NO_MULTIPLES_WARNING = "Insufficient comparable data to compute weighted multiples."


@dataclass
class CompanyProfile:
    """Subject company. Money in USD, rates as decimals (0.15 = 15%)."""

    name: str
    industry: str
    revenue: float
    revenue_growth_rate: float | None = None
    ebitda_margin: float | None = None
    industry_path: str | None = None
    revenue_size_category: str | None = None
    revenue_model: str | None = None
    is_recurring_revenue: bool | None = None
    customer_concentration: str | None = None
    geography: str | None = None
    business_description: str | None = None


@dataclass
class ComparableMetrics:
    revenue: float | None = None
    ebitda_margin: float | None = None
    revenue_growth_rate: float | None = None
    ev_to_ebitda: float | None = None
    ev_to_revenue: float | None = None


@dataclass
class ComparableCompany:
    name: str
    ticker: str | None
    rationale: str
    metrics: ComparableMetrics
    relevance_score: float


@dataclass
class ComparableResult:
    comparables: list[ComparableCompany]
    weighted_ebitda_multiple: float | None
    weighted_revenue_multiple: float | None
    ai_usage: dict[str, Any]
    analyzed_at: str
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def normalize_positive_number(value: Any) -> float | None:
    if not _is_number(value) or value <= 0:
        return None
    return float(value)


def normalize_decimal_rate(value: Any, minimum: float, maximum: float) -> float | None:
    """Clamp a rate to ``[minimum, maximum]``.

    Values that look like percentages (22 instead of 0.22) are divided by
    100, but only when that brings them into range.
    """
    if not _is_number(value):
        return None

    normalized = float(value)
    if (normalized > maximum or normalized < minimum) and abs(normalized) <= 100:
        as_decimal = normalized / 100
        if minimum <= as_decimal <= maximum:
            normalized = as_decimal
    return max(minimum, min(maximum, normalized))


def format_dollar_amount(amount: float) -> str:
    """500000 -> "500K", 2500000 -> "2.5M", 150000000 -> "150.0M"."""
    if amount >= 1_000_000_000:
        return f"{amount / 1_000_000_000:.1f}B"
    if amount >= 1_000_000:
        return f"{amount / 1_000_000:.1f}M"
    if amount >= 1_000:
        return f"{amount / 1_000:.0f}K"
    return f"{amount:.0f}"


def normalize_comparables(raw: Any) -> list[ComparableCompany]:
    """Drop unusable entries, clamp values and keep the top five by relevance."""
    if not isinstance(raw, list):
        return []

    validated: list[ComparableCompany] = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        name = entry.get("name")
        if not isinstance(name, str) or not name.strip():
            continue

        relevance = entry.get("relevanceScore")
        relevance = float(relevance) if _is_number(relevance) else 0.5
        relevance = max(0.0, min(1.0, relevance))

        raw_metrics = entry.get("metrics") if isinstance(entry.get("metrics"), dict) else {}
        metrics = ComparableMetrics(
            revenue=normalize_positive_number(raw_metrics.get("revenue")),
            ebitda_margin=normalize_decimal_rate(raw_metrics.get("ebitdaMargin"), -1, 1),
            revenue_growth_rate=normalize_decimal_rate(raw_metrics.get("revenueGrowthRate"), -1, 5),
            ev_to_ebitda=normalize_positive_number(raw_metrics.get("evToEbitda")),
            ev_to_revenue=normalize_positive_number(raw_metrics.get("evToRevenue")),
        )
        if metrics.ev_to_ebitda is not None and metrics.ev_to_ebitda > MAX_EV_TO_EBITDA:
            metrics.ev_to_ebitda = None
        if metrics.ev_to_revenue is not None and metrics.ev_to_revenue > MAX_EV_TO_REVENUE:
            metrics.ev_to_revenue = None

        ticker = entry.get("ticker")
        rationale = entry.get("rationale")
        validated.append(
            ComparableCompany(
                name=name.strip(),
                ticker=ticker.strip().upper() if isinstance(ticker, str) and ticker.strip() else None,
                rationale=rationale.strip() if isinstance(rationale, str) else "No rationale provided",
                metrics=metrics,
                relevance_score=relevance,
            )
        )

    validated.sort(key=lambda c: c.relevance_score, reverse=True)
    return validated[:MAX_COMPARABLES]


def calculate_weighted_multiple(
    comparables: list[ComparableCompany],
    extractor: Callable[[ComparableCompany], float | None],
) -> float | None:
    """Relevance-weighted average of a multiple across comparables."""
    valid = [c for c in comparables if _is_number(extractor(c)) and extractor(c) > 0]
    if not valid:
        return None
    if len(valid) == 1:
        return extractor(valid[0])

    total_weight = sum(c.relevance_score for c in valid)
    if total_weight == 0:
        return None
    return sum(extractor(c) * c.relevance_score for c in valid) / total_weight


class ComparablesAgent(BaseAgent):
    """Identifies public comparables for a private company."""

    agent_name = "comparables"
    prompt_template = "comparables.j2"
    system_template = "comparables_system.j2"

    async def find_comparables(self, profile: CompanyProfile) -> ComparableResult:
        if not profile.name or not profile.name.strip():
            raise ValidationError("Company name is required for comparable analysis")
        if not profile.industry or not profile.industry.strip():
            raise ValidationError("Industry classification is required for comparable analysis")
        if profile.revenue < 0:
            raise ValidationError("Revenue cannot be negative")

        prompt = self.render_prompt(
            profile=profile,
            revenue=format_dollar_amount(profile.revenue),
            revenue_model_label=REVENUE_MODEL_LABELS.get(profile.revenue_model or "", profile.revenue_model),
        )
        data, model, usage = await self.call_llm_structured(
            prompt,
            system_content=self.render_system_prompt(),
            temperature=0.3,
            max_tokens=4096,
        )
        if "error" in data and "comparables" not in data:
            raise IntegrationError("Comparable analysis returned an unreadable response")

        comparables = normalize_comparables(data.get("comparables") or [])
        raw_warnings = data.get("warnings") or []
        warnings = [str(w) for w in raw_warnings] if isinstance(raw_warnings, list) else []
        if not comparables:
            warnings.append(NO_COMPARABLES_WARNING)

        weighted_ebitda = calculate_weighted_multiple(comparables, lambda c: c.metrics.ev_to_ebitda)
        weighted_revenue = calculate_weighted_multiple(comparables, lambda c: c.metrics.ev_to_revenue)
        if weighted_ebitda is None and weighted_revenue is None:
            warnings.append(NO_MULTIPLES_WARNING)

        logger.info(
            "Comparables for %s: %d found, EV/EBITDA=%s, EV/Revenue=%s",
            profile.name,
            len(comparables),
            weighted_ebitda,
            weighted_revenue,
        )
        return ComparableResult(
            comparables=comparables,
            weighted_ebitda_multiple=weighted_ebitda,
            weighted_revenue_multiple=weighted_revenue,
            ai_usage={
                "input_tokens": usage.get("prompt_tokens", 0),
                "output_tokens": usage.get("completion_tokens", 0),
                "model": model,
            },
            analyzed_at=datetime.now(timezone.utc).isoformat(),
            warnings=warnings,
        )
