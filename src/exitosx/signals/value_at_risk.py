"""Value-at-risk aggregation over open signals."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from exitosx.models.enums import BRI_CATEGORIES
from exitosx.signals.confidence import apply_confidence_weight

TREND_STABILITY_THRESHOLD = 0.05

BRI_CATEGORY_LABELS = {
    "FINANCIAL": "Financial Health",
    "TRANSFERABILITY": "Transferability",
    "OPERATIONAL": "Operations",
    "MARKET": "Market Position",
    "LEGAL_TAX": "Legal & Tax",
    "PERSONAL": "Personal Readiness",
}


@dataclass
class ThreatEntry:
    signal_id: str
    title: str
    severity: str
    confidence: str
    raw_impact: float
    weighted_impact: float
    category: str | None
    category_label: str | None


@dataclass
class CategoryRisk:
    category: str
    label: str
    signal_count: int = 0
    raw_value_at_risk: float = 0.0
    weighted_value_at_risk: float = 0.0


@dataclass
class VarTrend:
    direction: str
    absolute_change: float
    percentage_change: float | None


@dataclass
class ValueAtRiskResult:
    total_value_at_risk: float
    raw_value_at_risk: float
    signal_count: int
    top_threats: list[ThreatEntry] = field(default_factory=list)
    by_category: list[CategoryRisk] = field(default_factory=list)
    trend: VarTrend | None = None

    def to_dict(self) -> dict:
        return asdict(self)


def get_weighted_impact(signal: Any) -> float:
    if signal.estimated_value_impact is None:
        return 0.0
    return abs(apply_confidence_weight(signal.estimated_value_impact, signal.confidence))


def get_raw_impact(signal: Any) -> float:
    if signal.estimated_value_impact is None:
        return 0.0
    return abs(signal.estimated_value_impact)


def extract_top_threats(signals: list, limit: int = 3) -> list[ThreatEntry]:
    threats = [
        ThreatEntry(
            signal_id=str(s.id),
            title=s.title,
            severity=s.severity,
            confidence=s.confidence,
            raw_impact=get_raw_impact(s),
            weighted_impact=get_weighted_impact(s),
            category=s.category,
            category_label=BRI_CATEGORY_LABELS.get(s.category) if s.category else None,
        )
        for s in signals
        if s.estimated_value_impact
    ]
    threats.sort(key=lambda t: t.weighted_impact, reverse=True)
    return threats[:limit]


def aggregate_by_category(signals: list) -> list[CategoryRisk]:
    """One entry per BRI category; uncategorized signals are left out."""
    buckets = {cat: CategoryRisk(category=cat, label=BRI_CATEGORY_LABELS[cat]) for cat in BRI_CATEGORIES}
    for signal in signals:
        bucket = buckets.get(signal.category)
        if bucket is None:
            continue
        bucket.signal_count += 1
        bucket.raw_value_at_risk += get_raw_impact(signal)
        bucket.weighted_value_at_risk += get_weighted_impact(signal)
    return [buckets[cat] for cat in BRI_CATEGORIES]


def calculate_var_trend(current: float, previous: float | None) -> VarTrend | None:
    if previous is None:
        return None

    absolute_change = current - previous
    if previous > 0:
        percentage_change = absolute_change / previous
    else:
        percentage_change = 1.0 if current > 0 else 0.0

    direction = "stable"
    if percentage_change > TREND_STABILITY_THRESHOLD:
        direction = "increasing"
    elif percentage_change < -TREND_STABILITY_THRESHOLD:
        direction = "decreasing"
    return VarTrend(direction=direction, absolute_change=absolute_change, percentage_change=percentage_change)


def calculate_value_at_risk(
    signals: list,
    previous_weighted_var: float | None = None,
    top_threats_limit: int = 3,
) -> ValueAtRiskResult:
    """Aggregate value at risk. Callers filter to OPEN signals first."""
    total_weighted = sum(get_weighted_impact(s) for s in signals)
    return ValueAtRiskResult(
        total_value_at_risk=total_weighted,
        raw_value_at_risk=sum(get_raw_impact(s) for s in signals),
        signal_count=len(signals),
        top_threats=extract_top_threats(signals, top_threats_limit),
        by_category=aggregate_by_category(signals),
        trend=calculate_var_trend(total_weighted, previous_weighted_var),
    )
