"""Signal ranking, grouping and display limits.

Signals are ranked by severity, confidence, resolution status and weighted
value impact, grouped by event type, and only the top groups are surfaced.
Any object with the ``Signal`` column attributes can be ranked.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from exitosx.signals.confidence import CONFIDENCE_MULTIPLIERS, apply_confidence_weight

MAX_ACTIVE_DISPLAY_SIGNALS = 3
VALUE_NORMALIZER = 10_000

SEVERITY_WEIGHTS = {"INFO": 1, "LOW": 2, "MEDIUM": 3, "HIGH": 4, "CRITICAL": 5}

RESOLUTION_STATUS_MULTIPLIERS = {
    "OPEN": 1.0,
    "ACKNOWLEDGED": 0.9,
    "IN_PROGRESS": 0.8,
    "RESOLVED": 0.3,
    "DISMISSED": 0.1,
    "EXPIRED": 0.05,
}

_SEVERITY_ORDER = ("CRITICAL", "HIGH", "MEDIUM", "LOW", "INFO")
_CONFIDENCE_ORDER = ("VERIFIED", "CONFIDENT", "SOMEWHAT_CONFIDENT", "UNCERTAIN", "NOT_APPLICABLE")


def signal_to_dict(signal: Any) -> dict:
    created_at = getattr(signal, "created_at", None)
    return {
        "id": str(signal.id),
        "title": signal.title,
        "description": getattr(signal, "description", None),
        "severity": signal.severity,
        "confidence": signal.confidence,
        "channel": signal.channel,
        "category": signal.category,
        "event_type": signal.event_type,
        "resolution_status": signal.resolution_status,
        "estimated_value_impact": signal.estimated_value_impact,
        "created_at": created_at.isoformat() if hasattr(created_at, "isoformat") else created_at,
    }


@dataclass
class RankedSignal:
    signal: Any
    rank_score: float
    weighted_value_impact: float | None

    def to_dict(self) -> dict:
        data = signal_to_dict(self.signal)
        data["rank_score"] = self.rank_score
        data["weighted_value_impact"] = self.weighted_value_impact
        return data


@dataclass
class SignalGroup:
    group_key: str
    display_title: str
    signals: list[RankedSignal]
    total_weighted_impact: float
    max_severity: str
    max_confidence: str

    @property
    def primary_signal(self) -> RankedSignal:
        return self.signals[0]

    @property
    def count(self) -> int:
        return len(self.signals)

    @property
    def group_rank_score(self) -> float:
        return self.primary_signal.rank_score

    def to_dict(self) -> dict:
        return {
            "group_key": self.group_key,
            "display_title": self.display_title,
            "primary_signal": self.primary_signal.to_dict(),
            "signals": [s.to_dict() for s in self.signals],
            "count": self.count,
            "group_rank_score": self.group_rank_score,
            "total_weighted_impact": self.total_weighted_impact,
            "max_severity": self.max_severity,
            "max_confidence": self.max_confidence,
        }


@dataclass
class SignalRankingResult:
    active_display_groups: list[SignalGroup] = field(default_factory=list)
    queued_groups: list[SignalGroup] = field(default_factory=list)
    total_weighted_value_at_risk: float = 0.0
    total_signal_count: int = 0

    def to_dict(self) -> dict:
        return {
            "active_display_groups": [g.to_dict() for g in self.active_display_groups],
            "queued_groups": [g.to_dict() for g in self.queued_groups],
            "total_weighted_value_at_risk": self.total_weighted_value_at_risk,
            "total_signal_count": self.total_signal_count,
        }


def calculate_rank_score(signal: Any) -> float:
    """severity x confidence x resolution x max(1, |weighted impact| / 10K)."""
    severity_weight = SEVERITY_WEIGHTS.get(signal.severity, 1)
    confidence_multiplier = CONFIDENCE_MULTIPLIERS.get(signal.confidence, 0.5)
    resolution_multiplier = RESOLUTION_STATUS_MULTIPLIERS.get(signal.resolution_status, 1.0)

    raw_impact = abs(signal.estimated_value_impact) if signal.estimated_value_impact is not None else 0
    weighted_impact = abs(apply_confidence_weight(raw_impact, signal.confidence)) if raw_impact > 0 else 0
    value_factor = max(1, weighted_impact / VALUE_NORMALIZER)

    return severity_weight * confidence_multiplier * resolution_multiplier * value_factor


def calculate_weighted_value_impact(signal: Any) -> float | None:
    if signal.estimated_value_impact is None:
        return None
    return apply_confidence_weight(signal.estimated_value_impact, signal.confidence)


def rank_signals(signals: list) -> list[RankedSignal]:
    ranked = [
        RankedSignal(
            signal=s,
            rank_score=calculate_rank_score(s),
            weighted_value_impact=calculate_weighted_value_impact(s),
        )
        for s in signals
    ]
    ranked.sort(key=lambda r: r.rank_score, reverse=True)
    return ranked


def _group_title(members: list[RankedSignal]) -> str:
    primary = members[0].signal
    if len(members) == 1:
        return primary.title

    event_type = primary.event_type
    n = len(members)
    if "document" in event_type or "staleness" in event_type or "time_decay" in event_type:
        return f"{n} documents need attention"
    if "drift" in event_type:
        return f"{n} drift signals detected"
    if "disclosure" in event_type:
        return f"{n} disclosure findings"
    if "external" in event_type:
        return f"{n} external signals"
    return f"{primary.title} (+{n - 1} related)"


def _max_in_order(values: set[str], order: tuple[str, ...], default: str) -> str:
    return next((v for v in order if v in values), default)


def group_signals(ranked: list[RankedSignal]) -> list[SignalGroup]:
    """Group by event type; groups inherit their top member's rank."""
    buckets: dict[str, list[RankedSignal]] = {}
    for item in ranked:
        buckets.setdefault(item.signal.event_type, []).append(item)

    groups = [
        SignalGroup(
            group_key=key,
            display_title=_group_title(members),
            signals=members,
            total_weighted_impact=sum(m.weighted_value_impact or 0 for m in members),
            max_severity=_max_in_order({m.signal.severity for m in members}, _SEVERITY_ORDER, "INFO"),
            max_confidence=_max_in_order(
                {m.signal.confidence for m in members}, _CONFIDENCE_ORDER, "UNCERTAIN"
            ),
        )
        for key, members in buckets.items()
    ]
    groups.sort(key=lambda g: g.group_rank_score, reverse=True)
    return groups


def process_signals_for_display(
    signals: list,
    max_display: int = MAX_ACTIVE_DISPLAY_SIGNALS,
) -> SignalRankingResult:
    if not signals:
        return SignalRankingResult()

    ranked = rank_signals(signals)
    groups = group_signals(ranked)

    total_at_risk = sum(
        r.weighted_value_impact
        for r in ranked
        if r.signal.resolution_status == "OPEN"
        and r.weighted_value_impact is not None
        and r.weighted_value_impact > 0
    )
    return SignalRankingResult(
        active_display_groups=groups[:max_display],
        queued_groups=groups[max_display:],
        total_weighted_value_at_risk=total_at_risk,
        total_signal_count=len(signals),
    )


def calculate_weighted_value_at_risk(signals: list) -> float:
    """Confidence-weighted sum of absolute impacts."""
    return sum(
        apply_confidence_weight(abs(s.estimated_value_impact), s.confidence)
        for s in signals
        if s.estimated_value_impact is not None
    )
