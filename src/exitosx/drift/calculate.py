"""Drift between two valuation snapshots.

Compares BRI and value at two points in time and folds in signal pressure,
document staleness and task completion to produce a weighted drift score.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field

from exitosx.valuation.bri import DEFAULT_CATEGORY_WEIGHTS

STABILITY_THRESHOLD = 0.005
DIRECTION_THRESHOLD = 0.05
HIGH_BRI_DROP = 0.05
CRITICAL_BRI_DROP = 0.10
MAX_RECOMMENDED_ACTIONS = 5

# (snapshot attribute, category, label)
CATEGORY_META = (
    ("bri_financial", "FINANCIAL", "Financial Health"),
    ("bri_transferability", "TRANSFERABILITY", "Transferability"),
    ("bri_operational", "OPERATIONAL", "Operations"),
    ("bri_market", "MARKET", "Market Position"),
    ("bri_legal_tax", "LEGAL_TAX", "Legal & Tax"),
    ("bri_personal", "PERSONAL", "Personal Readiness"),
)
CATEGORY_LABELS = {category: label for _, category, label in CATEGORY_META}


def _js_round(value: float) -> int:
    return math.floor(value + 0.5)


@dataclass
class SnapshotData:
    bri_score: float
    current_value: float
    bri_financial: float
    bri_transferability: float
    bri_operational: float
    bri_market: float
    bri_legal_tax: float
    bri_personal: float

    @classmethod
    def from_snapshot(cls, snapshot) -> SnapshotData:
        return cls(**{name: float(getattr(snapshot, name) or 0) for name in cls.__dataclass_fields__})


@dataclass
class SignalsSummary:
    high: int = 0
    critical: int = 0
    total: int = 0


@dataclass
class CategoryChange:
    category: str
    label: str
    previous_score: float
    current_score: float
    delta: float
    direction: str
    weight: float


@dataclass
class PendingTask:
    id: str
    title: str
    bri_category: str
    normalized_value: float


@dataclass
class DriftInputs:
    current_snapshot: SnapshotData | None
    previous_snapshot: SnapshotData | None
    stale_document_count: int = 0
    signals_summary: SignalsSummary = field(default_factory=SignalsSummary)
    tasks_completed_count: int = 0
    tasks_pending_at_start: int = 0
    top_pending_tasks: list[PendingTask] = field(default_factory=list)


@dataclass
class DriftResult:
    bri_score_change: float
    valuation_change: float
    category_changes: list[CategoryChange]
    stale_document_count: int
    signals_summary: SignalsSummary
    task_completion_rate: float
    overall_drift_direction: str
    recommended_actions: list[dict]
    weighted_drift_score: float

    def to_dict(self) -> dict:
        return asdict(self)


def get_direction(delta: float, threshold: float = STABILITY_THRESHOLD) -> str:
    if delta > threshold:
        return "improving"
    if delta < -threshold:
        return "declining"
    return "stable"


def calculate_category_changes(
    current: SnapshotData | None,
    previous: SnapshotData | None,
) -> list[CategoryChange]:
    changes = []
    for attr, category, label in CATEGORY_META:
        current_score = getattr(current, attr) if current else 0.0
        previous_score = getattr(previous, attr) if previous else 0.0
        delta = current_score - previous_score
        changes.append(
            CategoryChange(
                category=category,
                label=label,
                previous_score=previous_score,
                current_score=current_score,
                delta=delta,
                direction=get_direction(delta),
                weight=DEFAULT_CATEGORY_WEIGHTS.get(category, 0.0),
            )
        )
    return changes


def calculate_weighted_drift_score(
    category_changes: list[CategoryChange],
    stale_document_count: int,
    signals_summary: SignalsSummary,
    task_completion_rate: float,
) -> float:
    """Positive means improving. Roughly -1..+1.

    BRI change carries 0.60, staleness 0.15, signals 0.10, tasks 0.15.
    A 0.10 swing in weighted BRI counts as a full unit.
    """
    weighted_bri_change = sum(c.delta * c.weight for c in category_changes)
    bri_factor = weighted_bri_change / 0.10
    staleness_penalty = min(stale_document_count * 0.1, 1.0)
    signal_pressure = min(signals_summary.critical * 0.3 + signals_summary.high * 0.15, 1.0)

    return (
        bri_factor * 0.60
        - staleness_penalty * 0.15
        - signal_pressure * 0.10
        + task_completion_rate * 0.15
    )


def determine_drift_direction(weighted_score: float) -> str:
    if weighted_score > DIRECTION_THRESHOLD:
        return "IMPROVING"
    if weighted_score < -DIRECTION_THRESHOLD:
        return "DECLINING"
    return "STABLE"


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def generate_recommended_actions(
    category_changes: list[CategoryChange],
    top_pending_tasks: list[PendingTask],
    stale_document_count: int,
    signals_summary: SignalsSummary,
) -> list[dict]:
    actions: list[dict] = []

    declining = sorted((c for c in category_changes if c.direction == "declining"), key=lambda c: c.delta)
    for change in declining[:2]:
        points = abs(_js_round(change.delta * 100))
        actions.append(
            {
                "description": f"Address {change.label} decline (-{points} points this period)",
                "impact": (
                    f"{change.label} dropped from {_js_round(change.previous_score * 100)} "
                    f"to {_js_round(change.current_score * 100)}"
                ),
                "category": change.category,
            }
        )

    declining_categories = {c.category for c in declining}
    relevant = sorted(
        (t for t in top_pending_tasks if t.bri_category in declining_categories),
        key=lambda t: t.normalized_value,
        reverse=True,
    )
    for task in relevant[:3]:
        actions.append(
            {
                "task_id": task.id,
                "description": task.title,
                "impact": f"High-value task in {CATEGORY_LABELS.get(task.bri_category, task.bri_category)}",
                "category": task.bri_category,
            }
        )

    if stale_document_count > 0:
        actions.append(
            {
                "description": f"Update {_plural(stale_document_count, 'stale document')} in your evidence room",
                "impact": "Stale documents reduce buyer confidence and evidence score",
            }
        )

    if signals_summary.critical > 0:
        actions.append(
            {
                "description": (
                    f"Review {_plural(signals_summary.critical, 'critical signal')} "
                    "requiring immediate attention"
                ),
                "impact": "Critical signals can significantly impact buyer readiness",
            }
        )

    return actions[:MAX_RECOMMENDED_ACTIONS]


def calculate_task_completion_rate(tasks_completed: int, tasks_pending_at_start: int) -> float:
    total = tasks_completed + tasks_pending_at_start
    if total == 0:
        return 0.0
    return min(tasks_completed / total, 1.0)


def get_drift_signal_severity(bri_score_change: float) -> str | None:
    """Only declines of 5+ points (HIGH) or 10+ points (CRITICAL) signal."""
    if bri_score_change >= 0:
        return None
    drop = abs(bri_score_change)
    if drop >= CRITICAL_BRI_DROP:
        return "CRITICAL"
    if drop >= HIGH_BRI_DROP:
        return "HIGH"
    return None


def calculate_drift(inputs: DriftInputs) -> DriftResult:
    current = inputs.current_snapshot
    previous = inputs.previous_snapshot

    bri_change = (current.bri_score if current else 0.0) - (previous.bri_score if previous else 0.0)
    value_change = (current.current_value if current else 0.0) - (previous.current_value if previous else 0.0)

    category_changes = calculate_category_changes(current, previous)
    completion_rate = calculate_task_completion_rate(inputs.tasks_completed_count, inputs.tasks_pending_at_start)
    score = calculate_weighted_drift_score(
        category_changes, inputs.stale_document_count, inputs.signals_summary, completion_rate
    )

    return DriftResult(
        bri_score_change=bri_change,
        valuation_change=value_change,
        category_changes=category_changes,
        stale_document_count=inputs.stale_document_count,
        signals_summary=inputs.signals_summary,
        task_completion_rate=completion_rate,
        overall_drift_direction=determine_drift_direction(score),
        recommended_actions=generate_recommended_actions(
            category_changes, inputs.top_pending_tasks, inputs.stale_document_count, inputs.signals_summary
        ),
        weighted_drift_score=score,
    )
