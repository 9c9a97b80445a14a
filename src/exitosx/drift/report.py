"""Drift report generation: fetch period data, calculate, persist, signal."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from exitosx.drift.calculate import (
    DriftInputs,
    DriftResult,
    PendingTask,
    SignalsSummary,
    SnapshotData,
    calculate_drift,
    get_drift_signal_severity,
)
from exitosx.signals.service import create_signal

logger = logging.getLogger(__name__)

_DIRECTION_ARROWS = {"improving": "up", "declining": "down", "stable": "flat"}


@dataclass
class GeneratedDriftReport:
    id: str | None
    company_id: str
    drift: DriftResult
    bri_score_start: float
    bri_score_end: float
    value_start: float
    value_end: float
    summary: str
    signal_severity: str | None
    signal_created: bool

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "drift": self.drift.to_dict(),
            "bri_score_start": self.bri_score_start,
            "bri_score_end": self.bri_score_end,
            "value_start": self.value_start,
            "value_end": self.value_end,
            "summary": self.summary,
            "signal_severity": self.signal_severity,
            "signal_created": self.signal_created,
        }


def build_narrative_summary(
    drift: DriftResult,
    period_start: datetime,
    tasks_completed_count: int,
    total_signals: int,
) -> str:
    points = abs(math.floor(drift.bri_score_change * 100 + 0.5))
    value = f"${abs(drift.valuation_change):,.0f}"
    bri_verb = "improved" if drift.bri_score_change >= 0 else "declined"
    value_verb = "grew" if drift.valuation_change >= 0 else "decreased"

    parts = [
        f"In {period_start.strftime('%B %Y')}, your Buyer Readiness Score {bri_verb} by {points} points"
        f" and your estimated valuation {value_verb} by {value}."
    ]
    if tasks_completed_count > 0:
        parts.append(f"You completed {tasks_completed_count} task{'s' if tasks_completed_count != 1 else ''}.")

    improving = [c.label for c in drift.category_changes if c.direction == "improving"]
    declining = [c.label for c in drift.category_changes if c.direction == "declining"]
    if improving:
        parts.append(f"Strongest improvements in {', '.join(improving)}.")
    if declining:
        parts.append(f"Areas needing attention: {', '.join(declining)}.")
    if total_signals > 0:
        parts.append(f"{total_signals} new signal{'s' if total_signals != 1 else ''} detected.")
    return " ".join(parts)


async def _snapshot_near(session: AsyncSession, company_id, when: datetime):
    from exitosx.models.db import ValuationSnapshot

    result = await session.execute(
        select(ValuationSnapshot)
        .where(ValuationSnapshot.company_id == company_id, ValuationSnapshot.created_at <= when)
        .order_by(ValuationSnapshot.created_at.desc())
        .limit(1)
    )
    snapshot = result.scalar_one_or_none()
    return SnapshotData.from_snapshot(snapshot) if snapshot is not None else None


async def generate_drift_report(
    session: AsyncSession,
    company_id,
    period_start: datetime,
    period_end: datetime,
    dry_run: bool = False,
) -> GeneratedDriftReport:
    from exitosx.models.db import DriftReport, Signal, Task

    previous = await _snapshot_near(session, company_id, period_start)
    current = await _snapshot_near(session, company_id, period_end)

    in_period = (Signal.company_id == company_id, Signal.created_at >= period_start, Signal.created_at <= period_end)
    severity_rows = (
        await session.execute(select(Signal.severity, func.count()).where(*in_period).group_by(Signal.severity))
    ).all()
    counts = {severity: n for severity, n in severity_rows}
    signals_summary = SignalsSummary(
        high=counts.get("HIGH", 0),
        critical=counts.get("CRITICAL", 0),
        total=sum(counts.values()),
    )

    tasks_completed = (
        await session.execute(
            select(func.count())
            .select_from(Task)
            .where(
                Task.company_id == company_id,
                Task.status == "COMPLETED",
                Task.completed_at >= period_start,
                Task.completed_at <= period_end,
            )
        )
    ).scalar_one()
    tasks_pending_at_start = (
        await session.execute(
            select(func.count())
            .select_from(Task)
            .where(
                Task.company_id == company_id,
                Task.created_at <= period_start,
                or_(
                    Task.status.in_(("PENDING", "IN_PROGRESS", "BLOCKED")),
                    (Task.status == "COMPLETED") & (Task.completed_at >= period_start),
                ),
            )
        )
    ).scalar_one()
    tasks_added = (
        await session.execute(
            select(func.count())
            .select_from(Task)
            .where(Task.company_id == company_id, Task.created_at >= period_start, Task.created_at <= period_end)
        )
    ).scalar_one()

    pending_rows = (
        await session.execute(
            select(Task)
            .where(Task.company_id == company_id, Task.status.in_(("PENDING", "IN_PROGRESS")))
            .order_by(Task.normalized_value.desc())
            .limit(10)
        )
    ).scalars().all()
    top_signals = (
        await session.execute(select(Signal).where(*in_period).order_by(Signal.created_at.desc()).limit(5))
    ).scalars().all()

    drift = calculate_drift(
        DriftInputs(
            current_snapshot=current,
            previous_snapshot=previous,
            signals_summary=signals_summary,
            tasks_completed_count=tasks_completed,
            tasks_pending_at_start=tasks_pending_at_start,
            top_pending_tasks=[
                PendingTask(
                    id=str(t.id),
                    title=t.title,
                    bri_category=t.bri_category,
                    normalized_value=float(t.normalized_value or 0),
                )
                for t in pending_rows
            ],
        )
    )
    summary = build_narrative_summary(drift, period_start, tasks_completed, signals_summary.total)

    bri_start = previous.bri_score if previous else 0.0
    bri_end = current.bri_score if current else 0.0
    value_start = previous.current_value if previous else 0.0
    value_end = current.current_value if current else 0.0

    report_id = None
    if not dry_run:
        report = DriftReport(
            company_id=company_id,
            period_start=period_start,
            period_end=period_end,
            bri_score_start=bri_start,
            bri_score_end=bri_end,
            value_start=value_start,
            value_end=value_end,
            drift_score=drift.weighted_drift_score,
            direction=drift.overall_drift_direction,
            category_changes=[
                {
                    "category": c.category,
                    "label": c.label,
                    "score_before": math.floor(c.previous_score * 100 + 0.5),
                    "score_after": math.floor(c.current_score * 100 + 0.5),
                    "direction": _DIRECTION_ARROWS[c.direction],
                }
                for c in drift.category_changes
            ],
            recommended_actions=drift.recommended_actions,
            signals_count=signals_summary.total,
            tasks_completed_count=tasks_completed,
            tasks_added_count=tasks_added,
            top_signals=[
                {
                    "title": s.title,
                    "severity": s.severity,
                    "category": s.category,
                    "created_at": s.created_at.isoformat() if s.created_at else None,
                }
                for s in top_signals
            ],
            summary=summary,
        )
        session.add(report)
        await session.flush()
        report_id = str(report.id)

    severity = get_drift_signal_severity(drift.bri_score_change)
    signal_created = False
    if severity and not dry_run:
        drop_points = abs(math.floor(drift.bri_score_change * 100 + 0.5))
        declining = [c.label for c in drift.category_changes if c.direction == "declining"]
        if declining:
            description = f"BRI dropped {drop_points} points. Declining areas: {', '.join(declining)}."
        else:
            description = f"BRI dropped {drop_points} points over the past period."

        await create_signal(
            session,
            company_id,
            channel="TIME_DECAY",
            event_type="monthly_drift_decline",
            severity=severity,
            confidence="CONFIDENT",
            title=f"BRI declined {drop_points} points",
            description=description,
            raw_data={
                "bri_score_start": bri_start,
                "bri_score_end": bri_end,
                "bri_score_change": drift.bri_score_change,
                "valuation_change": drift.valuation_change,
                "drift_direction": drift.overall_drift_direction,
                "period_start": period_start.isoformat(),
                "period_end": period_end.isoformat(),
                "report_id": report_id,
            },
            estimated_value_impact=abs(drift.valuation_change) if drift.valuation_change < 0 else None,
            estimated_bri_impact=drift.bri_score_change,
        )
        signal_created = True

    logger.info(
        "Drift report for company %s: %s (score=%.3f, signal=%s)",
        company_id,
        drift.overall_drift_direction,
        drift.weighted_drift_score,
        severity,
    )
    return GeneratedDriftReport(
        id=report_id,
        company_id=str(company_id),
        drift=drift,
        bri_score_start=bri_start,
        bri_score_end=bri_end,
        value_start=value_start,
        value_end=value_end,
        summary=summary,
        signal_severity=severity,
        signal_created=signal_created,
    )
