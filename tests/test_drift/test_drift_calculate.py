"""Tests for drift between valuation snapshots."""

from __future__ import annotations

import pytest

from exitosx.drift.calculate import (
    DriftInputs,
    PendingTask,
    SignalsSummary,
    SnapshotData,
    calculate_drift,
    calculate_task_completion_rate,
    determine_drift_direction,
    get_direction,
    get_drift_signal_severity,
)


def _snapshot(bri=0.6, value=1_000_000, **categories):
    scores = dict(
        bri_financial=0.6,
        bri_transferability=0.6,
        bri_operational=0.6,
        bri_market=0.6,
        bri_legal_tax=0.6,
        bri_personal=0.6,
    )
    scores.update(categories)
    return SnapshotData(bri_score=bri, current_value=value, **scores)


class TestDirections:
    def test_category_direction(self):
        assert get_direction(0.01) == "improving"
        assert get_direction(-0.01) == "declining"
        assert get_direction(0.004) == "stable"

    def test_overall_direction(self):
        assert determine_drift_direction(0.2) == "IMPROVING"
        assert determine_drift_direction(-0.2) == "DECLINING"
        assert determine_drift_direction(0.05) == "STABLE"


class TestCompletionAndSeverity:
    def test_completion_rate(self):
        assert calculate_task_completion_rate(0, 0) == 0.0
        assert calculate_task_completion_rate(3, 1) == 0.75

    @pytest.mark.parametrize(
        "change,severity",
        [(-0.12, "CRITICAL"), (-0.10, "CRITICAL"), (-0.06, "HIGH"), (-0.03, None), (0.08, None)],
    )
    def test_signal_severity(self, change, severity):
        assert get_drift_signal_severity(change) == severity


class TestCalculateDrift:
    def test_uniform_improvement(self):
        previous = _snapshot()
        current = _snapshot(
            bri=0.7,
            value=1_200_000,
            bri_financial=0.7,
            bri_transferability=0.7,
            bri_operational=0.7,
            bri_market=0.7,
            bri_legal_tax=0.7,
            bri_personal=0.7,
        )
        result = calculate_drift(DriftInputs(current_snapshot=current, previous_snapshot=previous))

        assert result.bri_score_change == pytest.approx(0.1)
        assert result.valuation_change == 200_000
        assert result.weighted_drift_score == pytest.approx(0.6)
        assert result.overall_drift_direction == "IMPROVING"
        assert all(c.direction == "improving" for c in result.category_changes)
        assert result.recommended_actions == []

    def test_decline_with_pressure(self):
        previous = _snapshot(bri_financial=0.8)
        current = _snapshot(bri=0.55, bri_financial=0.6)
        result = calculate_drift(
            DriftInputs(
                current_snapshot=current,
                previous_snapshot=previous,
                stale_document_count=2,
                signals_summary=SignalsSummary(high=0, critical=1, total=1),
                tasks_completed_count=1,
                tasks_pending_at_start=1,
                top_pending_tasks=[
                    PendingTask(id="t1", title="Reconcile bank accounts", bri_category="FINANCIAL", normalized_value=5000),
                    PendingTask(id="t2", title="Document SOPs", bri_category="OPERATIONAL", normalized_value=9000),
                ],
            )
        )

        assert result.weighted_drift_score == pytest.approx(-0.285)
        assert result.overall_drift_direction == "DECLINING"
        descriptions = [a["description"] for a in result.recommended_actions]
        assert descriptions == [
            "Address Financial Health decline (-20 points this period)",
            "Reconcile bank accounts",
            "Update 2 stale documents in your evidence room",
            "Review 1 critical signal requiring immediate attention",
        ]
        assert result.recommended_actions[0]["impact"] == "Financial Health dropped from 80 to 60"
        assert result.recommended_actions[1]["task_id"] == "t1"

    def test_no_previous_snapshot(self):
        result = calculate_drift(DriftInputs(current_snapshot=_snapshot(), previous_snapshot=None))
        assert result.bri_score_change == pytest.approx(0.6)
        assert result.to_dict()["signals_summary"] == {"high": 0, "critical": 0, "total": 0}
