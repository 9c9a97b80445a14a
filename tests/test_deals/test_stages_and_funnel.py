"""Tests for deal stage rules and funnel metrics."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from exitosx.deals.funnel import calculate_funnel_metrics, get_pipeline_summary
from exitosx.deals.stages import (
    STAGE_LABELS,
    VALID_STAGE_TRANSITIONS,
    get_stage_group,
    get_valid_next_stages,
    is_exit_stage,
    is_terminal_stage,
    is_valid_transition,
)

NOW = datetime(2026, 6, 1, 12, tzinfo=timezone.utc)


def _buyer(stage, *, history=(), buyer_type="STRATEGIC", tier="A_TIER", **fields):
    values = dict(
        id=uuid.uuid4(),
        current_stage=stage,
        stage_history=[SimpleNamespace(to_stage=s) for s in history],
        buyer_company=SimpleNamespace(name=f"{stage} Co", buyer_type=buyer_type),
        tier=tier,
        ioi_amount=None,
        loi_amount=None,
        created_at=NOW - timedelta(days=60),
        nda_executed_at=None,
        ioi_received_at=None,
        loi_received_at=None,
        closed_at=None,
        ioi_deadline=None,
        loi_deadline=None,
        stage_updated_at=NOW - timedelta(days=1),
    )
    values.update(fields)
    return SimpleNamespace(**values)


class TestStages:
    def test_transition_table_covers_every_stage(self):
        assert set(VALID_STAGE_TRANSITIONS) == set(STAGE_LABELS)
        for targets in VALID_STAGE_TRANSITIONS.values():
            assert set(targets) <= set(STAGE_LABELS)

    def test_teaser_requires_seller_approval(self):
        assert not is_valid_transition("IDENTIFIED", "TEASER_SENT")
        assert not is_valid_transition("SELLER_REVIEWING", "TEASER_SENT")
        assert is_valid_transition("APPROVED", "TEASER_SENT")

    def test_terminal_stages_have_no_exits(self):
        for stage in ("CLOSED", "WITHDRAWN", "TERMINATED", "DECLINED", "PASSED"):
            assert is_terminal_stage(stage)
            assert get_valid_next_stages(stage) == ()

    def test_exit_stages(self):
        assert is_exit_stage("WITHDRAWN")
        assert not is_exit_stage("CLOSED")

    @pytest.mark.parametrize(
        "stage,group",
        [("IDENTIFIED", "IDENTIFICATION"), ("NDA_EXECUTED", "NDA"), ("LOI_BACKUP", "LOI"), ("BOGUS", "UNKNOWN")],
    )
    def test_stage_group(self, stage, group):
        assert get_stage_group(stage) == group


class TestFunnelMetrics:
    def test_counts_and_conversions(self):
        buyers = [
            _buyer("TEASER_SENT"),
            _buyer("PASSED", history=["TEASER_SENT"], buyer_type="FINANCIAL"),
            _buyer("CIM_ACCESS", history=["TEASER_SENT", "INTERESTED", "NDA_SENT", "NDA_EXECUTED"]),
            _buyer(
                "CLOSED",
                history=["TEASER_SENT", "INTERESTED", "NDA_EXECUTED", "IOI_RECEIVED", "LOI_RECEIVED"],
                ioi_amount=4_000_000,
                loi_amount=4_200_000,
                nda_executed_at=NOW - timedelta(days=50),
                closed_at=NOW,
            ),
        ]
        metrics = calculate_funnel_metrics(buyers)

        assert metrics["total_buyers"] == 4
        assert metrics["active_buyers"] == 2
        assert metrics["terminated_buyers"] == 1
        assert metrics["closed_deals"] == 1
        assert metrics["by_type"]["FINANCIAL"] == 1
        assert metrics["by_stage_group"]["MARKETING"] == 2
        rates = metrics["conversion_rates"]
        assert rates["teaser_to_interested"] == pytest.approx(50.0)
        assert rates["interested_to_nda"] == pytest.approx(100.0)
        assert rates["loi_to_close"] == pytest.approx(100.0)
        assert rates["overall_close"] == pytest.approx(25.0)
        assert metrics["timeline"]["avg_days_to_nda"] == 10
        assert metrics["timeline"]["avg_days_to_close"] == 60
        assert metrics["ioi_loi_values"]["highest_loi"] == 4_200_000

    def test_empty(self):
        metrics = calculate_funnel_metrics([])
        assert metrics["total_buyers"] == 0
        assert metrics["conversion_rates"]["overall_close"] == 0.0
        assert metrics["timeline"]["avg_days_to_ioi"] is None


class TestPipelineSummary:
    def test_deadlines_and_stale_buyers(self):
        buyers = [
            _buyer("IOI_REQUESTED", ioi_deadline=NOW + timedelta(days=3)),
            _buyer("LOI_REQUESTED", loi_deadline=NOW + timedelta(days=30)),
            _buyer("NDA_SENT", stage_updated_at=NOW - timedelta(days=20)),
            _buyer("WITHDRAWN", stage_updated_at=NOW - timedelta(days=40)),
        ]
        summary = get_pipeline_summary(buyers, now=NOW)

        assert [d["type"] for d in summary["upcoming_deadlines"]] == ["IOI"]
        assert len(summary["stale_buyers"]) == 1
        assert summary["stale_buyers"][0]["days_since_update"] == 20
        assert summary["pipeline"]["nda"] == 1
        assert "exit" not in summary["pipeline"]
        assert summary["total_active"] == 3
