"""Tests for re-assessment prompt rules."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from exitosx.assessments.cadence import (
    CadenceInput,
    build_cadence_inputs,
    compute_next_prompt_date,
    evaluate_batch_cadence,
    evaluate_cadence,
    get_start_of_next_week,
)

# A Wednesday
NOW = datetime(2026, 6, 3, 15, 30, tzinfo=timezone.utc)


def _days_ago(days):
    return NOW - timedelta(days=days)


class TestEvaluateCadence:
    def test_manual_never_prompts(self):
        result = evaluate_cadence(CadenceInput("FINANCIAL", user_cadence_preference="manual"), NOW)
        assert result.matched_rule == "MANUAL_MODE"
        assert not result.should_prompt

    def test_weekly_limit(self):
        result = evaluate_cadence(
            CadenceInput("FINANCIAL", material_change_detected=True, prompts_shown_this_week=1), NOW
        )
        assert result.matched_rule == "WEEKLY_LIMIT"
        assert result.next_prompt_date == datetime(2026, 6, 8, tzinfo=timezone.utc)

    def test_material_change(self):
        result = evaluate_cadence(
            CadenceInput("MARKET", material_change_detected=True, material_change_description="Lost top customer"),
            NOW,
        )
        assert result.matched_rule == "MATERIAL_CHANGE"
        assert result.urgency == "high"
        assert result.reason == "Lost top customer"

    def test_task_completed(self):
        result = evaluate_cadence(
            CadenceInput("OPERATIONAL", last_assessed_at=_days_ago(20), last_task_completed_at=_days_ago(5)), NOW
        )
        assert result.matched_rule == "TASK_COMPLETED"

    def test_recent_task_completion_waits(self):
        result = evaluate_cadence(
            CadenceInput("OPERATIONAL", last_assessed_at=_days_ago(10), last_task_completed_at=_days_ago(5)), NOW
        )
        assert result.matched_rule == "NO_PROMPT"

    def test_stale(self):
        result = evaluate_cadence(CadenceInput("LEGAL_TAX", last_assessed_at=_days_ago(120)), NOW)
        assert result.matched_rule == "STALE_90_DAYS"
        assert result.reason == "It's been 120 days since your last assessment"

    def test_never_assessed(self):
        result = evaluate_cadence(CadenceInput("LEGAL_TAX"), NOW)
        assert result.reason == "This category has not been assessed yet"

    def test_weekly_and_monthly_cadence(self):
        weekly = evaluate_cadence(
            CadenceInput("MARKET", last_assessed_at=_days_ago(8), user_cadence_preference="weekly"), NOW
        )
        monthly = evaluate_cadence(CadenceInput("MARKET", last_assessed_at=_days_ago(31)), NOW)
        assert weekly.matched_rule == "WEEKLY_CADENCE"
        assert monthly.matched_rule == "MONTHLY_CADENCE"

    def test_no_prompt_sets_next_date(self):
        result = evaluate_cadence(CadenceInput("MARKET", last_assessed_at=_days_ago(10)), NOW)
        assert result.next_prompt_date == _days_ago(10) + timedelta(days=30)
        assert result.to_dict()["next_prompt_date"] == result.next_prompt_date.isoformat()


class TestHelpers:
    def test_start_of_next_week_from_monday(self):
        monday = datetime(2026, 6, 1, 9, tzinfo=timezone.utc)
        assert get_start_of_next_week(monday) == datetime(2026, 6, 8, tzinfo=timezone.utc)

    def test_next_prompt_date(self):
        assert compute_next_prompt_date(None, "monthly", NOW) == NOW
        assert compute_next_prompt_date(_days_ago(40), "monthly", NOW) == NOW
        assert compute_next_prompt_date(_days_ago(2), "weekly", NOW) == _days_ago(2) + timedelta(days=7)
        assert compute_next_prompt_date(_days_ago(2), "manual", NOW) is None

    def test_build_inputs(self):
        inputs = build_cadence_inputs(
            ("FINANCIAL", "MARKET"),
            {"FINANCIAL": _days_ago(3)},
            {},
            {"MARKET": "Competitor entered the market"},
            "weekly",
        )
        assert inputs[0].last_assessed_at == _days_ago(3)
        assert not inputs[0].material_change_detected
        assert inputs[1].material_change_description == "Competitor entered the market"
        assert all(i.user_cadence_preference == "weekly" for i in inputs)


class TestBatchCadence:
    def test_only_most_urgent_prompts(self):
        batch = evaluate_batch_cadence(
            [
                CadenceInput("FINANCIAL", last_assessed_at=_days_ago(120)),
                CadenceInput("MARKET", material_change_detected=True),
                CadenceInput("PERSONAL", last_assessed_at=_days_ago(2)),
            ],
            NOW,
        )
        assert batch.prompt_count == 1
        assert batch.top_prompt[0] == "MARKET"
        suppressed = batch.results["FINANCIAL"]
        assert not suppressed.should_prompt
        assert suppressed.reason == "Suppressed: showing prompt for MARKET instead"
        assert batch.results["PERSONAL"].matched_rule == "NO_PROMPT"

    def test_nothing_to_prompt(self):
        batch = evaluate_batch_cadence([CadenceInput("PERSONAL", last_assessed_at=_days_ago(2))], NOW)
        assert batch.prompt_count == 0
        assert batch.top_prompt is None
