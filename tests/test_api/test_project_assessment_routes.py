"""Project assessment skip and completion routes."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from exitosx.api.deps import get_current_user, get_db
from exitosx.models.enums import BRI_CATEGORIES
from exitosx.valuation.bri import DEFAULT_CATEGORY_WEIGHTS

COMPANY_ID = uuid.UUID("12345678-1234-5678-1234-567812345678")
ASSESSMENT_ID = uuid.UUID("00000000-0000-0000-0000-0000000000a1")
NOW = datetime(2026, 10, 1, tzinfo=timezone.utc)

ACTION_PLAN = {"tasks_created": 0, "total_estimated_hours": 0, "estimated_value_impact": 0.0, "top_tasks": []}


def _result(one=None, rows=()):
    result = MagicMock()
    result.scalar_one_or_none.return_value = one
    result.scalars.return_value.all.return_value = list(rows)
    return result


def _company():
    return SimpleNamespace(
        id=COMPANY_ID,
        workspace_id=uuid.uuid4(),
        name="Acme Plumbing",
        bri_weights=dict(DEFAULT_CATEGORY_WEIGHTS),
    )


def _member():
    return SimpleNamespace(role="MEMBER", role_template=None, custom_permissions=None)


def _selected_question(category="FINANCIAL", skipped=False):
    qid = uuid.uuid4()
    question = SimpleNamespace(
        id=qid,
        question_id=f"{category.lower()}_{qid.hex[:4]}",
        question_text="How are month-end closes handled?",
        help_text=None,
        bri_category=category,
        sub_category=None,
        options=[],
    )
    return SimpleNamespace(
        question_id=qid,
        question=question,
        display_order=1,
        priority_score=0.8,
        selection_reason="Lowest scoring category",
        skipped=skipped,
    )


def _answer(selected, score):
    return SimpleNamespace(
        question_id=selected.question_id,
        selected_option_id=uuid.uuid4(),
        actual_score=score,
        confidence_level="CONFIDENT",
        notes=None,
    )


def _assessment(questions, responses, bri_before=0.5):
    return SimpleNamespace(
        id=ASSESSMENT_ID,
        company_id=COMPANY_ID,
        assessment_number=2,
        title="Project Assessment #2",
        primary_category="FINANCIAL",
        status="IN_PROGRESS",
        started_at=NOW,
        completed_at=None,
        bri_score_before=bri_before,
        bri_score_after=None,
        score_impact=None,
        action_plan_generated=False,
        questions=questions,
        responses=responses,
    )


def _bri_row(category, score):
    return SimpleNamespace(
        question_id=uuid.uuid4(),
        question=SimpleNamespace(bri_category=category, max_impact_points=10),
        effective_option=None,
        selected_option=SimpleNamespace(score_value=score),
        updated_at=NOW,
    )


def _previous_snapshot():
    return SimpleNamespace(
        bri_score=0.5,
        adjusted_ebitda=1_000_000.0,
        industry_multiple_low=3.0,
        industry_multiple_high=6.0,
        core_score=0.6,
        dcf_enterprise_value=None,
        dcf_equity_value=None,
        dcf_wacc=None,
        dcf_implied_multiple=None,
        bri_financial=0.5,
        bri_transferability=0.5,
        bri_operational=0.5,
        bri_market=0.5,
        bri_legal_tax=0.5,
        bri_personal=0.5,
    )


@pytest.fixture
def client(app_client, mock_session, sample_user):
    from exitosx.main import app

    async def fake_db():
        yield mock_session

    async def fake_user():
        return sample_user

    app.dependency_overrides[get_db] = fake_db
    app.dependency_overrides[get_current_user] = fake_user
    return app_client


class TestCompleteProjectAssessment:
    def test_unanswered_questions_block_completion(self, client, mock_session):
        answered, skipped, open_question = (
            _selected_question(),
            _selected_question(skipped=True),
            _selected_question("MARKET"),
        )
        assessment = _assessment([answered, skipped, open_question], [_answer(answered, 0.5)])
        mock_session.execute.side_effect = [
            _result(one=assessment),
            _result(one=_company()),
            _result(one=_member()),
        ]

        response = client.post(f"/api/project-assessments/{ASSESSMENT_ID}/complete")

        assert response.status_code == 400
        assert response.json()["detail"] == {
            "error": "1 question(s) not yet answered",
            "answered": 1,
            "skipped": 1,
            "total": 3,
        }
        assert assessment.status == "IN_PROGRESS"

    def test_already_completed(self, client, mock_session):
        assessment = _assessment([], [])
        assessment.status = "COMPLETED"
        mock_session.execute.side_effect = [
            _result(one=assessment),
            _result(one=_company()),
            _result(one=_member()),
        ]

        response = client.post(f"/api/project-assessments/{ASSESSMENT_ID}/complete")

        assert response.status_code == 400
        assert response.json()["detail"] == "Assessment is already completed"

    def test_completion_refines_bri_with_answers(self, client, mock_session):
        financial = _selected_question("FINANCIAL")
        skipped = _selected_question("MARKET", skipped=True)
        assessment = _assessment([financial, skipped], [_answer(financial, 1.0)])
        project_row = SimpleNamespace(
            question_id=financial.question_id,
            question=SimpleNamespace(bri_category="FINANCIAL"),
            selected_option=SimpleNamespace(score_value=0.2),
            effective_option=SimpleNamespace(score_value=1.0),
            updated_at=NOW,
        )
        mock_session.execute.side_effect = [
            _result(one=assessment),
            _result(one=_company()),
            _result(one=_member()),
            # BRI refinement
            _result(one=_company()),
            _result(rows=[_bri_row(c, 0.5) for c in BRI_CATEGORIES]),
            _result(rows=[project_row]),
            _result(one=_previous_snapshot()),
        ]

        with patch(
            "exitosx.api.routes.project_assessments.generate_action_plan",
            new_callable=AsyncMock,
            return_value=ACTION_PLAN,
        ):
            response = client.post(f"/api/project-assessments/{ASSESSMENT_ID}/complete")

        assert response.status_code == 200
        body = response.json()
        refined_financial = (0.5 * 10 + 1.0 * 5) / 15
        expected_bri = 0.5 + DEFAULT_CATEGORY_WEIGHTS["FINANCIAL"] * (refined_financial - 0.5)

        assert assessment.status == "COMPLETED"
        assert assessment.bri_score_after == pytest.approx(expected_bri)
        assert assessment.bri_score_after != assessment.bri_score_before
        assert assessment.score_impact == pytest.approx(expected_bri - 0.5)

        refinement = body["bri_refinement"]
        assert refinement["before"] == 0.5
        assert refinement["after"] == pytest.approx(expected_bri)
        assert refinement["category_scores"]["FINANCIAL"] == pytest.approx(refined_financial)
        assert refinement["category_scores"]["MARKET"] == pytest.approx(0.5)
        assert refinement["previous_category_scores"]["FINANCIAL"] == 0.5

        summary = body["score_impact_summary"]
        assert summary["overall_change"] == "Your BRI score improved from 50% to 54% (+4%)"
        assert [c["category"] for c in summary["category_changes"]] == ["FINANCIAL"]
        assert summary["category_changes"][0]["message"] == "Financial Health: Better than expected (+17%)"
        assert summary["key_findings"][0] == "Your financial health practices are strong, scoring 100% in this assessment."

        snapshot = mock_session.add.call_args.args[0]
        assert snapshot.adjusted_ebitda == 1_000_000.0
        assert snapshot.core_score == 0.6
        assert snapshot.bri_score == pytest.approx(expected_bri)
        assert body["snapshot_id"] == str(snapshot.id)


class TestSkipProjectQuestion:
    def test_skip_marks_question(self, client, mock_session):
        selected = _selected_question()
        assessment = _assessment([selected], [])
        mock_session.execute.side_effect = [
            _result(one=assessment),
            _result(one=_company()),
            _result(one=_member()),
        ]

        response = client.post(f"/api/project-assessments/{ASSESSMENT_ID}/questions/{selected.question_id}/skip")

        assert response.status_code == 200
        assert selected.skipped is True
        assert response.json()["skipped"] == 1
        assert response.json()["questions"][0]["skipped"] is True

    def test_answered_question_cannot_be_skipped(self, client, mock_session):
        selected = _selected_question()
        assessment = _assessment([selected], [_answer(selected, 0.5)])
        mock_session.execute.side_effect = [
            _result(one=assessment),
            _result(one=_company()),
            _result(one=_member()),
        ]

        response = client.post(f"/api/project-assessments/{ASSESSMENT_ID}/questions/{selected.question_id}/skip")

        assert response.status_code == 400
        assert response.json()["detail"] == "Question has already been answered"
        assert selected.skipped is False

    def test_unknown_question(self, client, mock_session):
        assessment = _assessment([_selected_question()], [])
        mock_session.execute.side_effect = [
            _result(one=assessment),
            _result(one=_company()),
            _result(one=_member()),
        ]

        response = client.post(f"/api/project-assessments/{ASSESSMENT_ID}/questions/{uuid.uuid4()}/skip")

        assert response.status_code == 400
        assert response.json()["detail"] == "Question is not part of this assessment"
