"""Error responses from company, financials, cadence and deal routes."""

from __future__ import annotations

import uuid
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from exitosx.api.deps import get_current_user, get_db

COMPANY_ID = uuid.UUID("12345678-1234-5678-1234-567812345678")
DEAL_ID = uuid.UUID("00000000-0000-0000-0000-0000000000d1")
BUYER_ID = uuid.UUID("00000000-0000-0000-0000-0000000000b1")


def _result(one=None, first=None, rows=()):
    result = MagicMock()
    result.scalar_one_or_none.return_value = one
    result.unique.return_value.scalar_one_or_none.return_value = one
    result.scalars.return_value.all.return_value = list(rows)
    result.first.return_value = first
    return result


def _company():
    return SimpleNamespace(id=COMPANY_ID, workspace_id=uuid.uuid4(), name="Acme Plumbing")


def _member(role="ADMIN"):
    return SimpleNamespace(role=role, role_template=None, custom_permissions=None)


def _deal(require_seller_approval=True):
    return SimpleNamespace(id=DEAL_ID, company_id=COMPANY_ID, require_seller_approval=require_seller_approval)


def _buyer(stage="IDENTIFIED", approval_status="PENDING"):
    return SimpleNamespace(
        id=BUYER_ID,
        deal_id=DEAL_ID,
        buyer_company=SimpleNamespace(id=uuid.uuid4(), name="Summit Partners", buyer_type="PE", website=None),
        tier="A_TIER",
        buyer_rationale=None,
        current_stage=stage,
        stage_updated_at=None,
        approval_status=approval_status,
        approval_note=None,
        approved_at=None,
        ioi_amount=None,
        ioi_deadline=None,
        loi_amount=None,
        loi_deadline=None,
        exit_reason=None,
        internal_notes=None,
        tags=[],
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


class TestCompanyAuthorization:
    def test_unknown_company_is_404(self, client, mock_session):
        mock_session.execute.side_effect = [_result(one=None)]

        response = client.get(f"/api/companies/{COMPANY_ID}/project-assessments")

        assert response.status_code == 404
        assert response.json()["detail"] == "Company not found"

    def test_non_member_is_403(self, client, mock_session):
        mock_session.execute.side_effect = [_result(one=_company()), _result(one=None)]

        response = client.get(f"/api/companies/{COMPANY_ID}/project-assessments")

        assert response.status_code == 403
        assert response.json()["detail"] == "You do not have access to this company"

    def test_role_without_permission_is_403(self, client, mock_session):
        mock_session.execute.side_effect = [_result(one=_company()), _result(one=_member("BILLING"))]

        response = client.post(f"/api/companies/{COMPANY_ID}/financial-periods", json={"fiscal_year": 2025})

        assert response.status_code == 403
        assert response.json()["detail"] == "You do not have permission to perform this action"


class TestFinancialPeriodRoutes:
    def test_duplicate_label_is_409(self, client, mock_session):
        mock_session.execute.side_effect = [
            _result(one=_company()),
            _result(one=_member()),
            _result(first=(uuid.uuid4(),)),
        ]

        response = client.post(f"/api/companies/{COMPANY_ID}/financial-periods", json={"fiscal_year": 2025})

        assert response.status_code == 409
        assert response.json()["detail"] == "A financial period labelled 'FY 2025' already exists"
        mock_session.add.assert_not_called()

    def test_quarterly_period_needs_quarter(self, client, mock_session):
        mock_session.execute.side_effect = [_result(one=_company()), _result(one=_member())]

        response = client.post(
            f"/api/companies/{COMPANY_ID}/financial-periods",
            json={"fiscal_year": 2025, "period_type": "QUARTERLY"},
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Quarterly periods require a quarter"


class TestReassessmentPromptRoutes:
    def test_invalid_cadence_is_400(self, client, mock_session):
        mock_session.execute.side_effect = [_result(one=_company()), _result(one=_member())]

        response = client.get(f"/api/companies/{COMPANY_ID}/reassessment-prompts", params={"cadence": "hourly"})

        assert response.status_code == 400
        assert response.json()["detail"] == "cadence must be one of weekly, monthly, manual"


class TestDealParticipantRoutes:
    def test_duplicate_participant_is_409(self, client, mock_session):
        person = SimpleNamespace(id=uuid.uuid4(), first_name="Dana", last_name="Reyes")
        mock_session.execute.side_effect = [
            _result(one=_deal()),
            _result(one=_company()),
            _result(one=_member()),
            _result(one=person),
            _result(first=(uuid.uuid4(),)),
        ]

        response = client.post(
            f"/api/deals/{DEAL_ID}/participants",
            json={"person_id": str(person.id), "side": "SELLER"},
        )

        assert response.status_code == 409
        assert response.json()["detail"] == "Person is already a participant in this deal"
        mock_session.add.assert_not_called()

    def test_participant_needs_person_or_name(self, client, mock_session):
        mock_session.execute.side_effect = [_result(one=_deal()), _result(one=_company()), _result(one=_member())]

        response = client.post(f"/api/deals/{DEAL_ID}/participants", json={"side": "BUYER"})

        assert response.status_code == 400
        assert response.json()["detail"] == "Provide person_id or first_name and last_name"


class TestBuyerStageRoutes:
    def _deal_lookups(self, buyer, deal=None):
        return [_result(one=deal or _deal()), _result(one=_company()), _result(one=_member()), _result(one=buyer)]

    def test_invalid_transition_is_400(self, client, mock_session):
        mock_session.execute.side_effect = self._deal_lookups(_buyer("IDENTIFIED"))

        response = client.post(f"/api/deals/{DEAL_ID}/buyers/{BUYER_ID}/stage", json={"to_stage": "CLOSED"})

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid stage transition from Identified to Closed"
        assert response.json()["code"] == "INVALID_INPUT"

    def test_unknown_stage_is_400(self, client, mock_session):
        mock_session.execute.side_effect = self._deal_lookups(_buyer("IDENTIFIED"))

        response = client.post(f"/api/deals/{DEAL_ID}/buyers/{BUYER_ID}/stage", json={"to_stage": "LUNCH"})

        assert response.status_code == 400
        assert response.json()["detail"] == "Unknown stage: LUNCH"

    def test_teaser_blocked_until_seller_approves(self, client, mock_session):
        buyer = _buyer("APPROVED", approval_status="PENDING")
        mock_session.execute.side_effect = self._deal_lookups(buyer)

        response = client.post(f"/api/deals/{DEAL_ID}/buyers/{BUYER_ID}/stage", json={"to_stage": "TEASER_SENT"})

        assert response.status_code == 400
        assert response.json()["detail"] == "Seller approval is required before contacting this buyer"
        assert buyer.current_stage == "APPROVED"
        mock_session.add.assert_not_called()

    def test_teaser_allowed_after_approval(self, client, mock_session):
        buyer = _buyer("APPROVED", approval_status="PENDING")
        mock_session.execute.side_effect = self._deal_lookups(buyer) + self._deal_lookups(buyer)

        approved = client.post(f"/api/deals/{DEAL_ID}/buyers/{BUYER_ID}/approve", json={"status": "APPROVED"})
        moved = client.post(f"/api/deals/{DEAL_ID}/buyers/{BUYER_ID}/stage", json={"to_stage": "TEASER_SENT"})

        assert approved.status_code == 200
        assert approved.json()["approval_status"] == "APPROVED"
        assert moved.status_code == 200
        assert moved.json()["from_stage"] == "APPROVED"
        assert moved.json()["buyer"]["current_stage"] == "TEASER_SENT"

    def test_teaser_without_approval_requirement(self, client, mock_session):
        buyer = _buyer("APPROVED", approval_status="PENDING")
        mock_session.execute.side_effect = self._deal_lookups(buyer, deal=_deal(require_seller_approval=False))

        response = client.post(f"/api/deals/{DEAL_ID}/buyers/{BUYER_ID}/stage", json={"to_stage": "TEASER_SENT"})

        assert response.status_code == 200
        assert buyer.current_stage == "TEASER_SENT"
