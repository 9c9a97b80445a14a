"""Tests for Business Readiness Index scoring."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from exitosx.valuation.bri import (
    DEFAULT_CATEGORY_WEIGHTS,
    ScoringResponse,
    calculate_category_scores,
    calculate_weighted_bri_score,
    category_scores_from_snapshot,
    deduplicate_responses,
    get_bri_weights_for_company,
)

NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)


class TestCategoryScores:
    def test_impact_weighted_average(self):
        responses = [
            ScoringResponse("q1", "FINANCIAL", 10, 1.0),
            ScoringResponse("q2", "FINANCIAL", 30, 0.5),
            ScoringResponse("q3", "MARKET", 5, 0.67),
        ]
        scores = calculate_category_scores(responses)
        assert scores["FINANCIAL"] == pytest.approx((10 + 15) / 40)
        assert scores["MARKET"] == pytest.approx(0.67)
        assert scores["PERSONAL"] == 0.0

    def test_unanswered_questions_are_ignored(self):
        scores = calculate_category_scores([ScoringResponse("q1", "LEGAL_TAX", 10, None)])
        assert scores["LEGAL_TAX"] == 0.0

    def test_weighted_score_with_defaults(self):
        perfect = {c: 1.0 for c in DEFAULT_CATEGORY_WEIGHTS}
        assert calculate_weighted_bri_score(perfect) == pytest.approx(1.0)

    def test_weighted_score_with_custom_weights(self):
        scores = {"FINANCIAL": 0.8, "MARKET": 0.4}
        weights = {"FINANCIAL": 0.5, "MARKET": 0.5}
        assert calculate_weighted_bri_score(scores, weights) == pytest.approx(0.6)


class TestDeduplicate:
    def test_latest_response_wins(self):
        old = ScoringResponse("q1", "FINANCIAL", 10, 0.0, NOW - timedelta(days=3))
        new = ScoringResponse("q1", "FINANCIAL", 10, 1.0, NOW)
        other = ScoringResponse("q2", "MARKET", 10, 0.5, None)

        result = deduplicate_responses([new, old, other])

        assert len(result) == 2
        assert next(r for r in result if r.question_id == "q1").score_value == 1.0


class TestSnapshotScores:
    def test_reads_snapshot_columns(self):
        snapshot = SimpleNamespace(
            bri_financial=0.7,
            bri_transferability=0.6,
            bri_operational=0.5,
            bri_market=0.4,
            bri_legal_tax=0.3,
            bri_personal=0.2,
        )
        scores = category_scores_from_snapshot(snapshot)
        assert scores["FINANCIAL"] == 0.7
        assert scores["PERSONAL"] == 0.2

    def test_defaults_without_snapshot(self):
        assert set(category_scores_from_snapshot(None).values()) == {0.5}


class TestWeightResolution:
    @pytest.mark.asyncio
    async def test_company_weights_take_precedence(self, mock_session):
        weights = await get_bri_weights_for_company(mock_session, {"FINANCIAL": "0.5", "MARKET": 0.5})
        assert weights == {"FINANCIAL": 0.5, "MARKET": 0.5}
        mock_session.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_system_setting(self, mock_session):
        result = MagicMock()
        result.scalar_one_or_none.return_value = SimpleNamespace(value={"FINANCIAL": 1})
        mock_session.execute.return_value = result
        assert await get_bri_weights_for_company(mock_session, None) == {"FINANCIAL": 1.0}

    @pytest.mark.asyncio
    async def test_defaults(self, mock_session):
        result = MagicMock()
        result.scalar_one_or_none.return_value = None
        mock_session.execute.return_value = result
        assert await get_bri_weights_for_company(mock_session, None) == DEFAULT_CATEGORY_WEIGHTS
