"""Tests for the bundled seed data and the seed loaders."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from exitosx.industries import find_by_sub_sector
from exitosx.models.enums import BRI_CATEGORIES
from exitosx.seed import load_seed_file, seed_bri_questions, seed_industry_multiples, seed_project_modules


def _result(first=None, all_=()):
    result = MagicMock()
    result.scalar_one_or_none.return_value = first
    result.scalars.return_value.all.return_value = list(all_)
    return result


class TestSeedFiles:
    def test_bri_questions_cover_every_category(self):
        questions = load_seed_file("bri_questions.json")["questions"]
        assert {q["bri_category"] for q in questions} == set(BRI_CATEGORIES)
        assert all(len(q["options"]) >= 2 for q in questions)

    def test_option_scores_are_fractions(self):
        for q in load_seed_file("bri_questions.json")["questions"]:
            assert all(0.0 <= o["score_value"] <= 1.0 for o in q["options"])

    def test_multiples_reference_known_sub_sectors(self):
        for row in load_seed_file("industry_multiples.json")["multiples"]:
            assert find_by_sub_sector(row["icb_sub_sector"]) is not None
            assert row["revenue_multiple_low"] <= row["revenue_multiple_high"]
            assert row["ebitda_multiple_low"] <= row["ebitda_multiple_high"]

    def test_project_question_ids_unique(self):
        modules = load_seed_file("project_modules.json")["modules"]
        ids = [m["question"]["question_id"] for m in modules]
        assert len(ids) == len(set(ids))
        assert all(m["strategies"] for m in modules)


class TestSeedLoaders:
    @pytest.mark.asyncio
    async def test_questions_skipped_when_present(self, mock_session):
        mock_session.execute.return_value = _result(first=object())

        assert await seed_bri_questions(mock_session) == 0
        mock_session.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_questions_loaded_with_options(self, mock_session):
        mock_session.execute.return_value = _result()

        count = await seed_bri_questions(mock_session)

        expected = load_seed_file("bri_questions.json")["questions"]
        assert count == len(expected)
        first = mock_session.add.call_args_list[0].args[0]
        assert first.question_text == expected[0]["question_text"]
        assert len(first.options) == len(expected[0]["options"])

    @pytest.mark.asyncio
    async def test_project_modules_skip_existing(self, mock_session):
        modules = load_seed_file("project_modules.json")["modules"]
        mock_session.execute.return_value = _result(all_=[modules[0]["question"]["question_id"]])

        assert await seed_project_modules(mock_session) == len(modules) - 1

    @pytest.mark.asyncio
    async def test_industry_multiples_inherit_taxonomy_path(self, mock_session):
        mock_session.execute.return_value = _result()

        count = await seed_industry_multiples(mock_session)

        assert count == len(load_seed_file("industry_multiples.json")["multiples"])
        added = {m.args[0].icb_sub_sector: m.args[0] for m in mock_session.add.call_args_list}
        assert added["RESTAURANTS"].icb_sector == "RESTAURANTS_BARS"
        assert added["RESTAURANTS"].icb_industry == "CONSUMER_DISCRETIONARY"
