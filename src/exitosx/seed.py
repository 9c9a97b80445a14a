"""Seed the database with BRI questions, project question modules and industry multiples.

Usage: python -m exitosx.seed
"""

import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import select

from exitosx.db.session import init_db, session_scope
from exitosx.industries import find_by_sub_sector
from exitosx.models.db import (
    IndustryMultiple,
    ProjectQuestion,
    ProjectQuestionOption,
    ProjectStrategy,
    ProjectTaskTemplate,
    Question,
    QuestionOption,
)

DATA_DIR = Path(__file__).parent / "data"


def load_seed_file(name: str) -> dict:
    with open(DATA_DIR / name, encoding="utf-8") as f:
        return json.load(f)


async def seed_bri_questions(session) -> int:
    """Load the initial assessment questions unless any exist."""
    result = await session.execute(select(Question).limit(1))
    if result.scalar_one_or_none():
        print("  BRI questions already seeded, skipping.")
        return 0

    count = 0
    for q in load_seed_file("bri_questions.json")["questions"]:
        question = Question(
            bri_category=q["bri_category"],
            question_text=q["question_text"],
            help_text=q.get("help_text"),
            display_order=q["display_order"],
            max_impact_points=q["max_impact_points"],
        )
        question.options = [
            QuestionOption(
                option_text=o["option_text"],
                score_value=o["score_value"],
                display_order=o["display_order"],
            )
            for o in q["options"]
        ]
        session.add(question)
        count += 1

    await session.flush()
    return count


async def seed_project_modules(session) -> int:
    """Load project questions with their options, strategies and task templates."""
    existing = set((await session.execute(select(ProjectQuestion.question_id))).scalars().all())

    count = 0
    for module in load_seed_file("project_modules.json")["modules"]:
        q = module["question"]
        if q["question_id"] in existing:
            continue

        question = ProjectQuestion(
            module_id=module["module_id"],
            question_id=q["question_id"],
            question_text=q["question_text"],
            bri_category=q["bri_category"],
            sub_category=q["sub_category"],
            question_impact=q["question_impact"],
            buyer_sensitivity=q["buyer_sensitivity"],
            help_text=q.get("help_text"),
            risk_definition=q.get("risk_definition"),
        )
        question.options = [
            ProjectQuestionOption(
                option_id=o["option_id"],
                option_text=o["option_text"],
                score_value=o["score_value"],
                buyer_interpretation=o.get("buyer_interpretation"),
                display_order=i,
            )
            for i, o in enumerate(q["options"], start=1)
        ]
        for s in module["strategies"]:
            strategy = ProjectStrategy(
                strategy_id=s["strategy_id"],
                strategy_name=s["strategy_name"],
                strategy_description=s.get("strategy_description"),
                strategy_type=s["strategy_type"],
                upgrade_from_score=s["upgrade_from_score"],
                max_score_achievable=s["max_score_achievable"],
                estimated_effort=s["estimated_effort"],
                estimated_timeline=s.get("estimated_timeline"),
            )
            strategy.task_templates = [ProjectTaskTemplate(**t) for t in s["tasks"]]
            question.strategies.append(strategy)

        session.add(question)
        count += 1

    await session.flush()
    return count


async def seed_industry_multiples(session) -> int:
    """Insert benchmark multiples for sub-sectors that have none yet."""
    data = load_seed_file("industry_multiples.json")
    existing = set((await session.execute(select(IndustryMultiple.icb_sub_sector))).scalars().all())
    now = datetime.now(timezone.utc)

    count = 0
    for row in data["multiples"]:
        option = find_by_sub_sector(row["icb_sub_sector"])
        if option is None:
            print(f"  Unknown sub-sector {row['icb_sub_sector']}, skipping.")
            continue
        if option.icb_sub_sector in existing:
            continue
        session.add(
            IndustryMultiple(
                icb_industry=option.icb_industry,
                icb_super_sector=option.icb_super_sector,
                icb_sector=option.icb_sector,
                icb_sub_sector=option.icb_sub_sector,
                revenue_multiple_low=row["revenue_multiple_low"],
                revenue_multiple_high=row["revenue_multiple_high"],
                ebitda_multiple_low=row["ebitda_multiple_low"],
                ebitda_multiple_high=row["ebitda_multiple_high"],
                effective_date=now,
                source=data.get("source"),
            )
        )
        count += 1

    await session.flush()
    return count


async def main():
    """Run all seed operations."""
    print("Initializing database connection...")
    await init_db()

    async with session_scope() as session:
        print("Seeding BRI questions...")
        print(f"  Loaded {await seed_bri_questions(session)} questions.")

        print("Seeding project question modules...")
        print(f"  Loaded {await seed_project_modules(session)} modules.")

        print("Seeding industry multiples...")
        print(f"  Loaded {await seed_industry_multiples(session)} multiples.")

    print("Done! Seed data loaded successfully.")


if __name__ == "__main__":
    asyncio.run(main())
