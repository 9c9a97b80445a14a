"""Business classification: free-text description to ICB sub-sector.

Tries the LLM first, validating its codes against the taxonomy, then falls
back to keyword rules, then to Professional Services.
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from exitosx.agents.base import BaseAgent
from exitosx.errors import ValidationError
from exitosx.industries import IndustryOption, find_by_sub_sector, get_flattened_industry_options

logger = logging.getLogger(__name__)

MIN_DESCRIPTION_LENGTH = 10
MAX_DESCRIPTION_LENGTH = 1000
DEFAULT_SUB_SECTOR = "PROFESSIONAL_SERVICES"
GENERATION_TYPE = "business_classification"

DEFAULT_MULTIPLE_RANGE = {
    "ebitda": {"low": 3.0, "mid": 4.5, "high": 6.0},
    "revenue": {"low": 0.5, "mid": 1.0, "high": 1.5},
}


class UnknownSubSectorError(Exception):
    """The LLM answered with a code outside the taxonomy."""


KEYWORD_EXPLANATION = "Classification based on keyword matching. You can review and adjust if needed."
DEFAULT_EXPLANATION = (
    "We could not determine a specific industry from your description. Professional Services "
    "has been selected as a default. Please review and adjust if needed."
)

# (keywords, sub-sector); more specific rules first
KEYWORD_RULES: list[tuple[tuple[str, ...], str]] = [
    # Technology
    (("saas", "software as a service", "cloud software", "subscription software"), "ENTERPRISE_SOFTWARE"),
    (("enterprise software", "business software", "erp", "crm software"), "ENTERPRISE_SOFTWARE"),
    (("mobile app", "consumer app", "social media", "gaming app"), "CONSUMER_SOFTWARE"),
    (
        ("it consulting", "it services", "technology consulting", "managed service provider", "msp"),
        "IT_CONSULTING",
    ),
    (("data processing", "data center", "outsourced services", "bpo"), "DATA_PROCESSING"),
    # Healthcare
    (("dental", "dentist", "orthodont", "mouthguard", "bruxing", "oral health"), "MEDICAL_SUPPLIES_SUB"),
    (
        ("medical device", "medical equipment", "surgical equipment", "diagnostic equipment"),
        "MEDICAL_EQUIPMENT_SUB",
    ),
    (("medical supplies", "medical disposable", "lab supplies"), "MEDICAL_SUPPLIES_SUB"),
    (
        ("hospital", "clinic", "medical practice", "physician practice", "urgent care", "healthcare facility"),
        "HEALTHCARE_FACILITIES",
    ),
    (("healthcare management", "healthcare consulting", "health plan"), "HEALTHCARE_MANAGEMENT"),
    (("pharmaceutical", "pharma", "drug manufacture"), "PHARMA_SUB"),
    (("biotech", "biotechnology", "gene therapy", "biologic"), "BIOTECH_SUB"),
    # Consumer discretionary
    (("restaurant", "dining", "food service", "cafe", "bistro", "catering"), "RESTAURANTS"),
    (("hotel", "resort", "motel", "lodging", "hospitality", "inn"), "HOTELS_MOTELS"),
    (("advertising", "ad agency", "media buying"), "ADVERTISING"),
    (("marketing", "pr agency", "public relations", "digital marketing", "seo agency"), "MARKETING_PR"),
    (
        ("auto repair", "auto service", "car repair", "mechanic", "body shop", "collision repair"),
        "AUTO_SERVICE",
    ),
    (("auto parts", "car parts", "automotive parts"), "AUTO_PARTS_SUB"),
    (("e-commerce", "ecommerce", "online store", "online retail"), "SPECIALTY_STORES"),
    (("retail store", "shop", "specialty retail", "brick and mortar"), "SPECIALTY_STORES"),
    (("home improvement", "hardware store", "home depot"), "HOME_IMPROVEMENT"),
    # Industrials
    (
        ("construction", "contractor", "general contractor", "building", "renovation"),
        "CONSTRUCTION_SERVICES",
    ),
    (("manufacture", "manufacturing", "factory", "production line", "fabricat"), "INDUSTRIAL_MACHINERY"),
    (
        ("staffing", "recruiting", "employment agency", "hr services", "temp agency", "headhunter"),
        "STAFFING",
    ),
    (
        ("professional services", "consulting firm", "business consulting", "management consulting"),
        "PROFESSIONAL_SERVICES",
    ),
    (("accounting", "bookkeeping", "tax preparation", "cpa firm", "audit firm"), "PROFESSIONAL_SERVICES"),
    (("security services", "alarm system", "security guard", "surveillance"), "SECURITY_ALARM"),
    (
        (
            "janitorial",
            "cleaning service",
            "facility management",
            "waste management",
            "environmental service",
        ),
        "ENVIRONMENTAL_SERVICES",
    ),
    (("printing", "print shop", "commercial printing", "signage"), "COMMERCIAL_PRINTING"),
    (("trucking", "freight", "shipping", "logistics", "delivery service", "courier"), "TRUCKING"),
    # Financials and real estate
    (("insurance agency", "insurance broker", "insurance agent"), "PROPERTY_CASUALTY"),
    (("real estate", "realtor", "real estate broker", "property broker"), "REAL_ESTATE_BROKERAGE"),
    (("property management", "property manager", "landlord services"), "PROPERTY_MANAGEMENT"),
    (
        ("financial advisor", "wealth management", "investment advisor", "asset management"),
        "ASSET_MANAGEMENT",
    ),
    # Food and beverage
    (("brewery", "brewer", "craft beer", "microbrewery"), "BREWERS"),
    (("distillery", "winery", "vineyard", "wine maker"), "DISTILLERS_VINTNERS"),
    (("food production", "food manufacturer", "packaged food", "snack"), "PACKAGED_FOODS"),
    # Energy
    (("solar", "wind energy", "renewable energy", "clean energy"), "RENEWABLE_ENERGY"),
    (("oil", "gas", "petroleum", "drilling"), "OIL_GAS_EXPLORATION"),
]


@dataclass
class IndustryClassification:
    icb_industry: str
    icb_super_sector: str
    icb_sector: str
    icb_sub_sector: str
    name: str
    confidence: float

    @classmethod
    def from_option(cls, option: IndustryOption, confidence: float) -> IndustryClassification:
        return cls(
            icb_industry=option.icb_industry,
            icb_super_sector=option.icb_super_sector,
            icb_sector=option.icb_sector,
            icb_sub_sector=option.icb_sub_sector,
            name=option.sub_sector_label,
            confidence=confidence,
        )


@dataclass
class ClassificationResult:
    primary_industry: IndustryClassification
    secondary_industry: IndustryClassification | None
    explanation: str
    suggested_multiple_range: dict
    source: str  # ai | keyword | default

    def to_dict(self) -> dict:
        return asdict(self)


def score_keyword_matches(description: str) -> list[tuple[str, int]]:
    """``(sub_sector, score)`` pairs, best first, one per sub-sector.

    A rule scores the summed length of its keywords found in the text.
    """
    text = description.lower()
    results = []
    for keywords, sub_sector in KEYWORD_RULES:
        score = sum(len(k) for k in keywords if k in text)
        if score > 0:
            results.append((sub_sector, score))

    results.sort(key=lambda r: r[1], reverse=True)
    seen: set[str] = set()
    deduped = []
    for sub_sector, score in results:
        if sub_sector not in seen:
            seen.add(sub_sector)
            deduped.append((sub_sector, score))
    return deduped


def classify_by_keywords(description: str) -> tuple[IndustryOption | None, IndustryOption | None]:
    matches = score_keyword_matches(description)
    primary = find_by_sub_sector(matches[0][0]) if matches else None
    secondary = find_by_sub_sector(matches[1][0]) if len(matches) > 1 else None
    return primary, secondary


def clamp_confidence(value: Any) -> float:
    if not isinstance(value, (int, float)) or isinstance(value, bool) or math.isnan(value):
        return 0.5
    return max(0.0, min(1.0, float(value)))


def build_industry_reference() -> dict[str, list[dict[str, str]]]:
    """Sub-sectors grouped under their industry label, for the prompt."""
    grouped: dict[str, list[dict[str, str]]] = {}
    for option in get_flattened_industry_options():
        grouped.setdefault(option.industry_label, []).append(
            {"label": option.sub_sector_label, "code": option.icb_sub_sector}
        )
    return grouped


async def lookup_multiple_range(session: AsyncSession, icb_sub_sector: str) -> dict:
    """Latest multiples for the sub-sector with 2 dp midpoints, else defaults."""
    from exitosx.models.db import IndustryMultiple

    result = await session.execute(
        select(IndustryMultiple)
        .where(IndustryMultiple.icb_sub_sector == icb_sub_sector)
        .order_by(IndustryMultiple.effective_date.desc())
        .limit(1)
    )
    row = result.scalar_one_or_none()
    if row is None:
        return DEFAULT_MULTIPLE_RANGE

    def band(low: float, high: float) -> dict:
        return {"low": low, "mid": math.floor((low + high) / 2 * 100 + 0.5) / 100, "high": high}

    return {
        "ebitda": band(float(row.ebitda_multiple_low), float(row.ebitda_multiple_high)),
        "revenue": band(float(row.revenue_multiple_low), float(row.revenue_multiple_high)),
    }


class BusinessClassifier(BaseAgent):
    """Classifies a business description into the ICB taxonomy."""

    agent_name = "business_classifier"
    prompt_template = "business_classification.j2"
    system_template = "business_classification_system.j2"

    async def classify(
        self,
        session: AsyncSession,
        description: str | None,
        company_id=None,
    ) -> ClassificationResult:
        if not description or not isinstance(description, str):
            raise ValidationError("Business description is required")
        trimmed = description.strip()
        if len(trimmed) < MIN_DESCRIPTION_LENGTH:
            raise ValidationError(f"Description must be at least {MIN_DESCRIPTION_LENGTH} characters")
        sanitized = trimmed[:MAX_DESCRIPTION_LENGTH]

        ai_error: str | None = None
        try:
            result, model = await self._classify_with_llm(session, sanitized)
        except UnknownSubSectorError as e:
            logger.warning("%s, falling back to keywords", e)
            ai_error = str(e)
        except Exception as e:
            logger.exception("AI business classification failed")
            ai_error = str(e) or "Unknown AI error"
        else:
            await self._log(session, company_id, sanitized, result, model, None)
            return result

        primary, secondary = classify_by_keywords(sanitized)
        if primary:
            result = ClassificationResult(
                primary_industry=IndustryClassification.from_option(primary, 0.6),
                secondary_industry=IndustryClassification.from_option(secondary, 0.4) if secondary else None,
                explanation=KEYWORD_EXPLANATION,
                suggested_multiple_range=await lookup_multiple_range(session, primary.icb_sub_sector),
                source="keyword",
            )
            await self._log(session, company_id, sanitized, result, None, ai_error)
            return result

        default = find_by_sub_sector(DEFAULT_SUB_SECTOR)
        result = ClassificationResult(
            primary_industry=IndustryClassification.from_option(default, 0.2),
            secondary_industry=None,
            explanation=DEFAULT_EXPLANATION,
            suggested_multiple_range=await lookup_multiple_range(session, DEFAULT_SUB_SECTOR),
            source="default",
        )
        await self._log(session, company_id, sanitized, result, None, ai_error or "No keyword match found")
        return result

    async def _classify_with_llm(
        self, session: AsyncSession, description: str
    ) -> tuple[ClassificationResult, str]:
        prompt = self.render_prompt(description=description, industry_reference=build_industry_reference())
        data, model, _usage = await self.call_llm_structured(
            prompt,
            system_content=self.render_system_prompt(),
            temperature=0.3,
            max_tokens=512,
        )

        primary_code = data.get("primarySubSector")
        primary = find_by_sub_sector(primary_code) if isinstance(primary_code, str) else None
        if primary is None:
            raise UnknownSubSectorError(f"AI returned unknown sub-sector: {primary_code}")

        secondary = None
        secondary_code = data.get("secondarySubSector")
        if isinstance(secondary_code, str):
            option = find_by_sub_sector(secondary_code)
            if option:
                confidence = data.get("secondaryConfidence")
                secondary = IndustryClassification.from_option(
                    option, clamp_confidence(confidence if confidence is not None else 0.5)
                )

        explanation = data.get("explanation")
        return (
            ClassificationResult(
                primary_industry=IndustryClassification.from_option(
                    primary, clamp_confidence(data.get("primaryConfidence"))
                ),
                secondary_industry=secondary,
                explanation=explanation
                if isinstance(explanation, str) and explanation
                else "Classification based on business description analysis.",
                suggested_multiple_range=await lookup_multiple_range(session, primary.icb_sub_sector),
                source="ai",
            ),
            model,
        )

    async def _log(
        self,
        session: AsyncSession,
        company_id,
        description: str,
        result: ClassificationResult,
        model: str | None,
        error: str | None,
    ) -> None:
        from exitosx.models.db import AIGenerationLog

        try:
            async with session.begin_nested():
                session.add(
                    AIGenerationLog(
                        company_id=company_id,
                        generation_type=GENERATION_TYPE,
                        input_data={"description": description},
                        output_data={
                            "primary": asdict(result.primary_industry),
                            "secondary": asdict(result.secondary_industry) if result.secondary_industry else None,
                            "explanation": result.explanation,
                            "source": result.source,
                        },
                        model_used=model,
                        error_message=error,
                    )
                )
        except Exception:
            # The classification is still returned
            logger.exception("Failed to record business classification")
