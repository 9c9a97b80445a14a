"""Named risk discounts applied multiplicatively to the adjusted multiple."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field

DLOM_BY_SIZE = {
    "UNDER_500K": 0.25,
    "FROM_500K_TO_1M": 0.22,
    "FROM_1M_TO_3M": 0.18,
    "FROM_3M_TO_10M": 0.15,
    "FROM_10M_TO_25M": 0.12,
    "OVER_25M": 0.10,
}
DEFAULT_DLOM = 0.18

KEY_PERSON_RATES = {
    "CRITICAL": 0.25,
    "HIGH": 0.15,
    "MODERATE": 0.08,
    "LOW": 0.03,
    "MINIMAL": 0.0,
}
MAX_KEY_PERSON_RATE = 0.30
MIN_KEY_PERSON_RATE = 0.02

CONCENTRATION_SINGLE_HIGH, CONCENTRATION_SINGLE_RATE = 0.30, 0.15
CONCENTRATION_SINGLE_MODERATE, CONCENTRATION_SINGLE_MODERATE_RATE = 0.20, 0.08
CONCENTRATION_TOP3_HIGH, CONCENTRATION_TOP3_RATE = 0.60, 0.10
CONCENTRATION_TOP3_MODERATE, CONCENTRATION_TOP3_MODERATE_RATE = 0.40, 0.05

DOCS_DISCOUNT_THRESHOLD, DOCS_DISCOUNT_RATE = 0.50, 0.05
LEGAL_DISCOUNT_THRESHOLD, LEGAL_DISCOUNT_RATE = 0.40, 0.08

DLOM = "Lack of Marketability (DLOM)"
KEY_PERSON = "Key-Person Risk"
CONCENTRATION_SINGLE = "Customer Concentration (Single)"
CONCENTRATION_TOP3 = "Customer Concentration (Top 3)"
DOCUMENTATION = "Documentation Quality"
LEGAL_TAX = "Legal/Tax Risk"

ADDRESSABLE_RISK_NAMES = (KEY_PERSON, CONCENTRATION_SINGLE, CONCENTRATION_TOP3, DOCUMENTATION, LEGAL_TAX)
STRUCTURAL_RISK_NAMES = (DLOM,)


@dataclass
class RiskDiscount:
    name: str
    rate: float
    explanation: str
    addressable: bool = True


@dataclass
class RiskDiscountInputs:
    owner_involvement: str | None = None
    transferability_score: float | None = None
    top_customer_concentration: float | None = None
    top3_customer_concentration: float | None = None
    legal_tax_score: float | None = None
    financial_score: float | None = None
    revenue_size_category: str | None = None


@dataclass
class RiskDiscountResult:
    discounts: list[RiskDiscount] = field(default_factory=list)
    risk_multiplier: float = 1.0
    risk_severity_score: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


def is_addressable_discount(name: str) -> bool:
    return name in ADDRESSABLE_RISK_NAMES


def _pct(value: float) -> str:
    return f"{value * 100:.0f}%"


def _key_person_discount(inputs: RiskDiscountInputs) -> RiskDiscount | None:
    base_rate = KEY_PERSON_RATES.get(inputs.owner_involvement or "", 0.0)
    if base_rate == 0:
        return None

    rate = base_rate
    if inputs.transferability_score is not None:
        # 1.0 transferability halves the discount, 0.0 raises it by a quarter
        modifier = 1 - (inputs.transferability_score - 0.5) * 0.5
        rate = max(0.0, min(MAX_KEY_PERSON_RATE, base_rate * modifier))

    if rate < MIN_KEY_PERSON_RATE:
        return None

    score = _pct(inputs.transferability_score) if inputs.transferability_score is not None else "N/A"
    return RiskDiscount(
        name=KEY_PERSON,
        rate=math.floor(rate * 100 + 0.5) / 100,
        explanation=(
            f'Owner involvement level "{inputs.owner_involvement}" with transferability score of '
            f"{score}. Business dependent on current owner creates acquisition risk."
        ),
    )


def _concentration_discounts(inputs: RiskDiscountInputs) -> list[RiskDiscount]:
    discounts: list[RiskDiscount] = []
    single = inputs.top_customer_concentration
    if single is not None:
        if single >= CONCENTRATION_SINGLE_HIGH:
            discounts.append(RiskDiscount(
                CONCENTRATION_SINGLE,
                CONCENTRATION_SINGLE_RATE,
                f"Top customer represents {_pct(single)} of revenue. Losing this customer would "
                "materially impact the business.",
            ))
        elif single >= CONCENTRATION_SINGLE_MODERATE:
            discounts.append(RiskDiscount(
                CONCENTRATION_SINGLE,
                CONCENTRATION_SINGLE_MODERATE_RATE,
                f"Top customer represents {_pct(single)} of revenue, a moderate concentration risk.",
            ))

    single_high = any(d.rate >= CONCENTRATION_SINGLE_RATE for d in discounts)
    top3 = inputs.top3_customer_concentration
    if not single_high and top3 is not None:
        if top3 >= CONCENTRATION_TOP3_HIGH:
            discounts.append(RiskDiscount(
                CONCENTRATION_TOP3,
                CONCENTRATION_TOP3_RATE,
                f"Top 3 customers represent {_pct(top3)} of revenue. Concentrated customer base "
                "creates material risk.",
            ))
        elif top3 >= CONCENTRATION_TOP3_MODERATE:
            discounts.append(RiskDiscount(
                CONCENTRATION_TOP3,
                CONCENTRATION_TOP3_MODERATE_RATE,
                f"Top 3 customers represent {_pct(top3)} of revenue, a moderate concentration.",
            ))
    return discounts


def calculate_risk_discounts(inputs: RiskDiscountInputs) -> RiskDiscountResult:
    """Collect the discounts that apply; ``risk_multiplier = prod(1 - rate)``."""
    dlom_rate = DLOM_BY_SIZE.get(inputs.revenue_size_category or "", DEFAULT_DLOM)
    discounts = [
        RiskDiscount(
            DLOM,
            dlom_rate,
            "Private companies are less liquid than public companies. Size-appropriate DLOM of "
            f"{_pct(dlom_rate)} applied based on revenue category.",
            addressable=False,
        )
    ]

    key_person = _key_person_discount(inputs)
    if key_person:
        discounts.append(key_person)

    discounts.extend(_concentration_discounts(inputs))

    if inputs.financial_score is not None and inputs.financial_score < DOCS_DISCOUNT_THRESHOLD:
        discounts.append(RiskDiscount(
            DOCUMENTATION,
            DOCS_DISCOUNT_RATE,
            f"Financial documentation score of {_pct(inputs.financial_score)} is below the "
            f"{_pct(DOCS_DISCOUNT_THRESHOLD)} threshold.",
        ))

    if inputs.legal_tax_score is not None and inputs.legal_tax_score < LEGAL_DISCOUNT_THRESHOLD:
        discounts.append(RiskDiscount(
            LEGAL_TAX,
            LEGAL_DISCOUNT_RATE,
            f"Legal/tax readiness score of {_pct(inputs.legal_tax_score)} is below the "
            f"{_pct(LEGAL_DISCOUNT_THRESHOLD)} threshold.",
        ))

    multiplier = math.prod(1 - d.rate for d in discounts)
    return RiskDiscountResult(
        discounts=discounts,
        risk_multiplier=multiplier,
        risk_severity_score=1 - multiplier,
    )
