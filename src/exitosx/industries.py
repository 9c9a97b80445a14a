"""ICB industry taxonomy (industry > super-sector > sector > sub-sector)."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from functools import lru_cache
from pathlib import Path

DATA_FILE = Path(__file__).parent / "data" / "industries.json"


@dataclass(frozen=True)
class IndustryOption:
    icb_industry: str
    icb_super_sector: str
    icb_sector: str
    icb_sub_sector: str
    industry_label: str
    super_sector_label: str
    sector_label: str
    sub_sector_label: str
    full_path: str
    search_string: str

    def to_dict(self) -> dict:
        return asdict(self)


@lru_cache(maxsize=1)
def load_hierarchy() -> dict:
    with DATA_FILE.open(encoding="utf-8") as f:
        return json.load(f)


@lru_cache(maxsize=1)
def get_flattened_industry_options() -> tuple[IndustryOption, ...]:
    """Every sub-sector with its full ancestry, in taxonomy order."""
    data = load_hierarchy()
    options = []
    for industry in data["industries"]:
        for super_sector in data["super_sectors"].get(industry["value"], []):
            for sector in data["sectors"].get(super_sector["value"], []):
                for sub in data["sub_sectors"].get(sector["value"], []):
                    labels = (industry["label"], super_sector["label"], sector["label"], sub["label"])
                    options.append(
                        IndustryOption(
                            icb_industry=industry["value"],
                            icb_super_sector=super_sector["value"],
                            icb_sector=sector["value"],
                            icb_sub_sector=sub["value"],
                            industry_label=labels[0],
                            super_sector_label=labels[1],
                            sector_label=labels[2],
                            sub_sector_label=labels[3],
                            full_path=" > ".join(labels),
                            search_string=" ".join(labels).lower(),
                        )
                    )
    return tuple(options)


def find_by_sub_sector(code: str | None) -> IndustryOption | None:
    if not code:
        return None
    return next((o for o in get_flattened_industry_options() if o.icb_sub_sector == code), None)


def is_valid_sub_sector(code: str | None) -> bool:
    return find_by_sub_sector(code) is not None


def search_industries(query: str | None) -> list[IndustryOption]:
    options = get_flattened_industry_options()
    if not query:
        return list(options)
    terms = query.lower().split()
    return [o for o in options if all(t in o.search_string for t in terms)]


def build_industry_path(company) -> str | None:
    """Human-readable path for a company's classification, if known."""
    option = find_by_sub_sector(getattr(company, "icb_sub_sector", None))
    return option.full_path if option else None


def get_industry_name(company) -> str | None:
    option = find_by_sub_sector(getattr(company, "icb_sub_sector", None))
    return option.sub_sector_label if option else None
