"""Tests for the ICB industry taxonomy."""

from __future__ import annotations

from types import SimpleNamespace

from exitosx.industries import (
    build_industry_path,
    find_by_sub_sector,
    get_flattened_industry_options,
    get_industry_name,
    is_valid_sub_sector,
    search_industries,
)


class TestTaxonomy:
    def test_every_sub_sector_is_reachable(self):
        options = get_flattened_industry_options()
        assert len(options) == 99
        assert len({o.icb_sub_sector for o in options}) == 99

    def test_find_by_sub_sector(self):
        option = find_by_sub_sector("RESTAURANTS")
        assert option.icb_industry == "CONSUMER_DISCRETIONARY"
        assert option.icb_super_sector == "TRAVEL_LEISURE"
        assert option.icb_sector == "RESTAURANTS_BARS"
        assert option.full_path == "Consumer Discretionary > Travel & Leisure > Restaurants & Bars > Restaurants"

    def test_unknown_codes(self):
        assert find_by_sub_sector("NOT_A_CODE") is None
        assert find_by_sub_sector(None) is None
        assert not is_valid_sub_sector("")
        assert is_valid_sub_sector("ENTERPRISE_SOFTWARE")


class TestSearch:
    def test_empty_query_returns_everything(self):
        assert len(search_industries("")) == 99

    def test_all_terms_must_match(self):
        results = search_industries("travel restaurants")
        assert [o.icb_sub_sector for o in results] == ["RESTAURANTS"]

    def test_case_insensitive(self):
        assert any(o.icb_sub_sector == "ENTERPRISE_SOFTWARE" for o in search_industries("SOFTWARE"))

    def test_no_match(self):
        assert search_industries("zzzz") == []


class TestCompanyHelpers:
    def test_industry_path_and_name(self):
        company = SimpleNamespace(icb_sub_sector="RESTAURANTS")
        assert build_industry_path(company).endswith("> Restaurants")
        assert get_industry_name(company) == "Restaurants"

    def test_unclassified_company(self):
        company = SimpleNamespace(icb_sub_sector=None)
        assert build_industry_path(company) is None
        assert get_industry_name(company) is None
