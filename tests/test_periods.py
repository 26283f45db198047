from __future__ import annotations

from datetime import date

import pytest

from kpi_engine.periods import (
    COLOR_SCHEMES,
    Period,
    classify_period,
    column_palette,
    ensure_unique,
    find_budget_index,
    find_fy_budget_index,
    find_previous_year_index,
    find_ytd_index,
    is_year_to_date,
    last_month_number,
    months_elapsed_for,
    months_for,
    normalize_month,
    period_key,
)


def test_period_key_formats_and_defaults_missing_month():
    assert period_key(Period(2025, "Q1", "Actual")) == "2025-Q1-Actual"
    assert period_key(Period(2025, "", "Budget")) == "2025-Year-Budget"


def test_period_key_uses_custom_range_id_not_display_name():
    p = Period(2025, months=("January", "February"), is_custom_range=True, custom_range_id="r-7", display_name="Jan-Feb")
    assert period_key(p) == "2025-r-7-Actual"


def test_period_key_is_stable_and_distinct():
    periods = [
        Period(2025, "Q1", "Actual"),
        Period(2024, "Q1", "Actual"),
        Period(2025, "Q2", "Actual"),
        Period(2025, "Q1", "Budget"),
    ]
    keys = [period_key(p) for p in periods]
    assert keys == [period_key(p) for p in periods]
    assert len(set(keys)) == len(keys)


def test_from_dict_accepts_camel_case_aliases():
    p = Period.from_dict(
        {"year": "2025", "month": "x", "type": "actual", "isCustomRange": True, "id": "abc", "displayName": "Peak", "months": ["jan", "feb"]}
    )
    assert p.is_custom_range
    assert p.custom_range_id == "abc"
    assert p.display_name == "Peak"
    assert p.type == "Actual"
    assert p.months == ("January", "February")


@pytest.mark.parametrize(
    "raw,expected",
    [(None, "Year"), ("", "Year"), ("jan", "January"), ("Sept", "September"), ("q3", "Q3"), ("fy", "FY")],
)
def test_normalize_month(raw, expected):
    assert normalize_month(raw) == expected


def test_months_for_expands_tags():
    assert months_for(Period(2025, "Q2")) == ("April", "May", "June")
    assert len(months_for(Period(2025, "HY2"))) == 6
    assert len(months_for(Period(2025, "Year"))) == 12
    assert months_for(Period(2025, "March")) == ("March",)
    assert last_month_number(Period(2025, "Q3")) == 9


def test_find_previous_year_prefers_actual():
    periods = [Period(2025, "Q1", "Actual"), Period(2024, "Q1", "Budget"), Period(2024, "Q1", "Actual")]
    assert find_previous_year_index(periods, 0) == 2
    assert find_previous_year_index(periods[:2], 0) == 1
    assert find_previous_year_index(periods, 5) == -1


def test_budget_index_fallback_order():
    base = Period(2025, "Q1", "Actual")
    same_month = Period(2025, "Q1", "Budget")
    fy = Period(2025, "Year", "Budget")
    same_year = Period(2025, "Q3", "Budget")
    other_year = Period(2024, "Q1", "Budget")

    assert find_budget_index([base, other_year, same_year, fy, same_month], 0) == 4
    assert find_budget_index([base, other_year, same_year, fy], 0) == 3
    assert find_budget_index([base, other_year, same_year], 0) == 2
    assert find_budget_index([base, other_year], 0) == 1
    assert find_budget_index([base], 0) == -1


def test_fy_budget_index():
    periods = [Period(2025, "Q1", "Actual"), Period(2025, "Q1", "Budget"), Period(2025, "FY", "Budget")]
    assert find_fy_budget_index(periods, 0) == 2
    assert find_fy_budget_index(periods[:2], 0) == -1


def test_is_year_to_date():
    assert is_year_to_date(Period(2025, "Q1", "Actual"))
    assert is_year_to_date(Period(2025, "HY1", "Actual"))
    assert is_year_to_date(Period(2025, "January", "Actual"))
    assert is_year_to_date(Period.from_dict({"year": 2025, "month": "ytd"}))
    assert is_year_to_date(Period(2025, "jf", months=("January", "February"), is_custom_range=True))
    assert not is_year_to_date(Period(2025, "March", "Actual"))
    assert not is_year_to_date(Period(2025, "Q2", "Actual"))
    assert not is_year_to_date(Period(2025, "Q1", "Budget"))


def test_find_ytd_index():
    march = Period(2025, "March")
    fy_budget = Period(2025, "Year", "Budget")
    assert find_ytd_index([march, fy_budget], 0) == -1
    assert find_ytd_index([march, fy_budget, Period(2025, "HY1"), Period(2025, "Q1")], 0) == 3
    assert find_ytd_index([march, Period(2024, "Q1"), Period(2025, "YTD")], 0) == 2
    assert find_ytd_index([Period(2025, "Q1"), march], 0) == 0
    assert find_ytd_index([march], 5) == -1


def test_months_elapsed_for():
    today = date(2025, 5, 10)
    assert months_elapsed_for(Period(2024, "Q4"), today) == 12
    assert months_elapsed_for(Period(2026, "Q1"), today) == 0
    assert months_elapsed_for(Period(2025, "Q1"), today) == 3
    assert months_elapsed_for(Period(2025, "Year"), today) == 5


def test_ensure_unique_keeps_first_occurrence():
    a = Period(2025, "Q1")
    c = Period(2025, "Q2")
    assert ensure_unique([a, c, a, c]) == [a, c]


@pytest.mark.parametrize(
    "period,kind,scheme",
    [
        (Period(2025, "Q2", "Actual"), "quarter", "orange"),
        (Period(2025, "January", "Actual"), "january", "yellow"),
        (Period(2025, "Year", "Actual"), "year", "blue"),
        (Period(2025, "March", "Budget"), "budget", "green"),
        (Period(2025, "March", "Actual"), "default", "blue"),
        (Period(2025, "Q2", "Actual", custom_color="green"), "custom", "green"),
    ],
)
def test_column_palette_dispatch(period, kind, scheme):
    assert classify_period(period) == kind
    assert column_palette(period) == COLOR_SCHEMES[scheme]
