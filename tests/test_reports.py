from __future__ import annotations

import pytest

from kpi_engine.data import prepare_context
from kpi_engine.filters import normalize_config
from kpi_engine.periods import period_key
from kpi_engine.report_customers import compute_customers
from kpi_engine.report_debug import compute_debug
from kpi_engine.report_pl import compute_pl


@pytest.fixture
def config(customer_periods):
    return normalize_config(
        {
            "division": "PAPER",
            "periods": [{"year": p.year, "month": p.month, "type": p.type} for p in customer_periods],
            "base_period_index": 0,
            "months_elapsed": 3,
        },
        available_divisions=["PAPER"],
    )


@pytest.fixture
def ctx(config, data_ctx):
    return prepare_context(config, data_ctx)


def test_compute_pl_rows_and_variance(config, ctx, q1_2025, q1_2024):
    payload = compute_pl(config, ctx)
    rows = {r["key"]: r for r in payload["rows"]}
    sales = rows["sales"]
    assert sales["values"][period_key(q1_2025)] == {"amount": 3000.0, "percent_of_sales": 100.0, "per_kg": 10.0}
    assert sales["variance"][period_key(q1_2025)] == 0.0
    assert sales["variance"][period_key(q1_2024)] == pytest.approx(-20.0)

    gp = rows["gross_profit_after_depn"]["values"][period_key(q1_2025)]
    assert gp["amount"] == 900.0
    assert gp["percent_of_sales"] == pytest.approx(30.0)
    assert rows["direct_cost_pct_of_cogs"]["is_ratio"]

    assert payload["summary"]["gross_margin_pct"] == pytest.approx(30.0)
    assert payload["period_differences"][period_key(q1_2024)]["sales"] == pytest.approx(-20.0)
    assert set(payload["charts"]) == {"sales_volume", "gross_margin_gauge", "sales_trend"}
    assert payload["periods"][2]["classification"] == "quarter"


def test_compute_pl_without_periods(data_ctx):
    config = normalize_config({"division": "PAPER"})
    payload = compute_pl(config, prepare_context(config, data_ctx))
    assert payload["periods"] == []
    assert payload["charts"] == {}
    assert payload["summary"] == {}
    assert all(r["values"] == {} for r in payload["rows"])


def test_compute_customers_payload(config, ctx):
    payload = compute_customers(config, ctx)
    assert payload["has_data"]
    assert payload["reference_periods"]["budget"] == "2025-Q1-Budget"
    assert payload["reference_periods"]["fy_budget"] is None
    assert payload["concentration"]["top_customers"][0]["name"] == "Alpha Foods"
    assert payload["retention"]["lost"] == ["Gamma Ltd"]
    assert payload["pvm"]["mix_available"] is False
    assert payload["executive_summary"]["portfolio_health"] == "ON_TRACK"
    assert [c["name"] for c in payload["customers"]][:2] == ["Alpha Foods", "Beta Mills"]
    assert "concentration" in payload["charts"]


def test_compute_customers_respects_top_n(customer_periods, data_ctx):
    config = normalize_config(
        {"division": "PAPER", "periods": [{"year": p.year, "month": p.month, "type": p.type} for p in customer_periods], "top_n": 2}
    )
    payload = compute_customers(config, prepare_context(config, data_ctx))
    assert len(payload["customers"]) == 2


def test_compute_customers_without_records(data_ctx):
    config = normalize_config({"division": "PAPER"})
    payload = compute_customers(config, prepare_context(config, data_ctx))
    assert payload["has_data"] is False
    assert payload["charts"] == {}


def test_compute_debug(config, ctx):
    config = normalize_config(
        {"division": "PAPER", "periods": [{"year": 2025, "month": "Q1"}, {"year": 2030, "month": "Q1"}]}
    )
    payload = compute_debug(config, ctx)
    assert payload["grid"]["rows"] == 55
    assert payload["grid"]["columns"] == 10
    assert payload["periods_without_data"] == ["2030-Q1-Actual"]
    assert payload["period_coverage"][0]["matched_columns"] == 3
    assert payload["record_counts"] == {"volume_records": 4, "amount_records": 4}
    labels = {r["key"]: r["sheet_label"] for r in payload["row_labels"]}
    assert labels["sales"] == "Sales"
    assert len(payload["available_columns"]) == 9
