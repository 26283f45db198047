from __future__ import annotations

import pandas as pd
import pytest

from kpi_engine.cells import (
    CustomerRecord,
    RawTable,
    build_customer_records,
    compute_cell_value,
    records_total,
    resolve_line,
)
from kpi_engine.periods import Period


def test_quarter_sums_constituent_months(pl_table, q1_2025):
    assert compute_cell_value(pl_table, 3, q1_2025) == 3000.0
    assert compute_cell_value(pl_table, 7, q1_2025) == 300.0


def test_single_month_and_type_match_is_case_insensitive(pl_table):
    assert compute_cell_value(pl_table, 3, Period(2025, "February", "budget")) == 900.0


def test_custom_range_sums_listed_months(pl_table):
    p = Period(2025, months=("January", "February"), is_custom_range=True, custom_range_id="r1", display_name="Jan-Feb")
    assert compute_cell_value(pl_table, 3, p) == 2000.0


def test_direct_quarter_column_wins_over_months(grid_factory):
    grid = grid_factory([(2025, "January", "Actual"), (2025, "Q1", "Actual")], {3: [10, 999]})
    table = RawTable(grid)
    assert compute_cell_value(table, 3, Period(2025, "Q1")) == 999.0
    assert compute_cell_value(table, 3, Period(2025, "January")) == 10.0


@pytest.mark.parametrize("row", [-1, 2, 500, "3", None, True, 3.5])
def test_invalid_rows_resolve_to_zero(pl_table, q1_2025, row):
    assert compute_cell_value(pl_table, row, q1_2025) == 0.0


def test_missing_table_or_period_is_zero(q1_2025, pl_table):
    assert compute_cell_value(None, 3, q1_2025) == 0.0
    assert compute_cell_value(RawTable(pd.DataFrame()), 3, q1_2025) == 0.0
    assert compute_cell_value(pl_table, 3, None) == 0.0
    assert compute_cell_value(pl_table, 3, Period(2030, "Q1")) == 0.0


def test_blank_cells_count_as_zero(pl_table, q1_2025):
    # row 20 is never populated
    assert compute_cell_value(pl_table, 20, q1_2025) == 0.0


def test_calculated_lines(pl_table, q1_2025):
    assert resolve_line(pl_table, "gross_profit_after_depn", q1_2025) == 900.0
    assert resolve_line(pl_table, "total_below_gp", q1_2025) == 135.0
    assert resolve_line(pl_table, "net_profit", q1_2025) == 765.0
    assert resolve_line(pl_table, "ebit", q1_2025) == 795.0
    assert resolve_line(pl_table, "ebitda", q1_2025) == 870.0


def test_ratio_line_is_rederived_not_summed(pl_table, q1_2025):
    # 315 / 2100; summing the monthly 15% ratios would give 45
    assert resolve_line(pl_table, "direct_cost_pct_of_cogs", q1_2025) == pytest.approx(15.0)


def test_unknown_line_key_is_zero(pl_table, q1_2025):
    assert resolve_line(pl_table, "no_such_line", q1_2025) == 0.0


def test_from_long_builds_equivalent_grid(q1_2025):
    frame = pd.DataFrame(
        [
            {"row_index": 3, "year": 2025, "month": "jan", "type": "Actual", "value": "1,000"},
            {"row_index": 3, "year": 2025, "month": "February", "type": "Actual", "value": 500},
            {"row_index": 7, "year": 2025, "month": "February", "type": "Actual", "value": 50},
        ]
    )
    table = RawTable.from_long(frame, division="FILM")
    assert compute_cell_value(table, 3, q1_2025) == 1500.0
    assert compute_cell_value(table, 7, q1_2025) == 50.0
    assert {"year": 2025, "month": "January", "type": "Actual"} in table.available_columns()


def test_row_label(pl_table):
    assert pl_table.row_label(3) == "Sales"
    assert pl_table.row_label(20) is None
    assert pl_table.row_label(1) is None


def test_build_customer_records_aligns_with_periods(q1_2025, q1_2024):
    frame = pd.DataFrame(
        [
            {"customer": "Acme", "year": 2025, "month": "January", "type": "Actual", "value": 10},
            {"customer": "Acme", "year": 2025, "month": "March", "type": "Actual", "value": 5},
            {"customer": "Acme", "year": 2024, "month": "February", "type": "Actual", "value": 7},
            {"customer": "Zero", "year": 2025, "month": "January", "type": "Actual", "value": 0},
            {"customer": "Other", "year": 2024, "month": "January", "type": "Actual", "value": 3},
        ]
    )
    records = build_customer_records(frame, [q1_2025, q1_2024])
    assert [r.name for r in records] == ["Acme", "Other"]
    assert records[0].raw_values == (15.0, 7.0)
    assert records[1].raw_values == (0.0, 3.0)
    assert records_total(records, 1) == 10.0
    assert records_total(records, -1) == 0.0


def test_customer_record_out_of_range_value_is_zero():
    assert CustomerRecord("A", (1.0,)).value_at(3) == 0.0
    assert CustomerRecord("A", (1.0,)).value_at(-1) == 0.0
