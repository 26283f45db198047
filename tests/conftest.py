from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

import numpy as np
import pandas as pd
import pytest

from kpi_engine.cells import CustomerRecord, RawTable
from kpi_engine.periods import Period, months_for


Column = Tuple[int, str, str]

COLUMNS: List[Column] = [
    (2024, "January", "Actual"),
    (2024, "February", "Actual"),
    (2024, "March", "Actual"),
    (2025, "January", "Actual"),
    (2025, "February", "Actual"),
    (2025, "March", "Actual"),
    (2025, "January", "Budget"),
    (2025, "February", "Budget"),
    (2025, "March", "Budget"),
]

# Per-column values for the rows used by the ledger tests.
ROWS: Dict[int, object] = {
    3: [800, 800, 800, 1000, 1000, 1000, 900, 900, 900],
    4: [600, 600, 600, 700, 700, 700, 650, 650, 650],
    5: 400,
    7: [80, 80, 80, 100, 100, 100, 90, 90, 90],
    8: 110,
    9: 50,
    10: 20,
    12: 10,
    13: 20,
    15: 5,
    31: 30,
    42: 10,
    44: 5,
}

LABELS = {3: "Sales", 4: "Cost of Sales", 5: "Material", 7: "Sales volume", 8: "Production volume"}


def make_grid(columns: Sequence[Column], rows: Dict[int, object], n_rows: int = 55) -> pd.DataFrame:
    grid = pd.DataFrame(np.nan, index=range(n_rows), columns=range(len(columns) + 1), dtype=object)
    for col_idx, (year, month, ptype) in enumerate(columns, start=1):
        grid.iat[0, col_idx] = year
        grid.iat[1, col_idx] = month
        grid.iat[2, col_idx] = ptype
    for row, values in rows.items():
        if not isinstance(values, list):
            values = [values] * len(columns)
        for col_idx, value in enumerate(values, start=1):
            grid.iat[row, col_idx] = value
    for row, label in LABELS.items():
        grid.iat[row, 0] = label
    return grid


@pytest.fixture
def pl_grid() -> pd.DataFrame:
    return make_grid(COLUMNS, ROWS)


@pytest.fixture
def pl_table(pl_grid) -> RawTable:
    return RawTable(pl_grid, division="PAPER")


@pytest.fixture
def q1_2025() -> Period:
    return Period(year=2025, month="Q1", type="Actual")


@pytest.fixture
def q1_2024() -> Period:
    return Period(year=2024, month="Q1", type="Actual")


@pytest.fixture
def q1_budget() -> Period:
    return Period(year=2025, month="Q1", type="Budget")


@pytest.fixture
def customer_periods(q1_2025, q1_2024, q1_budget) -> List[Period]:
    return [q1_2025, q1_2024, q1_budget]


@pytest.fixture
def volume_records() -> List[CustomerRecord]:
    # values aligned with customer_periods: current, previous year, budget
    return [
        CustomerRecord("ALPHA FOODS", (60000.0, 45000.0, 55000.0)),
        CustomerRecord("beta mills*", (30000.0, 30000.0, 35000.0)),
        CustomerRecord("Gamma Ltd", (0.0, 10000.0, 5000.0)),
        CustomerRecord("Delta Co", (10000.0, 0.0, 5000.0)),
    ]


@pytest.fixture
def amount_records() -> List[CustomerRecord]:
    return [
        CustomerRecord("Alpha Foods", (600000.0, 450000.0, 550000.0)),
        CustomerRecord("BETA MILLS", (300000.0, 300000.0, 350000.0)),
        CustomerRecord("Gamma Ltd", (0.0, 100000.0, 50000.0)),
        CustomerRecord("Delta Co", (100000.0, 0.0, 50000.0)),
    ]


def long_customer_frame(records: Sequence[CustomerRecord], periods: Sequence[Period]) -> pd.DataFrame:
    """Spread each record's period value over the period's first month."""
    rows = []
    for r in records:
        for idx, p in enumerate(periods):
            rows.append(
                {"customer": r.name, "year": p.year, "month": months_for(p)[0], "type": p.type, "value": r.raw_values[idx]}
            )
    return pd.DataFrame(rows)


@pytest.fixture
def data_ctx(pl_table, volume_records, amount_records, customer_periods) -> Dict[str, object]:
    return {
        "files": ["paper.xlsx"],
        "divisions": ["PAPER"],
        "tables": {"PAPER": pl_table},
        "customer_volume": {"PAPER": long_customer_frame(volume_records, customer_periods)},
        "customer_amount": {"PAPER": long_customer_frame(amount_records, customer_periods)},
    }


@pytest.fixture
def grid_factory():
    return make_grid
