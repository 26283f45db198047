from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from kpi_engine.ledger import LINES_BY_KEY, RowRef
from kpi_engine.periods import Period, months_for, normalize_month


HEADER_ROWS = 3
LONG_TABLE_COLUMNS = ["row_index", "year", "month", "type", "value"]
CUSTOMER_COLUMNS = ["customer", "year", "month", "type", "value"]


def _numeric_series(values: pd.Series) -> pd.Series:
    cleaned = values.map(lambda v: v.replace(",", "").strip() if isinstance(v, str) else v)
    return pd.to_numeric(cleaned, errors="coerce").replace([np.inf, -np.inf], np.nan).fillna(0.0)


def _normalize_header(header: pd.DataFrame) -> pd.DataFrame:
    out = pd.DataFrame(index=header.index)
    out["year"] = pd.to_numeric(header["year"], errors="coerce")
    out["month"] = header["month"].map(lambda m: normalize_month(m) if pd.notna(m) else "")
    out["type"] = header["type"].map(lambda t: str(t).strip().lower() if pd.notna(t) else "")
    return out


def period_mask(header: pd.DataFrame, period: Period) -> pd.Series:
    """Select header entries belonging to ``period``.

    Columns tagged with the period's own month tag (e.g. a stored ``Q1`` column)
    win; otherwise the constituent months are matched.
    """
    base = (header["year"] == period.year) & (header["type"] == period.type.lower())
    if not period.is_custom_range:
        direct = base & (header["month"] == normalize_month(period.month))
        if direct.any():
            return direct
    return base & header["month"].isin(months_for(period))


@dataclass(frozen=True)
class RawTable:
    """Division P&L grid: rows 0-2 are year/month/type headers, column 0 holds labels."""

    grid: pd.DataFrame
    division: str = ""
    header: pd.DataFrame = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        grid = self.grid if self.grid is not None else pd.DataFrame()
        if grid.shape[0] >= HEADER_ROWS and grid.shape[1] >= 2:
            raw_header = pd.DataFrame(
                {
                    "year": grid.iloc[0, 1:].values,
                    "month": grid.iloc[1, 1:].values,
                    "type": grid.iloc[2, 1:].values,
                },
                index=range(1, grid.shape[1]),
            )
            header = _normalize_header(raw_header)
        else:
            header = pd.DataFrame(columns=["year", "month", "type"])
        object.__setattr__(self, "grid", grid)
        object.__setattr__(self, "header", header)

    @property
    def empty(self) -> bool:
        return self.header.empty or self.grid.shape[0] <= HEADER_ROWS

    @classmethod
    def from_long(cls, frame: pd.DataFrame, division: str = "") -> "RawTable":
        """Pivot long rows (row_index, year, month, type, value) into the grid layout."""
        if frame is None or frame.empty or not set(LONG_TABLE_COLUMNS).issubset(frame.columns):
            return cls(pd.DataFrame(), division=division)
        df = frame[LONG_TABLE_COLUMNS].copy()
        df["row_index"] = pd.to_numeric(df["row_index"], errors="coerce")
        df = df.dropna(subset=["row_index"])
        df["row_index"] = df["row_index"].astype(int)
        df = df[df["row_index"] >= HEADER_ROWS]
        df["value"] = _numeric_series(df["value"])
        df["month"] = df["month"].map(normalize_month)
        columns = df[["year", "month", "type"]].drop_duplicates().reset_index(drop=True)
        n_rows = int(df["row_index"].max()) + 1 if not df.empty else HEADER_ROWS
        grid = pd.DataFrame(np.nan, index=range(max(n_rows, HEADER_ROWS)), columns=range(len(columns) + 1), dtype=object)
        for col_idx, col in enumerate(columns.itertuples(index=False), start=1):
            grid.iat[0, col_idx] = col.year
            grid.iat[1, col_idx] = col.month
            grid.iat[2, col_idx] = col.type
        col_lookup = {tuple(c): i for i, c in enumerate(columns.itertuples(index=False, name=None), start=1)}
        summed = df.groupby(["row_index", "year", "month", "type"], sort=False)["value"].sum()
        for (row_index, year, month, ptype), value in summed.items():
            grid.iat[row_index, col_lookup[(year, month, ptype)]] = value
        return cls(grid, division=division)

    def available_columns(self) -> List[dict]:
        if self.header.empty:
            return []
        cols = self.header.dropna(subset=["year"]).drop_duplicates()
        return [
            {"year": int(r.year), "month": r.month, "type": str(r.type).title()}
            for r in cols.itertuples(index=False)
        ]

    def row_label(self, row_index: int) -> Optional[str]:
        if self.empty or not HEADER_ROWS <= row_index < self.grid.shape[0]:
            return None
        label = self.grid.iat[row_index, 0]
        return None if pd.isna(label) else str(label).strip()


def compute_cell_value(table: Optional[RawTable], row_index: object, period: Optional[Period]) -> float:
    if table is None or period is None or table.empty:
        return 0.0
    if isinstance(row_index, bool) or not isinstance(row_index, (int, np.integer)):
        return 0.0
    if not HEADER_ROWS <= int(row_index) < table.grid.shape[0]:
        return 0.0
    mask = period_mask(table.header, period)
    if not mask.any():
        return 0.0
    columns = mask[mask].index.tolist()
    values = _numeric_series(table.grid.iloc[int(row_index), columns])
    total = float(values.sum())
    return total if math.isfinite(total) else 0.0


def resolve_line(table: Optional[RawTable], ref: RowRef, period: Optional[Period]) -> float:
    """Value of a raw row index or a calculated ledger line for one period."""
    if not isinstance(ref, str):
        return compute_cell_value(table, ref, period)
    line = LINES_BY_KEY.get(ref)
    if line is None:
        return 0.0
    if line.formula is None:
        return compute_cell_value(table, line.row, period)
    formula = line.formula
    total = sum(resolve_line(table, r, period) for r in formula.plus) - sum(
        resolve_line(table, r, period) for r in formula.minus
    )
    if formula.ratio_of is None:
        return total
    denominator = resolve_line(table, formula.ratio_of, period)
    return total / denominator * 100 if denominator else 0.0


@dataclass(frozen=True)
class CustomerRecord:
    name: str
    raw_values: Tuple[float, ...]

    def value_at(self, index: int) -> float:
        if 0 <= index < len(self.raw_values):
            return self.raw_values[index]
        return 0.0


def build_customer_records(frame: Optional[pd.DataFrame], periods: Sequence[Period]) -> List[CustomerRecord]:
    """Aggregate long customer rows into records aligned with ``periods``; all-zero records are dropped."""
    if frame is None or frame.empty or not periods or not set(CUSTOMER_COLUMNS).issubset(frame.columns):
        return []
    df = frame[CUSTOMER_COLUMNS].copy()
    df["customer"] = df["customer"].astype("string").str.strip()
    df = df.dropna(subset=["customer"])
    df = df[df["customer"] != ""]
    header = _normalize_header(df[["year", "month", "type"]])
    df["value"] = _numeric_series(df["value"])

    names = list(dict.fromkeys(df["customer"].tolist()))
    matrix = pd.DataFrame(0.0, index=names, columns=range(len(periods)))
    for idx, period in enumerate(periods):
        mask = period_mask(header, period)
        if not mask.any():
            continue
        sums = df[mask.values].groupby("customer", sort=False)["value"].sum()
        matrix.loc[sums.index, idx] = sums.values
    return [
        CustomerRecord(name=str(name), raw_values=tuple(float(v) for v in row))
        for name, row in zip(matrix.index, matrix.values)
        if any(v != 0 for v in row)
    ]


def records_total(records: Iterable[CustomerRecord], index: int) -> float:
    if index < 0:
        return 0.0
    return float(sum(r.value_at(index) for r in records))
