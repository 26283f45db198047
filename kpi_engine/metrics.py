from __future__ import annotations

import math
import numbers
from dataclasses import dataclass
from typing import Dict, Optional, Sequence

from kpi_engine.cells import RawTable, resolve_line
from kpi_engine.ledger import PRODUCTION_VOLUME_ROW, SALES_ROW, VOLUME_ROW, RowRef
from kpi_engine.periods import Period, period_key


@dataclass(frozen=True)
class MetricResult:
    amount: float
    percent_of_sales: float
    per_kg: float


@dataclass(frozen=True)
class RunRateInfo:
    actual_to_date: float
    months_elapsed: int
    months_remaining: int
    current_run_rate: float
    required_run_rate: float
    is_on_track: bool
    catch_up_per_month: float
    no_months_remaining: bool


def _finite(value: Optional[float]) -> bool:
    return value is not None and isinstance(value, numbers.Real) and math.isfinite(value)


def variance(current: Optional[float], previous: Optional[float]) -> Optional[float]:
    """Percent change of ``current`` against ``previous``; None when there is no usable baseline."""
    if not _finite(current) or not _finite(previous) or previous == 0:
        return None
    return (current - previous) / abs(previous) * 100  # type: ignore[operator]


def safe_ratio(numerator: float, denominator: float, default: float = 0.0) -> float:
    if not _finite(numerator) or not _finite(denominator) or denominator == 0:
        return default
    return numerator / denominator


def derive_metrics(table: Optional[RawTable], row: RowRef, period: Optional[Period]) -> MetricResult:
    amount = resolve_line(table, row, period)
    sales = resolve_line(table, SALES_ROW, period)
    volume = resolve_line(table, VOLUME_ROW, period)
    return MetricResult(
        amount=amount,
        percent_of_sales=(amount / sales) * 100 if sales != 0 else 0.0,
        per_kg=amount / volume if volume != 0 else 0.0,
    )


def period_differences(
    table: Optional[RawTable], periods: Sequence[Period], base_index: int
) -> Dict[str, Dict[str, Optional[float]]]:
    """Variance of sales, sales volume and production volume of every period against the base period."""
    if not periods or not 0 <= base_index < len(periods):
        return {}
    tracked = {"sales": SALES_ROW, "sales_volume": VOLUME_ROW, "production_volume": PRODUCTION_VOLUME_ROW}
    base = periods[base_index]
    base_values = {name: resolve_line(table, row, base) for name, row in tracked.items()}
    out: Dict[str, Dict[str, Optional[float]]] = {}
    for idx, period in enumerate(periods):
        if idx == base_index:
            out[period_key(period)] = {name: 0.0 for name in tracked}
            continue
        out[period_key(period)] = {
            name: variance(resolve_line(table, row, period), base_values[name]) for name, row in tracked.items()
        }
    return out


def run_rate(
    actual_to_date: float,
    months_elapsed: int,
    *,
    full_year_budget: Optional[float] = None,
    period_budget: float = 0.0,
    tolerance: float = 0.85,
) -> RunRateInfo:
    months_elapsed = max(0, min(12, int(months_elapsed)))
    months_remaining = 12 - months_elapsed
    annualise = 12 / months_elapsed if months_elapsed > 0 else 0.0

    current = actual_to_date * annualise
    if full_year_budget is not None and full_year_budget > 0:
        required = float(full_year_budget)
    else:
        required = period_budget * annualise
    on_track = current >= required * tolerance

    catch_up = 0.0
    no_months_remaining = False
    if not on_track:
        gap = required - actual_to_date
        if months_remaining > 0:
            catch_up = gap / months_remaining
        else:
            catch_up = gap
            no_months_remaining = True

    return RunRateInfo(
        actual_to_date=float(actual_to_date),
        months_elapsed=months_elapsed,
        months_remaining=months_remaining,
        current_run_rate=current,
        required_run_rate=required,
        is_on_track=on_track,
        catch_up_per_month=catch_up,
        no_months_remaining=no_months_remaining,
    )
