from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Optional

import altair as alt
import pandas as pd

from kpi_engine.cells import RawTable
from kpi_engine.charts import period_color_scale, to_vega_spec
from kpi_engine.filters import ReportConfig
from kpi_engine.ledger import PL_LINES, SALES_ROW, VOLUME_ROW
from kpi_engine.metrics import MetricResult, derive_metrics, period_differences, variance
from kpi_engine.periods import Period, classify_period, column_palette, period_key


SUMMARY_LINES = {
    "sales": SALES_ROW,
    "sales_volume": VOLUME_ROW,
    "gross_profit": "gross_profit_after_depn",
    "net_profit": "net_profit",
    "ebitda": "ebitda",
}


def _period_meta(period: Period) -> Dict[str, Any]:
    return {
        "key": period_key(period),
        "label": period.label,
        "year": period.year,
        "month": period.month,
        "type": period.type,
        "is_custom_range": period.is_custom_range,
        "classification": classify_period(period),
        "palette": asdict(column_palette(period)),
    }


def _summary(table: RawTable, period: Optional[Period]) -> Dict[str, Any]:
    values = {name: derive_metrics(table, ref, period) for name, ref in SUMMARY_LINES.items()}
    return {
        **{name: m.amount for name, m in values.items()},
        "gross_margin_pct": values["gross_profit"].percent_of_sales,
        "net_margin_pct": values["net_profit"].percent_of_sales,
        "sales_per_kg": values["sales"].per_kg,
    }


def _sales_volume_chart(table: RawTable, periods: List[Period]) -> Dict[str, Any]:
    records = []
    for p in periods:
        records.append({"period": p.label, "metric": "Sales", "value": derive_metrics(table, SALES_ROW, p).amount})
        records.append({"period": p.label, "metric": "Sales volume (kg)", "value": derive_metrics(table, VOLUME_ROW, p).amount})
    chart = (
        alt.Chart(pd.DataFrame(records))
        .mark_bar()
        .encode(
            x=alt.X("period:N", title=None, sort=[p.label for p in periods]),
            y=alt.Y("value:Q", title=None, axis=alt.Axis(format="~s")),
            color=alt.Color("period:N", scale=period_color_scale(periods), legend=None),
            tooltip=["period", "metric", alt.Tooltip("value:Q", format=",.0f")],
        )
        .properties(width=240, height=220)
        .facet(column=alt.Column("metric:N", title=None))
        .resolve_scale(y="independent")
    )
    return to_vega_spec(chart)


def _margin_gauge(margin_pct: float, period: Period) -> Dict[str, Any]:
    shown = max(0.0, min(100.0, margin_pct))
    palette = column_palette(period)
    arc = (
        alt.Chart(pd.DataFrame({"segment": ["Gross margin", "Remainder"], "value": [shown, 100.0 - shown]}))
        .mark_arc(innerRadius=60)
        .encode(
            theta=alt.Theta("value:Q"),
            color=alt.Color(
                "segment:N",
                scale=alt.Scale(domain=["Gross margin", "Remainder"], range=[palette.primary, "#e5e7eb"]),
                legend=None,
            ),
            tooltip=["segment", alt.Tooltip("value:Q", format=".1f")],
        )
    )
    text = alt.Chart(pd.DataFrame({"label": [f"{margin_pct:.1f}%"]})).mark_text(size=22, fontWeight="bold").encode(text="label:N")
    return to_vega_spec((arc + text).properties(width=200, height=200, title=f"Gross margin {period.label}"))


def _sales_trend_chart(table: RawTable, periods: List[Period]) -> Dict[str, Any]:
    df = pd.DataFrame(
        [{"period": p.label, "sales": derive_metrics(table, SALES_ROW, p).amount} for p in periods]
    )
    chart = (
        alt.Chart(df)
        .mark_line(point=True)
        .encode(
            x=alt.X("period:N", title=None, sort=[p.label for p in periods]),
            y=alt.Y("sales:Q", title="Sales", axis=alt.Axis(format="~s")),
            tooltip=["period", alt.Tooltip("sales:Q", format=",.0f")],
        )
        .properties(height=220)
    )
    return to_vega_spec(chart)


def compute_pl(config: ReportConfig, ctx: Dict[str, Any]) -> Dict[str, Any]:
    table: RawTable = ctx.get("table") or RawTable(pd.DataFrame(), division=config.division)
    periods = list(config.periods)
    base = config.base_period
    keys = [period_key(p) for p in periods]

    rows: List[Dict[str, Any]] = []
    for line in PL_LINES:
        metrics: Dict[str, MetricResult] = {k: derive_metrics(table, line.ref, p) for k, p in zip(keys, periods)}
        base_amount = metrics[period_key(base)].amount if base is not None else None
        rows.append(
            {
                "key": line.key,
                "label": line.label,
                "row": line.row,
                "calculated": line.is_calculated,
                "is_ratio": line.formula is not None and line.formula.ratio_of is not None,
                "show_percent": line.show_percent,
                "show_per_kg": line.show_per_kg,
                "values": {k: asdict(m) for k, m in metrics.items()},
                "variance": {
                    k: (0.0 if idx == config.base_period_index else variance(m.amount, base_amount))
                    for idx, (k, m) in enumerate(metrics.items())
                },
            }
        )

    payload: Dict[str, Any] = {
        "config": asdict(config),
        "division": config.division,
        "base_period": period_key(base) if base is not None else None,
        "periods": [_period_meta(p) for p in periods],
        "rows": rows,
        "period_differences": period_differences(table, periods, config.base_period_index),
        "summary": _summary(table, base) if base is not None else {},
        "charts": {},
    }
    if periods and base is not None:
        payload["charts"]["sales_volume"] = _sales_volume_chart(table, periods)
        payload["charts"]["gross_margin_gauge"] = _margin_gauge(payload["summary"]["gross_margin_pct"], base)
        payload["charts"]["sales_trend"] = _sales_trend_chart(table, periods)
    return payload
