from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Optional

import altair as alt
import pandas as pd

from kpi_engine.charts import to_vega_spec
from kpi_engine.customers import (
    MAX_NAMES,
    ConcentrationRisk,
    CustomerFindings,
    Outlier,
    compute_customer_findings,
    display_name,
)
from kpi_engine.filters import ReportConfig
from kpi_engine.periods import period_key


OUTLIER_COLORS = {"EXTREME": "#ef4444", "MATERIAL": "#f59e0b", "EMERGING": "#3b82f6"}


def _named(items: List[Any]) -> List[Dict[str, Any]]:
    out = []
    for item in items:
        row = asdict(item)
        row["name"] = display_name(row["name"])
        out.append(row)
    return out


def _concentration_chart(conc: ConcentrationRisk) -> Optional[Dict[str, Any]]:
    if not conc.top_customers:
        return None
    df = pd.DataFrame(
        [{"customer": display_name(c.name), "share": c.share, "volume": c.volume} for c in conc.top_customers]
    )
    chart = (
        alt.Chart(df)
        .mark_bar(color="#288cfa")
        .encode(
            x=alt.X("share:Q", title="Share of volume", axis=alt.Axis(format=".0%")),
            y=alt.Y("customer:N", title=None, sort="-x"),
            tooltip=[
                alt.Tooltip("customer:N", title="Customer"),
                alt.Tooltip("share:Q", title="Share", format=".1%"),
                alt.Tooltip("volume:Q", title="Volume (kg)", format=",.0f"),
            ],
        )
        .properties(height=180, title=f"Concentration: {conc.level}")
    )
    return to_vega_spec(chart)


def _outlier_chart(outliers: List[Outlier]) -> Optional[Dict[str, Any]]:
    if not outliers:
        return None
    df = pd.DataFrame(
        [
            {
                "customer": display_name(o.name),
                "yoy_rate": o.yoy_rate,
                "z_score": o.z_score,
                "share": max(o.volume_share, o.amount_share),
                "category": o.category,
            }
            for o in outliers
        ]
    )
    chart = (
        alt.Chart(df)
        .mark_circle(opacity=0.8)
        .encode(
            x=alt.X("yoy_rate:Q", title="YoY growth %"),
            y=alt.Y("z_score:Q", title="z-score"),
            size=alt.Size("share:Q", legend=None),
            color=alt.Color(
                "category:N",
                scale=alt.Scale(domain=list(OUTLIER_COLORS), range=list(OUTLIER_COLORS.values())),
                title="Category",
            ),
            tooltip=[
                alt.Tooltip("customer:N", title="Customer"),
                alt.Tooltip("yoy_rate:Q", title="YoY %", format=".1f"),
                alt.Tooltip("z_score:Q", title="z", format=".2f"),
                alt.Tooltip("share:Q", title="Share", format=".1%"),
            ],
        )
        .properties(height=240)
    )
    return to_vega_spec(chart)


def _retention_payload(findings: CustomerFindings) -> Optional[Dict[str, Any]]:
    ret = findings.retention
    if ret is None:
        return None
    return {
        "retained_count": len(ret.retained),
        "lost_count": len(ret.lost),
        "new_count": len(ret.new),
        "declining_count": len(ret.declining),
        "total_previous_customers": ret.total_previous_customers,
        "retention_rate": ret.retention_rate,
        "churn_rate": ret.churn_rate,
        "retention_risk": ret.retention_risk,
        "lost": [display_name(n) for n in ret.lost[:MAX_NAMES]],
        "new": [display_name(n) for n in ret.new[:MAX_NAMES]],
        "declining": [display_name(n) for n in ret.declining[:MAX_NAMES]],
    }


def compute_customers(config: ReportConfig, ctx: Dict[str, Any]) -> Dict[str, Any]:
    base = config.base_period
    payload: Dict[str, Any] = {
        "config": asdict(config),
        "division": config.division,
        "base_period": period_key(base) if base is not None else None,
        "has_data": False,
        "charts": {},
    }
    findings = compute_customer_findings(
        ctx.get("volume_records", []) or [],
        ctx.get("amount_records", []) or [],
        config.periods,
        config.base_period_index,
        months_elapsed=config.months_elapsed,
        thresholds=config.thresholds,
    )
    if findings is None:
        return payload

    comparisons = sorted(findings.comparisons, key=lambda c: c.volume_actual, reverse=True)[: config.top_n]
    conc = asdict(findings.concentration)
    for c in conc["top_customers"]:
        c["name"] = display_name(c["name"])

    payload.update(
        {
            "has_data": True,
            "reference_periods": {
                "budget": period_key(config.periods[findings.budget_index]) if findings.budget_index >= 0 else None,
                "previous_year": period_key(config.periods[findings.previous_index]) if findings.previous_index >= 0 else None,
                "fy_budget": period_key(config.periods[findings.fy_budget_index]) if findings.fy_budget_index >= 0 else None,
            },
            "totals": findings.totals,
            "kpis": {
                "vs_budget": findings.vs_budget,
                "yoy": findings.yoy,
                "vs_budget_amount": findings.vs_budget_amount,
                "yoy_amount": findings.yoy_amount,
                "avg_kilo_rate": findings.avg_kilo_rate,
                "avg_kilo_rate_prev": findings.avg_kilo_rate_prev,
                "avg_kilo_rate_budget": findings.avg_kilo_rate_budget,
                "kilo_rate_yoy": findings.kilo_rate_yoy,
                "kilo_rate_vs_budget": findings.kilo_rate_vs_budget,
                "has_previous_year_data": findings.has_previous_year_data,
                "portfolio_remaining": findings.portfolio_remaining,
                "portfolio_per_month": findings.portfolio_per_month,
                "coverage_share": findings.coverage_share,
            },
            "run_rate": asdict(findings.run_rate) if findings.run_rate is not None else None,
            "concentration": conc,
            "retention": _retention_payload(findings),
            "outliers": _named(findings.outliers),
            "pvm": asdict(findings.pvm),
            "customers": _named(comparisons),
            "performers": {k: _named(v) for k, v in findings.performers.items()},
            "volume_advantage": _named(findings.volume_advantage),
            "sales_advantage": _named(findings.sales_advantage),
            "focus_customers": _named(findings.focus_customers),
            "growth_drivers": _named(findings.growth_drivers),
            "underperformers": _named(findings.underperformers),
            "stable": _named(findings.stable),
            "executive_summary": asdict(findings.executive_summary),
        }
    )
    charts = {
        "concentration": _concentration_chart(findings.concentration),
        "outliers": _outlier_chart(findings.outliers),
    }
    payload["charts"] = {k: v for k, v in charts.items() if v is not None}
    return payload
