from __future__ import annotations

import html
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

import pandas as pd

from kpi_engine.data import format_amount, format_millions, format_percent


VEGA_SCRIPTS = (
    "https://cdn.jsdelivr.net/npm/vega@5",
    "https://cdn.jsdelivr.net/npm/vega-lite@5",
    "https://cdn.jsdelivr.net/npm/vega-embed@6",
)
VOLUME_LINES = {"sales_volume", "production_volume"}


@dataclass(frozen=True)
class ChartHandle:
    """A rendered Vega-Lite spec handed to the exporter."""

    name: str
    spec: Dict[str, Any] = field(default_factory=dict)
    title: str = ""


def chart_handles(payload: Optional[Mapping[str, Any]], prefix: str = "") -> List[ChartHandle]:
    charts = (payload or {}).get("charts") or {}
    return [
        ChartHandle(name=f"{prefix}{name}", spec=spec, title=name.replace("_", " ").title())
        for name, spec in charts.items()
        if spec
    ]


def _card(label: str, value: str) -> str:
    return f"<div class='card'><div class='kpi-title'>{html.escape(label)}</div><div class='kpi-value'>{html.escape(value)}</div></div>"


def _list(title: str, items: Sequence[str]) -> str:
    if not items:
        return ""
    lis = "".join(f"<li>{html.escape(str(i))}</li>" for i in items)
    return f"<div class='card'><div class='kpi-title'>{html.escape(title)}</div><ul>{lis}</ul></div>"


def _pl_section(payload: Mapping[str, Any]) -> str:
    summary = payload.get("summary") or {}
    cards = "".join(
        [
            _card("Sales", format_millions(summary.get("sales"))),
            _card("Sales volume (kg)", format_amount(summary.get("sales_volume"))),
            _card("Gross margin", format_percent(summary.get("gross_margin_pct"))),
            _card("Net profit", format_millions(summary.get("net_profit"))),
            _card("EBITDA", format_millions(summary.get("ebitda"))),
        ]
    )
    periods = payload.get("periods") or []
    base_key = payload.get("base_period")
    head = "".join(f"<th>{html.escape(p['label'])}</th>" for p in periods)
    body = []
    for row in payload.get("rows") or []:
        cells = []
        for p in periods:
            value = (row.get("values") or {}).get(p["key"], {}).get("amount")
            text = format_amount(value) if row["key"] in VOLUME_LINES else format_millions(value)
            if row.get("is_ratio"):
                text = format_percent(value)
            if p["key"] != base_key:
                text += f" <span class='muted'>({format_percent((row.get('variance') or {}).get(p['key']))})</span>"
            cells.append(f"<td>{text}</td>")
        body.append(f"<tr><td>{html.escape(row['label'])}</td>{''.join(cells)}</tr>")
    return (
        f"<div class='section'><h2>Profit &amp; Loss {html.escape(str(payload.get('division') or ''))}</h2>"
        f"<div class='grid'>{cards}</div>"
        f"<table><thead><tr><th>Line</th>{head}</tr></thead><tbody>{''.join(body)}</tbody></table></div>"
    )


def _customers_section(payload: Mapping[str, Any]) -> str:
    if not payload.get("has_data"):
        return "<div class='section'><h2>Customers</h2><p class='muted'>No customer data for the selected periods.</p></div>"
    kpis = payload.get("kpis") or {}
    summary = payload.get("executive_summary") or {}
    retention = payload.get("retention") or {}
    concentration = payload.get("concentration") or {}
    cards = "".join(
        [
            _card("Portfolio health", str(summary.get("portfolio_health", "N/A"))),
            _card("Volume vs budget", format_percent(kpis.get("vs_budget"))),
            _card("Volume YoY", format_percent(kpis.get("yoy"))),
            _card("Concentration", str(concentration.get("level", "N/A"))),
            _card(
                "Churn rate",
                format_percent(retention["churn_rate"] * 100) if retention.get("churn_rate") is not None else "N/A",
            ),
        ]
    )
    outlier_rows = "".join(
        f"<tr><td>{html.escape(o['name'])}</td><td>{o['category']}</td>"
        f"<td>{format_percent(o['yoy_rate'])}</td><td>{o['z_score']:.2f}</td></tr>"
        for o in payload.get("outliers") or []
    )
    outliers = (
        f"<table><thead><tr><th>Customer</th><th>Category</th><th>YoY</th><th>z</th></tr></thead><tbody>{outlier_rows}</tbody></table>"
        if outlier_rows
        else ""
    )
    lists = _list("Key risks", summary.get("key_risks") or []) + _list("Opportunities", summary.get("opportunities") or [])
    return f"<div class='section'><h2>Customers</h2><div class='grid'>{cards}</div><div class='grid'>{lists}</div>{outliers}</div>"


def build_html_report(
    title: str, payloads: Mapping[str, Mapping[str, Any]], charts: Sequence[ChartHandle] = ()
) -> str:
    sections = []
    if payloads.get("pl"):
        sections.append(_pl_section(payloads["pl"]))
    if payloads.get("customers"):
        sections.append(_customers_section(payloads["customers"]))

    chart_divs = []
    embeds = []
    for i, chart in enumerate(charts):
        div_id = f"chart-{i}"
        chart_divs.append(
            f"<div class='section card'><div class='kpi-title'>{html.escape(chart.title or chart.name)}</div><div id='{div_id}'></div></div>"
        )
        embeds.append(f"vegaEmbed('#{div_id}', {json.dumps(chart.spec, default=str)}, {{actions: false}});")
    scripts = "".join(f"<script src='{src}'></script>" for src in VEGA_SCRIPTS) if charts else ""

    return f"""<!DOCTYPE html>
<html lang='en'>
<head>
  <meta charset='utf-8'>
  <meta name='viewport' content='width=device-width,initial-scale=1'>
  <title>{html.escape(title)}</title>
  {scripts}
  <style>
    body {{ font-family: Inter, system-ui, -apple-system, Segoe UI, Roboto, Arial; margin: 24px; }}
    .grid {{ display: grid; grid-template-columns: repeat(5, 1fr); gap: 16px; margin-bottom: 16px; }}
    .card {{ border: 1px solid #e5e7eb; border-radius: 12px; padding: 16px; box-shadow: 0 1px 2px rgba(0,0,0,0.06); }}
    .title {{ font-size: 28px; font-weight: 700; margin-bottom: 6px; }}
    .kpi-title {{ color: #6b7280; font-size: 13px; margin-bottom: 4px; }}
    .kpi-value {{ font-size: 22px; font-weight: 700; }}
    .section {{ margin-top: 24px; }}
    .muted {{ color: #6b7280; font-size: 12px; }}
    table {{ border-collapse: collapse; width: 100%; font-size: 13px; }}
    th, td {{ border-bottom: 1px solid #e5e7eb; padding: 6px 8px; text-align: right; }}
    th:first-child, td:first-child {{ text-align: left; }}
  </style>
</head>
<body>
  <div class='title'>{html.escape(title)}</div>
  {''.join(sections)}
  {''.join(chart_divs)}
  <script>{''.join(embeds)}</script>
</body>
</html>
"""


def pl_frame(payload: Mapping[str, Any]) -> pd.DataFrame:
    columns = ["line", "label", "period", "amount", "percent_of_sales", "per_kg", "variance_vs_base"]
    records = []
    labels = {p["key"]: p["label"] for p in payload.get("periods") or []}
    for row in payload.get("rows") or []:
        for key, values in (row.get("values") or {}).items():
            records.append(
                {
                    "line": row["key"],
                    "label": row["label"],
                    "period": labels.get(key, key),
                    "amount": values.get("amount"),
                    "percent_of_sales": values.get("percent_of_sales"),
                    "per_kg": values.get("per_kg"),
                    "variance_vs_base": (row.get("variance") or {}).get(key),
                }
            )
    return pd.DataFrame(records, columns=columns)


def customers_frame(payload: Mapping[str, Any]) -> pd.DataFrame:
    rows = payload.get("customers") or []
    if not rows:
        return pd.DataFrame(columns=["name"])
    df = pd.DataFrame(rows)
    outlier_category = {o["name"]: o["category"] for o in payload.get("outliers") or []}
    df["outlier"] = df["name"].map(outlier_category)
    return df
