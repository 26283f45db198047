from __future__ import annotations

import logging
import math
from typing import Literal

import numpy as np
import pandas as pd
from fastapi import FastAPI, Query
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from api.schemas import MetaDivisionsResponse, MetaPeriodsResponse, ReportConfigModel
from kpi_engine.cells import RawTable
from kpi_engine.data import load_dashboard_data, prepare_context
from kpi_engine.export import build_html_report, chart_handles, customers_frame, pl_frame
from kpi_engine.filters import ReportConfig, normalize_config
from kpi_engine.report_customers import compute_customers
from kpi_engine.report_debug import compute_debug
from kpi_engine.report_pl import compute_pl


app = FastAPI(title="Sales KPI Dashboard API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

EXPORT_PAGES = {"pl", "customers", "report"}


def _config_from_model(model: ReportConfigModel, *, available_divisions: list[str]) -> ReportConfig:
    raw = model.model_dump()
    return normalize_config(raw, available_divisions=available_divisions)


def _json(data: object) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        )
    )


def _error(exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


@app.get("/meta/divisions", response_model=MetaDivisionsResponse)
def meta_divisions():
    try:
        data_ctx = load_dashboard_data()
        return _json({"divisions": list(data_ctx.get("divisions", []) or [])})
    except Exception as exc:
        logger.exception("meta_divisions failed")
        return _error(exc)


@app.get("/meta/periods", response_model=MetaPeriodsResponse)
def meta_periods(division: str = Query(default="")):
    try:
        data_ctx = load_dashboard_data()
        divisions = list(data_ctx.get("divisions", []) or [])
        division = division.strip().upper()
        if division not in divisions:
            division = divisions[0] if divisions else division
        table = (data_ctx.get("tables", {}) or {}).get(division) or RawTable(pd.DataFrame(), division=division)
        return _json({"division": division, "columns": table.available_columns()})
    except Exception as exc:
        logger.exception("meta_periods failed")
        return _error(exc)


@app.post("/pl")
def pl(config: ReportConfigModel):
    try:
        data_ctx = load_dashboard_data()
        cfg = _config_from_model(config, available_divisions=data_ctx.get("divisions", []))
        ctx = prepare_context(cfg, data_ctx)
        return _json(compute_pl(cfg, ctx))
    except Exception as exc:
        logger.exception("pl failed")
        return _error(exc)


@app.post("/customers")
def customers(config: ReportConfigModel):
    try:
        data_ctx = load_dashboard_data()
        cfg = _config_from_model(config, available_divisions=data_ctx.get("divisions", []))
        ctx = prepare_context(cfg, data_ctx)
        return _json(compute_customers(cfg, ctx))
    except Exception as exc:
        logger.exception("customers failed")
        return _error(exc)


@app.post("/debug")
def debug(config: ReportConfigModel):
    try:
        data_ctx = load_dashboard_data()
        cfg = _config_from_model(config, available_divisions=data_ctx.get("divisions", []))
        ctx = prepare_context(cfg, data_ctx)
        return _json(compute_debug(cfg, ctx))
    except Exception as exc:
        logger.exception("debug failed")
        return _error(exc)


@app.post("/export/{page}")
def export_page(
    page: str,
    config: ReportConfigModel,
    fmt: Literal["html", "csv"] = Query(default="html"),
):
    if page not in EXPORT_PAGES:
        return JSONResponse(status_code=404, content={"error": f"Unknown export page {page!r}", "type": "NotFound"})
    try:
        data_ctx = load_dashboard_data()
        cfg = _config_from_model(config, available_divisions=data_ctx.get("divisions", []))
        ctx = prepare_context(cfg, data_ctx)

        payloads = {}
        if page in {"pl", "report"}:
            payloads["pl"] = compute_pl(cfg, ctx)
        if page in {"customers", "report"}:
            payloads["customers"] = compute_customers(cfg, ctx)

        stem = f"{cfg.division or 'kpi'}_{page}".lower()
        if fmt == "csv":
            if page == "pl":
                export_df = pl_frame(payloads["pl"])
            elif page == "customers":
                export_df = customers_frame(payloads["customers"])
            else:
                export_df = pd.concat(
                    [pl_frame(payloads["pl"]).assign(section="pl"), customers_frame(payloads["customers"]).assign(section="customers")],
                    ignore_index=True,
                )
            csv_bytes = export_df.to_csv(index=False).encode("utf-8")
            return Response(
                content=csv_bytes,
                media_type="text/csv",
                headers={"Content-Disposition": f"attachment; filename={stem}.csv"},
            )

        charts = chart_handles(payloads.get("pl"), prefix="pl_") + chart_handles(payloads.get("customers"), prefix="customers_")
        html = build_html_report(f"{cfg.division} KPI report", payloads, charts)
        return Response(
            content=html.encode("utf-8"),
            media_type="text/html",
            headers={"Content-Disposition": f"attachment; filename={stem}.html"},
        )
    except Exception as exc:
        logger.exception("export failed")
        return _error(exc)
