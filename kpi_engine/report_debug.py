from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

import pandas as pd

from kpi_engine.cells import HEADER_ROWS, RawTable, period_mask
from kpi_engine.filters import ReportConfig
from kpi_engine.ledger import PL_LINES
from kpi_engine.periods import period_key


def compute_debug(config: ReportConfig, ctx: Dict[str, Any]) -> Dict[str, Any]:
    table: RawTable = ctx.get("table") or RawTable(pd.DataFrame(), division=config.division)
    volume_records = ctx.get("volume_records", []) or []
    amount_records = ctx.get("amount_records", []) or []

    payload: Dict[str, Any] = {
        "config": asdict(config),
        "divisions": list(ctx.get("divisions", []) or []),
        "grid": {
            "rows": int(table.grid.shape[0]),
            "columns": int(table.grid.shape[1]),
            "data_rows": max(0, int(table.grid.shape[0]) - HEADER_ROWS),
            "empty": table.empty,
        },
        "available_columns": table.available_columns(),
        "period_coverage": [],
        "periods_without_data": [],
        "row_labels": [],
        "record_counts": {
            "volume_records": len(volume_records),
            "amount_records": len(amount_records),
        },
    }

    for p in config.periods:
        mask = period_mask(table.header, p) if not table.header.empty else pd.Series(dtype=bool)
        matched = int(mask.sum()) if not mask.empty else 0
        payload["period_coverage"].append({"key": period_key(p), "label": p.label, "matched_columns": matched})
        if matched == 0:
            payload["periods_without_data"].append(period_key(p))

    if not table.empty:
        payload["row_labels"] = [
            {"key": line.key, "row": line.row, "sheet_label": table.row_label(line.row)}
            for line in PL_LINES
            if line.row is not None
        ]
    return payload
