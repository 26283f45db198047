from __future__ import annotations

import logging
import os
from decimal import ROUND_HALF_UP, Decimal
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pandas as pd

from kpi_engine.cells import CUSTOMER_COLUMNS, RawTable, build_customer_records
from kpi_engine.filters import ReportConfig, normalize_config


logger = logging.getLogger(__name__)

DATA_DIR = Path(os.environ.get("KPI_DATA_DIR") or Path(__file__).resolve().parents[1] / "data")
FILE_GLOB = "*.xlsx"

PL_SHEET = "PL"
CUSTOMER_VOLUME_SHEET = "Customers Volume"
CUSTOMER_AMOUNT_SHEET = "Customers Amount"

CUSTOMER_SHEET_COLUMNS = {
    "customer": "customer",
    "customer name": "customer",
    "name": "customer",
    "year": "year",
    "month": "month",
    "type": "type",
    "value": "value",
    "amount": "value",
    "volume": "value",
}


def get_source_files() -> List[Path]:
    return sorted(p for p in DATA_DIR.glob(FILE_GLOB) if not p.name.startswith("~$"))


def file_signature(files: List[Path]) -> Tuple[Tuple[str, float], ...]:
    return tuple((str(f), f.stat().st_mtime) for f in files)


def division_from_name(path: Path) -> str:
    return path.stem.strip().upper()


def _read_customer_sheet(xls: pd.ExcelFile, sheet: str) -> pd.DataFrame:
    df = pd.read_excel(xls, sheet_name=sheet)
    df = df.rename(columns=lambda c: CUSTOMER_SHEET_COLUMNS.get(str(c).strip().lower(), str(c).strip().lower()))
    df = df.loc[:, ~df.columns.duplicated()]
    missing = [c for c in CUSTOMER_COLUMNS if c not in df.columns]
    if missing:
        logger.warning("Sheet %r is missing columns %s; ignoring it", sheet, missing)
        return pd.DataFrame(columns=CUSTOMER_COLUMNS)
    return df[CUSTOMER_COLUMNS]


def load_workbook(path: Path) -> Dict[str, object]:
    division = division_from_name(path)
    out: Dict[str, object] = {
        "table": RawTable(pd.DataFrame(), division=division),
        "customer_volume": pd.DataFrame(columns=CUSTOMER_COLUMNS),
        "customer_amount": pd.DataFrame(columns=CUSTOMER_COLUMNS),
    }
    with pd.ExcelFile(path) as xls:
        sheets = set(xls.sheet_names)
        if PL_SHEET in sheets:
            out["table"] = RawTable(pd.read_excel(xls, sheet_name=PL_SHEET, header=None), division=division)
        else:
            logger.warning("%s has no %r sheet", path.name, PL_SHEET)
        for key, sheet in (("customer_volume", CUSTOMER_VOLUME_SHEET), ("customer_amount", CUSTOMER_AMOUNT_SHEET)):
            if sheet in sheets:
                out[key] = _read_customer_sheet(xls, sheet)
            else:
                logger.warning("%s has no %r sheet", path.name, sheet)
    return out


@lru_cache(maxsize=4)
def _load_dashboard_data_cached(files_sig: Tuple[Tuple[str, float], ...]) -> Dict[str, object]:
    tables: Dict[str, RawTable] = {}
    customer_volume: Dict[str, pd.DataFrame] = {}
    customer_amount: Dict[str, pd.DataFrame] = {}
    for name, _ in files_sig:
        path = Path(name)
        loaded = load_workbook(path)
        division = division_from_name(path)
        tables[division] = loaded["table"]  # type: ignore[assignment]
        customer_volume[division] = loaded["customer_volume"]  # type: ignore[assignment]
        customer_amount[division] = loaded["customer_amount"]  # type: ignore[assignment]
    logger.info("Loaded %d division workbook(s) from %s", len(tables), DATA_DIR)
    return {
        "files": [Path(name).name for name, _ in files_sig],
        "divisions": sorted(tables),
        "tables": tables,
        "customer_volume": customer_volume,
        "customer_amount": customer_amount,
    }


def load_dashboard_data() -> Dict[str, object]:
    files = get_source_files()
    if not files:
        logger.warning("No workbooks found in %s", DATA_DIR)
        return {"files": [], "divisions": [], "tables": {}, "customer_volume": {}, "customer_amount": {}}
    return _load_dashboard_data_cached(file_signature(files))


def prepare_context(config: dict | ReportConfig, data_ctx: Dict[str, object]) -> Dict[str, object]:
    """Resolve the division's grid and customer records for a report request."""
    divisions: List[str] = list(data_ctx.get("divisions", []) or [])  # type: ignore[call-overload]
    cfg = config if isinstance(config, ReportConfig) else normalize_config(config or {}, available_divisions=divisions)

    tables: Dict[str, RawTable] = data_ctx.get("tables", {}) or {}  # type: ignore[assignment]
    volume_frames: Dict[str, pd.DataFrame] = data_ctx.get("customer_volume", {}) or {}  # type: ignore[assignment]
    amount_frames: Dict[str, pd.DataFrame] = data_ctx.get("customer_amount", {}) or {}  # type: ignore[assignment]

    table = tables.get(cfg.division) or RawTable(pd.DataFrame(), division=cfg.division)
    return {
        "config": cfg,
        "divisions": divisions,
        "table": table,
        "volume_records": build_customer_records(volume_frames.get(cfg.division), cfg.periods),
        "amount_records": build_customer_records(amount_frames.get(cfg.division), cfg.periods),
    }


def round_half_up(value: object, ndigits: int = 0) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    q = Decimal(10) ** -ndigits
    return float(Decimal(str(value)).quantize(q, rounding=ROUND_HALF_UP))


def format_amount(value: object, decimals: int = 0) -> str:
    if value is None or pd.isna(value):
        return "N/A"
    return f"{round_half_up(value, decimals):,.{decimals}f}"


def format_millions(value: object, decimals: int = 2) -> str:
    if value is None or pd.isna(value):
        return "N/A"
    return f"{round_half_up(float(value) / 1_000_000, decimals):,.{decimals}f}M"


def format_percent(value: object, decimals: int = 1) -> str:
    """Format a value already expressed in percent."""
    if value is None or pd.isna(value):
        return "N/A"
    return f"{round_half_up(value, decimals):.{decimals}f}%"

