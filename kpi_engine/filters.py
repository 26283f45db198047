from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from kpi_engine.periods import Period, ensure_unique


@dataclass(frozen=True)
class Thresholds:
    run_rate_tolerance: float = 0.85
    decline_lower: float = -0.9
    decline_upper: float = -0.3
    outlier_extreme_z: float = 3.0
    outlier_z: float = 2.0
    outlier_min_share: float = 0.02
    emerging_rate: float = 200.0
    outlier_limit: int = 8
    min_volume_share: float = 0.02
    min_volume_mt: float = 10.0
    min_performance_gap: float = 10.0


@dataclass(frozen=True)
class ReportConfig:
    division: str = ""
    periods: List[Period] = field(default_factory=list)
    base_period_index: int = 0
    top_n: int = 10
    months_elapsed: Optional[int] = None
    thresholds: Thresholds = field(default_factory=Thresholds)

    @property
    def base_period(self) -> Optional[Period]:
        if 0 <= self.base_period_index < len(self.periods):
            return self.periods[self.base_period_index]
        return None


def _as_periods(values: Optional[Iterable[object]]) -> List[Period]:
    if not values:
        return []
    out: List[Period] = []
    for v in values:
        if isinstance(v, Period):
            out.append(v)
            continue
        if not isinstance(v, dict):
            continue
        try:
            out.append(Period.from_dict(v))
        except Exception:
            continue
    return ensure_unique(out)


def _as_float(raw: dict, key: str, default: float) -> float:
    try:
        return float(raw.get(key, default))
    except Exception:
        return default


def normalize_config(raw: dict, *, available_divisions: Optional[List[str]] = None) -> ReportConfig:
    available_divisions = [str(d).upper() for d in (available_divisions or [])]

    division = str(raw.get("division") or "").strip().upper()
    if available_divisions and division not in available_divisions:
        division = available_divisions[0]

    periods = _as_periods(raw.get("periods"))

    base_index = raw.get("base_period_index", 0)
    try:
        base_index = int(base_index)
    except Exception:
        base_index = 0
    base_index = max(0, min(len(periods) - 1, base_index)) if periods else 0

    top_n = raw.get("top_n", 10)
    try:
        top_n = int(top_n)
    except Exception:
        top_n = 10
    top_n = max(1, min(100, top_n))

    months_elapsed = raw.get("months_elapsed")
    try:
        months_elapsed = max(0, min(12, int(months_elapsed))) if months_elapsed is not None else None
    except Exception:
        months_elapsed = None

    t = raw.get("thresholds") or {}
    defaults = Thresholds()
    thresholds = Thresholds(
        run_rate_tolerance=_as_float(t, "run_rate_tolerance", defaults.run_rate_tolerance),
        decline_lower=_as_float(t, "decline_lower", defaults.decline_lower),
        decline_upper=_as_float(t, "decline_upper", defaults.decline_upper),
        outlier_extreme_z=_as_float(t, "outlier_extreme_z", defaults.outlier_extreme_z),
        outlier_z=_as_float(t, "outlier_z", defaults.outlier_z),
        outlier_min_share=_as_float(t, "outlier_min_share", defaults.outlier_min_share),
        emerging_rate=_as_float(t, "emerging_rate", defaults.emerging_rate),
        outlier_limit=max(1, int(_as_float(t, "outlier_limit", defaults.outlier_limit))),
        min_volume_share=_as_float(t, "min_volume_share", defaults.min_volume_share),
        min_volume_mt=_as_float(t, "min_volume_mt", defaults.min_volume_mt),
        min_performance_gap=_as_float(t, "min_performance_gap", defaults.min_performance_gap),
    )

    return ReportConfig(
        division=division,
        periods=periods,
        base_period_index=base_index,
        top_n=top_n,
        months_elapsed=months_elapsed,
        thresholds=thresholds,
    )
