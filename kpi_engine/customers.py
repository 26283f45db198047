from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from kpi_engine.cells import CustomerRecord, records_total
from kpi_engine.filters import Thresholds
from kpi_engine.metrics import RunRateInfo, run_rate, safe_ratio, variance
from kpi_engine.periods import (
    Period,
    find_budget_index,
    find_fy_budget_index,
    find_previous_year_index,
    find_ytd_index,
    months_elapsed_for,
)


CUM_SHARE_TARGET = 0.80
TOP_SHARE_MIN = 0.05
MAX_FOCUS = 10
MAX_LIST = 6
MAX_NAMES = 5
TOP_PERFORMERS = 5
ADVANTAGE_LIMIT = 3
KILO_RATE_MIN_SHARE = 0.01

GROWTH_VS_BUDGET = 15.0
GROWTH_YOY = 20.0
UNDERPERF_VS_BUDGET = -15.0
UNDERPERF_YOY = -10.0

_MERGE_MARK = re.compile(r"\*+$")


def name_key(name: object) -> str:
    """Case-insensitive identity of a customer, ignoring a trailing merge marker."""
    return _MERGE_MARK.sub("", str(name or "").strip()).strip().lower()


def display_name(name: object) -> str:
    stripped = _MERGE_MARK.sub("", str(name or "").strip()).strip()
    return " ".join(w[:1].upper() + w[1:] for w in stripped.lower().split(" "))


def kilo_rate(amount: float, volume: float) -> float:
    """Amount per metric ton for a volume expressed in kg."""
    return amount / (volume / 1000) if volume > 0 else 0.0


def _merged_values(records: Sequence[CustomerRecord], index: int) -> Dict[str, Tuple[str, float]]:
    out: Dict[str, Tuple[str, float]] = {}
    if index < 0:
        return out
    for r in records:
        key = name_key(r.name)
        name, value = out.get(key, (r.name, 0.0))
        out[key] = (name, value + r.value_at(index))
    return out


# ---------------- Concentration ----------------
@dataclass(frozen=True)
class RankedCustomer:
    name: str
    volume: float
    share: float


@dataclass(frozen=True)
class ConcentrationTrend:
    top1_change: float
    top3_change: float
    customer_count_change: int
    direction: str


@dataclass(frozen=True)
class ConcentrationRisk:
    level: str
    customer_count: int
    total_customers: int
    top1_share: float
    top3_share: float
    top5_share: float
    avg_volume_per_customer: float
    top_customers: List[RankedCustomer] = field(default_factory=list)
    trend: Optional[ConcentrationTrend] = None


def concentration_level(top1_share: float, top3_share: float) -> str:
    if top1_share > 0.5:
        return "CRITICAL"
    if top1_share > 0.3 or top3_share > 0.7:
        return "HIGH"
    if top1_share > 0.2 or top3_share > 0.5:
        return "MEDIUM"
    return "LOW"


def _ranked(records: Sequence[CustomerRecord], index: int) -> List[RankedCustomer]:
    merged = [(name, value) for name, value in _merged_values(records, index).values() if value > 0]
    total = sum(v for _, v in merged)
    ranked = sorted(merged, key=lambda nv: nv[1], reverse=True)
    return [RankedCustomer(name=n, volume=v, share=safe_ratio(v, total)) for n, v in ranked]


def _top_share(ranked: List[RankedCustomer], n: int) -> float:
    return min(1.0, sum(c.share for c in ranked[:n]))


def concentration(
    records: Sequence[CustomerRecord], index: int, *, previous_index: int = -1
) -> ConcentrationRisk:
    ranked = _ranked(records, index)
    top1, top3, top5 = _top_share(ranked, 1), _top_share(ranked, 3), _top_share(ranked, 5)
    total = sum(c.volume for c in ranked)

    trend = None
    if previous_index >= 0:
        prev_ranked = _ranked(records, previous_index)
        if prev_ranked:
            top3_change = top3 - _top_share(prev_ranked, 3)
            if top3_change > 0.05:
                direction = "INCREASING"
            elif top3_change < -0.05:
                direction = "DECREASING"
            else:
                direction = "STABLE"
            trend = ConcentrationTrend(
                top1_change=top1 - _top_share(prev_ranked, 1),
                top3_change=top3_change,
                customer_count_change=len(ranked) - len(prev_ranked),
                direction=direction,
            )

    return ConcentrationRisk(
        level=concentration_level(top1, top3),
        customer_count=len(ranked),
        total_customers=len(records),
        top1_share=top1,
        top3_share=top3,
        top5_share=top5,
        avg_volume_per_customer=safe_ratio(total, len(ranked)),
        top_customers=ranked[:TOP_PERFORMERS],
        trend=trend,
    )


# ---------------- Retention ----------------
@dataclass(frozen=True)
class RetentionAnalysis:
    retained: List[str]
    lost: List[str]
    new: List[str]
    declining: List[str]
    total_previous_customers: int
    retention_rate: float
    churn_rate: float
    retention_risk: str


def retention(
    records: Sequence[CustomerRecord],
    current_index: int,
    previous_index: int,
    thresholds: Thresholds = Thresholds(),
) -> RetentionAnalysis:
    prev = {k: nv for k, nv in _merged_values(records, previous_index).items() if nv[1] > 0}
    cur = {k: nv for k, nv in _merged_values(records, current_index).items() if nv[1] > 0}

    retained = [nv[0] for k, nv in prev.items() if k in cur]
    lost = [nv[0] for k, nv in prev.items() if k not in cur]
    new = [nv[0] for k, nv in cur.items() if k not in prev]

    declines = []
    for k, (name, value) in cur.items():
        if k not in prev:
            continue
        change = (value - prev[k][1]) / prev[k][1]
        if thresholds.decline_lower < change < thresholds.decline_upper:
            declines.append((change, name))
    declines.sort(key=lambda cn: cn[0])

    total_prev = len(prev)
    churn = safe_ratio(len(lost), total_prev)
    if churn >= 0.3:
        risk = "HIGH"
    elif churn >= 0.15:
        risk = "MEDIUM"
    else:
        risk = "LOW"
    return RetentionAnalysis(
        retained=retained,
        lost=lost,
        new=new,
        declining=[name for _, name in declines],
        total_previous_customers=total_prev,
        retention_rate=safe_ratio(len(retained), total_prev),
        churn_rate=churn,
        retention_risk=risk,
    )


# ---------------- Outliers ----------------
@dataclass(frozen=True)
class Outlier:
    name: str
    yoy_rate: float
    z_score: float
    volume: float
    volume_share: float
    amount_share: float
    category: str
    priority: float


def growth_stats(rates: Sequence[float]) -> Tuple[float, float]:
    """Mean and sample standard deviation (n-1) of growth rates; std is 0 below two samples."""
    if not rates:
        return 0.0, 0.0
    arr = np.asarray(rates, dtype=float)
    mean = float(arr.mean())
    std = float(arr.std(ddof=1)) if len(arr) > 1 else 0.0
    return mean, std


def detect_outliers(
    records: Sequence[CustomerRecord],
    current_index: int,
    previous_index: int,
    *,
    amount_shares: Optional[Dict[str, float]] = None,
    thresholds: Thresholds = Thresholds(),
) -> List[Outlier]:
    if current_index < 0 or previous_index < 0:
        return []
    amount_shares = amount_shares or {}
    total = records_total(records, current_index)

    growth: List[Tuple[CustomerRecord, float]] = []
    for r in records:
        prev = r.value_at(previous_index)
        if prev > 0:
            growth.append((r, variance(r.value_at(current_index), prev) or 0.0))
    mean, std = growth_stats([rate for _, rate in growth])

    out: List[Outlier] = []
    for r, rate in growth:
        z = abs(rate - mean) / std if std > 0 else 0.0
        cur = r.value_at(current_index)
        volume_share = safe_ratio(cur, total)
        amount_share = amount_shares.get(name_key(r.name), 0.0)
        max_share = max(volume_share, amount_share)
        if z > thresholds.outlier_extreme_z:
            category, priority = "EXTREME", z * 100 + max_share * 1000
        elif z > thresholds.outlier_z and max_share >= thresholds.outlier_min_share:
            category, priority = "MATERIAL", z * max_share * 1000
        elif z > thresholds.outlier_z and abs(rate) > thresholds.emerging_rate:
            category, priority = "EMERGING", z * abs(rate) * 0.1
        else:
            continue
        out.append(
            Outlier(
                name=r.name,
                yoy_rate=rate,
                z_score=z,
                volume=cur,
                volume_share=volume_share,
                amount_share=amount_share,
                category=category,
                priority=priority,
            )
        )
    out.sort(key=lambda o: o.priority, reverse=True)
    return out[: thresholds.outlier_limit]


# ---------------- Price / volume / mix ----------------
@dataclass(frozen=True)
class PVMResult:
    available: bool
    basis: Optional[str]
    price_effect: float
    volume_effect: float
    mix_effect: float = 0.0
    mix_available: bool = False
    avg_price_current: float = 0.0
    avg_price_base: float = 0.0


def price_volume_mix(
    volume_current: float,
    amount_current: float,
    *,
    volume_previous: float = 0.0,
    amount_previous: float = 0.0,
    volume_budget: float = 0.0,
    amount_budget: float = 0.0,
) -> PVMResult:
    """Price and volume effects in percent; the mix effect needs SKU detail and is never computed."""
    if volume_current <= 0 or amount_current <= 0:
        return PVMResult(available=False, basis=None, price_effect=0.0, volume_effect=0.0)
    if volume_previous > 0 and amount_previous > 0:
        basis, volume_base, amount_base = "previous_year", volume_previous, amount_previous
    elif volume_budget > 0 and amount_budget > 0:
        basis, volume_base, amount_base = "budget", volume_budget, amount_budget
    else:
        return PVMResult(available=False, basis=None, price_effect=0.0, volume_effect=0.0)

    price_cur = kilo_rate(amount_current, volume_current)
    price_base = kilo_rate(amount_base, volume_base)
    return PVMResult(
        available=True,
        basis=basis,
        price_effect=(price_cur - price_base) / price_base * 100,
        volume_effect=(volume_current - volume_base) / volume_base * 100,
        avg_price_current=price_cur,
        avg_price_base=price_base,
    )


# ---------------- Volume vs amount per customer ----------------
@dataclass(frozen=True)
class CustomerComparison:
    name: str
    volume_actual: float
    amount_actual: float
    volume_budget: float
    amount_budget: float
    volume_prev: float
    amount_prev: float
    kilo_rate: float
    kilo_rate_prev: float
    kilo_rate_budget: float
    volume_vs_budget: Optional[float]
    amount_vs_budget: Optional[float]
    volume_yoy: Optional[float]
    amount_yoy: Optional[float]
    kilo_rate_yoy: Optional[float]
    kilo_rate_vs_budget: Optional[float]


def compare_customers(
    volume_records: Sequence[CustomerRecord],
    amount_records: Sequence[CustomerRecord],
    base_index: int,
    budget_index: int = -1,
    previous_index: int = -1,
) -> List[CustomerComparison]:
    volumes = {name_key(r.name): r for r in volume_records}
    out: List[CustomerComparison] = []
    for amount_row in amount_records:
        volume_row = volumes.get(name_key(amount_row.name))
        if volume_row is None:
            continue
        va, aa = volume_row.value_at(base_index), amount_row.value_at(base_index)
        vb, ab = volume_row.value_at(budget_index), amount_row.value_at(budget_index)
        vp, ap = volume_row.value_at(previous_index), amount_row.value_at(previous_index)
        kr, krp, krb = kilo_rate(aa, va), kilo_rate(ap, vp), kilo_rate(ab, vb)
        out.append(
            CustomerComparison(
                name=amount_row.name,
                volume_actual=va,
                amount_actual=aa,
                volume_budget=vb,
                amount_budget=ab,
                volume_prev=vp,
                amount_prev=ap,
                kilo_rate=kr,
                kilo_rate_prev=krp,
                kilo_rate_budget=krb,
                volume_vs_budget=variance(va, vb),
                amount_vs_budget=variance(aa, ab),
                volume_yoy=variance(va, vp),
                amount_yoy=variance(aa, ap),
                kilo_rate_yoy=variance(kr, krp),
                kilo_rate_vs_budget=variance(kr, krb),
            )
        )
    return out


def advantage_customers(
    comparisons: Sequence[CustomerComparison],
    total_volume: float,
    *,
    kind: str = "volume",
    thresholds: Thresholds = Thresholds(),
    limit: int = ADVANTAGE_LIMIT,
) -> List[CustomerComparison]:
    """Customers whose volume-vs-budget outpaces amount-vs-budget (``kind="volume"``) or the reverse."""

    def gap(c: CustomerComparison) -> float:
        if kind == "volume":
            return c.volume_vs_budget - c.amount_vs_budget  # type: ignore[operator]
        return c.amount_vs_budget - c.volume_vs_budget  # type: ignore[operator]

    qualified = [
        c
        for c in comparisons
        if c.volume_vs_budget is not None
        and c.amount_vs_budget is not None
        and gap(c) > thresholds.min_performance_gap
        and safe_ratio(c.volume_actual, total_volume) >= thresholds.min_volume_share
        and c.volume_actual / 1000 >= thresholds.min_volume_mt
    ]
    return sorted(qualified, key=gap, reverse=True)[:limit]


# ---------------- Performers and focus lists ----------------
@dataclass(frozen=True)
class Performer:
    name: str
    value: float
    share: float
    yoy: Optional[float] = None


def top_performers(
    volume_records: Sequence[CustomerRecord],
    comparisons: Sequence[CustomerComparison],
    base_index: int,
    previous_index: int = -1,
) -> Dict[str, List[Performer]]:
    total_volume = records_total(volume_records, base_index)
    total_amount = sum(c.amount_actual for c in comparisons)

    by_volume = sorted(
        (r for r in volume_records if r.value_at(base_index) > 0),
        key=lambda r: r.value_at(base_index),
        reverse=True,
    )[:TOP_PERFORMERS]
    by_sales = sorted((c for c in comparisons if c.amount_actual > 0), key=lambda c: c.amount_actual, reverse=True)
    by_rate = sorted(
        (c for c in comparisons if c.kilo_rate > 0 and c.volume_actual > total_volume * KILO_RATE_MIN_SHARE),
        key=lambda c: c.kilo_rate,
        reverse=True,
    )
    return {
        "volume": [
            Performer(
                name=r.name,
                value=r.value_at(base_index),
                share=safe_ratio(r.value_at(base_index), total_volume) * 100,
                yoy=variance(r.value_at(base_index), r.value_at(previous_index)) if previous_index >= 0 else None,
            )
            for r in by_volume
        ],
        "sales": [
            Performer(name=c.name, value=c.amount_actual, share=safe_ratio(c.amount_actual, total_amount) * 100, yoy=c.amount_yoy)
            for c in by_sales[:TOP_PERFORMERS]
        ],
        "kilo_rate": [
            Performer(name=c.name, value=c.kilo_rate, share=safe_ratio(c.volume_actual, total_volume) * 100, yoy=c.kilo_rate_yoy)
            for c in by_rate[:TOP_PERFORMERS]
        ],
    }


@dataclass(frozen=True)
class FocusCustomer:
    name: str
    actual: float
    budget: float
    prev: float
    vs_budget: Optional[float]
    yoy: Optional[float]
    share: float
    priority_score: float
    catch_up_required: float


def focus_customers(
    volume_records: Sequence[CustomerRecord],
    base_index: int,
    budget_index: int,
    previous_index: int,
    months_remaining: int,
) -> List[FocusCustomer]:
    """Largest customers by volume until 80% of volume is covered (at most ten),
    ordered by materiality x variance."""
    total = records_total(volume_records, base_index)
    scored: List[FocusCustomer] = []
    for r in volume_records:
        actual, budget, prev = r.value_at(base_index), r.value_at(budget_index), r.value_at(previous_index)
        if actual <= 0 and budget <= 0:
            continue
        vs_budget, yoy = variance(actual, budget), variance(actual, prev)
        share = safe_ratio(actual, total)
        scored.append(
            FocusCustomer(
                name=r.name,
                actual=actual,
                budget=budget,
                prev=prev,
                vs_budget=vs_budget,
                yoy=yoy,
                share=share,
                priority_score=share * 100 * (abs(vs_budget or 0) + abs(yoy or 0)),
                catch_up_required=(budget - actual) / months_remaining if months_remaining > 0 and budget > actual else 0.0,
            )
        )
    scored.sort(key=lambda c: c.actual, reverse=True)

    chosen: List[FocusCustomer] = []
    cumulative = 0.0
    for c in scored:
        if len(chosen) >= MAX_FOCUS:
            break
        # small customers only join while coverage is still short
        if c.share < TOP_SHARE_MIN and cumulative >= CUM_SHARE_TARGET:
            break
        chosen.append(c)
        cumulative += c.share
    return sorted(chosen, key=lambda c: c.priority_score, reverse=True)


def categorize_focus(focus: Sequence[FocusCustomer]) -> Dict[str, List[FocusCustomer]]:
    growth = [
        c for c in focus
        if (c.vs_budget is not None and c.vs_budget >= GROWTH_VS_BUDGET) or (c.yoy is not None and c.yoy >= GROWTH_YOY)
    ][:MAX_LIST]
    under = [
        c for c in focus
        if (c.vs_budget is not None and c.vs_budget <= UNDERPERF_VS_BUDGET) or (c.yoy is not None and c.yoy <= UNDERPERF_YOY)
    ][:MAX_LIST]
    flagged = {c.name for c in growth} | {c.name for c in under}
    stable = [c for c in focus if c.name not in flagged][:MAX_LIST]
    return {"growth_drivers": growth, "underperformers": under, "stable": stable}


# ---------------- Findings ----------------
@dataclass(frozen=True)
class ExecutiveSummary:
    portfolio_health: str
    key_risks: List[str]
    opportunities: List[str]


@dataclass(frozen=True)
class CustomerFindings:
    base_index: int
    budget_index: int
    previous_index: int
    fy_budget_index: int
    totals: Dict[str, float]
    vs_budget: Optional[float]
    yoy: Optional[float]
    vs_budget_amount: Optional[float]
    yoy_amount: Optional[float]
    avg_kilo_rate: float
    avg_kilo_rate_prev: float
    avg_kilo_rate_budget: float
    kilo_rate_yoy: Optional[float]
    kilo_rate_vs_budget: Optional[float]
    has_previous_year_data: bool
    run_rate: Optional[RunRateInfo]
    portfolio_remaining: float
    portfolio_per_month: float
    concentration: ConcentrationRisk
    retention: Optional[RetentionAnalysis]
    outliers: List[Outlier]
    pvm: PVMResult
    comparisons: List[CustomerComparison]
    performers: Dict[str, List[Performer]]
    volume_advantage: List[CustomerComparison]
    sales_advantage: List[CustomerComparison]
    focus_customers: List[FocusCustomer]
    growth_drivers: List[FocusCustomer]
    underperformers: List[FocusCustomer]
    stable: List[FocusCustomer]
    coverage_share: float
    executive_summary: ExecutiveSummary


def _portfolio_health(vs_budget: Optional[float]) -> str:
    if vs_budget is None:
        return "UNKNOWN"
    if vs_budget >= 0:
        return "ON_TRACK"
    if vs_budget >= -10:
        return "AT_RISK"
    return "UNDERPERFORMING"


def compute_customer_findings(
    volume_records: Sequence[CustomerRecord],
    amount_records: Sequence[CustomerRecord],
    periods: Sequence[Period],
    base_index: int,
    *,
    months_elapsed: Optional[int] = None,
    thresholds: Thresholds = Thresholds(),
    today: Optional[date] = None,
) -> Optional[CustomerFindings]:
    if not volume_records or not periods or not 0 <= base_index < len(periods):
        return None

    budget_index = find_budget_index(periods, base_index)
    previous_index = find_previous_year_index(periods, base_index)
    fy_budget_index = find_fy_budget_index(periods, base_index)
    # run-rate only from a January-anchored actual column
    ytd_index = find_ytd_index(periods, base_index)

    totals = {
        "volume_actual": records_total(volume_records, base_index),
        "volume_budget": records_total(volume_records, budget_index),
        "volume_prev": records_total(volume_records, previous_index),
        "volume_fy_budget": records_total(volume_records, fy_budget_index),
        "volume_ytd": records_total(volume_records, ytd_index),
        "amount_actual": records_total(amount_records, base_index),
        "amount_budget": records_total(amount_records, budget_index),
        "amount_prev": records_total(amount_records, previous_index),
        "amount_fy_budget": records_total(amount_records, fy_budget_index),
    }
    avg_rate = kilo_rate(totals["amount_actual"], totals["volume_actual"])
    avg_rate_prev = kilo_rate(totals["amount_prev"], totals["volume_prev"])
    avg_rate_budget = kilo_rate(totals["amount_budget"], totals["volume_budget"])

    if months_elapsed is None:
        months_elapsed = months_elapsed_for(periods[ytd_index if ytd_index >= 0 else base_index], today)
    months_remaining = max(0, min(12, 12 - months_elapsed))
    rr: Optional[RunRateInfo] = None
    remaining = per_month = 0.0
    if ytd_index >= 0:
        rr = run_rate(
            totals["volume_ytd"],
            months_elapsed,
            full_year_budget=totals["volume_fy_budget"],
            period_budget=records_total(volume_records, find_budget_index(periods, ytd_index)),
            tolerance=thresholds.run_rate_tolerance,
        )
        months_remaining = rr.months_remaining
        remaining = max(0.0, rr.required_run_rate - totals["volume_ytd"])
        per_month = remaining / months_remaining if months_remaining > 0 else remaining

    comparisons = compare_customers(volume_records, amount_records, base_index, budget_index, previous_index)
    amount_shares = {
        name_key(c.name): safe_ratio(c.amount_actual, totals["amount_actual"]) for c in comparisons
    }
    outliers = detect_outliers(
        volume_records, base_index, previous_index, amount_shares=amount_shares, thresholds=thresholds
    )
    pvm = price_volume_mix(
        totals["volume_actual"],
        totals["amount_actual"],
        volume_previous=totals["volume_prev"],
        amount_previous=totals["amount_prev"],
        volume_budget=totals["volume_budget"],
        amount_budget=totals["amount_budget"],
    )
    conc = concentration(volume_records, base_index, previous_index=previous_index)
    ret = retention(volume_records, base_index, previous_index, thresholds) if previous_index >= 0 else None

    focus = focus_customers(volume_records, base_index, budget_index, previous_index, months_remaining)
    groups = categorize_focus(focus)
    volume_adv = advantage_customers(comparisons, totals["volume_actual"], kind="volume", thresholds=thresholds)
    sales_adv = advantage_customers(comparisons, totals["volume_actual"], kind="sales", thresholds=thresholds)

    vs_budget = variance(totals["volume_actual"], totals["volume_budget"])
    risks: List[str] = []
    if conc.level in ("HIGH", "CRITICAL"):
        risks.append("High customer concentration")
    if ret is not None and ret.churn_rate > 0.2:
        risks.append("High lost customers rate")
    if ret is not None and ret.declining:
        risks.append(f"{len(ret.declining)} customers declining significantly")
    if len(groups["underperformers"]) > len(focus) * 0.4:
        risks.append("Multiple underperforming customers")
    if rr is not None and not rr.is_on_track:
        risks.append("Behind FY budget pace")
    opportunities: List[str] = []
    if groups["growth_drivers"]:
        opportunities.append(f"{len(groups['growth_drivers'])} growth drivers identified")
    if volume_adv:
        opportunities.append("Volume efficiency opportunities")
    if sales_adv:
        opportunities.append("Price realization opportunities")
    if ret is not None and ret.new:
        opportunities.append(f"{len(ret.new)} new customers acquired")

    return CustomerFindings(
        base_index=base_index,
        budget_index=budget_index,
        previous_index=previous_index,
        fy_budget_index=fy_budget_index,
        totals=totals,
        vs_budget=vs_budget,
        yoy=variance(totals["volume_actual"], totals["volume_prev"]),
        vs_budget_amount=variance(totals["amount_actual"], totals["amount_budget"]),
        yoy_amount=variance(totals["amount_actual"], totals["amount_prev"]),
        avg_kilo_rate=avg_rate,
        avg_kilo_rate_prev=avg_rate_prev,
        avg_kilo_rate_budget=avg_rate_budget,
        kilo_rate_yoy=variance(avg_rate, avg_rate_prev),
        kilo_rate_vs_budget=variance(avg_rate, avg_rate_budget),
        has_previous_year_data=previous_index >= 0 and totals["volume_prev"] > 0 and totals["amount_prev"] > 0,
        run_rate=rr,
        portfolio_remaining=remaining,
        portfolio_per_month=per_month,
        concentration=conc,
        retention=ret,
        outliers=outliers,
        pvm=pvm,
        comparisons=comparisons,
        performers=top_performers(volume_records, comparisons, base_index, previous_index),
        volume_advantage=volume_adv,
        sales_advantage=sales_adv,
        focus_customers=focus,
        growth_drivers=groups["growth_drivers"],
        underperformers=groups["underperformers"],
        stable=groups["stable"],
        coverage_share=sum(c.share for c in focus),
        executive_summary=ExecutiveSummary(
            portfolio_health=_portfolio_health(vs_budget),
            key_risks=risks[:4],
            opportunities=opportunities[:3],
        ),
    )
