from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple


MONTHS: Tuple[str, ...] = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)

PERIOD_MONTHS: Dict[str, Tuple[str, ...]] = {
    "Q1": MONTHS[0:3],
    "Q2": MONTHS[3:6],
    "Q3": MONTHS[6:9],
    "Q4": MONTHS[9:12],
    "HY1": MONTHS[0:6],
    "HY2": MONTHS[6:12],
    "Year": MONTHS,
    "FY": MONTHS,
}

PERIOD_TYPES: Tuple[str, ...] = ("Actual", "Budget", "Estimate", "Forecast")
YTD_TAGS: Tuple[str, ...] = ("ytd", "yrtodate", "year-to-date")

_MONTH_ALIASES: Dict[str, str] = {m.lower(): m for m in MONTHS}
_MONTH_ALIASES.update({m[:3].lower(): m for m in MONTHS})
_MONTH_ALIASES["sept"] = "September"
_MONTH_ALIASES.update({tag.lower(): tag for tag in PERIOD_MONTHS})
_MONTH_ALIASES.update({tag: "YTD" for tag in YTD_TAGS})


def normalize_month(value: object) -> str:
    """Map 'jan', 'q1', 'fy' ... to the canonical tag; unknown text passes through stripped."""
    if value is None:
        return "Year"
    s = str(value).strip()
    if not s:
        return "Year"
    return _MONTH_ALIASES.get(s.lower(), s)


def normalize_type(value: object) -> str:
    s = str(value or "").strip()
    for t in PERIOD_TYPES:
        if s.lower() == t.lower():
            return t
    return s.title() if s else "Actual"


@dataclass(frozen=True)
class Period:
    year: int
    month: str = "Year"
    type: str = "Actual"
    months: Tuple[str, ...] = field(default_factory=tuple)
    is_custom_range: bool = False
    custom_range_id: Optional[str] = None
    display_name: Optional[str] = None
    custom_color: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Mapping[str, object]) -> "Period":
        is_custom = bool(raw.get("is_custom_range", raw.get("isCustomRange", False)))
        months = raw.get("months") or ()
        range_id = raw.get("custom_range_id", raw.get("id"))
        return cls(
            year=int(raw.get("year")),  # type: ignore[arg-type]
            month=normalize_month(raw.get("month")) if not is_custom else str(raw.get("month") or range_id or ""),
            type=normalize_type(raw.get("type")),
            months=tuple(normalize_month(m) for m in months),  # type: ignore[union-attr]
            is_custom_range=is_custom,
            custom_range_id=str(range_id) if range_id not in (None, "") else None,
            display_name=(raw.get("display_name") or raw.get("displayName")) or None,  # type: ignore[arg-type]
            custom_color=(raw.get("custom_color") or raw.get("customColor")) or None,  # type: ignore[arg-type]
        )

    @property
    def label(self) -> str:
        if self.is_custom_range and self.display_name:
            return f"{self.year} {self.display_name} {self.type}"
        return f"{self.year} {self.month or 'Year'} {self.type}"

    @property
    def is_budget(self) -> bool:
        return self.type.lower() == "budget"

    @property
    def is_full_year(self) -> bool:
        return not self.is_custom_range and (self.month or "Year") in ("Year", "FY")


def period_key(period: Period) -> str:
    if period.is_custom_range:
        middle = period.custom_range_id or period.month or "Year"
    else:
        middle = period.month or "Year"
    return f"{period.year}-{middle}-{period.type}"


def months_for(period: Period) -> Tuple[str, ...]:
    if period.months:
        return tuple(period.months)
    month = period.month or "Year"
    if month in PERIOD_MONTHS:
        return PERIOD_MONTHS[month]
    return (month,)


def month_number(month: str) -> Optional[int]:
    canonical = normalize_month(month)
    if canonical in MONTHS:
        return MONTHS.index(canonical) + 1
    return None


def last_month_number(period: Period) -> int:
    numbers = [n for n in (month_number(m) for m in months_for(period)) if n is not None]
    return max(numbers) if numbers else 12


def _same_month(a: Period, b: Period) -> bool:
    if a.is_custom_range or b.is_custom_range:
        return months_for(a) == months_for(b)
    return normalize_month(a.month) == normalize_month(b.month)


def find_previous_year_index(periods: Sequence[Period], base_index: int) -> int:
    if not 0 <= base_index < len(periods):
        return -1
    base = periods[base_index]
    candidates = [
        i for i, p in enumerate(periods) if p.year == base.year - 1 and _same_month(p, base)
    ]
    if not candidates:
        return -1
    actual = [i for i in candidates if periods[i].type == "Actual"]
    return (actual or candidates)[0]


def find_budget_index(periods: Sequence[Period], base_index: int) -> int:
    if not 0 <= base_index < len(periods):
        return -1
    base = periods[base_index]
    budgets = [(i, p) for i, p in enumerate(periods) if p.is_budget]
    for match in (
        lambda p: p.year == base.year and _same_month(p, base),
        lambda p: p.year == base.year and p.is_full_year,
        lambda p: p.year == base.year,
        lambda p: True,
    ):
        for i, p in budgets:
            if match(p):
                return i
    return -1


def find_fy_budget_index(periods: Sequence[Period], base_index: int) -> int:
    if not 0 <= base_index < len(periods):
        return -1
    year = periods[base_index].year
    for i, p in enumerate(periods):
        if p.is_budget and p.year == year and p.is_full_year:
            return i
    return -1


def is_year_to_date(period: Period) -> bool:
    """Actual column holding January through some month, or an explicit YTD column."""
    if period.type != "Actual":
        return False
    if not period.is_custom_range and (period.month or "").lower() in YTD_TAGS:
        return True
    numbers = sorted(n for n in (month_number(m) for m in months_for(period)) if n is not None)
    return bool(numbers) and numbers == list(range(1, len(numbers) + 1))


def find_ytd_index(periods: Sequence[Period], base_index: int) -> int:
    """Column holding the base year's actual-to-date: the base itself, an explicit YTD
    column, else the shortest January-anchored actual reaching the base's last month."""
    if not 0 <= base_index < len(periods):
        return -1
    base = periods[base_index]
    if is_year_to_date(base):
        return base_index
    same_year = [i for i, p in enumerate(periods) if p.year == base.year and is_year_to_date(p)]
    tagged = [i for i in same_year if (periods[i].month or "").lower() in YTD_TAGS]
    if tagged:
        return tagged[0]
    last = last_month_number(base)
    reaching = [i for i in same_year if last_month_number(periods[i]) >= last]
    if not reaching:
        return -1
    return min(reaching, key=lambda i: last_month_number(periods[i]))


def months_elapsed_for(period: Period, today: Optional[date] = None) -> int:
    today = today or date.today()
    if period.year < today.year:
        return 12
    if period.year > today.year:
        return 0
    return min(last_month_number(period), today.month)


def ensure_unique(periods: Iterable[Period]) -> List[Period]:
    """Drop repeated periods (same canonical key), keeping first occurrence order."""
    seen = set()
    out: List[Period] = []
    for p in periods:
        key = period_key(p)
        if key in seen:
            continue
        seen.add(key)
        out.append(p)
    return out


# ---------------- Column palettes ----------------
@dataclass(frozen=True)
class Palette:
    name: str
    primary: str
    secondary: str
    light: str
    text: str


COLOR_SCHEMES: Dict[str, Palette] = {
    "blue": Palette("blue", "#288cfa", "#103766", "#E3F2FD", "#FFFFFF"),
    "green": Palette("green", "#2E865F", "#C6F4D6", "#E8F5E9", "#FFFFFF"),
    "yellow": Palette("yellow", "#FFD700", "#FFFDE7", "#FFFDE7", "#000000"),
    "orange": Palette("orange", "#FF6B35", "#FFE0B2", "#FFF3E0", "#000000"),
    "boldContrast": Palette("boldContrast", "#003366", "#E6EEF5", "#E6EEF5", "#FFFFFF"),
}

CLASSIFICATION_PALETTE: Dict[str, str] = {
    "quarter": "orange",
    "january": "yellow",
    "year": "blue",
    "budget": "green",
    "default": "blue",
}


def classify_period(period: Period) -> str:
    month = normalize_month(period.month)
    if period.custom_color and period.custom_color in COLOR_SCHEMES:
        return "custom"
    if month in ("Q1", "Q2", "Q3", "Q4"):
        return "quarter"
    if month == "January":
        return "january"
    if month in ("Year", "FY") and not period.is_custom_range:
        return "year"
    if period.is_budget:
        return "budget"
    return "default"


def column_palette(period: Period) -> Palette:
    kind = classify_period(period)
    if kind == "custom":
        return COLOR_SCHEMES[period.custom_color]  # type: ignore[index]
    return COLOR_SCHEMES[CLASSIFICATION_PALETTE[kind]]
