"""Ledger line catalogue for the divisional P&L grid.

Raw lines are addressed by their fixed row index in the source grid. Calculated
lines are addressed by a string key and re-derived from their operands for every
period, so custom ranges aggregate correctly.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Union


SALES_ROW = 3
COST_OF_SALES_ROW = 4
MATERIAL_ROW = 5
VOLUME_ROW = 7
PRODUCTION_VOLUME_ROW = 8
LABOUR_ROW = 9
DEPRECIATION_ROW = 10
ELECTRICITY_ROW = 12
OTHER_OVERHEADS_ROW = 13
STOCK_ADJUSTMENT_ROW = 15
SELLING_EXPENSES_ROW = 31
TRANSPORTATION_ROW = 32
ADMINISTRATION_ROW = 40
BANK_INTEREST_ROW = 42
BANK_CHARGES_ROW = 43
RND_ROW = 44
BAD_DEBTS_ROW = 49
OTHER_INCOME_ROW = 50
OTHER_PROVISION_ROW = 51

BELOW_GP_ROWS: Tuple[int, ...] = (
    SELLING_EXPENSES_ROW,
    TRANSPORTATION_ROW,
    ADMINISTRATION_ROW,
    BANK_INTEREST_ROW,
    BANK_CHARGES_ROW,
    RND_ROW,
    BAD_DEBTS_ROW,
    OTHER_INCOME_ROW,
    OTHER_PROVISION_ROW,
)

RowRef = Union[int, str]


@dataclass(frozen=True)
class Formula:
    """Linear combination of operands, or a percentage ratio when ``ratio_of`` is set.

    ``plus``/``minus`` entries are row indices or other calculated line keys.
    """

    plus: Tuple[RowRef, ...] = ()
    minus: Tuple[RowRef, ...] = ()
    ratio_of: Optional[RowRef] = None


@dataclass(frozen=True)
class LedgerLine:
    key: str
    label: str
    row: Optional[int] = None
    formula: Optional[Formula] = None
    show_percent: bool = True
    show_per_kg: bool = True

    @property
    def is_calculated(self) -> bool:
        return self.formula is not None

    @property
    def ref(self) -> RowRef:
        return self.row if self.row is not None else self.key


FORMULAS: Dict[str, Formula] = {
    "margin_over_material": Formula(plus=(SALES_ROW,), minus=(MATERIAL_ROW,)),
    "actual_direct_cost": Formula(plus=(LABOUR_ROW, DEPRECIATION_ROW, ELECTRICITY_ROW, OTHER_OVERHEADS_ROW)),
    "direct_cogs": Formula(plus=("actual_direct_cost", STOCK_ADJUSTMENT_ROW)),
    "direct_cost_pct_of_cogs": Formula(plus=("direct_cogs",), ratio_of=COST_OF_SALES_ROW),
    "gross_profit_after_depn": Formula(plus=(SALES_ROW,), minus=(COST_OF_SALES_ROW,)),
    "gross_profit_before_depn": Formula(plus=("gross_profit_after_depn", DEPRECIATION_ROW)),
    "total_below_gp": Formula(plus=BELOW_GP_ROWS),
    "total_expenses": Formula(plus=("actual_direct_cost", "total_below_gp")),
    "net_profit": Formula(plus=("gross_profit_after_depn",), minus=("total_below_gp",)),
    "ebit": Formula(plus=("net_profit", BANK_INTEREST_ROW)),
    "ebitda": Formula(plus=("ebit", DEPRECIATION_ROW, RND_ROW)),
}


def _raw(key: str, label: str, row: int, **kw) -> LedgerLine:
    return LedgerLine(key=key, label=label, row=row, **kw)


def _calc(key: str, label: str, **kw) -> LedgerLine:
    return LedgerLine(key=key, label=label, formula=FORMULAS[key], **kw)


PL_LINES: List[LedgerLine] = [
    _raw("sales", "Sales", SALES_ROW),
    _raw("sales_volume", "Sales volume (kg)", VOLUME_ROW, show_per_kg=False),
    _raw("production_volume", "Production volume (kg)", PRODUCTION_VOLUME_ROW, show_per_kg=False),
    _raw("cost_of_sales", "Cost of Sales", COST_OF_SALES_ROW),
    _raw("material", "Material", MATERIAL_ROW),
    _calc("margin_over_material", "Margin over Material"),
    _raw("labour", "Labour", LABOUR_ROW),
    _raw("depreciation", "Depreciation", DEPRECIATION_ROW),
    _raw("electricity", "Electricity", ELECTRICITY_ROW),
    _raw("other_overheads", "Others Mfg. overheads", OTHER_OVERHEADS_ROW),
    _calc("actual_direct_cost", "Actual Direct Cost Spent"),
    _raw("stock_adjustment", "Dir.Cost in Stock/Stock Adj.", STOCK_ADJUSTMENT_ROW),
    _calc("direct_cogs", "Dir.Cost of goods sold"),
    _calc("direct_cost_pct_of_cogs", "Direct cost as % of C.O.G.S", show_percent=False, show_per_kg=False),
    _calc("gross_profit_after_depn", "Gross profit (after Depn.)"),
    _calc("gross_profit_before_depn", "Gross profit (before Depn.)"),
    _raw("selling_expenses", "Selling expenses", SELLING_EXPENSES_ROW),
    _raw("transportation", "Transportation", TRANSPORTATION_ROW),
    _raw("administration", "Administration & Management Fee", ADMINISTRATION_ROW),
    _raw("bank_interest", "Bank Interest", BANK_INTEREST_ROW),
    _raw("bank_charges", "Bank charges", BANK_CHARGES_ROW),
    _raw("rnd", "R & D, pre-production w/o", RND_ROW),
    _raw("bad_debts", "Bad debts", BAD_DEBTS_ROW),
    _raw("other_income", "Other Income", OTHER_INCOME_ROW),
    _raw("other_provision", "Other Provision", OTHER_PROVISION_ROW),
    _calc("total_below_gp", "Total Below GP Expenses"),
    _calc("total_expenses", "Total Expenses"),
    _calc("net_profit", "Net Profit"),
    _calc("ebit", "EBIT"),
    _calc("ebitda", "EBITDA"),
]

LINES_BY_KEY: Dict[str, LedgerLine] = {line.key: line for line in PL_LINES}
