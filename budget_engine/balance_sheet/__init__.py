"""Balance sheet: net-worth aggregation, resource CRUD and saving rates."""

from budget_engine.balance_sheet.net_worth import (
    NetWorthAggregator,
    apply_variation,
    compute_month_net_totals,
    compute_totals,
    compute_year_net_totals,
)
from budget_engine.balance_sheet.saving_rate import SavingRateCalculator, SavingRateService
from budget_engine.balance_sheet.service import BalanceSheetService

__all__ = [
    "BalanceSheetService",
    "NetWorthAggregator",
    "SavingRateCalculator",
    "SavingRateService",
    "apply_variation",
    "compute_month_net_totals",
    "compute_totals",
    "compute_year_net_totals",
]
