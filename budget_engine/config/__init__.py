"""Configuration package."""

from budget_engine.config.settings import (
    AppSettings,
    BudgetCalculationSettings,
    GoogleSheetsSettings,
    Settings,
    YnabSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "BudgetCalculationSettings",
    "GoogleSheetsSettings",
    "Settings",
    "YnabSettings",
    "get_settings",
    "validate_all_settings",
]
