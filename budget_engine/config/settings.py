"""
Configuration Management for the Budget Engine

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The categorization groups, salary schedules and external expenses are
configuration, not code, so a household can re-map its budget without a
release.
"""

from functools import lru_cache
from pathlib import Path
from uuid import UUID

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from budget_engine.models.budget import (
    ExpenseType,
    ExternalExpense,
    SalarySchedule,
    default_proportion_targets,
)


class YnabSettings(BaseSettings):
    """Upstream budgeting ledger (YNAB) configuration."""

    model_config = SettingsConfigDict(
        env_prefix="YNAB_",
        extra="ignore"
    )

    access_token: str = Field(
        ...,
        description="Personal access token used as bearer credential"
    )
    budget_id: str = Field(
        default="last-used",
        description="Budget to sync; 'last-used' lets the ledger pick"
    )
    base_url: str = Field(
        default="https://api.youneedabudget.com/v1/",
        description="Base URL of the ledger API"
    )
    timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        le=300,
        description="Timeout applied to every upstream request"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration (balance sheet, sync state, audit)."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # Sheet names within the spreadsheet
    years_sheet_name: str = Field(default="Years")
    months_sheet_name: str = Field(default="Months")
    resources_sheet_name: str = Field(default="FinancialResources")
    saving_rates_sheet_name: str = Field(default="SavingRates")
    cursors_sheet_name: str = Field(default="SyncCursors")
    mirror_sheet_name: str = Field(
        default="LedgerMirror",
        description="Name of the sheet holding the mirrored ledger records"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class BudgetCalculationSettings(BaseSettings):
    """
    Budget calculation configuration.

    Category-group id lists are checked in declaration order by the
    categorization engine: the first list containing a group id wins.
    Lists are read from the environment as JSON arrays, e.g.
    BUDGET_HOUSING_IDS='["3fa85f64-5717-4562-b3fc-2c963f66afa6"]'.
    """

    model_config = SettingsConfigDict(
        env_prefix="BUDGET_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    housing_ids: list[UUID] = Field(default_factory=list)
    transport_ids: list[UUID] = Field(default_factory=list)
    other_fixed_ids: list[UUID] = Field(default_factory=list)
    subscription_ids: list[UUID] = Field(default_factory=list)
    other_variable_ids: list[UUID] = Field(default_factory=list)
    short_term_saving_ids: list[UUID] = Field(default_factory=list)
    long_term_saving_ids: list[UUID] = Field(default_factory=list)
    retirement_saving_ids: list[UUID] = Field(default_factory=list)

    external_expenses: list[ExternalExpense] = Field(
        default_factory=list,
        description="Expenses tracked outside the ledger"
    )
    person_salaries: list[SalarySchedule] = Field(
        default_factory=list,
        description="People whose salary is read from scheduled transactions"
    )
    health_insurance_category_name: str = Field(
        default="Assurance Santé",
        description="Expense name added back to the total monthly income"
    )
    proportion_targets: dict[ExpenseType, float] = Field(
        default_factory=default_proportion_targets,
        description="Target share of the total monthly income per expense type"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        description="Minimum level for the structured logs"
    )

    @field_validator('log_level')
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Note: These are loaded lazily to allow partial configuration

    @property
    def ynab(self) -> YnabSettings:
        return YnabSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def budget(self) -> BudgetCalculationSettings:
        return BudgetCalculationSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, with a
    `<name>_error` entry for every section that failed.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("ynab", "google_sheets", "budget", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
