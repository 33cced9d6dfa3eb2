"""
Balance Sheet Models

Manually-tracked financial resources, the monthly/yearly net totals
derived from them, and saving-rate configurations.

DESIGN DECISION: Derived values (net totals, saving-rate totals and rate)
live on the models so they serialize with the response, but they are
always recomputed by the aggregators. Stored totals are never trusted.
"""

from datetime import datetime
from enum import Enum, IntEnum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


class ResourceCategory(str, Enum):
    ASSET = "asset"
    LIABILITY = "liability"


class ResourceType(str, Enum):
    """
    Resource taxonomy.

    Cash and investment assets make up the portfolio; long-term resources
    (real estate, pensions) only count toward net assets.
    """
    CASH = "cash"
    INVESTMENT = "investment"
    LONG_TERM = "long_term"


PORTFOLIO_ASSET_TYPES = frozenset({ResourceType.CASH, ResourceType.INVESTMENT})
PORTFOLIO_LIABILITY_TYPES = frozenset({ResourceType.CASH})


class NetTotalType(str, Enum):
    ASSET = "asset"
    PORTFOLIO = "portfolio"


class MonthNum(IntEnum):
    """Calendar month with wrapping navigation."""
    JANUARY = 1
    FEBRUARY = 2
    MARCH = 3
    APRIL = 4
    MAY = 5
    JUNE = 6
    JULY = 7
    AUGUST = 8
    SEPTEMBER = 9
    OCTOBER = 10
    NOVEMBER = 11
    DECEMBER = 12

    def pred(self) -> "MonthNum":
        return MonthNum.DECEMBER if self is MonthNum.JANUARY else MonthNum(self - 1)

    def succ(self) -> "MonthNum":
        return MonthNum.JANUARY if self is MonthNum.DECEMBER else MonthNum(self + 1)


def previous_period(year: int, month: int) -> tuple[int, int]:
    """(year, month) of the month before; January steps back into December of year-1."""
    month_num = MonthNum(month)
    return (year - 1 if month_num is MonthNum.JANUARY else year, month_num.pred())


def next_period(year: int, month: int) -> tuple[int, int]:
    month_num = MonthNum(month)
    return (year + 1 if month_num is MonthNum.DECEMBER else year, month_num.succ())


# =============================================================================
# NET TOTALS
# =============================================================================

class NetTotal(BaseModel):
    """
    Aggregate value of a period with its variation against the prior period.

    last_updated is None until the total has been computed once.
    """
    id: UUID = Field(default_factory=uuid4)
    net_type: NetTotalType
    total: int = 0
    balance_var: int = 0
    percent_var: float = 0.0
    last_updated: Optional[datetime] = None

    @property
    def is_computed(self) -> bool:
        return self.last_updated is not None


class Month(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    year: int = Field(..., ge=1900, le=9999)
    month: MonthNum
    net_assets: NetTotal = Field(
        default_factory=lambda: NetTotal(net_type=NetTotalType.ASSET)
    )
    net_portfolio: NetTotal = Field(
        default_factory=lambda: NetTotal(net_type=NetTotalType.PORTFOLIO)
    )

    @property
    def period(self) -> tuple[int, int]:
        return (self.year, int(self.month))


class Year(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    year: int = Field(..., ge=1900, le=9999)
    refreshed_at: Optional[datetime] = None
    net_assets: NetTotal = Field(
        default_factory=lambda: NetTotal(net_type=NetTotalType.ASSET)
    )
    net_portfolio: NetTotal = Field(
        default_factory=lambda: NetTotal(net_type=NetTotalType.PORTFOLIO)
    )
    months: list[Month] = Field(default_factory=list)


# =============================================================================
# FINANCIAL RESOURCES
# =============================================================================

class FinancialResource(BaseModel):
    """
    A tracked asset or liability for one year.

    Balances are milliunits keyed by month number. Liabilities are stored
    as positive amounts owed.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1)
    category: ResourceCategory
    resource_type: ResourceType
    editable_by: list[str] = Field(default_factory=list)
    year: int = Field(..., ge=1900, le=9999)
    balance_per_month: dict[int, int] = Field(default_factory=dict)

    @field_validator('balance_per_month')
    @classmethod
    def validate_months(cls, v: dict[int, int]) -> dict[int, int]:
        for month in v:
            if not 1 <= month <= 12:
                raise ValueError(f"Invalid month number: {month}")
        return v

    def balance_for(self, month: int) -> Optional[int]:
        return self.balance_per_month.get(int(month))


# =============================================================================
# SAVING RATE
# =============================================================================

class Savings(BaseModel):
    category_ids: list[UUID] = Field(
        default_factory=list,
        description="Categories whose transactions of the year count as savings"
    )
    extra_balance: int = 0
    total: int = 0


class Incomes(BaseModel):
    payee_ids: list[UUID] = Field(
        default_factory=list,
        description="Payees whose transactions of the year count as income"
    )
    extra_balance: int = 0
    total: int = 0


class SavingRate(BaseModel):
    """
    A named saving-rate report for one year.

    `savings.total`, `incomes.total` and `rate` are derived from a
    transaction snapshot by the saving-rate calculator.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1)
    year: int = Field(..., ge=1900, le=9999)
    savings: Savings = Field(default_factory=Savings)
    employer_contribution: int = 0
    employee_contribution: int = 0
    mortgage_capital: int = 0
    incomes: Incomes = Field(default_factory=Incomes)

    @computed_field
    @property
    def rate(self) -> float:
        """Share of the year's income that went to savings; 0.0 without income."""
        if self.incomes.total == 0:
            return 0.0
        contributions = (
            self.employee_contribution
            + self.employer_contribution
            + self.mortgage_capital
            + self.savings.total
        )
        return contributions / self.incomes.total
