"""
Budget Projection Models

Derived, never-persisted views built on every projection request:
expenses with their projected/current amounts and income proportions,
salary schedules, and the per-person split of common expenses.
"""

from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ExpenseType(str, Enum):
    """Top-level budget bucket."""
    FIXED = "fixed"
    VARIABLE = "variable"
    SHORT_TERM_SAVING = "short_term_saving"
    LONG_TERM_SAVING = "long_term_saving"
    RETIREMENT_SAVING = "retirement_saving"
    UNDEFINED = "undefined"


class SubExpenseType(str, Enum):
    """
    Finer budget bucket.

    Declaration order is the presentation order of a projection.
    """
    HOUSING = "housing"
    TRANSPORT = "transport"
    OTHER_FIXED = "other_fixed"
    SUBSCRIPTION = "subscription"
    OTHER_VARIABLE = "other_variable"
    SHORT_TERM_SAVING = "short_term_saving"
    LONG_TERM_SAVING = "long_term_saving"
    RETIREMENT_SAVING = "retirement_saving"
    UNDEFINED = "undefined"

    @property
    def sort_key(self) -> int:
        return list(SubExpenseType).index(self)


def default_proportion_targets() -> dict[ExpenseType, float]:
    return {
        ExpenseType.FIXED: 0.6,
        ExpenseType.VARIABLE: 0.1,
        ExpenseType.SHORT_TERM_SAVING: 0.1,
        ExpenseType.LONG_TERM_SAVING: 0.1,
        ExpenseType.RETIREMENT_SAVING: 0.1,
    }


# =============================================================================
# CONFIGURATION ENTRIES
# =============================================================================

class ExternalExpense(BaseModel):
    """An expense tracked outside the ledger (e.g. paid by an employer)."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1)
    type: ExpenseType
    sub_type: SubExpenseType
    projected_amount: int = Field(
        ...,
        description="Monthly amount in milliunits"
    )


class SalarySchedule(BaseModel):
    """A person whose pay is a scheduled transaction from a known payee."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1)
    payee_id: UUID


# =============================================================================
# PROJECTION RESULT
# =============================================================================

class Expense(BaseModel):
    """
    One budget line of a projection.

    Built once per projection; only the proportions are filled in after
    the total monthly income is known.
    """
    id: Optional[UUID] = None
    is_external: bool = False
    name: str
    expense_type: ExpenseType
    sub_expense_type: SubExpenseType
    projected_amount: int = 0
    current_amount: int = 0
    projected_proportion: float = 0.0
    current_proportion: float = 0.0


class GlobalMetadata(BaseModel):
    monthly_income: int = 0
    total_monthly_income: int = 0
    proportion_target_per_expense_type: dict[ExpenseType, float] = Field(
        default_factory=default_proportion_targets
    )


class ProjectionIssue(BaseModel):
    """A category that could not be projected normally."""
    category_id: UUID
    category_name: str
    reason: str


class BudgetDetails(BaseModel):
    global_metadata: GlobalMetadata = Field(default_factory=GlobalMetadata)
    expenses: list[Expense] = Field(default_factory=list)
    issues: list[ProjectionIssue] = Field(
        default_factory=list,
        description="Per-category problems that did not abort the projection"
    )


class SalaryPerPerson(BaseModel):
    name: str
    payee_id: UUID
    salary: int = 0
    salary_per_month: int = 0


class CommonExpenseEstimationPerPerson(BaseModel):
    """How much of the shared expenses one person should cover."""
    name: str
    salary: int = 0
    salary_per_month: int = 0
    proportion: float = 0.0
    common_expenses: int = 0
    individual_expenses: int = 0
    left_over: int = 0
