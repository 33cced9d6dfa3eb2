"""
Ledger Models

Mirrors of the upstream budgeting ledger records (categories, accounts,
payees, transactions, scheduled transactions) and the delta-sync cursor.

DESIGN DECISION: Upstream payloads carry more fields than we use.
Models ignore unknown fields instead of failing, so an API addition never
breaks a sync cycle. Amounts are milliunits (1000 = 1 currency unit).
"""

import datetime
from datetime import date
from enum import Enum
from typing import Generic, Optional, TypeVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# ENUMS
# =============================================================================

class ResourceKind(str, Enum):
    """Upstream resource kinds that are delta-synced independently."""
    CATEGORIES = "categories"
    ACCOUNTS = "accounts"
    PAYEES = "payees"
    TRANSACTIONS = "transactions"
    SCHEDULED_TRANSACTIONS = "scheduled_transactions"


class GoalType(str, Enum):
    """Upstream category goal types."""
    TARGET_BALANCE = "TB"
    TARGET_BALANCE_BY_DATE = "TBD"
    MONTHLY_FUNDING = "MF"
    NEED = "NEED"
    DEBT = "DEBT"


class RecurFrequency(str, Enum):
    """Recurrence of a scheduled transaction."""
    NEVER = "never"
    DAILY = "daily"
    WEEKLY = "weekly"
    EVERY_OTHER_WEEK = "everyOtherWeek"
    TWICE_A_MONTH = "twiceAMonth"
    EVERY_4_WEEKS = "every4Weeks"
    MONTHLY = "monthly"
    EVERY_OTHER_MONTH = "everyOtherMonth"
    EVERY_3_MONTHS = "every3Months"
    EVERY_4_MONTHS = "every4Months"
    TWICE_A_YEAR = "twiceAYear"
    YEARLY = "yearly"
    EVERY_OTHER_YEAR = "everyOtherYear"


class LedgerRecord(BaseModel):
    """Common shape of every mirrored record: a stable id and a soft-delete flag."""
    model_config = ConfigDict(extra="ignore")

    id: UUID
    deleted: bool = False


# =============================================================================
# CATEGORIES
# =============================================================================

class Category(LedgerRecord):
    """
    A budget category with its goal state for the current month.

    goal_under_funded semantics:
    - None: the category has no goal
    - 0: the goal is fully funded this cycle
    - any other value: amount still needed this cycle
    """
    category_group_id: UUID
    category_group_name: Optional[str] = None
    name: str
    hidden: bool = False
    budgeted: int = 0
    activity: int = 0
    balance: int = 0

    goal_type: Optional[GoalType] = None
    goal_target: int = 0
    goal_target_month: Optional[date] = None
    goal_percentage_complete: Optional[int] = Field(default=None, ge=0)
    goal_months_to_budget: Optional[int] = None
    goal_under_funded: Optional[int] = None
    goal_overall_funded: Optional[int] = None
    goal_overall_left: Optional[int] = None


class CategoryGroup(LedgerRecord):
    """Category group as returned by the categories delta endpoint."""
    name: str
    hidden: bool = False
    categories: list[Category] = Field(default_factory=list)


# =============================================================================
# ACCOUNTS AND PAYEES
# =============================================================================

class Account(LedgerRecord):
    name: str
    type: str
    on_budget: bool = True
    closed: bool = False
    note: Optional[str] = None
    balance: int = 0
    cleared_balance: int = 0
    uncleared_balance: int = 0
    transfer_payee_id: Optional[UUID] = None


class Payee(LedgerRecord):
    name: str
    transfer_account_id: Optional[UUID] = None


# =============================================================================
# TRANSACTIONS
# =============================================================================

class SubTransaction(LedgerRecord):
    transaction_id: UUID
    amount: int
    memo: Optional[str] = None
    payee_id: Optional[UUID] = None
    category_id: Optional[UUID] = None
    transfer_account_id: Optional[UUID] = None


class Transaction(LedgerRecord):
    """A posted ledger transaction."""
    date: datetime.date
    amount: int
    memo: Optional[str] = None
    cleared: str = "uncleared"
    approved: bool = False
    account_id: UUID
    payee_id: Optional[UUID] = None
    category_id: Optional[UUID] = None
    transfer_account_id: Optional[UUID] = None
    subtransactions: list[SubTransaction] = Field(default_factory=list)


class ScheduledSubTransaction(LedgerRecord):
    scheduled_transaction_id: UUID
    amount: int
    memo: Optional[str] = None
    payee_id: Optional[UUID] = None
    category_id: Optional[UUID] = None
    transfer_account_id: Optional[UUID] = None


class ScheduledTransaction(LedgerRecord):
    """
    A future (possibly recurring) transaction.

    A scheduled transaction with subtransactions stands for one
    transaction per non-deleted subtransaction.
    """
    date_first: Optional[date] = None
    date_next: date
    frequency: Optional[RecurFrequency] = None
    amount: int
    memo: Optional[str] = None
    account_id: Optional[UUID] = None
    payee_id: Optional[UUID] = None
    category_id: Optional[UUID] = None
    category_name: Optional[str] = None
    transfer_account_id: Optional[UUID] = None
    subtransactions: list[ScheduledSubTransaction] = Field(default_factory=list)


# =============================================================================
# DELTA SYNC
# =============================================================================

RecordT = TypeVar("RecordT", bound=LedgerRecord)


class LedgerDelta(BaseModel, Generic[RecordT]):
    """Records changed since a cursor, plus the cursor to use next time."""
    records: list[RecordT] = Field(default_factory=list)
    server_knowledge: int


class DeltaCursor(BaseModel):
    """
    Sync position for one resource kind.

    server_knowledge never decreases except when explicitly cleared.
    """
    resource_kind: ResourceKind
    server_knowledge: Optional[int] = None
    last_synced_date: Optional[date] = None


RECORD_MODELS: dict[ResourceKind, type[LedgerRecord]] = {
    ResourceKind.CATEGORIES: Category,
    ResourceKind.ACCOUNTS: Account,
    ResourceKind.PAYEES: Payee,
    ResourceKind.TRANSACTIONS: Transaction,
    ResourceKind.SCHEDULED_TRANSACTIONS: ScheduledTransaction,
}
