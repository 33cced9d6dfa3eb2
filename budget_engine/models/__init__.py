"""
Data Models Package

Pydantic models for the ledger mirror, budget projections, the balance
sheet, and the audit trail.
"""

from budget_engine.models.ledger import (
    Account,
    Category,
    CategoryGroup,
    DeltaCursor,
    GoalType,
    LedgerDelta,
    LedgerRecord,
    Payee,
    RECORD_MODELS,
    RecurFrequency,
    ResourceKind,
    ScheduledSubTransaction,
    ScheduledTransaction,
    SubTransaction,
    Transaction,
)
from budget_engine.models.budget import (
    BudgetDetails,
    CommonExpenseEstimationPerPerson,
    Expense,
    ExpenseType,
    ExternalExpense,
    GlobalMetadata,
    ProjectionIssue,
    SalaryPerPerson,
    SalarySchedule,
    SubExpenseType,
)
from budget_engine.models.balance_sheet import (
    FinancialResource,
    Incomes,
    Month,
    MonthNum,
    NetTotal,
    NetTotalType,
    ResourceCategory,
    ResourceType,
    SavingRate,
    Savings,
    Year,
)
from budget_engine.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "Account",
    "Category",
    "CategoryGroup",
    "DeltaCursor",
    "GoalType",
    "LedgerDelta",
    "LedgerRecord",
    "Payee",
    "RECORD_MODELS",
    "RecurFrequency",
    "ResourceKind",
    "ScheduledSubTransaction",
    "ScheduledTransaction",
    "SubTransaction",
    "Transaction",
    # Budget models
    "BudgetDetails",
    "CommonExpenseEstimationPerPerson",
    "Expense",
    "ExpenseType",
    "ExternalExpense",
    "GlobalMetadata",
    "ProjectionIssue",
    "SalaryPerPerson",
    "SalarySchedule",
    "SubExpenseType",
    # Balance sheet models
    "FinancialResource",
    "Incomes",
    "Month",
    "MonthNum",
    "NetTotal",
    "NetTotalType",
    "ResourceCategory",
    "ResourceType",
    "SavingRate",
    "Savings",
    "Year",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
