"""
Categorization Engine

Maps a ledger category group to an (expense type, sub-expense type) pair
from the configured id groups. Pure, no I/O.
"""

from uuid import UUID

from budget_engine.config.settings import BudgetCalculationSettings
from budget_engine.models.budget import ExpenseType, SubExpenseType


# Checked in order; the first group holding the id wins.
CATEGORIZATION_ORDER: tuple[tuple[str, ExpenseType, SubExpenseType], ...] = (
    ("housing_ids", ExpenseType.FIXED, SubExpenseType.HOUSING),
    ("transport_ids", ExpenseType.FIXED, SubExpenseType.TRANSPORT),
    ("other_fixed_ids", ExpenseType.FIXED, SubExpenseType.OTHER_FIXED),
    ("subscription_ids", ExpenseType.VARIABLE, SubExpenseType.SUBSCRIPTION),
    ("other_variable_ids", ExpenseType.VARIABLE, SubExpenseType.OTHER_VARIABLE),
    ("short_term_saving_ids", ExpenseType.SHORT_TERM_SAVING, SubExpenseType.SHORT_TERM_SAVING),
    ("long_term_saving_ids", ExpenseType.LONG_TERM_SAVING, SubExpenseType.LONG_TERM_SAVING),
    ("retirement_saving_ids", ExpenseType.RETIREMENT_SAVING, SubExpenseType.RETIREMENT_SAVING),
)


def categorize(
    category_group_id: UUID,
    config: BudgetCalculationSettings,
) -> tuple[ExpenseType, SubExpenseType]:
    """
    Resolve the budget bucket of a category group.

    Returns (UNDEFINED, UNDEFINED) when no configured group holds the id.
    """
    for field_name, expense_type, sub_expense_type in CATEGORIZATION_ORDER:
        if category_group_id in getattr(config, field_name):
            return expense_type, sub_expense_type
    return ExpenseType.UNDEFINED, SubExpenseType.UNDEFINED
