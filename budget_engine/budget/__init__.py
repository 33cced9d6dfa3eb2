"""Budget projection package."""

from budget_engine.budget.categorization import categorize
from budget_engine.budget.common_expenses import estimate_common_expenses
from budget_engine.budget.projection import (
    BudgetProjectionCalculator,
    InvalidGoalStateError,
    current_goal_amount,
    projected_goal_amount,
)
from budget_engine.budget.scheduling import (
    expand_subtransactions,
    repeated_occurrences,
    salaries_per_person,
    scheduled_by_category,
    scheduled_distribution,
)

__all__ = [
    "BudgetProjectionCalculator",
    "InvalidGoalStateError",
    "categorize",
    "current_goal_amount",
    "estimate_common_expenses",
    "expand_subtransactions",
    "projected_goal_amount",
    "repeated_occurrences",
    "salaries_per_person",
    "scheduled_by_category",
    "scheduled_distribution",
]
