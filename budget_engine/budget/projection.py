"""
Budget Projection Calculator

Turns mirrored categories (with their goal state) and scheduled
transactions into budget lines with a projected and a current amount,
then expresses each line as a share of the total monthly income.

Goal rules, per category:

    projected                                 current
    goal fully funded (under_funded == 0):
      no target month      -> goal_target     budgeted
      100% complete        -> budgeted        budgeted
      otherwise            -> (overall_left + budgeted) / months_to_budget
    partially funded       -> under_funded + budgeted (both)
    no goal                -> 0 (both)

Both amounts are then reduced by the scheduled outflows of the category
inside the window (outflows are negative, so this adds them back).

DESIGN DECISION: A category whose goal is reported fully funded without a
completion percentage is an upstream contract violation. It is isolated:
its projection is 0, a warning is logged and the problem is returned in
`BudgetDetails.issues`. The rest of the projection goes on.
"""

from datetime import date
from typing import Iterable, Optional

import structlog

from budget_engine.budget.categorization import categorize
from budget_engine.budget.scheduling import salaries_per_person, scheduled_by_category
from budget_engine.config.settings import BudgetCalculationSettings
from budget_engine.models.budget import (
    BudgetDetails,
    Expense,
    ExpenseType,
    GlobalMetadata,
    ProjectionIssue,
    SalaryPerPerson,
    SubExpenseType,
)
from budget_engine.models.ledger import Category, ScheduledTransaction


logger = structlog.get_logger(__name__)


class InvalidGoalStateError(Exception):
    """A category reports a funded goal without a completion percentage."""

    def __init__(self, category: Category):
        self.category_id = category.id
        self.category_name = category.name
        super().__init__(
            f"Category '{category.name}' has a fully funded goal "
            "but no goal_percentage_complete"
        )


def _div_toward_zero(numerator: int, denominator: int) -> int:
    quotient = abs(numerator) // abs(denominator)
    return quotient if (numerator >= 0) == (denominator > 0) else -quotient


def projected_goal_amount(category: Category) -> int:
    """
    Amount the category should receive this month according to its goal.

    Raises:
        InvalidGoalStateError: Goal fully funded but no completion percentage
    """
    under_funded = category.goal_under_funded
    if under_funded is None:
        return 0
    if under_funded != 0:
        return under_funded + category.budgeted

    if category.goal_percentage_complete is None:
        raise InvalidGoalStateError(category)
    if category.goal_target_month is None:
        return category.goal_target
    if category.goal_percentage_complete == 100:
        return category.budgeted

    overall_left = category.goal_overall_left
    months = category.goal_months_to_budget
    if overall_left is None or not months:
        return category.goal_target
    return _div_toward_zero(overall_left + category.budgeted, months)


def current_goal_amount(category: Category) -> int:
    """Amount already committed to the category this month."""
    under_funded = category.goal_under_funded
    if under_funded is None:
        return 0
    if under_funded == 0:
        return category.budgeted
    return under_funded + category.budgeted


def proportion(amount: int, total: int) -> float:
    """Share of `total`; 0.0 when there is nothing to divide by."""
    if total == 0:
        return 0.0
    return amount / total


class BudgetProjectionCalculator:
    """
    Builds `BudgetDetails` from a snapshot of the ledger mirror.

    Usage:
        calculator = BudgetProjectionCalculator(settings.budget)
        details = calculator.project(categories, scheduled_transactions)
    """

    def __init__(self, config: BudgetCalculationSettings):
        self._config = config

    def project(
        self,
        categories: Iterable[Category],
        scheduled_transactions: Iterable[ScheduledTransaction],
        today: Optional[date] = None,
    ) -> BudgetDetails:
        today = today or date.today()
        scheduled_transactions = list(scheduled_transactions)
        scheduled_map = scheduled_by_category(scheduled_transactions, today)

        expenses: list[Expense] = []
        issues: list[ProjectionIssue] = []

        for category in categories:
            if category.hidden or category.deleted:
                continue
            expense_type, sub_expense_type = categorize(category.category_group_id, self._config)
            if expense_type == ExpenseType.UNDEFINED:
                continue

            scheduled_total = sum(st.amount for st in scheduled_map.get(category.id, []))

            try:
                projected = projected_goal_amount(category) - scheduled_total
            except InvalidGoalStateError as e:
                logger.warning(
                    "invalid_goal_state",
                    category_id=str(category.id),
                    category_name=category.name,
                    error=str(e),
                )
                issues.append(ProjectionIssue(
                    category_id=category.id,
                    category_name=category.name,
                    reason=str(e),
                ))
                projected = 0

            expenses.append(Expense(
                id=category.id,
                name=category.name,
                expense_type=expense_type,
                sub_expense_type=sub_expense_type,
                projected_amount=projected,
                current_amount=current_goal_amount(category) - scheduled_total,
            ))

        for external in self._config.external_expenses:
            expenses.append(Expense(
                is_external=True,
                name=external.name,
                expense_type=external.type,
                sub_expense_type=external.sub_type,
                projected_amount=external.projected_amount,
                current_amount=external.projected_amount,
            ))

        salaries = salaries_per_person(scheduled_transactions, self._config.person_salaries, today)
        global_metadata = self._global_metadata(expenses, salaries)

        for expense in expenses:
            expense.projected_proportion = proportion(
                expense.projected_amount, global_metadata.total_monthly_income
            )
            expense.current_proportion = proportion(
                expense.current_amount, global_metadata.total_monthly_income
            )

        expenses.sort(key=lambda e: e.sub_expense_type.sort_key)

        logger.debug(
            "budget_projected",
            expenses=len(expenses),
            issues=len(issues),
            total_monthly_income=global_metadata.total_monthly_income,
        )
        return BudgetDetails(global_metadata=global_metadata, expenses=expenses, issues=issues)

    def salaries(
        self,
        scheduled_transactions: Iterable[ScheduledTransaction],
        today: Optional[date] = None,
    ) -> list[SalaryPerPerson]:
        """Monthly salary of every configured person."""
        return salaries_per_person(
            scheduled_transactions,
            self._config.person_salaries,
            today or date.today(),
        )

    def _global_metadata(
        self,
        expenses: list[Expense],
        salaries: list[SalaryPerPerson],
    ) -> GlobalMetadata:
        monthly_income = sum(s.salary_per_month for s in salaries)

        health_insurance_name = self._config.health_insurance_category_name
        health_insurance = next(
            (
                e.projected_amount
                for e in expenses
                if health_insurance_name and health_insurance_name in e.name
            ),
            0,
        )
        # Retirement savings are withheld before take-home pay
        retirement = sum(
            e.projected_amount
            for e in expenses
            if e.sub_expense_type == SubExpenseType.RETIREMENT_SAVING
        )

        return GlobalMetadata(
            monthly_income=monthly_income,
            total_monthly_income=monthly_income + health_insurance + retirement,
            proportion_target_per_expense_type=dict(self._config.proportion_targets),
        )
