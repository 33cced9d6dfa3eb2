"""
Tests for categorization, scheduling, projection and common expenses.
"""

import pytest
from datetime import date, timedelta
from uuid import uuid4

from conftest import TODAY, make_category, make_scheduled

from budget_engine.budget import (
    BudgetProjectionCalculator,
    InvalidGoalStateError,
    categorize,
    current_goal_amount,
    estimate_common_expenses,
    expand_subtransactions,
    projected_goal_amount,
    repeated_occurrences,
    salaries_per_person,
    scheduled_by_category,
    scheduled_distribution,
)
from budget_engine.budget.scheduling import occurrences, window_end
from budget_engine.config import BudgetCalculationSettings
from budget_engine.models.budget import (
    BudgetDetails,
    Expense,
    ExpenseType,
    ExternalExpense,
    SalaryPerPerson,
    SalarySchedule,
    SubExpenseType,
)
from budget_engine.models.ledger import RecurFrequency, ScheduledSubTransaction


class TestCategorization:
    """Tests for the category-group mapping."""

    def test_configured_group_maps_to_its_bucket(self, budget_config, group_ids):
        """Test a housing group is fixed/housing."""
        assert categorize(group_ids["housing"], budget_config) == (
            ExpenseType.FIXED,
            SubExpenseType.HOUSING,
        )

    def test_unknown_group_is_undefined(self, budget_config):
        """Test an unmapped id yields (undefined, undefined)."""
        assert categorize(uuid4(), budget_config) == (
            ExpenseType.UNDEFINED,
            SubExpenseType.UNDEFINED,
        )

    def test_first_match_wins(self):
        """Test a group listed twice takes the earlier bucket."""
        group_id = uuid4()
        config = BudgetCalculationSettings(
            transport_ids=[group_id],
            long_term_saving_ids=[group_id],
        )
        assert categorize(group_id, config) == (ExpenseType.FIXED, SubExpenseType.TRANSPORT)


class TestGoalAmounts:
    """Tests for per-category goal rules."""

    def test_no_goal(self):
        """Test a category without goal projects 0."""
        category = make_category(uuid4(), budgeted=20000)
        assert projected_goal_amount(category) == 0
        assert current_goal_amount(category) == 0

    def test_underfunded_goal(self):
        """Test a partially funded goal adds what is missing."""
        category = make_category(uuid4(), budgeted=30000, goal_under_funded=20000)
        assert projected_goal_amount(category) == 50000
        assert current_goal_amount(category) == 50000

    def test_funded_goal_without_target_month(self):
        """Test a funded goal without target month projects its target."""
        category = make_category(
            uuid4(),
            budgeted=50000,
            goal_under_funded=0,
            goal_percentage_complete=83,
            goal_target=60000,
        )
        assert projected_goal_amount(category) == 60000
        assert current_goal_amount(category) == 50000

    def test_completed_goal_with_target_month(self):
        """Test a 100% goal projects what is budgeted."""
        category = make_category(
            uuid4(),
            budgeted=12000,
            goal_under_funded=0,
            goal_percentage_complete=100,
            goal_target_month=date(2024, 12, 1),
            goal_target=500000,
        )
        assert projected_goal_amount(category) == 12000

    def test_goal_spread_over_remaining_months(self):
        """Test the remaining amount is spread over the months left."""
        category = make_category(
            uuid4(),
            budgeted=10000,
            goal_under_funded=0,
            goal_percentage_complete=40,
            goal_target_month=date(2024, 12, 1),
            goal_overall_left=50000,
            goal_months_to_budget=6,
        )
        assert projected_goal_amount(category) == 10000

    def test_spread_truncates_toward_zero(self):
        """Test integer division never rounds away from zero."""
        category = make_category(
            uuid4(),
            budgeted=0,
            goal_under_funded=0,
            goal_percentage_complete=10,
            goal_target_month=date(2024, 12, 1),
            goal_overall_left=-10,
            goal_months_to_budget=3,
        )
        assert projected_goal_amount(category) == -3

    def test_zero_months_to_budget_falls_back_to_target(self):
        """Test a goal due this month does not divide by zero."""
        category = make_category(
            uuid4(),
            budgeted=1000,
            goal_under_funded=0,
            goal_percentage_complete=50,
            goal_target_month=date(2024, 6, 1),
            goal_target=80000,
            goal_overall_left=4000,
            goal_months_to_budget=0,
        )
        assert projected_goal_amount(category) == 80000

    def test_funded_goal_without_percentage_is_invalid(self):
        """Test the missing completion percentage is reported."""
        category = make_category(uuid4(), name="Vacances", goal_under_funded=0)
        with pytest.raises(InvalidGoalStateError) as exc_info:
            projected_goal_amount(category)
        assert exc_info.value.category_id == category.id
        assert "Vacances" in str(exc_info.value)


class TestScheduling:
    """Tests for the scheduled-transaction window."""

    def test_window_is_one_calendar_month(self):
        """Test window end is today plus one month."""
        assert window_end(date(2024, 1, 31)) == date(2024, 2, 29)
        assert window_end(TODAY) == date(2024, 7, 3)

    def test_occurrences_include_both_bounds(self):
        """Test weekly occurrences from start to end inclusive."""
        dates = list(occurrences(RecurFrequency.WEEKLY, date(2024, 6, 3), date(2024, 6, 17)))
        assert dates == [date(2024, 6, 3), date(2024, 6, 10), date(2024, 6, 17)]

    def test_one_shot_schedule_yields_its_date(self):
        """Test NEVER yields the start date only."""
        assert list(occurrences(RecurFrequency.NEVER, TODAY, window_end(TODAY))) == [TODAY]

    def test_bi_weekly_repeats_inside_window(self):
        """Test every-other-week repeats after date_next until the window end."""
        scheduled = make_scheduled(-1000, frequency=RecurFrequency.EVERY_OTHER_WEEK)
        repeats = list(repeated_occurrences(scheduled, TODAY))
        assert [r.date_next for r in repeats] == [date(2024, 6, 17), date(2024, 7, 1)]
        assert all(r.id == scheduled.id for r in repeats)

    def test_monthly_does_not_repeat(self):
        """Test a monthly schedule counts once."""
        scheduled = make_scheduled(-1000, frequency=RecurFrequency.MONTHLY)
        assert list(repeated_occurrences(scheduled, TODAY)) == []

    def test_split_schedule_expands(self):
        """Test subtransactions become parts carrying their own category."""
        parent_id = uuid4()
        first, second = uuid4(), uuid4()
        scheduled = make_scheduled(
            -30000,
            id=parent_id,
            subtransactions=[
                ScheduledSubTransaction(
                    id=uuid4(), scheduled_transaction_id=parent_id, amount=-20000, category_id=first
                ),
                ScheduledSubTransaction(
                    id=uuid4(), scheduled_transaction_id=parent_id, amount=-10000, category_id=second
                ),
                ScheduledSubTransaction(
                    id=uuid4(), scheduled_transaction_id=parent_id, amount=-5000,
                    category_id=second, deleted=True,
                ),
            ],
        )
        parts = expand_subtransactions(scheduled)
        assert [(p.category_id, p.amount) for p in parts] == [(first, -20000), (second, -10000)]
        assert all(not p.subtransactions for p in parts)

    def test_scheduled_by_category_filters_window(self):
        """Test schedules after the window and deleted ones are ignored."""
        category_id = uuid4()
        inside = make_scheduled(-1000, category_id=category_id)
        overdue = make_scheduled(-2000, date_next=TODAY - timedelta(days=3), category_id=category_id)
        outside = make_scheduled(-4000, date_next=date(2024, 8, 1), category_id=category_id)
        deleted = make_scheduled(-8000, category_id=category_id, deleted=True)

        result = scheduled_by_category([inside, overdue, outside, deleted], TODAY)

        assert sorted(st.amount for st in result[category_id]) == [-2000, -1000]

    def test_salary_counts_every_pay_in_window(self):
        """Test a bi-weekly salary counts each pay of the month."""
        payee_id = uuid4()
        pay = make_scheduled(
            1500000,
            frequency=RecurFrequency.EVERY_OTHER_WEEK,
            payee_id=payee_id,
        )
        salaries = salaries_per_person(
            [pay],
            [SalarySchedule(name="Alice", payee_id=payee_id)],
            TODAY,
        )
        assert salaries[0].salary == 1500000
        assert salaries[0].salary_per_month == 4500000

    def test_salary_is_the_last_matching_pay(self):
        """Test a person with two pay schedules keeps the last one's amount."""
        payee_id = uuid4()
        salaries = salaries_per_person(
            [
                make_scheduled(1000000, date_next=date(2024, 6, 10), payee_id=payee_id),
                make_scheduled(200000, date_next=date(2024, 6, 20), payee_id=payee_id),
            ],
            [SalarySchedule(name="Alice", payee_id=payee_id)],
            TODAY,
        )
        assert salaries[0].salary == 200000
        assert salaries[0].salary_per_month == 1200000

    def test_distribution_groups_by_date(self):
        """Test occurrences of the window are grouped per due date, in order."""
        groceries = make_category(uuid4(), name="Groceries")
        weekly = make_scheduled(
            -5000,
            date_next=date(2024, 6, 10),
            frequency=RecurFrequency.WEEKLY,
            category_id=groceries.id,
        )
        rent = make_scheduled(-850000, date_next=date(2024, 6, 24), category_name="Loyer")
        overdue = make_scheduled(-100, date_next=TODAY - timedelta(days=1), category_id=groceries.id)
        later = make_scheduled(-100, date_next=date(2024, 7, 4), category_id=groceries.id)
        deleted = make_scheduled(-100, category_id=groceries.id, deleted=True)

        distribution = scheduled_distribution(
            [rent, weekly, overdue, later, deleted], [groceries], TODAY
        )

        assert list(distribution) == [
            date(2024, 6, 10), date(2024, 6, 17), date(2024, 6, 24), date(2024, 7, 1),
        ]
        assert [st.amount for st in distribution[date(2024, 6, 24)]] == [-850000, -5000]
        assert all(st.category_name == "Groceries" for st in distribution[date(2024, 6, 17)])
        assert distribution[date(2024, 6, 24)][0].category_name == "Loyer"

    def test_distribution_flattens_splits(self):
        """Test split parts are listed separately with their own category name."""
        parent_id = uuid4()
        food, fuel = make_category(uuid4(), name="Food"), make_category(uuid4(), name="Fuel")
        scheduled = make_scheduled(
            -30000,
            id=parent_id,
            date_next=date(2024, 6, 5),
            category_name="Split",
            subtransactions=[
                ScheduledSubTransaction(
                    id=uuid4(), scheduled_transaction_id=parent_id, amount=-20000, category_id=food.id
                ),
                ScheduledSubTransaction(
                    id=uuid4(), scheduled_transaction_id=parent_id, amount=-10000, category_id=fuel.id
                ),
                ScheduledSubTransaction(
                    id=uuid4(), scheduled_transaction_id=parent_id, amount=-5000, category_id=uuid4()
                ),
            ],
        )

        distribution = scheduled_distribution([scheduled], [food, fuel], TODAY)

        parts = distribution[date(2024, 6, 5)]
        assert [(p.amount, p.category_name) for p in parts] == [
            (-20000, "Food"), (-10000, "Fuel"), (-5000, "Split"),
        ]

    def test_person_without_schedule_earns_nothing(self):
        """Test a configured person without pay yields zeros."""
        salaries = salaries_per_person([], [SalarySchedule(name="Bob", payee_id=uuid4())], TODAY)
        assert salaries[0].salary == 0
        assert salaries[0].salary_per_month == 0


class TestBudgetProjection:
    """Tests for the projection calculator."""

    def test_funded_goal_scenario(self, budget_config, group_ids):
        """Test budgeted 50000, funded, target 60000 projects 60000/50000."""
        category = make_category(
            group_ids["housing"],
            name="Loyer",
            budgeted=50000,
            goal_under_funded=0,
            goal_percentage_complete=83,
            goal_target=60000,
        )
        details = BudgetProjectionCalculator(budget_config).project([category], [], TODAY)

        assert len(details.expenses) == 1
        expense = details.expenses[0]
        assert expense.projected_amount == 60000
        assert expense.current_amount == 50000
        assert expense.expense_type == ExpenseType.FIXED

    def test_scheduled_outflow_scenario(self, budget_config, group_ids):
        """Test a scheduled outflow of 15000 adds 15000 to a goal-less category."""
        category = make_category(group_ids["subscription"], name="Streaming", budgeted=20000)
        scheduled = make_scheduled(-15000, category_id=category.id)

        details = BudgetProjectionCalculator(budget_config).project([category], [scheduled], TODAY)

        expense = details.expenses[0]
        assert expense.projected_amount == 15000
        assert expense.current_amount == 15000

    def test_hidden_deleted_and_unmapped_are_skipped(self, budget_config, group_ids):
        """Test only visible, live, mapped categories become expenses."""
        categories = [
            make_category(group_ids["housing"], name="Visible"),
            make_category(group_ids["housing"], name="Hidden", hidden=True),
            make_category(group_ids["housing"], name="Deleted", deleted=True),
            make_category(group_ids["unmapped"], name="Unmapped"),
        ]
        details = BudgetProjectionCalculator(budget_config).project(categories, [], TODAY)
        assert [e.name for e in details.expenses] == ["Visible"]

    def test_invalid_goal_is_isolated(self, budget_config, group_ids):
        """Test one broken goal does not abort the projection."""
        broken = make_category(group_ids["housing"], name="Broken", budgeted=100, goal_under_funded=0)
        healthy = make_category(
            group_ids["housing"], name="Healthy", budgeted=300, goal_under_funded=200
        )

        details = BudgetProjectionCalculator(budget_config).project([broken, healthy], [], TODAY)

        by_name = {e.name: e for e in details.expenses}
        assert by_name["Broken"].projected_amount == 0
        assert by_name["Healthy"].projected_amount == 500
        assert len(details.issues) == 1
        assert details.issues[0].category_id == broken.id

    def test_external_expenses_are_appended(self, group_ids):
        """Test configured external expenses join the projection."""
        config = BudgetCalculationSettings(
            external_expenses=[
                ExternalExpense(
                    name="Company car",
                    type=ExpenseType.FIXED,
                    sub_type=SubExpenseType.TRANSPORT,
                    projected_amount=250000,
                ),
            ],
        )
        details = BudgetProjectionCalculator(config).project([], [], TODAY)
        expense = details.expenses[0]
        assert expense.is_external
        assert expense.id is None
        assert expense.projected_amount == expense.current_amount == 250000

    def test_total_income_adds_health_insurance_and_retirement(self, group_ids):
        """Test total monthly income adds back pre-tax deductions."""
        payee_id = uuid4()
        config = BudgetCalculationSettings(
            other_fixed_ids=[group_ids["housing"]],
            retirement_saving_ids=[group_ids["retirement"]],
            person_salaries=[SalarySchedule(name="Alice", payee_id=payee_id)],
        )
        categories = [
            make_category(
                group_ids["housing"], name="Assurance Santé", budgeted=100000, goal_under_funded=0,
                goal_percentage_complete=100, goal_target=100000,
            ),
            make_category(
                group_ids["retirement"], name="PER", budgeted=0, goal_under_funded=200000,
            ),
        ]
        salary = make_scheduled(3000000, date_next=date(2024, 6, 25), payee_id=payee_id)

        details = BudgetProjectionCalculator(config).project(categories, [salary], TODAY)

        assert details.global_metadata.monthly_income == 3000000
        assert details.global_metadata.total_monthly_income == 3300000

    def test_proportions_close_over_total_income(self, budget_config, group_ids):
        """Test proportions sum to the projected total over the income."""
        payee_id = uuid4()
        config = budget_config.model_copy(update={
            "person_salaries": [SalarySchedule(name="Alice", payee_id=payee_id)],
        })
        categories = [
            make_category(group_ids["housing"], name="Loyer", budgeted=0, goal_under_funded=900000),
            make_category(group_ids["subscription"], name="Music", budgeted=0, goal_under_funded=10000),
            make_category(group_ids["short_term"], name="Buffer", budgeted=0, goal_under_funded=90000),
        ]
        salary = make_scheduled(2000000, date_next=date(2024, 6, 28), payee_id=payee_id)

        details = BudgetProjectionCalculator(config).project(categories, [salary], TODAY)

        total_income = details.global_metadata.total_monthly_income
        projected = sum(e.projected_amount for e in details.expenses)
        assert sum(e.projected_proportion for e in details.expenses) == pytest.approx(
            projected / total_income
        )

    def test_proportions_are_zero_without_income(self, budget_config, group_ids):
        """Test a zero total income yields 0.0 proportions."""
        category = make_category(group_ids["housing"], budgeted=0, goal_under_funded=1000)
        details = BudgetProjectionCalculator(budget_config).project([category], [], TODAY)
        assert details.global_metadata.total_monthly_income == 0
        assert details.expenses[0].projected_proportion == 0.0

    def test_expenses_sorted_by_sub_expense_type(self, budget_config, group_ids):
        """Test stable sort by sub-expense declaration order."""
        categories = [
            make_category(group_ids["retirement"], name="PER"),
            make_category(group_ids["subscription"], name="Music"),
            make_category(group_ids["housing"], name="Loyer"),
            make_category(group_ids["subscription"], name="Video"),
        ]
        details = BudgetProjectionCalculator(budget_config).project(categories, [], TODAY)
        assert [e.name for e in details.expenses] == ["Loyer", "Music", "Video", "PER"]

    def test_projection_is_deterministic(self, budget_config, group_ids):
        """Test the same snapshot projects the same budget."""
        categories = [make_category(group_ids["housing"], budgeted=100, goal_under_funded=50)]
        scheduled = [make_scheduled(-20, category_id=categories[0].id)]
        calculator = BudgetProjectionCalculator(budget_config)
        first = calculator.project(categories, scheduled, TODAY)
        second = calculator.project(categories, scheduled, TODAY)
        assert first == second


class TestCommonExpenses:
    """Tests for the per-person split of common expenses."""

    def test_split_by_salary(self):
        """Test shared expenses split by salary share and personal ones kept."""
        details = BudgetDetails(expenses=[
            Expense(
                name="Loyer", expense_type=ExpenseType.FIXED,
                sub_expense_type=SubExpenseType.HOUSING, projected_amount=1000000,
            ),
            Expense(
                name="Gym Alice", expense_type=ExpenseType.VARIABLE,
                sub_expense_type=SubExpenseType.SUBSCRIPTION, projected_amount=50000,
            ),
            Expense(
                is_external=True, name="Company car", expense_type=ExpenseType.FIXED,
                sub_expense_type=SubExpenseType.TRANSPORT, projected_amount=300000,
            ),
        ])
        salaries = [
            SalaryPerPerson(name="Alice", payee_id=uuid4(), salary=3000000, salary_per_month=3000000),
            SalaryPerPerson(name="Bob", payee_id=uuid4(), salary=1000000, salary_per_month=1000000),
        ]

        rows = estimate_common_expenses(details, salaries)

        alice, bob, total = rows
        assert alice.common_expenses == 750000
        assert alice.individual_expenses == 50000
        assert alice.left_over == 2200000
        assert bob.common_expenses == 250000
        assert total.name == "Total"
        assert total.common_expenses == 1000000
        assert total.proportion == pytest.approx(1.0)

    def test_no_salaries(self):
        """Test only the total row is returned without earners."""
        rows = estimate_common_expenses(BudgetDetails(), [])
        assert len(rows) == 1
        assert rows[0].name == "Total"
        assert rows[0].salary == 0
