"""
Common Expenses per Person

Splits the household's shared expenses between earners in proportion to
their monthly salary. An expense whose name contains a person's name is
that person's own; every other positive, non-external expense is shared.
"""

from typing import Iterable

from budget_engine.models.budget import (
    BudgetDetails,
    CommonExpenseEstimationPerPerson,
    SalaryPerPerson,
)


TOTAL_ROW_NAME = "Total"


def estimate_common_expenses(
    budget_details: BudgetDetails,
    salaries: Iterable[SalaryPerPerson],
) -> list[CommonExpenseEstimationPerPerson]:
    """
    Estimate what each person owes to the common pot.

    Returns one row per person followed by a "Total" row.
    """
    salaries = list(salaries)
    individual = {s.name: 0 for s in salaries}
    total_common = 0

    for expense in budget_details.expenses:
        if expense.is_external or expense.projected_amount <= 0:
            continue
        owner = next((s.name for s in salaries if s.name and s.name in expense.name), None)
        if owner is None:
            total_common += expense.projected_amount
        else:
            individual[owner] += expense.projected_amount

    total_salary = sum(s.salary_per_month for s in salaries)
    rows = []
    for salary in salaries:
        share = salary.salary_per_month / total_salary if total_salary else 0.0
        common = int(share * total_common)
        rows.append(CommonExpenseEstimationPerPerson(
            name=salary.name,
            salary=salary.salary,
            salary_per_month=salary.salary_per_month,
            proportion=share,
            common_expenses=common,
            individual_expenses=individual[salary.name],
            left_over=salary.salary_per_month - common - individual[salary.name],
        ))

    rows.append(CommonExpenseEstimationPerPerson(
        name=TOTAL_ROW_NAME,
        salary=sum(r.salary for r in rows),
        salary_per_month=sum(r.salary_per_month for r in rows),
        proportion=sum(r.proportion for r in rows),
        common_expenses=sum(r.common_expenses for r in rows),
        individual_expenses=sum(r.individual_expenses for r in rows),
        left_over=sum(r.left_over for r in rows),
    ))
    return rows
