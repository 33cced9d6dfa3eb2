"""
Scheduled Transaction Window

Pure helpers that turn the mirrored scheduled transactions into the
occurrences falling inside the projection window (today up to one month
ahead):

- split scheduled transactions stand for one occurrence per subtransaction
- frequent schedules (daily to every four weeks) repeat inside the window;
  repeats are generated lazily from the schedule's recurrence rule and
  stop at the window's end
"""

from collections import defaultdict
from datetime import date, datetime
from typing import Iterable, Iterator, Optional
from uuid import UUID

from dateutil.relativedelta import relativedelta
from dateutil.rrule import DAILY, MONTHLY, WEEKLY, YEARLY, rrule

from budget_engine.models.budget import SalaryPerPerson, SalarySchedule
from budget_engine.models.ledger import Category, RecurFrequency, ScheduledTransaction


# rrule arguments per frequency (RFC 5545). NEVER has no rule.
FREQUENCY_RULES: dict[RecurFrequency, dict] = {
    RecurFrequency.DAILY: {"freq": DAILY},
    RecurFrequency.WEEKLY: {"freq": WEEKLY},
    RecurFrequency.EVERY_OTHER_WEEK: {"freq": WEEKLY, "interval": 2},
    RecurFrequency.TWICE_A_MONTH: {"freq": MONTHLY, "bymonthday": (15, -1)},
    RecurFrequency.EVERY_4_WEEKS: {"freq": WEEKLY, "interval": 4},
    RecurFrequency.MONTHLY: {"freq": MONTHLY},
    RecurFrequency.EVERY_OTHER_MONTH: {"freq": MONTHLY, "interval": 2},
    RecurFrequency.EVERY_3_MONTHS: {"freq": MONTHLY, "interval": 3},
    RecurFrequency.EVERY_4_MONTHS: {"freq": MONTHLY, "interval": 4},
    RecurFrequency.TWICE_A_YEAR: {"freq": YEARLY, "bymonth": (6, 12)},
    RecurFrequency.YEARLY: {"freq": YEARLY},
    RecurFrequency.EVERY_OTHER_YEAR: {"freq": YEARLY, "interval": 2},
}

# Frequencies that can occur more than once inside a one-month window
REPEATABLE_FREQUENCIES = frozenset({
    RecurFrequency.DAILY,
    RecurFrequency.WEEKLY,
    RecurFrequency.EVERY_OTHER_WEEK,
    RecurFrequency.TWICE_A_MONTH,
    RecurFrequency.EVERY_4_WEEKS,
})


def window_end(today: date) -> date:
    """Last day (inclusive) of the projection window."""
    return today + relativedelta(months=1)


def occurrences(frequency: Optional[RecurFrequency], start: date, until: date) -> Iterator[date]:
    """
    Dates of a schedule from `start` up to `until` (inclusive).

    A schedule without a rule yields `start` alone when it is in range.
    """
    rule = FREQUENCY_RULES.get(frequency) if frequency else None
    if rule is None:
        if start <= until:
            yield start
        return
    dates = rrule(
        dtstart=datetime.combine(start, datetime.min.time()),
        until=datetime.combine(until, datetime.min.time()),
        **rule,
    )
    for occurrence in dates:
        yield occurrence.date()


def repeated_occurrences(
    scheduled: ScheduledTransaction,
    today: date,
) -> Iterator[ScheduledTransaction]:
    """
    Synthetic copies of a frequent schedule for its later dates in the window.

    The schedule's own `date_next` is not repeated.
    """
    if scheduled.frequency not in REPEATABLE_FREQUENCIES:
        return
    for occurrence in occurrences(scheduled.frequency, scheduled.date_next, window_end(today)):
        if occurrence == scheduled.date_next:
            continue
        yield scheduled.model_copy(update={"date_next": occurrence, "subtransactions": []})


def expand_subtransactions(scheduled: ScheduledTransaction) -> list[ScheduledTransaction]:
    """
    One scheduled transaction per live subtransaction, or the schedule itself.

    Parts keep the parent's schedule fields and take the subtransaction's
    id, amount, category and payee.
    """
    if not scheduled.subtransactions:
        return [scheduled]
    return [
        scheduled.model_copy(update={
            "id": sub.id,
            "amount": sub.amount,
            "category_id": sub.category_id,
            "payee_id": sub.payee_id or scheduled.payee_id,
            "memo": sub.memo or scheduled.memo,
            "transfer_account_id": sub.transfer_account_id,
            "subtransactions": [],
        })
        for sub in scheduled.subtransactions
        if not sub.deleted
    ]


def scheduled_by_category(
    scheduled_transactions: Iterable[ScheduledTransaction],
    today: date,
) -> dict[UUID, list[ScheduledTransaction]]:
    """
    Map category id to its scheduled occurrences inside the window.

    Built fresh on every call. Deleted schedules and parts without a
    category are ignored. Overdue schedules (date_next before today) are
    still pending, so they count.
    """
    end = window_end(today)
    result: dict[UUID, list[ScheduledTransaction]] = defaultdict(list)

    for scheduled in scheduled_transactions:
        if scheduled.deleted or scheduled.date_next > end:
            continue
        for part in expand_subtransactions(scheduled):
            if part.category_id is None:
                continue
            result[part.category_id].append(part)
            result[part.category_id].extend(repeated_occurrences(part, today))

    return dict(result)


def salaries_per_person(
    scheduled_transactions: Iterable[ScheduledTransaction],
    persons: Iterable[SalarySchedule],
    today: date,
) -> list[SalaryPerPerson]:
    """
    Monthly salary of each configured person from their payee's schedules.

    `salary` is the amount of one pay, taken from the last matching
    schedule when a person has several; `salary_per_month` adds every
    repeat of every pay inside the window (a bi-weekly pay counts twice).
    """
    scheduled_transactions = [st for st in scheduled_transactions if not st.deleted]
    salaries = []

    for person in persons:
        salary = SalaryPerPerson(name=person.name, payee_id=person.payee_id)
        for scheduled in scheduled_transactions:
            if scheduled.payee_id != person.payee_id:
                continue
            salary.salary = scheduled.amount
            salary.salary_per_month += scheduled.amount + sum(
                repeat.amount for repeat in repeated_occurrences(scheduled, today)
            )
        salaries.append(salary)

    return salaries


def scheduled_distribution(
    scheduled_transactions: Iterable[ScheduledTransaction],
    categories: Iterable[Category],
    today: date,
) -> dict[date, list[ScheduledTransaction]]:
    """
    Scheduled occurrences of the coming month grouped by due date.

    Splits are flattened and frequent schedules repeated like in the
    projection. Only live occurrences due between today and the window's
    end are kept, and each one is given the name of its category (a part
    whose category is unknown keeps the parent's name).

    Returns:
        Occurrences per date, dates in ascending order
    """
    names = {category.id: category.name for category in categories}
    end = window_end(today)
    distribution: dict[date, list[ScheduledTransaction]] = defaultdict(list)

    for scheduled in scheduled_transactions:
        if scheduled.deleted:
            continue
        for part in expand_subtransactions(scheduled):
            for occurrence in [part, *repeated_occurrences(part, today)]:
                if not today <= occurrence.date_next <= end:
                    continue
                name = names.get(occurrence.category_id) or occurrence.category_name
                distribution[occurrence.date_next].append(
                    occurrence.model_copy(update={"category_name": name})
                )

    return {day: distribution[day] for day in sorted(distribution)}
