"""
Net-Worth Aggregator

Derives the net totals of every month from the financial resources, and
the net totals of every year from its months.

- Month: net assets are assets minus liabilities; the portfolio only holds
  cash and investment assets, minus cash liabilities. Variation is measured
  against the month before (December of the previous year for January).
- Year: a year's net worth is its latest computed month's snapshot, not a
  sum of months. Variation is measured against the previous year.

DESIGN DECISION: Each month's variation depends on the freshly computed
total of the month before it, so propagation walks the chain one month at
a time, in calendar order, and never in parallel.
"""

from datetime import datetime, timezone
from typing import Callable, Iterable, Optional
from uuid import UUID

import structlog

from budget_engine.audit import AuditLogger
from budget_engine.models.balance_sheet import (
    PORTFOLIO_ASSET_TYPES,
    PORTFOLIO_LIABILITY_TYPES,
    FinancialResource,
    Month,
    NetTotal,
    ResourceCategory,
    Year,
    previous_period,
)
from budget_engine.services.storage import BalanceSheetStorageInterface, NotFoundError


logger = structlog.get_logger(__name__)


def compute_totals(
    resources: Iterable[FinancialResource],
    month: int,
) -> Optional[tuple[int, int]]:
    """
    (net assets, net portfolio) of the resources for one month.

    Returns None when no resource holds a balance for that month.
    """
    total_assets = 0
    total_portfolio = 0
    found = False

    for resource in resources:
        balance = resource.balance_for(month)
        if balance is None:
            continue
        found = True
        if resource.category == ResourceCategory.ASSET:
            total_assets += balance
            if resource.resource_type in PORTFOLIO_ASSET_TYPES:
                total_portfolio += balance
        else:
            total_assets -= balance
            if resource.resource_type in PORTFOLIO_LIABILITY_TYPES:
                total_portfolio -= balance

    if not found:
        return None
    return total_assets, total_portfolio


def apply_variation(current: NetTotal, previous: Optional[NetTotal]) -> None:
    """Set balance_var/percent_var of `current` against `previous`."""
    if previous is None or not previous.is_computed or not current.is_computed:
        current.balance_var = 0
        current.percent_var = 0.0
        return
    current.balance_var = current.total - previous.total
    current.percent_var = current.balance_var / previous.total if previous.total != 0 else 0.0


def compute_month_net_totals(
    month: Month,
    resources: Iterable[FinancialResource],
    previous: Optional[Month],
    now: datetime,
) -> Month:
    """
    Recompute a month in place from its year's resources.

    Totals of a month without any balance are kept as they are; only the
    variation is refreshed.
    """
    totals = compute_totals(
        (r for r in resources if r.year == month.year),
        int(month.month),
    )

    if totals is not None:
        for net_total, value in zip((month.net_assets, month.net_portfolio), totals):
            net_total.total = value
            net_total.last_updated = now

    apply_variation(month.net_assets, previous.net_assets if previous else None)
    apply_variation(month.net_portfolio, previous.net_portfolio if previous else None)
    return month


def compute_year_net_totals(
    year: Year,
    months: Iterable[Month],
    previous: Optional[Year],
    now: datetime,
) -> Year:
    """
    Recompute a year in place from its latest computed month, or its
    latest month when none is computed.
    """
    of_year = sorted((m for m in months if m.year == year.year), key=lambda m: int(m.month))
    computed = [m for m in of_year if m.net_assets.is_computed]
    last = computed[-1] if computed else (of_year[-1] if of_year else None)

    if last is not None:
        for net_total, source in (
            (year.net_assets, last.net_assets),
            (year.net_portfolio, last.net_portfolio),
        ):
            net_total.total = source.total
            net_total.last_updated = now if source.is_computed else net_total.last_updated

    apply_variation(year.net_assets, previous.net_assets if previous else None)
    apply_variation(year.net_portfolio, previous.net_portfolio if previous else None)
    year.refreshed_at = now
    return year


class NetWorthAggregator:
    """
    Persists net totals and propagates changes through the month/year chain.

    Args:
        storage: Balance-sheet store
        audit_logger: Optional audit trail of updates
        clock: Source of `last_updated` timestamps
    """

    def __init__(
        self,
        storage: BalanceSheetStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self._storage = storage
        self._audit_logger = audit_logger
        self._clock = clock

    async def update_month_net_totals(
        self,
        year: int,
        month: int,
        correlation_id: Optional[UUID] = None,
    ) -> Month:
        """
        Recompute a month, every later month, then the years from `year` on.

        Returns:
            The recomputed month

        Raises:
            NotFoundError: If the month does not exist
        """
        months = await self._storage.get_months()
        by_period = {m.period: m for m in months}
        if (year, int(month)) not in by_period:
            raise NotFoundError(f"Month not found: {year}-{int(month):02d}")

        now = self._clock()
        resources_by_year: dict[int, list[FinancialResource]] = {}

        for current in months:
            if current.period < (year, int(month)):
                continue
            if current.year not in resources_by_year:
                resources_by_year[current.year] = await self._storage.get_resources(current.year)

            previous = by_period.get(previous_period(*current.period))
            compute_month_net_totals(current, resources_by_year[current.year], previous, now)
            await self._storage.update_month(current)

            logger.debug(
                "month_net_totals_updated",
                year=current.year,
                month=int(current.month),
                net_assets=current.net_assets.total,
                balance_var=current.net_assets.balance_var,
            )
            if self._audit_logger:
                await self._audit_logger.log_net_totals_updated(
                    "month",
                    current.id,
                    f"{current.year}-{int(current.month):02d}",
                    current.net_assets.total,
                    current.net_portfolio.total,
                    correlation_id,
                )

        await self.update_year_net_totals(year, correlation_id)
        return by_period[(year, int(month))]

    async def update_year_net_totals(
        self,
        year: int,
        correlation_id: Optional[UUID] = None,
    ) -> Year:
        """
        Recompute a year from its last month, then every following year.

        Raises:
            NotFoundError: If the year does not exist
        """
        years = await self._storage.get_years()
        by_year = {y.year: y for y in years}
        if year not in by_year:
            raise NotFoundError(f"Year not found: {year}")

        now = self._clock()
        for current in years:
            if current.year < year:
                continue
            months = await self._storage.get_months(current.year)
            compute_year_net_totals(current, months, by_year.get(current.year - 1), now)
            await self._storage.update_year(current)

            logger.info(
                "year_net_totals_updated",
                year=current.year,
                net_assets=current.net_assets.total,
                net_portfolio=current.net_portfolio.total,
            )
            if self._audit_logger:
                await self._audit_logger.log_net_totals_updated(
                    "year",
                    current.id,
                    str(current.year),
                    current.net_assets.total,
                    current.net_portfolio.total,
                    correlation_id,
                )

        return by_year[year]
