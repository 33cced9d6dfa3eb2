"""
Balance Sheet Service

Create/read/delete operations for years, months and financial resources.
Every write that can change a balance goes through the net-worth
aggregator, so the stored totals always follow the resources.
"""

from typing import Iterable, Optional
from uuid import UUID

import structlog

from budget_engine.balance_sheet.net_worth import NetWorthAggregator
from budget_engine.models.balance_sheet import (
    FinancialResource,
    Month,
    MonthNum,
    Year,
    next_period,
)
from budget_engine.services.storage import (
    AlreadyExistsError,
    BalanceSheetStorageInterface,
    NotFoundError,
)


logger = structlog.get_logger(__name__)


class BalanceSheetService:
    """
    Usage:
        service = BalanceSheetService(storage, NetWorthAggregator(storage))
        await service.create_year(2024)
        await service.create_resource(resource)
        year = await service.get_year(2024)
    """

    def __init__(
        self,
        storage: BalanceSheetStorageInterface,
        aggregator: NetWorthAggregator,
    ):
        self._storage = storage
        self._aggregator = aggregator

    # =========================================================================
    # YEARS
    # =========================================================================

    async def get_years(self) -> list[Year]:
        return await self._storage.get_years()

    async def get_year(self, year: int) -> Year:
        return await self._storage.get_year(year)

    async def create_year(self, year: int, correlation_id: Optional[UUID] = None) -> Year:
        """
        Create a year with its twelve months and compute their totals.

        Resources saved for that year beforehand are picked up.

        Raises:
            AlreadyExistsError: If the year exists
        """
        await self._storage.add_year(Year(year=year))
        for month_num in MonthNum:
            await self._storage.add_month(Month(year=year, month=month_num))

        logger.info("year_created", year=year)
        await self._aggregator.update_month_net_totals(year, MonthNum.JANUARY, correlation_id)
        return await self._storage.get_year(year)

    async def delete_year(self, year: int, correlation_id: Optional[UUID] = None) -> Year:
        deleted = await self._storage.delete_year(year)
        logger.info("year_deleted", year=year)
        await self._refresh_after(year, MonthNum.DECEMBER, correlation_id)
        return deleted

    # =========================================================================
    # MONTHS
    # =========================================================================

    async def get_months(self, year: Optional[int] = None) -> list[Month]:
        return await self._storage.get_months(year)

    async def get_month(self, year: int, month: int) -> Month:
        return await self._storage.get_month(year, month)

    async def create_month(
        self,
        year: int,
        month: int,
        correlation_id: Optional[UUID] = None,
    ) -> Month:
        """
        Raises:
            NotFoundError: If the year does not exist
            AlreadyExistsError: If the month exists
        """
        await self._storage.add_month(Month(year=year, month=MonthNum(month)))
        logger.info("month_created", year=year, month=int(month))
        return await self._aggregator.update_month_net_totals(year, month, correlation_id)

    async def delete_month(
        self,
        year: int,
        month: int,
        correlation_id: Optional[UUID] = None,
    ) -> Month:
        deleted = await self._storage.delete_month(year, month)
        logger.info("month_deleted", year=year, month=int(month))
        await self._refresh_after(year, month, correlation_id)
        return deleted

    # =========================================================================
    # FINANCIAL RESOURCES
    # =========================================================================

    async def get_resources(self, year: Optional[int] = None) -> list[FinancialResource]:
        return await self._storage.get_resources(year)

    async def get_resource(self, resource_id: UUID) -> FinancialResource:
        return await self._storage.get_resource(resource_id)

    async def create_resource(
        self,
        resource: FinancialResource,
        correlation_id: Optional[UUID] = None,
    ) -> FinancialResource:
        """
        Save a new resource and propagate its balances.

        Missing months holding a balance are created.

        Raises:
            NotFoundError: If the resource's year does not exist
            AlreadyExistsError: If a resource with that id exists
        """
        try:
            await self._storage.get_resource(resource.id)
        except NotFoundError:
            pass
        else:
            raise AlreadyExistsError(f"Financial resource already exists: {resource.id}")

        await self._ensure_months(resource.year, resource.balance_per_month)
        await self._storage.save_resource(resource)
        logger.info(
            "resource_created",
            resource_id=str(resource.id),
            name=resource.name,
            year=resource.year,
        )
        await self._propagate(resource.year, resource.balance_per_month, correlation_id)
        return resource

    async def update_resource(
        self,
        resource: FinancialResource,
        correlation_id: Optional[UUID] = None,
    ) -> FinancialResource:
        """
        Replace a resource and propagate both its old and new balances.

        Raises:
            NotFoundError: If the resource or its year does not exist
        """
        previous = await self._storage.get_resource(resource.id)
        await self._ensure_months(resource.year, resource.balance_per_month)
        await self._storage.save_resource(resource)
        logger.info("resource_updated", resource_id=str(resource.id), name=resource.name)

        if previous.year != resource.year:
            await self._propagate(previous.year, previous.balance_per_month, correlation_id)
            await self._propagate(resource.year, resource.balance_per_month, correlation_id)
        else:
            await self._propagate(
                resource.year,
                set(previous.balance_per_month) | set(resource.balance_per_month),
                correlation_id,
            )
        return resource

    async def delete_resource(
        self,
        resource_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> FinancialResource:
        deleted = await self._storage.delete_resource(resource_id)
        logger.info("resource_deleted", resource_id=str(resource_id), name=deleted.name)
        await self._propagate(deleted.year, deleted.balance_per_month, correlation_id)
        return deleted

    # =========================================================================
    # PROPAGATION
    # =========================================================================

    async def _ensure_months(self, year: int, months: Iterable[int]) -> None:
        await self._storage.get_year(year)
        for month in months:
            try:
                await self._storage.get_month(year, month)
            except NotFoundError:
                await self._storage.add_month(Month(year=year, month=MonthNum(month)))

    async def _propagate(
        self,
        year: int,
        months: Iterable[int],
        correlation_id: Optional[UUID],
    ) -> None:
        """Recompute from the earliest touched month of `year` onwards."""
        touched = sorted(int(m) for m in months)
        if not touched:
            return
        try:
            await self._aggregator.update_month_net_totals(year, touched[0], correlation_id)
        except NotFoundError:
            # The year or month went away with the change; refresh what follows
            await self._refresh_after(year, touched[0], correlation_id)

    async def _refresh_after(
        self,
        year: int,
        month: int,
        correlation_id: Optional[UUID],
    ) -> None:
        """Recompute the first existing month after (year, month) and the years from `year`."""
        following = [
            m for m in await self._storage.get_months()
            if m.period >= next_period(year, month)
        ]
        if following:
            first = following[0]
            await self._aggregator.update_month_net_totals(first.year, first.month, correlation_id)

        years = [y for y in await self._storage.get_years() if y.year >= year]
        if years and (not following or years[0].year < following[0].year):
            await self._aggregator.update_year_net_totals(years[0].year, correlation_id)
