"""
In-Memory Storage Implementation

Process-local implementations of every storage interface. Used by the
test suite and when no Google Sheets backend is configured.

Stored models are copied on the way in and out, so callers can never
mutate the store behind its back (same contract as a real backend).
"""

from datetime import date
from typing import Optional
from uuid import UUID

from budget_engine.models.audit import AuditEvent
from budget_engine.models.balance_sheet import (
    FinancialResource,
    Month,
    SavingRate,
    Year,
)
from budget_engine.models.ledger import LedgerRecord, ResourceKind
from budget_engine.services.storage.interface import (
    AlreadyExistsError,
    AuditStorageInterface,
    BalanceSheetStorageInterface,
    CursorStorageInterface,
    MirrorStorageInterface,
    NotFoundError,
)


class InMemoryCursorStorage(CursorStorageInterface):

    def __init__(self):
        self._deltas: dict[ResourceKind, int] = {}
        self._last_saved: dict[ResourceKind, date] = {}

    async def get_delta(self, kind: ResourceKind) -> Optional[int]:
        return self._deltas.get(kind)

    async def set_delta(self, kind: ResourceKind, server_knowledge: int) -> None:
        self._deltas[kind] = server_knowledge

    async def del_delta(self, kind: ResourceKind) -> None:
        self._deltas.pop(kind, None)

    async def get_last_saved(self, kind: ResourceKind) -> Optional[date]:
        return self._last_saved.get(kind)

    async def set_last_saved(self, kind: ResourceKind, saved: date) -> None:
        self._last_saved[kind] = saved


class InMemoryMirrorStorage(MirrorStorageInterface):

    def __init__(self):
        self._records: dict[ResourceKind, dict[UUID, LedgerRecord]] = {
            kind: {} for kind in ResourceKind
        }

    async def get_all(self, kind: ResourceKind) -> list[LedgerRecord]:
        return [record.model_copy(deep=True) for record in self._records[kind].values()]

    async def get(self, kind: ResourceKind, record_id: UUID) -> LedgerRecord:
        try:
            return self._records[kind][record_id].model_copy(deep=True)
        except KeyError:
            raise NotFoundError(f"{kind.value} record not found: {record_id}")

    async def update_all(self, kind: ResourceKind, records: list[LedgerRecord]) -> None:
        for record in records:
            self._records[kind][record.id] = record.model_copy(deep=True)

    async def delete_many(self, kind: ResourceKind, record_ids: list[UUID]) -> int:
        removed = 0
        for record_id in record_ids:
            if self._records[kind].pop(record_id, None) is not None:
                removed += 1
        return removed


class InMemoryBalanceSheetStorage(BalanceSheetStorageInterface):

    def __init__(self):
        self._years: dict[int, Year] = {}
        self._months: dict[tuple[int, int], Month] = {}
        self._resources: dict[UUID, FinancialResource] = {}
        self._saving_rates: dict[UUID, SavingRate] = {}

    # Years

    async def get_years(self) -> list[Year]:
        return [self._years[y].model_copy(deep=True) for y in sorted(self._years)]

    async def get_year(self, year: int) -> Year:
        if year not in self._years:
            raise NotFoundError(f"Year not found: {year}")
        found = self._years[year].model_copy(deep=True)
        found.months = await self.get_months(year)
        return found

    async def add_year(self, year: Year) -> None:
        if year.year in self._years:
            raise AlreadyExistsError(f"Year already exists: {year.year}")
        self._years[year.year] = year.model_copy(deep=True, update={"months": []})

    async def update_year(self, year: Year) -> None:
        if year.year not in self._years:
            raise NotFoundError(f"Year not found: {year.year}")
        self._years[year.year] = year.model_copy(deep=True, update={"months": []})

    async def delete_year(self, year: int) -> Year:
        deleted = await self.get_year(year)
        del self._years[year]
        for key in [key for key in self._months if key[0] == year]:
            del self._months[key]
        return deleted

    # Months

    async def get_months(self, year: Optional[int] = None) -> list[Month]:
        return [
            self._months[key].model_copy(deep=True)
            for key in sorted(self._months)
            if year is None or key[0] == year
        ]

    async def get_month(self, year: int, month: int) -> Month:
        try:
            return self._months[(year, int(month))].model_copy(deep=True)
        except KeyError:
            raise NotFoundError(f"Month not found: {year}-{int(month):02d}")

    async def add_month(self, month: Month) -> None:
        if month.year not in self._years:
            raise NotFoundError(f"Year not found: {month.year}")
        if month.period in self._months:
            raise AlreadyExistsError(f"Month already exists: {month.year}-{int(month.month):02d}")
        self._months[month.period] = month.model_copy(deep=True)

    async def update_month(self, month: Month) -> None:
        if month.period not in self._months:
            raise NotFoundError(f"Month not found: {month.year}-{int(month.month):02d}")
        self._months[month.period] = month.model_copy(deep=True)

    async def delete_month(self, year: int, month: int) -> Month:
        deleted = await self.get_month(year, month)
        del self._months[deleted.period]
        return deleted

    # Financial resources

    async def get_resources(self, year: Optional[int] = None) -> list[FinancialResource]:
        return [
            resource.model_copy(deep=True)
            for resource in sorted(self._resources.values(), key=lambda r: (r.year, r.name))
            if year is None or resource.year == year
        ]

    async def get_resource(self, resource_id: UUID) -> FinancialResource:
        try:
            return self._resources[resource_id].model_copy(deep=True)
        except KeyError:
            raise NotFoundError(f"Financial resource not found: {resource_id}")

    async def save_resource(self, resource: FinancialResource) -> None:
        self._resources[resource.id] = resource.model_copy(deep=True)

    async def delete_resource(self, resource_id: UUID) -> FinancialResource:
        deleted = await self.get_resource(resource_id)
        del self._resources[resource_id]
        return deleted

    # Saving rates

    async def get_saving_rates(self, year: Optional[int] = None) -> list[SavingRate]:
        return [
            saving_rate.model_copy(deep=True)
            for saving_rate in self._saving_rates.values()
            if year is None or saving_rate.year == year
        ]

    async def get_saving_rate(self, saving_rate_id: UUID) -> SavingRate:
        try:
            return self._saving_rates[saving_rate_id].model_copy(deep=True)
        except KeyError:
            raise NotFoundError(f"Saving rate not found: {saving_rate_id}")

    async def get_saving_rate_by_name(self, name: str) -> Optional[SavingRate]:
        for saving_rate in self._saving_rates.values():
            if saving_rate.name == name:
                return saving_rate.model_copy(deep=True)
        return None

    async def save_saving_rate(self, saving_rate: SavingRate) -> None:
        self._saving_rates[saving_rate.id] = saving_rate.model_copy(deep=True)

    async def delete_saving_rate(self, saving_rate_id: UUID) -> SavingRate:
        deleted = await self.get_saving_rate(saving_rate_id)
        del self._saving_rates[saving_rate_id]
        return deleted


class InMemoryAuditStorage(AuditStorageInterface):

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event.model_copy(deep=True))
        return True

    async def get_events_by_correlation_id(self, correlation_id: UUID) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
