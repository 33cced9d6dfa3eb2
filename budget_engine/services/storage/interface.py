"""
Abstract Storage Interfaces

DESIGN DECISION: Every engine receives the narrow storage capability it
needs through its constructor:
1. The delta sync manager gets a cursor store and a ledger mirror
2. The net-worth aggregator and saving-rate service get a balance-sheet store
3. The audit logger gets an append-only audit store

This keeps business logic decoupled from the backend (Google Sheets,
in-memory for tests, a database later).
"""

from abc import ABC, abstractmethod
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


class CursorStorageInterface(ABC):
    """
    Durable key/value store of delta-sync positions, per resource kind.
    """

    @abstractmethod
    async def get_delta(self, kind: ResourceKind) -> Optional[int]:
        """
        Get the last persisted server knowledge.

        Returns:
            The cursor, or None if the kind was never synced (or was cleared)
        """
        pass

    @abstractmethod
    async def set_delta(self, kind: ResourceKind, server_knowledge: int) -> None:
        """
        Persist a new server knowledge.

        Raises:
            PersistenceError: If the write fails
        """
        pass

    @abstractmethod
    async def del_delta(self, kind: ResourceKind) -> None:
        """Clear the server knowledge so the next sync is a full fetch."""
        pass

    @abstractmethod
    async def get_last_saved(self, kind: ResourceKind) -> Optional[date]:
        """Get the date of the last sync cycle, None if never synced."""
        pass

    @abstractmethod
    async def set_last_saved(self, kind: ResourceKind, saved: date) -> None:
        pass


class MirrorStorageInterface(ABC):
    """
    Durable snapshot of upstream ledger records, keyed by id.

    Writes are upserts: re-applying the same records leaves the mirror
    unchanged.
    """

    @abstractmethod
    async def get_all(self, kind: ResourceKind) -> list[LedgerRecord]:
        """Get every mirrored record of a kind."""
        pass

    @abstractmethod
    async def get(self, kind: ResourceKind, record_id: UUID) -> LedgerRecord:
        """
        Get one mirrored record.

        Raises:
            NotFoundError: If no record has this id
        """
        pass

    @abstractmethod
    async def update_all(self, kind: ResourceKind, records: list[LedgerRecord]) -> None:
        """
        Bulk upsert records by id (last write wins).

        Raises:
            PersistenceError: If the write fails
        """
        pass

    @abstractmethod
    async def delete_many(self, kind: ResourceKind, record_ids: list[UUID]) -> int:
        """
        Purge records by id. Unknown ids are ignored.

        Returns:
            Number of records removed
        """
        pass


class BalanceSheetStorageInterface(ABC):
    """
    Abstract interface for the manually tracked balance sheet.

    Months and years are keyed by their calendar position, resources and
    saving rates by id.
    """

    # Years

    @abstractmethod
    async def get_years(self) -> list[Year]:
        """Get all years (without months) in chronological order."""
        pass

    @abstractmethod
    async def get_year(self, year: int) -> Year:
        """
        Raises:
            NotFoundError: If the year does not exist
        """
        pass

    @abstractmethod
    async def add_year(self, year: Year) -> None:
        """
        Raises:
            AlreadyExistsError: If the year already exists
        """
        pass

    @abstractmethod
    async def update_year(self, year: Year) -> None:
        """
        Raises:
            NotFoundError: If the year does not exist
        """
        pass

    @abstractmethod
    async def delete_year(self, year: int) -> Year:
        """Delete a year with its months. Returns the deleted year."""
        pass

    # Months

    @abstractmethod
    async def get_months(self, year: Optional[int] = None) -> list[Month]:
        """Get months in chronological order, optionally only those of a year."""
        pass

    @abstractmethod
    async def get_month(self, year: int, month: int) -> Month:
        """
        Raises:
            NotFoundError: If the month does not exist
        """
        pass

    @abstractmethod
    async def add_month(self, month: Month) -> None:
        """
        Raises:
            NotFoundError: If the month's year does not exist
            AlreadyExistsError: If the month already exists
        """
        pass

    @abstractmethod
    async def update_month(self, month: Month) -> None:
        pass

    @abstractmethod
    async def delete_month(self, year: int, month: int) -> Month:
        pass

    # Financial resources

    @abstractmethod
    async def get_resources(self, year: Optional[int] = None) -> list[FinancialResource]:
        pass

    @abstractmethod
    async def get_resource(self, resource_id: UUID) -> FinancialResource:
        pass

    @abstractmethod
    async def save_resource(self, resource: FinancialResource) -> None:
        """Insert or replace a resource by id."""
        pass

    @abstractmethod
    async def delete_resource(self, resource_id: UUID) -> FinancialResource:
        pass

    # Saving rates

    @abstractmethod
    async def get_saving_rates(self, year: Optional[int] = None) -> list[SavingRate]:
        pass

    @abstractmethod
    async def get_saving_rate(self, saving_rate_id: UUID) -> SavingRate:
        pass

    @abstractmethod
    async def get_saving_rate_by_name(self, name: str) -> Optional[SavingRate]:
        pass

    @abstractmethod
    async def save_saving_rate(self, saving_rate: SavingRate) -> None:
        """Insert or replace a saving rate by id."""
        pass

    @abstractmethod
    async def delete_saving_rate(self, saving_rate_id: UUID) -> SavingRate:
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events of one request in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get the most recent audit events (newest first)."""
        pass


class PersistenceError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(PersistenceError):
    """Entity not found in storage."""
    pass


class AlreadyExistsError(PersistenceError):
    """Attempted to insert a duplicate entity."""
    pass


class StorageConnectionError(PersistenceError):
    """Could not connect to storage backend."""
    pass
