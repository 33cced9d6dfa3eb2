"""
Upstream Ledger Client Interface

The delta sync manager only needs "give me what changed since cursor N"
per resource kind. Anything that can answer that (the YNAB HTTP API, a
fake in tests) implements this interface.
"""

from abc import ABC, abstractmethod
from typing import Optional

from budget_engine.models.ledger import (
    Account,
    Category,
    LedgerDelta,
    LedgerRecord,
    Payee,
    ResourceKind,
    ScheduledTransaction,
    Transaction,
)


class LedgerClientInterface(ABC):
    """
    Capability to fetch incremental deltas from the upstream ledger.

    Every method takes the last known server knowledge (None for a full
    fetch) and returns the changed records, soft-deleted ones included,
    with the server knowledge to use next time.

    Raises:
        UpstreamError: On transport failure, timeout, or API error
    """

    @abstractmethod
    async def get_categories_delta(self, last_knowledge: Optional[int] = None) -> LedgerDelta[Category]:
        pass

    @abstractmethod
    async def get_accounts_delta(self, last_knowledge: Optional[int] = None) -> LedgerDelta[Account]:
        pass

    @abstractmethod
    async def get_payees_delta(self, last_knowledge: Optional[int] = None) -> LedgerDelta[Payee]:
        pass

    @abstractmethod
    async def get_transactions_delta(self, last_knowledge: Optional[int] = None) -> LedgerDelta[Transaction]:
        pass

    @abstractmethod
    async def get_scheduled_transactions_delta(
        self,
        last_knowledge: Optional[int] = None,
    ) -> LedgerDelta[ScheduledTransaction]:
        pass

    async def get_delta(
        self,
        kind: ResourceKind,
        last_knowledge: Optional[int] = None,
    ) -> LedgerDelta[LedgerRecord]:
        """Dispatch to the delta method of a resource kind."""
        fetchers = {
            ResourceKind.CATEGORIES: self.get_categories_delta,
            ResourceKind.ACCOUNTS: self.get_accounts_delta,
            ResourceKind.PAYEES: self.get_payees_delta,
            ResourceKind.TRANSACTIONS: self.get_transactions_delta,
            ResourceKind.SCHEDULED_TRANSACTIONS: self.get_scheduled_transactions_delta,
        }
        return await fetchers[kind](last_knowledge)


class UpstreamError(Exception):
    """
    The upstream ledger could not be reached or refused the request.

    Safe to retry: nothing local has been changed when this is raised.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)
