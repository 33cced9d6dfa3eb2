"""
Shared fixtures for the Budget Engine tests.

No real API calls: the upstream ledger is replaced by a scripted client
and every store is in memory.
"""

from collections import defaultdict
from datetime import date
from typing import Optional
from uuid import UUID, uuid4

import pytest

from budget_engine.audit import AuditLogger
from budget_engine.config import BudgetCalculationSettings
from budget_engine.models.ledger import (
    Account,
    Category,
    LedgerDelta,
    Payee,
    RecurFrequency,
    ResourceKind,
    ScheduledTransaction,
    Transaction,
)
from budget_engine.services.storage import (
    InMemoryAuditStorage,
    InMemoryCursorStorage,
    InMemoryMirrorStorage,
)
from budget_engine.services.ynab import LedgerClientInterface
from budget_engine.sync import DeltaSyncManager


TODAY = date(2024, 6, 3)


class ScriptedLedgerClient(LedgerClientInterface):
    """
    Ledger client returning queued deltas (or raising queued errors) per kind.

    When a kind's queue is empty it answers with an empty delta at the
    requested cursor, like an upstream with nothing new.
    """

    def __init__(self):
        self.queued: dict[ResourceKind, list] = defaultdict(list)
        self.calls: list[tuple[ResourceKind, Optional[int]]] = []

    def queue(self, kind: ResourceKind, *items) -> None:
        self.queued[kind].extend(items)

    async def _next(self, kind: ResourceKind, last_knowledge: Optional[int]):
        self.calls.append((kind, last_knowledge))
        if not self.queued[kind]:
            return LedgerDelta(records=[], server_knowledge=last_knowledge or 0)
        item = self.queued[kind].pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    async def get_categories_delta(self, last_knowledge=None):
        return await self._next(ResourceKind.CATEGORIES, last_knowledge)

    async def get_accounts_delta(self, last_knowledge=None):
        return await self._next(ResourceKind.ACCOUNTS, last_knowledge)

    async def get_payees_delta(self, last_knowledge=None):
        return await self._next(ResourceKind.PAYEES, last_knowledge)

    async def get_transactions_delta(self, last_knowledge=None):
        return await self._next(ResourceKind.TRANSACTIONS, last_knowledge)

    async def get_scheduled_transactions_delta(self, last_knowledge=None):
        return await self._next(ResourceKind.SCHEDULED_TRANSACTIONS, last_knowledge)


# =============================================================================
# RECORD FACTORIES
# =============================================================================

def make_category(
    group_id: UUID,
    name: str = "Groceries",
    budgeted: int = 0,
    **goal,
) -> Category:
    return Category(
        id=goal.pop("id", uuid4()),
        category_group_id=group_id,
        name=name,
        budgeted=budgeted,
        **goal,
    )


def make_scheduled(
    amount: int,
    date_next: date = TODAY,
    frequency: RecurFrequency = RecurFrequency.MONTHLY,
    **fields,
) -> ScheduledTransaction:
    return ScheduledTransaction(
        id=fields.pop("id", uuid4()),
        date_next=date_next,
        frequency=frequency,
        amount=amount,
        **fields,
    )


def make_transaction(amount: int, on: date = TODAY, **fields) -> Transaction:
    return Transaction(
        id=fields.pop("id", uuid4()),
        date=on,
        amount=amount,
        account_id=fields.pop("account_id", uuid4()),
        **fields,
    )


def make_payee(name: str = "Bakery", **fields) -> Payee:
    return Payee(id=fields.pop("id", uuid4()), name=name, **fields)


def make_account(name: str = "Checking", **fields) -> Account:
    return Account(id=fields.pop("id", uuid4()), name=name, type="checking", **fields)


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def group_ids() -> dict[str, UUID]:
    return {
        "housing": uuid4(),
        "subscription": uuid4(),
        "short_term": uuid4(),
        "retirement": uuid4(),
        "unmapped": uuid4(),
    }


@pytest.fixture
def budget_config(group_ids) -> BudgetCalculationSettings:
    return BudgetCalculationSettings(
        housing_ids=[group_ids["housing"]],
        subscription_ids=[group_ids["subscription"]],
        short_term_saving_ids=[group_ids["short_term"]],
        retirement_saving_ids=[group_ids["retirement"]],
        health_insurance_category_name="Assurance Santé",
    )


@pytest.fixture
def ledger_client() -> ScriptedLedgerClient:
    return ScriptedLedgerClient()


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage) -> AuditLogger:
    return AuditLogger(audit_storage)


@pytest.fixture
def cursor_storage() -> InMemoryCursorStorage:
    return InMemoryCursorStorage()


@pytest.fixture
def mirror_storage() -> InMemoryMirrorStorage:
    return InMemoryMirrorStorage()


@pytest.fixture
def sync_manager(ledger_client, cursor_storage, mirror_storage, audit_logger) -> DeltaSyncManager:
    return DeltaSyncManager(
        client=ledger_client,
        cursor_storage=cursor_storage,
        mirror_storage=mirror_storage,
        audit_logger=audit_logger,
        today=lambda: TODAY,
    )
