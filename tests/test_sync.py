"""
Tests for the Delta Sync Manager.

The upstream ledger is a scripted client; cursors and mirror are in memory.
"""

import asyncio

import pytest
from datetime import date
from uuid import uuid4

from conftest import (
    TODAY,
    ScriptedLedgerClient,
    make_account,
    make_category,
    make_payee,
    make_transaction,
)

from budget_engine.models.audit import AuditEventType
from budget_engine.models.ledger import LedgerDelta, ResourceKind, SubTransaction
from budget_engine.services.storage import InMemoryMirrorStorage, PersistenceError
from budget_engine.services.ynab import UpstreamError
from budget_engine.sync import DeltaSyncManager, split_transactions


class BrokenMirrorStorage(InMemoryMirrorStorage):
    """Mirror whose writes always fail."""

    async def update_all(self, kind, records):
        raise RuntimeError("disk full")


class TestDeltaSync:
    """Tests for a single sync cycle."""

    @pytest.mark.asyncio
    async def test_first_sync_is_a_full_fetch(self, sync_manager, ledger_client, cursor_storage):
        """Test no cursor means no last_knowledge_of_server."""
        payee = make_payee()
        ledger_client.queue(ResourceKind.PAYEES, LedgerDelta(records=[payee], server_knowledge=10))

        snapshot = await sync_manager.sync(ResourceKind.PAYEES)

        assert ledger_client.calls == [(ResourceKind.PAYEES, None)]
        assert snapshot == [payee]
        assert await cursor_storage.get_delta(ResourceKind.PAYEES) == 10
        assert await cursor_storage.get_last_saved(ResourceKind.PAYEES) == TODAY

    @pytest.mark.asyncio
    async def test_next_sync_sends_the_cursor(self, sync_manager, ledger_client):
        """Test the stored cursor is passed upstream."""
        ledger_client.queue(
            ResourceKind.PAYEES,
            LedgerDelta(records=[make_payee("A")], server_knowledge=10),
            LedgerDelta(records=[make_payee("B")], server_knowledge=12),
        )

        await sync_manager.sync(ResourceKind.PAYEES)
        snapshot = await sync_manager.sync(ResourceKind.PAYEES)

        assert ledger_client.calls[1] == (ResourceKind.PAYEES, 10)
        assert sorted(p.name for p in snapshot) == ["A", "B"]

    @pytest.mark.asyncio
    async def test_merge_is_idempotent(self, sync_manager, ledger_client, mirror_storage):
        """Test re-applying the same delta leaves the mirror unchanged."""
        payee = make_payee()
        delta = LedgerDelta(records=[payee], server_knowledge=10)
        ledger_client.queue(ResourceKind.PAYEES, delta, delta)

        first = await sync_manager.sync(ResourceKind.PAYEES)
        second = await sync_manager.sync(ResourceKind.PAYEES)

        assert first == second == [payee]

    @pytest.mark.asyncio
    async def test_update_replaces_record_by_id(self, sync_manager, ledger_client):
        """Test a changed record overwrites the mirrored one."""
        payee = make_payee("Old name")
        renamed = payee.model_copy(update={"name": "New name"})
        ledger_client.queue(
            ResourceKind.PAYEES,
            LedgerDelta(records=[payee], server_knowledge=1),
            LedgerDelta(records=[renamed], server_knowledge=2),
        )

        await sync_manager.sync(ResourceKind.PAYEES)
        snapshot = await sync_manager.sync(ResourceKind.PAYEES)

        assert [p.name for p in snapshot] == ["New name"]

    @pytest.mark.asyncio
    async def test_deleted_records_are_purged(self, sync_manager, ledger_client):
        """Test a soft-deleted payee leaves the mirror."""
        payee = make_payee()
        ledger_client.queue(
            ResourceKind.PAYEES,
            LedgerDelta(records=[payee], server_knowledge=1),
            LedgerDelta(records=[payee.model_copy(update={"deleted": True})], server_knowledge=2),
        )

        await sync_manager.sync(ResourceKind.PAYEES)
        snapshot = await sync_manager.sync(ResourceKind.PAYEES)

        assert snapshot == []

    @pytest.mark.asyncio
    async def test_deleted_categories_are_retained(self, sync_manager, ledger_client):
        """Test categories keep their deleted flag in the mirror."""
        category = make_category(uuid4())
        ledger_client.queue(
            ResourceKind.CATEGORIES,
            LedgerDelta(records=[category], server_knowledge=1),
            LedgerDelta(records=[category.model_copy(update={"deleted": True})], server_knowledge=2),
        )

        await sync_manager.sync(ResourceKind.CATEGORIES)
        snapshot = await sync_manager.sync(ResourceKind.CATEGORIES)

        assert len(snapshot) == 1
        assert snapshot[0].deleted is True

    @pytest.mark.asyncio
    async def test_cursor_never_regresses(self, sync_manager, ledger_client, cursor_storage):
        """Test an older server_knowledge does not move the cursor back."""
        ledger_client.queue(
            ResourceKind.ACCOUNTS,
            LedgerDelta(records=[make_account()], server_knowledge=10),
            LedgerDelta(records=[], server_knowledge=5),
        )

        await sync_manager.sync(ResourceKind.ACCOUNTS)
        await sync_manager.sync(ResourceKind.ACCOUNTS)

        assert await cursor_storage.get_delta(ResourceKind.ACCOUNTS) == 10


class TestSyncFailures:
    """Tests that failures never advance the cursor."""

    @pytest.mark.asyncio
    async def test_upstream_failure_keeps_cursor_and_mirror(
        self, sync_manager, ledger_client, cursor_storage, audit_storage
    ):
        """Test an upstream error leaves local state untouched."""
        payee = make_payee()
        ledger_client.queue(
            ResourceKind.PAYEES,
            LedgerDelta(records=[payee], server_knowledge=10),
            UpstreamError("Ledger API returned 503", status_code=503),
        )
        await sync_manager.sync(ResourceKind.PAYEES)

        with pytest.raises(UpstreamError):
            await sync_manager.sync(ResourceKind.PAYEES)

        assert await cursor_storage.get_delta(ResourceKind.PAYEES) == 10
        events = await audit_storage.get_recent_events()
        assert any(e.event_type == AuditEventType.SYNC_FAILED for e in events)
        service_errors = [e for e in events if e.event_type == AuditEventType.EXTERNAL_SERVICE_ERROR]
        assert [e.details for e in service_errors] == [{"service": "ynab"}]

    @pytest.mark.asyncio
    async def test_retry_after_failure_resends_same_cursor(self, sync_manager, ledger_client):
        """Test the cycle after a failure re-reads the same delta."""
        ledger_client.queue(
            ResourceKind.PAYEES,
            LedgerDelta(records=[make_payee()], server_knowledge=10),
            UpstreamError("timeout"),
            LedgerDelta(records=[make_payee()], server_knowledge=11),
        )
        await sync_manager.sync(ResourceKind.PAYEES)
        with pytest.raises(UpstreamError):
            await sync_manager.sync(ResourceKind.PAYEES)
        await sync_manager.sync(ResourceKind.PAYEES)

        assert [call[1] for call in ledger_client.calls] == [None, 10, 10]

    @pytest.mark.asyncio
    async def test_merge_failure_keeps_cursor(self, ledger_client, cursor_storage, audit_logger):
        """Test a failed merge raises PersistenceError and keeps the cursor."""
        manager = DeltaSyncManager(
            client=ledger_client,
            cursor_storage=cursor_storage,
            mirror_storage=BrokenMirrorStorage(),
            audit_logger=audit_logger,
            today=lambda: TODAY,
        )
        await cursor_storage.set_delta(ResourceKind.PAYEES, 7)
        ledger_client.queue(ResourceKind.PAYEES, LedgerDelta(records=[make_payee()], server_knowledge=8))

        with pytest.raises(PersistenceError):
            await manager.sync(ResourceKind.PAYEES)

        assert await cursor_storage.get_delta(ResourceKind.PAYEES) == 7


class TestMonthlyInvalidation:
    """Tests for the month-boundary cursor reset."""

    @pytest.mark.asyncio
    async def test_new_month_forces_full_fetch(self, ledger_client, cursor_storage, mirror_storage, audit_logger, audit_storage):
        """Test a cursor saved last month is cleared before fetching."""
        await cursor_storage.set_delta(ResourceKind.CATEGORIES, 100)
        await cursor_storage.set_last_saved(ResourceKind.CATEGORIES, date(2024, 1, 31))
        manager = DeltaSyncManager(
            ledger_client, cursor_storage, mirror_storage, audit_logger,
            today=lambda: date(2024, 2, 1),
        )
        ledger_client.queue(ResourceKind.CATEGORIES, LedgerDelta(records=[], server_knowledge=140))

        await manager.sync(ResourceKind.CATEGORIES)

        assert ledger_client.calls == [(ResourceKind.CATEGORIES, None)]
        assert await cursor_storage.get_delta(ResourceKind.CATEGORIES) == 140
        assert await cursor_storage.get_last_saved(ResourceKind.CATEGORIES) == date(2024, 2, 1)
        events = await audit_storage.get_recent_events()
        assert any(e.event_type == AuditEventType.CURSOR_INVALIDATED for e in events)

    @pytest.mark.asyncio
    async def test_same_month_keeps_cursor(self, ledger_client, cursor_storage, mirror_storage):
        """Test a cursor saved this month is reused."""
        await cursor_storage.set_delta(ResourceKind.CATEGORIES, 100)
        await cursor_storage.set_last_saved(ResourceKind.CATEGORIES, date(2024, 2, 1))
        manager = DeltaSyncManager(
            ledger_client, cursor_storage, mirror_storage,
            today=lambda: date(2024, 2, 29),
        )

        await manager.sync(ResourceKind.CATEGORIES)

        assert ledger_client.calls == [(ResourceKind.CATEGORIES, 100)]

    @pytest.mark.asyncio
    async def test_same_month_of_another_year_invalidates(self, ledger_client, cursor_storage, mirror_storage):
        """Test February 2023 and February 2024 are different months."""
        await cursor_storage.set_delta(ResourceKind.PAYEES, 100)
        await cursor_storage.set_last_saved(ResourceKind.PAYEES, date(2023, 2, 10))
        manager = DeltaSyncManager(
            ledger_client, cursor_storage, mirror_storage,
            today=lambda: date(2024, 2, 10),
        )

        await manager.sync(ResourceKind.PAYEES)

        assert ledger_client.calls == [(ResourceKind.PAYEES, None)]


class TestSyncMany:
    """Tests for concurrent per-kind syncs."""

    @pytest.mark.asyncio
    async def test_failure_of_one_kind_does_not_abort_others(
        self, sync_manager, ledger_client, cursor_storage
    ):
        """Test kinds are isolated from each other."""
        account = make_account()
        ledger_client.queue(ResourceKind.ACCOUNTS, LedgerDelta(records=[account], server_knowledge=3))
        ledger_client.queue(ResourceKind.PAYEES, UpstreamError("boom"))

        results = await sync_manager.sync_many([ResourceKind.ACCOUNTS, ResourceKind.PAYEES])

        assert results[ResourceKind.ACCOUNTS] == [account]
        assert isinstance(results[ResourceKind.PAYEES], UpstreamError)
        assert await cursor_storage.get_delta(ResourceKind.ACCOUNTS) == 3
        assert await cursor_storage.get_delta(ResourceKind.PAYEES) is None


class TestTransactionQueries:
    """Tests for split handling and transaction filters."""

    def test_split_transactions(self):
        """Test split transactions become one transaction per live part."""
        parent_id = uuid4()
        payee_id, category_a, category_b = uuid4(), uuid4(), uuid4()
        split = make_transaction(
            -30000,
            id=parent_id,
            payee_id=payee_id,
            subtransactions=[
                SubTransaction(id=uuid4(), transaction_id=parent_id, amount=-20000, category_id=category_a),
                SubTransaction(id=uuid4(), transaction_id=parent_id, amount=-10000, category_id=category_b),
                SubTransaction(
                    id=uuid4(), transaction_id=parent_id, amount=-1, category_id=category_b, deleted=True
                ),
            ],
        )
        plain = make_transaction(-500, category_id=category_a)
        gone = make_transaction(-999, category_id=category_a, deleted=True)

        result = split_transactions([split, plain, gone])

        assert [(t.category_id, t.amount) for t in result] == [
            (category_a, -20000),
            (category_b, -10000),
            (category_a, -500),
        ]
        assert result[0].payee_id == payee_id
        assert result[0].date == split.date

    @pytest.mark.asyncio
    async def test_transactions_by_category(self, sync_manager, ledger_client):
        """Test filtering synced transactions by category."""
        category_id = uuid4()
        wanted = make_transaction(-100, category_id=category_id)
        other = make_transaction(-200, category_id=uuid4())
        ledger_client.queue(
            ResourceKind.TRANSACTIONS,
            LedgerDelta(records=[wanted, other], server_knowledge=5),
        )

        result = await sync_manager.transactions_by_category(category_id)

        assert result == [wanted]

    @pytest.mark.asyncio
    async def test_transactions_by_payee(self, sync_manager, ledger_client):
        """Test filtering synced transactions by payee."""
        payee_id = uuid4()
        wanted = make_transaction(1000, payee_id=payee_id)
        ledger_client.queue(
            ResourceKind.TRANSACTIONS,
            LedgerDelta(records=[wanted, make_transaction(5)], server_knowledge=5),
        )

        assert await sync_manager.transactions_by_payee(payee_id) == [wanted]


class SlowLedgerClient(ScriptedLedgerClient):
    """Scripted client that yields to the event loop before answering."""

    async def _next(self, kind, last_knowledge):
        await asyncio.sleep(0)
        return await super()._next(kind, last_knowledge)


class TestSyncConcurrency:
    """Tests for cycles of the same kind running at the same time."""

    @pytest.mark.asyncio
    async def test_same_kind_cycles_are_serialized(self, cursor_storage, mirror_storage):
        """Test the second cycle starts from the cursor the first one stored."""
        client = SlowLedgerClient()
        client.queue(
            ResourceKind.PAYEES,
            LedgerDelta(records=[make_payee("A")], server_knowledge=10),
            LedgerDelta(records=[make_payee("B")], server_knowledge=5),
        )
        manager = DeltaSyncManager(client, cursor_storage, mirror_storage, today=lambda: TODAY)

        await asyncio.gather(
            manager.sync(ResourceKind.PAYEES),
            manager.sync(ResourceKind.PAYEES),
        )

        assert client.calls == [(ResourceKind.PAYEES, None), (ResourceKind.PAYEES, 10)]
        assert await cursor_storage.get_delta(ResourceKind.PAYEES) == 10
