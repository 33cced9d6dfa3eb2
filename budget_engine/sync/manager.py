"""
Delta Sync Manager

Keeps the local ledger mirror consistent with the upstream ledger using
opaque `server_knowledge` cursors, one cycle per resource kind:

1. Monthly invalidation: a cursor saved in a previous calendar month is
   cleared, so the first sync of a month is a full fetch
2. Fetch the delta since the (possibly cleared) cursor
3. Merge: upsert live records by id, purge soft-deleted ones
4. Advance the cursor, only after the merge committed, never backwards
5. Return the full mirror snapshot for the kind

DESIGN DECISION: The cursor write is the last step of a cycle. A failed
fetch or merge leaves the old cursor in place, so the next cycle re-reads
the same delta. Re-applying a delta is harmless because the merge is an
id-keyed upsert.

Cycles of the same kind are serialized with a per-kind lock; different
kinds run concurrently.
"""

import asyncio
from datetime import date
from typing import Callable, Iterable, Optional, Union
from uuid import UUID

import structlog

from budget_engine.audit import AuditLogger
from budget_engine.models.ledger import (
    LedgerRecord,
    ResourceKind,
    Transaction,
)
from budget_engine.services.storage import (
    CursorStorageInterface,
    MirrorStorageInterface,
    PersistenceError,
)
from budget_engine.services.ynab import LedgerClientInterface, UpstreamError


logger = structlog.get_logger(__name__)

# Kinds whose soft-deleted records stay in the mirror with their flag set.
# Consumers filter them out when presenting.
RETAIN_DELETED_KINDS = frozenset({
    ResourceKind.CATEGORIES,
    ResourceKind.SCHEDULED_TRANSACTIONS,
})


def split_transactions(transactions: Iterable[Transaction]) -> list[Transaction]:
    """
    Replace every split transaction by one transaction per live subtransaction.

    A synthetic transaction keeps the parent's date and account but takes the
    subtransaction's id, amount, category and payee (falling back to the
    parent's payee). Deleted transactions are dropped.
    """
    result = []
    for transaction in transactions:
        if transaction.deleted:
            continue
        if not transaction.subtransactions:
            result.append(transaction)
            continue
        for sub in transaction.subtransactions:
            if sub.deleted:
                continue
            result.append(transaction.model_copy(update={
                "id": sub.id,
                "amount": sub.amount,
                "memo": sub.memo or transaction.memo,
                "category_id": sub.category_id,
                "payee_id": sub.payee_id or transaction.payee_id,
                "transfer_account_id": sub.transfer_account_id,
                "subtransactions": [],
            }))
    return result


class DeltaSyncManager:
    """
    Orchestrates delta-sync cycles against injected collaborators.

    Args:
        client: Upstream ledger capability
        cursor_storage: Where cursors and last-sync dates live
        mirror_storage: Where the mirrored records live
        audit_logger: Optional audit trail of cycles
        today: Clock used for the monthly invalidation rule
    """

    def __init__(
        self,
        client: LedgerClientInterface,
        cursor_storage: CursorStorageInterface,
        mirror_storage: MirrorStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        today: Callable[[], date] = date.today,
    ):
        self._client = client
        self._cursors = cursor_storage
        self._mirror = mirror_storage
        self._audit_logger = audit_logger
        self._today = today
        self._locks = {kind: asyncio.Lock() for kind in ResourceKind}

    async def sync(
        self,
        kind: ResourceKind,
        correlation_id: Optional[UUID] = None,
    ) -> list[LedgerRecord]:
        """
        Run one sync cycle for a resource kind.

        Returns:
            Every mirrored record of the kind after the merge

        Raises:
            UpstreamError: The delta could not be fetched; cursor untouched
            PersistenceError: The merge failed; cursor untouched
        """
        async with self._locks[kind]:
            return await self._sync_locked(kind, correlation_id)

    async def sync_many(
        self,
        kinds: Iterable[ResourceKind],
        correlation_id: Optional[UUID] = None,
    ) -> dict[ResourceKind, Union[list[LedgerRecord], Exception]]:
        """
        Sync several kinds concurrently.

        A failure of one kind does not abort the others; its exception is
        returned in place of the snapshot.
        """
        kinds = list(dict.fromkeys(kinds))
        results = await asyncio.gather(
            *(self.sync(kind, correlation_id) for kind in kinds),
            return_exceptions=True,
        )
        return dict(zip(kinds, results))

    async def transactions_by_category(self, category_id: UUID) -> list[Transaction]:
        """Sync transactions and keep those (or split parts) of one category."""
        transactions = split_transactions(await self.sync(ResourceKind.TRANSACTIONS))
        return [t for t in transactions if t.category_id == category_id]

    async def transactions_by_payee(self, payee_id: UUID) -> list[Transaction]:
        """Sync transactions and keep those (or split parts) of one payee."""
        transactions = split_transactions(await self.sync(ResourceKind.TRANSACTIONS))
        return [t for t in transactions if t.payee_id == payee_id]

    # -------------------------------------------------------------------------
    # Cycle steps
    # -------------------------------------------------------------------------

    async def _sync_locked(
        self,
        kind: ResourceKind,
        correlation_id: Optional[UUID],
    ) -> list[LedgerRecord]:
        log = logger.bind(kind=kind.value)

        await self._check_last_saved(kind, correlation_id)
        cursor = await self._cursors.get_delta(kind)

        if self._audit_logger:
            await self._audit_logger.log_sync_started(kind.value, cursor, correlation_id)

        try:
            delta = await self._client.get_delta(kind, cursor)
        except UpstreamError as e:
            log.warning("delta_fetch_failed", error=str(e), server_knowledge=cursor)
            if self._audit_logger:
                await self._audit_logger.log_sync_failed(kind.value, "fetch", str(e), correlation_id)
                await self._audit_logger.log_external_service_error("ynab", str(e), correlation_id)
            raise

        live, deleted_ids = self._partition(kind, delta.records)

        try:
            await self._mirror.update_all(kind, live)
            purged = await self._mirror.delete_many(kind, deleted_ids) if deleted_ids else 0
        except Exception as e:
            log.error("mirror_merge_failed", error=str(e), server_knowledge=cursor)
            if self._audit_logger:
                await self._audit_logger.log_sync_failed(kind.value, "merge", str(e), correlation_id)
            if isinstance(e, PersistenceError):
                raise
            raise PersistenceError(f"Failed to merge {kind.value} delta: {e}") from e

        await self._advance_cursor(kind, delta.server_knowledge)

        log.info(
            "delta_merged",
            changed=len(live),
            purged=purged,
            server_knowledge=delta.server_knowledge,
        )
        if self._audit_logger:
            await self._audit_logger.log_sync_completed(
                kind.value, delta.server_knowledge, len(live), purged, correlation_id
            )

        return await self._mirror.get_all(kind)

    async def _check_last_saved(
        self,
        kind: ResourceKind,
        correlation_id: Optional[UUID],
    ) -> bool:
        """
        Apply the monthly invalidation rule.

        Returns:
            True if the cursor was cleared
        """
        today = self._today()
        last_saved = await self._cursors.get_last_saved(kind)

        if last_saved is None:
            await self._cursors.set_last_saved(kind, today)
            return False

        if (last_saved.year, last_saved.month) == (today.year, today.month):
            return False

        await self._cursors.del_delta(kind)
        await self._cursors.set_last_saved(kind, today)
        logger.info(
            "cursor_invalidated",
            kind=kind.value,
            last_synced_date=last_saved.isoformat(),
        )
        if self._audit_logger:
            await self._audit_logger.log_cursor_invalidated(
                kind.value, last_saved.isoformat(), correlation_id
            )
        return True

    def _partition(
        self,
        kind: ResourceKind,
        records: list[LedgerRecord],
    ) -> tuple[list[LedgerRecord], list[UUID]]:
        """Split a delta into records to upsert and ids to purge."""
        if kind in RETAIN_DELETED_KINDS:
            return list(records), []
        live = [r for r in records if not r.deleted]
        deleted_ids = [r.id for r in records if r.deleted]
        return live, deleted_ids

    async def _advance_cursor(self, kind: ResourceKind, server_knowledge: int) -> None:
        """Persist the new cursor unless a newer one is already stored."""
        current = await self._cursors.get_delta(kind)
        if current is not None and server_knowledge < current:
            logger.warning(
                "cursor_regression_ignored",
                kind=kind.value,
                stored=current,
                received=server_knowledge,
            )
            return
        await self._cursors.set_delta(kind, server_knowledge)
