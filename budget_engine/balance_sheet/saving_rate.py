"""
Saving-Rate Calculator

A saving rate selects savings categories and income payees for a year;
its totals and rate are derived from a transaction snapshot on every
read and never taken from storage.
"""

from typing import Iterable, Optional
from uuid import UUID

import structlog

from budget_engine.audit import AuditLogger
from budget_engine.models.balance_sheet import SavingRate
from budget_engine.models.ledger import ResourceKind, Transaction
from budget_engine.services.storage import (
    AlreadyExistsError,
    BalanceSheetStorageInterface,
)
from budget_engine.sync import DeltaSyncManager, split_transactions


logger = structlog.get_logger(__name__)


class SavingRateCalculator:
    """Pure computation of saving-rate totals."""

    @staticmethod
    def compute(saving_rate: SavingRate, transactions: Iterable[Transaction]) -> SavingRate:
        """
        Return a copy of `saving_rate` with totals derived from `transactions`.

        The input is not modified and stored totals are ignored.
        """
        category_ids = set(saving_rate.savings.category_ids)
        payee_ids = set(saving_rate.incomes.payee_ids)

        savings_total = saving_rate.savings.extra_balance
        incomes_total = saving_rate.incomes.extra_balance
        for transaction in transactions:
            if transaction.category_id is not None and transaction.category_id in category_ids:
                savings_total += transaction.amount
            if transaction.payee_id is not None and transaction.payee_id in payee_ids:
                incomes_total += transaction.amount

        computed = saving_rate.model_copy(deep=True)
        computed.savings.total = savings_total
        computed.incomes.total = incomes_total
        return computed


class SavingRateService:
    """
    Saving-rate CRUD backed by the balance-sheet store.

    Every returned saving rate is recomputed from freshly synced
    transactions of its year.
    """

    def __init__(
        self,
        storage: BalanceSheetStorageInterface,
        sync_manager: DeltaSyncManager,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._sync = sync_manager
        self._audit_logger = audit_logger

    async def get_all_from_year(
        self,
        year: int,
        correlation_id: Optional[UUID] = None,
    ) -> list[SavingRate]:
        saving_rates = await self._storage.get_saving_rates(year)
        if not saving_rates:
            return []
        transactions = await self._transactions(correlation_id)
        return [
            await self._computed(saving_rate, transactions, correlation_id)
            for saving_rate in saving_rates
        ]

    async def get(self, saving_rate_id: UUID, correlation_id: Optional[UUID] = None) -> SavingRate:
        saving_rate = await self._storage.get_saving_rate(saving_rate_id)
        return await self._computed(
            saving_rate, await self._transactions(correlation_id), correlation_id
        )

    async def create(
        self,
        saving_rate: SavingRate,
        correlation_id: Optional[UUID] = None,
    ) -> SavingRate:
        """
        Raises:
            AlreadyExistsError: If a saving rate with that name exists
        """
        if await self._storage.get_saving_rate_by_name(saving_rate.name) is not None:
            raise AlreadyExistsError(f"Saving rate already exists: {saving_rate.name}")

        await self._storage.save_saving_rate(saving_rate)
        logger.info("saving_rate_created", saving_rate_id=str(saving_rate.id), name=saving_rate.name)
        return await self.get(saving_rate.id, correlation_id)

    async def update(
        self,
        saving_rate: SavingRate,
        correlation_id: Optional[UUID] = None,
    ) -> SavingRate:
        """
        Raises:
            NotFoundError: If the saving rate does not exist
            AlreadyExistsError: If another saving rate has that name
        """
        await self._storage.get_saving_rate(saving_rate.id)
        homonym = await self._storage.get_saving_rate_by_name(saving_rate.name)
        if homonym is not None and homonym.id != saving_rate.id:
            raise AlreadyExistsError(f"Saving rate already exists: {saving_rate.name}")

        await self._storage.save_saving_rate(saving_rate)
        logger.info("saving_rate_updated", saving_rate_id=str(saving_rate.id))
        return await self.get(saving_rate.id, correlation_id)

    async def delete(self, saving_rate_id: UUID) -> SavingRate:
        deleted = await self._storage.delete_saving_rate(saving_rate_id)
        logger.info("saving_rate_deleted", saving_rate_id=str(saving_rate_id))
        return deleted

    async def _transactions(self, correlation_id: Optional[UUID]) -> list[Transaction]:
        records = await self._sync.sync(ResourceKind.TRANSACTIONS, correlation_id)
        return split_transactions(records)

    async def _computed(
        self,
        saving_rate: SavingRate,
        transactions: list[Transaction],
        correlation_id: Optional[UUID],
    ) -> SavingRate:
        of_year = [t for t in transactions if t.date.year == saving_rate.year]
        computed = SavingRateCalculator.compute(saving_rate, of_year)

        logger.debug(
            "saving_rate_computed",
            saving_rate_id=str(computed.id),
            savings=computed.savings.total,
            incomes=computed.incomes.total,
            rate=computed.rate,
        )
        if self._audit_logger:
            await self._audit_logger.log_saving_rate_computed(
                computed.id, computed.name, computed.rate, correlation_id
            )
        return computed
