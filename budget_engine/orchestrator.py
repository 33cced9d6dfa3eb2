"""
Main Orchestrator for the Budget Engine

This module ties together all the components and defines the
end-to-end flows for:
1. Budget (sync categories + scheduled transactions → project → split)
2. Balance sheet (resource change → month totals → year totals)
3. Saving rates (sync transactions → compute per saving rate)

DESIGN DECISION: The orchestrator enforces the boundaries:
- No projection is computed from a snapshot whose sync failed
- Derived totals are recomputed, never read back from storage
- Every step is audited
"""

from datetime import date
from typing import Callable, Optional
from uuid import UUID

import structlog

from budget_engine.audit import AuditLogger, configure_logging, create_correlation_id
from budget_engine.balance_sheet import (
    BalanceSheetService,
    NetWorthAggregator,
    SavingRateService,
)
from budget_engine.budget import (
    BudgetProjectionCalculator,
    estimate_common_expenses,
    scheduled_distribution,
)
from budget_engine.config import get_settings
from budget_engine.models.budget import BudgetDetails, CommonExpenseEstimationPerPerson
from budget_engine.models.ledger import Category, ResourceKind, ScheduledTransaction
from budget_engine.services.storage import (
    BalanceSheetStorageInterface,
    CursorStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsBalanceSheetStorage,
    GoogleSheetsClient,
    GoogleSheetsCursorStorage,
    GoogleSheetsMirrorStorage,
    InMemoryBalanceSheetStorage,
    InMemoryCursorStorage,
    InMemoryMirrorStorage,
    MirrorStorageInterface,
)
from budget_engine.services.ynab import YnabClient
from budget_engine.sync import DeltaSyncManager


logger = structlog.get_logger(__name__)


class BudgetFlow:
    """
    Orchestrates the budget flow.

    Flow:
    1. Sync → categories and scheduled transactions, concurrently
    2. Project → categorize, apply goals and scheduled outflows
    3. Audit → projection summary and every isolated goal issue
    4. Split → common expenses per person (optional)
    5. Distribution → scheduled transactions grouped by due date (optional)

    A failed sync of either kind aborts the flow: a projection needs
    both snapshots.
    """

    def __init__(
        self,
        sync_manager: DeltaSyncManager,
        calculator: Optional[BudgetProjectionCalculator] = None,
        audit_logger: Optional[AuditLogger] = None,
        today: Callable[[], date] = date.today,
    ):
        self._sync = sync_manager
        self._calculator = calculator or BudgetProjectionCalculator(get_settings().budget)
        self._audit_logger = audit_logger
        self._today = today

    async def project_budget(self, correlation_id: Optional[UUID] = None) -> BudgetDetails:
        """
        Sync the ledger and project the budget of the coming month.

        Raises:
            UpstreamError: If a sync could not fetch its delta
            PersistenceError: If a sync could not merge its delta
        """
        correlation_id = correlation_id or create_correlation_id()
        categories, scheduled = await self._snapshots(correlation_id)

        details = self._calculator.project(categories, scheduled, self._today())

        if self._audit_logger:
            for issue in details.issues:
                await self._audit_logger.log_goal_state_invalid(
                    category_id=issue.category_id,
                    category_name=issue.category_name,
                    reason=issue.reason,
                    correlation_id=correlation_id,
                )
            await self._audit_logger.log_budget_projected(
                expense_count=len(details.expenses),
                total_monthly_income=details.global_metadata.total_monthly_income,
                issue_count=len(details.issues),
                correlation_id=correlation_id,
            )

        return details

    async def common_expenses(
        self,
        correlation_id: Optional[UUID] = None,
    ) -> list[CommonExpenseEstimationPerPerson]:
        """Project the budget, then split shared expenses by salary."""
        correlation_id = correlation_id or create_correlation_id()
        details = await self.project_budget(correlation_id)
        scheduled = await self._sync.sync(ResourceKind.SCHEDULED_TRANSACTIONS, correlation_id)
        salaries = self._calculator.salaries(scheduled, self._today())
        return estimate_common_expenses(details, salaries)

    async def scheduled_distribution(
        self,
        correlation_id: Optional[UUID] = None,
    ) -> dict[date, list[ScheduledTransaction]]:
        """Sync the ledger and group the coming month's scheduled transactions by date."""
        correlation_id = correlation_id or create_correlation_id()
        categories, scheduled = await self._snapshots(correlation_id)
        return scheduled_distribution(scheduled, categories, self._today())

    async def _snapshots(
        self,
        correlation_id: UUID,
    ) -> tuple[list[Category], list[ScheduledTransaction]]:
        results = await self._sync.sync_many(
            [ResourceKind.CATEGORIES, ResourceKind.SCHEDULED_TRANSACTIONS],
            correlation_id,
        )
        for kind, result in results.items():
            if isinstance(result, Exception):
                logger.error("budget_sync_failed", kind=kind.value, error=str(result))
                if self._audit_logger:
                    await self._audit_logger.log_error(
                        error_type="budget_sync_failed",
                        error_message=str(result),
                        details={"kind": kind.value},
                        correlation_id=correlation_id,
                    )
                raise result
        return (
            results[ResourceKind.CATEGORIES],
            results[ResourceKind.SCHEDULED_TRANSACTIONS],
        )


def create_app_components(
    use_storage: bool = True,
) -> tuple[BudgetFlow, BalanceSheetService, SavingRateService, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False for testing without storage.

    Returns:
        (budget_flow, balance_sheet_service, saving_rate_service, sheets_client)
    """
    app_settings = get_settings().app
    configure_logging(app_settings)

    sheets_client = None
    balance_sheet_storage: BalanceSheetStorageInterface
    cursor_storage: CursorStorageInterface
    mirror_storage: MirrorStorageInterface

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            sheets_client.connect()
            balance_sheet_storage = GoogleSheetsBalanceSheetStorage(sheets_client)
            cursor_storage = GoogleSheetsCursorStorage(sheets_client)
            mirror_storage = GoogleSheetsMirrorStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue without it
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None
            use_storage = False

    if not use_storage:
        balance_sheet_storage = InMemoryBalanceSheetStorage()
        cursor_storage = InMemoryCursorStorage()
        mirror_storage = InMemoryMirrorStorage()
        audit_logger = AuditLogger()  # Local-only logging

    sync_manager = DeltaSyncManager(
        client=YnabClient(),
        cursor_storage=cursor_storage,
        mirror_storage=mirror_storage,
        audit_logger=audit_logger,
    )

    budget_flow = BudgetFlow(sync_manager, audit_logger=audit_logger)
    balance_sheet_service = BalanceSheetService(
        balance_sheet_storage,
        NetWorthAggregator(balance_sheet_storage, audit_logger),
    )
    saving_rate_service = SavingRateService(balance_sheet_storage, sync_manager, audit_logger)

    logger.info(
        "app_components_created",
        environment=app_settings.app_environment,
        sheets_storage=sheets_client is not None,
    )
    return budget_flow, balance_sheet_service, saving_rate_service, sheets_client
