"""
Audit Logger

DESIGN DECISION: Every sync cycle and every derived-total update is logged.
This provides:
1. Traceability of every number back to the sync that produced it
2. Debugging capability when the mirror and the ledger disagree
3. A history of cursor resets

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

import logging
import sys
from typing import Optional
from uuid import UUID, uuid4

import structlog

from budget_engine.config import AppSettings, get_settings
from budget_engine.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from budget_engine.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(settings: Optional[AppSettings] = None) -> str:
    """
    Send structlog output to stdout at the configured minimum level.

    `debug_mode` lowers the level to DEBUG whatever `log_level` says.

    Returns:
        The level applied
    """
    settings = settings or get_settings().app
    level = "DEBUG" if settings.debug_mode else settings.log_level
    logging.basicConfig(format="%(message)s", stream=sys.stdout)
    logging.getLogger().setLevel(level)
    return level


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An audit store, when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_sync_started(
        self,
        kind: str,
        server_knowledge: Optional[int],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.sync_started(kind, server_knowledge, correlation_id))

    async def log_sync_completed(
        self,
        kind: str,
        server_knowledge: int,
        changed: int,
        purged: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(
            AuditEventBuilder.sync_completed(kind, server_knowledge, changed, purged, correlation_id)
        )

    async def log_sync_failed(
        self,
        kind: str,
        stage: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.sync_failed(kind, stage, error_message, correlation_id))

    async def log_cursor_invalidated(
        self,
        kind: str,
        last_synced: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.cursor_invalidated(kind, last_synced, correlation_id))

    async def log_budget_projected(
        self,
        expense_count: int,
        total_monthly_income: int,
        issue_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a finished projection."""
        await self.log(
            AuditEventBuilder.budget_projected(
                expense_count, total_monthly_income, issue_count, correlation_id
            )
        )

    async def log_goal_state_invalid(
        self,
        category_id: UUID,
        category_name: str,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(
            AuditEventBuilder.goal_state_invalid(category_id, category_name, reason, correlation_id)
        )

    async def log_net_totals_updated(
        self,
        entity_type: str,
        entity_id: UUID,
        period: str,
        net_assets: int,
        net_portfolio: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(
            AuditEventBuilder.net_totals_updated(
                entity_type, entity_id, period, net_assets, net_portfolio, correlation_id
            )
        )

    async def log_saving_rate_computed(
        self,
        saving_rate_id: UUID,
        name: str,
        rate: float,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(
            AuditEventBuilder.saving_rate_computed(saving_rate_id, name, rate, correlation_id)
        )

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a request (e.g., a budget projection).
    Pass it through all subsequent operations.
    """
    return uuid4()
