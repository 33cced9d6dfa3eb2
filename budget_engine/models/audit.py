"""
Audit Models for the Budget Engine

Every sync cycle and every derived-total recomputation is recorded so a
number shown to the household can be traced back to the cycle that
produced it.

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Delta sync
    SYNC_STARTED = "sync_started"
    SYNC_COMPLETED = "sync_completed"
    SYNC_FAILED = "sync_failed"
    CURSOR_INVALIDATED = "cursor_invalidated"

    # Budget projection
    BUDGET_PROJECTED = "budget_projected"
    GOAL_STATE_INVALID = "goal_state_invalid"

    # Balance sheet
    NET_TOTALS_UPDATED = "net_totals_updated"
    SAVING_RATE_COMPUTED = "saving_rate_computed"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'categories', 'month', 'saving_rate')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events of one request)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.sync_completed("categories", 42, 130, correlation_id)
    """

    @staticmethod
    def sync_started(
        kind: str,
        server_knowledge: Optional[int],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_STARTED,
            severity=AuditSeverity.DEBUG,
            entity_type=kind,
            correlation_id=correlation_id,
            description=f"Delta sync started for {kind}",
            details={"server_knowledge": server_knowledge},
        )

    @staticmethod
    def sync_completed(
        kind: str,
        server_knowledge: int,
        changed: int,
        purged: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_COMPLETED,
            entity_type=kind,
            correlation_id=correlation_id,
            description=f"Delta sync of {kind} merged {changed} records",
            details={
                "server_knowledge": server_knowledge,
                "changed": changed,
                "purged": purged,
            },
        )

    @staticmethod
    def sync_failed(
        kind: str,
        stage: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type=kind,
            correlation_id=correlation_id,
            description=f"Delta sync of {kind} failed during {stage}",
            error_message=error_message,
            details={"stage": stage},
        )

    @staticmethod
    def cursor_invalidated(
        kind: str,
        last_synced: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CURSOR_INVALIDATED,
            entity_type=kind,
            correlation_id=correlation_id,
            description=f"Cursor for {kind} cleared after month rollover",
            details={"last_synced_date": last_synced},
        )

    @staticmethod
    def budget_projected(
        expense_count: int,
        total_monthly_income: int,
        issue_count: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_PROJECTED,
            entity_type="budget",
            correlation_id=correlation_id,
            description=f"Budget projected with {expense_count} expenses",
            details={
                "expense_count": expense_count,
                "total_monthly_income": total_monthly_income,
                "issue_count": issue_count,
            },
        )

    @staticmethod
    def goal_state_invalid(
        category_id: UUID,
        category_name: str,
        reason: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_STATE_INVALID,
            severity=AuditSeverity.WARNING,
            entity_type="category",
            entity_id=category_id,
            correlation_id=correlation_id,
            description=f"Goal state of {category_name} could not be projected",
            error_message=reason,
        )

    @staticmethod
    def net_totals_updated(
        entity_type: str,
        entity_id: UUID,
        period: str,
        net_assets: int,
        net_portfolio: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.NET_TOTALS_UPDATED,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Net totals updated for {period}",
            details={
                "net_assets": net_assets,
                "net_portfolio": net_portfolio,
            },
        )

    @staticmethod
    def saving_rate_computed(
        saving_rate_id: UUID,
        name: str,
        rate: float,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVING_RATE_COMPUTED,
            entity_type="saving_rate",
            entity_id=saving_rate_id,
            correlation_id=correlation_id,
            description=f"Saving rate {name} computed at {rate:.1%}",
            details={"rate": rate},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
