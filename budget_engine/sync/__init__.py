"""Ledger delta-sync package."""

from budget_engine.sync.manager import (
    RETAIN_DELETED_KINDS,
    DeltaSyncManager,
    split_transactions,
)

__all__ = ["DeltaSyncManager", "RETAIN_DELETED_KINDS", "split_transactions"]
