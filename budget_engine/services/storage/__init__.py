"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage:
in-memory stores for tests and local runs, Google Sheets for the
hand-maintained balance sheet, the sync state and the audit log.
"""

from budget_engine.services.storage.interface import (
    AlreadyExistsError,
    AuditStorageInterface,
    BalanceSheetStorageInterface,
    CursorStorageInterface,
    MirrorStorageInterface,
    NotFoundError,
    PersistenceError,
    StorageConnectionError,
)
from budget_engine.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryBalanceSheetStorage,
    InMemoryCursorStorage,
    InMemoryMirrorStorage,
)
from budget_engine.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsBalanceSheetStorage,
    GoogleSheetsClient,
    GoogleSheetsCursorStorage,
    GoogleSheetsMirrorStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "BalanceSheetStorageInterface",
    "CursorStorageInterface",
    "MirrorStorageInterface",
    # Exceptions
    "AlreadyExistsError",
    "NotFoundError",
    "PersistenceError",
    "StorageConnectionError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryBalanceSheetStorage",
    "InMemoryCursorStorage",
    "InMemoryMirrorStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsBalanceSheetStorage",
    "GoogleSheetsClient",
    "GoogleSheetsCursorStorage",
    "GoogleSheetsMirrorStorage",
]
