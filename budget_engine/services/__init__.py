"""Services package."""

from budget_engine.services.storage import (
    AlreadyExistsError,
    AuditStorageInterface,
    BalanceSheetStorageInterface,
    CursorStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsBalanceSheetStorage,
    GoogleSheetsClient,
    InMemoryAuditStorage,
    InMemoryBalanceSheetStorage,
    InMemoryCursorStorage,
    InMemoryMirrorStorage,
    MirrorStorageInterface,
    NotFoundError,
    PersistenceError,
    StorageConnectionError,
)
from budget_engine.services.ynab import (
    LedgerClientInterface,
    UpstreamError,
    YnabClient,
)

__all__ = [
    # Storage services
    "AlreadyExistsError",
    "AuditStorageInterface",
    "BalanceSheetStorageInterface",
    "CursorStorageInterface",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsBalanceSheetStorage",
    "GoogleSheetsClient",
    "InMemoryAuditStorage",
    "InMemoryBalanceSheetStorage",
    "InMemoryCursorStorage",
    "InMemoryMirrorStorage",
    "MirrorStorageInterface",
    "NotFoundError",
    "PersistenceError",
    "StorageConnectionError",
    # Upstream ledger
    "LedgerClientInterface",
    "UpstreamError",
    "YnabClient",
]
