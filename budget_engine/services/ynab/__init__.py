"""Upstream ledger (YNAB) client package."""

from budget_engine.services.ynab.interface import LedgerClientInterface, UpstreamError
from budget_engine.services.ynab.client import YnabClient

__all__ = [
    "LedgerClientInterface",
    "UpstreamError",
    "YnabClient",
]
