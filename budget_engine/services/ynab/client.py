"""
YNAB Ledger Client

DESIGN DECISION: We talk to the YNAB REST API directly with httpx rather
than through a generated SDK:
1. Only five delta endpoints are needed
2. Every request carries an explicit timeout
3. Transport errors are retried, then surfaced as UpstreamError

Delta requests pass `last_knowledge_of_server`; the response carries the
new `server_knowledge` next to the changed records.
"""

from typing import Any, Optional

import httpx
import structlog
from pydantic import ValidationError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from budget_engine.config import get_settings
from budget_engine.config.settings import YnabSettings
from budget_engine.models.ledger import (
    Account,
    Category,
    CategoryGroup,
    LedgerDelta,
    Payee,
    ScheduledTransaction,
    Transaction,
)
from budget_engine.services.ynab.interface import LedgerClientInterface, UpstreamError


logger = structlog.get_logger(__name__)


class YnabClient(LedgerClientInterface):
    """
    Async YNAB API client.

    Usage:
        async with YnabClient() as client:
            delta = await client.get_categories_delta(last_knowledge=1200)
    """

    def __init__(
        self,
        settings: Optional[YnabSettings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._settings = settings or get_settings().ynab
        self._client = http_client

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._settings.base_url,
                timeout=self._settings.timeout_seconds,
                headers={"Authorization": f"Bearer {self._settings.access_token}"},
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "YnabClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        reraise=True,
    )
    async def _send(self, path: str, params: dict[str, Any]) -> httpx.Response:
        return await self._get_client().get(path, params=params)

    async def _get_data(self, endpoint: str, last_knowledge: Optional[int]) -> dict:
        """
        GET a budget endpoint and return its `data` object.

        Raises:
            UpstreamError: On timeout, transport failure or non-2xx response
        """
        path = f"budgets/{self._settings.budget_id}/{endpoint}"
        params = {}
        if last_knowledge is not None:
            params["last_knowledge_of_server"] = last_knowledge

        try:
            response = await self._send(path, params)
        except httpx.TimeoutException as e:
            raise UpstreamError(f"Timed out fetching {endpoint}: {e}")
        except httpx.HTTPError as e:
            raise UpstreamError(f"Failed to fetch {endpoint}: {e}")

        if response.is_error:
            detail = ""
            try:
                detail = response.json().get("error", {}).get("detail", "")
            except (ValueError, AttributeError):
                detail = response.text[:200]
            raise UpstreamError(
                f"Ledger API returned {response.status_code} for {endpoint}: {detail}",
                status_code=response.status_code,
            )

        try:
            data = response.json()["data"]
        except (ValueError, KeyError, TypeError) as e:
            raise UpstreamError(f"Malformed response for {endpoint}: {e}")
        if "server_knowledge" not in data:
            raise UpstreamError(f"Response for {endpoint} carries no server_knowledge")
        return data

    def _parse(self, model, items: list, endpoint: str) -> list:
        try:
            return [model.model_validate(item) for item in items]
        except ValidationError as e:
            raise UpstreamError(f"Unexpected {endpoint} payload: {e}")

    async def get_categories_delta(self, last_knowledge: Optional[int] = None) -> LedgerDelta[Category]:
        data = await self._get_data("categories", last_knowledge)
        groups = self._parse(CategoryGroup, data.get("category_groups", []), "categories")

        categories = []
        for group in groups:
            for category in group.categories:
                if category.category_group_name is None:
                    category.category_group_name = group.name
                categories.append(category)

        logger.debug(
            "ynab_delta_fetched",
            endpoint="categories",
            groups=len(groups),
            records=len(categories),
            server_knowledge=data.get("server_knowledge"),
        )
        return LedgerDelta[Category](records=categories, server_knowledge=data["server_knowledge"])

    async def get_accounts_delta(self, last_knowledge: Optional[int] = None) -> LedgerDelta[Account]:
        data = await self._get_data("accounts", last_knowledge)
        accounts = self._parse(Account, data.get("accounts", []), "accounts")
        return LedgerDelta[Account](records=accounts, server_knowledge=data["server_knowledge"])

    async def get_payees_delta(self, last_knowledge: Optional[int] = None) -> LedgerDelta[Payee]:
        data = await self._get_data("payees", last_knowledge)
        payees = self._parse(Payee, data.get("payees", []), "payees")
        return LedgerDelta[Payee](records=payees, server_knowledge=data["server_knowledge"])

    async def get_transactions_delta(self, last_knowledge: Optional[int] = None) -> LedgerDelta[Transaction]:
        data = await self._get_data("transactions", last_knowledge)
        transactions = self._parse(Transaction, data.get("transactions", []), "transactions")
        return LedgerDelta[Transaction](records=transactions, server_knowledge=data["server_knowledge"])

    async def get_scheduled_transactions_delta(
        self,
        last_knowledge: Optional[int] = None,
    ) -> LedgerDelta[ScheduledTransaction]:
        data = await self._get_data("scheduled_transactions", last_knowledge)
        scheduled = self._parse(
            ScheduledTransaction,
            data.get("scheduled_transactions", []),
            "scheduled_transactions",
        )
        return LedgerDelta[ScheduledTransaction](
            records=scheduled,
            server_knowledge=data["server_knowledge"],
        )
