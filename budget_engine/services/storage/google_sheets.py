"""
Google Sheets Storage Implementation

DESIGN DECISION: The balance sheet is entered by hand once a month, so
Google Sheets is a natural backend:
1. The household can read and correct balances directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (a few rows per month is fine)
- No transactions (net totals are recomputed from resources, so a
  half-written propagation is repaired by the next update)
- Limited query capabilities (we filter in Python)

Nested values (net totals, balances, id lists) are stored as JSON cells.

Delta-sync state lives here too: one cursor row per resource kind and one
mirror row per ledger record, so a restarted process resumes from its last
cursor instead of re-reading the whole ledger.
"""

import json
from datetime import date, datetime
from typing import Callable, Optional
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from budget_engine.config import get_settings
from budget_engine.models.audit import AuditEvent, AuditEventType, AuditSeverity
from budget_engine.models.balance_sheet import (
    FinancialResource,
    Incomes,
    Month,
    NetTotal,
    ResourceCategory,
    ResourceType,
    SavingRate,
    Savings,
    Year,
)
from budget_engine.models.ledger import RECORD_MODELS, LedgerRecord, ResourceKind
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


YEAR_COLUMNS = [
    "year",
    "id",
    "refreshed_at",
    "net_assets_json",
    "net_portfolio_json",
]

MONTH_COLUMNS = [
    "year",
    "month",
    "id",
    "net_assets_json",
    "net_portfolio_json",
]

RESOURCE_COLUMNS = [
    "id",
    "name",
    "category",
    "resource_type",
    "year",
    "editable_by_json",
    "balance_per_month_json",
]

SAVING_RATE_COLUMNS = [
    "id",
    "name",
    "year",
    "savings_json",
    "employer_contribution",
    "employee_contribution",
    "mortgage_capital",
    "incomes_json",
]

CURSOR_COLUMNS = [
    "kind",
    "server_knowledge",
    "last_saved",
]

MIRROR_COLUMNS = [
    "kind",
    "id",
    "deleted",
    "record_json",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
]

# Duplicate and missing rows are answers, not transient failures
_write_retry = retry(
    retry=retry_if_not_exception_type((NotFoundError, AlreadyExistsError)),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


def _safe_getter(row: list) -> Callable[..., str]:
    # Handle missing columns gracefully
    def safe_get(index: int, default: str = "") -> str:
        try:
            return row[index] if row[index] else default
        except IndexError:
            return default
    return safe_get


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise StorageConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise StorageConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise StorageConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(self, title: str, columns: list[str], rows: int = 1000) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_years_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(self._settings.years_sheet_name, YEAR_COLUMNS)

    def get_months_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(self._settings.months_sheet_name, MONTH_COLUMNS)

    def get_resources_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(self._settings.resources_sheet_name, RESOURCE_COLUMNS)

    def get_saving_rates_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(self._settings.saving_rates_sheet_name, SAVING_RATE_COLUMNS)

    def get_cursors_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(self._settings.cursors_sheet_name, CURSOR_COLUMNS)

    def get_mirror_sheet(self) -> gspread.Worksheet:
        # One row per mirrored record, transactions included
        return self._get_or_create_sheet(self._settings.mirror_sheet_name, MIRROR_COLUMNS, rows=10000)

    def get_audit_sheet(self) -> gspread.Worksheet:
        # More rows for audit log
        return self._get_or_create_sheet(self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000)


class _SheetRowStorage:
    """Row lookup helpers shared by the stores keyed on their first columns."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _rows(self, sheet: gspread.Worksheet) -> list[tuple[int, list]]:
        """All data rows with their 1-based sheet index (row 1 is the header)."""
        return [
            (idx, row)
            for idx, row in enumerate(sheet.get_all_values()[1:], start=2)
            if row and row[0]
        ]

    def _find(self, sheet: gspread.Worksheet, *key: str) -> Optional[tuple[int, list]]:
        for idx, row in self._rows(sheet):
            if tuple(row[:len(key)]) == key:
                return idx, row
        return None

    def _replace_row(self, sheet: gspread.Worksheet, idx: int, row: list) -> None:
        sheet.update(range_name=f"A{idx}", values=[row], value_input_option="RAW")

    def _upsert(self, sheet: gspread.Worksheet, key: tuple[str, ...], row: list) -> None:
        found = self._find(sheet, *key)
        if found:
            self._replace_row(sheet, found[0], row)
        else:
            sheet.append_row(row, value_input_option="RAW")


class GoogleSheetsBalanceSheetStorage(_SheetRowStorage, BalanceSheetStorageInterface):
    """
    Google Sheets implementation of the balance-sheet store.

    One worksheet per entity; one entity per row.
    """

    # -------------------------------------------------------------------------
    # Row conversion
    # -------------------------------------------------------------------------

    def _year_to_row(self, year: Year) -> list:
        return [
            str(year.year),
            str(year.id),
            year.refreshed_at.isoformat() if year.refreshed_at else "",
            year.net_assets.model_dump_json(),
            year.net_portfolio.model_dump_json(),
        ]

    def _row_to_year(self, row: list) -> Year:
        safe_get = _safe_getter(row)
        return Year(
            year=int(safe_get(0)),
            id=UUID(safe_get(1)),
            refreshed_at=datetime.fromisoformat(safe_get(2)) if safe_get(2) else None,
            net_assets=NetTotal.model_validate_json(safe_get(3)),
            net_portfolio=NetTotal.model_validate_json(safe_get(4)),
        )

    def _month_to_row(self, month: Month) -> list:
        return [
            str(month.year),
            str(int(month.month)),
            str(month.id),
            month.net_assets.model_dump_json(),
            month.net_portfolio.model_dump_json(),
        ]

    def _row_to_month(self, row: list) -> Month:
        safe_get = _safe_getter(row)
        return Month(
            year=int(safe_get(0)),
            month=int(safe_get(1)),
            id=UUID(safe_get(2)),
            net_assets=NetTotal.model_validate_json(safe_get(3)),
            net_portfolio=NetTotal.model_validate_json(safe_get(4)),
        )

    def _resource_to_row(self, resource: FinancialResource) -> list:
        return [
            str(resource.id),
            resource.name,
            resource.category.value,
            resource.resource_type.value,
            str(resource.year),
            json.dumps(resource.editable_by),
            json.dumps({str(k): v for k, v in sorted(resource.balance_per_month.items())}),
        ]

    def _row_to_resource(self, row: list) -> FinancialResource:
        safe_get = _safe_getter(row)
        balances = json.loads(safe_get(6)) if safe_get(6) else {}
        return FinancialResource(
            id=UUID(safe_get(0)),
            name=safe_get(1),
            category=ResourceCategory(safe_get(2)),
            resource_type=ResourceType(safe_get(3)),
            year=int(safe_get(4)),
            editable_by=json.loads(safe_get(5)) if safe_get(5) else [],
            balance_per_month={int(k): int(v) for k, v in balances.items()},
        )

    def _saving_rate_to_row(self, saving_rate: SavingRate) -> list:
        return [
            str(saving_rate.id),
            saving_rate.name,
            str(saving_rate.year),
            saving_rate.savings.model_dump_json(),
            str(saving_rate.employer_contribution),
            str(saving_rate.employee_contribution),
            str(saving_rate.mortgage_capital),
            saving_rate.incomes.model_dump_json(),
        ]

    def _row_to_saving_rate(self, row: list) -> SavingRate:
        safe_get = _safe_getter(row)
        return SavingRate(
            id=UUID(safe_get(0)),
            name=safe_get(1),
            year=int(safe_get(2)),
            savings=Savings.model_validate_json(safe_get(3)) if safe_get(3) else Savings(),
            employer_contribution=int(safe_get(4, "0")),
            employee_contribution=int(safe_get(5, "0")),
            mortgage_capital=int(safe_get(6, "0")),
            incomes=Incomes.model_validate_json(safe_get(7)) if safe_get(7) else Incomes(),
        )

    # -------------------------------------------------------------------------
    # Years
    # -------------------------------------------------------------------------

    async def get_years(self) -> list[Year]:
        try:
            sheet = self._client.get_years_sheet()
            years = [self._row_to_year(row) for _, row in self._rows(sheet)]
        except Exception as e:
            raise PersistenceError(f"Failed to list years: {e}")
        return sorted(years, key=lambda y: y.year)

    async def get_year(self, year: int) -> Year:
        try:
            found = self._find(self._client.get_years_sheet(), str(year))
        except Exception as e:
            raise PersistenceError(f"Failed to get year: {e}")
        if not found:
            raise NotFoundError(f"Year not found: {year}")
        result = self._row_to_year(found[1])
        result.months = await self.get_months(year)
        return result

    @_write_retry
    async def add_year(self, year: Year) -> None:
        try:
            sheet = self._client.get_years_sheet()
            if self._find(sheet, str(year.year)):
                raise AlreadyExistsError(f"Year already exists: {year.year}")
            sheet.append_row(self._year_to_row(year), value_input_option="RAW")
        except AlreadyExistsError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to save year: {e}")

    @_write_retry
    async def update_year(self, year: Year) -> None:
        try:
            sheet = self._client.get_years_sheet()
            found = self._find(sheet, str(year.year))
            if not found:
                raise NotFoundError(f"Year not found: {year.year}")
            self._replace_row(sheet, found[0], self._year_to_row(year))
        except NotFoundError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to update year: {e}")

    async def delete_year(self, year: int) -> Year:
        deleted = await self.get_year(year)
        try:
            for month in reversed(deleted.months):
                await self.delete_month(month.year, int(month.month))
            sheet = self._client.get_years_sheet()
            found = self._find(sheet, str(year))
            if found:
                sheet.delete_rows(found[0])
        except NotFoundError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to delete year: {e}")
        return deleted

    # -------------------------------------------------------------------------
    # Months
    # -------------------------------------------------------------------------

    async def get_months(self, year: Optional[int] = None) -> list[Month]:
        try:
            sheet = self._client.get_months_sheet()
            months = [
                self._row_to_month(row)
                for _, row in self._rows(sheet)
                if year is None or row[0] == str(year)
            ]
        except Exception as e:
            raise PersistenceError(f"Failed to list months: {e}")
        return sorted(months, key=lambda m: m.period)

    async def get_month(self, year: int, month: int) -> Month:
        try:
            found = self._find(self._client.get_months_sheet(), str(year), str(int(month)))
        except Exception as e:
            raise PersistenceError(f"Failed to get month: {e}")
        if not found:
            raise NotFoundError(f"Month not found: {year}-{int(month):02d}")
        return self._row_to_month(found[1])

    @_write_retry
    async def add_month(self, month: Month) -> None:
        try:
            if not self._find(self._client.get_years_sheet(), str(month.year)):
                raise NotFoundError(f"Year not found: {month.year}")
            sheet = self._client.get_months_sheet()
            if self._find(sheet, str(month.year), str(int(month.month))):
                raise AlreadyExistsError(
                    f"Month already exists: {month.year}-{int(month.month):02d}"
                )
            sheet.append_row(self._month_to_row(month), value_input_option="RAW")
        except (NotFoundError, AlreadyExistsError):
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to save month: {e}")

    @_write_retry
    async def update_month(self, month: Month) -> None:
        try:
            sheet = self._client.get_months_sheet()
            found = self._find(sheet, str(month.year), str(int(month.month)))
            if not found:
                raise NotFoundError(f"Month not found: {month.year}-{int(month.month):02d}")
            self._replace_row(sheet, found[0], self._month_to_row(month))
        except NotFoundError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to update month: {e}")

    async def delete_month(self, year: int, month: int) -> Month:
        try:
            sheet = self._client.get_months_sheet()
            found = self._find(sheet, str(year), str(int(month)))
            if not found:
                raise NotFoundError(f"Month not found: {year}-{int(month):02d}")
            sheet.delete_rows(found[0])
        except NotFoundError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to delete month: {e}")
        return self._row_to_month(found[1])

    # -------------------------------------------------------------------------
    # Financial resources
    # -------------------------------------------------------------------------

    async def get_resources(self, year: Optional[int] = None) -> list[FinancialResource]:
        try:
            sheet = self._client.get_resources_sheet()
            resources = [self._row_to_resource(row) for _, row in self._rows(sheet)]
        except Exception as e:
            raise PersistenceError(f"Failed to list financial resources: {e}")
        return sorted(
            (r for r in resources if year is None or r.year == year),
            key=lambda r: (r.year, r.name),
        )

    async def get_resource(self, resource_id: UUID) -> FinancialResource:
        try:
            found = self._find(self._client.get_resources_sheet(), str(resource_id))
        except Exception as e:
            raise PersistenceError(f"Failed to get financial resource: {e}")
        if not found:
            raise NotFoundError(f"Financial resource not found: {resource_id}")
        return self._row_to_resource(found[1])

    @_write_retry
    async def save_resource(self, resource: FinancialResource) -> None:
        try:
            sheet = self._client.get_resources_sheet()
            self._upsert(sheet, (str(resource.id),), self._resource_to_row(resource))
        except Exception as e:
            raise PersistenceError(f"Failed to save financial resource: {e}")

    async def delete_resource(self, resource_id: UUID) -> FinancialResource:
        try:
            sheet = self._client.get_resources_sheet()
            found = self._find(sheet, str(resource_id))
            if not found:
                raise NotFoundError(f"Financial resource not found: {resource_id}")
            sheet.delete_rows(found[0])
        except NotFoundError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to delete financial resource: {e}")
        return self._row_to_resource(found[1])

    # -------------------------------------------------------------------------
    # Saving rates
    # -------------------------------------------------------------------------

    async def get_saving_rates(self, year: Optional[int] = None) -> list[SavingRate]:
        try:
            sheet = self._client.get_saving_rates_sheet()
            return [
                self._row_to_saving_rate(row)
                for _, row in self._rows(sheet)
                if year is None or row[2] == str(year)
            ]
        except Exception as e:
            raise PersistenceError(f"Failed to list saving rates: {e}")

    async def get_saving_rate(self, saving_rate_id: UUID) -> SavingRate:
        try:
            found = self._find(self._client.get_saving_rates_sheet(), str(saving_rate_id))
        except Exception as e:
            raise PersistenceError(f"Failed to get saving rate: {e}")
        if not found:
            raise NotFoundError(f"Saving rate not found: {saving_rate_id}")
        return self._row_to_saving_rate(found[1])

    async def get_saving_rate_by_name(self, name: str) -> Optional[SavingRate]:
        for saving_rate in await self.get_saving_rates():
            if saving_rate.name == name:
                return saving_rate
        return None

    @_write_retry
    async def save_saving_rate(self, saving_rate: SavingRate) -> None:
        try:
            sheet = self._client.get_saving_rates_sheet()
            self._upsert(sheet, (str(saving_rate.id),), self._saving_rate_to_row(saving_rate))
        except Exception as e:
            raise PersistenceError(f"Failed to save saving rate: {e}")

    async def delete_saving_rate(self, saving_rate_id: UUID) -> SavingRate:
        try:
            sheet = self._client.get_saving_rates_sheet()
            found = self._find(sheet, str(saving_rate_id))
            if not found:
                raise NotFoundError(f"Saving rate not found: {saving_rate_id}")
            sheet.delete_rows(found[0])
        except NotFoundError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to delete saving rate: {e}")
        return self._row_to_saving_rate(found[1])


class GoogleSheetsCursorStorage(_SheetRowStorage, CursorStorageInterface):
    """
    Google Sheets implementation of the sync cursor store.

    One row per resource kind. An empty cell means no cursor, or no sync
    cycle yet.
    """

    def _cell(self, kind: ResourceKind, index: int) -> str:
        try:
            found = self._find(self._client.get_cursors_sheet(), kind.value)
        except Exception as e:
            raise PersistenceError(f"Failed to read {kind.value} sync state: {e}")
        return _safe_getter(found[1])(index) if found else ""

    @_write_retry
    async def _set_cell(self, kind: ResourceKind, index: int, value: str) -> None:
        try:
            sheet = self._client.get_cursors_sheet()
            found = self._find(sheet, kind.value)
            row = list(found[1][:len(CURSOR_COLUMNS)]) if found else [kind.value]
            row += [""] * (len(CURSOR_COLUMNS) - len(row))
            row[index] = value
            self._upsert(sheet, (kind.value,), row)
        except Exception as e:
            raise PersistenceError(f"Failed to save {kind.value} sync state: {e}")

    async def get_delta(self, kind: ResourceKind) -> Optional[int]:
        value = self._cell(kind, 1)
        return int(value) if value else None

    async def set_delta(self, kind: ResourceKind, server_knowledge: int) -> None:
        await self._set_cell(kind, 1, str(server_knowledge))

    async def del_delta(self, kind: ResourceKind) -> None:
        await self._set_cell(kind, 1, "")

    async def get_last_saved(self, kind: ResourceKind) -> Optional[date]:
        value = self._cell(kind, 2)
        return date.fromisoformat(value) if value else None

    async def set_last_saved(self, kind: ResourceKind, saved: date) -> None:
        await self._set_cell(kind, 2, saved.isoformat())


class GoogleSheetsMirrorStorage(_SheetRowStorage, MirrorStorageInterface):
    """
    Google Sheets implementation of the ledger mirror.

    One row per record keyed by (kind, id), the record itself in a JSON
    cell. A merge reads the sheet once, rewrites known rows in place and
    appends the new ones in a single call.
    """

    def _record_to_row(self, kind: ResourceKind, record: LedgerRecord) -> list:
        return [
            kind.value,
            str(record.id),
            str(record.deleted),
            record.model_dump_json(),
        ]

    def _row_to_record(self, kind: ResourceKind, row: list) -> LedgerRecord:
        return RECORD_MODELS[kind].model_validate_json(_safe_getter(row)(3))

    def _rows_of(self, sheet: gspread.Worksheet, kind: ResourceKind) -> list[tuple[int, list]]:
        return [(idx, row) for idx, row in self._rows(sheet) if row[0] == kind.value]

    async def get_all(self, kind: ResourceKind) -> list[LedgerRecord]:
        try:
            sheet = self._client.get_mirror_sheet()
            return [self._row_to_record(kind, row) for _, row in self._rows_of(sheet, kind)]
        except Exception as e:
            raise PersistenceError(f"Failed to list mirrored {kind.value}: {e}")

    async def get(self, kind: ResourceKind, record_id: UUID) -> LedgerRecord:
        try:
            found = self._find(self._client.get_mirror_sheet(), kind.value, str(record_id))
        except Exception as e:
            raise PersistenceError(f"Failed to get mirrored {kind.value} record: {e}")
        if not found:
            raise NotFoundError(f"{kind.value} record not found: {record_id}")
        return self._row_to_record(kind, found[1])

    @_write_retry
    async def update_all(self, kind: ResourceKind, records: list[LedgerRecord]) -> None:
        try:
            sheet = self._client.get_mirror_sheet()
            existing = {row[1]: idx for idx, row in self._rows_of(sheet, kind)}
            appended: dict[str, list] = {}
            for record in records:
                row = self._record_to_row(kind, record)
                if row[1] in existing:
                    self._replace_row(sheet, existing[row[1]], row)
                else:
                    appended[row[1]] = row
            if appended:
                sheet.append_rows(list(appended.values()), value_input_option="RAW")
        except Exception as e:
            raise PersistenceError(f"Failed to merge mirrored {kind.value}: {e}")

    async def delete_many(self, kind: ResourceKind, record_ids: list[UUID]) -> int:
        wanted = {str(record_id) for record_id in record_ids}
        try:
            sheet = self._client.get_mirror_sheet()
            indexes = [idx for idx, row in self._rows_of(sheet, kind) if row[1] in wanted]
            # Bottom-up so earlier indexes stay valid
            for idx in sorted(indexes, reverse=True):
                sheet.delete_rows(idx)
        except Exception as e:
            raise PersistenceError(f"Failed to purge mirrored {kind.value}: {e}")
        return len(indexes)


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        safe_get = _safe_getter(row)
        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=UUID(safe_get(5)) if safe_get(5) else None,
            correlation_id=UUID(safe_get(6)) if safe_get(6) else None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_message=safe_get(9) or None,
        )

    @_write_retry
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise PersistenceError(f"Failed to write audit event: {e}")

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        try:
            sheet = self._client.get_audit_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise PersistenceError(f"Failed to get audit events: {e}")

        events = [
            self._row_to_event(row)
            for row in all_rows
            if row and len(row) > 6 and row[6] == str(correlation_id)
        ]
        # Sort chronologically
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        """Get most recent events."""
        try:
            sheet = self._client.get_audit_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise PersistenceError(f"Failed to get recent events: {e}")

        # Newest rows are appended last
        return [self._row_to_event(row) for row in reversed(all_rows) if row][:limit]
