"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the backing store because:
1. District staff already maintain the personnel lists in Sheets
2. Bulk import of new officers is a copy-paste into a worksheet
3. No database setup required

TRADEOFFS:
- No transactions (the lifecycle controller orders writes and
  tolerates partial success instead)
- Limited query capabilities (we fetch everything and filter in Python)

Each entity lives in its own worksheet. Row 1 holds the headers, and
rows are mapped BY HEADER NAME, so operators may reorder or add columns
without breaking the mapping. Header names follow the sheets the
district office already uses (Bank_ID, IFSC_Code, T_STMP_ADD, ...).
"""

import json
from datetime import datetime
from typing import Optional

import gspread
import structlog
from google.oauth2.service_account import Credentials
from gspread.utils import rowcol_to_a1
from pydantic import ValidationError
from tenacity import retry, stop_after_attempt, wait_exponential

from duty_accounts.config import get_settings
from duty_accounts.models.audit import AuditEvent, AuditEventType, AuditSeverity
from duty_accounts.models.directory import Bank, Branch
from duty_accounts.models.personnel import (
    Department,
    Designation,
    PersonnelAccount,
    PersonnelCategory,
    User,
    VerificationStatus,
)
from duty_accounts.models.snapshot import DataSnapshot, WriteResult
from duty_accounts.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    PersistenceBackendInterface,
    StorageError,
)


logger = structlog.get_logger(__name__)


# Field -> accepted header names. The first alias is used when a sheet
# is created from scratch.
ACCOUNT_COLUMNS: dict[str, tuple[str, ...]] = {
    "record_id": ("BLO_ID", "AVIHIT_ID", "Supervisor_ID", "Record_ID"),
    "owning_user_id": ("User_ID",),
    "assembly_no": ("AC_No",),
    "assembly_name": ("AC_Name",),
    "tehsil": ("Tehsil",),
    "unit_identifier": ("Part_No", "Sector_No"),
    "unit_name": ("Part_Name_EN", "Sector_Name"),
    "personnel_name": ("BLO_Name", "Officer_Name", "Name"),
    "gender": ("Gender",),
    "department_id": ("Department_ID", "Department"),
    "designation_id": ("Designation_ID", "Designation"),
    "mobile": ("Mobile",),
    "epic_id": ("EPIC",),
    "bank_id": ("Bank_ID",),
    "branch_id": ("Branch_ID",),
    "routing_code": ("IFSC_Code",),
    "account_number": ("Account_Number",),
    "proof_document": ("Account_Passbook_Doc",),
    "verified": ("Verified",),
    "pin_secret": ("Secret_PIN",),
    "pin_changed": ("PIN_Changed",),
    "created_at": ("T_STMP_ADD",),
    "updated_at": ("T_STMP_UPD",),
}

BANK_COLUMNS: dict[str, tuple[str, ...]] = {
    "id": ("Bank_ID",),
    "name": ("Bank_Name",),
    "created_at": ("T_STMP_ADD",),
    "updated_at": ("T_STMP_UPD",),
}

BRANCH_COLUMNS: dict[str, tuple[str, ...]] = {
    "id": ("Branch_ID",),
    "name": ("Branch_Name",),
    "routing_code": ("IFSC_Code",),
    "bank_id": ("Bank_ID",),
    "created_at": ("T_STMP_ADD",),
    "updated_at": ("T_STMP_UPD",),
}

USER_COLUMNS: dict[str, tuple[str, ...]] = {
    "user_id": ("User_ID",),
    "user_name": ("User_Name",),
    "role": ("User_Type",),
    "officer_name": ("Officer_Name",),
    "designation": ("Designation",),
    "mobile": ("Mobile",),
}

DEPARTMENT_COLUMNS: dict[str, tuple[str, ...]] = {
    "department_id": ("Department_ID",),
    "name": ("Department_Name", "Name"),
}

DESIGNATION_COLUMNS: dict[str, tuple[str, ...]] = {
    "designation_id": ("Designation_ID",),
    "name": ("Designation_Name", "Name"),
}

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "actor_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

TIMESTAMP_FIELDS = {"created_at", "updated_at"}


def parse_timestamp(value: str) -> Optional[datetime]:
    """Lenient ISO parsing; anything unreadable becomes None."""
    value = (value or "").strip()
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def format_cell(value) -> str:
    """Serialize a model value for a RAW sheet write."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, datetime):
        return value.isoformat()
    if hasattr(value, "value"):  # Enum
        return str(value.value)
    return str(value)


class SheetLayout:
    """
    Maps model fields onto the header row of one worksheet.

    Unknown headers are preserved untouched on update.
    """

    def __init__(self, header: list[str], columns: dict[str, tuple[str, ...]]):
        self.header = [h.strip() for h in header]
        self.columns = columns
        self._index: dict[str, int] = {}
        lowered = [h.lower() for h in self.header]
        for field, aliases in columns.items():
            for alias in aliases:
                if alias.lower() in lowered:
                    self._index[field] = lowered.index(alias.lower())
                    break

    @classmethod
    def default_header(cls, columns: dict[str, tuple[str, ...]]) -> list[str]:
        return [aliases[0] for aliases in columns.values()]

    def index_of(self, field: str) -> Optional[int]:
        return self._index.get(field)

    def row_to_dict(self, row: list[str]) -> dict:
        data = {}
        for field, idx in self._index.items():
            value = row[idx] if idx < len(row) else ""
            if field in TIMESTAMP_FIELDS:
                data[field] = parse_timestamp(value)
            else:
                data[field] = value
        return data

    def dict_to_row(self, data: dict, base: Optional[list[str]] = None) -> list[str]:
        row = list(base or [])
        row.extend([""] * (len(self.header) - len(row)))
        for field, idx in self._index.items():
            if field in data:
                row[idx] = format_cell(data[field])
        return row[:len(self.header)]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @property
    def settings(self):
        return self._settings

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
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

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
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def find_sheet(self, title: str) -> Optional[gspread.Worksheet]:
        """Worksheet by title, or None when it does not exist."""
        try:
            return self.get_spreadsheet().worksheet(title)
        except gspread.WorksheetNotFound:
            return None

    def get_or_create_sheet(
        self,
        title: str,
        header: list[str],
        rows: int = 1000,
    ) -> gspread.Worksheet:
        """Get a worksheet, creating it with a header row if missing."""
        sheet = self.find_sheet(title)
        if sheet is None:
            sheet = self.get_spreadsheet().add_worksheet(
                title=title,
                rows=rows,
                cols=len(header),
            )
            sheet.append_row(header)
        return sheet


class GoogleSheetsBackend(PersistenceBackendInterface):
    """
    Google Sheets implementation of the persistence backend.

    One worksheet per personnel category plus Banks, Branches,
    Users, Departments and Designations.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        settings = self._client.settings
        self._account_sheets = {
            PersonnelCategory.FIELD_OFFICER: settings.blo_sheet_name,
            PersonnelCategory.ASSISTANT_OFFICER: settings.avihit_sheet_name,
            PersonnelCategory.SUPERVISOR: settings.supervisor_sheet_name,
        }
        self._settings = settings

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def _read_rows(
        self,
        title: str,
        columns: dict[str, tuple[str, ...]],
    ) -> list[dict]:
        sheet = self._client.find_sheet(title)
        if sheet is None:
            logger.warning("worksheet_missing", worksheet=title)
            return []
        values = sheet.get_all_values()
        if not values:
            return []
        layout = SheetLayout(values[0], columns)
        return [layout.row_to_dict(row) for row in values[1:] if any(cell.strip() for cell in row)]

    def _parse_models(self, title: str, rows: list[dict], build) -> list:
        models = []
        for row_number, data in enumerate(rows, start=2):
            try:
                models.append(build(data))
            except ValidationError as e:
                # Skip malformed rows
                logger.warning(
                    "worksheet_row_skipped",
                    worksheet=title,
                    row=row_number,
                    error=str(e).splitlines()[0],
                )
        return models

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def fetch_all(self) -> DataSnapshot:
        """Read every worksheet into a DataSnapshot."""
        try:
            accounts = {}
            for category, title in self._account_sheets.items():
                rows = self._read_rows(title, ACCOUNT_COLUMNS)
                accounts[category] = self._parse_models(
                    title,
                    rows,
                    lambda data, category=category: PersonnelAccount(category=category, **data),
                )

            s = self._settings
            banks = self._parse_models(
                s.banks_sheet_name,
                self._read_rows(s.banks_sheet_name, BANK_COLUMNS),
                lambda data: Bank(**data),
            )
            branches = self._parse_models(
                s.branches_sheet_name,
                self._read_rows(s.branches_sheet_name, BRANCH_COLUMNS),
                lambda data: Branch(**data),
            )
            users = self._parse_models(
                s.users_sheet_name,
                self._read_rows(s.users_sheet_name, USER_COLUMNS),
                lambda data: User(**data),
            )
            departments = self._parse_models(
                s.departments_sheet_name,
                self._read_rows(s.departments_sheet_name, DEPARTMENT_COLUMNS),
                lambda data: Department(**data),
            )
            designations = self._parse_models(
                s.designations_sheet_name,
                self._read_rows(s.designations_sheet_name, DESIGNATION_COLUMNS),
                lambda data: Designation(**data),
            )
        except ConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to fetch data from Google Sheets: {e}")

        return DataSnapshot(
            accounts=accounts,
            banks=banks,
            branches=branches,
            users=users,
            departments=departments,
            designations=designations,
        )

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def _append(self, title: str, columns: dict[str, tuple[str, ...]], data: dict) -> None:
        sheet = self._client.get_or_create_sheet(title, SheetLayout.default_header(columns))
        header = sheet.row_values(1)
        layout = SheetLayout(header, columns)
        sheet.append_row(layout.dict_to_row(data), value_input_option="RAW")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _append_with_retry(self, title, columns, data) -> None:
        self._append(title, columns, data)

    async def create_bank(self, bank: Bank) -> WriteResult:
        """Append a bank row."""
        try:
            self._append_with_retry(self._settings.banks_sheet_name, BANK_COLUMNS, bank.model_dump())
            return WriteResult.ok()
        except Exception as e:
            return WriteResult.failed(f"Failed to add bank {bank.id}: {e}")

    async def create_branch(self, branch: Branch) -> WriteResult:
        """Append a branch row."""
        try:
            self._append_with_retry(self._settings.branches_sheet_name, BRANCH_COLUMNS, branch.model_dump())
            return WriteResult.ok()
        except Exception as e:
            return WriteResult.failed(f"Failed to add branch {branch.id}: {e}")

    def _locate_row(
        self,
        title: str,
        columns: dict[str, tuple[str, ...]],
        key_field: str,
        key: str,
    ) -> tuple[gspread.Worksheet, SheetLayout, int, list[str]]:
        """
        Find the sheet row whose `key_field` column equals `key`.

        Returns:
            (sheet, layout, 1-based row number, current row values)

        Raises:
            LookupError: If the worksheet, the key column or the row is missing
        """
        sheet = self._client.find_sheet(title)
        if sheet is None:
            raise LookupError(f"Worksheet {title} not found")
        values = sheet.get_all_values()
        if not values:
            raise LookupError(f"Worksheet {title} is empty")
        layout = SheetLayout(values[0], columns)
        key_idx = layout.index_of(key_field)
        if key_idx is None:
            raise LookupError(f"Worksheet {title} has no {key_field} column")
        for row_number, row in enumerate(values[1:], start=2):
            if key_idx < len(row) and row[key_idx].strip() == key:
                return sheet, layout, row_number, row
        raise LookupError(f"Record {key} not found in {title}")

    def _locate_account_row(
        self,
        category: PersonnelCategory,
        record_id: str,
    ) -> tuple[gspread.Worksheet, SheetLayout, int, list[str]]:
        return self._locate_row(
            self._account_sheets[category], ACCOUNT_COLUMNS, "record_id", record_id
        )

    def _write_row(self, sheet: gspread.Worksheet, row_number: int, row: list[str]) -> None:
        end = rowcol_to_a1(row_number, len(row))
        sheet.update(
            range_name=f"A{row_number}:{end}",
            values=[row],
            value_input_option="RAW",
        )

    async def save_account(self, account: PersonnelAccount) -> WriteResult:
        """Overwrite the record's row; unknown columns are left as they were."""
        try:
            sheet, layout, row_number, current = self._locate_account_row(
                account.category, account.record_id
            )
            data = account.model_dump(exclude={"category"})
            self._write_row(sheet, row_number, layout.dict_to_row(data, base=current))
            return WriteResult.ok()
        except LookupError as e:
            return WriteResult.failed(str(e))
        except Exception as e:
            return WriteResult.failed(f"Failed to update account {account.record_id}: {e}")

    async def update_verification(
        self,
        category: PersonnelCategory,
        record_id: str,
        verified: VerificationStatus,
    ) -> WriteResult:
        """Update the Verified and T_STMP_UPD cells only."""
        try:
            sheet, layout, row_number, current = self._locate_account_row(category, record_id)
            row = layout.dict_to_row(
                {"verified": verified, "updated_at": datetime.utcnow()},
                base=current,
            )
            self._write_row(sheet, row_number, row)
            return WriteResult.ok()
        except LookupError as e:
            return WriteResult.failed(str(e))
        except Exception as e:
            return WriteResult.failed(f"Failed to update verification of {record_id}: {e}")

    async def update_user(self, user: User) -> WriteResult:
        """Overwrite the user's row; the password column is left untouched."""
        try:
            sheet, layout, row_number, current = self._locate_row(
                self._settings.users_sheet_name, USER_COLUMNS, "user_id", user.user_id
            )
            self._write_row(sheet, row_number, layout.dict_to_row(user.model_dump(), base=current))
            return WriteResult.ok()
        except LookupError as e:
            return WriteResult.failed(str(e))
        except Exception as e:
            return WriteResult.failed(f"Failed to update user {user.user_id}: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=safe_get(0),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=safe_get(5) or None,
            actor_id=safe_get(6) or None,
            correlation_id=safe_get(7) or None,
            description=safe_get(8),
            details=json.loads(safe_get(9)) if safe_get(9) else {},
            error_message=safe_get(10) or None,
            is_user_action=safe_get(11).lower() == "true",
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        sheet = self._client.get_or_create_sheet(
            self._client.settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,
        )
        sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
        return True

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """Get events by entity."""
        try:
            sheet = self._client.find_sheet(self._client.settings.audit_sheet_name)
            if sheet is None:
                return []
            all_rows = sheet.get_all_values()[1:]

            events = []
            for row in all_rows:
                if len(row) > 5 and row[4] == entity_type and row[5] == entity_id:
                    try:
                        events.append(self._row_to_event(row))
                    except (ValueError, ValidationError):
                        continue

            events.sort(key=lambda e: e.timestamp)
            return events
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
