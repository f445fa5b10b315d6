"""
In-Memory Storage

Used by tests and local development. Behaves like the Sheets backend:
writes replace whole records, fetch_all returns deep copies so callers
never alias stored state.

Failures can be injected per operation to exercise partial-failure
handling in the lifecycle controller.
"""

from collections import defaultdict
from typing import Optional

from duty_accounts.models.audit import AuditEvent
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
    PersistenceBackendInterface,
    StorageError,
)


class InMemoryBackend(PersistenceBackendInterface):
    """Dictionary-backed persistence backend."""

    def __init__(
        self,
        accounts: Optional[list[PersonnelAccount]] = None,
        banks: Optional[list[Bank]] = None,
        branches: Optional[list[Branch]] = None,
        users: Optional[list[User]] = None,
        departments: Optional[list[Department]] = None,
        designations: Optional[list[Designation]] = None,
    ):
        self.accounts: dict[PersonnelCategory, list[PersonnelAccount]] = defaultdict(list)
        for account in accounts or []:
            self.accounts[account.category].append(account.model_copy(deep=True))
        self.banks = list(banks or [])
        self.branches = list(branches or [])
        self.users = list(users or [])
        self.departments = list(departments or [])
        self.designations = list(designations or [])

        # operation name -> message; the operation fails while present
        self.failures: dict[str, str] = {}
        self.fetch_error: Optional[str] = None
        # (operation, entity id) in call order
        self.calls: list[tuple[str, str]] = []

    def fail(self, operation: str, message: str = "Backend rejected the write") -> None:
        """Make every subsequent call of `operation` fail."""
        self.failures[operation] = message

    def recover(self, operation: Optional[str] = None) -> None:
        if operation is None:
            self.failures.clear()
            self.fetch_error = None
        else:
            self.failures.pop(operation, None)

    @property
    def write_calls(self) -> list[tuple[str, str]]:
        return [call for call in self.calls if call[0] != "fetch_all"]

    async def fetch_all(self) -> DataSnapshot:
        self.calls.append(("fetch_all", ""))
        if self.fetch_error:
            raise StorageError(self.fetch_error)
        return DataSnapshot(
            accounts={
                category: [a.model_copy(deep=True) for a in records]
                for category, records in self.accounts.items()
            },
            banks=[b.model_copy() for b in self.banks],
            branches=[b.model_copy() for b in self.branches],
            users=[u.model_copy() for u in self.users],
            departments=[d.model_copy() for d in self.departments],
            designations=[d.model_copy() for d in self.designations],
        )

    async def create_bank(self, bank: Bank) -> WriteResult:
        self.calls.append(("create_bank", bank.id))
        if "create_bank" in self.failures:
            return WriteResult.failed(self.failures["create_bank"])
        self.banks.append(bank.model_copy())
        return WriteResult.ok()

    async def create_branch(self, branch: Branch) -> WriteResult:
        self.calls.append(("create_branch", branch.id))
        if "create_branch" in self.failures:
            return WriteResult.failed(self.failures["create_branch"])
        self.branches.append(branch.model_copy())
        return WriteResult.ok()

    def _index_of(self, category: PersonnelCategory, record_id: str) -> Optional[int]:
        for idx, record in enumerate(self.accounts.get(category, [])):
            if record.record_id == record_id:
                return idx
        return None

    async def save_account(self, account: PersonnelAccount) -> WriteResult:
        self.calls.append(("save_account", account.record_id))
        if "save_account" in self.failures:
            return WriteResult.failed(self.failures["save_account"])
        idx = self._index_of(account.category, account.record_id)
        if idx is None:
            return WriteResult.failed(f"Record {account.record_id} not found")
        self.accounts[account.category][idx] = account.model_copy(deep=True)
        return WriteResult.ok()

    async def update_verification(
        self,
        category: PersonnelCategory,
        record_id: str,
        verified: VerificationStatus,
    ) -> WriteResult:
        self.calls.append(("update_verification", record_id))
        if "update_verification" in self.failures:
            return WriteResult.failed(self.failures["update_verification"])
        idx = self._index_of(category, record_id)
        if idx is None:
            return WriteResult.failed(f"Record {record_id} not found")
        records = self.accounts[category]
        records[idx] = records[idx].model_copy(update={"verified": verified})
        return WriteResult.ok()

    async def update_user(self, user: User) -> WriteResult:
        self.calls.append(("update_user", user.user_id))
        if "update_user" in self.failures:
            return WriteResult.failed(self.failures["update_user"])
        for idx, stored in enumerate(self.users):
            if stored.user_id == user.user_id:
                self.users[idx] = user.model_copy()
                return WriteResult.ok()
        return WriteResult.failed(f"User {user.user_id} not found")

    def get_account(self, record_id: str) -> Optional[PersonnelAccount]:
        for records in self.accounts.values():
            for record in records:
                if record.record_id == record_id:
                    return record
        return None

    def get_user(self, user_id: str) -> Optional[User]:
        return next((u for u in self.users if u.user_id == user_id), None)


class InMemoryAuditStorage(AuditStorageInterface):
    """Audit events kept in a list."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self.events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        return sorted(events, key=lambda e: e.timestamp)
