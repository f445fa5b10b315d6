"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep reconciliation logic decoupled from storage implementation

The interface mirrors the backend contract exactly: a full fetch and
a handful of single-entity writes. Writes report rejection through
WriteResult; StorageError is reserved for "could not talk to the
backend at all".
"""

from abc import ABC, abstractmethod

from duty_accounts.models.audit import AuditEvent
from duty_accounts.models.directory import Bank, Branch
from duty_accounts.models.personnel import (
    PersonnelAccount,
    PersonnelCategory,
    User,
    VerificationStatus,
)
from duty_accounts.models.snapshot import DataSnapshot, WriteResult


class PersistenceBackendInterface(ABC):
    """
    Abstract interface for the persistence backend.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def fetch_all(self) -> DataSnapshot:
        """
        Fetch the complete dataset.

        Returns:
            Accounts of all categories, banks, branches, users,
            departments and designations

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def create_bank(self, bank: Bank) -> WriteResult:
        """Append a new bank to the directory."""
        pass

    @abstractmethod
    async def create_branch(self, branch: Branch) -> WriteResult:
        """Append a new branch to the directory."""
        pass

    @abstractmethod
    async def save_account(self, account: PersonnelAccount) -> WriteResult:
        """
        Overwrite an existing personnel account (matched by record_id
        within its category).

        Returns:
            WriteResult; success=False with a message if the record does
            not exist or the backend rejected the write
        """
        pass

    @abstractmethod
    async def update_verification(
        self,
        category: PersonnelCategory,
        record_id: str,
        verified: VerificationStatus,
    ) -> WriteResult:
        """Set only the verification flag of a personnel account."""
        pass

    @abstractmethod
    async def update_user(self, user: User) -> WriteResult:
        """
        Overwrite an existing portal user (matched by user_id).

        Columns the User model does not carry (such as the portal
        password) are left as they are.
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """All events for an entity, in chronological order."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
