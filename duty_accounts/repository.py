"""
Snapshot Repository

Holds the last DataSnapshot returned by the backend and answers every
read the engine needs: personnel records, users, reference data and
the DirectoryStore.

CRITICAL: The backend has no push notifications. Consistency is
restored only by a full fetch_all() after each mutation:

    invalidate()  -> every query raises StaleSnapshot
    refresh()     -> fetch_all(); on success the snapshot is replaced
                     wholesale, on failure the repository stays stale

A failed reload therefore never leaves half-updated state visible.
"""

from typing import Optional
from uuid import UUID

import structlog

from duty_accounts.audit import AuditLogger
from duty_accounts.directory import DirectoryStore
from duty_accounts.errors import StaleSnapshot
from duty_accounts.models.personnel import (
    Actor,
    ActorRole,
    Department,
    Designation,
    PersonnelAccount,
    PersonnelCategory,
    User,
)
from duty_accounts.models.snapshot import DataSnapshot
from duty_accounts.services.storage import PersistenceBackendInterface


logger = structlog.get_logger(__name__)


class SnapshotRepository:
    """Read-only queries over the most recent backend snapshot."""

    def __init__(
        self,
        backend: PersistenceBackendInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._backend = backend
        self._audit_logger = audit_logger
        self._snapshot: Optional[DataSnapshot] = None
        self._directory: Optional[DirectoryStore] = None
        self._stale = True

    @property
    def backend(self) -> PersistenceBackendInterface:
        return self._backend

    @property
    def is_stale(self) -> bool:
        return self._stale

    def invalidate(self) -> None:
        """Mark the snapshot out of date. Queries fail until refresh() succeeds."""
        self._stale = True

    async def refresh(self, correlation_id: Optional[UUID] = None) -> DataSnapshot:
        """
        Reload everything from the backend.

        Raises:
            StaleSnapshot: The backend could not be read. The repository
                           stays invalidated.
        """
        try:
            snapshot = await self._backend.fetch_all()
        except Exception as e:
            self._stale = True
            logger.error("snapshot_reload_failed", error=str(e))
            if self._audit_logger:
                await self._audit_logger.log_snapshot_reload_failed(
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise StaleSnapshot(f"Data is out of date; reload failed: {e}") from e

        self._snapshot = snapshot
        self._directory = DirectoryStore(snapshot.banks, snapshot.branches)
        self._stale = False

        if self._audit_logger:
            await self._audit_logger.log_snapshot_reloaded(
                account_count=len(snapshot.all_accounts()),
                bank_count=len(snapshot.banks),
                branch_count=len(snapshot.branches),
                correlation_id=correlation_id,
            )
        return snapshot

    def _current(self) -> DataSnapshot:
        if self._stale or self._snapshot is None:
            raise StaleSnapshot()
        return self._snapshot

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def snapshot(self) -> DataSnapshot:
        return self._current()

    @property
    def directory(self) -> DirectoryStore:
        self._current()
        return self._directory

    @property
    def users(self) -> list[User]:
        return list(self._current().users)

    @property
    def departments(self) -> list[Department]:
        return list(self._current().departments)

    @property
    def designations(self) -> list[Designation]:
        return list(self._current().designations)

    def all_accounts(self) -> list[PersonnelAccount]:
        """Every record across all categories (the uniqueness universe)."""
        return self._current().all_accounts()

    def accounts_in(self, category: PersonnelCategory) -> list[PersonnelAccount]:
        return list(self._current().accounts.get(category, []))

    def get_account(self, record_id: str) -> Optional[PersonnelAccount]:
        for account in self.all_accounts():
            if account.record_id == record_id:
                return account
        return None

    def get_user(self, user_id: str) -> Optional[User]:
        for user in self._current().users:
            if user.user_id == user_id:
                return user
        return None

    def find_by_mobile(self, mobile: str) -> Optional[PersonnelAccount]:
        """First record whose trimmed mobile matches, searching all categories."""
        key = (mobile or "").strip()
        if not key:
            return None
        for account in self.all_accounts():
            if account.mobile.strip() == key:
                return account
        return None

    def accounts_for(
        self,
        actor: Actor,
        category: Optional[PersonnelCategory] = None,
    ) -> list[PersonnelAccount]:
        """
        Records visible to an actor.

        Admins see everything, regional users the records they own,
        personnel only their own record.
        """
        if category is None:
            records = self.all_accounts()
        else:
            records = self.accounts_in(category)

        if actor.role is ActorRole.ADMIN:
            return records
        if actor.role is ActorRole.REGIONAL:
            return [r for r in records if r.owning_user_id == actor.actor_id]
        return [r for r in records if r.record_id == actor.actor_id]
