"""
Main Orchestrator for Duty Accounts

This module ties together all the components and defines the
end-to-end flow for entering a duty officer's bank account:

    search routing code -> edit record -> save -> verify

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing is written before local validation passes
- Directory entries are created only alongside an account write
- Every step is audited

This is the "glue" between the UI (out of scope here) and the
reconciliation engine.
"""

from typing import Optional
from uuid import UUID

import structlog

from duty_accounts.access import PersonnelAccessService
from duty_accounts.audit import AuditLogger, create_correlation_id
from duty_accounts.config import get_settings
from duty_accounts.directory import RoutingCodeResolver
from duty_accounts.errors import ReconciliationError
from duty_accounts.lifecycle import (
    RecordLifecycleController,
    SaveOutcome,
    VerificationOutcome,
)
from duty_accounts.models.personnel import (
    Actor,
    PersonnelAccount,
    PersonnelCategory,
    VerificationStatus,
)
from duty_accounts.models.resolution import Discovered, Resolution, Unresolved
from duty_accounts.profiles import UserProfileService
from duty_accounts.queries import ProgressQuery
from duty_accounts.repository import SnapshotRepository
from duty_accounts.services.lookup import RazorpayIFSCLookup, RoutingCodeLookupInterface
from duty_accounts.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsBackend,
    GoogleSheetsClient,
    InMemoryBackend,
    PersistenceBackendInterface,
)


logger = structlog.get_logger(__name__)


class AccountEntryFlow:
    """
    Orchestrates the account entry flow.

    Flow:
    1. Load   -> Full snapshot from the backend
    2. Search -> Resolve the routing code (directory, then external lookup)
    3. Save   -> Validate, commit staged bank/branch and the account, reload
    4. Verify -> Role-gated verification toggle, reload

    The resolution returned by step 2 is handed back to step 3 unchanged;
    staged directory entries exist nowhere else.
    """

    def __init__(
        self,
        repository: SnapshotRepository,
        lookup: Optional[RoutingCodeLookupInterface] = None,
        resolver: Optional[RoutingCodeResolver] = None,
        controller: Optional[RecordLifecycleController] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._repository = repository
        self._resolver = resolver or RoutingCodeResolver(lookup or RazorpayIFSCLookup())
        self._audit_logger = audit_logger
        self._controller = controller or RecordLifecycleController(
            repository,
            audit_logger=audit_logger,
        )

    @property
    def repository(self) -> SnapshotRepository:
        return self._repository

    async def load(self, correlation_id: Optional[UUID] = None) -> None:
        """Initial (or manual) full reload."""
        await self._repository.refresh(correlation_id)

    def records_for(
        self,
        actor: Actor,
        category: Optional[PersonnelCategory] = None,
    ) -> list[PersonnelAccount]:
        return self._repository.accounts_for(actor, category)

    async def lookup_routing_code(
        self,
        code: str,
        correlation_id: Optional[UUID] = None,
    ) -> Resolution:
        """
        Resolve a routing code typed by the user.

        Never raises for an unknown or malformed code; the variant of the
        returned resolution says what happened. A failing lookup service
        gives Unresolved and is audited as an external service error.
        """
        correlation_id = correlation_id or create_correlation_id()
        resolution = await self._resolver.resolve(code, self._repository.directory)

        if isinstance(resolution, Unresolved) and resolution.lookup_error and self._audit_logger:
            await self._audit_logger.log_external_service_error(
                service="routing_code_lookup",
                error_message=resolution.lookup_error,
                correlation_id=correlation_id,
            )

        if self._audit_logger:
            details = {}
            if isinstance(resolution, Discovered):
                details = {
                    "bank_id": resolution.bank_id,
                    "branch_id": resolution.branch_id,
                    "new_bank": resolution.pending_bank is not None,
                }
            await self._audit_logger.log_routing_code_resolution(
                routing_code=resolution.routing_code,
                kind=resolution.kind,
                message=resolution.message,
                correlation_id=correlation_id,
                details=details,
            )
        return resolution

    async def save(
        self,
        actor: Actor,
        candidate: PersonnelAccount,
        resolution: Optional[Resolution] = None,
        correlation_id: Optional[UUID] = None,
    ) -> SaveOutcome:
        """Validate and commit an edited record. See RecordLifecycleController."""
        correlation_id = correlation_id or create_correlation_id()
        try:
            outcome = await self._controller.save_account(
                actor,
                candidate,
                resolution=resolution,
                correlation_id=correlation_id,
            )
        except ReconciliationError:
            raise
        except Exception as e:
            if self._audit_logger:
                await self._audit_logger.log_error(
                    error_type=type(e).__name__,
                    error_message=str(e),
                    details={"record_id": candidate.record_id},
                    correlation_id=correlation_id,
                )
            raise
        for failure in outcome.enrichment_failures:
            logger.warning("directory_enrichment_failed", error=str(failure))
        return outcome

    async def set_verified(
        self,
        actor: Actor,
        record_id: str,
        verified: bool,
        correlation_id: Optional[UUID] = None,
    ) -> VerificationOutcome:
        target = VerificationStatus.YES if verified else VerificationStatus.NO
        return await self._controller.set_verification(
            actor,
            record_id,
            target,
            correlation_id=correlation_id,
        )


def create_app_components(
    use_storage: bool = True,
) -> tuple[AccountEntryFlow, PersonnelAccessService, ProgressQuery, UserProfileService]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False to run against an empty in-memory backend.

    Returns:
        (account_entry_flow, access_service, progress_query, profile_service)

    The repository is empty until AccountEntryFlow.load() is awaited.
    """
    backend: PersistenceBackendInterface
    audit_logger = AuditLogger()  # Local-only logging

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            sheets_client.connect()
            backend = GoogleSheetsBackend(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue without it
            logger.warning("storage_not_configured", error=str(e))
            backend = InMemoryBackend()
    else:
        backend = InMemoryBackend()

    lookup_settings = get_settings().ifsc_lookup
    lookup = RazorpayIFSCLookup(
        base_url=lookup_settings.base_url,
        timeout=lookup_settings.timeout_seconds,
        max_attempts=lookup_settings.max_attempts,
    )

    repository = SnapshotRepository(backend, audit_logger=audit_logger)
    account_flow = AccountEntryFlow(
        repository,
        lookup=lookup,
        audit_logger=audit_logger,
    )
    access_service = PersonnelAccessService(repository, audit_logger=audit_logger)
    progress_query = ProgressQuery(repository)
    profile_service = UserProfileService(repository, audit_logger=audit_logger)

    return account_flow, access_service, progress_query, profile_service
