"""
Record Lifecycle Controller

Governs edits and verification of personnel accounts.

SAVE PIPELINE (steps 1-6 are local, no network I/O):
1. Load the stored record                 -> RecordNotFound
2. Authorization                          -> PermissionDenied
3. Mandatory banking fields               -> MissingMandatoryField
4. Routing-code format + resolution       -> InvalidRoutingCode / StaleResolution
5. Global uniqueness                      -> DuplicateRecord
6. Directory consistency                  -> InconsistentDirectoryReference
7. Commit: staged bank (IGNORE), staged branch (IGNORE),
   account write (ABORT)                  -> PersistenceFailure
8. Invalidate + reload the repository

CRITICAL: An edit never changes the verification flag. Verification
moves only through set_verification().

The election mapping (assembly, tehsil, unit) and the PIN fields are
owned by the bulk import and the access service respectively; an edit
carries them over from the stored record.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

import structlog
from pydantic import BaseModel

from duty_accounts.audit import AuditLogger, create_correlation_id
from duty_accounts.config import get_settings
from duty_accounts.directory import DirectoryStore, routing_code_problem
from duty_accounts.errors import (
    DirectoryEnrichmentFailure,
    IncompleteRecord,
    InconsistentDirectoryReference,
    InvalidRoutingCode,
    PermissionDenied,
    PersistenceFailure,
    ReconciliationError,
    RecordNotFound,
    StaleResolution,
    StaleSnapshot,
)
from duty_accounts.lifecycle.authorization import can_edit, can_transition_verification
from duty_accounts.lifecycle.sequencer import (
    CommitReport,
    CommitSequencer,
    CommitStep,
    FailurePolicy,
)
from duty_accounts.models.directory import normalize_routing_code
from duty_accounts.models.personnel import Actor, PersonnelAccount, VerificationStatus
from duty_accounts.models.resolution import (
    Discovered,
    InvalidCode,
    Resolution,
    Resolved,
    Unresolved,
)
from duty_accounts.repository import SnapshotRepository
from duty_accounts.validation import AccountValidator


logger = structlog.get_logger(__name__)


# Fields a save may change. Everything else comes from the stored record.
EDITABLE_FIELDS = (
    "personnel_name",
    "gender",
    "department_id",
    "designation_id",
    "mobile",
    "epic_id",
    "bank_id",
    "branch_id",
    "routing_code",
    "account_number",
    "proof_document",
)


class SaveOutcome(BaseModel):
    """Result of a committed save."""

    account: PersonnelAccount
    resolution_kind: str
    created_bank_id: Optional[str] = None
    created_branch_id: Optional[str] = None
    report: CommitReport
    reloaded: bool = True

    @property
    def enrichment_failures(self) -> list[DirectoryEnrichmentFailure]:
        return self.report.enrichment_failures

    @property
    def message(self) -> str:
        if self.enrichment_failures:
            return "Account saved; some directory entries could not be created"
        return "Account saved successfully"


class VerificationOutcome(BaseModel):
    account: PersonnelAccount
    changed: bool
    reloaded: bool = True


class RecordLifecycleController:
    """
    Edits and verifies personnel accounts against the snapshot repository.

    Usage:
        controller = RecordLifecycleController(repository)
        outcome = await controller.save_account(actor, candidate, resolution)
    """

    def __init__(
        self,
        repository: SnapshotRepository,
        validator: Optional[AccountValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        sequencer: Optional[CommitSequencer] = None,
        code_length: Optional[int] = None,
    ):
        self._repository = repository
        self._backend = repository.backend
        self._validator = validator or AccountValidator()
        self._audit_logger = audit_logger
        self._sequencer = sequencer or CommitSequencer()
        self._code_length = code_length or get_settings().app.routing_code_length

    # =========================================================================
    # SAVE
    # =========================================================================

    async def save_account(
        self,
        actor: Actor,
        candidate: PersonnelAccount,
        resolution: Optional[Resolution] = None,
        correlation_id: Optional[UUID] = None,
    ) -> SaveOutcome:
        """
        Validate and commit an edited record.

        Args:
            actor: Who is saving
            candidate: The edited record (matched to storage by record_id)
            resolution: Result of resolving candidate.routing_code. When
                        None the code is matched against the local
                        directory only.

        Raises:
            ReconciliationError subclasses, see the module docstring
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            record, resolution = self._prepare(actor, candidate, resolution)
        except ReconciliationError as e:
            logger.info(
                "save_rejected",
                record_id=candidate.record_id,
                actor_id=actor.actor_id,
                error_type=type(e).__name__,
                reason=str(e),
            )
            if self._audit_logger:
                await self._audit_logger.log_save_rejected(
                    record_id=candidate.record_id,
                    actor_id=actor.actor_id,
                    error=e,
                    correlation_id=correlation_id,
                )
            raise

        steps = self._commit_steps(record, resolution)
        try:
            report = await self._sequencer.run(steps)
        except PersistenceFailure as e:
            if self._audit_logger:
                await self._audit_logger.log_save_failed(
                    record_id=record.record_id,
                    actor_id=actor.actor_id,
                    error_message=e.backend_message,
                    correlation_id=correlation_id,
                )
            # Staged directory entries may have been written
            await self._reload(correlation_id)
            raise

        await self._audit_commit(record, actor, resolution, report, correlation_id)
        reloaded = await self._reload(correlation_id)

        created_bank_id = None
        created_branch_id = None
        for result in report.succeeded:
            if result.entity_type == "bank":
                created_bank_id = result.entity_id
            elif result.entity_type == "branch":
                created_branch_id = result.entity_id

        return SaveOutcome(
            account=record,
            resolution_kind=resolution.kind,
            created_bank_id=created_bank_id,
            created_branch_id=created_branch_id,
            report=report,
            reloaded=reloaded,
        )

    def _prepare(
        self,
        actor: Actor,
        candidate: PersonnelAccount,
        resolution: Optional[Resolution],
    ) -> tuple[PersonnelAccount, Resolution]:
        """Steps 1-6. Pure with respect to the backend."""
        # 1. Stored record
        stored = self._repository.get_account(candidate.record_id)
        if stored is None:
            raise RecordNotFound(candidate.record_id)

        # 2. Authorization
        decision = can_edit(stored, actor)
        if not decision:
            raise PermissionDenied(decision.reason)

        # 3. Mandatory fields
        self._validator.ensure_mandatory_fields(candidate)

        # 4. Routing code and resolution
        code = normalize_routing_code(candidate.routing_code)
        problem = routing_code_problem(code, self._code_length)
        if problem is not None:
            raise InvalidRoutingCode(code, problem)

        directory = self._repository.directory
        resolution = self._effective_resolution(code, resolution, directory)

        record = self._merge(stored, candidate)
        record = resolution.apply_to(record)

        # 5. Uniqueness, against every record of every category
        self._validator.ensure_unique(record, self._repository.all_accounts())

        # 6. Directory consistency
        self._check_directory_reference(record, resolution, directory)

        return record, resolution

    def _effective_resolution(
        self,
        code: str,
        resolution: Optional[Resolution],
        directory: DirectoryStore,
    ) -> Resolution:
        if resolution is not None:
            if normalize_routing_code(resolution.routing_code) != code:
                raise StaleResolution(resolution.routing_code, code)
            if isinstance(resolution, InvalidCode):
                raise InvalidRoutingCode(code, resolution.reason)

        # Directory entries win over a resolution computed before the
        # last reload; this keeps re-saves from staging the branch twice.
        branch = directory.find_branch_by_routing_code(code)
        if branch is not None:
            if isinstance(resolution, Discovered):
                logger.info(
                    "discovered_branch_already_present",
                    routing_code=code,
                    branch_id=branch.id,
                )
            return Resolved(routing_code=code, bank_id=branch.bank_id, branch_id=branch.id)

        if resolution is None:
            return Unresolved(routing_code=code, reason="Routing code not in directory")
        return resolution

    def _merge(self, stored: PersonnelAccount, candidate: PersonnelAccount) -> PersonnelAccount:
        updates = {name: getattr(candidate, name) for name in EDITABLE_FIELDS}
        updates["updated_at"] = datetime.utcnow()
        return stored.model_copy(update=updates)

    def _check_directory_reference(
        self,
        record: PersonnelAccount,
        resolution: Resolution,
        directory: DirectoryStore,
    ) -> None:
        pending_bank = resolution.pending_bank if isinstance(resolution, Discovered) else None
        pending_branch = resolution.pending_branch if isinstance(resolution, Discovered) else None

        if pending_branch is not None and directory.get_branch(pending_branch.id) is not None:
            raise InconsistentDirectoryReference(
                f"Branch id {pending_branch.id} is already taken; search the routing code again"
            )
        if pending_bank is not None and directory.get_bank(pending_bank.id) is not None:
            raise InconsistentDirectoryReference(
                f"Bank id {pending_bank.id} is already taken; search the routing code again"
            )

        if record.branch_id:
            branch = directory.get_branch(record.branch_id)
            if branch is None and pending_branch is not None and pending_branch.id == record.branch_id:
                branch = pending_branch
            if branch is None:
                raise InconsistentDirectoryReference(
                    f"Branch {record.branch_id} does not exist in the directory"
                )
            if branch.bank_id != record.bank_id:
                raise InconsistentDirectoryReference(
                    f"Branch {branch.id} belongs to bank {branch.bank_id}, "
                    f"not {record.bank_id or '(none)'}"
                )

        if record.bank_id:
            known = directory.get_bank(record.bank_id) is not None or (
                pending_bank is not None and pending_bank.id == record.bank_id
            )
            if not known:
                raise InconsistentDirectoryReference(
                    f"Bank {record.bank_id} does not exist in the directory"
                )

    def _commit_steps(
        self,
        record: PersonnelAccount,
        resolution: Resolution,
    ) -> list[CommitStep]:
        steps = []
        if isinstance(resolution, Discovered):
            if resolution.pending_bank is not None:
                bank = resolution.pending_bank
                steps.append(CommitStep(
                    name="create bank",
                    operation=lambda: self._backend.create_bank(bank),
                    on_failure=FailurePolicy.IGNORE,
                    entity_type="bank",
                    entity_id=bank.id,
                ))
            branch = resolution.pending_branch
            steps.append(CommitStep(
                name="create branch",
                operation=lambda: self._backend.create_branch(branch),
                on_failure=FailurePolicy.IGNORE,
                entity_type="branch",
                entity_id=branch.id,
            ))
        steps.append(CommitStep(
            name="save account",
            operation=lambda: self._backend.save_account(record),
            on_failure=FailurePolicy.ABORT,
            entity_type="account",
            entity_id=record.record_id,
        ))
        return steps

    async def _audit_commit(
        self,
        record: PersonnelAccount,
        actor: Actor,
        resolution: Resolution,
        report: CommitReport,
        correlation_id: UUID,
    ) -> None:
        if not self._audit_logger:
            return
        names = {}
        if isinstance(resolution, Discovered):
            names[resolution.pending_branch.id] = resolution.pending_branch.name
            if resolution.pending_bank is not None:
                names[resolution.pending_bank.id] = resolution.pending_bank.name

        for result in report.results:
            if result.entity_type not in ("bank", "branch"):
                continue
            if result.success:
                await self._audit_logger.log_directory_entry_created(
                    entity_type=result.entity_type,
                    entity_id=result.entity_id,
                    name=names.get(result.entity_id, result.entity_id),
                    correlation_id=correlation_id,
                )
            else:
                await self._audit_logger.log_directory_enrichment_failed(
                    entity_type=result.entity_type,
                    entity_id=result.entity_id,
                    error_message=result.message or "",
                    correlation_id=correlation_id,
                )
        await self._audit_logger.log_account_saved(
            record_id=record.record_id,
            category=record.category.value,
            actor_id=actor.actor_id,
            correlation_id=correlation_id,
        )

    async def _reload(self, correlation_id: Optional[UUID]) -> bool:
        """Invalidate and refresh. False when the reload failed."""
        self._repository.invalidate()
        try:
            await self._repository.refresh(correlation_id)
        except StaleSnapshot:
            return False
        return True

    # =========================================================================
    # VERIFICATION
    # =========================================================================

    async def set_verification(
        self,
        actor: Actor,
        record_id: str,
        target: VerificationStatus,
        correlation_id: Optional[UUID] = None,
    ) -> VerificationOutcome:
        """
        Move a record to `target`.

        A same-state request is a no-op without any backend call.

        Raises:
            RecordNotFound, PermissionDenied, IncompleteRecord,
            PersistenceFailure
        """
        correlation_id = correlation_id or create_correlation_id()

        stored = self._repository.get_account(record_id)
        if stored is None:
            raise RecordNotFound(record_id)

        if stored.verified == target:
            return VerificationOutcome(account=stored, changed=False)

        decision = can_transition_verification(stored, actor, target)
        if not decision:
            if self._audit_logger:
                await self._audit_logger.log_save_rejected(
                    record_id=record_id,
                    actor_id=actor.actor_id,
                    error=PermissionDenied(decision.reason),
                    correlation_id=correlation_id,
                )
            raise PermissionDenied(decision.reason)

        if target == VerificationStatus.YES:
            missing = self._validator.missing_mandatory_fields(stored)
            if missing:
                raise IncompleteRecord(record_id, missing)

        await self._sequencer.run([
            CommitStep(
                name="update verification",
                operation=lambda: self._backend.update_verification(
                    stored.category, record_id, target
                ),
                on_failure=FailurePolicy.ABORT,
                entity_type="account",
                entity_id=record_id,
            )
        ])

        if self._audit_logger:
            await self._audit_logger.log_verification_changed(
                record_id=record_id,
                actor_id=actor.actor_id,
                previous=stored.verified.value,
                current=target.value,
                correlation_id=correlation_id,
            )

        reloaded = await self._reload(correlation_id)
        account = stored.model_copy(update={"verified": target})
        return VerificationOutcome(account=account, changed=True, reloaded=reloaded)
