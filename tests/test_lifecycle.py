"""Tests for authorization, the commit sequencer and the lifecycle controller."""

from unittest.mock import AsyncMock

import pytest

from duty_accounts.directory import IdentifierAllocator, RoutingCodeResolver
from duty_accounts.errors import (
    DuplicateRecord,
    IncompleteRecord,
    InconsistentDirectoryReference,
    InvalidRoutingCode,
    MissingMandatoryField,
    PermissionDenied,
    PersistenceFailure,
    RecordNotFound,
    StaleResolution,
)
from duty_accounts.lifecycle import (
    CommitSequencer,
    CommitStep,
    FailurePolicy,
    RecordLifecycleController,
    can_edit,
    can_transition_verification,
)
from duty_accounts.models.audit import AuditEventType
from duty_accounts.models.personnel import (
    Actor,
    ActorRole,
    PersonnelCategory,
    VerificationStatus,
)
from duty_accounts.models.resolution import Resolved, Unresolved
from duty_accounts.models.snapshot import WriteResult
from duty_accounts.validation import AccountValidator

from factories import SBI_LOOKUP, complete, make_account, make_lookup


@pytest.fixture
def controller(repository, audit_logger) -> RecordLifecycleController:
    return RecordLifecycleController(
        repository,
        validator=AccountValidator(["account_number", "routing_code", "proof_document"]),
        audit_logger=audit_logger,
        code_length=11,
    )


@pytest.fixture
def resolver() -> RoutingCodeResolver:
    return RoutingCodeResolver(make_lookup(SBI_LOOKUP), IdentifierAllocator("B", "BR"), code_length=11)


class TestAuthorization:
    """Tests for the role policy."""

    def test_admin_edits_anything(self, admin):
        """Test admin edit rights, verified or not."""
        record = make_account("BLO_1", owning_user_id="U_2", verified="yes")
        assert can_edit(record, admin)

    def test_regional_user_edits_own_unverified_records(self, rampur_user, bilaspur_user):
        """Test regional scoping."""
        record = make_account("BLO_1", owning_user_id="U_1")
        assert can_edit(record, rampur_user)
        denied = can_edit(record, bilaspur_user)
        assert not denied
        assert "outside your scope" in denied.reason

    def test_verified_record_is_locked(self, rampur_user):
        """Test that verification locks non-admins out."""
        record = make_account("BLO_1", owning_user_id="U_1", verified="yes")
        assert not can_edit(record, rampur_user)

    def test_personnel_edits_only_own_record(self):
        """Test self-service scope."""
        record = make_account("BLO_1")
        assert can_edit(record, Actor(actor_id="BLO_1", role=ActorRole.PERSONNEL))
        assert not can_edit(record, Actor(actor_id="BLO_2", role=ActorRole.PERSONNEL))

    def test_only_admin_unverifies(self, admin, rampur_user):
        """Test the back-transition rule."""
        record = make_account("BLO_1", verified="yes")
        assert can_transition_verification(record, admin, VerificationStatus.NO)
        assert not can_transition_verification(record, rampur_user, VerificationStatus.NO)

    def test_owner_or_admin_verifies(self, admin, rampur_user, bilaspur_user):
        """Test who may verify."""
        record = make_account("BLO_1", owning_user_id="U_1")
        assert can_transition_verification(record, admin, VerificationStatus.YES)
        assert can_transition_verification(record, rampur_user, VerificationStatus.YES)
        assert not can_transition_verification(record, bilaspur_user, VerificationStatus.YES)
        personnel = Actor(actor_id="BLO_1", role=ActorRole.PERSONNEL)
        assert not can_transition_verification(record, personnel, VerificationStatus.YES)

    def test_same_state_with_unvalidated_flag(self, rampur_user):
        """Test that a plain "yes" flag set without validation is still the same state."""
        record = make_account("BLO_1", owning_user_id="U_2").model_copy(update={"verified": "yes"})
        assert can_transition_verification(record, rampur_user, VerificationStatus.YES)
        assert not can_edit(record, Actor(actor_id="BLO_1", role=ActorRole.PERSONNEL))


class TestCommitSequencer:
    """Tests for ordered, policy-driven commits."""

    @pytest.mark.asyncio
    async def test_ignore_failure_continues(self):
        """Test that IGNORE steps do not stop the sequence."""
        calls = []

        async def failing():
            calls.append("bank")
            return WriteResult.failed("quota exceeded")

        async def succeeding():
            calls.append("account")
            return WriteResult.ok()

        report = await CommitSequencer().run([
            CommitStep(name="create bank", operation=failing, on_failure=FailurePolicy.IGNORE,
                       entity_type="bank", entity_id="B_8"),
            CommitStep(name="save account", operation=succeeding, on_failure=FailurePolicy.ABORT),
        ])

        assert calls == ["bank", "account"]
        assert len(report.ignored_failures) == 1
        failure = report.enrichment_failures[0]
        assert failure.entity_id == "B_8"
        assert "quota exceeded" in str(failure)

    @pytest.mark.asyncio
    async def test_abort_failure_raises_and_stops(self):
        """Test that ABORT steps raise with the backend message verbatim."""
        later = AsyncMock(return_value=WriteResult.ok())

        async def rejected():
            return WriteResult.failed("Row is protected")

        with pytest.raises(PersistenceFailure) as exc_info:
            await CommitSequencer().run([
                CommitStep(name="save account", operation=rejected, on_failure=FailurePolicy.ABORT),
                CommitStep(name="never", operation=later, on_failure=FailurePolicy.IGNORE),
            ])

        assert exc_info.value.backend_message == "Row is protected"
        later.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_exception_counts_as_failure(self):
        """Test that an unreachable backend is treated like a rejected write."""
        async def unreachable():
            raise ConnectionError("network down")

        report = await CommitSequencer().run([
            CommitStep(name="create branch", operation=unreachable, on_failure=FailurePolicy.IGNORE),
        ])
        assert report.ignored_failures[0].message == "network down"


class TestSaveAccount:
    """Tests for the save pipeline."""

    @pytest.mark.asyncio
    async def test_missing_account_number_fails_before_any_network_call(
        self, controller, backend, rampur_user
    ):
        """Test scenario: empty account number gives MissingMandatoryField with no I/O."""
        backend.calls.clear()
        candidate = complete(make_account("BLO_1", mobile="9876500001"), account_number="")

        with pytest.raises(MissingMandatoryField):
            await controller.save_account(rampur_user, candidate)

        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_unknown_record(self, controller, admin):
        """Test RecordNotFound."""
        with pytest.raises(RecordNotFound):
            await controller.save_account(admin, complete(make_account("GHOST")))

    @pytest.mark.asyncio
    async def test_out_of_scope_user_is_denied(self, controller, backend, bilaspur_user, audit_storage):
        """Test PermissionDenied is raised and audited."""
        backend.calls.clear()
        with pytest.raises(PermissionDenied):
            await controller.save_account(bilaspur_user, complete(make_account("BLO_1")))
        assert backend.write_calls == []
        assert audit_storage.events[-1].event_type == AuditEventType.PERMISSION_DENIED

    @pytest.mark.asyncio
    async def test_malformed_routing_code(self, controller, rampur_user):
        """Test InvalidRoutingCode for a malformed code."""
        with pytest.raises(InvalidRoutingCode):
            await controller.save_account(
                rampur_user, complete(make_account("BLO_1"), routing_code="SBIN123")
            )

    @pytest.mark.asyncio
    async def test_stale_resolution(self, controller, rampur_user):
        """Test that a resolution for another code is rejected."""
        resolution = Unresolved(routing_code="ABCD0000001")
        with pytest.raises(StaleResolution):
            await controller.save_account(
                rampur_user, complete(make_account("BLO_1")), resolution
            )

    @pytest.mark.asyncio
    async def test_duplicate_mobile_across_categories(self, controller, backend, rampur_user):
        """Test that uniqueness is checked against every category."""
        backend.calls.clear()
        candidate = complete(make_account("BLO_1", mobile="9876500003"))

        with pytest.raises(DuplicateRecord) as exc_info:
            await controller.save_account(rampur_user, candidate)

        assert exc_info.value.conflict.conflicting_record_id == "AV_1"
        assert backend.write_calls == []

    @pytest.mark.asyncio
    async def test_discovered_commits_branch_then_account(
        self, controller, resolver, repository, backend, rampur_user
    ):
        """Test the full commit order and the reload."""
        resolution = await resolver.resolve("SBIN0001234", repository.directory)
        candidate = complete(make_account("BLO_1", mobile="9876500001"))

        outcome = await controller.save_account(rampur_user, candidate, resolution)

        assert [c for c in backend.write_calls] == [
            ("create_branch", "BR_5"),
            ("save_account", "BLO_1"),
        ]
        assert outcome.created_branch_id == "BR_5"
        assert outcome.created_bank_id is None
        assert outcome.reloaded
        stored = repository.get_account("BLO_1")
        assert (stored.bank_id, stored.branch_id) == ("B_7", "BR_5")
        assert repository.directory.find_branch_by_routing_code("SBIN0001234").id == "BR_5"

    @pytest.mark.asyncio
    async def test_new_bank_commit_order(self, controller, repository, backend, rampur_user):
        """Test that a staged bank is written before its branch."""
        resolver = RoutingCodeResolver(
            make_lookup(SBI_LOOKUP.model_copy(update={"bank_name": "Rampur Cooperative Bank"})),
            IdentifierAllocator("B", "BR"),
            code_length=11,
        )
        resolution = await resolver.resolve("SBIN0001234", repository.directory)

        await controller.save_account(rampur_user, complete(make_account("BLO_1")), resolution)

        assert backend.write_calls == [
            ("create_bank", "B_8"),
            ("create_branch", "BR_5"),
            ("save_account", "BLO_1"),
        ]

    @pytest.mark.asyncio
    async def test_enrichment_failure_does_not_block_account(
        self, controller, resolver, repository, backend, rampur_user, audit_storage
    ):
        """Test that a failed branch create is reported, not raised."""
        backend.fail("create_branch", "Sheet is full")
        resolution = await resolver.resolve("SBIN0001234", repository.directory)

        outcome = await controller.save_account(rampur_user, complete(make_account("BLO_1")), resolution)

        assert len(outcome.enrichment_failures) == 1
        assert "Sheet is full" in str(outcome.enrichment_failures[0])
        assert repository.get_account("BLO_1").account_number == "30012345678"
        event_types = [e.event_type for e in audit_storage.events]
        assert AuditEventType.DIRECTORY_ENRICHMENT_FAILED in event_types

    @pytest.mark.asyncio
    async def test_account_write_failure_raises_persistence_failure(
        self, controller, backend, rampur_user
    ):
        """Test that the backend message surfaces verbatim."""
        backend.fail("save_account", "You do not have permission to edit this range")

        with pytest.raises(PersistenceFailure) as exc_info:
            await controller.save_account(rampur_user, complete(make_account("BLO_1")))

        assert exc_info.value.backend_message == "You do not have permission to edit this range"

    @pytest.mark.asyncio
    async def test_local_directory_match_without_resolution(self, controller, repository, rampur_user):
        """Test that an omitted resolution binds a directory branch."""
        candidate = complete(make_account("BLO_1"), routing_code="sbin0000691")
        outcome = await controller.save_account(rampur_user, candidate)
        assert outcome.resolution_kind == "resolved"
        assert (outcome.account.bank_id, outcome.account.branch_id) == ("B_7", "BR_4")
        assert outcome.account.routing_code == "SBIN0000691"

    @pytest.mark.asyncio
    async def test_unresolved_partial_save_clears_ids(self, controller, repository, backend, rampur_user):
        """Test that an unresolved code saves with empty bank and branch."""
        backend.accounts[PersonnelCategory.FIELD_OFFICER][0] = make_account(
            "BLO_1", bank_id="B_7", branch_id="BR_4", routing_code="SBIN0000691"
        )
        await repository.refresh()
        candidate = complete(
            repository.get_account("BLO_1"), routing_code="ABCD0000001"
        )

        outcome = await controller.save_account(
            rampur_user, candidate, Unresolved(routing_code="ABCD0000001")
        )

        assert outcome.account.bank_id == ""
        assert outcome.account.branch_id == ""

    @pytest.mark.asyncio
    async def test_branch_of_another_bank_is_inconsistent(self, controller, rampur_user):
        """Test the branch/bank invariant."""
        # BR_4 belongs to B_7
        bogus = Resolved(routing_code="ABCD0000001", bank_id="B_1", branch_id="BR_4")
        candidate = complete(make_account("BLO_1"), routing_code="ABCD0000001")

        with pytest.raises(InconsistentDirectoryReference):
            await controller.save_account(rampur_user, candidate, bogus)

    @pytest.mark.asyncio
    async def test_unknown_branch_is_inconsistent(self, controller, backend, rampur_user):
        """Test that a resolution naming a branch missing from the directory is rejected."""
        missing = Resolved(routing_code="ABCD0000001", bank_id="B_7", branch_id="BR_99")
        candidate = complete(make_account("BLO_1"), routing_code="ABCD0000001")

        with pytest.raises(InconsistentDirectoryReference) as exc_info:
            await controller.save_account(rampur_user, candidate, missing)

        assert "BR_99" in str(exc_info.value)
        assert backend.write_calls == []

    @pytest.mark.asyncio
    async def test_edit_never_changes_verification_or_mapping(self, controller, admin, backend):
        """Test that protected fields come from the stored record."""
        candidate = complete(
            make_account("BLO_1", verified="yes", tehsil="Elsewhere", unit_identifier="99")
        )

        outcome = await controller.save_account(admin, candidate)

        assert outcome.account.verified is VerificationStatus.NO
        assert outcome.account.tehsil == "Rampur"
        assert outcome.account.unit_identifier == "12"
        assert outcome.account.updated_at is not None

    @pytest.mark.asyncio
    async def test_reload_failure_reports_stale(self, controller, repository, backend, rampur_user):
        """Test that a committed save with a failed reload reports reloaded=False."""
        original_fetch = backend.fetch_all
        calls = {"n": 0}

        async def fetch_then_fail():
            calls["n"] += 1
            raise RuntimeError("quota exceeded")

        backend.fetch_all = fetch_then_fail
        try:
            outcome = await controller.save_account(rampur_user, complete(make_account("BLO_1")))
        finally:
            backend.fetch_all = original_fetch

        assert outcome.reloaded is False
        assert repository.is_stale
        assert calls["n"] == 1


class TestVerification:
    """Tests for the verification state machine."""

    @pytest.mark.asyncio
    async def test_incomplete_record_cannot_be_verified(self, controller, admin):
        """Test the verification gate."""
        with pytest.raises(IncompleteRecord) as exc_info:
            await controller.set_verification(admin, "BLO_1", VerificationStatus.YES)
        assert "account_number" in exc_info.value.fields

    @pytest.mark.asyncio
    async def test_owner_verifies_complete_record(self, controller, repository, backend, rampur_user):
        """Test Unverified -> Verified by the owning regional user."""
        await controller.save_account(rampur_user, complete(make_account("BLO_1")))

        outcome = await controller.set_verification(rampur_user, "BLO_1", VerificationStatus.YES)

        assert outcome.changed
        assert repository.get_account("BLO_1").is_verified

    @pytest.mark.asyncio
    async def test_non_admin_cannot_unverify(self, controller, repository, backend, rampur_user):
        """Test role gate: flag unchanged after PermissionDenied."""
        backend.accounts[PersonnelCategory.FIELD_OFFICER][0] = complete(
            make_account("BLO_1", verified="yes")
        )
        await repository.refresh()
        backend.calls.clear()

        with pytest.raises(PermissionDenied):
            await controller.set_verification(rampur_user, "BLO_1", VerificationStatus.NO)

        assert repository.get_account("BLO_1").is_verified
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_admin_unverifies(self, controller, repository, backend, admin):
        """Test Verified -> Unverified by an administrator."""
        backend.accounts[PersonnelCategory.FIELD_OFFICER][0] = complete(
            make_account("BLO_1", verified="yes")
        )
        await repository.refresh()

        outcome = await controller.set_verification(admin, "BLO_1", VerificationStatus.NO)

        assert outcome.changed
        assert not repository.get_account("BLO_1").is_verified

    @pytest.mark.asyncio
    async def test_same_state_is_noop(self, controller, backend, admin):
        """Test that a same-state request does no I/O."""
        backend.calls.clear()
        outcome = await controller.set_verification(admin, "BLO_1", VerificationStatus.NO)
        assert not outcome.changed
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_backend_rejection(self, controller, repository, backend, admin):
        """Test PersistenceFailure on a rejected verification write."""
        await controller.save_account(admin, complete(make_account("BLO_1")))
        backend.fail("update_verification", "Protected range")

        with pytest.raises(PersistenceFailure):
            await controller.set_verification(admin, "BLO_1", VerificationStatus.YES)
        assert not repository.get_account("BLO_1").is_verified
