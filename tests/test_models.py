"""
Tests for Duty Accounts

Test strategy:
1. Unit tests for individual components (models, validators, allocator)
2. Integration tests for flows (in-memory backend, mocked lookup)
3. No real API calls in tests (use mocks)
"""

import pytest
from pydantic import TypeAdapter, ValidationError

from duty_accounts.config.settings import AppSettings, validate_all_settings
from duty_accounts.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from duty_accounts.models.directory import Bank, Branch, normalize_bank_name
from duty_accounts.models.personnel import (
    Actor,
    ActorRole,
    Gender,
    PersonnelAccount,
    PersonnelCategory,
    User,
    UserRole,
    VerificationStatus,
)
from duty_accounts.models.resolution import (
    Discovered,
    InvalidCode,
    Resolution,
    Resolved,
    Unresolved,
)
from duty_accounts.models.validation import DuplicateConflict, UniquenessRule

from factories import complete, make_account


class TestDirectoryModels:
    """Tests for Bank and Branch."""

    def test_branch_routing_code_is_upper_cased(self):
        """Test that routing codes are stored upper-cased and trimmed."""
        branch = Branch(id="BR_1", routing_code=" sbin0001234 ", bank_id="B_1")
        assert branch.routing_code == "SBIN0001234"

    def test_blank_timestamps_become_none(self):
        """Test that empty timestamp cells from the sheet are accepted."""
        bank = Bank(id="B_1", name="SBI", created_at="", updated_at="  ")
        assert bank.created_at is None
        assert bank.updated_at is None

    def test_bank_name_key_is_case_insensitive(self):
        """Test bank name comparison key."""
        assert Bank(id="B_1", name=" State Bank ").name_key == normalize_bank_name("STATE BANK")

    def test_bank_requires_name(self):
        """Test that a bank without a name is rejected."""
        with pytest.raises(ValidationError):
            Bank(id="B_1", name="")


class TestPersonnelModels:
    """Tests for PersonnelAccount and reference data."""

    def test_numeric_cells_are_coerced_to_text(self):
        """Test that numbers read from a sheet become strings."""
        account = PersonnelAccount(
            record_id=17,
            category=PersonnelCategory.FIELD_OFFICER,
            mobile=9876500001,
            account_number=30012345678.0,
        )
        assert account.record_id == "17"
        assert account.mobile == "9876500001"
        assert account.account_number == "30012345678"

    def test_only_explicit_yes_is_verified(self):
        """Test verification flag parsing."""
        assert make_account("A", verified="YES").is_verified
        assert not make_account("A", verified="").is_verified
        assert not make_account("A", verified="true").is_verified

    def test_verified_value_copied_without_validation(self):
        """Test that a plain "yes" set through model_copy still counts as verified."""
        account = make_account("A").model_copy(update={"verified": "yes"})
        assert account.is_verified

    def test_complete_validates_fields(self):
        """Test that the complete() builder turns string flags into enums."""
        account = complete(make_account("A"), verified="yes")
        assert account.verified is VerificationStatus.YES
        assert account.account_number == "30012345678"

    def test_unknown_gender_is_none(self):
        """Test that unexpected gender values do not reject the record."""
        assert make_account("A", gender="female").gender is Gender.FEMALE
        assert make_account("A", gender="N/A").gender is None

    def test_pin_fields(self):
        """Test PIN parsing: blank PIN is None, PIN_Changed accepts yes."""
        account = make_account("A", pin_secret="  ", pin_changed="yes")
        assert account.pin_secret is None
        assert account.pin_changed is True

    def test_missing_fields(self):
        """Test that missing mandatory fields are reported by name."""
        account = make_account("A", account_number="123")
        assert account.missing_fields(["account_number", "routing_code", "proof_document"]) == [
            "routing_code",
            "proof_document",
        ]

    def test_unit_display_uses_category_label(self):
        """Test part vs sector labelling."""
        assert make_account("A", unit_identifier="12").unit_display == "Part 12"
        supervisor = make_account("S", PersonnelCategory.SUPERVISOR, unit_identifier="3")
        assert supervisor.unit_display == "Sector 3"

    def test_user_role_defaults_to_tehsil(self):
        """Test that anything other than admin is a regional user."""
        assert User(user_id="U_1", role="Admin").role is UserRole.ADMIN
        assert User(user_id="U_2", role="tehsil").role is UserRole.TEHSIL
        assert User(user_id="U_3", role="").role is UserRole.TEHSIL

    def test_actor_from_user(self):
        """Test mapping portal users onto actors."""
        actor = Actor.from_user(User(user_id="U_0", role="admin", officer_name="DM"))
        assert actor.role is ActorRole.ADMIN
        assert actor.is_admin
        assert actor.display_name == "DM"

    def test_actor_for_personnel(self):
        """Test that personnel act under their own record id."""
        actor = Actor.for_personnel(make_account("BLO_9"))
        assert actor.actor_id == "BLO_9"
        assert actor.role is ActorRole.PERSONNEL


class TestResolutionModels:
    """Tests for the resolution union."""

    def test_discriminated_union_parses_by_kind(self):
        """Test that a serialized resolution round-trips to the right variant."""
        adapter = TypeAdapter(Resolution)
        value = adapter.validate_python({
            "kind": "resolved",
            "routing_code": "SBIN0000691",
            "bank_id": "B_7",
            "branch_id": "BR_4",
        })
        assert isinstance(value, Resolved)

    def test_resolved_binds_ids(self):
        """Test applying a Resolved value."""
        account = make_account("A", bank_id="", branch_id="")
        bound = Resolved(routing_code="SBIN0000691", bank_id="B_7", branch_id="BR_4").apply_to(account)
        assert (bound.bank_id, bound.branch_id, bound.routing_code) == ("B_7", "BR_4", "SBIN0000691")

    def test_unresolved_clears_stale_ids(self):
        """Test that a routing-code change never keeps the old branch."""
        account = make_account("A", bank_id="B_7", branch_id="BR_4", routing_code="SBIN0000691")
        cleared = Unresolved(routing_code="XXXX0000001").apply_to(account)
        assert cleared.bank_id == ""
        assert cleared.branch_id == ""
        assert cleared.routing_code == "XXXX0000001"

    def test_invalid_code_clears_ids(self):
        """Test applying an InvalidCode value."""
        account = make_account("A", bank_id="B_7", branch_id="BR_4")
        cleared = InvalidCode(routing_code="SBIN", reason="too short").apply_to(account)
        assert cleared.bank_id == "" and cleared.branch_id == ""

    def test_discovered_message_mentions_new_bank(self):
        """Test discovered message wording."""
        branch = Branch(id="BR_5", name="Rampur Bazar", routing_code="ABCD0000001", bank_id="B_8")
        with_bank = Discovered(
            routing_code="ABCD0000001",
            bank_id="B_8",
            branch_id="BR_5",
            pending_bank=Bank(id="B_8", name="NEW BANK"),
            pending_branch=branch,
        )
        assert "New bank and branch" in with_bank.message
        without_bank = with_bank.model_copy(update={"pending_bank": None})
        assert without_bank.message == "New branch fetched: Rampur Bazar"

    def test_apply_does_not_mutate_original(self):
        """Test that applying a resolution returns a copy."""
        account = complete(make_account("A"))
        Resolved(routing_code="SBIN0000691", bank_id="B_7", branch_id="BR_4").apply_to(account)
        assert account.bank_id == ""


class TestDuplicateConflict:
    """Tests for duplicate conflict messages."""

    def test_mobile_message_names_conflicting_record(self):
        """Test that the message names the existing record."""
        record = make_account(
            "BLO_1",
            personnel_name="Ram Kumar",
            assembly_no="101",
            assembly_name="Rampur",
            unit_identifier="12",
        )
        conflict = DuplicateConflict.from_record(UniquenessRule.MOBILE, record, "9876500001")
        assert conflict.message == (
            "Mobile number 9876500001 is already registered to Field Officer (BLO) "
            "Ram Kumar, AC 101 (Rampur), Part 12"
        )

    def test_supervisor_conflict_uses_sector(self):
        """Test sector wording for supervisors."""
        record = make_account("SUP_1", PersonnelCategory.SUPERVISOR, unit_identifier="3")
        conflict = DuplicateConflict.from_record(UniquenessRule.ACCOUNT, record, "123 (SBIN0001234)")
        assert conflict.message.endswith("Sector 3")
        assert conflict.message.startswith("Account 123 (SBIN0001234)")


class TestAuditModels:
    """Tests for audit models."""

    def test_audit_event_creation(self):
        """Test AuditEvent creation."""
        event = AuditEvent(
            event_type=AuditEventType.ACCOUNT_SAVED,
            description="Test event",
        )
        assert event.event_type == AuditEventType.ACCOUNT_SAVED
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dict."""
        event = AuditEvent(
            event_type=AuditEventType.BANK_CREATED,
            entity_type="bank",
            entity_id="B_8",
            description="Bank created",
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "bank_created"
        assert log_dict["entity_id"] == "B_8"

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEvent(
            event_type=AuditEventType.VERIFICATION_CHANGED,
            actor_id="U_0",
            description="Verified",
        )
        row = event.to_sheets_row()
        assert len(row) == 12
        assert row[2] == "verification_changed"
        assert row[6] == "U_0"

    def test_save_rejected_maps_error_types(self):
        """Test that duplicates and permission errors get their own event types."""
        duplicate = AuditEventBuilder.save_rejected("BLO_1", "U_1", "dup", "DuplicateRecord", None)
        denied = AuditEventBuilder.save_rejected("BLO_1", "U_1", "no", "PermissionDenied", None)
        other = AuditEventBuilder.save_rejected("BLO_1", "U_1", "x", "MissingMandatoryField", None)
        assert duplicate.event_type == AuditEventType.DUPLICATE_REJECTED
        assert denied.event_type == AuditEventType.PERMISSION_DENIED
        assert other.event_type == AuditEventType.SAVE_REJECTED

    def test_routing_code_event_severity(self):
        """Test that unresolved lookups are warnings."""
        event = AuditEventBuilder.routing_code_resolved("ABCD0000001", "unresolved", "not found", None)
        assert event.event_type == AuditEventType.ROUTING_CODE_UNRESOLVED
        assert event.severity == AuditSeverity.WARNING

    def test_verification_status_values(self):
        """Test stored verification values."""
        assert VerificationStatus.YES.value == "yes"
        assert VerificationStatus.NO.value == "no"


class TestSettings:
    """Tests for environment-driven configuration."""

    def test_mandatory_fields_from_env(self, monkeypatch):
        """Test comma-separated mandatory fields."""
        monkeypatch.setenv("MANDATORY_FIELDS", "account_number, routing_code,")
        assert AppSettings().mandatory_fields_list == ["account_number", "routing_code"]

    def test_defaults(self):
        """Test directory and PIN defaults."""
        settings = AppSettings()
        assert settings.routing_code_length == 11
        assert (settings.bank_id_prefix, settings.branch_id_prefix) == ("B", "BR")
        assert settings.min_pin_length >= 4

    def test_unconfigured_sheets_are_reported(self, monkeypatch):
        """Test validate_all_settings without Google Sheets variables."""
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)
        results = validate_all_settings()
        assert results["google_sheets"] is False
        assert results["ifsc_lookup"] is True
        assert results["app"] is True
