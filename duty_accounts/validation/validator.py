"""
Account Validation

DESIGN DECISION: Validation happens in two distinct stages, both local:

STAGE 1 - MANDATORY FIELDS:
- account_number, routing_code and proof_document must be present
- Fails fast; nothing else is checked and no I/O happens

STAGE 2 - GLOBAL UNIQUENESS:
- No other record (of ANY category) may share the trimmed mobile
- No other record may share account_number + routing_code
  (routing code compared case-insensitively)
- The record being edited is excluded by record_id
- First violation wins

WHY GLOBAL: a regional user only sees their own records, but the same
person or the same bank account must not be registered twice anywhere.
Uniqueness is therefore always checked against the full cross-category
record set, never the actor's scoped view.

IMPORTANT: Validation NEVER fixes issues. It reports them.
"""

from typing import Iterable, Optional

from duty_accounts.config import get_settings
from duty_accounts.errors import DuplicateRecord, MissingMandatoryField
from duty_accounts.models.directory import normalize_routing_code
from duty_accounts.models.personnel import PersonnelAccount
from duty_accounts.models.validation import DuplicateConflict, UniquenessRule


def _mobile_key(account: PersonnelAccount) -> str:
    return (account.mobile or "").strip()


def _account_key(account: PersonnelAccount) -> Optional[tuple[str, str]]:
    """(account_number, ROUTING_CODE), or None when either part is empty."""
    number = (account.account_number or "").strip()
    code = normalize_routing_code(account.routing_code)
    if not number or not code:
        return None
    return number, code


class AccountValidator:
    """
    Validates a candidate personnel account before any write.

    Stateless: the caller supplies the full record set on each call.
    """

    def __init__(self, mandatory_fields: Optional[list[str]] = None):
        self._mandatory_fields = (
            mandatory_fields
            if mandatory_fields is not None
            else get_settings().app.mandatory_fields_list
        )

    @property
    def mandatory_fields(self) -> list[str]:
        return list(self._mandatory_fields)

    def missing_mandatory_fields(self, candidate: PersonnelAccount) -> list[str]:
        """Stage 1: names of empty mandatory fields (empty list when complete)."""
        return candidate.missing_fields(self._mandatory_fields)

    def find_duplicate(
        self,
        candidate: PersonnelAccount,
        records: Iterable[PersonnelAccount],
    ) -> Optional[DuplicateConflict]:
        """
        Stage 2: first uniqueness conflict, or None.

        Args:
            candidate: The record about to be written
            records: Every existing record across all categories
        """
        mobile = _mobile_key(candidate)
        account = _account_key(candidate)

        for existing in records:
            if existing.record_id == candidate.record_id:
                continue

            if mobile and _mobile_key(existing) == mobile:
                return DuplicateConflict.from_record(
                    UniquenessRule.MOBILE, existing, mobile
                )

            if account is not None and _account_key(existing) == account:
                return DuplicateConflict.from_record(
                    UniquenessRule.ACCOUNT, existing, f"{account[0]} ({account[1]})"
                )

        return None

    def validate_for_save(
        self,
        candidate: PersonnelAccount,
        records: Iterable[PersonnelAccount],
    ) -> None:
        """
        Run both stages, raising on the first failure.

        Raises:
            MissingMandatoryField: Stage 1 failed
            DuplicateRecord: Stage 2 failed
        """
        self.ensure_mandatory_fields(candidate)
        self.ensure_unique(candidate, records)

    def ensure_mandatory_fields(self, candidate: PersonnelAccount) -> None:
        missing = self.missing_mandatory_fields(candidate)
        if missing:
            raise MissingMandatoryField(missing)

    def ensure_unique(
        self,
        candidate: PersonnelAccount,
        records: Iterable[PersonnelAccount],
    ) -> None:
        conflict = self.find_duplicate(candidate, records)
        if conflict is not None:
            raise DuplicateRecord(conflict)
