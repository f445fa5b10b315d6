"""Validation result models."""

from enum import Enum

from pydantic import BaseModel, Field

from duty_accounts.models.personnel import PersonnelAccount, PersonnelCategory


class UniquenessRule(str, Enum):
    """Which global uniqueness invariant was violated."""
    MOBILE = "mobile"
    ACCOUNT = "account"


class DuplicateConflict(BaseModel):
    """
    Identifies the existing record a candidate collides with.

    Carries enough of the conflicting record for a precise message:
    category, name, assembly and unit.
    """

    rule: UniquenessRule
    conflicting_record_id: str
    category: PersonnelCategory
    personnel_name: str = ""
    assembly_no: str = ""
    assembly_name: str = ""
    unit_identifier: str = ""
    value: str = Field(
        default="",
        description="The colliding value (mobile, or account/routing code)"
    )

    @classmethod
    def from_record(
        cls,
        rule: UniquenessRule,
        record: PersonnelAccount,
        value: str,
    ) -> "DuplicateConflict":
        return cls(
            rule=rule,
            conflicting_record_id=record.record_id,
            category=record.category,
            personnel_name=record.personnel_name,
            assembly_no=record.assembly_no,
            assembly_name=record.assembly_name,
            unit_identifier=record.unit_identifier,
            value=value,
        )

    @property
    def message(self) -> str:
        what = (
            f"Mobile number {self.value}"
            if self.rule is UniquenessRule.MOBILE
            else f"Account {self.value}"
        )
        unit_label = self.category.unit_label
        assembly = f"AC {self.assembly_no}"
        if self.assembly_name:
            assembly = f"{assembly} ({self.assembly_name})"
        return (
            f"{what} is already registered to {self.category.label} "
            f"{self.personnel_name or self.conflicting_record_id}, "
            f"{assembly}, {unit_label} {self.unit_identifier}"
        )
