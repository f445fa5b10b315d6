"""
Personnel Account Models

Three personnel categories (field officers, assistant officers and
supervisors) share one schema and one set of reconciliation rules.
They differ only in what the unit identifier means: a polling part
number for field and assistant officers, a sector number for supervisors.

DESIGN DECISION: One PersonnelAccount model carries a category
instead of three parallel classes. Uniqueness is checked across all
categories, so the records need to be directly comparable.

CRITICAL: Records are created out-of-band (bulk import) with empty
banking fields and verified = "no". This package never creates or
deletes personnel records; it only edits and verifies them.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from duty_accounts.models.directory import normalize_routing_code


# =============================================================================
# ENUMS
# =============================================================================

class PersonnelCategory(str, Enum):
    """Personnel categories. Values are the keys used by the backend."""
    FIELD_OFFICER = "blo"
    ASSISTANT_OFFICER = "avihit"
    SUPERVISOR = "supervisor"

    @property
    def label(self) -> str:
        return {
            PersonnelCategory.FIELD_OFFICER: "Field Officer (BLO)",
            PersonnelCategory.ASSISTANT_OFFICER: "Assistant Officer",
            PersonnelCategory.SUPERVISOR: "Supervisor",
        }[self]

    @property
    def unit_label(self) -> str:
        """What the unit identifier means for this category."""
        if self is PersonnelCategory.SUPERVISOR:
            return "Sector"
        return "Part"


class VerificationStatus(str, Enum):
    """
    Verification flag of a personnel account.

    CRITICAL: A verified record is locked for everyone except
    administrators. Only an administrator may move it back to NO.
    """
    NO = "no"
    YES = "yes"


class Gender(str, Enum):
    MALE = "Male"
    FEMALE = "Female"
    OTHER = "Other"


class UserRole(str, Enum):
    """Roles of portal users (the Users worksheet)."""
    ADMIN = "admin"
    TEHSIL = "tehsil"


class ActorRole(str, Enum):
    """
    Who is performing an action.

    ADMIN and REGIONAL map to portal users; PERSONNEL is a duty
    officer acting on their own record through PIN access.
    """
    ADMIN = "admin"
    REGIONAL = "tehsil"
    PERSONNEL = "personnel"


# =============================================================================
# REFERENCE DATA
# =============================================================================

class User(BaseModel):
    """A portal user: an administrator or a regional (tehsil) officer."""
    model_config = ConfigDict(str_strip_whitespace=True)

    user_id: str = Field(..., min_length=1)
    user_name: str = ""
    role: UserRole = UserRole.TEHSIL
    officer_name: str = ""
    designation: str = ""
    mobile: str = ""

    @field_validator('role', mode='before')
    @classmethod
    def parse_role(cls, v) -> str:
        """Anything that is not 'admin' is a regional user."""
        if isinstance(v, UserRole):
            return v
        return UserRole.ADMIN if str(v or "").strip().lower() == "admin" else UserRole.TEHSIL


class Department(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    department_id: str
    name: str = ""


class Designation(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    designation_id: str
    name: str = ""


class Actor(BaseModel):
    """The identity an operation is performed on behalf of."""

    actor_id: str = Field(
        ...,
        description="User_ID for portal users, record_id for personnel"
    )
    role: ActorRole
    display_name: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role is ActorRole.ADMIN

    @classmethod
    def from_user(cls, user: User) -> "Actor":
        role = ActorRole.ADMIN if user.role is UserRole.ADMIN else ActorRole.REGIONAL
        return cls(
            actor_id=user.user_id,
            role=role,
            display_name=user.officer_name or user.user_name,
        )

    @classmethod
    def for_personnel(cls, account: "PersonnelAccount") -> "Actor":
        return cls(
            actor_id=account.record_id,
            role=ActorRole.PERSONNEL,
            display_name=account.personnel_name,
        )


# =============================================================================
# CORE ACCOUNT MODEL
# =============================================================================

class PersonnelAccount(BaseModel):
    """
    Bank account record of one election-duty officer.

    Banking fields (bank_id, branch_id, routing_code, account_number,
    proof_document) start empty and are filled through the lifecycle
    controller. bank_id / branch_id may legitimately stay empty when
    the routing code could not be resolved.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    # Identity
    record_id: str = Field(..., min_length=1)
    category: PersonnelCategory

    # Scoping: the regional user responsible for this record
    owning_user_id: str = ""

    # Election mapping (read-only for this package)
    assembly_no: str = ""
    assembly_name: str = ""
    tehsil: str = ""
    unit_identifier: str = Field(
        default="",
        description="Part number (BLO / assistant) or sector number (supervisor)"
    )
    unit_name: str = ""

    # Officer identity
    personnel_name: str = ""
    gender: Optional[Gender] = None
    department_id: str = ""
    designation_id: str = ""
    mobile: str = ""
    epic_id: str = ""

    # Banking
    bank_id: str = ""
    branch_id: str = ""
    routing_code: str = ""
    account_number: str = ""
    proof_document: str = Field(
        default="",
        description="URL (or data URI) of the passbook / cancelled cheque"
    )

    verified: VerificationStatus = VerificationStatus.NO

    # Self-service access
    pin_secret: Optional[str] = None
    pin_changed: bool = False

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator(
        'record_id', 'owning_user_id', 'assembly_no', 'unit_identifier',
        'mobile', 'account_number', mode='before',
    )
    @classmethod
    def coerce_to_text(cls, v) -> str:
        """Spreadsheet cells may arrive as numbers."""
        if v is None:
            return ""
        if isinstance(v, float) and v.is_integer():
            v = int(v)
        return str(v)

    @field_validator('routing_code', mode='before')
    @classmethod
    def upper_routing_code(cls, v) -> str:
        return normalize_routing_code(None if v is None else str(v))

    @field_validator('gender', mode='before')
    @classmethod
    def parse_gender(cls, v):
        """Unknown or blank genders are stored as None rather than rejected."""
        if isinstance(v, Gender) or v is None:
            return v
        text = str(v).strip().capitalize()
        return text if text in {g.value for g in Gender} else None

    @field_validator('verified', mode='before')
    @classmethod
    def parse_verified(cls, v):
        """Only an explicit 'yes' counts as verified."""
        if isinstance(v, VerificationStatus):
            return v
        return VerificationStatus.YES if str(v or "").strip().lower() == "yes" else VerificationStatus.NO

    @field_validator('pin_changed', mode='before')
    @classmethod
    def parse_pin_changed(cls, v) -> bool:
        if isinstance(v, bool):
            return v
        return str(v or "").strip().lower() in {"yes", "true", "1"}

    @field_validator('pin_secret', mode='before')
    @classmethod
    def blank_pin_is_none(cls, v):
        if v is None:
            return None
        text = str(v).strip()
        return text or None

    @field_validator('created_at', 'updated_at', mode='before')
    @classmethod
    def blank_timestamp_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def is_verified(self) -> bool:
        return self.verified == VerificationStatus.YES

    @property
    def has_account_entry(self) -> bool:
        """An account number has been entered (used by progress counts)."""
        return bool(self.account_number)

    @property
    def unit_display(self) -> str:
        """e.g. 'Part 12' or 'Sector 3'."""
        return f"{self.category.unit_label} {self.unit_identifier}".strip()

    def missing_fields(self, required: list[str]) -> list[str]:
        """Names of required fields that are empty on this record."""
        return [name for name in required if not str(getattr(self, name, "") or "").strip()]
