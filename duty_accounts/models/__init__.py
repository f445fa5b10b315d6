"""
Data Models Package

This package contains all Pydantic models used by Duty Accounts.
All data flowing through the system must conform to these schemas.
"""

from duty_accounts.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from duty_accounts.models.directory import (
    Bank,
    Branch,
    normalize_bank_name,
    normalize_routing_code,
)
from duty_accounts.models.personnel import (
    Actor,
    ActorRole,
    Department,
    Designation,
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
from duty_accounts.models.snapshot import DataSnapshot, WriteResult
from duty_accounts.models.validation import DuplicateConflict, UniquenessRule

__all__ = [
    # Audit
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
    # Directory
    "Bank",
    "Branch",
    "normalize_bank_name",
    "normalize_routing_code",
    # Personnel
    "Actor",
    "ActorRole",
    "Department",
    "Designation",
    "Gender",
    "PersonnelAccount",
    "PersonnelCategory",
    "User",
    "UserRole",
    "VerificationStatus",
    # Resolution
    "Discovered",
    "InvalidCode",
    "Resolution",
    "Resolved",
    "Unresolved",
    # Snapshot
    "DataSnapshot",
    "WriteResult",
    # Validation
    "DuplicateConflict",
    "UniquenessRule",
]
