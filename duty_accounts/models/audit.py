"""
Audit Models for Duty Accounts

Every significant action on a personnel record or the bank directory
is logged for audit purposes. This provides:
1. Traceability of who changed which banking details
2. Visibility into best-effort directory writes that failed
3. A record of every verification and un-verification

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Routing-code resolution
    ROUTING_CODE_RESOLVED = "routing_code_resolved"
    ROUTING_CODE_DISCOVERED = "routing_code_discovered"
    ROUTING_CODE_UNRESOLVED = "routing_code_unresolved"
    ROUTING_CODE_INVALID = "routing_code_invalid"

    # Save pipeline
    SAVE_REJECTED = "save_rejected"
    DUPLICATE_REJECTED = "duplicate_rejected"
    PERMISSION_DENIED = "permission_denied"
    BANK_CREATED = "bank_created"
    BRANCH_CREATED = "branch_created"
    DIRECTORY_ENRICHMENT_FAILED = "directory_enrichment_failed"
    ACCOUNT_SAVED = "account_saved"
    SAVE_FAILED = "save_failed"

    # Verification
    VERIFICATION_CHANGED = "verification_changed"

    # Portal users
    USER_UPDATED = "user_updated"

    # Personnel access
    PIN_LOGIN_SUCCEEDED = "pin_login_succeeded"
    PIN_LOGIN_FAILED = "pin_login_failed"
    PIN_CHANGED = "pin_changed"

    # Snapshot
    SNAPSHOT_RELOADED = "snapshot_reloaded"
    SNAPSHOT_RELOAD_FAILED = "snapshot_reload_failed"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'account', 'bank', 'branch')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity (record_id, Bank_ID, Branch_ID)"
    )

    # Who did it
    actor_id: Optional[str] = None

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate the events of one user action"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "actor_id": self.actor_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         actor_id, correlation_id, description, details_json, error_message,
         is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            self.actor_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.account_saved(record_id, actor_id, correlation_id)
    """

    @staticmethod
    def routing_code_resolved(
        routing_code: str,
        kind: str,
        message: str,
        correlation_id: Optional[UUID],
        details: Optional[dict] = None,
    ) -> AuditEvent:
        event_type = {
            "resolved": AuditEventType.ROUTING_CODE_RESOLVED,
            "discovered": AuditEventType.ROUTING_CODE_DISCOVERED,
            "unresolved": AuditEventType.ROUTING_CODE_UNRESOLVED,
            "invalid": AuditEventType.ROUTING_CODE_INVALID,
        }[kind]
        severity = AuditSeverity.INFO if kind in ("resolved", "discovered") else AuditSeverity.WARNING
        return AuditEvent(
            event_type=event_type,
            severity=severity,
            entity_type="routing_code",
            entity_id=routing_code,
            correlation_id=correlation_id,
            description=message,
            details=details or {},
        )

    @staticmethod
    def save_rejected(
        record_id: str,
        actor_id: str,
        reason: str,
        error_type: str,
        correlation_id: Optional[UUID],
        entity_type: str = "account",
    ) -> AuditEvent:
        event_type = {
            "DuplicateRecord": AuditEventType.DUPLICATE_REJECTED,
            "PermissionDenied": AuditEventType.PERMISSION_DENIED,
        }.get(error_type, AuditEventType.SAVE_REJECTED)
        return AuditEvent(
            event_type=event_type,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            entity_id=record_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Save rejected: {reason}"[:500],
            details={"error_type": error_type},
            is_user_action=True,
        )

    @staticmethod
    def directory_entry_created(
        entity_type: str,
        entity_id: str,
        name: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        event_type = (
            AuditEventType.BANK_CREATED if entity_type == "bank" else AuditEventType.BRANCH_CREATED
        )
        return AuditEvent(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Directory {entity_type} created: {name}",
            details={"name": name},
        )

    @staticmethod
    def directory_enrichment_failed(
        entity_type: str,
        entity_id: str,
        error_message: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DIRECTORY_ENRICHMENT_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Could not create {entity_type} {entity_id}; continuing with account write",
            error_message=error_message,
        )

    @staticmethod
    def account_saved(
        record_id: str,
        category: str,
        actor_id: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_SAVED,
            entity_type="account",
            entity_id=record_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Bank details saved for {category} record {record_id}",
            details={"category": category},
            is_user_action=True,
        )

    @staticmethod
    def save_failed(
        record_id: str,
        actor_id: str,
        error_message: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="account",
            entity_id=record_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description="Account write rejected by backend",
            error_message=error_message,
        )

    @staticmethod
    def verification_changed(
        record_id: str,
        actor_id: str,
        previous: str,
        current: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VERIFICATION_CHANGED,
            entity_type="account",
            entity_id=record_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Verification changed from '{previous}' to '{current}'",
            details={"previous": previous, "current": current},
            is_user_action=True,
        )

    @staticmethod
    def user_updated(
        user_id: str,
        actor_id: str,
        changed_fields: list[str],
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_UPDATED,
            entity_type="user",
            entity_id=user_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Profile of {user_id} updated",
            details={"changed_fields": changed_fields},
            is_user_action=True,
        )

    @staticmethod
    def pin_event(
        event_type: AuditEventType,
        record_id: Optional[str],
        description: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        severity = (
            AuditSeverity.WARNING
            if event_type is AuditEventType.PIN_LOGIN_FAILED
            else AuditSeverity.INFO
        )
        return AuditEvent(
            event_type=event_type,
            severity=severity,
            entity_type="account",
            entity_id=record_id,
            actor_id=record_id,
            correlation_id=correlation_id,
            description=description,
            is_user_action=True,
        )

    @staticmethod
    def snapshot_reloaded(
        account_count: int,
        bank_count: int,
        branch_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_RELOADED,
            severity=AuditSeverity.DEBUG,
            correlation_id=correlation_id,
            description=f"Snapshot reloaded: {account_count} accounts, {bank_count} banks, {branch_count} branches",
            details={
                "accounts": account_count,
                "banks": bank_count,
                "branches": branch_count,
            },
        )

    @staticmethod
    def snapshot_reload_failed(
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_RELOAD_FAILED,
            severity=AuditSeverity.ERROR,
            correlation_id=correlation_id,
            description="Snapshot reload failed; data is stale until the next successful reload",
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={"service": service},
            correlation_id=correlation_id,
        )
