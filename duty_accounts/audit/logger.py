"""
Audit Logger

DESIGN DECISION: Every change to banking details, every verification
toggle and every best-effort directory write is logged. This provides:
1. Traceability of who entered which account
2. Visibility into directory writes that failed silently for the user
3. Debugging capability

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from duty_accounts.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from duty_accounts.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The audit worksheet (for persistence)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger()

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_routing_code_resolution(
        self,
        routing_code: str,
        kind: str,
        message: str,
        correlation_id: Optional[UUID] = None,
        details: Optional[dict] = None,
    ) -> None:
        event = AuditEventBuilder.routing_code_resolved(
            routing_code=routing_code,
            kind=kind,
            message=message,
            correlation_id=correlation_id,
            details=details,
        )
        await self.log(event)

    async def log_save_rejected(
        self,
        record_id: str,
        actor_id: str,
        error: Exception,
        correlation_id: Optional[UUID] = None,
        entity_type: str = "account",
    ) -> None:
        """Log a save that was refused before any write."""
        event = AuditEventBuilder.save_rejected(
            record_id=record_id,
            actor_id=actor_id,
            reason=str(error),
            error_type=type(error).__name__,
            correlation_id=correlation_id,
            entity_type=entity_type,
        )
        await self.log(event)

    async def log_directory_entry_created(
        self,
        entity_type: str,
        entity_id: str,
        name: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.directory_entry_created(
            entity_type=entity_type,
            entity_id=entity_id,
            name=name,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_directory_enrichment_failed(
        self,
        entity_type: str,
        entity_id: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.directory_enrichment_failed(
            entity_type=entity_type,
            entity_id=entity_id,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_account_saved(
        self,
        record_id: str,
        category: str,
        actor_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.account_saved(
            record_id=record_id,
            category=category,
            actor_id=actor_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_save_failed(
        self,
        record_id: str,
        actor_id: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.save_failed(
            record_id=record_id,
            actor_id=actor_id,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_verification_changed(
        self,
        record_id: str,
        actor_id: str,
        previous: str,
        current: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.verification_changed(
            record_id=record_id,
            actor_id=actor_id,
            previous=previous,
            current=current,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_user_updated(
        self,
        user_id: str,
        actor_id: str,
        changed_fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.user_updated(
            user_id=user_id,
            actor_id=actor_id,
            changed_fields=changed_fields,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_pin_event(
        self,
        event_type: AuditEventType,
        record_id: Optional[str],
        description: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a PIN login attempt or PIN change. Never pass the PIN itself."""
        event = AuditEventBuilder.pin_event(
            event_type=event_type,
            record_id=record_id,
            description=description,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_snapshot_reloaded(
        self,
        account_count: int,
        bank_count: int,
        branch_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.snapshot_reloaded(
            account_count=account_count,
            bank_count=bank_count,
            branch_count=branch_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_snapshot_reload_failed(
        self,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.snapshot_reload_failed(
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., saving an account).
    Pass it through all subsequent operations.
    """
    return uuid4()
