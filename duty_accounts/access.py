"""
Personnel Self-Service Access

Duty officers reach their own record with their registered mobile
number and a numeric PIN. Records arrive from the bulk import without
a PIN, in which case the default PIN applies.

CRITICAL: While the default PIN is in use and has never been changed,
the officer must choose a new PIN before doing anything else.

PINs are never logged or written to the audit trail.
"""

import hmac
from typing import Optional
from uuid import UUID

import structlog
from pydantic import BaseModel

from duty_accounts.audit import AuditLogger
from duty_accounts.config import get_settings
from duty_accounts.errors import (
    AccessDenied,
    InvalidPin,
    PersistenceFailure,
    RecordNotFound,
    StaleSnapshot,
)
from duty_accounts.models.audit import AuditEventType
from duty_accounts.models.personnel import Actor, ActorRole, PersonnelAccount
from duty_accounts.repository import SnapshotRepository
from duty_accounts.services.storage import StorageError


logger = structlog.get_logger(__name__)


class AccessGrant(BaseModel):
    """A successful PIN login."""

    actor: Actor
    account: PersonnelAccount
    must_change_pin: bool


class PersonnelAccessService:
    """PIN login and PIN change for personnel."""

    def __init__(
        self,
        repository: SnapshotRepository,
        audit_logger: Optional[AuditLogger] = None,
        default_pin: Optional[str] = None,
        min_pin_length: Optional[int] = None,
    ):
        settings = get_settings().app
        self._repository = repository
        self._audit_logger = audit_logger
        self._default_pin = default_pin or settings.default_pin
        self._min_pin_length = min_pin_length or settings.min_pin_length

    def effective_pin(self, account: PersonnelAccount) -> str:
        return (account.pin_secret or self._default_pin).strip()

    def must_change_pin(self, account: PersonnelAccount) -> bool:
        return self.effective_pin(account) == self._default_pin and not account.pin_changed

    async def authenticate(
        self,
        mobile: str,
        pin: str,
        correlation_id: Optional[UUID] = None,
    ) -> AccessGrant:
        """
        Log in with mobile number and PIN.

        Raises:
            AccessDenied: Unknown mobile or wrong PIN
        """
        account = self._repository.find_by_mobile(mobile)
        if account is None:
            await self._audit(
                AuditEventType.PIN_LOGIN_FAILED, None,
                "Login attempt with an unregistered mobile number", correlation_id,
            )
            raise AccessDenied("Mobile number not found in our records")

        if not hmac.compare_digest(self.effective_pin(account), (pin or "").strip()):
            await self._audit(
                AuditEventType.PIN_LOGIN_FAILED, account.record_id,
                "Invalid PIN", correlation_id,
            )
            raise AccessDenied("Invalid security PIN")

        must_change = self.must_change_pin(account)
        await self._audit(
            AuditEventType.PIN_LOGIN_SUCCEEDED, account.record_id,
            "PIN login" + (" (PIN change required)" if must_change else ""),
            correlation_id,
        )
        return AccessGrant(
            actor=Actor.for_personnel(account),
            account=account,
            must_change_pin=must_change,
        )

    def check_new_pin(self, pin: str) -> None:
        """
        Raises:
            InvalidPin: The PIN is the default, too short, or not numeric
        """
        pin = (pin or "").strip()
        if pin == self._default_pin:
            raise InvalidPin(
                f"You must choose a PIN other than the default {self._default_pin}"
            )
        if len(pin) < self._min_pin_length:
            raise InvalidPin(f"PIN must be at least {self._min_pin_length} digits")
        if not pin.isdigit():
            raise InvalidPin("PIN must contain digits only")

    async def change_pin(
        self,
        actor: Actor,
        new_pin: str,
        correlation_id: Optional[UUID] = None,
    ) -> PersonnelAccount:
        """
        Replace the actor's PIN.

        The write bypasses the mandatory banking-field gate: a first
        login happens before any bank details exist.

        Raises:
            AccessDenied: Actor is not a personnel member
            RecordNotFound: Actor's record no longer exists
            InvalidPin: PIN rules failed
            PersistenceFailure: Backend rejected the write
        """
        if actor.role is not ActorRole.PERSONNEL:
            raise AccessDenied("Only personnel can change their own PIN")

        account = self._repository.get_account(actor.actor_id)
        if account is None:
            raise RecordNotFound(actor.actor_id)

        self.check_new_pin(new_pin)

        updated = account.model_copy(update={
            "pin_secret": new_pin.strip(),
            "pin_changed": True,
        })
        try:
            result = await self._repository.backend.save_account(updated)
        except StorageError as e:
            raise PersistenceFailure("change PIN", str(e)) from e
        if not result.success:
            raise PersistenceFailure("change PIN", result.message)

        await self._audit(
            AuditEventType.PIN_CHANGED, account.record_id, "PIN changed", correlation_id,
        )
        logger.info("pin_changed", record_id=account.record_id)

        self._repository.invalidate()
        try:
            await self._repository.refresh(correlation_id)
        except StaleSnapshot as e:
            logger.warning("reload_after_pin_change_failed", error=str(e))
        return updated

    async def _audit(
        self,
        event_type: AuditEventType,
        record_id: Optional[str],
        description: str,
        correlation_id: Optional[UUID],
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_pin_event(
                event_type=event_type,
                record_id=record_id,
                description=description,
                correlation_id=correlation_id,
            )
