"""
Portal User Profiles

Administrators maintain every portal user; a regional (tehsil) officer
maintains only their own profile.

    admin     officer_name, mobile, designation, role
    regional  officer_name, mobile

Fields outside the actor's set are carried over from the stored user,
as the lifecycle controller does for protected account fields. The
login name and the portal password are never changed here.
"""

from typing import Optional
from uuid import UUID

import structlog
from pydantic import BaseModel

from duty_accounts.audit import AuditLogger, create_correlation_id
from duty_accounts.errors import (
    MissingMandatoryField,
    PermissionDenied,
    PersistenceFailure,
    StaleSnapshot,
    UserNotFound,
)
from duty_accounts.lifecycle import can_edit_user
from duty_accounts.models.personnel import Actor, User
from duty_accounts.repository import SnapshotRepository
from duty_accounts.services.storage import StorageError


logger = structlog.get_logger(__name__)


ADMIN_PROFILE_FIELDS = ("officer_name", "mobile", "designation", "role")
SELF_PROFILE_FIELDS = ("officer_name", "mobile")


class ProfileOutcome(BaseModel):
    user: User
    changed_fields: list[str]
    reloaded: bool = True


class UserProfileService:
    """Role-gated updates of portal user profiles."""

    def __init__(
        self,
        repository: SnapshotRepository,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._repository = repository
        self._audit_logger = audit_logger

    async def update_profile(
        self,
        actor: Actor,
        candidate: User,
        correlation_id: Optional[UUID] = None,
    ) -> ProfileOutcome:
        """
        Write the editable fields of `candidate` and reload.

        An update that changes nothing is a no-op without any backend call.

        Raises:
            UserNotFound: No stored user with candidate.user_id
            PermissionDenied: Actor may not edit this profile
            MissingMandatoryField: Officer name left blank
            PersistenceFailure: Backend rejected the write
        """
        correlation_id = correlation_id or create_correlation_id()

        stored = self._repository.get_user(candidate.user_id)
        if stored is None:
            raise UserNotFound(candidate.user_id)

        decision = can_edit_user(stored, actor)
        if not decision:
            if self._audit_logger:
                await self._audit_logger.log_save_rejected(
                    record_id=stored.user_id,
                    actor_id=actor.actor_id,
                    error=PermissionDenied(decision.reason),
                    correlation_id=correlation_id,
                    entity_type="user",
                )
            raise PermissionDenied(decision.reason)

        fields = ADMIN_PROFILE_FIELDS if actor.is_admin else SELF_PROFILE_FIELDS
        updated = stored.model_copy(update={name: getattr(candidate, name) for name in fields})
        if not updated.officer_name:
            raise MissingMandatoryField(["officer_name"])

        changed = [name for name in fields if getattr(stored, name) != getattr(updated, name)]
        if not changed:
            return ProfileOutcome(user=stored, changed_fields=[])

        try:
            result = await self._repository.backend.update_user(updated)
        except StorageError as e:
            raise PersistenceFailure("update user", str(e)) from e
        if not result.success:
            raise PersistenceFailure("update user", result.message)

        logger.info("user_updated", user_id=updated.user_id, changed_fields=changed)
        if self._audit_logger:
            await self._audit_logger.log_user_updated(
                user_id=updated.user_id,
                actor_id=actor.actor_id,
                changed_fields=changed,
                correlation_id=correlation_id,
            )

        self._repository.invalidate()
        try:
            await self._repository.refresh(correlation_id)
            reloaded = True
        except StaleSnapshot:
            reloaded = False
        return ProfileOutcome(user=updated, changed_fields=changed, reloaded=reloaded)
