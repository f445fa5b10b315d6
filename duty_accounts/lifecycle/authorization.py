"""
Authorization Policy

Every role decision of the engine lives here. The controller asks,
the policy answers with a reason that can be shown to the user.

    edit                 admin: always
                         others: only while unverified, and only
                         records they own (regional) or are (personnel)
    unverified->verified admin, or the owning regional user
    verified->unverified admin only
    user profile         admin: any user, every field
                         regional: own profile only, name and mobile
"""

from pydantic import BaseModel

from duty_accounts.models.personnel import (
    Actor,
    ActorRole,
    PersonnelAccount,
    User,
    VerificationStatus,
)


class AuthorizationResult(BaseModel):
    allowed: bool
    reason: str = ""

    @classmethod
    def allow(cls) -> "AuthorizationResult":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: str) -> "AuthorizationResult":
        return cls(allowed=False, reason=reason)

    def __bool__(self) -> bool:
        return self.allowed


def owns(record: PersonnelAccount, actor: Actor) -> bool:
    """Is the record in the actor's own scope?"""
    if actor.role is ActorRole.ADMIN:
        return True
    if actor.role is ActorRole.REGIONAL:
        return bool(record.owning_user_id) and record.owning_user_id == actor.actor_id
    return record.record_id == actor.actor_id


def can_edit(record: PersonnelAccount, actor: Actor) -> AuthorizationResult:
    if actor.is_admin:
        return AuthorizationResult.allow()
    if record.is_verified:
        return AuthorizationResult.deny(
            f"Record {record.record_id} is verified and locked; only an administrator can change it"
        )
    if not owns(record, actor):
        return AuthorizationResult.deny(
            f"Record {record.record_id} is outside your scope"
        )
    return AuthorizationResult.allow()


def can_transition_verification(
    record: PersonnelAccount,
    actor: Actor,
    target: VerificationStatus,
) -> AuthorizationResult:
    """
    May the actor move the record to `target`?

    A same-state request is always allowed; the controller treats it
    as a no-op.
    """
    if record.verified == target:
        return AuthorizationResult.allow()

    if target == VerificationStatus.NO:
        if actor.is_admin:
            return AuthorizationResult.allow()
        return AuthorizationResult.deny(
            "Only an administrator can remove verification"
        )

    if actor.role is ActorRole.PERSONNEL:
        return AuthorizationResult.deny("Personnel cannot verify their own record")
    if not owns(record, actor):
        return AuthorizationResult.deny(
            f"Record {record.record_id} is outside your scope"
        )
    return AuthorizationResult.allow()


def can_edit_user(user: User, actor: Actor) -> AuthorizationResult:
    """May the actor edit this portal user's profile?"""
    if actor.is_admin:
        return AuthorizationResult.allow()
    if actor.role is ActorRole.REGIONAL and actor.actor_id == user.user_id:
        return AuthorizationResult.allow()
    return AuthorizationResult.deny("You can only update your own profile")
