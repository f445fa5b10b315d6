"""Record lifecycle package: authorization, commit sequencing and the controller."""

from duty_accounts.lifecycle.authorization import (
    AuthorizationResult,
    can_edit,
    can_edit_user,
    can_transition_verification,
)
from duty_accounts.lifecycle.controller import (
    RecordLifecycleController,
    SaveOutcome,
    VerificationOutcome,
)
from duty_accounts.lifecycle.sequencer import (
    CommitReport,
    CommitSequencer,
    CommitStep,
    FailurePolicy,
    StepResult,
)

__all__ = [
    "AuthorizationResult",
    "CommitReport",
    "CommitSequencer",
    "CommitStep",
    "FailurePolicy",
    "RecordLifecycleController",
    "SaveOutcome",
    "StepResult",
    "VerificationOutcome",
    "can_edit",
    "can_edit_user",
    "can_transition_verification",
]
