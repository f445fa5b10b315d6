"""
Reconciliation Errors

Every failure carries a specific, human-readable message. Validation
and permission errors are raised before any network call; only
PersistenceFailure comes back from the backend.

DirectoryEnrichmentFailure is never raised out of a save. It is
collected on the outcome so callers can report it.
"""

from typing import Optional

from duty_accounts.models.validation import DuplicateConflict


class ReconciliationError(Exception):
    """Base exception for reconciliation errors."""
    pass


class InvalidRoutingCode(ReconciliationError):
    """Routing code is malformed."""

    def __init__(self, routing_code: str, message: Optional[str] = None):
        self.routing_code = routing_code
        super().__init__(message or f"Invalid routing code '{routing_code}': must be 11 characters")


class StaleResolution(ReconciliationError):
    """A resolution was computed for a different routing code than the record carries."""

    def __init__(self, resolved_code: str, record_code: str):
        self.resolved_code = resolved_code
        self.record_code = record_code
        super().__init__(
            f"Routing code changed from {resolved_code} to {record_code}; "
            "search the new code before saving"
        )


class DuplicateRecord(ReconciliationError):
    """Candidate violates a global uniqueness invariant."""

    def __init__(self, conflict: DuplicateConflict):
        self.conflict = conflict
        super().__init__(conflict.message)


class MissingMandatoryField(ReconciliationError):
    """Save attempted without the mandatory banking fields."""

    def __init__(self, fields: list[str]):
        self.fields = fields
        pretty = ", ".join(f.replace("_", " ") for f in fields)
        super().__init__(f"Mandatory fields missing: {pretty}")


class IncompleteRecord(ReconciliationError):
    """Verification attempted on a record without complete banking details."""

    def __init__(self, record_id: str, fields: list[str]):
        self.record_id = record_id
        self.fields = fields
        pretty = ", ".join(f.replace("_", " ") for f in fields)
        super().__init__(f"Record {record_id} cannot be verified; missing: {pretty}")


class PermissionDenied(ReconciliationError):
    """Actor's role does not allow the operation."""
    pass


class RecordNotFound(ReconciliationError):
    """No personnel record with the given id."""

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"Personnel record not found: {record_id}")


class InconsistentDirectoryReference(ReconciliationError):
    """Record points at a branch that is missing or belongs to another bank."""
    pass


class PersistenceFailure(ReconciliationError):
    """Backend rejected or could not be reached for a mandatory write."""

    def __init__(self, operation: str, message: Optional[str]):
        self.operation = operation
        self.backend_message = message or "Unknown error occurred on server."
        super().__init__(f"Failed to {operation}: {self.backend_message}")


class DirectoryEnrichmentFailure(ReconciliationError):
    """A best-effort bank/branch create failed."""

    def __init__(self, operation: str, entity_id: str, message: Optional[str]):
        self.operation = operation
        self.entity_id = entity_id
        self.backend_message = message or "Unknown error"
        super().__init__(f"Failed to {operation} {entity_id}: {self.backend_message}")


class UserNotFound(RecordNotFound):
    """No portal user with the given id."""

    def __init__(self, user_id: str):
        self.record_id = user_id
        ReconciliationError.__init__(self, f"Portal user not found: {user_id}")


class AccessDenied(ReconciliationError):
    """Personnel PIN login failed."""
    pass


class InvalidPin(ReconciliationError):
    """New PIN does not satisfy the PIN rules."""
    pass


class StaleSnapshot(ReconciliationError):
    """Repository was queried after invalidation without a successful refresh."""

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or "Data is out of date; reload required")
