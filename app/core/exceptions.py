"""
Platform-wide exception hierarchy.

Services raise these types; blueprints register handlers against them once
and get consistent HTTP status codes everywhere.

Two families:
  - NotFoundError / ValidationError: generic lookup and input failures.
  - DisciplineError and its subclasses: outcomes of a rejected or failed
    complaint transition. A rejected transition leaves the case and its
    audit ledger untouched.

Usage:
    from app.core.exceptions import NotFoundError, IllegalTransition

    raise NotFoundError(resource="Complaint", resource_id=42)
    raise IllegalTransition("recordRebuttal", "UNDER_HR_ANALYSIS")
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist within the given scope.

    Used for BOTH genuinely missing records AND cross-tenant access attempts;
    a 403 would confirm the resource exists, a 404 does not.

    Args:
        resource: Human-readable model/entity name (e.g. "Complaint").
        resource_id: The PK that was looked up. Included in logs, not in HTTP response.
        tenant_id: Optional — the scope that was enforced. For debug logging only.
    """

    def __init__(
        self,
        resource: str,
        resource_id: int | str | None = None,
        tenant_id: int | None = None,
    ) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.tenant_id = tenant_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        if tenant_id is not None:
            msg += f" (tenant={tenant_id})"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when registration or query input is malformed.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
                 Keys are field names; values are error descriptions.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


# ── Complaint transition outcomes ────────────────────────────────────────────


class DisciplineError(Exception):
    """Base class for every complaint-workflow rejection or failure."""


class IllegalTransition(DisciplineError):
    """The action is not defined for the complaint's current status."""

    def __init__(self, action_type: str, current_status: str | None, reason: str | None = None) -> None:
        self.action_type = action_type
        self.current_status = current_status
        msg = f"Action '{action_type}' is not allowed in status {current_status}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class InvalidPayload(DisciplineError):
    """The action payload is missing fields or has malformed values.

    ``details`` maps each offending field name to its problem.
    """

    def __init__(self, action_type: str, details: dict) -> None:
        self.action_type = action_type
        self.details = details
        fields = ", ".join(sorted(details))
        super().__init__(f"Invalid payload for '{action_type}': {fields}")


class GuardFailed(DisciplineError):
    """The action is legal for the status but a business precondition is not met."""

    def __init__(self, action_type: str, reason: str) -> None:
        self.action_type = action_type
        self.reason = reason
        super().__init__(f"Cannot '{action_type}': {reason}")


class ConcurrentModification(DisciplineError):
    """The complaint changed between read and write; reload and resubmit."""

    def __init__(self, complaint_id: int, expected_version: int | None = None,
                 actual_version: int | None = None) -> None:
        self.complaint_id = complaint_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        msg = f"Complaint {complaint_id} was modified concurrently"
        if expected_version is not None:
            msg += f" (expected version {expected_version}, found {actual_version})"
        super().__init__(msg)


class PersistenceFailure(DisciplineError):
    """The status change and its audit entry could not be committed together."""

    def __init__(self, complaint_id: int | None, cause: Exception | None = None) -> None:
        self.complaint_id = complaint_id
        self.cause = cause
        super().__init__(f"Could not persist transition for complaint {complaint_id}")
