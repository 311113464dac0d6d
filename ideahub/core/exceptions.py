"""
Platform-wide exception hierarchy.

Every service raises one of these types at the point a rule is violated.
Blueprints register a single handler against ``DomainError`` and turn
``code``, ``message`` and ``http_status`` into a JSON error response, so the
mapping from failure kind to status code lives here and nowhere else.

Kinds:
    UnauthorizedError    actor lacks the role or ownership required      403
    NotEligibleError     actor may act, but the entity's state forbids it 403
    ConflictError        uniqueness boundary hit (duplicate, race)        409
    AlreadyDecidedError  a second response/decision on a settled item     409
    ValidationError      malformed input                                  422
    NotFoundError        referenced record does not exist                 404

Usage:
    from ideahub.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Idea", resource_id=42)
    raise ValidationError("Comments must be at least 50 characters.",
                          details={"comments": "too short"})
"""


class DomainError(Exception):
    """Base class for every failure the service layer reports to callers.

    Args:
        message: User-facing explanation, safe to show in a toast.
    """

    code = "ERR_DOMAIN"
    http_status = 400

    def __init__(self, message: str) -> None:
        self.message = message
        self.details: dict = {}
        super().__init__(message)


class NotFoundError(DomainError):
    """Raised when a requested record does not exist.

    Soft-deleted (withdrawn) ideas are reported as missing too.

    Args:
        resource: Human-readable entity name (e.g. "Idea", "IdeaVersion").
        resource_id: The key that was looked up. Logged, included in the message.
    """

    code = "ERR_NOT_FOUND"
    http_status = 404

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(DomainError):
    """Raised when input is well-formed JSON but breaks a field rule.

    Maps to HTTP 422.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown, keyed by field name.
    """

    code = "ERR_VALIDATION_INVALID"
    http_status = 422

    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(message)
        self.details = details or {}


class ConflictError(DomainError):
    """Raised when a write hits a uniqueness boundary.

    Maps to HTTP 409.
    """

    code = "ERR_CONFLICT_DUPLICATE"
    http_status = 409


class AlreadyDecidedError(ConflictError):
    """Raised when the item was already settled by another actor.

    Covers a second decision on a stage, a second response to a proposal
    or collaboration request, and the loser of a concurrent response.
    """

    code = "ERR_ALREADY_DECIDED"


class UnauthorizedError(DomainError):
    """Raised when the actor lacks the role, permission or ownership required."""

    code = "ERR_FORBIDDEN"
    http_status = 403


class NotEligibleError(DomainError):
    """Raised when the actor may act in general but not on this entity now.

    Wrong status, quorum not met, self-review, already reviewed.
    """

    code = "ERR_NOT_ELIGIBLE"
    http_status = 403


class AuthenticationRequiredError(DomainError):
    """Raised by the transport layer when no user identity is attached."""

    code = "ERR_UNAUTHENTICATED"
    http_status = 401

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)
