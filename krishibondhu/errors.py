"""
Error taxonomy for loan, payment and reminder operations.

Every error carries a machine-readable ``reason`` code next to the
human-readable message so callers can branch without parsing strings.
A declined simulated payment is not an error; see ``payments.PaymentOutcome``.
"""

from typing import Optional


class KrishiError(Exception):
    """Base class for all domain errors"""

    default_reason = "error"

    def __init__(self, message: str, reason: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.reason = reason or self.default_reason

    def to_dict(self):
        return {"error": type(self).__name__, "reason": self.reason, "message": self.message}


class ValidationError(KrishiError):
    """Malformed input: empty required field, non-positive amount, bad credentials"""
    default_reason = "invalid_input"


class NotFoundError(KrishiError):
    """Operation referenced an id that does not exist"""
    default_reason = "not_found"


class PreconditionError(KrishiError):
    """Operation attempted on an entity whose state forbids it"""
    default_reason = "precondition_failed"


class InvalidTransitionError(KrishiError):
    """State machine command issued from a step that does not permit it"""
    default_reason = "invalid_transition"


class MissingDueDateError(KrishiError):
    """A due-date reminder was requested for a loan without a due date"""
    default_reason = "due_date_missing"


class PermissionDeniedError(KrishiError):
    """The user declined a system permission; safe to ask again later"""
    default_reason = "permission_denied"
