# core/exceptions.py
"""
Domain error taxonomy.

Services raise these; main.py turns them into JSON responses of the form
{"success": false, "error": <kind>, "detail": <message>}.
"""
from typing import Optional


class DomainError(Exception):
    """Base class for every failure the core reports to its callers."""

    kind: str = "DomainError"
    status_code: int = 400
    default_message: str = "Operation failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"success": False, "error": self.kind, "detail": self.message}


# ----------------------------------------------------------------------
# Access
# ----------------------------------------------------------------------
class Unauthorized(DomainError):
    kind = "Unauthorized"
    status_code = 403
    default_message = "Access to this organization is not authorized"


class Forbidden(Unauthorized):
    """Active member, but the role is not allowed to perform the action."""

    kind = "Forbidden"
    status_code = 403
    default_message = "Insufficient permissions for this operation"


class NotFound(DomainError):
    kind = "NotFound"
    status_code = 404
    default_message = "Resource not found"


class ValidationError(DomainError):
    kind = "ValidationError"
    status_code = 422
    default_message = "Invalid input"


# ----------------------------------------------------------------------
# Ledger
# ----------------------------------------------------------------------
class InvalidAmount(DomainError):
    kind = "InvalidAmount"
    default_message = "Invalid amount"


class AmountExceedsBalance(InvalidAmount):
    kind = "AmountExceedsBalance"
    default_message = "Amount exceeds the remaining balance"

    def __init__(self, remaining: float, message: Optional[str] = None):
        self.remaining = remaining
        super().__init__(message or f"Amount too high. Remaining: {remaining}")


class PartialPaymentsDisabled(DomainError):
    kind = "PartialPaymentsDisabled"
    default_message = "Partial payments are not allowed for this organization"


class AlreadyPaid(DomainError):
    kind = "AlreadyPaid"
    status_code = 409
    default_message = "This contribution is already paid"


class AlreadySettled(DomainError):
    kind = "AlreadySettled"
    status_code = 409
    default_message = "This obligation is already settled"


class DebtAlreadyPaid(AlreadySettled):
    kind = "DebtAlreadyPaid"
    default_message = "This debt is already paid"


class LedgerError(DomainError):
    kind = "LedgerError"
    status_code = 500
    default_message = "The ledger operation could not be completed"


# ----------------------------------------------------------------------
# Subscription
# ----------------------------------------------------------------------
class QuotaExceeded(DomainError):
    kind = "QuotaExceeded"
    status_code = 403
    default_message = "Member limit reached for the current plan"


class SubscriptionMissing(DomainError):
    kind = "SubscriptionMissing"
    status_code = 404
    default_message = "No subscription found for this organization"


class PlanIncompatible(DomainError):
    kind = "PlanIncompatible"
    default_message = "The requested plan cannot be applied"


# ----------------------------------------------------------------------
# Generation
# ----------------------------------------------------------------------
class PlanInactive(DomainError):
    kind = "PlanInactive"
    default_message = "Contribution plan is invalid or inactive"


class AlreadyGenerated(DomainError):
    kind = "AlreadyGenerated"
    status_code = 409
    default_message = "Contributions already generated for this period"


class DuplicateAssignment(DomainError):
    kind = "DuplicateAssignment"
    status_code = 409
    default_message = "A contribution already exists for this member and period"


class PlanInUse(ValidationError):
    kind = "PlanInUse"
    status_code = 409
    default_message = "This plan already has contributions and cannot be deleted"
