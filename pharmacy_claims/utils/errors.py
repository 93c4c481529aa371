"""
Custom Exceptions
Domain errors raised by the claims core and service layer.

Each error carries a stable ``code`` and the HTTP ``status_code`` the calling
API layer should answer with, so the boundary can translate them without
knowing every subclass.
"""

from typing import Any, Optional


class ClaimsError(Exception):
    """Base class for all claims errors."""

    code: str = "ClaimsError"
    status_code: int = 400

    def __init__(self, detail: str, **context: Any):
        super().__init__(detail)
        self.detail = detail
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        """Serializable form for the boundary layer."""
        return {"code": self.code, "detail": self.detail, **self.context}


# =============================================================================
# Core Errors
# =============================================================================


class InvalidLineItemError(ClaimsError):
    """Raised when a line item has a non-positive quantity or negative price"""

    code = "InvalidLineItem"
    status_code = 422


class PlanNotFoundError(ClaimsError):
    """Raised when a claim references a plan that does not exist"""

    code = "PlanNotFound"
    status_code = 404


class ProviderMismatchError(ClaimsError):
    """Raised when a plan does not belong to the claim's provider"""

    code = "ProviderMismatch"
    status_code = 422


class InvalidTransitionError(ClaimsError):
    """Raised when a status change is not in the transition table"""

    code = "InvalidTransition"
    status_code = 409

    def __init__(self, current: Any, target: Any, detail: Optional[str] = None):
        current_value = getattr(current, "value", current)
        target_value = getattr(target, "value", target)
        super().__init__(
            detail or f"Invalid transition: {current_value} -> {target_value}",
            current_status=current_value,
            target_status=target_value,
        )
        self.current = current
        self.target = target


class InconsistentPartialApprovalError(ClaimsError):
    """Raised when PARTIALLY_APPROVED is requested for a fully covered claim"""

    code = "InconsistentPartialApproval"
    status_code = 409


# =============================================================================
# Service Errors
# =============================================================================


class NotFoundError(ClaimsError):
    """Raised when a provider, claim or coverage item is not found"""

    code = "NotFound"
    status_code = 404


class DuplicateCodeError(ClaimsError):
    """Raised when a provider or plan code is already taken"""

    code = "DuplicateCode"
    status_code = 409


class ImmutableFieldError(ClaimsError):
    """Raised when an update tries to change a field fixed at creation"""

    code = "ImmutableField"
    status_code = 422


class ClaimNotEligibleError(ClaimsError):
    """Raised when a claim is submitted for an ineligible patient/plan"""

    code = "ClaimNotEligible"
    status_code = 422

    def __init__(self, reason: Any, detail: str):
        super().__init__(detail, reason=getattr(reason, "value", reason))
        self.reason = reason


class ClaimItemAdjustmentError(ClaimsError):
    """Raised when per-item adjudication cannot be applied"""

    code = "ClaimItemAdjustment"
    status_code = 422


class ClaimStatusDetailsError(ClaimsError):
    """Raised when status details do not belong to the requested status"""

    code = "ClaimStatusDetails"
    status_code = 422
