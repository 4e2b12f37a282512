"""Error taxonomy shared by every domain module.

Each error carries the HTTP status the API layer answers with. Errors at or
above 500 are logged server-side and reported to the caller with a generic
message only.
"""

from __future__ import annotations

from typing import Any, Optional


class MarketplaceError(Exception):
    """Base class for domain errors."""

    status_code = 500
    default_message = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None, *, details: Any = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.details = details


class AuthenticationRequiredError(MarketplaceError):
    status_code = 401
    default_message = "Authentication required"


class PermissionDeniedError(MarketplaceError):
    status_code = 403
    default_message = "Permission denied"


class InvalidInputError(MarketplaceError):
    status_code = 400
    default_message = "Invalid input"


class InvalidAmountError(InvalidInputError):
    default_message = "Amount must be a positive number"


class NotFoundError(MarketplaceError):
    status_code = 404
    default_message = "Resource not found"


class ServiceNotFoundError(NotFoundError):
    # the checkout endpoints answer 400 for an unusable service reference
    status_code = 400
    default_message = "Invalid or inaccessible service"


class NotOwnerError(NotFoundError):
    """Raised when the caller does not own the resource; reported as not found."""


class InvalidTransitionError(MarketplaceError):
    status_code = 400
    default_message = "Operation not allowed in the current state"


class NotDeliverableError(InvalidTransitionError):
    default_message = "The order must be delivered before it can be completed"


class InsufficientBalanceError(MarketplaceError):
    status_code = 400
    default_message = "Insufficient balance"


class BelowMinimumError(MarketplaceError):
    status_code = 400
    default_message = "Amount is below the minimum withdrawal amount"


class ProviderError(MarketplaceError):
    status_code = 500
    default_message = "Payment provider error"


class CaptureFailedError(ProviderError):
    status_code = 400
    default_message = "Payment capture failed"


class WebhookVerificationError(MarketplaceError):
    status_code = 400
    default_message = "Invalid webhook signature"


class PersistenceError(MarketplaceError):
    status_code = 500
    default_message = "Could not persist the operation"


class WithdrawalReservationError(PersistenceError):
    default_message = "Could not reserve the withdrawal amount"

    def __init__(self, withdrawal_id: str, message: Optional[str] = None) -> None:
        super().__init__(message)
        self.withdrawal_id = withdrawal_id


__all__ = [
    "AuthenticationRequiredError",
    "BelowMinimumError",
    "CaptureFailedError",
    "InsufficientBalanceError",
    "InvalidAmountError",
    "InvalidInputError",
    "InvalidTransitionError",
    "MarketplaceError",
    "NotDeliverableError",
    "NotFoundError",
    "NotOwnerError",
    "PermissionDeniedError",
    "PersistenceError",
    "ProviderError",
    "ServiceNotFoundError",
    "WebhookVerificationError",
    "WithdrawalReservationError",
]
