"""Domain errors raised by the goal, escrow and delivery services.

Routes translate each family to one HTTP status: invalid requests to 400,
permission problems to 403, missing records to 404, state conflicts to 409
and upstream failures to 502.
"""
from __future__ import annotations


class GoalServiceError(RuntimeError):
    """Base class for all domain errors."""


class InvalidRequestError(GoalServiceError):
    """The caller supplied input that can never succeed as given."""


class PermissionDeniedError(GoalServiceError):
    """The caller is authenticated but may not act on the resource."""


class NotFoundError(GoalServiceError):
    """A referenced record does not exist."""


class ConflictError(GoalServiceError):
    """The request conflicts with the current state of a record."""


class ExternalServiceError(GoalServiceError):
    """A collaborator outside the process failed."""


class InvalidAmountError(InvalidRequestError):
    """Raised when a money amount is non-positive or malformed."""


class ExceedsRemainingError(InvalidRequestError):
    """Raised when a deposit would push a goal past its target."""

    def __init__(self, remaining: object) -> None:
        super().__init__(f"Deposit cannot exceed the remaining target of {remaining}")
        self.remaining = remaining


class InvalidAddressError(InvalidRequestError):
    """Raised when a shipping address does not belong to the caller."""


class PaymentVerificationError(InvalidRequestError):
    """Raised when a checkout session is unpaid or does not match the claim."""


class UnauthorizedError(PermissionDeniedError):
    """Raised when the caller does not own the goal or delivery."""


class GoalNotFoundError(NotFoundError):
    pass


class ProductNotFoundError(NotFoundError):
    pass


class EscrowNotFoundError(NotFoundError):
    pass


class RefundRequestNotFoundError(NotFoundError):
    pass


class DeliveryNotFoundError(NotFoundError):
    pass


class AddressNotFoundError(NotFoundError):
    pass


class StoreNotFoundError(NotFoundError):
    pass


class GoalAlreadyExistsError(ConflictError):
    """Raised when a second live goal is opened for the same product."""


class GoalAlreadyCompletedError(ConflictError):
    """Raised when money is sent to a goal that is already funded."""


class GoalClosedError(ConflictError):
    """Raised when money is sent to a cancelled or refunded goal."""


class GoalNotCompletedError(ConflictError):
    """Raised when redemption is attempted before the goal is funded."""


class RefundAlreadyRequestedError(ConflictError):
    """Raised when a goal already has a refund request."""


class InvalidStateError(ConflictError):
    """Raised when a record is not in the state an operation requires."""


class InvalidTransitionError(InvalidStateError):
    """Raised when a status change is not in the transition table."""


class ConcurrencyError(ConflictError):
    """Raised when optimistic locking detects a concurrent update."""


class PaymentGatewayError(ExternalServiceError):
    """Raised when the payment gateway call fails."""


__all__ = [
    "AddressNotFoundError",
    "ConcurrencyError",
    "ConflictError",
    "DeliveryNotFoundError",
    "EscrowNotFoundError",
    "ExceedsRemainingError",
    "ExternalServiceError",
    "GoalAlreadyCompletedError",
    "GoalAlreadyExistsError",
    "GoalClosedError",
    "GoalNotCompletedError",
    "GoalNotFoundError",
    "GoalServiceError",
    "InvalidAddressError",
    "InvalidAmountError",
    "InvalidRequestError",
    "InvalidStateError",
    "InvalidTransitionError",
    "NotFoundError",
    "PaymentGatewayError",
    "PaymentVerificationError",
    "PermissionDeniedError",
    "ProductNotFoundError",
    "RefundAlreadyRequestedError",
    "RefundRequestNotFoundError",
    "StoreNotFoundError",
    "UnauthorizedError",
]
