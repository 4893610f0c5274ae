"""Typed failures of raffle operations.

Workflow functions raise these; :class:`raffledesk.service.RaffleDesk` turns
them into :class:`~raffledesk.service.Outcome` values so that expected
conflicts never crash the caller.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional, Sequence

if TYPE_CHECKING:
    from .models import DrawOutcome, ExtraNumberRequest, Participant


class RaffleError(Exception):
    """Base class for every failure scoped to a single raffle operation."""

    code = "raffle_error"
    retryable = False

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code

    def records(self) -> Sequence[Any]:
        """Stored rows carried for recovery; the caller detaches them from its session."""
        return ()


class InvalidInput(RaffleError, ValueError):
    """Malformed name, contact, number or amount."""

    code = "invalid_input"

    def __init__(self, message: str, *, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class NumberTaken(RaffleError):
    """The ticket number already belongs to a participant in this cycle."""

    code = "number_taken"

    def __init__(self, number: Optional[int] = None, *, own_claim: bool = False) -> None:
        if number is None:
            message = "One of the ticket numbers was claimed concurrently"
        elif own_claim:
            message = f"Number {number} is already registered to this contact"
        else:
            message = f"Number {number} is already taken"
        super().__init__(message)
        self.number = number
        self.own_claim = own_claim


class ContactAlreadyRegistered(RaffleError):
    """The contact already holds tickets; ``participants`` enables recovery.

    ``participants`` is empty when the conflict was only detected by the
    store's unique index; :meth:`raffledesk.service.RaffleDesk.register`
    fills it with a fresh lookup in that case.
    """

    code = "contact_already_registered"

    def __init__(
        self, contact: str, participants: Sequence["Participant"] = ()
    ) -> None:
        super().__init__(f"Contact {contact} already has a registration")
        self.contact = contact
        self.participants = list(participants)

    def records(self) -> Sequence[Any]:
        return self.participants


class DuplicatePendingRequest(RaffleError):
    code = "duplicate_pending_request"

    def __init__(self, request: "ExtraNumberRequest") -> None:
        super().__init__(
            f"Contact {request.contact} already has a pending request (id={request.id})"
        )
        self.request = request

    def records(self) -> Sequence[Any]:
        return (self.request,)


class BelowMinimumPurchase(RaffleError):
    code = "below_minimum_purchase"

    def __init__(self, amount, minimum) -> None:
        super().__init__(f"Purchase amount {amount} is below the minimum of {minimum}")
        self.amount = amount
        self.minimum = minimum


class InsufficientPool(RaffleError):
    code = "insufficient_pool"

    def __init__(self, requested: int, available: int) -> None:
        super().__init__(
            f"Requested {requested} numbers but only {available} are available"
        )
        self.requested = requested
        self.available = available


class InvalidState(RaffleError):
    """The operation does not apply to the entity's current state."""

    code = "invalid_state"


class NoParticipants(RaffleError):
    code = "no_participants"

    def __init__(self) -> None:
        super().__init__("Cannot draw without participants")


class AlreadyDrawn(RaffleError):
    code = "already_drawn"

    def __init__(self, outcome: Optional["DrawOutcome"] = None) -> None:
        super().__init__("The draw for this cycle has already happened")
        self.outcome = outcome

    def records(self) -> Sequence[Any]:
        return () if self.outcome is None else (self.outcome,)


class NotFound(RaffleError):
    code = "not_found"


class PermissionDenied(RaffleError):
    code = "permission_denied"

    def __init__(self, operation: str) -> None:
        super().__init__(f"Operation '{operation}' requires an operator")
        self.operation = operation


class StoreUnavailable(RaffleError):
    """Transport failure or timeout: the write may or may not have happened."""

    code = "store_unavailable"
    retryable = True


class ProofStorageError(RaffleError):
    code = "proof_storage_error"
    retryable = True


__all__ = [
    "RaffleError",
    "InvalidInput",
    "NumberTaken",
    "ContactAlreadyRegistered",
    "DuplicatePendingRequest",
    "BelowMinimumPurchase",
    "InsufficientPool",
    "InvalidState",
    "NoParticipants",
    "AlreadyDrawn",
    "NotFound",
    "PermissionDenied",
    "StoreUnavailable",
    "ProofStorageError",
]
