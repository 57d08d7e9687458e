"""
Rejection reasons for TicketFlow operations.

Every failed operation raises exactly one of these.  Each class carries a
stable ``code`` (the reason shown to callers) and a ``category``:

  - **payment**        wrong or zero attached value
  - **authorization**  caller is not the owner / organizer
  - **invariant**      the event or ticket is not eligible
  - **resource**       retained funds or an outbound transfer failed

Categories are informational; every error aborts the whole operation.
"""

from __future__ import annotations


class TicketFlowError(Exception):
    """Base class for all TicketFlow rejections."""

    code = "TicketFlowError"
    category = "invariant"

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "category": self.category,
            "message": self.message,
        }


# ── payment ──────────────────────────────────────────────────────

class IncorrectPayment(TicketFlowError):
    code = "IncorrectPayment"
    category = "payment"


# ── authorization ────────────────────────────────────────────────

class NotTicketOwner(TicketFlowError):
    code = "NotTicketOwner"
    category = "authorization"


class NotOrganizer(TicketFlowError):
    code = "NotOrganizer"
    category = "authorization"


class InvalidIdentity(TicketFlowError):
    code = "InvalidIdentity"
    category = "authorization"


# ── invariant ────────────────────────────────────────────────────

class EventCancelled(TicketFlowError):
    code = "EventCancelled"


class EventNotCancelled(TicketFlowError):
    code = "EventNotCancelled"


class EventAlreadyCancelled(TicketFlowError):
    code = "EventAlreadyCancelled"


class EventSoldOut(TicketFlowError):
    code = "EventSoldOut"


class MintLimitExceeded(TicketFlowError):
    code = "MintLimitExceeded"


class TicketNotFound(TicketFlowError):
    code = "TicketNotFound"


class InvalidTokenId(TicketFlowError):
    code = "InvalidTokenId"


class CannotBuyOwnTicket(TicketFlowError):
    code = "CannotBuyOwnTicket"


class TicketAlreadyUsed(TicketFlowError):
    code = "TicketAlreadyUsed"


class ExceedsResaleCap(TicketFlowError):
    code = "ExceedsResaleCap"


class BelowResaleFloor(TicketFlowError):
    code = "BelowResaleFloor"


class EmptyCancellationReason(TicketFlowError):
    code = "EmptyCancellationReason"


class EmptyValue(TicketFlowError):
    code = "EmptyValue"


class ValueUnchanged(TicketFlowError):
    code = "ValueUnchanged"


class ReentrantCall(TicketFlowError):
    code = "ReentrantCall"


class InvariantViolation(TicketFlowError):
    code = "InvariantViolation"


class InvalidParameters(TicketFlowError, ValueError):
    code = "InvalidParameters"


# ── resource ─────────────────────────────────────────────────────

class InsufficientContractBalance(TicketFlowError):
    code = "InsufficientContractBalance"
    category = "resource"


class TransferFailed(TicketFlowError):
    code = "TransferFailed"
    category = "resource"
