"""
Ticket lifecycle engine for TicketFlow.

One ``EventCollection`` per event.  It owns the ticket ledger and the
retained balance (face-value payments held to cover refunds) and exposes
the operations that move tickets through their lifecycle:

    mint            Unminted -> Owned
    resale          Owned    -> Owned      (new owner, capped price)
    refund          Owned    -> Retired    (pays face value)
    cancel_refund   Owned    -> Retired    (only once the event is cancelled)
    check_in        Owned    -> CheckedIn  (organizer only)

plus ``cancel_event`` and ``set_metadata_locator`` for the organizer.

Every mutating operation is all-or-nothing and runs in three phases:
validate, commit ledger writes, then send outbound transfers.  Transfers
can run arbitrary recipient code; a recipient that calls back into the
collection gets ``ReentrantCall``, and a transfer that raises rolls back
every write the operation made.
"""

from __future__ import annotations

import contextlib
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ticketflow_core import pricing
from ticketflow_core._ticket_ledger import TicketLedger, TicketRecord
from ticketflow_core.errors import (
    BelowResaleFloor,
    CannotBuyOwnTicket,
    EmptyCancellationReason,
    EmptyValue,
    EventAlreadyCancelled,
    EventCancelled,
    EventNotCancelled,
    ExceedsResaleCap,
    IncorrectPayment,
    InsufficientContractBalance,
    InvalidIdentity,
    InvalidParameters,
    InvalidTokenId,
    InvariantViolation,
    MintLimitExceeded,
    NotOrganizer,
    NotTicketOwner,
    ReentrantCall,
    TicketAlreadyUsed,
    TransferFailed,
    ValueUnchanged,
)
from ticketflow_core.events import CollectionEvent, EventKind, EventLog
from ticketflow_core.identity import is_zero_address
from ticketflow_core.invariants import CollectionInvariantChecker
from ticketflow_core.payments import PayoutBook

logger = logging.getLogger("ticketflow_engine")


class TicketState(Enum):
    UNMINTED = "unminted"
    OWNED = "owned"
    CHECKED_IN = "checked_in"
    RETIRED = "retired"


@dataclass(frozen=True)
class EventConfig:
    """Immutable per-event configuration, fixed at creation."""
    name: str
    symbol: str
    organizer: str
    face_value: int
    max_supply: int
    max_resale_percent: int
    organizer_fee_percent: int
    min_resale_percent: int = 0          # 0 = no resale floor
    max_mints_per_identity: int = 0      # 0 = unlimited
    # Whether cancel_refund pays out tickets that were already checked in.
    refund_checked_in_on_cancel: bool = True

    def validate(self) -> None:
        """Structural checks every collection needs, independent of registry policy."""
        if not self.name or not self.name.strip():
            raise InvalidParameters("name must not be empty")
        if not self.symbol or not self.symbol.strip():
            raise InvalidParameters("symbol must not be empty")
        if is_zero_address(self.organizer):
            raise InvalidParameters("organizer must not be the zero identity")
        if self.face_value <= 0:
            raise InvalidParameters("face_value must be positive")
        if self.max_supply < 1:
            raise InvalidParameters("max_supply must be at least 1")
        if self.max_resale_percent < pricing.MIN_RESALE_PERCENT:
            raise InvalidParameters(
                f"max_resale_percent must be >= {pricing.MIN_RESALE_PERCENT}"
            )
        if not 0 <= self.organizer_fee_percent <= pricing.MAX_FEE_PERCENT:
            raise InvalidParameters(
                f"organizer_fee_percent must be 0-{pricing.MAX_FEE_PERCENT}"
            )
        if not 0 <= self.min_resale_percent <= self.max_resale_percent:
            raise InvalidParameters("min_resale_percent must be 0-max_resale_percent")
        if self.max_mints_per_identity < 0:
            raise InvalidParameters("max_mints_per_identity must be non-negative")

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "symbol": self.symbol,
            "organizer": self.organizer,
            "face_value": self.face_value,
            "max_supply": self.max_supply,
            "max_resale_percent": self.max_resale_percent,
            "organizer_fee_percent": self.organizer_fee_percent,
            "min_resale_percent": self.min_resale_percent,
            "max_mints_per_identity": self.max_mints_per_identity,
            "refund_checked_in_on_cancel": self.refund_checked_in_on_cancel,
        }


class EventCollection:
    """The tickets of one event and every operation on them."""

    def __init__(
        self,
        config: EventConfig,
        metadata_base: str,
        payments: Any = None,
    ):
        config.validate()
        if not metadata_base:
            raise InvalidParameters("metadata_base must not be empty")
        self.config = config
        self.payments = payments if payments is not None else PayoutBook()
        self.events = EventLog()
        self.total_paid_out = 0
        self._ledger = TicketLedger(config.max_supply)
        self._metadata_base = metadata_base
        self._cancelled = False
        self._cancellation_reason = ""
        self._balance = 0
        self._mints_by: dict[str, int] = {}
        self._checker = CollectionInvariantChecker()
        self._lock = threading.Lock()
        self._active_thread: int | None = None
        self._payouts: list = []  # receipts sent by the running operation

    # ── configuration shortcuts ──────────────────────────────────

    @property
    def organizer(self) -> str:
        return self.config.organizer

    @property
    def face_value(self) -> int:
        return self.config.face_value

    @property
    def max_supply(self) -> int:
        return self.config.max_supply

    @property
    def balance(self) -> int:
        """Funds currently retained for refunds."""
        return self._balance

    @property
    def minted_count(self) -> int:
        return self._ledger.minted_count

    @property
    def metadata_base(self) -> str:
        return self._metadata_base

    @property
    def cancellation_reason(self) -> str:
        return self._cancellation_reason

    # ── transaction discipline ───────────────────────────────────

    def _snapshot_state(self) -> dict:
        return {
            "ledger": self._ledger.snapshot(),
            "cancelled": self._cancelled,
            "cancellation_reason": self._cancellation_reason,
            "metadata_base": self._metadata_base,
            "balance": self._balance,
            "total_paid_out": self.total_paid_out,
            "mints_by": dict(self._mints_by),
            "events": len(self.events),
        }

    def _restore_state(self, state: dict) -> None:
        self._ledger.restore(state["ledger"])
        # Only this operation's own payouts; the book may be shared.
        for payout in reversed(self._payouts):
            self.payments.revert(payout)
        self._payouts = []
        self._cancelled = state["cancelled"]
        self._cancellation_reason = state["cancellation_reason"]
        self._metadata_base = state["metadata_base"]
        self._balance = state["balance"]
        self.total_paid_out = state["total_paid_out"]
        self._mints_by = state["mints_by"]
        self.events.truncate(state["events"])

    def _log_extra(self, op: str, **fields) -> dict:
        return {"op": op, "collection": self.config.symbol, **fields}

    @contextlib.contextmanager
    def _transaction(self, op: str, value_in: int = 0):
        if self._active_thread == threading.get_ident():
            raise ReentrantCall(f"{op} called while another operation is in progress")
        with self._lock:
            self._active_thread = threading.get_ident()
            self._payouts = []
            saved = self._snapshot_state()
            self._checker.capture(self)
            try:
                yield
                ok, msg = self._checker.verify(self, value_in)
                if not ok:
                    raise InvariantViolation(msg)
            except Exception as exc:
                self._restore_state(saved)
                logger.warning(
                    f"{op} rejected: {exc}",
                    extra=self._log_extra(op, code=getattr(exc, "code", type(exc).__name__)),
                )
                raise
            finally:
                self._active_thread = None

    def _pay(self, recipient: str, amount: int, memo: str) -> None:
        """Send retained funds out.  Only called after all ledger writes."""
        if amount == 0:
            return
        if amount > self._balance:
            raise InsufficientContractBalance(
                f"Retained balance {self._balance} cannot cover {amount}"
            )
        self._balance -= amount
        self.total_paid_out += amount
        try:
            payout = self.payments.send(recipient, amount, memo)
        except Exception as exc:
            raise TransferFailed(
                f"Transfer of {amount} to {recipient} failed: {exc}"
            ) from exc
        self._payouts.append(payout)

    def _require_organizer(self, caller: str) -> None:
        if caller != self.config.organizer:
            raise NotOrganizer(f"{caller} is not the organizer")

    def _require_owner(self, caller: str, token_id: int) -> None:
        owner = self._ledger.owner_of(token_id)
        if caller != owner:
            raise NotTicketOwner(f"{caller} does not own ticket {token_id}")

    def _require_refund_cover(self) -> None:
        if self._balance < self.config.face_value:
            raise InsufficientContractBalance(
                f"Retained balance {self._balance} is below face value "
                f"{self.config.face_value}"
            )

    # ── mutating operations ──────────────────────────────────────

    def mint(self, caller: str, value: int) -> int:
        """Buy a new ticket at face value.  Returns the ticket id."""
        with self._transaction("mint", value_in=value):
            if value != self.config.face_value:
                raise IncorrectPayment(
                    f"Mint requires exactly {self.config.face_value}, got {value}"
                )
            if is_zero_address(caller):
                raise InvalidIdentity("Zero identity cannot hold tickets")
            if self._cancelled:
                raise EventCancelled("Event is cancelled")
            token_id = self._ledger.next_id()
            limit = self.config.max_mints_per_identity
            minted = self._mints_by.get(caller, 0)
            if limit and minted >= limit:
                raise MintLimitExceeded(
                    f"{caller} already minted {minted} of {limit} tickets"
                )

            self._ledger.record_mint(token_id, caller, value)
            self._mints_by[caller] = minted + 1
            self._balance += value
            self.events.emit(EventKind.TICKET_MINTED, token_id=token_id,
                             owner=caller, price=value)
        logger.info(f"#{token_id} minted to {caller}",
                    extra=self._log_extra("mint", token_id=token_id, caller=caller))
        return token_id

    def resale(self, caller: str, token_id: int, price: int, value: int) -> pricing.ResaleSplit:
        """
        Buy ``token_id`` from its current owner at ``price``.

        The buyer attaches exactly ``price``; the previous owner receives
        the proceeds and the organizer the fee.
        """
        with self._transaction("resale", value_in=value):
            if price <= 0 or value != price:
                raise IncorrectPayment(
                    f"Resale requires exactly the proposed price {price}, got {value}"
                )
            if self._cancelled:
                raise EventCancelled("Event is cancelled")
            seller = self._ledger.owner_of(token_id)
            if caller == seller:
                raise CannotBuyOwnTicket(f"{caller} already owns ticket {token_id}")
            if is_zero_address(caller):
                raise InvalidIdentity("Zero identity cannot hold tickets")
            if self._ledger.is_checked_in(token_id):
                raise TicketAlreadyUsed(f"Ticket {token_id} is checked in")
            cap = self.max_resale_price()
            if price > cap:
                raise ExceedsResaleCap(f"Price {price} exceeds resale cap {cap}")
            floor = self.min_resale_price()
            if price < floor:
                raise BelowResaleFloor(f"Price {price} is below resale floor {floor}")

            split = pricing.split_resale(price, self.config.organizer_fee_percent)
            self._ledger.transfer_ownership(token_id, caller, price)
            self._balance += value
            self.events.emit(EventKind.TICKET_RESOLD, token_id=token_id,
                             seller=seller, buyer=caller, price=price,
                             organizer_fee=split.fee, seller_proceeds=split.proceeds)

            self._pay(seller, split.proceeds, f"resale proceeds #{token_id}")
            self._pay(self.config.organizer, split.fee, f"resale fee #{token_id}")
        logger.info(
            f"#{token_id} resold {seller} -> {caller} for {price} (fee {split.fee})",
            extra=self._log_extra("resale", token_id=token_id, caller=caller),
        )
        return split

    def refund(self, caller: str, token_id: int) -> int:
        """Return a ticket for its face value.  Returns the amount paid."""
        with self._transaction("refund"):
            self._require_owner(caller, token_id)
            if self._ledger.is_checked_in(token_id):
                raise TicketAlreadyUsed(f"Ticket {token_id} is checked in")
            if self._cancelled:
                raise EventCancelled("Event is cancelled; use cancel_refund")
            self._require_refund_cover()

            amount = self.config.face_value
            self._ledger.retire(token_id)
            self.events.emit(EventKind.TICKET_REFUNDED, token_id=token_id,
                             owner=caller, amount=amount)

            self._pay(caller, amount, f"refund #{token_id}")
        logger.info(f"#{token_id} refunded to {caller}",
                    extra=self._log_extra("refund", token_id=token_id, caller=caller))
        return amount

    def cancel_refund(self, caller: str, token_id: int) -> int:
        """Claim face value for a ticket of a cancelled event."""
        with self._transaction("cancel_refund"):
            if not self._cancelled:
                raise EventNotCancelled("Event is not cancelled")
            self._require_owner(caller, token_id)
            if (not self.config.refund_checked_in_on_cancel
                    and self._ledger.is_checked_in(token_id)):
                raise TicketAlreadyUsed(f"Ticket {token_id} is checked in")
            self._require_refund_cover()

            amount = self.config.face_value
            self._ledger.retire(token_id)
            self.events.emit(EventKind.TICKET_CANCEL_REFUNDED, token_id=token_id,
                             owner=caller, amount=amount)

            self._pay(caller, amount, f"cancellation refund #{token_id}")
        logger.info(f"#{token_id} cancel-refunded to {caller}",
                    extra=self._log_extra("cancel_refund", token_id=token_id, caller=caller))
        return amount

    def check_in(self, caller: str, token_id: int) -> None:
        with self._transaction("check_in"):
            self._require_organizer(caller)
            if isinstance(token_id, bool) or not isinstance(token_id, int) or token_id <= 0:
                raise InvalidTokenId(f"Invalid token id {token_id!r}")
            if self._ledger.is_checked_in(token_id):
                raise TicketAlreadyUsed(f"Ticket {token_id} is already checked in")
            self._ledger.mark_checked_in(token_id)
            self.events.emit(EventKind.TICKET_CHECKED_IN, token_id=token_id,
                             owner=self._ledger.owner_of(token_id))
        logger.info(f"#{token_id} checked in",
                    extra=self._log_extra("check_in", token_id=token_id, caller=caller))

    def cancel_event(self, caller: str, reason: str) -> None:
        """Cancel the event.  Irreversible; refunds are claimed per ticket."""
        with self._transaction("cancel_event"):
            self._require_organizer(caller)
            if not reason or not reason.strip():
                raise EmptyCancellationReason("A cancellation reason is required")
            if self._cancelled:
                raise EventAlreadyCancelled("Event is already cancelled")
            self._cancelled = True
            self._cancellation_reason = reason
            self.events.emit(EventKind.EVENT_CANCELLED, reason=reason)
        logger.info(f"Event cancelled: {reason}",
                    extra=self._log_extra("cancel_event", caller=caller))

    def set_metadata_locator(self, caller: str, value: str) -> None:
        with self._transaction("set_metadata_locator"):
            self._require_organizer(caller)
            if not value:
                raise EmptyValue("Metadata locator must not be empty")
            if value == self._metadata_base:
                raise ValueUnchanged(f"Metadata locator is already {value!r}")
            previous = self._metadata_base
            self._metadata_base = value
            self.events.emit(EventKind.METADATA_LOCATOR_UPDATED,
                             previous=previous, current=value)
        logger.info(f"Metadata locator -> {value}",
                    extra=self._log_extra("set_metadata_locator", caller=caller))

    # ── queries ──────────────────────────────────────────────────

    def owner_of(self, token_id: int) -> str:
        return self._ledger.owner_of(token_id)

    def original_price(self) -> int:
        return self.config.face_value

    def last_price_paid(self, token_id: int) -> int:
        return self._ledger.last_price(token_id)

    def is_checked_in(self, token_id: int) -> bool:
        return self._ledger.is_checked_in(token_id)

    def is_cancelled(self) -> bool:
        return self._cancelled

    def max_resale_price(self) -> int:
        return pricing.max_resale_price(self.config.face_value,
                                        self.config.max_resale_percent)

    def min_resale_price(self) -> int:
        return pricing.min_resale_price(self.config.face_value,
                                        self.config.min_resale_percent)

    def total_supply(self) -> int:
        """Tickets in circulation (minted minus retired)."""
        return self._ledger.circulating_supply

    def mints_by(self, identity: str) -> int:
        return self._mints_by.get(identity, 0)

    def tickets_of(self, identity: str) -> list[int]:
        return self._ledger.tokens_of(identity)

    def ticket_state(self, token_id: int) -> TicketState:
        if isinstance(token_id, bool) or not isinstance(token_id, int) or token_id <= 0:
            raise InvalidTokenId(f"Invalid token id {token_id!r}")
        if token_id > self._ledger.minted_count:
            return TicketState.UNMINTED
        if self._ledger.is_retired(token_id):
            return TicketState.RETIRED
        if self._ledger.is_checked_in(token_id):
            return TicketState.CHECKED_IN
        return TicketState.OWNED

    def event_info(self) -> dict:
        return {
            "name": self.config.name,
            "symbol": self.config.symbol,
            "organizer": self.config.organizer,
            "face_value": self.config.face_value,
            "max_supply": self.config.max_supply,
            "minted": self._ledger.minted_count,
            "circulating": self._ledger.circulating_supply,
            "cancelled": self._cancelled,
            "cancellation_reason": self._cancellation_reason,
            "metadata_base": self._metadata_base,
            "balance": self._balance,
        }

    def anti_scalping_config(self) -> dict:
        return {
            "max_resale_percent": self.config.max_resale_percent,
            "organizer_fee_percent": self.config.organizer_fee_percent,
            "min_resale_percent": self.config.min_resale_percent,
            "max_mints_per_identity": self.config.max_mints_per_identity,
            "max_resale_price": self.max_resale_price(),
            "min_resale_price": self.min_resale_price(),
        }

    def token_uri(self, token_id: int) -> str:
        self._ledger.owner_of(token_id)
        return f"{self._metadata_base}{token_id}"

    def contract_uri(self) -> str:
        return f"{self._metadata_base}collection.json"

    def ticket_metadata(self, token_id: int) -> dict:
        owner = self._ledger.owner_of(token_id)
        return {
            "name": f"{self.config.name} #{token_id}",
            "token_id": token_id,
            "uri": self.token_uri(token_id),
            "owner": owner,
            "original_price": self.config.face_value,
            "last_price_paid": self._ledger.last_price(token_id),
            "checked_in": self._ledger.is_checked_in(token_id),
            "event_cancelled": self._cancelled,
        }

    def collection_metadata(self) -> dict:
        return {
            "name": self.config.name,
            "symbol": self.config.symbol,
            "organizer": self.config.organizer,
            "uri": self.contract_uri(),
            "max_supply": self.config.max_supply,
            "total_supply": self.total_supply(),
            "face_value": self.config.face_value,
            "seller_fee_percent": self.config.organizer_fee_percent,
            "fee_recipient": self.config.organizer,
        }

    # ── persistence ──────────────────────────────────────────────

    def export_state(self) -> dict:
        """
        Everything needed to rebuild this collection (see ``from_state``).

        Waits for any operation running on another thread, so the result
        is always committed state.  Raises ``ReentrantCall`` from inside a
        running operation (e.g. a receive hook).
        """
        if self._active_thread == threading.get_ident():
            raise ReentrantCall("export_state called while an operation is in progress")
        with self._lock:
            return {
                "config": self.config.to_dict(),
                "metadata_base": self._metadata_base,
                "minted_count": self._ledger.minted_count,
                "tickets": [r.to_dict() for r in self._ledger.records()],
                "balance": self._balance,
                "total_paid_out": self.total_paid_out,
                "cancelled": self._cancelled,
                "cancellation_reason": self._cancellation_reason,
                "mints_by": dict(self._mints_by),
                "events": self.events.to_list(),
            }

    @classmethod
    def from_state(cls, state: dict, payments: Any = None) -> EventCollection:
        collection = cls(EventConfig(**state["config"]), state["metadata_base"], payments)
        collection._ledger.load(
            state["minted_count"],
            [TicketRecord(**t) for t in state["tickets"]],
        )
        collection._balance = state["balance"]
        collection.total_paid_out = state.get("total_paid_out", 0)
        collection._cancelled = state["cancelled"]
        collection._cancellation_reason = state.get("cancellation_reason", "")
        collection._mints_by = dict(state.get("mints_by", {}))
        for entry in state.get("events", []):
            collection.events.append(CollectionEvent(
                sequence=entry["sequence"],
                kind=EventKind(entry["kind"]),
                fields=dict(entry["fields"]),
                timestamp=entry["timestamp"],
            ))
        return collection

    def __repr__(self) -> str:
        return (f"EventCollection({self.config.symbol}, "
                f"{self._ledger.circulating_supply}/{self.config.max_supply})")
