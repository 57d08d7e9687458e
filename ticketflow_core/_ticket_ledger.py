"""
Per-event ticket storage for TicketFlow.

Holds one record per minted ticket plus the event counters.  This module
is private to the lifecycle engine: ``record_mint``, ``transfer_ownership``
and ``retire`` are the only code paths that change a ticket's owner, and
only ``EventCollection`` calls them.

The ledger enforces storage invariants (supply bound, id validity,
non-zero owners).  Policy gates such as check-in locks and cancellation
belong to the engine.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass

from ticketflow_core.errors import EventSoldOut, TicketNotFound
from ticketflow_core.identity import is_zero_address


@dataclass
class TicketRecord:
    """A single ticket."""
    token_id: int
    owner: str
    last_price_paid: int
    checked_in: bool = False
    retired: bool = False

    def to_dict(self) -> dict:
        return {
            "token_id": self.token_id,
            "owner": self.owner,
            "last_price_paid": self.last_price_paid,
            "checked_in": self.checked_in,
            "retired": self.retired,
        }


class TicketLedger:
    """Ticket records and supply counters for one event."""

    def __init__(self, max_supply: int):
        if max_supply < 1:
            raise ValueError("max_supply must be at least 1")
        self.max_supply = max_supply
        self.minted_count = 0
        self.circulating_supply = 0
        # token_id -> TicketRecord (retired records are kept, cleared)
        self._tickets: dict[int, TicketRecord] = {}

    # ── lookups ──────────────────────────────────────────────────

    def _live(self, token_id: int) -> TicketRecord:
        record = self._tickets.get(token_id)
        if record is None or record.retired:
            raise TicketNotFound(f"Ticket {token_id} does not exist")
        return record

    def exists(self, token_id: int) -> bool:
        record = self._tickets.get(token_id)
        return record is not None and not record.retired

    def is_retired(self, token_id: int) -> bool:
        record = self._tickets.get(token_id)
        return record is not None and record.retired

    def owner_of(self, token_id: int) -> str:
        return self._live(token_id).owner

    def is_checked_in(self, token_id: int) -> bool:
        return self._live(token_id).checked_in

    def last_price(self, token_id: int) -> int:
        return self._live(token_id).last_price_paid

    def tokens_of(self, owner: str) -> list[int]:
        return sorted(t.token_id for t in self._tickets.values()
                      if not t.retired and t.owner == owner)

    def records(self) -> list[TicketRecord]:
        return [self._tickets[tid] for tid in sorted(self._tickets)]

    @property
    def retired_count(self) -> int:
        return sum(1 for t in self._tickets.values() if t.retired)

    # ── mutations ────────────────────────────────────────────────

    def next_id(self) -> int:
        if self.minted_count >= self.max_supply:
            raise EventSoldOut(
                f"All {self.max_supply} tickets have been minted"
            )
        return self.minted_count + 1

    def record_mint(self, token_id: int, owner: str, price: int) -> TicketRecord:
        if token_id != self.next_id():
            raise ValueError(f"Expected token id {self.minted_count + 1}, got {token_id}")
        if is_zero_address(owner):
            raise ValueError("Ticket owner cannot be the zero identity")
        record = TicketRecord(token_id=token_id, owner=owner, last_price_paid=price)
        self._tickets[token_id] = record
        self.minted_count += 1
        self.circulating_supply += 1
        return record

    def transfer_ownership(self, token_id: int, new_owner: str, price: int) -> TicketRecord:
        record = self._live(token_id)
        if is_zero_address(new_owner):
            raise ValueError("Ticket owner cannot be the zero identity")
        record.owner = new_owner
        record.last_price_paid = price
        return record

    def retire(self, token_id: int) -> TicketRecord:
        record = self._live(token_id)
        record.owner = ""
        record.last_price_paid = 0
        record.checked_in = False
        record.retired = True
        self.circulating_supply -= 1
        return record

    def mark_checked_in(self, token_id: int) -> TicketRecord:
        record = self._live(token_id)
        record.checked_in = True
        return record

    # ── snapshot / restore ───────────────────────────────────────

    def snapshot(self) -> dict:
        return {
            "minted_count": self.minted_count,
            "circulating_supply": self.circulating_supply,
            "tickets": copy.deepcopy(self._tickets),
        }

    def restore(self, state: dict) -> None:
        self.minted_count = state["minted_count"]
        self.circulating_supply = state["circulating_supply"]
        self._tickets = state["tickets"]

    def load(self, minted_count: int, records: list[TicketRecord]) -> None:
        """Replace the ledger contents with persisted records."""
        if minted_count > self.max_supply:
            raise ValueError(
                f"minted_count {minted_count} exceeds max_supply {self.max_supply}"
            )
        self._tickets = {r.token_id: r for r in records}
        self.minted_count = minted_count
        self.circulating_supply = sum(1 for r in records if not r.retired)
