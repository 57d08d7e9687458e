"""
Post-operation invariant checks for TicketFlow collections.

Captures a snapshot of a collection before an operation runs and checks,
once the operation has committed its ledger writes and transfers:

  - minted count never exceeds max supply and never decreases
  - circulating supply equals minted count minus retired tickets
  - every live ticket has a non-zero owner
  - the retained balance is non-negative
  - value is conserved: balance delta == value received - value paid out
  - the cancellation latch never reverts
  - a checked-in ticket never becomes un-checked

If any invariant fails the collection rolls the operation back and
rejects it.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ticketflow_core.identity import is_zero_address


@dataclass
class CollectionSnapshot:
    """Key collection fields captured before an operation."""
    minted_count: int = 0
    balance: int = 0
    paid_out: int = 0
    cancelled: bool = False
    checked_in: set[int] = field(default_factory=set)


class CollectionInvariantChecker:
    """
    Snapshot-then-verify checker, one operation at a time.
    """

    def __init__(self):
        self._snapshot: CollectionSnapshot | None = None

    def capture(self, collection) -> None:
        ledger = collection._ledger
        self._snapshot = CollectionSnapshot(
            minted_count=ledger.minted_count,
            balance=collection.balance,
            paid_out=collection.total_paid_out,
            cancelled=collection.is_cancelled(),
            checked_in={r.token_id for r in ledger.records()
                        if r.checked_in and not r.retired},
        )

    def verify(self, collection, value_in: int = 0) -> tuple[bool, str]:
        """
        Verify all invariants against the current collection state.
        Returns (passed, error_message).
        """
        if self._snapshot is None:
            return True, ""

        errors: list[str] = []
        for check in (
            self._check_supply_bound,
            self._check_circulating_supply,
            self._check_owners,
            self._check_balance_non_negative,
            self._check_cancellation_latch,
            self._check_checked_in_latch,
        ):
            ok, msg = check(collection)
            if not ok:
                errors.append(msg)

        ok, msg = self._check_value_conservation(collection, value_in)
        if not ok:
            errors.append(msg)

        self._snapshot = None
        if errors:
            return False, "; ".join(errors)
        return True, ""

    def _check_supply_bound(self, collection) -> tuple[bool, str]:
        ledger = collection._ledger
        if ledger.minted_count > ledger.max_supply:
            return (False,
                    f"Minted {ledger.minted_count} exceeds max supply {ledger.max_supply}")
        if ledger.minted_count < self._snapshot.minted_count:
            return (False,
                    f"Minted count decreased: {self._snapshot.minted_count} "
                    f"-> {ledger.minted_count}")
        return True, ""

    def _check_circulating_supply(self, collection) -> tuple[bool, str]:
        ledger = collection._ledger
        live = sum(1 for r in ledger.records() if not r.retired)
        expected = ledger.minted_count - ledger.retired_count
        if ledger.circulating_supply != expected or live != expected:
            return (False,
                    f"Circulating supply {ledger.circulating_supply} != "
                    f"minted {ledger.minted_count} - retired {ledger.retired_count}")
        return True, ""

    def _check_owners(self, collection) -> tuple[bool, str]:
        for record in collection._ledger.records():
            if not record.retired and is_zero_address(record.owner):
                return False, f"Ticket {record.token_id} has no owner"
        return True, ""

    def _check_balance_non_negative(self, collection) -> tuple[bool, str]:
        if collection.balance < 0:
            return False, f"Negative retained balance: {collection.balance}"
        return True, ""

    def _check_value_conservation(self, collection, value_in: int) -> tuple[bool, str]:
        snap = self._snapshot
        paid = collection.total_paid_out - snap.paid_out
        delta = collection.balance - snap.balance
        if delta != value_in - paid:
            return (False,
                    f"Value not conserved: balance changed by {delta}, "
                    f"received {value_in}, paid out {paid}")
        return True, ""

    def _check_cancellation_latch(self, collection) -> tuple[bool, str]:
        if self._snapshot.cancelled and not collection.is_cancelled():
            return False, "Cancellation latch reverted"
        return True, ""

    def _check_checked_in_latch(self, collection) -> tuple[bool, str]:
        ledger = collection._ledger
        for token_id in self._snapshot.checked_in:
            if ledger.exists(token_id) and not ledger.is_checked_in(token_id):
                return False, f"Ticket {token_id} lost its checked-in flag"
        return True, ""
