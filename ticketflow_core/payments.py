"""
Outbound value transfer for TicketFlow.

``PayoutBook`` is the default transfer mechanism used by collections.  It
credits recipients and then runs any receive hook the recipient has
installed.  Hooks are plain Python callables standing in for recipient
code: they may call back into a collection (which the collection rejects
with ``ReentrantCall``) or raise, which fails the transfer and rolls the
whole operation back.

One book may be shared by several collections.  A collection that rolls
back reverts only the payouts it made itself, so transfers committed by
other collections (including ones run from inside a receive hook) stay.

Any object exposing ``send(recipient, amount, memo)`` returning a receipt
and ``revert(receipt)`` can replace it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

ReceiveHook = Callable[[str, int], None]


@dataclass(eq=False)
class Payout:
    """One completed outbound transfer.  Compared by identity."""
    recipient: str
    amount: int
    memo: str = ""

    def to_dict(self) -> dict:
        return {"recipient": self.recipient, "amount": self.amount, "memo": self.memo}


class PayoutBook:
    """Tracks funds paid out of collections and fires receive hooks."""

    def __init__(self):
        self.balances: dict[str, int] = {}
        self.history: list[Payout] = []
        self._hooks: dict[str, ReceiveHook] = {}

    def on_receive(self, recipient: str, hook: ReceiveHook | None) -> None:
        """Install (or with ``None`` remove) a receive hook."""
        if hook is None:
            self._hooks.pop(recipient, None)
        else:
            self._hooks[recipient] = hook

    def send(self, recipient: str, amount: int, memo: str = "") -> Payout:
        """
        Credit ``recipient`` and run its receive hook.

        If the hook raises, this payout is reverted before the error
        propagates; anything the hook itself paid out is left alone.
        """
        if amount < 0:
            raise ValueError(f"Cannot send a negative amount ({amount})")
        payout = Payout(recipient, amount, memo)
        self.balances[recipient] = self.balances.get(recipient, 0) + amount
        self.history.append(payout)
        hook = self._hooks.get(recipient)
        if hook is not None:
            try:
                hook(recipient, amount)
            except Exception:
                self.revert(payout)
                raise
        return payout

    def revert(self, payout: Payout) -> None:
        """Undo one earlier ``send``.  Unknown receipts raise ``ValueError``."""
        for i, entry in enumerate(self.history):
            if entry is payout:
                del self.history[i]
                break
        else:
            raise ValueError(f"Payout {payout.to_dict()} is not in this book")
        remaining = self.balances[payout.recipient] - payout.amount
        if remaining:
            self.balances[payout.recipient] = remaining
        else:
            del self.balances[payout.recipient]

    def balance_of(self, recipient: str) -> int:
        return self.balances.get(recipient, 0)

    def total_paid(self) -> int:
        return sum(p.amount for p in self.history)
