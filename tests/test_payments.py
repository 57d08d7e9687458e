"""Tests for the payout book (payments.py)."""

import pytest

from ticketflow_core.payments import Payout, PayoutBook


@pytest.fixture
def book():
    return PayoutBook()


class TestSend:
    def test_send_credits_recipient(self, book):
        book.send("tAlice", 135, "resale proceeds #1")
        book.send("tAlice", 100)
        assert book.balance_of("tAlice") == 235
        assert book.balance_of("tBob") == 0
        assert book.total_paid() == 235
        assert book.history[0].to_dict() == {
            "recipient": "tAlice", "amount": 135, "memo": "resale proceeds #1",
        }

    def test_negative_amount_rejected(self, book):
        with pytest.raises(ValueError):
            book.send("tAlice", -1)
        assert book.history == []

    def test_payout_to_dict(self):
        assert Payout("tBob", 15, "fee").to_dict() == {
            "recipient": "tBob", "amount": 15, "memo": "fee",
        }


class TestHooks:
    def test_hook_called_after_credit(self, book):
        seen = []
        book.on_receive("tAlice", lambda r, a: seen.append((r, a, book.balance_of(r))))
        book.send("tAlice", 50)
        assert seen == [("tAlice", 50, 50)]

    def test_hook_only_for_recipient(self, book):
        seen = []
        book.on_receive("tAlice", lambda r, a: seen.append(r))
        book.send("tBob", 50)
        assert seen == []

    def test_hook_removed(self, book):
        seen = []
        book.on_receive("tAlice", lambda r, a: seen.append(r))
        book.on_receive("tAlice", None)
        book.send("tAlice", 50)
        assert seen == []

    def test_hook_error_propagates_and_reverts(self, book):
        def hook(recipient, amount):
            raise RuntimeError("rejected")

        book.on_receive("tAlice", hook)
        with pytest.raises(RuntimeError):
            book.send("tAlice", 50)
        assert book.balance_of("tAlice") == 0
        assert book.history == []

    def test_failed_hook_keeps_nested_payouts(self, book):
        def hook(recipient, amount):
            book.send("tBob", 7, "paid from hook")
            raise RuntimeError("rejected")

        book.on_receive("tAlice", hook)
        with pytest.raises(RuntimeError):
            book.send("tAlice", 50)
        assert book.balance_of("tAlice") == 0
        assert book.balance_of("tBob") == 7
        assert [p.recipient for p in book.history] == ["tBob"]


class TestRevert:
    def test_send_returns_receipt(self, book):
        receipt = book.send("tAlice", 10, "refund #1")
        assert receipt is book.history[-1]

    def test_revert_removes_only_that_payout(self, book):
        first = book.send("tAlice", 10)
        second = book.send("tAlice", 10)
        book.send("tBob", 5)
        book.revert(first)
        assert book.balance_of("tAlice") == 10
        assert book.balance_of("tBob") == 5
        assert book.history[0] is second
        assert len(book.history) == 2

    def test_revert_last_credit_drops_balance_entry(self, book):
        receipt = book.send("tAlice", 10)
        book.revert(receipt)
        assert "tAlice" not in book.balances

    def test_revert_unknown_receipt(self, book):
        with pytest.raises(ValueError):
            book.revert(Payout("tAlice", 10))

    def test_revert_twice_rejected(self, book):
        receipt = book.send("tAlice", 10)
        book.revert(receipt)
        with pytest.raises(ValueError):
            book.revert(receipt)
