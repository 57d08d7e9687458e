"""
Resale pricing and fee arithmetic for TicketFlow.

All amounts are integers in the smallest currency unit and every
percentage is applied with floor division:

    max resale price = face_value * max_resale_percent // 100
    organizer fee    = resale_price * fee_percent // 100
    seller proceeds  = resale_price - organizer fee

The rounding remainder of the fee stays with the seller, so
``fee + proceeds == price`` always holds exactly.
"""

from __future__ import annotations

from dataclasses import dataclass


# ── Constants ────────────────────────────────────────────────────

PERCENT_DENOMINATOR: int = 100
MIN_RESALE_PERCENT: int = 100    # resale cap can never undercut face value
MAX_FEE_PERCENT: int = 100


@dataclass(frozen=True)
class ResaleSplit:
    """How one resale payment is divided."""
    price: int
    fee: int        # routed to the organizer
    proceeds: int   # routed to the previous owner

    def to_dict(self) -> dict:
        return {
            "price": self.price,
            "organizer_fee": self.fee,
            "seller_proceeds": self.proceeds,
        }


def max_resale_price(face_value: int, max_resale_percent: int) -> int:
    return face_value * max_resale_percent // PERCENT_DENOMINATOR


def min_resale_price(face_value: int, min_resale_percent: int) -> int:
    """Resale floor; 0 when no floor is configured."""
    return face_value * min_resale_percent // PERCENT_DENOMINATOR


def organizer_fee(resale_price: int, fee_percent: int) -> int:
    return resale_price * fee_percent // PERCENT_DENOMINATOR


def seller_proceeds(resale_price: int, fee: int) -> int:
    if fee > resale_price:
        raise ValueError(f"fee {fee} exceeds resale price {resale_price}")
    return resale_price - fee


def split_resale(resale_price: int, fee_percent: int) -> ResaleSplit:
    """Compute the organizer/seller split of a resale price."""
    fee = organizer_fee(resale_price, fee_percent)
    return ResaleSplit(
        price=resale_price,
        fee=fee,
        proceeds=seller_proceeds(resale_price, fee),
    )
