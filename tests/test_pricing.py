"""
Test suite for ticketflow_core.pricing: resale caps and fee splits.

Covers:
  - max / min resale price with floor division
  - organizer fee rounding (remainder accrues to the seller)
  - seller proceeds underflow guard
  - fee conservation across a range of prices and percentages
"""

import unittest

from ticketflow_core.pricing import (
    ResaleSplit,
    max_resale_price,
    min_resale_price,
    organizer_fee,
    seller_proceeds,
    split_resale,
)


class TestResalePriceBounds(unittest.TestCase):

    def test_max_resale_price_reference(self):
        self.assertEqual(max_resale_price(100, 150), 150)

    def test_max_resale_price_at_face_value(self):
        self.assertEqual(max_resale_price(100, 100), 100)

    def test_max_resale_price_floors(self):
        # 33 * 150 / 100 = 49.5
        self.assertEqual(max_resale_price(33, 150), 49)

    def test_min_resale_price_disabled(self):
        self.assertEqual(min_resale_price(100, 0), 0)

    def test_min_resale_price_floors(self):
        self.assertEqual(min_resale_price(33, 90), 29)


class TestFees(unittest.TestCase):

    def test_organizer_fee_reference(self):
        self.assertEqual(organizer_fee(150, 10), 15)

    def test_organizer_fee_rounds_down(self):
        self.assertEqual(organizer_fee(149, 10), 14)

    def test_zero_fee_percent(self):
        self.assertEqual(organizer_fee(150, 0), 0)

    def test_full_fee_percent(self):
        self.assertEqual(organizer_fee(150, 100), 150)

    def test_seller_proceeds(self):
        self.assertEqual(seller_proceeds(150, 15), 135)

    def test_seller_proceeds_underflow_rejected(self):
        with self.assertRaises(ValueError):
            seller_proceeds(10, 11)


class TestSplitResale(unittest.TestCase):

    def test_reference_split(self):
        split = split_resale(150, 10)
        self.assertEqual(split, ResaleSplit(price=150, fee=15, proceeds=135))

    def test_remainder_goes_to_seller(self):
        split = split_resale(149, 10)
        self.assertEqual(split.fee, 14)
        self.assertEqual(split.proceeds, 135)

    def test_fee_conservation(self):
        for price in (1, 7, 99, 100, 101, 149, 150, 1_234_567):
            for pct in (0, 1, 3, 10, 33, 99, 100):
                split = split_resale(price, pct)
                self.assertEqual(split.fee + split.proceeds, price,
                                 f"price={price} pct={pct}")
                self.assertGreaterEqual(split.proceeds, 0)

    def test_to_dict(self):
        d = split_resale(150, 10).to_dict()
        self.assertEqual(d, {"price": 150, "organizer_fee": 15, "seller_proceeds": 135})


if __name__ == "__main__":
    unittest.main()
