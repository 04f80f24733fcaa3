"""
Cart composition tests.

Pure in-memory behavior: merging part lines, stock guards, charges,
credit settlement lines, discounts and loyalty redemption.
"""

from types import SimpleNamespace

import pytest

from garagepos.services.cart import Cart, CreditSettlementLine, PartLine
from garagepos.services.catalog_service import CatalogItem, CatalogService
from garagepos.validation import ValidationError


def _item(item_id=1, stock=3, price_cents=150000, buying_price_cents=110000):
    return CatalogItem(
        id=item_id,
        part_name=f"Part {item_id}",
        part_number=f"P-{item_id}",
        category="Filters",
        price_cents=price_cents,
        buying_price_cents=buying_price_cents,
        stock=stock,
    )


class TestPartLines:
    def test_same_item_merges_into_one_line(self):
        cart = Cart()
        cart.add_part(_item())
        cart.add_part(_item())

        assert len(cart) == 1
        assert cart.lines[0].qty == 2
        assert cart.subtotal_cents == 300000

    def test_cannot_exceed_catalog_stock(self):
        cart = Cart()
        item = _item(stock=1)
        cart.add_part(item)

        with pytest.raises(ValidationError, match="Maximum stock reached"):
            cart.add_part(item)

    def test_out_of_stock_item_rejected(self):
        with pytest.raises(ValidationError, match="Out of stock"):
            Cart().add_part(_item(stock=0))

    def test_snapshot_carries_cost(self):
        cart = Cart()
        line = cart.add_part(_item(buying_price_cents=90000))

        snap = line.to_snapshot()
        assert snap["type"] == "item"
        assert snap["buying_price_cents"] == 90000
        assert snap["line_total_cents"] == 150000

    def test_missing_cost_falls_back_to_price(self):
        line = PartLine(
            item_id=1, part_name="X", part_number=None, category=None,
            price_cents=5000, buying_price_cents=None, qty=2,
        )
        assert line.line_cost_cents == 10000


class TestOtherLines:
    def test_each_service_click_is_its_own_line(self):
        cart = Cart()
        wash = CatalogService(id=1, name="Body Wash", price_cents=150000)
        cart.add_service(wash)
        cart.add_service(wash)

        assert len(cart) == 2
        assert cart.subtotal_cents == 300000

    def test_charge_defaults_name(self):
        cart = Cart()
        line = cart.add_charge("  ", 25000)
        assert line.name == "Service Charge"

    @pytest.mark.parametrize("amount", [0, -100, "abc", None])
    def test_charge_requires_positive_amount(self, amount):
        with pytest.raises(ValidationError):
            Cart().add_charge("Labour", amount)

    def test_credit_settlement_sums_unpaid_sales(self):
        cart = Cart()
        unpaid = [SimpleNamespace(id=4, total_cents=80000), SimpleNamespace(id=9, total_cents=20000)]
        line = cart.add_credit_settlement(" cab-1234 ", unpaid)

        assert isinstance(line, CreditSettlementLine)
        assert line.vehicle_no == "CAB-1234"
        assert line.amount_cents == 100000
        assert line.original_sale_ids == (4, 9)
        assert line.to_snapshot()["part_name"] == "OLD CREDIT (CAB-1234)"

    def test_only_one_credit_settlement_per_cart(self):
        cart = Cart()
        unpaid = [SimpleNamespace(id=1, total_cents=500)]
        cart.add_credit_settlement("AB-1", unpaid)
        with pytest.raises(ValidationError, match="Credit already added"):
            cart.add_credit_settlement("AB-1", unpaid)

    def test_credit_settlement_without_debt_rejected(self):
        with pytest.raises(ValidationError, match="No outstanding credit"):
            Cart().add_credit_settlement("AB-1", [])

    def test_remove_line_by_index(self):
        cart = Cart()
        cart.add_charge("A", 100)
        cart.add_charge("B", 200)
        removed = cart.remove(0)

        assert removed.name == "A"
        assert [line.name for line in cart.lines] == ["B"]
        with pytest.raises(ValidationError):
            cart.remove(5)


class TestDiscountAndPoints:
    def test_total_is_subtotal_minus_discount(self):
        cart = Cart()
        cart.add_charge("Labour", 100000)
        cart.set_discount(15000)

        assert cart.total_cents == 85000
        assert cart.to_dict()["discount_cents"] == 15000

    def test_redeeming_points_raises_discount_by_points(self):
        cart = Cart()
        cart.add_charge("Labour", 100000)

        redeemed = cart.apply_points(available_points=300, points=250)

        assert redeemed == 250
        assert cart.discount_cents == 25000
        assert cart.total_cents == 75000

    def test_redemption_remembers_the_customer(self):
        cart = Cart()
        cart.add_charge("Labour", 100000)

        cart.apply_points(available_points=300, points=20, phone="0771234567")

        assert cart.redeemed_phone == "0771234567"
        assert cart.to_dict()["redeemed_phone"] == "0771234567"

    def test_default_redemption_is_capped_by_bill(self):
        cart = Cart()
        cart.add_charge("Labour", 5000)
        assert cart.apply_points(available_points=300) == 50
        assert cart.total_cents == 0

    def test_redeem_more_than_available_rejected(self):
        cart = Cart()
        cart.add_charge("Labour", 100000)
        with pytest.raises(ValidationError, match="Not enough points"):
            cart.apply_points(available_points=10, points=11)
        assert cart.discount_cents == 0

    def test_redeem_more_than_bill_rejected(self):
        cart = Cart()
        cart.add_charge("Labour", 1000)
        with pytest.raises(ValidationError, match="exceeds the bill"):
            cart.apply_points(available_points=100, points=11)

    def test_points_redeemed_once_per_cart(self):
        cart = Cart()
        cart.add_charge("Labour", 100000)
        cart.apply_points(available_points=100, points=10)
        with pytest.raises(ValidationError, match="already redeemed"):
            cart.apply_points(available_points=100, points=10)

    def test_discount_cannot_drop_below_redeemed_points(self):
        cart = Cart()
        cart.add_charge("Labour", 100000)
        cart.apply_points(available_points=100, points=10)
        with pytest.raises(ValidationError):
            cart.set_discount(500)

    def test_clear_resets_everything(self):
        cart = Cart()
        cart.add_charge("Labour", 100000)
        cart.apply_points(available_points=100, points=10, phone="0771234567")
        cart.clear()

        assert cart.is_empty
        assert cart.to_dict() == {
            "lines": [],
            "subtotal_cents": 0,
            "discount_cents": 0,
            "redeemed_points": 0,
            "redeemed_phone": None,
            "total_cents": 0,
        }
