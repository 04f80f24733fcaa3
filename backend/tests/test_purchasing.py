"""
Purchasing tests: suppliers, GRN stock/cost posting, supplier payments.
"""

from datetime import timedelta

import pytest

from garagepos.models import GoodsReceivedNote, InventoryItem
from garagepos.services import purchasing_service
from garagepos.time_utils import local_today
from garagepos.validation import ConflictError, NotFoundError, ValidationError


@pytest.fixture
def supplier(db_session):
    return purchasing_service.create_supplier({"name": "Lanka Auto Parts", "phone": "0112345678"})


def _grn(supplier, *lines, paid_cents=0, reference=None):
    return purchasing_service.create_grn(
        {
            "supplier_id": supplier.id,
            "reference": reference,
            "paid_cents": paid_cents,
            "items": [{"item_id": i, "qty": q, "cost_cents": c} for i, q, c in lines],
        },
        user_id=None,
    )


class TestSuppliers:
    def test_supplier_names_are_unique(self, supplier):
        with pytest.raises(ConflictError):
            purchasing_service.create_supplier({"name": "Lanka Auto Parts"})

    def test_name_required(self, db_session):
        with pytest.raises(ValidationError, match="name is required"):
            purchasing_service.create_supplier({"name": "  "})

    def test_update_supplier(self, supplier):
        updated = purchasing_service.update_supplier(supplier.id, {"name": "Lanka Auto", "address": "Colombo"})
        assert updated.name == "Lanka Auto"
        assert updated.address == "Colombo"
        assert updated.phone is None


class TestGoodsReceived:
    def test_grn_adds_stock_and_overwrites_cost(self, db_session, supplier, make_item):
        item = make_item(stock=5, buying_price_cents=80)

        grn = _grn(supplier, (item.id, 10, 100))

        refreshed = db_session.get(InventoryItem, item.id)
        assert refreshed.stock == 15
        assert refreshed.buying_price_cents == 100
        assert grn.total_cents == 1000
        assert grn.supplier == "Lanka Auto Parts"
        assert grn.items[0]["part_name"] == "Oil Filter"

    def test_same_cost_lines_merge_and_later_cost_wins(self, db_session, supplier, make_item):
        item = make_item(stock=0)

        grn = _grn(supplier, (item.id, 2, 100), (item.id, 3, 100), (item.id, 1, 120))

        assert [(line["qty"], line["cost_cents"]) for line in grn.items] == [(5, 100), (1, 120)]
        refreshed = db_session.get(InventoryItem, item.id)
        assert refreshed.stock == 6
        assert refreshed.buying_price_cents == 120

    def test_unknown_item_rolls_back_whole_grn(self, db_session, supplier, make_item):
        item = make_item(stock=5)

        with pytest.raises(NotFoundError):
            _grn(supplier, (item.id, 10, 100), (9999, 1, 100))

        assert db_session.get(InventoryItem, item.id).stock == 5
        assert db_session.query(GoodsReceivedNote).count() == 0

    @pytest.mark.parametrize(
        "payload,message",
        [
            ({"items": [{"item_id": 1, "qty": 1, "cost_cents": 1}]}, "registered supplier"),
            ({"supplier_id": "__supplier__", "items": []}, "items list is empty"),
            ({"supplier_id": "__supplier__", "items": [{"item_id": 1, "qty": 0, "cost_cents": 1}]}, "qty"),
        ],
    )
    def test_invalid_grn(self, supplier, payload, message):
        if payload.get("supplier_id") == "__supplier__":
            payload = dict(payload, supplier_id=supplier.id)
        with pytest.raises(ValidationError, match=message):
            purchasing_service.create_grn(payload, user_id=None)

    def test_paid_cannot_exceed_total(self, supplier, make_item):
        item = make_item()
        with pytest.raises(ValidationError, match="cannot exceed"):
            _grn(supplier, (item.id, 1, 100), paid_cents=101)

    def test_delete_grn_keeps_stock(self, db_session, supplier, make_item):
        item = make_item(stock=0)
        grn = _grn(supplier, (item.id, 4, 100))

        purchasing_service.delete_grn(grn.id)

        assert db_session.get(InventoryItem, item.id).stock == 4
        with pytest.raises(NotFoundError):
            purchasing_service.get_grn(grn.id)

    def test_grn_report(self, supplier, make_item):
        item = make_item()
        _grn(supplier, (item.id, 2, 500), paid_cents=400)
        _grn(supplier, (item.id, 1, 300))

        today = local_today()
        report = purchasing_service.grn_report(today, today)
        assert report["count"] == 2
        assert report["total_cents"] == 1300
        assert report["outstanding_cents"] == 900

        with pytest.raises(ValidationError):
            purchasing_service.grn_report(today, today - timedelta(days=1))


class TestSupplierPayments:
    def test_payment_is_allocated_oldest_first(self, supplier, make_item):
        item = make_item()
        old = _grn(supplier, (item.id, 1, 1000), paid_cents=200)
        new = _grn(supplier, (item.id, 1, 500))

        allocation = purchasing_service.pay_supplier(supplier.id, 1000)

        assert allocation.allocations == ((old.id, 800), (new.id, 200))
        assert allocation.unallocated_cents == 0
        ledger = purchasing_service.supplier_ledger(supplier.id)
        assert ledger["total_purchased_cents"] == 1500
        assert ledger["total_paid_cents"] == 1200
        assert ledger["net_balance_cents"] == 300

    def test_overpayment_is_reported_unallocated(self, supplier, make_item):
        item = make_item()
        _grn(supplier, (item.id, 1, 500))

        allocation = purchasing_service.pay_supplier(supplier.id, 800)

        assert allocation.allocated_cents == 500
        assert allocation.unallocated_cents == 300
        assert allocation.to_dict()["allocations"][0]["amount_cents"] == 500

    def test_balances_cover_suppliers_without_grns(self, supplier, make_item):
        other = purchasing_service.create_supplier({"name": "Silva Motors"})
        item = make_item()
        _grn(supplier, (item.id, 3, 100), paid_cents=100)

        balances = {row["id"]: row for row in purchasing_service.supplier_balances()}

        assert balances[supplier.id]["outstanding_cents"] == 200
        assert balances[other.id]["outstanding_cents"] == 0

    def test_zero_payment_rejected(self, supplier):
        with pytest.raises(ValidationError):
            purchasing_service.pay_supplier(supplier.id, 0)
