"""
Reporting tests: dashboard, summaries, product/category performance, stock.
"""

from datetime import timedelta

import pytest

from garagepos.services import checkout_service, expense_service, reporting_service
from garagepos.services.cart import Cart
from garagepos.services.catalog_service import CatalogItem
from garagepos.time_utils import local_today
from garagepos.validation import ValidationError


@pytest.fixture
def trading_day(staff_user, open_day, make_item):
    """One cash sale of 2 filters + 1 brake pad, one credit charge."""
    day = open_day(staff_user, 100000)
    filters = make_item(part_name="Oil Filter", part_number="OF-100", category="Filters",
                        price_cents=1000, buying_price_cents=600, stock=10)
    pads = make_item(part_name="Brake Pads", part_number="BP-F1", category="Brakes",
                     price_cents=5000, buying_price_cents=4000, stock=4)

    cart = Cart()
    cart.add_part(CatalogItem.from_model(filters))
    cart.add_part(CatalogItem.from_model(filters))
    cart.add_part(CatalogItem.from_model(pads))
    checkout_service.checkout(
        cart, session_id=day.id, user_id=staff_user.id, vehicle_no="CAB-1",
        payment_method="cash", cash_received_cents=7000,
    )

    credit = Cart()
    credit.add_charge("Labour", 3000)
    checkout_service.checkout(
        credit, session_id=day.id, user_id=staff_user.id, vehicle_no="XY-2",
        payment_method="credit",
    )
    return {"day": day, "filters": filters, "pads": pads}


class TestDashboard:
    def test_today_figures(self, trading_day, staff_user):
        expense_service.create_expense({"category": "Tea", "amount_cents": 500}, user_id=staff_user.id)

        data = reporting_service.dashboard()

        assert data["today_sales_count"] == 2
        assert data["today_revenue_cents"] == 10000
        assert data["today_gross_profit_cents"] == (7000 - 5200) + 3000
        assert data["today_expenses_cents"] == 500
        assert data["today_net_profit_cents"] == 4800 - 500
        assert data["outstanding_credit_cents"] == 3000
        assert [d["vehicle_no"] for d in data["debtors"]] == ["XY-2"]
        assert len(data["recent_sales"]) == 2

    def test_staff_view_is_limited_to_own_sales(self, trading_day, make_user):
        other = make_user("nimal")
        data = reporting_service.dashboard(user_id=other.id)

        assert data["today_sales_count"] == 0
        assert data["outstanding_credit_cents"] == 0
        assert data["recent_sales"] == []


class TestSummaries:
    def test_sales_summary_by_day(self, trading_day):
        today = local_today()
        data = reporting_service.sales_summary(start=today, end=today, group_by="day")

        assert data["rows"] == [{
            "period": today.isoformat(),
            "sales_count": 2,
            "revenue_cents": 10000,
            "profit_cents": 4800,
            "discount_cents": 0,
        }]
        assert data["total_revenue_cents"] == 10000

    def test_sales_summary_by_month(self, trading_day):
        data = reporting_service.sales_summary(start=None, end=None, group_by="month")
        assert [r["period"] for r in data["rows"]] == [local_today().strftime("%Y-%m")]

    def test_invalid_grouping_and_range(self, db_session):
        today = local_today()
        with pytest.raises(ValidationError):
            reporting_service.sales_summary(start=None, end=None, group_by="week")
        with pytest.raises(ValidationError, match="cannot be after"):
            reporting_service.sales_summary(start=today, end=today - timedelta(days=1))

    def test_daily_report(self, trading_day, staff_user):
        expense_service.create_expense({"category": "Fuel", "amount_cents": 800}, user_id=staff_user.id)

        data = reporting_service.daily_report(local_today())

        assert len(data["sales"]) == 2
        assert data["expenses_cents"] == 800
        assert data["net_profit_cents"] == 4800 - 800


class TestProducts:
    def test_product_performance_sorted_by_quantity(self, trading_day):
        rows = reporting_service.product_performance()

        assert [(r["part_number"], r["qty"], r["revenue_cents"]) for r in rows] == [
            ("OF-100", 2, 2000),
            ("BP-F1", 1, 5000),
        ]

    def test_category_breakdown(self, trading_day):
        data = reporting_service.category_breakdown()

        assert {r["category"]: r["qty"] for r in data["rows"]} == {"Filters": 2, "Brakes": 1}
        assert data["total_revenue_cents"] == 7000

    def test_stock_report_flags_low_stock(self, trading_day):
        data = reporting_service.stock_report(low_stock_threshold=3)

        low = {r["part_number"] for r in data["items"] if r["is_low_stock"]}
        assert low == {"BP-F1"}
        assert data["stock_value_cents"] == 8 * 600 + 3 * 4000
        assert data["potential_revenue_cents"] == 8 * 1000 + 3 * 5000

    def test_stock_movement(self, trading_day):
        rows = {r["part_number"]: r for r in reporting_service.stock_movement()["rows"]}

        assert rows["OF-100"]["sold"] == 2
        assert rows["OF-100"]["available"] == 8
        assert rows["OF-100"]["total_handled"] == 10
        assert rows["BP-F1"]["revenue_cents"] == 5000


class TestPeriodSnapshot:
    def test_snapshot_contains_period_records(self, trading_day):
        today = local_today()
        data = reporting_service.period_snapshot(start=today, end=today)

        assert len(data["sales"]) == 2
        assert [s["id"] for s in data["sessions"]] == [trading_day["day"].id]
        assert data["day_end_reports"] == []

    def test_snapshot_needs_both_dates(self, db_session):
        with pytest.raises(ValidationError):
            reporting_service.period_snapshot(start=None, end=local_today())
