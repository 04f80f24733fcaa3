"""
Customer, vehicle profile and service reminder tests.
"""

from datetime import date, timedelta
from urllib.parse import unquote

import pytest

from garagepos.models import Customer, Sale
from garagepos.services import customer_service
from garagepos.validation import NotFoundError, ValidationError


TODAY = date(2026, 6, 1)


@pytest.fixture
def add_sale(db_session, staff_user, open_day):
    """Insert a historical sale directly (business_date in the past)."""
    day = open_day(staff_user)
    counter = {"n": 0}

    def _add(vehicle_no, days_ago, *, mileage=40000, name="Nimal", phone="0771234567",
             method="cash", total_cents=10000, is_paid=True):
        counter["n"] += 1
        sale = Sale(
            invoice_no=counter["n"],
            session_id=day.id,
            user_id=staff_user.id,
            vehicle_no=vehicle_no,
            customer_name=name,
            customer_phone=phone,
            mileage=mileage,
            items=[],
            subtotal_cents=total_cents,
            total_cents=total_cents,
            balance_cents=0 if method == "cash" else total_cents,
            profit_cents=total_cents,
            payment_method=method,
            is_paid=is_paid,
            business_date=TODAY - timedelta(days=days_ago),
        )
        db_session.add(sale)
        db_session.commit()
        return sale

    return _add


class TestCustomerUpsert:
    def test_second_customer_with_same_phone_updates_first(self, db_session):
        first, created = customer_service.upsert_customer({"name": "Nimal", "phone": "0771234567"})
        assert created is True

        second, created = customer_service.upsert_customer(
            {"name": "Nimal Perera", "phone": " 0771234567 ", "vehicle_no": "cab-1"}
        )

        assert created is False
        assert second.id == first.id
        assert db_session.query(Customer).count() == 1
        assert second.name == "Nimal Perera"
        assert second.vehicle_no == "CAB-1"

    def test_distinct_phones_are_distinct_customers(self, db_session):
        customer_service.upsert_customer({"name": "Nimal", "phone": "0771111111"})
        customer_service.upsert_customer({"name": "Kasun", "phone": "0772222222"})
        assert db_session.query(Customer).count() == 2

    def test_manual_points_correction(self, db_session):
        customer_service.upsert_customer({"name": "Nimal", "phone": "0771234567"})
        customer, _ = customer_service.upsert_customer({"name": "Nimal", "phone": "0771234567", "points": 40})
        assert customer.points == 40

        with pytest.raises(ValidationError):
            customer_service.upsert_customer({"name": "Nimal", "phone": "0771234567", "points": -1})

    @pytest.mark.parametrize("phone", ["", "-", None])
    def test_walk_in_phone_rejected(self, db_session, phone):
        with pytest.raises(ValidationError, match="phone is required"):
            customer_service.upsert_customer({"name": "Nimal", "phone": phone})

    def test_search(self, db_session):
        customer_service.upsert_customer({"name": "Nimal", "phone": "0771111111", "vehicle_no": "CAB-1"})
        customer_service.upsert_customer({"name": "Kasun", "phone": "0772222222"})

        assert [c.name for c in customer_service.list_customers(search="cab")] == ["Nimal"]
        assert len(customer_service.list_customers()) == 2

    def test_details_include_outstanding_credit(self, add_sale):
        customer_service.upsert_customer({"name": "Nimal", "phone": "0771234567"})
        add_sale("CAB-1", 1, total_cents=5000)
        owed = add_sale("CAB-1", 0, total_cents=7000, method="credit", is_paid=False)

        details = customer_service.customer_details("0771234567")

        assert details["total_spent_cents"] == 12000
        assert details["outstanding_credit_cents"] == 7000
        assert details["unpaid_sale_ids"] == [owed.id]

    def test_unknown_customer(self, db_session):
        with pytest.raises(NotFoundError):
            customer_service.customer_details("0700000000")


class TestVehicles:
    def test_upsert_vehicle_profile(self, db_session):
        vehicle = customer_service.upsert_vehicle(
            {"vehicle_no": "cab-1234", "customer_phone": "0771234567", "model": "Axio", "year": 2015}
        )
        assert vehicle.vehicle_no == "CAB-1234"
        assert vehicle.year == "2015"

        again = customer_service.upsert_vehicle({"vehicle_no": "CAB-1234", "notes": "Needs tyres"})
        assert again.id == vehicle.id
        assert again.model == "Axio"
        assert again.notes == "Needs tyres"

    def test_images_append_and_remove(self, db_session):
        customer_service.add_vehicle_images("CAB-1", ["data:image/png;base64,AAA"])
        vehicle = customer_service.add_vehicle_images("CAB-1", ["data:image/png;base64,BBB"])
        assert len(vehicle.images) == 2

        vehicle = customer_service.remove_vehicle_image("CAB-1", 0)
        assert vehicle.images == ["data:image/png;base64,BBB"]

        with pytest.raises(NotFoundError):
            customer_service.remove_vehicle_image("CAB-1", 5)

    def test_empty_image_list_rejected(self, db_session):
        with pytest.raises(ValidationError):
            customer_service.add_vehicle_images("CAB-1", [])


class TestServiceReminders:
    def test_due_date_from_last_sale(self, add_sale):
        add_sale("CAB-1", 100, mileage=40000)

        [reminder] = customer_service.service_reminders(today=TODAY)

        assert reminder.due_date == TODAY - timedelta(days=10)
        assert reminder.days_left == -10
        assert reminder.is_overdue
        assert reminder.next_mileage_due == 45000

    def test_only_latest_sale_per_vehicle_counts(self, add_sale):
        add_sale("CAB-1", 200, mileage=30000)
        add_sale("CAB-1", 10, mileage=44000)

        [reminder] = customer_service.service_reminders(today=TODAY)
        assert reminder.last_mileage == 44000
        assert not reminder.is_overdue

    def test_filters(self, add_sale):
        add_sale("OVER-1", 100)
        add_sale("SOON-1", 85)
        add_sale("LATER-1", 10)

        def vehicles(status):
            return [r.vehicle_no for r in customer_service.service_reminders(status=status, today=TODAY)]

        assert vehicles("overdue") == ["OVER-1"]
        assert vehicles("upcoming") == ["SOON-1"]
        assert vehicles("all") == ["OVER-1", "SOON-1", "LATER-1"]

        with pytest.raises(ValidationError):
            customer_service.service_reminders(status="late", today=TODAY)

    def test_zero_mileage_has_no_next_mileage(self, add_sale):
        add_sale("CAB-1", 1, mileage=0)
        [reminder] = customer_service.service_reminders(today=TODAY)
        assert reminder.next_mileage_due == 0

    def test_whatsapp_link(self, add_sale):
        add_sale("CAB-1", 100, phone="077 123 4567")

        data = customer_service.service_reminders(today=TODAY)[0].to_dict()

        assert data["whatsapp_url"].startswith("https://wa.me/94771234567?text=")
        assert "*CAB-1*" in unquote(data["whatsapp_url"])
        assert data["is_overdue"] is True

    def test_walk_in_reminder_has_no_link(self, add_sale):
        add_sale("CAB-1", 100, phone="-")
        assert customer_service.service_reminders(today=TODAY)[0].to_dict()["whatsapp_url"] is None
