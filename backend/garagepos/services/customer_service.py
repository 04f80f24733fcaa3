# Overview: Customers, vehicle profiles and service reminders.

"""
Customer Service

Customers are keyed by phone and mostly maintained by checkout; this module
adds manual registration/edit, customer details with purchase history, and
vehicle profiles with photos.

Service reminders are derived from the sales ledger: a vehicle is due
SERVICE_REMINDER_DAYS after its last visit, at last mileage +
SERVICE_REMINDER_MILEAGE.
"""
from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from datetime import date, timedelta
from urllib.parse import quote

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Customer, Sale, Vehicle
from ..validation import (
    NotFoundError,
    ValidationError,
    coerce_int,
    normalize_vehicle_no,
    resolve_phone,
)
from . import sales_service
from garagepos.time_utils import local_today


VEHICLE_FIELDS = ("model", "year", "engine", "chassis", "notes")
REMINDER_FILTERS = {"all", "overdue", "upcoming"}
UPCOMING_WINDOW_DAYS = 7


# ---------------------------------------------------------------------------
# Customers
# ---------------------------------------------------------------------------

def list_customers(*, search: str | None = None) -> list[Customer]:
    q = db.session.query(Customer)
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(db.or_(Customer.name.ilike(like), Customer.phone.ilike(like), Customer.vehicle_no.ilike(like)))
    return q.order_by(Customer.name.asc(), Customer.id.asc()).all()


def get_customer_by_phone(phone: str) -> Customer:
    resolved = resolve_phone(phone)
    customer = db.session.query(Customer).filter_by(phone=resolved).first() if resolved else None
    if not customer:
        raise NotFoundError("Customer not found", {"phone": phone})
    return customer


def upsert_customer(payload: dict) -> tuple[Customer, bool]:
    """
    Register or edit a customer by phone. Returns (customer, created).

    points, when given, overwrites the balance (manual correction).
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    phone = resolve_phone(payload.get("phone"))
    if not phone:
        raise ValidationError("phone is required")
    name = (payload.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required")

    points = None
    if payload.get("points") not in (None, ""):
        points = coerce_int(payload.get("points"), "points")
        if points < 0:
            raise ValidationError("points must be >= 0")

    vehicle_no = normalize_vehicle_no(payload.get("vehicle_no")) or None

    customer = db.session.query(Customer).filter_by(phone=phone).first()
    created = customer is None
    if created:
        customer = Customer(phone=phone, name=name, vehicle_no=vehicle_no, points=points or 0)
        db.session.add(customer)
    else:
        customer.name = name
        if vehicle_no:
            customer.vehicle_no = vehicle_no
        if points is not None:
            customer.points = points
    db.session.commit()
    return customer, created


def customer_details(phone: str) -> dict:
    customer = get_customer_by_phone(phone)
    sales = (
        db.session.query(Sale)
        .filter(Sale.customer_phone == customer.phone)
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .all()
    )
    pending = [s for s in sales if s.is_outstanding_credit]
    return {
        "customer": customer.to_dict(),
        "sales": [s.to_dict() for s in sales],
        "total_spent_cents": sum(s.total_cents for s in sales),
        "outstanding_credit_cents": sum(s.total_cents for s in pending),
        "unpaid_sale_ids": [s.id for s in pending],
    }


def customer_overview() -> dict:
    """Header figures of the customers screen."""
    total_points = db.session.query(func.coalesce(func.sum(Customer.points), 0)).scalar()
    return {
        "customer_count": db.session.query(func.count(Customer.id)).scalar() or 0,
        "total_points": int(total_points or 0),
        "total_outstanding_cents": sales_service.outstanding_credit_cents(),
    }


# ---------------------------------------------------------------------------
# Vehicles
# ---------------------------------------------------------------------------

def list_vehicles(*, search: str | None = None) -> list[Vehicle]:
    q = db.session.query(Vehicle)
    if search:
        q = q.filter(Vehicle.vehicle_no.ilike(f"%{search.strip()}%"))
    return q.order_by(Vehicle.vehicle_no.asc()).all()


def get_vehicle(vehicle_no: str) -> Vehicle:
    vehicle = db.session.query(Vehicle).filter_by(vehicle_no=normalize_vehicle_no(vehicle_no)).first()
    if not vehicle:
        raise NotFoundError("Vehicle not found", {"vehicle_no": vehicle_no})
    return vehicle


def _find_or_create_vehicle(vehicle_no: str, customer_phone: str | None) -> Vehicle:
    vno = normalize_vehicle_no(vehicle_no)
    if not vno:
        raise ValidationError("vehicle_no is required")
    vehicle = db.session.query(Vehicle).filter_by(vehicle_no=vno).first()
    if vehicle is None:
        vehicle = Vehicle(vehicle_no=vno, customer_phone=resolve_phone(customer_phone), images=[])
        db.session.add(vehicle)
    return vehicle


def upsert_vehicle(payload: dict) -> Vehicle:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    vehicle = _find_or_create_vehicle(payload.get("vehicle_no"), payload.get("customer_phone"))

    phone = resolve_phone(payload.get("customer_phone"))
    if phone:
        vehicle.customer_phone = phone
    for key in VEHICLE_FIELDS:
        if key in payload:
            value = payload.get(key)
            setattr(vehicle, key, str(value).strip() if value not in (None, "") else None)
    db.session.commit()
    return vehicle


def add_vehicle_images(vehicle_no: str, images: list, *, customer_phone: str | None = None) -> Vehicle:
    """Append photos (data URLs); creates the profile if missing."""
    if not isinstance(images, list) or not images:
        raise ValidationError("images must be a non-empty list")
    if any(not isinstance(img, str) or not img.strip() for img in images):
        raise ValidationError("images must be strings")

    vehicle = _find_or_create_vehicle(vehicle_no, customer_phone)
    # Reassign so the JSON column is marked dirty
    vehicle.images = list(vehicle.images or []) + [img.strip() for img in images]
    db.session.commit()
    return vehicle


def remove_vehicle_image(vehicle_no: str, index: int) -> Vehicle:
    vehicle = get_vehicle(vehicle_no)
    images = list(vehicle.images or [])
    if index < 0 or index >= len(images):
        raise NotFoundError("Image not found", {"index": index})
    images.pop(index)
    vehicle.images = images
    db.session.commit()
    return vehicle


# ---------------------------------------------------------------------------
# Service reminders
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ServiceReminder:
    vehicle_no: str
    customer_name: str
    customer_phone: str
    last_date: date
    last_mileage: int
    next_mileage_due: int
    due_date: date
    days_left: int

    @property
    def is_overdue(self) -> bool:
        return self.days_left < 0

    def to_dict(self) -> dict:
        data = asdict(self)
        data["last_date"] = self.last_date.isoformat()
        data["due_date"] = self.due_date.isoformat()
        data["is_overdue"] = self.is_overdue
        data["whatsapp_url"] = whatsapp_reminder_link(self.customer_phone, self.vehicle_no, self.next_mileage_due)
        return data


def service_reminders(*, search: str | None = None, status: str = "all", today: date | None = None) -> list[ServiceReminder]:
    if status not in REMINDER_FILTERS:
        raise ValidationError(f"filter must be one of: {', '.join(sorted(REMINDER_FILTERS))}")
    today = today or local_today()
    interval = timedelta(days=current_app.config.get("SERVICE_REMINDER_DAYS", 90))
    mileage_step = current_app.config.get("SERVICE_REMINDER_MILEAGE", 5000)

    # Last sale per vehicle
    latest_ids = db.select(func.max(Sale.id)).group_by(Sale.vehicle_no)
    last_sales = db.session.query(Sale).filter(Sale.id.in_(latest_ids)).all()

    needle = (search or "").strip().lower()
    reminders = []
    for sale in last_sales:
        if needle and needle not in sale.vehicle_no.lower() and needle not in (sale.customer_name or "").lower():
            continue
        due = sale.business_date + interval
        days_left = (due - today).days
        if status == "overdue" and days_left >= 0:
            continue
        if status == "upcoming" and not (0 <= days_left <= UPCOMING_WINDOW_DAYS):
            continue
        last_mileage = sale.mileage or 0
        reminders.append(ServiceReminder(
            vehicle_no=sale.vehicle_no,
            customer_name=sale.customer_name,
            customer_phone=sale.customer_phone,
            last_date=sale.business_date,
            last_mileage=last_mileage,
            next_mileage_due=last_mileage + mileage_step if last_mileage > 0 else 0,
            due_date=due,
            days_left=days_left,
        ))

    reminders.sort(key=lambda r: (r.due_date, r.vehicle_no))
    return reminders


def whatsapp_number(phone: str | None) -> str | None:
    resolved = resolve_phone(phone)
    if not resolved:
        return None
    digits = re.sub(r"\D", "", resolved)
    if not digits:
        return None
    country = current_app.config.get("WHATSAPP_COUNTRY_CODE", "94")
    if digits.startswith(country):
        return digits
    if digits.startswith("0"):
        digits = digits[1:]
    return f"{country}{digits}"


def whatsapp_reminder_link(phone: str | None, vehicle_no: str, next_mileage: int) -> str | None:
    number = whatsapp_number(phone)
    if not number:
        return None
    garage = current_app.config.get("GARAGE_NAME", "Garage Master")
    message = (
        f"*{garage.upper()} - SERVICE REMINDER*\n\n"
        f"Hi, Your vehicle *{vehicle_no}* is due for service/oil change.\n"
        f"Next recommended service mileage: *{next_mileage:,} KM*.\n\n"
        f"Please visit *{garage}* for professional care.\n\n"
        "Thank you!"
    )
    return f"https://wa.me/{number}?text={quote(message)}"
