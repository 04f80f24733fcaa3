# Overview: JSON backup export/restore of the store.

"""
Backup Service

export_backup() snapshots every table the GUI cares about into one JSON
document. restore_backup() replaces inventory, services and sales from such
a document (the other sections are informational), in one transaction.
"""
from __future__ import annotations

import json
import os

from flask import current_app

from ..extensions import db
from ..models import (
    BusinessSession,
    Customer,
    DayEndRecord,
    Expense,
    GoodsReceivedNote,
    InventoryItem,
    Sale,
    ServiceDefinition,
    Supplier,
    Vehicle,
)
from ..validation import ValidationError, coerce_cents, coerce_int
from .concurrency import run_atomic
from garagepos.time_utils import local_today, parse_iso_date, parse_iso_datetime, to_utc_z, utcnow


BACKUP_VERSION = "2.0"


def export_backup() -> dict:
    def dump(model, order_by):
        return [row.to_dict() for row in db.session.query(model).order_by(order_by).all()]

    return {
        "version": BACKUP_VERSION,
        "export_date": to_utc_z(utcnow()),
        "inventory": dump(InventoryItem, InventoryItem.id),
        "services": dump(ServiceDefinition, ServiceDefinition.id),
        "sales": dump(Sale, Sale.id),
        "grns": dump(GoodsReceivedNote, GoodsReceivedNote.id),
        "customers": dump(Customer, Customer.id),
        "expenses": dump(Expense, Expense.id),
        "suppliers": dump(Supplier, Supplier.id),
        "vehicles": dump(Vehicle, Vehicle.id),
        "sessions": dump(BusinessSession, BusinessSession.id),
        "day_end_reports": dump(DayEndRecord, DayEndRecord.id),
    }


def backup_file_name(day=None) -> str:
    day = day or local_today()
    return f"GarageMaster_Backup_{day.isoformat()}.json"


def write_backup(folder: str) -> str:
    """Write the export to <folder>/GarageMaster_Backup_<date>.json; returns the path."""
    os.makedirs(folder, exist_ok=True)
    path = os.path.join(folder, backup_file_name())
    with open(path, "w", encoding="utf-8") as fh:
        json.dump(export_backup(), fh, indent=2)
    current_app.logger.info("Backup written to %s", path)
    return path


def _item_from_dict(row: dict) -> InventoryItem:
    price = coerce_cents(row.get("price_cents"), "price_cents", default=0)
    return InventoryItem(
        id=row.get("id"),
        part_name=str(row.get("part_name") or "").strip() or "Unnamed part",
        part_number=row.get("part_number"),
        category=row.get("category"),
        price_cents=price,
        buying_price_cents=coerce_cents(row.get("buying_price_cents"), "buying_price_cents", default=price),
        stock=max(0, coerce_int(row.get("stock") or 0, "stock")),
    )


def _service_from_dict(row: dict) -> ServiceDefinition:
    return ServiceDefinition(
        id=row.get("id"),
        service_name=str(row.get("service_name") or "").strip() or "Service",
        cost_cents=coerce_cents(row.get("cost_cents"), "cost_cents", default=0),
    )


def _sale_from_dict(row: dict) -> Sale:
    required = ("invoice_no", "session_id", "user_id", "vehicle_no", "total_cents", "payment_method")
    missing = [k for k in required if row.get(k) is None]
    if missing:
        raise ValidationError("Invalid backup sale", {"missing": missing, "id": row.get("id")})
    created_at = parse_iso_datetime(row.get("created_at")) or utcnow()
    return Sale(
        id=row.get("id"),
        invoice_no=coerce_int(row["invoice_no"], "invoice_no"),
        session_id=coerce_int(row["session_id"], "session_id"),
        user_id=coerce_int(row["user_id"], "user_id"),
        vehicle_no=str(row["vehicle_no"]),
        customer_name=row.get("customer_name") or "Walking Customer",
        customer_phone=row.get("customer_phone") or "-",
        mileage=coerce_int(row.get("mileage") or 0, "mileage"),
        items=list(row.get("items") or []),
        subtotal_cents=coerce_int(row.get("subtotal_cents", row["total_cents"]), "subtotal_cents"),
        discount_cents=coerce_int(row.get("discount_cents") or 0, "discount_cents"),
        total_cents=coerce_int(row["total_cents"], "total_cents"),
        cash_received_cents=coerce_int(row.get("cash_received_cents") or 0, "cash_received_cents"),
        balance_cents=coerce_int(row.get("balance_cents") or 0, "balance_cents"),
        profit_cents=coerce_int(row.get("profit_cents") or 0, "profit_cents"),
        redeemed_points=coerce_int(row.get("redeemed_points") or 0, "redeemed_points"),
        payment_method=row["payment_method"],
        is_paid=bool(row.get("is_paid")),
        paid_at=parse_iso_datetime(row.get("paid_at")),
        business_date=parse_iso_date(row.get("business_date")) or created_at.date(),
        created_at=created_at,
    )


def restore_backup(data: dict) -> dict:
    """Overwrite inventory, services and sales from a backup document."""
    if not isinstance(data, dict):
        raise ValidationError("Invalid backup file")

    items = [_item_from_dict(r) for r in data.get("inventory") or []]
    services = [_service_from_dict(r) for r in data.get("services") or []]
    sales = [_sale_from_dict(r) for r in data.get("sales") or []]

    def _unit():
        db.session.query(Sale).delete(synchronize_session="fetch")
        db.session.query(ServiceDefinition).delete(synchronize_session="fetch")
        db.session.query(InventoryItem).delete(synchronize_session="fetch")
        db.session.add_all(items + services + sales)
        return {"inventory": len(items), "services": len(services), "sales": len(sales)}

    counts = run_atomic(_unit, label="Backup restore")
    current_app.logger.info("Backup restored: %s", counts)
    return counts
