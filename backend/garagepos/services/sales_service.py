# Overview: Read side of the sales ledger, credit settlement and POS vehicle lookup.

from __future__ import annotations

from datetime import date

from flask import current_app

from ..extensions import db
from ..models import Customer, Sale
from ..models.sales import PAYMENT_CREDIT, PAYMENT_METHODS
from ..validation import NotFoundError, ValidationError, normalize_vehicle_no, resolve_phone
from .checkout_service import CreditAlreadySettled
from garagepos.time_utils import utcnow


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if not sale:
        raise NotFoundError("Sale not found", {"sale_id": sale_id})
    return sale


def list_sales(
    *,
    start: date | None = None,
    end: date | None = None,
    session_id: int | None = None,
    user_id: int | None = None,
    vehicle_no: str | None = None,
    payment_method: str | None = None,
    unpaid_only: bool = False,
    limit: int | None = None,
) -> list[Sale]:
    q = db.session.query(Sale)
    if start:
        q = q.filter(Sale.business_date >= start)
    if end:
        q = q.filter(Sale.business_date <= end)
    if session_id is not None:
        q = q.filter(Sale.session_id == session_id)
    if user_id is not None:
        q = q.filter(Sale.user_id == user_id)
    if vehicle_no:
        q = q.filter(Sale.vehicle_no == normalize_vehicle_no(vehicle_no))
    if payment_method:
        if payment_method not in PAYMENT_METHODS:
            raise ValidationError("payment_method must be 'cash' or 'credit'")
        q = q.filter(Sale.payment_method == payment_method)
    if unpaid_only:
        q = q.filter(Sale.is_paid.is_(False))
    q = q.order_by(Sale.created_at.desc(), Sale.id.desc())
    if limit:
        q = q.limit(limit)
    return q.all()


def vehicle_history(vehicle_no: str) -> list[Sale]:
    """All sales of a vehicle, newest first."""
    vno = normalize_vehicle_no(vehicle_no)
    if not vno:
        raise ValidationError("vehicle_no is required")
    return (
        db.session.query(Sale)
        .filter(Sale.vehicle_no == vno)
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .all()
    )


def unpaid_credit_sales(vehicle_no: str) -> list[Sale]:
    return (
        db.session.query(Sale)
        .filter(
            Sale.vehicle_no == normalize_vehicle_no(vehicle_no),
            Sale.payment_method == PAYMENT_CREDIT,
            Sale.is_paid.is_(False),
        )
        .order_by(Sale.id.asc())
        .all()
    )


def outstanding_credit_cents(*, vehicle_no: str | None = None, phone: str | None = None) -> int:
    q = db.session.query(db.func.coalesce(db.func.sum(Sale.total_cents), 0)).filter(
        Sale.payment_method == PAYMENT_CREDIT,
        Sale.is_paid.is_(False),
    )
    if vehicle_no is not None:
        q = q.filter(Sale.vehicle_no == normalize_vehicle_no(vehicle_no))
    if phone is not None:
        q = q.filter(Sale.customer_phone == phone)
    return int(q.scalar() or 0)


def vehicle_lookup(vehicle_no: str, *, phone: str | None = None) -> dict:
    """
    What the POS shows when a vehicle number is typed: outstanding credit,
    last customer on record, and that customer's loyalty points.
    """
    vno = normalize_vehicle_no(vehicle_no)
    if len(vno) < 2:
        return {"vehicle_no": vno, "known": False, "outstanding_credit_cents": 0, "unpaid_sale_ids": []}

    last = (
        db.session.query(Sale)
        .filter(Sale.vehicle_no == vno)
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .first()
    )
    unpaid = unpaid_credit_sales(vno)

    resolved_phone = resolve_phone(phone) or (resolve_phone(last.customer_phone) if last else None)
    points = 0
    if resolved_phone:
        customer = db.session.query(Customer).filter_by(phone=resolved_phone).first()
        points = customer.points if customer else 0

    return {
        "vehicle_no": vno,
        "known": last is not None,
        "outstanding_credit_cents": sum(s.total_cents for s in unpaid),
        "unpaid_sale_ids": [s.id for s in unpaid],
        "last_customer_name": last.customer_name if last else None,
        "last_customer_phone": last.customer_phone if last else None,
        "last_mileage": last.mileage if last else None,
        "customer_phone": resolved_phone,
        "points": points,
    }


def mark_as_paid(sale_id: int) -> Sale:
    """Settle one credit sale outside a checkout. is_paid only goes false -> true."""
    sale = get_sale(sale_id)
    if sale.payment_method != PAYMENT_CREDIT:
        raise ValidationError("Only credit sales can be marked as paid", {"sale_id": sale_id})

    updated = (
        db.session.query(Sale)
        .filter(Sale.id == sale_id, Sale.payment_method == PAYMENT_CREDIT, Sale.is_paid.is_(False))
        .update(
            {Sale.is_paid: True, Sale.paid_at: utcnow(), Sale.version_id: Sale.version_id + 1},
            synchronize_session=False,
        )
    )
    if updated != 1:
        db.session.rollback()
        raise CreditAlreadySettled("Sale is already paid", {"sale_id": sale_id})
    db.session.commit()
    db.session.refresh(sale)
    current_app.logger.info("Credit sale %s marked as paid", sale_id)
    return sale
