# Overview: Checkout engine; commits a cart into a sale as one atomic unit.

"""
Checkout Engine

One checkout is one database transaction:

  a. the session's invoice counter is advanced (conditional UPDATE on an
     open session owned by the cashier); the new value is the invoice number
  b. the sale row is inserted with an immutable snapshot of the cart lines
  c. stock is decremented per part line (WHERE stock >= qty when
     ENFORCE_STOCK_AT_COMMIT is on)
  d. credit settlement lines mark their referenced sales paid
     (WHERE is_paid = false; row count must match)
  e. the customer is upserted by phone with clamped loyalty points

Any failure rolls every step back. Journaling happens after the commit and
never affects the sale.
"""
from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass

from flask import current_app
from sqlalchemy import case
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import BusinessSession, Customer, InventoryItem, Sale
from ..models.sales import PAYMENT_CASH, PAYMENT_CREDIT, PAYMENT_METHODS
from ..models.sessions import SESSION_OPEN
from ..validation import (
    ConflictError,
    ValidationError,
    coerce_cents,
    normalize_vehicle_no,
    resolve_phone,
    coerce_int,
)
from .cart import CENTS_PER_POINT, PartLine, CreditSettlementLine
from .concurrency import run_atomic
from .day_service import NoActiveSession
from . import journal_service
from garagepos.time_utils import local_today, utcnow


WALK_IN_NAME = "Walking Customer"
WALK_IN_PHONE = "-"

# 1 point earned per 100 currency units spent
CENTS_PER_EARNED_POINT = 100 * 100


class EmptyCartError(ValidationError):
    pass


class MissingVehicleError(ValidationError):
    pass


class InsufficientStockError(ConflictError):
    pass


class CreditAlreadySettled(ConflictError):
    pass


class SessionOwnershipError(ConflictError):
    pass


@dataclass(frozen=True)
class SaleTotals:
    subtotal_cents: int
    total_buying_price_cents: int
    discount_cents: int
    total_cents: int
    profit_cents: int
    cash_received_cents: int
    balance_cents: int
    earned_points: int


def earned_points_for(total_cents: int) -> int:
    if total_cents <= 0:
        return 0
    return total_cents // CENTS_PER_EARNED_POINT


def compute_totals(lines, *, discount_cents: int, payment_method: str, cash_received_cents: int) -> SaleTotals:
    """Pure sale arithmetic; no validation beyond what the identities need."""
    subtotal = sum(line.line_total_cents for line in lines)
    total_buying = sum(line.line_cost_cents for line in lines if isinstance(line, PartLine))
    total = subtotal - discount_cents
    profit = total - total_buying
    if payment_method == PAYMENT_CASH:
        balance = cash_received_cents - total
    else:
        balance = total
    return SaleTotals(
        subtotal_cents=subtotal,
        total_buying_price_cents=total_buying,
        discount_cents=discount_cents,
        total_cents=total,
        profit_cents=profit,
        cash_received_cents=cash_received_cents,
        balance_cents=balance,
        earned_points=earned_points_for(total),
    )


def _advance_invoice_counter(session_id: int, user_id: int) -> int:
    session = db.session.get(BusinessSession, session_id)
    if not session or not session.is_open:
        raise NoActiveSession("No active business session. Start the day first.", {"session_id": session_id})
    if session.user_id != user_id:
        raise SessionOwnershipError("Business session belongs to another user", {"session_id": session_id})

    updated = (
        db.session.query(BusinessSession)
        .filter(
            BusinessSession.id == session_id,
            BusinessSession.status == SESSION_OPEN,
            BusinessSession.user_id == user_id,
        )
        .update(
            {
                BusinessSession.invoice_counter: BusinessSession.invoice_counter + 1,
                BusinessSession.version_id: BusinessSession.version_id + 1,
            },
            synchronize_session=False,
        )
    )
    if updated != 1:
        raise NoActiveSession("Business session was closed", {"session_id": session_id})

    return (
        db.session.query(BusinessSession.invoice_counter)
        .filter(BusinessSession.id == session_id)
        .scalar()
    )


def _decrement_stock(part_lines: list[PartLine], *, enforce: bool) -> None:
    quantities: "OrderedDict[int, int]" = OrderedDict()
    for line in part_lines:
        quantities[line.item_id] = quantities.get(line.item_id, 0) + line.qty

    for item_id, qty in quantities.items():
        q = db.session.query(InventoryItem).filter(InventoryItem.id == item_id)
        if enforce:
            q = q.filter(InventoryItem.stock >= qty)
        updated = q.update(
            {
                InventoryItem.stock: InventoryItem.stock - qty,
                InventoryItem.version_id: InventoryItem.version_id + 1,
            },
            synchronize_session=False,
        )
        if updated != 1 and enforce:
            available = (
                db.session.query(InventoryItem.stock).filter(InventoryItem.id == item_id).scalar()
            )
            raise InsufficientStockError(
                "Insufficient stock",
                {"item_id": item_id, "requested": qty, "available": available},
            )


def _settle_credit(credit_lines: list[CreditSettlementLine]) -> list[int]:
    ids = sorted({sid for line in credit_lines for sid in line.original_sale_ids})
    if not ids:
        return []
    updated = (
        db.session.query(Sale)
        .filter(
            Sale.id.in_(ids),
            Sale.payment_method == PAYMENT_CREDIT,
            Sale.is_paid.is_(False),
        )
        .update(
            {
                Sale.is_paid: True,
                Sale.paid_at: utcnow(),
                Sale.version_id: Sale.version_id + 1,
            },
            synchronize_session=False,
        )
    )
    if updated != len(ids):
        raise CreditAlreadySettled(
            "Outstanding credit changed; reload the vehicle's credit",
            {"sale_ids": ids, "settled_now": updated},
        )
    return ids


def _apply_points(customer_id: int, *, name: str, vehicle_no: str, redeemed: int, earned: int) -> None:
    new_points = Customer.points - redeemed + earned
    updated = (
        db.session.query(Customer)
        .filter(Customer.id == customer_id, Customer.points >= redeemed)
        .update(
            {
                Customer.name: name,
                Customer.vehicle_no: vehicle_no,
                Customer.points: case((new_points < 0, 0), else_=new_points),
                Customer.version_id: Customer.version_id + 1,
            },
            synchronize_session=False,
        )
    )
    if updated != 1:
        raise ValidationError("Customer does not have enough points", {"redeemed_points": redeemed})


def _upsert_customer(phone: str, *, name: str, vehicle_no: str, redeemed: int, earned: int) -> None:
    existing_id = db.session.query(Customer.id).filter(Customer.phone == phone).scalar()
    if existing_id is not None:
        _apply_points(existing_id, name=name, vehicle_no=vehicle_no, redeemed=redeemed, earned=earned)
        return

    if redeemed > 0:
        raise ValidationError("Customer does not have enough points", {"redeemed_points": redeemed})

    try:
        with db.session.begin_nested():
            db.session.add(Customer(name=name, phone=phone, vehicle_no=vehicle_no, points=max(0, earned)))
    except IntegrityError:
        # Another terminal created the same phone first
        existing_id = db.session.query(Customer.id).filter(Customer.phone == phone).scalar()
        _apply_points(existing_id, name=name, vehicle_no=vehicle_no, redeemed=redeemed, earned=earned)


def checkout(
    cart,
    *,
    session_id: int,
    user_id: int,
    vehicle_no: str | None,
    customer_name: str | None = None,
    customer_phone: str | None = None,
    mileage=0,
    discount_cents=None,
    payment_method: str = PAYMENT_CASH,
    cash_received_cents=0,
    redeemed_points=None,
) -> Sale:
    # -- validation, before any mutation ----------------------------------
    if cart is None or cart.is_empty:
        raise EmptyCartError("Cart is empty!")

    vno = normalize_vehicle_no(vehicle_no)
    if not vno:
        raise MissingVehicleError("Please enter Vehicle Number")

    method = (payment_method or "").strip().lower()
    if method not in PAYMENT_METHODS:
        raise ValidationError("payment_method must be 'cash' or 'credit'", {"payment_method": payment_method})

    discount = cart.discount_cents if discount_cents is None else coerce_cents(discount_cents, "discount_cents", default=0)
    redeemed = cart.redeemed_points if redeemed_points is None else coerce_int(redeemed_points, "redeemed_points")
    if redeemed < 0:
        raise ValidationError("redeemed_points must be >= 0")
    if redeemed * CENTS_PER_POINT > discount:
        raise ValidationError("Redeemed points must be covered by the discount")

    mileage_value = coerce_int(mileage if mileage not in (None, "") else 0, "mileage")
    if mileage_value < 0:
        raise ValidationError("mileage must be >= 0")

    cash_received = coerce_cents(cash_received_cents, "cash_received_cents", default=0)

    name = (customer_name or "").strip() or WALK_IN_NAME
    phone = resolve_phone(customer_phone)
    if redeemed and phone is None:
        raise ValidationError("Points can only be redeemed for a customer with a phone number")
    redeemed_phone = cart.redeemed_phone
    if redeemed and redeemed_phone and redeemed_phone != phone:
        # Points were checked against another customer's balance
        raise ValidationError(
            "Points were redeemed for a different customer",
            {"redeemed_phone": redeemed_phone, "customer_phone": phone},
        )

    lines = list(cart.lines)
    totals = compute_totals(lines, discount_cents=discount, payment_method=method, cash_received_cents=cash_received)
    if discount > totals.subtotal_cents:
        raise ValidationError("Discount cannot exceed the subtotal", {"subtotal_cents": totals.subtotal_cents})

    enforce_stock = current_app.config.get("ENFORCE_STOCK_AT_COMMIT", True)
    part_lines = cart.part_lines()
    credit_lines = cart.credit_lines()
    items_snapshot = [line.to_snapshot() for line in lines]

    # -- one atomic unit ---------------------------------------------------
    def _unit() -> Sale:
        invoice_no = _advance_invoice_counter(session_id, user_id)

        sale = Sale(
            invoice_no=invoice_no,
            session_id=session_id,
            user_id=user_id,
            vehicle_no=vno,
            customer_name=name,
            customer_phone=phone or WALK_IN_PHONE,
            mileage=mileage_value,
            items=items_snapshot,
            subtotal_cents=totals.subtotal_cents,
            discount_cents=totals.discount_cents,
            total_cents=totals.total_cents,
            cash_received_cents=totals.cash_received_cents,
            balance_cents=totals.balance_cents,
            profit_cents=totals.profit_cents,
            redeemed_points=redeemed,
            payment_method=method,
            is_paid=(method == PAYMENT_CASH),
            paid_at=utcnow() if method == PAYMENT_CASH else None,
            business_date=local_today(),
            created_at=utcnow(),
        )
        db.session.add(sale)
        db.session.flush()

        _decrement_stock(part_lines, enforce=enforce_stock)
        _settle_credit(credit_lines)

        if phone is not None:
            _upsert_customer(phone, name=name, vehicle_no=vno, redeemed=redeemed, earned=totals.earned_points)

        return sale

    sale = run_atomic(_unit, label="Checkout")

    current_app.logger.info(
        "Sale %s committed: session %s invoice %s total %s cents (%s)",
        sale.id, sale.session_id, sale.invoice_no, sale.total_cents, sale.payment_method,
    )
    journal_service.record_sale(sale)
    return sale
