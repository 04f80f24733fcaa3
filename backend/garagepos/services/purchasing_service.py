# Overview: Suppliers, goods received notes (GRN) and supplier payments.

"""
Purchasing Service

GRN
- posting a GRN is one transaction: the GRN row, stock += qty and
  buying_price_cents := received cost for every line
- this is the only way buying prices change during trading
- lines for the same item at the same cost are merged; the same item at two
  costs stays two lines and the later line's cost becomes the buying price
- deleting a GRN does NOT reverse its stock (manual adjustment if needed)

Supplier payments are allocated to that supplier's GRNs oldest first; any
amount beyond what is owed is reported back as unallocated.
"""
from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from datetime import date

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import GoodsReceivedNote, InventoryItem, Supplier
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    coerce_cents,
    coerce_int,
    coerce_quantity,
)
from .concurrency import run_atomic
from garagepos.time_utils import local_today, utcnow


# ---------------------------------------------------------------------------
# Suppliers
# ---------------------------------------------------------------------------

def _supplier_fields(payload: dict) -> dict:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    name = (payload.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required")
    return {
        "name": name,
        "phone": (payload.get("phone") or "").strip() or None,
        "address": (payload.get("address") or "").strip() or None,
    }


def get_supplier(supplier_id: int) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if not supplier:
        raise NotFoundError("Supplier not found", {"supplier_id": supplier_id})
    return supplier


def create_supplier(payload: dict) -> Supplier:
    supplier = Supplier(**_supplier_fields(payload))
    db.session.add(supplier)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Supplier name already exists", {"name": supplier.name})
    return supplier


def update_supplier(supplier_id: int, payload: dict) -> Supplier:
    supplier = get_supplier(supplier_id)
    for key, value in _supplier_fields(payload).items():
        setattr(supplier, key, value)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Supplier name already exists", {"name": payload.get("name")})
    return supplier


def delete_supplier(supplier_id: int) -> None:
    # GRNs keep the supplier name snapshot and become unlinked
    supplier = get_supplier(supplier_id)
    db.session.delete(supplier)
    db.session.commit()


def supplier_balances() -> list[dict]:
    """Every supplier with purchased/paid/outstanding totals, in insertion order."""
    totals = dict(
        (row.supplier_id, (int(row.purchased or 0), int(row.paid or 0)))
        for row in db.session.query(
            GoodsReceivedNote.supplier_id,
            func.sum(GoodsReceivedNote.total_cents).label("purchased"),
            func.sum(GoodsReceivedNote.paid_cents).label("paid"),
        ).group_by(GoodsReceivedNote.supplier_id)
    )
    result = []
    for supplier in db.session.query(Supplier).order_by(Supplier.id.asc()).all():
        purchased, paid = totals.get(supplier.id, (0, 0))
        data = supplier.to_dict()
        data.update({
            "total_purchased_cents": purchased,
            "total_paid_cents": paid,
            "outstanding_cents": purchased - paid,
        })
        result.append(data)
    return result


def supplier_ledger(supplier_id: int) -> dict:
    supplier = get_supplier(supplier_id)
    grns = (
        db.session.query(GoodsReceivedNote)
        .filter(GoodsReceivedNote.supplier_id == supplier_id)
        .order_by(GoodsReceivedNote.created_at.desc(), GoodsReceivedNote.id.desc())
        .all()
    )
    purchased = sum(g.total_cents for g in grns)
    paid = sum(g.paid_cents for g in grns)
    return {
        "supplier": supplier.to_dict(),
        "grns": [g.to_dict() for g in grns],
        "total_purchased_cents": purchased,
        "total_paid_cents": paid,
        "net_balance_cents": purchased - paid,
    }


@dataclass(frozen=True)
class PaymentAllocation:
    supplier_id: int
    amount_cents: int
    allocated_cents: int
    unallocated_cents: int
    allocations: tuple  # ((grn_id, cents), ...)

    def to_dict(self) -> dict:
        return {
            "supplier_id": self.supplier_id,
            "amount_cents": self.amount_cents,
            "allocated_cents": self.allocated_cents,
            "unallocated_cents": self.unallocated_cents,
            "allocations": [{"grn_id": g, "amount_cents": c} for g, c in self.allocations],
        }


def pay_supplier(supplier_id: int, amount_cents) -> PaymentAllocation:
    amount = coerce_cents(amount_cents, "amount_cents", allow_zero=False)
    get_supplier(supplier_id)

    def _unit() -> PaymentAllocation:
        remaining = amount
        allocations = []
        grns = (
            db.session.query(GoodsReceivedNote)
            .filter(GoodsReceivedNote.supplier_id == supplier_id)
            .order_by(GoodsReceivedNote.created_at.asc(), GoodsReceivedNote.id.asc())
            .all()
        )
        for grn in grns:
            if remaining <= 0:
                break
            outstanding = grn.total_cents - grn.paid_cents
            if outstanding <= 0:
                continue
            payment = min(outstanding, remaining)
            # Conditional so a concurrent payment cannot overpay this GRN
            updated = (
                db.session.query(GoodsReceivedNote)
                .filter(
                    GoodsReceivedNote.id == grn.id,
                    GoodsReceivedNote.paid_cents + payment <= GoodsReceivedNote.total_cents,
                )
                .update(
                    {GoodsReceivedNote.paid_cents: GoodsReceivedNote.paid_cents + payment},
                    synchronize_session=False,
                )
            )
            if updated != 1:
                raise ConflictError("Supplier balance changed; retry the payment", {"grn_id": grn.id})
            allocations.append((grn.id, payment))
            remaining -= payment

        return PaymentAllocation(
            supplier_id=supplier_id,
            amount_cents=amount,
            allocated_cents=amount - remaining,
            unallocated_cents=remaining,
            allocations=tuple(allocations),
        )

    result = run_atomic(_unit, label="Supplier payment")
    current_app.logger.info(
        "Supplier %s paid %s cents (%s unallocated)", supplier_id, result.allocated_cents, result.unallocated_cents
    )
    return result


# ---------------------------------------------------------------------------
# GRN
# ---------------------------------------------------------------------------

def _grn_lines(raw_items) -> list[dict]:
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("GRN items list is empty!")

    merged: "OrderedDict[tuple[int, int], dict]" = OrderedDict()
    for index, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise ValidationError("Invalid GRN line", {"index": index})
        item_id = coerce_int(raw.get("item_id"), "item_id")
        qty = coerce_quantity(raw.get("qty"), "qty")
        cost = coerce_cents(raw.get("cost_cents"), "cost_cents")
        key = (item_id, cost)
        if key in merged:
            merged[key]["qty"] += qty
        else:
            merged[key] = {"item_id": item_id, "qty": qty, "cost_cents": cost}
    return list(merged.values())


def create_grn(payload: dict, *, user_id: int | None) -> GoodsReceivedNote:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    if payload.get("supplier_id") in (None, ""):
        raise ValidationError("Please select a registered supplier")
    supplier = get_supplier(coerce_int(payload.get("supplier_id"), "supplier_id"))

    lines = _grn_lines(payload.get("items"))
    total = sum(line["qty"] * line["cost_cents"] for line in lines)
    paid = coerce_cents(payload.get("paid_cents"), "paid_cents", default=0)
    if paid > total:
        raise ValidationError("paid_cents cannot exceed the GRN total", {"total_cents": total})
    reference = (payload.get("reference") or "").strip() or None

    def _unit() -> GoodsReceivedNote:
        snapshot = []
        for line in lines:
            item = db.session.get(InventoryItem, line["item_id"])
            if not item:
                raise NotFoundError("Item not found", {"item_id": line["item_id"]})
            snapshot.append({
                "item_id": item.id,
                "part_name": item.part_name,
                "part_number": item.part_number,
                "qty": line["qty"],
                "cost_cents": line["cost_cents"],
                "line_total_cents": line["qty"] * line["cost_cents"],
            })
            db.session.query(InventoryItem).filter(InventoryItem.id == item.id).update(
                {
                    InventoryItem.stock: InventoryItem.stock + line["qty"],
                    InventoryItem.buying_price_cents: line["cost_cents"],
                    InventoryItem.version_id: InventoryItem.version_id + 1,
                },
                synchronize_session=False,
            )

        grn = GoodsReceivedNote(
            supplier_id=supplier.id,
            supplier=supplier.name,
            reference=reference,
            items=snapshot,
            total_cents=total,
            paid_cents=paid,
            user_id=user_id,
            business_date=local_today(),
            created_at=utcnow(),
        )
        db.session.add(grn)
        db.session.flush()
        return grn

    grn = run_atomic(_unit, label="GRN")
    current_app.logger.info("GRN %s posted: %s lines, total %s cents", grn.id, len(lines), grn.total_cents)
    return grn


def get_grn(grn_id: int) -> GoodsReceivedNote:
    grn = db.session.get(GoodsReceivedNote, grn_id)
    if not grn:
        raise NotFoundError("GRN not found", {"grn_id": grn_id})
    return grn


def list_grns(*, start: date | None = None, end: date | None = None, supplier_id: int | None = None) -> list[GoodsReceivedNote]:
    q = db.session.query(GoodsReceivedNote)
    if start:
        q = q.filter(GoodsReceivedNote.business_date >= start)
    if end:
        q = q.filter(GoodsReceivedNote.business_date <= end)
    if supplier_id is not None:
        q = q.filter(GoodsReceivedNote.supplier_id == supplier_id)
    return q.order_by(GoodsReceivedNote.created_at.desc(), GoodsReceivedNote.id.desc()).all()


def delete_grn(grn_id: int) -> None:
    grn = get_grn(grn_id)
    db.session.delete(grn)
    db.session.commit()
    current_app.logger.warning("GRN %s deleted; stock was not reversed", grn_id)


def grn_report(start: date, end: date) -> dict:
    if start is None or end is None:
        raise ValidationError("Please select both From and To dates")
    if start > end:
        raise ValidationError("'From' date cannot be after 'To' date")
    grns = list_grns(start=start, end=end)
    return {
        "start": start.isoformat(),
        "end": end.isoformat(),
        "grns": [g.to_dict() for g in grns],
        "count": len(grns),
        "total_cents": sum(g.total_cents for g in grns),
        "paid_cents": sum(g.paid_cents for g in grns),
        "outstanding_cents": sum(g.outstanding_cents for g in grns),
    }
