from __future__ import annotations

from datetime import date

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Expense
from ..validation import NotFoundError, ValidationError, coerce_cents
from garagepos.time_utils import local_today, parse_iso_date, utcnow


def create_expense(payload: dict, *, user_id: int | None) -> Expense:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    category = (payload.get("category") or "").strip()
    if not category:
        raise ValidationError("category is required")
    amount = coerce_cents(payload.get("amount_cents"), "amount_cents", allow_zero=False)

    try:
        business_date = parse_iso_date(payload.get("business_date")) or local_today()
    except ValueError:
        raise ValidationError("business_date must be YYYY-MM-DD")

    expense = Expense(
        business_date=business_date,
        category=category,
        description=(payload.get("description") or "").strip() or None,
        amount_cents=amount,
        user_id=user_id,
        created_at=utcnow(),
    )
    db.session.add(expense)
    db.session.commit()
    current_app.logger.info("Expense %s recorded: %s cents (%s)", expense.id, amount, category)
    return expense


def delete_expense(expense_id: int) -> None:
    expense = db.session.get(Expense, expense_id)
    if not expense:
        raise NotFoundError("Expense not found", {"expense_id": expense_id})
    db.session.delete(expense)
    db.session.commit()


def list_expenses(
    *,
    start: date | None = None,
    end: date | None = None,
    search: str | None = None,
    user_id: int | None = None,
) -> list[Expense]:
    q = db.session.query(Expense)
    if start:
        q = q.filter(Expense.business_date >= start)
    if end:
        q = q.filter(Expense.business_date <= end)
    if user_id is not None:
        q = q.filter(Expense.user_id == user_id)
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(db.or_(Expense.description.ilike(like), Expense.category.ilike(like)))
    return q.order_by(Expense.created_at.desc(), Expense.id.desc()).all()


def total_between(start: date, end: date) -> int:
    total = (
        db.session.query(func.coalesce(func.sum(Expense.amount_cents), 0))
        .filter(Expense.business_date >= start, Expense.business_date <= end)
        .scalar()
    )
    return int(total or 0)


def expense_totals(today: date | None = None) -> dict:
    today = today or local_today()
    month_start = today.replace(day=1)
    return {
        "today_cents": total_between(today, today),
        "month_cents": total_between(month_start, today),
    }
