# Overview: Read-only aggregation over sales, expenses, stock and business days.

from __future__ import annotations

from datetime import date

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import BusinessSession, DayEndRecord, Expense, InventoryItem, Sale
from ..models.sales import PAYMENT_CREDIT
from ..validation import ValidationError
from . import expense_service
from garagepos.time_utils import local_today


GROUPINGS = {
    "day": "%Y-%m-%d",
    "month": "%Y-%m",
    "year": "%Y",
}

UNCATEGORIZED = "Uncategorized"


def _check_range(start: date | None, end: date | None) -> None:
    if start and end and start > end:
        raise ValidationError("'From' date cannot be after 'To' date")


def _sales_query(*, start: date | None = None, end: date | None = None, user_id: int | None = None):
    q = db.session.query(Sale)
    if start:
        q = q.filter(Sale.business_date >= start)
    if end:
        q = q.filter(Sale.business_date <= end)
    if user_id is not None:
        q = q.filter(Sale.user_id == user_id)
    return q


def _part_lines(sales):
    for sale in sales:
        for line in sale.items or []:
            if line.get("type") == "item":
                yield line


def dashboard(*, user_id: int | None = None, today: date | None = None) -> dict:
    """
    Home screen figures. user_id limits sales to one cashier (staff view);
    None means every cashier (admin view). Expenses are always the whole day.
    """
    today = today or local_today()
    today_sales = _sales_query(start=today, end=today, user_id=user_id).all()
    revenue = sum(s.total_cents for s in today_sales)
    gross = sum(s.profit_cents for s in today_sales)
    expenses = expense_service.total_between(today, today)

    month_revenue = (
        _sales_query(start=today.replace(day=1), end=today, user_id=user_id)
        .with_entities(func.coalesce(func.sum(Sale.total_cents), 0))
        .scalar()
    )

    debtors = (
        _sales_query(user_id=user_id)
        .filter(Sale.payment_method == PAYMENT_CREDIT, Sale.is_paid.is_(False))
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .all()
    )
    recent = _sales_query(user_id=user_id).order_by(Sale.created_at.desc(), Sale.id.desc()).limit(10).all()

    return {
        "business_date": today.isoformat(),
        "today_revenue_cents": revenue,
        "today_sales_count": len(today_sales),
        "today_gross_profit_cents": gross,
        "today_expenses_cents": expenses,
        "today_net_profit_cents": gross - expenses,
        "month_revenue_cents": int(month_revenue or 0),
        "outstanding_credit_cents": sum(s.total_cents for s in debtors),
        "debtors": [s.to_dict() for s in debtors],
        "recent_sales": [s.to_dict() for s in recent],
    }


def sales_summary(*, start: date | None, end: date | None, group_by: str = "day", user_id: int | None = None) -> dict:
    _check_range(start, end)
    fmt = GROUPINGS.get(group_by)
    if fmt is None:
        raise ValidationError("group_by must be day, month, or year")

    period = func.strftime(fmt, Sale.business_date)
    q = db.session.query(
        period.label("period"),
        func.count(Sale.id).label("sales_count"),
        func.coalesce(func.sum(Sale.total_cents), 0).label("revenue_cents"),
        func.coalesce(func.sum(Sale.profit_cents), 0).label("profit_cents"),
        func.coalesce(func.sum(Sale.discount_cents), 0).label("discount_cents"),
    )
    if start:
        q = q.filter(Sale.business_date >= start)
    if end:
        q = q.filter(Sale.business_date <= end)
    if user_id is not None:
        q = q.filter(Sale.user_id == user_id)
    rows = q.group_by(period).order_by(period.asc()).all()

    data = [
        {
            "period": r.period,
            "sales_count": int(r.sales_count),
            "revenue_cents": int(r.revenue_cents),
            "profit_cents": int(r.profit_cents),
            "discount_cents": int(r.discount_cents),
        }
        for r in rows
    ]
    return {
        "group_by": group_by,
        "rows": data,
        "total_revenue_cents": sum(r["revenue_cents"] for r in data),
        "total_profit_cents": sum(r["profit_cents"] for r in data),
        "sales_count": sum(r["sales_count"] for r in data),
    }


def daily_report(day: date | None = None) -> dict:
    day = day or local_today()
    sales = _sales_query(start=day, end=day).order_by(Sale.id.asc()).all()
    expenses = db.session.query(Expense).filter(Expense.business_date == day).order_by(Expense.id.asc()).all()
    gross = sum(s.profit_cents for s in sales)
    total_expenses = sum(e.amount_cents for e in expenses)
    return {
        "business_date": day.isoformat(),
        "sales": [s.to_dict() for s in sales],
        "expenses": [e.to_dict() for e in expenses],
        "revenue_cents": sum(s.total_cents for s in sales),
        "gross_profit_cents": gross,
        "expenses_cents": total_expenses,
        "net_profit_cents": gross - total_expenses,
    }


def product_performance(*, start: date | None = None, end: date | None = None) -> list[dict]:
    _check_range(start, end)
    stats: dict = {}
    for line in _part_lines(_sales_query(start=start, end=end).all()):
        key = line.get("item_id") or line.get("part_number")
        row = stats.setdefault(key, {
            "item_id": line.get("item_id"),
            "part_name": line.get("part_name"),
            "part_number": line.get("part_number") or "N/A",
            "qty": 0,
            "revenue_cents": 0,
        })
        row["qty"] += line.get("qty", 0)
        row["revenue_cents"] += line.get("price_cents", 0) * line.get("qty", 0)
    return sorted(stats.values(), key=lambda r: (-r["qty"], r["part_name"] or ""))


def category_breakdown(*, start: date | None = None, end: date | None = None) -> dict:
    _check_range(start, end)
    stats: dict = {}
    for line in _part_lines(_sales_query(start=start, end=end).all()):
        category = line.get("category") or UNCATEGORIZED
        row = stats.setdefault(category, {"category": category, "qty": 0, "revenue_cents": 0, "lines": 0})
        row["qty"] += line.get("qty", 0)
        row["revenue_cents"] += line.get("price_cents", 0) * line.get("qty", 0)
        row["lines"] += 1
    rows = sorted(stats.values(), key=lambda r: -r["qty"])
    return {
        "rows": rows,
        "total_qty": sum(r["qty"] for r in rows),
        "total_revenue_cents": sum(r["revenue_cents"] for r in rows),
    }


def stock_report(*, low_stock_threshold: int | None = None) -> dict:
    threshold = low_stock_threshold
    if threshold is None:
        threshold = current_app.config.get("LOW_STOCK_THRESHOLD", 5)
    items = db.session.query(InventoryItem).order_by(InventoryItem.part_name.asc()).all()
    rows = []
    for item in items:
        data = item.to_dict()
        data["is_low_stock"] = item.stock <= threshold
        rows.append(data)
    return {
        "items": rows,
        "low_stock_threshold": threshold,
        "low_stock_count": sum(1 for r in rows if r["is_low_stock"]),
        "stock_value_cents": sum((i.buying_price_cents or 0) * i.stock for i in items),
        "potential_revenue_cents": sum(i.price_cents * i.stock for i in items),
    }


def stock_movement() -> dict:
    """Per item: units sold (from sale snapshots), units on hand, units handled."""
    sold: dict = {}
    revenue: dict = {}
    for line in _part_lines(db.session.query(Sale).all()):
        key = line.get("item_id") or line.get("part_number")
        sold[key] = sold.get(key, 0) + line.get("qty", 0)
        revenue[key] = revenue.get(key, 0) + line.get("price_cents", 0) * line.get("qty", 0)

    rows = []
    for item in db.session.query(InventoryItem).order_by(InventoryItem.part_name.asc()).all():
        key = item.id if item.id in sold else item.part_number
        units_sold = sold.get(key, 0)
        rows.append({
            "item_id": item.id,
            "part_number": item.part_number,
            "part_name": item.part_name,
            "sold": units_sold,
            "available": item.stock,
            "total_handled": item.stock + units_sold,
            "revenue_cents": revenue.get(key, 0),
        })
    return {
        "rows": rows,
        "total_sold": sum(r["sold"] for r in rows),
        "total_revenue_cents": sum(r["revenue_cents"] for r in rows),
    }


def period_snapshot(*, start: date, end: date) -> dict:
    """Plain-dict export of one period for external reporting."""
    if start is None or end is None:
        raise ValidationError("start and end are required")
    _check_range(start, end)

    sales = _sales_query(start=start, end=end).order_by(Sale.id.asc()).all()
    expenses = (
        db.session.query(Expense)
        .filter(Expense.business_date >= start, Expense.business_date <= end)
        .order_by(Expense.id.asc())
        .all()
    )
    reports = (
        db.session.query(DayEndRecord)
        .filter(DayEndRecord.business_date >= start, DayEndRecord.business_date <= end)
        .order_by(DayEndRecord.id.asc())
        .all()
    )
    session_ids = {s.session_id for s in sales} | {r.session_id for r in reports}
    sessions = []
    if session_ids:
        sessions = (
            db.session.query(BusinessSession)
            .filter(BusinessSession.id.in_(session_ids))
            .order_by(BusinessSession.id.asc())
            .all()
        )
    return {
        "start": start.isoformat(),
        "end": end.isoformat(),
        "sales": [s.to_dict() for s in sales],
        "expenses": [e.to_dict() for e in expenses],
        "sessions": [s.to_dict() for s in sessions],
        "day_end_reports": [r.to_dict() for r in reports],
    }
