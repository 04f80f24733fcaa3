# Overview: Day-end reconciliation engine; aggregates a session, closes it, emits the report.

"""
Day-End Reconciliation Engine

  expected = float + cash_sales - expenses
  variance = cash_in_hand - expected
  net_profit = gross_profit - expenses

Sales are the closing session's own sales. Expenses are the ones dated
today (DAY_END_EXPENSE_SCOPE = "day"), or only the closing user's expenses
dated today ("user").

Closing the session and writing the day_end_reports row is one transaction.
Journal, backup and email are published only after that commit; their
failures are logged and returned as warnings on the report.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import BusinessSession, DayEndRecord, Expense, Sale, User
from ..models.sales import PAYMENT_CASH, PAYMENT_CREDIT
from ..validation import NotFoundError, SideEffectFailure, coerce_cents
from .checkout_service import SessionOwnershipError
from .concurrency import lock_for_update, run_atomic
from .day_service import NoActiveSession, close_day
from . import backup_service, journal_service, notification_service
from garagepos.time_utils import local_today, utcnow


EXPENSE_SCOPE_DAY = "day"
EXPENSE_SCOPE_USER = "user"


@dataclass(frozen=True)
class DayEndFigures:
    float_cents: int
    cash_sales_cents: int
    credit_sales_cents: int
    total_sales_cents: int
    gross_profit_cents: int
    expenses_cents: int
    expected_cents: int


@dataclass(frozen=True)
class DayEndReport:
    session_id: int
    user_id: int
    business_date: date
    float_cents: int
    cash_sales_cents: int
    credit_sales_cents: int
    total_sales_cents: int
    gross_profit_cents: int
    expenses_cents: int
    cash_in_hand_cents: int
    expected_cents: int
    variance_cents: int
    net_profit_cents: int
    expense_scope: str
    sales: tuple = ()
    record_id: int | None = None
    warnings: tuple = field(default=())

    def to_dict(self) -> dict:
        return {
            "record_id": self.record_id,
            "session_id": self.session_id,
            "user_id": self.user_id,
            "business_date": self.business_date.isoformat(),
            "float_cents": self.float_cents,
            "cash_sales_cents": self.cash_sales_cents,
            "credit_sales_cents": self.credit_sales_cents,
            "total_sales_cents": self.total_sales_cents,
            "gross_profit_cents": self.gross_profit_cents,
            "expenses_cents": self.expenses_cents,
            "cash_in_hand_cents": self.cash_in_hand_cents,
            "expected_cents": self.expected_cents,
            "variance_cents": self.variance_cents,
            "net_profit_cents": self.net_profit_cents,
            "expense_scope": self.expense_scope,
            "sales": list(self.sales),
            "warnings": list(self.warnings),
        }


def compute_figures(*, float_cents: int, sales, expenses_cents: int) -> DayEndFigures:
    cash_sales = sum(s.total_cents for s in sales if s.payment_method == PAYMENT_CASH)
    credit_sales = sum(s.total_cents for s in sales if s.payment_method == PAYMENT_CREDIT)
    return DayEndFigures(
        float_cents=float_cents,
        cash_sales_cents=cash_sales,
        credit_sales_cents=credit_sales,
        total_sales_cents=sum(s.total_cents for s in sales),
        gross_profit_cents=sum(s.profit_cents for s in sales),
        expenses_cents=expenses_cents,
        expected_cents=float_cents + cash_sales - expenses_cents,
    )


def _expense_scope() -> str:
    scope = (current_app.config.get("DAY_END_EXPENSE_SCOPE") or EXPENSE_SCOPE_DAY).strip().lower()
    return EXPENSE_SCOPE_USER if scope == EXPENSE_SCOPE_USER else EXPENSE_SCOPE_DAY


def _expenses_total(day: date, *, scope: str, user_id: int) -> int:
    q = db.session.query(func.coalesce(func.sum(Expense.amount_cents), 0)).filter(Expense.business_date == day)
    if scope == EXPENSE_SCOPE_USER:
        q = q.filter(Expense.user_id == user_id)
    return int(q.scalar() or 0)


def _session_sales(session_id: int) -> list[Sale]:
    return (
        db.session.query(Sale)
        .filter(Sale.session_id == session_id)
        .order_by(Sale.invoice_no.asc())
        .all()
    )


def _check_owner(session: BusinessSession, user_id: int | None, manager_override: bool) -> None:
    if user_id is not None and not manager_override and session.user_id != user_id:
        raise SessionOwnershipError("Business session belongs to another user", {"session_id": session.id})


def preview_day_end(session_id: int, *, user_id: int | None = None, manager_override: bool = False) -> dict:
    """Figures for the confirmation screen; does not close anything."""
    session = db.session.get(BusinessSession, session_id)
    if not session or not session.is_open:
        raise NoActiveSession("No active session", {"session_id": session_id})
    _check_owner(session, user_id, manager_override)

    scope = _expense_scope()
    sales = _session_sales(session_id)
    figures = compute_figures(
        float_cents=session.float_cash_cents,
        sales=sales,
        expenses_cents=_expenses_total(local_today(), scope=scope, user_id=session.user_id),
    )
    data = {k: getattr(figures, k) for k in figures.__dataclass_fields__}
    data.update({
        "session_id": session.id,
        "user_id": session.user_id,
        "sales_count": len(sales),
        "expense_scope": scope,
    })
    return data


def reconcile(
    session_id: int,
    actual_cash_in_hand_cents,
    *,
    user_id: int | None = None,
    manager_override: bool = False,
    publish: bool = True,
) -> DayEndReport:
    cash_in_hand = coerce_cents(actual_cash_in_hand_cents, "actual_cash_in_hand_cents", default=0)
    scope = _expense_scope()
    today = local_today()

    def _unit() -> DayEndReport:
        session = lock_for_update(
            db.session.query(BusinessSession).filter(BusinessSession.id == session_id)
        ).first()
        if not session or not session.is_open:
            raise NoActiveSession("No active session", {"session_id": session_id})
        _check_owner(session, user_id, manager_override)

        owner_id = session.user_id
        float_cents = session.float_cash_cents
        sales = _session_sales(session_id)
        figures = compute_figures(
            float_cents=float_cents,
            sales=sales,
            expenses_cents=_expenses_total(today, scope=scope, user_id=owner_id),
        )
        sales_snapshot = tuple(s.to_dict() for s in sales)

        close_day(session_id, cash_in_hand, commit=False)

        variance = cash_in_hand - figures.expected_cents
        net_profit = figures.gross_profit_cents - figures.expenses_cents
        record = DayEndRecord(
            session_id=session_id,
            user_id=owner_id,
            business_date=today,
            float_cents=figures.float_cents,
            cash_sales_cents=figures.cash_sales_cents,
            credit_sales_cents=figures.credit_sales_cents,
            total_sales_cents=figures.total_sales_cents,
            gross_profit_cents=figures.gross_profit_cents,
            expenses_cents=figures.expenses_cents,
            cash_in_hand_cents=cash_in_hand,
            expected_cents=figures.expected_cents,
            variance_cents=variance,
            net_profit_cents=net_profit,
            sales_count=len(sales),
            expense_scope=scope,
            created_at=utcnow(),
        )
        db.session.add(record)
        db.session.flush()

        return DayEndReport(
            session_id=session_id,
            user_id=owner_id,
            business_date=today,
            float_cents=figures.float_cents,
            cash_sales_cents=figures.cash_sales_cents,
            credit_sales_cents=figures.credit_sales_cents,
            total_sales_cents=figures.total_sales_cents,
            gross_profit_cents=figures.gross_profit_cents,
            expenses_cents=figures.expenses_cents,
            cash_in_hand_cents=cash_in_hand,
            expected_cents=figures.expected_cents,
            variance_cents=variance,
            net_profit_cents=net_profit,
            expense_scope=scope,
            sales=sales_snapshot,
            record_id=record.id,
        )

    report = run_atomic(_unit, label="Day end")
    current_app.logger.info(
        "Business day %s closed: expected %s, counted %s, variance %s cents",
        report.session_id, report.expected_cents, report.cash_in_hand_cents, report.variance_cents,
    )

    if publish:
        report = replace(report, warnings=tuple(publish_day_end(report)))
    return report


def publish_day_end(report: DayEndReport) -> list[str]:
    """Journal, backup and email for a committed report. Returns warnings."""
    warnings = []

    if not journal_service.record_day_end(report) and current_app.config.get("JOURNAL_DIR"):
        warnings.append("Journal file could not be written")

    backup_dir = current_app.config.get("BACKUP_DIR")
    if backup_dir:
        try:
            backup_service.write_backup(backup_dir)
        except OSError as exc:
            current_app.logger.warning("Day-end backup failed: %s", exc)
            warnings.append("Backup could not be written")

    user = db.session.get(User, report.user_id)
    try:
        notification_service.send_day_end_email(report, generated_by=user.username if user else "System")
    except SideEffectFailure as exc:
        current_app.logger.warning("Day-end email failed: %s %s", exc, exc.details)
        warnings.append(f"Email failed: {exc}")

    return warnings


def get_report(session_id: int) -> DayEndRecord:
    record = db.session.query(DayEndRecord).filter_by(session_id=session_id).first()
    if not record:
        raise NotFoundError("Day-end report not found", {"session_id": session_id})
    return record


def list_reports(*, start: date | None = None, end: date | None = None, user_id: int | None = None) -> list[DayEndRecord]:
    q = db.session.query(DayEndRecord)
    if start:
        q = q.filter(DayEndRecord.business_date >= start)
    if end:
        q = q.filter(DayEndRecord.business_date <= end)
    if user_id is not None:
        q = q.filter(DayEndRecord.user_id == user_id)
    return q.order_by(DayEndRecord.id.desc()).all()
