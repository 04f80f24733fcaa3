# Overview: Text journal of sales and business-day events (table + optional daily file).

"""
Journal Service

Every committed sale, day start and day end is appended as a formatted text
block to the journal_entries table and, when JOURNAL_DIR is configured, to
Journal_<YYYY-MM-DD>.txt in that folder.

Journaling is a side effect of an already committed unit of work: failures
are logged as warnings and reported as False, never raised.
"""
from __future__ import annotations

import os

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import JournalEntry, User
from garagepos.time_utils import local_today, utcnow


KIND_SALE = "sale"
KIND_DAY_START = "day_start"
KIND_DAY_END = "day_end"

RULE = "=" * 41
THIN_RULE = "-" * 41


def format_money(cents: int | None) -> str:
    cents = int(cents or 0)
    sign = "-" if cents < 0 else ""
    whole, frac = divmod(abs(cents), 100)
    return f"{sign}Rs {whole:,}.{frac:02d}"


def format_invoice_no(invoice_no: int) -> str:
    return f"#{int(invoice_no):06d}"


def _username(user_id: int | None) -> str:
    if user_id is None:
        return "System"
    user = db.session.get(User, user_id)
    return user.username if user else "System"


def _clock() -> str:
    return utcnow().strftime("%H:%M:%S")


def format_sale(sale) -> str:
    lines = [
        THIN_RULE,
        f"TIME       : {_clock()}",
        f"CASHIER    : {_username(sale.user_id)}",
        f"INVOICE ID : {format_invoice_no(sale.invoice_no)}",
        f"VEHICLE NO : {sale.vehicle_no}",
        f"CUSTOMER   : {sale.customer_name or 'Walking'}",
        "ITEMS:",
    ]
    for item in sale.items or []:
        name = str(item.get("part_name", ""))
        qty = item.get("qty", 1)
        total = item.get("line_total_cents", (item.get("price_cents") or 0) * qty)
        lines.append(f"- {name:<25} x{qty}  {format_money(total)}")
    lines += [
        f"SUBTOTAL   : {format_money(sale.subtotal_cents)}",
        f"DISCOUNT   : {format_money(sale.discount_cents)}",
        f"GRAND TOTAL: {format_money(sale.total_cents)}",
        f"METHOD     : {sale.payment_method.upper()}",
        THIN_RULE,
    ]
    return "\n".join(lines)


def format_day_start(session) -> str:
    return "\n".join([
        RULE,
        f"   DAY STARTED [{local_today().isoformat()}]",
        RULE,
        f"TIME      : {_clock()}",
        f"CASHIER   : {_username(session.user_id)}",
        f"FLOAT     : {format_money(session.float_cash_cents)}",
        RULE,
    ])


def format_day_end(report) -> str:
    return "\n".join([
        RULE,
        f"   DAY END SUMMARY [{report.business_date.isoformat()}]",
        RULE,
        f"TIME         : {_clock()}",
        f"CASHIER      : {_username(report.user_id)}",
        f"TOTAL SALES  : {format_money(report.total_sales_cents)}",
        f"CASH SALES   : {format_money(report.cash_sales_cents)}",
        f"CREDIT SALES : {format_money(report.credit_sales_cents)}",
        f"EXPENSES     : {format_money(report.expenses_cents)}",
        f"GROSS PROFIT : {format_money(report.gross_profit_cents)}",
        f"NET PROFIT   : {format_money(report.net_profit_cents)}",
        f"FLOAT        : {format_money(report.float_cents)}",
        f"CASH IN HAND : {format_money(report.cash_in_hand_cents)}",
        f"VARIANCE     : {format_money(report.variance_cents)}",
        RULE,
    ])


def journal_file_path(folder: str, day=None) -> str:
    day = day or local_today()
    return os.path.join(folder, f"Journal_{day.isoformat()}.txt")


def append_journal(kind: str, text: str) -> bool:
    """
    Append one block to the journal.

    Returns True when the block reached the journal file, False when it was
    only stored in the table (no folder configured, or the write failed).
    """
    today = local_today()
    try:
        db.session.add(JournalEntry(kind=kind, business_date=today, content=text, created_at=utcnow()))
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.warning("Journal entry (%s) not stored: %s", kind, exc)

    folder = current_app.config.get("JOURNAL_DIR")
    if not folder:
        return False
    try:
        os.makedirs(folder, exist_ok=True)
        with open(journal_file_path(folder, today), "a", encoding="utf-8") as fh:
            fh.write(text + "\n\n")
    except OSError as exc:
        current_app.logger.warning("Journal file write failed: %s", exc)
        return False
    return True


def record_sale(sale) -> bool:
    return append_journal(KIND_SALE, format_sale(sale))


def record_day_start(session) -> bool:
    return append_journal(KIND_DAY_START, format_day_start(session))


def record_day_end(report) -> bool:
    return append_journal(KIND_DAY_END, format_day_end(report))


def list_entries(*, business_date=None, kind: str | None = None, limit: int = 200) -> list[JournalEntry]:
    q = db.session.query(JournalEntry)
    if business_date is not None:
        q = q.filter(JournalEntry.business_date == business_date)
    if kind:
        q = q.filter(JournalEntry.kind == kind)
    return q.order_by(JournalEntry.id.desc()).limit(limit).all()
