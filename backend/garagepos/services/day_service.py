# Overview: Business-day (session) lifecycle and shift-scoped invoice numbering.

"""
Session Manager

State machine per session: open -> closed (terminal).

- a user has at most one open session (checked here, enforced by a partial
  unique index)
- invoice_counter starts at 0 and is only advanced by checkout
- close_day is only called by the reconciliation engine, inside its
  transaction (commit=False)
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import BusinessSession
from ..models.sessions import SESSION_OPEN, SESSION_CLOSED
from ..validation import ConflictError, NotFoundError, coerce_cents
from . import journal_service
from garagepos.time_utils import utcnow


class SessionConflict(ConflictError):
    """The user already has an open business day."""


class NoActiveSession(ConflictError):
    """The session is missing or already closed."""


def get_session(session_id: int) -> BusinessSession:
    session = db.session.get(BusinessSession, session_id)
    if not session:
        raise NotFoundError("Business session not found", {"session_id": session_id})
    return session


def get_active_session(user_id: int) -> BusinessSession | None:
    return (
        db.session.query(BusinessSession)
        .filter_by(user_id=user_id, status=SESSION_OPEN)
        .order_by(BusinessSession.id.desc())
        .first()
    )


def require_open_session(session_id: int) -> BusinessSession:
    session = db.session.get(BusinessSession, session_id)
    if not session or not session.is_open:
        raise NoActiveSession("No active business session", {"session_id": session_id})
    return session


def list_sessions(*, status: str | None = None, user_id: int | None = None, limit: int = 100) -> list[BusinessSession]:
    q = db.session.query(BusinessSession)
    if status:
        q = q.filter(BusinessSession.status == status)
    if user_id is not None:
        q = q.filter(BusinessSession.user_id == user_id)
    return q.order_by(BusinessSession.id.desc()).limit(limit).all()


def start_day(user_id: int, opening_float_cents) -> BusinessSession:
    float_cents = coerce_cents(opening_float_cents, "opening_float_cents", default=0)

    existing = get_active_session(user_id)
    if existing:
        raise SessionConflict("A business day is already open", {"session_id": existing.id})

    session = BusinessSession(
        user_id=user_id,
        status=SESSION_OPEN,
        float_cash_cents=float_cents,
        invoice_counter=0,
        start_time=utcnow(),
    )
    db.session.add(session)
    try:
        db.session.commit()
    except IntegrityError:
        # Lost the race against a concurrent start_day for the same user
        db.session.rollback()
        existing = get_active_session(user_id)
        raise SessionConflict(
            "A business day is already open",
            {"session_id": existing.id if existing else None},
        )

    current_app.logger.info("Business day %s started by user %s (float %s cents)", session.id, user_id, float_cents)
    journal_service.record_day_start(session)
    return session


def next_invoice_number(session: BusinessSession) -> int:
    """Preview of the next invoice number; no mutation."""
    return (session.invoice_counter or 0) + 1


def close_day(session_id: int, cash_in_hand_cents, *, commit: bool = True) -> BusinessSession:
    """
    Close an open session. Second call raises NoActiveSession.

    The status check and the write are one conditional UPDATE, so two
    concurrent closes cannot both succeed.
    """
    cash = coerce_cents(cash_in_hand_cents, "cash_in_hand_cents", default=0)

    updated = (
        db.session.query(BusinessSession)
        .filter(BusinessSession.id == session_id, BusinessSession.status == SESSION_OPEN)
        .update(
            {
                BusinessSession.status: SESSION_CLOSED,
                BusinessSession.end_time: utcnow(),
                BusinessSession.cash_in_hand_cents: cash,
                BusinessSession.version_id: BusinessSession.version_id + 1,
            },
            synchronize_session=False,
        )
    )
    if updated != 1:
        raise NoActiveSession("Business session is not open", {"session_id": session_id})

    if commit:
        db.session.commit()

    session = db.session.get(BusinessSession, session_id)
    db.session.refresh(session)
    return session


def adjust_float(session_id: int, float_cents) -> BusinessSession:
    """Manual override of the opening float of an open session."""
    new_float = coerce_cents(float_cents, "float_cash_cents")
    session = require_open_session(session_id)
    old_float = session.float_cash_cents
    session.float_cash_cents = new_float
    db.session.commit()
    current_app.logger.info(
        "Float of business day %s changed from %s to %s cents", session_id, old_float, new_float
    )
    return session
