from __future__ import annotations

from ..extensions import db
from garagepos.time_utils import to_utc_z, to_iso_date


SESSION_OPEN = "open"
SESSION_CLOSED = "closed"


class BusinessSession(db.Model):
    """
    One user's business day (shift).

    LIFECYCLE:
    - open: day started with a float, sales get shift-scoped invoice numbers
    - closed: cash counted and reconciled; terminal state

    Never deleted. invoice_counter only moves forward, one per sale of this
    session, and only inside the checkout transaction.
    """
    __tablename__ = "business_sessions"
    __table_args__ = (
        db.Index("ix_business_sessions_user_status", "user_id", "status"),
        # At most one open session per user
        db.Index(
            "uq_business_sessions_one_open_per_user",
            "user_id",
            unique=True,
            sqlite_where=db.text("status = 'open'"),
            postgresql_where=db.text("status = 'open'"),
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=SESSION_OPEN, index=True)

    # Cash tracking (all amounts in cents)
    float_cash_cents = db.Column(db.Integer, nullable=False, default=0)
    cash_in_hand_cents = db.Column(db.Integer, nullable=True)  # Set when closing

    invoice_counter = db.Column(db.Integer, nullable=False, default=0)

    start_time = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    end_time = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    user = db.relationship("User", backref=db.backref("business_sessions", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_open(self) -> bool:
        return self.status == SESSION_OPEN

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "status": self.status,
            "float_cash_cents": self.float_cash_cents,
            "cash_in_hand_cents": self.cash_in_hand_cents,
            "invoice_counter": self.invoice_counter,
            "start_time": to_utc_z(self.start_time),
            "end_time": to_utc_z(self.end_time) if self.end_time else None,
            "version_id": self.version_id,
        }


class DayEndRecord(db.Model):
    """
    Persisted day-end reconciliation, one per closed session.

    IMMUTABLE: written in the same transaction that closes the session and
    never updated afterwards.
    """
    __tablename__ = "day_end_reports"
    __table_args__ = (
        db.UniqueConstraint("session_id", name="uq_day_end_reports_session"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.Integer, db.ForeignKey("business_sessions.id"), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    business_date = db.Column(db.Date, nullable=False, index=True)

    float_cents = db.Column(db.Integer, nullable=False)
    cash_sales_cents = db.Column(db.Integer, nullable=False)
    credit_sales_cents = db.Column(db.Integer, nullable=False)
    total_sales_cents = db.Column(db.Integer, nullable=False)
    gross_profit_cents = db.Column(db.Integer, nullable=False)
    expenses_cents = db.Column(db.Integer, nullable=False)
    cash_in_hand_cents = db.Column(db.Integer, nullable=False)
    expected_cents = db.Column(db.Integer, nullable=False)
    variance_cents = db.Column(db.Integer, nullable=False)
    net_profit_cents = db.Column(db.Integer, nullable=False)

    sales_count = db.Column(db.Integer, nullable=False, default=0)
    expense_scope = db.Column(db.String(16), nullable=False, default="day")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    session = db.relationship("BusinessSession", backref=db.backref("day_end_report", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "user_id": self.user_id,
            "business_date": to_iso_date(self.business_date),
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
            "sales_count": self.sales_count,
            "expense_scope": self.expense_scope,
            "created_at": to_utc_z(self.created_at),
        }
