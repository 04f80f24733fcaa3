from __future__ import annotations

from ..extensions import db
from garagepos.time_utils import to_utc_z, to_iso_date


PAYMENT_CASH = "cash"
PAYMENT_CREDIT = "credit"
PAYMENT_METHODS = {PAYMENT_CASH, PAYMENT_CREDIT}


class Sale(db.Model):
    """
    Completed checkout.

    invoice_no is shift-scoped: (session_id, invoice_no) is the unique key,
    two sessions can both issue invoice 1.

    items is a snapshot of the cart at commit time; every line carries its
    own price and cost so later price changes never rewrite history.

    Only is_paid ever changes after insert, and only from False to True.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("session_id", "invoice_no", name="uq_sales_session_invoice"),
        db.Index("ix_sales_vehicle_method_paid", "vehicle_no", "payment_method", "is_paid"),
        db.Index("ix_sales_business_date", "business_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_no = db.Column(db.Integer, nullable=False)
    session_id = db.Column(db.Integer, db.ForeignKey("business_sessions.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    vehicle_no = db.Column(db.String(32), nullable=False, index=True)
    customer_name = db.Column(db.String(128), nullable=False)
    customer_phone = db.Column(db.String(32), nullable=False, index=True)
    mileage = db.Column(db.Integer, nullable=False, default=0)

    items = db.Column(db.JSON, nullable=False)

    # Money (all amounts in cents)
    subtotal_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)
    cash_received_cents = db.Column(db.Integer, nullable=False, default=0)
    balance_cents = db.Column(db.Integer, nullable=False)
    profit_cents = db.Column(db.Integer, nullable=False)

    redeemed_points = db.Column(db.Integer, nullable=False, default=0)

    payment_method = db.Column(db.String(16), nullable=False, index=True)
    is_paid = db.Column(db.Boolean, nullable=False, default=False, index=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)

    business_date = db.Column(db.Date, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    session = db.relationship("BusinessSession", backref=db.backref("sales", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_outstanding_credit(self) -> bool:
        return self.payment_method == PAYMENT_CREDIT and not self.is_paid

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_no": self.invoice_no,
            "session_id": self.session_id,
            "user_id": self.user_id,
            "vehicle_no": self.vehicle_no,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "mileage": self.mileage,
            "items": list(self.items or []),
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            "cash_received_cents": self.cash_received_cents,
            "balance_cents": self.balance_cents,
            "profit_cents": self.profit_cents,
            "redeemed_points": self.redeemed_points,
            "payment_method": self.payment_method,
            "is_paid": self.is_paid,
            "paid_at": to_utc_z(self.paid_at) if self.paid_at else None,
            "business_date": to_iso_date(self.business_date),
            "created_at": to_utc_z(self.created_at),
            "version_id": self.version_id,
        }
