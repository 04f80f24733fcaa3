from __future__ import annotations

from ..extensions import db
from garagepos.time_utils import to_utc_z, to_iso_date


class Expense(db.Model):
    """Cash paid out of the till. Immutable; may only be deleted."""
    __tablename__ = "expenses"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_expenses_amount_positive"),
        db.Index("ix_expenses_date_user", "business_date", "user_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_date = db.Column(db.Date, nullable=False, index=True)
    category = db.Column(db.String(64), nullable=False)
    description = db.Column(db.String(255), nullable=True)
    amount_cents = db.Column(db.Integer, nullable=False)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_date": to_iso_date(self.business_date),
            "category": self.category,
            "description": self.description,
            "amount_cents": self.amount_cents,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
        }
