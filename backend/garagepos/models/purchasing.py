from __future__ import annotations

from ..extensions import db
from garagepos.time_utils import to_utc_z, to_iso_date


class Supplier(db.Model):
    __tablename__ = "suppliers"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_suppliers_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, index=True)
    phone = db.Column(db.String(32), nullable=True)
    address = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "address": self.address,
            "created_at": to_utc_z(self.created_at),
        }


class GoodsReceivedNote(db.Model):
    """
    Goods received from a supplier.

    Creating one increases stock and overwrites each item's buying price
    with the received cost. supplier keeps the name as it was at receipt,
    so deleting the supplier leaves the GRN readable (supplier_id becomes
    dangling, not cascaded).

    paid_cents is only changed by supplier payment allocation.
    """
    __tablename__ = "grns"
    __table_args__ = (
        db.Index("ix_grns_supplier_created", "supplier_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    supplier_id = db.Column(db.Integer, nullable=True, index=True)
    supplier = db.Column(db.String(128), nullable=False)
    reference = db.Column(db.String(128), nullable=True)

    items = db.Column(db.JSON, nullable=False)

    total_cents = db.Column(db.Integer, nullable=False)
    paid_cents = db.Column(db.Integer, nullable=False, default=0)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    business_date = db.Column(db.Date, nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    @property
    def outstanding_cents(self) -> int:
        return max(0, (self.total_cents or 0) - (self.paid_cents or 0))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "supplier_id": self.supplier_id,
            "supplier": self.supplier,
            "reference": self.reference,
            "items": list(self.items or []),
            "total_cents": self.total_cents,
            "paid_cents": self.paid_cents,
            "outstanding_cents": self.outstanding_cents,
            "user_id": self.user_id,
            "business_date": to_iso_date(self.business_date),
            "created_at": to_utc_z(self.created_at),
        }
