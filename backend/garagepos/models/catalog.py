from __future__ import annotations

from ..extensions import db
from garagepos.time_utils import to_utc_z


class InventoryItem(db.Model):
    """
    Stocked part.

    Stock is shared mutable state: it is decremented by checkout and
    incremented by GRNs, always through conditional UPDATE statements.
    buying_price_cents follows the latest GRN cost.
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.Index("ix_inventory_items_category", "category"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    part_name = db.Column(db.String(255), nullable=False, index=True)
    part_number = db.Column(db.String(64), nullable=True, index=True)
    category = db.Column(db.String(64), nullable=True)

    price_cents = db.Column(db.Integer, nullable=False, default=0)
    buying_price_cents = db.Column(db.Integer, nullable=False, default=0)
    stock = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "part_name": self.part_name,
            "part_number": self.part_number,
            "category": self.category,
            "price_cents": self.price_cents,
            "buying_price_cents": self.buying_price_cents,
            "stock": self.stock,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ServiceDefinition(db.Model):
    """Labour/service offered at a fixed price (no stock, no cost)."""
    __tablename__ = "services"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    service_name = db.Column(db.String(255), nullable=False)
    cost_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "service_name": self.service_name,
            "cost_cents": self.cost_cents,
            "created_at": to_utc_z(self.created_at),
        }
