from __future__ import annotations

from ..extensions import db
from garagepos.time_utils import to_utc_z


class Customer(db.Model):
    """
    Loyalty customer, keyed by phone.

    Upserted by every checkout with a resolved phone (blank or "-" are
    walk-ins). points never goes below zero.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.UniqueConstraint("phone", name="uq_customers_phone"),
        db.CheckConstraint("points >= 0", name="ck_customers_points_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    phone = db.Column(db.String(32), nullable=False, index=True)
    vehicle_no = db.Column(db.String(32), nullable=True, index=True)  # latest vehicle seen

    points = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "vehicle_no": self.vehicle_no,
            "points": self.points,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class Vehicle(db.Model):
    """Vehicle profile (model, year, engine/chassis numbers, photos)."""
    __tablename__ = "vehicles"
    __table_args__ = (
        db.UniqueConstraint("vehicle_no", name="uq_vehicles_vehicle_no"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    vehicle_no = db.Column(db.String(32), nullable=False, index=True)
    customer_phone = db.Column(db.String(32), nullable=True, index=True)

    model = db.Column(db.String(128), nullable=True)
    year = db.Column(db.String(8), nullable=True)
    engine = db.Column(db.String(128), nullable=True)
    chassis = db.Column(db.String(128), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    # Data URLs / image references, in insertion order
    images = db.Column(db.JSON, nullable=False, default=list)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self, *, include_images: bool = True) -> dict:
        data = {
            "id": self.id,
            "vehicle_no": self.vehicle_no,
            "customer_phone": self.customer_phone,
            "model": self.model,
            "year": self.year,
            "engine": self.engine,
            "chassis": self.chassis,
            "notes": self.notes,
            "image_count": len(self.images or []),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_images:
            data["images"] = list(self.images or [])
        return data
