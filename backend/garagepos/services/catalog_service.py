# Overview: Inventory items and service definitions, plus the terminal's in-memory catalog.

"""
Catalog Service

The store owns inventory items and service definitions. Each terminal holds a
Catalog: an immutable-snapshot cache of both, used to compose carts without a
query per key press. Terminals refresh it before showing it or adding a
line, so stock committed at any login is what the cart is checked against.
"""
from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..models import InventoryItem, ServiceDefinition
from ..validation import (
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    coerce_cents,
    enforce_rules_item,
    validate_payload,
)


ITEM_POLICY = ModelValidationPolicy(
    writable_fields={"part_name", "part_number", "category", "price_cents", "buying_price_cents", "stock"},
    required_on_create={"part_name", "price_cents"},
)

UNCATEGORIZED = "General"


@dataclass(frozen=True)
class CatalogItem:
    id: int
    part_name: str
    part_number: str | None
    category: str
    price_cents: int
    buying_price_cents: int
    stock: int

    @classmethod
    def from_model(cls, item: InventoryItem) -> "CatalogItem":
        return cls(
            id=item.id,
            part_name=item.part_name,
            part_number=item.part_number,
            category=item.category or UNCATEGORIZED,
            price_cents=item.price_cents or 0,
            buying_price_cents=item.buying_price_cents if item.buying_price_cents is not None else item.price_cents or 0,
            stock=item.stock or 0,
        )


@dataclass(frozen=True)
class CatalogService:
    id: int
    name: str
    price_cents: int

    @classmethod
    def from_model(cls, service: ServiceDefinition) -> "CatalogService":
        return cls(id=service.id, name=service.service_name, price_cents=service.cost_cents or 0)


class Catalog:
    """Per-terminal read cache of items and services."""

    def __init__(self):
        self._items: dict[int, CatalogItem] = {}
        self._services: dict[int, CatalogService] = {}

    def refresh(self) -> "Catalog":
        items = db.session.query(InventoryItem).order_by(InventoryItem.part_name.asc(), InventoryItem.id.asc()).all()
        services = db.session.query(ServiceDefinition).order_by(ServiceDefinition.service_name.asc()).all()
        self._items = {i.id: CatalogItem.from_model(i) for i in items}
        self._services = {s.id: CatalogService.from_model(s) for s in services}
        return self

    @property
    def items(self) -> list[CatalogItem]:
        return list(self._items.values())

    @property
    def services(self) -> list[CatalogService]:
        return list(self._services.values())

    def item(self, item_id: int) -> CatalogItem | None:
        return self._items.get(item_id)

    def service(self, service_id: int) -> CatalogService | None:
        return self._services.get(service_id)

    def find_by_part_number(self, part_number: str) -> CatalogItem | None:
        code = (part_number or "").strip()
        if not code:
            return None
        for item in self._items.values():
            if item.part_number == code:
                return item
        return None

    def categories(self) -> list[str]:
        return sorted({i.category for i in self._items.values()})

    def search(self, query: str | None = None, category: str | None = None) -> list[CatalogItem]:
        needle = (query or "").strip().lower()
        result = []
        for item in self._items.values():
            if category and category != "All" and item.category != category:
                continue
            if needle and needle not in item.part_name.lower() and needle not in (item.part_number or "").lower():
                continue
            result.append(item)
        return result


# ---------------------------------------------------------------------------
# Inventory items
# ---------------------------------------------------------------------------

def list_items(*, search: str | None = None, category: str | None = None) -> list[InventoryItem]:
    q = db.session.query(InventoryItem)
    if category and category != "All":
        q = q.filter(InventoryItem.category == category)
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(db.or_(InventoryItem.part_name.ilike(like), InventoryItem.part_number.ilike(like)))
    return q.order_by(InventoryItem.part_name.asc(), InventoryItem.id.asc()).all()


def get_item(item_id: int) -> InventoryItem:
    item = db.session.get(InventoryItem, item_id)
    if not item:
        raise NotFoundError("Item not found", {"item_id": item_id})
    return item


def find_item_by_part_number(part_number: str) -> InventoryItem | None:
    code = (part_number or "").strip()
    if not code:
        return None
    return db.session.query(InventoryItem).filter_by(part_number=code).first()


def create_item(payload: dict) -> InventoryItem:
    patch = validate_payload(model=InventoryItem, payload=payload, policy=ITEM_POLICY, partial=False)
    enforce_rules_item(patch)
    if patch.get("buying_price_cents") is None:
        patch["buying_price_cents"] = patch["price_cents"]
    patch.setdefault("stock", 0)
    if not patch.get("category"):
        patch["category"] = UNCATEGORIZED

    item = InventoryItem(**patch)
    db.session.add(item)
    db.session.commit()
    current_app.logger.info("Inventory item %s created (%s)", item.id, item.part_name)
    return item


def update_item(item_id: int, payload: dict) -> InventoryItem:
    item = get_item(item_id)
    patch = validate_payload(model=InventoryItem, payload=payload, policy=ITEM_POLICY, partial=True)
    enforce_rules_item(patch)
    for key, value in patch.items():
        setattr(item, key, value)
    db.session.commit()
    return item


def delete_item(item_id: int) -> None:
    # Sales and GRNs keep their own snapshots, so history survives the delete
    item = get_item(item_id)
    db.session.delete(item)
    db.session.commit()
    current_app.logger.info("Inventory item %s deleted", item_id)


def list_categories() -> list[str]:
    rows = db.session.query(InventoryItem.category).distinct().all()
    return sorted({(r[0] or UNCATEGORIZED) for r in rows})


# ---------------------------------------------------------------------------
# Service definitions
# ---------------------------------------------------------------------------

def list_services() -> list[ServiceDefinition]:
    return db.session.query(ServiceDefinition).order_by(ServiceDefinition.service_name.asc()).all()


def get_service(service_id: int) -> ServiceDefinition:
    service = db.session.get(ServiceDefinition, service_id)
    if not service:
        raise NotFoundError("Service not found", {"service_id": service_id})
    return service


def _service_fields(payload: dict, *, partial: bool) -> dict:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    fields = {}
    if "service_name" in payload or not partial:
        name = (payload.get("service_name") or "").strip()
        if not name:
            raise ValidationError("service_name is required")
        fields["service_name"] = name
    if "cost_cents" in payload or not partial:
        fields["cost_cents"] = coerce_cents(payload.get("cost_cents"), "cost_cents")
    return fields


def create_service(payload: dict) -> ServiceDefinition:
    service = ServiceDefinition(**_service_fields(payload, partial=False))
    db.session.add(service)
    db.session.commit()
    return service


def update_service(service_id: int, payload: dict) -> ServiceDefinition:
    service = get_service(service_id)
    for key, value in _service_fields(payload, partial=True).items():
        setattr(service, key, value)
    db.session.commit()
    return service


def delete_service(service_id: int) -> None:
    service = get_service(service_id)
    db.session.delete(service)
    db.session.commit()
