# Overview: Transient cart of tagged line items held by a terminal.

"""
Cart

A cart is an ordered list of frozen line objects, one class per kind:

- PartLine: stocked inventory item (the only kind that has a cost)
- ServiceLine: predefined labour/service
- ChargeLine: ad-hoc charge typed at the till
- CreditSettlementLine: a vehicle's outstanding credit being paid now

Lines are replaced, never mutated, when quantities change. Nothing here
touches the database; the checkout engine snapshots the lines into the sale.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Union

from ..validation import ValidationError, coerce_cents, normalize_vehicle_no


DEFAULT_CHARGE_NAME = "Service Charge"
CENTS_PER_POINT = 100


@dataclass(frozen=True)
class PartLine:
    item_id: int
    part_name: str
    part_number: str | None
    category: str | None
    price_cents: int
    buying_price_cents: int | None
    qty: int = 1

    type = "item"

    @property
    def name(self) -> str:
        return self.part_name

    @property
    def line_total_cents(self) -> int:
        return self.price_cents * self.qty

    @property
    def cost_price_cents(self) -> int:
        # Items without a recorded cost are costed at their selling price
        if self.buying_price_cents is None:
            return self.price_cents
        return self.buying_price_cents

    @property
    def line_cost_cents(self) -> int:
        return self.cost_price_cents * self.qty

    def to_snapshot(self) -> dict:
        return {
            "type": self.type,
            "item_id": self.item_id,
            "part_name": self.part_name,
            "part_number": self.part_number,
            "category": self.category,
            "price_cents": self.price_cents,
            "buying_price_cents": self.cost_price_cents,
            "qty": self.qty,
            "line_total_cents": self.line_total_cents,
        }


@dataclass(frozen=True)
class ServiceLine:
    service_id: int
    name: str
    price_cents: int
    qty: int = 1

    type = "service"

    @property
    def line_total_cents(self) -> int:
        return self.price_cents * self.qty

    def to_snapshot(self) -> dict:
        return {
            "type": self.type,
            "service_id": self.service_id,
            "part_name": self.name,
            "price_cents": self.price_cents,
            "qty": self.qty,
            "line_total_cents": self.line_total_cents,
        }


@dataclass(frozen=True)
class ChargeLine:
    name: str
    price_cents: int
    qty: int = 1

    type = "charge"

    @property
    def line_total_cents(self) -> int:
        return self.price_cents * self.qty

    def to_snapshot(self) -> dict:
        return {
            "type": self.type,
            "part_name": self.name,
            "price_cents": self.price_cents,
            "qty": self.qty,
            "line_total_cents": self.line_total_cents,
        }


@dataclass(frozen=True)
class CreditSettlementLine:
    vehicle_no: str
    amount_cents: int
    original_sale_ids: tuple[int, ...]

    type = "credit_payment"
    qty = 1

    @property
    def name(self) -> str:
        return f"OLD CREDIT ({self.vehicle_no})"

    @property
    def price_cents(self) -> int:
        return self.amount_cents

    @property
    def line_total_cents(self) -> int:
        return self.amount_cents

    def to_snapshot(self) -> dict:
        return {
            "type": self.type,
            "part_name": self.name,
            "vehicle_no": self.vehicle_no,
            "price_cents": self.amount_cents,
            "qty": 1,
            "line_total_cents": self.amount_cents,
            "original_sale_ids": list(self.original_sale_ids),
        }


CartLine = Union[PartLine, ServiceLine, ChargeLine, CreditSettlementLine]


class Cart:
    def __init__(self):
        self.lines: list[CartLine] = []
        self.discount_cents: int = 0
        self.redeemed_points: int = 0
        self.redeemed_phone: str | None = None

    def __len__(self) -> int:
        return len(self.lines)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    # -- composition ---------------------------------------------------------

    def add_part(self, item) -> PartLine:
        """
        Add one unit of a catalog item, merging with an existing line.

        Guarded by the stock the catalog last saw; the checkout re-checks
        against the store.
        """
        if item.stock <= 0:
            raise ValidationError("Out of stock", {"item_id": item.id})

        for index, line in enumerate(self.lines):
            if isinstance(line, PartLine) and line.item_id == item.id:
                if line.qty >= item.stock:
                    raise ValidationError("Maximum stock reached", {"item_id": item.id, "stock": item.stock})
                updated = replace(line, qty=line.qty + 1)
                self.lines[index] = updated
                return updated

        line = PartLine(
            item_id=item.id,
            part_name=item.part_name,
            part_number=item.part_number,
            category=item.category,
            price_cents=item.price_cents,
            buying_price_cents=item.buying_price_cents,
            qty=1,
        )
        self.lines.append(line)
        return line

    def add_service(self, service) -> ServiceLine:
        # Each click is its own line, as on the printed bill
        line = ServiceLine(service_id=service.id, name=service.name, price_cents=service.price_cents)
        self.lines.append(line)
        return line

    def add_charge(self, name: str | None, amount_cents) -> ChargeLine:
        amount = coerce_cents(amount_cents, "amount_cents", allow_zero=False)
        line = ChargeLine(name=(name or "").strip() or DEFAULT_CHARGE_NAME, price_cents=amount)
        self.lines.append(line)
        return line

    def add_credit_settlement(self, vehicle_no: str, unpaid_sales) -> CreditSettlementLine:
        """
        unpaid_sales: the vehicle's outstanding credit sales (id, total_cents).
        Only one settlement line per cart.
        """
        if any(isinstance(line, CreditSettlementLine) for line in self.lines):
            raise ValidationError("Credit already added to cart")

        vno = normalize_vehicle_no(vehicle_no)
        if not vno:
            raise ValidationError("vehicle_no is required")

        ids = tuple(s.id for s in unpaid_sales)
        amount = sum(s.total_cents for s in unpaid_sales)
        if not ids or amount <= 0:
            raise ValidationError("No outstanding credit for this vehicle", {"vehicle_no": vno})

        line = CreditSettlementLine(vehicle_no=vno, amount_cents=amount, original_sale_ids=ids)
        self.lines.append(line)
        return line

    def remove(self, index: int) -> CartLine:
        if index < 0 or index >= len(self.lines):
            raise ValidationError("Cart line not found", {"index": index})
        return self.lines.pop(index)

    def set_discount(self, discount_cents) -> None:
        discount = coerce_cents(discount_cents, "discount_cents", default=0)
        if discount < self.redeemed_points * CENTS_PER_POINT:
            raise ValidationError("Discount cannot be lower than the redeemed points")
        self.discount_cents = discount

    def apply_points(self, available_points: int, points: int | None = None, *, phone: str | None = None) -> int:
        """
        Redeem loyalty points as discount (1 point = 1 currency unit).

        Defaults to the most the bill allows. Once per cart. phone is the
        customer whose balance was checked; checkout must debit that customer.
        """
        if self.redeemed_points:
            raise ValidationError("Points already redeemed for this bill")

        current_total = self.total_cents
        if available_points <= 0:
            raise ValidationError("No points to redeem!")
        if current_total <= 0:
            raise ValidationError("Bill total is already zero!")

        if points is None:
            points = min(available_points, current_total // CENTS_PER_POINT)
        if points <= 0:
            raise ValidationError("points must be > 0")
        if points > available_points:
            raise ValidationError("Not enough points", {"available": available_points})
        if points * CENTS_PER_POINT > current_total:
            raise ValidationError("Redemption exceeds the bill total")

        self.redeemed_points = points
        self.redeemed_phone = phone
        self.discount_cents += points * CENTS_PER_POINT
        return points

    def clear(self) -> None:
        self.lines = []
        self.discount_cents = 0
        self.redeemed_points = 0
        self.redeemed_phone = None

    # -- totals --------------------------------------------------------------

    @property
    def subtotal_cents(self) -> int:
        return sum(line.line_total_cents for line in self.lines)

    @property
    def total_cents(self) -> int:
        return self.subtotal_cents - self.discount_cents

    def part_lines(self) -> list[PartLine]:
        return [line for line in self.lines if isinstance(line, PartLine)]

    def credit_lines(self) -> list[CreditSettlementLine]:
        return [line for line in self.lines if isinstance(line, CreditSettlementLine)]

    def to_dict(self) -> dict:
        return {
            "lines": [line.to_snapshot() for line in self.lines],
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "redeemed_points": self.redeemed_points,
            "redeemed_phone": self.redeemed_phone,
            "total_cents": self.total_cents,
        }
