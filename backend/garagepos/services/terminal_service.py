# Overview: Per-login terminal state (catalog cache, cart, active business day).

"""
Terminal Service

A terminal is what one logged-in user works on: a read cache of the catalog,
the cart being rung up, and the id of that user's open business day.

Terminals live in a TerminalRegistry stored on the Flask app
(app.extensions["terminals"]), keyed by the login token hash. They are
opened at login and dropped at logout. After a server restart a valid token
gets a fresh terminal lazily (empty cart, open day restored from the store).

Every mutation of a terminal's cart happens under that terminal's lock;
the catalog is re-read from the store before it is shown or used to add a
line, so sales and GRNs committed at other logins are always visible.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass, field

from flask import current_app

from ..extensions import db
from ..models import Customer, User
from ..validation import NotFoundError, ValidationError, coerce_int, resolve_phone
from . import checkout_service, day_service, reconciliation_service, sales_service
from .auth_service import hash_token
from .cart import Cart
from .catalog_service import Catalog


@dataclass
class TerminalState:
    token_hash: str
    user_id: int
    username: str
    role: str
    catalog: Catalog
    cart: Cart = field(default_factory=Cart)
    session_id: int | None = None
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "username": self.username,
            "role": self.role,
            "session_id": self.session_id,
            "cart": self.cart.to_dict(),
        }


class TerminalRegistry:
    """Thread-safe map of token hash -> TerminalState."""

    def __init__(self):
        self._terminals: dict[str, TerminalState] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._terminals)

    def get(self, token_hash: str) -> TerminalState | None:
        with self._lock:
            return self._terminals.get(token_hash)

    def put(self, state: TerminalState) -> TerminalState:
        with self._lock:
            # Keep an existing terminal if another request opened it first
            return self._terminals.setdefault(state.token_hash, state)

    def pop(self, token_hash: str) -> TerminalState | None:
        with self._lock:
            return self._terminals.pop(token_hash, None)

    def drop_user(self, user_id: int) -> int:
        with self._lock:
            stale = [k for k, t in self._terminals.items() if t.user_id == user_id]
            for key in stale:
                del self._terminals[key]
            return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._terminals.clear()


def registry() -> TerminalRegistry:
    return current_app.extensions["terminals"]


def _new_state(token: str, user: User) -> TerminalState:
    active = day_service.get_active_session(user.id)
    return TerminalState(
        token_hash=hash_token(token),
        user_id=user.id,
        username=user.username,
        role=user.role,
        catalog=Catalog().refresh(),
        session_id=active.id if active else None,
    )


def open_terminal(token: str, user: User) -> TerminalState:
    state = registry().put(_new_state(token, user))
    current_app.logger.info("Terminal opened for %s (day %s)", user.username, state.session_id)
    return state


def terminal_for(token: str, user: User) -> TerminalState:
    state = registry().get(hash_token(token))
    if state is None:
        state = registry().put(_new_state(token, user))
    return state


def close_terminal(token: str) -> bool:
    state = registry().pop(hash_token(token))
    if state is None:
        return False
    if not state.cart.is_empty:
        current_app.logger.info("Terminal of %s closed with %s unsold cart lines", state.username, len(state.cart))
    return True


def refresh_catalog(state: TerminalState) -> None:
    with state.lock:
        state.catalog.refresh()


# ---------------------------------------------------------------------------
# Cart operations
# ---------------------------------------------------------------------------

def add_item(state: TerminalState, item_id) -> Cart:
    item_id = coerce_int(item_id, "item_id")
    with state.lock:
        # Stock may have moved at another terminal
        item = state.catalog.refresh().item(item_id)
        if item is None:
            raise NotFoundError("Item not found", {"item_id": item_id})
        state.cart.add_part(item)
        return state.cart


def scan_part_number(state: TerminalState, part_number: str) -> Cart:
    with state.lock:
        item = state.catalog.refresh().find_by_part_number(part_number)
        if item is None:
            raise NotFoundError("Item not found!", {"part_number": part_number})
        state.cart.add_part(item)
        return state.cart


def add_service(state: TerminalState, service_id) -> Cart:
    service_id = coerce_int(service_id, "service_id")
    with state.lock:
        service = state.catalog.refresh().service(service_id)
        if service is None:
            raise NotFoundError("Service not found", {"service_id": service_id})
        state.cart.add_service(service)
        return state.cart


def add_charge(state: TerminalState, name: str | None, amount_cents) -> Cart:
    with state.lock:
        state.cart.add_charge(name, amount_cents)
        return state.cart


def add_outstanding_credit(state: TerminalState, vehicle_no: str) -> Cart:
    unpaid = sales_service.unpaid_credit_sales(vehicle_no)
    with state.lock:
        state.cart.add_credit_settlement(vehicle_no, unpaid)
        return state.cart


def remove_line(state: TerminalState, index) -> Cart:
    index = coerce_int(index, "index")
    with state.lock:
        state.cart.remove(index)
        return state.cart


def set_discount(state: TerminalState, discount_cents) -> Cart:
    with state.lock:
        state.cart.set_discount(discount_cents)
        return state.cart


def redeem_points(state: TerminalState, phone: str, points=None) -> Cart:
    resolved = resolve_phone(phone)
    if not resolved:
        raise ValidationError("Enter the customer's phone number to redeem points")
    customer = db.session.query(Customer).filter_by(phone=resolved).first()
    available = customer.points if customer else 0
    requested = None if points in (None, "") else coerce_int(points, "points")
    with state.lock:
        state.cart.apply_points(available, requested, phone=resolved)
        return state.cart


def clear_cart(state: TerminalState) -> Cart:
    with state.lock:
        state.cart.clear()
        return state.cart


# ---------------------------------------------------------------------------
# Business day and checkout
# ---------------------------------------------------------------------------

def _require_day(state: TerminalState) -> int:
    if state.session_id is None:
        active = day_service.get_active_session(state.user_id)
        state.session_id = active.id if active else None
    if state.session_id is None:
        raise day_service.NoActiveSession("Please start the day first")
    return state.session_id


def start_day(state: TerminalState, opening_float_cents):
    with state.lock:
        session = day_service.start_day(state.user_id, opening_float_cents)
        state.session_id = session.id
        return session


def checkout_cart(state: TerminalState, payload: dict):
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    with state.lock:
        session_id = _require_day(state)
        try:
            sale = checkout_service.checkout(
                state.cart,
                session_id=session_id,
                user_id=state.user_id,
                vehicle_no=payload.get("vehicle_no"),
                customer_name=payload.get("customer_name"),
                customer_phone=payload.get("customer_phone"),
                mileage=payload.get("mileage"),
                payment_method=payload.get("payment_method") or "cash",
                cash_received_cents=payload.get("cash_received_cents"),
            )
        except day_service.NoActiveSession:
            # Day was closed from another terminal
            state.session_id = None
            raise
        finally:
            state.catalog.refresh()
        state.cart.clear()
        return sale


def end_day(state: TerminalState, cash_in_hand_cents, *, manager_override: bool = False):
    with state.lock:
        session_id = _require_day(state)
        try:
            report = reconciliation_service.reconcile(
                session_id,
                cash_in_hand_cents,
                user_id=state.user_id,
                manager_override=manager_override,
            )
        except day_service.NoActiveSession:
            # Day was closed from another terminal
            state.session_id = None
            raise
        state.session_id = None
        state.cart.clear()
        return report
