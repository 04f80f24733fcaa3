"""
HTTP API tests.

Verifies:
- Unauthenticated requests return 401
- Staff role denied admin operations (403)
- Login/logout lifecycle and per-login terminals
- A full till day over HTTP: start, ring up, checkout, end
"""

import pytest

from conftest import auth_headers, get_auth_token

pytestmark = pytest.mark.http


# =============================================================================
# UNAUTHENTICATED ACCESS: 401
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/auth/me"),
            ("GET", "/api/users"),
            ("POST", "/api/days/start"),
            ("POST", "/api/days/end"),
            ("GET", "/api/pos/cart"),
            ("POST", "/api/pos/checkout"),
            ("GET", "/api/catalog/items"),
            ("GET", "/api/sales"),
            ("GET", "/api/customers"),
            ("GET", "/api/reminders"),
            ("GET", "/api/purchasing/suppliers"),
            ("GET", "/api/expenses"),
            ("GET", "/api/reports/dashboard"),
            ("GET", "/api/backup"),
            ("GET", "/api/journal"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_garbage_token_rejected(self, client, db_session):
        resp = client.get("/api/auth/me", headers=auth_headers("not-a-token"))
        assert resp.status_code == 401
        assert resp.json["error"] == "Invalid or expired token"


# =============================================================================
# STAFF DENIED ADMIN OPERATIONS: 403
# =============================================================================


class TestStaffDeniedAdmin:
    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/users"),
            ("POST", "/api/users"),
            ("POST", "/api/catalog/items"),
            ("DELETE", "/api/catalog/items/1"),
            ("POST", "/api/catalog/services"),
            ("GET", "/api/purchasing/suppliers"),
            ("POST", "/api/purchasing/grns"),
            ("DELETE", "/api/expenses/1"),
            ("GET", "/api/reports/sales"),
            ("GET", "/api/reports/stock"),
            ("GET", "/api/settings/email"),
            ("GET", "/api/backup"),
            ("POST", "/api/backup/restore"),
            ("PUT", "/api/days/1/float"),
        ],
    )
    def test_forbidden(self, client, staff_headers, method, path):
        resp = getattr(client, method.lower())(path, headers=staff_headers, json={})
        assert resp.status_code == 403, f"{method} {path} returned {resp.status_code}"
        assert resp.json["error"] == "Permission denied"

    def test_staff_can_use_the_till(self, client, staff_headers):
        assert client.get("/api/pos/catalog", headers=staff_headers).status_code == 200
        assert client.get("/api/reports/dashboard", headers=staff_headers).status_code == 200
        assert client.get("/api/catalog/items", headers=staff_headers).status_code == 200


# =============================================================================
# LOGIN / LOGOUT
# =============================================================================


class TestAuth:
    def test_login_returns_token_and_terminal(self, client, staff_user):
        resp = client.post("/api/auth/login", json={"username": "kamal", "password": "1234"})

        assert resp.status_code == 200
        assert resp.json["token"]
        assert resp.json["user"]["role"] == "staff"
        assert resp.json["terminal"]["session_id"] is None
        assert resp.json["terminal"]["cart"]["lines"] == []

    def test_wrong_password(self, client, staff_user):
        resp = client.post("/api/auth/login", json={"username": "kamal", "password": "nope"})
        assert resp.status_code == 401

    def test_missing_fields(self, client, db_session):
        resp = client.post("/api/auth/login", json={"username": "kamal"})
        assert resp.status_code == 400

    def test_logout_revokes_token(self, client, staff_headers):
        assert client.post("/api/auth/logout", headers=staff_headers).status_code == 200
        assert client.get("/api/auth/me", headers=staff_headers).status_code == 401

    def test_change_own_password(self, client, staff_headers):
        resp = client.post(
            "/api/auth/password",
            json={"current_password": "1234", "new_password": "5678"},
            headers=staff_headers,
        )
        assert resp.status_code == 200
        assert get_auth_token(client, "kamal", "5678")
        assert get_auth_token(client, "kamal", "1234") is None

    def test_deleted_user_is_locked_out(self, client, admin_headers, staff_user, staff_headers):
        resp = client.delete(f"/api/users/{staff_user.id}", headers=admin_headers)

        assert resp.status_code == 200
        assert client.get("/api/auth/me", headers=staff_headers).status_code == 401
        assert get_auth_token(client, "kamal", "1234") is None

    def test_admin_cannot_delete_self(self, client, admin_user, admin_headers):
        resp = client.delete(f"/api/users/{admin_user.id}", headers=admin_headers)
        assert resp.status_code == 409

    def test_admin_creates_user(self, client, admin_headers):
        resp = client.post(
            "/api/users",
            json={"username": "nimal", "password": "abcd", "role": "staff"},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        assert get_auth_token(client, "nimal", "abcd")


# =============================================================================
# TERMINALS AND THE TILL DAY
# =============================================================================


class TestTillDay:
    def test_full_day_over_http(self, client, staff_headers, make_item, make_service):
        item = make_item(price_cents=150000, buying_price_cents=110000, stock=3)
        service = make_service("Body Wash", 50000)

        resp = client.post("/api/days/start", json={"opening_float_cents": 500000}, headers=staff_headers)
        assert resp.status_code == 201
        session_id = resp.json["session"]["id"]

        assert client.post("/api/pos/cart/items", json={"item_id": item.id}, headers=staff_headers).status_code == 200
        resp = client.post("/api/pos/cart/services", json={"service_id": service.id}, headers=staff_headers)
        assert resp.json["cart"]["subtotal_cents"] == 200000

        resp = client.post(
            "/api/pos/checkout",
            json={
                "vehicle_no": "cab-1234",
                "customer_name": "Nimal",
                "customer_phone": "0771234567",
                "mileage": 45000,
                "payment_method": "cash",
                "cash_received_cents": 250000,
            },
            headers=staff_headers,
        )
        assert resp.status_code == 201
        sale = resp.json["sale"]
        assert sale["invoice_no"] == 1
        assert sale["vehicle_no"] == "CAB-1234"
        assert sale["balance_cents"] == 50000
        assert resp.json["cart"]["lines"] == []

        resp = client.get("/api/pos/next-invoice", headers=staff_headers)
        assert resp.json["next_invoice_no"] == 2

        resp = client.get("/api/pos/catalog", headers=staff_headers)
        assert resp.json["items"][0]["stock"] == 2

        resp = client.post("/api/days/end", json={"cash_in_hand_cents": 700000}, headers=staff_headers)
        assert resp.status_code == 200
        report = resp.json["report"]
        assert report["session_id"] == session_id
        assert report["expected_cents"] == 700000
        assert report["variance_cents"] == 0

        resp = client.post("/api/days/end", json={"cash_in_hand_cents": 700000}, headers=staff_headers)
        assert resp.status_code == 409

        resp = client.get(f"/api/days/{session_id}/report", headers=staff_headers)
        assert resp.json["report"]["cash_sales_cents"] == 200000

    def test_checkout_without_open_day(self, client, staff_headers):
        client.post("/api/pos/cart/charges", json={"name": "Labour", "amount_cents": 1000}, headers=staff_headers)

        resp = client.post("/api/pos/checkout", json={"vehicle_no": "AB-1"}, headers=staff_headers)

        assert resp.status_code == 409
        assert resp.json["error"] == "Please start the day first"
        assert len(client.get("/api/pos/cart", headers=staff_headers).json["cart"]["lines"]) == 1

    def test_checkout_validation_keeps_cart(self, client, staff_headers):
        client.post("/api/days/start", json={"opening_float_cents": 0}, headers=staff_headers)
        client.post("/api/pos/cart/charges", json={"amount_cents": 1000}, headers=staff_headers)

        resp = client.post("/api/pos/checkout", json={"vehicle_no": ""}, headers=staff_headers)

        assert resp.status_code == 400
        assert resp.json["error"] == "Please enter Vehicle Number"
        assert client.get("/api/pos/cart", headers=staff_headers).json["cart"]["subtotal_cents"] == 1000

    def test_second_start_conflicts(self, client, staff_headers):
        assert client.post("/api/days/start", json={}, headers=staff_headers).status_code == 201
        assert client.post("/api/days/start", json={}, headers=staff_headers).status_code == 409

    def test_day_closed_at_another_login_resets_the_terminal(self, client, staff_user):
        first = auth_headers(get_auth_token(client, "kamal", "1234"))
        session_id = client.post("/api/days/start", json={}, headers=first).json["session"]["id"]
        second = auth_headers(get_auth_token(client, "kamal", "1234"))
        assert client.get("/api/auth/me", headers=second).json["terminal"]["session_id"] == session_id

        assert client.post("/api/days/end", json={"cash_in_hand_cents": 0}, headers=first).status_code == 200
        assert client.post("/api/days/end", json={"cash_in_hand_cents": 0}, headers=second).status_code == 409

        assert client.get("/api/auth/me", headers=second).json["terminal"]["session_id"] is None
        resp = client.post("/api/days/start", json={}, headers=second)
        assert resp.status_code == 201
        assert client.get("/api/auth/me", headers=second).json["terminal"]["session_id"] == resp.json["session"]["id"]

    def test_each_login_has_its_own_cart(self, client, staff_user):
        first = auth_headers(get_auth_token(client, "kamal", "1234"))
        second = auth_headers(get_auth_token(client, "kamal", "1234"))

        client.post("/api/pos/cart/charges", json={"amount_cents": 1000}, headers=first)

        assert len(client.get("/api/pos/cart", headers=first).json["cart"]["lines"]) == 1
        assert client.get("/api/pos/cart", headers=second).json["cart"]["lines"] == []

    def test_new_item_reaches_the_till(self, client, admin_headers, staff_headers):
        resp = client.post(
            "/api/catalog/items",
            json={"part_name": "Spark Plug", "part_number": "SP-1", "price_cents": 80000, "stock": 6},
            headers=admin_headers,
        )
        assert resp.status_code == 201

        resp = client.post("/api/pos/cart/scan", json={"part_number": "SP-1"}, headers=staff_headers)
        assert resp.status_code == 200
        assert resp.json["cart"]["lines"][0]["part_name"] == "Spark Plug"

    def test_restock_at_another_login_reaches_the_till(self, client, staff_headers, admin_headers, make_item):
        item_id = make_item(stock=0).id
        grid = client.get("/api/pos/catalog", headers=staff_headers).json["items"]
        assert [i["stock"] for i in grid] == [0]
        resp = client.post("/api/pos/cart/items", json={"item_id": item_id}, headers=staff_headers)
        assert resp.status_code == 400

        supplier_id = client.post(
            "/api/purchasing/suppliers", json={"name": "Lanka Auto Parts"}, headers=admin_headers
        ).json["supplier"]["id"]
        resp = client.post(
            "/api/purchasing/grns",
            json={"supplier_id": supplier_id, "items": [{"item_id": item_id, "qty": 10, "cost_cents": 100000}]},
            headers=admin_headers,
        )
        assert resp.status_code == 201

        grid = client.get("/api/pos/catalog", headers=staff_headers).json["items"]
        assert [i["stock"] for i in grid] == [10]
        resp = client.post("/api/pos/cart/items", json={"item_id": item_id}, headers=staff_headers)
        assert resp.status_code == 200
        assert resp.json["cart"]["lines"][0]["qty"] == 1

    def test_sell_out_at_another_login_reaches_the_till(self, client, staff_headers, admin_headers, make_item):
        item_id = make_item(stock=1).id
        client.get("/api/pos/catalog", headers=staff_headers)

        client.post("/api/days/start", json={}, headers=admin_headers)
        client.post("/api/pos/cart/items", json={"item_id": item_id}, headers=admin_headers)
        resp = client.post(
            "/api/pos/checkout",
            json={"vehicle_no": "CAB-1", "cash_received_cents": 150000},
            headers=admin_headers,
        )
        assert resp.status_code == 201

        resp = client.post("/api/pos/cart/items", json={"item_id": item_id}, headers=staff_headers)
        assert resp.status_code == 400
        assert resp.json["error"] == "Out of stock"

    def test_credit_settled_at_the_till(self, client, staff_headers):
        client.post("/api/days/start", json={}, headers=staff_headers)
        client.post("/api/pos/cart/charges", json={"amount_cents": 80000}, headers=staff_headers)
        resp = client.post(
            "/api/pos/checkout",
            json={"vehicle_no": "CAB-1", "payment_method": "credit"},
            headers=staff_headers,
        )
        credit_id = resp.json["sale"]["id"]

        resp = client.get("/api/pos/vehicles/cab-1", headers=staff_headers)
        assert resp.json["outstanding_credit_cents"] == 80000

        resp = client.post("/api/pos/cart/credit", json={"vehicle_no": "CAB-1"}, headers=staff_headers)
        assert resp.json["cart"]["lines"][0]["type"] == "credit_payment"
        resp = client.post(
            "/api/pos/checkout",
            json={"vehicle_no": "CAB-1", "payment_method": "cash", "cash_received_cents": 80000},
            headers=staff_headers,
        )
        assert resp.status_code == 201

        assert client.get(f"/api/sales/{credit_id}", headers=staff_headers).json["sale"]["is_paid"] is True
        assert client.get("/api/pos/vehicles/CAB-1", headers=staff_headers).json["outstanding_credit_cents"] == 0


# =============================================================================
# VISIBILITY
# =============================================================================


class TestSalesVisibility:
    def test_staff_see_only_their_own_sales(self, client, admin_headers, staff_headers):
        for headers in (admin_headers, staff_headers):
            client.post("/api/days/start", json={}, headers=headers)
            client.post("/api/pos/cart/charges", json={"amount_cents": 1000}, headers=headers)
            client.post(
                "/api/pos/checkout",
                json={"vehicle_no": "AB-1", "cash_received_cents": 1000},
                headers=headers,
            )

        admin_sales = client.get("/api/sales", headers=admin_headers).json["sales"]
        staff_sales = client.get("/api/sales", headers=staff_headers).json["sales"]
        assert len(admin_sales) == 2
        assert len(staff_sales) == 1

        other = next(s for s in admin_sales if s["id"] != staff_sales[0]["id"])
        assert client.get(f"/api/sales/{other['id']}", headers=staff_headers).status_code == 403


class TestSystem:
    def test_health(self, client, db_session):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json["status"] == "healthy"

    def test_backup_download(self, client, admin_headers, make_item):
        make_item()
        resp = client.get("/api/backup", headers=admin_headers)

        assert resp.status_code == 200
        assert "attachment" in resp.headers["Content-Disposition"]
        assert len(resp.json["inventory"]) == 1

    def test_email_settings_roundtrip(self, client, admin_headers):
        resp = client.put(
            "/api/settings/email",
            json={"recipient": "owner@example.com", "auto_email": False},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert resp.json["status"] == "DISABLED"

        resp = client.put("/api/settings/email", json={"auto_email": True}, headers=admin_headers)
        assert resp.status_code == 400

    def test_test_email_needs_complete_settings(self, client, admin_headers):
        resp = client.post("/api/settings/email/test", json={}, headers=admin_headers)
        assert resp.status_code == 502
