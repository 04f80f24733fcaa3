"""
CLI command tests (flask system / users / days).
"""

from garagepos.models import InventoryItem, Sale, ServiceDefinition, User
from garagepos.services import checkout_service
from garagepos.services.cart import Cart


class TestSystemCommands:
    def test_init_seeds_admin_and_demo_catalog(self, app, db_session):
        runner = app.test_cli_runner()

        result = runner.invoke(args=["system", "init"])
        assert result.exit_code == 0, result.output
        assert "PASS Admin account: admin" in result.output

        # Idempotent
        result = runner.invoke(args=["system", "init"])
        assert result.exit_code == 0, result.output
        assert "Catalog left unchanged" in result.output

        assert db_session.query(User).filter_by(username="admin").count() == 1
        assert db_session.query(InventoryItem).count() == 4
        assert db_session.query(ServiceDefinition).count() == 3

    def test_init_without_demo(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["system", "init", "--no-demo"])
        assert result.exit_code == 0, result.output
        assert db_session.query(InventoryItem).count() == 0

    def test_wipe_keeps_users_and_catalog(self, app, db_session, staff_user, open_day, make_item):
        make_item()
        day = open_day(staff_user)
        cart = Cart()
        cart.add_charge("Labour", 1000)
        checkout_service.checkout(
            cart, session_id=day.id, user_id=staff_user.id, vehicle_no="AB-1",
            payment_method="cash", cash_received_cents=1000,
        )

        result = app.test_cli_runner().invoke(args=["system", "wipe", "--yes"])

        assert result.exit_code == 0, result.output
        assert db_session.query(Sale).count() == 0
        assert db_session.query(User).count() == 1
        assert db_session.query(InventoryItem).count() == 1


class TestUserCommands:
    def test_create_and_list(self, app, db_session):
        runner = app.test_cli_runner()

        result = runner.invoke(args=["users", "create", "--username", "nimal", "--password", "abcd", "--role", "staff"])
        assert "PASS Created user: nimal" in result.output

        result = runner.invoke(args=["users", "list"])
        assert "nimal" in result.output

    def test_days_list(self, app, staff_user, open_day):
        open_day(staff_user, 150000)

        result = app.test_cli_runner().invoke(args=["days", "list", "--status", "open"])

        assert result.exit_code == 0, result.output
        assert "kamal" in result.output
        assert "1,500.00" in result.output
