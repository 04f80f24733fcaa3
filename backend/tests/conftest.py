"""
Pytest fixtures for GaragePOS backend tests.

Provides the in-memory database, a wiped store per test, catalog/user
factories and logged-in request headers.
"""

import pytest

from garagepos import create_app
from garagepos.config import TestingConfig
from garagepos.extensions import db
from garagepos.models import InventoryItem, ServiceDefinition
from garagepos.models.auth import ROLE_STAFF
from garagepos.services import auth_service, day_service, terminal_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestingConfig)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Empty every table and drop open terminals before each test."""
    for table in reversed(db.metadata.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()
    terminal_service.registry().clear()

    yield db.session

    db.session.rollback()


@pytest.fixture(scope='function')
def make_user(db_session):
    def _make(username="kamal", password="1234", role=ROLE_STAFF):
        return auth_service.create_user(username, password, role=role)
    return _make


@pytest.fixture(scope='function')
def make_item(db_session):
    def _make(**overrides):
        fields = {
            "part_name": "Oil Filter",
            "part_number": "OF-100",
            "category": "Filters",
            "price_cents": 150000,
            "buying_price_cents": 110000,
            "stock": 10,
        }
        fields.update(overrides)
        item = InventoryItem(**fields)
        db_session.add(item)
        db_session.commit()
        return item
    return _make


@pytest.fixture(scope='function')
def make_service(db_session):
    def _make(service_name="Body Wash", cost_cents=150000):
        service = ServiceDefinition(service_name=service_name, cost_cents=cost_cents)
        db_session.add(service)
        db_session.commit()
        return service
    return _make


@pytest.fixture(scope='function')
def admin_user(db_session):
    """The built-in admin (admin / 1234)."""
    return auth_service.ensure_default_admin()


@pytest.fixture(scope='function')
def staff_user(make_user):
    return make_user("kamal", "1234", ROLE_STAFF)


@pytest.fixture(scope='function')
def open_day(db_session):
    """Start a business day for a user; returns the session."""
    def _open(user, float_cents=0):
        return day_service.start_day(user.id, float_cents)
    return _open


@pytest.fixture(scope='function')
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, "admin", "1234"))


@pytest.fixture(scope='function')
def staff_headers(client, staff_user):
    return auth_headers(get_auth_token(client, "kamal", "1234"))


def get_auth_token(client, username: str, password: str) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
