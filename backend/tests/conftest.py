"""
Pytest fixtures for back-office backend tests.

Provides the app on an in-memory database, a clean session per test,
customer/product fixtures and authentication helpers.
"""

import pytest
from backoffice import create_app
from backoffice.extensions import db
from backoffice.models import Customer
from backoffice.services import inventory_service
from backoffice.services.auth_service import create_user


TEST_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })

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
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def customer(db_session):
    """Customer C1."""
    c = Customer(name="C1", phone="0900000001")
    db_session.add(c)
    db_session.commit()
    return c


@pytest.fixture(scope='function')
def other_customer(db_session):
    c = Customer(name="C2", phone="0900000002")
    db_session.add(c)
    db_session.commit()
    return c


@pytest.fixture(scope='function')
def product(db_session):
    """Product P1: cost 60, sale 100, opening stock 50."""
    return inventory_service.create_product({
        "code": "P1",
        "name": "Product One",
        "cost_price": 60,
        "sale_price": 100,
        "new_stock": 50,
    })


@pytest.fixture(scope='function')
def second_product(db_session):
    """Product P2: cost 20, sale 35, opening stock 30."""
    return inventory_service.create_product({
        "code": "P2",
        "name": "Product Two",
        "cost_price": 20,
        "sale_price": 35,
        "new_stock": 30,
    })


@pytest.fixture(scope='function')
def user(db_session):
    return create_user("admin", TEST_PASSWORD)


@pytest.fixture(scope='function')
def auth(client, user):
    """Authorization headers for a logged-in user."""
    token = get_auth_token(client, user.username, TEST_PASSWORD)
    assert token, "login failed in fixture"
    return auth_headers(token)


def get_auth_token(client, username: str, password: str) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/users/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}

