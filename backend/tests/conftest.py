"""
Pytest fixtures for stockroom backend tests.

Provides test database setup, session workspaces and an authenticated
test client.
"""

import itertools

import pytest
from stockroom import create_app
from stockroom.extensions import db
from stockroom.models import SaleRecord, RestockRecord
from stockroom.services.auth_service import create_user
from stockroom.services.workspace_service import (
    get_change_feed,
    get_registry,
    get_store,
    reset_state,
)


TEST_PASSWORD = "Password123!"

_session_ids = itertools.count(1)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'CHANGE_FEED_DELIVERY': 'immediate',
        'STOCK_UPDATE_MODE': 'read_then_write',
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
    """Create fresh database and fresh feed/store/workspaces for each test."""
    with app.app_context():
        reset_state(app)
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()
        reset_state(app)


@pytest.fixture(scope='function')
def configure(app, db_session):
    """
    Override app config for one test. Feed/store/workspaces are rebuilt so
    the new values take effect.
    """
    saved = {}

    def _apply(**values):
        for key, value in values.items():
            saved.setdefault(key, app.config.get(key))
            app.config[key] = value
        reset_state(app)

    yield _apply

    app.config.update(saved)
    reset_state(app)


@pytest.fixture(scope='function')
def feed(db_session):
    return get_change_feed()


@pytest.fixture(scope='function')
def store(db_session):
    return get_store()


@pytest.fixture(scope='function')
def open_workspace(db_session):
    """Open an extra session workspace (a second browser, another cashier...)."""
    def _open(user_id: int = 1):
        return get_registry().open(next(_session_ids), user_id)
    return _open


@pytest.fixture(scope='function')
def workspace(open_workspace):
    return open_workspace()


@pytest.fixture(scope='function')
def ledger(workspace):
    return workspace.ledger


@pytest.fixture(scope='function')
def rice(ledger):
    """Rice, 100 kg at 50.00."""
    return ledger.create_product("Rice", 100, "kg", "50")


@pytest.fixture(scope='function')
def user(db_session):
    return create_user("owner@example.com", TEST_PASSWORD, rounds=4)


def login(client, email: str = "owner@example.com", password: str = TEST_PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={'email': email, 'password': password})
    assert response.status_code == 200, response.json
    return response.json['token']


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def headers(client, user):
    return auth_headers(login(client))


def stored_stock(product_id: int) -> int | None:
    """Stock as the store has it, bypassing every mirror."""
    from stockroom.models import Product
    db.session.expire_all()
    product = db.session.get(Product, product_id)
    return product.stock if product else None


def stored_counts() -> tuple[int, int]:
    db.session.expire_all()
    return db.session.query(SaleRecord).count(), db.session.query(RestockRecord).count()
