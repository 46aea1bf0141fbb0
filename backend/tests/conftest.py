"""
Pytest fixtures for boutique backend tests.

Provides the app with an in-memory database, per-test table cleanup,
seeded users for each role and authenticated headers.
"""

import pytest

from boutique import create_app
from boutique.extensions import db
from boutique.models import Client, FinancialClosure, Owner, Product, ProductSize
from boutique.services.auth_service import create_user
from boutique.services.closure_service import current_month
from boutique.time_utils import utcnow


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'LOG_LEVEL': 'WARNING',
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
    db.session.rollback()
    # Clear all data but keep schema
    for table in reversed(db.metadata.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    db.session.rollback()


@pytest.fixture(scope='function')
def owner_record(db_session):
    owner = Owner(name="Atelier Rosa")
    db_session.add(owner)
    db_session.commit()
    return owner


@pytest.fixture(scope='function')
def seed(db_session, owner_record):
    """One user per role. The OWNER user is linked to owner_record."""
    return {
        "admin": create_user("admin@test.local", PASSWORD, "Admin", "ADMIN"),
        "owner": create_user("owner@test.local", PASSWORD, "Owner", "OWNER", owner_id=owner_record.id),
        "cashier": create_user("cashier@test.local", PASSWORD, "Cashier", "CASHIER"),
    }


def get_auth_token(client, email: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(client, seed):
    return auth_headers(get_auth_token(client, "admin@test.local"))


@pytest.fixture(scope='function')
def owner_headers(client, seed):
    return auth_headers(get_auth_token(client, "owner@test.local"))


@pytest.fixture(scope='function')
def cashier_headers(client, seed):
    return auth_headers(get_auth_token(client, "cashier@test.local"))


def make_product(name="Linen Dress", sku="DR-001", price_cents=4990, cost_cents=2000, sizes=None, stock=0, owner_id=None):
    """Insert a product directly; `sizes` is a {size: stock} mapping."""
    product = Product(
        name=name,
        sku=sku,
        price_cents=price_cents,
        cost_cents=cost_cents,
        stock=stock,
        owner_id=owner_id,
    )
    for size, qty in (sizes or {}).items():
        product.sizes.append(ProductSize(size=size, stock=qty))
    product.recompute_stock()
    db.session.add(product)
    db.session.commit()
    return product


@pytest.fixture(scope='function')
def dress(db_session):
    """Sized product: M has 15 units, G has 2."""
    return make_product(sizes={"M": 15, "G": 2})


@pytest.fixture(scope='function')
def customer(db_session):
    client_row = Client(name="Maria Souza", phone="+55 11 99999-0000", balance_cents=0)
    db_session.add(client_row)
    db_session.commit()
    return client_row


def close_current_month():
    """Lock the current competency month directly."""
    db.session.add(FinancialClosure(month=current_month(), locked_at=utcnow()))
    db.session.commit()
