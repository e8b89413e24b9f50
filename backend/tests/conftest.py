"""
Pytest fixtures for the Order Desk backend tests.

Every test gets a fresh in-memory SQLite database, an application wired to it,
one user per role and two products.
"""
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from config import Settings
from database import Database, init_db
from main import create_app
from models.product import Product
from models.users import Role, User
from utils.hashing import get_password_hash
from utils.tokenJWT import create_access_token

TEST_PASSWORD = "secret-pass-123"


@pytest.fixture
def database():
    """In-memory database shared by the test and the app."""
    db = Database("sqlite://")
    init_db(db)
    yield db
    db.drop_all()
    db.dispose()


@pytest.fixture
def db_session(database):
    session = database.session()
    yield session
    session.close()


@pytest.fixture
def app(database):
    settings = Settings(_env_file=None, DATABASE_URL="sqlite://", LOG_LEVEL="WARNING")
    return create_app(settings=settings, database=database)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture(scope="session")
def password_hash():
    # bcrypt is slow on purpose; hash once for the whole run
    return get_password_hash(TEST_PASSWORD)


def _make_user(session, email, role, password_hash, created_by=None):
    user = User(
        email=email,
        password_hash=password_hash,
        role=role,
        first_name=email.split("@")[0].title(),
        created_by_id=created_by.id if created_by else None,
    )
    session.add(user)
    session.commit()
    return user


@pytest.fixture
def admin(db_session, password_hash):
    return _make_user(db_session, "admin@example.com", Role.ADMIN, password_hash)


@pytest.fixture
def employee(db_session, admin, password_hash):
    return _make_user(db_session, "employee@example.com", Role.EMPLOYEE, password_hash, created_by=admin)


@pytest.fixture
def other_employee(db_session, admin, password_hash):
    return _make_user(db_session, "employee2@example.com", Role.EMPLOYEE, password_hash, created_by=admin)


@pytest.fixture
def customer(db_session, admin, password_hash):
    return _make_user(db_session, "customer@example.com", Role.CUSTOMER, password_hash, created_by=admin)


@pytest.fixture
def other_customer(db_session, admin, password_hash):
    return _make_user(db_session, "customer2@example.com", Role.CUSTOMER, password_hash, created_by=admin)


@pytest.fixture
def products(db_session):
    """Two products: 15.00 with 10 in stock, 10.00 with 5 in stock."""
    widget = Product(name="Widget", sku="W-1", price=Decimal("15.00"), stock=10)
    gadget = Product(name="Gadget", sku="G-1", price=Decimal("10.00"), stock=5)
    db_session.add_all([widget, gadget])
    db_session.commit()
    return widget, gadget


@pytest.fixture
def auth():
    """Build an Authorization header for a user."""
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(user)}"}
    return _headers


@pytest.fixture
def stock_of(db_session):
    """Read current stock straight from the database."""
    def _stock(product_id):
        db_session.expire_all()
        return db_session.get(Product, product_id).stock
    return _stock


@pytest.fixture
def password():
    """Plain-text password of every fixture user."""
    return TEST_PASSWORD
