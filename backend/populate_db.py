import os
import sys
from decimal import Decimal

# Add 'backend' folder to Python path
sys.path.append(os.path.abspath(os.path.dirname(__file__)))

from sqlalchemy import select

from config import get_settings
from database import Database, init_db, transaction
from models.assignment import CustomerAssignment
from models.product import Product
from models.users import Role, User
from utils.hashing import get_password_hash

# Configuration
DEFAULT_PASSWORD = os.getenv("SEED_PASSWORD", "changeme123")

SEED_USERS = [
    ("admin@orderdesk.example.com", Role.ADMIN, "Ada", "Admin"),
    ("employee@orderdesk.example.com", Role.EMPLOYEE, "Eryk", "Employee"),
    ("customer@orderdesk.example.com", Role.CUSTOMER, "Celina", "Customer"),
]

SEED_PRODUCTS = [
    ("Cordless drill", "TOOL-001", Decimal("249.99"), 12),
    ("Wood screws 4x40 (200 pcs)", "FAST-040", Decimal("15.00"), 150),
    ("Wall plugs 8mm (100 pcs)", "FAST-008", Decimal("10.00"), 80),
    ("Safety goggles", "SAFE-002", Decimal("19.50"), 40),
    ("Measuring tape 5m", "TOOL-005", Decimal("32.90"), 25),
]
# End Configuration


def _get_or_create_user(session, email, role, first_name, last_name, created_by=None):
    user = session.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if user:
        return user, False
    user = User(
        email=email,
        password_hash=get_password_hash(DEFAULT_PASSWORD),
        role=role,
        first_name=first_name,
        last_name=last_name,
        created_by_id=created_by.id if created_by else None,
    )
    session.add(user)
    session.flush()
    return user, True


def seed(database: Database):
    """Creates one user per role, a starter catalogue and the employee-customer mapping."""
    init_db(database)
    session = database.session()
    try:
        with transaction(session):
            users = {}
            admin = None
            for email, role, first_name, last_name in SEED_USERS:
                user, created = _get_or_create_user(session, email, role, first_name, last_name, created_by=admin)
                users[role] = user
                if role == Role.ADMIN:
                    admin = user
                print(f"{'Created' if created else 'Exists '} {role.value:<8} {email}")

            for name, sku, price, stock in SEED_PRODUCTS:
                if session.execute(select(Product.id).where(Product.sku == sku)).first():
                    continue
                session.add(Product(name=name, sku=sku, price=price, stock=stock))
                print(f"Added product {sku} ({stock} in stock)")

            customer, employee = users[Role.CUSTOMER], users[Role.EMPLOYEE]
            mapped = session.execute(
                select(CustomerAssignment.id).where(
                    CustomerAssignment.customer_id == customer.id,
                    CustomerAssignment.employee_id == employee.id,
                )
            ).first()
            if not mapped:
                session.add(CustomerAssignment(customer_id=customer.id, employee_id=employee.id))
                print(f"Mapped {customer.email} -> {employee.email}")
    finally:
        session.close()


if __name__ == "__main__":
    settings = get_settings()
    db = Database(settings.database_url_normalized, echo=settings.SQL_ECHO)
    try:
        seed(db)
        print(f"Seed complete. Password for all seeded accounts: {DEFAULT_PASSWORD}")
    finally:
        db.dispose()
