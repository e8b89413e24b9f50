# Import every model module so Base.metadata knows all tables
from models import users, product, order, inventory, assignment, log  # noqa: F401
