"""
Storefront ORM models.

Mapped only as far as the database diagnostics need them: row counts,
recent orders and low stock products.
"""

from .base import Base, new_id, now_utc  # re-export

from .users import User, Address, PaymentMethod
from .catalog import Product
from .orders import Order, OrderItem

__all__ = [
    # base
    "Base",
    "new_id",
    "now_utc",
    # accounts
    "User",
    "Address",
    "PaymentMethod",
    # catalog/orders
    "Product",
    "Order",
    "OrderItem",
]
