"""Row builders for seeding the SQLite test database."""
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from storefront.db import models

BASE_TIME = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_product(name, stock, price="19.99"):
    return models.Product(name=name, stock=stock, price=Decimal(price))


def make_order(index, total="49.90", status="PENDING"):
    return models.Order(
        order_number=f"ORD-{index:05d}",
        customer_name=f"Customer {index}",
        customer_email=f"customer{index}@example.com",
        address="1 Market Street",
        city="Lisbon",
        country="PT",
        postal_code="1100-001",
        total_amount=Decimal(total),
        status=status,
        created_at=BASE_TIME + timedelta(hours=index),
    )


def seed_store(db, *, stocks=(3, 0, 25, 7, 12), orders=7):
    products = [make_product(f"Product {i}", stock) for i, stock in enumerate(stocks)]
    user = models.User(email="buyer@example.com", name="Buyer")
    db.add_all(products + [user])
    db.flush()
    db.add(models.Address(
        user_id=user.id,
        full_name="Buyer",
        address="1 Market Street",
        city="Lisbon",
        country="PT",
        postal_code="1100-001",
    ))
    db.add(models.PaymentMethod(user_id=user.id, type="card", card_number="**** **** **** 4242"))
    order_rows = [make_order(i) for i in range(1, orders + 1)]
    db.add_all(order_rows)
    db.flush()
    db.add(models.OrderItem(
        order_id=order_rows[0].id,
        product_id=products[0].id,
        name=products[0].name,
        price=products[0].price,
        quantity=2,
    ))
    db.commit()
    return products, order_rows
