"""
Diagnostic queries used by the connection check, the admin database monitor
and the CLI health check.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, select, text
from sqlalchemy.orm import Session

from storefront.db import models

LOW_STOCK_THRESHOLD = 10

# Tables counted by the connection check (a cheap subset of the monitor's metrics).
CORE_TABLES = {
    "users": models.User,
    "products": models.Product,
    "orders": models.Order,
}

METRIC_TABLES = {
    "users": models.User,
    "products": models.Product,
    "orders": models.Order,
    "order_items": models.OrderItem,
    "addresses": models.Address,
    "payment_methods": models.PaymentMethod,
}


def count_rows(db: Session, model) -> int:
    return db.scalar(select(func.count()).select_from(model)) or 0


def count_core_tables(db: Session) -> Dict[str, int]:
    """Validate the link with ``SELECT 1`` and return a handful of row counts."""
    db.execute(text("SELECT 1"))
    return {name: count_rows(db, model) for name, model in CORE_TABLES.items()}


def table_metrics(db: Session) -> Dict[str, int]:
    return {name: count_rows(db, model) for name, model in METRIC_TABLES.items()}


def server_time(db: Session) -> datetime:
    """Return the database server's clock; SQLite hands back a string."""
    value = db.execute(text("SELECT CURRENT_TIMESTAMP")).scalar()
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value is None:
        return datetime.now(timezone.utc)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def recent_orders(db: Session, limit: int = 5) -> List[models.Order]:
    return list(
        db.scalars(
            select(models.Order).order_by(models.Order.created_at.desc()).limit(limit)
        )
    )


def low_stock_products(db: Session, threshold: int = LOW_STOCK_THRESHOLD, limit: int = 10) -> List[models.Product]:
    return list(
        db.scalars(
            select(models.Product)
            .where(models.Product.stock < threshold)
            .order_by(models.Product.stock.asc())
            .limit(limit)
        )
    )


def monitor_snapshot(db: Session) -> Dict[str, object]:
    """Everything the admin database monitor shows, gathered in one session."""
    return {
        "timestamp": server_time(db),
        "metrics": table_metrics(db),
        "recent_orders": recent_orders(db),
        "low_stock_products": low_stock_products(db),
    }


def orders_since(db: Session, since: datetime) -> int:
    return db.scalar(
        select(func.count()).select_from(models.Order).where(models.Order.created_at >= since)
    ) or 0


def recent_activity(db: Session, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Latest order and the number of orders placed in the last 24 hours."""
    latest = recent_orders(db, limit=1)
    since = (now or datetime.now(timezone.utc)) - timedelta(hours=24)
    return {
        "latest_order_number": latest[0].order_number if latest else None,
        "latest_order_at": latest[0].created_at if latest else None,
        "orders_last_24h": orders_since(db, since),
    }


def _is_postgres(db: Session) -> bool:
    return db.get_bind().dialect.name == "postgresql"


def database_size(db: Session) -> Optional[str]:
    """Human-readable size of the current database; ``None`` off Postgres."""
    if not _is_postgres(db):
        return None
    return db.execute(text("SELECT pg_size_pretty(pg_database_size(current_database()))")).scalar()


def largest_tables(db: Session, limit: int = 5) -> List[Tuple[str, str]]:
    """``(table, pretty size)`` for the biggest public tables; empty off Postgres."""
    if not _is_postgres(db):
        return []
    rows = db.execute(
        text(
            "SELECT table_name, pg_size_pretty(pg_total_relation_size(quote_ident(table_name))) AS size "
            "FROM information_schema.tables "
            "WHERE table_schema = 'public' AND table_type = 'BASE TABLE' "
            "ORDER BY pg_total_relation_size(quote_ident(table_name)) DESC "
            "LIMIT :limit"
        ),
        {"limit": limit},
    )
    return [(row.table_name, row.size) for row in rows]


def storage_summary(db: Session) -> Dict[str, Any]:
    return {"database_size": database_size(db), "largest_tables": largest_tables(db)}
