from datetime import datetime, timedelta

from storefront.db.repositories import diagnostics as diagnostics_repo

from tests.factories import BASE_TIME, seed_store


def test_count_core_tables_counts_core_tables(db_session):
    assert diagnostics_repo.count_core_tables(db_session) == {"users": 0, "products": 0, "orders": 0}

    seed_store(db_session)

    assert diagnostics_repo.count_core_tables(db_session) == {"users": 1, "products": 5, "orders": 7}


def test_table_metrics_cover_all_tables(db_session):
    seed_store(db_session)

    assert diagnostics_repo.table_metrics(db_session) == {
        "users": 1,
        "products": 5,
        "orders": 7,
        "order_items": 1,
        "addresses": 1,
        "payment_methods": 1,
    }


def test_recent_orders_newest_first_limited(db_session):
    seed_store(db_session, orders=7)

    orders = diagnostics_repo.recent_orders(db_session)

    assert [o.order_number for o in orders] == ["ORD-00007", "ORD-00006", "ORD-00005", "ORD-00004", "ORD-00003"]


def test_low_stock_products_sorted_ascending(db_session):
    seed_store(db_session, stocks=(3, 0, 25, 7, 12, 9))

    products = diagnostics_repo.low_stock_products(db_session)

    assert [p.stock for p in products] == [0, 3, 7, 9]


def test_low_stock_respects_threshold_and_limit(db_session):
    seed_store(db_session, stocks=(1, 2, 3, 4, 5))

    products = diagnostics_repo.low_stock_products(db_session, threshold=4, limit=2)

    assert [p.stock for p in products] == [1, 2]


def test_server_time_is_timezone_aware(db_session):
    value = diagnostics_repo.server_time(db_session)

    assert isinstance(value, datetime)
    assert value.tzinfo is not None


def test_monitor_snapshot_shape(db_session):
    seed_store(db_session)

    snapshot = diagnostics_repo.monitor_snapshot(db_session)

    assert set(snapshot) == {"timestamp", "metrics", "recent_orders", "low_stock_products"}
    assert len(snapshot["recent_orders"]) == 5
    assert [p.stock for p in snapshot["low_stock_products"]] == [0, 3, 7]


def test_recent_activity_counts_last_day(db_session):
    seed_store(db_session, orders=7)

    activity = diagnostics_repo.recent_activity(db_session, now=BASE_TIME + timedelta(hours=30))

    assert activity["latest_order_number"] == "ORD-00007"
    assert activity["latest_order_at"] is not None
    # Orders 6 and 7 fall within 24 hours of the reference time.
    assert activity["orders_last_24h"] == 2


def test_recent_activity_without_orders(db_session):
    activity = diagnostics_repo.recent_activity(db_session)

    assert activity == {"latest_order_number": None, "latest_order_at": None, "orders_last_24h": 0}


def test_storage_summary_skipped_on_sqlite(db_session):
    assert diagnostics_repo.database_size(db_session) is None
    assert diagnostics_repo.largest_tables(db_session) == []
    assert diagnostics_repo.storage_summary(db_session) == {"database_size": None, "largest_tables": []}
