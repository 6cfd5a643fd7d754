"""Database health check: connectivity, table counts, recent activity and storage size."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from storefront.db.errors import ConnectionEstablishmentError, DatabaseGatewayError
from storefront.db.gateway import get_gateway
from storefront.db.repositories import diagnostics as diagnostics_repo
from storefront.utils.connection_url import mask_connection_url


logger = logging.getLogger("storefront.scripts.db_health_check")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Check database connectivity and table counts")
    parser.add_argument(
        "--max-retries",
        type=int,
        default=None,
        help="Connection attempts before giving up (default: DB_CONNECT_MAX_RETRIES)",
    )
    parser.add_argument(
        "--skip-counts",
        action="store_true",
        help="Only test connectivity; skip counts, recent activity and size reports",
    )
    return parser.parse_args(argv)


async def run_health_check(max_retries: int | None, skip_counts: bool) -> int:
    gateway = get_gateway()
    print(f"Database: {mask_connection_url(str(gateway.engine.url))}")

    try:
        await gateway.establish(max_retries)
    except ConnectionEstablishmentError as exc:
        print(f"Connection failed after {exc.attempts} attempt(s): {exc.last_error}", file=sys.stderr)
        logger.error("health_check_connect_failed: code=%s", exc.code)
        return 1

    try:
        report = await gateway.test_connection()
        if not report["success"]:
            print(f"Connection test failed: {report['error']}", file=sys.stderr)
            return 1
        print(f"Connection successful ({report['pool_type']}), response time {report['response_time_ms']}ms")

        if skip_counts:
            return 0

        try:
            metrics = await gateway.execute_in_session(diagnostics_repo.table_metrics, "Table count failed")
            activity = await gateway.execute_in_session(diagnostics_repo.recent_activity, "Recent activity check failed")
            storage = await gateway.execute_in_session(diagnostics_repo.storage_summary, "Database size check failed")
        except DatabaseGatewayError as exc:
            print(f"Health check failed: {exc}", file=sys.stderr)
            return 1

        print("Table data counts:")
        for name, count in metrics.items():
            print(f"  {name}: {count}")

        print("Recent activity:")
        if activity["latest_order_number"] is None:
            print("  No orders found")
        else:
            print(f"  Most recent order: {activity['latest_order_number']} ({activity['latest_order_at']})")
            print(f"  Orders in last 24h: {activity['orders_last_24h']}")

        if storage["database_size"] is None:
            print(f"Database size: not available for {gateway.engine.dialect.name}")
        else:
            print(f"Database size: {storage['database_size']}")
            print("Largest tables:")
            for table, size in storage["largest_tables"]:
                print(f"  {table}: {size}")
        return 0
    finally:
        await gateway.disconnect()


def main(argv: list[str] | None = None) -> int:
    if not logging.getLogger().handlers:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    args = parse_args(argv)
    return asyncio.run(run_health_check(max_retries=args.max_retries, skip_counts=args.skip_counts))


if __name__ == "__main__":  # pragma: no cover - manual execution path
    sys.exit(main())
