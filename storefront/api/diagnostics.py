"""
Database diagnostics endpoints.

Status snapshot, connection check and the admin database monitor. Connection check and
monitor failures are reported in the response body rather than raised.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from starlette.responses import JSONResponse

from storefront.api.deps import require_diagnostics_access
from storefront.db import schemas
from storefront.db.errors import DatabaseGatewayError
from storefront.db.gateway import DatabaseGateway, get_gateway
from storefront.db.repositories import diagnostics as diagnostics_repo

logger = logging.getLogger(__name__)

router = APIRouter(tags=["diagnostics"])


@router.get("/health", response_model=schemas.HealthResponse)
def health(gateway: DatabaseGateway = Depends(get_gateway)):
    """Liveness plus the current connection status; never touches the database."""
    snapshot = gateway.get_status()
    return {
        "status": "ok" if snapshot["is_connected"] else "degraded",
        "database": snapshot,
    }


@router.get(
    "/db/status",
    response_model=schemas.ConnectionStatusSnapshot,
    dependencies=[Depends(require_diagnostics_access)],
)
def db_status(gateway: DatabaseGateway = Depends(get_gateway)):
    return gateway.get_status()


@router.get(
    "/db/test-connection",
    response_model=schemas.ConnectionTestReport,
    dependencies=[Depends(require_diagnostics_access)],
)
async def db_test_connection(gateway: DatabaseGateway = Depends(get_gateway)):
    report = await gateway.test_connection()
    if not report["success"]:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=schemas.ConnectionTestReport(**report).model_dump(mode="json"),
        )
    return report


def _build_monitor_report(db: Session) -> schemas.DbMonitorReport:
    snapshot = diagnostics_repo.monitor_snapshot(db)
    return schemas.DbMonitorReport(
        timestamp=snapshot["timestamp"],
        metrics=schemas.TableMetrics(**snapshot["metrics"]),
        recent_orders=[schemas.RecentOrder.model_validate(o) for o in snapshot["recent_orders"]],
        low_stock_products=[schemas.LowStockProduct.model_validate(p) for p in snapshot["low_stock_products"]],
    )


@router.get(
    "/admin/db-monitor",
    response_model=schemas.DbMonitorReport,
    dependencies=[Depends(require_diagnostics_access)],
)
async def db_monitor(gateway: DatabaseGateway = Depends(get_gateway)):
    try:
        return await gateway.execute_in_session(_build_monitor_report, "Database status check failed")
    except DatabaseGatewayError as exc:
        logger.error("db_monitor_failed: code=%s error=%s", exc.code, exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "status": "error",
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "error": str(exc),
            },
        )
