"""
Pydantic schemas for the diagnostics surface.
"""

from .diagnostics import (
    ConnectionStatusSnapshot,
    HealthResponse,
    ConnectionTestReport,
    TableMetrics,
    RecentOrder,
    LowStockProduct,
    DbMonitorReport,
)

__all__ = [
    "ConnectionStatusSnapshot",
    "HealthResponse",
    "ConnectionTestReport",
    "TableMetrics",
    "RecentOrder",
    "LowStockProduct",
    "DbMonitorReport",
]
