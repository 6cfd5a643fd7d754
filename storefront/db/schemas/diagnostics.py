from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Literal

from pydantic import BaseModel, ConfigDict


class ConnectionStatusSnapshot(BaseModel):
    is_connected: bool
    last_error: str | None = None
    last_attempt_time: datetime | None = None
    reconnection_attempts: int = 0
    timestamp: datetime


class HealthResponse(BaseModel):
    status: Literal["ok", "degraded"]
    database: ConnectionStatusSnapshot


class ConnectionTestReport(BaseModel):
    success: bool
    message: str
    timestamp: datetime
    response_time_ms: int | None = None
    counts: Dict[str, int] | None = None
    pool_type: str | None = None
    error: str | None = None
    code: str | None = None


class TableMetrics(BaseModel):
    users: int
    products: int
    orders: int
    order_items: int
    addresses: int
    payment_methods: int


class RecentOrder(BaseModel):
    id: str
    order_number: str
    customer_name: str
    total_amount: Decimal
    status: str
    created_at: datetime | None = None
    model_config = ConfigDict(from_attributes=True)


class LowStockProduct(BaseModel):
    id: str
    name: str
    stock: int
    model_config = ConfigDict(from_attributes=True)


class DbMonitorReport(BaseModel):
    status: Literal["online"] = "online"
    timestamp: datetime
    metrics: TableMetrics
    recent_orders: List[RecentOrder]
    low_stock_products: List[LowStockProduct]
