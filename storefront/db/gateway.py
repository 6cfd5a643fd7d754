"""
Connection-resilient database gateway.

Wraps the process-wide SQLAlchemy engine and provides:

- ``establish``: connect + ``SELECT 1`` validation with exponential backoff
  and jitter, recording progress on a :class:`ConnectionStatus`.
- ``execute``: run one operation with a timeout and a bounded attempt
  count, reconnecting first when the failure is a transient connection
  error (P1001/P1002/P1017).
- ``get_status`` / ``test_connection``: the health surface used by the
  diagnostics routes and the CLI health check.

Startup is explicit: the process entry point awaits ``initialize()`` once.
Nothing connects at import time.

Timeouts stop *waiting* for an operation; by default they do not abort it.
Sync operations keep running on their worker thread and may still commit.
Pass ``cancel_on_timeout=True`` to cancel the attempt's task instead, which
propagates ``CancelledError`` into coroutine operations.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
import random
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from tenacity import AsyncRetrying, RetryCallState, stop_after_attempt, wait_exponential
from tenacity.wait import wait_base

from storefront.db.errors import (
    TRANSIENT_CONNECTION_CODES,
    ConnectionEstablishmentError,
    DatabaseGatewayError,
    DatabaseOperationError,
    DatabaseTimeoutError,
    classify_error_code,
    compose_error_message,
)
from storefront.db.repositories import diagnostics as diagnostics_repo
from storefront.utils.connection_url import describe_pool_type
from storefront.utils.runtime import is_production
from storefront.utils.settings import DatabaseSettings, get_database_settings, strict_connection_required

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ConnectionStatus:
    """Operational state of the shared connection, updated in place."""

    is_connected: bool = False
    last_error: Optional[str] = None
    last_attempt_time: Optional[datetime] = None
    reconnection_attempts: int = 0

    def snapshot(self) -> Dict[str, Any]:
        data = asdict(self)
        if self.last_attempt_time is not None:
            data["last_attempt_time"] = self.last_attempt_time.isoformat()
        return data


class wait_jitter(wait_base):
    """Uniform jitter in ``[0, jitter)`` drawn from an injectable ``rng``."""

    def __init__(self, jitter: float, rng: Callable[[], float] = random.random):
        self.jitter = jitter
        self.rng = rng

    def __call__(self, retry_state: RetryCallState) -> float:
        return self.rng() * self.jitter


def connect_backoff(
    *,
    base: float = 1.0,
    cap: float = 10.0,
    jitter: float = 0.5,
    rng: Callable[[], float] = random.random,
) -> wait_base:
    """Wait after failed connect attempt ``k``: ``min(base * 2**k, cap)`` plus jitter."""
    return wait_exponential(multiplier=2 * base, exp_base=2, max=cap) + wait_jitter(jitter, rng)


def operation_backoff(*, base: float = 0.1, cap: float = 1.0) -> wait_base:
    """Wait after failed operation attempt ``k``: ``min(base * 2**k, cap)``, no jitter."""
    return wait_exponential(multiplier=2 * base, exp_base=2, max=cap)


class DatabaseGateway:
    """Owns the engine handle and its :class:`ConnectionStatus`."""

    def __init__(
        self,
        engine: Engine,
        *,
        session_factory: Optional[Callable[[], Session]] = None,
        settings: Optional[DatabaseSettings] = None,
        status: Optional[ConnectionStatus] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: Callable[[], float] = random.random,
        production: Optional[bool] = None,
    ):
        self.engine = engine
        self.session_factory = session_factory or sessionmaker(bind=engine, autoflush=False)
        self.settings = settings or get_database_settings()
        self.status = status or ConnectionStatus()
        self._sleep = sleep
        self._rng = rng
        self._production = is_production() if production is None else production
        self._initialized = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def initialize(self, *, strict: Optional[bool] = None) -> bool:
        """Establish the initial connection; return whether it is usable.

        Outside strict mode an exhausted establishment leaves the gateway in
        degraded mode: later operations reconnect opportunistically.
        """
        if self._initialized:
            return self.status.is_connected
        if strict is None:
            strict = strict_connection_required()
        try:
            await self.establish(self.settings.connect_max_retries)
        except ConnectionEstablishmentError as exc:
            if strict:
                logger.error("db_initialize_failed: strict=true error=%s", exc)
                raise
            logger.warning("db_degraded_mode: error=%s", exc)
            self._initialized = True
            return False
        self._initialized = True
        return True

    async def disconnect(self) -> bool:
        """Release pooled connections if connected. Best-effort on shutdown."""
        if not self.status.is_connected:
            return False
        await asyncio.to_thread(self.engine.dispose)
        self.status.is_connected = False
        logger.info("db_disconnected")
        return True

    # ------------------------------------------------------------------
    # Connection establisher
    # ------------------------------------------------------------------
    def _ping(self) -> None:
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    async def establish(self, max_retries: Optional[int] = None, *, mode: str = "connect") -> None:
        """Connect and validate, retrying with backoff up to ``max_retries`` attempts.

        Raises :class:`ConnectionEstablishmentError` (chained from the last
        failure) once every attempt has failed.
        """
        if max_retries is None:
            max_retries = self.settings.connect_max_retries
        max_retries = max(1, max_retries)
        self.status.reconnection_attempts = 0

        retryer = AsyncRetrying(
            stop=stop_after_attempt(max_retries),
            wait=connect_backoff(
                base=self.settings.connect_base_delay,
                cap=self.settings.connect_max_delay,
                jitter=self.settings.connect_jitter,
                rng=self._rng,
            ),
            sleep=self._sleep,
            reraise=True,
            before_sleep=lambda rs: logger.info(
                "db_%s_backoff: attempt=%d delay=%.3fs", mode, rs.attempt_number, rs.next_action.sleep,
            ),
        )
        try:
            async for attempt in retryer:
                with attempt:
                    await self._connect_attempt(attempt.retry_state.attempt_number, max_retries, mode)
        except Exception as exc:
            logger.error("db_%s_exhausted: attempts=%d error=%s", mode, max_retries, exc)
            raise ConnectionEstablishmentError(max_retries, exc) from exc

    async def _connect_attempt(self, attempt: int, max_retries: int, mode: str) -> None:
        self.status.last_attempt_time = _utcnow()
        logger.info("db_%s_attempt: attempt=%d max_retries=%d", mode, attempt, max_retries)
        try:
            await asyncio.to_thread(self._ping)
        except Exception as exc:
            self.status.is_connected = False
            self.status.last_error = str(exc)
            self.status.reconnection_attempts = attempt
            logger.warning(
                "db_%s_failed: attempt=%d max_retries=%d code=%s error=%s",
                mode, attempt, max_retries, classify_error_code(exc), exc,
            )
            raise
        self.status.is_connected = True
        self.status.last_error = None
        logger.info("db_%s_succeeded: attempt=%d", mode, attempt)

    async def _reconnect(self, code: Optional[str]) -> None:
        logger.warning("db_reconnect_triggered: code=%s", code)
        try:
            await self.establish(self.settings.reconnect_max_retries, mode="reconnect")
        except ConnectionEstablishmentError as exc:
            # The caller's own attempt budget decides what happens next.
            logger.error("db_reconnect_exhausted: code=%s error=%s", code, exc)

    # ------------------------------------------------------------------
    # Operation executor
    # ------------------------------------------------------------------
    @staticmethod
    async def _invoke(operation: Callable[[], Any]) -> Any:
        if inspect.iscoroutinefunction(operation):
            return await operation()
        result = await asyncio.to_thread(operation)
        if inspect.isawaitable(result):
            return await result
        return result

    async def _run_with_timeout(self, operation: Callable[[], Any], timeout: float, cancel_on_timeout: bool) -> Any:
        task = asyncio.ensure_future(self._invoke(operation))
        try:
            if cancel_on_timeout:
                return await asyncio.wait_for(task, timeout)
            return await asyncio.wait_for(asyncio.shield(task), timeout)
        except asyncio.TimeoutError:
            if task.done() and not task.cancelled():
                # The operation raised TimeoutError itself.
                raise
            if not cancel_on_timeout:
                task.add_done_callback(_log_late_completion)
            raise DatabaseTimeoutError(timeout) from None

    async def execute(
        self,
        operation: Callable[[], Any],
        error_message: str = "Database operation failed",
        *,
        timeout: Optional[float] = None,
        retries: Optional[int] = None,
        cancel_on_timeout: bool = False,
    ) -> Any:
        """Run ``operation`` with a timeout and ``retries`` total attempts.

        ``operation`` is a zero-argument callable. Coroutine functions are
        awaited on the loop; plain callables run in a worker thread.
        """
        if timeout is None:
            timeout = self.settings.operation_timeout
        attempts = max(1, self.settings.operation_retries if retries is None else retries)

        retryer = AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=operation_backoff(
                base=self.settings.operation_base_delay,
                cap=self.settings.operation_max_delay,
            ),
            sleep=self._sleep,
            reraise=True,
        )
        try:
            async for attempt in retryer:
                with attempt:
                    return await self._operation_attempt(
                        operation, error_message, attempt.retry_state.attempt_number, attempts,
                        timeout=timeout, cancel_on_timeout=cancel_on_timeout,
                    )
        except Exception as exc:
            raise self._compose_error(error_message, exc, attempts) from exc

    async def _operation_attempt(
        self,
        operation: Callable[[], Any],
        label: str,
        attempt: int,
        attempts: int,
        *,
        timeout: float,
        cancel_on_timeout: bool,
    ) -> Any:
        try:
            return await self._run_with_timeout(operation, timeout, cancel_on_timeout)
        except Exception as exc:
            code = classify_error_code(exc)
            logger.warning(
                "db_operation_failed: label=%r attempt=%d/%d code=%s error=%s",
                label, attempt, attempts, code, exc,
            )
            if code in TRANSIENT_CONNECTION_CODES:
                await self._reconnect(code)
            raise

    def _compose_error(self, label: str, error: Optional[BaseException], attempts: int) -> DatabaseOperationError:
        code = classify_error_code(error)
        message = compose_error_message(label, error, code=code, include_detail=not self._production)
        logger.error(
            "db_operation_exhausted: label=%r attempts=%d code=%s",
            label, attempts, code,
            exc_info=error if not self._production else None,
        )
        if isinstance(error, DatabaseTimeoutError):
            return DatabaseTimeoutError(error.timeout, message)
        return DatabaseOperationError(message, code=code)

    async def execute_in_session(
        self,
        fn: Callable[[Session], T],
        error_message: str = "Database operation failed",
        **options: Any,
    ) -> T:
        """``execute`` a sync ``fn(session)`` inside a fresh session."""
        def _operation() -> T:
            with self.session_factory() as db:
                return fn(db)

        return await self.execute(_operation, error_message, **options)

    # ------------------------------------------------------------------
    # Health surface
    # ------------------------------------------------------------------
    def get_status(self) -> Dict[str, Any]:
        snapshot = self.status.snapshot()
        snapshot["timestamp"] = _utcnow().isoformat()
        return snapshot

    async def test_connection(self) -> Dict[str, Any]:
        """Run ``SELECT 1`` plus a few row counts; never raises."""
        started = time.perf_counter()
        try:
            counts = await self.execute_in_session(
                diagnostics_repo.count_core_tables,
                "Connection test failed",
                retries=1,
            )
        except DatabaseGatewayError as exc:
            logger.error("db_connection_test_failed: code=%s error=%s", exc.code, exc)
            return {
                "success": False,
                "message": "Connection failed",
                "error": str(exc),
                "code": exc.code,
                "timestamp": _utcnow().isoformat(),
            }
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        return {
            "success": True,
            "message": "Connection successful",
            "response_time_ms": elapsed_ms,
            "counts": counts,
            "pool_type": describe_pool_type(str(getattr(self.engine, "url", ""))),
            "timestamp": _utcnow().isoformat(),
        }


def _log_late_completion(task: "asyncio.Future[Any]") -> None:
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.warning("db_operation_late_failure: error=%s", error)
    else:
        logger.info("db_operation_late_success")


_gateway: Optional[DatabaseGateway] = None


def get_gateway() -> DatabaseGateway:
    """Return the process-wide gateway bound to the shared engine."""
    global _gateway
    if _gateway is None:
        from storefront.db import database

        _gateway = DatabaseGateway(database.engine, session_factory=database.SessionLocal)
    return _gateway


def set_gateway(gateway: Optional[DatabaseGateway]) -> None:
    global _gateway
    _gateway = gateway
