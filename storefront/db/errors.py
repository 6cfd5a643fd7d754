"""
Error taxonomy for the database gateway.

Codes follow the storefront's historical connection error codes so log
searches and dashboards keep working:

- ``P1001``: database server unreachable
- ``P1002``: database server timed out while connecting (driver
  connect-timeout messages only; a bare ``TimeoutError`` raised by an
  operation carries no code)
- ``P1017``: server closed the connection
- ``P1008``: operation exceeded its time budget (raised by the gateway)
"""
from __future__ import annotations

from typing import Optional

from sqlalchemy import exc as sa_exc

CODE_SERVER_UNREACHABLE = "P1001"
CODE_SERVER_TIMEOUT = "P1002"
CODE_OPERATION_TIMEOUT = "P1008"
CODE_CONNECTION_CLOSED = "P1017"

TRANSIENT_CONNECTION_CODES = frozenset({
    CODE_SERVER_UNREACHABLE,
    CODE_SERVER_TIMEOUT,
    CODE_CONNECTION_CLOSED,
})

# Postgres SQLSTATE classes 08 (connection exception) and 57P (operator intervention)
_SQLSTATE_TO_CODE = {
    "08001": CODE_SERVER_UNREACHABLE,
    "08004": CODE_SERVER_UNREACHABLE,
    "57P03": CODE_SERVER_UNREACHABLE,
    "08003": CODE_CONNECTION_CLOSED,
    "08006": CODE_CONNECTION_CLOSED,
    "57P01": CODE_CONNECTION_CLOSED,
    "57P02": CODE_CONNECTION_CLOSED,
}

_MESSAGE_HINTS = (
    ("timeout expired", CODE_SERVER_TIMEOUT),
    ("timed out", CODE_SERVER_TIMEOUT),
    ("server closed the connection", CODE_CONNECTION_CLOSED),
    ("terminating connection", CODE_CONNECTION_CLOSED),
    ("connection already closed", CODE_CONNECTION_CLOSED),
    ("could not connect", CODE_SERVER_UNREACHABLE),
    ("connection refused", CODE_SERVER_UNREACHABLE),
    ("could not translate host", CODE_SERVER_UNREACHABLE),
    ("no route to host", CODE_SERVER_UNREACHABLE),
    ("name or service not known", CODE_SERVER_UNREACHABLE),
)


class DatabaseGatewayError(Exception):
    """Base class for errors raised by the database gateway."""

    code: Optional[str] = None


class DatabaseOperationError(DatabaseGatewayError):
    """A database operation failed after its attempt budget was spent."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code


class DatabaseTimeoutError(DatabaseOperationError):
    """An attempt exceeded its wall-clock budget.

    The timed-out operation is not necessarily aborted; it may still commit
    or fail later on its own.
    """

    def __init__(self, timeout: float, message: Optional[str] = None):
        super().__init__(
            message or f"Database operation timed out after {timeout:g}s",
            code=CODE_OPERATION_TIMEOUT,
        )
        self.timeout = timeout


class ConnectionEstablishmentError(DatabaseGatewayError):
    """Every connection attempt failed."""

    def __init__(self, attempts: int, last_error: Optional[BaseException] = None):
        detail = f": {last_error}" if last_error is not None else ""
        super().__init__(f"Unable to connect to the database after {attempts} attempt(s){detail}")
        self.attempts = attempts
        self.last_error = last_error
        self.code = classify_error_code(last_error) if last_error is not None else None


def _code_from_message(message: str) -> Optional[str]:
    lowered = message.lower()
    for hint, code in _MESSAGE_HINTS:
        if hint in lowered:
            return code
    return None


def classify_error_code(error: Optional[BaseException]) -> Optional[str]:
    """Return the gateway error code for ``error``, or its raw SQLSTATE."""
    if error is None:
        return None

    if not isinstance(error, sa_exc.SQLAlchemyError):
        explicit = getattr(error, "code", None)
        if isinstance(explicit, str) and explicit:
            return explicit
        if isinstance(error, ConnectionRefusedError):
            return CODE_SERVER_UNREACHABLE
        if isinstance(error, (ConnectionResetError, ConnectionAbortedError, BrokenPipeError)):
            return CODE_CONNECTION_CLOSED
        return None

    if isinstance(error, sa_exc.DisconnectionError) or getattr(error, "connection_invalidated", False):
        return CODE_CONNECTION_CLOSED

    orig = getattr(error, "orig", None)
    sqlstate = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if sqlstate:
        return _SQLSTATE_TO_CODE.get(sqlstate, sqlstate)

    if isinstance(error, sa_exc.OperationalError):
        hinted = _code_from_message(str(orig if orig is not None else error))
        if hinted:
            return hinted

    return None


def is_transient_connection_error(error: Optional[BaseException]) -> bool:
    return classify_error_code(error) in TRANSIENT_CONNECTION_CODES


def compose_error_message(label: str, error: Optional[BaseException], *, code: Optional[str], include_detail: bool) -> str:
    """Build ``"<label> (<code>): <detail>"``; detail only when ``include_detail``."""
    message = label
    if code:
        message += f" ({code})"
    if include_detail and error is not None:
        detail = getattr(error, "message", None) or str(error)
        if detail:
            message += f": {detail}"
    return message
