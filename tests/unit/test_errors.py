import pytest
from sqlalchemy import exc as sa_exc

from storefront.db.errors import (
    CODE_CONNECTION_CLOSED,
    CODE_OPERATION_TIMEOUT,
    CODE_SERVER_TIMEOUT,
    CODE_SERVER_UNREACHABLE,
    ConnectionEstablishmentError,
    DatabaseTimeoutError,
    classify_error_code,
    compose_error_message,
    is_transient_connection_error,
)

from tests.helpers import CodedError


class _PgError(Exception):
    """Mimics psycopg2 errors, which expose the SQLSTATE as ``pgcode``."""

    def __init__(self, message, pgcode):
        super().__init__(message)
        self.pgcode = pgcode


def _operational(message, orig=None):
    return sa_exc.OperationalError("SELECT 1", {}, orig or Exception(message))


def test_explicit_code_wins():
    assert classify_error_code(CodedError("P2002")) == "P2002"
    assert classify_error_code(DatabaseTimeoutError(5)) == CODE_OPERATION_TIMEOUT


@pytest.mark.parametrize(
    "message,expected",
    [
        ("could not connect to server: Connection refused", CODE_SERVER_UNREACHABLE),
        ('could not translate host name "db" to address: Name or service not known', CODE_SERVER_UNREACHABLE),
        ("timeout expired", CODE_SERVER_TIMEOUT),
        ("server closed the connection unexpectedly", CODE_CONNECTION_CLOSED),
        ("terminating connection due to administrator command", CODE_CONNECTION_CLOSED),
    ],
)
def test_operational_error_messages(message, expected):
    assert classify_error_code(_operational(message)) == expected


@pytest.mark.parametrize(
    "sqlstate,expected",
    [
        ("57P01", CODE_CONNECTION_CLOSED),
        ("08006", CODE_CONNECTION_CLOSED),
        ("08003", CODE_CONNECTION_CLOSED),
        ("08001", CODE_SERVER_UNREACHABLE),
        ("57P03", CODE_SERVER_UNREACHABLE),
    ],
)
def test_connection_sqlstates_map_to_gateway_codes(sqlstate, expected):
    error = _operational("boom", orig=_PgError("boom", sqlstate))
    assert classify_error_code(error) == expected


def test_other_sqlstates_pass_through():
    error = sa_exc.IntegrityError("INSERT", {}, _PgError("duplicate key value", "23505"))
    assert classify_error_code(error) == "23505"
    assert not is_transient_connection_error(error)


def test_disconnects_are_connection_closed():
    assert classify_error_code(sa_exc.DisconnectionError("pool pre-ping failed")) == CODE_CONNECTION_CLOSED
    invalidated = sa_exc.DBAPIError("SELECT 1", {}, Exception("gone"), connection_invalidated=True)
    assert classify_error_code(invalidated) == CODE_CONNECTION_CLOSED


@pytest.mark.parametrize(
    "error,expected",
    [
        (ConnectionRefusedError(), CODE_SERVER_UNREACHABLE),
        (ConnectionResetError(), CODE_CONNECTION_CLOSED),
        (BrokenPipeError(), CODE_CONNECTION_CLOSED),
    ],
)
def test_builtin_connection_errors(error, expected):
    assert classify_error_code(error) == expected
    assert is_transient_connection_error(error)


def test_unrecognised_errors_have_no_code():
    assert classify_error_code(ValueError("bad input")) is None
    # Only driver connect-timeout messages count as P1002.
    assert classify_error_code(TimeoutError("socket read timed out")) is None
    assert classify_error_code(_operational("something odd happened")) is None
    assert classify_error_code(None) is None
    assert not is_transient_connection_error(ValueError("bad input"))


def test_operation_timeout_is_not_a_connection_error():
    assert not is_transient_connection_error(DatabaseTimeoutError(1))


def test_compose_error_message():
    error = CodedError("P2025", "Record to update not found")

    assert compose_error_message("Update failed", error, code="P2025", include_detail=True) == (
        "Update failed (P2025): Record to update not found"
    )
    assert compose_error_message("Update failed", error, code="P2025", include_detail=False) == "Update failed (P2025)"
    assert compose_error_message("Update failed", ValueError("x"), code=None, include_detail=True) == "Update failed: x"
    assert compose_error_message("Update failed", None, code=None, include_detail=True) == "Update failed"


def test_compose_prefers_message_attribute():
    error = DatabaseTimeoutError(2.5)
    assert compose_error_message("Slow query", error, code=error.code, include_detail=True) == (
        "Slow query (P1008): Database operation timed out after 2.5s"
    )


def test_connection_establishment_error_carries_attempts_and_code():
    last = _operational("could not connect to server: Connection refused")
    error = ConnectionEstablishmentError(3, last)

    assert error.attempts == 3
    assert error.last_error is last
    assert error.code == CODE_SERVER_UNREACHABLE
    assert str(error).startswith("Unable to connect to the database after 3 attempt(s): ")
