"""Tests for error classification and the JSON error envelope."""
import sqlite3

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from app.services.exceptions import (
    ConflictError,
    ConsistencyError,
    InternalError,
    NotFoundError,
    TransactionConflictError,
    ValidationError,
    map_error,
)


class PgError(Exception):
    def __init__(self, pgcode, message="error"):
        super().__init__(message)
        self.pgcode = pgcode


def integrity(orig):
    return IntegrityError("INSERT INTO productos ...", {}, orig)


@pytest.mark.parametrize(
    "orig, expected",
    [
        (PgError("23505"), ConflictError),
        (PgError("23503"), NotFoundError),
        (PgError("23514"), ValidationError),
        (PgError("23502"), ValidationError),
        (sqlite3.IntegrityError("UNIQUE constraint failed: productos.barcode"), ConflictError),
        (sqlite3.IntegrityError("FOREIGN KEY constraint failed"), NotFoundError),
        (sqlite3.IntegrityError("CHECK constraint failed: check_stock_non_negative"), ValidationError),
        (sqlite3.IntegrityError("NOT NULL constraint failed: productos.name"), ValidationError),
    ],
)
def test_integrity_errors(orig, expected):
    assert isinstance(map_error(integrity(orig)), expected)


@pytest.mark.parametrize("code", ["40001", "40P01", "55P03"])
def test_concurrency_failures_are_retryable_conflicts(code):
    mapped = map_error(OperationalError("UPDATE productos ...", {}, PgError(code)))

    assert isinstance(mapped, TransactionConflictError)
    assert isinstance(mapped, ConsistencyError)
    assert mapped.status_code == 409


def test_lost_connection_is_internal():
    mapped = map_error(OperationalError("SELECT 1", {}, PgError("08006", "connection lost")))

    assert isinstance(mapped, InternalError)
    assert "connection lost" not in mapped.message


def test_domain_errors_pass_through():
    error = NotFoundError("Sale with ID 1 not found")

    assert map_error(error) is error


def test_unknown_exception_is_internal():
    mapped = map_error(KeyError("secret"))

    assert isinstance(mapped, InternalError)
    assert mapped.status_code == 500
    assert mapped.message == "Internal server error"


def test_status_codes():
    assert ValidationError().status_code == 400
    assert NotFoundError().status_code == 404
    assert ConflictError().status_code == 409
    assert ConsistencyError().status_code == 409
    assert InternalError().status_code == 500


def test_internal_error_envelope(client, monkeypatch):
    from app.services.product_service import ProductService

    def _explode(self, product_id):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(ProductService, "get_by_id", _explode)

    response = client.get("/api/v1/productos/1")

    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "Internal server error"
    assert body["error"] == {"type": "RuntimeError", "message": "disk on fire"}


def test_invalid_user_header(client):
    response = client.post(
        "/api/v1/ventas/",
        json={"lines": [{"product_id": 1, "quantity": "1", "unit_price": "1"}]},
        headers={"X-User-Id": "0"},
    )

    assert response.status_code == 401
    assert response.json() == {"success": False, "message": "Authenticated user id is required"}
