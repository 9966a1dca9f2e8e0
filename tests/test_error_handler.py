"""
Tests for ledger error mapping and sanitization.
"""
import pytest
from fastapi import FastAPI
import httpx

from inventory_ledger.core.error_handler import (
    install_error_handlers,
    is_sensitive_error,
    sanitize_error_message,
    status_code_for,
)
from inventory_ledger.core.exceptions import (
    ConcurrencyConflict,
    IdempotencyKeyMismatch,
    ImmutableMovementError,
    InsufficientStock,
    InvalidDelta,
    InvalidPage,
    LedgerError,
    ProductNotFound,
    StockOutOfRange,
    VariantNotFound,
)


class TestStatusCodes:
    @pytest.mark.parametrize("error,code", [
        (ProductNotFound("p1"), 404),
        (VariantNotFound("p1", "v1"), 404),
        (InvalidDelta(0), 400),
        (InvalidPage(0, 10, 200), 400),
        (StockOutOfRange("p1", 5, 2 ** 31 - 1, -(2 ** 31), 2 ** 31 - 1), 400),
        (InsufficientStock("p1", 2, -5), 409),
        (ConcurrencyConflict("p1", 3), 409),
        (IdempotencyKeyMismatch("k", "m1"), 409),
        (ImmutableMovementError("m1", "update"), 500),
        (LedgerError("generic"), 400),
    ])
    def test_mapping(self, error, code):
        assert status_code_for(error) == code


class TestExceptions:
    def test_to_dict(self):
        error = InsufficientStock("p1", 2, -5)
        data = error.to_dict()
        assert data["error_type"] == "InsufficientStock"
        assert data["code"] == "INSUFFICIENT_STOCK"
        assert data["details"]["candidate_stock"] == -3

    def test_variant_message(self):
        error = VariantNotFound("p1", "v9")
        assert str(error) == "Variant v9 not found for product p1"
        assert error.details == {"product_id": "p1", "variant_id": "v9"}

    def test_only_conflict_is_retryable(self):
        assert ConcurrencyConflict("p1", 3).retryable
        assert not InsufficientStock("p1", 0, -1).retryable


class TestSanitization:
    def test_sensitive_patterns(self):
        assert is_sensitive_error("asyncpg.exceptions.ConnectionDoesNotExistError")
        assert not is_sensitive_error("Product p1 not found")

    def test_sanitized_message(self):
        assert sanitize_error_message("sqlalchemy blew up") == "An internal error occurred. Please try again later."
        assert sanitize_error_message("x" * 300).endswith("...")


def make_app() -> FastAPI:
    app = FastAPI()
    install_error_handlers(app)

    @app.get("/conflict")
    async def conflict():
        raise ConcurrencyConflict("p1", 3)

    @app.get("/boom")
    async def boom():
        raise RuntimeError("postgresql connection string leaked")

    return app


class TestHandlers:
    @pytest.mark.asyncio
    async def test_ledger_error_body(self):
        transport = httpx.ASGITransport(app=make_app())
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/conflict")

        assert response.status_code == 409
        assert response.headers["Retry-After"] == "1"
        assert response.json()["error"] == "CONCURRENCY_CONFLICT"
        assert response.json()["details"]["attempts"] == 3

    @pytest.mark.asyncio
    async def test_unhandled_error_is_generic(self):
        transport = httpx.ASGITransport(app=make_app(), raise_app_exceptions=False)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/boom")

        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "internal_error"
        assert "postgresql" not in body["message"]
