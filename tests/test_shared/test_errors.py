"""Tests for shared error classes and exception handlers."""
from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.shared.errors import (
    AppError,
    BindingIncompleteError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
    register_exception_handlers,
)


class TestAppError:
    def test_default_status_code(self):
        err = AppError(detail="something broke")
        assert err.status_code == 500
        assert err.detail == "something broke"

    def test_custom_status_code(self):
        err = AppError(detail="bad request", status_code=400)
        assert err.status_code == 400

    def test_str_is_detail(self):
        err = AppError(detail="human readable")
        assert str(err) == "human readable"


class TestSubclasses:
    @pytest.mark.parametrize(
        "error_cls, status_code",
        [
            (ValidationError, 422),
            (NotFoundError, 404),
            (ConflictError, 409),
            (BindingIncompleteError, 412),
            (InvalidTransitionError, 409),
        ],
    )
    def test_status_codes(self, error_cls, status_code):
        err = error_cls()
        assert err.status_code == status_code
        assert isinstance(err, AppError)
        assert err.detail

    def test_custom_detail(self):
        err = BindingIncompleteError(detail="bind first")
        assert err.detail == "bind first"
        assert err.status_code == 412


class TestExceptionHandlers:
    @pytest.fixture()
    def client(self) -> TestClient:
        app = FastAPI()
        register_exception_handlers(app)

        @app.get("/missing")
        async def missing():
            raise NotFoundError(detail="Graph not found")

        @app.get("/unbound")
        async def unbound():
            raise BindingIncompleteError()

        return TestClient(app)

    def test_not_found_maps_to_404(self, client: TestClient):
        resp = client.get("/missing")
        assert resp.status_code == 404
        assert resp.json() == {"detail": "Graph not found"}

    def test_binding_incomplete_maps_to_412(self, client: TestClient):
        resp = client.get("/unbound")
        assert resp.status_code == 412
        assert "binding" in resp.json()["detail"]
