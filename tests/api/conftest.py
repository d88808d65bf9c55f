from __future__ import annotations

from collections.abc import Iterator
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from boostify.api.deps import CurrentUser, get_current_user
from boostify.api.routes import balance as balance_routes
from boostify.api.routes import coupons as coupons_routes
from boostify.api.routes import orders as orders_routes
from boostify.api.routes import webhooks as webhooks_routes
from boostify.main import app


class _SessionContext:
    async def __aenter__(self) -> object:
        return object()

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        return False


class FakeSessionLocal:
    def __call__(self) -> _SessionContext:
        return _SessionContext()

    def begin(self) -> _SessionContext:
        return _SessionContext()


@pytest.fixture(autouse=True)
def _fake_sessions(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    for module in (orders_routes, balance_routes, coupons_routes, webhooks_routes):
        monkeypatch.setattr(module, "SessionLocal", FakeSessionLocal())
    yield
    app.dependency_overrides.clear()


def _client_as(role: str) -> tuple[TestClient, CurrentUser]:
    user = CurrentUser(id=uuid4(), email=f"{role}@example.com", role=role)
    app.dependency_overrides[get_current_user] = lambda: user
    return TestClient(app), user


@pytest.fixture
def customer_client() -> tuple[TestClient, CurrentUser]:
    return _client_as("customer")


@pytest.fixture
def booster_client() -> tuple[TestClient, CurrentUser]:
    return _client_as("booster")
