"""Pytest configuration and fixtures for the catalog store."""

from __future__ import annotations

import asyncio
from typing import Any

import fakeredis
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from src.models.product import CatalogFilters, Pagination
from src.services.cart.reconciler import CartReconciler
from src.services.cart.store import CartStore, get_cart_store
from src.services.catalog.errors import CatalogFetchError
from src.services.catalog.service import CatalogService
from src.services.clients.catalog_client import CatalogClient, get_catalog_client
from src.services.reference_cache import ReferenceCache, get_reference_cache


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "unit: marks tests as unit tests")
    config.addinivalue_line("markers", "asyncio: marks tests as async tests")


def build_size_variant(
    variant_id: str,
    size: str,
    *,
    price: float = 100,
    final_price: float | None = None,
    stock: int = 5,
    size_id: str | None = None,
) -> dict[str, Any]:
    """Raw ShirtSize document as returned by GET /shirts/{id}."""

    record: dict[str, Any] = {
        "_id": variant_id,
        "sizeReferenceId": size_id or f"size-{size}",
        "sizeReference": {
            "_id": size_id or f"size-{size}",
            "name": size,
            "displayName": size,
        },
        "price": price,
        "stock": stock,
        "imageURL": f"https://img.example.com/{variant_id}.jpg",
    }
    if final_price is not None:
        record["finalPrice"] = final_price
    return record


class StubCatalogClient(CatalogClient):
    """In-memory catalog transport recording every call."""

    def __init__(self) -> None:
        self.designs: dict[str, list[dict[str, Any]] | Exception] = {}
        self.pages: list[Any] = []
        self.variant_calls: list[str] = []
        self.page_calls: list[tuple[CatalogFilters, Pagination, str | None]] = []
        self.delay = 0.0

    def add_design(
        self,
        design_id: str,
        variants: list[dict[str, Any]] | Exception,
        *,
        name: str = "Oxford Shirt",
        type_name: str = "Formal",
    ) -> None:
        if isinstance(variants, Exception):
            self.designs[design_id] = variants
            return
        design = {
            "name": name,
            "description": f"{name} description",
            "shirtType": {"_id": f"type-{type_name}", "name": type_name},
        }
        self.designs[design_id] = [
            {**design, **variant, "shirtId": design_id} for variant in variants
        ]

    async def fetch_catalog_page(self, filters, pagination, group_by=None):
        self.page_calls.append((filters, pagination, group_by))
        await asyncio.sleep(0)
        result = self.pages.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    async def fetch_design_variants(self, design_id: str):
        self.variant_calls.append(design_id)
        await asyncio.sleep(self.delay)
        result = self.designs.get(design_id)
        if result is None:
            raise CatalogFetchError("Shirt design not found", status_code=404)
        if isinstance(result, Exception):
            raise result
        return [dict(record) for record in result]


@pytest.fixture()
def size_variant():
    """Builder for raw size variant records."""
    return build_size_variant


@pytest.fixture()
def reference_cache() -> ReferenceCache:
    return ReferenceCache()


@pytest.fixture()
def storage():
    """Synchronous fake Redis used as cart storage."""
    client = fakeredis.FakeRedis(decode_responses=True)
    yield client
    client.flushall()


@pytest.fixture()
def cart_store(storage) -> CartStore:
    return CartStore(storage, key="test_cart", channel="test:cart", origin="tab-a")


@pytest.fixture()
def catalog_client() -> StubCatalogClient:
    return StubCatalogClient()


@pytest.fixture()
def catalog_service(catalog_client, reference_cache) -> CatalogService:
    return CatalogService(catalog_client, reference_cache)


@pytest.fixture()
def reconciler(catalog_service) -> CartReconciler:
    return CartReconciler(catalog_service)


@pytest_asyncio.fixture()
async def client(catalog_client, reference_cache, cart_store):
    """Return an HTTPX async client pointing at the FastAPI app."""
    from src.main import app

    app.dependency_overrides[get_catalog_client] = lambda: catalog_client
    app.dependency_overrides[get_reference_cache] = lambda: reference_cache
    app.dependency_overrides[get_cart_store] = lambda: cart_store
    try:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://testserver",
        ) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.pop(get_catalog_client, None)
        app.dependency_overrides.pop(get_reference_cache, None)
        app.dependency_overrides.pop(get_cart_store, None)
