"""Catalog backend client abstractions and the httpx implementation."""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Annotated, Any
from urllib.parse import quote

import httpx
from fastapi import Depends

from src.config import settings
from src.models.product import CatalogFilters, GroupBy, Pagination, ReferenceKind
from src.services.catalog.errors import CatalogFetchError
from src.services.reference_cache import ReferenceCache, get_reference_cache

logger = logging.getLogger(__name__)

OBJECT_ID_PATTERN = re.compile(r"^[0-9a-fA-F]{24}$")

# Variant arrays on GET /shirts/{id}; ``sizes`` is an alias of ``shirtSizes``.
VARIANT_CONTAINER_FIELDS = ("shirtSizes", "sizes")


class CatalogClient(ABC):
    """Transport for the two catalog endpoints the store depends on.

    Implementations return raw backend payloads; normalization happens in
    :class:`~src.services.catalog.service.CatalogService`.
    """

    @abstractmethod
    async def fetch_catalog_page(
        self,
        filters: CatalogFilters,
        pagination: Pagination,
        group_by: GroupBy | None = None,
    ) -> Any:
        """Return the raw response envelope for one catalog page."""

    @abstractmethod
    async def fetch_design_variants(self, design_id: str) -> list[dict[str, Any]]:
        """Return every size variant of a design, merged with the design fields."""


def build_catalog_params(
    filters: CatalogFilters,
    pagination: Pagination,
    group_by: GroupBy | None = None,
    cache: ReferenceCache | None = None,
) -> list[tuple[str, str]]:
    """Build the query string for GET /shirts.

    The backend accepts either reference ids or plain names. Known ids are
    preferred; unknown names are sent as names.
    """

    params: list[tuple[str, str]] = []
    _append_reference(params, filters.size_name, "size", cache)
    _append_reference(params, filters.type_name, "type", cache)
    if filters.min_price is not None:
        params.append(("minPrice", f"{filters.min_price:g}"))
    if filters.max_price is not None:
        params.append(("maxPrice", f"{filters.max_price:g}"))
    params.append(("page", str(pagination.page)))
    params.append(("limit", str(pagination.limit)))
    if group_by == "design":
        params.append(("groupBy", "design"))
    return params


_REFERENCE_PARAMS = {
    "size": ("sizeReferenceId", "size"),
    "type": ("shirtTypeId", "type"),
}


def _append_reference(
    params: list[tuple[str, str]],
    value: str | None,
    kind: ReferenceKind,
    cache: ReferenceCache | None,
) -> None:
    if not value:
        return
    id_param, name_param = _REFERENCE_PARAMS[kind]
    if OBJECT_ID_PATTERN.match(value):
        params.append((id_param, value))
        return
    ref_id = cache.resolve_id(value, kind) if cache is not None else None
    if ref_id:
        params.append((id_param, ref_id))
    else:
        params.append((name_param, value))


class HttpCatalogClient(CatalogClient):
    """Catalog client backed by ``httpx.AsyncClient``.

    The session keeps cookies between requests, which is how the backend
    tracks authenticated sessions.
    """

    def __init__(
        self,
        *,
        base_url: str,
        timeout: float = 10.0,
        reference_cache: ReferenceCache | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("Catalog API base URL must be provided")
        self._base_url = base_url.rstrip("/")
        self._cache = reference_cache
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def fetch_catalog_page(
        self,
        filters: CatalogFilters,
        pagination: Pagination,
        group_by: GroupBy | None = None,
    ) -> Any:
        params = build_catalog_params(filters, pagination, group_by, self._cache)
        response = await self._get("/shirts", params=params, action="fetch shirts")
        return self._json(response)

    async def fetch_design_variants(self, design_id: str) -> list[dict[str, Any]]:
        # Cart lines carry client-supplied ids; keep them to one path segment.
        response = await self._get(
            f"/shirts/{quote(design_id, safe='')}", action="fetch shirt variants"
        )
        payload = self._json(response)

        if not isinstance(payload, Mapping) or not payload.get("success"):
            message = payload.get("message") if isinstance(payload, Mapping) else None
            raise CatalogFetchError(message or "Failed to fetch shirt variants")

        data = payload.get("data")
        if not isinstance(data, Mapping):
            raise CatalogFetchError("Invalid API response: missing data field")

        design = data.get("shirt")
        if not isinstance(design, Mapping):
            raise CatalogFetchError("Shirt design not found")

        sizes = None
        for field in VARIANT_CONTAINER_FIELDS:
            if isinstance(data.get(field), list):
                sizes = data[field]
                break
        if not sizes:
            raise CatalogFetchError("Shirt has no size variants")

        design_fields = {key: value for key, value in design.items() if key != "_id"}
        parent_id = str(design.get("_id") or design_id)
        records = [
            {**design_fields, **size, "shirtId": parent_id}
            for size in sizes
            if isinstance(size, Mapping)
        ]
        logger.debug("Fetched %d variants for design %s", len(records), design_id)
        return records

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get(
        self,
        path: str,
        *,
        action: str,
        params: list[tuple[str, str]] | None = None,
    ) -> httpx.Response:
        url = f"{self._base_url}{path}"
        try:
            response = await self._client.get(url, params=params)
        except httpx.HTTPError as exc:
            logger.warning("Catalog request %s failed: %s", url, exc)
            raise CatalogFetchError(f"Failed to {action}: {exc}") from exc

        if response.is_success:
            return response

        message = None
        try:
            body = response.json()
            if isinstance(body, Mapping):
                message = body.get("message")
        except ValueError:
            logger.debug("Catalog error response from %s had no JSON body", url)
        raise CatalogFetchError(
            message or f"Failed to {action}: {response.reason_phrase}",
            status_code=response.status_code,
        )

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise CatalogFetchError("Catalog response was not valid JSON") from exc


_catalog_client: CatalogClient | None = None


def get_catalog_client() -> CatalogClient:
    """FastAPI dependency returning the process-wide catalog client."""

    global _catalog_client
    if _catalog_client is None:
        _catalog_client = HttpCatalogClient(
            base_url=settings.CATALOG_API_URL,
            timeout=settings.CATALOG_TIMEOUT_SECONDS,
            reference_cache=get_reference_cache(),
        )
    return _catalog_client


CatalogClientDependency = Annotated[CatalogClient, Depends(get_catalog_client)]


async def close_catalog_client() -> None:
    """Close the process-wide HTTP session, if one was opened."""

    global _catalog_client
    if isinstance(_catalog_client, HttpCatalogClient):
        await _catalog_client.aclose()
        logger.info("Closed catalog HTTP session")
    _catalog_client = None
