"""Catalog facade: fetch through the client, normalize, feed the reference cache."""

from __future__ import annotations

import logging
from typing import Annotated, Any

from fastapi import Depends

from src.models.product import CatalogFilters, Design, GroupBy, Page, Pagination, Variant
from src.services.catalog.normalizer import normalize_page, normalize_variant
from src.services.clients.catalog_client import CatalogClient, CatalogClientDependency
from src.services.reference_cache import ReferenceCache, get_reference_cache

logger = logging.getLogger(__name__)


class CatalogService:
    """Single path through which raw catalog data reaches the application."""

    def __init__(self, client: CatalogClient, cache: ReferenceCache) -> None:
        self._client = client
        self._cache = cache

    @property
    def cache(self) -> ReferenceCache:
        return self._cache

    async def fetch_catalog_page(
        self,
        filters: CatalogFilters | None = None,
        pagination: Pagination | None = None,
        group_by: GroupBy | None = None,
    ) -> Page[Variant] | Page[Design] | Any:
        """Fetch and normalize one page.

        Raises ``CatalogFetchError`` when the request fails. Responses in an
        unrecognized envelope are passed through unchanged.
        """

        raw_page = await self._client.fetch_catalog_page(
            filters or CatalogFilters(),
            pagination or Pagination(),
            group_by,
        )
        result = normalize_page(raw_page, group_by, cache=self._cache)
        if not isinstance(result, Page):
            logger.warning("Catalog page response passed through unnormalized")
        return result

    async def fetch_design_variants(self, design_id: str) -> list[Variant]:
        """Fetch every size variant of a design, zero-stock ones included."""

        records = await self._client.fetch_design_variants(design_id)
        return [normalize_variant(record, cache=self._cache) for record in records]


def get_catalog_service(
    client: CatalogClientDependency,
    cache: Annotated[ReferenceCache, Depends(get_reference_cache)],
) -> CatalogService:
    """FastAPI dependency wiring the catalog client and reference cache."""

    return CatalogService(client, cache)


CatalogServiceDependency = Annotated[CatalogService, Depends(get_catalog_service)]
