"""Catalog browsing routes consumed by the storefront UI."""

from __future__ import annotations

import logging
from typing import Annotated, Any

from fastapi import APIRouter, HTTPException, Query, status

from src.config import settings
from src.models.product import CatalogFilters, GroupBy, Page, Pagination, Variant
from src.services.catalog.errors import CatalogFetchError
from src.services.catalog.service import CatalogServiceDependency

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/catalog", tags=["catalog"])


@router.get(
    "/shirts",
    summary="List catalog shirts as variants or grouped designs",
)
async def list_shirts(
    catalog: CatalogServiceDependency,
    size: Annotated[str | None, Query(description="Size name, e.g. M")] = None,
    shirt_type: Annotated[str | None, Query(alias="type")] = None,
    min_price: Annotated[float | None, Query(alias="minPrice", ge=0)] = None,
    max_price: Annotated[float | None, Query(alias="maxPrice", ge=0)] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = settings.DEFAULT_PAGE_LIMIT,
    group_by: Annotated[GroupBy | None, Query(alias="groupBy")] = None,
) -> Any:
    filters = CatalogFilters(
        size_name=size,
        type_name=shirt_type,
        min_price=min_price,
        max_price=max_price,
    )
    try:
        result = await catalog.fetch_catalog_page(
            filters,
            Pagination(page=page, limit=limit),
            group_by,
        )
    except CatalogFetchError as exc:
        logger.warning("Catalog page request failed: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)
        ) from exc

    if isinstance(result, Page):
        return result.model_dump()
    # Unrecognized envelopes go back to the caller untouched.
    return result


@router.get(
    "/designs/{design_id}/variants",
    response_model=list[Variant],
    summary="List every size variant of a design",
)
async def list_design_variants(
    design_id: str,
    catalog: CatalogServiceDependency,
) -> list[Variant]:
    try:
        return await catalog.fetch_design_variants(design_id)
    except CatalogFetchError as exc:
        logger.warning("Variant request for design %s failed: %s", design_id, exc)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)
        ) from exc
