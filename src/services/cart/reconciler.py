"""Reconcile the persisted cart against live catalog variants."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Annotated

from fastapi import Depends

from src.models.cart import Cart, CartLine, ReconciledCartView, ReconciledLine
from src.models.product import Variant
from src.services.catalog.service import CatalogService, get_catalog_service

logger = logging.getLogger(__name__)


def select_variant(line: CartLine, variants: Sequence[Variant]) -> Variant | None:
    """Pick the variant a cart line refers to.

    Exact size match first, then the first in-stock variant (also used for
    legacy lines without a size), then the first variant at all.
    """

    if not variants:
        return None
    if line.size_name is not None:
        for variant in variants:
            if variant.size_name == line.size_name:
                return variant
    for variant in variants:
        if variant.in_stock:
            return variant
    return variants[0]


class CartReconciler:
    """Resolves cart lines to priced variants. Never writes to the cart store."""

    def __init__(self, catalog: CatalogService) -> None:
        self._catalog = catalog

    async def reconcile(self, cart: Cart) -> ReconciledCartView:
        design_ids = cart.design_ids
        results = await asyncio.gather(
            *(self._catalog.fetch_design_variants(design_id) for design_id in design_ids),
            return_exceptions=True,
        )

        variants_by_design: dict[str, list[Variant] | None] = {}
        for design_id, result in zip(design_ids, results):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                logger.warning(
                    "Could not fetch variants for design %s: %s", design_id, result
                )
                variants_by_design[design_id] = None
            else:
                variants_by_design[design_id] = result

        view_lines: list[ReconciledLine] = []
        # Variant ids are only unique within a design and may be empty.
        by_variant: dict[tuple[str, str], int] = {}
        total = 0.0
        for line in cart.lines:
            variants = variants_by_design.get(line.design_id)
            variant = select_variant(line, variants) if variants else None
            if variant is None:
                view_lines.append(
                    ReconciledLine(cart_line=line, variant=None, quantity=line.quantity)
                )
                continue

            total += variant.final_price * line.quantity
            variant_key = (line.design_id, variant.id or variant.size_name)
            index = by_variant.get(variant_key)
            if index is None:
                by_variant[variant_key] = len(view_lines)
                view_lines.append(
                    ReconciledLine(cart_line=line, variant=variant, quantity=line.quantity)
                )
            else:
                merged = view_lines[index]
                view_lines[index] = merged.model_copy(
                    update={"quantity": merged.quantity + line.quantity}
                )

        view = ReconciledCartView(
            lines=view_lines,
            total_amount=round(total, 2),
            item_count=cart.item_count,
        )
        logger.debug(
            "Reconciled cart",
            extra={
                "designs": len(design_ids),
                "lines": len(view_lines),
                "pending": len(view.pending_lines),
            },
        )
        return view


def get_cart_reconciler(
    catalog: Annotated[CatalogService, Depends(get_catalog_service)],
) -> CartReconciler:
    """FastAPI dependency factory."""

    return CartReconciler(catalog)


CartReconcilerDependency = Annotated[CartReconciler, Depends(get_cart_reconciler)]
