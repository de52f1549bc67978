"""Cart routes: CRUD over the persisted cart and the reconciled view.

The cart store is synchronous, so its routes are plain functions and run in
the threadpool.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Query, Response, status
from fastapi.concurrency import run_in_threadpool

from src.models.cart import (
    AddCartLineRequest,
    Cart,
    ReconciledCartView,
    SetQuantityRequest,
)
from src.services.cart.reconciler import CartReconcilerDependency
from src.services.cart.store import CartStoreDependency

router = APIRouter(prefix="/cart", tags=["cart"])


@router.get("", response_model=Cart, summary="Return the persisted cart lines")
def read_cart(store: CartStoreDependency) -> Cart:
    return store.get()


@router.get("/count", summary="Total quantity across all cart lines")
def read_cart_count(store: CartStoreDependency) -> dict[str, int]:
    return {"count": store.item_count()}


@router.get(
    "/view",
    response_model=ReconciledCartView,
    summary="Return the cart resolved against live catalog variants",
)
async def read_cart_view(
    store: CartStoreDependency,
    reconciler: CartReconcilerDependency,
) -> ReconciledCartView:
    cart = await run_in_threadpool(store.get)
    return await reconciler.reconcile(cart)


@router.post(
    "/lines",
    response_model=Cart,
    status_code=status.HTTP_201_CREATED,
    summary="Add a design/size to the cart",
)
def add_cart_line(payload: AddCartLineRequest, store: CartStoreDependency) -> Cart:
    return store.add(payload.design_id, payload.size_name, payload.quantity)


@router.put(
    "/lines/{design_id}",
    response_model=Cart,
    summary="Set the quantity of a cart line; zero or below removes it",
)
def set_cart_line_quantity(
    design_id: str,
    payload: SetQuantityRequest,
    store: CartStoreDependency,
) -> Cart:
    return store.set_quantity(design_id, payload.size_name, payload.quantity)


@router.delete(
    "/lines/{design_id}",
    response_model=Cart,
    summary="Remove a cart line, or every line of the design when no size is given",
)
def remove_cart_line(
    design_id: str,
    store: CartStoreDependency,
    size: Annotated[str | None, Query()] = None,
) -> Cart:
    if size is None:
        return store.remove(design_id)
    return store.remove(design_id, size)


@router.delete("", status_code=status.HTTP_204_NO_CONTENT, summary="Empty the cart")
def clear_cart(store: CartStoreDependency) -> Response:
    store.clear()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
