"""Persisted cart store.

The cart lives under a single Redis key as one JSON document and is read and
written synchronously. Every mutation rewrites the whole document, then
notifies in-process listeners and publishes the store's origin id on the cart
channel so other processes sharing the key can re-read it.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from typing import Annotated

import redis
from fastapi import Depends
from pydantic import ValidationError

from src.config import settings
from src.models.cart import Cart, CartLine

logger = logging.getLogger(__name__)

CartListener = Callable[[Cart], None]

_ANY_SIZE = object()


class CartStore:
    """CRUD over the persisted cart lines. Knows nothing about prices."""

    def __init__(
        self,
        client: redis.Redis,
        *,
        key: str | None = None,
        channel: str | None = None,
        origin: str | None = None,
    ) -> None:
        self._client = client
        self._key = key or settings.CART_STORAGE_KEY
        self._channel = channel or settings.CART_CHANNEL
        self.origin = origin or uuid.uuid4().hex
        self._listeners: list[CartListener] = []

    @property
    def channel(self) -> str:
        return self._channel

    def get(self) -> Cart:
        """Return the persisted cart, or an empty one if it is absent or unreadable."""

        try:
            raw = self._client.get(self._key)
        except redis.RedisError as exc:
            logger.warning("Cart storage unavailable, using empty cart: %s", exc)
            return Cart()
        except UnicodeDecodeError:
            logger.warning(
                "Persisted cart is not valid UTF-8, using empty cart",
                extra={"key": self._key},
            )
            return Cart()
        if not raw:
            return Cart()

        try:
            cart = Cart.model_validate_json(raw)
        except ValidationError as exc:
            logger.warning(
                "Persisted cart is malformed, using empty cart",
                extra={"key": self._key, "errors": exc.error_count()},
            )
            return Cart()
        return _merge_duplicates(cart)

    def add(
        self,
        design_id: str,
        size_name: str | None = None,
        quantity: int = 1,
    ) -> Cart:
        """Add ``quantity`` of a design/size, merging into an existing line."""

        cart = self.get()
        if quantity <= 0:
            return cart

        existing = cart.find(design_id, size_name)
        if existing is not None:
            updated = existing.model_copy(
                update={"quantity": existing.quantity + quantity}
            )
            cart.lines = [updated if line is existing else line for line in cart.lines]
        else:
            cart.lines.append(
                CartLine(design_id=design_id, size_name=size_name, quantity=quantity)
            )

        self._save(cart)
        logger.info(
            "Added %d x design %s (size=%s) to cart", quantity, design_id, size_name
        )
        return cart

    def remove(self, design_id: str, size_name: str | None | object = _ANY_SIZE) -> Cart:
        """Remove one design/size line, or every line of the design when no
        size is given."""

        cart = self.get()
        if size_name is _ANY_SIZE:
            cart.lines = [line for line in cart.lines if line.design_id != design_id]
        else:
            cart.lines = [
                line for line in cart.lines if line.key != (design_id, size_name)
            ]
        self._save(cart)
        return cart

    def set_quantity(
        self,
        design_id: str,
        size_name: str | None,
        quantity: int,
    ) -> Cart:
        """Set a line's quantity. Zero or below removes the line."""

        if quantity <= 0:
            return self.remove(design_id, size_name)

        cart = self.get()
        existing = cart.find(design_id, size_name)
        if existing is None:
            cart.lines.append(
                CartLine(design_id=design_id, size_name=size_name, quantity=quantity)
            )
        else:
            updated = existing.model_copy(update={"quantity": quantity})
            cart.lines = [updated if line is existing else line for line in cart.lines]
        self._save(cart)
        return cart

    def clear(self) -> None:
        self._client.delete(self._key)
        logger.info("Cart cleared")
        self._notify(Cart())

    def item_count(self) -> int:
        return self.get().item_count

    def subscribe(self, listener: CartListener) -> Callable[[], None]:
        """Register an in-process change listener; returns an unsubscribe callable."""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _save(self, cart: Cart) -> None:
        self._client.set(
            self._key,
            cart.model_dump_json(by_alias=True, exclude_none=True),
        )
        self._notify(cart)

    def _notify(self, cart: Cart) -> None:
        for listener in list(self._listeners):
            try:
                listener(cart)
            except Exception:
                logger.exception("Cart listener %r failed", listener)

        try:
            self._client.publish(self._channel, self.origin)
        except redis.RedisError as exc:
            logger.warning("Failed to publish cart change: %s", exc)


def _merge_duplicates(cart: Cart) -> Cart:
    merged: dict[tuple[str, str | None], CartLine] = {}
    for line in cart.lines:
        existing = merged.get(line.key)
        if existing is None:
            merged[line.key] = line
        else:
            merged[line.key] = existing.model_copy(
                update={"quantity": existing.quantity + line.quantity}
            )
    if len(merged) != len(cart.lines):
        logger.debug("Merged duplicate cart lines on read")
    return Cart(lines=list(merged.values()))


_storage_client: redis.Redis | None = None
_cart_store: CartStore | None = None


def get_storage_client() -> redis.Redis:
    """Return a singleton synchronous Redis client for cart storage."""

    global _storage_client
    if _storage_client is None:
        _storage_client = redis.Redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
        )
    return _storage_client


def get_cart_store() -> CartStore:
    """FastAPI dependency returning the process-wide cart store."""

    global _cart_store
    if _cart_store is None:
        _cart_store = CartStore(get_storage_client())
    return _cart_store


CartStoreDependency = Annotated[CartStore, Depends(get_cart_store)]
