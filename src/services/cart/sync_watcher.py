"""Keeps a reconciled cart view fresh while a consuming view is open.

Cart state has no authoritative push channel, so several sources request a
refresh: change messages from other processes on the Redis cart channel,
in-process cart store notifications, a short poll interval and the view
becoming visible again. All of them set one signal; a burst of requests within
the debounce window results in a single ``reconcile()``.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import os
import socket
import uuid
from collections.abc import Awaitable, Callable

import redis.asyncio as redis
from redis.exceptions import RedisError

from src.config import settings
from src.models.cart import Cart, ReconciledCartView
from src.services.cart.reconciler import CartReconciler
from src.services.cart.store import CartStore, get_cart_store
from src.services.catalog.service import CatalogService
from src.services.clients.catalog_client import get_catalog_client
from src.services.reference_cache import get_reference_cache
from src.services.workers.base import BaseWorker

logger = logging.getLogger(__name__)

ViewCallback = Callable[[ReconciledCartView], Awaitable[None] | None]


class CartSyncWatcher(BaseWorker):
    """Re-reconciles the cart on change notifications, polling and visibility."""

    def __init__(
        self,
        *,
        store: CartStore,
        reconciler: CartReconciler,
        on_view: ViewCallback,
        pubsub_client: redis.Redis | None = None,
        poll_interval: float | None = None,
        debounce: float | None = None,
        consumer_name: str | None = None,
        owns_pubsub_client: bool = False,
    ) -> None:
        super().__init__(consumer_name)
        self.store = store
        self.reconciler = reconciler
        self.on_view = on_view
        self.pubsub_client = pubsub_client
        self._owns_pubsub_client = owns_pubsub_client
        self._loop: asyncio.AbstractEventLoop | None = None
        self.poll_interval = (
            settings.poll_interval_seconds if poll_interval is None else poll_interval
        )
        self.debounce = settings.debounce_seconds if debounce is None else debounce
        self._requested = asyncio.Event()
        self._visible = True
        self._tasks: list[asyncio.Task] = []
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    @property
    def visible(self) -> bool:
        return self._visible

    async def start(self) -> None:
        """Begin watching; the first reconciliation is requested immediately."""

        if self.running:
            return
        self.reset_shutdown()
        self._loop = asyncio.get_running_loop()
        self._unsubscribe = self.store.subscribe(self._on_store_change)
        self._tasks = [asyncio.create_task(self.run_forever())]
        if self.pubsub_client is not None:
            self._tasks.append(asyncio.create_task(self._listen_storage_events()))
        logger.info("Cart watcher %s started", self.consumer_name)
        self.request_reconcile()

    async def stop(self) -> None:
        """Stop watching. A reconciliation still in flight is discarded."""

        if not self.running:
            return
        self.shutdown()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        tasks, self._tasks = self._tasks, []
        await self.cancel_tasks(tasks)
        if self._owns_pubsub_client and self.pubsub_client is not None:
            await self.pubsub_client.aclose()
            self.pubsub_client = None
        logger.info("Cart watcher %s stopped", self.consumer_name)

    def request_reconcile(self) -> None:
        self._requested.set()

    def _on_store_change(self, _cart: Cart) -> None:
        # Store mutations may run in threadpool workers.
        if self._loop is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self.request_reconcile)

    def set_visible(self, visible: bool) -> None:
        """Pause while hidden; regaining visibility triggers a refresh."""

        was_visible = self._visible
        self._visible = visible
        if visible and not was_visible:
            self.request_reconcile()

    async def run_forever(self) -> None:
        try:
            while not self.is_shutdown_requested():
                requested = await self._wait_for_request()
                if self.is_shutdown_requested():
                    break
                if not self._visible:
                    self._requested.clear()
                    continue
                if requested and self.debounce > 0:
                    # Let a burst of notifications collapse into one pass.
                    await asyncio.sleep(self.debounce)
                self._requested.clear()
                await self._reconcile_once()
        except asyncio.CancelledError:
            logger.debug("Cart watcher %s cancelled", self.consumer_name)
            raise

    async def _wait_for_request(self) -> bool:
        """Wait for a request or a poll tick; True when explicitly requested."""

        try:
            await asyncio.wait_for(self._requested.wait(), timeout=self.poll_interval)
        except asyncio.TimeoutError:
            return False
        return True

    async def _reconcile_once(self) -> None:
        try:
            cart = await asyncio.to_thread(self.store.get)
            view = await self.reconciler.reconcile(cart)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error("Cart reconciliation failed: %s", exc, exc_info=True)
            return

        if self.is_shutdown_requested():
            logger.debug("Discarding reconciled cart view after stop")
            return

        result = self.on_view(view)
        if inspect.isawaitable(result):
            await result

    async def _listen_storage_events(self) -> None:
        """Request a refresh when another process changes the shared cart."""

        channel = self.store.channel
        pubsub = self.pubsub_client.pubsub()
        await pubsub.subscribe(channel)
        try:
            while not self.is_shutdown_requested():
                try:
                    message = await pubsub.get_message(
                        ignore_subscribe_messages=True,
                        timeout=1.0,
                    )
                except RedisError as exc:
                    logger.error("Cart channel read failed: %s", exc, exc_info=True)
                    await asyncio.sleep(1)
                    continue

                if not message:
                    continue
                origin = message.get("data")
                if isinstance(origin, bytes):
                    origin = origin.decode("utf-8", errors="replace")
                if origin == self.store.origin:
                    # Local writes already notify through the store listener.
                    continue
                logger.debug("Cart changed in %s", origin)
                self.request_reconcile()
        finally:
            await pubsub.unsubscribe(channel)
            await pubsub.aclose()

    @staticmethod
    def _build_consumer_name() -> str:
        hostname = socket.gethostname()
        pid = os.getpid()
        suffix = uuid.uuid4().hex[:6]
        return f"cart-watcher:{hostname}:{pid}:{suffix}"


def create_cart_watcher(
    on_view: ViewCallback,
    *,
    store: CartStore | None = None,
    reconciler: CartReconciler | None = None,
) -> CartSyncWatcher:
    """Factory wiring a watcher to the process-wide store, catalog and Redis."""

    if reconciler is None:
        reconciler = CartReconciler(
            CatalogService(get_catalog_client(), get_reference_cache())
        )
    pubsub_client = redis.from_url(
        settings.REDIS_URL,
        encoding="utf-8",
        decode_responses=True,
    )
    return CartSyncWatcher(
        store=store or get_cart_store(),
        reconciler=reconciler,
        on_view=on_view,
        pubsub_client=pubsub_client,
        owns_pubsub_client=True,
    )
