"""System-level routes such as health checks."""

from __future__ import annotations

import httpx
from fastapi import APIRouter
from fastapi.concurrency import run_in_threadpool
from redis.exceptions import RedisError

from src.config import settings
from src.services.cart.store import get_storage_client

router = APIRouter(tags=["system"])


@router.get("/")
async def read_root() -> dict[str, str]:
    """Hello World endpoint used by smoke tests."""

    return {"message": "Shirt Store catalog"}


@router.get("/health")
async def health_check() -> dict[str, str]:
    """Health check with catalog backend and cart storage connectivity."""

    try:
        async with httpx.AsyncClient() as client:
            response = await client.get(f"{settings.CATALOG_API_URL}/shirts", timeout=5.0)
            catalog_status = "connected" if response.status_code < 500 else "disconnected"
    except httpx.HTTPError:
        catalog_status = "disconnected"

    try:
        pong = await run_in_threadpool(get_storage_client().ping)
        storage_status = "connected" if pong else "disconnected"
    except RedisError:
        storage_status = "disconnected"

    return {
        "status": "healthy",
        "catalog": catalog_status,
        "cart_storage": storage_status,
        "environment": settings.ENVIRONMENT,
    }
