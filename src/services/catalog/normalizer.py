"""Normalization of raw catalog records into canonical models.

The backend has shipped several record shapes over time:

* individual size variants with a populated ``sizeReference``/``sizeRef``
  object and a populated ``shirtType`` object;
* legacy records with flat ``size``/``type`` strings (optionally with a
  ``shirtTypeId``);
* records carrying only foreign keys (``sizeReferenceId``/``shirtTypeId``);
* designs grouped with a nested ``variants`` array (``groupBy=design``).

Size and type names are read through the ordered source lists below. A record
is always handed to the reference cache before extraction so that id-only
records can resolve through references seen elsewhere.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from src.config import settings
from src.models.product import Design, GroupBy, Page, ReferenceKind, Variant
from src.services.reference_cache import ReferenceCache

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldSource:
    """One place a reference name may live on a raw record.

    ``populated_only`` sources only count when they hold an object with a
    ``name``; the others also accept a plain string.
    """

    field: str
    populated_only: bool = False


SIZE_SOURCES = (
    FieldSource("sizeReference", populated_only=True),
    FieldSource("sizeRef", populated_only=True),
    FieldSource("shirtSize"),
    FieldSource("size"),
)
SIZE_ID_FIELDS = ("sizeReferenceId",)

TYPE_SOURCES = (
    FieldSource("shirtType"),
    FieldSource("type"),
)
TYPE_ID_FIELDS = ("shirtTypeId",)

# Paginated responses have used both names for the record list.
PAGE_CONTAINER_FIELDS = ("items", "shirts")


def extract_reference_name(
    raw: Mapping[str, Any],
    kind: ReferenceKind,
    *,
    cache: ReferenceCache,
) -> str:
    """Return the size or type name of a raw record, or the configured default."""

    if kind == "size":
        sources, id_fields = SIZE_SOURCES, SIZE_ID_FIELDS
        default = settings.DEFAULT_SIZE_NAME
    else:
        sources, id_fields = TYPE_SOURCES, TYPE_ID_FIELDS
        default = settings.DEFAULT_TYPE_NAME

    for source in sources:
        value = raw.get(source.field)
        if isinstance(value, Mapping):
            name = value.get("name")
            if isinstance(name, str) and name:
                return name
        elif isinstance(value, str) and value and not source.populated_only:
            # A plain string may itself be a reference id.
            return cache.resolve_name(value, kind) or value

    for field in id_fields:
        value = raw.get(field)
        if isinstance(value, str):
            name = cache.resolve_name(value, kind)
            if name:
                return name

    logger.warning(
        "Could not extract %s from catalog record %s; falling back to %r",
        kind,
        raw.get("_id") or raw.get("id"),
        default,
    )
    return default


def compute_final_price(base_price: float, discount: Any) -> float:
    """Apply a ``{"type": "percentage" | "amount", "value": ...}`` discount."""

    if not isinstance(discount, Mapping):
        return base_price
    value = _to_float(discount.get("value"))
    if value is None or value <= 0:
        return base_price

    discount_type = discount.get("type")
    if discount_type == "percentage":
        final = base_price * (1 - min(value, 100) / 100)
    elif discount_type == "amount":
        final = base_price - min(value, base_price)
    else:
        logger.warning("Unknown discount type %r ignored", discount_type)
        return base_price
    return max(0.0, round(final, 2))


def normalize_variant(raw: Mapping[str, Any], *, cache: ReferenceCache) -> Variant:
    """Map one flat variant record to a :class:`Variant`."""

    cache.record_shirt(raw)
    return _build_variant(
        raw,
        cache=cache,
        name=raw.get("name"),
        description=raw.get("description"),
        type_name=extract_reference_name(raw, "type", cache=cache),
        discount=raw.get("discount"),
    )


def normalize_design(raw: Mapping[str, Any], *, cache: ReferenceCache) -> Design:
    """Map one grouped design record (with nested ``variants``)."""

    cache.record_grouped(raw)
    type_name = extract_reference_name(raw, "type", cache=cache)

    variants = [
        _build_variant(
            variant,
            cache=cache,
            name=raw.get("name"),
            description=raw.get("description"),
            type_name=type_name,
            discount=raw.get("discount"),
        )
        for variant in raw.get("variants") or []
        if isinstance(variant, Mapping)
    ]

    available = raw.get("availableSizes")
    if not isinstance(available, list):
        logger.debug("Design %s has no availableSizes field", raw.get("_id"))
        available = []

    first = variants[0] if variants else None
    return Design(
        id=_record_id(raw),
        name=raw.get("name") or "",
        description=raw.get("description") or "",
        type_name=type_name,
        representative_base_price=first.base_price if first else 0,
        representative_final_price=first.final_price if first else 0,
        variants=variants,
        available_size_names=[str(size) for size in available],
    )


def normalize_page(
    raw_page: Any,
    group_by: GroupBy | None = None,
    *,
    cache: ReferenceCache,
) -> Page[Variant] | Page[Design] | Any:
    """Reshape a raw paginated response into a canonical :class:`Page`.

    Responses that report failure or lack the expected container are returned
    unmodified; callers must check for a :class:`Page` before use.
    """

    if not isinstance(raw_page, Mapping) or not raw_page.get("success"):
        return raw_page
    data = raw_page.get("data")
    if not isinstance(data, Mapping):
        return raw_page

    records = None
    for field in PAGE_CONTAINER_FIELDS:
        if isinstance(data.get(field), list):
            records = data[field]
            break
    if records is None:
        logger.debug("Catalog page without a record container; passing through")
        return raw_page

    records = [record for record in records if isinstance(record, Mapping)]
    # Record the whole page first so id-only records can resolve through
    # references populated on sibling records.
    for record in records:
        cache.record_any(record)

    if group_by == "design":
        items: list = [normalize_design(record, cache=cache) for record in records]
        page_cls = Page[Design]
    else:
        items = [normalize_variant(record, cache=cache) for record in records]
        page_cls = Page[Variant]

    limit = _to_int(data.get("limit"), len(items))
    return page_cls(
        items=items,
        total=_to_int(data.get("total"), len(items)),
        page=_to_int(data.get("page"), 1),
        limit=limit,
        total_pages=_to_int(data.get("totalPages"), 1 if items else 0),
    )


def _build_variant(
    raw: Mapping[str, Any],
    *,
    cache: ReferenceCache,
    name: Any,
    description: Any,
    type_name: str,
    discount: Any,
) -> Variant:
    base_price = max(0.0, _to_float(raw.get("price")) or 0.0)
    final_price = _to_float(raw.get("finalPrice"))
    if final_price is None:
        final_price = compute_final_price(base_price, discount or raw.get("discount"))
    final_price = min(max(0.0, final_price), base_price)

    return Variant(
        id=_record_id(raw),
        name=name or "",
        description=description or "",
        image_url=raw.get("imageURL") or settings.CATALOG_FALLBACK_IMAGE_URL,
        base_price=base_price,
        final_price=final_price,
        size_name=extract_reference_name(raw, "size", cache=cache),
        type_name=type_name,
        stock_quantity=max(0, _to_int(raw.get("stock"), 0)),
    )


def _record_id(raw: Mapping[str, Any]) -> str:
    record_id = raw.get("_id") or raw.get("id")
    if not record_id:
        logger.warning("Catalog record without an id: %s", raw.get("name"))
        return ""
    return str(record_id)


def _to_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _to_int(value: Any, default: int) -> int:
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default
