"""Tests for raw catalog record normalization."""

import logging

import pytest

from src.config import settings
from src.models.product import Design, Page, Variant
from src.services.catalog.normalizer import (
    compute_final_price,
    normalize_design,
    normalize_page,
    normalize_variant,
)


def _flat_record(**overrides):
    record = {
        "_id": "v1",
        "shirtId": "d1",
        "name": "Linen Shirt",
        "description": "Breathable",
        "sizeReference": {"_id": "s-m", "name": "M"},
        "shirtType": {"_id": "t-casual", "name": "Casual"},
        "price": 200,
        "finalPrice": 170,
        "stock": 4,
        "imageURL": "https://img.example.com/v1.jpg",
    }
    record.update(overrides)
    return record


def test_normalize_variant_populated_shape(reference_cache):
    """Test that a fully populated record maps onto a Variant."""
    # Act
    variant = normalize_variant(_flat_record(), cache=reference_cache)

    # Assert
    assert variant == Variant(
        id="v1",
        name="Linen Shirt",
        description="Breathable",
        image_url="https://img.example.com/v1.jpg",
        base_price=200,
        final_price=170,
        size_name="M",
        type_name="Casual",
        stock_quantity=4,
    )
    # Side effect: references were recorded.
    assert reference_cache.resolve_id("M", "size") == "s-m"
    assert reference_cache.resolve_id("Casual", "type") == "t-casual"


def test_size_priority_prefers_size_reference_over_alias(reference_cache):
    """Test that sizeReference wins over sizeRef and a flat size."""
    # Arrange
    record = _flat_record(
        sizeReference={"_id": "s-l", "name": "L"},
        sizeRef={"_id": "s-m", "name": "M"},
        size="XXL",
    )

    # Act / Assert
    assert normalize_variant(record, cache=reference_cache).size_name == "L"


def test_legacy_flat_fields(reference_cache):
    """Test that flat string size and type fields are still understood."""
    # Arrange
    record = _flat_record(sizeReference=None, shirtType=None, size="XL", type="Wedding")

    # Act
    variant = normalize_variant(record, cache=reference_cache)

    # Assert
    assert variant.size_name == "XL"
    assert variant.type_name == "Wedding"


def test_legacy_shirt_size_object(reference_cache):
    """Test that the legacy shirtSize object supplies the size name."""
    record = _flat_record(sizeReference=None, shirtSize={"name": "XXL"})

    assert normalize_variant(record, cache=reference_cache).size_name == "XXL"


def test_unrecognized_shape_falls_back_and_logs(reference_cache, caplog):
    """Test that a record without references falls back to defaults with a warning."""
    # Arrange
    record = {"_id": "odd", "name": "Mystery", "price": 50}

    # Act
    with caplog.at_level(logging.WARNING):
        variant = normalize_variant(record, cache=reference_cache)

    # Assert
    assert variant.size_name == settings.DEFAULT_SIZE_NAME
    assert variant.type_name == settings.DEFAULT_TYPE_NAME
    assert variant.image_url == settings.CATALOG_FALLBACK_IMAGE_URL
    assert variant.final_price == 50
    assert variant.stock_quantity == 0
    assert "falling back" in caplog.text


def test_id_only_record_resolves_through_cache(reference_cache):
    """Test that a bare size id resolves to a name recorded earlier."""
    # Arrange
    reference_cache.record({"_id": "s-xl", "name": "XL"}, "size")
    record = _flat_record(sizeReference=None, sizeReferenceId="s-xl")

    # Act / Assert
    assert normalize_variant(record, cache=reference_cache).size_name == "XL"


@pytest.mark.parametrize(
    ("price", "final_price", "discount", "expected_final"),
    [
        (100, 250, None, 100),
        (100, -5, None, 0),
        (-10, None, None, 0),
        (100, None, {"type": "percentage", "value": 20}, 80),
        (100, None, {"type": "percentage", "value": 150}, 0),
        (100, None, {"type": "amount", "value": 30}, 70),
        (100, None, {"type": "amount", "value": 300}, 0),
        (100, None, {"type": "bogus", "value": 30}, 100),
    ],
)
def test_price_monotonicity(reference_cache, price, final_price, discount, expected_final):
    """Test that the final price always lies between zero and the base price."""
    # Arrange
    record = _flat_record(price=price, finalPrice=final_price, discount=discount)

    # Act
    variant = normalize_variant(record, cache=reference_cache)

    # Assert
    assert variant.final_price == expected_final
    assert 0 <= variant.final_price <= variant.base_price


def test_compute_final_price_ignores_missing_discount():
    """Test that no discount, or a zero one, leaves the price unchanged."""
    assert compute_final_price(80, None) == 80
    assert compute_final_price(80, {"type": "percentage", "value": 0}) == 80


def _grouped_record():
    return {
        "_id": "d1",
        "name": "Oxford",
        "description": "Classic",
        "shirtType": {"_id": "t-formal", "name": "Formal"},
        "totalStock": 3,
        # Server-side truth, deliberately disagreeing with variant stock.
        "availableSizes": ["L", "M"],
        "variants": [
            {
                "_id": "v-m",
                "sizeReferenceId": "s-m",
                "sizeRef": {"_id": "s-m", "name": "M"},
                "price": 120,
                "finalPrice": 100,
                "stock": 0,
                "imageURL": "https://img.example.com/m.jpg",
            },
            {
                "_id": "v-l",
                "sizeReferenceId": "s-l",
                "sizeRef": {"_id": "s-l", "name": "L"},
                "price": 140,
                "finalPrice": 120,
                "stock": 3,
            },
        ],
    }


def test_normalize_design(reference_cache):
    """Test that a grouped record becomes a Design with every variant."""
    # Act
    design = normalize_design(_grouped_record(), cache=reference_cache)

    # Assert
    assert isinstance(design, Design)
    assert design.type_name == "Formal"
    assert [v.size_name for v in design.variants] == ["M", "L"]
    assert [v.id for v in design.variants] == ["v-m", "v-l"]
    assert design.variants[0].stock_quantity == 0
    assert design.variants[1].image_url == settings.CATALOG_FALLBACK_IMAGE_URL
    assert all(v.name == "Oxford" and v.type_name == "Formal" for v in design.variants)
    # Representative prices come from the first variant, not an aggregate.
    assert design.representative_base_price == 120
    assert design.representative_final_price == 100


def test_grouped_page_keeps_available_sizes_verbatim(reference_cache):
    """Test that availableSizes is copied as sent, not recomputed from stock."""
    # Arrange
    raw_page = {
        "success": True,
        "data": {
            "shirts": [_grouped_record()],
            "total": 1,
            "page": 1,
            "limit": 12,
            "totalPages": 1,
        },
    }

    # Act
    page = normalize_page(raw_page, "design", cache=reference_cache)

    # Assert
    assert isinstance(page, Page)
    assert page.items[0].available_size_names == ["L", "M"]
    assert (page.total, page.page, page.limit, page.total_pages) == (1, 1, 12, 1)


def test_design_without_variants_has_zero_representative_price(reference_cache):
    """Test that an empty design gets zero prices and no sizes."""
    # Act
    design = normalize_design(
        {"_id": "d2", "name": "Empty", "type": "Casual", "variants": []},
        cache=reference_cache,
    )

    # Assert
    assert design.variants == []
    assert design.representative_final_price == 0
    assert design.available_size_names == []


def test_flat_page_resolves_id_only_record_from_sibling(reference_cache):
    """Test that an id-only record resolves via a later sibling on the same page."""
    # Arrange
    raw_page = {
        "success": True,
        "data": {
            "items": [
                _flat_record(_id="v1", sizeReference=None, sizeReferenceId="s-l"),
                _flat_record(_id="v2", sizeReference={"_id": "s-l", "name": "L"}),
            ],
            "total": 2,
            "page": 1,
            "limit": 12,
            "totalPages": 1,
        },
    }

    # Act
    page = normalize_page(raw_page, cache=reference_cache)

    # Assert
    assert [item.size_name for item in page.items] == ["L", "L"]


@pytest.mark.parametrize(
    "raw_page",
    [
        {"success": False, "message": "boom"},
        {"success": True},
        {"success": True, "data": {"products": []}},
        ["not", "an", "envelope"],
    ],
)
def test_unrecognized_envelopes_pass_through(reference_cache, raw_page):
    """Test that unknown response envelopes are returned untouched."""
    assert normalize_page(raw_page, cache=reference_cache) is raw_page
