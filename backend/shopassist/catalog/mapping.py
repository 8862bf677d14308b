"""Map provider product payloads onto the canonical ``ProductResult``.

The storefront MCP search returns products shaped like::

    {
        "product_id": "gid://shopify/Product/2",
        "title": "Navy Blue Linen Shirt",
        "description": "<p>Lightweight linen...</p>",
        "image_url": "https://cdn.shopify.com/...",
        "price_range": {"min": "59.99", "max": "59.99", "currency": "USD"},
        "variants": [
            {"variant_id": "gid://shopify/ProductVariant/21", "title": "M",
             "price": "59.99", "currency": "USD", "available": true}
        ]
    }

Storefront GraphQL-style payloads (``id``, ``images[].url``,
``featuredImage``, ``priceRange.minVariantPrice``) are accepted as a
fallback.
"""

from __future__ import annotations

import html
import logging
import re
from typing import Any

from shopassist.models.products import Price, ProductResult, ProductVariant

logger = logging.getLogger(__name__)

_TAG_PATTERN = re.compile(r"<[^>]*>")
_WHITESPACE_PATTERN = re.compile(r"\s+")


def strip_html(text: str | None) -> str | None:
    """Remove markup and collapse whitespace; empty results become ``None``."""
    if not text:
        return None
    cleaned = html.unescape(_TAG_PATTERN.sub(" ", text))
    cleaned = _WHITESPACE_PATTERN.sub(" ", cleaned).strip()
    return cleaned or None


def slugify(title: str) -> str:
    slug = re.sub(r"\s+", "-", title.strip().lower())
    return re.sub(r"[^a-z0-9-]", "", slug)


def _clean_str(value: Any) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _parse_amount(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.debug("Ignoring unparsable price %r", value)
        return None


def _currency(*values: Any) -> str:
    for value in values:
        if isinstance(value, str) and value.strip():
            return value.strip()
    return "USD"


def _extract_price(raw: dict[str, Any]) -> Price | None:
    price_range = raw.get("price_range")
    if isinstance(price_range, dict):
        amount = _parse_amount(price_range.get("min"))
        if amount is not None:
            return Price(amount=amount, currency_code=_currency(price_range.get("currency")))

    graphql_range = raw.get("priceRange")
    min_price = (
        graphql_range.get("minVariantPrice") if isinstance(graphql_range, dict) else None
    )
    if isinstance(min_price, dict):
        amount = _parse_amount(min_price.get("amount"))
        if amount is not None:
            return Price(amount=amount, currency_code=_currency(min_price.get("currencyCode")))

    price = raw.get("price")
    if isinstance(price, dict):
        amount = _parse_amount(price.get("amount"))
        if amount is not None:
            currency = _currency(price.get("currencyCode"), price.get("currency"))
            return Price(amount=amount, currency_code=currency)
    else:
        amount = _parse_amount(price)
        if amount is not None:
            return Price(amount=amount, currency_code=_currency(raw.get("currency")))
    return None


def _extract_image(raw: dict[str, Any]) -> str | None:
    candidates = [raw.get("image_url"), raw.get("imageUrl")]
    images = raw.get("images")
    if isinstance(images, list) and images and isinstance(images[0], dict):
        candidates.append(images[0].get("url") or images[0].get("src"))
    for key in ("featuredImage", "image"):
        if isinstance(raw.get(key), dict):
            candidates.append(raw[key].get("url"))
    for candidate in candidates:
        url = _clean_str(candidate)
        if url:
            return url
    return None


def _extract_variants(raw: dict[str, Any]) -> list[ProductVariant] | None:
    raw_variants = raw.get("variants")
    if isinstance(raw_variants, dict):
        # GraphQL connection: {"nodes": [...]}
        raw_variants = raw_variants.get("nodes")
    if not isinstance(raw_variants, list):
        return None

    variants: list[ProductVariant] = []
    for variant in raw_variants:
        if not isinstance(variant, dict):
            continue
        variant_id = _clean_str(variant.get("variant_id") or variant.get("id"))
        if not variant_id:
            continue
        price = variant.get("price")
        if isinstance(price, dict):
            price = price.get("amount")
        available = variant.get("available", variant.get("availableForSale", True))
        variants.append(
            ProductVariant(
                id=variant_id,
                title=_clean_str(variant.get("title")) or "Default",
                price=_clean_str(price),
                available_for_sale=bool(available),
            )
        )
    return variants or None


def map_provider_product(raw: dict[str, Any]) -> ProductResult | None:
    """Normalize one provider product. Returns ``None`` when it has no id."""
    product_id = _clean_str(raw.get("product_id") or raw.get("id") or raw.get("gid"))
    if not product_id:
        logger.debug("Skipping catalog product without an id: %s", str(raw)[:120])
        return None

    title = _clean_str(raw.get("title")) or "Untitled Product"
    handle = _clean_str(raw.get("handle")) or slugify(title)
    image_url = _extract_image(raw)
    variants = _extract_variants(raw)
    metafields = raw.get("metafields")
    custom = metafields.get("custom") if isinstance(metafields, dict) else None
    overlay = custom.get("overlay_asset_shirt") if isinstance(custom, dict) else None

    return ProductResult(
        id=product_id,
        title=title,
        description=strip_html(raw.get("description")),
        image_url=image_url,
        price=_extract_price(raw),
        variants=variants,
        variant_id=variants[0].id if variants else None,
        overlay_asset_url=_clean_str(overlay) or image_url,
        handle=handle,
        url=_clean_str(raw.get("url")) or f"/products/{handle}",
    )


def map_provider_products(raw_products: list[dict[str, Any]]) -> list[ProductResult]:
    products = []
    for raw in raw_products:
        product = map_provider_product(raw)
        if product is not None:
            products.append(product)
    return products
