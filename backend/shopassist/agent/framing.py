"""In-band marker carrying the product list inside the plain-text stream.

Wire form, emitted at most once per turn and always before the text the
model writes after a tool call::

    [SHOPIFY_PRODUCTS]<json array of ProductResult>[/SHOPIFY_PRODUCTS]\n
"""

from __future__ import annotations

import json
import logging
from typing import Any

from shopassist.models.products import ProductResult

logger = logging.getLogger(__name__)

PRODUCTS_MARKER_START = "[SHOPIFY_PRODUCTS]"
PRODUCTS_MARKER_END = "[/SHOPIFY_PRODUCTS]"


def encode_products_marker(products: list[ProductResult]) -> str:
    payload = json.dumps([p.to_wire() for p in products], ensure_ascii=False)
    return f"{PRODUCTS_MARKER_START}{payload}{PRODUCTS_MARKER_END}\n"


def extract_products_marker(text: str) -> tuple[str, list[dict[str, Any]] | None]:
    """Split a stream's text into display text and the marker's products.

    Returns ``(text, None)`` when no complete marker is present. A payload
    that is not a JSON array is logged and read as an empty list.
    """
    start = text.find(PRODUCTS_MARKER_START)
    if start == -1:
        return text, None
    end = text.find(PRODUCTS_MARKER_END, start)
    if end == -1:
        return text, None

    payload = text[start + len(PRODUCTS_MARKER_START) : end]
    tail = end + len(PRODUCTS_MARKER_END)
    if text.startswith("\n", tail):
        tail += 1

    try:
        products = json.loads(payload)
    except json.JSONDecodeError:
        logger.warning("Malformed product marker payload: %r", payload[:200])
        products = []
    if not isinstance(products, list):
        logger.warning("Product marker payload is not a list")
        products = []

    return text[:start] + text[tail:], products
