"""Tests for the product marker embedded in the text stream."""

import json

from fakes import make_product
from shopassist.agent.framing import (
    PRODUCTS_MARKER_END,
    PRODUCTS_MARKER_START,
    encode_products_marker,
    extract_products_marker,
)


def test_marker_wire_form() -> None:
    marker = encode_products_marker([make_product(1)])
    assert marker.startswith(PRODUCTS_MARKER_START)
    assert marker.endswith(PRODUCTS_MARKER_END + "\n")

    payload = marker[len(PRODUCTS_MARKER_START) : -len(PRODUCTS_MARKER_END) - 1]
    products = json.loads(payload)
    assert products[0]["id"] == "gid://shopify/Product/1"
    assert products[0]["imageUrl"] == "https://cdn.example/1.jpg"
    assert products[0]["variantId"] == "gid://shopify/ProductVariant/11"
    assert "description" not in products[0]


def test_empty_product_list_still_encodes() -> None:
    assert encode_products_marker([]) == "[SHOPIFY_PRODUCTS][][/SHOPIFY_PRODUCTS]\n"


def test_extract_splits_text_and_products() -> None:
    stream = "Let me search. " + encode_products_marker([make_product(3)]) + "Here you go."
    text, products = extract_products_marker(stream)
    assert text == "Let me search. Here you go."
    assert products is not None
    assert products[0]["title"] == "Linen Shirt 3"


def test_extract_without_marker() -> None:
    assert extract_products_marker("plain text") == ("plain text", None)


def test_extract_ignores_incomplete_marker() -> None:
    partial = "Hi [SHOPIFY_PRODUCTS][{\"id\": "
    assert extract_products_marker(partial) == (partial, None)


def test_extract_malformed_payload_yields_empty_list() -> None:
    text, products = extract_products_marker(
        "[SHOPIFY_PRODUCTS]{not json[/SHOPIFY_PRODUCTS]\nAfter"
    )
    assert text == "After"
    assert products == []


def test_non_ascii_titles_survive() -> None:
    product = make_product(1).model_copy(update={"title": "Chemise en lin écrue"})
    _, products = extract_products_marker(encode_products_marker([product]))
    assert products[0]["title"] == "Chemise en lin écrue"
