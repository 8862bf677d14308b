"""Tests for the storefront catalog client, product mapping and search executor."""

import json

import httpx
import pytest

from shopassist.agent.tools import CatalogSearchExecutor, clamp_result_limit
from shopassist.catalog.client import CatalogError, StorefrontCatalogClient
from shopassist.catalog.mapping import map_provider_product, slugify, strip_html
from shopassist.models.products import ToolError

ENDPOINT = "https://shop.test/api/mcp"

RAW_PRODUCT = {
    "product_id": "gid://shopify/Product/2",
    "title": "Navy Blue Linen Shirt",
    "description": "<p>Lightweight <b>linen</b>&nbsp;shirt.</p>",
    "image_url": "https://cdn.shopify.com/navy.jpg",
    "price_range": {"min": "59.99", "max": "64.99", "currency": "EUR"},
    "variants": [
        {
            "variant_id": "gid://shopify/ProductVariant/21",
            "title": "M",
            "price": "59.99",
            "available": True,
        },
        {
            "variant_id": "gid://shopify/ProductVariant/22",
            "title": "L",
            "price": "64.99",
            "available": False,
        },
    ],
}


def mcp_result(payload: dict) -> dict:
    return {
        "jsonrpc": "2.0",
        "id": 1,
        "result": {"content": [{"type": "text", "text": json.dumps(payload)}]},
    }


def make_client(handler, password: str = "") -> StorefrontCatalogClient:
    return StorefrontCatalogClient(
        endpoint=ENDPOINT, password=password, transport=httpx.MockTransport(handler)
    )


# ----------------------------------------------------------------------
# Mapping
# ----------------------------------------------------------------------


def test_strip_html() -> None:
    assert strip_html("<p>Soft&nbsp;<i>cotton</i></p>\n\n tee") == "Soft cotton tee"
    assert strip_html("<br/> <p></p>") is None
    assert strip_html(None) is None


def test_slugify() -> None:
    assert slugify("Navy Blue Linen Shirt!") == "navy-blue-linen-shirt"


def test_map_mcp_product() -> None:
    product = map_provider_product(RAW_PRODUCT)
    assert product.id == "gid://shopify/Product/2"
    assert product.description == "Lightweight linen shirt."
    assert product.price.amount == 59.99
    assert product.price.currency_code == "EUR"
    assert product.variant_id == "gid://shopify/ProductVariant/21"
    assert [v.available_for_sale for v in product.variants] == [True, False]
    assert product.handle == "navy-blue-linen-shirt"
    assert product.url == "/products/navy-blue-linen-shirt"
    assert product.overlay_asset_url == product.image_url


def test_map_graphql_style_product() -> None:
    product = map_provider_product(
        {
            "id": "gid://shopify/Product/7",
            "title": "Canvas Tote",
            "handle": "canvas-tote",
            "featuredImage": {"url": "https://cdn/tote.jpg"},
            "priceRange": {"minVariantPrice": {"amount": "20.0", "currencyCode": "USD"}},
            "variants": {"nodes": [{"id": "gid://shopify/ProductVariant/70", "title": "One"}]},
            "metafields": {"custom": {"overlay_asset_shirt": "https://cdn/overlay.png"}},
        }
    )
    assert product.image_url == "https://cdn/tote.jpg"
    assert product.price.amount == 20.0
    assert product.variant_id == "gid://shopify/ProductVariant/70"
    assert product.overlay_asset_url == "https://cdn/overlay.png"
    assert product.url == "/products/canvas-tote"


def test_map_tolerates_missing_fields() -> None:
    product = map_provider_product(
        {"product_id": "p1", "title": "Bare", "description": "<div> </div>", "price_range": {"min": "n/a"}}
    )
    assert product.description is None
    assert product.price is None
    assert product.image_url is None
    assert product.variants is None
    assert product.variant_id is None

    wire = product.to_wire()
    assert "price" not in wire
    assert "imageUrl" not in wire


def test_map_skips_products_without_id() -> None:
    assert map_provider_product({"title": "Ghost"}) is None


# ----------------------------------------------------------------------
# Client
# ----------------------------------------------------------------------


@pytest.mark.asyncio
async def test_search_sends_jsonrpc_tools_call() -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(200, json=mcp_result({"products": [RAW_PRODUCT]}))

    client = make_client(handler)
    products = await client.search_catalog("linen", "User is searching for: linen", 3)
    await client.aclose()

    assert products == [RAW_PRODUCT]
    body = seen[0]
    assert body["jsonrpc"] == "2.0"
    assert body["method"] == "tools/call"
    assert body["params"] == {
        "name": "search_shop_catalog",
        "arguments": {"query": "linen", "context": "User is searching for: linen", "first": 3},
    }


@pytest.mark.asyncio
async def test_non_success_status_raises() -> None:
    client = make_client(lambda request: httpx.Response(503, text="down"))
    with pytest.raises(CatalogError, match="503"):
        await client.search_catalog("linen", "ctx", 5)


@pytest.mark.asyncio
async def test_jsonrpc_error_raises() -> None:
    client = make_client(
        lambda request: httpx.Response(
            200, json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32602, "message": "bad args"}}
        )
    )
    with pytest.raises(CatalogError, match="bad args"):
        await client.search_catalog("linen", "ctx", 5)


@pytest.mark.asyncio
async def test_malformed_payload_raises() -> None:
    client = make_client(lambda request: httpx.Response(200, text="<html>oops</html>"))
    with pytest.raises(CatalogError):
        await client.search_catalog("linen", "ctx", 5)


@pytest.mark.asyncio
async def test_unconfigured_endpoint_raises() -> None:
    client = StorefrontCatalogClient(endpoint="")
    with pytest.raises(CatalogError, match="not configured"):
        await client.search_catalog("linen", "ctx", 5)
    await client.aclose()


@pytest.mark.asyncio
async def test_password_protected_store_authenticates_once() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append((request.url.path, request.headers.get("cookie")))
        if request.url.path == "/password":
            return httpx.Response(
                302,
                headers={
                    "location": "/",
                    "set-cookie": "_shopify_essential=abc123; path=/; HttpOnly",
                },
            )
        if request.headers.get("cookie") != "_shopify_essential=abc123":
            return httpx.Response(302, headers={"location": "https://shop.test/password"})
        return httpx.Response(200, json=mcp_result({"products": []}))

    client = make_client(handler, password="letmein")
    assert await client.search_catalog("a", "ctx", 5) == []
    assert await client.search_catalog("b", "ctx", 5) == []
    await client.aclose()

    assert [path for path, _ in calls] == ["/password", "/api/mcp", "/api/mcp"]


@pytest.mark.asyncio
async def test_password_redirect_without_password_raises() -> None:
    client = make_client(
        lambda request: httpx.Response(302, headers={"location": "https://shop.test/password"})
    )
    with pytest.raises(CatalogError, match="password-protected"):
        await client.search_catalog("a", "ctx", 5)


# ----------------------------------------------------------------------
# Executor
# ----------------------------------------------------------------------


def test_clamp_result_limit() -> None:
    assert clamp_result_limit(None) == 5
    assert clamp_result_limit("3") == 3
    assert clamp_result_limit(50) == 10
    assert clamp_result_limit(0) == 1


@pytest.mark.asyncio
async def test_executor_maps_and_caps_results() -> None:
    requested = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(json.loads(request.content)["params"]["arguments"]["first"])
        raw = [dict(RAW_PRODUCT, product_id=f"p{i}") for i in range(12)]
        return httpx.Response(200, json=mcp_result({"products": raw}))

    executor = CatalogSearchExecutor(make_client(handler))
    result = await executor.run({"query": "linen", "first": 25})

    assert requested == [10]
    assert len(result) == 10
    assert result[0].id == "p0"


@pytest.mark.asyncio
async def test_executor_returns_tool_error_instead_of_raising() -> None:
    executor = CatalogSearchExecutor(make_client(lambda request: httpx.Response(500)))
    result = await executor.search("linen")
    assert isinstance(result, ToolError)
    assert result.to_payload() == {"error": "Catalog error 500"}


@pytest.mark.asyncio
async def test_executor_rejects_empty_query() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    executor = CatalogSearchExecutor(make_client(handler))
    result = await executor.run({"query": "   "})
    assert isinstance(result, ToolError)


@pytest.mark.asyncio
async def test_executor_maps_network_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    executor = CatalogSearchExecutor(make_client(handler))
    result = await executor.search("linen", 5)
    assert isinstance(result, ToolError)
    assert "connection" in result.message.lower()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("payload", "expected"),
    [
        ({"products": [dict(RAW_PRODUCT, price_range=None, priceRange="59.99")]}, list),
        ({"data": ["not", "a", "mapping"], "items": None}, ToolError),
        ({"products": [dict(RAW_PRODUCT, price_range={"min": "10", "currency": 978})]}, list),
    ],
    ids=["string-price-range", "list-data", "numeric-currency"],
)
async def test_executor_survives_odd_provider_shapes(payload: dict, expected: type) -> None:
    executor = CatalogSearchExecutor(
        make_client(lambda request: httpx.Response(200, json=mcp_result(payload)))
    )
    result = await executor.search("shirts")
    assert isinstance(result, expected)


def test_non_string_currency_falls_back_to_default() -> None:
    product = map_provider_product(
        dict(RAW_PRODUCT, price_range={"min": "10", "currency": 978})
    )
    assert product.price.amount == 10.0
    assert product.price.currency_code == "USD"


def test_string_graphql_price_range_is_ignored() -> None:
    product = map_provider_product(
        {"id": "p1", "title": "Odd", "priceRange": "59.99"}
    )
    assert product.price is None


@pytest.mark.asyncio
async def test_list_data_fallback_is_a_catalog_error() -> None:
    client = make_client(
        lambda request: httpx.Response(200, json=mcp_result({"data": [1, 2]}))
    )
    with pytest.raises(CatalogError, match="product list"):
        await client.search_catalog("shirts", "ctx", 5)


@pytest.mark.asyncio
async def test_unmappable_product_becomes_tool_error() -> None:
    payload = {"products": [dict(RAW_PRODUCT, description=42)]}
    executor = CatalogSearchExecutor(
        make_client(lambda request: httpx.Response(200, json=mcp_result(payload)))
    )
    result = await executor.search("shirts")
    assert isinstance(result, ToolError)
    assert result.to_payload() == {"error": "Malformed catalog response"}
