"""Storefront MCP client for catalog search.

Talks JSON-RPC 2.0 over HTTP POST to the storefront's MCP endpoint::

    {"jsonrpc": "2.0", "id": 1, "method": "tools/call",
     "params": {"name": "search_shop_catalog", "arguments": {...}}}

Password-protected storefronts redirect every request to ``/password``.
When a storefront password is configured the client logs in once, keeps
the returned cookie and retries a redirected call a single time after
re-authenticating.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

import httpx

logger = logging.getLogger(__name__)

_AUTH_COOKIE_PATTERNS = (
    re.compile(r"(_shopify_essential=[^;]+)"),
    re.compile(r"(storefront_digest=[^;]+)"),
)


class CatalogError(Exception):
    """Catalog provider call failed (transport, status or payload)."""


class StorefrontCatalogClient:
    """Async client for the storefront catalog MCP tools.

    Usage:
        client = StorefrontCatalogClient(endpoint="https://shop.example/api/mcp")
        products = await client.search_catalog("linen shirt", "User is browsing", 5)
        await client.aclose()
    """

    def __init__(
        self,
        endpoint: str,
        password: str = "",
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._endpoint = endpoint.strip()
        self._password = password
        self._client = httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=False,
            transport=transport,
        )
        self._auth_cookie: str | None = None
        self._request_id = 0

    @property
    def is_configured(self) -> bool:
        return bool(self._endpoint)

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Tools
    # ------------------------------------------------------------------

    async def search_catalog(
        self, query: str, context: str, limit: int
    ) -> list[dict[str, Any]]:
        """Run ``search_shop_catalog`` and return the raw provider products."""
        result = await self.call_tool(
            "search_shop_catalog",
            {"query": query, "context": context, "first": limit},
        )
        payload = _unwrap_tool_result(result)

        products = payload.get("products") if isinstance(payload, dict) else None
        if products is None and isinstance(payload, dict):
            data = payload.get("data")
            products = payload.get("items") or (
                data.get("products") if isinstance(data, dict) else None
            )
        if not isinstance(products, list):
            raise CatalogError("Catalog response did not contain a product list")
        return [p for p in products if isinstance(p, dict)][:limit]

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> dict[str, Any]:
        """Call an MCP tool and return its JSON-RPC ``result``."""
        if not self.is_configured:
            raise CatalogError("Catalog endpoint not configured")

        if self._password and self._auth_cookie is None:
            self._auth_cookie = await self._authenticate()

        response = await self._post_jsonrpc(name, arguments)

        if response.is_redirect and "/password" in response.headers.get("location", ""):
            if not self._password:
                raise CatalogError(
                    "Store is password-protected; configure SHOPIFY_STOREFRONT_PASSWORD"
                )
            logger.info("Storefront token expired, re-authenticating")
            self._auth_cookie = await self._authenticate()
            response = await self._post_jsonrpc(name, arguments)
            if response.is_redirect:
                raise CatalogError("Storefront authentication failed")

        if not response.is_success:
            logger.warning(
                "Catalog error %s: %s", response.status_code, response.text[:200]
            )
            raise CatalogError(f"Catalog error {response.status_code}")

        try:
            data = response.json()
        except ValueError as exc:
            raise CatalogError(
                f"Invalid JSON response from catalog: {response.text[:200]}"
            ) from exc

        if not isinstance(data, dict):
            raise CatalogError("Catalog response was not a JSON object")
        if data.get("error"):
            error = data["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise CatalogError(f"Catalog tool error: {message}")

        result = data.get("result", data)
        if not isinstance(result, dict):
            raise CatalogError("Catalog result was not a JSON object")
        return result

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _next_request_id(self) -> int:
        self._request_id += 1
        return self._request_id

    async def _post_jsonrpc(self, name: str, arguments: dict[str, Any]) -> httpx.Response:
        headers = {"content-type": "application/json"}
        if self._auth_cookie:
            headers["cookie"] = self._auth_cookie

        request = {
            "jsonrpc": "2.0",
            "id": self._next_request_id(),
            "method": "tools/call",
            "params": {"name": name, "arguments": arguments},
        }
        logger.debug("Calling catalog tool %s at %s", name, self._endpoint)
        try:
            return await self._client.post(self._endpoint, json=request, headers=headers)
        except httpx.TimeoutException as exc:
            raise CatalogError("Catalog request timed out") from exc
        except httpx.HTTPError as exc:
            raise CatalogError(f"Catalog connection error: {exc}") from exc

    async def _authenticate(self) -> str:
        """Log in with the storefront password and return the cookie pair."""
        store_url = re.sub(r"/api/mcp/?$", "", self._endpoint)
        try:
            response = await self._client.post(
                f"{store_url}/password",
                data={
                    "form_type": "storefront_password",
                    "utf8": "✓",
                    "password": self._password,
                },
            )
        except httpx.HTTPError as exc:
            raise CatalogError(f"Storefront authentication error: {exc}") from exc

        if response.status_code == 302:
            for header in response.headers.get_list("set-cookie"):
                for pattern in _AUTH_COOKIE_PATTERNS:
                    match = pattern.search(header)
                    if match:
                        logger.info("Authenticated with storefront password")
                        return match.group(1)

        logger.error(
            "Storefront authentication failed with status %s", response.status_code
        )
        raise CatalogError("Storefront authentication failed")


def _unwrap_tool_result(result: dict[str, Any]) -> Any:
    """Extract the JSON payload from an MCP ``tools/call`` result.

    MCP tools answer ``{"content": [{"type": "text", "text": "<json>"}]}``;
    some proxies return the payload object directly.
    """
    if result.get("isError"):
        texts = [c.get("text", "") for c in result.get("content") or [] if isinstance(c, dict)]
        raise CatalogError(f"Catalog tool error: {' '.join(texts).strip() or 'unknown'}")

    content = result.get("content")
    if isinstance(content, list):
        for item in content:
            if isinstance(item, dict) and item.get("type") == "text" and item.get("text"):
                try:
                    return json.loads(item["text"])
                except json.JSONDecodeError as exc:
                    raise CatalogError("Catalog tool returned malformed JSON") from exc
        raise CatalogError("Catalog tool returned no text content")
    return result
