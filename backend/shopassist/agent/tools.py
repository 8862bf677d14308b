"""Catalog search tool: model-facing definition and single-attempt executor."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from shopassist.catalog.client import CatalogError, StorefrontCatalogClient
from shopassist.catalog.mapping import map_provider_products
from shopassist.models.products import ProductResult, ToolError

logger = logging.getLogger(__name__)

SEARCH_TOOL_NAME = "search_shop_catalog"
DEFAULT_RESULT_LIMIT = 5
MAX_RESULT_LIMIT = 10

SEARCH_CATALOG_TOOL: dict[str, Any] = {
    "type": "function",
    "function": {
        "name": SEARCH_TOOL_NAME,
        "description": (
            "Search the store's product catalog. Use natural language queries "
            "focused on product type, color, style, or other attributes."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": (
                        "Natural language search query (e.g., 'blue linen shirt', "
                        "'men's casual pants')"
                    ),
                },
                "first": {
                    "type": "number",
                    "description": "Number of results to return (default: 5, max: 10)",
                },
            },
            "required": ["query"],
        },
    },
}


def clamp_result_limit(value: Any) -> int:
    """Coerce a model-supplied limit into ``1..MAX_RESULT_LIMIT``."""
    try:
        limit = int(value)
    except (TypeError, ValueError):
        return DEFAULT_RESULT_LIMIT
    return max(1, min(limit, MAX_RESULT_LIMIT))


class CatalogSearchExecutor:
    """Runs ``search_shop_catalog`` against the catalog provider.

    One outbound call per search, no retries. Every failure comes back as
    a ``ToolError`` value so the caller can always continue the turn.
    """

    def __init__(self, client: StorefrontCatalogClient) -> None:
        self._client = client

    async def search(
        self, query: str, result_limit: int = DEFAULT_RESULT_LIMIT
    ) -> list[ProductResult] | ToolError:
        query = (query or "").strip() if isinstance(query, str) else ""
        if not query:
            return ToolError(message="Search query must not be empty")
        limit = clamp_result_limit(result_limit)

        try:
            raw_products = await self._client.search_catalog(
                query,
                context=f"User is searching for: {query}",
                limit=limit,
            )
        except CatalogError as exc:
            logger.warning("Catalog search failed for %r: %s", query, exc)
            return ToolError(message=str(exc) or "Failed to search catalog")

        try:
            products = map_provider_products(raw_products)[:limit]
        except (ValueError, TypeError, AttributeError, ValidationError) as exc:
            logger.warning("Malformed catalog response for %r: %s", query, exc)
            return ToolError(message="Malformed catalog response")

        logger.info("Catalog search %r returned %d products", query, len(products))
        return products

    async def run(self, arguments: dict[str, Any]) -> list[ProductResult] | ToolError:
        """Execute with the argument object the model produced."""
        return await self.search(
            arguments.get("query", ""),
            arguments.get("first", DEFAULT_RESULT_LIMIT),
        )
