"""Dependency injection providers for FastAPI."""

from shopassist.agent.orchestrator import ShoppingAssistant
from shopassist.agent.tools import CatalogSearchExecutor
from shopassist.catalog.client import StorefrontCatalogClient
from shopassist.config import settings
from shopassist.storage.manager import StorageManager

# Global singleton instances (safe for a single event loop)
_storage_manager: StorageManager | None = None
_catalog_client: StorefrontCatalogClient | None = None
_assistant: ShoppingAssistant | None = None


def get_storage_manager() -> StorageManager:
    """Return singleton StorageManager instance."""
    global _storage_manager
    if _storage_manager is None:
        _storage_manager = StorageManager()
    return _storage_manager


def get_catalog_client() -> StorefrontCatalogClient:
    """Return singleton StorefrontCatalogClient instance."""
    global _catalog_client
    if _catalog_client is None:
        _catalog_client = StorefrontCatalogClient(
            endpoint=settings.storefront_mcp_endpoint,
            password=settings.shopify_storefront_password,
            timeout=settings.catalog_timeout_seconds,
        )
    return _catalog_client


def get_assistant() -> ShoppingAssistant:
    """Return singleton ShoppingAssistant bound to the shared stores."""
    global _assistant
    if _assistant is None:
        _assistant = ShoppingAssistant(
            conversations=get_storage_manager().conversations,
            executor=CatalogSearchExecutor(get_catalog_client()),
        )
    return _assistant
