"""Shared test fixtures for the shopping assistant backend."""

import os

# Settings are read at import time; point them at test values first.
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("GOOGLE_API_KEY", "test-key")
os.environ.setdefault("SESSION_SECRET", "test-secret")
os.environ.setdefault("STOREFRONT_MCP_ENDPOINT", "https://shop.test/api/mcp")

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from fakes import FakeExecutor, ScriptedChatModel, make_product
from shopassist.agent.orchestrator import ShoppingAssistant
from shopassist.config import Settings
from shopassist.dependencies import get_assistant, get_storage_manager
from shopassist.main import app
from shopassist.storage.manager import StorageManager


# ----------------------------------------------------------------------
# Fixtures
# ----------------------------------------------------------------------


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        storage_backend="memory",
        google_api_key="test-key",
        session_secret="test-secret",
        storefront_mcp_endpoint="https://shop.test/api/mcp",
    )


@pytest_asyncio.fixture
async def storage(test_settings: Settings) -> AsyncGenerator[StorageManager, None]:
    """Memory-backed storage manager."""
    manager = StorageManager(test_settings)
    await manager.initialize()
    yield manager
    await manager.close()


@pytest.fixture
def chat_model() -> ScriptedChatModel:
    return ScriptedChatModel()


@pytest.fixture
def executor() -> FakeExecutor:
    return FakeExecutor([make_product(1), make_product(2)])


@pytest.fixture
def assistant(
    storage: StorageManager, chat_model: ScriptedChatModel, executor: FakeExecutor
) -> ShoppingAssistant:
    return ShoppingAssistant(
        conversations=storage.conversations,
        executor=executor,  # type: ignore[arg-type]
        llm=chat_model,  # type: ignore[arg-type]
    )


@pytest_asyncio.fixture
async def client(
    storage: StorageManager, assistant: ShoppingAssistant
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for testing FastAPI endpoints."""
    app.dependency_overrides[get_storage_manager] = lambda: storage
    app.dependency_overrides[get_assistant] = lambda: assistant
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
