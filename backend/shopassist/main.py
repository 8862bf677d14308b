"""FastAPI application entry point with lifespan management."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from shopassist.api.router import api_router
from shopassist.config import settings
from shopassist.dependencies import get_catalog_client, get_storage_manager

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown lifecycle."""
    logger.info("Starting shopping assistant backend...")

    storage = get_storage_manager()
    await storage.initialize()
    logger.info("Storage manager initialized successfully")

    if not settings.google_api_key:
        logger.warning("GOOGLE_API_KEY is not set; chat turns will be rejected")
    if not settings.storefront_mcp_endpoint:
        logger.warning("STOREFRONT_MCP_ENDPOINT is not set; catalog searches will fail")

    yield

    # Cleanup
    await get_catalog_client().aclose()
    await storage.close()
    logger.info("Shopping assistant backend shut down cleanly")


app = FastAPI(
    title="Shopping Assistant API",
    description="Conversational shopping assistant with streamed, tool-calling chat",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        settings.frontend_url,
        "http://localhost:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Conversation-Id"],
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        {"error": exc.detail}, status_code=exc.status_code, headers=exc.headers
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    logger.info("Rejected invalid request to %s: %s", request.url.path, exc.errors())
    return JSONResponse({"error": "Invalid request body"}, status_code=400)


# Mount API routes
app.include_router(api_router, prefix="/api")

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
