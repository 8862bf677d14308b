"""Central API router that aggregates all route modules."""

from fastapi import APIRouter

from shopassist.api.chat import router as chat_router
from shopassist.api.conversations import router as conversations_router
from shopassist.api.health import router as health_router
from shopassist.api.images import router as images_router

api_router = APIRouter()

api_router.include_router(health_router, prefix="/health", tags=["health"])
api_router.include_router(chat_router, prefix="/chat", tags=["chat"])
api_router.include_router(conversations_router, prefix="/conversations", tags=["conversations"])
api_router.include_router(images_router, tags=["images"])
