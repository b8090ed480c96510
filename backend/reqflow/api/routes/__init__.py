"""API Routes module"""
from fastapi import APIRouter

from .requests import router as requests_router
from .commands import router as commands_router
from .notifications import router as notifications_router

# Main API router
api_router = APIRouter()

api_router.include_router(requests_router, prefix="/requests", tags=["Requests"])
api_router.include_router(commands_router, prefix="/commands", tags=["Commands"])
api_router.include_router(notifications_router, prefix="/notifications", tags=["Notifications"])

__all__ = ["api_router"]
