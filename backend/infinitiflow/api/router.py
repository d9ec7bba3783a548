from fastapi import APIRouter

from infinitiflow.core.config import settings
from infinitiflow.api.endpoints import auth, users, subscriptions, content

api_router = APIRouter()


@api_router.get("", tags=["Root"])
async def api_index():
    """API index"""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "description": "AI Content Generator Backend API",
        "endpoints": {
            "health": "/health",
            "auth": "/api/auth",
            "users": "/api/users",
            "subscriptions": "/api/subscriptions",
            "content": "/api/content",
        },
    }


api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(users.router, prefix="/users", tags=["Users"])
api_router.include_router(subscriptions.router, prefix="/subscriptions", tags=["Subscriptions"])
api_router.include_router(content.router, prefix="/content", tags=["Content"])
