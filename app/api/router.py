"""API router configuration."""

from fastapi import APIRouter

from app.api.endpoints import account, auth, health

api_router = APIRouter()

# Include routers
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(account.router, tags=["Account"])
