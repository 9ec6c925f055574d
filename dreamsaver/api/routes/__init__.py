"""Top level API router registration."""
from fastapi import APIRouter, FastAPI

from dreamsaver.api.routes import addresses, admin, auth, deliveries, goals, health, store


def register_routes(application: FastAPI) -> None:
    """Register all API routers with the FastAPI application."""
    api_router = APIRouter(prefix="/api")

    api_router.include_router(health.router, tags=["health"])
    api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
    api_router.include_router(goals.router, tags=["goals"])
    api_router.include_router(addresses.router, tags=["addresses"])
    api_router.include_router(deliveries.router, tags=["deliveries"])
    api_router.include_router(admin.router, tags=["admin"])
    api_router.include_router(store.router, tags=["store"])

    application.include_router(api_router)


__all__ = ["register_routes"]
