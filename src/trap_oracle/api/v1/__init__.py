"""Version 1 API endpoints."""

from .endpoints import admin_router, submissions_router, system_router

__all__ = [
    "admin_router",
    "submissions_router",
    "system_router",
]
