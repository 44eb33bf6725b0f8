"""API endpoint modules for version 1."""

from .admin import router as admin_router
from .submissions import router as submissions_router
from .system import router as system_router

__all__ = [
    "admin_router",
    "submissions_router",
    "system_router",
]
