"""
API Routers
===========

FastAPI routers for different API endpoints.
"""

from .features import router as features_router
from .projects import router as projects_router
from .system import router as system_router

__all__ = [
    "features_router",
    "projects_router",
    "system_router",
]
