"""
API routes
"""
from .databases import router as databases_router
from .permissions import router as permissions_router
from .queries import router as queries_router
from .schedules import router as schedules_router

__all__ = [
    "databases_router",
    "permissions_router",
    "queries_router",
    "schedules_router",
]
