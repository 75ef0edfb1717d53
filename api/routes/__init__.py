"""
API route composition.

Both modes expose POST /search, so only one mode's router is mounted per app.
"""

from fastapi import APIRouter

from config import ServiceMode

from .federation import router as federation_router
from .nested import router as nested_router


def build_router(mode: ServiceMode) -> APIRouter:
    """Return a router carrying the endpoints of ``mode``."""
    api_router = APIRouter()
    if mode == "nested":
        api_router.include_router(nested_router, tags=["nested"])
    else:
        api_router.include_router(federation_router, tags=["federation"])
    return api_router
