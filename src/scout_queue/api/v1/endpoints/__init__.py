"""API endpoint modules for version 1."""

from .product_votes import router as product_votes_router
from .system import router as system_router

__all__ = [
    "product_votes_router",
    "system_router",
]
