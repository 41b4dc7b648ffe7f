"""Version 1 API endpoints."""

from .endpoints import (
    product_votes_router,
    system_router,
)

__all__ = [
    "product_votes_router",
    "system_router",
]
