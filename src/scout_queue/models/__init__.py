# src/scout_queue/models/__init__.py
"""SQLAlchemy models for the Scout Queue application."""

from .product_vote import (
    ACTIVE_STATUSES,
    IN_LINE_STATUSES,
    PhotoContribution,
    ProductVote,
    ProductVoter,
    VoteStatus,
)

__all__ = [
    "ACTIVE_STATUSES",
    "IN_LINE_STATUSES",
    "PhotoContribution",
    "ProductVote",
    "ProductVoter",
    "VoteStatus",
]
