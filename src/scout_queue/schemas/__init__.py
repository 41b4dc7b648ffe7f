# src/scout_queue/schemas/__init__.py
"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .common import CamelModel, ErrorResponse
from .product_vote import (
    ContributionCreate,
    ContributionResponse,
    InvestigationsResponse,
    LeaderboardResponse,
    QueueResponse,
    StatusResponse,
    TrendingResponse,
    VoteCreate,
    VoteResponse,
)

__all__ = [
    "CamelModel", "ErrorResponse",
    "ContributionCreate", "ContributionResponse",
    "InvestigationsResponse",
    "LeaderboardResponse",
    "QueueResponse",
    "StatusResponse",
    "TrendingResponse",
    "VoteCreate", "VoteResponse",
]
