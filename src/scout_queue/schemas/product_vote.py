# src/scout_queue/schemas/product_vote.py
"""Request and response schemas for the product vote endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from .common import CamelModel


class ProductInfoIn(CamelModel):
    """Optional product metadata a client may know about the barcode."""

    name: str | None = None
    brand: str | None = None
    image_url: str | None = None


class VoteCreate(CamelModel):
    """Schema for casting a vote.

    ``barcode`` and ``vote_type`` are validated by the service so that
    missing or unknown values produce the documented 400 responses.
    """

    barcode: str | None = Field(None, description="Product barcode (UPC/EAN)")
    vote_type: str | None = Field(
        "scan",
        description="search (1x), scan (5x) or member_scan (20x)",
    )
    fingerprint: str | None = Field(None, description="Device fingerprint hash")
    product_info: ProductInfoIn | None = None
    notify_on_complete: bool = False


class ContributionCreate(CamelModel):
    """Schema for submitting photo evidence toward the bounty."""

    barcode: str | None = None
    fingerprint: str | None = Field(None, description="Device fingerprint hash")
    evidence_reference_id: str | None = Field(
        None, description="Identifier of the uploaded photo submission"
    )


class ProductInfoOut(CamelModel):
    barcode: str
    name: str | None = None
    brand: str | None = None
    image_url: str | None = None


class VoteResponse(CamelModel):
    """Standing of a barcode right after a vote was registered."""

    success: bool = True
    vote_registered: bool = True
    total_votes: int
    total_weighted_votes: int
    unique_voters: int
    your_vote_rank: int
    voter_number: int | None
    weight_applied: int
    is_new_voter: bool
    funding_progress: int
    funding_threshold: int
    scans_last_24h: int = Field(alias="scansLast24h")
    urgency_flag: str
    product_info: ProductInfoOut
    message: str


class RecordOut(CamelModel):
    """Public projection of a vote record."""

    barcode: str
    product_name: str
    brand: str | None
    image_url: str | None
    total_votes: int
    total_weighted_votes: int
    unique_voters: int
    total_contributors: int
    funding_progress: int
    funding_threshold: int
    status: str
    scans_last_24h: int = Field(alias="scansLast24h")
    velocity_score: int
    urgency_flag: str
    created_at: datetime
    updated_at: datetime


class StatusResponse(CamelModel):
    barcode: str
    exists: bool
    total_votes: int
    total_weighted_votes: int
    funding_progress: int
    funding_threshold: int
    status: str | None = None
    rank: int | None = None
    unique_voters: int | None = None
    product_name: str | None = None
    brand: str | None = None
    image_url: str | None = None
    scans_last_24h: int | None = Field(None, alias="scansLast24h")
    urgency_flag: str | None = None


class LeaderboardEntryOut(RecordOut):
    rank: int


class LeaderboardResponse(CamelModel):
    leaderboard: list[LeaderboardEntryOut]
    total: int


class QueueResponse(CamelModel):
    products: list[RecordOut]
    total: int
    page: int
    total_pages: int
    filter: str


class TrendingResponse(CamelModel):
    products: list[RecordOut]


class ContributionResponse(CamelModel):
    success: bool
    bounty_awarded: bool
    bonus_weight: int
    total_weighted_votes: int
    funding_progress: int
    reason: str
    message: str


class InvestigationOut(CamelModel):
    barcode: str
    product_name: str
    brand: str | None
    image_url: str | None
    status: str
    record_status: str
    queue_position: int | None
    funding_progress: int
    total_weighted_votes: int
    your_vote_rank: int
    your_scout_number: int
    your_weight: int
    total_scouts: int
    is_first_scout: bool
    did_contribute_photos: bool
    is_trending: bool
    velocity_change_24h: int = Field(alias="velocityChange24h")
    created_at: datetime
    updated_at: datetime


class InvestigationsResponse(CamelModel):
    investigations: list[InvestigationOut]
    total_investigations: int
    results_ready: int
