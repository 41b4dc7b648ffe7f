# src/scout_queue/models/product_vote.py
"""Models for the per-barcode testing-demand ledger."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from scout_queue.db.session import Base
from scout_queue.db.time import utcnow


class VoteStatus(str, Enum):
    """Lifecycle of a testing request. Transitions are driven externally."""

    VOTING = "voting"
    QUEUED = "queued"
    FUNDED = "funded"
    TESTING = "testing"
    COMPLETED = "completed"


# Records still competing for funding appear on the leaderboard and queue.
ACTIVE_STATUSES: tuple[str, ...] = (VoteStatus.VOTING.value, VoteStatus.FUNDED.value)

# Records that still hold a place in the overall testing line.
IN_LINE_STATUSES: tuple[str, ...] = (
    VoteStatus.VOTING.value,
    VoteStatus.FUNDED.value,
    VoteStatus.QUEUED.value,
    VoteStatus.TESTING.value,
)

URGENCY_NORMAL = "normal"
URGENCY_TRENDING = "trending"
URGENCY_URGENT = "urgent"


class ProductVote(Base):
    """Accumulated demand signal for one product barcode.

    ``total_weighted_votes`` is an accumulator: it only ever moves by the
    weight of an accepted event or a bounty bonus and is never re-derived
    from the other counters. ``version_id`` is bumped on every write so
    concurrent read-modify-write cycles on the same barcode fail fast with
    ``StaleDataError`` instead of losing an increment.
    """

    __tablename__ = "product_vote"
    __table_args__ = (
        CheckConstraint("total_votes >= unique_voters", name="ck_product_vote_voters"),
        Index("ix_product_vote_status_score", "status", "total_weighted_votes"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    barcode: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)

    # Denormalized product metadata; filled in by whoever supplies it first.
    product_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    brand: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    total_votes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_weighted_votes: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0, index=True
    )
    search_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    scan_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    member_scan_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    unique_voters: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # First identified voter; excluded from the photo bounty on this barcode.
    original_voter: Mapped[str | None] = mapped_column(String(255), nullable=True)

    funding_threshold: Mapped[int] = mapped_column(Integer, nullable=False)
    threshold_reached_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=VoteStatus.VOTING.value, index=True
    )

    # Epoch milliseconds of scan-class events inside the velocity window.
    scan_timestamps: Mapped[list[int]] = mapped_column(JSON, nullable=False, default=list)
    # Write-time caches; readers recompute from scan_timestamps.
    scans_last_24h: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    velocity_score: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, index=True)
    urgency_flag: Mapped[str] = mapped_column(
        String(16), nullable=False, default=URGENCY_NORMAL
    )
    last_scan_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )

    total_contributors: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    voters: Mapped[list[ProductVoter]] = relationship(
        "ProductVoter",
        back_populates="product_vote",
        cascade="all, delete-orphan",
        order_by="ProductVoter.voter_number",
    )
    contributions: Mapped[list[PhotoContribution]] = relationship(
        "PhotoContribution",
        back_populates="product_vote",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return (
            f"<ProductVote(barcode={self.barcode}, votes={self.total_votes}, "
            f"weighted={self.total_weighted_votes})>"
        )


class ProductVoter(Base):
    """One identity's participation in a barcode's vote record.

    The composite primary key makes an identity count toward the unique
    voter set at most once per barcode.
    """

    __tablename__ = "product_voter"
    __table_args__ = (Index("ix_product_voter_identity", "identity"),)

    product_vote_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("product_vote.id", ondelete="CASCADE"),
        primary_key=True,
    )
    # Opaque token: device fingerprint hash or authenticated user id.
    identity: Mapped[str] = mapped_column(String(255), primary_key=True)

    # 1-based order in which this identity joined the barcode's voters.
    voter_number: Mapped[int] = mapped_column(Integer, nullable=False)
    vote_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    weight: Mapped[int] = mapped_column(Integer, nullable=False)
    first_vote_type: Mapped[str] = mapped_column(String(16), nullable=False)
    notify_on_complete: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    first_voted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    last_voted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    product_vote: Mapped[ProductVote] = relationship("ProductVote", back_populates="voters")


class PhotoContribution(Base):
    """Photo evidence that earned an identity the contribution bounty."""

    __tablename__ = "photo_contribution"

    product_vote_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("product_vote.id", ondelete="CASCADE"),
        primary_key=True,
    )
    identity: Mapped[str] = mapped_column(String(255), primary_key=True)
    evidence_reference_id: Mapped[str] = mapped_column(String(255), nullable=False)
    bonus_weight: Mapped[int] = mapped_column(Integer, nullable=False)
    contributed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    product_vote: Mapped[ProductVote] = relationship(
        "ProductVote", back_populates="contributions"
    )
