# src/scout_queue/services/voting.py
"""Signal ingestion: turn vote events into weighted demand on the ledger.

Weighted voting ("Proof of Possession"):

- search = 1x (curiosity signal)
- scan = 5x (the voter is holding the product)
- member_scan = 20x (an authenticated member is holding the product)

Each identity adds weight to a barcode once; repeat events from the same
identity still count toward ``total_votes``. Events without an identity
cannot be deduplicated and always add their weight.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Final

from sqlalchemy.orm import Session

from scout_queue.core.settings import settings
from scout_queue.db.time import to_epoch_ms, utcnow
from scout_queue.models.product_vote import ProductVote, ProductVoter, VoteStatus
from scout_queue.repositories.product_vote_repo import ProductVoteRepository
from scout_queue.services.errors import (
    REASON_BARCODE_REQUIRED,
    REASON_INVALID_VOTE_TYPE,
    ValidationError,
)
from scout_queue.services.retry import run_with_conflict_retry
from scout_queue.services.velocity import RECENT_SCAN_MULTIPLIER, record_scan, urgency_for

logger = logging.getLogger(__name__)

VOTE_WEIGHTS: Final[dict[str, int]] = {
    "search": 1,
    "scan": 5,
    "member_scan": 20,
}
SCAN_CLASS_VOTES: Final[frozenset[str]] = frozenset({"scan", "member_scan"})

_COUNTER_FOR_TYPE: Final[dict[str, str]] = {
    "search": "search_count",
    "scan": "scan_count",
    "member_scan": "member_scan_count",
}


@dataclass(frozen=True)
class ProductInfo:
    """Optional product metadata supplied with a vote."""

    name: str | None = None
    brand: str | None = None
    image_url: str | None = None


@dataclass(frozen=True)
class VoteOutcome:
    """Result of an accepted vote event."""

    barcode: str
    total_votes: int
    total_weighted_votes: int
    unique_voters: int
    your_vote_rank: int
    voter_number: int | None
    weight_applied: int
    is_new_voter: bool
    funding_progress: int
    funding_threshold: int
    scans_last_24h: int
    urgency_flag: str
    product_info: ProductInfo
    message: str


def funding_progress(total_weighted_votes: int, threshold: int) -> int:
    """Return weighted score as a whole percentage of the threshold, capped at 100."""
    if threshold <= 0:
        return 100
    return min(100, math.floor(total_weighted_votes * 100 / threshold + 0.5))


def normalize_barcode(barcode: str | None) -> str:
    """Return a stripped barcode or raise if it is missing."""
    cleaned = (barcode or "").strip()
    if not cleaned:
        logger.debug("Rejected event without a barcode")
        raise ValidationError("Barcode is required", REASON_BARCODE_REQUIRED)
    return cleaned


def normalize_identity(identity: str | None) -> str | None:
    """Return a stripped identity token, or None when absent or blank."""
    cleaned = (identity or "").strip()
    return cleaned or None


def product_info_of(record: ProductVote) -> ProductInfo:
    """Return the denormalized product metadata stored on a record."""
    return ProductInfo(name=record.product_name, brand=record.brand, image_url=record.image_url)


def merge_product_info(record: ProductVote, info: ProductInfo | None) -> None:
    """Fill empty metadata fields from ``info``; populated fields are kept."""
    if info is None:
        return
    for attr, value in (
        ("product_name", info.name),
        ("brand", info.brand),
        ("image_url", info.image_url),
    ):
        cleaned = (value or "").strip()
        if cleaned and not getattr(record, attr):
            setattr(record, attr, cleaned)


def mark_threshold(record: ProductVote, moment: datetime) -> None:
    """Stamp the first time a record's score reaches its funding threshold."""
    if record.threshold_reached_at is None and record.total_weighted_votes >= record.funding_threshold:
        record.threshold_reached_at = moment
        logger.info(
            "Barcode %s reached its funding threshold (%d/%d)",
            record.barcode,
            record.total_weighted_votes,
            record.funding_threshold,
        )


def refresh_velocity_score(record: ProductVote) -> None:
    """Recompute the cached ordering score from cached scans and the accumulator."""
    record.velocity_score = (
        record.scans_last_24h * RECENT_SCAN_MULTIPLIER + record.total_weighted_votes
    )


def _vote_message(vote_type: str, progress: int, voter_rank: int, is_new_voter: bool) -> str:
    if progress >= 100:
        return "This product has reached its funding goal! Testing will begin soon."
    if progress >= 75:
        return f"Almost there! This product is {progress}% funded for testing."
    if not is_new_voter:
        return "Welcome back! Your earlier vote for this product is already counted."
    if vote_type == "member_scan":
        return f"Your premium vote counts 20x! You're voter #{voter_rank}."
    if vote_type == "scan":
        return f"Vote registered! Your scan counts 5x. You're voter #{voter_rank}."
    return f"Vote registered! You're voter #{voter_rank} for this product."


class VotingService:
    """Validate vote events and apply them to the per-barcode ledger."""

    def __init__(
        self,
        db: Session,
        *,
        max_retries: int | None = None,
        retry_base_delay: float | None = None,
    ) -> None:
        self.db = db
        self.repo = ProductVoteRepository(db)
        self.max_retries = settings.vote_max_retries if max_retries is None else max_retries
        self.retry_base_delay = (
            settings.vote_retry_base_delay if retry_base_delay is None else retry_base_delay
        )

    def cast_vote(
        self,
        barcode: str | None,
        vote_type: str | None = "scan",
        identity: str | None = None,
        product_info: ProductInfo | None = None,
        *,
        notify_on_complete: bool = False,
        now: datetime | None = None,
    ) -> VoteOutcome:
        """Record a vote event and return the updated standing.

        Args:
            barcode: Product barcode (UPC/EAN). Required.
            vote_type: One of ``search``, ``scan`` or ``member_scan``.
            identity: Optional fingerprint hash or user id used for dedup.
            product_info: Optional metadata merged into the record.
            notify_on_complete: Subscribe the identity to results for this barcode.
            now: Event time; defaults to the current UTC time.

        Raises:
            ValidationError: If the barcode is missing or the vote type unknown.
            ConcurrencyConflict: If the record stayed contended past the retry budget.
            PersistenceFailure: If the database is unavailable.
        """
        cleaned_barcode = normalize_barcode(barcode)
        if vote_type not in VOTE_WEIGHTS:
            logger.debug("Rejected vote with type %r", vote_type)
            raise ValidationError("Invalid vote type", REASON_INVALID_VOTE_TYPE)
        voter_identity = normalize_identity(identity)
        moment = now or utcnow()

        outcome = run_with_conflict_retry(
            self.db,
            lambda: self._apply_vote(
                cleaned_barcode,
                vote_type,
                voter_identity,
                product_info,
                notify_on_complete,
                moment,
            ),
            max_retries=self.max_retries,
            base_delay=self.retry_base_delay,
            label=f"vote on {cleaned_barcode}",
        )
        logger.debug(
            "Vote %s on %s applied weight %d (total %d)",
            vote_type,
            cleaned_barcode,
            outcome.weight_applied,
            outcome.total_weighted_votes,
        )
        return outcome

    def _get_or_create(self, barcode: str, moment: datetime) -> ProductVote:
        record = self.repo.get_by_barcode(barcode)
        if record is not None:
            return record
        # A concurrent first vote makes this flush raise IntegrityError,
        # which sends the whole unit back through the retry loop.
        return self.repo.add(
            ProductVote(
                barcode=barcode,
                total_votes=0,
                total_weighted_votes=0,
                search_count=0,
                scan_count=0,
                member_scan_count=0,
                unique_voters=0,
                funding_threshold=settings.funding_threshold,
                status=VoteStatus.VOTING.value,
                scan_timestamps=[],
                scans_last_24h=0,
                velocity_score=0,
                urgency_flag=urgency_for(0),
                total_contributors=0,
                created_at=moment,
                updated_at=moment,
            )
        )

    def _apply_vote(
        self,
        barcode: str,
        vote_type: str,
        identity: str | None,
        product_info: ProductInfo | None,
        notify_on_complete: bool,
        moment: datetime,
    ) -> VoteOutcome:
        weight = VOTE_WEIGHTS[vote_type]
        record = self._get_or_create(barcode, moment)

        voter = self.repo.get_voter(record, identity) if identity is not None else None
        is_new_voter = voter is None
        weight_applied = weight if is_new_voter else 0

        record.total_votes += 1
        record.total_weighted_votes += weight_applied
        counter = _COUNTER_FOR_TYPE[vote_type]
        setattr(record, counter, getattr(record, counter) + 1)

        if identity is None:
            your_vote_rank = 1
            voter_number = None
        else:
            if voter is None:
                record.unique_voters += 1
                voter = ProductVoter(
                    product_vote_id=record.id,
                    identity=identity,
                    voter_number=record.unique_voters,
                    vote_count=1,
                    weight=weight,
                    first_vote_type=vote_type,
                    notify_on_complete=notify_on_complete,
                    first_voted_at=moment,
                    last_voted_at=moment,
                )
                self.db.add(voter)
                if record.original_voter is None:
                    record.original_voter = identity
            else:
                voter.vote_count += 1
                voter.last_voted_at = moment
                if notify_on_complete:
                    voter.notify_on_complete = True
            your_vote_rank = voter.vote_count
            voter_number = voter.voter_number

        if vote_type in SCAN_CLASS_VOTES:
            record.scan_timestamps = record_scan(record.scan_timestamps, to_epoch_ms(moment))
            record.scans_last_24h = len(record.scan_timestamps)
            record.urgency_flag = urgency_for(record.scans_last_24h)
            record.last_scan_at = moment

        refresh_velocity_score(record)
        merge_product_info(record, product_info)
        mark_threshold(record, moment)
        record.updated_at = moment
        self.db.flush()

        progress = funding_progress(record.total_weighted_votes, record.funding_threshold)
        return VoteOutcome(
            barcode=record.barcode,
            total_votes=record.total_votes,
            total_weighted_votes=record.total_weighted_votes,
            unique_voters=record.unique_voters,
            your_vote_rank=your_vote_rank,
            voter_number=voter_number,
            weight_applied=weight_applied,
            is_new_voter=is_new_voter,
            funding_progress=progress,
            funding_threshold=record.funding_threshold,
            scans_last_24h=record.scans_last_24h,
            urgency_flag=record.urgency_flag,
            product_info=product_info_of(record),
            message=_vote_message(
                vote_type,
                progress,
                voter_number if voter_number is not None else record.total_votes,
                is_new_voter,
            ),
        )
