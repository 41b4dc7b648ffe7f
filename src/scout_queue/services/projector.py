# src/scout_queue/services/projector.py
"""Read-side views over the vote ledger.

Nothing here mutates a record. Velocity figures are recomputed from raw scan
timestamps at read time because the counters stored on a record are only
refreshed when that record is scanned again.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import ColumnElement
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from scout_queue.core.settings import settings
from scout_queue.db.time import to_epoch_ms, utcnow
from scout_queue.models.product_vote import (
    ACTIVE_STATUSES,
    IN_LINE_STATUSES,
    URGENCY_NORMAL,
    ProductVote,
    ProductVoter,
    VoteStatus,
)
from scout_queue.repositories.product_vote_repo import ProductVoteRepository
from scout_queue.services.errors import (
    REASON_IDENTITY_REQUIRED,
    PersistenceFailure,
    ValidationError,
)
from scout_queue.services.velocity import VelocitySnapshot, snapshot
from scout_queue.services.voting import funding_progress, normalize_barcode, normalize_identity

logger = logging.getLogger(__name__)

UNKNOWN_PRODUCT = "Unknown Product"

FILTER_MOST_VOTED = "most_voted"
FILTER_NEWEST = "newest"
FILTER_ALMOST_FUNDED = "almost_funded"
QUEUE_FILTERS = (FILTER_MOST_VOTED, FILTER_NEWEST, FILTER_ALMOST_FUNDED)

LEADERBOARD_DEFAULT_LIMIT = 10


def clamp(value: int | None, default: int, upper: int) -> int:
    """Clamp a requested page size into ``[1, upper]``."""
    if value is None:
        value = default
    return max(1, min(int(value), upper))


@dataclass(frozen=True)
class RecordView:
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
    scans_last_24h: int
    velocity_score: int
    urgency_flag: str
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class LeaderboardEntry:
    rank: int
    record: RecordView


@dataclass(frozen=True)
class Leaderboard:
    entries: list[LeaderboardEntry]
    total: int


@dataclass(frozen=True)
class QueuePage:
    products: list[RecordView]
    total: int
    page: int
    total_pages: int
    filter: str


@dataclass(frozen=True)
class StatusView:
    """Status of a barcode; ``exists`` is False when nobody voted on it yet."""

    barcode: str
    exists: bool
    total_votes: int
    total_weighted_votes: int
    funding_progress: int
    funding_threshold: int
    rank: int | None = None
    record: RecordView | None = None

    @property
    def status(self) -> str | None:
        return self.record.status if self.record else None


@dataclass(frozen=True)
class Investigation:
    """One barcode an identity voted on, annotated with that identity's part in it."""

    record: RecordView
    progress_status: str
    queue_position: int | None
    your_vote_rank: int
    your_scout_number: int
    your_weight: int
    is_first_scout: bool
    did_contribute_photos: bool
    is_trending: bool


@dataclass(frozen=True)
class InvestigationList:
    investigations: list[Investigation]
    total_investigations: int
    results_ready: int


def progress_status_for(status: str) -> str:
    """Collapse the record lifecycle into what a voter cares about."""
    if status == VoteStatus.COMPLETED.value:
        return "complete"
    if status in (VoteStatus.QUEUED.value, VoteStatus.TESTING.value):
        return "testing"
    return "waiting"


class ProjectorService:
    """Leaderboard, queue, status and per-identity views of the ledger."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = ProductVoteRepository(db)

    def live_velocity(self, record: ProductVote, now: datetime | None = None) -> VelocitySnapshot:
        """Recompute a record's velocity from its raw scan timestamps."""
        now_ms = to_epoch_ms(now or utcnow())
        return snapshot(record.scan_timestamps, record.total_weighted_votes, now_ms)

    def view(self, record: ProductVote, now: datetime | None = None) -> RecordView:
        """Project a record for API output using live velocity."""
        velocity = self.live_velocity(record, now)
        return RecordView(
            barcode=record.barcode,
            product_name=record.product_name or UNKNOWN_PRODUCT,
            brand=record.brand,
            image_url=record.image_url,
            total_votes=record.total_votes,
            total_weighted_votes=record.total_weighted_votes,
            unique_voters=record.unique_voters,
            total_contributors=record.total_contributors,
            funding_progress=funding_progress(
                record.total_weighted_votes, record.funding_threshold
            ),
            funding_threshold=record.funding_threshold,
            status=record.status,
            scans_last_24h=velocity.scans_last_24h,
            velocity_score=velocity.velocity_score,
            urgency_flag=velocity.urgency_flag,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )

    def leaderboard(self, limit: int | None = None, *, now: datetime | None = None) -> Leaderboard:
        """Return the most-wanted active records by weighted score.

        The page size is capped at ``LEADERBOARD_MAX_LIMIT`` whatever the caller asks for.
        """
        size = clamp(limit, LEADERBOARD_DEFAULT_LIMIT, settings.leaderboard_max_limit)
        active = ProductVote.status.in_(ACTIVE_STATUSES)
        try:
            records = self.repo.list_where(
                active,
                order_by=(ProductVote.total_weighted_votes.desc(), ProductVote.id.asc()),
                limit=size,
            )
            total = self.repo.count(active)
        except SQLAlchemyError as exc:
            raise self._read_failure("leaderboard") from exc
        return Leaderboard(
            entries=[
                LeaderboardEntry(rank=index + 1, record=self.view(record, now))
                for index, record in enumerate(records)
            ],
            total=total,
        )

    def queue(
        self,
        page: int | None = 1,
        limit: int | None = None,
        filter_name: str | None = None,
        *,
        now: datetime | None = None,
    ) -> QueuePage:
        """Return one page of the funding queue.

        ``almost_funded`` lists only records still below their threshold,
        closest first. Unknown filters fall back to ``most_voted``.
        """
        size = clamp(limit, settings.queue_default_limit, settings.leaderboard_max_limit)
        page_number = max(1, int(page or 1))
        chosen = filter_name if filter_name in QUEUE_FILTERS else FILTER_MOST_VOTED

        criteria: list[ColumnElement[bool]] = [ProductVote.status.in_(ACTIVE_STATUSES)]
        order_by: tuple[ColumnElement[object], ...]
        if chosen == FILTER_NEWEST:
            order_by = (ProductVote.created_at.desc(), ProductVote.id.desc())
        elif chosen == FILTER_ALMOST_FUNDED:
            criteria.append(ProductVote.total_weighted_votes < ProductVote.funding_threshold)
            order_by = (
                (ProductVote.funding_threshold - ProductVote.total_weighted_votes).asc(),
                ProductVote.id.asc(),
            )
        else:
            order_by = (ProductVote.total_weighted_votes.desc(), ProductVote.id.asc())

        try:
            total = self.repo.count(*criteria)
            records = self.repo.list_where(
                *criteria,
                order_by=order_by,
                limit=size,
                offset=(page_number - 1) * size,
            )
        except SQLAlchemyError as exc:
            raise self._read_failure("queue") from exc
        return QueuePage(
            products=[self.view(record, now) for record in records],
            total=total,
            page=page_number,
            total_pages=math.ceil(total / size),
            filter=chosen,
        )

    def status(self, barcode: str | None, *, now: datetime | None = None) -> StatusView:
        """Return a barcode's standing, or an explicit does-not-exist view."""
        cleaned = normalize_barcode(barcode)
        try:
            record = self.repo.get_by_barcode(cleaned)
            if record is None:
                return StatusView(
                    barcode=cleaned,
                    exists=False,
                    total_votes=0,
                    total_weighted_votes=0,
                    funding_progress=0,
                    funding_threshold=settings.funding_threshold,
                )
            rank = 1 + self.repo.count(
                ProductVote.status.in_(ACTIVE_STATUSES),
                ProductVote.total_weighted_votes > record.total_weighted_votes,
            )
        except SQLAlchemyError as exc:
            raise self._read_failure("status") from exc
        view = self.view(record, now)
        return StatusView(
            barcode=record.barcode,
            exists=True,
            total_votes=record.total_votes,
            total_weighted_votes=record.total_weighted_votes,
            funding_progress=view.funding_progress,
            funding_threshold=record.funding_threshold,
            rank=rank,
            record=view,
        )

    def trending(self, limit: int | None = None, *, now: datetime | None = None) -> list[RecordView]:
        """Return records scanned inside the velocity window, hottest first."""
        size = clamp(limit, LEADERBOARD_DEFAULT_LIMIT, settings.leaderboard_max_limit)
        moment = now or utcnow()
        since = moment - timedelta(hours=settings.velocity_window_hours)
        try:
            records = self.repo.list_scanned_since(since, settings.queue_position_scan_limit)
        except SQLAlchemyError as exc:
            raise self._read_failure("trending") from exc
        views = [self.view(record, moment) for record in records]
        views = [view for view in views if view.scans_last_24h > 0]
        views.sort(key=lambda view: (-view.velocity_score, view.barcode))
        return views[:size]

    def my_investigations(
        self, identity: str | None, *, now: datetime | None = None
    ) -> InvestigationList:
        """Return every barcode the identity voted on, with its part in each.

        Raises:
            ValidationError: If no identity was supplied.
        """
        who = normalize_identity(identity)
        if who is None:
            logger.debug("Rejected investigations lookup without identity")
            raise ValidationError("Identity is required", REASON_IDENTITY_REQUIRED)

        moment = now or utcnow()
        try:
            rows = self.repo.list_for_identity(who, settings.investigations_max)
            if not rows:
                return InvestigationList(investigations=[], total_investigations=0, results_ready=0)
            contributed = self.repo.contributed_record_ids(who, [record.id for record, _ in rows])
            positions = self._queue_positions(moment)
        except SQLAlchemyError as exc:
            raise self._read_failure("investigations") from exc

        investigations = [
            self._investigation(record, voter, contributed, positions, moment)
            for record, voter in rows
        ]
        return InvestigationList(
            investigations=investigations,
            total_investigations=len(investigations),
            results_ready=sum(1 for item in investigations if item.progress_status == "complete"),
        )

    def _queue_positions(self, now: datetime) -> dict[str, int]:
        # Stored velocity_score is an upper bound on the live score.
        records = self.repo.list_where(
            ProductVote.status.in_(IN_LINE_STATUSES),
            order_by=(ProductVote.velocity_score.desc(), ProductVote.id.asc()),
            limit=settings.queue_position_scan_limit,
        )
        now_ms = to_epoch_ms(now)
        records.sort(
            key=lambda record: (
                -snapshot(
                    record.scan_timestamps, record.total_weighted_votes, now_ms
                ).velocity_score,
                record.id,
            )
        )
        return {record.barcode: index + 1 for index, record in enumerate(records)}

    def _investigation(
        self,
        record: ProductVote,
        voter: ProductVoter,
        contributed: set[int],
        positions: dict[str, int],
        now: datetime | None,
    ) -> Investigation:
        view = self.view(record, now)
        progress_status = progress_status_for(record.status)
        return Investigation(
            record=view,
            progress_status=progress_status,
            queue_position=positions.get(record.barcode) if progress_status != "complete" else None,
            your_vote_rank=voter.vote_count,
            your_scout_number=voter.voter_number,
            your_weight=voter.weight,
            is_first_scout=record.original_voter == voter.identity,
            did_contribute_photos=record.id in contributed,
            is_trending=view.urgency_flag != URGENCY_NORMAL,
        )

    @staticmethod
    def _read_failure(view_name: str) -> PersistenceFailure:
        logger.error("Failed to read %s from storage", view_name, exc_info=True)
        return PersistenceFailure()
