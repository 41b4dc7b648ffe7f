# src/scout_queue/services/bounty.py
"""Photo-contribution bounty for barcodes already under investigation.

A distinct identity that supplies photo evidence for someone else's request
earns a one-time bonus on that barcode. The first voter of record cannot
claim it on their own request, and no identity can claim it twice on the same
barcode. Different identities each earn it independently.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Final

from sqlalchemy.orm import Session

from scout_queue.core.settings import settings
from scout_queue.db.time import utcnow
from scout_queue.models.product_vote import PhotoContribution, ProductVote
from scout_queue.repositories.product_vote_repo import ProductVoteRepository
from scout_queue.services.errors import (
    REASON_BARCODE_NOT_FOUND,
    REASON_MISSING_FIELDS,
    NotFoundError,
    ValidationError,
)
from scout_queue.services.retry import run_with_conflict_retry
from scout_queue.services.voting import (
    funding_progress,
    mark_threshold,
    normalize_identity,
    refresh_velocity_score,
)

logger = logging.getLogger(__name__)

BOUNTY_WEIGHT: Final[int] = 10

REASON_BOUNTY_AWARDED = "bounty_awarded"
REASON_ALREADY_CONTRIBUTED = "already_contributed"
REASON_ORIGINAL_VOTER = "original_voter"


@dataclass(frozen=True)
class ContributionOutcome:
    """Result of a photo contribution attempt."""

    barcode: str
    bounty_awarded: bool
    bonus_weight: int
    total_weighted_votes: int
    funding_progress: int
    reason: str
    message: str


class BountyService:
    """Award the photo-contribution bounty on existing vote records."""

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

    def contribute(
        self,
        barcode: str | None,
        identity: str | None,
        evidence_reference_id: str | None,
        *,
        now: datetime | None = None,
    ) -> ContributionOutcome:
        """Register photo evidence and award the bounty when eligible.

        Ineligible attempts return ``bounty_awarded=False`` without touching
        the record; ``reason`` tells an earlier claim apart from the
        original-voter exclusion.

        Raises:
            ValidationError: If any of the three inputs is missing.
            NotFoundError: If nobody has voted on the barcode yet.
        """
        cleaned_barcode = (barcode or "").strip()
        contributor = normalize_identity(identity)
        evidence = (evidence_reference_id or "").strip()
        if not cleaned_barcode or contributor is None or not evidence:
            logger.debug("Rejected contribution with missing fields")
            raise ValidationError(
                "barcode, identity, and evidenceReferenceId are required",
                REASON_MISSING_FIELDS,
            )
        moment = now or utcnow()

        return run_with_conflict_retry(
            self.db,
            lambda: self._apply_contribution(cleaned_barcode, contributor, evidence, moment),
            max_retries=self.max_retries,
            base_delay=self.retry_base_delay,
            label=f"contribution on {cleaned_barcode}",
        )

    def _apply_contribution(
        self,
        barcode: str,
        identity: str,
        evidence: str,
        moment: datetime,
    ) -> ContributionOutcome:
        record = self.repo.get_by_barcode(barcode)
        if record is None:
            raise NotFoundError(
                "No vote record found for this barcode. Vote first before contributing photos.",
                REASON_BARCODE_NOT_FOUND,
            )

        if self.repo.get_contribution(record, identity) is not None:
            return self._declined(
                record,
                REASON_ALREADY_CONTRIBUTED,
                "You have already contributed photos to this product.",
            )
        if record.original_voter == identity:
            return self._declined(
                record,
                REASON_ORIGINAL_VOTER,
                "Thanks for the photos! Since you're the original voter, no bounty bonus applies.",
            )

        self.db.add(
            PhotoContribution(
                product_vote_id=record.id,
                identity=identity,
                evidence_reference_id=evidence,
                bonus_weight=BOUNTY_WEIGHT,
                contributed_at=moment,
            )
        )
        record.total_weighted_votes += BOUNTY_WEIGHT
        record.total_contributors += 1
        refresh_velocity_score(record)
        mark_threshold(record, moment)
        record.updated_at = moment
        self.db.flush()

        logger.info("Bounty awarded on %s (total %d)", barcode, record.total_weighted_votes)
        return ContributionOutcome(
            barcode=record.barcode,
            bounty_awarded=True,
            bonus_weight=BOUNTY_WEIGHT,
            total_weighted_votes=record.total_weighted_votes,
            funding_progress=funding_progress(
                record.total_weighted_votes, record.funding_threshold
            ),
            reason=REASON_BOUNTY_AWARDED,
            message=f"Bounty earned! Your photos added +{BOUNTY_WEIGHT} votes to this request.",
        )

    @staticmethod
    def _declined(record: ProductVote, reason: str, message: str) -> ContributionOutcome:
        return ContributionOutcome(
            barcode=record.barcode,
            bounty_awarded=False,
            bonus_weight=0,
            total_weighted_votes=record.total_weighted_votes,
            funding_progress=funding_progress(
                record.total_weighted_votes, record.funding_threshold
            ),
            reason=reason,
            message=message,
        )
