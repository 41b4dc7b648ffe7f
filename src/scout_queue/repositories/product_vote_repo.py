"""Data access helpers for working with product vote records."""
from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import ColumnElement, func, select
from sqlalchemy.orm import Session

from scout_queue.models.product_vote import (
    PhotoContribution,
    ProductVote,
    ProductVoter,
)

__all__ = ["ProductVoteRepository"]


class ProductVoteRepository:
    """Thin wrapper around database access for the vote ledger."""

    def __init__(self, session: Session) -> None:
        """Initialize the repository with a SQLAlchemy session."""
        self.session = session

    def get_by_barcode(self, barcode: str) -> ProductVote | None:
        """Return the vote record for a barcode, if any.

        Always refreshes from the database so the version counter used for
        the optimistic check is the committed one.
        """
        result = self.session.execute(
            select(ProductVote)
            .where(ProductVote.barcode == barcode)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    def get_voter(self, record: ProductVote, identity: str) -> ProductVoter | None:
        """Return an identity's voter row on a record."""
        return self.session.get(ProductVoter, (record.id, identity))

    def get_contribution(self, record: ProductVote, identity: str) -> PhotoContribution | None:
        """Return an identity's bounty contribution on a record."""
        return self.session.get(PhotoContribution, (record.id, identity))

    def add(self, record: ProductVote) -> ProductVote:
        """Stage a new record and flush so it receives a primary key."""
        self.session.add(record)
        self.session.flush()
        return record

    def count(self, *criteria: ColumnElement[bool]) -> int:
        """Count records matching the given criteria."""
        stmt = select(func.count()).select_from(ProductVote)
        if criteria:
            stmt = stmt.where(*criteria)
        return int(self.session.execute(stmt).scalar() or 0)

    def list_where(
        self,
        *criteria: ColumnElement[bool],
        order_by: Sequence[ColumnElement[object]] = (),
        limit: int | None = None,
        offset: int = 0,
    ) -> list[ProductVote]:
        """Return records matching the criteria in the requested order."""
        stmt = select(ProductVote)
        if criteria:
            stmt = stmt.where(*criteria)
        if order_by:
            stmt = stmt.order_by(*order_by)
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.session.execute(stmt).scalars())

    def list_for_identity(self, identity: str, limit: int) -> list[tuple[ProductVote, ProductVoter]]:
        """Return the records an identity voted on, most recently active first."""
        stmt = (
            select(ProductVote, ProductVoter)
            .join(ProductVoter, ProductVoter.product_vote_id == ProductVote.id)
            .where(ProductVoter.identity == identity)
            .order_by(ProductVote.updated_at.desc(), ProductVote.id.desc())
            .limit(limit)
        )
        return [(vote, voter) for vote, voter in self.session.execute(stmt).all()]

    def contributed_record_ids(self, identity: str, record_ids: Sequence[int]) -> set[int]:
        """Return the subset of record ids the identity earned a bounty on."""
        if not record_ids:
            return set()
        stmt = select(PhotoContribution.product_vote_id).where(
            PhotoContribution.identity == identity,
            PhotoContribution.product_vote_id.in_(record_ids),
        )
        return set(self.session.execute(stmt).scalars())

    def list_scanned_since(self, since: datetime, limit: int) -> list[ProductVote]:
        """Return records with a scan-class event at or after ``since``."""
        stmt = (
            select(ProductVote)
            .where(ProductVote.last_scan_at.is_not(None), ProductVote.last_scan_at >= since)
            .order_by(ProductVote.last_scan_at.desc())
            .limit(limit)
        )
        return list(self.session.execute(stmt).scalars())
