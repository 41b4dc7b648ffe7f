"""Unit tests for the ORM models defined in scout_queue.models.product_vote.

These tests verify mapping details the services rely on: table names,
composite primary keys, the version counter used for optimistic
concurrency, and the voter-count constraint.
"""

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import attributes

from scout_queue.models import PhotoContribution, ProductVote, ProductVoter
from scout_queue.services.voting import VotingService


def test_table_names():
    """Model classes expose expected __tablename__ values."""
    assert ProductVote.__tablename__ == "product_vote"
    assert ProductVoter.__tablename__ == "product_voter"
    assert PhotoContribution.__tablename__ == "photo_contribution"


def test_composite_primary_keys():
    """Voter and contribution rows are keyed by (record, identity)."""
    for model in (ProductVoter, PhotoContribution):
        pk_names = {c.name for c in model.__table__.primary_key}
        assert pk_names == {"product_vote_id", "identity"}


def test_relationships_are_instrumented_attributes():
    for rel in (ProductVote.voters, ProductVote.contributions, ProductVoter.product_vote):
        assert isinstance(rel, attributes.InstrumentedAttribute)


def test_version_counter_advances_on_write(db_session, t0):
    service = VotingService(db_session)
    service.cast_vote("m-1", "scan", "a", now=t0)
    record = db_session.execute(select(ProductVote).where(ProductVote.barcode == "m-1")).scalar_one()
    first_version = record.version_id

    service.cast_vote("m-1", "scan", "b", now=t0)
    db_session.refresh(record)

    assert record.version_id > first_version


def test_unique_voters_cannot_exceed_events(db_session, t0):
    VotingService(db_session).cast_vote("m-2", "scan", "a", now=t0)
    record = db_session.execute(select(ProductVote).where(ProductVote.barcode == "m-2")).scalar_one()
    record.unique_voters = record.total_votes + 1

    with pytest.raises(IntegrityError):
        db_session.flush()
    db_session.rollback()
