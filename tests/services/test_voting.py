"""Tests for weighted vote ingestion."""

from datetime import timedelta

import pytest
from sqlalchemy import select

from scout_queue.models import ProductVote, ProductVoter, VoteStatus
from scout_queue.services.errors import ValidationError
from scout_queue.services.voting import (
    VOTE_WEIGHTS,
    ProductInfo,
    VotingService,
    funding_progress,
)


def _voters(db_session, barcode: str) -> set[str]:
    rows = db_session.execute(
        select(ProductVoter.identity)
        .join(ProductVote, ProductVote.id == ProductVoter.product_vote_id)
        .where(ProductVote.barcode == barcode)
    ).scalars()
    return set(rows)


def test_anonymous_scan_creates_record(db_session, t0) -> None:
    """An anonymous scan on a new barcode counts once at scan weight."""
    outcome = VotingService(db_session).cast_vote("0001", "scan", now=t0)

    assert outcome.total_votes == 1
    assert outcome.total_weighted_votes == 5
    assert outcome.unique_voters == 0
    assert outcome.your_vote_rank == 1
    assert outcome.voter_number is None
    assert outcome.is_new_voter is True
    assert outcome.funding_progress == 1
    assert outcome.funding_threshold == 1000
    assert outcome.scans_last_24h == 1

    record = db_session.execute(
        select(ProductVote).where(ProductVote.barcode == "0001")
    ).scalar_one()
    assert record.status == VoteStatus.VOTING.value
    assert record.scan_count == 1
    assert record.original_voter is None


def test_same_identity_adds_weight_once(db_session, t0) -> None:
    """A returning identity bumps the event count but not the score."""
    service = VotingService(db_session)
    first = service.cast_vote("0001", "member_scan", "u1", now=t0)
    second = service.cast_vote("0001", "scan", "u1", now=t0 + timedelta(minutes=5))

    assert first.weight_applied == 20
    assert second.weight_applied == 0
    assert second.is_new_voter is False
    assert second.total_votes == 2
    assert second.total_weighted_votes == 20
    assert second.unique_voters == 1
    assert second.your_vote_rank == 2
    assert second.voter_number == 1
    assert _voters(db_session, "0001") == {"u1"}
    assert "Welcome back" in second.message


def test_distinct_identities_each_add_weight(db_session, t0) -> None:
    service = VotingService(db_session)
    service.cast_vote("0002", "search", "a", now=t0)
    service.cast_vote("0002", "scan", "b", now=t0)
    outcome = service.cast_vote("0002", "member_scan", "c", now=t0)

    assert outcome.total_votes == 3
    assert outcome.total_weighted_votes == 1 + 5 + 20
    assert outcome.unique_voters == 3
    assert outcome.voter_number == 3
    assert _voters(db_session, "0002") == {"a", "b", "c"}


def test_anonymous_events_always_add_weight(db_session, t0) -> None:
    """Events without an identity cannot be deduplicated."""
    service = VotingService(db_session)
    for _ in range(3):
        outcome = service.cast_vote("0003", "scan", None, now=t0)

    assert outcome.total_votes == 3
    assert outcome.total_weighted_votes == 15
    assert outcome.unique_voters == 0


def test_blank_identity_is_anonymous(db_session, t0) -> None:
    outcome = VotingService(db_session).cast_vote("0004", "search", "   ", now=t0)

    assert outcome.voter_number is None
    assert _voters(db_session, "0004") == set()


def test_first_identified_voter_is_original_voter(db_session, t0) -> None:
    service = VotingService(db_session)
    service.cast_vote("0005", "scan", None, now=t0)
    service.cast_vote("0005", "scan", "first", now=t0)
    service.cast_vote("0005", "scan", "second", now=t0)

    record = db_session.execute(
        select(ProductVote).where(ProductVote.barcode == "0005")
    ).scalar_one()
    assert record.original_voter == "first"


@pytest.mark.parametrize("vote_type", ["", "like", "SCAN", None])
def test_unknown_vote_type_is_rejected(db_session, vote_type) -> None:
    with pytest.raises(ValidationError) as excinfo:
        VotingService(db_session).cast_vote("0006", vote_type)

    assert excinfo.value.reason == "invalid_vote_type"
    assert excinfo.value.status_code == 400
    assert db_session.execute(select(ProductVote)).first() is None


@pytest.mark.parametrize("barcode", ["", "   ", None])
def test_missing_barcode_is_rejected(db_session, barcode) -> None:
    with pytest.raises(ValidationError) as excinfo:
        VotingService(db_session).cast_vote(barcode, "scan")

    assert excinfo.value.reason == "barcode_required"


def test_barcode_is_trimmed(db_session, t0) -> None:
    service = VotingService(db_session)
    service.cast_vote(" 0007 ", "scan", "a", now=t0)
    outcome = service.cast_vote("0007", "scan", "b", now=t0)

    assert outcome.barcode == "0007"
    assert outcome.total_votes == 2


def test_product_info_fills_empty_fields_only(db_session, t0) -> None:
    service = VotingService(db_session)
    service.cast_vote("0008", "scan", "a", ProductInfo(name="Oat Milk", brand=""), now=t0)
    outcome = service.cast_vote(
        "0008",
        "scan",
        "b",
        ProductInfo(name="Renamed", brand="Acme", image_url="https://img.example/1.png"),
        now=t0,
    )

    assert outcome.product_info.name == "Oat Milk"
    assert outcome.product_info.brand == "Acme"
    assert outcome.product_info.image_url == "https://img.example/1.png"


def test_search_does_not_touch_velocity(db_session, t0) -> None:
    service = VotingService(db_session)
    service.cast_vote("0009", "scan", "a", now=t0)
    outcome = service.cast_vote("0009", "search", "b", now=t0)

    assert outcome.scans_last_24h == 1
    record = db_session.execute(
        select(ProductVote).where(ProductVote.barcode == "0009")
    ).scalar_one()
    assert record.search_count == 1
    assert len(record.scan_timestamps) == 1
    # velocity score tracks the accumulator on every write
    assert record.velocity_score == 1 * 5 + 6


def test_threshold_is_stamped_once(db_session, t0) -> None:
    service = VotingService(db_session)
    for index in range(49):
        service.cast_vote("0010", "member_scan", f"id-{index}", now=t0)
    record = db_session.execute(
        select(ProductVote).where(ProductVote.barcode == "0010")
    ).scalar_one()
    assert record.threshold_reached_at is None

    outcome = service.cast_vote("0010", "member_scan", "id-49", now=t0 + timedelta(hours=1))
    assert outcome.total_weighted_votes == 1000
    assert outcome.funding_progress == 100
    assert "reached its funding goal" in outcome.message

    service.cast_vote("0010", "member_scan", "id-50", now=t0 + timedelta(hours=2))
    db_session.refresh(record)
    assert record.threshold_reached_at is not None
    assert record.threshold_reached_at.replace(tzinfo=None) == (t0 + timedelta(hours=1)).replace(
        tzinfo=None
    )
    # status moves only through the external lifecycle
    assert record.status == VoteStatus.VOTING.value


def test_weights_table() -> None:
    assert VOTE_WEIGHTS == {"search": 1, "scan": 5, "member_scan": 20}


@pytest.mark.parametrize(
    ("total", "expected"),
    [(0, 0), (4, 0), (5, 1), (745, 75), (999, 100), (1000, 100), (2500, 100)],
)
def test_funding_progress_rounds_and_caps(total, expected) -> None:
    assert funding_progress(total, 1000) == expected
