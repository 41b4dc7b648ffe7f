"""Concurrent writers on one barcode must not lose increments."""

from __future__ import annotations

import threading
from collections.abc import Iterator

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from scout_queue.db.session import Base, engine_options
from scout_queue.models import ProductVote, ProductVoter
from scout_queue.services.errors import ConcurrencyConflict, PersistenceFailure
from scout_queue.services.retry import backoff_delay, run_with_conflict_retry
from scout_queue.services.voting import VotingService

WRITERS = 8


@pytest.fixture()
def file_engine(tmp_path) -> Iterator[Engine]:
    url = f"sqlite:///{tmp_path / 'ledger.db'}"
    engine = create_engine(url, **engine_options(url, 30.0))
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()


def _run_writers(file_engine: Engine, vote) -> list[BaseException]:
    SessionLocal = sessionmaker(bind=file_engine, autocommit=False, autoflush=False)
    barrier = threading.Barrier(WRITERS)
    errors: list[BaseException] = []

    def worker(index: int) -> None:
        session = SessionLocal()
        try:
            service = VotingService(session, max_retries=WRITERS * 3, retry_base_delay=0.005)
            barrier.wait()
            vote(service, index)
        except BaseException as exc:  # collected and asserted on by the test
            errors.append(exc)
        finally:
            session.close()

    threads = [threading.Thread(target=worker, args=(index,)) for index in range(WRITERS)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)
    return errors


def test_concurrent_first_votes_create_one_record(file_engine) -> None:
    errors = _run_writers(
        file_engine,
        lambda service, index: service.cast_vote("race-1", "scan", f"scout-{index}"),
    )

    assert errors == []
    with sessionmaker(bind=file_engine)() as session:
        records = session.execute(select(ProductVote)).scalars().all()
        assert len(records) == 1
        record = records[0]
        assert record.total_votes == WRITERS
        assert record.total_weighted_votes == WRITERS * 5
        assert record.unique_voters == WRITERS
        assert record.scans_last_24h == WRITERS
        numbers = session.execute(select(ProductVoter.voter_number)).scalars().all()
        assert sorted(numbers) == list(range(1, WRITERS + 1))


def test_concurrent_anonymous_votes_keep_every_weight(file_engine) -> None:
    errors = _run_writers(
        file_engine,
        lambda service, index: service.cast_vote("race-2", "member_scan"),
    )

    assert errors == []
    with sessionmaker(bind=file_engine)() as session:
        record = session.execute(select(ProductVote)).scalar_one()
        assert record.total_votes == WRITERS
        assert record.total_weighted_votes == WRITERS * 20


def test_retry_exhaustion_raises_conflict(mocker) -> None:
    mocker.patch("scout_queue.services.retry.time.sleep")
    session = mocker.MagicMock()
    unit = mocker.MagicMock(side_effect=StaleDataError("version mismatch"))

    with pytest.raises(ConcurrencyConflict) as excinfo:
        run_with_conflict_retry(session, unit, max_retries=2, base_delay=0.01, label="test")

    assert unit.call_count == 3
    assert session.rollback.call_count == 3
    assert excinfo.value.status_code == 503
    assert excinfo.value.to_dict()["retryable"] is True


def test_retry_recovers_after_conflict(mocker) -> None:
    sleep = mocker.patch("scout_queue.services.retry.time.sleep")
    session = mocker.MagicMock()
    unit = mocker.MagicMock(side_effect=[StaleDataError("version mismatch"), "ok"])

    assert run_with_conflict_retry(session, unit, max_retries=3, base_delay=0.01, label="test") == "ok"
    assert sleep.call_count == 1
    session.commit.assert_called_once()


def test_storage_errors_become_persistence_failures(mocker) -> None:
    from sqlalchemy.exc import OperationalError

    session = mocker.MagicMock()
    unit = mocker.MagicMock(side_effect=OperationalError("SELECT 1", {}, Exception("disk I/O error")))

    with pytest.raises(PersistenceFailure) as excinfo:
        run_with_conflict_retry(session, unit, max_retries=3, base_delay=0.01, label="test")

    assert unit.call_count == 1
    assert excinfo.value.reason == "persistence_failure"
    session.rollback.assert_called_once()


def test_check_violations_are_not_retried(mocker) -> None:
    sleep = mocker.patch("scout_queue.services.retry.time.sleep")
    session = mocker.MagicMock()
    unit = mocker.MagicMock(
        side_effect=IntegrityError(
            "UPDATE product_vote", {}, Exception("CHECK constraint failed: ck_product_vote_voters")
        )
    )

    with pytest.raises(PersistenceFailure):
        run_with_conflict_retry(session, unit, max_retries=3, base_delay=0.01, label="test")

    assert unit.call_count == 1
    sleep.assert_not_called()
    session.rollback.assert_called_once()


def test_unique_violations_are_retried(mocker) -> None:
    mocker.patch("scout_queue.services.retry.time.sleep")
    session = mocker.MagicMock()
    clash = IntegrityError(
        "INSERT INTO product_vote", {}, Exception("UNIQUE constraint failed: product_vote.barcode")
    )
    unit = mocker.MagicMock(side_effect=[clash, "ok"])

    assert run_with_conflict_retry(session, unit, max_retries=3, base_delay=0.01, label="test") == "ok"
    assert unit.call_count == 2


def test_backoff_is_bounded(mocker) -> None:
    mocker.patch("scout_queue.services.retry.random.uniform", return_value=1.0)

    assert backoff_delay(0, 0.05) == pytest.approx(0.05)
    assert backoff_delay(2, 0.05) == pytest.approx(0.2)
    assert backoff_delay(10, 0.05) == pytest.approx(1.0)
