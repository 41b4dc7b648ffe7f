# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Generator, Iterator
from datetime import UTC, datetime, timedelta

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-scout-queue")

from scout_queue.core.settings import Settings, settings
from scout_queue.db.session import Base
from scout_queue.db.session import get_db as app_get_session
from scout_queue.main import app as fastapi_app

TEST_DB_URL = "sqlite://"

# Fixed reference instant so velocity windows are deterministic.
T0 = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    SessionLocal = sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
    )
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()

        # Services commit, so every test cleans the tables it touched.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_session_dependency(app: FastAPI, db_session: Session) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Provide the Settings instance the application is running with."""
    return settings


@pytest.fixture()
def t0() -> datetime:
    """Reference instant for tests that pass explicit event times."""
    return T0


def make_token(subject: str, secret: str | None = None, minutes: int = 15) -> str:
    """Issue a bearer token the way the main site does."""
    payload = {"sub": subject, "exp": datetime.now(UTC) + timedelta(minutes=minutes)}
    return jwt.encode(payload, secret or settings.secret_key, algorithm=settings.jwt_algorithm)


@pytest.fixture()
def member_headers() -> dict[str, str]:
    """Authorization headers for a signed-in member."""
    return {"Authorization": f"Bearer {make_token('member-42')}"}


@pytest.fixture()
def token_factory():
    """Return ``make_token`` for tests that need custom subjects or secrets."""
    return make_token
