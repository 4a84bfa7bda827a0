"""Shared fixtures: in-memory database, pinned clock and an API client."""
from __future__ import annotations

import os

# Keep the app away from the on-disk database during tests
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import date, datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import models  # noqa: F401
from db import Base
from main import app
from app.deps import PENDING_BATCHES, get_db, get_now, get_today, get_user_id

TODAY = date(2024, 6, 15)
NOW = datetime(2024, 6, 15, 12, 0, 0)
USER_ID = "test-user"


@pytest.fixture()
def today() -> date:
    return TODAY


@pytest.fixture()
def now() -> datetime:
    return NOW


@pytest.fixture()
def user_id() -> str:
    return USER_ID


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture()
def session(session_factory) -> Session:
    """Provide an in-memory database session for each test."""
    with session_factory() as session:
        yield session


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_today] = lambda: TODAY
    app.dependency_overrides[get_now] = lambda: NOW
    app.dependency_overrides[get_user_id] = lambda: USER_ID
    PENDING_BATCHES.clear()

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    PENDING_BATCHES.clear()
