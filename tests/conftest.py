"""Shared fixtures: in-memory database, repository and API client."""

from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from practice_app import models  # noqa: F401
from practice_app.database import Base, get_db
from practice_app.domain.scheduling.repository import AppointmentRepository
from practice_app.domain.scheduling.schemas import AppointmentDraft
from practice_app.main import app


@pytest.fixture
def engine():
    """Single shared in-memory SQLite connection per test."""
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def db(engine):
    TestingSession = sessionmaker(autoflush=False, bind=engine)
    session = TestingSession()
    yield session
    session.close()


@pytest.fixture
def repo(db):
    return AppointmentRepository(db)


@pytest.fixture
def client(db):
    """API client with get_db pointed at the test session."""

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_draft():
    """Factory for appointment drafts with sensible defaults."""

    def _make(start: datetime, end: datetime, **overrides) -> AppointmentDraft:
        data = {
            "title": "Physio session",
            "contact_id": "contact-1",
            "start_time": start,
            "end_time": end,
        }
        data.update(overrides)
        return AppointmentDraft(**data)

    return _make
