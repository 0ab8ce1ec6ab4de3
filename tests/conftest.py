"""
Shared fixtures: an in-memory database wired into the services, sample cards
and a controllable clock.
"""
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

import src.services.set_service as set_service
import src.services.user_service as user_service
from src.models import User
from src.study.models import Card


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start=None):
        self.now = start or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def tick(self, seconds):
        self.now += timedelta(seconds=seconds)


@pytest.fixture()
def db_engine(monkeypatch):
    """Fresh in-memory SQLite shared by every service for one test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    monkeypatch.setattr(set_service, 'engine', engine)
    monkeypatch.setattr(user_service, 'engine', engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def user_id(db_engine):
    with Session(db_engine) as session:
        user = User(email="alice@example.com", name="Alice")
        session.add(user)
        session.commit()
        session.refresh(user)
        return user.id


@pytest.fixture()
def other_user_id(db_engine):
    with Session(db_engine) as session:
        user = User(email="bob@example.com", name="Bob")
        session.add(user)
        session.commit()
        session.refresh(user)
        return user.id


def make_cards(*ids):
    return [Card(id=i, question=f"Question {i}", answer=f"Answer {i}") for i in ids]


@pytest.fixture()
def cards():
    return make_cards("A", "B", "C", "D", "E")


@pytest.fixture()
def clock():
    return FakeClock()
