"""
Pytest configuration and fixtures.

This file is automatically loaded by pytest and provides
shared fixtures for all tests.

Each test gets a fresh SQLite database file. The workflow commits and
rolls back for real (unit_of_work), so the usual "wrap the test in an
outer transaction" trick does not apply here.
"""

import itertools

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from rallyelo.db.models import Base, Sport, User
from rallyelo.services.match_workflow import MatchWorkflow
from rallyelo.sports.registry import SportRegistry
from rallyelo.sports.seed import seed_sports


class FakeClock:
    """Monotonic clock the tests can move by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def test_engine(tmp_path):
    """
    Create a test database engine.

    Uses a SQLite file so that separate sessions (the registry's own
    session, TestClient worker threads) see each other's commits.
    """
    engine = create_engine(
        f"sqlite:///{tmp_path / 'rallyelo_test.db'}",
        echo=False,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return sessionmaker(bind=test_engine, autoflush=False)


@pytest.fixture
def db_session(session_factory):
    """Create a database session for a test."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def sports(db_session):
    """The two launch sports, committed."""
    seed_sports(db_session)
    db_session.commit()
    return db_session.query(Sport).order_by(Sport.sort_order).all()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry(session_factory, sports, clock):
    return SportRegistry(session_factory, ttl_seconds=300, clock=clock)


@pytest.fixture
def workflow(registry):
    return MatchWorkflow(registry)


@pytest.fixture
def make_user(db_session):
    """Factory creating committed users with unique intra ids."""
    counter = itertools.count(1)

    def _make_user(login=None, is_admin=False, is_banned=False):
        n = next(counter)
        user = User(
            intra_id=10_000 + n,
            login=login or f"player{n}",
            display_name=(login or f"player{n}").title(),
            is_admin=is_admin,
            is_banned=is_banned,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make_user


@pytest.fixture
def alice(make_user):
    return make_user("alice")


@pytest.fixture
def bob(make_user):
    return make_user("bob")


@pytest.fixture
def carol(make_user):
    return make_user("carol")


@pytest.fixture
def admin(make_user):
    return make_user("root", is_admin=True)
