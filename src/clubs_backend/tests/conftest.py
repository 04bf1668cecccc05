"""
Pytest configuration and fixtures for all tests.

Tests run against an in-memory SQLite database shared by every session of a
test through a StaticPool, so the route gate middleware, the request
handlers and the test body all see the same data.
"""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from clubs_backend.model import Base
from clubs_backend.permissions.role_setup import db_apply_default_roles


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def Session(engine):
    """Create session factory."""
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(Session):
    """Create a new database session for a test, with the role table seeded."""
    session = Session()
    db_apply_default_roles(session)
    try:
        yield session
    finally:
        session.close()
