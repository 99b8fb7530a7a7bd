"""
Fixtures partagees : base SQLite en memoire.
"""
import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

from trainlog.core.database import enable_sqlite_savepoints
from trainlog.domain import entities  # noqa: F401


@pytest.fixture
def engine():
    test_engine = enable_sqlite_savepoints(create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    ))
    SQLModel.metadata.create_all(test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def db(engine):
    with Session(engine) as session:
        yield session
