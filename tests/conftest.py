"""Pytest configuration and fixtures for ExplainRank tests."""
import os
import sys
from datetime import timedelta

import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from explainrank.config import get_settings
from explainrank.core.models import (
    Base,
    EventNameEnum,
    Explanation,
    ExplanationEvent,
    ExplanationStatusEnum,
    LineageEdge,
    utcnow,
)
from explainrank.services.events import refresh_explanation_metrics


@pytest.fixture(autouse=True)
def embedding_dimensions(monkeypatch):
    """Payloads in tests carry two-dimensional embeddings."""
    monkeypatch.setenv("EMBEDDING_DIMENSIONS", "2")
    get_settings.cache_clear()
    yield 2
    get_settings.cache_clear()


@pytest.fixture(scope="session")
def engine():
    """Create an in-memory SQLite engine for testing."""
    # StaticPool keeps one connection so the API tests' worker thread sees the same database
    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Enable foreign key support in SQLite
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    return engine


@pytest.fixture(scope="function")
def session(engine):
    """Create a new database session for each test."""
    connection = engine.connect()
    transaction = connection.begin()
    Session = sessionmaker(bind=connection, expire_on_commit=False)
    session = Session()

    yield session

    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def make_explanation(session):
    """Factory for explanations."""
    def _make(title="Photosynthesis", content="Plants turn light into sugar.",
              status=ExplanationStatusEnum.PUBLISHED, embedding=None, topic_id=None):
        explanation = Explanation(
            title=title,
            content=content,
            status=status,
            embedding=embedding,
            topic_id=topic_id,
        )
        session.add(explanation)
        session.flush()
        return explanation

    return _make


@pytest.fixture
def link(session):
    """Insert a raw lineage edge, bypassing invalidation."""
    def _link(parent, child):
        session.add(LineageEdge(parent_id=parent.id, child_id=child.id))
        session.flush()

    return _link


@pytest.fixture
def engage(session):
    """Insert views and saves directly and refresh the metrics row."""
    def _engage(explanation, views=0, saves=0, age=timedelta(0)):
        created_at = utcnow() - age
        for i in range(views):
            session.add(ExplanationEvent(
                explanation_id=explanation.id,
                user_id=f"viewer-{i}",
                event_name=EventNameEnum.EXPLANATION_VIEWED,
                created_at=created_at,
            ))
        for i in range(saves):
            session.add(ExplanationEvent(
                explanation_id=explanation.id,
                user_id=f"saver-{i}",
                event_name=EventNameEnum.EXPLANATION_SAVED,
                created_at=created_at,
            ))
        session.flush()
        return refresh_explanation_metrics(session, explanation.id)

    return _engage


@pytest.fixture
def lineage_chain(make_explanation, link):
    """grandparent -> parent -> child, all sharing one embedding direction."""
    grandparent = make_explanation(title="Cells v1", content="cells divide", embedding=[1.0, 0.0, 0.0])
    parent = make_explanation(title="Cells v2", content="cells divide by mitosis", embedding=[1.0, 0.0, 0.0])
    child = make_explanation(title="Cells v3", content="cells divide by mitosis and meiosis", embedding=[1.0, 0.0, 0.0])
    link(grandparent, parent)
    link(parent, child)
    return grandparent, parent, child
