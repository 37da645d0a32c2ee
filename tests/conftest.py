import os

import pytest

# Tests always run on an in-memory SQLite database, whatever the shell exports.
os.environ["DATABASE_URL"] = "sqlite://"

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db import get_db
from app.models import Base


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def fresh_session(session_factory):
    """Opens sessions with an empty identity map for post-request checks."""
    opened = []

    def _open():
        session = session_factory()
        opened.append(session)
        return session

    yield _open
    for session in opened:
        session.close()


@pytest.fixture
def client(session_factory):
    from fastapi.testclient import TestClient
    from app.main import app

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def active_config(session_factory):
    from app.models import WebhookConfig

    session = session_factory()
    config = WebhookConfig(
        provider="whatsapp",
        webhook_url="https://example.test/hook",
        verify_token="verify-me",
        is_active=True,
        sync_status="pending",
    )
    session.add(config)
    session.commit()
    config_id = config.id
    session.close()
    return config_id
