"""
Shared test fixtures.

Redis is replaced by an in-memory async double (tests/fakes.py) that
implements the handful of commands the repositories use.
"""

import tempfile
from pathlib import Path

import pytest

from journal.domain.models.conversation_state import ConversationState
from journal.persistence.database import init_database
from journal.persistence.repositories.conversation_state_repo import (
    ConversationStateRepository,
)
from journal.persistence.repositories.session_context_repo import (
    SessionContextRepository,
)
from journal.persistence.repositories.utterance_repo import UtteranceRepository
from journal.services.events import ConversationEventBus
from tests.fakes import DATE, SESSION_ID, FakeRedis


@pytest.fixture
async def test_db():
    """Create and initialize a temporary transcript database."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        await init_database(db_path)
        yield db_path


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def state_repo(fake_redis):
    return ConversationStateRepository(fake_redis, ttl_seconds=86400)


@pytest.fixture
def context_repo(fake_redis):
    return SessionContextRepository(
        fake_redis, context_ttl_seconds=7200, tracker_ttl_seconds=86400
    )


@pytest.fixture
async def utterance_repo(test_db):
    """Create utterance repository with test database."""
    return UtteranceRepository(str(test_db))


@pytest.fixture
def event_bus():
    return ConversationEventBus()


@pytest.fixture
def initial_state():
    return ConversationState.initial(session_id=SESSION_ID, date=DATE)
