"""Tests for SessionContextRepository (session context and memory tracker)."""

import pytest

from journal.core.exceptions import CacheUnavailableError
from journal.persistence.repositories.session_context_repo import SessionContextRepository
from tests.fakes import DATE, FakeRedis


class TestSessionContext:
    async def test_missing_context(self, context_repo):
        assert await context_repo.get_context(DATE) is None

    async def test_set_and_get(self, context_repo, fake_redis):
        await context_repo.set_context(DATE, {"date": DATE, "all_memories": []})

        assert await context_repo.get_context(DATE) == {"date": DATE, "all_memories": []}
        assert fake_redis.ttls[SessionContextRepository.context_key(DATE)] == 7200

    async def test_non_dict_value_ignored(self, context_repo, fake_redis):
        fake_redis.store[SessionContextRepository.context_key(DATE)] = "not json"
        assert await context_repo.get_context(DATE) is None

    async def test_delete(self, context_repo):
        await context_repo.set_context(DATE, {"date": DATE})
        await context_repo.delete_context(DATE)
        assert await context_repo.get_context(DATE) is None


class TestMemoryUsageTracker:
    async def test_fresh_tracker(self, context_repo):
        tracker = await context_repo.get_tracker("user-1", DATE)
        assert tracker.last_memory_title is None
        assert tracker.turns_since_last_mention == 0

    async def test_turn_without_mention_increments(self, context_repo):
        await context_repo.record_turn("user-1", DATE, None, mentioned=False)
        tracker = await context_repo.record_turn("user-1", DATE, None, mentioned=False)

        assert tracker.turns_since_last_mention == 2
        assert (await context_repo.get_tracker("user-1", DATE)).turns_since_last_mention == 2

    async def test_mention_resets(self, context_repo, fake_redis):
        await context_repo.record_turn("user-1", DATE, None, mentioned=False)
        tracker = await context_repo.record_turn(
            "user-1", DATE, "Skipped the gym", mentioned=True
        )

        assert tracker.last_memory_title == "Skipped the gym"
        assert tracker.turns_since_last_mention == 0
        key = SessionContextRepository.tracker_key("user-1", DATE)
        assert key == f"memory:usage:user-1:{DATE}"
        assert fake_redis.ttls[key] == 86400

    async def test_trackers_are_per_user(self, context_repo):
        await context_repo.record_turn("user-1", DATE, None, mentioned=False)
        other = await context_repo.get_tracker("user-2", DATE)
        assert other.turns_since_last_mention == 0

    async def test_delete_tracker(self, context_repo):
        await context_repo.record_turn("user-1", DATE, None, mentioned=False)
        await context_repo.delete_tracker("user-1", DATE)
        assert (await context_repo.get_tracker("user-1", DATE)).turns_since_last_mention == 0


async def test_outage_raises_cache_unavailable():
    repo = SessionContextRepository(
        FakeRedis(fail=True), context_ttl_seconds=7200, tracker_ttl_seconds=86400
    )

    with pytest.raises(CacheUnavailableError):
        await repo.get_context(DATE)
    with pytest.raises(CacheUnavailableError):
        await repo.record_turn("user-1", DATE, None, mentioned=False)
