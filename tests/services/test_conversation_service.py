"""Tests for ConversationStateService."""

import httpx
import pytest

from journal.core.exceptions import (
    ConfigurationError,
    ConversationStateNotFoundError,
    ImmutableFieldError,
    InvalidPhaseTransitionError,
    ValidationError,
)
from journal.domain.models.conversation_state import (
    JOURNAL_THEMES,
    ConversationMode,
    SessionPhase,
)
from journal.domain.models.extraction import AIAction, MessageLength
from journal.persistence.repositories.conversation_state_repo import (
    ConversationStateRepository,
)
from journal.services.conversation_service import (
    APOLOGY_REPLY,
    ConversationStateService,
)
from journal.services.events import ConversationEventType
from journal.services.memory_service import MemoryService
from journal.services.response_service import GREETING_REPLY, ResponseService
from tests.fakes import DATE, SESSION_ID, FakeLLMClient, FakeMemoryClient, FakeRedis

LONG_FIRST_SHARE = (
    "Today I tried to focus on my reading but I kept getting distracted by noise "
    "outside the window and it took me the whole afternoon to finish one chapter "
    "of the book I started last month at the library again"
)
MEDIUM_NO_THEME = "I spent most of the evening sorting old photos with my sister"


@pytest.fixture
def memory_client():
    return FakeMemoryClient(search_results=[{"memory": "Struggled to focus last week"}])


@pytest.fixture
def llm():
    return FakeLLMClient()


@pytest.fixture
def service(state_repo, utterance_repo, context_repo, event_bus, memory_client, llm):
    return ConversationStateService(
        state_repo=state_repo,
        utterance_repo=utterance_repo,
        memory_service=MemoryService(client=memory_client),
        response_service=ResponseService(llm_client=llm, context_repo=context_repo),
        context_repo=context_repo,
        event_bus=event_bus,
    )


@pytest.fixture
def events(event_bus):
    seen = []
    event_bus.subscribe(seen.append)
    return seen


def explored_except(*themes):
    return {
        "explored_themes": [t for t in JOURNAL_THEMES if t not in themes],
        "unexplored_themes": list(themes),
    }


class TestLifecycle:
    async def test_initialize_creates_state(self, service):
        state, created = await service.initialize(SESSION_ID, DATE, yesterday_context=["x"])

        assert created is True
        assert state.user_id == "default-user"
        assert state.yesterday_context == ["x"]
        assert await service.get(SESSION_ID, DATE) == state

    async def test_initialize_is_idempotent(self, service):
        first, _ = await service.initialize(SESSION_ID, DATE, user_id="user-1")
        await service.patch(SESSION_ID, DATE, {"tone": "calm"})

        again, created = await service.initialize(SESSION_ID, DATE, user_id="user-2")

        assert created is False
        assert again.user_id == "user-1"
        assert again.tone == "calm"

    async def test_initialize_clear_get(self, service):
        await service.initialize(SESSION_ID, DATE)
        assert await service.clear(SESSION_ID, DATE) is True
        assert await service.get(SESSION_ID, DATE) is None
        assert await service.clear(SESSION_ID, DATE) is False

    async def test_require_missing(self, service):
        with pytest.raises(ConversationStateNotFoundError):
            await service.require(SESSION_ID, DATE)

    async def test_clear_date(self, service, context_repo):
        await service.initialize("a", DATE)
        await service.initialize("b", DATE)
        await service.initialize("a", "2026-10-18")
        await service.respond("a", DATE, "hello")
        await context_repo.set_context(DATE, {"date": DATE})

        removed = await service.clear_date(DATE)

        assert removed == {"date": DATE, "conversations": 2, "utterances": 2}
        assert await service.get("b", DATE) is None
        assert await service.get("a", "2026-10-18") is not None
        assert await context_repo.get_context(DATE) is None


class TestPatch:
    async def test_patch_missing_state(self, service):
        with pytest.raises(ConversationStateNotFoundError):
            await service.patch(SESSION_ID, DATE, {"tone": "calm"})

    async def test_patch_merges_and_accepts_aliases(self, service):
        initial, _ = await service.initialize(SESSION_ID, DATE)

        state = await service.patch(SESSION_ID, DATE, {"tone": "calm", "sessionId": SESSION_ID})

        assert state.tone == "calm"
        assert state.created_at == initial.created_at
        assert state.last_updated >= initial.last_updated

    async def test_unknown_field_rejected(self, service):
        await service.initialize(SESSION_ID, DATE)
        with pytest.raises(ValidationError):
            await service.patch(SESSION_ID, DATE, {"favourite_colour": "blue"})

    async def test_identity_change_rejected(self, service):
        await service.initialize(SESSION_ID, DATE)
        with pytest.raises(ValidationError):
            await service.patch(SESSION_ID, DATE, {"userId": "someone-else"})

    async def test_broken_partition_rejected(self, service):
        await service.initialize(SESSION_ID, DATE)
        with pytest.raises(ValidationError):
            await service.patch(SESSION_ID, DATE, {"explored_themes": ["focus"]})
        assert (await service.get(SESSION_ID, DATE)).explored_themes == []

    async def test_phase_cannot_move_backwards(self, service):
        await service.initialize(SESSION_ID, DATE)
        await service.patch(SESSION_ID, DATE, {"session_phase": "questioning"})

        with pytest.raises(InvalidPhaseTransitionError):
            await service.patch(SESSION_ID, DATE, {"session_phase": "listening"})

    async def test_unknown_phase_rejected(self, service):
        await service.initialize(SESSION_ID, DATE)
        with pytest.raises(ValidationError):
            await service.patch(SESSION_ID, DATE, {"session_phase": "napping"})

    async def test_initial_sharing_is_write_once(self, service):
        await service.initialize(SESSION_ID, DATE)
        await service.patch(SESSION_ID, DATE, {"user_initial_sharing": "Long day"})
        await service.patch(SESSION_ID, DATE, {"user_initial_sharing": "Long day"})

        with pytest.raises(ImmutableFieldError):
            await service.patch(SESSION_ID, DATE, {"user_initial_sharing": "Other day"})


class TestProcessMessage:
    async def test_requires_initialized_state(self, service):
        with pytest.raises(ConversationStateNotFoundError):
            await service.process_message(SESSION_ID, DATE, "hello")

    async def test_long_first_share(self, service, memory_client):
        await service.initialize(SESSION_ID, DATE)

        result = await service.process_message(SESSION_ID, DATE, LONG_FIRST_SHARE)

        assert result.extraction.touched_theme == "focus"
        assert result.extraction.message_length == MessageLength.LONG
        assert result.next_move.action == AIAction.REFLECT
        assert result.next_move.question == "What part of focus feels most important right now?"
        assert result.state.anchor == "focus"
        assert "focus" in result.state.explored_themes
        assert result.state.last_ai_action == "reflect"
        assert result.memory_enriched is True
        assert result.state.yesterday_context == ["Struggled to focus last week"]
        assert memory_client.search_calls[0]["query"].startswith("memories about focus")

    async def test_anchor_is_sticky(self, service, memory_client):
        await service.initialize(SESSION_ID, DATE)
        await service.process_message(SESSION_ID, DATE, LONG_FIRST_SHARE)

        result = await service.process_message(SESSION_ID, DATE, "I went to the gym after dinner")

        assert result.state.anchor == "focus"
        assert result.state.explored_themes == ["focus", "gym"]
        assert result.memory_enriched is False
        assert len(memory_client.search_calls) == 1

    async def test_questions_logged_once(self, service):
        await service.initialize(SESSION_ID, DATE)
        await service.process_message(SESSION_ID, DATE, "yeah", last_question="How was lunch?")
        result = await service.process_message(
            SESSION_ID, DATE, "yeah", last_question="How was lunch?"
        )
        assert result.state.asked_questions == ["How was lunch?"]

    async def test_short_reply_offers_choice(self, service):
        await service.initialize(SESSION_ID, DATE)
        await service.patch(SESSION_ID, DATE, explored_except("gym", "work"))

        result = await service.process_message(
            SESSION_ID, DATE, "yeah", last_question="How was lunch?"
        )

        assert result.next_move.action == AIAction.OFFER_CHOICE
        assert result.next_move.themes_to_suggest == ["gym", "work"]
        assert result.next_move.question == "Would you like to explore gym or work?"

    async def test_all_themes_explored_closes(self, service):
        await service.initialize(SESSION_ID, DATE)
        await service.patch(SESSION_ID, DATE, explored_except())

        result = await service.process_message(SESSION_ID, DATE, MEDIUM_NO_THEME)

        assert result.next_move.action == AIAction.CLOSE
        assert (
            result.next_move.question
            == "Is there anything else you want to share before we wrap up?"
        )

    async def test_mode_changes_only_while_questioning(self, service):
        await service.initialize(SESSION_ID, DATE)
        result = await service.process_message(SESSION_ID, DATE, LONG_FIRST_SHARE)
        assert result.state.conversation_mode == ConversationMode.LISTENER

        await service.advance_phase(SESSION_ID, DATE, SessionPhase.QUESTIONING)
        result = await service.process_message(SESSION_ID, DATE, LONG_FIRST_SHARE)
        assert result.state.conversation_mode == ConversationMode.DEEPENING

    async def test_publishes_update(self, service, events):
        await service.initialize(SESSION_ID, DATE)
        await service.process_message(SESSION_ID, DATE, "yeah")

        assert [e.type for e in events] == [
            ConversationEventType.INITIALIZED,
            ConversationEventType.UPDATED,
        ]
        assert events[-1].payload["action"] == "offer_choice"


class TestPhases:
    async def test_finish_sharing(self, service):
        await service.initialize(SESSION_ID, DATE)

        state, extraction = await service.finish_sharing(
            SESSION_ID, DATE, LONG_FIRST_SHARE, mood="restless"
        )

        assert extraction.touched_theme == "focus"
        assert state.session_phase == SessionPhase.REFLECTING
        assert state.user_initial_sharing == LONG_FIRST_SHARE
        assert state.mood == "restless"
        assert state.anchor == "focus"
        assert "focus" in state.explored_themes
        assert state.yesterday_context == ["Struggled to focus last week"]

    async def test_finish_sharing_twice_with_other_text(self, service):
        await service.initialize(SESSION_ID, DATE)
        await service.finish_sharing(SESSION_ID, DATE, LONG_FIRST_SHARE)

        with pytest.raises(ImmutableFieldError):
            await service.finish_sharing(SESSION_ID, DATE, "Something else")

    async def test_finish_sharing_after_close(self, service):
        await service.initialize(SESSION_ID, DATE)
        await service.close_session(SESSION_ID, DATE)

        with pytest.raises(InvalidPhaseTransitionError):
            await service.finish_sharing(SESSION_ID, DATE, LONG_FIRST_SHARE)

    async def test_close_session(self, service, events):
        await service.initialize(SESSION_ID, DATE)

        state = await service.close_session(SESSION_ID, DATE)

        assert state.session_phase == SessionPhase.CLOSED
        assert state.conversation_mode == ConversationMode.CLOSING
        phase_events = [e for e in events if e.type == ConversationEventType.PHASE_CHANGED]
        assert phase_events[0].payload == {"previous": "listening", "current": "closed"}

    async def test_phase_is_monotonic(self, service):
        await service.initialize(SESSION_ID, DATE)
        await service.advance_phase(SESSION_ID, DATE, SessionPhase.QUESTIONING)
        await service.advance_phase(SESSION_ID, DATE, SessionPhase.QUESTIONING)

        with pytest.raises(InvalidPhaseTransitionError):
            await service.advance_phase(SESSION_ID, DATE, SessionPhase.MOOD_CONFIRMATION)


class TestRespond:
    async def test_greeting_then_llm_reply(self, service, utterance_repo, llm):
        await service.initialize(SESSION_ID, DATE)

        first = await service.respond(SESSION_ID, DATE, "hello")
        second = await service.respond(SESSION_ID, DATE, "I went to the gym after dinner")

        assert first.reply == GREETING_REPLY
        assert first.reply_source == "greeting"
        assert second.reply_source == "llm"
        assert second.degraded is False
        assert second.state.anchor == "gym"
        assert llm.calls[0]["history"] == [
            {"role": "user", "content": "hello"},
            {"role": "assistant", "content": GREETING_REPLY},
        ]

        transcript = await utterance_repo.get_transcript(SESSION_ID, DATE)
        assert [u.speaker.value for u in transcript] == [
            "user",
            "assistant",
            "user",
            "assistant",
        ]

    async def test_question_from_previous_reply_is_logged(self, service):
        await service.initialize(SESSION_ID, DATE)
        await service.respond(SESSION_ID, DATE, "I went to the gym after dinner")
        result = await service.respond(SESSION_ID, DATE, "Pretty quiet overall")

        assert result.state.asked_questions == ["What stood out?"]

    async def test_missing_state(self, service):
        with pytest.raises(ConversationStateNotFoundError):
            await service.respond(SESSION_ID, DATE, "hello")

    async def test_cache_outage_apologizes(self, utterance_repo):
        broken = ConversationStateService(
            state_repo=ConversationStateRepository(FakeRedis(fail=True), ttl_seconds=60),
            utterance_repo=utterance_repo,
            response_service=ResponseService(llm_client=None),
        )

        result = await broken.respond(SESSION_ID, DATE, "hello")

        assert result.reply == APOLOGY_REPLY
        assert result.reply_source == "apology"
        assert result.degraded is True
        assert result.state is None

    async def test_unreachable_llm_gets_templated_reply(
        self, state_repo, utterance_repo, context_repo
    ):
        offline = ConversationStateService(
            state_repo=state_repo,
            utterance_repo=utterance_repo,
            response_service=ResponseService(
                llm_client=FakeLLMClient([httpx.ConnectError("connection refused")]),
                context_repo=context_repo,
            ),
        )
        await offline.initialize(SESSION_ID, DATE)

        result = await offline.respond(SESSION_ID, DATE, "I went to the gym after dinner")

        assert result.reply_source == "template"
        assert result.next_move.action == AIAction.OFFER_CHOICE
        assert result.state.anchor == "gym"
        transcript = await utterance_repo.get_transcript(SESSION_ID, DATE)
        assert [u.speaker.value for u in transcript] == ["user", "assistant"]
        assert transcript[-1].text == result.reply

    async def test_requires_chat_collaborators(self, state_repo):

        bare = ConversationStateService(state_repo=state_repo)
        assert bare.chat_pipeline is None
        with pytest.raises(ConfigurationError):
            await bare.respond(SESSION_ID, DATE, "hello")
