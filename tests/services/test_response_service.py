"""Tests for conversational reply generation and validation."""

import httpx
import pytest

from journal.core.config import ResponseConfig
from journal.core.exceptions import LLMTimeoutError
from journal.domain.models.extraction import AIAction, NextAIMove
from journal.llm.client import OpenAIClient
from journal.llm.prompts.response import (
    LONG_MEMORY_CORRECTION,
    MISSING_REACTION_CORRECTION,
    NO_MEMORY_CORRECTION,
)
from journal.persistence.repositories.session_context_repo import MemoryUsageTracker
from journal.services.extraction_service import extract_from_message
from journal.services.response_service import (
    FALLBACK_REPLY,
    FAREWELL_REPLIES,
    GREETING_REPLY,
    ResponseService,
    is_casual,
    is_farewell,
    is_greeting,
    lacks_reaction,
    may_mention,
    memory_clause_word_count,
    mentions_memory,
    relevant_memory,
    template_reply,
)
from tests.fakes import FakeLLMClient

GYM_MESSAGE = "I went to the gym after dinner"
GYM_MEMORY = "Skipped the gym twice last week"


class TestClassification:
    @pytest.mark.parametrize("message", ["hi", "Hey", "hello there", "  HELLO  "])
    def test_greetings(self, message):
        assert is_greeting(message)

    @pytest.mark.parametrize("message", ["high five", "hi there friend", "yeah"])
    def test_not_greetings(self, message):
        assert not is_greeting(message)

    @pytest.mark.parametrize(
        "message", ["ok bye", "Talk to you later", "gotta go now", "alrighty talk soon"]
    )
    def test_farewells(self, message):
        assert is_farewell(message)

    def test_alrighty_alone_is_not_a_farewell(self):
        assert not is_farewell("alrighty")

    def test_casual(self):
        assert is_casual("Went for a run")
        assert not is_casual("Did I tell you?")
        assert not is_casual("x" * 60)


class TestValidation:
    @pytest.mark.parametrize(
        "reply",
        ["What happened next?", "Did you sleep well?", "You sound tired?"],
    )
    def test_question_without_reaction(self, reply):
        assert lacks_reaction(reply)

    def test_reaction_then_question(self):
        assert not lacks_reaction("That sounds heavy. What happened next?")

    def test_memory_markers(self):
        assert mentions_memory("Like when you ran, that felt good.")
        assert not mentions_memory("That sounds heavy.")

    def test_memory_clause_word_count(self):
        assert memory_clause_word_count("Like when you skipped the gym, that was hard.") == 6
        assert memory_clause_word_count("No memories here.") == 0


class TestMemorySelection:
    def test_relevant_memory_by_keyword(self):
        extraction = extract_from_message(GYM_MESSAGE)
        context = ["Read a novel", GYM_MEMORY]
        assert relevant_memory(GYM_MESSAGE, extraction, context) == GYM_MEMORY

    def test_no_theme_no_memory(self):
        extraction = extract_from_message("lorem ipsum")
        assert relevant_memory("lorem ipsum", extraction, [GYM_MEMORY]) is None

    def test_gap_and_repeat_rules(self):
        ready = MemoryUsageTracker(turns_since_last_mention=2)
        assert may_mention("a", ready, 2)
        assert not may_mention(None, ready, 2)
        assert not may_mention("a", MemoryUsageTracker(turns_since_last_mention=1), 2)
        assert not may_mention(
            "a", MemoryUsageTracker(last_memory_title="a", turns_since_last_mention=5), 2
        )

    def test_template_reply(self):
        move = NextAIMove(action=AIAction.REFLECT, reflection="I hear you.", question="Why?")
        assert template_reply(move) == "I hear you. Why?"
        assert template_reply(NextAIMove(action=AIAction.REFRAME)) == FALLBACK_REPLY
        assert template_reply(None) == FALLBACK_REPLY


class TestResponseService:
    """ResponseService.generate() paths."""

    async def test_first_message_greeting(self, initial_state):
        service = ResponseService(llm_client=FakeLLMClient())
        reply = await service.generate("hello", initial_state, extract_from_message("hello"))
        assert reply.text == GREETING_REPLY
        assert reply.source == "greeting"

    async def test_greeting_mid_conversation_is_not_fast_pathed(self, initial_state):
        service = ResponseService(llm_client=None)
        reply = await service.generate(
            "hello",
            initial_state,
            extract_from_message("hello"),
            history=[{"role": "assistant", "content": "Hi"}],
        )
        assert reply.source == "template"

    async def test_farewell(self, initial_state):
        llm = FakeLLMClient()
        service = ResponseService(llm_client=llm)
        reply = await service.generate("ok bye", initial_state, extract_from_message("ok bye"))
        assert reply.source == "farewell"
        assert reply.text in FAREWELL_REPLIES
        assert llm.calls == []

    async def test_without_llm_uses_next_move(self, initial_state):
        move = NextAIMove(action=AIAction.ASK_GENTLE, question="Tell me more about gym.")
        service = ResponseService(llm_client=None)
        reply = await service.generate(
            GYM_MESSAGE, initial_state, extract_from_message(GYM_MESSAGE), move
        )
        assert reply.text == "Tell me more about gym."
        assert reply.source == "template"

    async def test_llm_reply_and_tracker_tick(self, initial_state, context_repo):
        llm = FakeLLMClient(["That sounds steady. What made it easier?"])
        service = ResponseService(llm_client=llm, context_repo=context_repo)

        reply = await service.generate(
            GYM_MESSAGE, initial_state, extract_from_message(GYM_MESSAGE)
        )

        assert reply.source == "llm"
        assert reply.regenerations == 0
        assert "Your response (brief and natural):" in llm.calls[0]["prompt"]
        tracker = await context_repo.get_tracker(initial_state.user_id, initial_state.date)
        assert tracker.turns_since_last_mention == 1

    async def test_missing_reaction_regenerates(self, initial_state):
        llm = FakeLLMClient(["What made it easier?", "That sounds steady. What made it easier?"])
        service = ResponseService(llm_client=llm)

        reply = await service.generate(
            GYM_MESSAGE, initial_state, extract_from_message(GYM_MESSAGE)
        )

        assert reply.text == "That sounds steady. What made it easier?"
        assert reply.regenerations == 1
        assert MISSING_REACTION_CORRECTION in llm.calls[1]["prompt"]

    async def test_disallowed_memory_mention_regenerates(self, initial_state):
        llm = FakeLLMClient(
            ["I remember last week was hard. What changed?", "That sounds steady. What changed?"]
        )
        service = ResponseService(llm_client=llm)

        reply = await service.generate(
            GYM_MESSAGE, initial_state, extract_from_message(GYM_MESSAGE)
        )

        assert reply.text == "That sounds steady. What changed?"
        assert reply.memory_mentioned is False
        assert NO_MEMORY_CORRECTION in llm.calls[1]["prompt"]

    async def test_allowed_memory_mention_is_tracked(self, initial_state, context_repo):
        state = initial_state.merged({"yesterday_context": [GYM_MEMORY]})
        llm = FakeLLMClient(
            [
                "Like when you skipped the gym twice last week on cold mornings, this is new. What shifted?",
                "Like when you skipped twice, this is new. What shifted?",
            ]
        )
        service = ResponseService(
            llm_client=llm,
            context_repo=context_repo,
            config=ResponseConfig(memory_mention_min_gap_turns=0),
        )

        reply = await service.generate(GYM_MESSAGE, state, extract_from_message(GYM_MESSAGE))

        assert reply.regenerations == 1
        assert LONG_MEMORY_CORRECTION.format(max_words=8) in llm.calls[1]["prompt"]
        assert GYM_MEMORY in llm.calls[0]["prompt"]
        assert reply.memory_mentioned is True
        tracker = await context_repo.get_tracker(state.user_id, state.date)
        assert tracker.last_memory_title == GYM_MEMORY
        assert tracker.turns_since_last_mention == 0

    async def test_memory_withheld_until_gap_reached(self, initial_state, context_repo):
        state = initial_state.merged({"yesterday_context": [GYM_MEMORY]})
        llm = FakeLLMClient(["That sounds steady. What changed?"])
        service = ResponseService(llm_client=llm, context_repo=context_repo)

        await service.generate(GYM_MESSAGE, state, extract_from_message(GYM_MESSAGE))

        assert "Memory to mention: NONE" in llm.calls[0]["prompt"]

    async def test_llm_failure_falls_back_to_template(self, initial_state):
        move = NextAIMove(action=AIAction.REFLECT, reflection="I'm listening.")
        service = ResponseService(llm_client=FakeLLMClient([LLMTimeoutError("slow")]))

        reply = await service.generate(
            GYM_MESSAGE, initial_state, extract_from_message(GYM_MESSAGE), move
        )

        assert reply.source == "template"
        assert reply.text == "I'm listening."

    @pytest.mark.parametrize(
        "error",
        [
            httpx.HTTPStatusError(
                "server error",
                request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions"),
                response=httpx.Response(500),
            ),
            httpx.ConnectError("connection refused"),
        ],
    )
    async def test_raw_http_errors_fall_back_to_template(self, initial_state, error):
        move = NextAIMove(action=AIAction.ASK_GENTLE, question="Tell me more about gym.")
        service = ResponseService(llm_client=FakeLLMClient([error]))

        reply = await service.generate(
            GYM_MESSAGE, initial_state, extract_from_message(GYM_MESSAGE), move
        )

        assert reply.source == "template"
        assert reply.text == "Tell me more about gym."

    @pytest.mark.parametrize("outcome", ["status_500", "status_401", "connect_error"])
    async def test_provider_failures_fall_back_to_template(self, initial_state, outcome):
        def handler(request: httpx.Request) -> httpx.Response:
            if outcome == "connect_error":
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(int(outcome.split("_")[1]), json={"error": "nope"})

        llm = OpenAIClient(
            api_key="test-key",
            model="gpt-4o-mini",
            temperature=0.7,
            max_tokens=150,
            timeout=5.0,
            transport=httpx.MockTransport(handler),
        )
        move = NextAIMove(action=AIAction.REFLECT, reflection="I'm listening.")
        service = ResponseService(llm_client=llm)

        reply = await service.generate(
            GYM_MESSAGE, initial_state, extract_from_message(GYM_MESSAGE), move
        )

        assert reply.source == "template"
        assert reply.text == "I'm listening."
