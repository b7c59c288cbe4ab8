"""
Conversation state orchestration service.

Main entry point for journaling sessions. Owns the lifecycle of the
per-(session_id, date) ConversationState and delegates turn processing to
a pipeline of composable stages:

    process_message: load -> extract -> update/decide/enrich (one write)
    respond:         load -> save utterance -> extract -> update/decide/enrich
                     -> generate reply -> save reply

Every state change is published on the ConversationEventBus.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import pydantic
import structlog

from journal.core.config import settings
from journal.core.exceptions import (
    CacheUnavailableError,
    ConfigurationError,
    ConversationStateNotFoundError,
    ImmutableFieldError,
    InvalidPhaseTransitionError,
    ValidationError,
)
from journal.domain.models.conversation_state import (
    ConversationMode,
    ConversationState,
    SessionPhase,
    normalize_update_keys,
)
from journal.domain.models.extraction import ExtractionResult, NextAIMove
from journal.persistence.repositories.conversation_state_repo import (
    ConversationStateRepository,
)
from journal.persistence.repositories.session_context_repo import (
    SessionContextRepository,
)
from journal.persistence.repositories.utterance_repo import UtteranceRepository
from journal.services.events import (
    ConversationEvent,
    ConversationEventBus,
    ConversationEventType,
)
from journal.services.extraction_service import extract_from_message
from journal.services.memory_service import MemoryService
from journal.services.response_service import ResponseService
from journal.services.state_updates import theme_move
from journal.services.turn_pipeline import PipelineContext, TurnPipeline, TurnResult
from journal.services.turn_pipeline.stages import (
    ExtractionStage,
    ResponseGenerationStage,
    ResponseSavingStage,
    StateLoadingStage,
    StateUpdateStage,
    UtteranceSavingStage,
)

log = structlog.get_logger(__name__)


APOLOGY_REPLY = "Sorry, I'm having a little trouble right now. Could you say that again?"

# Fields a patch may never change
IDENTITY_FIELDS = ("session_id", "date", "user_id", "created_at")


@dataclass
class ChatTurnResult:
    """Outcome of respond(): always carries a reply."""

    reply: str
    reply_source: str  # greeting | farewell | llm | template | apology
    state: Optional[ConversationState] = None
    next_move: Optional[NextAIMove] = None
    extraction: Optional[ExtractionResult] = None
    degraded: bool = False
    latency_ms: int = 0


class ConversationStateService:
    """Orchestrates conversation state for journaling sessions.

    State operations (initialize, get, patch, clear) go straight to the
    repository; turn operations run a TurnPipeline.
    """

    def __init__(
        self,
        state_repo: ConversationStateRepository,
        utterance_repo: Optional[UtteranceRepository] = None,
        memory_service: Optional[MemoryService] = None,
        response_service: Optional[ResponseService] = None,
        context_repo: Optional[SessionContextRepository] = None,
        event_bus: Optional[ConversationEventBus] = None,
    ):
        """
        Initialize service and build its pipelines.

        Args:
            state_repo: Conversation state repository
            utterance_repo: Transcript store (required for respond())
            memory_service: Theme memory enrichment (None disables it)
            response_service: Reply generator (required for respond())
            context_repo: Session context / memory tracker store
            event_bus: Bus for state-change events (a private one if None)
        """
        self.state_repo = state_repo
        self.utterance_repo = utterance_repo
        self.memory_service = memory_service
        self.response_service = response_service
        self.context_repo = context_repo
        self.events = event_bus or ConversationEventBus()

        self.turn_pipeline = TurnPipeline(
            stages=[
                StateLoadingStage(state_repo=state_repo),
                ExtractionStage(),
                StateUpdateStage(state_repo=state_repo, memory_service=memory_service),
            ]
        )
        self.chat_pipeline = self._build_chat_pipeline()

        log.info(
            "conversation_service_initialized",
            memory_enabled=memory_service is not None,
            chat_enabled=self.chat_pipeline is not None,
        )

    def _build_chat_pipeline(self) -> Optional[TurnPipeline]:
        if self.utterance_repo is None or self.response_service is None:
            return None
        return TurnPipeline(
            stages=[
                StateLoadingStage(
                    state_repo=self.state_repo, utterance_repo=self.utterance_repo
                ),
                UtteranceSavingStage(utterance_repo=self.utterance_repo),
                ExtractionStage(),
                StateUpdateStage(
                    state_repo=self.state_repo, memory_service=self.memory_service
                ),
                ResponseGenerationStage(response_service=self.response_service),
                ResponseSavingStage(utterance_repo=self.utterance_repo),
            ]
        )

    # =========================================================================
    # State lifecycle
    # =========================================================================

    async def initialize(
        self,
        session_id: str,
        date: str,
        user_id: Optional[str] = None,
        yesterday_context: Optional[List[str]] = None,
    ) -> Tuple[ConversationState, bool]:
        """
        Create the state for (session_id, date) unless it already exists.

        Returns:
            (state, created). An existing record is returned unchanged with
            created=False.
        """
        existing = await self.state_repo.get(session_id, date)
        if existing is not None:
            log.info("conversation_state_exists", session_id=session_id, date=date)
            return existing, False

        state = ConversationState.initial(
            session_id=session_id,
            date=date,
            user_id=user_id or settings.default_user_id,
            context=yesterday_context,
        )
        await self.state_repo.save(state)

        log.info(
            "conversation_state_initialized",
            session_id=session_id,
            date=date,
            context_items=len(state.yesterday_context),
        )
        await self._publish(ConversationEventType.INITIALIZED, state)
        return state, True

    async def get(self, session_id: str, date: str) -> Optional[ConversationState]:
        return await self.state_repo.get(session_id, date)

    async def require(self, session_id: str, date: str) -> ConversationState:
        """
        Load state or fail.

        Raises:
            ConversationStateNotFoundError: If it was never initialized or expired
        """
        state = await self.state_repo.get(session_id, date)
        if state is None:
            raise ConversationStateNotFoundError(session_id, date)
        return state

    async def clear(self, session_id: str, date: str) -> bool:
        """Delete the record. Idempotent; returns whether a key was removed."""
        removed = await self.state_repo.delete(session_id, date)
        log.info("conversation_state_cleared", session_id=session_id, date=date, removed=removed)
        await self.events.publish(
            ConversationEvent(
                type=ConversationEventType.CLEARED,
                session_id=session_id,
                date=date,
                payload={"removed": removed},
            )
        )
        return removed

    async def clear_date(self, date: str, user_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Remove everything stored for a date: every session's state, the
        session context, the memory tracker and the transcript.

        Returns:
            Counts of what was removed
        """
        user_id = user_id or settings.default_user_id
        conversations = await self.state_repo.delete_for_date(date)

        if self.context_repo is not None:
            await self.context_repo.delete_context(date)
            await self.context_repo.delete_tracker(user_id, date)

        utterances = 0
        if self.utterance_repo is not None:
            utterances = await self.utterance_repo.delete_for_date(date)

        log.info(
            "conversation_date_cleared",
            date=date,
            conversations=conversations,
            utterances=utterances,
        )
        await self.events.publish(
            ConversationEvent(
                type=ConversationEventType.CLEARED,
                session_id=None,
                date=date,
                payload={"conversations": conversations, "utterances": utterances},
            )
        )
        return {"date": date, "conversations": conversations, "utterances": utterances}

    # =========================================================================
    # Updates
    # =========================================================================

    async def patch(
        self, session_id: str, date: str, updates: Dict[str, Any]
    ) -> ConversationState:
        """
        Merge a partial update into the stored record.

        Raises:
            ConversationStateNotFoundError: No record for the key
            ValidationError: Unknown field, identity change, or an update that
                breaks a state invariant
            InvalidPhaseTransitionError: session_phase would move backwards
            ImmutableFieldError: user_initial_sharing is already set
        """
        current = await self.require(session_id, date)
        normalized = normalize_update_keys(updates)

        unknown = sorted(set(normalized) - set(ConversationState.model_fields))
        if unknown:
            raise ValidationError(f"Unknown conversation state fields: {unknown}")

        for name in IDENTITY_FIELDS:
            if name in normalized and normalized[name] != getattr(current, name):
                raise ValidationError(f"Field '{name}' cannot be changed")

        if "session_phase" in normalized:
            self._check_phase(current, normalized["session_phase"])
        if "user_initial_sharing" in normalized:
            self._check_initial_sharing(current, normalized["user_initial_sharing"])

        return await self._write(current, normalized)

    async def process_message(
        self,
        session_id: str,
        date: str,
        message: str,
        last_question: Optional[str] = None,
    ) -> TurnResult:
        """
        Run one user turn through extract -> update -> decide.

        Returns:
            TurnResult with the persisted state and the next move

        Raises:
            ConversationStateNotFoundError: If the state was never initialized
        """
        log.info("processing_message", session_id=session_id, input_length=len(message))

        context = PipelineContext(
            session_id=session_id,
            date=date,
            user_input=message,
            last_question=last_question or None,
        )
        result = await self.turn_pipeline.execute(context)
        await self._publish(
            ConversationEventType.UPDATED,
            result.state,
            fields=result.updated_fields,
            action=result.next_move.action.value,
        )
        return result

    async def finish_sharing(
        self,
        session_id: str,
        date: str,
        full_sharing: str,
        mood: Optional[str] = None,
    ) -> Tuple[ConversationState, ExtractionResult]:
        """
        Close the initial free-form share and move to the reflecting phase.

        Extracts theme and tone from the whole share, sets the anchor if it
        is still empty, records the share (once) and mood, and enriches the
        context with memories for a newly set anchor. One write.

        Raises:
            ConversationStateNotFoundError: No record for the key
            InvalidPhaseTransitionError: Session is already past reflecting
            ImmutableFieldError: A different initial share was already stored
        """
        current = await self.require(session_id, date)
        self._check_phase(current, SessionPhase.REFLECTING)
        self._check_initial_sharing(current, full_sharing)

        extraction = extract_from_message(full_sharing)
        updates: Dict[str, Any] = {
            "session_phase": SessionPhase.REFLECTING,
            "user_initial_sharing": full_sharing,
            "mood": mood or current.mood,
        }
        if extraction.tone:
            updates["tone"] = extraction.tone
        if extraction.touched_theme:
            updates.update(theme_move(current, extraction.touched_theme))
            if current.anchor is None:
                updates["anchor"] = extraction.touched_theme
                if self.memory_service is not None:
                    enriched = await self.memory_service.enrich_context(
                        current.yesterday_context,
                        extraction.touched_theme,
                        current.user_id,
                    )
                    if enriched != current.yesterday_context:
                        updates["yesterday_context"] = enriched

        state = await self._write(current, updates)
        log.info(
            "initial_sharing_finished",
            session_id=session_id,
            anchor=state.anchor,
            tone=state.tone,
            words=len(full_sharing.split()),
        )
        return state, extraction

    async def advance_phase(
        self, session_id: str, date: str, phase: SessionPhase
    ) -> ConversationState:
        """
        Move session_phase forward (staying in place is allowed).

        Raises:
            ConversationStateNotFoundError: No record for the key
            InvalidPhaseTransitionError: phase is behind the current one
        """
        current = await self.require(session_id, date)
        self._check_phase(current, phase)
        updates: Dict[str, Any] = {"session_phase": phase}
        if phase == SessionPhase.CLOSED:
            updates["conversation_mode"] = ConversationMode.CLOSING
        return await self._write(current, updates)

    async def close_session(self, session_id: str, date: str) -> ConversationState:
        return await self.advance_phase(session_id, date, SessionPhase.CLOSED)

    # =========================================================================
    # Chat turn
    # =========================================================================

    async def respond(
        self,
        session_id: str,
        date: str,
        message: str,
        last_question: Optional[str] = None,
    ) -> ChatTurnResult:
        """
        Full chat turn: update state, generate and store a reply.

        Cache failures do not surface: the user gets an apologetic line.

        Raises:
            ConversationStateNotFoundError: If the state was never initialized
            ConfigurationError: If the service was built without a transcript
                store or response generator
        """
        if self.chat_pipeline is None:
            raise ConfigurationError(
                "respond() needs utterance_repo and response_service"
            )

        context = PipelineContext(
            session_id=session_id,
            date=date,
            user_input=message,
            last_question=last_question or None,
        )
        try:
            result = await self.chat_pipeline.execute(context)
        except (CacheUnavailableError, OSError) as e:
            log.error(
                "chat_turn_failed",
                session_id=session_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return ChatTurnResult(reply=APOLOGY_REPLY, reply_source="apology", degraded=True)

        await self._publish(
            ConversationEventType.UPDATED,
            result.state,
            fields=result.updated_fields,
            action=result.next_move.action.value,
        )
        return ChatTurnResult(
            reply=result.reply or APOLOGY_REPLY,
            reply_source=result.reply_source or "apology",
            state=result.state,
            next_move=result.next_move,
            extraction=result.extraction,
            latency_ms=result.latency_ms,
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _check_phase(current: ConversationState, target: Any) -> None:
        try:
            target_phase = SessionPhase(target)
        except ValueError as e:
            raise ValidationError(f"Unknown session phase: {target!r}") from e
        if not current.session_phase.can_transition_to(target_phase):
            raise InvalidPhaseTransitionError(
                f"Cannot move session phase from {current.session_phase.value} "
                f"back to {target_phase.value}"
            )

    @staticmethod
    def _check_initial_sharing(current: ConversationState, value: Any) -> None:
        if current.user_initial_sharing is not None and value != current.user_initial_sharing:
            raise ImmutableFieldError("user_initial_sharing is already set")

    async def _write(
        self, current: ConversationState, updates: Dict[str, Any]
    ) -> ConversationState:
        """Validate, save and publish one merged write.

        Read-modify-write with no lock: a concurrent write to the same key
        between require() and save() is overwritten (last write wins).
        """
        try:
            state = current.merged(updates)
        except pydantic.ValidationError as e:
            raise ValidationError(f"Invalid conversation state update: {e}") from e

        await self.state_repo.save(state)
        await self._publish(ConversationEventType.UPDATED, state, fields=sorted(updates))
        if state.session_phase != current.session_phase:
            await self._publish(
                ConversationEventType.PHASE_CHANGED,
                state,
                previous=current.session_phase.value,
                current=state.session_phase.value,
            )
        return state

    async def _publish(
        self, event_type: ConversationEventType, state: ConversationState, **payload: Any
    ) -> None:
        await self.events.publish(
            ConversationEvent(
                type=event_type,
                session_id=state.session_id,
                date=state.date,
                payload=payload,
            )
        )
