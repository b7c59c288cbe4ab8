"""
Conversation API routes.

Endpoints for conversation state lifecycle and turn processing.
"""

from fastapi import APIRouter, Query, status
import structlog

from journal.api.dependencies import ConversationServiceDep, UtteranceRepoDep
from journal.api.schemas import (
    DATE_PATTERN,
    ClearDateRequest,
    ClearDateResponse,
    ClearStateResponse,
    FinishSharingRequest,
    FinishSharingResponse,
    InitializeStateRequest,
    PatchStateRequest,
    PhaseRequest,
    ProcessMessageRequest,
    ProcessMessageResponse,
    RespondRequest,
    RespondResponse,
    StateResponse,
    TranscriptResponse,
    UtteranceSchema,
)
from journal.llm.prompts.instructions import build_agent_instructions

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/conversations", tags=["conversations"])


# ============ STATE LIFECYCLE ============


@router.post("/state", response_model=StateResponse)
async def initialize_state(request: InitializeStateRequest, service: ConversationServiceDep):
    """Create the conversation state for a session and date.

    Idempotent: an existing record is returned unchanged with created=false.
    """
    state, created = await service.initialize(
        session_id=request.session_id,
        date=request.date,
        user_id=request.user_id,
        yesterday_context=request.yesterday_context,
    )
    return StateResponse(state=state.to_wire(), created=created)


@router.get("/state", response_model=StateResponse)
async def get_state(
    service: ConversationServiceDep,
    session_id: str = Query(..., min_length=1),
    date: str = Query(..., pattern=DATE_PATTERN),
):
    """Return the state, or {"state": null} when absent or expired."""
    state = await service.get(session_id, date)
    return StateResponse(state=state.to_wire() if state else None)


@router.patch("/state", response_model=StateResponse)
async def patch_state(request: PatchStateRequest, service: ConversationServiceDep):
    """Merge a partial update into an existing record (404 when absent)."""
    state = await service.patch(request.session_id, request.date, request.updates)
    return StateResponse(state=state.to_wire())


@router.delete("/state", response_model=ClearStateResponse)
async def clear_state(
    service: ConversationServiceDep,
    session_id: str = Query(..., min_length=1),
    date: str = Query(..., pattern=DATE_PATTERN),
):
    """Delete the record. Idempotent."""
    removed = await service.clear(session_id, date)
    return ClearStateResponse(removed=removed)


# ============ TURNS ============


@router.post("/process-message", response_model=ProcessMessageResponse)
async def process_message(request: ProcessMessageRequest, service: ConversationServiceDep):
    """Run one user message through extract -> update -> decide.

    Returns the persisted state, the next move and fresh voice-agent
    instructions for the state's phase.
    """
    result = await service.process_message(
        session_id=request.session_id,
        date=request.date,
        message=request.user_message,
        last_question=request.last_question,
    )
    return ProcessMessageResponse(
        updated_state=result.state.to_wire(),
        next_move=result.next_move,
        extraction=result.extraction,
        instructions=build_agent_instructions(result.state),
        memory_enriched=result.memory_enriched,
        latency_ms=result.latency_ms,
    )


@router.post("/finish-sharing", response_model=FinishSharingResponse)
async def finish_sharing(request: FinishSharingRequest, service: ConversationServiceDep):
    """Record the initial share and move the session to reflecting."""
    state, _ = await service.finish_sharing(
        session_id=request.session_id,
        date=request.date,
        full_sharing=request.full_sharing,
        mood=request.mood,
    )
    return FinishSharingResponse(
        updated_state=state.to_wire(),
        anchor=state.anchor,
        tone=state.tone,
        instructions=build_agent_instructions(state),
    )


@router.post("/phase", response_model=StateResponse)
async def advance_phase(request: PhaseRequest, service: ConversationServiceDep):
    """Move session_phase forward (409 on a backward move)."""
    state = await service.advance_phase(request.session_id, request.date, request.phase)
    return StateResponse(state=state.to_wire())


@router.post("/respond", response_model=RespondResponse)
async def respond(request: RespondRequest, service: ConversationServiceDep):
    """Full chat turn: update state and return the assistant's reply."""
    result = await service.respond(
        session_id=request.session_id,
        date=request.date,
        message=request.message,
        last_question=request.last_question,
    )
    return RespondResponse(
        reply=result.reply,
        source=result.reply_source,
        degraded=result.degraded,
        updated_state=result.state.to_wire() if result.state else None,
        next_move=result.next_move,
    )


# ============ TRANSCRIPT / MAINTENANCE ============


@router.get("/transcript", response_model=TranscriptResponse)
async def get_transcript(
    utterance_repo: UtteranceRepoDep,
    session_id: str = Query(..., min_length=1),
    date: str = Query(..., pattern=DATE_PATTERN),
):
    """Transcript of a session's day in spoken order."""
    utterances = await utterance_repo.get_transcript(session_id, date)
    return TranscriptResponse(
        session_id=session_id,
        date=date,
        utterances=[
            UtteranceSchema(
                id=u.id,
                speaker=u.speaker.value,
                text=u.text,
                created_at=u.created_at.isoformat(),
            )
            for u in utterances
        ],
    )


@router.post("/clear-date", response_model=ClearDateResponse, status_code=status.HTTP_200_OK)
async def clear_date(request: ClearDateRequest, service: ConversationServiceDep):
    """Remove every conversation record, cached context and transcript line for a date."""
    removed = await service.clear_date(request.date, request.user_id)
    return ClearDateResponse(**removed)
