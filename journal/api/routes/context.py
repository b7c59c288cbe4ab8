"""
Session context routes.

Loads the long-term memories a new session starts with.
"""

from typing import Optional

from fastapi import APIRouter, Query
import structlog

from journal.api.dependencies import MemoryServiceDep
from journal.api.schemas import DATE_PATTERN, SessionContextResponse
from journal.core.config import settings

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/context", tags=["context"])


@router.get("", response_model=SessionContextResponse)
async def get_session_context(
    memory_service: MemoryServiceDep,
    date: str = Query(..., pattern=DATE_PATTERN),
    user_id: Optional[str] = Query(default=None),
):
    """Memories for the day before date, served from the cache when warm."""
    context = await memory_service.load_session_context(
        date, user_id or settings.default_user_id
    )
    source = context.pop("source")
    return SessionContextResponse(source=source, date=context["date"], context=context)
