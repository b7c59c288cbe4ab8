"""
Conversation event bus.

In-process publish/subscribe for conversation state changes. Subscribers
receive a Subscription handle and detach through it; there is no shared
module-level listener list.

Event types:
    - initialized: a new state record was created
    - updated: a turn or patch changed the record
    - phase_changed: session_phase moved forward
    - cleared: a record (or a whole date) was removed
"""

import asyncio
import inspect
from dataclasses import dataclass, field
from enum import Enum
from itertools import count
from typing import Any, Awaitable, Callable, Dict, Optional, Union

import structlog

from journal.domain.models.conversation_state import now_ms

log = structlog.get_logger(__name__)


class ConversationEventType(str, Enum):
    INITIALIZED = "initialized"
    UPDATED = "updated"
    PHASE_CHANGED = "phase_changed"
    CLEARED = "cleared"


@dataclass(frozen=True)
class ConversationEvent:
    """Something that happened to a (session_id, date) record."""

    type: ConversationEventType
    session_id: Optional[str]
    date: str
    payload: Dict[str, Any] = field(default_factory=dict)
    timestamp: int = field(default_factory=now_ms)


EventHandler = Callable[[ConversationEvent], Union[None, Awaitable[None]]]


class Subscription:
    """Handle returned by ConversationEventBus.subscribe()."""

    def __init__(self, bus: "ConversationEventBus", subscription_id: int):
        self._bus = bus
        self.id = subscription_id

    @property
    def active(self) -> bool:
        return self._bus.has_subscription(self.id)

    def unsubscribe(self) -> None:
        """Detach the handler. Safe to call more than once."""
        self._bus._remove(self.id)


class ConversationEventBus:
    """Fan-out of ConversationEvents to registered handlers.

    Handlers may be plain functions or coroutines. A failing handler is
    logged and does not stop delivery to the others.
    """

    def __init__(self):
        self._handlers: Dict[int, tuple] = {}
        self._ids = count(1)

    def subscribe(
        self,
        handler: EventHandler,
        event_type: Optional[ConversationEventType] = None,
    ) -> Subscription:
        """
        Register a handler.

        Args:
            handler: Called with each matching event
            event_type: Only deliver this type (None = every event)

        Returns:
            Subscription handle
        """
        subscription_id = next(self._ids)
        self._handlers[subscription_id] = (handler, event_type)
        return Subscription(self, subscription_id)

    def has_subscription(self, subscription_id: int) -> bool:
        return subscription_id in self._handlers

    def _remove(self, subscription_id: int) -> None:
        self._handlers.pop(subscription_id, None)

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers)

    async def publish(self, event: ConversationEvent) -> int:
        """
        Deliver an event to matching handlers, in subscription order.

        Returns:
            Number of handlers that ran without raising
        """
        delivered = 0
        # Copy: handlers may unsubscribe while being called
        for subscription_id, (handler, event_type) in list(self._handlers.items()):
            if event_type is not None and event_type != event.type:
                continue
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
                delivered += 1
            except asyncio.CancelledError:
                raise
            except Exception as e:
                log.warning(
                    "event_handler_failed",
                    event_type=event.type.value,
                    subscription_id=subscription_id,
                    error=str(e),
                )
        return delivered
