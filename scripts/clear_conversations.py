#!/usr/bin/env python3
"""
Clear everything stored for one journal date.

Removes every session's conversation state, the cached session context,
the memory-usage tracker and the transcript lines for the date.

Usage:
    python scripts/clear_conversations.py                 # today
    python scripts/clear_conversations.py --date 2026-01-15
    python scripts/clear_conversations.py --yes           # skip confirmation

WARNING: Deletes conversation data. Use for development/testing.
"""

import argparse
import asyncio
from datetime import date as date_type

import structlog

from journal.core.config import settings
from journal.persistence.cache import close_redis, get_redis
from journal.persistence.database import init_database
from journal.persistence.repositories import (
    ConversationStateRepository,
    SessionContextRepository,
    UtteranceRepository,
)
from journal.services.conversation_service import ConversationStateService

log = structlog.get_logger(__name__)


def build_service() -> ConversationStateService:
    client = get_redis()
    return ConversationStateService(
        state_repo=ConversationStateRepository(
            client, ttl_seconds=settings.conversation_state_ttl_seconds
        ),
        utterance_repo=UtteranceRepository(str(settings.database_path)),
        context_repo=SessionContextRepository(
            client,
            context_ttl_seconds=settings.session_context_ttl_seconds,
            tracker_ttl_seconds=settings.memory_tracker_ttl_seconds,
        ),
    )


async def clear_conversations(date: str, user_id: str, assume_yes: bool) -> None:
    """
    Clear one date after confirmation.

    Args:
        date: Journal date (YYYY-MM-DD)
        user_id: Owner of the memory-usage tracker
        assume_yes: Skip the interactive prompt
    """
    await init_database()
    service = build_service()

    try:
        keys = await service.state_repo.keys_for_date(date)
        print(f"Found {len(keys)} conversation state keys for {date}")

        if not assume_yes:
            confirm = input(f"Clear all conversation data for {date}? (yes/no): ")
            if confirm.lower() != "yes":
                print("Cancelled.")
                return

        removed = await service.clear_date(date, user_id)
        print(f"✓ Cleared {removed['conversations']} conversation state keys")
        print(f"✓ Cleared session context and memory tracker for {user_id}")
        print(f"✓ Deleted {removed['utterances']} transcript lines")
    finally:
        await close_redis()


def main() -> None:
    parser = argparse.ArgumentParser(description="Clear conversation data for a date")
    parser.add_argument(
        "--date",
        default=date_type.today().isoformat(),
        help="Journal date YYYY-MM-DD (default: today)",
    )
    parser.add_argument(
        "--user-id",
        default=settings.default_user_id,
        help="User whose memory tracker is cleared",
    )
    parser.add_argument("--yes", action="store_true", help="Do not ask for confirmation")
    args = parser.parse_args()

    log.info("clearing_conversations", date=args.date)
    asyncio.run(clear_conversations(args.date, args.user_id, args.yes))


if __name__ == "__main__":
    main()
