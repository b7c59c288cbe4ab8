"""Utterance repository for transcript storage."""

from datetime import datetime
from typing import List

import aiosqlite

from journal.domain.models.utterance import Speaker, Utterance


class UtteranceRepository:
    """Repository for transcript CRUD operations."""

    def __init__(self, db_path: str):
        self.db_path = db_path

    async def save(self, utterance: Utterance) -> Utterance:
        """Save utterance to database.

        Args:
            utterance: Utterance model to save

        Returns:
            Saved Utterance as read back from the database
        """
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row

            await db.execute(
                """INSERT INTO utterances (
                    id, session_id, date, speaker, text, created_at
                ) VALUES (?, ?, ?, ?, ?, ?)""",
                (
                    utterance.id,
                    utterance.session_id,
                    utterance.date,
                    utterance.speaker.value,
                    utterance.text,
                    utterance.created_at.isoformat(),
                ),
            )
            await db.commit()

            cursor = await db.execute(
                "SELECT * FROM utterances WHERE id = ?", (utterance.id,)
            )
            row = await cursor.fetchone()
            if not row:
                raise ValueError(f"Utterance {utterance.id} not found after save")
            return self._row_to_utterance(row)

    async def get_transcript(
        self, session_id: str, date: str, limit: int = 200
    ) -> List[Utterance]:
        """Get a session's transcript for a date in spoken order.

        Args:
            session_id: Session ID
            date: Journal date (YYYY-MM-DD)
            limit: Maximum number of utterances to return

        Returns:
            List of Utterance objects ordered by created_at
        """
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                """SELECT * FROM utterances
                   WHERE session_id = ? AND date = ?
                   ORDER BY created_at ASC, rowid ASC
                   LIMIT ?""",
                (session_id, date, limit),
            )
            rows = await cursor.fetchall()
            return [self._row_to_utterance(row) for row in rows]

    async def delete_for_date(self, date: str) -> int:
        """Delete every transcript line for a date.

        Returns:
            Number of rows deleted
        """
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute("DELETE FROM utterances WHERE date = ?", (date,))
            await db.commit()
            return cursor.rowcount

    def _row_to_utterance(self, row: aiosqlite.Row) -> Utterance:
        """Convert a database row to an Utterance model."""
        return Utterance(
            id=row["id"],
            session_id=row["session_id"],
            date=row["date"],
            speaker=Speaker(row["speaker"]),
            text=row["text"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )
