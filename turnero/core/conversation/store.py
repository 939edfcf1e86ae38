"""Append-only conversation history."""

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from turnero.models.database import ConversationTurn, TurnRole


class TurnStore:
    """Reads and appends ConversationTurn rows. Turns are never updated."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(
        self,
        session_id: str,
        role: TurnRole,
        content: str,
        appointment_id: Optional[uuid.UUID] = None,
    ) -> ConversationTurn:
        turn = ConversationTurn(
            session_id=session_id,
            role=role,
            content=content,
            appointment_id=appointment_id,
        )
        self.session.add(turn)
        await self.session.flush()
        return turn

    async def history(self, session_id: str, limit: Optional[int] = None) -> list[ConversationTurn]:
        """Turns of a session in arrival order, optionally only the last `limit`."""
        stmt = (
            select(ConversationTurn)
            .where(ConversationTurn.session_id == session_id)
            .order_by(ConversationTurn.id.desc())
        )
        if limit:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        turns = list(result.scalars().all())
        turns.reverse()
        return turns
