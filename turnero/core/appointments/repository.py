"""Appointment persistence on top of an async SQLAlchemy session."""

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from turnero.models.database import Appointment


class AppointmentRepository:
    """Reads and writes Appointment rows. Only the lifecycle manager writes."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, appointment: Appointment) -> Appointment:
        self.session.add(appointment)
        await self.session.flush()
        return appointment

    async def get_by_token(
        self,
        token: str,
        for_update: bool = False,
    ) -> Optional[Appointment]:
        """Look up by confirmation token.

        With for_update the row stays locked until the next commit
        (ignored by backends without row locks, e.g. SQLite).
        """
        stmt = select(Appointment).where(Appointment.token == token)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_id(self, appointment_id: uuid.UUID) -> Optional[Appointment]:
        return await self.session.get(Appointment, appointment_id)

    async def token_exists(self, token: str) -> bool:
        result = await self.session.execute(
            select(Appointment.id).where(Appointment.token == token)
        )
        return result.first() is not None

    async def list_for_email(self, email: str) -> list[Appointment]:
        result = await self.session.execute(
            select(Appointment)
            .where(Appointment.email == email.lower())
            .order_by(Appointment.scheduled_at)
        )
        return list(result.scalars().all())

    async def commit(self) -> None:
        await self.session.commit()
