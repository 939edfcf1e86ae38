"""
Database Models

SQLAlchemy ORM models for appointments (turnos) and the chat history that
produced them.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlalchemy import (
    DateTime, ForeignKey, Index, Integer, String, Text, Uuid,
    Enum as SQLEnum, text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from turnero.core.clock import utcnow_naive


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


class TimestampMixin:
    """Mixin that adds created_at and updated_at timestamp columns."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow_naive,
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow_naive,
        onupdate=utcnow_naive,
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )


class AppointmentStatus(str, Enum):
    """Appointment lifecycle states.

    PENDING -> CONFIRMED, PENDING -> CANCELLED, CONFIRMED -> CANCELLED.
    CONFIRMED never follows CANCELLED.
    """
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class TurnRole(str, Enum):
    """Author of a conversation turn."""
    USER = "user"
    ASSISTANT = "assistant"


class Appointment(Base, TimestampMixin):
    """
    Appointment model (turno).

    The token is generated once at creation and authorizes the public
    confirm/cancel links for the whole life of the record.
    """

    __tablename__ = "appointments"
    __table_args__ = (
        Index("idx_appointment_token", "token", unique=True),
        Index("idx_appointment_email", "email"),
        Index("idx_appointment_status", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    scheduled_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[AppointmentStatus] = mapped_column(
        SQLEnum(AppointmentStatus),
        default=AppointmentStatus.PENDING,
        nullable=False
    )
    cancellation_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    token: Mapped[str] = mapped_column(String(64), nullable=False)
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    calendar_event_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    sheet_row_ref: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Relationships
    turns: Mapped[List["ConversationTurn"]] = relationship(
        "ConversationTurn",
        back_populates="appointment"
    )

    @property
    def is_confirmed(self) -> bool:
        return self.status == AppointmentStatus.CONFIRMED

    @property
    def is_cancelled(self) -> bool:
        return self.status == AppointmentStatus.CANCELLED

    def __repr__(self) -> str:
        return (
            f"<Appointment(id={self.id}, scheduled_at={self.scheduled_at}, "
            f"status={self.status.value})>"
        )


class ConversationTurn(Base):
    """
    Conversation turn.

    Append-only: one row per inbound user message and per outbound
    assistant message. Ordered by the autoincrement id.
    """

    __tablename__ = "conversation_turns"
    __table_args__ = (
        Index("idx_turn_session", "session_id", "id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[str] = mapped_column(String(64), nullable=False)
    role: Mapped[TurnRole] = mapped_column(SQLEnum(TurnRole), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    appointment_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("appointments.id", ondelete="SET NULL"),
        nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow_naive,
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )

    # Relationships
    appointment: Mapped[Optional["Appointment"]] = relationship(
        "Appointment",
        back_populates="turns"
    )

    def __repr__(self) -> str:
        return (
            f"<ConversationTurn(id={self.id}, session_id='{self.session_id}', "
            f"role={self.role.value})>"
        )
