"""
Conversation orchestrator.

One call per inbound chat message:

1. Load recent history and append the user turn
2. Build system instruction + transcript + new message
3. Ask the chat model (single round-trip)
4. Extract an action block, if any, and hand it to the lifecycle
5. Append the visible assistant turn and return it

A model failure produces a fixed apology. The user re-sending the message
is the retry.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Protocol

from turnero.config import get_settings
from turnero.core.actions import (
    CancelAppointment,
    CreateAppointment,
    ExtractionResult,
    extract_action,
)
from turnero.core.appointments import (
    AppointmentDetails,
    AppointmentLifecycle,
    LifecycleOutcome,
)
from turnero.core.clock import local_now
from turnero.core.errors import (
    ExternalServiceError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from turnero.models.database import Appointment, TurnRole
from .prompt import build_prompt, build_system_prompt
from .store import TurnStore

logger = logging.getLogger(__name__)

APOLOGY = "Lo siento, tuve un problema. ¿Podrías repetir?"

INCOMPLETE_ACTION_NOTE = (
    "No pude registrar el pedido porque faltan datos o la fecha no tiene el "
    "formato correcto. ¿Los revisamos juntos?"
)


class TextGenerator(Protocol):
    async def generate(self, prompt: str, system_prompt: Optional[str] = None): ...


@dataclass
class TurnReply:
    """What the user sees, plus what the turn did."""

    text: str
    appointment_id: Optional[uuid.UUID] = None
    action: Optional[str] = None
    outcome: Optional[LifecycleOutcome] = None


class ConversationOrchestrator:
    """Sole writer of conversation turns."""

    def __init__(
        self,
        llm: TextGenerator,
        turns: TurnStore,
        lifecycle: AppointmentLifecycle,
        clock: Optional[Callable[[], datetime]] = None,
        history_limit: Optional[int] = None,
    ):
        self.llm = llm
        self.turns = turns
        self.lifecycle = lifecycle
        self._clock = clock or local_now
        self.history_limit = history_limit or get_settings().chat_history_limit

    async def handle_turn(
        self,
        session_id: str,
        user_text: str,
        user_email: Optional[str] = None,
    ) -> TurnReply:
        """
        Process one user message.

        Args:
            session_id: Chat session the turn belongs to
            user_text: Raw user message
            user_email: Logged-in principal, default contact email

        Returns:
            TurnReply with the marker-free assistant text

        Raises:
            ValidationError: empty message
        """
        user_text = (user_text or "").strip()
        if not user_text:
            raise ValidationError("El mensaje está vacío")

        history = await self.turns.history(session_id, limit=self.history_limit)
        await self.turns.append(session_id, TurnRole.USER, user_text)

        system_prompt = build_system_prompt(
            today=self._clock(),
            user_email=user_email,
            appointments=await self._active_appointments(user_email),
        )
        prompt = build_prompt(history, user_text)

        try:
            response = await self.llm.generate(prompt, system_prompt=system_prompt)
        except ExternalServiceError as e:
            logger.error(f"Chat model failed for session {session_id}: {e}")
            await self.turns.append(session_id, TurnRole.ASSISTANT, APOLOGY)
            return TurnReply(text=APOLOGY)

        extraction = extract_action(response.content)
        reply = await self._apply(extraction, user_email)

        await self.turns.append(
            session_id,
            TurnRole.ASSISTANT,
            reply.text,
            appointment_id=reply.appointment_id,
        )
        return reply

    async def _apply(self, extraction: ExtractionResult, user_email: Optional[str]) -> TurnReply:
        text = extraction.visible_text.strip()
        action = extraction.action

        if action is None:
            if extraction.has_block:
                return TurnReply(
                    text=_join(text, INCOMPLETE_ACTION_NOTE),
                    action=extraction.kind.value,
                )
            return TurnReply(text=text)

        if isinstance(action, CreateAppointment):
            note, appointment, outcome = await self._create(action, user_email)
        elif isinstance(action, CancelAppointment):
            note, appointment, outcome = await self._cancel(action, user_email)
        else:
            raise TypeError(f"Unsupported action: {action!r}")

        return TurnReply(
            text=_join(text, note),
            appointment_id=appointment.id if appointment else None,
            action=action.kind.value,
            outcome=outcome,
        )

    async def _create(
        self,
        action: CreateAppointment,
        user_email: Optional[str],
    ) -> tuple[str, Optional[Appointment], Optional[LifecycleOutcome]]:
        # The signed-in email is the contact; the block's EMAIL only for anonymous turns
        if user_email and action.email and action.email.strip().lower() != user_email.lower():
            logger.info("Block email differs from the signed-in user; using the signed-in one")

        details = AppointmentDetails(
            name=action.name,
            email=user_email or action.email or "",
            scheduled_at=action.scheduled_at,
            description=action.description,
        )

        try:
            result = await self.lifecycle.create(details)
        except ValidationError as e:
            logger.info(f"Appointment request rejected: {e}")
            return f"No pude registrar el turno: {e}.", None, None

        appointment = result.appointment
        note = (
            f"✅ Tu turno quedó registrado para el {appointment.scheduled_at:%d/%m/%Y} "
            f"a las {appointment.scheduled_at:%H:%M} (n.º {appointment.id})."
        )
        if result.sync.email_sent:
            note += f" Te enviamos un email a {appointment.email} para confirmarlo."
        else:
            note += (
                " No pudimos enviarte el email de confirmación; "
                "el turno igualmente quedó guardado como pendiente."
            )
        return note, appointment, result.outcome

    async def _cancel(
        self,
        action: CancelAppointment,
        user_email: Optional[str],
    ) -> tuple[str, Optional[Appointment], Optional[LifecycleOutcome]]:
        if not user_email:
            return "Necesito que inicies sesión para cancelar un turno.", None, None

        try:
            appointment = await self.lifecycle.get_for_owner(action.appointment_id, user_email)
            result = await self.lifecycle.cancel(appointment.token, action.reason)
        except NotFoundError:
            return "No encontré ese turno entre los tuyos.", None, None
        except (ValidationError, InvalidTransitionError) as e:
            return f"No pude cancelar el turno: {e}.", None, None

        when = result.appointment.scheduled_at.strftime("%d/%m/%Y %H:%M")
        if result.outcome is LifecycleOutcome.ALREADY_CANCELLED:
            note = f"El turno del {when} ya estaba cancelado."
        else:
            note = f"Listo, cancelamos tu turno del {when}."
        return note, result.appointment, result.outcome

    async def _active_appointments(self, user_email: Optional[str]) -> list[Appointment]:
        if not user_email:
            return []
        now = self._clock()
        return [
            appt for appt in await self.lifecycle.list_for_email(user_email)
            if not appt.is_cancelled and appt.scheduled_at > now
        ]


def _join(text: str, note: str) -> str:
    return f"{text}\n\n{note}" if text else note
