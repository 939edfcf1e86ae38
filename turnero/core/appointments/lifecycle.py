"""
Appointment lifecycle.

Owns the pending -> confirmed / cancelled state machine:

    PENDING ──confirm──> CONFIRMED
       │                    │
       └──────cancel────────┴──> CANCELLED

Confirmed and cancelled only move forward; cancelling a confirmed
appointment is allowed, confirming a cancelled one is not. Repeating the
request that produced the current state is reported, not raised.

State is committed before any external call. Calendar, spreadsheet and
mail failures are logged and recorded in the SyncReport; they never undo
or block a transition.
"""

import logging
import re
import secrets
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, Optional, Protocol

from turnero.core.clock import local_now, to_local_naive
from turnero.core.errors import InvalidTransitionError, NotFoundError, ValidationError
from turnero.infra.google import SyncResult
from turnero.models.database import Appointment, AppointmentStatus
from .repository import AppointmentRepository

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32
MAX_TOKEN_ATTEMPTS = 5

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class CalendarSync(Protocol):
    async def create_event(self, appointment: Appointment) -> SyncResult: ...

    async def delete_event(self, event_id: str) -> SyncResult: ...


class SpreadsheetSync(Protocol):
    async def append_row(self, appointment: Appointment) -> SyncResult: ...

    async def update_status(
        self,
        row_ref: str,
        status: AppointmentStatus,
        reason: Optional[str] = None,
    ) -> SyncResult: ...


class Notifier(Protocol):
    async def send_created(self, appointment: Appointment) -> bool: ...

    async def send_cancelled(self, appointment: Appointment) -> bool: ...


class LifecycleOutcome(str, Enum):
    """What a lifecycle call did."""

    CREATED = "created"
    CONFIRMED = "confirmed"
    ALREADY_CONFIRMED = "already_confirmed"
    CANCELLED = "cancelled"
    ALREADY_CANCELLED = "already_cancelled"


@dataclass
class AppointmentDetails:
    """Input for creating an appointment."""

    name: str
    email: str
    scheduled_at: datetime
    description: str


@dataclass
class SyncReport:
    """Results of the external calls made after a transition.

    None means the call was not attempted.
    """

    calendar: Optional[SyncResult] = None
    spreadsheet: Optional[SyncResult] = None
    email_sent: Optional[bool] = None

    @property
    def all_ok(self) -> bool:
        results = [r.success for r in (self.calendar, self.spreadsheet) if r is not None]
        if self.email_sent is not None:
            results.append(self.email_sent)
        return all(results)


@dataclass
class LifecycleResult:
    """Appointment after the call, plus what happened."""

    appointment: Appointment
    outcome: LifecycleOutcome
    sync: SyncReport = field(default_factory=SyncReport)

    @property
    def changed(self) -> bool:
        return self.outcome not in (
            LifecycleOutcome.ALREADY_CONFIRMED,
            LifecycleOutcome.ALREADY_CANCELLED,
        )


class AppointmentLifecycle:
    """Sole writer of appointment state."""

    def __init__(
        self,
        repository: AppointmentRepository,
        calendar: CalendarSync,
        spreadsheet: SpreadsheetSync,
        notifier: Notifier,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.repository = repository
        self.calendar = calendar
        self.spreadsheet = spreadsheet
        self.notifier = notifier
        self._clock = clock or local_now

    # === Commands ===

    async def create(self, details: AppointmentDetails) -> LifecycleResult:
        """
        Create a pending appointment and sync it out.

        Raises:
            ValidationError: blank field, malformed email or a time that
                is not strictly in the future. Nothing is persisted.
        """
        name = (details.name or "").strip()
        email = (details.email or "").strip().lower()
        description = (details.description or "").strip()

        blank = [
            label for label, value in
            (("nombre", name), ("email", email), ("descripcion", description))
            if not value
        ]
        if blank:
            raise ValidationError(f"Faltan datos obligatorios: {', '.join(blank)}")
        if not EMAIL_PATTERN.match(email):
            raise ValidationError(f"Email inválido: {email}")
        if details.scheduled_at is None:
            raise ValidationError("Falta la fecha y hora del turno")

        scheduled_at = to_local_naive(details.scheduled_at)
        now = self._clock()
        if scheduled_at <= now:
            raise ValidationError("La fecha y hora del turno ya pasó")

        appointment = Appointment(
            name=name,
            email=email,
            scheduled_at=scheduled_at,
            description=description,
            status=AppointmentStatus.PENDING,
            token=await self._new_token(),
        )
        await self.repository.add(appointment)
        await self.repository.commit()
        logger.info(f"Appointment {appointment.id} created for {scheduled_at:%Y-%m-%d %H:%M}")

        sync = SyncReport()
        sync.calendar = await self._sync(self.calendar.create_event(appointment), "calendar create", appointment)
        if sync.calendar.success and sync.calendar.reference:
            appointment.calendar_event_id = sync.calendar.reference

        sync.spreadsheet = await self._sync(self.spreadsheet.append_row(appointment), "sheet append", appointment)
        if sync.spreadsheet.success and sync.spreadsheet.reference:
            appointment.sheet_row_ref = sync.spreadsheet.reference

        sync.email_sent = await self._notify(self.notifier.send_created(appointment), "created mail", appointment)

        if appointment.calendar_event_id or appointment.sheet_row_ref:
            await self.repository.commit()

        return LifecycleResult(appointment, LifecycleOutcome.CREATED, sync)

    async def confirm(self, token: str) -> LifecycleResult:
        """
        Confirm a pending appointment.

        Raises:
            NotFoundError: unknown token
            InvalidTransitionError: the appointment was cancelled
        """
        appointment = await self._lookup(token)

        if appointment.is_cancelled:
            raise InvalidTransitionError("El turno fue cancelado y no puede confirmarse")
        if appointment.is_confirmed:
            logger.info(f"Appointment {appointment.id} already confirmed")
            return LifecycleResult(appointment, LifecycleOutcome.ALREADY_CONFIRMED)

        appointment.status = AppointmentStatus.CONFIRMED
        appointment.confirmed_at = self._clock()
        await self.repository.commit()
        logger.info(f"Appointment {appointment.id} confirmed")

        sync = SyncReport()
        if appointment.sheet_row_ref:
            sync.spreadsheet = await self._sync(
                self.spreadsheet.update_status(appointment.sheet_row_ref, AppointmentStatus.CONFIRMED),
                "sheet status",
                appointment,
            )

        return LifecycleResult(appointment, LifecycleOutcome.CONFIRMED, sync)

    async def cancel(self, token: str, reason: str) -> LifecycleResult:
        """
        Cancel a pending or confirmed appointment.

        Raises:
            NotFoundError: unknown token
            ValidationError: blank reason
        """
        appointment = await self._lookup(token)

        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("Indicá el motivo de la cancelación")

        if appointment.is_cancelled:
            logger.info(f"Appointment {appointment.id} already cancelled")
            return LifecycleResult(appointment, LifecycleOutcome.ALREADY_CANCELLED)

        appointment.status = AppointmentStatus.CANCELLED
        appointment.cancellation_reason = reason
        appointment.cancelled_at = self._clock()
        await self.repository.commit()
        logger.info(f"Appointment {appointment.id} cancelled")

        sync = SyncReport()
        if appointment.calendar_event_id:
            sync.calendar = await self._sync(
                self.calendar.delete_event(appointment.calendar_event_id),
                "calendar delete",
                appointment,
            )
        if appointment.sheet_row_ref:
            sync.spreadsheet = await self._sync(
                self.spreadsheet.update_status(
                    appointment.sheet_row_ref, AppointmentStatus.CANCELLED, reason
                ),
                "sheet status",
                appointment,
            )
        sync.email_sent = await self._notify(
            self.notifier.send_cancelled(appointment), "cancelled mail", appointment
        )

        return LifecycleResult(appointment, LifecycleOutcome.CANCELLED, sync)

    # === Queries ===

    async def get_by_token(self, token: str) -> Appointment:
        """Raises NotFoundError for unknown tokens."""
        return await self._lookup(token, for_update=False)

    async def get_for_owner(self, appointment_id: str, email: str) -> Appointment:
        """
        Find an appointment by id, restricted to its contact email.

        Someone else's appointment is reported as not found.
        """
        try:
            key = uuid.UUID(str(appointment_id).strip())
        except ValueError:
            raise NotFoundError(f"Turno inexistente: {appointment_id}") from None

        appointment = await self.repository.get_by_id(key)
        if appointment is None or appointment.email != (email or "").strip().lower():
            raise NotFoundError(f"Turno inexistente: {appointment_id}")
        return appointment

    async def list_for_email(self, email: str) -> list[Appointment]:
        return await self.repository.list_for_email(email)

    # === Internals ===

    async def _lookup(self, token: str, for_update: bool = True) -> Appointment:
        appointment = None
        if token:
            appointment = await self.repository.get_by_token(token, for_update=for_update)
        if appointment is None:
            raise NotFoundError("Turno inexistente o enlace inválido")
        return appointment

    async def _new_token(self) -> str:
        for _ in range(MAX_TOKEN_ATTEMPTS):
            token = secrets.token_hex(TOKEN_BYTES)
            if not await self.repository.token_exists(token):
                return token
        raise RuntimeError("Could not generate a unique confirmation token")

    @staticmethod
    async def _sync(
        call: Awaitable[SyncResult],
        label: str,
        appointment: Appointment,
    ) -> SyncResult:
        try:
            result = await call
        except Exception as e:
            logger.exception(f"{label} raised for appointment {appointment.id}: {e}")
            return SyncResult.failed(str(e))
        if not result.success:
            logger.warning(f"{label} failed for appointment {appointment.id}: {result.error}")
        return result

    @staticmethod
    async def _notify(
        call: Awaitable[bool],
        label: str,
        appointment: Appointment,
    ) -> bool:
        try:
            sent = await call
        except Exception as e:
            logger.exception(f"{label} raised for appointment {appointment.id}: {e}")
            return False
        if not sent:
            logger.warning(f"{label} not delivered for appointment {appointment.id}")
        return bool(sent)
