"""
Appointment emails.

Two fixed layouts: "created" (with confirm and cancel links built from the
appointment token) and "cancelled" (with the reason). Delivery problems
come back as False; they never fail the request that triggered them.
"""

import html
import logging
from typing import Optional, Protocol

from turnero.config import get_settings
from turnero.models.database import Appointment

logger = logging.getLogger(__name__)

DATE_FORMAT = "%d/%m/%Y %H:%M"


class MailClient(Protocol):
    async def send(self, to: str, subject: str, html_body: str) -> bool: ...


CREATED_TEMPLATE = """\
<html>
  <body style="font-family: Arial, sans-serif; color: #222;">
    <h2>Hola {name}, registramos tu turno</h2>
    <p><strong>Fecha y hora:</strong> {when}</p>
    <p><strong>Motivo:</strong> {description}</p>
    <p>Por favor confirmá tu asistencia:</p>
    <p>
      <a href="{confirm_url}" style="background:#2e7d32;color:#fff;padding:10px 16px;text-decoration:none;border-radius:4px;">Confirmar turno</a>
      &nbsp;
      <a href="{cancel_url}" style="background:#c62828;color:#fff;padding:10px 16px;text-decoration:none;border-radius:4px;">Cancelar turno</a>
    </p>
    <p style="font-size:12px;color:#666;">Si no solicitaste este turno, podés ignorar este mensaje.</p>
  </body>
</html>
"""

CANCELLED_TEMPLATE = """\
<html>
  <body style="font-family: Arial, sans-serif; color: #222;">
    <h2>Hola {name}, tu turno fue cancelado</h2>
    <p><strong>Fecha y hora:</strong> {when}</p>
    <p><strong>Motivo de la consulta:</strong> {description}</p>
    <p><strong>Motivo de la cancelación:</strong> {reason}</p>
    <p>Podés solicitar un nuevo turno cuando quieras desde el chat.</p>
  </body>
</html>
"""


class NotificationDispatcher:
    """Formats and sends the appointment emails."""

    def __init__(self, mail: MailClient, base_url: Optional[str] = None):
        self.mail = mail
        self.base_url = (base_url or get_settings().public_base_url).rstrip("/")

    def confirm_url(self, appointment: Appointment) -> str:
        return f"{self.base_url}/appointment/confirm/{appointment.token}"

    def cancel_url(self, appointment: Appointment) -> str:
        return f"{self.base_url}/appointment/cancel/{appointment.token}"

    def render_created(self, appointment: Appointment) -> tuple[str, str]:
        """Subject and HTML body of the "created" email."""
        when = appointment.scheduled_at.strftime(DATE_FORMAT)
        body = CREATED_TEMPLATE.format(
            name=html.escape(appointment.name),
            when=when,
            description=html.escape(appointment.description),
            confirm_url=html.escape(self.confirm_url(appointment), quote=True),
            cancel_url=html.escape(self.cancel_url(appointment), quote=True),
        )
        return f"Confirmá tu turno del {when}", body

    def render_cancelled(self, appointment: Appointment) -> tuple[str, str]:
        """Subject and HTML body of the "cancelled" email."""
        when = appointment.scheduled_at.strftime(DATE_FORMAT)
        body = CANCELLED_TEMPLATE.format(
            name=html.escape(appointment.name),
            when=when,
            description=html.escape(appointment.description),
            reason=html.escape(appointment.cancellation_reason or ""),
        )
        return f"Turno cancelado: {when}", body

    async def send_created(self, appointment: Appointment) -> bool:
        subject, body = self.render_created(appointment)
        return await self._send(appointment, subject, body)

    async def send_cancelled(self, appointment: Appointment) -> bool:
        subject, body = self.render_cancelled(appointment)
        return await self._send(appointment, subject, body)

    async def _send(self, appointment: Appointment, subject: str, body: str) -> bool:
        try:
            sent = await self.mail.send(appointment.email, subject, body)
        except Exception as e:
            logger.error(f"Mail delivery raised for appointment {appointment.id}: {e}")
            return False

        if not sent:
            logger.warning(f"Mail not delivered for appointment {appointment.id}")
        return bool(sent)
