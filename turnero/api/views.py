"""Minimal HTML pages for the public confirm/cancel links."""

import html
from typing import Optional

from fastapi import status
from fastapi.responses import HTMLResponse

from turnero.models.database import Appointment

PAGE = """\
<!DOCTYPE html>
<html lang="es">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>{title}</title>
</head>
<body style="font-family: Arial, sans-serif; max-width: 560px; margin: 40px auto; color: #222;">
  <h1>{title}</h1>
  {body}
</body>
</html>
"""


def page(title: str, body: str, status_code: int = status.HTTP_200_OK) -> HTMLResponse:
    return HTMLResponse(PAGE.format(title=html.escape(title), body=body), status_code=status_code)


def summary(appointment: Appointment) -> str:
    return (
        f"<p><strong>Paciente:</strong> {html.escape(appointment.name)}</p>"
        f"<p><strong>Fecha y hora:</strong> {appointment.scheduled_at:%d/%m/%Y %H:%M}</p>"
        f"<p><strong>Motivo:</strong> {html.escape(appointment.description)}</p>"
    )


def confirmed(appointment: Appointment, already: bool = False) -> HTMLResponse:
    title = "Tu turno ya estaba confirmado" if already else "¡Turno confirmado!"
    return page(title, summary(appointment))


def cancel_form(
    appointment: Appointment,
    action_url: str,
    error: Optional[str] = None,
    status_code: int = status.HTTP_200_OK,
) -> HTMLResponse:
    error_html = f'<p style="color:#c62828;">{html.escape(error)}</p>' if error else ""
    body = (
        summary(appointment)
        + error_html
        + f'<form method="post" action="{html.escape(action_url, quote=True)}">'
        '<label for="reason">Motivo de la cancelación</label><br>'
        '<textarea id="reason" name="reason" rows="4" cols="50" required></textarea><br><br>'
        '<button type="submit">Cancelar turno</button>'
        "</form>"
    )
    return page("Cancelar turno", body, status_code)


def cancelled(appointment: Appointment, already: bool = False) -> HTMLResponse:
    title = "Este turno ya estaba cancelado" if already else "Turno cancelado"
    reason = html.escape(appointment.cancellation_reason or "")
    return page(title, summary(appointment) + f"<p><strong>Motivo de la cancelación:</strong> {reason}</p>")


def not_found() -> HTMLResponse:
    return page(
        "Turno no encontrado",
        "<p>El enlace no es válido o el turno no existe.</p>",
        status.HTTP_404_NOT_FOUND,
    )


def invalid_transition(message: str) -> HTMLResponse:
    return page(
        "No se pudo completar la acción",
        f"<p>{html.escape(message)}</p>",
        status.HTTP_409_CONFLICT,
    )
