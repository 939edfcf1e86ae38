"""System instruction and prompt assembly for the booking assistant."""

from datetime import datetime
from typing import Iterable, Optional

from turnero.models.database import Appointment, ConversationTurn, TurnRole

SYSTEM_PROMPT = """\
Eres un asistente virtual para gestión de turnos médicos. Hoy es {today}.

Tu trabajo es:
1. SALUDAR amablemente.
2. PREGUNTAR qué necesita (agendar o cancelar un turno).
3. RECOPILAR paso a paso:
   - Nombre completo
   - Email (validar formato){email_hint}
   - Fecha y hora del turno
   - Motivo de la consulta
4. CONFIRMAR todos los datos con el paciente.
5. INFORMAR que recibirá un email para confirmar o cancelar el turno.

REGLAS:
- Pregunta UNA cosa a la vez.
- No aceptes fechas ni horas pasadas.
- Valida el formato del email.
- Confirma TODO antes de guardar.
- Nunca inventes datos que el paciente no haya dado.

Cuando el paciente haya confirmado explícitamente TODOS los datos, responde
con un breve mensaje y agrega exactamente este bloque:
[CREAR_TURNO]
NOMBRE: [nombre]
EMAIL: [email]
HORARIO: [YYYY-MM-DD HH:MM:SS]
DESCRIPCION: [motivo]
[/CREAR_TURNO]

Si el paciente quiere cancelar uno de sus turnos, pide el motivo y, cuando lo
confirme, agrega exactamente este bloque:
[CANCELAR_TURNO]
TURNO: [id del turno]
MOTIVO: [motivo de la cancelación]
[/CANCELAR_TURNO]
{appointments}"""

ROLE_LABELS = {
    TurnRole.USER: "Paciente",
    TurnRole.ASSISTANT: "Asistente",
}


def build_system_prompt(
    today: datetime,
    user_email: Optional[str] = None,
    appointments: Iterable[Appointment] = (),
) -> str:
    """Render the fixed instruction with the date and the user's context."""
    email_hint = ""
    if user_email:
        email_hint = (
            f"\n     (el paciente inició sesión como {user_email}; "
            "ofrécelo como email por defecto)"
        )

    lines = [
        f"- id {appt.id}: {appt.scheduled_at:%d/%m/%Y %H:%M}, {appt.description} ({appt.status.value})"
        for appt in appointments
    ]
    listing = ""
    if lines:
        listing = "\nTurnos vigentes del paciente:\n" + "\n".join(lines) + "\n"

    return SYSTEM_PROMPT.format(
        today=today.strftime("%Y-%m-%d %H:%M"),
        email_hint=email_hint,
        appointments=listing,
    )


def build_prompt(history: Iterable[ConversationTurn], user_text: str) -> str:
    """Replay prior turns as a transcript followed by the new message."""
    transcript = [f"{ROLE_LABELS[turn.role]}: {turn.content}" for turn in history]

    parts = []
    if transcript:
        parts.append("Conversación previa:\n" + "\n".join(transcript))
    parts.append(f"Paciente: {user_text}")
    return "\n\n".join(parts)
