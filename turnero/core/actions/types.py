"""Structured actions the chat model can request."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Union

DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class ActionKind(str, Enum):
    """Marker names, lowercased."""

    CREATE_APPOINTMENT = "crear_turno"
    CANCEL_APPOINTMENT = "cancelar_turno"


@dataclass(frozen=True)
class CreateAppointment:
    """Book a new appointment with data the user confirmed in chat."""

    name: str
    scheduled_at: datetime
    description: str
    email: Optional[str] = None

    kind = ActionKind.CREATE_APPOINTMENT

    def to_dict(self) -> dict:
        datos = {"nombre": self.name}
        if self.email:
            datos["email"] = self.email
        datos["horario"] = self.scheduled_at.strftime(DATETIME_FORMAT)
        datos["descripcion"] = self.description
        return {"tipo": self.kind.value, "datos": datos}


@dataclass(frozen=True)
class CancelAppointment:
    """Cancel one of the user's appointments."""

    appointment_id: str
    reason: str

    kind = ActionKind.CANCEL_APPOINTMENT

    def to_dict(self) -> dict:
        return {
            "tipo": self.kind.value,
            "datos": {"turno": self.appointment_id, "motivo": self.reason},
        }


Action = Union[CreateAppointment, CancelAppointment]


@dataclass
class ExtractionResult:
    """Outcome of scanning one model reply.

    `action` is None while the conversation is still gathering data, or
    when a block was found but was incomplete or unparseable.
    `visible_text` never contains a marker block.
    """

    action: Optional[Action]
    visible_text: str
    kind: Optional[ActionKind] = None
    fields: dict[str, str] = field(default_factory=dict)

    @property
    def has_block(self) -> bool:
        """True if a marker block was present, complete or not."""
        return self.kind is not None
