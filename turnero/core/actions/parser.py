"""
Action block parser.

The system prompt tells the model to close a booking with a block like:

    [CREAR_TURNO]
    NOMBRE: Ana Pérez
    EMAIL: ana@x.com
    HORARIO: 2030-01-01 10:00:00
    DESCRIPCION: control
    [/CREAR_TURNO]

Parsing is three steps: find the first complete marker pair, split its
body into `KEY: value` lines, then map normalized keys onto a typed
action. Lines that do not look like `KEY: value` are skipped. A block with
missing required keys or a bad HORARIO yields no action, and so does an
opening marker that is never closed; its text is still hidden.
"""

import logging
import re
import unicodedata
from datetime import datetime
from typing import Optional

from .types import (
    DATETIME_FORMAT,
    Action,
    ActionKind,
    CancelAppointment,
    CreateAppointment,
    ExtractionResult,
)

logger = logging.getLogger(__name__)

_MARKER_NAMES = "|".join(kind.value.upper() for kind in ActionKind)

BLOCK_PATTERN = re.compile(
    rf"\[({_MARKER_NAMES})\](.*?)\[/\1\]",
    re.DOTALL | re.IGNORECASE,
)

# Opening marker with no closing one, e.g. a reply cut off by max_tokens
DANGLING_PATTERN = re.compile(
    rf"\[({_MARKER_NAMES})\](.*)\Z",
    re.DOTALL | re.IGNORECASE,
)

LINE_PATTERN = re.compile(r"^\s*([^\W\d][\w ]*?)\s*:\s*(.*?)\s*$")

# Accepted spellings per canonical field
CREATE_KEYS = {
    "nombre": "name",
    "email": "email",
    "correo": "email",
    "horario": "scheduled_at",
    "fecha_hora": "scheduled_at",
    "descripcion": "description",
}

CANCEL_KEYS = {
    "turno": "appointment_id",
    "id": "appointment_id",
    "turno_id": "appointment_id",
    "motivo": "reason",
    "razon": "reason",
}


def normalize_key(key: str) -> str:
    """Lowercase, strip accents and join words with underscores."""
    decomposed = unicodedata.normalize("NFKD", key.strip())
    plain = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return re.sub(r"\s+", "_", plain.lower())


def parse_fields(body: str) -> dict[str, str]:
    """Split a block body into a normalized key -> value mapping.

    The first occurrence of a key wins. Empty values are dropped.
    """
    fields: dict[str, str] = {}
    for line in body.splitlines():
        match = LINE_PATTERN.match(line)
        if not match:
            continue
        key, value = normalize_key(match.group(1)), match.group(2)
        if value and key not in fields:
            fields[key] = value
    return fields


def strip_action_blocks(text: str) -> str:
    """Remove every marker block from text shown to the user.

    An unterminated block is cut from its opening marker to the end.
    """
    stripped = DANGLING_PATTERN.sub("", BLOCK_PATTERN.sub("", text))
    if stripped == text:
        return text
    return re.sub(r"\n{3,}", "\n\n", stripped).strip()


def _collect(fields: dict[str, str], aliases: dict[str, str]) -> dict[str, str]:
    collected: dict[str, str] = {}
    for key, value in fields.items():
        target = aliases.get(key)
        if target and target not in collected:
            collected[target] = value
    return collected


def _build_create(fields: dict[str, str]) -> Optional[CreateAppointment]:
    data = _collect(fields, CREATE_KEYS)

    missing = [name for name in ("name", "scheduled_at", "description") if not data.get(name)]
    if missing:
        logger.info(f"Create block ignored, missing fields: {missing}")
        return None

    try:
        scheduled_at = datetime.strptime(data["scheduled_at"], DATETIME_FORMAT)
    except ValueError:
        logger.warning(f"Create block ignored, bad HORARIO: {data['scheduled_at']!r}")
        return None

    return CreateAppointment(
        name=data["name"],
        email=data.get("email"),
        scheduled_at=scheduled_at,
        description=data["description"],
    )


def _build_cancel(fields: dict[str, str]) -> Optional[CancelAppointment]:
    data = _collect(fields, CANCEL_KEYS)

    missing = [name for name in ("appointment_id", "reason") if not data.get(name)]
    if missing:
        logger.info(f"Cancel block ignored, missing fields: {missing}")
        return None

    return CancelAppointment(appointment_id=data["appointment_id"], reason=data["reason"])


def extract_action(text: str) -> ExtractionResult:
    """
    Scan a model reply for an action block.

    Args:
        text: Raw model output

    Returns:
        ExtractionResult with the typed action (or None) and the text
        safe to show the user
    """
    match = BLOCK_PATTERN.search(text or "")
    if match is None:
        dangling = DANGLING_PATTERN.search(text or "")
        if dangling is None:
            return ExtractionResult(action=None, visible_text=text)

        logger.info("Unterminated action block ignored")
        return ExtractionResult(
            action=None,
            visible_text=strip_action_blocks(text),
            kind=ActionKind(dangling.group(1).lower()),
            fields=parse_fields(dangling.group(2)),
        )

    kind = ActionKind(match.group(1).lower())
    fields = parse_fields(match.group(2))

    action: Optional[Action]
    if kind is ActionKind.CREATE_APPOINTMENT:
        action = _build_create(fields)
    else:
        action = _build_cancel(fields)

    return ExtractionResult(
        action=action,
        visible_text=strip_action_blocks(text),
        kind=kind,
        fields=fields,
    )
