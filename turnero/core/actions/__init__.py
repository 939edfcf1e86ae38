"""Action extraction from chat model replies."""

from .types import (
    DATETIME_FORMAT,
    Action,
    ActionKind,
    CancelAppointment,
    CreateAppointment,
    ExtractionResult,
)
from .parser import extract_action, parse_fields, strip_action_blocks

__all__ = [
    # Types
    "DATETIME_FORMAT",
    "Action",
    "ActionKind",
    "CancelAppointment",
    "CreateAppointment",
    "ExtractionResult",
    # Parser
    "extract_action",
    "parse_fields",
    "strip_action_blocks",
]
