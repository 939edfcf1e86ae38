"""Tests for the action block parser."""

from datetime import datetime

import pytest

from turnero.core.actions import (
    ActionKind,
    CancelAppointment,
    CreateAppointment,
    extract_action,
)
from turnero.core.actions.parser import normalize_key, parse_fields, strip_action_blocks


CREATE_REPLY = """Perfecto, Ana. Registro tu turno.
[CREAR_TURNO]
NOMBRE: Ana Pérez
EMAIL: ana@x.com
HORARIO: 2030-01-01 10:00:00
DESCRIPCION: control
[/CREAR_TURNO]"""


class TestExtractCreate:
    """Test create blocks."""

    def test_full_block(self):
        """Test a complete block yields a typed create action."""
        result = extract_action(CREATE_REPLY)

        assert isinstance(result.action, CreateAppointment)
        assert result.action.name == "Ana Pérez"
        assert result.action.email == "ana@x.com"
        assert result.action.scheduled_at == datetime(2030, 1, 1, 10, 0, 0)
        assert result.action.description == "control"
        assert result.kind == ActionKind.CREATE_APPOINTMENT

    def test_to_dict(self):
        """Test the action serializes with the Spanish field names."""
        result = extract_action(CREATE_REPLY)

        assert result.action.to_dict() == {
            "tipo": "crear_turno",
            "datos": {
                "nombre": "Ana Pérez",
                "email": "ana@x.com",
                "horario": "2030-01-01 10:00:00",
                "descripcion": "control",
            },
        }

    def test_visible_text_has_no_block(self):
        """Test the block is removed from the text shown to the user."""
        result = extract_action(CREATE_REPLY)

        assert result.visible_text == "Perfecto, Ana. Registro tu turno."
        assert "[CREAR_TURNO]" not in result.visible_text

    def test_missing_field_yields_no_action(self):
        """Test a block without DESCRIPCION is reported but not acted on."""
        reply = (
            "[CREAR_TURNO]\nNOMBRE: Ana\nEMAIL: ana@x.com\n"
            "HORARIO: 2030-01-01 10:00:00\n[/CREAR_TURNO]"
        )

        result = extract_action(reply)

        assert result.action is None
        assert result.has_block
        assert result.visible_text == ""

    def test_bad_datetime_yields_no_action(self):
        """Test HORARIO must be YYYY-MM-DD HH:MM:SS."""
        reply = (
            "[CREAR_TURNO]\nNOMBRE: Ana\nHORARIO: mañana a las 10\n"
            "DESCRIPCION: control\n[/CREAR_TURNO]"
        )

        result = extract_action(reply)

        assert result.action is None
        assert result.kind == ActionKind.CREATE_APPOINTMENT

    def test_email_is_optional(self):
        """Test the email can come from the signed-in user instead."""
        reply = (
            "[CREAR_TURNO]\nNOMBRE: Ana\nHORARIO: 2030-01-01 10:00:00\n"
            "DESCRIPCION: control\n[/CREAR_TURNO]"
        )

        result = extract_action(reply)

        assert result.action.email is None
        assert "email" not in result.action.to_dict()["datos"]

    def test_lowercase_markers_and_accented_keys(self):
        """Test markers are case-insensitive and keys accent-insensitive."""
        reply = (
            "[crear_turno]\nNombre: Ana\nHorario: 2030-01-01 10:00:00\n"
            "Descripción: control\n[/crear_turno]"
        )

        result = extract_action(reply)

        assert isinstance(result.action, CreateAppointment)
        assert result.action.description == "control"

    def test_unclosed_block_is_hidden(self):
        """Test an unterminated block is cut from the visible text and not acted on."""
        reply = (
            "Perfecto, registro tu turno.\n[CREAR_TURNO]\nNOMBRE: Ana\n"
            "EMAIL: ana@x.com\nHORARIO: 2030"
        )

        result = extract_action(reply)

        assert result.action is None
        assert result.has_block
        assert result.kind == ActionKind.CREATE_APPOINTMENT
        assert result.fields["nombre"] == "Ana"
        assert result.visible_text == "Perfecto, registro tu turno."

    def test_unclosed_cancel_block_is_hidden(self):
        result = extract_action("Entendido.\n[cancelar_turno]\nTURNO: 3f1c")

        assert result.action is None
        assert result.kind == ActionKind.CANCEL_APPOINTMENT
        assert result.visible_text == "Entendido."


class TestExtractCancel:
    """Test cancel blocks."""

    def test_full_block(self):
        """Test a complete cancel block."""
        reply = (
            "Entendido.\n[CANCELAR_TURNO]\nTURNO: 3f1c\nMOTIVO: viaje\n[/CANCELAR_TURNO]"
        )

        result = extract_action(reply)

        assert result.action == CancelAppointment(appointment_id="3f1c", reason="viaje")
        assert result.action.to_dict() == {
            "tipo": "cancelar_turno",
            "datos": {"turno": "3f1c", "motivo": "viaje"},
        }
        assert result.visible_text == "Entendido."

    def test_missing_reason(self):
        """Test a cancel block without MOTIVO yields no action."""
        result = extract_action("[CANCELAR_TURNO]\nTURNO: 3f1c\n[/CANCELAR_TURNO]")

        assert result.action is None
        assert result.kind == ActionKind.CANCEL_APPOINTMENT


class TestPlainReplies:
    """Test replies without blocks."""

    @pytest.mark.parametrize("text", [
        "Hola, ¿cómo te llamás?",
        "¿Qué día te queda bien?",
        "",
    ])
    def test_no_block(self, text):
        """Test plain replies pass through untouched."""
        result = extract_action(text)

        assert result.action is None
        assert result.visible_text == text
        assert not result.has_block


class TestHelpers:
    """Test parsing helpers."""

    def test_normalize_key(self):
        assert normalize_key(" Descripción ") == "descripcion"
        assert normalize_key("FECHA HORA") == "fecha_hora"

    def test_parse_fields_first_wins(self):
        """Test duplicate keys keep the first value and odd lines are skipped."""
        fields = parse_fields("NOMBRE: Ana\nesto no es un campo\nNOMBRE: Otra\nEMAIL:")

        assert fields == {"nombre": "Ana"}

    def test_parse_fields_keeps_colons_in_value(self):
        """Test only the first colon separates key and value."""
        fields = parse_fields("HORARIO: 2030-01-01 10:00:00")

        assert fields["horario"] == "2030-01-01 10:00:00"

    def test_strip_removes_every_block(self):
        """Test every block is removed, not only the first."""
        text = "a\n[CREAR_TURNO]x[/CREAR_TURNO]\n\n\nb[CANCELAR_TURNO]y[/CANCELAR_TURNO]"

        assert strip_action_blocks(text) == "a\n\nb"

    def test_strip_cuts_trailing_unclosed_block(self):
        """Test a complete block and a trailing unterminated one are both removed."""
        text = "a\n[CANCELAR_TURNO]y[/CANCELAR_TURNO]\nb\n[CREAR_TURNO]\nNOMBRE: Ana"

        assert strip_action_blocks(text) == "a\n\nb"
