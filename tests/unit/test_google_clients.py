"""Tests for the Google Calendar and Sheets clients."""

import uuid
from datetime import datetime
from unittest.mock import MagicMock

import httplib2
import pytest
from googleapiclient.errors import HttpError

from turnero.infra.google import GoogleCalendarClient, GoogleSheetsClient
from turnero.models.database import Appointment, AppointmentStatus


def http_error(status: int) -> HttpError:
    return HttpError(httplib2.Response({"status": status}), b"error")


@pytest.fixture
def appointment():
    return Appointment(
        id=uuid.UUID("12345678-1234-5678-1234-567812345678"),
        name="Ana Pérez",
        email="ana@x.com",
        scheduled_at=datetime(2030, 1, 1, 10, 0),
        description="control",
        status=AppointmentStatus.PENDING,
        token="t" * 64,
        created_at=datetime(2029, 12, 1, 8, 30),
    )


class TestGoogleCalendarClient:
    """Test calendar event sync."""

    @pytest.fixture
    def service(self):
        return MagicMock()

    @pytest.fixture
    def client(self, service):
        return GoogleCalendarClient(
            calendar_id="cal-1",
            service=service,
            timezone="America/Argentina/Buenos_Aires",
            duration_minutes=30,
        )

    def test_event_body(self, client, appointment):
        """Test the event spans the configured duration and invites the patient."""
        body = client._event_body(appointment)

        assert body["start"]["dateTime"] == "2030-01-01T10:00:00-03:00"
        assert body["end"]["dateTime"] == "2030-01-01T10:30:00-03:00"
        assert body["attendees"] == [{"email": "ana@x.com"}]
        assert "Ana Pérez" in body["summary"]

    @pytest.mark.asyncio
    async def test_create_event(self, client, service, appointment):
        """Test the event id is returned as the reference."""
        service.events.return_value.insert.return_value.execute.return_value = {"id": "evt-9"}

        result = await client.create_event(appointment)

        assert result.success
        assert result.reference == "evt-9"
        kwargs = service.events.return_value.insert.call_args.kwargs
        assert kwargs["calendarId"] == "cal-1"

    @pytest.mark.asyncio
    async def test_create_event_failure(self, client, service, appointment):
        """Test API errors become a failed result."""
        service.events.return_value.insert.return_value.execute.side_effect = http_error(500)

        result = await client.create_event(appointment)

        assert not result.success
        assert result.error

    @pytest.mark.asyncio
    async def test_delete_event(self, client, service):
        """Test deleting an existing event."""
        result = await client.delete_event("evt-9")

        assert result.success
        kwargs = service.events.return_value.delete.call_args.kwargs
        assert kwargs["eventId"] == "evt-9"

    @pytest.mark.asyncio
    async def test_delete_missing_event_is_success(self, client, service):
        """Test an already deleted event counts as deleted."""
        service.events.return_value.delete.return_value.execute.side_effect = http_error(410)

        result = await client.delete_event("evt-9")

        assert result.success

    @pytest.mark.asyncio
    async def test_delete_event_failure(self, client, service):
        """Test other API errors are reported."""
        service.events.return_value.delete.return_value.execute.side_effect = http_error(403)

        result = await client.delete_event("evt-9")

        assert not result.success


class TestGoogleSheetsClient:
    """Test spreadsheet row sync."""

    @pytest.fixture
    def service(self):
        return MagicMock()

    @pytest.fixture
    def values(self, service):
        return service.spreadsheets.return_value.values.return_value

    @pytest.fixture
    def client(self, service):
        return GoogleSheetsClient(spreadsheet_id="sheet-1", sheet_name="Turnos", service=service)

    def test_row_values(self, appointment):
        """Test the A..H row layout."""
        assert GoogleSheetsClient.row_values(appointment) == [
            "12345678-1234-5678-1234-567812345678",
            "Ana Pérez",
            "ana@x.com",
            "2030-01-01 10:00:00",
            "control",
            "2029-12-01 08:30:00",
            "pendiente",
            "",
        ]

    @pytest.mark.parametrize("ref,row", [
        ("Turnos!A7:H7", 7),
        ("'Turnos 2030'!A12:H12", 12),
        ("Turnos!G3", 3),
        ("garbage", None),
        ("", None),
    ])
    def test_row_number(self, ref, row):
        assert GoogleSheetsClient.row_number(ref) == row

    @pytest.mark.asyncio
    async def test_append_row(self, client, values, appointment):
        """Test the updated range is returned as the reference."""
        values.append.return_value.execute.return_value = {
            "updates": {"updatedRange": "Turnos!A7:H7"}
        }

        result = await client.append_row(appointment)

        assert result.success
        assert result.reference == "Turnos!A7:H7"
        kwargs = values.append.call_args.kwargs
        assert kwargs["range"] == "Turnos!A:H"
        assert kwargs["body"]["values"][0][6] == "pendiente"

    @pytest.mark.asyncio
    async def test_update_status(self, client, values):
        """Test only the status and reason cells are written."""
        result = await client.update_status("Turnos!A7:H7", AppointmentStatus.CANCELLED, "viaje")

        assert result.success
        kwargs = values.update.call_args.kwargs
        assert kwargs["range"] == "Turnos!G7:H7"
        assert kwargs["body"] == {"values": [["cancelado", "viaje"]]}

    @pytest.mark.asyncio
    async def test_update_status_bad_reference(self, client, values):
        """Test an unparseable reference is reported without calling the API."""
        result = await client.update_status("nope", AppointmentStatus.CONFIRMED)

        assert not result.success
        values.update.assert_not_called()

    @pytest.mark.asyncio
    async def test_quoted_sheet_name(self, service, values):
        """Test sheet names with spaces are quoted in ranges."""
        client = GoogleSheetsClient(spreadsheet_id="s", sheet_name="Turnos 2030", service=service)

        await client.update_status("'Turnos 2030'!A2:H2", AppointmentStatus.CONFIRMED)

        assert values.update.call_args.kwargs["range"] == "'Turnos 2030'!G2:H2"

    @pytest.mark.asyncio
    async def test_append_failure(self, client, values, appointment):
        """Test API errors become a failed result."""
        values.append.return_value.execute.side_effect = http_error(503)

        result = await client.append_row(appointment)

        assert not result.success
