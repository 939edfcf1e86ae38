"""
Google Calendar and Google Sheets clients.

Both clients authenticate with a service account and keep appointments in
sync with a shared calendar and a tracking spreadsheet. The discovery
clients are blocking, so every `execute()` runs in a worker thread.

Neither client raises: each call returns a SyncResult so the caller can
tell "record saved, sync failed" apart from a failed booking.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Optional
from zoneinfo import ZoneInfo

from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from turnero.config import get_settings
from turnero.models.database import Appointment, AppointmentStatus

logger = logging.getLogger(__name__)

CALENDAR_SCOPES = ["https://www.googleapis.com/auth/calendar.events"]
SHEETS_SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

# Spreadsheet status column labels
STATUS_LABELS = {
    AppointmentStatus.PENDING: "pendiente",
    AppointmentStatus.CONFIRMED: "confirmado",
    AppointmentStatus.CANCELLED: "cancelado",
}

_ROW_REF_PATTERN = re.compile(r"![A-Z]+(\d+)(?::[A-Z]+\d+)?$")


@dataclass
class SyncResult:
    """Outcome of one call to an external sync service."""

    success: bool
    reference: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, reference: Optional[str] = None) -> "SyncResult":
        return cls(success=True, reference=reference)

    @classmethod
    def failed(cls, error: str) -> "SyncResult":
        return cls(success=False, error=error)


def _load_credentials(scopes: list[str]) -> service_account.Credentials:
    """Load service account credentials from the configured key file."""
    path = get_settings().google_service_account_file
    return service_account.Credentials.from_service_account_file(path, scopes=scopes)


def _a1(sheet_name: str, cells: str) -> str:
    """Build an A1 range, quoting sheet names that need it."""
    if re.fullmatch(r"[A-Za-z0-9_]+", sheet_name):
        return f"{sheet_name}!{cells}"
    escaped = sheet_name.replace("'", "''")
    return f"'{escaped}'!{cells}"


class GoogleCalendarClient:
    """
    Google Calendar client.

    - create_event: one event per appointment, patient invited
    - delete_event: removes the event; a missing event counts as deleted
    """

    def __init__(
        self,
        calendar_id: Optional[str] = None,
        service: Any = None,
        timezone: Optional[str] = None,
        duration_minutes: Optional[int] = None,
    ):
        """Initialize client.

        Args:
            calendar_id: Target calendar (defaults to settings)
            service: Prebuilt discovery service (for testing)
            timezone: IANA timezone of appointment times
            duration_minutes: Event length
        """
        settings = get_settings()
        self.calendar_id = calendar_id or settings.google_calendar_id
        self.timezone = timezone or settings.timezone
        self.duration_minutes = duration_minutes or settings.appointment_duration_minutes
        self._service = service

    def _get_service(self) -> Any:
        """Get or build the discovery service."""
        if self._service is None:
            self._service = build(
                "calendar",
                "v3",
                credentials=_load_credentials(CALENDAR_SCOPES),
                cache_discovery=False,
            )
        return self._service

    def _event_body(self, appointment: Appointment) -> dict:
        tz = ZoneInfo(self.timezone)
        start = appointment.scheduled_at.replace(tzinfo=tz)
        end = start + timedelta(minutes=self.duration_minutes)

        return {
            "summary": f"Turno: {appointment.name}",
            "description": appointment.description,
            "start": {"dateTime": start.isoformat(), "timeZone": self.timezone},
            "end": {"dateTime": end.isoformat(), "timeZone": self.timezone},
            "attendees": [{"email": appointment.email}],
            "reminders": {
                "useDefault": False,
                "overrides": [
                    {"method": "popup", "minutes": 30},
                    {"method": "email", "minutes": 120},
                ],
            },
        }

    async def create_event(self, appointment: Appointment) -> SyncResult:
        """Create the calendar event for an appointment.

        Returns:
            SyncResult whose reference is the event id
        """
        body = self._event_body(appointment)

        def _insert() -> dict:
            return self._get_service().events().insert(
                calendarId=self.calendar_id,
                body=body,
                sendUpdates="all",
            ).execute()

        try:
            created = await asyncio.to_thread(_insert)
        except Exception as e:
            logger.error(f"Failed to create calendar event for appointment {appointment.id}: {e}")
            return SyncResult.failed(str(e))

        event_id = created.get("id")
        logger.info(f"Calendar event {event_id} created for appointment {appointment.id}")
        return SyncResult.ok(event_id)

    async def delete_event(self, event_id: str) -> SyncResult:
        """Delete a calendar event."""

        def _delete() -> None:
            self._get_service().events().delete(
                calendarId=self.calendar_id,
                eventId=event_id,
                sendUpdates="all",
            ).execute()

        try:
            await asyncio.to_thread(_delete)
        except HttpError as e:
            if e.resp is not None and e.resp.status in (404, 410):
                logger.info(f"Calendar event {event_id} already gone")
                return SyncResult.ok(event_id)
            logger.error(f"Failed to delete calendar event {event_id}: {e}")
            return SyncResult.failed(str(e))
        except Exception as e:
            logger.error(f"Failed to delete calendar event {event_id}: {e}")
            return SyncResult.failed(str(e))

        logger.info(f"Calendar event {event_id} deleted")
        return SyncResult.ok(event_id)


class GoogleSheetsClient:
    """
    Google Sheets client.

    Row layout (columns A..H):
        id | nombre | email | horario | descripcion | creado | estado | motivo
    """

    STATUS_COLUMN = "G"
    REASON_COLUMN = "H"

    def __init__(
        self,
        spreadsheet_id: Optional[str] = None,
        sheet_name: Optional[str] = None,
        service: Any = None,
    ):
        """Initialize client.

        Args:
            spreadsheet_id: Target spreadsheet (defaults to settings)
            sheet_name: Worksheet title (defaults to settings)
            service: Prebuilt discovery service (for testing)
        """
        settings = get_settings()
        self.spreadsheet_id = spreadsheet_id or settings.google_spreadsheet_id
        self.sheet_name = sheet_name or settings.google_sheet_name
        self._service = service

    def _get_service(self) -> Any:
        """Get or build the discovery service."""
        if self._service is None:
            self._service = build(
                "sheets",
                "v4",
                credentials=_load_credentials(SHEETS_SCOPES),
                cache_discovery=False,
            )
        return self._service

    @staticmethod
    def row_values(appointment: Appointment) -> list[str]:
        """Cells written for a new appointment."""
        created = appointment.created_at.strftime("%Y-%m-%d %H:%M:%S") if appointment.created_at else ""
        return [
            str(appointment.id),
            appointment.name,
            appointment.email,
            appointment.scheduled_at.strftime("%Y-%m-%d %H:%M:%S"),
            appointment.description,
            created,
            STATUS_LABELS[appointment.status],
            appointment.cancellation_reason or "",
        ]

    @staticmethod
    def row_number(row_ref: str) -> Optional[int]:
        """Extract the row number from an A1 reference like 'Turnos!A7:H7'."""
        match = _ROW_REF_PATTERN.search(row_ref or "")
        return int(match.group(1)) if match else None

    async def append_row(self, appointment: Appointment) -> SyncResult:
        """Append the appointment as a new row.

        Returns:
            SyncResult whose reference is the updated A1 range
        """
        body = {"values": [self.row_values(appointment)]}

        def _append() -> dict:
            return self._get_service().spreadsheets().values().append(
                spreadsheetId=self.spreadsheet_id,
                range=_a1(self.sheet_name, "A:H"),
                valueInputOption="USER_ENTERED",
                insertDataOption="INSERT_ROWS",
                body=body,
            ).execute()

        try:
            result = await asyncio.to_thread(_append)
        except Exception as e:
            logger.error(f"Failed to append sheet row for appointment {appointment.id}: {e}")
            return SyncResult.failed(str(e))

        row_ref = result.get("updates", {}).get("updatedRange")
        logger.info(f"Sheet row {row_ref} written for appointment {appointment.id}")
        return SyncResult.ok(row_ref)

    async def update_status(
        self,
        row_ref: str,
        status: AppointmentStatus,
        reason: Optional[str] = None,
    ) -> SyncResult:
        """Overwrite the status and reason cells of an existing row."""
        row = self.row_number(row_ref)
        if row is None:
            logger.warning(f"Cannot update sheet status, bad row reference: {row_ref!r}")
            return SyncResult.failed(f"invalid row reference: {row_ref!r}")

        target = _a1(self.sheet_name, f"{self.STATUS_COLUMN}{row}:{self.REASON_COLUMN}{row}")
        body = {"values": [[STATUS_LABELS[status], reason or ""]]}

        def _update() -> dict:
            return self._get_service().spreadsheets().values().update(
                spreadsheetId=self.spreadsheet_id,
                range=target,
                valueInputOption="RAW",
                body=body,
            ).execute()

        try:
            await asyncio.to_thread(_update)
        except Exception as e:
            logger.error(f"Failed to update sheet status at {row_ref}: {e}")
            return SyncResult.failed(str(e))

        return SyncResult.ok(row_ref)


# Singletons
_calendar: Optional[GoogleCalendarClient] = None
_sheets: Optional[GoogleSheetsClient] = None


def get_calendar_client() -> GoogleCalendarClient:
    """Get singleton GoogleCalendarClient."""
    global _calendar
    if _calendar is None:
        _calendar = GoogleCalendarClient()
    return _calendar


def get_sheets_client() -> GoogleSheetsClient:
    """Get singleton GoogleSheetsClient."""
    global _sheets
    if _sheets is None:
        _sheets = GoogleSheetsClient()
    return _sheets
