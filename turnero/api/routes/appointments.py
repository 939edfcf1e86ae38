"""
Appointment endpoints.

The confirm/cancel links from the email are public: the token in the URL
is the credential. Listing requires sign-in.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Form, Request, status
from fastapi.responses import HTMLResponse
from pydantic import BaseModel

from turnero.api import views
from turnero.api.dependencies import Principal, get_lifecycle, require_user
from turnero.core.appointments import AppointmentLifecycle, LifecycleOutcome
from turnero.core.errors import InvalidTransitionError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Appointments"])


class AppointmentOut(BaseModel):
    id: str
    name: str
    email: str
    scheduled_at: datetime
    description: str
    status: str
    cancellation_reason: Optional[str] = None
    confirmed_at: Optional[datetime] = None


@router.get(
    "/appointments",
    response_model=list[AppointmentOut],
    summary="Appointments of the signed-in user",
)
async def list_appointments(
    user: Principal = Depends(require_user),
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle),
) -> list[AppointmentOut]:
    return [
        AppointmentOut(
            id=str(appt.id),
            name=appt.name,
            email=appt.email,
            scheduled_at=appt.scheduled_at,
            description=appt.description,
            status=appt.status.value,
            cancellation_reason=appt.cancellation_reason,
            confirmed_at=appt.confirmed_at,
        )
        for appt in await lifecycle.list_for_email(user.email)
    ]


@router.get(
    "/appointment/confirm/{token}",
    response_class=HTMLResponse,
    summary="Confirm an appointment",
)
async def confirm_appointment(
    token: str,
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle),
) -> HTMLResponse:
    """Idempotent: a second click shows "already confirmed"."""
    try:
        result = await lifecycle.confirm(token)
    except NotFoundError:
        return views.not_found()
    except InvalidTransitionError as e:
        return views.invalid_transition(str(e))

    return views.confirmed(
        result.appointment,
        already=result.outcome is LifecycleOutcome.ALREADY_CONFIRMED,
    )


@router.get(
    "/appointment/cancel/{token}",
    response_class=HTMLResponse,
    summary="Cancellation form",
)
async def cancel_form(
    token: str,
    request: Request,
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle),
) -> HTMLResponse:
    try:
        appointment = await lifecycle.get_by_token(token)
    except NotFoundError:
        return views.not_found()

    if appointment.is_cancelled:
        return views.cancelled(appointment, already=True)
    return views.cancel_form(appointment, action_url=request.url.path)


@router.post(
    "/appointment/cancel/{token}",
    response_class=HTMLResponse,
    summary="Cancel an appointment",
)
async def cancel_appointment(
    token: str,
    request: Request,
    reason: Optional[str] = Form(default=None),
    motivo: Optional[str] = Form(default=None),
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle),
) -> HTMLResponse:
    """Cancel with a reason; pending and confirmed appointments both qualify."""
    try:
        result = await lifecycle.cancel(token, reason or motivo or "")
    except NotFoundError:
        return views.not_found()
    except ValidationError as e:
        appointment = await lifecycle.get_by_token(token)
        if appointment.is_cancelled:
            return views.cancelled(appointment, already=True)
        return views.cancel_form(
            appointment,
            action_url=request.url.path,
            error=str(e),
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        )

    return views.cancelled(
        result.appointment,
        already=result.outcome is LifecycleOutcome.ALREADY_CANCELLED,
    )
