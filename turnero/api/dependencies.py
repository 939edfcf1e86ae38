"""
Request-scoped dependencies.

- Browser session: opaque cookie -> dict kept in the session store
- Authentication gate: the signed-in Google email
- Wiring of the lifecycle manager and the conversation orchestrator
"""

import logging
import secrets
from dataclasses import dataclass
from typing import Any, Optional

from fastapi import Depends, HTTPException, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from turnero.config import settings
from turnero.core.appointments import AppointmentLifecycle, AppointmentRepository
from turnero.core.conversation import ConversationOrchestrator, TurnStore
from turnero.core.notifications import NotificationDispatcher
from turnero.infra.database import get_db
from turnero.infra.google import (
    GoogleCalendarClient,
    GoogleSheetsClient,
    get_calendar_client,
    get_sheets_client,
)
from turnero.infra.llm import LLMClient, get_llm_client
from turnero.infra.mailer import get_mail_client
from turnero.infra.redis import SessionStore, get_session_store

logger = logging.getLogger(__name__)

USER_EMAIL_KEY = "user_email"
USER_NAME_KEY = "user_name"
CHAT_SESSION_KEY = "chat_session"


class WebSession:
    """
    Browser session backed by the session store.

    Values are read eagerly; call save() after changing them.
    """

    def __init__(self, key: str, data: dict[str, Any], store: SessionStore, is_new: bool = False):
        self.key = key
        self.data = data
        self.store = store
        self.is_new = is_new

    def get(self, name: str, default: Any = None) -> Any:
        return self.data.get(name, default)

    def put(self, name: str, value: Any) -> None:
        self.data[name] = value

    def pop(self, name: str, default: Any = None) -> Any:
        return self.data.pop(name, default)

    async def save(self) -> None:
        await self.store.put(self.key, self.data)

    async def destroy(self, response: Response) -> None:
        """Forget the session server-side and expire the browser cookie."""
        self.data.clear()
        await self.store.delete(self.key)
        response.delete_cookie(settings.session_cookie_name)

    def attach_cookie(self, response: Response) -> None:
        """Send the session cookie if the browser does not have it yet."""
        if not self.is_new:
            return
        response.set_cookie(
            settings.session_cookie_name,
            self.key,
            max_age=settings.session_ttl,
            httponly=True,
            secure=settings.secure_cookies,
            samesite="lax",
        )

    @property
    def user_email(self) -> Optional[str]:
        return self.data.get(USER_EMAIL_KEY)


async def get_web_session(
    request: Request,
    response: Response,
    store: SessionStore = Depends(get_session_store),
) -> WebSession:
    """Load the browser session, creating one (and its cookie) on first visit."""
    key = request.cookies.get(settings.session_cookie_name)
    data = await store.get(key) if key else None

    if data is None:
        session = WebSession(secrets.token_urlsafe(32), {}, store, is_new=True)
        session.attach_cookie(response)
        return session

    return WebSession(key, data, store)


@dataclass
class Principal:
    """Signed-in user."""

    email: str
    name: Optional[str] = None


async def require_user(web_session: WebSession = Depends(get_web_session)) -> Principal:
    """Reject anonymous requests with 401."""
    email = web_session.user_email
    if not email:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Iniciá sesión con Google para usar el chat",
        )
    return Principal(email=email, name=web_session.get(USER_NAME_KEY))


# === Service wiring ===

def get_calendar() -> GoogleCalendarClient:
    return get_calendar_client()


def get_spreadsheet() -> GoogleSheetsClient:
    return get_sheets_client()


def get_notifier() -> NotificationDispatcher:
    return NotificationDispatcher(get_mail_client())


def get_llm() -> LLMClient:
    return get_llm_client()


def get_lifecycle(
    db: AsyncSession = Depends(get_db),
    calendar: GoogleCalendarClient = Depends(get_calendar),
    spreadsheet: GoogleSheetsClient = Depends(get_spreadsheet),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> AppointmentLifecycle:
    return AppointmentLifecycle(
        repository=AppointmentRepository(db),
        calendar=calendar,
        spreadsheet=spreadsheet,
        notifier=notifier,
    )


def get_orchestrator(
    db: AsyncSession = Depends(get_db),
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle),
    llm: LLMClient = Depends(get_llm),
) -> ConversationOrchestrator:
    return ConversationOrchestrator(
        llm=llm,
        turns=TurnStore(db),
        lifecycle=lifecycle,
    )


def get_turn_store(db: AsyncSession = Depends(get_db)) -> TurnStore:
    return TurnStore(db)
