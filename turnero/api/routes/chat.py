"""
Chat API Endpoint.

Relays the signed-in user's messages to the booking assistant. The chat
session id lives in the browser session, not in the request body.
"""

import logging
from datetime import datetime
from typing import Optional
from uuid import uuid4

from fastapi import APIRouter, Depends, status
from pydantic import AliasChoices, BaseModel, Field

from turnero.api.dependencies import (
    CHAT_SESSION_KEY,
    Principal,
    WebSession,
    get_orchestrator,
    get_turn_store,
    get_web_session,
    require_user,
)
from turnero.core.conversation import ConversationOrchestrator, TurnStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Chat"])


class ChatRequest(BaseModel):
    """Chat message request."""

    message: str = Field(
        ...,
        min_length=1,
        max_length=2000,
        validation_alias=AliasChoices("message", "msg"),
        description="User's message",
        examples=["Hola, quiero sacar un turno"],
    )


class ChatResponse(BaseModel):
    """Chat response."""

    text: str = Field(..., description="Assistant reply, without control blocks")
    appointment_id: Optional[str] = Field(
        default=None,
        description="Appointment created or cancelled by this turn",
    )


class TurnOut(BaseModel):
    role: str
    text: str
    appointment_id: Optional[str] = None
    created_at: datetime


class ErrorResponse(BaseModel):
    """Error response."""

    error: str
    detail: Optional[str] = None


async def _chat_session_id(web_session: WebSession) -> str:
    session_id = web_session.get(CHAT_SESSION_KEY)
    if not session_id:
        session_id = str(uuid4())
        web_session.put(CHAT_SESSION_KEY, session_id)
        await web_session.save()
        logger.debug(f"Chat session started: {session_id}")
    return session_id


@router.post(
    "/chat",
    response_model=ChatResponse,
    status_code=status.HTTP_200_OK,
    summary="Send a chat message",
    responses={
        401: {"model": ErrorResponse, "description": "Not signed in"},
        422: {"model": ErrorResponse, "description": "Invalid request"},
    },
)
@router.post("/api/chat/mensaje", response_model=ChatResponse, include_in_schema=False)
async def chat(
    request: ChatRequest,
    user: Principal = Depends(require_user),
    web_session: WebSession = Depends(get_web_session),
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
) -> ChatResponse:
    """
    Process a chat message.

    The assistant collects the booking data step by step; once the user
    confirms everything, the appointment is created and an email with
    confirm/cancel links is sent.
    """
    session_id = await _chat_session_id(web_session)

    reply = await orchestrator.handle_turn(
        session_id=session_id,
        user_text=request.message,
        user_email=user.email,
    )

    return ChatResponse(
        text=reply.text,
        appointment_id=str(reply.appointment_id) if reply.appointment_id else None,
    )


@router.get(
    "/chat/history",
    response_model=list[TurnOut],
    summary="Current chat transcript",
)
async def history(
    user: Principal = Depends(require_user),
    web_session: WebSession = Depends(get_web_session),
    turns: TurnStore = Depends(get_turn_store),
) -> list[TurnOut]:
    """Turns of the current chat session, oldest first."""
    session_id = web_session.get(CHAT_SESSION_KEY)
    if not session_id:
        return []

    return [
        TurnOut(
            role=turn.role.value,
            text=turn.content,
            appointment_id=str(turn.appointment_id) if turn.appointment_id else None,
            created_at=turn.created_at,
        )
        for turn in await turns.history(session_id)
    ]


@router.delete(
    "/chat/session",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Start a new conversation",
)
async def reset_session(
    user: Principal = Depends(require_user),
    web_session: WebSession = Depends(get_web_session),
) -> None:
    """Forget the current chat session; the next message opens a new one."""
    if web_session.pop(CHAT_SESSION_KEY) is not None:
        await web_session.save()
