"""
Google sign-in routes.

The signed-in email becomes the contact email of booked appointments.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.responses import RedirectResponse

from turnero.api.dependencies import (
    USER_EMAIL_KEY,
    USER_NAME_KEY,
    Principal,
    WebSession,
    get_web_session,
    require_user,
)
from turnero.infra.identity import GoogleIdentityClient, IdentityError, get_identity_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])

STATE_KEY = "oauth_state"
VERIFIER_KEY = "oauth_code_verifier"


def get_identity() -> GoogleIdentityClient:
    return get_identity_client()


@router.get("/google", summary="Start Google sign-in")
async def login(
    web_session: WebSession = Depends(get_web_session),
    identity: GoogleIdentityClient = Depends(get_identity),
) -> RedirectResponse:
    """Redirect the browser to Google's consent screen."""
    auth_request = identity.authorization_request()

    web_session.put(STATE_KEY, auth_request.state)
    web_session.put(VERIFIER_KEY, auth_request.code_verifier)
    await web_session.save()

    redirect = RedirectResponse(auth_request.url, status_code=status.HTTP_302_FOUND)
    web_session.attach_cookie(redirect)
    return redirect


@router.get("/google/callback", summary="Google sign-in callback")
async def callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    web_session: WebSession = Depends(get_web_session),
    identity: GoogleIdentityClient = Depends(get_identity),
) -> RedirectResponse:
    """Complete sign-in and store the principal in the browser session."""
    expected_state = web_session.pop(STATE_KEY)
    code_verifier = web_session.pop(VERIFIER_KEY)

    if error:
        logger.info(f"Google sign-in declined: {error}")
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, detail="Inicio de sesión cancelado")
    if not code or not state or state != expected_state:
        logger.warning("Google sign-in callback with missing or mismatched state")
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="Solicitud de inicio de sesión inválida")

    try:
        user = await identity.complete(code=code, state=state, code_verifier=code_verifier)
    except IdentityError as e:
        raise HTTPException(status.HTTP_502_BAD_GATEWAY, detail=str(e))

    if not user.email_verified:
        raise HTTPException(status.HTTP_403_FORBIDDEN, detail="El email de Google no está verificado")

    web_session.put(USER_EMAIL_KEY, user.email)
    web_session.put(USER_NAME_KEY, user.name)
    await web_session.save()
    logger.info("User signed in")

    redirect = RedirectResponse("/", status_code=status.HTTP_302_FOUND)
    web_session.attach_cookie(redirect)
    return redirect


@router.get("/me", summary="Current user")
async def me(user: Principal = Depends(require_user)) -> dict:
    return {"email": user.email, "name": user.name}


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT, summary="Sign out")
async def logout(
    response: Response,
    web_session: WebSession = Depends(get_web_session),
) -> None:
    """Drop the browser session, its principal and chat session included."""
    await web_session.destroy(response)
