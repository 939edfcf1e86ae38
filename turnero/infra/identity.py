"""
Google sign-in.

The OAuth 2.0 web flow is delegated to google-auth-oauthlib; the user's
email is read from the OpenID Connect userinfo endpoint with httpx.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

import httpx
from google_auth_oauthlib.flow import Flow

from turnero.config import get_settings
from turnero.core.errors import ExternalServiceError

logger = logging.getLogger(__name__)

SCOPES = [
    "openid",
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/userinfo.profile",
]

AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
TOKEN_URI = "https://oauth2.googleapis.com/token"
USERINFO_URI = "https://openidconnect.googleapis.com/v1/userinfo"


class IdentityError(ExternalServiceError):
    """Sign-in could not be completed."""
    pass


@dataclass
class AuthorizationRequest:
    """Where to send the browser, and what to remember until it comes back."""

    url: str
    state: str
    code_verifier: Optional[str] = None


@dataclass
class GoogleUser:
    email: str
    name: Optional[str] = None
    email_verified: bool = False


class GoogleIdentityClient:
    """Builds the redirect and completes the code exchange."""

    def __init__(self, timeout: float = 10.0):
        settings = get_settings()
        self.client_id = settings.google_client_id
        self.client_secret = settings.google_client_secret
        self.redirect_uri = settings.google_redirect_uri
        self.timeout = timeout

    def _flow(self, state: Optional[str] = None, code_verifier: Optional[str] = None) -> Flow:
        client_config = {
            "web": {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "auth_uri": AUTH_URI,
                "token_uri": TOKEN_URI,
                "redirect_uris": [self.redirect_uri],
            }
        }
        flow = Flow.from_client_config(
            client_config,
            scopes=SCOPES,
            state=state,
            code_verifier=code_verifier,
        )
        flow.redirect_uri = self.redirect_uri
        return flow

    def authorization_request(self) -> AuthorizationRequest:
        """Start the flow."""
        flow = self._flow()
        url, state = flow.authorization_url(
            access_type="online",
            include_granted_scopes="true",
            prompt="select_account",
        )
        return AuthorizationRequest(url=url, state=state, code_verifier=flow.code_verifier)

    async def complete(
        self,
        code: str,
        state: str,
        code_verifier: Optional[str] = None,
    ) -> GoogleUser:
        """
        Exchange the authorization code and read the user's profile.

        Raises:
            IdentityError: token exchange or userinfo request failed
        """
        flow = self._flow(state=state, code_verifier=code_verifier)

        try:
            await asyncio.to_thread(flow.fetch_token, code=code)
        except Exception as e:
            logger.error(f"OAuth token exchange failed: {e}")
            raise IdentityError("No se pudo completar el inicio de sesión") from e

        return await self.fetch_userinfo(flow.credentials.token)

    async def fetch_userinfo(self, access_token: str) -> GoogleUser:
        """Read email and name for an access token."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(
                    USERINFO_URI,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            logger.error(f"Userinfo request failed: {e}")
            raise IdentityError("No se pudo obtener el perfil de Google") from e

        email = data.get("email")
        if not email:
            raise IdentityError("La cuenta de Google no tiene email")

        return GoogleUser(
            email=email.lower(),
            name=data.get("name"),
            email_verified=bool(data.get("email_verified", False)),
        )


_identity: Optional[GoogleIdentityClient] = None


def get_identity_client() -> GoogleIdentityClient:
    """Get singleton GoogleIdentityClient."""
    global _identity
    if _identity is None:
        _identity = GoogleIdentityClient()
    return _identity
