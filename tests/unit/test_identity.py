"""Tests for Google sign-in."""

from urllib.parse import parse_qs, urlparse
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from turnero.infra.identity import GoogleIdentityClient, IdentityError


def userinfo_transport(status: int, payload: dict) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["Authorization"] == "Bearer access-token"
        return httpx.Response(status, json=payload)

    return httpx.MockTransport(handler)


class TestGoogleIdentityClient:
    """Test the OAuth redirect and the profile lookup."""

    @pytest.fixture
    def client(self):
        client = GoogleIdentityClient()
        client.client_id = "client-123"
        client.client_secret = "secret"
        client.redirect_uri = "http://localhost:8000/auth/google/callback"
        return client

    def test_authorization_request(self, client):
        """Test the redirect carries client id, scopes and state."""
        auth = client.authorization_request()

        query = parse_qs(urlparse(auth.url).query)
        assert urlparse(auth.url).netloc == "accounts.google.com"
        assert query["client_id"] == ["client-123"]
        assert query["state"] == [auth.state]
        assert "openid" in query["scope"][0]
        assert query["prompt"] == ["select_account"]

    @pytest.mark.asyncio
    async def test_fetch_userinfo(self, client):
        """Test the email is lowercased and verification is read."""
        transport = userinfo_transport(200, {
            "email": "Ana@X.com", "name": "Ana Pérez", "email_verified": True,
        })
        real_client = httpx.AsyncClient

        with patch(
            "turnero.infra.identity.httpx.AsyncClient",
            lambda **kwargs: real_client(transport=transport, **kwargs),
        ):
            user = await client.fetch_userinfo("access-token")

        assert user.email == "ana@x.com"
        assert user.name == "Ana Pérez"
        assert user.email_verified is True

    @pytest.mark.asyncio
    async def test_fetch_userinfo_http_error(self, client):
        """Test a rejected token raises IdentityError."""
        transport = userinfo_transport(401, {"error": "invalid_token"})
        real_client = httpx.AsyncClient

        with patch(
            "turnero.infra.identity.httpx.AsyncClient",
            lambda **kwargs: real_client(transport=transport, **kwargs),
        ):
            with pytest.raises(IdentityError):
                await client.fetch_userinfo("access-token")

    @pytest.mark.asyncio
    async def test_complete_token_exchange_failure(self, client):
        """Test a failed code exchange raises IdentityError."""
        flow = MagicMock()
        flow.fetch_token.side_effect = ValueError("invalid_grant")

        with patch.object(client, "_flow", return_value=flow):
            with pytest.raises(IdentityError):
                await client.complete(code="bad", state="s", code_verifier="v")

    @pytest.mark.asyncio
    async def test_complete(self, client):
        """Test a successful exchange reads the profile with the access token."""
        flow = MagicMock()
        flow.credentials.token = "access-token"
        fetch = AsyncMock()

        with patch.object(client, "_flow", return_value=flow), \
                patch.object(client, "fetch_userinfo", fetch):
            await client.complete(code="good", state="s", code_verifier="v")

        flow.fetch_token.assert_called_once_with(code="good")
        fetch.assert_awaited_once_with("access-token")
