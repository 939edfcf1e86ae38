"""Tests for the SMTP mail client."""

import smtplib
from unittest.mock import patch

import pytest

from turnero.infra.mailer import SmtpMailClient


class TestSmtpMailClient:
    """Test SMTP delivery."""

    @pytest.fixture
    def client(self):
        return SmtpMailClient(
            host="smtp.example.com",
            port=587,
            username="user",
            password="secret",
            use_tls=True,
            sender="turnos@example.com",
        )

    def test_build_message(self, client):
        """Test headers and HTML part."""
        message = client._build_message("ana@x.com", "Asunto", "<p>Hola</p>")

        assert message["To"] == "ana@x.com"
        assert message["From"] == "turnos@example.com"
        assert message["Subject"] == "Asunto"
        assert message.get_payload()[0].get_content_type() == "text/html"

    @pytest.mark.asyncio
    async def test_send(self, client):
        """Test STARTTLS, login and send."""
        with patch("turnero.infra.mailer.smtplib.SMTP") as smtp_cls:
            server = smtp_cls.return_value.__enter__.return_value

            sent = await client.send("ana@x.com", "Asunto", "<p>Hola</p>")

        assert sent is True
        smtp_cls.assert_called_once_with("smtp.example.com", 587, timeout=30.0)
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("user", "secret")
        server.send_message.assert_called_once()

    @pytest.mark.asyncio
    async def test_send_without_credentials(self):
        """Test login is skipped when no credentials are configured."""
        client = SmtpMailClient(
            host="localhost", port=25, username="", password="", use_tls=False, sender="a@b.c"
        )

        with patch("turnero.infra.mailer.smtplib.SMTP") as smtp_cls:
            server = smtp_cls.return_value.__enter__.return_value

            assert await client.send("ana@x.com", "Asunto", "<p>Hola</p>") is True

        server.starttls.assert_not_called()
        server.login.assert_not_called()

    @pytest.mark.asyncio
    async def test_smtp_error_returns_false(self, client):
        """Test SMTP failures are reported, not raised."""
        with patch("turnero.infra.mailer.smtplib.SMTP") as smtp_cls:
            server = smtp_cls.return_value.__enter__.return_value
            server.send_message.side_effect = smtplib.SMTPRecipientsRefused({})

            assert await client.send("ana@x.com", "Asunto", "<p>Hola</p>") is False

    @pytest.mark.asyncio
    async def test_connection_error_returns_false(self, client):
        """Test an unreachable server is reported, not raised."""
        with patch("turnero.infra.mailer.smtplib.SMTP", side_effect=ConnectionRefusedError()):
            assert await client.send("ana@x.com", "Asunto", "<p>Hola</p>") is False
