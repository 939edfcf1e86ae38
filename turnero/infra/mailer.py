"""
SMTP mail client.

Sends one HTML message at a time. smtplib is blocking, so delivery runs in
a worker thread. Failures are logged and reported as False.
"""

import asyncio
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from turnero.config import get_settings

logger = logging.getLogger(__name__)


class SmtpMailClient:
    """Outgoing mail over SMTP (STARTTLS + login when configured)."""

    def __init__(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: Optional[bool] = None,
        sender: Optional[str] = None,
        timeout: float = 30.0,
    ):
        settings = get_settings()
        self.host = host or settings.smtp_host
        self.port = port or settings.smtp_port
        self.username = username if username is not None else settings.smtp_username
        self.password = password if password is not None else settings.smtp_password
        self.use_tls = settings.smtp_use_tls if use_tls is None else use_tls
        self.sender = sender or settings.mail_from
        self.timeout = timeout

    def _build_message(self, to: str, subject: str, html_body: str) -> MIMEMultipart:
        message = MIMEMultipart("alternative")
        message["Subject"] = subject
        message["From"] = self.sender
        message["To"] = to
        message.attach(MIMEText(html_body, "html", "utf-8"))
        return message

    def _deliver(self, message: MIMEMultipart) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            if self.use_tls:
                server.starttls()
            if self.username and self.password:
                server.login(self.username, self.password)
            server.send_message(message)

    async def send(self, to: str, subject: str, html_body: str) -> bool:
        """
        Send an HTML email.

        Args:
            to: Recipient address
            subject: Subject line
            html_body: HTML content

        Returns:
            True if the server accepted the message
        """
        message = self._build_message(to, subject, html_body)

        try:
            await asyncio.to_thread(self._deliver, message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email '{subject}': {e}")
            return False

        logger.info(f"Email sent: '{subject}'")
        return True


_mail_client: Optional[SmtpMailClient] = None


def get_mail_client() -> SmtpMailClient:
    """Get singleton SmtpMailClient."""
    global _mail_client
    if _mail_client is None:
        _mail_client = SmtpMailClient()
    return _mail_client
