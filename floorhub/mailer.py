from __future__ import annotations

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from .config import Settings

logger = logging.getLogger("floorhub.mail")


class MailError(RuntimeError):
    """Mail could not be delivered to the SMTP server."""


class Mailer:
    """Plain-text SMTP sender for quotes and order notifications."""

    def __init__(self, settings: Settings) -> None:
        self._host = settings.smtp_host
        self._port = settings.smtp_port
        self._username = settings.smtp_username
        self._password = settings.smtp_password
        self._sender = settings.mail_sender

    @property
    def configured(self) -> bool:
        return bool(self._host)

    def send(self, to: str, subject: str, body: str) -> None:
        """Purpose: Send one plain-text e-mail.
        Inputs/Outputs: Inputs are recipient, subject, and body; no return value.
        Side Effects / State: Opens an SMTP connection (STARTTLS when credentials are set).
        Dependencies: Uses smtplib and email.mime.
        Failure Modes: Missing SMTP host, connection, or auth failures raise MailError.
        If Removed: Quotes and order notifications are never delivered.
        Testing Notes: Patch smtplib.SMTP and assert send_message was called once.
        """
        # Build the message, then deliver it in a single SMTP session.
        if not self._host:
            raise MailError("SMTP host is not configured")
        if not to:
            raise MailError("Recipient address is empty")

        msg = MIMEMultipart()
        msg["From"] = self._sender
        msg["To"] = to
        msg["Subject"] = subject
        msg.attach(MIMEText(body, "plain", "utf-8"))

        try:
            server = smtplib.SMTP(self._host, self._port, timeout=30)
            try:
                if self._username:
                    server.starttls()
                    server.login(self._username, self._password)
                server.send_message(msg)
            finally:
                server.quit()
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("mail to=%s subject=%s status=error error=%s", to, subject, exc)
            raise MailError(str(exc)) from exc
        logger.info("mail to=%s subject=%s status=sent", to, subject)
