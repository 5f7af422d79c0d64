"""
auth/notifier.py -- Outbound notification collaborators.

The issuer only needs `send(to, subject, body)`. Any exception from send() is
treated as a failed dispatch: the password-reset flow rolls back the token it
just stored and surfaces the error. Nothing here retries.

SmtpNotifier   -- smtplib with STARTTLS, used when SMTP_HOST is configured.
LoggingNotifier -- writes the message to the log; the dev/test default.
"""

from __future__ import annotations

import logging
import smtplib
import ssl
from collections import deque
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Protocol

logger = logging.getLogger("gatekeeper.notifier")


class Notifier(Protocol):
    def send(self, to: str, subject: str, body: str) -> None: ...


class SmtpNotifier:
    """Send HTML mail through an SMTP relay."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str = "",
        password: str = "",
        from_email: str = "no-reply@gatekeeper.local",
        timeout: float = 10.0,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_email = from_email
        self.timeout = timeout

    def send(self, to: str, subject: str, body: str) -> None:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.from_email
        msg["To"] = to
        msg.attach(MIMEText(body, "html", "utf-8"))

        context = ssl.create_default_context()
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            server.starttls(context=context)
            if self.username:
                server.login(self.username, self.password)
            server.send_message(msg)
        logger.info("Mail sent to %s (%s)", to, subject)


class LoggingNotifier:
    """Log instead of sending. Recent messages stay in .sent for inspection."""

    def __init__(self, keep: int = 50) -> None:
        self.sent: deque[tuple[str, str, str]] = deque(maxlen=keep)

    def send(self, to: str, subject: str, body: str) -> None:
        self.sent.append((to, subject, body))
        logger.info("Mail to %s suppressed (no SMTP configured): %s", to, subject)
