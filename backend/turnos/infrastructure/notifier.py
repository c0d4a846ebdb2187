"""
Confirmation emails over SMTP.
Set EMAIL_USER and EMAIL_PASS (for Gmail, an App Password). Port 465 uses implicit TLS, any other port STARTTLS.
"""

from __future__ import annotations

import asyncio
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import Sequence

from ..domain.repositories import Notifier

logger = logging.getLogger(__name__)


class SmtpNotifier(Notifier):
    def __init__(
        self,
        *,
        host: str,
        port: int,
        user: str,
        password: str,
        sender: str | None = None,
        timeout: float = 10.0,
    ) -> None:
        self.host = host
        self.port = port
        self.user = (user or "").strip()
        self.password = (password or "").strip()
        self.sender = (sender or "").strip() or self.user
        self.timeout = timeout

    def _build_message(self, recipients: Sequence[str], subject: str, body: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.sender
        msg["To"] = ", ".join(recipients)
        msg.attach(MIMEText(body, "plain"))
        msg.attach(MIMEText(f"<pre style='font-family:sans-serif'>{escape(body)}</pre>", "html"))
        return msg

    def _deliver(self, recipients: list[str], msg: MIMEMultipart) -> None:
        if self.port == 465:
            with smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout) as server:
                server.login(self.user, self.password)
                server.sendmail(self.sender, recipients, msg.as_string())
            return
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            server.starttls()
            server.login(self.user, self.password)
            server.sendmail(self.sender, recipients, msg.as_string())

    async def send(self, recipients: Sequence[str], subject: str, body: str) -> bool:
        """Returns True if sent, False if skipped or failed. Never raises."""
        to = [r.strip() for r in recipients if r and r.strip()]
        if not to:
            return False
        if not self.user or not self.password:
            logger.debug("EMAIL_USER or EMAIL_PASS not set; skipping email to %s", to)
            return False
        msg = self._build_message(to, subject, body)
        try:
            await asyncio.to_thread(self._deliver, to, msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.exception("Failed to send email to %s: %s", to, e)
            return False
        logger.info("Email sent to %s: %s", to, subject)
        return True
