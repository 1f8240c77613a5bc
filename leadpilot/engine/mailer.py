"""
Mailer - outbound email.

  SmtpMailer    real delivery through the configured SMTP server
  DryRunMailer  records the message in the log only (MAIL_DRY_RUN=true)

send() returns a receipt dict on success and raises MailerError otherwise;
callers only mutate a lead after a receipt comes back.
"""

import asyncio
import logging
import smtplib
import uuid
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Any, Dict, List


logger = logging.getLogger(__name__)


class MailerError(Exception):
    """Delivery failed; nothing was sent."""


class Mailer:
    async def send(self, to: str, subject: str, body: str) -> Dict[str, Any]:
        raise NotImplementedError


class DryRunMailer(Mailer):
    """Keeps sent messages in memory and in the log. Used for local runs and demos."""

    def __init__(self):
        self.sent: List[Dict[str, Any]] = []

    async def send(self, to: str, subject: str, body: str) -> Dict[str, Any]:
        if not to:
            raise MailerError("No recipient address")
        receipt = {'id': f"dry-run-{uuid.uuid4().hex[:8]}", 'to': to, 'subject': subject}
        self.sent.append({**receipt, 'body': body})
        logger.info(f"Dry-run email to {to}: {subject}")
        return receipt


class SmtpMailer(Mailer):
    """Sends plain-text UTF-8 email via SMTP with STARTTLS."""

    def __init__(self, host: str, port: int, username: str, password: str, sender: str):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender or username

    def _build_message(self, to: str, subject: str, body: str) -> EmailMessage:
        msg = EmailMessage()
        msg['From'] = self.sender
        msg['To'] = to
        msg['Subject'] = subject
        msg['Message-ID'] = make_msgid()
        msg.set_content(body, charset='utf-8')
        return msg

    def _send_blocking(self, msg: EmailMessage):
        with smtplib.SMTP(self.host, self.port, timeout=30) as smtp:
            smtp.starttls()
            if self.username:
                smtp.login(self.username, self.password)
            smtp.send_message(msg)

    async def send(self, to: str, subject: str, body: str) -> Dict[str, Any]:
        if not to:
            raise MailerError("No recipient address")
        msg = self._build_message(to, subject, body)
        try:
            await asyncio.to_thread(self._send_blocking, msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"SMTP send to {to} failed: {e}")
            raise MailerError(f"Failed to send email to {to}: {e}") from e
        logger.info(f"Email sent to {to}: {subject}")
        return {'id': msg['Message-ID'], 'to': to, 'subject': subject}


def get_mailer(cfg) -> Mailer:
    """Pick the mailer from configuration. Called once at startup."""
    if cfg.MAIL_DRY_RUN or not cfg.SMTP_HOST:
        logger.info("Mailer in dry-run mode")
        return DryRunMailer()
    return SmtpMailer(cfg.SMTP_HOST, cfg.SMTP_PORT, cfg.SMTP_USERNAME, cfg.SMTP_PASSWORD, cfg.MAIL_FROM)
