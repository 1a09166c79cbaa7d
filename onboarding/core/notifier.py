"""Outbound email for invitations.

Two transports are supported, selected by ``MAIL_SERVICE``:
- ``SMTP``/``GMAIL``: STARTTLS + login with smtplib
- ``SENDGRID``: SendGrid v3 mail/send HTTP API
"""
from __future__ import annotations
import html
import logging
import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import requests

logger = logging.getLogger(__name__)

SENDGRID_SEND_URL = "https://api.sendgrid.com/v3/mail/send"
REQUEST_TIMEOUT = 10


class NotificationError(Exception):
    """Message could not be handed to the mail transport."""
    pass


@dataclass
class EmailMessage:
    to: str
    sender: str
    subject: str
    text: str
    html: str


def build_invite_message(to: str, sender: str, link: str) -> EmailMessage:
    """Compose the invitation email carrying the accept link."""
    return EmailMessage(
        to=to,
        sender=sender,
        subject="You've been invited",
        text=f"Click here to create your account: {link}",
        html=f'<strong>Click <a href="{html.escape(link, quote=True)}">here</a> to create your account.</strong>',
    )


class SmtpNotifier:
    """Send mail through an SMTP relay (Gmail by default)."""

    def __init__(self, host: str, port: int, username: str, password: str):
        self.host = host
        self.port = port
        self.username = username
        self._password = password

    def send(self, message: EmailMessage) -> None:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = message.subject
        msg["From"] = message.sender
        msg["To"] = message.to
        msg.attach(MIMEText(message.text, "plain"))
        msg.attach(MIMEText(message.html, "html"))

        try:
            with smtplib.SMTP(self.host, self.port) as server:
                server.ehlo()
                server.starttls()
                server.ehlo()
                if self.username:
                    server.login(self.username, self._password)
                server.sendmail(message.sender, [message.to], msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationError(f"SMTP delivery to {message.to} failed: {e}") from e

        logger.info(f"Invitation email sent to {message.to} via SMTP")


class SendGridNotifier:
    """Send mail through the SendGrid v3 API."""

    def __init__(self, api_key: str):
        self._api_key = api_key

    def send(self, message: EmailMessage) -> None:
        payload = {
            "personalizations": [{"to": [{"email": message.to}]}],
            "from": {"email": message.sender},
            "subject": message.subject,
            "content": [
                {"type": "text/plain", "value": message.text},
                {"type": "text/html", "value": message.html},
            ],
        }
        try:
            resp = requests.post(
                SENDGRID_SEND_URL,
                json=payload,
                headers={"Authorization": f"Bearer {self._api_key}"},
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as e:
            raise NotificationError(f"SendGrid request failed: {e}") from e

        if resp.status_code >= 400:
            raise NotificationError(f"SendGrid rejected message to {message.to}: [{resp.status_code}] {resp.text}")

        logger.info(f"Invitation email sent to {message.to} via SendGrid")


def create_notifier(cfg):
    """Build the notifier configured by ``MAIL_SERVICE``."""
    if cfg.mail_service == "SENDGRID":
        return SendGridNotifier(cfg.sendgrid_api_key)
    return SmtpNotifier(cfg.smtp_host, cfg.smtp_port, cfg.smtp_user, cfg.smtp_password)
