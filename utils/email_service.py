"""SMTP-backed notifier for warning emails and manual messages, with delivery audit."""
import smtplib
import ssl
from email.message import EmailMessage
from email.utils import formatdate, make_msgid
from typing import Mapping

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from models import SentEmail
from utils.markdown_formatter import markdown_to_email_html


class EmailDeliveryError(Exception):
    """Raised when email dispatch fails."""


class EmailConfigurationError(EmailDeliveryError):
    """Raised when the SMTP settings needed for dispatch are missing."""


class EmailNotifier:
    """Sends plain-text emails (with an HTML alternative) over SMTP."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str = "",
        password: str = "",
        sender: str = "",
        use_tls: bool = True,
        use_ssl: bool = False,
        timeout: int = 30,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender
        self.use_tls = use_tls
        self.use_ssl = use_ssl
        self.timeout = timeout

    @classmethod
    def from_config(cls, config: Mapping) -> "EmailNotifier":
        return cls(
            host=config.get("MAIL_SERVER") or "",
            port=int(config.get("MAIL_PORT", 587)),
            username=config.get("MAIL_USERNAME") or "",
            password=config.get("MAIL_PASSWORD") or "",
            sender=config.get("MAIL_DEFAULT_SENDER") or config.get("MAIL_USERNAME") or "",
            use_tls=bool(config.get("MAIL_USE_TLS")),
            use_ssl=bool(config.get("MAIL_USE_SSL")),
            timeout=int(config.get("MAIL_TIMEOUT", 30)),
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.host and self.sender)

    def _build_message(self, to: str, subject: str, body: str) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self.sender
        msg["To"] = to
        msg["Reply-To"] = self.sender
        msg["Date"] = formatdate(localtime=True)
        msg["Message-ID"] = make_msgid()
        msg.set_content(body)
        msg.add_alternative(markdown_to_email_html(body), subtype="html")
        return msg

    def send(self, to: str, subject: str, body: str) -> None:
        if not self.is_configured:
            raise EmailConfigurationError("Missing SMTP configuration.")
        if not to:
            raise EmailDeliveryError("No recipient resolved for email dispatch")

        try:
            msg = self._build_message(to, subject, body)
            if self.use_ssl:
                context = ssl.create_default_context()
                with smtplib.SMTP_SSL(self.host, self.port, context=context, timeout=self.timeout) as server:
                    if self.username and self.password:
                        server.login(self.username, self.password)
                    server.send_message(msg)
            else:
                with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                    server.ehlo()
                    if self.use_tls:
                        server.starttls(context=ssl.create_default_context())
                    if self.username and self.password:
                        server.login(self.username, self.password)
                    server.send_message(msg)
        except Exception as exc:
            raise EmailDeliveryError(str(exc)) from exc


def get_notifier():
    """Return the notifier bound to the current application."""
    return current_app.extensions["notifier"]


def _persist_audit(session, to: str, subject: str, body: str, status: str, error: str | None = None) -> None:
    record = SentEmail(
        recipient=to,
        subject=subject,
        content=body,
        delivery_status=status,
        error_message=error,
    )
    try:
        session.add(record)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        current_app.logger.exception("Email audit write failed", extra={"recipient": to, "status": status})


def send_email(session, notifier, to: str, subject: str, body: str) -> bool:
    """Dispatch one email through *notifier* and record the attempt.

    Delivery failures are logged and reported as ``False``; they never propagate.
    """
    try:
        notifier.send(to, subject, body)
    except EmailDeliveryError as exc:
        current_app.logger.warning("Email dispatch failed", extra={"recipient": to, "error": str(exc)})
        _persist_audit(session, to, subject, body, status="FAILED", error=str(exc))
        return False

    current_app.logger.info("Email dispatched", extra={"recipient": to, "subject": subject})
    _persist_audit(session, to, subject, body, status="SENT")
    return True
