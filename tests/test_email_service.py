import pytest

from extensions import db
from models import SentEmail
from utils import email_service
from utils.email_service import EmailConfigurationError, EmailDeliveryError, EmailNotifier, send_email


class RecordingSMTP:
    instances = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.messages = []
        self.started_tls = False
        self.logged_in = None
        RecordingSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def ehlo(self):
        pass

    def starttls(self, context=None):
        self.started_tls = True

    def login(self, username, password):
        self.logged_in = username

    def send_message(self, msg):
        self.messages.append(msg)


@pytest.fixture()
def smtp(monkeypatch):
    RecordingSMTP.instances = []
    monkeypatch.setattr(email_service.smtplib, "SMTP", RecordingSMTP)
    return RecordingSMTP


def _notifier(**overrides):
    settings = {
        "MAIL_SERVER": "smtp.river.gov.in",
        "MAIL_PORT": 587,
        "MAIL_USERNAME": "alerts@river.gov.in",
        "MAIL_PASSWORD": "secret",
        "MAIL_USE_TLS": True,
        "MAIL_USE_SSL": False,
    }
    settings.update(overrides)
    return EmailNotifier.from_config(settings)


def test_sender_defaults_to_username():
    notifier = _notifier()
    assert notifier.sender == "alerts@river.gov.in"
    assert notifier.is_configured


def test_missing_server_is_a_configuration_error():
    with pytest.raises(EmailConfigurationError):
        _notifier(MAIL_SERVER="").send("owner@textiles.co.in", "Subject", "Body")


def test_send_uses_starttls_and_html_alternative(smtp):
    _notifier().send("owner@textiles.co.in", "Urgent", "Dear Team,\n\n• pH Level – Safe Range: 6.5–8.5, Detected: 9.2")

    server = smtp.instances[0]
    assert server.started_tls
    assert server.logged_in == "alerts@river.gov.in"
    message = server.messages[0]
    assert message["To"] == "owner@textiles.co.in"
    assert message.get_body(preferencelist=("html",)) is not None
    assert "Detected: 9.2" in message.get_body(preferencelist=("plain",)).get_content()


def test_smtp_errors_become_delivery_errors(monkeypatch):
    def refuse(*args, **kwargs):
        raise OSError("connection refused")

    monkeypatch.setattr(email_service.smtplib, "SMTP", refuse)
    with pytest.raises(EmailDeliveryError):
        _notifier().send("owner@textiles.co.in", "Subject", "Body")


def test_send_email_records_every_attempt(ctx, notifier):
    assert send_email(db.session, notifier, "owner@textiles.co.in", "Hello", "Body") is True
    notifier.fail = True
    assert send_email(db.session, notifier, "owner@textiles.co.in", "Hello again", "Body") is False

    statuses = [row.delivery_status for row in db.session.query(SentEmail).order_by(SentEmail.id)]
    assert statuses == ["SENT", "FAILED"]


def test_rendering_errors_become_delivery_errors(smtp, monkeypatch):
    def broken_renderer(text):
        raise ValueError("unbalanced markup")

    monkeypatch.setattr(email_service, "markdown_to_email_html", broken_renderer)
    with pytest.raises(EmailDeliveryError, match="unbalanced markup"):
        _notifier().send("owner@textiles.co.in", "Subject", "Body")
    assert smtp.instances == []


def test_send_email_records_rendering_failure(ctx, smtp, monkeypatch):
    monkeypatch.setattr(email_service, "markdown_to_email_html", lambda text: 1 / 0)

    assert send_email(db.session, _notifier(), "owner@textiles.co.in", "Hello", "Body") is False
    assert db.session.query(SentEmail).one().delivery_status == "FAILED"
