from __future__ import annotations

from datetime import datetime
from typing import Dict, List

import pytest

from app import create_app
from extensions import db
from models import Industry, Role, User
from utils.email_service import EmailConfigurationError, EmailDeliveryError
from utils.industry_service import add_industry, record_sample

PASSWORD = "Str0ng!Passw0rd"


# -----------------------------
# Notifier double
# -----------------------------
class FakeNotifier:
    """Records outgoing emails instead of talking to an SMTP server."""

    def __init__(self, configured: bool = True, fail: bool = False) -> None:
        self.configured = configured
        self.fail = fail
        self.sent: List[Dict[str, str]] = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    def send(self, to: str, subject: str, body: str) -> None:
        if not self.configured:
            raise EmailConfigurationError("Missing SMTP configuration.")
        if self.fail:
            raise EmailDeliveryError("SMTP connection refused")
        self.sent.append({"to": to, "subject": subject, "body": body})


@pytest.fixture()
def notifier() -> FakeNotifier:
    return FakeNotifier()


# -----------------------------
# Application fixtures
# -----------------------------
@pytest.fixture()
def app(notifier):
    app = create_app("testing")
    app.extensions["notifier"] = notifier
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def ctx(app):
    """Push an app context for tests that call services directly."""
    with app.app_context():
        yield app


@pytest.fixture()
def client(app):
    return app.test_client()


# -----------------------------
# Factories (return primary keys so rows can be reloaded in any context)
# -----------------------------
@pytest.fixture()
def make_user(app):
    def _make(email: str, role: str = "industry_owner", verified: bool = True, name: str = "Test User") -> str:
        with app.app_context():
            user = User(
                name=name,
                email=email,
                role=Role.get_or_create(role),
                is_verified=verified,
                is_active=True,
            )
            user.set_password(PASSWORD)
            db.session.add(user)
            db.session.commit()
            return user.id

    return _make


@pytest.fixture()
def make_industry(app):
    def _make(code: str = "TX-001", industry_type: str = "Textile", owner_id: str | None = None, **extra) -> int:
        data = {
            "name": extra.pop("name", f"Industry {code}"),
            "industry_code": code,
            "industry_type": industry_type,
            "owner_id": owner_id,
            "location": "Kanpur",
        }
        data.update(extra)
        with app.app_context():
            return add_industry(db.session, data).id

    return _make


@pytest.fixture()
def add_sample(app):
    def _add(industry_id: int, measured_at: datetime, kit_type: str = "outgoing", **readings) -> int:
        with app.app_context():
            industry = db.session.get(Industry, industry_id)
            return record_sample(db.session, industry, kit_type, measured_at, readings).id

    return _add


def login(client, email: str, password: str = PASSWORD):
    return client.post("/auth/login", data={"email": email, "password": password})
