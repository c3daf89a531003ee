import os
# Ensure the app factory picks the Testing config & SQLite memory DB
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("TEST_DATABASE_URL", "sqlite:///:memory:")
# Config classes read these at import time
os.environ.setdefault("RESEND_WEBHOOK_SECRET", "whsec_dGVzdC13ZWJob29rLXNlY3JldC1rZXk=")
os.environ.setdefault("ADMIN_PASSWORD", "test-admin-pw")

import pytest
from timecapsule import create_app
from timecapsule.extensions import db
from timecapsule.services import clock


class FakeTransport:
    """Records sends; fails for any recipient listed in `fail_for`."""

    def __init__(self, fail_for=(), error="provider said no"):
        self.fail_for = set(fail_for)
        self.error = error
        self.sent = []

    def send(self, to, subject, html, text=None):
        from timecapsule.errors import TransportFailure

        if to in self.fail_for:
            raise TransportFailure(self.error)
        provider_id = f"prov-{len(self.sent) + 1}"
        self.sent.append({"to": to, "subject": subject, "html": html, "text": text, "id": provider_id})
        return provider_id


@pytest.fixture(scope="session")
def app():
    app = create_app()
    app.config.update(
        TESTING=True,
        SQLALCHEMY_DATABASE_URI="sqlite:///:memory:",
        MAIL_SUPPRESS_SEND=True,
        APP_BASE_URL="http://example.test",
        WTF_CSRF_ENABLED=False,
        RESEND_WEBHOOK_SECRET=os.environ["RESEND_WEBHOOK_SECRET"],
        ADMIN_PASSWORD=os.environ["ADMIN_PASSWORD"],
        IP_DAILY_LIMIT=20,
        IP_10MIN_LIMIT=5,
        MIN_LEAD_SECONDS=3600,
        DAILY_CREATE_LIMIT=80,
    )
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def ctx(app):
    with app.app_context():
        yield app


@pytest.fixture()
def fake_transport():
    return FakeTransport()


@pytest.fixture()
def frozen_now(monkeypatch):
    """Pin clock.now() to 2025-06-01 12:00:00 UTC+8; returns the epoch."""
    t = clock.to_epoch("2025-06-01T12:00")
    monkeypatch.setattr(clock, "now", lambda: t)
    return t


@pytest.fixture(autouse=True)
def _db_clean(app):
    # Clean BEFORE each test
    with app.app_context():
        db.session.rollback()
        for tbl in reversed(db.metadata.sorted_tables):
            db.session.execute(tbl.delete())
        db.session.commit()
    yield
    # And AFTER each test (keeps state hermetic even if a test fails mid-transaction)
    with app.app_context():
        db.session.rollback()
        for tbl in reversed(db.metadata.sorted_tables):
            db.session.execute(tbl.delete())
        db.session.commit()
