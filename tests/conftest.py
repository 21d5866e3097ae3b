"""Pytest configuration and shared fixtures."""

from datetime import timedelta
from decimal import Decimal

import pytest

from app import create_app
from config import TestConfig
from extensions import db
from models import Bundle, Event, Registration, UserProfile, new_id, utcnow
from services.payment_service import PaymentIntent


class FakeMailer:
    """Records every message instead of sending it."""

    is_configured = True

    def __init__(self):
        self.sent = []
        self.fail_for = set()

    def send(self, to, template):
        recipients = to if isinstance(to, (list, tuple)) else [to]
        if any(r.email in self.fail_for for r in recipients):
            raise RuntimeError("mail server unavailable")
        self.sent.append((recipients, template))
        return True

    def recipients(self):
        return [r.email for recipients, _ in self.sent for r in recipients]


class FakePayments:
    is_configured = True

    def __init__(self):
        self.calls = []
        self.error = None

    def create_payment_intent(self, amount, currency, metadata=None):
        if self.error is not None:
            raise self.error
        self.calls.append({"amount": amount, "currency": currency, "metadata": metadata})
        return PaymentIntent(id=f"pi_{len(self.calls)}", client_secret=f"secret_{len(self.calls)}")


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def payments():
    return FakePayments()


@pytest.fixture
def app(mailer, payments):
    app = create_app(TestConfig, mailer=mailer, payments=payments)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_profile(app):
    def _make(role="student", groups=None, email=None, first_name="Noa", last_name="Levi", phone="0501234567"):
        profile = UserProfile(
            uid=new_id(),
            role=role,
            email=email or f"{new_id()[:8]}@example.com",
            first_name=first_name,
            last_name=last_name,
            phone=phone,
            groups=groups or [],
        )
        db.session.add(profile)
        db.session.commit()
        return profile

    return _make


@pytest.fixture
def make_event(app):
    def _make(title="Morning drill", days_ahead=7, capacity=10, price="120", publish=True, **fields):
        event = Event(
            id=new_id(),
            title=title,
            start_at=utcnow() + timedelta(days=days_ahead),
            max_participants=capacity,
            price_nis=Decimal(price),
            publish=publish,
            status=fields.pop("status", "active"),
            location_name=fields.pop("location_name", "פארק הירקון, תל אביב"),
            lat=32.1,
            lng=34.8,
            **fields,
        )
        db.session.add(event)
        db.session.commit()
        return event

    return _make


@pytest.fixture
def make_bundle(app):
    def _make(events, replacements=(), price="450", publish=True, status="active", valid_until=None, title="Prep bundle"):
        bundle = Bundle(
            id=new_id(),
            title=title,
            price_nis=Decimal(price),
            event_ids=[e.id if hasattr(e, "id") else e for e in events],
            replacement_event_ids=[e.id for e in replacements],
            publish=publish,
            status=status,
            valid_until=valid_until,
        )
        db.session.add(bundle)
        db.session.commit()
        return bundle

    return _make


@pytest.fixture
def fill_event(app):
    """Add ``count`` active registrations by other users, holding their seats."""

    def _fill(event, count=None, status="pending"):
        count = event.max_participants if count is None else count
        for _ in range(count):
            db.session.add(Registration(id=new_id(), event_id=event.id, uid=new_id(), status=status))
        event.reserved_seats = (event.reserved_seats or 0) + count
        db.session.commit()

    return _fill


@pytest.fixture
def token_for(app):
    def _token(profile):
        identity = app.extensions["collaborators"].identity
        return identity.issue_token(profile.uid, profile.email)

    return _token


@pytest.fixture
def auth_headers(token_for):
    def _headers(profile):
        return {"Authorization": f"Bearer {token_for(profile)}"}

    return _headers


@pytest.fixture
def admin(make_profile):
    return make_profile(role="admin", email="admin@example.com", first_name="Admin", last_name="")
