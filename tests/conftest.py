import json
from dataclasses import replace
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from app import create_app
from config import TestingConfig
from models import db
from models.booking import Booking
from models.provider import Provider
from models.service import Service, ServiceAddon
from models.user import User, Role
from security.password import hash_password
from security.rbac import ADMIN, BARBER, CLIENT
from services.stripe_gateway import AccountStatus, PaymentAuthorization, PaymentStatus
from utils.errors import PaymentProcessorError, ValidationError

GOOD_SIGNATURE = "t=1,v1=good"
PASSWORD = "correct-horse-battery"


class FakeGateway:
    """In-memory stand-in for StripeGateway that records every call."""

    def __init__(self):
        self.calls = []
        self.accounts = {}
        self.intents = {}
        self.fail_with = None
        self._seq = 0

    def names(self):
        return [name for name, _ in self.calls]

    def _next(self, prefix):
        self._seq += 1
        return f"{prefix}_{self._seq}"

    def create_connected_account(self, email, business_type="individual", metadata=None):
        self.calls.append(("create_connected_account", {"email": email, "business_type": business_type}))
        account_id = self._next("acct_test")
        self.accounts[account_id] = AccountStatus(account_id, False, False, False)
        return account_id

    def create_account_link(self, account_id, refresh_url, return_url):
        self.calls.append(("create_account_link", {"account_id": account_id}))
        return f"https://connect.stripe.test/setup/{account_id}"

    def retrieve_account(self, account_id):
        self.calls.append(("retrieve_account", account_id))
        return self.accounts.get(account_id, AccountStatus(account_id, False, False, False))

    def create_payment_authorization(self, amount, currency, metadata, application_fee=None,
                                     destination=None, idempotency_key=None):
        self.calls.append(("create_payment_authorization", {
            "amount": amount,
            "currency": currency,
            "metadata": dict(metadata),
            "application_fee": application_fee,
            "destination": destination,
            "idempotency_key": idempotency_key,
        }))
        if self.fail_with is not None:
            raise self.fail_with
        pi_id = self._next("pi_test")
        self.intents[pi_id] = PaymentStatus(
            id=pi_id,
            status="requires_payment_method",
            amount=amount,
            amount_received=0,
            currency=currency,
            application_fee_amount=application_fee,
            transfer_destination=destination,
            metadata={k: str(v) for k, v in metadata.items()},
        )
        return PaymentAuthorization(id=pi_id, client_secret=f"{pi_id}_secret", amount=amount, currency=currency)

    def retrieve_payment_authorization(self, payment_intent_id):
        self.calls.append(("retrieve_payment_authorization", payment_intent_id))
        if payment_intent_id not in self.intents:
            raise PaymentProcessorError("The payment could not be found")
        return self.intents[payment_intent_id]

    def construct_event(self, payload, sig_header, secret):
        self.calls.append(("construct_event", sig_header))
        if sig_header != GOOD_SIGNATURE:
            raise ValidationError("Invalid webhook signature")
        return json.loads(payload)

    # ---------- test controls ----------
    def set_account(self, account_id, charges_enabled=True, details_submitted=True):
        self.accounts[account_id] = AccountStatus(account_id, charges_enabled, details_submitted, charges_enabled)

    def succeed(self, payment_intent_id):
        intent = replace(self.intents[payment_intent_id], status="succeeded")
        intent = replace(intent, amount_received=intent.amount)
        self.intents[payment_intent_id] = intent
        return intent


class RecordingNotifier:
    def __init__(self):
        self.confirmed = []
        self.fail = False

    def booking_confirmed(self, booking):
        if self.fail:
            raise RuntimeError("sms provider down")
        self.confirmed.append(booking.id)
        return []


class Factory:
    def __init__(self, gateway):
        self.gateway = gateway
        self._seq = 0

    def _n(self):
        self._seq += 1
        return self._seq

    def user(self, email=None, roles=(CLIENT,), full_name="Casey Client", phone_number="+15550001111"):
        user = User(
            email=email or f"user{self._n()}@example.com",
            password_hash=hash_password(PASSWORD),
            full_name=full_name,
            phone_number=phone_number,
        )
        for name in roles:
            user.roles.append(Role.query.filter_by(name=name).one())
        db.session.add(user)
        db.session.commit()
        return user

    def admin(self, email=None):
        return self.user(email=email, roles=(ADMIN,), full_name="Ada Admin")

    def provider(self, ready=True, developer=False, with_account=True, user=None, name=None):
        n = self._n()
        account_id = f"acct_barber_{n}" if with_account else None
        provider = Provider(
            user_id=user.id if user else None,
            business_name=name or f"Fade Factory {n}",
            email=f"barber{n}@example.com",
            phone="+15550002222",
            is_developer=developer,
            stripe_account_id=account_id,
            stripe_account_status="active" if ready else ("pending" if with_account else "unset"),
            stripe_account_ready=ready,
        )
        db.session.add(provider)
        db.session.commit()
        if account_id:
            self.gateway.set_account(account_id, charges_enabled=ready, details_submitted=ready)
        return provider

    def barber(self, email=None, ready=True):
        user = self.user(email=email, roles=(BARBER,), full_name="Bo Barber")
        return user, self.provider(ready=ready, user=user)

    def service(self, provider, price="30.00", name="Skin fade", active=True):
        service = Service(
            provider_id=provider.id,
            name=name,
            price=Decimal(price) if price is not None else None,
            duration=30,
            is_active=active,
        )
        db.session.add(service)
        db.session.commit()
        return service

    def addon(self, provider, price="5.00", name="Beard trim", active=True):
        addon = ServiceAddon(provider_id=provider.id, name=name, price=Decimal(price), is_active=active)
        db.session.add(addon)
        db.session.commit()
        return addon

    def booking(self, provider, service, client=None, status="confirmed", date=None):
        booking = Booking(
            barber_id=provider.id,
            service_id=service.id,
            client_id=client.id if client else None,
            guest_name=None if client else "Gail Guest",
            guest_email=None if client else "gail@example.com",
            guest_phone=None if client else "+15550003333",
            date=date or datetime.utcnow() + timedelta(days=1),
            price=Decimal("30.00"),
            fixed_fee=338,
            platform_fee=203,
            barber_payout=3135,
            payment_type="full",
            payment_intent_id=f"pi_seed_{self._n()}",
            payment_status="succeeded",
            status=status,
        )
        db.session.add(booking)
        db.session.commit()
        return booking


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def app(gateway, notifier):
    app = create_app(TestingConfig, payment_gateway=gateway, notifier=notifier)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def factory(app, gateway):
    return Factory(gateway)


def booking_payload(provider, service, **overrides):
    body = {
        "providerId": provider.id,
        "serviceId": service.id,
        "date": "2030-05-01T15:30:00Z",
        "notes": "Short on the sides",
        "guestName": "Gail Guest",
        "guestEmail": "gail@example.com",
        "guestPhone": "+15550003333",
    }
    body.update(overrides)
    return body


def intent_event(intent: PaymentStatus, event_type="payment_intent.succeeded"):
    obj = {
        "id": intent.id,
        "object": "payment_intent",
        "status": intent.status,
        "amount": intent.amount,
        "amount_received": intent.amount_received,
        "currency": intent.currency,
        "application_fee_amount": intent.application_fee_amount,
        "transfer_data": {"destination": intent.transfer_destination} if intent.transfer_destination else None,
        "metadata": dict(intent.metadata),
    }
    return {"id": "evt_test", "type": event_type, "data": {"object": obj}}


def login(client, email, password=PASSWORD):
    """Log in and return the headers a state-changing request needs."""
    resp = client.post("/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200
    return {"X-CSRF-Token": client.get_cookie("csrf_token").value}
