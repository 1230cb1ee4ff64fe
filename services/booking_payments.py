"""
Booking payment orchestration.

create_booking_payment() checks the barber can be paid, prices the service,
splits the fee and asks Stripe for a PaymentIntent. No booking row is written
here: it only exists once the payment succeeds (see services.materializer).
Developer barbers skip Stripe and get a free booking straight away.
"""
import logging
import uuid
from dataclasses import dataclass, field
from typing import Optional

from flask import current_app

from models import db
from models.provider import Provider
from models.service import Service, ServiceAddon
from services.booking_metadata import build_metadata, parse_appointment_date, require_guest_info
from services.connect import apply_account_status
from services.fees import FULL_SERVICE, PAYMENT_MODES, compute_split, developer_split, to_cents
from services.materializer import ConfirmedPayment, materialize_booking
from utils.audit import log_event
from utils.errors import (
    PaymentDeclined,
    PaymentProcessorError,
    ProviderNotFound,
    ProviderNotPaymentReady,
    ServiceNotFound,
    ValidationError,
)

logger = logging.getLogger(__name__)


MAX_GUEST_NAME = 120
MAX_GUEST_EMAIL = 255
MAX_GUEST_PHONE = 30
# Stripe rejects metadata values longer than this
MAX_NOTES = 500


def _clean(value, name=None, max_len=None):
    if value is None:
        return None
    value = str(value).strip()
    if max_len and len(value) > max_len:
        raise ValidationError(f"{name} must be at most {max_len} characters")
    return value or None


def _int_id(value, name):
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid {name}") from exc


@dataclass
class BookingRequest:
    provider_id: int
    service_id: int
    date: object
    notes: Optional[str] = None
    client_id: Optional[int] = None
    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None
    addon_ids: list = field(default_factory=list)
    payment_type: str = FULL_SERVICE

    @classmethod
    def from_json(cls, data, default_client_id=None):
        data = data or {}
        provider_id = _int_id(data.get("providerId") or data.get("barberId"), "providerId")
        service_id = _int_id(data.get("serviceId"), "serviceId")
        if not provider_id or not service_id or not data.get("date"):
            raise ValidationError("providerId, serviceId, and date are required")

        raw_client = data.get("clientId")
        client_id = None if raw_client in (None, "", "guest") else _int_id(raw_client, "clientId")
        if client_id is None:
            client_id = default_client_id

        addon_ids = data.get("addonIds") or []
        if not isinstance(addon_ids, list):
            raise ValidationError("addonIds must be a list")

        payment_type = data.get("paymentType") or FULL_SERVICE
        if not isinstance(payment_type, str):
            raise ValidationError("paymentType must be a string")
        payment_type = payment_type.strip()
        if payment_type not in PAYMENT_MODES:
            raise ValidationError(f"Unknown payment type: {payment_type}")

        req = cls(
            provider_id=provider_id,
            service_id=service_id,
            date=parse_appointment_date(data.get("date")),
            notes=_clean(data.get("notes"), "notes", MAX_NOTES),
            client_id=client_id,
            guest_name=_clean(data.get("guestName"), "guestName", MAX_GUEST_NAME),
            guest_email=_clean(data.get("guestEmail"), "guestEmail", MAX_GUEST_EMAIL),
            guest_phone=_clean(data.get("guestPhone"), "guestPhone", MAX_GUEST_PHONE),
            addon_ids=[_int_id(a, "addonIds") for a in addon_ids],
            payment_type=payment_type,
        )
        require_guest_info(req.client_id, req.guest_name, req.guest_email, req.guest_phone)
        return req


def _get_provider(provider_id):
    provider = db.session.get(Provider, provider_id)
    if not provider:
        raise ProviderNotFound()
    return provider


def _get_service(provider, service_id, require_price=True):
    service = db.session.get(Service, service_id)
    if not service or service.provider_id != provider.id or not service.is_active:
        raise ServiceNotFound()
    if require_price and (service.price is None or service.price < 0):
        raise ServiceNotFound()
    return service


def _get_addons(provider, addon_ids):
    """[(addon_id, cents)] for active add-ons of this barber, in request order."""
    if not addon_ids:
        return []
    unique_ids = list(dict.fromkeys(addon_ids))
    rows = {
        a.id: a for a in ServiceAddon.query.filter(
            ServiceAddon.id.in_(unique_ids),
            ServiceAddon.provider_id == provider.id,
            ServiceAddon.is_active.is_(True),
        ).all()
    }
    missing = [i for i in unique_ids if i not in rows]
    if missing:
        raise ValidationError(f"Add-ons not available: {', '.join(str(i) for i in missing)}")
    return [(i, to_cents(rows[i].price)) for i in unique_ids]


def _require_payment_ready(gateway, provider):
    # Always ask Stripe: a cached "ready" flag could point at a deactivated account.
    if not provider.stripe_account_id:
        raise ProviderNotPaymentReady("Barber Stripe account not found or not ready")
    account = gateway.retrieve_account(provider.stripe_account_id)
    if provider.stripe_account_ready != account.ready:
        apply_account_status(provider, account.charges_enabled, account.details_submitted)
    if not account.ready:
        raise ProviderNotPaymentReady()
    return provider.stripe_account_id


def create_developer_booking(req: BookingRequest, provider, notifier=None):
    service = _get_service(provider, req.service_id, require_price=False)
    addons = _get_addons(provider, req.addon_ids)
    metadata = build_metadata(
        provider.id, service.id, req.date, developer_split(),
        service_cents=to_cents(service.price or 0), addons=addons, notes=req.notes,
        client_id=req.client_id, guest_name=req.guest_name, guest_email=req.guest_email,
        guest_phone=req.guest_phone,
    )
    payment = ConfirmedPayment(
        payment_intent_id=f"dev_{uuid.uuid4().hex}",
        amount_received=0,
        currency=current_app.config.get("PAYMENT_CURRENCY", "usd"),
        metadata=metadata,
        application_fee_amount=0,
    )
    booking, _ = materialize_booking(payment, notifier=notifier)
    log_event("DEVELOPER_BOOKING_CREATED", user_id=req.client_id, entity="booking", entity_id=booking.id,
              metadata={"barber_id": provider.id})
    return booking


def create_booking_payment(req: BookingRequest, gateway, notifier=None, idempotency_key=None):
    """Returns {"developer": True, "booking": Booking} or the PaymentIntent details."""
    provider = _get_provider(req.provider_id)

    if provider.is_developer:
        return {"developer": True, "booking": create_developer_booking(req, provider, notifier=notifier)}

    account_id = _require_payment_ready(gateway, provider)
    service = _get_service(provider, req.service_id)
    service_cents = to_cents(service.price)
    addons = _get_addons(provider, req.addon_ids)
    addon_cents = sum(cents for _, cents in addons)

    cfg = current_app.config
    split = compute_split(
        req.payment_type,
        price_cents=service_cents + addon_cents,
        fixed_fee=cfg.get("PLATFORM_FEE_CENTS", 338),
        share_percent=cfg.get("PLATFORM_SHARE_PERCENT", 60),
    )
    currency = cfg.get("PAYMENT_CURRENCY", "usd")
    metadata = build_metadata(
        provider.id, service.id, req.date, split, service_cents=service_cents, addons=addons,
        notes=req.notes, client_id=req.client_id, guest_name=req.guest_name,
        guest_email=req.guest_email, guest_phone=req.guest_phone,
    )

    # destination charge for the full price; fee-only charges stay with the platform
    if split.mode == FULL_SERVICE:
        application_fee, destination = split.application_fee, account_id
    else:
        application_fee, destination = None, None

    try:
        intent = gateway.create_payment_authorization(
            amount=split.amount,
            currency=currency,
            metadata=metadata,
            application_fee=application_fee,
            destination=destination,
            idempotency_key=idempotency_key,
        )
    except (PaymentProcessorError, PaymentDeclined) as exc:
        log_event("PAYMENT_INTENT_FAILED", user_id=req.client_id, entity="barber", entity_id=provider.id,
                  metadata={"error": exc.error_code, "amount": split.amount})
        raise

    log_event("PAYMENT_INTENT_CREATED", user_id=req.client_id, entity="payment_intent", entity_id=intent.id,
              metadata={"barber_id": provider.id, "service_id": service.id, **split.to_dict()})
    logger.info("PaymentIntent %s created for barber %s (%s cents)", intent.id, provider.id, split.amount)

    return {
        "developer": False,
        "clientSecret": intent.client_secret,
        "paymentIntentId": intent.id,
        "amount": split.amount,
        "currency": currency,
        "split": split.to_dict(),
    }
