import pytest

from conftest import booking_payload
from models.audit_log import AuditLog
from models.booking import Booking
from models.payment import Payment
from services.booking_payments import BookingRequest, create_booking_payment
from services.fees import FEE_ONLY
from utils.errors import (
    MissingGuestInfo,
    PaymentProcessorError,
    ProviderNotFound,
    ProviderNotPaymentReady,
    ServiceNotFound,
    ValidationError,
)


def _request(provider, service, **overrides):
    return BookingRequest.from_json(booking_payload(provider, service, **overrides))


def test_full_service_creates_destination_charge(factory, gateway):
    provider = factory.provider()
    service = factory.service(provider, price="30.00")

    result = create_booking_payment(_request(provider, service), gateway)

    assert result["developer"] is False
    assert result["amount"] == 3338
    assert result["clientSecret"].endswith("_secret")

    (_, call), = [c for c in gateway.calls if c[0] == "create_payment_authorization"]
    assert call["amount"] == 3338
    assert call["application_fee"] == 203
    assert call["destination"] == provider.stripe_account_id
    assert call["metadata"]["paymentType"] == "full"
    assert call["metadata"]["barberPayout"] == "3135"
    # no booking until the payment succeeds
    assert Booking.query.count() == 0


def test_fee_only_charges_the_fixed_fee_without_transfer(factory, gateway):
    provider = factory.provider()
    service = factory.service(provider, price="30.00")

    result = create_booking_payment(_request(provider, service, paymentType=FEE_ONLY), gateway)

    assert result["amount"] == 338
    assert result["split"]["platform_fee"] == 203
    assert result["split"]["barber_payout"] == 135
    call = gateway.calls[-1][1]
    assert call["application_fee"] is None
    assert call["destination"] is None


def test_addons_are_part_of_the_charged_price(factory, gateway):
    provider = factory.provider()
    service = factory.service(provider, price="30.00")
    addon = factory.addon(provider, price="5.00")

    result = create_booking_payment(_request(provider, service, addonIds=[addon.id]), gateway)

    assert result["amount"] == 3838
    assert result["split"]["barber_payout"] == 3635
    meta = gateway.calls[-1][1]["metadata"]
    assert meta["addons"] == f"{addon.id}:500"
    assert meta["addonTotal"] == "500"
    assert meta["servicePrice"] == "3000"


def test_addons_from_another_barber_are_rejected(factory, gateway):
    provider = factory.provider()
    other = factory.provider()
    service = factory.service(provider)
    foreign = factory.addon(other)

    with pytest.raises(ValidationError):
        create_booking_payment(_request(provider, service, addonIds=[foreign.id]), gateway)
    assert "create_payment_authorization" not in gateway.names()


def test_inactive_addon_is_rejected(factory, gateway):
    provider = factory.provider()
    service = factory.service(provider)
    addon = factory.addon(provider, active=False)

    with pytest.raises(ValidationError):
        create_booking_payment(_request(provider, service, addonIds=[addon.id]), gateway)


def test_not_chargeable_barber_is_rejected_before_any_charge(factory, gateway):
    provider = factory.provider(ready=False)
    service = factory.service(provider)

    with pytest.raises(ProviderNotPaymentReady):
        create_booking_payment(_request(provider, service), gateway)

    assert gateway.names() == ["retrieve_account"]


def test_readiness_is_checked_live_not_from_stored_flag(factory, gateway):
    provider = factory.provider(ready=True)
    service = factory.service(provider)
    # Stripe disabled charges since we last looked
    gateway.set_account(provider.stripe_account_id, charges_enabled=False, details_submitted=True)

    with pytest.raises(ProviderNotPaymentReady):
        create_booking_payment(_request(provider, service), gateway)

    assert provider.stripe_account_ready is False
    assert provider.stripe_account_status == "pending"
    assert "create_payment_authorization" not in gateway.names()


def test_barber_without_stripe_account_is_rejected(factory, gateway):
    provider = factory.provider(ready=False, with_account=False)
    service = factory.service(provider)

    with pytest.raises(ProviderNotPaymentReady):
        create_booking_payment(_request(provider, service), gateway)
    assert gateway.calls == []


def test_unknown_barber(factory, gateway):
    provider = factory.provider()
    service = factory.service(provider)

    with pytest.raises(ProviderNotFound):
        create_booking_payment(_request(provider, service, providerId=9999), gateway)


def test_service_without_price_or_from_another_barber(factory, gateway):
    provider = factory.provider()
    other = factory.provider()
    unpriced = factory.service(provider, price=None)
    foreign = factory.service(other)

    with pytest.raises(ServiceNotFound):
        create_booking_payment(_request(provider, unpriced), gateway)
    with pytest.raises(ServiceNotFound):
        create_booking_payment(_request(provider, foreign), gateway)
    assert "create_payment_authorization" not in gateway.names()


def test_incomplete_guest_is_rejected_up_front(factory):
    provider = factory.provider()
    service = factory.service(provider)

    with pytest.raises(MissingGuestInfo) as exc:
        _request(provider, service, guestPhone="")
    assert exc.value.missing == ["guest_phone"]


def test_developer_barber_books_for_free_without_stripe(factory, gateway, notifier):
    provider = factory.provider(developer=True, ready=False, with_account=False)
    service = factory.service(provider, price="30.00")

    result = create_booking_payment(_request(provider, service), gateway, notifier=notifier)

    booking = result["booking"]
    assert result["developer"] is True
    assert booking.price == 0
    assert booking.platform_fee == 0
    assert booking.barber_payout == 0
    assert booking.payment_status == "succeeded"
    assert booking.payment_type == "developer"
    assert booking.payment_intent_id.startswith("dev_")
    assert gateway.calls == []
    assert Payment.query.count() == 0
    assert notifier.confirmed == [booking.id]


def test_processor_failure_is_audited_and_reraised(factory, gateway):
    provider = factory.provider()
    service = factory.service(provider)
    gateway.fail_with = PaymentProcessorError(retryable=True)

    with pytest.raises(PaymentProcessorError):
        create_booking_payment(_request(provider, service), gateway)

    assert AuditLog.query.filter_by(action="PAYMENT_INTENT_FAILED").count() == 1


def test_idempotency_key_is_forwarded(factory, gateway):
    provider = factory.provider()
    service = factory.service(provider)

    create_booking_payment(_request(provider, service), gateway, idempotency_key="checkout-123")

    assert gateway.calls[-1][1]["idempotency_key"] == "checkout-123"
