from conftest import booking_payload, login
from services.materializer import ConfirmedPayment, materialize_booking
from utils.errors import PaymentDeclined, PaymentProcessorError

URL = "/payments/create-booking-payment"


def test_guest_gets_client_secret(client, factory, gateway):
    provider = factory.provider()
    service = factory.service(provider, price="30.00")

    resp = client.post(URL, json=booking_payload(provider, service))

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["paymentIntentId"].startswith("pi_")
    assert body["clientSecret"] == f"{body['paymentIntentId']}_secret"
    assert body["amount"] == 3338
    assert body["currency"] == "usd"
    assert body["split"]["platform_fee"] == 203
    assert body["split"]["barber_payout"] == 3135


def test_missing_guest_info(client, factory, gateway):
    provider = factory.provider()
    service = factory.service(provider)

    resp = client.post(URL, json=booking_payload(provider, service, guestEmail=None))

    assert resp.status_code == 400
    assert resp.get_json()["code"] == "missing_guest_info"
    assert gateway.calls == []


def test_missing_required_fields(client):
    resp = client.post(URL, json={"serviceId": 1})
    assert resp.status_code == 400


def test_barber_not_ready(client, factory):
    provider = factory.provider(ready=False)
    service = factory.service(provider)

    resp = client.post(URL, json=booking_payload(provider, service))

    assert resp.status_code == 503
    assert resp.get_json()["code"] == "provider_not_payment_ready"


def test_unknown_barber(client, factory):
    provider = factory.provider()
    service = factory.service(provider)

    resp = client.post(URL, json=booking_payload(provider, service, providerId=424242))

    assert resp.status_code == 404


def test_developer_barber_gets_booking_immediately(client, factory, gateway):
    provider = factory.provider(developer=True, ready=False, with_account=False)
    service = factory.service(provider)

    resp = client.post(URL, json=booking_payload(provider, service))

    assert resp.status_code == 201
    body = resp.get_json()
    assert body["developer"] is True
    assert body["booking"]["platform_fee"] == 0
    assert body["booking"]["barber_payout"] == 0
    assert body["booking"]["payment_status"] == "succeeded"
    assert gateway.calls == []


def test_processor_unreachable_is_retryable(client, factory, gateway):
    provider = factory.provider()
    service = factory.service(provider)
    gateway.fail_with = PaymentProcessorError(retryable=True)

    resp = client.post(URL, json=booking_payload(provider, service))

    assert resp.status_code == 502
    assert resp.get_json()["retryable"] is True


def test_declined_card(client, factory, gateway):
    provider = factory.provider()
    service = factory.service(provider)
    gateway.fail_with = PaymentDeclined()

    resp = client.post(URL, json=booking_payload(provider, service))

    assert resp.status_code == 402
    assert resp.get_json()["code"] == "payment_declined"


def test_signed_in_client_books_for_themselves(client, factory, gateway):
    user = factory.user()
    provider = factory.provider()
    service = factory.service(provider)
    headers = login(client, user.email)

    payload = booking_payload(provider, service, guestName=None, guestEmail=None, guestPhone=None)
    resp = client.post(URL, json=payload, headers=headers)

    assert resp.status_code == 200
    assert gateway.calls[-1][1]["metadata"]["clientId"] == str(user.id)


def test_signed_in_client_cannot_book_as_someone_else(client, factory, gateway):
    user = factory.user()
    other = factory.user()
    provider = factory.provider()
    service = factory.service(provider)
    headers = login(client, user.email)

    resp = client.post(URL, json=booking_payload(provider, service, clientId=other.id), headers=headers)

    assert resp.status_code == 403
    assert "create_payment_authorization" not in gateway.names()


def test_idempotency_key_header(client, factory, gateway):
    provider = factory.provider()
    service = factory.service(provider)

    client.post(URL, json=booking_payload(provider, service), headers={"Idempotency-Key": "abc-123"})

    assert gateway.calls[-1][1]["idempotency_key"] == "abc-123"


def test_verify_requires_a_payment_intent_id(client):
    assert client.get("/payments/verify").status_code == 400
    assert client.get("/payments/verify?payment_intent=ch_123").status_code == 400


def test_verify_reports_booking_once_materialized(client, factory, gateway):
    provider = factory.provider()
    service = factory.service(provider)
    created = client.post(URL, json=booking_payload(provider, service)).get_json()
    pi_id = created["paymentIntentId"]

    pending = client.get(f"/payments/verify?payment_intent={pi_id}").get_json()
    assert pending["status"] == "requires_payment_method"
    assert pending["booking_id"] is None

    booking, _ = materialize_booking(ConfirmedPayment.from_status(gateway.succeed(pi_id)))
    done = client.get(f"/payments/verify?payment_intent={pi_id}").get_json()
    assert done["status"] == "succeeded"
    assert done["amount"] == 3338
    assert done["booking_id"] == booking.id


def test_overlong_guest_fields_are_refused_before_stripe(client, factory, gateway):
    provider = factory.provider()
    service = factory.service(provider)

    for field, value in (("guestPhone", "1" * 31), ("guestName", "n" * 121),
                         ("guestEmail", "e" * 250 + "@x.com"), ("notes", "n" * 501)):
        resp = client.post(URL, json=booking_payload(provider, service, **{field: value}))
        assert resp.status_code == 400, field
        assert field in resp.get_json()["error"]

    assert "create_payment_authorization" not in gateway.names()


def test_non_string_payment_type_is_a_bad_request(client, factory, gateway):
    provider = factory.provider()
    service = factory.service(provider)

    resp = client.post(URL, json=booking_payload(provider, service, paymentType=1))

    assert resp.status_code == 400
    assert "paymentType" in resp.get_json()["error"]
    assert gateway.calls == []
