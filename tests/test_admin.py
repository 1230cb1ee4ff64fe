from conftest import login
from models import db
from models.payment import Payment


def test_admin_routes_need_admin(client, factory):
    customer = factory.user()
    login(client, customer.email)

    assert client.get("/admin/bookings").status_code == 403
    assert client.get("/admin/audit-logs").status_code == 403


def test_fee_check_reports_stored_split(client, factory):
    admin = factory.admin()
    _, provider = factory.barber()
    service = factory.service(provider)
    booking = factory.booking(provider, service)
    db.session.add(Payment(booking_id=booking.id, payment_intent_id=booking.payment_intent_id,
                           amount=3338, currency="usd", platform_fee=203, barber_payout=3135))
    db.session.commit()
    login(client, admin.email)

    body = client.get(f"/admin/bookings/{booking.id}/fee-check").get_json()
    assert body["reconciled"] is True
    assert body["charged"] == 3338

    Payment.query.filter_by(booking_id=booking.id).update({"amount": 3000})
    db.session.commit()
    body = client.get(f"/admin/bookings/{booking.id}/fee-check").get_json()
    assert body["reconciled"] is False
    assert "3000 was charged" in body["problem"]


def test_admin_can_flag_developer_barber(client, factory):
    admin = factory.admin()
    _, provider = factory.barber()
    headers = login(client, admin.email)

    resp = client.post(f"/admin/providers/{provider.id}/developer", json={"enabled": True}, headers=headers)

    assert resp.status_code == 200
    assert provider.is_developer is True
    assert client.post(f"/admin/providers/{provider.id}/developer", json={"enabled": "yes"},
                       headers=headers).status_code == 400


def test_admin_lists_bookings_and_audit_logs(client, factory):
    admin = factory.admin()
    _, provider = factory.barber()
    service = factory.service(provider)
    factory.booking(provider, service)
    factory.booking(provider, service, status="cancelled")
    login(client, admin.email)

    assert len(client.get("/admin/bookings").get_json()) == 2
    assert len(client.get("/admin/bookings?status=cancelled").get_json()) == 1

    logs = client.get("/admin/audit-logs?action=LOGIN_SUCCESS").get_json()
    assert [row["user_id"] for row in logs] == [admin.id]
