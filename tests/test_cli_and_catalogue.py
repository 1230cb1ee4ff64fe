from datetime import datetime, timedelta

from conftest import login
from models.user import User


# ---------- flask CLI ----------
def test_make_admin(app, factory):
    user = factory.user(email="ops@example.com")

    result = app.test_cli_runner().invoke(args=["make-admin", "ops@example.com"])

    assert "promoted to ADMIN" in result.output
    assert User.query.filter_by(email="ops@example.com").one().has_role("ADMIN")
    assert user.has_role("ADMIN")


def test_make_developer(app, factory):
    provider = factory.provider()

    result = app.test_cli_runner().invoke(args=["make-developer", str(provider.id)])

    assert "developer=on" in result.output
    assert provider.is_developer is True


def test_complete_past_bookings_command(app, factory):
    _, provider = factory.barber()
    service = factory.service(provider)
    old = factory.booking(provider, service, date=datetime.utcnow() - timedelta(hours=5))

    result = app.test_cli_runner().invoke(args=["complete-past-bookings", "--hours", "1"])

    assert "1 booking(s) completed" in result.output
    assert old.status == "completed"


# ---------- catalogue ----------
def test_browse_barbers(client, factory):
    provider = factory.provider(name="Sharp Edges")
    factory.provider(name="Other Place")
    factory.service(provider, name="Buzz cut", price="20.00")
    factory.service(provider, name="Retired", active=False)
    factory.addon(provider, name="Beard trim")

    found = client.get("/providers?q=sharp").get_json()
    assert [p["business_name"] for p in found] == ["Sharp Edges"]

    detail = client.get(f"/providers/{provider.id}").get_json()
    assert [s["name"] for s in detail["services"]] == ["Buzz cut"]
    assert [a["name"] for a in detail["addons"]] == ["Beard trim"]
    assert client.get("/providers/99999").status_code == 404


def test_barber_manages_own_catalogue(client, factory):
    barber_user, provider = factory.barber()
    headers = login(client, barber_user.email)

    service = client.post("/providers/me/services", json={"name": "Fade", "price": "30"}, headers=headers)
    assert service.status_code == 201
    assert service.get_json()["price"] == "30.00"

    addon = client.post("/providers/me/addons", json={"name": "Wash", "price": "4.50"}, headers=headers)
    assert addon.status_code == 201
    addon_id = addon.get_json()["id"]

    off = client.post(f"/providers/me/addons/{addon_id}/deactivate", headers=headers)
    assert off.status_code == 200
    assert client.get(f"/providers/{provider.id}").get_json()["addons"] == []

    assert client.post("/providers/me/services", json={"name": "Fade", "price": "-1"},
                       headers=headers).status_code == 400
    assert client.post("/providers/me/services", json={"name": "Fade", "price": "NaN"},
                       headers=headers).status_code == 400


def test_clients_cannot_edit_catalogue(client, factory):
    customer = factory.user()
    headers = login(client, customer.email)
    assert client.post("/providers/me/services", json={"name": "x", "price": "1"},
                       headers=headers).status_code == 403
