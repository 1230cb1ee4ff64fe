from models.provider import Provider
from models.user import User


def test_register_client_and_login(client):
    resp = client.post("/auth/register", json={"email": "Casey@Example.com", "password": "long-enough-pw"})
    assert resp.status_code == 201

    login = client.post("/auth/login", json={"email": "casey@example.com", "password": "long-enough-pw"})
    assert login.status_code == 200
    assert client.get_cookie("bocm_session") is not None
    assert client.get_cookie("csrf_token") is not None

    me = client.get("/auth/me").get_json()
    assert me["email"] == "casey@example.com"
    assert me["roles"] == ["CLIENT"]
    assert me["barber_id"] is None


def test_register_barber_creates_barber_profile(client):
    resp = client.post("/auth/register", json={
        "email": "bo@example.com",
        "password": "long-enough-pw",
        "role": "BARBER",
        "business_name": "Bo's Cuts",
    })
    assert resp.status_code == 201

    user = User.query.filter_by(email="bo@example.com").one()
    provider = Provider.query.filter_by(user_id=user.id).one()
    assert provider.business_name == "Bo's Cuts"
    assert provider.stripe_account_status == "unset"


def test_register_validation(client):
    assert client.post("/auth/register", json={"email": "nope", "password": "long-enough-pw"}).status_code == 400
    assert client.post("/auth/register", json={"email": "a@b.com", "password": "short"}).status_code == 400
    assert client.post("/auth/register", json={
        "email": "a@b.com", "password": "long-enough-pw", "role": "ADMIN",
    }).status_code == 400
    assert client.post("/auth/register", json={
        "email": "a@b.com", "password": "long-enough-pw", "role": "BARBER",
    }).status_code == 400


def test_duplicate_email(client):
    body = {"email": "dup@example.com", "password": "long-enough-pw"}
    assert client.post("/auth/register", json=body).status_code == 201
    assert client.post("/auth/register", json=body).status_code == 409


def test_wrong_password(client, factory):
    user = factory.user()
    resp = client.post("/auth/login", json={"email": user.email, "password": "wrong-password"})
    assert resp.status_code == 401


def test_logout_ends_session(client, factory):
    user = factory.user()
    client.post("/auth/login", json={"email": user.email, "password": "correct-horse-battery"})
    csrf = client.get_cookie("csrf_token").value

    assert client.post("/auth/logout", headers={"X-CSRF-Token": csrf}).status_code == 200
    assert client.get("/auth/me").status_code == 401


def test_security_headers(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.headers["X-Content-Type-Options"] == "nosniff"
    assert resp.headers["X-Frame-Options"] == "DENY"
