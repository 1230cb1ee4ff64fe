from flask import Blueprint, request, jsonify, current_app, g

from models import db
from models.provider import Provider
from models.user import User, Role
from security.csrf import issue_csrf_token
from security.password import hash_password, verify_password, is_acceptable_password, MIN_PASSWORD_LENGTH
from security.rbac import BARBER, CLIENT, SELF_SERVICE_ROLES
from security.session import (
    create_session,
    revoke_session,
    revoke_all_sessions,
    set_session_cookie,
    clear_session_cookie,
)
from utils.audit import log_event
from utils.auth_context import login_required


auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


def _is_valid_email(email: str) -> bool:
    return isinstance(email, str) and "@" in email and len(email) <= 255


def _optional_str(data, key, max_len):
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str) or len(value.strip()) > max_len:
        raise ValueError(key)
    return value.strip() or None


@auth_bp.post("/register")
def register():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    role_name = (data.get("role") or CLIENT).strip().upper()

    if not _is_valid_email(email):
        return jsonify(error="Invalid email"), 400
    if not is_acceptable_password(password):
        return jsonify(error=f"Password must be at least {MIN_PASSWORD_LENGTH} characters"), 400
    if role_name not in SELF_SERVICE_ROLES:
        return jsonify(error="Invalid role"), 400

    try:
        full_name = _optional_str(data, "full_name", 120)
        phone_number = _optional_str(data, "phone_number", 30)
        business_name = _optional_str(data, "business_name", 160)
    except ValueError as exc:
        return jsonify(error=f"Invalid {exc}"), 400

    if role_name == BARBER and not business_name:
        return jsonify(error="business_name required for barbers"), 400

    if User.query.filter_by(email=email).first():
        log_event("REGISTER_FAIL_EMAIL_EXISTS", metadata={"email": email})
        return jsonify(error="Email already registered"), 409

    user = User(email=email, password_hash=hash_password(password), full_name=full_name, phone_number=phone_number)
    db.session.add(user)
    db.session.flush()

    role = Role.query.filter_by(name=role_name).first()
    if role:
        user.roles.append(role)

    if role_name == BARBER:
        db.session.add(Provider(user_id=user.id, business_name=business_name, email=email, phone=phone_number))

    db.session.commit()
    log_event("REGISTER_SUCCESS", user_id=user.id, metadata={"role": role_name})

    return jsonify(message="Registered successfully", id=user.id), 201


@auth_bp.post("/login")
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""

    user = User.query.filter_by(email=email).first()
    if not user or not verify_password(password, user.password_hash):
        log_event("LOGIN_FAIL", user_id=user.id if user else None, metadata={"email": email})
        return jsonify(error="Invalid credentials"), 401

    # Rotate: revoke any existing sessions for this user
    revoked_count = revoke_all_sessions(user.id)
    raw_token = create_session(user.id)

    resp = jsonify(message="Login OK")
    set_session_cookie(resp, raw_token)
    issue_csrf_token(resp)

    log_event("LOGIN_SUCCESS", user_id=user.id, metadata={"revoked_sessions": revoked_count})
    return resp, 200


@auth_bp.get("/me")
@login_required
def me():
    provider = g.user.provider
    return jsonify(
        id=g.user.id,
        email=g.user.email,
        roles=[r.name for r in g.user.roles],
        full_name=g.user.full_name,
        phone_number=g.user.phone_number,
        barber_id=provider.id if provider else None,
    ), 200


@auth_bp.post("/logout")
@login_required
def logout():
    cookie_name = current_app.config.get("AUTH_COOKIE_NAME", "bocm_session")
    revoke_session(request.cookies.get(cookie_name))
    log_event("LOGOUT", user_id=g.user.id)

    resp = jsonify(message="Logged out")
    clear_session_cookie(resp)
    return resp, 200
