from flask import Blueprint, request, jsonify, current_app, g

from security.rbac import BARBER, require_roles
from services import get_payment_gateway
from services.connect import create_account, refresh_account

connect_bp = Blueprint("connect", __name__, url_prefix="/connect")


def _onboarding_urls():
    base = current_app.config.get("APP_URL", "http://localhost:3000")
    return f"{base}/barber/connect/refresh", f"{base}/barber/connect/return"


def _my_provider():
    provider = g.user.provider
    if provider is None:
        return None, (jsonify(error="No barber profile found"), 404)
    return provider, None


@connect_bp.post("/create-account")
@require_roles(BARBER)
def create_connect_account():
    provider, failure = _my_provider()
    if failure:
        return failure
    if provider.is_developer:
        return jsonify(error="Developer accounts do not use Stripe"), 400

    data = request.get_json(silent=True) or {}
    email = (data.get("email") or provider.email or g.user.email or "").strip().lower()
    business_type = (data.get("businessType") or "individual").strip()
    if business_type not in ("individual", "company"):
        return jsonify(error="Invalid businessType"), 400

    refresh_url, return_url = _onboarding_urls()
    account_id, url = create_account(
        get_payment_gateway(), provider, email, refresh_url=refresh_url, return_url=return_url,
        business_type=business_type,
    )
    return jsonify(url=url, accountId=account_id), 201


@connect_bp.post("/account-link")
@require_roles(BARBER)
def account_link():
    provider, failure = _my_provider()
    if failure:
        return failure
    if not provider.stripe_account_id:
        return jsonify(error="No Stripe account found"), 400

    refresh_url, return_url = _onboarding_urls()
    url = get_payment_gateway().create_account_link(
        provider.stripe_account_id, refresh_url=refresh_url, return_url=return_url
    )
    return jsonify(url=url), 200


@connect_bp.post("/refresh-status")
@require_roles(BARBER)
def refresh_status():
    provider, failure = _my_provider()
    if failure:
        return failure
    if not provider.stripe_account_id:
        return jsonify(hasStripeAccount=False, status=None), 200

    previous = provider.stripe_account_status
    account = refresh_account(get_payment_gateway(), provider)
    return jsonify(
        hasStripeAccount=True,
        stripeAccountId=provider.stripe_account_id,
        previousStatus=previous,
        currentStatus=provider.stripe_account_status,
        chargesEnabled=account.charges_enabled,
        detailsSubmitted=account.details_submitted,
        payoutsEnabled=account.payouts_enabled,
        accountReady=provider.stripe_account_ready,
    ), 200


@connect_bp.get("/status")
@require_roles(BARBER)
def status():
    provider, failure = _my_provider()
    if failure:
        return failure
    return jsonify(
        hasStripeAccount=bool(provider.stripe_account_id),
        status=provider.stripe_account_status,
        accountReady=provider.stripe_account_ready,
        isDeveloper=provider.is_developer,
    ), 200
