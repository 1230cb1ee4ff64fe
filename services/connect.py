"""Stripe Connect account lifecycle for barbers."""
import logging
from datetime import datetime

from models import db
from models.provider import Provider
from utils.audit import log_event
from utils.errors import ValidationError

logger = logging.getLogger(__name__)


def derive_account_status(charges_enabled: bool) -> str:
    return "active" if charges_enabled else "pending"


def apply_account_status(provider: Provider, charges_enabled: bool, details_submitted: bool) -> bool:
    """Store what Stripe reports. Returns True when something changed."""
    status = derive_account_status(charges_enabled)
    ready = bool(charges_enabled and details_submitted)
    if provider.stripe_account_status == status and provider.stripe_account_ready == ready:
        return False
    previous = provider.stripe_account_status
    provider.stripe_account_status = status
    provider.stripe_account_ready = ready
    provider.updated_at = datetime.utcnow()
    db.session.commit()
    log_event("CONNECT_ACCOUNT_UPDATED", user_id=provider.user_id, entity="barber", entity_id=provider.id,
              metadata={"previous_status": previous, "status": status, "ready": ready})
    return True


def create_account(gateway, provider: Provider, email: str, refresh_url: str, return_url: str,
                   business_type: str = "individual"):
    """Create the Express account and return (account_id, onboarding_url)."""
    if provider.stripe_account_id:
        raise ValidationError("Barber already has a Stripe account")
    if not email:
        raise ValidationError("email is required")

    account_id = gateway.create_connected_account(
        email, business_type=business_type, metadata={"barber_id": str(provider.id)}
    )
    provider.stripe_account_id = account_id
    provider.stripe_account_status = "pending"
    provider.stripe_account_ready = False
    db.session.commit()

    log_event("CONNECT_ACCOUNT_CREATED", user_id=provider.user_id, entity="barber", entity_id=provider.id,
              metadata={"stripe_account_id": account_id})

    url = gateway.create_account_link(account_id, refresh_url=refresh_url, return_url=return_url)
    return account_id, url


def refresh_account(gateway, provider: Provider):
    """Re-read the account from Stripe and store its status. Returns the AccountStatus."""
    if not provider.stripe_account_id:
        raise ValidationError("No Stripe account found")
    account = gateway.retrieve_account(provider.stripe_account_id)
    apply_account_status(provider, account.charges_enabled, account.details_submitted)
    return account


def handle_account_updated(account: dict):
    provider = Provider.query.filter_by(stripe_account_id=account.get("id")).first()
    if not provider:
        logger.info("account.updated for unknown account %s", account.get("id"))
        return None
    apply_account_status(provider, bool(account.get("charges_enabled")), bool(account.get("details_submitted")))
    return provider


def handle_account_deauthorized(account_id: str):
    provider = Provider.query.filter_by(stripe_account_id=account_id).first()
    if not provider:
        return None
    provider.stripe_account_status = "deauthorized"
    provider.stripe_account_ready = False
    db.session.commit()
    log_event("CONNECT_ACCOUNT_UPDATED", user_id=provider.user_id, entity="barber", entity_id=provider.id,
              metadata={"status": "deauthorized", "ready": False})
    return provider
