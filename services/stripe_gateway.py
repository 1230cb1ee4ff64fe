"""
Thin adapter over the Stripe SDK.

Only the calls the booking flow relies on are exposed, and every Stripe error
is mapped onto the app's error types here so callers never see SDK classes.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Optional

import stripe

from utils.errors import PaymentDeclined, PaymentProcessorError, ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccountStatus:
    account_id: str
    charges_enabled: bool
    details_submitted: bool
    payouts_enabled: bool

    @property
    def ready(self) -> bool:
        return self.charges_enabled and self.details_submitted


@dataclass(frozen=True)
class PaymentAuthorization:
    id: str
    client_secret: str
    amount: int
    currency: str


@dataclass(frozen=True)
class PaymentStatus:
    id: str
    status: str
    amount: int
    amount_received: int
    currency: str
    application_fee_amount: Optional[int] = None
    transfer_destination: Optional[str] = None
    metadata: dict = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status == "succeeded"


def _as_dict(obj) -> dict:
    if obj is None:
        return {}
    if isinstance(obj, dict):
        return dict(obj)
    return obj.to_dict()


def payment_status_from_object(obj) -> PaymentStatus:
    """Build a PaymentStatus from a PaymentIntent (SDK object or webhook dict)."""
    data = _as_dict(obj)
    transfer = data.get("transfer_data") or {}
    if not isinstance(transfer, dict):
        transfer = _as_dict(transfer)
    destination = transfer.get("destination")
    if isinstance(destination, dict):
        destination = destination.get("id")
    return PaymentStatus(
        id=data["id"],
        status=data.get("status") or "",
        amount=int(data.get("amount") or 0),
        amount_received=int(data.get("amount_received") or 0),
        currency=data.get("currency") or "",
        application_fee_amount=data.get("application_fee_amount"),
        transfer_destination=destination,
        metadata={k: str(v) for k, v in _as_dict(data.get("metadata")).items()},
    )


class StripeGateway:
    def __init__(self, api_key: str, timeout: int = 8, webhook_tolerance: int = 300):
        if not api_key:
            raise PaymentProcessorError("Stripe secret key missing (STRIPE_SECRET_KEY)")
        self.webhook_tolerance = webhook_tolerance
        self._client = stripe.StripeClient(
            api_key,
            http_client=stripe.RequestsClient(timeout=timeout),
            max_network_retries=0,
        )

    # ---------- Connect accounts ----------
    def create_connected_account(self, email: str, business_type: str = "individual", metadata=None) -> str:
        params = {
            "type": "express",
            "email": email,
            "business_type": business_type,
            "capabilities": {
                "card_payments": {"requested": True},
                "transfers": {"requested": True},
            },
            "metadata": metadata or {},
        }
        account = self._call("accounts.create", self._client.v1.accounts.create, params=params)
        return account.id

    def create_account_link(self, account_id: str, refresh_url: str, return_url: str) -> str:
        link = self._call(
            "account_links.create",
            self._client.v1.account_links.create,
            params={
                "account": account_id,
                "refresh_url": refresh_url,
                "return_url": return_url,
                "type": "account_onboarding",
            },
        )
        return link.url

    def retrieve_account(self, account_id: str) -> AccountStatus:
        account = self._call("accounts.retrieve", self._client.v1.accounts.retrieve, account_id)
        return AccountStatus(
            account_id=account.id,
            charges_enabled=bool(getattr(account, "charges_enabled", False)),
            details_submitted=bool(getattr(account, "details_submitted", False)),
            payouts_enabled=bool(getattr(account, "payouts_enabled", False)),
        )

    # ---------- PaymentIntents ----------
    def create_payment_authorization(self, amount: int, currency: str, metadata: dict,
                                     application_fee: Optional[int] = None,
                                     destination: Optional[str] = None,
                                     idempotency_key: Optional[str] = None) -> PaymentAuthorization:
        params = {
            "amount": amount,
            "currency": currency,
            "automatic_payment_methods": {"enabled": True},
            "metadata": metadata,
        }
        if application_fee is not None:
            params["application_fee_amount"] = application_fee
        if destination:
            params["transfer_data"] = {"destination": destination}

        options = {"idempotency_key": idempotency_key} if idempotency_key else {}
        intent = self._call(
            "payment_intents.create",
            self._client.v1.payment_intents.create,
            params=params,
            options=options,
        )
        return PaymentAuthorization(
            id=intent.id,
            client_secret=intent.client_secret,
            amount=intent.amount,
            currency=intent.currency,
        )

    def retrieve_payment_authorization(self, payment_intent_id: str) -> PaymentStatus:
        intent = self._call(
            "payment_intents.retrieve",
            self._client.v1.payment_intents.retrieve,
            payment_intent_id,
        )
        return payment_status_from_object(intent)

    # ---------- Webhooks ----------
    def construct_event(self, payload: bytes, sig_header: str, secret: str) -> dict:
        """Verify the Stripe-Signature header and return the event as plain dicts."""
        try:
            stripe.WebhookSignature.verify_header(
                payload.decode("utf-8"), sig_header, secret, tolerance=self.webhook_tolerance
            )
        except stripe.SignatureVerificationError as exc:
            raise ValidationError("Invalid webhook signature") from exc
        try:
            return json.loads(payload)
        except ValueError as exc:
            raise ValidationError("Invalid webhook payload") from exc

    def _call(self, name, fn, *args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except stripe.CardError as exc:
            logger.info("Stripe %s declined: %s", name, exc.user_message)
            raise PaymentDeclined() from exc
        except (stripe.APIConnectionError, stripe.RateLimitError) as exc:
            logger.warning("Stripe %s unreachable: %s", name, exc)
            raise PaymentProcessorError(retryable=True) from exc
        except stripe.InvalidRequestError as exc:
            logger.error("Stripe %s rejected request: %s", name, exc)
            raise PaymentProcessorError("The payment could not be created") from exc
        except stripe.StripeError as exc:
            logger.error("Stripe %s failed: %s", name, exc)
            raise PaymentProcessorError(retryable=True) from exc
