from datetime import datetime

from flask import Blueprint, request, jsonify, current_app

from models import db
from models.payment import Payment
from services import get_notifier, get_payment_gateway
from services.connect import handle_account_deauthorized, handle_account_updated
from services.materializer import ConfirmedPayment, find_booking_for_payment, materialize_booking
from services.stripe_gateway import payment_status_from_object
from utils.audit import log_event

webhook_bp = Blueprint("webhook", __name__, url_prefix="/webhooks")


def _payment_intent_succeeded(obj):
    status = payment_status_from_object(obj)
    if not status.succeeded:
        return jsonify(received=True, ignored="not succeeded"), 200
    if "barberId" not in status.metadata:
        # not a booking payment
        return jsonify(received=True, ignored="no booking metadata"), 200

    booking, created = materialize_booking(ConfirmedPayment.from_status(status), notifier=get_notifier())
    return jsonify(received=True, booking_id=booking.id, created=created), 200


def _payment_intent_failed(obj):
    error = (obj.get("last_payment_error") or {}).get("code")
    log_event("PAYMENT_INTENT_FAILED", entity="payment_intent", entity_id=obj.get("id"),
              metadata={"reason": error, "barber_id": (obj.get("metadata") or {}).get("barberId")})
    return jsonify(received=True), 200


def _charge_refunded(charge):
    payment_intent_id = charge.get("payment_intent")
    if not payment_intent_id or not isinstance(payment_intent_id, str):
        return jsonify(error="Invalid payment intent reference"), 400

    booking = find_booking_for_payment(payment_intent_id)
    if not booking:
        current_app.logger.warning("charge.refunded for unknown payment intent %s", payment_intent_id)
        return jsonify(received=True), 200

    amount = int(charge.get("amount") or 0)
    refunded = int(charge.get("amount_refunded") or 0)
    if refunded < amount:
        # partial refunds need a separate payout policy; only record them
        log_event("PAYMENT_PARTIALLY_REFUNDED", entity="booking", entity_id=booking.id,
                  metadata={"payment_intent_id": payment_intent_id, "amount_refunded": refunded})
        return jsonify(received=True), 200

    booking.payment_status = "refunded"
    payment = Payment.query.filter_by(payment_intent_id=payment_intent_id).first()
    if payment:
        payment.status = "REFUNDED"
        payment.refunded_at = datetime.utcnow()
    db.session.commit()
    log_event("PAYMENT_REFUNDED", entity="booking", entity_id=booking.id,
              metadata={"payment_intent_id": payment_intent_id, "amount_refunded": refunded})
    return jsonify(received=True), 200


@webhook_bp.post("/stripe")
def stripe_webhook():
    endpoint_secret = current_app.config.get("STRIPE_WEBHOOK_SECRET")
    sig_header = request.headers.get("Stripe-Signature")

    if not endpoint_secret:
        return jsonify(error="Webhook secret not configured"), 500
    if not sig_header:
        return jsonify(error="No signature found"), 400

    event = get_payment_gateway().construct_event(request.get_data(), sig_header, endpoint_secret)

    event_type = event.get("type")
    obj = (event.get("data") or {}).get("object") or {}
    if not isinstance(event_type, str) or not isinstance(obj, dict):
        return jsonify(error="Invalid event"), 400

    if event_type == "payment_intent.succeeded":
        return _payment_intent_succeeded(obj)
    if event_type == "payment_intent.payment_failed":
        return _payment_intent_failed(obj)
    if event_type == "charge.refunded":
        return _charge_refunded(obj)
    if event_type == "account.updated":
        handle_account_updated(obj)
    elif event_type == "account.application.deauthorized":
        handle_account_deauthorized(event.get("account"))

    return jsonify(received=True), 200
