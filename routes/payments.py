from flask import Blueprint, request, jsonify

from services import get_notifier, get_payment_gateway
from services.booking_payments import BookingRequest, create_booking_payment
from services.materializer import find_booking_for_payment
from utils.auth_context import current_user_id

payments_bp = Blueprint("payments", __name__, url_prefix="/payments")


@payments_bp.post("/create-booking-payment")
def create_payment():
    data = request.get_json(silent=True) or {}
    user_id = current_user_id()

    # a signed-in client books for themselves; anonymous requests are guest bookings
    body_client = data.get("clientId")
    if body_client not in (None, "", "guest") and str(body_client) != str(user_id):
        return jsonify(error="clientId does not match the signed-in user"), 403

    req = BookingRequest.from_json(data, default_client_id=user_id)
    result = create_booking_payment(
        req,
        get_payment_gateway(),
        notifier=get_notifier(),
        idempotency_key=request.headers.get("Idempotency-Key"),
    )

    if result["developer"]:
        booking = result["booking"]
        return jsonify(
            developer=True,
            booking=booking.to_dict(),
            message="Booking created (developer mode - no payment required)",
        ), 201

    return jsonify(
        clientSecret=result["clientSecret"],
        paymentIntentId=result["paymentIntentId"],
        amount=result["amount"],
        currency=result["currency"],
        split=result["split"],
    ), 200


@payments_bp.get("/verify")
def verify_payment():
    payment_intent_id = (request.args.get("payment_intent") or "").strip()
    if not payment_intent_id:
        return jsonify(error="payment_intent is required"), 400
    if not payment_intent_id.startswith("pi_"):
        return jsonify(error="Invalid payment intent id"), 400

    status = get_payment_gateway().retrieve_payment_authorization(payment_intent_id)
    booking = find_booking_for_payment(payment_intent_id)

    return jsonify(
        status=status.status,
        amount=status.amount,
        currency=status.currency,
        booking_id=booking.id if booking else None,
    ), 200
