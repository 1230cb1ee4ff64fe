from flask import Blueprint, request, jsonify, g

from models import db
from models.booking import Booking, BOOKING_STATUSES
from security.rbac import ADMIN, BARBER, require_roles
from services import get_notifier, get_payment_gateway
from services.booking_lifecycle import add_review, check_in, transition
from services.materializer import ConfirmedPayment, materialize_booking
from utils.auth_context import login_required

bookings_bp = Blueprint("bookings", __name__, url_prefix="/bookings")


def _load_booking(booking_id: int):
    booking = db.session.get(Booking, booking_id)
    if not booking:
        return None, (jsonify(error="Booking not found"), 404)
    return booking, None


def _is_booking_barber(booking) -> bool:
    provider = g.user.provider
    return provider is not None and provider.id == booking.barber_id


def _can_view(booking) -> bool:
    return g.user.has_role(ADMIN) or booking.client_id == g.user.id or _is_booking_barber(booking)


def _can_manage(booking) -> bool:
    return g.user.has_role(ADMIN) or _is_booking_barber(booking)


# ---------- confirmation after client-side payment ----------
@bookings_bp.post("/create")
def create_from_payment():
    data = request.get_json(silent=True) or {}
    payment_intent_id = data.get("paymentIntentId") or data.get("payment_intent_id") or ""
    if not isinstance(payment_intent_id, str) or not payment_intent_id.strip():
        return jsonify(error="paymentIntentId required"), 400
    payment_intent_id = payment_intent_id.strip()

    # booking details come from Stripe's copy of the metadata, never from the client body
    status = get_payment_gateway().retrieve_payment_authorization(payment_intent_id)
    if not status.succeeded:
        return jsonify(error="Payment not completed", status=status.status), 400

    booking, created = materialize_booking(ConfirmedPayment.from_status(status), notifier=get_notifier())
    return jsonify(booking=booking.to_dict(), created=created), (201 if created else 200)


# ---------- listings ----------
@bookings_bp.get("/me")
@login_required
def my_bookings():
    status = request.args.get("status")
    q = Booking.query.filter_by(client_id=g.user.id)
    if status:
        q = q.filter_by(status=status)
    rows = q.order_by(Booking.date.desc()).all()
    return jsonify([b.to_dict() for b in rows]), 200


@bookings_bp.get("/provider")
@require_roles(BARBER)
def provider_bookings():
    provider = g.user.provider
    if provider is None:
        return jsonify(error="No barber profile found"), 404

    status = request.args.get("status")
    if status and status not in BOOKING_STATUSES:
        return jsonify(error="Invalid status"), 400

    q = Booking.query.filter_by(barber_id=provider.id)
    if status:
        q = q.filter_by(status=status)
    rows = q.order_by(Booking.date.asc()).limit(500).all()
    return jsonify([b.to_dict() for b in rows]), 200


@bookings_bp.get("/<int:booking_id>")
@login_required
def get_booking(booking_id: int):
    booking, failure = _load_booking(booking_id)
    if failure:
        return failure
    if not _can_view(booking):
        return jsonify(error="Booking not found"), 404
    return jsonify(booking.to_dict()), 200


# ---------- status transitions ----------
@bookings_bp.post("/<int:booking_id>/check-in")
@login_required
def check_in_booking(booking_id: int):
    booking, failure = _load_booking(booking_id)
    if failure:
        return failure
    if not _can_manage(booking):
        return jsonify(error="Forbidden"), 403
    check_in(booking, actor_id=g.user.id)
    return jsonify(booking.to_dict()), 200


@bookings_bp.post("/<int:booking_id>/complete")
@login_required
def complete_booking(booking_id: int):
    booking, failure = _load_booking(booking_id)
    if failure:
        return failure
    if not _can_manage(booking):
        return jsonify(error="Forbidden"), 403
    transition(booking, "completed", actor_id=g.user.id)
    return jsonify(booking.to_dict()), 200


@bookings_bp.post("/<int:booking_id>/no-show")
@login_required
def no_show_booking(booking_id: int):
    booking, failure = _load_booking(booking_id)
    if failure:
        return failure
    if not _can_manage(booking):
        return jsonify(error="Forbidden"), 403
    transition(booking, "no_show", actor_id=g.user.id)
    return jsonify(booking.to_dict()), 200


@bookings_bp.post("/<int:booking_id>/cancel")
@login_required
def cancel_booking(booking_id: int):
    data = request.get_json(silent=True) or {}
    reason = (data.get("reason") or "").strip() or None

    booking, failure = _load_booking(booking_id)
    if failure:
        return failure
    if not (_can_manage(booking) or booking.client_id == g.user.id):
        return jsonify(error="Forbidden"), 403
    transition(booking, "cancelled", actor_id=g.user.id, reason=reason)
    return jsonify(booking.to_dict()), 200


# ---------- reviews ----------
@bookings_bp.post("/<int:booking_id>/review")
@login_required
def review_booking(booking_id: int):
    data = request.get_json(silent=True) or {}
    booking, failure = _load_booking(booking_id)
    if failure:
        return failure
    review = add_review(booking, g.user.id, data.get("rating"), data.get("comment"))
    return jsonify(id=review.id, rating=review.rating, comment=review.comment), 201
