from datetime import datetime, timedelta

from models import db
from models.booking import Booking, BOOKING_TRANSITIONS
from models.review import Review
from utils.audit import log_event
from utils.errors import InvalidStatusTransition, ValidationError


def transition(booking: Booking, new_status: str, actor_id=None, reason=None) -> Booking:
    allowed = BOOKING_TRANSITIONS.get(booking.status, set())
    if new_status not in allowed:
        raise InvalidStatusTransition(f"Cannot move booking from {booking.status} to {new_status}")

    previous = booking.status
    booking.status = new_status
    if new_status == "cancelled":
        booking.cancelled_at = datetime.utcnow()
        booking.cancel_reason = (reason or "")[:255] or None
    db.session.commit()

    log_event("BOOKING_STATUS_CHANGE", user_id=actor_id, entity="booking", entity_id=booking.id,
              metadata={"from": previous, "to": new_status, "reason": reason})
    return booking


def check_in(booking: Booking, actor_id=None) -> Booking:
    if booking.status != "confirmed":
        raise InvalidStatusTransition("Only confirmed bookings can be checked in")
    if booking.checked_in_at is None:
        booking.checked_in_at = datetime.utcnow()
        db.session.commit()
        log_event("BOOKING_CHECK_IN", user_id=actor_id, entity="booking", entity_id=booking.id)
    return booking


def complete_past_bookings(older_than_hours: int, now=None) -> int:
    """Time-based confirmed -> completed for appointments that are long over."""
    cutoff = (now or datetime.utcnow()) - timedelta(hours=older_than_hours)
    rows = Booking.query.filter(Booking.status == "confirmed", Booking.date < cutoff).all()
    for booking in rows:
        booking.status = "completed"
    db.session.commit()
    if rows:
        log_event("BOOKINGS_AUTO_COMPLETED", entity="booking",
                  metadata={"count": len(rows), "booking_ids": [b.id for b in rows]})
    return len(rows)


def add_review(booking: Booking, client_id: int, rating, comment=None) -> Review:
    if booking.client_id is None or booking.client_id != client_id:
        raise ValidationError("Only the booking's client can review it", status_code=403)
    if booking.status != "completed":
        raise ValidationError("Only completed bookings can be reviewed")
    try:
        rating = int(rating)
    except (TypeError, ValueError) as exc:
        raise ValidationError("rating must be a number from 1 to 5") from exc
    if not 1 <= rating <= 5:
        raise ValidationError("rating must be a number from 1 to 5")
    if Review.query.filter_by(booking_id=booking.id).first():
        raise ValidationError("Booking already reviewed", status_code=409)

    review = Review(
        booking_id=booking.id,
        barber_id=booking.barber_id,
        client_id=client_id,
        rating=rating,
        comment=(comment or "").strip() or None,
    )
    db.session.add(review)
    db.session.commit()
    log_event("REVIEW_CREATE", user_id=client_id, entity="booking", entity_id=booking.id,
              metadata={"rating": rating})
    return review
