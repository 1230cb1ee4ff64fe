"""
Turns a confirmed payment into exactly one Booking row.

Both the Stripe webhook and the client's post-redirect confirmation call
materialize_booking(); the unique payment_intent_id column is what makes the
two paths safe to race.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models import db
from models.booking import Booking, BookingAddon
from models.payment import Payment
from models.provider import Provider
from models.service import Service, ServiceAddon
from models.user import User
from services.booking_metadata import decode_metadata
from services.fees import DEVELOPER, FEE_ONLY, FeeSplit, from_cents, validate_split
from utils.audit import log_event
from utils.errors import (
    BookingPersistenceError,
    FeeReconciliationMismatch,
    ValidationError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConfirmedPayment:
    payment_intent_id: str
    amount_received: int
    currency: str
    metadata: dict = field(default_factory=dict)
    application_fee_amount: Optional[int] = None
    destination: Optional[str] = None

    @classmethod
    def from_status(cls, status):
        """From a services.stripe_gateway.PaymentStatus that has succeeded."""
        return cls(
            payment_intent_id=status.id,
            amount_received=status.amount_received or status.amount,
            currency=status.currency,
            metadata=dict(status.metadata),
            application_fee_amount=status.application_fee_amount,
            destination=status.transfer_destination,
        )


def find_booking_for_payment(payment_intent_id):
    return Booking.query.filter_by(payment_intent_id=payment_intent_id).first()


def _reconcile(payment: ConfirmedPayment, details: dict, provider: Provider) -> FeeSplit:
    """Rebuild the split from metadata and check it against what Stripe captured."""
    split = FeeSplit(
        mode=details["mode"],
        price=0 if details["mode"] in (FEE_ONLY, DEVELOPER) else details["service_cents"] + details["addon_total"],
        fixed_fee=details["fixed_fee"],
        platform_fee=details["platform_fee"],
        barber_payout=details["barber_payout"],
    )
    validate_split(split)

    if sum(cents for _, cents in details["addons"]) != details["addon_total"]:
        raise FeeReconciliationMismatch("Add-on total does not match the add-ons charged")

    if split.mode == DEVELOPER:
        if not provider.is_developer:
            raise FeeReconciliationMismatch("Zero-cost booking for a barber that is not a developer account")
        if split.amount != 0:
            raise FeeReconciliationMismatch("Developer bookings must be free")
        return split

    if payment.amount_received != split.amount:
        raise FeeReconciliationMismatch(
            f"Captured {payment.amount_received} but the booking split expects {split.amount}"
        )
    if payment.application_fee_amount is not None and payment.application_fee_amount != split.application_fee:
        raise FeeReconciliationMismatch(
            f"Application fee {payment.application_fee_amount} does not match expected {split.application_fee}"
        )
    return split


def _resolve_references(details):
    provider = db.session.get(Provider, details["provider_id"])
    if not provider:
        raise ValidationError("Barber not found")
    service = db.session.get(Service, details["service_id"])
    if not service or service.provider_id != provider.id:
        raise ValidationError("Service not found for this barber")
    if details["client_id"] is not None and not db.session.get(User, details["client_id"]):
        raise ValidationError("Client not found")

    addon_names = {}
    addon_ids = [addon_id for addon_id, _ in details["addons"]]
    if addon_ids:
        rows = ServiceAddon.query.filter(ServiceAddon.id.in_(addon_ids)).all()
        addon_names = {a.id: a.name for a in rows if a.provider_id == provider.id}
        if len(addon_names) != len(set(addon_ids)):
            raise ValidationError("Add-on not found for this barber")
    return provider, service, addon_names


def materialize_booking(payment: ConfirmedPayment, notifier=None):
    """Create the booking for a confirmed payment.

    Returns (booking, created). A second call for the same payment intent
    returns the existing booking with created=False.
    """
    existing = find_booking_for_payment(payment.payment_intent_id)
    if existing:
        log_event("BOOKING_MATERIALIZE_DUPLICATE", entity="booking", entity_id=existing.id,
                  metadata={"payment_intent_id": payment.payment_intent_id})
        return existing, False

    details = decode_metadata(payment.metadata)
    provider, service, addon_names = _resolve_references(details)

    try:
        split = _reconcile(payment, details, provider)
    except FeeReconciliationMismatch as exc:
        logger.error("Fee reconciliation failed for %s: %s", payment.payment_intent_id, exc.message)
        log_event("FEE_RECONCILIATION_MISMATCH", entity="payment_intent", entity_id=payment.payment_intent_id,
                  metadata={"error": exc.message, "amount_received": payment.amount_received,
                            "application_fee_amount": payment.application_fee_amount})
        raise

    charged_service = 0 if split.mode in (FEE_ONLY, DEVELOPER) else details["service_cents"]
    now = datetime.utcnow()
    booking = Booking(
        barber_id=provider.id,
        service_id=service.id,
        client_id=details["client_id"],
        guest_name=details["guest_name"],
        guest_email=details["guest_email"],
        guest_phone=details["guest_phone"],
        date=details["date"],
        notes=details["notes"],
        price=from_cents(charged_service),
        addon_total=from_cents(details["addon_total"]),
        fixed_fee=split.fixed_fee,
        platform_fee=split.platform_fee,
        barber_payout=split.barber_payout,
        payment_type=split.mode,
        payment_intent_id=payment.payment_intent_id,
        payment_status="succeeded",
        status="confirmed",
    )
    for addon_id, cents in details["addons"]:
        booking.addons.append(BookingAddon(addon_id=addon_id, name=addon_names.get(addon_id), price=from_cents(cents)))
    db.session.add(booking)

    if split.mode != DEVELOPER:
        db.session.add(Payment(
            booking=booking,
            payment_intent_id=payment.payment_intent_id,
            amount=payment.amount_received,
            currency=payment.currency,
            status="PAID",
            destination_account_id=payment.destination,
            platform_fee=split.platform_fee,
            barber_payout=split.barber_payout,
            paid_at=now,
        ))

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        # lost the race to the other confirmation path
        existing = find_booking_for_payment(payment.payment_intent_id)
        if existing:
            return existing, False
        logger.exception("Booking insert failed for %s", payment.payment_intent_id)
        raise BookingPersistenceError()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Booking insert failed for %s", payment.payment_intent_id)
        raise BookingPersistenceError()

    log_event("BOOKING_MATERIALIZED", user_id=booking.client_id, entity="booking", entity_id=booking.id,
              metadata={"payment_intent_id": payment.payment_intent_id, "payment_type": booking.payment_type,
                        "platform_fee": booking.platform_fee, "barber_payout": booking.barber_payout})

    if notifier is not None:
        try:
            notifier.booking_confirmed(booking)
        except Exception:
            logger.exception("Booking %s notifications failed", booking.id)

    return booking, True
