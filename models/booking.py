from datetime import datetime
from models.db import db

BOOKING_STATUSES = ("pending", "confirmed", "completed", "cancelled", "no_show")

# pending only exists while the payment is in flight, it is never persisted
BOOKING_TRANSITIONS = {
    "pending": {"confirmed", "cancelled"},
    "confirmed": {"completed", "cancelled", "no_show"},
    "completed": set(),
    "cancelled": set(),
    "no_show": set(),
}

# platform_fee + barber_payout == charged price + fixed fee; only full charges carry the price
FEE_RECONCILES_SQL = (
    "platform_fee + barber_payout = fixed_fee + "
    "CASE WHEN payment_type = 'full' THEN ROUND((price + addon_total) * 100) ELSE 0 END"
)


class Booking(db.Model):
    __tablename__ = "bookings"

    id = db.Column(db.Integer, primary_key=True)

    barber_id = db.Column(db.Integer, db.ForeignKey("barbers.id"), nullable=False, index=True)
    service_id = db.Column(db.Integer, db.ForeignKey("services.id"), nullable=False, index=True)
    # null client_id means a guest booking
    client_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    guest_name = db.Column(db.String(120), nullable=True)
    guest_email = db.Column(db.String(255), nullable=True)
    guest_phone = db.Column(db.String(30), nullable=True)

    date = db.Column(db.DateTime, nullable=False, index=True)
    notes = db.Column(db.Text, nullable=True)

    # price/addon_total in major units; fixed_fee/platform_fee/barber_payout in cents
    price = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    addon_total = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    fixed_fee = db.Column(db.Integer, nullable=False, default=0)
    platform_fee = db.Column(db.Integer, nullable=False, default=0)
    barber_payout = db.Column(db.Integer, nullable=False, default=0)
    payment_type = db.Column(db.String(10), nullable=False, default="full")  # full, fee, developer

    payment_intent_id = db.Column(db.String(255), nullable=True, unique=True, index=True)
    payment_status = db.Column(db.String(20), nullable=False, default="pending")  # pending, succeeded, refunded

    status = db.Column(db.String(20), nullable=False, default="confirmed")

    checked_in_at = db.Column(db.DateTime, nullable=True)
    cancelled_at = db.Column(db.DateTime, nullable=True)
    cancel_reason = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    addons = db.relationship("BookingAddon", back_populates="booking", cascade="all, delete-orphan")
    provider = db.relationship("Provider")
    service = db.relationship("Service")
    client = db.relationship("User")

    __table_args__ = (
        db.CheckConstraint("platform_fee >= 0 AND barber_payout >= 0", name="ck_bookings_fee_non_negative"),
        db.CheckConstraint(FEE_RECONCILES_SQL, name="ck_bookings_fee_reconciles"),
        db.CheckConstraint(
            "client_id IS NOT NULL OR "
            "(guest_name IS NOT NULL AND guest_email IS NOT NULL AND guest_phone IS NOT NULL)",
            name="ck_bookings_guest_or_client",
        ),
    )

    @property
    def is_guest(self) -> bool:
        return self.client_id is None

    def to_dict(self):
        return {
            "id": self.id,
            "barber_id": self.barber_id,
            "service_id": self.service_id,
            "client_id": self.client_id,
            "guest_name": self.guest_name,
            "guest_email": self.guest_email,
            "guest_phone": self.guest_phone,
            "date": self.date.isoformat(),
            "notes": self.notes,
            "price": str(self.price),
            "addon_total": str(self.addon_total),
            "fixed_fee": self.fixed_fee,
            "platform_fee": self.platform_fee,
            "barber_payout": self.barber_payout,
            "payment_type": self.payment_type,
            "payment_intent_id": self.payment_intent_id,
            "payment_status": self.payment_status,
            "status": self.status,
            "checked_in_at": self.checked_in_at.isoformat() if self.checked_in_at else None,
            "cancelled_at": self.cancelled_at.isoformat() if self.cancelled_at else None,
            "addons": [a.to_dict() for a in self.addons],
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class BookingAddon(db.Model):
    """Price snapshot of an add-on at booking time; never follows later re-pricing."""

    __tablename__ = "booking_addons"

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.id"), nullable=False, index=True)
    addon_id = db.Column(db.Integer, db.ForeignKey("service_addons.id"), nullable=False)

    name = db.Column(db.String(120), nullable=True)
    price = db.Column(db.Numeric(10, 2), nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    booking = db.relationship("Booking", back_populates="addons")

    __table_args__ = (
        db.UniqueConstraint("booking_id", "addon_id", name="uq_booking_addon_once"),
    )

    def to_dict(self):
        return {"addon_id": self.addon_id, "name": self.name, "price": str(self.price)}
