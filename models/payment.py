from datetime import datetime
from models.db import db

class Payment(db.Model):
    __tablename__ = "payments"

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.id"), nullable=False, index=True)

    provider = db.Column(db.String(20), nullable=False, default="STRIPE")
    payment_intent_id = db.Column(db.String(255), nullable=False, unique=True, index=True)
    amount = db.Column(db.Integer, nullable=False)   # smallest unit
    currency = db.Column(db.String(10), nullable=False, default="usd")

    status = db.Column(db.String(20), nullable=False, default="PAID")  # PAID, REFUNDED
    destination_account_id = db.Column(db.String(255), nullable=True)
    platform_fee = db.Column(db.Integer, nullable=False, default=0)
    barber_payout = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    paid_at = db.Column(db.DateTime, nullable=True)
    refunded_at = db.Column(db.DateTime, nullable=True)

    booking = db.relationship("Booking")
