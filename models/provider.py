from datetime import datetime
from models.db import db


class Provider(db.Model):
    __tablename__ = "barbers"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, unique=True, index=True)

    business_name = db.Column(db.String(160), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(30), nullable=True)

    # developer/test providers never touch Stripe; their bookings are free
    is_developer = db.Column(db.Boolean, default=False, nullable=False)

    # Stripe Connect account (Express)
    stripe_account_id = db.Column(db.String(255), nullable=True, unique=True, index=True)
    stripe_account_status = db.Column(db.String(20), nullable=False, default="unset")  # unset, pending, active, deauthorized
    # charges_enabled AND details_submitted, as last reported by Stripe
    stripe_account_ready = db.Column(db.Boolean, default=False, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    user = db.relationship("User", back_populates="provider")
    services = db.relationship("Service", back_populates="provider", lazy="dynamic")
    addons = db.relationship("ServiceAddon", back_populates="provider", lazy="dynamic")

    def to_dict(self):
        return {
            "id": self.id,
            "business_name": self.business_name,
            "is_developer": self.is_developer,
            "stripe_account_status": self.stripe_account_status,
            "stripe_account_ready": self.stripe_account_ready,
        }
