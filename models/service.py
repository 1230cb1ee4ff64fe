from datetime import datetime
from models.db import db


class Service(db.Model):
    __tablename__ = "services"

    id = db.Column(db.Integer, primary_key=True)
    provider_id = db.Column(db.Integer, db.ForeignKey("barbers.id"), nullable=False, index=True)

    name = db.Column(db.String(120), nullable=False)
    price = db.Column(db.Numeric(10, 2), nullable=True)  # major units, e.g. 30.00
    duration = db.Column(db.Integer, nullable=False, default=30)  # minutes
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    provider = db.relationship("Provider", back_populates="services")

    def to_dict(self):
        return {
            "id": self.id,
            "provider_id": self.provider_id,
            "name": self.name,
            "price": str(self.price) if self.price is not None else None,
            "duration": self.duration,
        }


class ServiceAddon(db.Model):
    __tablename__ = "service_addons"

    id = db.Column(db.Integer, primary_key=True)
    provider_id = db.Column(db.Integer, db.ForeignKey("barbers.id"), nullable=False, index=True)

    name = db.Column(db.String(120), nullable=False)
    price = db.Column(db.Numeric(10, 2), nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    provider = db.relationship("Provider", back_populates="addons")

    def to_dict(self):
        return {
            "id": self.id,
            "provider_id": self.provider_id,
            "name": self.name,
            "price": str(self.price),
            "is_active": self.is_active,
        }
