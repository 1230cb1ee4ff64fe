from .health import health_bp
from .auth import auth_bp
from .admin import admin_bp
from .payments import payments_bp
from .bookings import bookings_bp
from .connect import connect_bp
from .providers import providers_bp
from .stripe_webhook import webhook_bp

ALL_BLUEPRINTS = (
    health_bp,
    auth_bp,
    admin_bp,
    payments_bp,
    bookings_bp,
    connect_bp,
    providers_bp,
    webhook_bp,
)
