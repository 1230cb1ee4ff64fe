from flask import current_app

from services.notifier import BookingNotifier
from services.stripe_gateway import StripeGateway


def get_payment_gateway():
    """The app's payment gateway; built from config on first use unless one was injected."""
    gateway = current_app.extensions.get("payment_gateway")
    if gateway is None:
        gateway = StripeGateway(
            current_app.config.get("STRIPE_SECRET_KEY"),
            timeout=current_app.config.get("STRIPE_TIMEOUT_SECONDS", 8),
        )
        current_app.extensions["payment_gateway"] = gateway
    return gateway


def get_notifier():
    notifier = current_app.extensions.get("booking_notifier")
    if notifier is None:
        notifier = BookingNotifier(
            email_enabled=bool(current_app.config.get("SMTP_HOST")),
            sms_enabled=bool(current_app.config.get("SMS_ENABLED")),
        )
        current_app.extensions["booking_notifier"] = notifier
    return notifier
