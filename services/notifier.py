import logging

from utils.audit import log_event
from utils.emailer import send_email
from utils.sms import send_sms

logger = logging.getLogger(__name__)


class BookingNotifier:
    """Best-effort booking confirmations. Never raises."""

    def __init__(self, email_sender=send_email, sms_sender=send_sms, email_enabled=True, sms_enabled=True):
        self.email_sender = email_sender
        self.sms_sender = sms_sender
        self.email_enabled = email_enabled
        self.sms_enabled = sms_enabled

    def booking_confirmed(self, booking):
        results = []
        for recipient in self._recipients(booking):
            results.extend(self._deliver(booking, recipient))
        return results

    def _recipients(self, booking):
        when = booking.date.strftime("%a %d %b %Y, %H:%M")
        service_name = booking.service.name if booking.service else "your appointment"
        provider = booking.provider

        if booking.client is not None:
            client_name = booking.client.full_name or booking.client.email
            client_email = booking.client.email
            client_phone = booking.client.phone_number
        else:
            client_name = booking.guest_name
            client_email = booking.guest_email
            client_phone = booking.guest_phone

        out = []
        if provider is not None:
            out.append({
                "role": "barber",
                "email": provider.email or (provider.user.email if provider.user else None),
                "phone": provider.phone,
                "subject": "New booking confirmed",
                "body": f"New booking: {service_name} with {client_name} on {when}.",
            })
        out.append({
            "role": "client",
            "email": client_email,
            "phone": client_phone,
            "subject": "Your booking is confirmed",
            "reply_to": provider.email if provider else None,
            "body": (
                f"Your booking for {service_name} with "
                f"{provider.business_name if provider else 'your barber'} on {when} is confirmed."
            ),
        })
        return out

    def _deliver(self, booking, recipient):
        results = []
        channels = (
            ("sms", recipient["phone"], lambda: self.sms_sender(recipient["phone"], recipient["body"])),
            ("email", recipient["email"],
             lambda: self.email_sender(recipient["email"], recipient["subject"], recipient["body"],
                                       reply_to=recipient.get("reply_to"))),
        )
        enabled = {"sms": self.sms_enabled, "email": self.email_enabled}
        for channel, address, send in channels:
            if not address or not enabled[channel]:
                continue
            try:
                sent, error = send()
            except Exception as exc:  # a notifier bug must not fail a paid booking
                sent, error = False, str(exc)
            if not sent:
                logger.warning("Booking %s %s to %s not sent: %s", booking.id, channel, recipient["role"], error)
                self._record_failure(booking, channel, recipient["role"], error)
            results.append((recipient["role"], channel, sent))
        return results

    def _record_failure(self, booking, channel, role, error):
        try:
            log_event(
                "NOTIFICATION_FAILED",
                entity="booking",
                entity_id=booking.id,
                metadata={"channel": channel, "recipient": role, "error": error},
            )
        except Exception:
            logger.exception("Could not record notification failure for booking %s", booking.id)
