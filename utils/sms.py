from flask import current_app
from twilio.base.exceptions import TwilioException
from twilio.rest import Client


def send_sms(to_phone: str, body: str):
    """Returns (sent, error). SMS is a paid channel and stays off unless SMS_ENABLED."""
    if not current_app.config.get("SMS_ENABLED"):
        return False, "SMS disabled"

    sid = current_app.config.get("TWILIO_ACCOUNT_SID")
    token = current_app.config.get("TWILIO_AUTH_TOKEN")
    from_number = current_app.config.get("TWILIO_PHONE_NUMBER")
    if not sid or not token or not from_number:
        return False, "Twilio not configured"
    if not to_phone:
        return False, "No recipient"

    try:
        Client(sid, token).messages.create(body=body, from_=from_number, to=to_phone)
        return True, None
    except TwilioException as exc:
        return False, str(exc)
