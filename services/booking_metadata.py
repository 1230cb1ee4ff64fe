"""
Booking details carried in PaymentIntent metadata.

Stripe metadata is flat string->string, so everything the webhook needs to
rebuild the booking later is encoded here and decoded by the materializer.
"""
from datetime import datetime, timezone

from services.fees import DEVELOPER, FEE_ONLY, FULL_SERVICE, FeeSplit
from utils.errors import MissingGuestInfo, ValidationError

GUEST_FIELDS = ("guestName", "guestEmail", "guestPhone")
GUEST_CLIENT_ID = "guest"


def parse_appointment_date(value) -> datetime:
    """ISO-8601 to naive UTC."""
    if isinstance(value, datetime):
        dt = value
    else:
        if not value or not isinstance(value, str):
            raise ValidationError("date is required")
        try:
            dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError as exc:
            raise ValidationError("Invalid date. Use ISO e.g. 2026-01-20T18:00:00") from exc
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def require_guest_info(client_id, guest_name, guest_email, guest_phone):
    """A booking without a client must carry all three guest fields."""
    if client_id is not None:
        return
    fields = {"guest_name": guest_name, "guest_email": guest_email, "guest_phone": guest_phone}
    missing = [k for k, v in fields.items() if not (v or "").strip()]
    if missing:
        raise MissingGuestInfo(missing)


def encode_addons(addons) -> str:
    """[(addon_id, cents), ...] -> "3:500,7:1000" """
    return ",".join(f"{int(addon_id)}:{int(cents)}" for addon_id, cents in addons)


def decode_addons(raw: str):
    out = []
    for part in (raw or "").split(","):
        part = part.strip()
        if not part:
            continue
        try:
            addon_id, cents = part.split(":", 1)
            out.append((int(addon_id), int(cents)))
        except ValueError as exc:
            raise ValidationError("Invalid add-on metadata") from exc
    return out


def build_metadata(provider_id, service_id, date, split: FeeSplit, service_cents: int,
                   addons=(), notes=None, client_id=None, guest_name=None,
                   guest_email=None, guest_phone=None) -> dict:
    addons = list(addons)
    return {
        "barberId": str(provider_id),
        "serviceId": str(service_id),
        "date": date.isoformat(),
        "notes": notes or "",
        "clientId": str(client_id) if client_id is not None else GUEST_CLIENT_ID,
        "guestName": guest_name or "",
        "guestEmail": guest_email or "",
        "guestPhone": guest_phone or "",
        "paymentType": split.mode,
        "servicePrice": str(service_cents),
        "addons": encode_addons(addons),
        "addonTotal": str(sum(cents for _, cents in addons)),
        "fixedFee": str(split.fixed_fee),
        "platformFee": str(split.platform_fee),
        "barberPayout": str(split.barber_payout),
    }


def _int_field(meta, key, required=True):
    raw = (meta.get(key) or "").strip()
    if not raw:
        if required:
            raise ValidationError(f"Missing required booking metadata: {key}")
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise ValidationError(f"Invalid booking metadata: {key}") from exc


def decode_metadata(meta: dict) -> dict:
    """Validate and decode booking metadata. Raises ValidationError / MissingGuestInfo."""
    meta = meta or {}
    missing = [k for k in ("barberId", "serviceId", "date", "servicePrice") if not (meta.get(k) or "").strip()]
    if missing:
        raise ValidationError(f"Missing required booking metadata: {', '.join(missing)}")

    raw_client = (meta.get("clientId") or "").strip()
    client_id = None
    if raw_client and raw_client != GUEST_CLIENT_ID:
        try:
            client_id = int(raw_client)
        except ValueError as exc:
            raise ValidationError("Invalid booking metadata: clientId") from exc

    guest = {k: (meta.get(k) or "").strip() or None for k in GUEST_FIELDS}
    require_guest_info(client_id, guest["guestName"], guest["guestEmail"], guest["guestPhone"])

    mode = (meta.get("paymentType") or FULL_SERVICE).strip()
    if mode not in (FULL_SERVICE, FEE_ONLY, DEVELOPER):
        raise ValidationError(f"Unknown payment type: {mode}")

    return {
        "provider_id": _int_field(meta, "barberId"),
        "service_id": _int_field(meta, "serviceId"),
        "date": parse_appointment_date(meta.get("date")),
        "notes": (meta.get("notes") or "").strip() or None,
        "client_id": client_id,
        "guest_name": guest["guestName"],
        "guest_email": guest["guestEmail"],
        "guest_phone": guest["guestPhone"],
        "mode": mode,
        "service_cents": _int_field(meta, "servicePrice"),
        "addons": decode_addons(meta.get("addons")),
        "addon_total": _int_field(meta, "addonTotal", required=False) or 0,
        "fixed_fee": _int_field(meta, "fixedFee", required=False) or 0,
        "platform_fee": _int_field(meta, "platformFee", required=False) or 0,
        "barber_payout": _int_field(meta, "barberPayout", required=False) or 0,
    }
