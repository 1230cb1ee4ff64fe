from flask import Blueprint, jsonify, g, request

from models import db
from models.audit_log import AuditLog
from models.booking import Booking, BOOKING_STATUSES
from models.payment import Payment
from models.provider import Provider
from security.rbac import ADMIN, require_roles
from services.fees import DEVELOPER, FEE_ONLY, FeeSplit, to_cents, validate_split
from utils.audit import log_event
from utils.errors import FeeReconciliationMismatch

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")


def _stored_split(booking: Booking):
    charged_price = 0
    if booking.payment_type not in (FEE_ONLY, DEVELOPER):
        charged_price = to_cents(booking.price) + to_cents(booking.addon_total)
    return FeeSplit(booking.payment_type, charged_price, booking.fixed_fee, booking.platform_fee, booking.barber_payout)


def _check_stored_split(split: FeeSplit, payment):
    validate_split(split)
    charged = payment.amount if payment else 0
    if charged != split.amount:
        raise FeeReconciliationMismatch(f"Stored split totals {split.amount} but {charged} was charged")


@admin_bp.get("/bookings")
@require_roles(ADMIN)
def list_all_bookings():
    status = request.args.get("status")
    if status and status not in BOOKING_STATUSES:
        return jsonify(error="Invalid status"), 400
    barber_id = request.args.get("barber_id", type=int)

    q = Booking.query
    if status:
        q = q.filter_by(status=status)
    if barber_id:
        q = q.filter_by(barber_id=barber_id)

    rows = q.order_by(Booking.created_at.desc()).limit(200).all()
    return jsonify([b.to_dict() for b in rows]), 200


@admin_bp.get("/bookings/<int:booking_id>/fee-check")
@require_roles(ADMIN)
def fee_check(booking_id: int):
    """Re-run the fee reconciliation against what was stored and charged."""
    booking = db.session.get(Booking, booking_id)
    if not booking:
        return jsonify(error="Booking not found"), 404

    payment = Payment.query.filter_by(booking_id=booking.id).first()
    split = _stored_split(booking)
    try:
        _check_stored_split(split, payment)
        ok, problem = True, None
    except FeeReconciliationMismatch as exc:
        ok, problem = False, exc.message

    return jsonify(
        booking_id=booking.id,
        reconciled=ok,
        problem=problem,
        charged=payment.amount if payment else 0,
        split=split.to_dict(),
    ), 200


@admin_bp.post("/providers/<int:provider_id>/developer")
@require_roles(ADMIN)
def set_developer(provider_id: int):
    data = request.get_json(silent=True) or {}
    enabled = data.get("enabled")
    if not isinstance(enabled, bool):
        return jsonify(error="enabled must be true or false"), 400

    provider = db.session.get(Provider, provider_id)
    if not provider:
        return jsonify(error="Barber not found"), 404

    provider.is_developer = enabled
    db.session.commit()
    log_event("BARBER_DEVELOPER_FLAG", user_id=g.user.id, entity="barber", entity_id=provider.id,
              metadata={"enabled": enabled})
    return jsonify(provider.to_dict()), 200


@admin_bp.get("/audit-logs")
@require_roles(ADMIN)
def list_audit_logs():
    limit = request.args.get("limit", type=int) or 200
    limit = max(1, min(limit, 500))

    action = request.args.get("action")
    entity_id = request.args.get("entity_id")

    q = AuditLog.query
    if action:
        q = q.filter(AuditLog.action == action)
    if entity_id:
        q = q.filter(AuditLog.entity_id == entity_id)

    rows = q.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).limit(limit).all()
    return jsonify([
        {
            "id": r.id,
            "created_at": r.timestamp.isoformat() if r.timestamp else None,
            "user_id": r.user_id,
            "action": r.action,
            "entity": r.entity,
            "entity_id": r.entity_id,
            "ip": r.ip,
            "metadata": r.metadata_json,
        }
        for r in rows
    ]), 200
