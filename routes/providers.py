from decimal import Decimal, InvalidOperation

from flask import Blueprint, request, jsonify, g

from models import db
from models.provider import Provider
from models.service import Service, ServiceAddon
from security.rbac import BARBER, require_roles
from utils.audit import log_event

providers_bp = Blueprint("providers", __name__, url_prefix="/providers")


def _parse_price(value):
    try:
        price = Decimal(str(value)).quantize(Decimal("0.01"))
    except (InvalidOperation, ValueError):
        return None
    if not price.is_finite():
        return None
    return price if price >= 0 else None


def _my_provider():
    provider = g.user.provider
    if provider is None:
        return None, (jsonify(error="No barber profile found"), 404)
    return provider, None


# ---------- browse ----------
@providers_bp.get("")
def list_providers():
    q = Provider.query
    term = (request.args.get("q") or "").strip()
    if term:
        q = q.filter(Provider.business_name.ilike(f"%{term}%"))
    rows = q.order_by(Provider.business_name.asc()).limit(100).all()
    return jsonify([p.to_dict() for p in rows]), 200


@providers_bp.get("/<int:provider_id>")
def get_provider(provider_id: int):
    provider = db.session.get(Provider, provider_id)
    if not provider:
        return jsonify(error="Barber not found"), 404

    services = provider.services.filter_by(is_active=True).order_by(Service.name.asc()).all()
    addons = provider.addons.filter_by(is_active=True).order_by(ServiceAddon.name.asc()).all()
    out = provider.to_dict()
    out["services"] = [s.to_dict() for s in services]
    out["addons"] = [a.to_dict() for a in addons]
    return jsonify(out), 200


# ---------- BARBER: own catalogue ----------
@providers_bp.post("/me/services")
@require_roles(BARBER)
def create_service():
    provider, failure = _my_provider()
    if failure:
        return failure

    data = request.get_json(silent=True) or {}
    name = (data.get("name") or "").strip()
    price = _parse_price(data.get("price"))
    duration = data.get("duration", 30)

    if not name or len(name) > 120:
        return jsonify(error="Service name required"), 400
    if price is None:
        return jsonify(error="Invalid price"), 400
    if not isinstance(duration, int) or duration <= 0:
        return jsonify(error="Invalid duration"), 400

    service = Service(provider_id=provider.id, name=name, price=price, duration=duration)
    db.session.add(service)
    db.session.commit()

    log_event("SERVICE_CREATE", user_id=g.user.id, entity="service", entity_id=service.id)
    return jsonify(service.to_dict()), 201


@providers_bp.post("/me/addons")
@require_roles(BARBER)
def create_addon():
    provider, failure = _my_provider()
    if failure:
        return failure

    data = request.get_json(silent=True) or {}
    name = (data.get("name") or "").strip()
    price = _parse_price(data.get("price"))
    if not name or len(name) > 120:
        return jsonify(error="Add-on name required"), 400
    if price is None:
        return jsonify(error="Invalid price"), 400

    addon = ServiceAddon(provider_id=provider.id, name=name, price=price)
    db.session.add(addon)
    db.session.commit()

    log_event("ADDON_CREATE", user_id=g.user.id, entity="addon", entity_id=addon.id)
    return jsonify(addon.to_dict()), 201


@providers_bp.post("/me/addons/<int:addon_id>/deactivate")
@require_roles(BARBER)
def deactivate_addon(addon_id: int):
    provider, failure = _my_provider()
    if failure:
        return failure

    addon = db.session.get(ServiceAddon, addon_id)
    if not addon or addon.provider_id != provider.id:
        return jsonify(error="Add-on not found"), 404

    addon.is_active = False
    db.session.commit()

    log_event("ADDON_DEACTIVATE", user_id=g.user.id, entity="addon", entity_id=addon_id)
    return jsonify(message="Add-on deactivated"), 200
