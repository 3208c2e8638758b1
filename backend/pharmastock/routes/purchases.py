# Overview: Flask API routes for purchases; records stock-in movements and lists purchases.

from flask import Blueprint, request, jsonify, g, current_app

from ..exceptions import INVENTORY_ERRORS
from ..models import Purchase
from ..pagination import page_args_from_request
from ..services import movement_service
from ..time_utils import today
from ..validation import ModelValidationPolicy, validate_payload, enforce_rules_purchase
from ..decorators import require_tenant, require_permission


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")

PURCHASE_POLICY = ModelValidationPolicy(
    writable_fields={"medication_id", "quantity", "unit_price_cents", "supplier", "batch_number", "expiry_date"},
    required_on_create={"medication_id", "quantity", "unit_price_cents", "supplier", "batch_number", "expiry_date"},
)


@purchases_bp.get("")
@require_tenant
@require_permission("VIEW_INVENTORY")
def list_purchases_route():
    """List purchases for the current pharmacy, newest first."""
    page, page_size = page_args_from_request(request)
    try:
        result = movement_service.list_purchases(pharmacy_id=g.pharmacy_id, page=page, page_size=page_size)
    except INVENTORY_ERRORS as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify(result.to_dict("purchases", lambda p: p.to_dict())), 200


@purchases_bp.post("")
@require_tenant
@require_permission("RECEIVE_INVENTORY")
def record_purchase_route():
    """
    Receive stock from a supplier.

    Requires: RECEIVE_INVENTORY permission
    Available to: admin, pharmacist

    The medication's supplier, batch number, expiry date and price are
    replaced with this purchase's values (latest batch wins).
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Purchase, payload=payload, policy=PURCHASE_POLICY, partial=False)
        enforce_rules_purchase(patch, today())

        result = movement_service.record_purchase(
            pharmacy_id=g.pharmacy_id,
            medication_id=patch["medication_id"],
            quantity=patch["quantity"],
            unit_price_cents=patch["unit_price_cents"],
            supplier=patch["supplier"],
            batch_number=patch["batch_number"],
            expiry_date=patch["expiry_date"],
            performed_by=g.user_id,
        )
    except INVENTORY_ERRORS as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record purchase")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({
        "message": "Purchase recorded successfully",
        "purchase": result.record.to_dict(),
        **result.to_dict(),
    }), 201
