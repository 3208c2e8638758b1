# Overview: Flask API routes for stock write-offs (adjustment, expired, damaged).

from flask import Blueprint, request, jsonify, g, current_app

from ..exceptions import INVENTORY_ERRORS
from ..models import StockAdjustment
from ..pagination import page_args_from_request
from ..services import movement_service
from ..validation import ModelValidationPolicy, validate_payload, enforce_rules_adjustment
from ..decorators import require_tenant, require_permission


adjustments_bp = Blueprint("adjustments", __name__, url_prefix="/api/adjustments")

ADJUSTMENT_POLICY = ModelValidationPolicy(
    writable_fields={"medication_id", "type", "quantity", "reason", "notes"},
    required_on_create={"medication_id", "type", "quantity", "reason"},
)


@adjustments_bp.get("")
@require_tenant
@require_permission("VIEW_INVENTORY")
def list_adjustments_route():
    """List write-offs, newest first. Optional ?type=adjustment|expired|damaged."""
    page, page_size = page_args_from_request(request)
    try:
        result = movement_service.list_adjustments(
            pharmacy_id=g.pharmacy_id,
            kind=request.args.get("type") or None,
            page=page,
            page_size=page_size,
        )
    except INVENTORY_ERRORS as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify(result.to_dict("adjustments", lambda a: a.to_dict())), 200


@adjustments_bp.post("")
@require_tenant
@require_permission("ADJUST_INVENTORY")
def record_adjustment_route():
    """
    Remove stock as an adjustment, expiry write-off, or damage write-off.

    Requires: ADJUST_INVENTORY permission
    Available to: admin, pharmacist

    All three kinds decrease stock; there is no positive adjustment.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(
            model=StockAdjustment, payload=payload, policy=ADJUSTMENT_POLICY, partial=False
        )
        enforce_rules_adjustment(patch)

        result = movement_service.record_adjustment(
            pharmacy_id=g.pharmacy_id,
            medication_id=patch["medication_id"],
            kind=patch["type"],
            quantity=patch["quantity"],
            reason=patch["reason"],
            notes=patch.get("notes"),
            performed_by=g.user_id,
        )
    except INVENTORY_ERRORS as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record adjustment")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({
        "message": "Adjustment recorded successfully",
        "adjustment": result.record.to_dict(),
        **result.to_dict(),
    }), 201
