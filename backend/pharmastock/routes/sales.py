# Overview: Flask API routes for sales; records stock-out movements and lists sales.

from flask import Blueprint, request, jsonify, g, current_app

from ..exceptions import INVENTORY_ERRORS
from ..models import Sale
from ..pagination import page_args_from_request
from ..services import movement_service
from ..validation import ModelValidationPolicy, validate_payload, enforce_rules_sale
from ..decorators import require_tenant, require_permission


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")

SALE_POLICY = ModelValidationPolicy(
    writable_fields={"medication_id", "quantity", "unit_price_cents", "customer_name"},
    required_on_create={"medication_id", "quantity"},
)


@sales_bp.get("")
@require_tenant
@require_permission("VIEW_INVENTORY")
def list_sales_route():
    """List sales for the current pharmacy, newest first."""
    page, page_size = page_args_from_request(request)
    try:
        result = movement_service.list_sales(pharmacy_id=g.pharmacy_id, page=page, page_size=page_size)
    except INVENTORY_ERRORS as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify(result.to_dict("sales", lambda s: s.to_dict())), 200


@sales_bp.post("")
@require_tenant
@require_permission("CREATE_SALE")
def record_sale_route():
    """
    Record a sale and decrement stock.

    Requires: CREATE_SALE permission
    Available to: admin, pharmacist, cashier

    Oversell is rejected with 400 and the available quantity.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Sale, payload=payload, policy=SALE_POLICY, partial=False)
        enforce_rules_sale(patch)

        result = movement_service.record_sale(
            pharmacy_id=g.pharmacy_id,
            medication_id=patch["medication_id"],
            quantity=patch["quantity"],
            unit_price_cents=patch.get("unit_price_cents"),
            customer_name=patch.get("customer_name"),
            performed_by=g.user_id,
        )
    except INVENTORY_ERRORS as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record sale")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({
        "message": "Sale recorded successfully",
        "sale": result.record.to_dict(),
        **result.to_dict(),
    }), 201
