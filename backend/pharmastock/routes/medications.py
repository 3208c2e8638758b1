# Overview: Flask API routes for medications (stock ledger records), alerts, and per-medication history.

from flask import Blueprint, request, jsonify, g, current_app

from ..exceptions import INVENTORY_ERRORS
from ..models import Medication
from ..pagination import page_args_from_request
from ..services import alert_service, medication_service, movement_log_service
from ..validation import ModelValidationPolicy, validate_payload, enforce_rules_medication
from ..decorators import require_tenant, require_permission


medications_bp = Blueprint("medications", __name__, url_prefix="/api/medications")

MEDICATION_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "category",
        "quantity",
        "unit",
        "price_cents",
        "expiry_date",
        "batch_number",
        "supplier",
        "low_stock_threshold",
    },
    required_on_create={"name", "category", "unit", "expiry_date", "batch_number", "supplier"},
)

# quantity is not writable here: stock only changes through movements
MEDICATION_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=set(medication_service.EDITABLE_FIELDS),
)


@medications_bp.get("")
@require_tenant
@require_permission("VIEW_INVENTORY")
def list_medications_route():
    """List medications. Optional ?search= (name, batch, supplier) and ?category=."""
    page, page_size = page_args_from_request(request)
    try:
        result = medication_service.list_medications(
            pharmacy_id=g.pharmacy_id,
            search=request.args.get("search"),
            category=request.args.get("category"),
            page=page,
            page_size=page_size,
        )
    except INVENTORY_ERRORS as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify(result.to_dict("medications", lambda m: m.to_dict())), 200


@medications_bp.post("")
@require_tenant
@require_permission("MANAGE_MEDICATIONS")
def create_medication_route():
    """
    Create a medication.

    A non-zero opening quantity is logged as an opening-stock purchase
    movement, so its expiry date must be in the future.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(
            model=Medication, payload=payload, policy=MEDICATION_CREATE_POLICY, partial=False
        )
        enforce_rules_medication(patch)
        medication = medication_service.create_medication(
            pharmacy_id=g.pharmacy_id,
            performed_by=g.user_id,
            **patch,
        )
    except INVENTORY_ERRORS as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create medication")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"message": "Medication created successfully", "medication": medication.to_dict()}), 201


@medications_bp.get("/alerts")
@require_tenant
@require_permission("VIEW_INVENTORY")
def medication_alerts_route():
    """Low stock, expiring soon (sorted by expiry), and expired medications."""
    snapshot = alert_service.get_alerts(pharmacy_id=g.pharmacy_id)
    return jsonify(snapshot.to_dict()), 200


@medications_bp.get("/<int:medication_id>")
@require_tenant
@require_permission("VIEW_INVENTORY")
def get_medication_route(medication_id: int):
    try:
        medication = medication_service.get_medication(g.pharmacy_id, medication_id)
    except INVENTORY_ERRORS as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify(medication.to_dict()), 200


@medications_bp.put("/<int:medication_id>")
@require_tenant
@require_permission("MANAGE_MEDICATIONS")
def update_medication_route(medication_id: int):
    """Edit descriptive fields. Sending quantity is a 400."""
    payload = request.get_json(silent=True) or {}

    try:
        medication_service.reject_quantity_edit(payload)
        patch = validate_payload(
            model=Medication, payload=payload, policy=MEDICATION_UPDATE_POLICY, partial=True
        )
        enforce_rules_medication(patch)
        medication = medication_service.update_medication(
            pharmacy_id=g.pharmacy_id, medication_id=medication_id, patch=patch
        )
    except INVENTORY_ERRORS as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update medication")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"message": "Medication updated successfully", "medication": medication.to_dict()}), 200


@medications_bp.delete("/<int:medication_id>")
@require_tenant
@require_permission("DELETE_MEDICATIONS")
def delete_medication_route(medication_id: int):
    """
    Administrative delete. Refused (400) once the medication has movement
    history.
    """
    try:
        medication_service.delete_medication(pharmacy_id=g.pharmacy_id, medication_id=medication_id)
    except INVENTORY_ERRORS as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete medication")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"message": "Medication deleted successfully"}), 200


@medications_bp.get("/<int:medication_id>/movements")
@require_tenant
@require_permission("VIEW_AUDIT_LOG")
def medication_movements_route(medication_id: int):
    """Full movement history (oldest first) with a ledger reconciliation check."""
    try:
        history = movement_log_service.get_movement_history(
            pharmacy_id=g.pharmacy_id, medication_id=medication_id
        )
        report = movement_log_service.reconcile_medication(
            pharmacy_id=g.pharmacy_id, medication_id=medication_id
        )
    except INVENTORY_ERRORS as e:
        return jsonify(e.to_dict()), e.status_code

    return jsonify({
        "movements": [mv.to_dict() for mv in history],
        "reconciliation": report.to_dict(),
    }), 200
