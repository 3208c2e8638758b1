# Overview: Flask API routes for the inventory movement log; filtered, paginated, read-only.

from datetime import timedelta

from flask import Blueprint, request, jsonify, g

from ..exceptions import INVENTORY_ERRORS
from ..pagination import page_args_from_request
from ..services import movement_log_service
from ..time_utils import parse_iso_datetime, to_utc_z
from ..decorators import require_tenant, require_permission

"""
Time semantics:
- API accepts ISO-8601 datetimes with Z/offsets; backend normalizes to UTC-naive internally.
- start_date/end_date filtering is inclusive on both ends.
"""

inventory_logs_bp = Blueprint("inventory_logs", __name__, url_prefix="/api/inventory-logs")


@inventory_logs_bp.get("")
@require_tenant
@require_permission("VIEW_AUDIT_LOG")
def list_inventory_logs_route():
    """
    List movements newest first.

    Filters: medication_id, type, start_date, end_date. Pagination: page, page_size.
    """
    raw_medication_id = (request.args.get("medication_id") or "").strip()
    medication_id = None
    if raw_medication_id:
        try:
            medication_id = int(raw_medication_id)
        except ValueError:
            return jsonify({"error": "medication_id must be an integer", "field": "medication_id"}), 400

    raw_end = (request.args.get("end_date") or "").strip()
    try:
        start_dt = parse_iso_datetime(request.args.get("start_date"))
        end_dt = parse_iso_datetime(raw_end)
    except ValueError:
        return jsonify({"error": "start_date and end_date must be ISO-8601 datetimes"}), 400

    # A bare YYYY-MM-DD end date covers that whole day
    if end_dt is not None and len(raw_end) == 10:
        end_dt = end_dt + timedelta(days=1) - timedelta(microseconds=1)

    page, page_size = page_args_from_request(request)

    try:
        result = movement_log_service.list_movements(
            pharmacy_id=g.pharmacy_id,
            medication_id=medication_id,
            movement_type=request.args.get("type") or None,
            start=start_dt,
            end=end_dt,
            page=page,
            page_size=page_size,
        )
    except INVENTORY_ERRORS as e:
        return jsonify(e.to_dict()), e.status_code

    body = result.to_dict("logs", lambda mv: mv.to_dict(include_medication=True))
    body["filters"] = {
        "medication_id": medication_id,
        "type": request.args.get("type") or None,
        "start_date": to_utc_z(start_dt),
        "end_date": to_utc_z(end_dt),
    }
    return jsonify(body), 200
