# Overview: Request decorators that establish tenant context and enforce role permissions.

from functools import wraps
from flask import request, jsonify, g, current_app

from .permissions import ROLES, ROLE_SUPER_ADMIN, role_has_permission
from .services.tenant_service import TenantAccessError, require_active_pharmacy

# Set by the upstream auth gateway after it has verified the caller
PHARMACY_HEADER = "X-Pharmacy-Id"
ROLE_HEADER = "X-User-Role"
USER_HEADER = "X-User-Id"


def _is_tenant_scoped() -> bool:
    return hasattr(g, 'pharmacy_id') and hasattr(g, 'user_role')


def require_tenant(f):
    """
    Establish tenant context from the resolved identity headers.

    MULTI-TENANT: Sets the following Flask g attributes:
    - g.pharmacy_id: The pharmacy (tenant) every core call is scoped to - REQUIRED
    - g.user_role: One of super_admin, admin, pharmacist, cashier
    - g.user_id: Opaque caller id, recorded as performed_by on movements

    super_admin is not bound to one pharmacy and must name the pharmacy it
    acts on with ?pharmacy_id= (or the pharmacy header).

    SECURITY: Returns 401 if role or pharmacy context is missing, 403 if the
    pharmacy is unknown or deactivated.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        role = (request.headers.get(ROLE_HEADER) or "").strip().lower()
        if role not in ROLES:
            return jsonify({"error": "Authentication required"}), 401

        raw_pharmacy_id = request.headers.get(PHARMACY_HEADER)
        if role == ROLE_SUPER_ADMIN and request.args.get("pharmacy_id"):
            raw_pharmacy_id = request.args.get("pharmacy_id")

        if not raw_pharmacy_id:
            if role == ROLE_SUPER_ADMIN:
                return jsonify({"error": "pharmacy_id is required for super_admin requests"}), 400
            return jsonify({"error": "Pharmacy ID required"}), 401

        try:
            pharmacy_id = int(str(raw_pharmacy_id).strip())
        except ValueError:
            return jsonify({"error": "Pharmacy ID must be an integer"}), 400

        try:
            require_active_pharmacy(pharmacy_id)
        except TenantAccessError as e:
            current_app.logger.warning(
                "Tenant access denied for %s %s: %s", request.method, request.path, e
            )
            return jsonify({"error": str(e)}), 403

        g.pharmacy_id = pharmacy_id
        g.user_role = role
        g.user_id = (request.headers.get(USER_HEADER) or "").strip() or None

        return f(*args, **kwargs)

    return decorated_function


def require_permission(permission_code: str):
    """
    Require a specific permission for the caller's role.

    Must be applied after @require_tenant.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_tenant_scoped():
                return jsonify({"error": "Authentication required"}), 401

            if not role_has_permission(g.user_role, permission_code):
                current_app.logger.warning(
                    "Permission %s denied for role %s on %s (pharmacy %s)",
                    permission_code, g.user_role, request.path, g.pharmacy_id,
                )
                return jsonify({
                    "error": "Permission denied",
                    "required_permission": permission_code,
                    "message": f"Role {g.user_role} cannot perform this action",
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
