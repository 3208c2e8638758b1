"""
Permission constants and role mappings.

WHY: Centralized permission definitions ensure consistency across routes.
Roles arrive from the upstream auth layer in the tenant context; this module
only maps them to the permissions each route requires.

DESIGN PRINCIPLES:
- Permissions are granular (one action per permission)
- Default role mappings follow principle of least privilege
- super_admin passes every check and may act on any pharmacy
"""

# =============================================================================
# ROLES
# =============================================================================

ROLE_SUPER_ADMIN = "super_admin"
ROLE_ADMIN = "admin"
ROLE_PHARMACIST = "pharmacist"
ROLE_CASHIER = "cashier"

ROLES = (ROLE_SUPER_ADMIN, ROLE_ADMIN, ROLE_PHARMACIST, ROLE_CASHIER)


# =============================================================================
# PERMISSION DEFINITIONS
# =============================================================================

# Each permission is defined as: (code, description)
PERMISSION_DEFINITIONS = [
    ("VIEW_INVENTORY", "View medications, alerts and movement history"),
    ("MANAGE_MEDICATIONS", "Create and edit medication records"),
    ("DELETE_MEDICATIONS", "Delete medication records without movement history"),
    ("CREATE_SALE", "Record sales (stock out)"),
    ("RECEIVE_INVENTORY", "Record purchases (stock in)"),
    ("ADJUST_INVENTORY", "Record adjustments and expired/damaged write-offs"),
    ("VIEW_AUDIT_LOG", "View inventory movement logs and reconciliation"),
]

# =============================================================================
# DEFAULT ROLE PERMISSIONS
# =============================================================================

DEFAULT_ROLE_PERMISSIONS = {
    ROLE_ADMIN: [
        # Admin gets ALL permissions within its pharmacy
        "VIEW_INVENTORY",
        "MANAGE_MEDICATIONS",
        "DELETE_MEDICATIONS",
        "CREATE_SALE",
        "RECEIVE_INVENTORY",
        "ADJUST_INVENTORY",
        "VIEW_AUDIT_LOG",
    ],
    ROLE_PHARMACIST: [
        "VIEW_INVENTORY",
        "MANAGE_MEDICATIONS",
        "CREATE_SALE",
        "RECEIVE_INVENTORY",
        "ADJUST_INVENTORY",
        "VIEW_AUDIT_LOG",
    ],
    ROLE_CASHIER: [
        "VIEW_INVENTORY",
        "CREATE_SALE",
    ],
}


def role_has_permission(role: str | None, permission_code: str) -> bool:
    if role == ROLE_SUPER_ADMIN:
        return True
    return permission_code in DEFAULT_ROLE_PERMISSIONS.get(role or "", ())
