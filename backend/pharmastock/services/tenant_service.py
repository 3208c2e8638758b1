"""
Multi-Tenant Service: Tenant Validation and Scoping Helpers

WHY: Centralize tenant validation logic for reuse across services and routes.
Every request is scoped to exactly one pharmacy, except super_admin
requests, which name the pharmacy they act on.

SECURITY INVARIANTS:
1. Every tenant-scoped request has g.pharmacy_id set by @require_tenant
2. Core services take pharmacy_id as an explicit argument; they never read g
3. Rows owned by another pharmacy are reported as not found

USAGE:
    from pharmastock.services.tenant_service import require_active_pharmacy

    pharmacy = require_active_pharmacy(pharmacy_id)
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from ..exceptions import ValidationError
from ..extensions import db
from ..models import Pharmacy

logger = logging.getLogger(__name__)


class TenantAccessError(Exception):
    """Raised when tenant context is missing, unknown, or inactive."""
    pass


def require_active_pharmacy(pharmacy_id: int) -> Pharmacy:
    """
    Validate that a pharmacy exists and is active.

    Raises:
        TenantAccessError if the pharmacy doesn't exist or is deactivated
    """
    pharmacy = db.session.get(Pharmacy, pharmacy_id)
    if pharmacy is None:
        logger.warning("Tenant context names unknown pharmacy %s", pharmacy_id)
        raise TenantAccessError("Pharmacy not found")
    if not pharmacy.is_active:
        logger.warning("Tenant context names inactive pharmacy %s", pharmacy_id)
        raise TenantAccessError("Pharmacy is inactive")
    return pharmacy


def create_pharmacy(*, name: str, license_number: str) -> Pharmacy:
    """Create a tenant. License numbers are stored uppercase and are unique."""
    name = (name or "").strip()
    license_number = (license_number or "").strip().upper()
    if not name:
        raise ValidationError("name is required", field="name")
    if not license_number:
        raise ValidationError("license_number is required", field="license_number")

    if _license_taken(license_number):
        raise ValidationError(f"License number {license_number} already registered", field="license_number")

    pharmacy = Pharmacy(name=name, license_number=license_number, is_active=True)
    db.session.add(pharmacy)
    try:
        db.session.commit()
    except IntegrityError as exc:
        # Lost a race with a concurrent registration of the same license
        db.session.rollback()
        logger.warning("Duplicate license %s rejected at commit: %s", license_number, exc.orig)
        raise ValidationError(
            f"License number {license_number} already registered", field="license_number"
        ) from exc
    return pharmacy


def _license_taken(license_number: str) -> bool:
    return db.session.query(Pharmacy.id).filter_by(license_number=license_number).first() is not None


def set_pharmacy_active(pharmacy_id: int, is_active: bool) -> Pharmacy:
    pharmacy = db.session.get(Pharmacy, pharmacy_id)
    if pharmacy is None:
        raise TenantAccessError("Pharmacy not found")
    pharmacy.is_active = is_active
    db.session.commit()
    return pharmacy
