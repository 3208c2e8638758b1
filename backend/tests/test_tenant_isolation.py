# Overview: Pytest coverage for tenant isolation behavior.

"""
Multi-Tenant Isolation Tests

SECURITY TESTS: Prove that cross-tenant access is denied for core resources.

These tests create two pharmacies and verify that:
1. A caller scoped to Pharmacy B cannot read or move stock of Pharmacy A
2. Cross-tenant lookups return 404 (existence is not revealed)
3. Listings only ever contain the caller's own rows
4. Missing, malformed, unknown or inactive tenant context is refused
"""

import pytest

from pharmastock.extensions import db
from pharmastock.models import Medication, Pharmacy
from pharmastock.services import tenant_service
from pharmastock.services.tenant_service import (
    TenantAccessError,
    create_pharmacy,
    require_active_pharmacy,
    set_pharmacy_active,
)
from pharmastock.exceptions import ValidationError


class TestTenantServiceHelpers:
    """Test tenant_service helper functions."""

    def test_require_active_pharmacy_valid(self, db_session, pharmacy):
        assert require_active_pharmacy(pharmacy.id).id == pharmacy.id

    def test_require_active_pharmacy_unknown(self, db_session):
        with pytest.raises(TenantAccessError):
            require_active_pharmacy(99999)

    def test_require_active_pharmacy_inactive(self, db_session, pharmacy):
        set_pharmacy_active(pharmacy.id, False)
        with pytest.raises(TenantAccessError, match="inactive"):
            require_active_pharmacy(pharmacy.id)

    def test_create_pharmacy_uppercases_license(self, db_session):
        created = create_pharmacy(name="Riverside", license_number="lic-77")
        assert created.license_number == "LIC-77"

    def test_duplicate_license_rejected(self, db_session):
        create_pharmacy(name="Riverside", license_number="LIC-77")
        with pytest.raises(ValidationError):
            create_pharmacy(name="Other", license_number="lic-77")

    def test_duplicate_license_at_commit_rejected(self, db_session, monkeypatch):
        """Two registrations racing past the lookup: the unique index decides."""
        create_pharmacy(name="Riverside", license_number="LIC-77")
        monkeypatch.setattr(tenant_service, "_license_taken", lambda license_number: False)

        with pytest.raises(ValidationError, match="already registered"):
            create_pharmacy(name="Other", license_number="lic-77")

        # session is usable again and only the first pharmacy exists
        assert db_session.query(Pharmacy).filter_by(license_number="LIC-77").count() == 1


class TestCrossTenantRoutes:
    """Pharmacy B must not see or touch Pharmacy A's medication."""

    def test_get_medication(self, client, pharmacy, other_pharmacy, medication, tenant_headers):
        resp = client.get(f"/api/medications/{medication.id}", headers=tenant_headers(other_pharmacy.id))
        assert resp.status_code == 404

    def test_sale(self, client, pharmacy, other_pharmacy, medication, tenant_headers):
        resp = client.post(
            "/api/sales",
            json={"medication_id": medication.id, "quantity": 1},
            headers=tenant_headers(other_pharmacy.id),
        )
        assert resp.status_code == 404
        assert db.session.get(Medication, medication.id).quantity == 50

    def test_adjustment(self, client, pharmacy, other_pharmacy, medication, tenant_headers):
        resp = client.post(
            "/api/adjustments",
            json={"medication_id": medication.id, "type": "damaged", "quantity": 1, "reason": "x"},
            headers=tenant_headers(other_pharmacy.id),
        )
        assert resp.status_code == 404

    def test_update(self, client, pharmacy, other_pharmacy, medication, tenant_headers):
        resp = client.put(
            f"/api/medications/{medication.id}",
            json={"name": "Hijacked"},
            headers=tenant_headers(other_pharmacy.id),
        )
        assert resp.status_code == 404
        assert db.session.get(Medication, medication.id).name == "Paracetamol 500mg"

    def test_movement_history(self, client, pharmacy, other_pharmacy, medication, tenant_headers):
        resp = client.get(
            f"/api/medications/{medication.id}/movements", headers=tenant_headers(other_pharmacy.id)
        )
        assert resp.status_code == 404

    def test_listings_empty(self, client, pharmacy, other_pharmacy, medication, tenant_headers):
        headers = tenant_headers(other_pharmacy.id)
        assert client.get("/api/medications", headers=headers).get_json()["medications"] == []
        assert client.get("/api/inventory-logs", headers=headers).get_json()["logs"] == []
        assert client.get(
            f"/api/inventory-logs?medication_id={medication.id}", headers=headers
        ).get_json()["logs"] == []


class TestTenantContext:

    def test_missing_role(self, client, pharmacy):
        resp = client.get("/api/medications", headers={"X-Pharmacy-Id": str(pharmacy.id)})
        assert resp.status_code == 401

    def test_unknown_role(self, client, pharmacy, tenant_headers):
        resp = client.get("/api/medications", headers=tenant_headers(pharmacy.id, role="janitor"))
        assert resp.status_code == 401

    def test_missing_pharmacy(self, client, db_session, tenant_headers):
        resp = client.get("/api/medications", headers=tenant_headers(None))
        assert resp.status_code == 401

    def test_non_integer_pharmacy(self, client, db_session, tenant_headers):
        resp = client.get("/api/medications", headers=tenant_headers("abc"))
        assert resp.status_code == 400

    def test_unknown_pharmacy(self, client, db_session, tenant_headers):
        resp = client.get("/api/medications", headers=tenant_headers(99999))
        assert resp.status_code == 403

    def test_inactive_pharmacy(self, client, pharmacy, tenant_headers):
        set_pharmacy_active(pharmacy.id, False)
        resp = client.get("/api/medications", headers=tenant_headers(pharmacy.id))
        assert resp.status_code == 403

    def test_super_admin_targets_pharmacy(self, client, pharmacy, other_pharmacy, medication, tenant_headers):
        headers = tenant_headers(None, role="super_admin")

        resp = client.get(f"/api/medications/{medication.id}?pharmacy_id={pharmacy.id}", headers=headers)
        assert resp.status_code == 200

        resp = client.get(f"/api/medications/{medication.id}?pharmacy_id={other_pharmacy.id}", headers=headers)
        assert resp.status_code == 404

    def test_super_admin_needs_pharmacy(self, client, db_session, tenant_headers):
        resp = client.get("/api/medications", headers=tenant_headers(None, role="super_admin"))
        assert resp.status_code == 400

    def test_pharmacy_query_arg_ignored_for_scoped_roles(self, client, pharmacy, other_pharmacy, medication,
                                                        tenant_headers):
        resp = client.get(
            f"/api/medications/{medication.id}?pharmacy_id={pharmacy.id}",
            headers=tenant_headers(other_pharmacy.id, role="admin"),
        )
        assert resp.status_code == 404
