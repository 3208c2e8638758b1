# Overview: Pytest coverage for the HTTP surface; status codes, payloads and role gates.

from datetime import timedelta

import pytest

from pharmastock.extensions import db
from pharmastock.models import Medication
from pharmastock.time_utils import today


def _future(days=90):
    return (today() + timedelta(days=days)).isoformat()


class TestSalesRoutes:

    def test_record_sale(self, client, pharmacy, medication, tenant_headers):
        resp = client.post(
            "/api/sales",
            json={"medication_id": medication.id, "quantity": 45, "unit_price_cents": 50},
            headers=tenant_headers(pharmacy.id, role="cashier", user_id="c-1"),
        )

        assert resp.status_code == 201
        body = resp.get_json()
        assert body["previous_quantity"] == 50
        assert body["new_quantity"] == 5
        assert body["sale"]["total_amount_cents"] == 2250
        assert body["movement"]["type"] == "sale"
        assert body["movement"]["quantity"] == -45
        assert body["movement"]["performed_by"] == "c-1"
        assert body["movement"]["medication"]["name"] == "Paracetamol 500mg"
        assert body["movement_id"] == body["movement"]["id"]

    def test_oversell_returns_400_with_available(self, client, pharmacy, make_medication, tenant_headers):
        med = make_medication(pharmacy.id, quantity=5)
        resp = client.post(
            "/api/sales",
            json={"medication_id": med.id, "quantity": 10},
            headers=tenant_headers(pharmacy.id),
        )

        assert resp.status_code == 400
        body = resp.get_json()
        assert body["available"] == 5
        assert "Only 5" in body["error"]

    @pytest.mark.parametrize("payload", [
        {"quantity": 1},
        {"medication_id": 1, "quantity": 0},
        {"medication_id": 1, "quantity": 1.5},
        {"medication_id": 1, "quantity": 1, "discount": 5},
    ])
    def test_invalid_payload(self, client, pharmacy, tenant_headers, payload):
        resp = client.post("/api/sales", json=payload, headers=tenant_headers(pharmacy.id))
        assert resp.status_code == 400

    def test_unknown_medication_404(self, client, pharmacy, tenant_headers):
        resp = client.post(
            "/api/sales", json={"medication_id": 99999, "quantity": 1}, headers=tenant_headers(pharmacy.id)
        )
        assert resp.status_code == 404

    def test_list_sales(self, client, pharmacy, medication, tenant_headers):
        client.post("/api/sales", json={"medication_id": medication.id, "quantity": 1},
                    headers=tenant_headers(pharmacy.id))

        resp = client.get("/api/sales", headers=tenant_headers(pharmacy.id, role="cashier"))

        assert resp.status_code == 200
        body = resp.get_json()
        assert len(body["sales"]) == 1
        assert body["pagination"]["total"] == 1


class TestPurchaseRoutes:

    def test_record_purchase(self, client, pharmacy, medication, tenant_headers):
        expiry = _future(60)
        resp = client.post(
            "/api/purchases",
            json={
                "medication_id": medication.id,
                "quantity": 100,
                "unit_price_cents": 120,
                "supplier": "MedCo",
                "batch_number": "BATCH42",
                "expiry_date": expiry,
            },
            headers=tenant_headers(pharmacy.id),
        )

        assert resp.status_code == 201
        body = resp.get_json()
        assert body["new_quantity"] == 150
        assert body["movement"]["total_amount_cents"] == 12000
        assert body["purchase"]["expiry_date"] == expiry

        med = db.session.get(Medication, medication.id)
        assert med.batch_number == "BATCH42"

    def test_expiry_today_rejected(self, client, pharmacy, medication, tenant_headers):
        resp = client.post(
            "/api/purchases",
            json={
                "medication_id": medication.id,
                "quantity": 100,
                "unit_price_cents": 120,
                "supplier": "MedCo",
                "batch_number": "BATCH42",
                "expiry_date": today().isoformat(),
            },
            headers=tenant_headers(pharmacy.id),
        )
        assert resp.status_code == 400
        assert resp.get_json()["field"] == "expiry_date"

    def test_cashier_cannot_receive(self, client, pharmacy, medication, tenant_headers):
        resp = client.post(
            "/api/purchases",
            json={"medication_id": medication.id, "quantity": 1},
            headers=tenant_headers(pharmacy.id, role="cashier"),
        )
        assert resp.status_code == 403
        assert resp.get_json()["required_permission"] == "RECEIVE_INVENTORY"


class TestAdjustmentRoutes:

    def test_record_expired(self, client, pharmacy, make_medication, tenant_headers):
        med = make_medication(pharmacy.id, quantity=20)
        resp = client.post(
            "/api/adjustments",
            json={"medication_id": med.id, "type": "expired", "quantity": 20, "reason": "Past expiry"},
            headers=tenant_headers(pharmacy.id, role="admin"),
        )

        assert resp.status_code == 201
        body = resp.get_json()
        assert body["new_quantity"] == 0
        assert body["movement"]["type"] == "expired"
        assert body["movement"]["quantity"] == -20
        assert body["adjustment"]["reason"] == "Past expiry"

    def test_sale_type_rejected(self, client, pharmacy, medication, tenant_headers):
        resp = client.post(
            "/api/adjustments",
            json={"medication_id": medication.id, "type": "sale", "quantity": 1, "reason": "x"},
            headers=tenant_headers(pharmacy.id),
        )
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Invalid adjustment type"

    def test_list_filtered_by_type(self, client, pharmacy, medication, tenant_headers):
        for kind in ("expired", "damaged"):
            client.post(
                "/api/adjustments",
                json={"medication_id": medication.id, "type": kind, "quantity": 1, "reason": "x"},
                headers=tenant_headers(pharmacy.id),
            )

        resp = client.get("/api/adjustments?type=damaged", headers=tenant_headers(pharmacy.id))

        assert resp.status_code == 200
        assert [a["type"] for a in resp.get_json()["adjustments"]] == ["damaged"]


class TestMedicationRoutes:

    def test_create_and_get(self, client, pharmacy, tenant_headers):
        resp = client.post(
            "/api/medications",
            json={
                "name": "Cetirizine 10mg",
                "category": "Antihistamine",
                "unit": "tablet",
                "quantity": 30,
                "price_cents": 15,
                "expiry_date": _future(),
                "batch_number": "CET-1",
                "supplier": "MedCo",
            },
            headers=tenant_headers(pharmacy.id),
        )
        assert resp.status_code == 201
        created = resp.get_json()["medication"]
        assert created["quantity"] == 30

        resp = client.get(f"/api/medications/{created['id']}", headers=tenant_headers(pharmacy.id))
        assert resp.status_code == 200
        assert resp.get_json()["name"] == "Cetirizine 10mg"

    def test_create_missing_fields(self, client, pharmacy, tenant_headers):
        resp = client.post("/api/medications", json={"name": "X"}, headers=tenant_headers(pharmacy.id))
        assert resp.status_code == 400
        assert "Missing required fields" in resp.get_json()["error"]

    def test_update_rejects_quantity(self, client, pharmacy, medication, tenant_headers):
        resp = client.put(
            f"/api/medications/{medication.id}",
            json={"quantity": 500},
            headers=tenant_headers(pharmacy.id),
        )
        assert resp.status_code == 400
        assert resp.get_json()["field"] == "quantity"

    def test_update_fields(self, client, pharmacy, medication, tenant_headers):
        resp = client.put(
            f"/api/medications/{medication.id}",
            json={"low_stock_threshold": 60},
            headers=tenant_headers(pharmacy.id),
        )
        assert resp.status_code == 200
        assert resp.get_json()["medication"]["is_low_stock"] is True

    def test_delete_requires_admin(self, client, pharmacy, make_medication, tenant_headers):
        med = make_medication(pharmacy.id, quantity=0)

        resp = client.delete(f"/api/medications/{med.id}", headers=tenant_headers(pharmacy.id))
        assert resp.status_code == 403

        resp = client.delete(f"/api/medications/{med.id}", headers=tenant_headers(pharmacy.id, role="admin"))
        assert resp.status_code == 200

    def test_delete_with_history_refused(self, client, pharmacy, medication, tenant_headers):
        resp = client.delete(f"/api/medications/{medication.id}", headers=tenant_headers(pharmacy.id, role="admin"))
        assert resp.status_code == 400

    def test_alerts(self, client, pharmacy, medication, tenant_headers):
        client.post("/api/sales", json={"medication_id": medication.id, "quantity": 45},
                    headers=tenant_headers(pharmacy.id))

        resp = client.get("/api/medications/alerts", headers=tenant_headers(pharmacy.id, role="cashier"))

        assert resp.status_code == 200
        body = resp.get_json()
        assert [m["id"] for m in body["low_stock"]] == [medication.id]
        assert body["summary"]["low_stock_count"] == 1
        assert body["today"] == today().isoformat()

    def test_movement_history(self, client, pharmacy, medication, tenant_headers):
        client.post("/api/sales", json={"medication_id": medication.id, "quantity": 5},
                    headers=tenant_headers(pharmacy.id))

        resp = client.get(f"/api/medications/{medication.id}/movements", headers=tenant_headers(pharmacy.id))

        assert resp.status_code == 200
        body = resp.get_json()
        assert [mv["type"] for mv in body["movements"]] == ["purchase", "sale"]
        assert body["reconciliation"]["consistent"] is True


class TestInventoryLogRoutes:

    def test_list_logs(self, client, pharmacy, medication, tenant_headers):
        client.post("/api/sales", json={"medication_id": medication.id, "quantity": 5},
                    headers=tenant_headers(pharmacy.id))

        resp = client.get(
            f"/api/inventory-logs?medication_id={medication.id}&type=sale",
            headers=tenant_headers(pharmacy.id),
        )

        assert resp.status_code == 200
        body = resp.get_json()
        assert len(body["logs"]) == 1
        assert body["logs"][0]["new_quantity"] == 45
        assert body["logs"][0]["medication"]["id"] == medication.id

    def test_date_only_end_covers_whole_day(self, client, pharmacy, medication, tenant_headers):
        day = today().isoformat()
        resp = client.get(
            f"/api/inventory-logs?start_date={day}&end_date={day}",
            headers=tenant_headers(pharmacy.id),
        )
        assert resp.status_code == 200
        assert resp.get_json()["pagination"]["total"] == 1

    def test_bad_date(self, client, pharmacy, tenant_headers):
        resp = client.get("/api/inventory-logs?start_date=yesterday", headers=tenant_headers(pharmacy.id))
        assert resp.status_code == 400

    def test_non_integer_medication_id_rejected(self, client, pharmacy, medication, tenant_headers):
        """A malformed filter must not widen the query to every medication."""
        resp = client.get("/api/inventory-logs?medication_id=abc", headers=tenant_headers(pharmacy.id))

        assert resp.status_code == 400
        assert resp.get_json()["field"] == "medication_id"

    def test_cashier_cannot_read_logs(self, client, pharmacy, tenant_headers):
        resp = client.get("/api/inventory-logs", headers=tenant_headers(pharmacy.id, role="cashier"))
        assert resp.status_code == 403


def test_health(client, db_session):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.get_json()["checks"]["database"]["status"] == "healthy"


class TestCorsHeaders:

    def test_no_origins_allowed_by_default(self, client, db_session):
        resp = client.get("/health", headers={"Origin": "http://localhost:5173"})
        assert "Access-Control-Allow-Origin" not in resp.headers

    def test_configured_origin_echoed(self, app, client, db_session, monkeypatch):
        monkeypatch.setitem(app.config, "CORS_ALLOWED_ORIGINS", ["https://pos.example.org"])

        allowed = client.get("/health", headers={"Origin": "https://pos.example.org"})
        other = client.get("/health", headers={"Origin": "https://evil.example.org"})

        assert allowed.headers["Access-Control-Allow-Origin"] == "https://pos.example.org"
        assert "X-Pharmacy-Id" in allowed.headers["Access-Control-Allow-Headers"]
        assert "Access-Control-Allow-Origin" not in other.headers
