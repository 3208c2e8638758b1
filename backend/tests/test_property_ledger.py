# Overview: Randomized property test; ledger quantity always equals the sum of logged deltas.

import random
from datetime import timedelta

import pytest

from pharmastock.exceptions import InsufficientStockError
from pharmastock.extensions import db
from pharmastock.models import InventoryMovement, Medication
from pharmastock.services import movement_log_service, movement_service
from pharmastock.time_utils import today


def _delta_sum(medication_id):
    return sum(
        mv.quantity
        for mv in db.session.query(InventoryMovement).filter_by(medication_id=medication_id)
    )


def _random_step(rng, pharmacy_id, medication_id):
    op = rng.choice(["sale", "purchase", "adjustment"])
    quantity = rng.randint(1, 40)
    if op == "sale":
        return movement_service.record_sale(
            pharmacy_id=pharmacy_id,
            medication_id=medication_id,
            quantity=quantity,
            unit_price_cents=rng.randint(0, 500),
        )
    if op == "purchase":
        return movement_service.record_purchase(
            pharmacy_id=pharmacy_id,
            medication_id=medication_id,
            quantity=quantity,
            unit_price_cents=rng.randint(0, 500),
            supplier=rng.choice(["MedCo", "PharmaDirect"]),
            batch_number=f"B-{rng.randint(1, 999)}",
            expiry_date=today() + timedelta(days=rng.randint(1, 720)),
        )
    return movement_service.record_adjustment(
        pharmacy_id=pharmacy_id,
        medication_id=medication_id,
        kind=rng.choice(["adjustment", "expired", "damaged"]),
        quantity=quantity,
        reason="Random write-off",
    )


@pytest.mark.parametrize("seed", [7, 42, 2024])
def test_random_sequence_keeps_ledger_equal_to_log(db_session, pharmacy, make_medication, seed):
    """After every step: quantity == sum of deltas, quantity >= 0, rejected steps change nothing."""
    rng = random.Random(seed)
    opening = rng.randint(0, 30)
    med = make_medication(pharmacy.id, quantity=opening)

    rejected = 0
    for _ in range(60):
        before = db_session.get(Medication, med.id).quantity
        try:
            result = _random_step(rng, pharmacy.id, med.id)
        except InsufficientStockError as exc:
            rejected += 1
            assert exc.available == before
            assert db_session.get(Medication, med.id).quantity == before
        else:
            assert result.previous_quantity == before
            assert result.movement.new_quantity == result.new_quantity

        quantity = db_session.get(Medication, med.id).quantity
        assert quantity >= 0
        assert quantity == _delta_sum(med.id)

    report = movement_log_service.reconcile_medication(pharmacy_id=pharmacy.id, medication_id=med.id)
    assert report.consistent
    # Opening stock is logged as one extra movement
    assert report.movement_count == (60 - rejected) + (1 if opening else 0)
