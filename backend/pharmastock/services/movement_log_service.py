# Overview: Movement log access; append-only writes, filtered listing, audit history, and ledger reconciliation.

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import func

from ..exceptions import NotFoundError, ValidationError
from ..extensions import db
from ..models import InventoryMovement, Medication, MovementType
from ..pagination import Page, paginate
from ..time_utils import utcnow
"""
Movement Log Invariants (authoritative)

- Append-only: rows are inserted by append_movement() and never updated or
  deleted (mapper listeners on InventoryMovement refuse both).
- append_movement() runs inside the caller's atomic scope; it flushes but
  never commits.
- Every row satisfies new_quantity == previous_quantity + quantity, and its
  new_quantity equals the ledger quantity it was written with.
- For one medication, (occurred_at, id) ascending is the audit order; the
  listing API returns newest first.
"""


def append_movement(
    *,
    medication: Medication,
    movement_type: MovementType,
    delta: int,
    previous_quantity: int,
    reference: str,
    unit_price_cents: int | None = None,
    total_amount_cents: int | None = None,
    notes: str | None = None,
    batch_number: str | None = None,
    performed_by: str | None = None,
    occurred_at: datetime | None = None,
) -> InventoryMovement:
    """
    Append one movement row for a ledger change already applied to medication.

    The caller has set medication.quantity = previous_quantity + delta in the
    same session; this is checked so the log cannot drift from the ledger.
    """
    new_quantity = previous_quantity + delta
    if medication.quantity != new_quantity:
        raise ValueError(
            f"movement {previous_quantity}{delta:+d} does not match ledger quantity {medication.quantity}"
        )
    if movement_type.signed(abs(delta)) != delta:
        raise ValueError(f"{movement_type.value} movement cannot carry delta {delta:+d}")

    movement = InventoryMovement(
        pharmacy_id=medication.pharmacy_id,
        medication_id=medication.id,
        type=movement_type,
        quantity=delta,
        previous_quantity=previous_quantity,
        new_quantity=new_quantity,
        unit_price_cents=unit_price_cents,
        total_amount_cents=total_amount_cents,
        reference=reference,
        notes=notes,
        batch_number=batch_number,
        performed_by=performed_by,
        occurred_at=occurred_at or utcnow(),
    )
    db.session.add(movement)
    db.session.flush()  # ensures movement.id is assigned without committing
    return movement


def _ensure_medication(pharmacy_id: int, medication_id: int) -> Medication:
    medication = (
        db.session.query(Medication)
        .filter_by(id=medication_id, pharmacy_id=pharmacy_id)
        .first()
    )
    if medication is None:
        raise NotFoundError("Medication not found")
    return medication


def list_movements(
    *,
    pharmacy_id: int,
    medication_id: int | None = None,
    movement_type: MovementType | str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    page: int | None = None,
    page_size: int | None = None,
) -> Page:
    """
    Newest-first page of movements for one pharmacy.

    Date range is inclusive on both ends. A medication_id belonging to
    another pharmacy simply yields no rows.
    """
    if start is not None and end is not None and start > end:
        raise ValidationError("start_date must be on or before end_date", field="start_date")

    q = db.session.query(InventoryMovement).filter(InventoryMovement.pharmacy_id == pharmacy_id)

    if medication_id is not None:
        q = q.filter(InventoryMovement.medication_id == medication_id)

    if movement_type is not None:
        q = q.filter(InventoryMovement.type == MovementType.parse(movement_type))

    if start is not None:
        q = q.filter(InventoryMovement.occurred_at >= start)

    if end is not None:
        q = q.filter(InventoryMovement.occurred_at <= end)

    q = q.order_by(InventoryMovement.occurred_at.desc(), InventoryMovement.id.desc())
    return paginate(q, page, page_size)


def get_movement_history(*, pharmacy_id: int, medication_id: int) -> list[InventoryMovement]:
    """All movements of one medication in audit order (oldest first)."""
    _ensure_medication(pharmacy_id, medication_id)
    return (
        db.session.query(InventoryMovement)
        .filter_by(pharmacy_id=pharmacy_id, medication_id=medication_id)
        .order_by(InventoryMovement.occurred_at.asc(), InventoryMovement.id.asc())
        .all()
    )


def count_movements(*, pharmacy_id: int, medication_id: int) -> int:
    return (
        db.session.query(func.count(InventoryMovement.id))
        .filter_by(pharmacy_id=pharmacy_id, medication_id=medication_id)
        .scalar()
    ) or 0


@dataclass(frozen=True)
class ReconciliationReport:
    medication_id: int
    quantity: int
    movement_total: int
    movement_count: int
    # ids of movements whose previous_quantity does not continue the chain
    chain_breaks: list[int] = field(default_factory=list)

    @property
    def consistent(self) -> bool:
        return self.quantity == self.movement_total and not self.chain_breaks

    def to_dict(self) -> dict:
        return {
            "medication_id": self.medication_id,
            "quantity": self.quantity,
            "movement_total": self.movement_total,
            "movement_count": self.movement_count,
            "chain_breaks": list(self.chain_breaks),
            "consistent": self.consistent,
        }


def _reconcile(medication: Medication, movements: list[InventoryMovement]) -> ReconciliationReport:
    running = 0
    breaks = []
    for mv in movements:
        if mv.previous_quantity != running or mv.new_quantity != mv.previous_quantity + mv.quantity:
            breaks.append(mv.id)
        running = mv.new_quantity
    return ReconciliationReport(
        medication_id=medication.id,
        quantity=medication.quantity,
        movement_total=sum(mv.quantity for mv in movements),
        movement_count=len(movements),
        chain_breaks=breaks,
    )


def reconcile_medication(*, pharmacy_id: int, medication_id: int) -> ReconciliationReport:
    """
    Check that the ledger quantity equals the sum of the movement deltas and
    that each movement's previous_quantity equals the preceding new_quantity.
    """
    medication = _ensure_medication(pharmacy_id, medication_id)
    return _reconcile(medication, get_movement_history(pharmacy_id=pharmacy_id, medication_id=medication_id))


def reconcile_pharmacy(*, pharmacy_id: int) -> list[ReconciliationReport]:
    medications = (
        db.session.query(Medication)
        .filter_by(pharmacy_id=pharmacy_id)
        .order_by(Medication.id.asc())
        .all()
    )
    movements_by_med: dict[int, list[InventoryMovement]] = {m.id: [] for m in medications}
    rows = (
        db.session.query(InventoryMovement)
        .filter_by(pharmacy_id=pharmacy_id)
        .order_by(InventoryMovement.occurred_at.asc(), InventoryMovement.id.asc())
        .all()
    )
    for mv in rows:
        movements_by_med.setdefault(mv.medication_id, []).append(mv)
    return [_reconcile(m, movements_by_med[m.id]) for m in medications]
