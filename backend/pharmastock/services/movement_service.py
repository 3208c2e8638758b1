# Overview: Movement processor; validates and atomically applies sales, purchases, and stock write-offs.

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date

from ..exceptions import InsufficientStockError
from ..extensions import db
from ..models import (
    InventoryMovement,
    Medication,
    MovementType,
    Purchase,
    Sale,
    StockAdjustment,
)
from ..pagination import Page, paginate
from ..time_utils import today, utcnow
from ..validation import (
    check_adjustment_type,
    check_future_expiry,
    check_optional_text,
    check_price_cents,
    check_quantity,
    check_required_text,
)
from .concurrency import begin_write_scope, run_atomic
from .medication_service import apply_quantity_delta, get_medication
from .movement_log_service import append_movement

logger = logging.getLogger(__name__)

"""
Movement Processor Invariants (authoritative)

Every entry point follows the same skeleton inside one run_atomic() scope:
  1. load the medication for this pharmacy (locked, version-checked)
  2. check stock for outgoing kinds: on_hand - quantity >= 0
  3. write the originating record (Sale / Purchase / StockAdjustment)
  4. apply the signed delta to the ledger (versioned UPDATE)
  5. append exactly one InventoryMovement with before/after snapshots
Failure at any step rolls back all of it. Field validation that needs no
database state runs before the scope opens.

Quantities in requests are unsigned magnitudes; MovementType.signed() gives
the delta (+ for PURCHASE, - for every other kind). There is no positive
adjustment path.
"""


@dataclass(frozen=True)
class MovementResult:
    """Outcome of one applied movement: before/after quantities plus the rows written."""
    movement: InventoryMovement
    record: Sale | Purchase | StockAdjustment
    previous_quantity: int
    new_quantity: int

    @property
    def movement_id(self) -> int:
        return self.movement.id

    def to_dict(self) -> dict:
        return {
            "movement_id": self.movement.id,
            "previous_quantity": self.previous_quantity,
            "new_quantity": self.new_quantity,
            "movement": self.movement.to_dict(include_medication=True),
        }


def _sale_notes(customer_name: str | None) -> str:
    return f"Sale to customer: {customer_name}" if customer_name else "Sale transaction"


def _purchase_notes(supplier: str) -> str:
    return f"Purchase from supplier: {supplier}"


def _adjustment_notes(reason: str, notes: str | None) -> str:
    return f"{reason} - {notes}" if notes else reason


def _apply_movement(
    *,
    pharmacy_id: int,
    medication_id: int,
    movement_type: MovementType,
    quantity: int,
    build_record,
    describe,
    update_ledger=None,
    performed_by: str | None = None,
) -> MovementResult:
    """
    Shared skeleton for all movement kinds.

    build_record(medication, occurred_at) returns the unsaved originating record.
    describe(medication) returns the movement notes.
    update_ledger(medication), if given, changes descriptive ledger fields
    before the quantity write (purchases replace the batch details).
    """
    label = f"record_{movement_type.value}"

    def _op():
        begin_write_scope()
        medication = get_medication(pharmacy_id, medication_id, lock=True)

        delta = movement_type.signed(quantity)
        if medication.quantity + delta < 0:
            raise InsufficientStockError(
                available=medication.quantity,
                requested=quantity,
                unit=medication.unit,
            )

        occurred_at = utcnow()
        record = build_record(medication, occurred_at)
        db.session.add(record)
        db.session.flush()

        if update_ledger is not None:
            update_ledger(medication)
        previous, new = apply_quantity_delta(medication, delta)

        movement = append_movement(
            medication=medication,
            movement_type=movement_type,
            delta=delta,
            previous_quantity=previous,
            reference=record.reference,
            unit_price_cents=getattr(record, "unit_price_cents", None),
            total_amount_cents=getattr(record, "total_amount_cents", None),
            notes=describe(medication),
            batch_number=medication.batch_number,
            performed_by=performed_by,
            occurred_at=occurred_at,
        )
        return MovementResult(
            movement=movement,
            record=record,
            previous_quantity=previous,
            new_quantity=new,
        )

    try:
        result = run_atomic(_op, label=label)
    except InsufficientStockError as exc:
        logger.warning(
            "%s rejected for medication %s (pharmacy %s): requested %d, available %d",
            label, medication_id, pharmacy_id, exc.requested, exc.available,
        )
        raise

    logger.info(
        "%s applied to medication %s (pharmacy %s): %d -> %d (movement %s)",
        label, medication_id, pharmacy_id, result.previous_quantity, result.new_quantity, result.movement_id,
    )
    return result


def record_sale(
    *,
    pharmacy_id: int,
    medication_id: int,
    quantity: int,
    unit_price_cents: int | None = None,
    customer_name: str | None = None,
    performed_by: str | None = None,
) -> MovementResult:
    """
    Sell stock: ledger quantity -= quantity.

    unit_price_cents defaults to the medication's current price. Raises
    InsufficientStockError (carrying the available quantity) on oversell.
    """
    quantity = check_quantity(quantity)
    if unit_price_cents is not None:
        check_price_cents(unit_price_cents)
    customer_name = check_optional_text(customer_name, "customer_name")

    def build_record(medication: Medication, occurred_at):
        price = medication.price_cents if unit_price_cents is None else unit_price_cents
        return Sale(
            pharmacy_id=pharmacy_id,
            medication_id=medication.id,
            quantity=quantity,
            unit_price_cents=price,
            total_amount_cents=quantity * price,
            customer_name=customer_name,
            performed_by=performed_by,
            occurred_at=occurred_at,
        )

    return _apply_movement(
        pharmacy_id=pharmacy_id,
        medication_id=medication_id,
        movement_type=MovementType.SALE,
        quantity=quantity,
        build_record=build_record,
        describe=lambda medication: _sale_notes(customer_name),
        performed_by=performed_by,
    )


def record_purchase(
    *,
    pharmacy_id: int,
    medication_id: int,
    quantity: int,
    unit_price_cents: int,
    supplier: str,
    batch_number: str,
    expiry_date: date | str,
    performed_by: str | None = None,
) -> MovementResult:
    """
    Receive stock: ledger quantity += quantity.

    The medication row keeps only the latest batch, so supplier, batch
    number, expiry date and price are replaced by this purchase's values.
    The expiry date must be after today.
    """
    quantity = check_quantity(quantity)
    unit_price_cents = check_price_cents(unit_price_cents)
    expiry = check_future_expiry(expiry_date, today())
    supplier = check_required_text(supplier, "supplier")
    batch_number = check_required_text(batch_number, "batch_number", max_length=64)

    def build_record(medication: Medication, occurred_at):
        return Purchase(
            pharmacy_id=pharmacy_id,
            medication_id=medication.id,
            quantity=quantity,
            unit_price_cents=unit_price_cents,
            total_amount_cents=quantity * unit_price_cents,
            supplier=supplier,
            batch_number=batch_number,
            expiry_date=expiry,
            performed_by=performed_by,
            occurred_at=occurred_at,
        )

    def update_ledger(medication: Medication):
        medication.supplier = supplier
        medication.batch_number = batch_number
        medication.expiry_date = expiry
        medication.price_cents = unit_price_cents

    return _apply_movement(
        pharmacy_id=pharmacy_id,
        medication_id=medication_id,
        movement_type=MovementType.PURCHASE,
        quantity=quantity,
        build_record=build_record,
        describe=lambda medication: _purchase_notes(supplier),
        update_ledger=update_ledger,
        performed_by=performed_by,
    )


def record_adjustment(
    *,
    pharmacy_id: int,
    medication_id: int,
    kind: MovementType | str,
    quantity: int,
    reason: str,
    notes: str | None = None,
    performed_by: str | None = None,
) -> MovementResult:
    """
    Write stock off as ADJUSTMENT, EXPIRED or DAMAGED: ledger quantity -= quantity.

    Cannot remove more than is on hand.
    """
    kind = check_adjustment_type(kind)
    quantity = check_quantity(quantity)
    reason = check_required_text(reason, "reason")
    notes = check_optional_text(notes, "notes")

    def build_record(medication: Medication, occurred_at):
        return StockAdjustment(
            pharmacy_id=pharmacy_id,
            medication_id=medication.id,
            type=kind,
            quantity=quantity,
            reason=reason,
            notes=notes,
            performed_by=performed_by,
            occurred_at=occurred_at,
        )

    return _apply_movement(
        pharmacy_id=pharmacy_id,
        medication_id=medication_id,
        movement_type=kind,
        quantity=quantity,
        build_record=build_record,
        describe=lambda medication: _adjustment_notes(reason, notes),
        performed_by=performed_by,
    )


# =============================================================================
# Originating-record listings
# =============================================================================

def list_sales(*, pharmacy_id: int, page: int | None = None, page_size: int | None = None) -> Page:
    q = (
        db.session.query(Sale)
        .filter(Sale.pharmacy_id == pharmacy_id)
        .order_by(Sale.occurred_at.desc(), Sale.id.desc())
    )
    return paginate(q, page, page_size)


def list_purchases(*, pharmacy_id: int, page: int | None = None, page_size: int | None = None) -> Page:
    q = (
        db.session.query(Purchase)
        .filter(Purchase.pharmacy_id == pharmacy_id)
        .order_by(Purchase.occurred_at.desc(), Purchase.id.desc())
    )
    return paginate(q, page, page_size)


def list_adjustments(
    *,
    pharmacy_id: int,
    kind: MovementType | str | None = None,
    page: int | None = None,
    page_size: int | None = None,
) -> Page:
    q = db.session.query(StockAdjustment).filter(StockAdjustment.pharmacy_id == pharmacy_id)
    if kind is not None:
        q = q.filter(StockAdjustment.type == check_adjustment_type(kind))
    q = q.order_by(StockAdjustment.occurred_at.desc(), StockAdjustment.id.desc())
    return paginate(q, page, page_size)
