# Overview: Stock ledger access; medication lookup, locked reads, ledger deltas, and medication CRUD.

from __future__ import annotations

import logging

from flask import current_app
from sqlalchemy import or_

from ..exceptions import NotFoundError, ValidationError
from ..extensions import db
from ..models import Medication, MovementType
from ..pagination import Page, paginate
from ..time_utils import parse_iso_date, today
from ..validation import check_future_expiry, enforce_rules_medication
from .concurrency import begin_write_scope, lock_for_update, run_atomic
from .movement_log_service import append_movement, count_movements

logger = logging.getLogger(__name__)

"""
Stock Ledger Invariants (authoritative)

- Medication.quantity is the only record of current stock; it is >= 0.
- quantity changes only through apply_quantity_delta(), called by the
  movement processor inside run_atomic(), followed by a movement append.
- update_medication() edits descriptive fields only and never quantity.
- A medication with movement history cannot be deleted.
"""

# Fields a manual edit may change; quantity is deliberately absent
EDITABLE_FIELDS = frozenset({
    "name",
    "category",
    "unit",
    "price_cents",
    "expiry_date",
    "batch_number",
    "supplier",
    "low_stock_threshold",
})

OPENING_STOCK_REFERENCE = "opening-stock"


def get_medication(pharmacy_id: int, medication_id: int, *, lock: bool = False) -> Medication:
    """
    Load a medication owned by pharmacy_id.

    A medication that exists under another pharmacy is reported exactly like
    a missing one.
    """
    query = db.session.query(Medication).filter_by(id=medication_id, pharmacy_id=pharmacy_id)
    if lock:
        query = lock_for_update(query)
    medication = query.first()
    if medication is None:
        raise NotFoundError("Medication not found")
    return medication


def apply_quantity_delta(medication: Medication, delta: int) -> tuple[int, int]:
    """
    Change on-hand quantity and flush so the versioned UPDATE runs now.

    Returns (previous_quantity, new_quantity). Must be called inside an
    atomic scope; a stale read surfaces here as StaleDataError.
    """
    previous = medication.quantity
    new = previous + delta
    if new < 0:
        raise ValueError(f"ledger quantity for medication {medication.id} would become {new}")
    medication.quantity = new
    db.session.flush()
    return previous, new


def list_medications(
    *,
    pharmacy_id: int,
    search: str | None = None,
    category: str | None = None,
    page: int | None = None,
    page_size: int | None = None,
) -> Page:
    q = db.session.query(Medication).filter(Medication.pharmacy_id == pharmacy_id)

    search = (search or "").strip()
    if search:
        pattern = f"%{search}%"
        q = q.filter(
            or_(
                Medication.name.ilike(pattern),
                Medication.batch_number.ilike(pattern),
                Medication.supplier.ilike(pattern),
            )
        )

    category = (category or "").strip()
    if category:
        q = q.filter(Medication.category == category)

    q = q.order_by(Medication.updated_at.desc(), Medication.id.desc())
    return paginate(q, page, page_size)


def create_medication(
    *,
    pharmacy_id: int,
    name: str,
    category: str,
    unit: str,
    expiry_date,
    batch_number: str,
    supplier: str,
    quantity: int = 0,
    price_cents: int = 0,
    low_stock_threshold: int | None = None,
    performed_by: str | None = None,
) -> Medication:
    """
    Manual add of a medication.

    Opening stock (quantity > 0) is written as a purchase movement in the
    same transaction, so quantity == sum(movement deltas) from the start.
    """
    if low_stock_threshold is None:
        low_stock_threshold = current_app.config.get("DEFAULT_LOW_STOCK_THRESHOLD", 10)

    fields = {
        "name": (name or "").strip(),
        "category": (category or "").strip(),
        "unit": (unit or "").strip().lower(),
        "batch_number": (batch_number or "").strip(),
        "supplier": (supplier or "").strip(),
        "price_cents": price_cents,
        "low_stock_threshold": low_stock_threshold,
        "quantity": quantity,
    }
    for key in ("name", "category", "unit", "batch_number", "supplier"):
        if not fields[key]:
            raise ValidationError(f"{key} is required", field=key)
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError("quantity must be an integer", field="quantity")
    enforce_rules_medication(fields)

    # Opening stock follows the purchase rule; an empty record may carry any date
    if quantity > 0:
        expiry = check_future_expiry(expiry_date, today())
    else:
        expiry = _parse_expiry(expiry_date)

    def _op():
        begin_write_scope()
        medication = Medication(
            pharmacy_id=pharmacy_id,
            name=fields["name"],
            category=fields["category"],
            unit=fields["unit"],
            price_cents=price_cents,
            expiry_date=expiry,
            batch_number=fields["batch_number"],
            supplier=fields["supplier"],
            low_stock_threshold=low_stock_threshold,
            quantity=0,
        )
        db.session.add(medication)
        db.session.flush()

        if quantity > 0:
            previous, _ = apply_quantity_delta(medication, quantity)
            append_movement(
                medication=medication,
                movement_type=MovementType.PURCHASE,
                delta=quantity,
                previous_quantity=previous,
                reference=OPENING_STOCK_REFERENCE,
                unit_price_cents=price_cents,
                total_amount_cents=quantity * price_cents,
                notes="Opening stock",
                batch_number=medication.batch_number,
                performed_by=performed_by,
            )
        return medication

    medication = run_atomic(_op, label="create_medication")
    logger.info("Created medication %s (pharmacy %s) with opening stock %d", medication.id, pharmacy_id, quantity)
    return medication


def _parse_expiry(value):
    try:
        expiry = parse_iso_date(value)
    except (TypeError, ValueError):
        raise ValidationError("expiry_date must be an ISO-8601 date", field="expiry_date")
    if expiry is None:
        raise ValidationError("expiry_date is required", field="expiry_date")
    return expiry


def reject_quantity_edit(patch) -> None:
    if isinstance(patch, dict) and "quantity" in patch:
        raise ValidationError(
            "quantity cannot be edited directly; record a sale, purchase, or adjustment instead",
            field="quantity",
        )


def update_medication(*, pharmacy_id: int, medication_id: int, patch: dict) -> Medication:
    """Edit descriptive fields. Quantity is rejected: stock changes only through movements."""
    reject_quantity_edit(patch)
    unknown = sorted(set(patch) - EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Field not allowed: {unknown[0]}", field=unknown[0])

    changes = dict(patch)
    for key in ("name", "category", "batch_number", "supplier"):
        if key in changes:
            changes[key] = (changes[key] or "").strip()
            if not changes[key]:
                raise ValidationError(f"{key} cannot be blank", field=key)
    if "unit" in changes:
        changes["unit"] = (changes["unit"] or "").strip().lower()
    if "expiry_date" in changes:
        changes["expiry_date"] = _parse_expiry(changes["expiry_date"])
    enforce_rules_medication(changes)

    def _op():
        begin_write_scope()
        medication = get_medication(pharmacy_id, medication_id, lock=True)
        for key, value in changes.items():
            setattr(medication, key, value)
        db.session.flush()
        return medication

    return run_atomic(_op, label="update_medication")


def delete_medication(*, pharmacy_id: int, medication_id: int) -> None:
    """
    Administrative delete (not a movement).

    Refused once the medication has movement history: movement rows are
    permanent and must keep resolving to their medication.
    """
    def _op():
        begin_write_scope()
        medication = get_medication(pharmacy_id, medication_id, lock=True)
        history = count_movements(pharmacy_id=pharmacy_id, medication_id=medication_id)
        if history:
            raise ValidationError(
                f"Medication has {history} recorded movement(s) and cannot be deleted",
                field="medication_id",
            )
        db.session.delete(medication)
        db.session.flush()

    run_atomic(_op, label="delete_medication")
    logger.info("Deleted medication %s (pharmacy %s)", medication_id, pharmacy_id)
