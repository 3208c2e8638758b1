from __future__ import annotations

import enum

from sqlalchemy import event

from ..exceptions import ImmutableRecordError, ValidationError
from ..extensions import db
from ..time_utils import to_utc_z, to_iso_date


MEDICATION_UNITS = ("tablet", "capsule", "bottle", "vial", "box", "ml", "mg", "g")


class MovementType(str, enum.Enum):
    """
    Closed set of quantity-changing events.

    PURCHASE is the only incoming kind; every other kind removes stock.
    """
    SALE = "sale"
    PURCHASE = "purchase"
    ADJUSTMENT = "adjustment"
    EXPIRED = "expired"
    DAMAGED = "damaged"

    @property
    def is_incoming(self) -> bool:
        return self is MovementType.PURCHASE

    def signed(self, quantity: int) -> int:
        """Signed delta for an unsigned quantity of this kind."""
        return quantity if self.is_incoming else -quantity

    @classmethod
    def parse(cls, value, *, field: str = "type") -> "MovementType":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            allowed = ", ".join(m.value for m in cls)
            raise ValidationError(f"{field} must be one of: {allowed}", field=field)


# Kinds accepted by the adjustment entry point (all stock-decreasing)
ADJUSTMENT_TYPES = frozenset({MovementType.ADJUSTMENT, MovementType.EXPIRED, MovementType.DAMAGED})


class Medication(db.Model):
    """
    Stock ledger row: current on-hand quantity of one medication.

    MULTI-TENANT: scoped to a pharmacy via pharmacy_id.

    quantity is the single source of truth for current stock and is only
    changed by the movement processor, inside an atomic scope, together with
    an InventoryMovement row. version_id is SQLAlchemy's optimistic
    concurrency column: an UPDATE based on a stale read matches zero rows and
    raises StaleDataError, which the atomic scope retries.

    The row tracks the latest batch only: a purchase overwrites supplier,
    batch_number, expiry_date and price_cents.
    """
    __tablename__ = "medications"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_medications_quantity_non_negative"),
        db.CheckConstraint("low_stock_threshold >= 0", name="ck_medications_threshold_non_negative"),
        db.Index("ix_medications_pharmacy_name", "pharmacy_id", "name"),
        db.Index("ix_medications_pharmacy_expiry", "pharmacy_id", "expiry_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    pharmacy_id = db.Column(db.Integer, db.ForeignKey("pharmacies.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(100), nullable=False)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    unit = db.Column(db.String(16), nullable=False)

    # Authoritative storage in cents (frontend may only format for display)
    price_cents = db.Column(db.Integer, nullable=False, default=0)

    expiry_date = db.Column(db.Date, nullable=False)
    batch_number = db.Column(db.String(64), nullable=False)
    supplier = db.Column(db.String(255), nullable=False)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=10)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    pharmacy = db.relationship("Pharmacy", backref=db.backref("medications", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Medication id={self.id} name={self.name!r} quantity={self.quantity} pharmacy_id={self.pharmacy_id}>"

    @property
    def is_low_stock(self) -> bool:
        return self.quantity <= self.low_stock_threshold

    def summary_dict(self) -> dict:
        """Short form embedded in movement/sale/purchase payloads."""
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "unit": self.unit,
            "batch_number": self.batch_number,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "pharmacy_id": self.pharmacy_id,
            "name": self.name,
            "category": self.category,
            "quantity": self.quantity,
            "unit": self.unit,
            "price_cents": self.price_cents,
            "expiry_date": to_iso_date(self.expiry_date),
            "batch_number": self.batch_number,
            "supplier": self.supplier,
            "low_stock_threshold": self.low_stock_threshold,
            "is_low_stock": self.is_low_stock,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryMovement(db.Model):
    """
    Movement log row. Append-only.

    Invariants:
    - new_quantity == previous_quantity + quantity (quantity is the signed delta)
    - written exactly once, in the same DB transaction as the ledger update
    - never updated or deleted (enforced by the mapper listeners below)
    - per medication, (occurred_at, id) gives the audit order
    """
    __tablename__ = "inventory_movements"
    __table_args__ = (
        db.CheckConstraint("new_quantity = previous_quantity + quantity", name="ck_invmov_quantity_chain"),
        db.CheckConstraint("new_quantity >= 0", name="ck_invmov_new_quantity_non_negative"),
        db.Index("ix_invmov_pharmacy_medication_occurred", "pharmacy_id", "medication_id", "occurred_at"),
        db.Index("ix_invmov_pharmacy_type_occurred", "pharmacy_id", "type", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    pharmacy_id = db.Column(db.Integer, db.ForeignKey("pharmacies.id"), nullable=False, index=True)
    medication_id = db.Column(db.Integer, db.ForeignKey("medications.id"), nullable=False, index=True)

    type = db.Column(
        db.Enum(
            MovementType,
            name="movement_type",
            native_enum=False,
            length=16,
            values_callable=lambda kinds: [k.value for k in kinds],
        ),
        nullable=False,
        index=True,
    )

    # Signed delta: positive for purchases, negative for everything else
    quantity = db.Column(db.Integer, nullable=False)
    previous_quantity = db.Column(db.Integer, nullable=False)
    new_quantity = db.Column(db.Integer, nullable=False)

    unit_price_cents = db.Column(db.Integer, nullable=True)
    total_amount_cents = db.Column(db.Integer, nullable=True)

    # Originating record, e.g. "sale:12", "purchase:7", "adjustment:3"
    reference = db.Column(db.String(64), nullable=False, index=True)

    notes = db.Column(db.Text, nullable=True)
    batch_number = db.Column(db.String(64), nullable=True)
    performed_by = db.Column(db.String(64), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    medication = db.relationship("Medication")

    def __repr__(self) -> str:
        return (
            f"<InventoryMovement id={self.id} type={self.type.value if self.type else None} "
            f"medication_id={self.medication_id} {self.previous_quantity}->{self.new_quantity}>"
        )

    def to_dict(self, include_medication: bool = False) -> dict:
        data = {
            "id": self.id,
            "pharmacy_id": self.pharmacy_id,
            "medication_id": self.medication_id,
            "type": self.type.value,
            "quantity": self.quantity,
            "previous_quantity": self.previous_quantity,
            "new_quantity": self.new_quantity,
            "unit_price_cents": self.unit_price_cents,
            "total_amount_cents": self.total_amount_cents,
            "reference": self.reference,
            "notes": self.notes,
            "batch_number": self.batch_number,
            "performed_by": self.performed_by,
            "occurred_at": to_utc_z(self.occurred_at),
            "created_at": to_utc_z(self.created_at),
        }
        if include_medication:
            data["medication"] = self.medication.summary_dict() if self.medication else None
        return data


@event.listens_for(InventoryMovement, "before_update")
def prevent_movement_update(mapper, connection, target):
    raise ImmutableRecordError(f"Inventory movements are immutable - cannot modify movement {target.id}")


@event.listens_for(InventoryMovement, "before_delete")
def prevent_movement_delete(mapper, connection, target):
    raise ImmutableRecordError(f"Inventory movements are append-only - cannot delete movement {target.id}")
