from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, to_iso_date
from .inventory import MovementType


class Sale(db.Model):
    """
    Originating record of a SALE movement.

    Created in the same atomic scope as the ledger decrement and the movement
    row; the movement's reference is "sale:<id>".
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sales_quantity_positive"),
        db.Index("ix_sales_pharmacy_occurred", "pharmacy_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    pharmacy_id = db.Column(db.Integer, db.ForeignKey("pharmacies.id"), nullable=False, index=True)
    medication_id = db.Column(db.Integer, db.ForeignKey("medications.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    total_amount_cents = db.Column(db.Integer, nullable=False)
    customer_name = db.Column(db.String(255), nullable=True)

    performed_by = db.Column(db.String(64), nullable=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    medication = db.relationship("Medication")

    @property
    def reference(self) -> str:
        return f"sale:{self.id}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "pharmacy_id": self.pharmacy_id,
            "medication_id": self.medication_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "total_amount_cents": self.total_amount_cents,
            "customer_name": self.customer_name,
            "performed_by": self.performed_by,
            "occurred_at": to_utc_z(self.occurred_at),
            "created_at": to_utc_z(self.created_at),
            "medication": self.medication.summary_dict() if self.medication else None,
        }


class Purchase(db.Model):
    """Originating record of a PURCHASE movement (stock intake from a supplier)."""
    __tablename__ = "purchases"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_purchases_quantity_positive"),
        db.CheckConstraint("unit_price_cents >= 0", name="ck_purchases_price_non_negative"),
        db.Index("ix_purchases_pharmacy_occurred", "pharmacy_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    pharmacy_id = db.Column(db.Integer, db.ForeignKey("pharmacies.id"), nullable=False, index=True)
    medication_id = db.Column(db.Integer, db.ForeignKey("medications.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    total_amount_cents = db.Column(db.Integer, nullable=False)
    supplier = db.Column(db.String(255), nullable=False)
    batch_number = db.Column(db.String(64), nullable=False)
    expiry_date = db.Column(db.Date, nullable=False)

    performed_by = db.Column(db.String(64), nullable=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    medication = db.relationship("Medication")

    @property
    def reference(self) -> str:
        return f"purchase:{self.id}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "pharmacy_id": self.pharmacy_id,
            "medication_id": self.medication_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "total_amount_cents": self.total_amount_cents,
            "supplier": self.supplier,
            "batch_number": self.batch_number,
            "expiry_date": to_iso_date(self.expiry_date),
            "performed_by": self.performed_by,
            "occurred_at": to_utc_z(self.occurred_at),
            "created_at": to_utc_z(self.created_at),
            "medication": self.medication.summary_dict() if self.medication else None,
        }


class StockAdjustment(db.Model):
    """
    Originating record of an ADJUSTMENT / EXPIRED / DAMAGED write-off.

    All three kinds remove stock; quantity here is the unsigned magnitude.
    """
    __tablename__ = "stock_adjustments"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_stock_adjustments_quantity_positive"),
        db.Index("ix_stock_adjustments_pharmacy_occurred", "pharmacy_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    pharmacy_id = db.Column(db.Integer, db.ForeignKey("pharmacies.id"), nullable=False, index=True)
    medication_id = db.Column(db.Integer, db.ForeignKey("medications.id"), nullable=False, index=True)

    type = db.Column(
        db.Enum(
            MovementType,
            name="stock_adjustment_type",
            native_enum=False,
            length=16,
            values_callable=lambda kinds: [k.value for k in kinds],
        ),
        nullable=False,
        index=True,
    )
    quantity = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(255), nullable=False)
    notes = db.Column(db.String(255), nullable=True)

    performed_by = db.Column(db.String(64), nullable=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    medication = db.relationship("Medication")

    @property
    def reference(self) -> str:
        return f"adjustment:{self.id}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "pharmacy_id": self.pharmacy_id,
            "medication_id": self.medication_id,
            "type": self.type.value,
            "quantity": self.quantity,
            "reason": self.reason,
            "notes": self.notes,
            "performed_by": self.performed_by,
            "occurred_at": to_utc_z(self.occurred_at),
            "created_at": to_utc_z(self.created_at),
            "medication": self.medication.summary_dict() if self.medication else None,
        }
