"""Initial schema: pharmacies, stock ledger, movement log, originating records

Revision ID: 20261017_initial_schema
Revises:
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261017_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


MOVEMENT_TYPES = ("sale", "purchase", "adjustment", "expired", "damaged")


def _timestamps():
    return [
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
    ]


def upgrade():
    op.create_table(
        "pharmacies",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("license_number", sa.String(64), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("pharmacies", schema=None) as batch_op:
        batch_op.create_index("ix_pharmacies_license_number", ["license_number"], unique=True)
        batch_op.create_index("ix_pharmacies_is_active", ["is_active"], unique=False)

    op.create_table(
        "medications",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("pharmacy_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("category", sa.String(100), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("unit", sa.String(16), nullable=False),
        sa.Column("price_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("expiry_date", sa.Date(), nullable=False),
        sa.Column("batch_number", sa.String(64), nullable=False),
        sa.Column("supplier", sa.String(255), nullable=False),
        sa.Column("low_stock_threshold", sa.Integer(), nullable=False, server_default=sa.text("10")),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.CheckConstraint("quantity >= 0", name="ck_medications_quantity_non_negative"),
        sa.CheckConstraint("low_stock_threshold >= 0", name="ck_medications_threshold_non_negative"),
        sa.ForeignKeyConstraint(["pharmacy_id"], ["pharmacies.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("medications", schema=None) as batch_op:
        batch_op.create_index("ix_medications_pharmacy_id", ["pharmacy_id"], unique=False)
        batch_op.create_index("ix_medications_pharmacy_name", ["pharmacy_id", "name"], unique=False)
        batch_op.create_index("ix_medications_pharmacy_expiry", ["pharmacy_id", "expiry_date"], unique=False)

    op.create_table(
        "inventory_movements",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("pharmacy_id", sa.Integer(), nullable=False),
        sa.Column("medication_id", sa.Integer(), nullable=False),
        sa.Column("type", sa.Enum(*MOVEMENT_TYPES, name="movement_type", native_enum=False, length=16), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("previous_quantity", sa.Integer(), nullable=False),
        sa.Column("new_quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price_cents", sa.Integer(), nullable=True),
        sa.Column("total_amount_cents", sa.Integer(), nullable=True),
        sa.Column("reference", sa.String(64), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("batch_number", sa.String(64), nullable=True),
        sa.Column("performed_by", sa.String(64), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("new_quantity = previous_quantity + quantity", name="ck_invmov_quantity_chain"),
        sa.CheckConstraint("new_quantity >= 0", name="ck_invmov_new_quantity_non_negative"),
        sa.ForeignKeyConstraint(["pharmacy_id"], ["pharmacies.id"]),
        sa.ForeignKeyConstraint(["medication_id"], ["medications.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("inventory_movements", schema=None) as batch_op:
        batch_op.create_index("ix_inventory_movements_pharmacy_id", ["pharmacy_id"], unique=False)
        batch_op.create_index("ix_inventory_movements_medication_id", ["medication_id"], unique=False)
        batch_op.create_index("ix_inventory_movements_type", ["type"], unique=False)
        batch_op.create_index("ix_inventory_movements_reference", ["reference"], unique=False)
        batch_op.create_index("ix_inventory_movements_occurred_at", ["occurred_at"], unique=False)
        batch_op.create_index(
            "ix_invmov_pharmacy_medication_occurred", ["pharmacy_id", "medication_id", "occurred_at"], unique=False
        )
        batch_op.create_index("ix_invmov_pharmacy_type_occurred", ["pharmacy_id", "type", "occurred_at"], unique=False)

    op.create_table(
        "sales",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("pharmacy_id", sa.Integer(), nullable=False),
        sa.Column("medication_id", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price_cents", sa.Integer(), nullable=False),
        sa.Column("total_amount_cents", sa.Integer(), nullable=False),
        sa.Column("customer_name", sa.String(255), nullable=True),
        sa.Column("performed_by", sa.String(64), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("quantity > 0", name="ck_sales_quantity_positive"),
        sa.ForeignKeyConstraint(["pharmacy_id"], ["pharmacies.id"]),
        sa.ForeignKeyConstraint(["medication_id"], ["medications.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("sales", schema=None) as batch_op:
        batch_op.create_index("ix_sales_pharmacy_id", ["pharmacy_id"], unique=False)
        batch_op.create_index("ix_sales_medication_id", ["medication_id"], unique=False)
        batch_op.create_index("ix_sales_pharmacy_occurred", ["pharmacy_id", "occurred_at"], unique=False)

    op.create_table(
        "purchases",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("pharmacy_id", sa.Integer(), nullable=False),
        sa.Column("medication_id", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price_cents", sa.Integer(), nullable=False),
        sa.Column("total_amount_cents", sa.Integer(), nullable=False),
        sa.Column("supplier", sa.String(255), nullable=False),
        sa.Column("batch_number", sa.String(64), nullable=False),
        sa.Column("expiry_date", sa.Date(), nullable=False),
        sa.Column("performed_by", sa.String(64), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("quantity > 0", name="ck_purchases_quantity_positive"),
        sa.CheckConstraint("unit_price_cents >= 0", name="ck_purchases_price_non_negative"),
        sa.ForeignKeyConstraint(["pharmacy_id"], ["pharmacies.id"]),
        sa.ForeignKeyConstraint(["medication_id"], ["medications.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("purchases", schema=None) as batch_op:
        batch_op.create_index("ix_purchases_pharmacy_id", ["pharmacy_id"], unique=False)
        batch_op.create_index("ix_purchases_medication_id", ["medication_id"], unique=False)
        batch_op.create_index("ix_purchases_pharmacy_occurred", ["pharmacy_id", "occurred_at"], unique=False)

    op.create_table(
        "stock_adjustments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("pharmacy_id", sa.Integer(), nullable=False),
        sa.Column("medication_id", sa.Integer(), nullable=False),
        sa.Column("type", sa.Enum(*MOVEMENT_TYPES, name="stock_adjustment_type", native_enum=False, length=16), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(255), nullable=False),
        sa.Column("notes", sa.String(255), nullable=True),
        sa.Column("performed_by", sa.String(64), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("quantity > 0", name="ck_stock_adjustments_quantity_positive"),
        sa.ForeignKeyConstraint(["pharmacy_id"], ["pharmacies.id"]),
        sa.ForeignKeyConstraint(["medication_id"], ["medications.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("stock_adjustments", schema=None) as batch_op:
        batch_op.create_index("ix_stock_adjustments_pharmacy_id", ["pharmacy_id"], unique=False)
        batch_op.create_index("ix_stock_adjustments_medication_id", ["medication_id"], unique=False)
        batch_op.create_index("ix_stock_adjustments_type", ["type"], unique=False)
        batch_op.create_index("ix_stock_adjustments_pharmacy_occurred", ["pharmacy_id", "occurred_at"], unique=False)


def downgrade():
    op.drop_table("stock_adjustments")
    op.drop_table("purchases")
    op.drop_table("sales")
    op.drop_table("inventory_movements")
    op.drop_table("medications")
    op.drop_table("pharmacies")
