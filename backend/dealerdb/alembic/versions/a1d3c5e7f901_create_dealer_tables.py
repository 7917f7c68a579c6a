"""Create dealer portal tables.

Revision ID: a1d3c5e7f901
Revises:
Create Date: 2024-04-01 09:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "a1d3c5e7f901"
down_revision = None
branch_labels = None
depends_on = None


DOCUMENT_TYPES = ("REGISTERED", "NON_REGISTERED", "JOB_CARD", "SALES_RETURN", "PURCHASE_RETURN")
STOCK_SOURCES = ("PURCHASE", "INVOICE_RELEASE", "SALES_RETURN", "PURCHASE_RETURN_REVERSAL", "MANUAL")


def _document_type() -> sa.Enum:
    return sa.Enum(*DOCUMENT_TYPES, name="document_type_enum", native_enum=False)


def _unit_columns(*, with_origin: bool = True):
    columns = [
        sa.Column("chassis_no", sa.String(length=64), nullable=False),
        sa.Column("engine_no", sa.String(length=64), nullable=False),
        sa.Column("model_name", sa.String(length=255), nullable=False),
        sa.Column("colour", sa.String(length=64), nullable=False),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("hsn", sa.String(length=16), nullable=True),
        sa.Column("gst", sa.Numeric(5, 2), nullable=True),
        sa.Column("category", sa.String(length=64), nullable=True),
    ]
    if with_origin:
        columns += [
            sa.Column("purchase_date", sa.Date(), nullable=True),
            sa.Column("purchase_id", sa.Integer(), nullable=True),
        ]
    return columns


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("is_admin", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_seen_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("ix_users_email", "users", ["email"])
    op.create_index("idx_users_active", "users", ["is_active"])

    op.create_table(
        "audit_events",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("entity_type", sa.String(length=64), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=False),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("before", sa.JSON(), nullable=True),
        sa.Column("after", sa.JSON(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
    )
    op.create_index("ix_audit_events_user_entity", "audit_events", ["user_id", "entity_type", "entity_id"])
    op.create_index("ix_audit_events_user_action", "audit_events", ["user_id", "action"])
    op.create_index("ix_audit_events_user_time_desc", "audit_events", ["user_id", sa.text("occurred_at DESC")])

    op.create_table(
        "dealer_settings",
        sa.Column(
            "user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
        ),
        sa.Column("company_name", sa.String(length=255), nullable=False),
        sa.Column("gst_no", sa.String(length=32), nullable=True),
        sa.Column("pan", sa.String(length=16), nullable=True),
        sa.Column("mobile", sa.String(length=32), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("state", sa.String(length=64), nullable=True),
        sa.Column("district", sa.String(length=64), nullable=True),
        sa.Column("pin_code", sa.String(length=16), nullable=True),
        sa.Column("bank_details", sa.JSON(), nullable=True),
        sa.Column("terms_and_conditions", sa.Text(), nullable=True),
        sa.Column("registered_invoice_prefix", sa.String(length=16), nullable=False),
        sa.Column("non_registered_invoice_prefix", sa.String(length=16), nullable=False),
        sa.Column("job_card_prefix", sa.String(length=16), nullable=False),
        sa.Column("sales_return_prefix", sa.String(length=16), nullable=False),
        sa.Column("purchase_return_prefix", sa.String(length=16), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "invoice_counters",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("financial_year", sa.String(length=5), nullable=False),
        sa.Column("document_type", _document_type(), nullable=False),
        sa.Column("last_sequence", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("user_id", "financial_year", "document_type", name="uq_invoice_counter_scope"),
    )
    op.create_index("ix_invoice_counters_user_fy", "invoice_counters", ["user_id", "financial_year"])

    op.create_table(
        "customers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("customer_name", sa.String(length=255), nullable=False),
        sa.Column("guardian_name", sa.String(length=255), nullable=True),
        sa.Column("mobile1", sa.String(length=32), nullable=True),
        sa.Column("mobile2", sa.String(length=32), nullable=True),
        sa.Column("gst", sa.String(length=32), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("state", sa.String(length=64), nullable=True),
        sa.Column("district", sa.String(length=64), nullable=True),
        sa.Column("pincode", sa.String(length=16), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_customers_user_name", "customers", ["user_id", "customer_name"])

    op.create_table(
        "stock_units",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        *_unit_columns(),
        sa.Column(
            "source",
            sa.Enum(*STOCK_SOURCES, name="stock_source_enum", native_enum=False),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("user_id", "chassis_no", name="uq_stock_units_chassis"),
        sa.UniqueConstraint("user_id", "engine_no", name="uq_stock_units_engine"),
    )
    op.create_index("ix_stock_units_user_model", "stock_units", ["user_id", "model_name", "colour"])
    op.create_index("ix_stock_units_purchase_id", "stock_units", ["purchase_id"])

    op.create_table(
        "purchases",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("serial_no", sa.String(length=64), nullable=True),
        sa.Column("invoice_no", sa.String(length=64), nullable=False),
        sa.Column("invoice_date", sa.Date(), nullable=False),
        sa.Column("party_name", sa.String(length=255), nullable=False),
        sa.Column("total_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("idempotency_key", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("user_id", "idempotency_key", name="uq_purchases_idempotency"),
    )
    op.create_index("ix_purchases_user_date", "purchases", ["user_id", "invoice_date"])

    op.create_table(
        "purchase_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "purchase_id", sa.Integer(), sa.ForeignKey("purchases.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        *_unit_columns(with_origin=False),
    )
    op.create_index("ix_purchase_items_user_chassis", "purchase_items", ["user_id", "chassis_no"])
    op.create_index("ix_purchase_items_purchase_id", "purchase_items", ["purchase_id"])

    op.create_table(
        "purchase_returns",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("return_invoice_no", sa.String(length=64), nullable=False),
        sa.Column("return_date", sa.Date(), nullable=False),
        sa.Column(
            "purchase_id", sa.Integer(), sa.ForeignKey("purchases.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column("party_name", sa.String(length=255), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("total_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("idempotency_key", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("user_id", "return_invoice_no", name="uq_purchase_returns_number"),
        sa.UniqueConstraint("user_id", "idempotency_key", name="uq_purchase_returns_idempotency"),
    )

    op.create_table(
        "purchase_return_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "purchase_return_id",
            sa.Integer(),
            sa.ForeignKey("purchase_returns.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        *_unit_columns(),
    )
    op.create_index(
        "ix_purchase_return_items_user_chassis", "purchase_return_items", ["user_id", "chassis_no"]
    )

    op.create_table(
        "vehicle_invoices",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("invoice_no", sa.String(length=64), nullable=False),
        sa.Column("document_type", _document_type(), nullable=False),
        sa.Column("financial_year", sa.String(length=5), nullable=False),
        sa.Column("invoice_date", sa.Date(), nullable=False),
        sa.Column(
            "customer_id", sa.Integer(), sa.ForeignKey("customers.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column("customer_name", sa.String(length=255), nullable=False),
        sa.Column("guardian_name", sa.String(length=255), nullable=True),
        sa.Column("mobile", sa.String(length=32), nullable=True),
        sa.Column("customer_gst", sa.String(length=32), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("state", sa.String(length=64), nullable=True),
        sa.Column("district", sa.String(length=64), nullable=True),
        sa.Column("pincode", sa.String(length=16), nullable=True),
        sa.Column("is_inter_state", sa.Boolean(), nullable=False),
        sa.Column("extra_charges", sa.JSON(), nullable=False),
        sa.Column("items_total", sa.Numeric(14, 2), nullable=False),
        sa.Column("taxable_total", sa.Numeric(14, 2), nullable=False),
        sa.Column("cgst_total", sa.Numeric(14, 2), nullable=False),
        sa.Column("sgst_total", sa.Numeric(14, 2), nullable=False),
        sa.Column("igst_total", sa.Numeric(14, 2), nullable=False),
        sa.Column("extra_charges_total", sa.Numeric(14, 2), nullable=False),
        sa.Column("round_off", sa.Numeric(6, 2), nullable=False),
        sa.Column("grand_total", sa.Numeric(14, 2), nullable=False),
        sa.Column("remarks", sa.Text(), nullable=True),
        sa.Column("idempotency_key", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("user_id", "invoice_no", name="uq_vehicle_invoices_number"),
        sa.UniqueConstraint("user_id", "idempotency_key", name="uq_vehicle_invoices_idempotency"),
    )
    op.create_index("ix_vehicle_invoices_user_date", "vehicle_invoices", ["user_id", "invoice_date"])
    op.create_index("ix_vehicle_invoices_financial_year", "vehicle_invoices", ["financial_year"])

    op.create_table(
        "vehicle_invoice_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "invoice_id", sa.Integer(), sa.ForeignKey("vehicle_invoices.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        *_unit_columns(),
        sa.Column("sale_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("discount", sa.Numeric(12, 2), nullable=False),
        sa.Column("taxable_value", sa.Numeric(12, 2), nullable=False),
        sa.Column("cgst_rate", sa.Numeric(5, 2), nullable=False),
        sa.Column("cgst_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("sgst_rate", sa.Numeric(5, 2), nullable=False),
        sa.Column("sgst_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("igst_rate", sa.Numeric(5, 2), nullable=False),
        sa.Column("igst_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("total", sa.Numeric(12, 2), nullable=False),
        sa.Column("is_returned", sa.Boolean(), nullable=False),
    )
    op.create_index("ix_vehicle_invoice_items_user_chassis", "vehicle_invoice_items", ["user_id", "chassis_no"])
    op.create_index("ix_vehicle_invoice_items_invoice_id", "vehicle_invoice_items", ["invoice_id"])
    op.create_index(
        "uq_vehicle_invoice_items_active_chassis",
        "vehicle_invoice_items",
        ["user_id", "chassis_no"],
        unique=True,
        postgresql_where=sa.text("is_returned = false"),
        sqlite_where=sa.text("is_returned = false"),
    )

    op.create_table(
        "sales_returns",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("return_invoice_no", sa.String(length=64), nullable=False),
        sa.Column("return_date", sa.Date(), nullable=False),
        sa.Column("invoice_id", sa.Integer(), sa.ForeignKey("vehicle_invoices.id"), nullable=False),
        sa.Column("customer_name", sa.String(length=255), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("total_refund_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("idempotency_key", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("user_id", "return_invoice_no", name="uq_sales_returns_number"),
        sa.UniqueConstraint("user_id", "idempotency_key", name="uq_sales_returns_idempotency"),
    )

    op.create_table(
        "sales_return_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "sales_return_id", sa.Integer(), sa.ForeignKey("sales_returns.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("invoice_item_id", sa.Integer(), sa.ForeignKey("vehicle_invoice_items.id"), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("chassis_no", sa.String(length=64), nullable=False),
        sa.Column("engine_no", sa.String(length=64), nullable=False),
        sa.Column("model_name", sa.String(length=255), nullable=False),
        sa.Column("colour", sa.String(length=64), nullable=False),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
    )
    op.create_index("ix_sales_return_items_user_chassis", "sales_return_items", ["user_id", "chassis_no"])


def downgrade() -> None:
    for table in (
        "sales_return_items",
        "sales_returns",
        "vehicle_invoice_items",
        "vehicle_invoices",
        "purchase_return_items",
        "purchase_returns",
        "purchase_items",
        "purchases",
        "stock_units",
        "customers",
        "invoice_counters",
        "dealer_settings",
        "audit_events",
        "users",
    ):
        op.drop_table(table)
