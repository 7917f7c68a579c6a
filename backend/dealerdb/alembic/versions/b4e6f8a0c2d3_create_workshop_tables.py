"""Create workshop parts ledger and job card tables.

Revision ID: b4e6f8a0c2d3
Revises: a1d3c5e7f901
Create Date: 2024-06-03 10:30:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "b4e6f8a0c2d3"
down_revision = "a1d3c5e7f901"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "workshop_parts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("part_no", sa.String(length=64), nullable=False),
        sa.Column("part_name", sa.String(length=255), nullable=False),
        sa.Column("hsn_code", sa.String(length=16), nullable=True),
        sa.Column("uom", sa.String(length=16), nullable=False),
        sa.Column("category", sa.String(length=64), nullable=True),
        sa.Column("purchase_rate", sa.Numeric(12, 2), nullable=False),
        sa.Column("sale_rate", sa.Numeric(12, 2), nullable=False),
        sa.Column("gst", sa.Numeric(5, 2), nullable=False),
        sa.Column("quantity", sa.Numeric(12, 2), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("user_id", "part_no", name="uq_workshop_parts_number"),
    )
    op.create_index("ix_workshop_parts_user_id", "workshop_parts", ["user_id"])
    op.create_index("ix_workshop_parts_user_name", "workshop_parts", ["user_id", "part_name"])

    op.create_table(
        "job_cards",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("invoice_no", sa.String(length=64), nullable=False),
        sa.Column("financial_year", sa.String(length=5), nullable=False),
        sa.Column("invoice_date", sa.Date(), nullable=False),
        sa.Column(
            "customer_id", sa.Integer(), sa.ForeignKey("customers.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column("customer_name", sa.String(length=255), nullable=False),
        sa.Column("customer_mobile", sa.String(length=32), nullable=True),
        sa.Column("customer_address", sa.Text(), nullable=True),
        sa.Column("customer_state", sa.String(length=64), nullable=True),
        sa.Column("reg_no", sa.String(length=32), nullable=False),
        sa.Column("frame_no", sa.String(length=64), nullable=True),
        sa.Column("model", sa.String(length=255), nullable=True),
        sa.Column("kms", sa.Integer(), nullable=True),
        sa.Column("job_type", sa.String(length=64), nullable=False),
        sa.Column("mechanic", sa.String(length=255), nullable=True),
        sa.Column("next_due_date", sa.Date(), nullable=True),
        sa.Column("denied_items", sa.JSON(), nullable=False),
        sa.Column("is_inter_state", sa.Boolean(), nullable=False),
        sa.Column("parts_total", sa.Numeric(14, 2), nullable=False),
        sa.Column("labour_total", sa.Numeric(14, 2), nullable=False),
        sa.Column("taxable_total", sa.Numeric(14, 2), nullable=False),
        sa.Column("cgst_total", sa.Numeric(14, 2), nullable=False),
        sa.Column("sgst_total", sa.Numeric(14, 2), nullable=False),
        sa.Column("igst_total", sa.Numeric(14, 2), nullable=False),
        sa.Column("round_off", sa.Numeric(6, 2), nullable=False),
        sa.Column("grand_total", sa.Numeric(14, 2), nullable=False),
        sa.Column("idempotency_key", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("user_id", "invoice_no", name="uq_job_cards_number"),
        sa.UniqueConstraint("user_id", "idempotency_key", name="uq_job_cards_idempotency"),
    )
    op.create_index("ix_job_cards_user_id", "job_cards", ["user_id"])
    op.create_index("ix_job_cards_financial_year", "job_cards", ["financial_year"])
    op.create_index("ix_job_cards_customer_id", "job_cards", ["customer_id"])
    op.create_index("ix_job_cards_reg_no", "job_cards", ["reg_no"])
    op.create_index("ix_job_cards_user_date", "job_cards", ["user_id", "invoice_date"])

    op.create_table(
        "job_card_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "job_card_id", sa.Integer(), sa.ForeignKey("job_cards.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column(
            "kind",
            sa.Enum("PART", "LABOUR", name="job_card_item_kind_enum", native_enum=False),
            nullable=False,
        ),
        sa.Column("part_no", sa.String(length=64), nullable=True),
        sa.Column("item_name", sa.String(length=255), nullable=False),
        sa.Column("hsn_code", sa.String(length=16), nullable=True),
        sa.Column("uom", sa.String(length=16), nullable=True),
        sa.Column("quantity", sa.Numeric(12, 2), nullable=False),
        sa.Column("rate", sa.Numeric(12, 2), nullable=False),
        sa.Column("discount", sa.Numeric(12, 2), nullable=False),
        sa.Column("gst_rate", sa.Numeric(5, 2), nullable=False),
        sa.Column("taxable_value", sa.Numeric(12, 2), nullable=False),
        sa.Column("cgst_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("sgst_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("igst_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("total", sa.Numeric(12, 2), nullable=False),
    )
    op.create_index("ix_job_card_items_job_card_id", "job_card_items", ["job_card_id"])
    op.create_index("ix_job_card_items_user_id", "job_card_items", ["user_id"])
    op.create_index("ix_job_card_items_part_no", "job_card_items", ["part_no"])


def downgrade() -> None:
    for table in ("job_card_items", "job_cards", "workshop_parts"):
        op.drop_table(table)
