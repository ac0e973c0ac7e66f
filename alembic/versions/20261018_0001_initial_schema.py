"""initial inventory schema

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "clinics",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("require_lot_location", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "drugs",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("medication_name", sa.String(), nullable=False),
        sa.Column("generic_name", sa.String(), nullable=True),
        sa.Column("strength", sa.Float(), nullable=False),
        sa.Column("strength_unit", sa.String(), nullable=False),
        sa.Column("ndc_id", sa.String(), nullable=True),
        sa.Column("form", sa.String(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_drugs_medication_name"), "drugs", ["medication_name"], unique=False)
    op.create_table(
        "units",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("clinic_id", sa.UUID(), nullable=False),
        sa.Column("drug_id", sa.UUID(), nullable=False),
        sa.Column("available_quantity", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.ForeignKeyConstraint(["clinic_id"], ["clinics.id"]),
        sa.ForeignKeyConstraint(["drug_id"], ["drugs.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_units_clinic_id"), "units", ["clinic_id"], unique=False)
    op.create_index(op.f("ix_units_drug_id"), "units", ["drug_id"], unique=False)
    op.create_index("ix_units_clinic_available", "units", ["clinic_id", "available_quantity"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_units_clinic_available", table_name="units")
    op.drop_index(op.f("ix_units_drug_id"), table_name="units")
    op.drop_index(op.f("ix_units_clinic_id"), table_name="units")
    op.drop_table("units")
    op.drop_index(op.f("ix_drugs_medication_name"), table_name="drugs")
    op.drop_table("drugs")
    op.drop_table("clinics")
