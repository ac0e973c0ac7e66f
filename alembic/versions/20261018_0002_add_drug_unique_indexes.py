"""add unique indexes backing drug insert-or-fetch

Revision ID: 20261018_0002
Revises: 20261018_0001
Create Date: 2026-10-18 09:30:00.000000

Description:
    - uq_drugs_natural_key: one catalog row per (lower(medication_name),
      strength, strength_unit, form).  Concurrent get_or_create calls for
      the same new drug hit ON CONFLICT DO NOTHING and reuse the winner.
    - uq_drugs_ndc_id: partial unique index, NDC is optional.

    Existing duplicates must be merged before upgrading or index creation
    fails.
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "20261018_0002"
down_revision = "20261018_0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_index(
        "uq_drugs_natural_key",
        "drugs",
        [sa.text("lower(medication_name)"), "strength", "strength_unit", "form"],
        unique=True,
    )
    op.create_index(
        "uq_drugs_ndc_id",
        "drugs",
        ["ndc_id"],
        unique=True,
        postgresql_where=sa.text("ndc_id IS NOT NULL"),
    )


def downgrade() -> None:
    op.drop_index("uq_drugs_ndc_id", table_name="drugs")
    op.drop_index("uq_drugs_natural_key", table_name="drugs")
