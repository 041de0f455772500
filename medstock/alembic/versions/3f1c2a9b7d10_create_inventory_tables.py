"""create operators, medicines and movement tables

Revision ID: 3f1c2a9b7d10
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f1c2a9b7d10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ROLE = sa.Enum("user", "admin", name="role")
MEDICINE_TYPE = sa.Enum("pres", "otc", "other", name="medicine_type")


def _movement_table(name: str, timestamp_column: str) -> None:
    op.create_table(
        name,
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "medicine_id",
            sa.Integer(),
            sa.ForeignKey("medicines.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "operator_id",
            sa.Integer(),
            sa.ForeignKey("operators.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("original_medicine_quantity", sa.Integer(), nullable=False),
        sa.Column("update_transaction_quantity", sa.Integer(), nullable=False),
        sa.Column("supplier", sa.String(255), nullable=False),
        sa.Column(timestamp_column, sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("quantity > 0", name=f"ck_{name}_qty_pos"),
    )
    op.create_index(f"ix_{name}_medicine_id", name, ["medicine_id"])
    op.create_index(f"ix_{name}_operator_id", name, ["operator_id"])
    op.create_index(f"ix_{name}_operator_time", name, ["operator_id", timestamp_column])


def upgrade() -> None:
    op.create_table(
        "operators",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("role", ROLE, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "medicines",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        sa.Column("description", sa.String(255), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("type", MEDICINE_TYPE, nullable=False),
        sa.CheckConstraint("quantity >= 0", name="ck_medicine_quantity_nonneg"),
    )

    _movement_table("inbound_movement", "received_at")
    _movement_table("outbound_movement", "dispatched_at")


def downgrade() -> None:
    op.drop_table("outbound_movement")
    op.drop_table("inbound_movement")
    op.drop_table("medicines")
    op.drop_table("operators")
    MEDICINE_TYPE.drop(op.get_bind(), checkfirst=True)
    ROLE.drop(op.get_bind(), checkfirst=True)
