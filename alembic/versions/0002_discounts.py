"""discounts table and discounted ticket prices

Revision ID: 0002_discounts
Revises: 0001_initial_schema
Create Date: 2026-10-17 00:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0002_discounts"
down_revision: Union[str, None] = "0001_initial_schema"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ID_TYPE = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def upgrade() -> None:
    op.create_table(
        "discounts",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("code", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("discount_type", sa.String(length=20), nullable=False),
        sa.Column("discount_value", sa.Float(), nullable=False),
        sa.Column("contest_id", ID_TYPE, nullable=True),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("max_uses", sa.Integer(), nullable=True),
        sa.Column("current_uses", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["contest_id"],
            ["contests.id"],
            name="discounts_contest_id_fkey",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="discounts_pkey"),
        sa.UniqueConstraint("code", name="discounts_code_key"),
    )
    op.create_index("ix_discounts_contest_id", "discounts", ["contest_id"])

    with op.batch_alter_table("participations") as batch_op:
        batch_op.add_column(sa.Column("amount_due", sa.Float(), nullable=True))
        batch_op.add_column(sa.Column("discount_id", ID_TYPE, nullable=True))
        batch_op.create_foreign_key(
            "participations_discount_id_fkey",
            "discounts",
            ["discount_id"],
            ["id"],
            ondelete="SET NULL",
        )


def downgrade() -> None:
    with op.batch_alter_table("participations") as batch_op:
        batch_op.drop_constraint("participations_discount_id_fkey", type_="foreignkey")
        batch_op.drop_column("discount_id")
        batch_op.drop_column("amount_due")
    op.drop_index("ix_discounts_contest_id", table_name="discounts")
    op.drop_table("discounts")
