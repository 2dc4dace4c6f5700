"""initial schema: contests, draws, participations, payments

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-17 00:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ID_TYPE = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def upgrade() -> None:
    op.create_table(
        "contests",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("min_number", sa.Integer(), nullable=False),
        sa.Column("max_number", sa.Integer(), nullable=False),
        sa.Column("numbers_per_participation", sa.Integer(), nullable=False),
        sa.Column("first_place_pct", sa.Float(), nullable=False),
        sa.Column("second_place_pct", sa.Float(), nullable=False),
        sa.Column("lowest_place_pct", sa.Float(), nullable=False),
        sa.Column("admin_fee_pct", sa.Float(), nullable=False),
        sa.Column("participation_value", sa.Float(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="contests_pkey"),
    )
    op.create_table(
        "draws",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("contest_id", ID_TYPE, nullable=False),
        sa.Column("numbers", sa.JSON(), nullable=False),
        sa.Column("draw_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("code", sa.String(length=32), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["contest_id"],
            ["contests.id"],
            name="draws_contest_id_fkey",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="draws_pkey"),
        sa.UniqueConstraint("code", name="draws_code_key"),
    )
    op.create_index("ix_draws_contest_id", "draws", ["contest_id"])
    op.create_table(
        "participations",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("contest_id", ID_TYPE, nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("owner_name", sa.String(length=255), nullable=True),
        sa.Column("numbers", sa.JSON(), nullable=False),
        sa.Column("ticket_code", sa.String(length=32), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["contest_id"],
            ["contests.id"],
            name="participations_contest_id_fkey",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="participations_pkey"),
        sa.UniqueConstraint("ticket_code", name="participations_ticket_code_key"),
    )
    op.create_index("ix_participations_contest_id", "participations", ["contest_id"])
    op.create_index("ix_participations_user_id", "participations", ["user_id"])
    op.create_table(
        "payments",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("participation_id", ID_TYPE, nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("external_id", sa.String(length=128), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["participation_id"],
            ["participations.id"],
            name="payments_participation_id_fkey",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="payments_pkey"),
        sa.UniqueConstraint("external_id", name="payments_external_id_key"),
    )
    op.create_index("ix_payments_participation_id", "payments", ["participation_id"])


def downgrade() -> None:
    op.drop_index("ix_payments_participation_id", table_name="payments")
    op.drop_table("payments")
    op.drop_index("ix_participations_user_id", table_name="participations")
    op.drop_index("ix_participations_contest_id", table_name="participations")
    op.drop_table("participations")
    op.drop_index("ix_draws_contest_id", table_name="draws")
    op.drop_table("draws")
    op.drop_table("contests")
