"""initial raffle schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-17 00:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ID_TYPE = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def upgrade() -> None:
    op.create_table(
        "raffle_cycles",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_raffle_cycles")),
    )

    op.create_table(
        "extra_number_requests",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("cycle_id", ID_TYPE, nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("contact", sa.String(length=20), nullable=False),
        sa.Column("purchase_amount", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("extra_ticket_count", sa.Integer(), nullable=False),
        sa.Column("proof_ref", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=10), nullable=False),
        sa.Column("chosen_numbers", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('pending','approved','rejected')",
            name=op.f("ck_extra_number_requests_status_enum"),
        ),
        sa.CheckConstraint(
            "(status = 'pending' AND completed_at IS NULL) OR "
            "(status <> 'pending' AND completed_at IS NOT NULL)",
            name=op.f("ck_extra_number_requests_completed_matches_status"),
        ),
        sa.CheckConstraint(
            "extra_ticket_count >= 0",
            name=op.f("ck_extra_number_requests_ticket_count_non_negative"),
        ),
        sa.ForeignKeyConstraint(
            ["cycle_id"],
            ["raffle_cycles.id"],
            name=op.f("fk_extra_number_requests_cycle_id_raffle_cycles"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_extra_number_requests")),
    )
    op.create_index(
        op.f("ix_extra_number_requests_cycle_id"),
        "extra_number_requests",
        ["cycle_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_extra_number_requests_contact"),
        "extra_number_requests",
        ["contact"],
        unique=False,
    )

    op.create_table(
        "participants",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("cycle_id", ID_TYPE, nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("contact", sa.String(length=20), nullable=False),
        sa.Column("number", sa.Integer(), nullable=False),
        sa.Column("origin", sa.String(length=10), nullable=False),
        sa.Column("extra_request_id", ID_TYPE, nullable=True),
        sa.Column("registered_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("number >= 1", name=op.f("ck_participants_number_positive")),
        sa.CheckConstraint(
            "origin IN ('direct','extra')", name=op.f("ck_participants_origin_enum")
        ),
        sa.ForeignKeyConstraint(
            ["cycle_id"],
            ["raffle_cycles.id"],
            name=op.f("fk_participants_cycle_id_raffle_cycles"),
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["extra_request_id"],
            ["extra_number_requests.id"],
            name=op.f("fk_participants_extra_request_id_extra_number_requests"),
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_participants")),
        sa.UniqueConstraint("cycle_id", "number", name="uq_participants_cycle_number"),
    )
    op.create_index(
        op.f("ix_participants_contact"), "participants", ["contact"], unique=False
    )
    op.create_index(
        "uq_participants_cycle_direct_contact",
        "participants",
        ["cycle_id", "contact"],
        unique=True,
        sqlite_where=sa.text("origin = 'direct'"),
        postgresql_where=sa.text("origin = 'direct'"),
    )

    op.create_table(
        "draw_outcomes",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("cycle_id", ID_TYPE, nullable=False),
        sa.Column("participant_id", ID_TYPE, nullable=False),
        sa.Column("number", sa.Integer(), nullable=False),
        sa.Column("winner_name", sa.String(length=120), nullable=False),
        sa.Column("winner_contact", sa.String(length=20), nullable=False),
        sa.Column("total_tickets", sa.Integer(), nullable=False),
        sa.Column("drawn_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["cycle_id"],
            ["raffle_cycles.id"],
            name=op.f("fk_draw_outcomes_cycle_id_raffle_cycles"),
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["participant_id"],
            ["participants.id"],
            name=op.f("fk_draw_outcomes_participant_id_participants"),
            ondelete="RESTRICT",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_draw_outcomes")),
        sa.UniqueConstraint("cycle_id", name="uq_draw_outcomes_cycle"),
    )

    op.create_table(
        "operation_logs",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("cycle_id", sa.Integer(), nullable=True),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("subject_table", sa.String(length=50), nullable=False),
        sa.Column("subject_id", sa.Integer(), nullable=True),
        sa.Column("details_json", sa.Text(), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_operation_logs")),
    )
    op.create_index(
        op.f("ix_operation_logs_action"), "operation_logs", ["action"], unique=False
    )


def downgrade() -> None:
    op.drop_index(op.f("ix_operation_logs_action"), table_name="operation_logs")
    op.drop_table("operation_logs")
    op.drop_table("draw_outcomes")
    op.drop_index("uq_participants_cycle_direct_contact", table_name="participants")
    op.drop_index(op.f("ix_participants_contact"), table_name="participants")
    op.drop_table("participants")
    op.drop_index(
        op.f("ix_extra_number_requests_contact"), table_name="extra_number_requests"
    )
    op.drop_index(
        op.f("ix_extra_number_requests_cycle_id"), table_name="extra_number_requests"
    )
    op.drop_table("extra_number_requests")
    op.drop_table("raffle_cycles")
