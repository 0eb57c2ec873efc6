"""Initial schema: users, appointments.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ACTIVE_SLOT_WHERE = sa.text("status IN ('pending', 'approved')")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("student_id", sa.String(), nullable=True),
        sa.Column("role", sa.String(), nullable=False, server_default="student"),
        sa.Column("hashed_password", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)

    op.create_table(
        "appointments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("student_ref", sa.Integer(), nullable=False),
        sa.Column("student_name", sa.String(), nullable=False),
        sa.Column("student_email", sa.String(), nullable=False),
        sa.Column("student_id", sa.String(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("time", sa.String(length=5), nullable=False),
        sa.Column("purpose", sa.String(), nullable=False),
        sa.Column("notes", sa.String(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("hod_notes", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["student_ref"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_appointments_date_time", "appointments", ["date", "time"], unique=False)
    op.create_index("ix_appointments_student_ref_date", "appointments", ["student_ref", "date"], unique=False)
    op.create_index(
        "uq_appointments_active_slot",
        "appointments",
        ["date", "time"],
        unique=True,
        postgresql_where=ACTIVE_SLOT_WHERE,
        sqlite_where=ACTIVE_SLOT_WHERE,
    )


def downgrade() -> None:
    op.drop_index("uq_appointments_active_slot", table_name="appointments")
    op.drop_index("ix_appointments_student_ref_date", table_name="appointments")
    op.drop_index("ix_appointments_date_time", table_name="appointments")
    op.drop_table("appointments")
    op.drop_index(op.f("ix_users_email"), table_name="users")
    op.drop_table("users")
