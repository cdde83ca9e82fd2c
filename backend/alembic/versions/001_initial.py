"""Initial schema: users, training types, AI suggestions (+events), workouts.

Revision ID: 001
Revises:
Create Date: 2026-10-16

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

TRAINING_TYPES = [
    ("easy_run", "Easy run"),
    ("tempo_run", "Tempo run"),
    ("interval", "Intervals"),
    ("long_run", "Long run"),
    ("recovery", "Recovery run"),
]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    training_types = op.create_table(
        "training_types",
        sa.Column("code", sa.String(64), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
        sa.PrimaryKeyConstraint("code"),
    )
    op.bulk_insert(training_types, [{"code": code, "name": name, "is_active": True} for code, name in TRAINING_TYPES])

    op.create_table(
        "ai_suggestions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("training_type_code", sa.String(64), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="shown"),
        sa.Column("planned_date", sa.Date(), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("accepted_workout_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["training_type_code"], ["training_types.code"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_ai_suggestions_user_id", "ai_suggestions", ["user_id"], unique=False)
    op.create_index("ix_ai_suggestions_planned_date", "ai_suggestions", ["planned_date"], unique=False)
    op.create_index("ix_ai_suggestions_created_at", "ai_suggestions", ["created_at"], unique=False)
    # Daily quota lookup: user + planned date + creation window
    op.create_index(
        "ix_ai_suggestions_user_date_created",
        "ai_suggestions",
        ["user_id", "planned_date", "created_at"],
        unique=False,
    )

    op.create_table(
        "workouts",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("training_type_code", sa.String(64), nullable=False),
        sa.Column("planned_date", sa.Date(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("planned_distance_m", sa.Integer(), nullable=True),
        sa.Column("planned_duration_s", sa.Integer(), nullable=True),
        sa.Column("steps", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="planned"),
        sa.Column("origin", sa.String(16), nullable=False, server_default="manual"),
        sa.Column("distance_m", sa.Integer(), nullable=True),
        sa.Column("duration_s", sa.Integer(), nullable=True),
        sa.Column("avg_hr_bpm", sa.Integer(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rating", sa.String(16), nullable=True),
        sa.Column("ai_suggestion_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["training_type_code"], ["training_types.code"]),
        sa.ForeignKeyConstraint(
            ["ai_suggestion_id"], ["ai_suggestions.id"], name="fk_workouts_ai_suggestion_id", ondelete="SET NULL"
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "planned_date", "position", name="uq_workouts_user_date_position"),
        sa.UniqueConstraint("ai_suggestion_id", name="uq_workouts_ai_suggestion_id"),
        sa.CheckConstraint("rating IS NULL OR status = 'completed'", name="ck_workouts_rating_completed"),
    )
    op.create_index("ix_workouts_user_id", "workouts", ["user_id"], unique=False)
    op.create_index("ix_workouts_planned_date", "workouts", ["planned_date"], unique=False)

    with op.batch_alter_table("ai_suggestions") as batch_op:
        batch_op.create_foreign_key(
            "fk_ai_suggestions_accepted_workout_id",
            "workouts",
            ["accepted_workout_id"],
            ["id"],
            ondelete="RESTRICT",
        )

    op.create_table(
        "ai_suggestion_events",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("ai_suggestion_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("kind", sa.String(16), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["ai_suggestion_id"], ["ai_suggestions.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_ai_suggestion_events_ai_suggestion_id", "ai_suggestion_events", ["ai_suggestion_id"], unique=False)
    op.create_index("ix_ai_suggestion_events_user_id", "ai_suggestion_events", ["user_id"], unique=False)
    op.create_index("ix_ai_suggestion_events_occurred_at", "ai_suggestion_events", ["occurred_at"], unique=False)


def downgrade() -> None:
    op.drop_table("ai_suggestion_events")
    with op.batch_alter_table("ai_suggestions") as batch_op:
        batch_op.drop_constraint("fk_ai_suggestions_accepted_workout_id", type_="foreignkey")
    op.drop_table("workouts")
    op.drop_table("ai_suggestions")
    op.drop_table("training_types")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
